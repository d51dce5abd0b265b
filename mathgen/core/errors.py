import enum
from typing import Optional


class GenerationError(Exception):
    """The generative-language service failed to produce text."""


class GenerationTimeout(GenerationError):
    pass


class GenerationRateLimited(GenerationError):
    pass


class GenerationUnavailable(GenerationError):
    pass


class InvalidGenerationResponse(GenerationError):
    pass


class InvalidGeneratedContent(Exception):
    """Generated text could not be turned into a valid payload.

    ``raw`` keeps the model output for the logs; it is never sent to clients.
    """

    def __init__(self, reason: str, raw: str = ""):
        super().__init__(reason)
        self.reason = reason
        self.raw = raw


class ErrorKind(enum.Enum):
    UNIQUE_VIOLATION = "unique_violation"
    CONSTRAINT_VIOLATION = "constraint_violation"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


class PersistenceError(Exception):
    def __init__(self, kind: ErrorKind, detail: Optional[str] = None):
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)
        self.kind = kind
        self.detail = detail

    @property
    def is_transient(self) -> bool:
        return self.kind is ErrorKind.UNAVAILABLE


def is_transient_persistence_error(exc: Exception) -> bool:
    return isinstance(exc, PersistenceError) and exc.is_transient


def is_retryable_generation_error(exc: Exception) -> bool:
    return isinstance(exc, (GenerationError, TimeoutError))
