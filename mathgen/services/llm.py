import logging
from typing import Optional, Protocol

import openai
from openai import AsyncOpenAI

from mathgen.core.config import Settings
from mathgen.core.errors import (
    GenerationRateLimited,
    GenerationTimeout,
    GenerationUnavailable,
    InvalidGenerationResponse,
    is_retryable_generation_error,
)
from mathgen.core.retry import RetryPolicy

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def generate_text(self, prompt: str) -> str:
        ...


class OpenAITextGenerator:
    """Chat-completions backed generator. Retries are left to the caller."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        temperature: float = 0.4,
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self._client: Optional[AsyncOpenAI] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAITextGenerator":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            temperature=settings.openai_temperature,
        )

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.api_key:
                raise GenerationUnavailable("OPENAI_API_KEY is not configured")
            self._client = AsyncOpenAI(api_key=self.api_key, max_retries=0)
        return self._client

    async def generate_text(self, prompt: str) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.temperature,
            )
        except openai.APITimeoutError as e:
            raise GenerationTimeout(str(e)) from e
        except openai.RateLimitError as e:
            raise GenerationRateLimited(str(e)) from e
        except openai.APIError as e:
            raise GenerationUnavailable(str(e)) from e

        if not response.choices:
            raise InvalidGenerationResponse("LLM response has no choices")
        content = response.choices[0].message.content
        if content is None:
            raise InvalidGenerationResponse("LLM response content is None")
        return content.strip()


async def request_text(
    generator: TextGenerator, prompt: str, policy: RetryPolicy, label: str
) -> str:
    """One generation call under ``policy``; per-attempt timeouts become GenerationTimeout."""
    try:
        return await policy.run(
            lambda: generator.generate_text(prompt),
            retry_if=is_retryable_generation_error,
            label=label,
        )
    except TimeoutError as e:
        raise GenerationTimeout(f"{label} timed out") from e
