"""
Retry with linear backoff around async operations.

Every external call (generation, datastore read, datastore write) goes
through ``with_retry``; each call site brings its own ``RetryPolicy``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int,
    base_delay: float,
    *,
    timeout: Optional[float] = None,
    retry_if: Optional[Callable[[Exception], bool]] = None,
    label: str = "operation",
) -> T:
    """
    Run ``operation`` up to ``max_attempts`` times, one attempt at a time.

    After a failed attempt N the wrapper sleeps ``base_delay * N`` seconds.
    With ``timeout`` set, each attempt is raced against it; an expired
    attempt is cancelled and counts as a failure (``TimeoutError``).
    Errors rejected by ``retry_if`` propagate immediately. Once attempts
    are exhausted the last error is re-raised as is.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(1, max_attempts + 1):
        try:
            if timeout is None:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=timeout)
        except Exception as e:
            if retry_if is not None and not retry_if(e):
                raise
            if attempt == max_attempts:
                logger.warning(f"{label} failed after {attempt} attempts: {e!r}")
                raise
            delay = base_delay * attempt
            logger.warning(
                f"{label} attempt {attempt}/{max_attempts} failed ({e!r}); "
                f"retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    raise AssertionError("unreachable")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.2
    timeout: Optional[float] = None

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        retry_if: Optional[Callable[[Exception], bool]] = None,
        label: str = "operation",
    ) -> T:
        return await with_retry(
            operation,
            self.max_attempts,
            self.base_delay,
            timeout=self.timeout,
            retry_if=retry_if,
            label=label,
        )
