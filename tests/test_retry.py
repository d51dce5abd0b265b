import asyncio
import unittest
from unittest.mock import AsyncMock, patch

from mathgen.core.retry import RetryPolicy, with_retry


class Flaky:
    def __init__(self, failures, error=ConnectionError):
        self.failures = failures
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error(f"failure {self.calls}")
        return "ok"


class WithRetryTests(unittest.IsolatedAsyncioTestCase):
    async def test_returns_first_success(self):
        op = Flaky(failures=2)
        self.assertEqual(await with_retry(op, 3, 0), "ok")
        self.assertEqual(op.calls, 3)

    async def test_linear_backoff(self):
        op = Flaky(failures=2)
        with patch("mathgen.core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
            await with_retry(op, 3, 0.5)
        self.assertEqual([c.args[0] for c in sleep.await_args_list], [0.5, 1.0])

    async def test_last_error_propagates_after_exhaustion(self):
        op = Flaky(failures=5, error=ValueError)
        with self.assertRaises(ValueError) as ctx:
            await with_retry(op, 3, 0)
        self.assertEqual(str(ctx.exception), "failure 3")
        self.assertEqual(op.calls, 3)

    async def test_non_retryable_errors_propagate_immediately(self):
        op = Flaky(failures=5, error=KeyError)
        with self.assertRaises(KeyError):
            await with_retry(
                op, 3, 0, retry_if=lambda e: isinstance(e, ConnectionError)
            )
        self.assertEqual(op.calls, 1)

    async def test_timeout_counts_as_failed_attempt(self):
        calls = []

        async def slow_then_fast():
            calls.append(1)
            if len(calls) == 1:
                await asyncio.sleep(5)
            return "done"

        result = await with_retry(slow_then_fast, 2, 0, timeout=0.05)
        self.assertEqual(result, "done")
        self.assertEqual(len(calls), 2)

    async def test_timeout_exhaustion_raises_timeout_error(self):
        async def never():
            await asyncio.sleep(5)

        with self.assertRaises(TimeoutError):
            await with_retry(never, 2, 0, timeout=0.01)

    async def test_rejects_zero_attempts(self):
        with self.assertRaises(ValueError):
            await with_retry(Flaky(0), 0, 0)

    async def test_policy_runs_with_its_settings(self):
        op = Flaky(failures=1)
        policy = RetryPolicy(max_attempts=2, base_delay=0)
        self.assertEqual(await policy.run(op), "ok")
        self.assertEqual(op.calls, 2)


if __name__ == "__main__":
    unittest.main()
