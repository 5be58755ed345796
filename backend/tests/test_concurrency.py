"""
Tests for bounded fan-out and retry helpers.
"""

import asyncio

import pytest

from lifeconnections.utils.concurrency import RetryConfig, retry_with_backoff, run_with_concurrency_limit


NO_WAIT = RetryConfig(max_retries=2, base_retry_delay=0.0)


class TestRunWithConcurrencyLimit:

    async def test_results_keep_input_order(self):
        async def task(value, delay):
            await asyncio.sleep(delay)
            return value

        tasks = [lambda v=v, d=d: task(v, d) for v, d in [(1, 0.03), (2, 0.0), (3, 0.01)]]
        assert await run_with_concurrency_limit(tasks, max_concurrent=3) == [1, 2, 3]

    async def test_limit_is_respected(self):
        running = 0
        peak = 0

        async def task():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        await run_with_concurrency_limit([task] * 6, max_concurrent=2)
        assert peak == 2

    async def test_empty(self):
        assert await run_with_concurrency_limit([]) == []


class TestRetryWithBackoff:

    async def test_succeeds_after_transient_failures(self):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("reset")
            return "ok"

        assert await retry_with_backoff(flaky, config=NO_WAIT) == "ok"
        assert len(calls) == 3

    async def test_gives_up_after_max_retries(self):
        calls = []

        async def always_fails():
            calls.append(1)
            raise ConnectionError("reset")

        with pytest.raises(ConnectionError):
            await retry_with_backoff(always_fails, config=NO_WAIT)
        assert len(calls) == 3

    async def test_non_transient_error_is_raised_immediately(self):
        calls = []

        async def bad():
            calls.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await retry_with_backoff(
                bad, config=NO_WAIT, is_transient=lambda e: isinstance(e, ConnectionError)
            )
        assert len(calls) == 1

    async def test_arguments_are_forwarded(self):
        async def add(a, b=0):
            return a + b

        assert await retry_with_backoff(add, 2, b=3, config=NO_WAIT) == 5
