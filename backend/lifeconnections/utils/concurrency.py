"""
Concurrency helpers for the analysis pipeline.

Provides:
- Semaphore-bounded fan-out that keeps input order
- Exponential backoff retries for transient failures
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class RetryConfig:
    """Configuration for retrying transient failures."""
    max_retries: int = 3  # Retries after the first attempt
    base_retry_delay: float = 0.5  # Base delay for exponential backoff
    max_retry_delay: float = 8.0


async def retry_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args,
    config: Optional[RetryConfig] = None,
    is_transient: Callable[[BaseException], bool] = lambda e: True,
    **kwargs
) -> T:
    """
    Await ``func`` and retry it while it raises transient errors.

    Args:
        func: Async function to execute
        config: Retry limits and delays
        is_transient: Decides whether an exception is worth retrying

    Returns:
        Result of the function

    Raises:
        Exception: The last error once retries are exhausted, or any
            non-transient error immediately
    """
    config = config or RetryConfig()

    for attempt in range(config.max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except Exception as e:
            if not is_transient(e) or attempt >= config.max_retries:
                raise
            delay = min(config.base_retry_delay * (2 ** attempt), config.max_retry_delay)
            logger.warning(
                f"Transient failure in {getattr(func, '__name__', func)} "
                f"(attempt {attempt + 1}/{config.max_retries + 1}): {e}. Retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)

    raise RuntimeError("unreachable")


async def run_with_concurrency_limit(
    tasks: List[Callable[[], Awaitable[Any]]],
    max_concurrent: int = 3,
    delay_between: float = 0.0
) -> List[Any]:
    """
    Run multiple async tasks with concurrency limiting.

    Returns once every task has finished, so callers can use it as a barrier.

    Args:
        tasks: List of async callables
        max_concurrent: Maximum concurrent tasks
        delay_between: Delay between starting tasks

    Returns:
        List of results in same order as input tasks
    """
    semaphore = asyncio.Semaphore(max_concurrent)
    results: List[Any] = [None] * len(tasks)

    async def run_task(index: int, task: Callable[[], Awaitable[Any]]):
        async with semaphore:
            if delay_between:
                await asyncio.sleep(delay_between * index / max_concurrent)
            results[index] = await task()

    await asyncio.gather(*[
        run_task(i, task) for i, task in enumerate(tasks)
    ])

    return results
