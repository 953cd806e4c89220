"""
Bounded retry with exponential backoff.

Used for the one operation in the engine that touches I/O on the live
path: writing the learner profile after a quiz.

Delay for attempt n (0-based) is ``initial * multiplier**n`` capped at
``max_delay_ms`` with +/-25% jitter.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from loguru import logger

from src.core.errors import MasteryEngineError

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Retry policy."""

    max_retries: int = 2
    initial_delay_ms: int = 1000
    max_delay_ms: int = 10000
    backoff_multiplier: float = 2.0
    jitter: float = 0.25


def calculate_delay_ms(
    attempt: int,
    config: RetryConfig,
    rng: random.Random | None = None,
) -> int:
    """Backoff delay for a 0-based retry attempt, in milliseconds."""
    rng = rng or random
    delay = config.initial_delay_ms * (config.backoff_multiplier ** attempt)
    delay = min(delay, config.max_delay_ms)
    jitter = delay * config.jitter * (rng.random() * 2 - 1)
    return max(0, round(delay + jitter))


def is_retryable(error: Exception) -> bool:
    """Engine errors flagged unrecoverable are never retried."""
    if isinstance(error, MasteryEngineError):
        return error.recoverable
    return True


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    context: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await ``fn()`` until it succeeds or the retry budget is spent.

    Args:
        fn: Zero-argument coroutine factory
        config: Retry policy (defaults if None)
        context: Label used in log messages
        sleep: Awaitable sleep, injectable for tests

    Returns:
        Result of the first successful call

    Raises:
        The last error once ``max_retries`` retries have failed
    """
    config = config or RetryConfig()
    attempts = config.max_retries + 1

    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            if attempt >= config.max_retries or not is_retryable(e):
                logger.error(f"{context} failed after {attempt + 1}/{attempts} attempts: {e}")
                raise
            delay_ms = calculate_delay_ms(attempt, config)
            logger.warning(
                f"{context} failed on attempt {attempt + 1}/{attempts}: {e}. "
                f"Retrying in {delay_ms}ms..."
            )
            await sleep(delay_ms / 1000)
            attempt += 1
