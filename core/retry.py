# core/retry.py
"""Retry remote operations with exponential backoff.

Every remote call in the pipeline (outline, fragment, follow-up and image
submission) goes through [`with_retry()`](core/retry.py:26). Only retryable
`ProviderError`s are retried; configuration and malformed-output errors are
surfaced immediately.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog

import config
from core.exceptions import ProviderError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int | None = None,
    base_delay: float | None = None,
    operation_name: str = "remote call",
) -> T:
    """Run `operation` up to `attempts` times with doubling delays.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        attempts: Maximum attempts. Defaults to `config.LLM_RETRY_ATTEMPTS`.
        base_delay: Delay before the second attempt, doubled after each further
            failure. Defaults to `config.LLM_RETRY_DELAY_SECONDS`.
        operation_name: Label used in log events.

    Returns:
        The first successful result.

    Raises:
        ProviderError: The last observed failure once attempts are exhausted, or
            immediately for a non-retryable provider failure.
        Exception: Any other exception raised by `operation`, unchanged and
            without retrying.
    """
    effective_attempts = max(1, attempts if attempts is not None else config.LLM_RETRY_ATTEMPTS)
    effective_delay = base_delay if base_delay is not None else config.LLM_RETRY_DELAY_SECONDS

    last_exception: ProviderError | None = None

    for attempt in range(effective_attempts):
        try:
            return await operation()
        except ProviderError as e:
            last_exception = e
            logger.warning(
                f"{operation_name} failed (attempt {attempt + 1}/{effective_attempts})",
                error=str(e),
                status_code=e.status_code,
                retryable=e.retryable,
            )
            if not e.retryable:
                break

        if attempt < effective_attempts - 1:
            delay = effective_delay * (2**attempt)
            logger.info(f"Retrying {operation_name} in {delay:.2f}s")
            await asyncio.sleep(delay)

    logger.error(f"{operation_name} failed after retries", error=str(last_exception))
    if last_exception:
        raise last_exception
    raise ProviderError(f"{operation_name} failed with no specific error")
