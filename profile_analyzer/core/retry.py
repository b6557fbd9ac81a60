from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from profile_analyzer.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    label: str,
    attempts: int | None = None,
    base_delay_s: float | None = None,
    timeout_s: float | None = None,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """
    Await operation with exponential backoff retry on the given exceptions.

    Args:
        operation: Zero-argument callable returning a fresh awaitable per try
        label: Operation name used in retry logging (e.g., "scan:skills")
        attempts: Total number of tries, RETRY_ATTEMPTS by default
        base_delay_s: Delay after the first failure; doubles on each retry
        timeout_s: Optional bound on a single try
        retry_on: Exception types that trigger a retry; anything else propagates
    """
    max_attempts = max(1, attempts if attempts is not None else settings.retry_attempts)
    base_delay = settings.retry_base_delay_s if base_delay_s is None else base_delay_s

    for attempt in range(max_attempts):
        try:
            if timeout_s is not None:
                return await asyncio.wait_for(operation(), timeout=timeout_s)
            return await operation()
        except retry_on as exc:
            if attempt == max_attempts - 1:
                logger.warning("retry_exhausted op=%s attempts=%s: %s", label, max_attempts, exc)
                raise
            delay = base_delay * (2**attempt)
            logger.info(
                "%s failed (%s), retrying in %.1fs... (attempt %s/%s)",
                label,
                exc,
                delay,
                attempt + 1,
                max_attempts,
            )
            if delay > 0:
                await asyncio.sleep(delay)

    raise RuntimeError(f"{label}: retry loop exited without a result")  # pragma: no cover
