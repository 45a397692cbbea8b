"""Bounded fixed-delay retry for single units of work."""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from .errors import is_retryable as default_is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_retry(
    operation: Callable[[], T],
    max_retries: int = 3,
    retry_delay: float = 5.0,
    *,
    is_retryable: Callable[[BaseException], bool] = default_is_retryable,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "operation",
) -> T:
    """Run ``operation`` with up to ``max_retries`` additional attempts.

    The delay between attempts is fixed. ``operation`` must be safe to call
    more than once: a failed attempt may have left partial side effects that
    the next attempt has to overwrite.

    Args:
        operation: Callable to run (should take no arguments)
        max_retries: Additional attempts after the first one
        retry_delay: Seconds to sleep between attempts
        is_retryable: Predicate deciding whether an error may be retried;
            errors it rejects propagate immediately
        sleep: Sleep function (injectable for tests)
        description: Label used in log lines

    Returns:
        Result of the first successful attempt

    Raises:
        Exception: The last error, unchanged, once attempts are exhausted

    Example:
        result = run_with_retry(
            lambda: renderer.render_item(item),
            max_retries=3,
            retry_delay=5.0,
            description=f"render {item.id}",
        )
    """
    if max_retries < 0:
        raise ValueError("max_retries must not be negative")
    if retry_delay < 0:
        raise ValueError("retry_delay must not be negative")

    total_attempts = max_retries + 1
    for attempt in range(1, total_attempts + 1):
        try:
            return operation()
        except Exception as exc:
            if not is_retryable(exc):
                logger.error("%s failed with non-retryable error: %s", description, exc)
                raise
            if attempt == total_attempts:
                logger.error("%s failed after %d attempts: %s", description, total_attempts, exc)
                raise
            logger.warning(
                "%s failed (attempt %d/%d): %s. Retrying in %.1fs...",
                description,
                attempt,
                total_attempts,
                exc,
                retry_delay,
            )
            sleep(retry_delay)

    # Unreachable: the loop either returns or raises
    raise RuntimeError("Retry loop completed without result or exception")
