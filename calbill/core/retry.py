"""Bounded retry with exponential backoff."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_retry(
    operation: Callable[[], T],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    description: str = "operation",
) -> T:
    """Call operation until it succeeds or attempts run out.

    The delay starts at initial_delay and doubles after every failed
    attempt. The last error is re-raised unchanged, as is any error that
    should_retry rejects.
    """
    attempts = max(int(max_attempts), 1)
    delay = float(initial_delay)

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except Exception as exc:
            if attempt >= attempts:
                logger.error("All %d attempts failed for %s: %s", attempts, description, exc)
                raise
            if should_retry is not None and not should_retry(exc):
                logger.debug("Not retrying %s: %s", description, exc)
                raise
            logger.warning(
                "Attempt %d/%d failed for %s: %s (retrying in %.1fs)",
                attempt,
                attempts,
                description,
                exc,
                delay,
            )
            if delay > 0:
                time.sleep(delay)
            delay *= 2

    raise AssertionError("unreachable")
