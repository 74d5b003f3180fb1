"""Once-per-day reference refresh guard.

The check and the refresh are not atomic: two runs that start close
together can both see a stale stamp and both refresh. That only costs a
redundant refresh, since the refresh replaces the client table wholesale.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from calbill.core.models import RefreshResult

logger = logging.getLogger(__name__)

SKIPPED = "SKIPPED"
REFRESHED = "REFRESHED"
ERROR = "ERROR"


class TimestampStore(Protocol):
    def read_timestamp(self) -> Optional[datetime]: ...

    def write_timestamp(self, value: datetime) -> None: ...


def is_fresh_today(last_refresh: Optional[datetime], now: datetime) -> bool:
    """Same calendar date as now, whatever the time of day."""
    if last_refresh is None:
        return False
    if last_refresh.tzinfo is not None and now.tzinfo is not None:
        last_refresh = last_refresh.astimezone(now.tzinfo)
    return last_refresh.date() == now.date()


def ensure_fresh(
    store: TimestampStore,
    refresh_operation: Callable[[], Any],
    now: Optional[datetime] = None,
) -> RefreshResult:
    """Run refresh_operation unless the shared stamp is from today.

    refresh_operation is responsible for writing the new stamp. Any fault
    while reading the stamp or refreshing returns ERROR and leaves the
    stamp as it was.
    """
    current = now or datetime.now().astimezone()

    try:
        last_refresh = store.read_timestamp()
    except Exception as exc:
        logger.error("Could not read refresh stamp: %s", exc)
        return RefreshResult(status=ERROR, message=f"read failed: {exc}")

    last_text = last_refresh.isoformat() if last_refresh else None
    if is_fresh_today(last_refresh, current):
        logger.info("Reference data already refreshed today (%s); skipping", last_text)
        return RefreshResult(
            status=SKIPPED,
            last_refresh=last_text,
            message="reference data already current for today",
        )

    logger.info("Reference data stale (last refresh: %s); refreshing", last_text or "never")
    try:
        outcome = refresh_operation()
    except Exception as exc:
        logger.error("Reference refresh failed: %s", exc)
        return RefreshResult(status=ERROR, last_refresh=last_text, message=str(exc))

    message = f"refreshed {outcome} entries" if isinstance(outcome, int) else "refreshed"
    return RefreshResult(status=REFRESHED, last_refresh=current.isoformat(), message=message)
