"""Billing duration and calendar-day helpers."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from calbill.core.constants import BILLING_INCREMENT_HOURS, MINIMUM_BILLABLE_HOURS

_SECONDS_PER_INCREMENT = Decimal(str(BILLING_INCREMENT_HOURS)) * 3600


def quantize(start: datetime, end: datetime) -> float:
    """Round an event's length to 12-minute billing blocks, at least one block.

    Half blocks round up (18 minutes bills as 0.4). Callers must ensure
    end >= start.
    """
    seconds = Decimal(str((end - start).total_seconds()))
    blocks = (seconds / _SECONDS_PER_INCREMENT).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    hours = round(float(blocks) * BILLING_INCREMENT_HOURS, 2)
    return max(MINIMUM_BILLABLE_HOURS, hours)


def is_same_day(start: datetime, end: datetime) -> bool:
    """True when both timestamps fall on the same calendar date."""
    return start.date() == end.date()


def format_record_date(value: datetime) -> str:
    """Format a timestamp as MM/DD/YYYY for the record store."""
    return value.strftime("%m/%d/%Y")
