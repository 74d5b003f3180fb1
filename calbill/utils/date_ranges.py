"""Date option parsing for sync runs."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

import typer

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def validate_date(value: Optional[str]) -> Optional[str]:
    """Typer callback that validates YYYY-MM-DD format for date options."""
    if value is None:
        return value
    if not _DATE_RE.match(value):
        raise typer.BadParameter(
            f"Invalid date '{value}'. Expected format: YYYY-MM-DD (e.g. 2026-01-15)"
        )
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise typer.BadParameter(
            f"Invalid date '{value}'. Expected format: YYYY-MM-DD (e.g. 2026-01-15)"
        )
    return value


def parse_date(value: str) -> date:
    """Parse YYYY-MM-DD date string."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def resolve_sync_range(
    on_date: Optional[str] = None,
    days_ago: Optional[int] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    today: Optional[date] = None,
) -> Tuple[date, date]:
    """Resolve sync date flags into an inclusive (start, end) pair.

    Precedence: explicit range, single date, days ago, then today.
    """
    now = today or date.today()

    if start_date or end_date:
        start = parse_date(start_date) if start_date else now
        end = parse_date(end_date) if end_date else start
        if end < start:
            raise ValueError(f"End date {end.isoformat()} is before start date {start.isoformat()}")
        return start, end

    if on_date:
        day = parse_date(on_date)
        return day, day

    if days_ago is not None:
        if days_ago < 0:
            raise ValueError("--days-ago must be zero or positive")
        day = now - timedelta(days=days_ago)
        return day, day

    return now, now
