"""Formatting helpers used by console output."""

from __future__ import annotations

from typing import Any, Optional

_STATUS_STYLES = {
    "SUCCESS": "green",
    "REFRESHED": "green",
    "success": "green",
    "PARTIAL_SUCCESS": "yellow",
    "SKIPPED": "cyan",
    "skipped": "cyan",
    "ERROR": "red",
    "failed": "red",
}


def format_hours(hours: Optional[float]) -> str:
    """Format billable hours with one decimal, e.g. 0.4h."""
    if hours is None:
        return "N/A"
    return f"{float(hours):.1f}h"


def styled_status(status: str) -> str:
    """Wrap a status in rich markup for tables."""
    style = _STATUS_STYLES.get(status)
    return f"[{style}]{status}[/{style}]" if style else status


def outcome_text(detail: Any) -> str:
    """One-line description of a batch outcome's detail."""
    if detail is None:
        return ""
    if isinstance(detail, dict):
        if detail.get("duplicate"):
            return f"{detail.get('summary', '')} (already recorded)"
        if detail.get("recordId"):
            return f"{detail.get('summary', '')} [record {detail['recordId']}]"
        return str(detail.get("summary", ""))
    return str(detail)
