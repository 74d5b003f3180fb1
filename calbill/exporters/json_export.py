"""JSON report export."""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

from calbill.core.models import SyncReport


def _default(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def sync_report_payload(
    report: SyncReport,
    start: date,
    end: date,
    dry_run: bool = False,
    generated_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Report dict plus the run's date range and generation time."""
    payload = report.to_dict()
    payload["dateRange"] = {"start": start.isoformat(), "end": end.isoformat()}
    payload["dryRun"] = dry_run
    payload["generatedAt"] = (generated_at or datetime.now().astimezone()).isoformat()
    return payload


def write_json(path: Path, payload: Any) -> Path:
    """Write payload as pretty JSON and return path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, default=_default) + "\n")
    return path
