"""Calendar event source backed by a JSON or YAML export file."""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from calbill.core.errors import EventSourceError
from calbill.core.models import Event
from calbill.utils.durations import is_same_day

logger = logging.getLogger(__name__)


def _parse_timestamp(value: Any, field_name: str, index: int) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError as exc:
            raise EventSourceError(f"Event {index}: invalid {field_name} {value!r}") from exc
    raise EventSourceError(f"Event {index}: missing {field_name}")


def parse_event(raw: Dict[str, Any], index: int = 0) -> Event:
    """Validate one raw event mapping into an Event."""
    title = raw.get("title", raw.get("summary"))
    if title is None:
        raise EventSourceError(f"Event {index}: missing title")
    return Event(
        title=str(title),
        start=_parse_timestamp(raw.get("start"), "start", index),
        end=_parse_timestamp(raw.get("end"), "end", index),
        all_day=bool(raw.get("all_day", raw.get("allDay", False))),
    )


def load_event_file(path: Path) -> List[Event]:
    """Read every event in the file, in file order."""
    try:
        text = path.read_text()
    except OSError as exc:
        raise EventSourceError(f"Cannot read events file {path}: {exc}") from exc

    try:
        if path.suffix.lower() in {".yaml", ".yml"}:
            raw_data = yaml.safe_load(text)
        else:
            raw_data = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise EventSourceError(f"Cannot parse events file {path}: {exc}") from exc

    if isinstance(raw_data, dict):
        raw_data = raw_data.get("events", [])
    if raw_data is None:
        return []
    if not isinstance(raw_data, list):
        raise EventSourceError(f"Events file {path} must contain a list of events")

    events: List[Event] = []
    for index, item in enumerate(raw_data):
        if not isinstance(item, dict):
            raise EventSourceError(f"Event {index} in {path} is not a mapping: {item!r}")
        events.append(parse_event(item, index))
    return events


def eligible_reason(event: Event) -> Optional[str]:
    """Why an event is not billable, or None when it should be processed."""
    if event.all_day:
        return "all-day event"
    if not is_same_day(event.start, event.end):
        return "multi-day event"
    return None


class FileEventSource:
    """Events exported from a calendar into a local file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def get_events(self, start_date: date, end_date: date) -> List[Event]:
        """Events starting within [start_date, end_date], oldest first."""
        events = [
            event
            for event in load_event_file(self.path)
            if start_date <= event.start.date() <= end_date
        ]
        events.sort(key=lambda event: event.start.timestamp())
        logger.info(
            "Found %d events between %s and %s in %s",
            len(events),
            start_date.isoformat(),
            end_date.isoformat(),
            self.path.name,
        )
        return events
