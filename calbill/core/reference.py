"""Reference tables (clients, locations, event types) kept as CSV files."""

from __future__ import annotations

import csv
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from calbill.core.constants import (
    CLIENT_HEADER,
    EVENT_TYPE_HEADER,
    FALLBACK_VOCABULARY,
    LOCATION_EVENT_CATEGORIES,
    LOCATION_HEADER,
)
from calbill.core.errors import ReferenceDataError
from calbill.core.models import PersonEntry, VocabularyEntry

logger = logging.getLogger(__name__)


@dataclass
class ReferenceTables:
    """All reference data needed to classify a day of events."""

    people: Dict[str, PersonEntry] = field(default_factory=dict)
    vocabulary: List[VocabularyEntry] = field(default_factory=list)
    locations: Dict[str, str] = field(default_factory=dict)


def _cell(row: Sequence[str], index: int) -> str:
    return row[index].strip() if len(row) > index and row[index] is not None else ""


def _find_header(rows: List[List[str]], header: Sequence[str]) -> int:
    """Index of the first data row: after a matching header, else after row 0."""
    expected = [name.lower() for name in header]
    for index, row in enumerate(rows[:5]):
        cells = [_cell(row, i).lower() for i in range(len(expected))]
        if cells == expected:
            return index + 1
    return 1


def make_person(first_name: str, last_name: str, uid: Any) -> Optional[PersonEntry]:
    """Validate one client row; rows without a last name or id are dropped."""
    last = str(last_name or "").strip()
    ident = str(uid if uid is not None else "").strip()
    if not last or not ident:
        return None
    return PersonEntry(
        key=last.lower(),
        id=ident,
        first_name=str(first_name or "").strip(),
        last_name=last,
    )


def make_vocabulary_entry(category: str, keywords: Any, description: str) -> Optional[VocabularyEntry]:
    """Validate one event-type row; keywords may be a list or a '|' separated string."""
    category = str(category or "").strip()
    description = str(description or "").strip()
    if isinstance(keywords, str):
        keywords = keywords.split("|")
    cleaned = tuple(
        keyword
        for keyword in (str(item).strip().lower() for item in keywords or [])
        if keyword
    )
    if not category or not description or not cleaned:
        return None
    return VocabularyEntry(
        category=category,
        keywords=cleaned,
        description_template=description,
        is_location_event=category.lower() in LOCATION_EVENT_CATEGORIES,
    )


def fallback_vocabulary() -> List[VocabularyEntry]:
    entries = [make_vocabulary_entry(*row) for row in FALLBACK_VOCABULARY]
    return [entry for entry in entries if entry is not None]


class ReferenceStore:
    """Directory of reference CSV tables plus the shared refresh stamp."""

    def __init__(
        self,
        directory: Path,
        clients_file: str = "clients.csv",
        locations_file: str = "locations.csv",
        event_types_file: str = "event_types.csv",
        stamp_file: str = "refresh.json",
    ) -> None:
        self.directory = Path(directory)
        self.clients_path = self.directory / clients_file
        self.locations_path = self.directory / locations_file
        self.event_types_path = self.directory / event_types_file
        self.stamp_path = self.directory / stamp_file

    @classmethod
    def from_config(cls, directory: Path, config: Dict[str, Any]) -> "ReferenceStore":
        ref_cfg = config.get("reference", {})
        return cls(
            directory=directory,
            clients_file=str(ref_cfg.get("clients", "clients.csv")),
            locations_file=str(ref_cfg.get("locations", "locations.csv")),
            event_types_file=str(ref_cfg.get("event_types", "event_types.csv")),
            stamp_file=str(ref_cfg.get("refresh_stamp", "refresh.json")),
        )

    def _read_rows(self, path: Path) -> Optional[List[List[str]]]:
        if not self.directory.is_dir():
            raise ReferenceDataError(f"Reference directory not found: {self.directory}")
        if not path.exists():
            return None
        try:
            with path.open(newline="", encoding="utf-8") as handle:
                return [row for row in csv.reader(handle) if any(cell.strip() for cell in row)]
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise ReferenceDataError(f"Failed to read reference table {path.name}: {exc}") from exc

    def load_people(self) -> Dict[str, PersonEntry]:
        """Client table keyed by lower-case last name."""
        rows = self._read_rows(self.clients_path)
        if rows is None:
            logger.warning("Client table %s not found; no clients loaded", self.clients_path)
            return {}

        people: Dict[str, PersonEntry] = {}
        for row in rows[_find_header(rows, CLIENT_HEADER):]:
            person = make_person(_cell(row, 0), _cell(row, 1), _cell(row, 2))
            if person is None:
                continue
            if person.key in people:
                logger.debug("Duplicate client key %r; keeping the later row", person.key)
            people[person.key] = person

        logger.info("Loaded %d clients", len(people))
        return people

    def load_locations(self) -> Dict[str, str]:
        """Location code -> assignee last name."""
        rows = self._read_rows(self.locations_path)
        if rows is None:
            logger.warning("Location table %s not found; no locations loaded", self.locations_path)
            return {}

        locations: Dict[str, str] = {}
        for row in rows[_find_header(rows, LOCATION_HEADER):]:
            first, last, code = _cell(row, 0), _cell(row, 1), _cell(row, 2)
            if code and first and last:
                locations[code] = last

        logger.info("Loaded %d location assignments", len(locations))
        return locations

    def load_vocabulary(self) -> List[VocabularyEntry]:
        """Event-type table, in file order; falls back to built-in defaults."""
        rows = self._read_rows(self.event_types_path)
        if rows is None:
            logger.warning("Event type table %s not found; using built-in vocabulary", self.event_types_path)
            return fallback_vocabulary()

        vocabulary: List[VocabularyEntry] = []
        for row in rows[_find_header(rows, EVENT_TYPE_HEADER):]:
            entry = make_vocabulary_entry(_cell(row, 0), _cell(row, 1), _cell(row, 2))
            if entry is not None:
                vocabulary.append(entry)

        logger.info("Loaded %d event types", len(vocabulary))
        return vocabulary

    def load_all(self) -> ReferenceTables:
        return ReferenceTables(
            people=self.load_people(),
            vocabulary=self.load_vocabulary(),
            locations=self.load_locations(),
        )

    def read_timestamp(self) -> Optional[datetime]:
        if not self.stamp_path.exists():
            return None
        try:
            data = json.loads(self.stamp_path.read_text())
            raw = data.get("last_refresh") if isinstance(data, dict) else None
            return datetime.fromisoformat(raw) if raw else None
        except (OSError, ValueError) as exc:
            raise ReferenceDataError(f"Invalid refresh stamp {self.stamp_path}: {exc}") from exc

    def write_timestamp(self, value: datetime, count: Optional[int] = None) -> None:
        payload: Dict[str, Any] = {"last_refresh": value.isoformat()}
        if count is not None:
            payload["clients"] = count
        self._atomic_write(self.stamp_path, json.dumps(payload, indent=2) + "\n")

    def replace_people(self, people: Sequence[PersonEntry], synced_at: datetime) -> int:
        """Rewrite the client table wholesale and stamp the refresh time."""
        self.directory.mkdir(parents=True, exist_ok=True)
        lines: List[List[str]] = [list(CLIENT_HEADER)]
        lines.extend([person.first_name, person.last_name, person.id] for person in people)

        fd, temp_name = tempfile.mkstemp(dir=self.directory, prefix=".clients-", suffix=".csv")
        try:
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as handle:
                csv.writer(handle).writerows(lines)
            os.replace(temp_name, self.clients_path)
        finally:
            if os.path.exists(temp_name):
                os.unlink(temp_name)

        self.write_timestamp(synced_at, count=len(people))
        logger.info("Replaced client table with %d clients", len(people))
        return len(people)

    def _atomic_write(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix=path.suffix)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            os.replace(temp_name, path)
        finally:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
