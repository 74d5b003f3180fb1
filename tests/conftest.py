from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from calbill.core.models import Event, PersonEntry, VocabularyEntry
from calbill.core.reference import make_vocabulary_entry


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_calbill_logging():
    yield
    logger = logging.getLogger("calbill")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture()
def people() -> Dict[str, PersonEntry]:
    return {
        "brown": PersonEntry(key="brown", id="C-100", first_name="Alice", last_name="Brown"),
        "smith": PersonEntry(key="smith", id="C-200", first_name="John", last_name="Smith"),
        "omalley": PersonEntry(key="omalley", id="C-300", first_name="Pat", last_name="OMalley"),
    }


@pytest.fixture()
def vocabulary() -> List[VocabularyEntry]:
    rows = [
        ("Telephone Conference", "telephone call|tc|call", "Telephone conference with {Client First Name} {Client Last Name}"),
        ("Office Meeting", "office meeting|office|meeting", "Office meeting with {Client First Name} {Client Last Name}"),
        ("Court", "motion", "Appeared before Judge {Judge Last Name} on initial presentation of Motion"),
        ("Court", "hearing", "Appeared before Judge {Judge Last Name} for hearing on Motion"),
    ]
    entries = [make_vocabulary_entry(*row) for row in rows]
    return [entry for entry in entries if entry is not None]


@pytest.fixture()
def locations() -> Dict[str, str]:
    return {"1814": "Chen", "1902": "Garcia"}


@pytest.fixture()
def make_event():
    def _make(title: str, start: str = "2026-03-02T10:00", end: str = "2026-03-02T10:30", all_day: bool = False) -> Event:
        return Event(
            title=title,
            start=datetime.fromisoformat(start),
            end=datetime.fromisoformat(end),
            all_day=all_day,
        )

    return _make


@pytest.fixture()
def reference_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "reference"
    directory.mkdir()
    (directory / "clients.csv").write_text(
        "First Name,Last Name,UID_Client_PK\n"
        "Alice,Brown,C-100\n"
        "John,Smith,C-200\n"
    )
    (directory / "locations.csv").write_text(
        "First Name,Last Name,Courtroom\n"
        "Wei,Chen,1814\n"
        "Ana,Garcia,1902\n"
    )
    (directory / "event_types.csv").write_text(
        "Category,Keywords,Description\n"
        "Telephone Conference,telephone call|tc|call,Telephone conference with {Client First Name} {Client Last Name}\n"
        "Office Meeting,office meeting|office|meeting,Office meeting with {Client First Name} {Client Last Name}\n"
        "Court,motion,Appeared before Judge {Judge Last Name} on initial presentation of Motion\n"
    )
    return directory


@pytest.fixture()
def write_temp_json(tmp_path: Path):
    def _write(name: str, payload: Any) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(payload, indent=2) + "\n")
        return path

    return _write


@pytest.fixture()
def write_temp_toml(tmp_path: Path):
    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content.strip() + "\n")
        return path

    return _write
