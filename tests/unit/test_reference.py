from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from calbill.core.errors import ReferenceDataError
from calbill.core.models import PersonEntry
from calbill.core.reference import ReferenceStore, fallback_vocabulary, make_vocabulary_entry


def test_load_people_keys_by_lowercase_last_name(reference_dir: Path) -> None:
    people = ReferenceStore(reference_dir).load_people()
    assert set(people) == {"brown", "smith"}
    assert people["brown"] == PersonEntry(key="brown", id="C-100", first_name="Alice", last_name="Brown")


def test_load_people_skips_timestamp_row(tmp_path: Path) -> None:
    (tmp_path / "clients.csv").write_text(
        "2026-03-01T06:00:00,Last sync: 2 clients\n"
        "First Name,Last Name,UID_Client_PK\n"
        "Alice,Brown,C-100\n"
        ",Nobody,\n"
        "Pat,OMalley,C-300\n"
    )
    people = ReferenceStore(tmp_path).load_people()
    assert sorted(people) == ["brown", "omalley"]


def test_load_people_without_header_skips_first_row(tmp_path: Path) -> None:
    (tmp_path / "clients.csv").write_text("legacy header row\nAlice,Brown,C-100\n")
    assert list(ReferenceStore(tmp_path).load_people()) == ["brown"]


def test_duplicate_last_name_keeps_later_row(tmp_path: Path) -> None:
    (tmp_path / "clients.csv").write_text(
        "First Name,Last Name,UID_Client_PK\nAlice,Brown,C-100\nBob,Brown,C-101\n"
    )
    assert ReferenceStore(tmp_path).load_people()["brown"].id == "C-101"


def test_missing_client_table_loads_empty(tmp_path: Path) -> None:
    assert ReferenceStore(tmp_path).load_people() == {}


def test_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(ReferenceDataError, match="not found"):
        ReferenceStore(tmp_path / "missing").load_people()


def test_load_locations_maps_code_to_last_name(reference_dir: Path) -> None:
    assert ReferenceStore(reference_dir).load_locations() == {"1814": "Chen", "1902": "Garcia"}


def test_load_vocabulary_in_file_order(reference_dir: Path) -> None:
    vocabulary = ReferenceStore(reference_dir).load_vocabulary()
    assert [entry.category for entry in vocabulary] == ["Telephone Conference", "Office Meeting", "Court"]
    assert vocabulary[0].keywords == ("telephone call", "tc", "call")
    assert vocabulary[2].is_location_event is True
    assert vocabulary[0].is_location_event is False


def test_missing_event_types_uses_fallback(tmp_path: Path) -> None:
    vocabulary = ReferenceStore(tmp_path).load_vocabulary()
    assert vocabulary == fallback_vocabulary()
    assert any(entry.is_location_event for entry in vocabulary)


def test_make_vocabulary_entry_rejects_incomplete_rows() -> None:
    assert make_vocabulary_entry("Court", " | ", "Appeared") is None
    assert make_vocabulary_entry("", "motion", "Appeared") is None
    entry = make_vocabulary_entry("Zoom", ["Zoom ", "ZC"], "Video conference")
    assert entry is not None
    assert entry.keywords == ("zoom", "zc")


def test_load_all_is_idempotent(reference_dir: Path) -> None:
    store = ReferenceStore(reference_dir)
    assert store.load_all() == store.load_all()


def test_timestamp_round_trip_and_missing(tmp_path: Path) -> None:
    store = ReferenceStore(tmp_path)
    assert store.read_timestamp() is None

    stamp = datetime(2026, 3, 2, 6, 0, tzinfo=timezone.utc)
    store.write_timestamp(stamp)
    assert store.read_timestamp() == stamp


def test_invalid_timestamp_raises(tmp_path: Path) -> None:
    (tmp_path / "refresh.json").write_text('{"last_refresh": "yesterday-ish"}')
    with pytest.raises(ReferenceDataError):
        ReferenceStore(tmp_path).read_timestamp()


def test_replace_people_rewrites_table_and_stamp(reference_dir: Path) -> None:
    store = ReferenceStore(reference_dir)
    synced_at = datetime(2026, 3, 2, 7, 0, tzinfo=timezone.utc)
    count = store.replace_people(
        [PersonEntry(key="nguyen", id="C-400", first_name="Linh", last_name="Nguyen")],
        synced_at,
    )

    assert count == 1
    assert list(store.load_people()) == ["nguyen"]
    assert store.read_timestamp() == synced_at
    assert json.loads(store.stamp_path.read_text())["clients"] == 1
    assert not list(reference_dir.glob(".clients-*"))


def test_from_config_uses_configured_file_names(tmp_path: Path) -> None:
    store = ReferenceStore.from_config(tmp_path, {"reference": {"clients": "uid_map.csv"}})
    assert store.clients_path == tmp_path / "uid_map.csv"
    assert store.locations_path == tmp_path / "locations.csv"
