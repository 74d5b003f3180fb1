from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import pytest

from calbill.__main__ import app
from calbill.core.errors import RecordStoreError
from calbill.core.models import PersonEntry


class FakeRecordStore:
    def __init__(self, clients: List[PersonEntry] | None = None) -> None:
        self.records: List[Dict[str, Any]] = []
        self.clients = clients or []

    def create_record(self, record: Dict[str, Any]) -> str:
        if record["fieldData"]["Body"] == "Smith TC":
            raise RecordStoreError("already there", code="504", status_code=500)
        self.records.append(record)
        return f"R-{len(self.records)}"

    def find_active_clients(self) -> List[PersonEntry]:
        return list(self.clients)


@pytest.fixture()
def base_args(tmp_path: Path, reference_dir: Path) -> List[str]:
    return ["--config", str(tmp_path / "missing.toml"), "--reference-dir", str(reference_dir)]


@pytest.fixture()
def events_file(write_temp_json) -> Path:
    return write_temp_json(
        "events.json",
        [
            {"title": "Brown-1814 Motion", "start": "2026-03-02T09:00", "end": "2026-03-02T09:30"},
            {"title": "Smith TC", "start": "2026-03-02T11:00", "end": "2026-03-02T11:18"},
            {"title": "Office meeting", "start": "2026-03-02T14:00", "end": "2026-03-02T15:00"},
            {"title": "Vacation", "start": "2026-03-02", "end": "2026-03-03", "all_day": True},
            {"title": "Next day", "start": "2026-03-03T09:00", "end": "2026-03-03T10:00"},
        ],
    )


def test_sync_dry_run_json(runner, base_args: List[str], events_file: Path) -> None:
    result = runner.invoke(
        app,
        ["--json", *base_args, "sync", "--events", str(events_file), "--date", "2026-03-02", "--dry-run"],
    )
    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)

    assert payload["status"] == "SUCCESS"
    assert payload["dryRun"] is True
    assert payload["dateRange"] == {"start": "2026-03-02", "end": "2026-03-02"}
    assert (payload["eventsFound"], payload["successful"], payload["skipped"]) == (4, 3, 1)
    assert payload["unmatched"] == 1
    summaries = [outcome["detail"]["summary"] for outcome in payload["outcomes"] if outcome["status"] == "success"]
    assert summaries == [
        "Appeared before Judge Chen on initial presentation of Motion",
        "Telephone conference with John Smith",
        "Office meeting with [Client]",
    ]


def test_sync_writes_records_through_record_store(
    monkeypatch, runner, base_args: List[str], events_file: Path, tmp_path: Path
) -> None:
    store = FakeRecordStore()
    monkeypatch.setattr("calbill.commands.sync.record_store_api", lambda state: store)
    monkeypatch.setattr("calbill.core.retry.time.sleep", lambda _: None)
    report_path = tmp_path / "out" / "report.json"

    result = runner.invoke(
        app,
        [
            "--json",
            *base_args,
            "sync",
            "--events",
            str(events_file),
            "--date",
            "2026-03-02",
            "--user-id",
            "U-7",
            "--no-refresh",
            "--output",
            str(report_path),
        ],
    )
    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)

    assert payload["status"] == "SUCCESS"
    assert payload["successful"] == 3
    assert [record["fieldData"]["Body"] for record in store.records] == ["Brown-1814 Motion", "Office meeting"]
    assert store.records[0]["fieldData"]["UID_Client_fk"] == "C-100"
    assert store.records[0]["fieldData"]["Time"] == 0.6
    assert json.loads(report_path.read_text())["successful"] == 3


def test_sync_refreshes_clients_before_matching(
    monkeypatch, runner, base_args: List[str], write_temp_json, reference_dir: Path
) -> None:
    store = FakeRecordStore(clients=[PersonEntry(key="nguyen", id="C-900", first_name="Lan", last_name="Nguyen")])
    monkeypatch.setattr("calbill.commands.sync.record_store_api", lambda state: store)
    events = write_temp_json(
        "events.json",
        [{"title": "Nguyen office", "start": "2026-03-02T09:00", "end": "2026-03-02T09:30"}],
    )

    result = runner.invoke(
        app,
        ["--json", *base_args, "sync", "--events", str(events), "--date", "2026-03-02", "--user-id", "U-7"],
    )
    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)

    assert payload["refresh"]["status"] == "REFRESHED"
    assert store.records[0]["fieldData"]["UID_Client_fk"] == "C-900"
    assert "Nguyen" in (reference_dir / "clients.csv").read_text()


def test_sync_without_user_id_exits_with_error(
    monkeypatch, runner, base_args: List[str], events_file: Path
) -> None:
    monkeypatch.setattr("calbill.commands.sync.record_store_api", lambda state: FakeRecordStore())
    result = runner.invoke(
        app,
        ["--plain", *base_args, "sync", "--events", str(events_file), "--date", "2026-03-02", "--no-refresh"],
    )
    assert result.exit_code == 1
    assert "status\tERROR" in result.stdout


def test_sync_missing_events_file(runner, base_args: List[str], tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["--plain", *base_args, "sync", "--events", str(tmp_path / "none.json"), "--dry-run"],
    )
    assert result.exit_code == 1
    assert "Events file not found" in result.stdout


def test_sync_rejects_bad_date(runner, base_args: List[str], events_file: Path) -> None:
    result = runner.invoke(app, [*base_args, "sync", "--events", str(events_file), "--date", "03/02/2026"])
    assert result.exit_code == 2


def test_preview_plain(runner, base_args: List[str]) -> None:
    result = runner.invoke(
        app,
        ["--plain", *base_args, "preview", "Smith TC", "--start", "2026-03-02T10:00", "--end", "2026-03-02T10:18"],
    )
    assert result.exit_code == 0
    assert "client\tJohn Smith (C-200)" in result.stdout
    assert "category\tTelephone Conference" in result.stdout
    assert "hours\t0.4h" in result.stdout
    assert "summary\tTelephone conference with John Smith" in result.stdout


def test_preview_json(runner, base_args: List[str]) -> None:
    result = runner.invoke(
        app,
        ["--json", *base_args, "preview", "Brown-1902 Motion", "--start", "2026-03-02T10:00", "--end", "2026-03-02T10:05"],
    )
    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["classification"]["location"] == {"code": "1902", "assignee": "Garcia"}
    assert payload["classification"]["hours"] == 0.2
    assert payload["record"]["fieldData"]["Summary"] == "Appeared before Judge Garcia on initial presentation of Motion"


def test_status_json(runner, base_args: List[str], reference_dir: Path) -> None:
    stamp = datetime(2026, 3, 2, 6, 0).isoformat()
    (reference_dir / "refresh.json").write_text(json.dumps({"last_refresh": stamp}))

    result = runner.invoke(app, ["--json", *base_args, "status"])
    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["clients"] == 2
    assert payload["event_types"] == 3
    assert payload["locations"] == 2
    assert payload["last_refresh"] == stamp


def test_refresh_skips_when_current(monkeypatch, runner, base_args: List[str], reference_dir: Path) -> None:
    (reference_dir / "refresh.json").write_text(
        json.dumps({"last_refresh": datetime.now().astimezone().isoformat()})
    )
    store = FakeRecordStore(clients=[PersonEntry(key="nguyen", id="C-900", first_name="Lan", last_name="Nguyen")])
    monkeypatch.setattr("calbill.commands.refresh.record_store_api", lambda state: store)

    result = runner.invoke(app, ["--json", *base_args, "refresh"])
    assert result.exit_code == 0, result.stdout
    assert json.loads(result.stdout)["status"] == "SKIPPED"
    assert "Nguyen" not in (reference_dir / "clients.csv").read_text()


def test_refresh_force(monkeypatch, runner, base_args: List[str], reference_dir: Path) -> None:
    (reference_dir / "refresh.json").write_text(
        json.dumps({"last_refresh": datetime.now().astimezone().isoformat()})
    )
    store = FakeRecordStore(clients=[PersonEntry(key="nguyen", id="C-900", first_name="Lan", last_name="Nguyen")])
    monkeypatch.setattr("calbill.commands.refresh.record_store_api", lambda state: store)

    result = runner.invoke(app, ["--json", *base_args, "refresh", "--force"])
    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["status"] == "REFRESHED"
    assert payload["message"] == "refreshed 1 entries"
    assert "Nguyen" in (reference_dir / "clients.csv").read_text()


def test_refresh_failure_exits_nonzero(monkeypatch, runner, base_args: List[str]) -> None:
    def boom(*_: Any, **__: Any) -> int:
        raise RecordStoreError("server down", status_code=503)

    monkeypatch.setattr("calbill.commands.refresh.record_store_api", lambda state: FakeRecordStore())
    monkeypatch.setattr("calbill.commands.refresh.refresh_clients", boom)

    result = runner.invoke(app, ["--plain", *base_args, "refresh"])
    assert result.exit_code == 1
    assert "status\tERROR" in result.stdout
