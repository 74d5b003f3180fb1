from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import pytest

from calbill.core.auth import OnePasswordReader, RecordStoreCredentials
from calbill.core.errors import SecretAccessError


def _config(**store: Any) -> Dict[str, Any]:
    values: Dict[str, Any] = {"host": "https://fm.example.com/", "database": "Billing"}
    values.update(store)
    return {"record_store": values}


class DummyRunResult:
    def __init__(self, returncode: int, stdout: str = "", stderr: str = "") -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


@pytest.fixture(autouse=True)
def clear_credential_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CALBILL_FM_USERNAME", raising=False)
    monkeypatch.delenv("CALBILL_FM_PASSWORD", raising=False)


def test_resolve_from_config() -> None:
    creds = RecordStoreCredentials.resolve(_config(username="fm-user", password="secret"))
    assert creds.host == "https://fm.example.com"
    assert creds.database == "Billing"
    assert creds.username == "fm-user"
    assert "secret" not in repr(creds)


def test_resolve_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CALBILL_FM_USERNAME", "env-user")
    monkeypatch.setenv("CALBILL_FM_PASSWORD", "env-pass")
    creds = RecordStoreCredentials.resolve(_config())
    assert (creds.username, creds.password) == ("env-user", "env-pass")


def test_resolve_from_1password(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: List[List[str]] = []

    def fake_run(args: List[str], **_: Any) -> DummyRunResult:
        calls.append(args)
        return DummyRunResult(returncode=0, stdout=f"{args[-1].rsplit('/', 1)[-1]}-value\n")

    monkeypatch.setattr("calbill.core.auth.subprocess.run", fake_run)
    creds = RecordStoreCredentials.resolve(
        _config(
            use_1password=True,
            op_username_ref="op://vault/fm/username",
            op_password_ref="op://vault/fm/password",
        )
    )
    assert creds.username == "username-value"
    assert creds.password == "password-value"
    assert calls[0] == ["op", "read", "op://vault/fm/username"]


def test_1password_failure_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "calbill.core.auth.subprocess.run",
        lambda *_, **__: DummyRunResult(returncode=1, stderr="not signed in"),
    )
    with pytest.raises(SecretAccessError, match="not signed in"):
        RecordStoreCredentials.resolve(_config(use_1password=True, op_username_ref="op://x/y"))


def test_missing_credentials_raise() -> None:
    with pytest.raises(SecretAccessError, match="Missing record store credentials"):
        RecordStoreCredentials.resolve(_config())


def test_missing_host_raises() -> None:
    with pytest.raises(SecretAccessError, match="host and database"):
        RecordStoreCredentials.resolve({"record_store": {"username": "u", "password": "p"}})


def test_op_reader_uses_token_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("OP_SERVICE_ACCOUNT_TOKEN", raising=False)
    token_file = tmp_path / "op_token"
    token_file.write_text("tok-123\n")
    seen: Dict[str, Any] = {}

    def fake_run(args: List[str], **kwargs: Any) -> DummyRunResult:
        seen["env"] = kwargs["env"]
        return DummyRunResult(returncode=0, stdout="value\n")

    monkeypatch.setattr("calbill.core.auth.subprocess.run", fake_run)
    assert OnePasswordReader(str(token_file)).read("op://x/y") == "value"
    assert seen["env"]["OP_SERVICE_ACCOUNT_TOKEN"] == "tok-123"


def test_op_reader_missing_binary(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(*_: Any, **__: Any) -> DummyRunResult:
        raise FileNotFoundError("op")

    monkeypatch.setattr("calbill.core.auth.subprocess.run", fake_run)
    with pytest.raises(SecretAccessError, match="unavailable"):
        OnePasswordReader().read("op://x/y")
