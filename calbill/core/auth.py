"""Record store credential resolution."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from calbill.core.errors import SecretAccessError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordStoreCredentials:
    """Connection details for the record store."""

    host: str
    database: str
    username: str
    password: str

    def __repr__(self) -> str:
        return (
            f"RecordStoreCredentials(host={self.host!r}, database={self.database!r}, "
            f"username={self.username!r}, password='***')"
        )

    @classmethod
    def resolve(
        cls,
        config: Dict[str, Any],
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "RecordStoreCredentials":
        """Resolve credentials from arguments, config, env vars, then 1Password."""
        store_cfg = config.get("record_store", {})
        host = str(store_cfg.get("host") or "").strip().rstrip("/")
        database = str(store_cfg.get("database") or "").strip()
        if not host or not database:
            raise SecretAccessError(
                "Record store host and database must be set in the [record_store] config section."
            )

        username = username or store_cfg.get("username") or os.getenv("CALBILL_FM_USERNAME")
        password = password or store_cfg.get("password") or os.getenv("CALBILL_FM_PASSWORD")

        if (not username or not password) and store_cfg.get("use_1password", False):
            reader = OnePasswordReader(store_cfg.get("op_token_file"))
            username_ref = str(store_cfg.get("op_username_ref") or "").strip()
            password_ref = str(store_cfg.get("op_password_ref") or "").strip()
            if not username and username_ref:
                username = reader.read(username_ref)
            if not password and password_ref:
                password = reader.read(password_ref)

        if not username or not password:
            raise SecretAccessError(
                "Missing record store credentials. Set username/password in config, "
                "CALBILL_FM_USERNAME/CALBILL_FM_PASSWORD, or 1Password references."
            )
        return cls(host=host, database=database, username=str(username), password=str(password))


class OnePasswordReader:
    """Reads secrets with the 1Password CLI (`op read`)."""

    def __init__(self, token_file: Optional[str] = None) -> None:
        self.token_file = Path(token_file).expanduser() if token_file else None

    def _op_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        if "OP_SERVICE_ACCOUNT_TOKEN" not in env and self.token_file and self.token_file.exists():
            env["OP_SERVICE_ACCOUNT_TOKEN"] = self.token_file.read_text().strip()
        return env

    def read(self, ref: str) -> str:
        try:
            result = subprocess.run(
                ["op", "read", ref],
                capture_output=True,
                text=True,
                env=self._op_env(),
                check=False,
            )
        except OSError as exc:
            raise SecretAccessError(f"1Password CLI unavailable: {exc}") from exc
        if result.returncode != 0:
            raise SecretAccessError(f"op read failed for {ref}: {result.stderr.strip()}")
        logger.debug("Read secret %s from 1Password", ref)
        return result.stdout.strip()
