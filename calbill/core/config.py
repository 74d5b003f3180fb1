"""Configuration loading."""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # Python 3.9-3.10
    import tomli as tomllib  # type: ignore[no-redef]


class ConfigError(RuntimeError):
    """Raised when config file parsing fails."""


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def expand_path(path_str: str) -> Path:
    """Expand user/env vars and return absolute path."""
    return Path(os.path.expandvars(path_str)).expanduser().resolve()


def default_data_dir() -> Path:
    """Resolve XDG-style data directory with env override."""
    raw = os.getenv("CALBILL_DATA_DIR", "~/.local/share/calbill")
    return expand_path(raw)


def default_config_path() -> Path:
    """Get default config file path."""
    raw = os.getenv("CALBILL_CONFIG_FILE", "~/.config/calbill/config.toml")
    return expand_path(raw)


def _default_config() -> Dict[str, Any]:
    data_dir = default_data_dir()
    return {
        "reference": {
            "directory": str(data_dir / "reference"),
            "clients": "clients.csv",
            "locations": "locations.csv",
            "event_types": "event_types.csv",
            "refresh_stamp": "refresh.json",
        },
        "record_store": {
            "host": "",
            "database": "",
            "layout": "Billing",
            "client_layout": "systemgoogle_activeClient",
            "username": None,
            "password": None,
            "use_1password": False,
            "op_username_ref": "",
            "op_password_ref": "",
            "op_token_file": "",
            "timeout_seconds": 30,
        },
        "sync": {
            "user_id": None,
            "failure_ratio": 0.5,
            "time_budget_seconds": 240,
            "hard_limit_seconds": 300,
            "large_batch_warning": 50,
        },
        "retry": {
            "reference_attempts": 3,
            "reference_delay": 1.0,
            "event_attempts": 2,
            "event_delay": 0.5,
            "write_attempts": 2,
            "write_delay": 1.0,
        },
    }


DEFAULT_CONFIG: Dict[str, Any] = _default_config()


def _read_config(path: Path) -> Dict[str, Any]:
    suffix = path.suffix.lower()
    text = path.read_text()
    try:
        if suffix in {".toml", ""}:
            loaded = tomllib.loads(text)
        else:
            loaded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    except Exception as exc:
        if suffix in {".toml", ""}:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc
        raise ConfigError(f"Failed to parse config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain an object/table at the root")
    return loaded


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from disk, merged with defaults."""
    cfg_path = path or default_config_path()
    cfg = _default_config()

    if cfg_path.exists():
        cfg = _deep_merge(cfg, _read_config(cfg_path))

    return cfg


def resolve_reference_dir(config: Dict[str, Any], explicit: Optional[Path] = None) -> Path:
    """Resolve the reference table directory with CLI override first."""
    if explicit is not None:
        return explicit.expanduser().resolve()
    raw = os.getenv("CALBILL_REFERENCE_DIR") or config.get("reference", {}).get("directory")
    if not raw:
        raw = str(default_data_dir() / "reference")
    return expand_path(raw)
