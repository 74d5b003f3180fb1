"""Per-invocation state shared by calbill commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console


@dataclass
class CLIState:
    """Output mode, merged config and overrides for one calbill run.

    reference_dir comes from --reference-dir and wins over the env var and
    the [reference] config section.
    """

    json_output: bool
    plain_output: bool
    verbose: bool
    quiet: bool
    config_path: Path
    config: Dict[str, Any]
    console: Console
    reference_dir: Optional[Path] = None

    @property
    def rich_output(self) -> bool:
        """True when tables and spinners should be rendered."""
        return not (self.json_output or self.plain_output)

    @property
    def user_id(self) -> Optional[str]:
        value = self.config.get("sync", {}).get("user_id")
        return str(value) if value else None
