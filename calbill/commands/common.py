"""Shared command helpers."""

from __future__ import annotations

import json
from typing import Any, NoReturn

import typer

from calbill.core.api import RecordStoreAPI
from calbill.core.config import resolve_reference_dir
from calbill.core.errors import CalbillError
from calbill.core.reference import ReferenceStore
from calbill.core.state import CLIState


def get_state(ctx: typer.Context) -> CLIState:
    """Extract validated CLI state from Typer context."""
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=2)
    return state


def print_json_payload(state: CLIState, payload: Any) -> None:
    """Print JSON payload with plain-mode fallback for piping."""
    if state.plain_output:
        typer.echo(json.dumps(payload, separators=(",", ":")))
        return
    state.console.print_json(data=payload)


def fail(state: CLIState, message: str, code: int = 1) -> NoReturn:
    """Report an error in the active output mode and exit."""
    if state.json_output:
        print_json_payload(state, {"status": "error", "message": message})
    elif state.plain_output:
        typer.echo("status\terror")
        typer.echo(f"message\t{message}")
    else:
        state.console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(code=code)


def reference_store(state: CLIState) -> ReferenceStore:
    """Reference tables from --reference-dir, env, or config."""
    directory = resolve_reference_dir(state.config, state.reference_dir)
    return ReferenceStore.from_config(directory, state.config)


def record_store_api(state: CLIState) -> RecordStoreAPI:
    """Record store client; exits with an error when credentials are missing."""
    try:
        return RecordStoreAPI.from_config(state.config)
    except CalbillError as exc:
        fail(state, str(exc))
