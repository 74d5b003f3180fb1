"""Client refresh and reference status commands."""

from __future__ import annotations

from contextlib import nullcontext
from datetime import datetime

import typer
from rich.table import Table

from calbill.commands.common import fail, get_state, print_json_payload, record_store_api, reference_store
from calbill.core.errors import ReferenceDataError, log_structured_error
from calbill.core.models import RefreshResult
from calbill.core.refresh import ERROR, REFRESHED, ensure_fresh
from calbill.core.sync import SyncSettings, refresh_clients
from calbill.utils.formatting import styled_status


def refresh_command(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Refresh even if already refreshed today"),
) -> None:
    """Refresh the client table from the record store, at most once a day."""
    state = get_state(ctx)
    store = reference_store(state)
    api = record_store_api(state)
    settings = SyncSettings.from_config(state.config)

    status_ctx = (
        state.console.status("Refreshing clients...")
        if state.rich_output
        else nullcontext()
    )
    with status_ctx:
        if force:
            try:
                count = refresh_clients(store, api, settings)
                now = datetime.now().astimezone()
                result = RefreshResult(
                    status=REFRESHED,
                    last_refresh=now.isoformat(),
                    message=f"refreshed {count} entries",
                )
            except Exception as exc:
                log_structured_error(exc, "Forced client refresh")
                result = RefreshResult(status=ERROR, message=str(exc))
        else:
            result = ensure_fresh(store, lambda: refresh_clients(store, api, settings))

    payload = result.to_dict()
    exit_code = 1 if result.status == ERROR else 0

    if state.json_output:
        print_json_payload(state, payload)
    elif state.plain_output:
        for key, value in payload.items():
            typer.echo(f"{key}\t{value if value is not None else ''}")
    else:
        state.console.print(f"Client refresh {styled_status(result.status)}: {result.message}")
        if result.last_refresh:
            state.console.print(f"Last refresh: {result.last_refresh}")
    raise typer.Exit(code=exit_code)


def status_command(ctx: typer.Context) -> None:
    """Show reference table sizes and the last refresh time."""
    state = get_state(ctx)
    store = reference_store(state)

    try:
        tables = store.load_all()
        last_refresh = store.read_timestamp()
    except ReferenceDataError as exc:
        fail(state, str(exc))

    payload = {
        "reference_dir": str(store.directory),
        "clients": len(tables.people),
        "event_types": len(tables.vocabulary),
        "locations": len(tables.locations),
        "last_refresh": last_refresh.isoformat() if last_refresh else None,
    }

    if state.json_output:
        print_json_payload(state, payload)
        return

    if state.plain_output:
        for key, value in payload.items():
            typer.echo(f"{key}\t{value if value is not None else ''}")
        return

    table = Table(title="Reference data")
    table.add_column("Table")
    table.add_column("Entries")
    table.add_row("clients", str(payload["clients"]))
    table.add_row("event types", str(payload["event_types"]))
    table.add_row("locations", str(payload["locations"]))
    state.console.print(table)
    state.console.print(f"Directory: {payload['reference_dir']}")
    state.console.print(f"Last refresh: {payload['last_refresh'] or 'never'}")
