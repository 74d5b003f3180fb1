"""Calendar-to-billing sync command."""

from __future__ import annotations

from contextlib import nullcontext
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from calbill.commands.common import fail, get_state, print_json_payload, record_store_api, reference_store
from calbill.core.events import FileEventSource
from calbill.core.sync import ERROR, SyncCollaborators, SyncSettings, run_sync
from calbill.exporters.json_export import sync_report_payload, write_json
from calbill.utils.date_ranges import resolve_sync_range, validate_date
from calbill.utils.formatting import outcome_text, styled_status


def sync_command(
    ctx: typer.Context,
    events_file: Path = typer.Option(..., "--events", help="Calendar export (JSON or YAML)"),
    on_date: Optional[str] = typer.Option(None, "--date", help="Sync a single day (YYYY-MM-DD)", callback=validate_date),
    days_ago: Optional[int] = typer.Option(None, "--days-ago", help="Sync the day N days before today"),
    start_date: Optional[str] = typer.Option(None, help="Start date (YYYY-MM-DD)", callback=validate_date),
    end_date: Optional[str] = typer.Option(None, help="End date (YYYY-MM-DD)", callback=validate_date),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Billing user id (overrides sync.user_id)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Classify and build records without writing"),
    no_refresh: bool = typer.Option(False, "--no-refresh", help="Skip the daily client refresh"),
    output: Optional[Path] = typer.Option(None, "--output", help="Write the JSON report to this file"),
) -> None:
    """Classify calendar events and create one billing record per event."""
    state = get_state(ctx)

    try:
        start, end = resolve_sync_range(
            on_date=on_date,
            days_ago=days_ago,
            start_date=start_date,
            end_date=end_date,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    if not events_file.exists():
        fail(state, f"Events file not found: {events_file}")

    api = None if dry_run else record_store_api(state)
    collaborators = SyncCollaborators(
        reference=reference_store(state),
        events=FileEventSource(events_file),
        sink=api,
        clients=None if no_refresh else api,
    )
    settings = SyncSettings.from_config(state.config, user_id=user_id, dry_run=dry_run)

    status_ctx = (
        state.console.status(f"Syncing {start.isoformat()} to {end.isoformat()}...")
        if state.rich_output
        else nullcontext()
    )
    with status_ctx:
        report = run_sync(start, end, collaborators, settings)

    payload = sync_report_payload(report, start, end, dry_run=dry_run)
    if output:
        write_json(output, payload)

    exit_code = 1 if report.status == ERROR else 0

    if state.json_output:
        print_json_payload(state, payload)
        raise typer.Exit(code=exit_code)

    if state.plain_output:
        typer.echo("index\tstatus\ttitle\tdetail")
        for outcome in report.outcomes:
            typer.echo(
                "\t".join(
                    [
                        str(outcome["index"]),
                        outcome["status"],
                        outcome["title"],
                        outcome_text(outcome.get("detail")),
                    ]
                )
            )
        for key in ("status", "eventsFound", "successful", "failed", "skipped", "unmatched", "runtimeSeconds"):
            typer.echo(f"{key}\t{payload[key]}")
        raise typer.Exit(code=exit_code)

    if report.outcomes:
        table = Table(title=f"Events {start.isoformat()} to {end.isoformat()}")
        table.add_column("#")
        table.add_column("Status")
        table.add_column("Title")
        table.add_column("Result")
        for outcome in report.outcomes:
            detail = outcome_text(outcome.get("detail"))
            if outcome.get("error"):
                detail = f"{outcome['error']['category']}: {outcome['error']['message']}"
            table.add_row(
                str(outcome["index"]),
                styled_status(outcome["status"]),
                escape(outcome["title"]),
                escape(detail),
            )
        state.console.print(table)

    state.console.print(
        f"Sync {styled_status(report.status)}: {report.events_found} events, "
        f"{report.successful} successful, {report.failed} failed, {report.skipped} skipped, "
        f"{report.unmatched} without client ({report.runtime_seconds:.1f}s)"
    )
    if dry_run:
        state.console.print("Dry run: no records were written")
    if report.refresh is not None:
        state.console.print(f"Client refresh: {styled_status(report.refresh.status)} {report.refresh.message}")
    for error in report.errors:
        state.console.print(f"[red]{error['category']}[/red] {escape(error['context'])}: {escape(error['message'])}")
    if output:
        state.console.print(f"Report written to: {output}")
    raise typer.Exit(code=exit_code)
