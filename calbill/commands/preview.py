"""Classify a single event title without writing anything."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from calbill.commands.common import fail, get_state, print_json_payload, reference_store
from calbill.core.classify import classify_event
from calbill.core.errors import ReferenceDataError
from calbill.core.models import Event
from calbill.core.records import build_record
from calbill.utils.formatting import format_hours

_DATETIME_FORMATS = ["%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M:%S"]


def preview_command(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Event title to classify"),
    start: Optional[datetime] = typer.Option(None, help="Event start (YYYY-MM-DDTHH:MM)", formats=_DATETIME_FORMATS),
    end: Optional[datetime] = typer.Option(None, help="Event end (YYYY-MM-DDTHH:MM)", formats=_DATETIME_FORMATS),
) -> None:
    """Show how an event title would be classified and billed."""
    state = get_state(ctx)

    event_start = start or datetime.now().replace(second=0, microsecond=0)
    event_end = end or event_start + timedelta(hours=1)
    if event_end < event_start:
        raise typer.BadParameter("--end must not be before --start")

    try:
        tables = reference_store(state).load_all()
    except ReferenceDataError as exc:
        fail(state, str(exc))

    event = Event(title=title, start=event_start, end=event_end)
    result = classify_event(event, tables.people, tables.vocabulary, tables.locations)
    record = build_record(event, result, state.user_id)
    payload = {"title": title, "classification": result.to_dict(), "record": record}

    if state.json_output:
        print_json_payload(state, payload)
        return

    classification = payload["classification"]
    person = classification["person"]
    location = classification["location"]
    rows = [
        ("client", f"{person['first_name']} {person['last_name']} ({person['id']})" if person else "-"),
        ("category", classification["category"] or "-"),
        ("keyword", classification["keyword"] or "-"),
        ("location", f"{location['code']} -> {location['assignee']}" if location else "-"),
        ("hours", format_hours(classification["hours"])),
        ("summary", classification["summary"]),
    ]

    if state.plain_output:
        for key, value in rows:
            typer.echo(f"{key}\t{value}")
        return

    table = Table(title=f"Preview: {escape(title)}")
    table.add_column("Field")
    table.add_column("Value")
    for key, value in rows:
        table.add_row(key, escape(str(value)))
    state.console.print(table)
