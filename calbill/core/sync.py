"""End-to-end sync: reference data, events, classification and record writes."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Protocol

from calbill.core.batch import BatchOptions, Skip, process_batch
from calbill.core.classify import classify_event
from calbill.core.errors import (
    CalbillError,
    RecordStoreError,
    analyze_record_store_error,
    is_retryable,
    log_structured_error,
)
from calbill.core.events import eligible_reason
from calbill.core.models import Event, PersonEntry, RefreshResult, SyncReport
from calbill.core.records import build_record
from calbill.core.reference import ReferenceStore, ReferenceTables
from calbill.core.refresh import REFRESHED, ensure_fresh
from calbill.core.retry import run_with_retry

logger = logging.getLogger(__name__)

SUCCESS = "SUCCESS"
PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
ERROR = "ERROR"


class EventSource(Protocol):
    def get_events(self, start_date: date, end_date: date) -> List[Event]: ...


class RecordSink(Protocol):
    def create_record(self, record: Dict[str, Any]) -> str: ...


class ClientDirectory(Protocol):
    def find_active_clients(self) -> List[PersonEntry]: ...


@dataclass
class SyncSettings:
    """Run-time knobs, usually read from the [sync] and [retry] config sections."""

    user_id: Optional[str] = None
    failure_ratio: float = 0.5
    time_budget_seconds: Optional[float] = 240.0
    hard_limit_seconds: Optional[float] = 300.0
    large_batch_warning: int = 50
    reference_attempts: int = 3
    reference_delay: float = 1.0
    event_attempts: int = 2
    event_delay: float = 0.5
    write_attempts: int = 2
    write_delay: float = 1.0
    dry_run: bool = False

    @classmethod
    def from_config(
        cls,
        config: Dict[str, Any],
        user_id: Optional[str] = None,
        dry_run: bool = False,
    ) -> "SyncSettings":
        sync_cfg = config.get("sync", {})
        retry_cfg = config.get("retry", {})
        configured_user = sync_cfg.get("user_id")
        return cls(
            user_id=user_id or (str(configured_user) if configured_user else None),
            failure_ratio=float(sync_cfg.get("failure_ratio", 0.5)),
            time_budget_seconds=float(sync_cfg.get("time_budget_seconds", 240)),
            hard_limit_seconds=float(sync_cfg.get("hard_limit_seconds", 300)),
            large_batch_warning=int(sync_cfg.get("large_batch_warning", 50)),
            reference_attempts=int(retry_cfg.get("reference_attempts", 3)),
            reference_delay=float(retry_cfg.get("reference_delay", 1.0)),
            event_attempts=int(retry_cfg.get("event_attempts", 2)),
            event_delay=float(retry_cfg.get("event_delay", 0.5)),
            write_attempts=int(retry_cfg.get("write_attempts", 2)),
            write_delay=float(retry_cfg.get("write_delay", 1.0)),
            dry_run=dry_run,
        )


@dataclass
class SyncCollaborators:
    """External systems a sync run talks to.

    sink may be None for dry runs; clients may be None to skip the daily
    client refresh.
    """

    reference: ReferenceStore
    events: EventSource
    sink: Optional[RecordSink] = None
    clients: Optional[ClientDirectory] = None
    clock: Callable[[], float] = field(default=time.monotonic)


def refresh_clients(
    reference: ReferenceStore,
    clients: ClientDirectory,
    settings: SyncSettings,
    now: Optional[datetime] = None,
) -> int:
    """Replace the local client table with the record store's active clients."""
    people = run_with_retry(
        clients.find_active_clients,
        max_attempts=settings.reference_attempts,
        initial_delay=settings.reference_delay,
        should_retry=is_retryable,
        description="active client query",
    )
    return reference.replace_people(people, now or datetime.now().astimezone())


def load_reference_tables(reference: ReferenceStore, settings: SyncSettings) -> ReferenceTables:
    def _load(loader: Callable[[], Any], name: str) -> Any:
        return run_with_retry(
            loader,
            max_attempts=settings.reference_attempts,
            initial_delay=settings.reference_delay,
            description=f"load {name}",
        )

    return ReferenceTables(
        people=_load(reference.load_people, "clients"),
        vocabulary=_load(reference.load_vocabulary, "event types"),
        locations=_load(reference.load_locations, "locations"),
    )


def _error_report(error: BaseException, context: str, started: float, clock: Callable[[], float]) -> SyncReport:
    info = log_structured_error(error, context)
    return SyncReport(
        status=ERROR,
        runtime_seconds=round(clock() - started, 2),
        errors=[info.to_dict()],
    )


def run_sync(
    start_date: date,
    end_date: date,
    collaborators: SyncCollaborators,
    settings: Optional[SyncSettings] = None,
) -> SyncReport:
    """Classify every event in the date range and write one record per event."""
    settings = settings or SyncSettings()
    clock = collaborators.clock
    started = clock()
    reference = collaborators.reference

    logger.info(
        "Starting sync for %s to %s%s",
        start_date.isoformat(),
        end_date.isoformat(),
        " (dry run)" if settings.dry_run else "",
    )

    try:
        if not settings.dry_run:
            if collaborators.sink is None:
                raise CalbillError("No record sink configured")
            if not settings.user_id:
                raise CalbillError("sync.user_id is not configured; set it in config or pass --user-id")
        tables = load_reference_tables(reference, settings)
    except Exception as exc:
        return _error_report(exc, "Loading reference data", started, clock)

    refresh: Optional[RefreshResult] = None
    if collaborators.clients is not None and not settings.dry_run:
        directory = collaborators.clients
        refresh = ensure_fresh(reference, lambda: refresh_clients(reference, directory, settings))
        logger.info("Client refresh status: %s", refresh.status)
        if refresh.status == REFRESHED:
            try:
                tables.people = reference.load_people()
            except Exception as exc:
                log_structured_error(exc, "Reloading client table after refresh")

    try:
        events = run_with_retry(
            lambda: collaborators.events.get_events(start_date, end_date),
            max_attempts=settings.event_attempts,
            initial_delay=settings.event_delay,
            description="fetch events",
        )
    except Exception as exc:
        report = _error_report(exc, "Fetching calendar events", started, clock)
        report.refresh = refresh
        return report

    if len(events) > settings.large_batch_warning:
        logger.warning("Large batch detected (%d events); monitor for timeout", len(events))

    unmatched: List[str] = []

    def process(event: Event, index: int) -> Any:
        reason = eligible_reason(event)
        if reason:
            logger.info("Skipping %r: %s", event.title, reason)
            return Skip(reason)

        result = classify_event(event, tables.people, tables.vocabulary, tables.locations)
        if result.person_match is None:
            unmatched.append(event.title)
            logger.info("No client matched %r; writing without client", event.title)

        record = build_record(event, result, settings.user_id)
        if settings.dry_run:
            return {"summary": result.rendered_summary, "record": record}

        sink = collaborators.sink
        try:
            record_id = run_with_retry(
                lambda: sink.create_record(record),
                max_attempts=settings.write_attempts,
                initial_delay=settings.write_delay,
                should_retry=is_retryable,
                description=f"create record for {event.title!r}",
            )
        except RecordStoreError as exc:
            if exc.is_duplicate:
                logger.info("Record for %r already exists", event.title)
                return {"summary": result.rendered_summary, "duplicate": True}
            analysis = analyze_record_store_error(exc, record)
            logger.error("Record store rejected %r: %s", event.title, analysis)
            raise

        logger.info("Processed %r -> %r", event.title, result.rendered_summary)
        return {"summary": result.rendered_summary, "recordId": record_id}

    batch = process_batch(
        events,
        process,
        BatchOptions(
            failure_ratio=settings.failure_ratio,
            time_budget_seconds=settings.time_budget_seconds,
            started_at=started,
            clock=clock,
        ),
    )

    runtime = round(clock() - started, 2)
    if settings.hard_limit_seconds is not None and runtime > settings.hard_limit_seconds:
        logger.error("Sync ran %.1fs, past the %.0fs hard limit", runtime, settings.hard_limit_seconds)

    status = SUCCESS if batch.failed == 0 and not batch.aborted else PARTIAL_SUCCESS
    outcomes = []
    for outcome in batch.outcomes:
        payload = outcome.to_dict()
        payload["title"] = events[outcome.index].title
        outcomes.append(payload)

    logger.info(
        "Sync %s: %d events, %d successful, %d failed, %d skipped, %d without client (%.1fs)",
        status,
        len(events),
        batch.successful,
        batch.failed,
        batch.skipped,
        len(unmatched),
        runtime,
    )
    return SyncReport(
        status=status,
        events_found=len(events),
        successful=batch.successful,
        failed=batch.failed,
        skipped=batch.skipped,
        unmatched=len(unmatched),
        runtime_seconds=runtime,
        errors=[error.to_dict() for error in batch.errors],
        timed_out=batch.timed_out,
        aborted=batch.aborted,
        refresh=refresh,
        outcomes=outcomes,
    )
