"""Lightweight data models used across commands."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class Event:
    """Calendar event supplied by the event source."""

    title: str
    start: datetime
    end: datetime
    all_day: bool = False


@dataclass(frozen=True)
class PersonEntry:
    """Known client, keyed by normalized last name."""

    key: str
    id: str
    first_name: str
    last_name: str


@dataclass(frozen=True)
class VocabularyEntry:
    """One classifiable activity type."""

    category: str
    keywords: Tuple[str, ...]
    description_template: str
    is_location_event: bool = False


@dataclass(frozen=True)
class VocabularyMatch:
    """Vocabulary entry plus the keyword that selected it."""

    entry: VocabularyEntry
    keyword: str


@dataclass(frozen=True)
class LocationAssignment:
    """Location code resolved to an assignee (or the unresolved marker)."""

    code: str
    assignee_name: str


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of classifying a single event."""

    person_match: Optional[PersonEntry]
    vocabulary_match: Optional[VocabularyMatch]
    location_assignment: Optional[LocationAssignment]
    rendered_summary: str
    duration_units: float

    def to_dict(self) -> Dict[str, Any]:
        person = self.person_match
        vocab = self.vocabulary_match
        location = self.location_assignment
        return {
            "person": (
                {
                    "id": person.id,
                    "first_name": person.first_name,
                    "last_name": person.last_name,
                }
                if person
                else None
            ),
            "category": vocab.entry.category if vocab else None,
            "keyword": vocab.keyword if vocab else None,
            "location": (
                {"code": location.code, "assignee": location.assignee_name}
                if location
                else None
            ),
            "summary": self.rendered_summary,
            "hours": self.duration_units,
        }


@dataclass(frozen=True)
class ErrorInfo:
    """Classified failure."""

    category: str
    severity: str
    retryable: bool
    context: str = ""
    message: str = ""
    timestamp: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "severity": self.severity,
            "retryable": self.retryable,
            "context": self.context,
            "message": self.message,
            "timestamp": self.timestamp,
        }


@dataclass
class ItemOutcome:
    """What happened to one batch item."""

    index: int
    status: str
    detail: Any = None
    error: Optional[ErrorInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"index": self.index, "status": self.status}
        if self.detail is not None:
            payload["detail"] = self.detail
        if self.error is not None:
            payload["error"] = self.error.to_dict()
        return payload


@dataclass
class BatchResult:
    """Aggregate result of a batch run."""

    total: int
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    outcomes: List[ItemOutcome] = field(default_factory=list)
    errors: List[ErrorInfo] = field(default_factory=list)
    aborted: bool = False
    timed_out: bool = False
    abort_reason: Optional[str] = None

    @property
    def processed(self) -> int:
        return self.successful + self.failed + self.skipped

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "aborted": self.aborted,
            "timed_out": self.timed_out,
            "abort_reason": self.abort_reason,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of a daily refresh check."""

    status: str
    last_refresh: Optional[str] = None
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "last_refresh": self.last_refresh,
            "message": self.message,
        }


@dataclass
class SyncReport:
    """Structured result handed back to the trigger layer."""

    status: str
    events_found: int = 0
    successful: int = 0
    failed: int = 0
    skipped: int = 0
    unmatched: int = 0
    runtime_seconds: float = 0.0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    timed_out: bool = False
    aborted: bool = False
    refresh: Optional[RefreshResult] = None
    outcomes: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "eventsFound": self.events_found,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "unmatched": self.unmatched,
            "runtimeSeconds": self.runtime_seconds,
            "errors": self.errors,
            "timedOut": self.timed_out,
            "aborted": self.aborted,
            "refresh": self.refresh.to_dict() if self.refresh else None,
            "outcomes": self.outcomes,
        }
