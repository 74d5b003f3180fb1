"""Event classification pipeline."""

from __future__ import annotations

import logging
import re
from typing import Mapping, Optional, Sequence

from calbill.core.matching import match_person, match_vocabulary, resolve_location
from calbill.core.models import ClassificationResult, Event, PersonEntry, VocabularyEntry
from calbill.core.summary import render_summary
from calbill.utils.durations import quantize

logger = logging.getLogger(__name__)

_LEADING_SEPARATORS = " \t-–—:;,|/"


def clean_title(title: str, person: Optional[PersonEntry]) -> str:
    """Drop the matched person's key so it cannot collide with event keywords."""
    if person is None or not person.key:
        return title.strip()
    stripped = re.sub(re.escape(person.key), "", title, flags=re.IGNORECASE)
    return stripped.lstrip(_LEADING_SEPARATORS).strip()


def classify_event(
    event: Event,
    people: Mapping[str, PersonEntry],
    vocabulary: Sequence[VocabularyEntry],
    location_map: Mapping[str, str],
) -> ClassificationResult:
    """Classify one event: person, event type, location, summary and hours.

    Missing matches are normal outcomes; only collaborator faults raise.
    """
    title = event.title or ""

    person = match_person(title, people)
    cleaned = clean_title(title, person)
    vocab_match = match_vocabulary(cleaned, vocabulary)

    location = None
    if vocab_match and vocab_match.entry.is_location_event:
        location = resolve_location(title, location_map)

    summary = render_summary(vocab_match, person, location, title)
    hours = quantize(event.start, event.end)

    logger.debug("Classified %r -> %r (%.1fh)", title, summary, hours)
    return ClassificationResult(
        person_match=person,
        vocabulary_match=vocab_match,
        location_assignment=location,
        rendered_summary=summary,
        duration_units=hours,
    )
