"""Billing description rendering."""

from __future__ import annotations

import re
from typing import Optional

from calbill.core.constants import (
    ASSIGNEE_PLACEHOLDERS,
    PERSON_FIRST_NAME_PLACEHOLDERS,
    PERSON_LAST_NAME_PLACEHOLDERS,
    UNKNOWN_PERSON_TOKEN,
    UNRESOLVED_ASSIGNEE,
)
from calbill.core.models import LocationAssignment, PersonEntry, VocabularyMatch

_LEFTOVER_PLACEHOLDER_RE = re.compile(r"\{[^{}]*\}")
_MULTI_SPACE_RE = re.compile(r" {2,}")


def _replace_all(text: str, placeholders, value: str) -> str:
    for placeholder in placeholders:
        text = text.replace(placeholder, value)
    return text


def _tidy(text: str) -> str:
    text = _MULTI_SPACE_RE.sub(" ", text)
    return text.replace(" .", ".").replace(" ,", ",").strip()


def person_display_name(person: PersonEntry) -> str:
    first = person.first_name or person.key
    return _tidy(f"{first} {person.last_name or ''}")


def fill_template(
    template: str,
    person_match: Optional[PersonEntry],
    location: Optional[LocationAssignment],
) -> str:
    """Substitute every placeholder; unknown tokens become the blank marker."""
    text = template

    if person_match:
        text = _replace_all(
            text,
            PERSON_FIRST_NAME_PLACEHOLDERS,
            person_match.first_name or person_match.key,
        )
        text = _replace_all(text, PERSON_LAST_NAME_PLACEHOLDERS, person_match.last_name or "")
    else:
        has_first = any(token in text for token in PERSON_FIRST_NAME_PLACEHOLDERS)
        text = _replace_all(text, PERSON_FIRST_NAME_PLACEHOLDERS, UNKNOWN_PERSON_TOKEN)
        text = _replace_all(
            text,
            PERSON_LAST_NAME_PLACEHOLDERS,
            "" if has_first else UNKNOWN_PERSON_TOKEN,
        )

    assignee = location.assignee_name if location else UNRESOLVED_ASSIGNEE
    text = _replace_all(text, ASSIGNEE_PLACEHOLDERS, assignee)

    text = _LEFTOVER_PLACEHOLDER_RE.sub(UNRESOLVED_ASSIGNEE, text)
    return _tidy(text)


def render_summary(
    vocabulary_match: Optional[VocabularyMatch],
    person_match: Optional[PersonEntry],
    location: Optional[LocationAssignment],
    title: str,
) -> str:
    """Build the billing description for one event.

    Without an event-type match the description falls back to a meeting
    with the matched person, or to the title itself.
    """
    if vocabulary_match is None:
        if person_match:
            return f"Meeting with {person_display_name(person_match)}"
        return title

    return fill_template(vocabulary_match.entry.description_template, person_match, location)
