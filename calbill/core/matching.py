"""Substring matching against reference tables."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from calbill.core.constants import LOCATION_CODE_PATTERN, UNRESOLVED_ASSIGNEE
from calbill.core.models import LocationAssignment, PersonEntry, VocabularyEntry, VocabularyMatch

logger = logging.getLogger(__name__)

T = TypeVar("T")

Keys = Union[str, Iterable[str]]

_LOCATION_RE = re.compile(LOCATION_CODE_PATTERN)


def _iter_keys(keys: Keys) -> Iterable[str]:
    if isinstance(keys, str):
        return (keys,)
    return keys


def best_match(text: str, table: Iterable[Tuple[Keys, T]]) -> Optional[Tuple[T, str]]:
    """Return (payload, matched key) for the longest key contained in text.

    Matching is case-insensitive. Equal-length matches keep the first one in
    table order, so callers control tie-breaks through the order they pass.
    """
    lowered = text.lower()
    best: Optional[Tuple[T, str]] = None
    best_len = 0

    for keys, payload in table:
        for key in _iter_keys(keys):
            needle = key.strip().lower()
            if not needle:
                continue
            if len(needle) > best_len and needle in lowered:
                best = (payload, key)
                best_len = len(needle)

    return best


def match_entry(text: str, table: Iterable[Tuple[Keys, T]]) -> Optional[T]:
    """Return the payload for the longest matching key, or None."""
    found = best_match(text, table)
    return found[0] if found else None


def match_person(text: str, people: Mapping[str, PersonEntry]) -> Optional[PersonEntry]:
    """Find the client whose normalized key appears in the text."""
    person = match_entry(text, people.items())
    if person:
        logger.debug("Person matched: %r -> %s (%s)", text, person.key, person.id)
    return person


def match_vocabulary(
    text: str,
    vocabulary: Sequence[VocabularyEntry],
) -> Optional[VocabularyMatch]:
    """Rank every keyword of every entry together; longest keyword wins."""
    found = best_match(text, ((entry.keywords, entry) for entry in vocabulary))
    if not found:
        return None
    entry, keyword = found
    logger.debug("Event match: %r -> %s", keyword, entry.category)
    return VocabularyMatch(entry=entry, keyword=keyword)


def extract_location_code(text: str) -> Optional[str]:
    match = _LOCATION_RE.search(text)
    return match.group(1) if match else None


def resolve_location(text: str, location_map: Mapping[str, str]) -> Optional[LocationAssignment]:
    """Resolve the first 4-digit code in text to an assignee.

    No code means this is not a location event (None). A code missing from
    the map resolves to the unresolved marker instead of failing.
    """
    code = extract_location_code(text)
    if code is None:
        return None

    assignee = location_map.get(code)
    if not assignee:
        logger.debug("Location %s has no assignee mapping", code)
        return LocationAssignment(code=code, assignee_name=UNRESOLVED_ASSIGNEE)

    logger.debug("Location %s -> %s", code, assignee)
    return LocationAssignment(code=code, assignee_name=assignee)
