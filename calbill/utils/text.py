"""Text helpers for values written to the record store."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict

from calbill.core.constants import DEFAULT_FIELD_LENGTH, FIELD_LENGTH_LIMITS

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7E]")

_ENTITIES = [
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
]

_REPLACEMENTS = [
    ("“", '"'),
    ("”", '"'),
    ("‘", "'"),
    ("’", "'"),
    ("–", "-"),
    ("—", "-"),
    ("…", "..."),
]


def strip_html(text: str) -> str:
    """Drop tags and decode common entities; URLs found in the markup are kept."""
    urls = _URL_RE.findall(text)
    cleaned = _TAG_RE.sub(" ", text)
    for entity, replacement in _ENTITIES:
        cleaned = cleaned.replace(entity, replacement)
    for url in urls:
        if url not in cleaned:
            cleaned += f" {url}"
    return cleaned


def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s{2,}", " ", re.sub(r"[\r\n\t]+", " ", text)).strip()


def replace_special_characters(text: str) -> str:
    for source, target in _REPLACEMENTS:
        text = text.replace(source, target)
    return _NON_PRINTABLE_RE.sub("", text)


def field_length_limit(field_name: str) -> int:
    return FIELD_LENGTH_LIMITS.get(field_name.lower(), DEFAULT_FIELD_LENGTH)


def truncate(text: str, max_length: int) -> str:
    """Cut to at most max_length including the "...", preferring a word boundary in the last 20%."""
    if len(text) <= max_length:
        return text
    cut = text[: max(max_length - 3, 0)]
    last_space = cut.rfind(" ")
    if last_space > len(cut) * 0.8:
        return cut[:last_space] + "..."
    return cut + "..."


def sanitize_text(value: Any, field_name: str = "") -> Any:
    """Make a single field value safe for the record store.

    Non-string values pass through unchanged; empty strings stay empty.
    """
    if not isinstance(value, str) or not value:
        return value

    sanitized = normalize_whitespace(strip_html(value))
    sanitized = normalize_whitespace(replace_special_characters(sanitized))
    return truncate(sanitized, field_length_limit(field_name)).strip()


def sanitize_record(field_data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a sanitized copy of a record's field data."""
    sanitized: Dict[str, Any] = {}
    for name, value in field_data.items():
        cleaned = sanitize_text(value, name)
        if cleaned != value:
            logger.debug("Sanitized field %s: %r -> %r", name, str(value)[:50], str(cleaned)[:50])
        sanitized[name] = cleaned
    return sanitized
