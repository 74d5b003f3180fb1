"""Billing record assembly."""

from __future__ import annotations

from typing import Any, Dict, Optional

from calbill.core.models import ClassificationResult, Event
from calbill.utils.durations import format_record_date


def build_record(event: Event, result: ClassificationResult, user_id: Optional[str]) -> Dict[str, Any]:
    """Build the record store payload for one classified event.

    The client foreign key is only present when a person matched.
    """
    field_data: Dict[str, Any] = {
        "Body": event.title,
        "Date": format_record_date(event.start),
        "Time": result.duration_units,
        "Summary": result.rendered_summary,
        "UID_User_fk": user_id,
    }
    if result.person_match is not None:
        field_data["UID_Client_fk"] = result.person_match.id
    return {"fieldData": field_data}
