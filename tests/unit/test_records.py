from __future__ import annotations

from calbill.core.classify import classify_event
from calbill.core.records import build_record


def test_record_for_matched_client(make_event, people, vocabulary, locations) -> None:
    event = make_event("Brown TC", "2026-03-02T10:00", "2026-03-02T10:18")
    result = classify_event(event, people, vocabulary, locations)

    record = build_record(event, result, "U-7")

    assert record == {
        "fieldData": {
            "Body": "Brown TC",
            "Date": "03/02/2026",
            "Time": 0.4,
            "Summary": "Telephone conference with Alice Brown",
            "UID_User_fk": "U-7",
            "UID_Client_fk": "C-100",
        }
    }


def test_record_without_client_omits_client_key(make_event, people, vocabulary, locations) -> None:
    event = make_event("Team lunch", "2026-03-02T12:00", "2026-03-02T12:05")
    result = classify_event(event, people, vocabulary, locations)

    field_data = build_record(event, result, "U-7")["fieldData"]

    assert "UID_Client_fk" not in field_data
    assert field_data["Summary"] == "Team lunch"
    assert field_data["Time"] == 0.2
