"""Static constants and mappings for calbill."""

from __future__ import annotations

BILLING_INCREMENT_HOURS = 0.2
MINIMUM_BILLABLE_HOURS = 0.2

UNRESOLVED_ASSIGNEE = "____"
UNKNOWN_PERSON_TOKEN = "[Client]"
LOCATION_CODE_PATTERN = r"\b(\d{4})\b"

PERSON_FIRST_NAME_PLACEHOLDERS = ("{Client First Name}", "{First Name}")
PERSON_LAST_NAME_PLACEHOLDERS = ("{Client Last Name}", "{Last Name}")
ASSIGNEE_PLACEHOLDERS = ("{Judge Last Name}", "{Judge}")

LOCATION_EVENT_CATEGORIES = {"court"}

CLIENT_HEADER = ("First Name", "Last Name", "UID_Client_PK")
LOCATION_HEADER = ("First Name", "Last Name", "Courtroom")
EVENT_TYPE_HEADER = ("Category", "Keywords", "Description")

# Used when the event-types table is missing from the reference directory.
FALLBACK_VOCABULARY = [
    (
        "Telephone Conference",
        ["telephone call", "tc", "cc", "conference call", "call"],
        "Telephone conference with {Client First Name} {Client Last Name}",
    ),
    (
        "Zoom Conference",
        ["zoom conference", "zoom", "zc", "zoom video conference", "video conference", "video"],
        "Video conference with {Client First Name} {Client Last Name}",
    ),
    (
        "Office Meeting",
        ["office meeting", "office", "meeting", "om"],
        "Office meeting with {Client First Name} {Client Last Name}",
    ),
    (
        "Court",
        ["motion"],
        "Appeared before Judge {Judge Last Name} on initial presentation of Motion",
    ),
    (
        "Court",
        ["hearing"],
        "Appeared before Judge {Judge Last Name} for hearing on Motion",
    ),
    (
        "Court",
        ["open"],
        "Appeared before Judge {Judge Last Name} to open Estate, have heirship determined, "
        "and have representative appointed",
    ),
    (
        "Court",
        ["close"],
        "Appeared before Judge {Judge Last Name} to present Final Report and Receipts and "
        "Approvals from interested parties and to request that the representative be "
        "discharged and estate closed.",
    ),
    (
        "Court",
        ["status"],
        "Appeared before Judge {Judge Last Name} to report on status of Estate Administration",
    ),
]

# Error taxonomy.
TIMEOUT = "TIMEOUT"
SECRET_ACCESS_ERROR = "SECRET_ACCESS_ERROR"
RECORD_STORE_ERROR = "RECORD_STORE_ERROR"
EVENT_SOURCE_ERROR = "EVENT_SOURCE_ERROR"
REFERENCE_SOURCE_ERROR = "REFERENCE_SOURCE_ERROR"
NETWORK_ERROR = "NETWORK_ERROR"
PROCESSING_ERROR = "PROCESSING_ERROR"

SEVERITY_HIGH = "HIGH"
SEVERITY_MEDIUM = "MEDIUM"

ERROR_KEYWORDS = [
    (TIMEOUT, ["timeout", "timed out", "execution time", "time budget"]),
    (SECRET_ACCESS_ERROR, ["secret", "oauth", "credential", "1password"]),
    (RECORD_STORE_ERROR, ["filemaker", "record store", "authentication"]),
    (EVENT_SOURCE_ERROR, ["calendar", "getevents", "event source"]),
    (REFERENCE_SOURCE_ERROR, ["reference", "sheet", "spreadsheet"]),
    (NETWORK_ERROR, ["network", "fetch", "connection"]),
]

RECOMMENDED_ACTIONS = {
    TIMEOUT: [
        "Reduce the date range for processing",
        "Check for large calendar volumes",
        "Monitor record store response times",
    ],
    PROCESSING_ERROR: [
        "Check logs for details",
        "Verify all services are accessible",
        "Retry processing if transient",
    ],
    SECRET_ACCESS_ERROR: [
        "Verify credentials are configured",
        "Check 1Password references and service token",
    ],
    RECORD_STORE_ERROR: [
        "Check record store connectivity",
        "Verify database credentials",
        "Ensure the layout exists and is accessible",
    ],
    EVENT_SOURCE_ERROR: [
        "Verify the events file exists and is readable",
        "Check the event file format",
    ],
    REFERENCE_SOURCE_ERROR: [
        "Verify the reference directory exists",
        "Check table headers and columns",
    ],
    NETWORK_ERROR: [
        "Check network connectivity",
        "Retry if transient",
    ],
}

# Record store (FileMaker Data API) message codes.
FM_OK = "0"
FM_DUPLICATE = "504"
FM_UNAUTHORIZED = "401"
FM_INVALID_PARAMETER = "1708"

FIELD_LENGTH_LIMITS = {
    "body": 255,
    "title": 255,
    "summary": 500,
    "description": 1000,
}
DEFAULT_FIELD_LENGTH = 255
RECOMMENDED_MAX_FIELD_LENGTH = 500
