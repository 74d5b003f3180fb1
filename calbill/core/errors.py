"""Exception types and failure classification."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from calbill.core.constants import (
    ERROR_KEYWORDS,
    EVENT_SOURCE_ERROR,
    FM_DUPLICATE,
    FM_INVALID_PARAMETER,
    FM_UNAUTHORIZED,
    NETWORK_ERROR,
    PROCESSING_ERROR,
    RECOMMENDED_ACTIONS,
    RECOMMENDED_MAX_FIELD_LENGTH,
    RECORD_STORE_ERROR,
    REFERENCE_SOURCE_ERROR,
    SECRET_ACCESS_ERROR,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
    TIMEOUT,
)
from calbill.core.models import ErrorInfo

logger = logging.getLogger(__name__)


class CalbillError(RuntimeError):
    """Base class for failures raised by calbill collaborators."""


class ReferenceDataError(CalbillError):
    """Raised when a reference table cannot be loaded."""


class EventSourceError(CalbillError):
    """Raised when calendar events cannot be read."""


class SecretAccessError(CalbillError):
    """Raised when record store credentials cannot be resolved."""


class BudgetExceededError(CalbillError):
    """Raised when the elapsed-time budget runs out."""


class RecordStoreError(CalbillError):
    """Raised for record store API failures."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        response_text: str = "",
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.response_text = response_text

    @property
    def is_duplicate(self) -> bool:
        return self.code == FM_DUPLICATE


_TYPED_CATEGORIES = [
    (BudgetExceededError, TIMEOUT),
    (SecretAccessError, SECRET_ACCESS_ERROR),
    (RecordStoreError, RECORD_STORE_ERROR),
    (EventSourceError, EVENT_SOURCE_ERROR),
    (ReferenceDataError, REFERENCE_SOURCE_ERROR),
    (requests.Timeout, TIMEOUT),
    (TimeoutError, TIMEOUT),
    (requests.RequestException, NETWORK_ERROR),
    (ConnectionError, NETWORK_ERROR),
]

_RETRYABLE = {
    SECRET_ACCESS_ERROR,
    RECORD_STORE_ERROR,
    EVENT_SOURCE_ERROR,
    REFERENCE_SOURCE_ERROR,
    NETWORK_ERROR,
}

_SEVERITY = {
    TIMEOUT: SEVERITY_HIGH,
    SECRET_ACCESS_ERROR: SEVERITY_HIGH,
    RECORD_STORE_ERROR: SEVERITY_HIGH,
    EVENT_SOURCE_ERROR: SEVERITY_HIGH,
    REFERENCE_SOURCE_ERROR: SEVERITY_HIGH,
    NETWORK_ERROR: SEVERITY_MEDIUM,
    PROCESSING_ERROR: SEVERITY_MEDIUM,
}


def _category_for(error: BaseException) -> str:
    for error_type, category in _TYPED_CATEGORIES:
        if isinstance(error, error_type):
            return category

    message = str(error).lower()
    for category, keywords in ERROR_KEYWORDS:
        if any(keyword in message for keyword in keywords):
            return category
    return PROCESSING_ERROR


def classify_error(error: BaseException, context: str = "") -> ErrorInfo:
    """Map a raised error onto (category, severity, retryable).

    Typed errors are matched first, then message keywords. Anything left
    over lands in PROCESSING_ERROR.
    """
    category = _category_for(error)
    return ErrorInfo(
        category=category,
        severity=_SEVERITY[category],
        retryable=category in _RETRYABLE,
        context=context,
        message=str(error),
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, RecordStoreError) and error.code in {FM_DUPLICATE, FM_INVALID_PARAMETER}:
        return False
    return classify_error(error).retryable


def recommended_actions(category: str) -> List[str]:
    return RECOMMENDED_ACTIONS.get(
        category,
        ["Check logs", "Verify connectivity", "Retry if needed"],
    )


def log_structured_error(
    error: BaseException,
    context: str = "",
    extra: Optional[Dict[str, Any]] = None,
) -> ErrorInfo:
    """Classify and log an error; high severity also logs next steps."""
    info = classify_error(error, context)
    logger.error(
        "%s (%s) in %s: %s retryable=%s%s",
        info.category,
        info.severity,
        context or "unknown context",
        info.message,
        info.retryable,
        f" extra={extra}" if extra else "",
    )
    if info.severity == SEVERITY_HIGH:
        for action in recommended_actions(info.category):
            logger.error("  recommended: %s", action)
    return info


_CODE_RE = re.compile(r'"code"\s*:\s*"(\d+)"')


def record_store_error_code(error: BaseException) -> Optional[str]:
    code = getattr(error, "code", None)
    if code:
        return str(code)
    match = _CODE_RE.search(str(error))
    return match.group(1) if match else None


def analyze_record_store_error(
    error: BaseException,
    record: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Explain a record store failure, with field diagnostics for bad parameters."""
    code = record_store_error_code(error)
    analysis: Dict[str, Any] = {
        "error_type": "RECORD_STORE_ERROR",
        "code": code,
        "message": str(error),
        "can_retry": False,
        "diagnostics": {},
    }

    if code == FM_DUPLICATE:
        analysis["error_type"] = "DUPLICATE_RECORD"
    elif code == FM_UNAUTHORIZED:
        analysis["error_type"] = "AUTHENTICATION_ERROR"
        analysis["can_retry"] = True
    elif code == FM_INVALID_PARAMETER:
        analysis["error_type"] = "PARAMETER_VALIDATION_ERROR"
        analysis["can_retry"] = True
        analysis["diagnostics"] = _field_diagnostics(record)

    return analysis


def _field_diagnostics(record: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    diagnostics: Dict[str, Any] = {
        "probable_field": None,
        "issues": [],
        "lengths": {},
        "contains_html": False,
        "contains_special_chars": False,
    }
    field_data = (record or {}).get("fieldData", {})
    for name, value in field_data.items():
        if not isinstance(value, str):
            continue
        diagnostics["lengths"][name] = len(value)
        found = False
        if "<" in value and ">" in value:
            diagnostics["contains_html"] = True
            diagnostics["issues"].append(f"{name} contains HTML tags")
            found = True
        if re.search(r"[^\x20-\x7E]", value):
            diagnostics["contains_special_chars"] = True
            diagnostics["issues"].append(f"{name} contains non-printable characters")
            found = True
        if len(value) > RECOMMENDED_MAX_FIELD_LENGTH:
            diagnostics["issues"].append(f"{name} exceeds recommended length ({len(value)} chars)")
            found = True
        if found:
            diagnostics["probable_field"] = name
    return diagnostics
