"""FileMaker Data API client for billing records and active clients."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from calbill.core.auth import RecordStoreCredentials
from calbill.core.constants import FM_OK, FM_UNAUTHORIZED
from calbill.core.errors import RecordStoreError
from calbill.core.models import PersonEntry
from calbill.core.reference import make_person
from calbill.utils.text import sanitize_record

logger = logging.getLogger(__name__)

ACTIVE_CLIENT_QUERY: Dict[str, Any] = {
    "query": [{"Active Inactive": "Active"}],
    "limit": "90000",
}


def _message_code(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    messages = payload.get("messages") or []
    if messages and isinstance(messages[0], dict) and messages[0].get("code") is not None:
        return str(messages[0]["code"])
    return None


class RecordStoreAPI:
    """Thin wrapper around the FileMaker Data API.

    Every public call opens its own session and closes it again. Calls do
    not retry; wrap them in run_with_retry where retries make sense.
    """

    def __init__(
        self,
        credentials: RecordStoreCredentials,
        layout: str = "Billing",
        client_layout: str = "systemgoogle_activeClient",
        timeout_seconds: int = 30,
    ) -> None:
        self.credentials = credentials
        self.layout = layout
        self.client_layout = client_layout
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "RecordStoreAPI":
        store_cfg = config.get("record_store", {})
        return cls(
            credentials=RecordStoreCredentials.resolve(config),
            layout=str(store_cfg.get("layout", "Billing")),
            client_layout=str(store_cfg.get("client_layout", "systemgoogle_activeClient")),
            timeout_seconds=int(store_cfg.get("timeout_seconds", 30)),
        )

    @property
    def base_url(self) -> str:
        return f"{self.credentials.host}/fmi/data/vLatest/databases/{self.credentials.database}"

    def _request(
        self,
        method: str,
        path: str,
        token: Optional[str] = None,
        json_data: Optional[Dict[str, Any]] = None,
        basic_auth: bool = False,
    ) -> requests.Response:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        auth = (self.credentials.username, self.credentials.password) if basic_auth else None
        return requests.request(
            method=method,
            url=f"{self.base_url}{path}",
            headers=headers,
            json=json_data,
            auth=auth,
            timeout=self.timeout_seconds,
        )

    @staticmethod
    def _decode(response: requests.Response, action: str) -> Dict[str, Any]:
        payload = _safe_json(response)
        code = _message_code(payload)
        if response.status_code != 200 or (code is not None and code != FM_OK):
            raise RecordStoreError(
                f"FileMaker {action} failed: {response.text}",
                code=code,
                status_code=response.status_code,
                response_text=response.text,
            )
        return payload if isinstance(payload, dict) else {}

    def login(self) -> str:
        """Open a session and return its token."""
        response = self._request("POST", "/sessions", json_data={}, basic_auth=True)
        payload = self._decode(response, "authentication")
        token = (payload.get("response") or {}).get("token")
        if not token:
            raise RecordStoreError(
                f"FileMaker authentication failed: {response.text}",
                status_code=response.status_code,
                response_text=response.text,
            )
        logger.debug("Obtained record store session")
        return str(token)

    def logout(self, token: str) -> None:
        """Close a session. Failures are logged, never raised."""
        try:
            response = self._request("DELETE", f"/sessions/{token}", token=token)
        except requests.RequestException as exc:
            logger.warning("Record store logout failed: %s", exc)
            return
        if response.status_code != 200:
            logger.warning("Record store logout returned HTTP %s", response.status_code)
        else:
            logger.debug("Closed record store session")

    def create_record(self, record: Dict[str, Any]) -> str:
        """Create one record from {"fieldData": {...}} and return its record id."""
        field_data = sanitize_record(record.get("fieldData", {}))
        token = self.login()
        try:
            response = self._request(
                "POST",
                f"/layouts/{self.layout}/records",
                token=token,
                json_data={"fieldData": field_data},
            )
        finally:
            self.logout(token)

        payload = self._decode(response, "record creation")
        record_id = (payload.get("response") or {}).get("recordId")
        logger.info("Created record %s", record_id)
        return str(record_id)

    def find_active_clients(self) -> List[PersonEntry]:
        """All active clients with a first name, last name and id."""
        token = self.login()
        try:
            response = self._request(
                "POST",
                f"/layouts/{self.client_layout}/_find",
                token=token,
                json_data=ACTIVE_CLIENT_QUERY,
            )
        finally:
            self.logout(token)

        # 401 from _find means no records matched.
        if _message_code(_safe_json(response)) == FM_UNAUTHORIZED and response.status_code != 200:
            logger.warning("Active client query matched no records")
            return []

        payload = self._decode(response, "client query")
        clients: List[PersonEntry] = []
        for record in (payload.get("response") or {}).get("data") or []:
            fields = record.get("fieldData", {}) if isinstance(record, dict) else {}
            first = fields.get("First Name")
            if not first:
                continue
            person = make_person(first, fields.get("Last Name"), fields.get("UID Client"))
            if person is not None:
                clients.append(person)

        logger.info("Fetched %d active clients", len(clients))
        return clients


def _safe_json(response: requests.Response) -> Any:
    try:
        return response.json() if response.text else {}
    except ValueError:
        return {}
