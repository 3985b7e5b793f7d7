"""HTTP client for the records API.

``RecordsClient.update_record`` has the same shape as the update function
expected by :mod:`dashboard.cells`, so a table can be driven against a remote
server exactly as the prices page drives it in-process.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional
from urllib.parse import quote

import requests

from desklib.network import build_api_url

logger = logging.getLogger(__name__)


class RecordsClientError(RuntimeError):
    """Raised when the records API answers with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class RecordsClient:
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _raise_for_status(self, response) -> None:
        if 200 <= response.status_code < 300:
            return
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("error"):
            message = str(body["error"])
        else:
            message = response.reason or "Request failed"
        raise RecordsClientError(response.status_code, message)

    def list_records(self) -> list[dict]:
        response = self.session.get(build_api_url(self.base_url, "/records"), timeout=self.timeout)
        self._raise_for_status(response)
        return response.json()

    def update_record(self, record_id: str, patch: Mapping[str, Any]) -> dict:
        url = build_api_url(self.base_url, f"/records/{quote(str(record_id), safe='')}")
        logger.debug("PATCH %s %s", url, dict(patch))
        response = self.session.patch(url, json=dict(patch), timeout=self.timeout)
        self._raise_for_status(response)
        return response.json()
