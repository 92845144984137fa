"""
HTTP client for the order-management backend.

- register_printer(): exchange the API key + printer record for a per-printer
  credential (agent key)
- fetch_printers(): list the printers the backend already knows for this tenant
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import requests
from pydantic import ValidationError

from print_agent.core.errors import RegistrationError
from print_agent.core.models import Config, Printer

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10
PRINTERS_PATH = "/api/printers"


class AuthClient:
    def __init__(self, config: Config, session: Optional[requests.Session] = None, timeout: float = REQUEST_TIMEOUT):
        self.config = config
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def printers_url(self) -> str:
        return self.config.api_url + PRINTERS_PATH

    def _headers(self) -> dict:
        return {"Content-Type": "application/json", "X-Api-Key": self.config.api_key}

    def _json_or_raise(self, resp: requests.Response) -> Any:
        if resp.status_code >= 400:
            raise RegistrationError(f"API Error {resp.status_code}: {resp.text.strip()[:500]}")
        try:
            return resp.json()
        except ValueError as e:
            raise RegistrationError(f"Backend returned invalid JSON: {e}") from e

    def register_printer(self, printer: Printer) -> str:
        """
        Register `printer` and return the credential the backend issued.

        Raises:
            RegistrationError on transport errors, 4xx/5xx, or an unexpected body.
        """
        try:
            resp = self.session.post(
                self.printers_url,
                json=printer.to_record(),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise RegistrationError(f"Registration request failed: {e}") from e

        body = self._json_or_raise(resp)
        data = body.get("data") if isinstance(body, dict) else None
        key = data.get("agent_key") if isinstance(data, dict) else None
        if not isinstance(key, str) or not key:
            raise RegistrationError("no agent_key found in response")
        return key

    def fetch_printers(self) -> List[Printer]:
        """
        Return the printers registered on the backend. Records that do not
        validate are skipped.
        """
        try:
            resp = self.session.get(self.printers_url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise RegistrationError(f"Printer sync request failed: {e}") from e

        body = self._json_or_raise(resp)
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise RegistrationError("no data found in printer list response")
        items = data.get("printers") or []
        if not isinstance(items, list):
            raise RegistrationError("printer list response 'printers' is not a list")

        result: List[Printer] = []
        for item in items:
            try:
                result.append(Printer.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping invalid printer record from backend: %s", e.errors(include_url=False))
        return result


__all__ = ["AuthClient"]
