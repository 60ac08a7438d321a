"""Live vendor API client.

The vendor exposes per-device sale details for one vendor date::

    GET {base}/ventas-detalle/{device_id}?fecha=YYYY-MM-DD
    Authorization: Bearer <token>

    {"fecha": "2025-03-14", "ventas": [{"id": ..., "hora": "14:05", ...}]}
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Optional
from urllib.parse import quote

import requests

from vending_core.clients.http import ensure_ok, make_session, read_json
from vending_core.config import SalesConfig
from vending_core.exceptions import ConfigError, ExtractionError

logger = logging.getLogger(__name__)


class VendorApiClient:
    """Thin read-only client for the vendor's sale-detail endpoint.

    Args:
        base_url: API base, e.g. "https://nonstopmachine.com/wp-json/helados/v1".
        token: Bearer token.
        session: Optional pre-built session (tests inject fakes here).
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        retries: int = 3,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.session = session or make_session(timeout=timeout, retries=retries)

    @classmethod
    def from_config(cls, config: SalesConfig) -> VendorApiClient:
        if not config.api_token:
            raise ConfigError("VS_API_TOKEN is required to query the live vendor API")
        return cls(
            config.api_base,
            config.api_token,
            timeout=config.timeout,
            retries=config.retries,
        )

    def fetch_sales(self, device_id: str, vendor_date: date) -> list[dict[str, Any]]:
        """Return the raw ``ventas`` list for one device and vendor date.

        Raises:
            ExtractionError: On a non-2xx status, a non-JSON body or an
                unexpected payload shape.
        """
        url = f"{self.base_url}/ventas-detalle/{quote(str(device_id), safe='')}"
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        logger.debug("GET %s fecha=%s", url, vendor_date)
        resp = self.session.get(url, params={"fecha": vendor_date.isoformat()}, headers=headers)
        context = f"Vendor API failed for device {device_id} on {vendor_date}"
        ensure_ok(resp, context)
        payload = read_json(resp, context)
        if isinstance(payload, list):
            ventas = payload
        elif isinstance(payload, dict):
            ventas = payload.get("ventas") or []
        else:
            raise ExtractionError(f"{context}. Unexpected payload type {type(payload).__name__}")
        if not isinstance(ventas, list):
            raise ExtractionError(f"{context}. 'ventas' is not a list")
        return [v for v in ventas if isinstance(v, dict)]
