"""Persisted sales store client.

The store is the lagging, batch-synced history (table ``ventas_historico``)
served over a PostgREST-compatible endpoint. Rows carry the vendor date in
``fecha``; a single call fetches every requested vendor date of one machine.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Iterable, Optional, Protocol

import requests

from vending_core.clients.http import ensure_ok, make_session, read_json
from vending_core.config import SalesConfig
from vending_core.exceptions import ConfigError, ExtractionError

logger = logging.getLogger(__name__)

SALES_TABLE = "ventas_historico"
PAGE_SIZE = 1000


class SalesStore(Protocol):
    """Anything that can return persisted sale rows for a machine."""

    def fetch_rows(self, machine_id: str, vendor_dates: Iterable[date]) -> list[dict[str, Any]]:
        ...


class RestSalesStore:
    """Read-only PostgREST client for the persisted sales table.

    Example:
        >>> store = RestSalesStore("https://xyz.supabase.co", "anon-key")
        >>> rows = store.fetch_rows("m-001", [date(2025, 3, 14), date(2025, 3, 15)])
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = 30.0,
        retries: int = 3,
        table: str = SALES_TABLE,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.table = table
        self.session = session or make_session(timeout=timeout, retries=retries)

    @classmethod
    def from_config(cls, config: SalesConfig) -> RestSalesStore:
        if not config.store_url:
            raise ConfigError("VS_STORE_URL is required to query the persisted store")
        return cls(
            config.store_url,
            config.store_key,
            timeout=config.timeout,
            retries=config.retries,
        )

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            return {}
        return {"apikey": self.api_key, "Authorization": f"Bearer {self.api_key}"}

    def fetch_rows(self, machine_id: str, vendor_dates: Iterable[date]) -> list[dict[str, Any]]:
        """Return every stored row of ``machine_id`` on the given vendor dates.

        Pages through the result with ``limit``/``offset`` until a short page.

        Raises:
            ExtractionError: On a non-2xx status or a non-list body.
        """
        dates = sorted(set(vendor_dates))
        if not dates:
            return []
        url = f"{self.base_url}/rest/v1/{self.table}"
        params = {
            "select": "*",
            "maquina_id": f"eq.{machine_id}",
            "fecha": "in.({})".format(",".join(d.isoformat() for d in dates)),
            "order": "fecha.asc,hora.asc",
            "limit": str(PAGE_SIZE),
        }
        context = f"Store query failed for machine {machine_id} ({dates[0]}..{dates[-1]})"

        rows: list[dict[str, Any]] = []
        offset = 0
        while True:
            params["offset"] = str(offset)
            resp = self.session.get(url, params=params, headers=self._headers())
            ensure_ok(resp, context)
            page = read_json(resp, context)
            if not isinstance(page, list):
                raise ExtractionError(f"{context}. Expected a JSON list of rows")
            rows.extend(r for r in page if isinstance(r, dict))
            if len(page) < PAGE_SIZE:
                break
            offset += PAGE_SIZE
        logger.debug("Store returned %d row(s) for %s", len(rows), machine_id)
        return rows
