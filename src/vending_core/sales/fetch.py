"""Concurrent fetch of raw sales from the persisted store and the live API.

Work is split into independent fetch units (machine x vendor date x source).
Units run on a thread pool; every unit produces a FetchOutcome, either
records or an error reason, and outcomes are returned in unit order no
matter which request finishes first.

A failing unit never raises out of this module. The caller sees the failure
as an outcome with ``ok == False`` and reports the view as partial.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

from vending_core.models import FetchOutcome, FetchUnit, Machine, Origin, RawSaleRecord
from vending_core.sales.normalize import parse_store_row, parse_vendor_sale

if TYPE_CHECKING:
    from vending_core.clients.store import SalesStore
    from vending_core.clients.vendor_api import VendorApiClient
    from vending_core.timezone import TimeZoneConverter

logger = logging.getLogger(__name__)


def plan_units(
    machines: Iterable[Machine],
    business_dates: Iterable[date],
    sources: Iterable[Origin],
    converter: TimeZoneConverter,
) -> list[FetchUnit]:
    """Expand business dates into the fetch units that cover them.

    Each business date maps to one or more vendor dates; every
    (machine, vendor date, source) combination becomes one unit. The result
    has no duplicates and is ordered by machine, vendor date, then source.

    Examples:
        >>> from datetime import date
        >>> from vending_core.models import Machine, Origin
        >>> from vending_core.timezone import TimeZoneConverter
        >>> conv = TimeZoneConverter("Asia/Shanghai", "Europe/Madrid")
        >>> machine = Machine("m-001", "dev-001")
        >>> units = plan_units([machine], [date(2025, 3, 14)], [Origin.LIVE], conv)
        >>> [u.vendor_date for u in units]
        [datetime.date(2025, 3, 14), datetime.date(2025, 3, 15)]
    """
    vendor_dates = converter.vendor_dates_for_dates(business_dates)
    units = {
        FetchUnit(machine=m, vendor_date=vd, source=src)
        for m in machines
        for vd in vendor_dates
        for src in sources
    }
    return sorted(units, key=lambda u: u.sort_key())


class SourceFetcher:
    """Runs fetch units against the configured collaborators.

    Args:
        store: Persisted store client. None makes every store unit fail.
        vendor_api: Live API client. None makes every live unit fail.
        max_workers: Thread pool size upper bound.
    """

    def __init__(
        self,
        store: Optional[SalesStore] = None,
        vendor_api: Optional[VendorApiClient] = None,
        max_workers: int = 8,
    ) -> None:
        self.store = store
        self.vendor_api = vendor_api
        self.max_workers = max_workers

    def _load(self, unit: FetchUnit) -> list[RawSaleRecord]:
        machine = unit.machine
        if unit.source is Origin.PERSISTED:
            if self.store is None:
                raise RuntimeError("persisted store is not configured")
            rows = self.store.fetch_rows(machine.machine_id, [unit.vendor_date])
            return [parse_store_row(row, machine.machine_id) for row in rows]
        if self.vendor_api is None:
            raise RuntimeError("live vendor API is not configured")
        ventas = self.vendor_api.fetch_sales(machine.device_id, unit.vendor_date)
        return [
            parse_vendor_sale(v, machine.machine_id, unit.vendor_date, origin=Origin.LIVE)
            for v in ventas
        ]

    def fetch(self, unit: FetchUnit) -> FetchOutcome:
        """Run one unit. Any exception becomes an error outcome with no records."""
        t0 = time.perf_counter()
        try:
            records = self._load(unit)
        except Exception as e:  # noqa: BLE001
            elapsed = time.perf_counter() - t0
            reason = (
                f"{unit.source.value} fetch failed for machine {unit.machine.machine_id} "
                f"on vendor date {unit.vendor_date}: {type(e).__name__}: {e}"
            )
            logger.warning(reason)
            return FetchOutcome(unit=unit, records=(), error=reason, elapsed=elapsed)
        elapsed = time.perf_counter() - t0
        logger.debug(
            "%s %s %s: %d record(s) in %.2fs",
            unit.source.value,
            unit.machine.machine_id,
            unit.vendor_date,
            len(records),
            elapsed,
        )
        return FetchOutcome(unit=unit, records=tuple(records), elapsed=elapsed)

    def fetch_all(self, units: Sequence[FetchUnit]) -> list[FetchOutcome]:
        """Run all units concurrently; outcomes come back in unit order."""
        if not units:
            return []
        workers = max(1, min(self.max_workers, len(units)))
        logger.info("Fetching %d unit(s) with %d worker(s)", len(units), workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="sales-fetch") as pool:
            futures = [pool.submit(self.fetch, unit) for unit in units]
            outcomes = [f.result() for f in futures]
        failed = sum(1 for o in outcomes if not o.ok)
        if failed:
            logger.warning("%d of %d fetch unit(s) failed", failed, len(outcomes))
        return outcomes
