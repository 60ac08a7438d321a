"""In-memory collaborators and record builders shared by the test suite."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

import requests

from vending_core.machines import MachineRegistry
from vending_core.models import NormalizedSaleRecord, Origin, RawSaleRecord, SaleStatus
from vending_core.sales.api import SalesService
from vending_core.sales.fetch import SourceFetcher
from vending_core.sales.normalize import normalize_record
from vending_core.timezone import TimeZoneConverter


class FakeStore:
    """Persisted store backed by a dict of machine_id -> rows."""

    def __init__(self, rows: Optional[dict[str, list[dict[str, Any]]]] = None, failing: Iterable[str] = ()) -> None:
        self.rows = rows or {}
        self.failing = set(failing)
        self.calls: list[tuple[str, tuple[date, ...]]] = []

    def fetch_rows(self, machine_id: str, vendor_dates: Iterable[date]) -> list[dict[str, Any]]:
        dates = tuple(sorted(vendor_dates))
        self.calls.append((machine_id, dates))
        if machine_id in self.failing:
            raise requests.ConnectionError(f"store unreachable for {machine_id}")
        wanted = {d.isoformat() for d in dates}
        return [r for r in self.rows.get(machine_id, []) if str(r["fecha"])[:10] in wanted]


class FakeVendorApi:
    """Live API backed by a dict of device_id -> ventas (each carrying its fecha)."""

    def __init__(self, ventas: Optional[dict[str, list[dict[str, Any]]]] = None, failing: Iterable[str] = ()) -> None:
        self.ventas = ventas or {}
        self.failing = set(failing)
        self.calls: list[tuple[str, date]] = []

    def fetch_sales(self, device_id: str, vendor_date: date) -> list[dict[str, Any]]:
        self.calls.append((device_id, vendor_date))
        if device_id in self.failing:
            raise requests.ConnectionError(f"vendor API unreachable for {device_id}")
        return [v for v in self.ventas.get(device_id, []) if v["fecha"] == vendor_date.isoformat()]


def make_service(
    registry: MachineRegistry,
    converter: TimeZoneConverter,
    store: Optional[FakeStore] = None,
    vendor_api: Optional[FakeVendorApi] = None,
) -> SalesService:
    fetcher = SourceFetcher(store=store or FakeStore(), vendor_api=vendor_api or FakeVendorApi(), max_workers=4)
    return SalesService(registry, fetcher, converter)


def madrid_noon(d: date) -> datetime:
    """An aware instant safely inside business date ``d`` (Europe/Madrid)."""
    return datetime(d.year, d.month, d.day, 11, 0, tzinfo=timezone.utc)


def make_record(
    converter: TimeZoneConverter,
    *,
    source_id: Optional[str] = "1",
    machine_id: str = "m-001",
    vendor_date: str = "2025-03-14",
    vendor_time: str = "21:05",
    price: str = "5.00",
    units: int = 1,
    product: str = "Helado",
    toppings: Optional[tuple[str, ...]] = None,
    payment: str = "efectivo",
    status: SaleStatus = SaleStatus.SUCCESS,
    origin: Origin = Origin.PERSISTED,
) -> NormalizedSaleRecord:
    raw = RawSaleRecord(
        source_id=source_id,
        machine_id=machine_id,
        vendor_date=vendor_date,
        vendor_time=vendor_time,
        price_amount=Decimal(price),
        unit_count=units,
        product_descriptor=product,
        toppings=toppings,
        payment_method_raw=payment,
        status=status,
        origin=origin,
    )
    return normalize_record(raw, converter)
