"""Tests for fetch planning and concurrent fetching."""

import time
from datetime import date

import requests

from sales_fakes import FakeStore, FakeVendorApi

from vending_core.models import FetchUnit, Machine, Origin
from vending_core.sales.fetch import SourceFetcher, plan_units


def test_plan_units_expands_vendor_dates(converter, machines) -> None:
    """Each business date expands into the vendor dates it spans."""
    units = plan_units(machines[:2], [date(2025, 3, 14)], [Origin.LIVE], converter)

    assert [(u.machine.machine_id, u.vendor_date) for u in units] == [
        ("m-001", date(2025, 3, 14)),
        ("m-001", date(2025, 3, 15)),
        ("m-002", date(2025, 3, 14)),
        ("m-002", date(2025, 3, 15)),
    ]


def test_plan_units_has_no_duplicates(converter, machines) -> None:
    """Overlapping business dates do not repeat units."""
    days = [date(2025, 3, 13), date(2025, 3, 14)]
    units = plan_units(machines[:1], days, [Origin.PERSISTED, Origin.LIVE], converter)

    # Vendor dates 13, 14, 15 for each source; the 14th is shared by both days
    assert len(units) == 6
    assert len(set(units)) == 6


def test_fetch_parses_store_rows(machines) -> None:
    """Store units parse persisted rows."""
    store = FakeStore({"m-001": [{"venta_api_id": "1", "fecha": "2025-03-14", "hora": "21:05", "precio": "5"}]})
    fetcher = SourceFetcher(store=store)

    outcome = fetcher.fetch(FetchUnit(machines[0], date(2025, 3, 14), Origin.PERSISTED))

    assert outcome.ok
    assert len(outcome.records) == 1
    assert outcome.records[0].machine_id == "m-001"
    assert outcome.records[0].origin is Origin.PERSISTED
    assert store.calls == [("m-001", (date(2025, 3, 14),))]


def test_fetch_queries_live_api_by_device(machines) -> None:
    """Live units query the API by device id."""
    api = FakeVendorApi({"dev-002": [{"id": 5, "fecha": "2025-03-14", "hora": "10:00", "precio": "2.00"}]})
    fetcher = SourceFetcher(vendor_api=api)

    outcome = fetcher.fetch(FetchUnit(machines[1], date(2025, 3, 14), Origin.LIVE))

    assert outcome.ok
    assert outcome.records[0].machine_id == "m-002"
    assert outcome.records[0].origin is Origin.LIVE
    assert api.calls == [("dev-002", date(2025, 3, 14))]


def test_fetch_never_raises(machines) -> None:
    """A failing client becomes an error outcome."""
    fetcher = SourceFetcher(vendor_api=FakeVendorApi(failing={"dev-001"}))

    outcome = fetcher.fetch(FetchUnit(machines[0], date(2025, 3, 14), Origin.LIVE))

    assert not outcome.ok
    assert outcome.records == ()
    assert "ConnectionError" in outcome.error
    assert "m-001" in outcome.error


def test_missing_collaborator_is_an_error_outcome(machines) -> None:
    """Units for a missing client fail with a clear reason."""
    outcome = SourceFetcher().fetch(FetchUnit(machines[0], date(2025, 3, 14), Origin.PERSISTED))

    assert not outcome.ok
    assert "not configured" in outcome.error


def test_fetch_all_partial_outage(converter, machines) -> None:
    """One failing machine leaves the other outcomes intact."""
    ventas = {
        m.device_id: [{"id": m.machine_id, "fecha": "2025-03-14", "hora": "12:00", "precio": "1.00"}]
        for m in machines
    }
    fetcher = SourceFetcher(vendor_api=FakeVendorApi(ventas, failing={"dev-002"}))
    units = plan_units(machines, [date(2025, 3, 14)], [Origin.LIVE], converter)

    outcomes = fetcher.fetch_all(units)

    assert len(outcomes) == len(units)
    failed = [o.unit.machine.machine_id for o in outcomes if not o.ok]
    assert failed == ["m-002", "m-002"]
    records = [r for o in outcomes for r in o.records]
    assert sorted(r.machine_id for r in records) == ["m-001", "m-003"]


class SlowFirstApi:
    """Earlier machines answer later, so completion order is reversed."""

    def __init__(self, delays: dict[str, float]) -> None:
        self.delays = delays

    def fetch_sales(self, device_id: str, vendor_date: date) -> list[dict]:
        time.sleep(self.delays.get(device_id, 0.0))
        return [{"id": f"{device_id}-{vendor_date}", "fecha": vendor_date.isoformat(), "hora": "12:00", "precio": "1"}]


def test_fetch_all_returns_unit_order(machines) -> None:
    """Outcomes come back in unit order, not completion order."""
    api = SlowFirstApi({"dev-001": 0.15, "dev-002": 0.05, "dev-003": 0.0})
    fetcher = SourceFetcher(vendor_api=api, max_workers=3)
    units = [FetchUnit(m, date(2025, 3, 14), Origin.LIVE) for m in machines]

    outcomes = fetcher.fetch_all(units)

    assert [o.unit for o in outcomes] == units
    assert [o.records[0].source_id for o in outcomes] == [
        "dev-001-2025-03-14",
        "dev-002-2025-03-14",
        "dev-003-2025-03-14",
    ]


def test_fetch_all_empty() -> None:
    """No units means no outcomes."""
    assert SourceFetcher().fetch_all([]) == []


def test_unexpected_exception_is_captured() -> None:
    """Unexpected exceptions are captured in the outcome."""
    class Broken:
        def fetch_sales(self, device_id, vendor_date):
            raise requests.HTTPError("500 Server Error")

    fetcher = SourceFetcher(vendor_api=Broken())
    outcome = fetcher.fetch(FetchUnit(Machine("m-9", "dev-9"), date(2025, 3, 14), Origin.LIVE))

    assert outcome.error is not None
    assert "HTTPError" in outcome.error
