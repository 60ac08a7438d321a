"""Live tests against the real vendor API and store.

These tests are skipped unless credentials are present in the environment:

    VS_API_TOKEN      vendor API bearer token (required)
    VS_MACHINES_JSON  machine registry JSON (required)
    VS_STORE_URL      persisted store URL (optional; closed days need it)
"""

import os
from datetime import date, datetime, timedelta, timezone

import pytest

from vending_core import Period, SalesConfig, SalesService


def _live_config() -> SalesConfig:
    if not os.environ.get("VS_API_TOKEN") or not os.environ.get("VS_MACHINES_JSON"):
        pytest.skip("Live test skipped: VS_API_TOKEN and VS_MACHINES_JSON environment variables required")
    return SalesConfig.from_env()


@pytest.mark.live
def test_today_view_with_live_api() -> None:
    """Live test: today's hourly view comes from the vendor API without errors."""
    config = _live_config()
    service = SalesService.from_config(config, use_cache=False)
    now = datetime.now(timezone.utc)
    today = service.converter.business_today(now)

    view = service.get_aggregate(Period.day(today), "all", "hourly", now=now)

    print(f"\n[Live] {today}: {view.total_sale_count} sale(s), {view.total_revenue} EUR")
    assert view.is_open
    assert not view.is_partial, view.fetch_errors
    assert len(view.buckets) == 24
    assert sum(b.revenue for b in view.buckets) == view.total_revenue


@pytest.mark.live
def test_reconcile_today() -> None:
    """Live test: store vs live comparison for today (needs VS_STORE_URL)."""
    config = _live_config()
    if not config.store_url:
        pytest.skip("Live test skipped: VS_STORE_URL required")
    service = SalesService.from_config(config, use_cache=False)
    today = service.converter.business_today(datetime.now(timezone.utc))

    result = service.compare_sources(today)

    print(f"\n[Live] reconciliation {today}: {result.summary}")
    assert result.summary["live_count"] >= result.summary["matched_count"]


@pytest.mark.live
def test_yesterday_from_store() -> None:
    """Live test: a closed day is served from the store."""
    config = _live_config()
    if not config.store_url:
        pytest.skip("Live test skipped: VS_STORE_URL required")
    service = SalesService.from_config(config, use_cache=False)
    now = datetime.now(timezone.utc)
    yesterday: date = service.converter.business_today(now) - timedelta(days=1)

    view = service.get_aggregate(Period.day(yesterday), "all", "hourly", now=now)

    assert not view.is_open
    assert view.total_sale_count == sum(r.sale_count for r in view.by_machine)
