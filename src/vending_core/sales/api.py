"""Public API for sales aggregates.

This module provides the main entry point for dashboard views. Every view
(today, one machine's day, the month calendar) asks the same service for a
(period, machine filter, granularity) triple.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from vending_core.cache import AggregateCache, CacheKey
from vending_core.clients.store import RestSalesStore
from vending_core.clients.vendor_api import VendorApiClient
from vending_core.config import SalesConfig
from vending_core.exceptions import NoMachinesError
from vending_core.machines import ALL_MACHINES, MachineRegistry
from vending_core.models import AggregateView, Granularity, Origin, Period
from vending_core.sales.aggregate import AggregateFilters, aggregate
from vending_core.sales.fetch import SourceFetcher, plan_units
from vending_core.sales.merge import merge, open_business_dates
from vending_core.sales.normalize import normalize_records
from vending_core.timezone import TimeZoneConverter
from vending_core.utils import format_duration

if TYPE_CHECKING:
    from vending_core.models import FetchOutcome, RawSaleRecord
    from vending_core.qa.api import ReconciliationResult

logger = logging.getLogger(__name__)


def _records_from(outcomes: list[FetchOutcome], source: Origin) -> list[RawSaleRecord]:
    return [r for o in outcomes if o.unit.source is source for r in o.records]


def _change_pct(current: Decimal, previous: Decimal) -> Optional[float]:
    if previous == 0:
        return None
    return round(float((current - previous) / previous * 100), 2)


class SalesService:
    """Runs the fetch -> normalize -> merge -> aggregate pipeline.

    Args:
        registry: Machines the franchisee owns.
        fetcher: Source fetcher wired to the store and live API clients.
        converter: Vendor/business timezone converter.
        cache: Optional view cache; None disables caching.

    Example:
        >>> service = SalesService.from_config(SalesConfig.from_env())
        >>> view = service.get_aggregate(Period.month(2025, 3), "all", "daily")
        >>> view.total_revenue, view.best_day
    """

    def __init__(
        self,
        registry: MachineRegistry,
        fetcher: SourceFetcher,
        converter: TimeZoneConverter,
        cache: Optional[AggregateCache] = None,
    ) -> None:
        self.registry = registry
        self.fetcher = fetcher
        self.converter = converter
        self.cache = cache

    @classmethod
    def from_config(cls, config: SalesConfig, use_cache: bool = True) -> SalesService:
        """Wire a service from configuration.

        Raises:
            NoMachinesError: If no machine registry is configured.
            ConfigError: If the registry file cannot be read.
        """
        if config.machines_json is None:
            raise NoMachinesError("VS_MACHINES_JSON is not set; no machines are configured")
        registry = MachineRegistry.from_json(config.machines_json)

        store = RestSalesStore.from_config(config) if config.store_url else None
        vendor_api = VendorApiClient.from_config(config) if config.api_token else None
        if store is None:
            logger.warning("No persisted store configured; closed dates will report fetch errors")
        if vendor_api is None:
            logger.warning("No vendor API token configured; open dates will report fetch errors")

        fetcher = SourceFetcher(store=store, vendor_api=vendor_api, max_workers=config.max_workers)
        cache = AggregateCache.from_config(config) if use_cache else None
        return cls(registry, fetcher, TimeZoneConverter.from_config(config), cache)

    def get_aggregate(
        self,
        period: Period,
        machine_filter: str = ALL_MACHINES,
        granularity: Granularity | str = Granularity.HOURLY,
        *,
        now: Optional[datetime] = None,
        compare_previous: bool = False,
    ) -> AggregateView:
        """Build the aggregate view for one period and machine filter.

        Past business dates are read from the persisted store. The business
        date that contains ``now`` is open and read from the live API instead.
        Failed fetch units are listed in ``fetch_errors`` and the view is
        computed from whatever did arrive.

        Args:
            period: ``Period.day(d)`` or ``Period.month(y, m)``.
            machine_filter: "all" or one machine id.
            granularity: "hourly", "daily" or "monthly".
            now: Aware "current" instant; None reads the wall clock.
            compare_previous: Also aggregate the previous period and fill
                ``previous_revenue`` / ``revenue_change_pct``.

        Returns:
            AggregateView for the request.

        Raises:
            ValueError: If ``period`` is not a Period or granularity is unknown.
            NoMachinesError: If the filter resolves to no machine.
        """
        if not isinstance(period, Period):
            raise ValueError(f"Invalid period {period!r}. Use Period.day() or Period.month().")
        granularity = Granularity(granularity)

        try:
            machines = self.registry.resolve(machine_filter)
        except NoMachinesError:
            logger.error("No machines for filter %r", machine_filter)
            raise

        today = self.converter.business_today(now)
        period_dates = period.dates()
        open_dates = open_business_dates(period_dates, today)
        closed_dates = [d for d in period_dates if d not in open_dates and d <= today]
        key = CacheKey(period, machine_filter, granularity, is_open=bool(open_dates))

        if self.cache is not None and not compare_previous:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for %s", key)
                return cached

        t0 = time.perf_counter()
        units = sorted(
            plan_units(machines, closed_dates, [Origin.PERSISTED], self.converter)
            + plan_units(machines, sorted(open_dates), [Origin.LIVE], self.converter),
            key=lambda u: u.sort_key(),
        )
        outcomes = self.fetcher.fetch_all(units)
        fetch_errors = [o.error for o in outcomes if o.error is not None]

        persisted = normalize_records(_records_from(outcomes, Origin.PERSISTED), self.converter)
        live = normalize_records(_records_from(outcomes, Origin.LIVE), self.converter)
        merged = merge(persisted, live, open_dates)

        view = aggregate(
            merged,
            granularity,
            AggregateFilters.for_period(period, [m.machine_id for m in machines]),
            period=period,
            machine_filter=machine_filter,
            machine_labels={m.machine_id: m.name for m in machines},
        )
        view.fetch_errors = fetch_errors
        view.is_open = bool(open_dates)

        if compare_previous:
            previous = self.get_aggregate(
                period.previous(), machine_filter, granularity, now=now
            )
            view.previous_revenue = previous.total_revenue
            view.revenue_change_pct = _change_pct(view.total_revenue, previous.total_revenue)
            view.fetch_errors.extend(f"previous period: {e}" for e in previous.fetch_errors)
        elif self.cache is not None:
            self.cache.put(key, view)

        logger.info(
            "Aggregate %s [%s, %s]: %d sale(s), %s revenue, %d/%d unit(s) failed in %s",
            period.label,
            machine_filter,
            granularity.value,
            view.total_sale_count,
            view.total_revenue,
            len(fetch_errors),
            len(units),
            format_duration(time.perf_counter() - t0),
        )
        return view

    def compare_sources(
        self,
        business_date: date,
        machine_filter: str = ALL_MACHINES,
    ) -> ReconciliationResult:
        """Fetch one business date from both sources and reconcile them.

        Useful on the open day to see how far the persisted store lags the
        live API. Failed units are logged and leave their side empty.

        Raises:
            NoMachinesError: If the filter resolves to no machine.
        """
        from vending_core.qa.api import reconcile

        machines = self.registry.resolve(machine_filter)
        units = plan_units(machines, [business_date], [Origin.PERSISTED, Origin.LIVE], self.converter)
        outcomes = self.fetcher.fetch_all(units)

        def _on_date(source: Origin) -> list:
            records = normalize_records(_records_from(outcomes, source), self.converter)
            return [r for r in records if r.business_date == business_date]

        return reconcile(_on_date(Origin.PERSISTED), _on_date(Origin.LIVE))


def get_aggregate(
    period: Period,
    machine_filter: str = ALL_MACHINES,
    granularity: Granularity | str = Granularity.HOURLY,
    *,
    now: Optional[datetime] = None,
    compare_previous: bool = False,
    config: Optional[SalesConfig] = None,
) -> AggregateView:
    """One-shot aggregate using configuration from ``config`` or the environment.

    Examples:
        >>> from vending_core import Period, get_aggregate
        >>> view = get_aggregate(Period.day("2025-03-14"), "all", "hourly")
        >>> view.peak_hour.key
        '14:00'
    """
    service = SalesService.from_config(config or SalesConfig.from_env(), use_cache=False)
    return service.get_aggregate(
        period, machine_filter, granularity, now=now, compare_previous=compare_previous
    )
