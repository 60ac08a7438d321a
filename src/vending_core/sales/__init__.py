"""Sales domain module.

This module turns raw vending-machine sales into dashboard aggregates:

- **normalize**: raw payloads -> NormalizedSaleRecord on the business calendar
- **fetch**: concurrent per-(machine, vendor date, source) fetch units
- **dedupe** / **merge**: one record per physical sale, live data for open dates
- **aggregate**: totals, hourly/daily/monthly buckets and breakdowns

Example:
    >>> from vending_core import Period
    >>> from vending_core.sales import get_aggregate
    >>>
    >>> # Today's hourly view across all machines
    >>> view = get_aggregate(Period.day("2025-03-14"), "all", "hourly")
    >>>
    >>> # Month calendar for one machine
    >>> month = get_aggregate(Period.month(2025, 3), "m-001", "daily")
    >>> month.best_day, month.worst_day
"""

from vending_core.sales.aggregate import AggregateFilters, aggregate
from vending_core.sales.api import SalesService, get_aggregate
from vending_core.sales.dedupe import dedupe
from vending_core.sales.merge import merge, open_business_dates

__all__ = [
    "AggregateFilters",
    "SalesService",
    "aggregate",
    "dedupe",
    "get_aggregate",
    "merge",
    "open_business_dates",
]
