"""Vending Sales Core - sales reconciliation and aggregation for vending fleets.

This package reads sales from two sources, places them on the business
calendar and aggregates them without double counting:

- **Persisted store**: the batch-synced sales history (authoritative for
  closed days)
- **Live vendor API**: per-device sale details (authoritative for today)

Machines stamp sales in the vendor timezone; reports use the business
timezone. A business day can span two vendor dates, so both are fetched and
the records outside the requested day are dropped after conversion.

Module Structure:
    vending_core.sales: Fetch, normalize, merge and aggregate pipeline
    vending_core.timezone: Vendor/business timezone conversion
    vending_core.machines: Machine registry
    vending_core.clients: HTTP clients for the store and the vendor API
    vending_core.cache: View cache with an explicit staleness policy
    vending_core.qa: Persisted-vs-live reconciliation
    vending_core.config: SalesConfig

Quick Start:
    >>> from vending_core import Period, SalesConfig, SalesService
    >>>
    >>> service = SalesService.from_config(SalesConfig.from_env())
    >>>
    >>> # Today, by hour, all machines, compared with yesterday
    >>> today = service.get_aggregate(Period.day("2025-03-14"), "all", "hourly", compare_previous=True)
    >>> today.total_revenue, today.peak_hour, today.revenue_change_pct
    >>>
    >>> # Month calendar for one machine
    >>> month = service.get_aggregate(Period.month(2025, 3), "m-001", "daily")
    >>> month.buckets_frame().head()
"""

__version__ = "0.1.0"

from vending_core.config import SalesConfig
from vending_core.exceptions import (
    ConfigError,
    DataQualityError,
    ExtractionError,
    NoMachinesError,
    PipelineError,
    TimeConversionError,
    VendingCoreError,
)
from vending_core.models import AggregateView, Granularity, Period
from vending_core.sales.api import SalesService, get_aggregate

__all__ = [
    "AggregateView",
    "ConfigError",
    "DataQualityError",
    "ExtractionError",
    "Granularity",
    "NoMachinesError",
    "Period",
    "PipelineError",
    "SalesConfig",
    "SalesService",
    "TimeConversionError",
    "VendingCoreError",
    "__version__",
    "get_aggregate",
]
