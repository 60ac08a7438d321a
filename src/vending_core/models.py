"""Core types for the sales reconciliation pipeline.

Records flow through the pipeline in three shapes:

- **RawSaleRecord**: one sale exactly as a source produced it, in vendor time.
- **NormalizedSaleRecord**: the same sale placed on the business calendar,
  with cleaned product/topping names, a payment category and a dedup key.
- **AggregateView**: the rollups computed from one deduplicated, merged
  record set.

All record types are frozen dataclasses; a pipeline run never mutates them.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional

import pandas as pd

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class Origin(str, Enum):
    """Which collaborator produced a record (also used to name fetch sources)."""

    PERSISTED = "persisted-store"
    LIVE = "live-api"


class SaleStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    OTHER = "other"


class PaymentCategory(str, Enum):
    """Closed set of payment categories shown to franchisees."""

    CASH = "cash"
    CARD = "card"
    BIZUM = "bizum"
    DIGITAL_WALLET = "digital_wallet"
    OTHER = "other"


class Granularity(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class Machine:
    """A registered vending machine.

    Attributes:
        machine_id: Identifier used by the persisted store and in breakdowns.
        device_id: Identifier (IMEI / MAC) used to query the live vendor API.
        name: Display name chosen by the franchisee.
        active: Inactive machines are skipped when the filter is "all".
    """

    machine_id: str
    device_id: str
    name: str = ""
    active: bool = True


@dataclass(frozen=True)
class RawSaleRecord:
    """One sale as received from a data source, stamped in vendor time."""

    source_id: Optional[str]
    machine_id: str
    vendor_date: str
    vendor_time: str
    price_amount: Decimal
    unit_count: int = 1
    product_descriptor: str = ""
    toppings: Optional[tuple[str, ...]] = None
    payment_method_raw: str = ""
    status: SaleStatus = SaleStatus.SUCCESS
    origin: Origin = Origin.PERSISTED


@dataclass(frozen=True)
class NormalizedSaleRecord:
    """A sale placed on the business calendar and ready for aggregation.

    ``dedup_key`` identifies the physical sale for de-duplication only; it is
    not a business identity and never appears in aggregates.
    """

    source_id: Optional[str]
    machine_id: str
    vendor_date: str
    vendor_time: str
    price_amount: Decimal
    unit_count: int
    product_descriptor: str
    toppings: Optional[tuple[str, ...]]
    payment_method_raw: str
    status: SaleStatus
    origin: Origin
    business_date: date
    business_time: str
    product_name: str
    topping_names: tuple[str, ...]
    payment_category: PaymentCategory
    dedup_key: tuple

    @property
    def is_success(self) -> bool:
        return self.status is SaleStatus.SUCCESS

    @property
    def business_hour(self) -> int:
        return int(self.business_time[:2])

    def sort_key(self) -> tuple:
        """Listing order: business date, business time, then stable tie-breakers."""
        return (
            self.business_date,
            self.business_time,
            self.machine_id,
            tuple(str(part) for part in self.dedup_key),
        )


@dataclass(frozen=True)
class Period:
    """A business-calendar period: one day or one month.

    Examples:
        >>> Period.day(date(2025, 3, 14)).dates()
        [datetime.date(2025, 3, 14)]
        >>> len(Period.month(2025, 2).dates())
        28
    """

    kind: str
    start: date

    def __post_init__(self) -> None:
        if self.kind not in ("day", "month"):
            raise ValueError(f"Invalid period kind '{self.kind}'. Must be 'day' or 'month'.")
        if self.kind == "month" and self.start.day != 1:
            raise ValueError(f"Month periods must start on day 1, got {self.start}")

    @classmethod
    def day(cls, d: date | str) -> Period:
        if isinstance(d, str):
            d = date.fromisoformat(d)
        return cls(kind="day", start=d)

    @classmethod
    def month(cls, year: int, month: int) -> Period:
        return cls(kind="month", start=date(year, month, 1))

    @classmethod
    def month_of(cls, d: date) -> Period:
        return cls.month(d.year, d.month)

    @property
    def end(self) -> date:
        if self.kind == "day":
            return self.start
        last = calendar.monthrange(self.start.year, self.start.month)[1]
        return self.start.replace(day=last)

    def dates(self) -> list[date]:
        span = (self.end - self.start).days
        return [self.start + timedelta(days=i) for i in range(span + 1)]

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end

    def previous(self) -> Period:
        if self.kind == "day":
            return Period.day(self.start - timedelta(days=1))
        prev_last = self.start - timedelta(days=1)
        return Period.month(prev_last.year, prev_last.month)

    @property
    def label(self) -> str:
        if self.kind == "day":
            return self.start.isoformat()
        return self.start.strftime("%Y-%m")


@dataclass(frozen=True)
class FetchUnit:
    """One independent unit of fetch work: machine x vendor date x source."""

    machine: Machine
    vendor_date: date
    source: Origin

    def sort_key(self) -> tuple:
        return (self.machine.machine_id, self.vendor_date, self.source.value)


@dataclass(frozen=True)
class FetchOutcome:
    """Result of one fetch unit: records on success, a reason on failure."""

    unit: FetchUnit
    records: tuple[RawSaleRecord, ...] = ()
    error: Optional[str] = None
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Bucket:
    """One time bucket (an hour "14:00" or a day "2025-03-14")."""

    key: str
    revenue: Decimal = ZERO
    sale_count: int = 0
    unit_count: int = 0


@dataclass(frozen=True)
class BreakdownRow:
    """Grouped sum + count for one machine, product, payment category or topping."""

    key: str
    label: str
    revenue: Decimal
    sale_count: int
    unit_count: int


@dataclass
class AggregateView:
    """Everything a dashboard view needs for one (period, filter, granularity).

    Attributes:
        period: The business period that was aggregated.
        granularity: Bucket granularity used for ``buckets``.
        machine_filter: "all" or the requested machine id.
        total_revenue: Sum of prices of successful sales.
        total_sale_count: Number of successful sales.
        total_unit_count: Units sold across successful sales.
        average_ticket: total_revenue / total_sale_count (0.00 when no sales).
        buckets: Hourly buckets for a day view, daily buckets for month views.
        peak_hour: Hour bucket with the most sales (earliest on ties).
        best_day / worst_day: Day buckets with max/min revenue among days with
            at least one sale (month views only).
        by_machine / by_product / by_payment / by_topping: Breakdowns computed
            from the same record set as the totals.
        records: Flat listing of every record in the period, including
            non-successful ones, sorted by business date and time.
        fetch_errors: One message per failed fetch unit.
        is_open: True if the period was still accumulating sales at ``now``.
        previous_revenue / revenue_change_pct: Comparison with the previous
            period, filled only when requested.
    """

    period: Period
    granularity: Granularity
    machine_filter: str
    total_revenue: Decimal = ZERO
    total_sale_count: int = 0
    total_unit_count: int = 0
    average_ticket: Decimal = ZERO
    buckets: list[Bucket] = field(default_factory=list)
    peak_hour: Optional[Bucket] = None
    best_day: Optional[Bucket] = None
    worst_day: Optional[Bucket] = None
    by_machine: list[BreakdownRow] = field(default_factory=list)
    by_product: list[BreakdownRow] = field(default_factory=list)
    by_payment: list[BreakdownRow] = field(default_factory=list)
    by_topping: list[BreakdownRow] = field(default_factory=list)
    records: list[NormalizedSaleRecord] = field(default_factory=list)
    fetch_errors: list[str] = field(default_factory=list)
    is_open: bool = False
    previous_revenue: Optional[Decimal] = None
    revenue_change_pct: Optional[float] = None

    @property
    def is_partial(self) -> bool:
        """True when at least one fetch unit failed and its data is missing."""
        return bool(self.fetch_errors)

    @property
    def is_empty(self) -> bool:
        return self.total_sale_count == 0

    def copy(self) -> AggregateView:
        """Return a copy with its own lists; the records and buckets are immutable."""
        return replace(
            self,
            buckets=list(self.buckets),
            by_machine=list(self.by_machine),
            by_product=list(self.by_product),
            by_payment=list(self.by_payment),
            by_topping=list(self.by_topping),
            records=list(self.records),
            fetch_errors=list(self.fetch_errors),
        )

    def buckets_frame(self) -> pd.DataFrame:
        """Return the buckets as a DataFrame (one row per bucket) for chart layers."""
        return pd.DataFrame(
            [
                {
                    "bucket": b.key,
                    "revenue": float(b.revenue),
                    "sale_count": b.sale_count,
                    "unit_count": b.unit_count,
                }
                for b in self.buckets
            ],
            columns=["bucket", "revenue", "sale_count", "unit_count"],
        )

    def to_frame(self) -> pd.DataFrame:
        """Return the record listing as a DataFrame for audit display."""
        columns = [
            "business_date",
            "business_time",
            "machine_id",
            "product_name",
            "toppings",
            "price_amount",
            "unit_count",
            "payment_category",
            "status",
            "source_id",
        ]
        return pd.DataFrame(
            [
                {
                    "business_date": r.business_date,
                    "business_time": r.business_time,
                    "machine_id": r.machine_id,
                    "product_name": r.product_name,
                    "toppings": ", ".join(r.topping_names),
                    "price_amount": float(r.price_amount),
                    "unit_count": r.unit_count,
                    "payment_category": r.payment_category.value,
                    "status": r.status.value,
                    "source_id": r.source_id,
                }
                for r in self.records
            ],
            columns=columns,
        )
