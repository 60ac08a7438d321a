"""Aggregation of merged sale records into dashboard views.

Records are loaded into a pandas DataFrame with the price held as integer
cents, so every group-by sum is exact. All totals, buckets and breakdowns of
one view come from the same filtered frame; summing any breakdown gives the
view total.

Only successful sales count toward revenue, sale count and units. Failed or
cancelled sales stay in the ``records`` listing for audit.

Granularities
-------------
- hourly:  24 buckets "00:00" .. "23:00" (hour of the business day)
- daily:   one bucket per day of the period, zero-filled
- monthly: one summary bucket per month of the period

Peak hour is always computed from hourly counts. Best and worst day are
computed from daily revenue for month periods, among days with at least one
sale; ties go to the earliest hour or day.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, Optional

import numpy as np
import pandas as pd

from vending_core.models import (
    CENT,
    ZERO,
    AggregateView,
    BreakdownRow,
    Bucket,
    Granularity,
    NormalizedSaleRecord,
    PaymentCategory,
    Period,
)

logger = logging.getLogger(__name__)

FRAME_COLUMNS = ["machine_id", "business_date", "month", "hour", "cents", "units", "product", "payment", "toppings"]

PAYMENT_LABELS = {
    PaymentCategory.CASH.value: "Efectivo",
    PaymentCategory.CARD.value: "Tarjeta",
    PaymentCategory.BIZUM.value: "Bizum",
    PaymentCategory.DIGITAL_WALLET.value: "Apple/Google Pay",
    PaymentCategory.OTHER.value: "Otros",
}


@dataclass(frozen=True)
class AggregateFilters:
    """Restricts which records enter an aggregate.

    Attributes:
        machine_ids: Machines to keep; None keeps every machine.
        business_dates: Business dates to keep; None keeps every date.
    """

    machine_ids: Optional[frozenset[str]] = None
    business_dates: Optional[frozenset[date]] = None

    @classmethod
    def for_period(cls, period: Period, machine_ids: Optional[Iterable[str]] = None) -> AggregateFilters:
        return cls(
            machine_ids=frozenset(machine_ids) if machine_ids is not None else None,
            business_dates=frozenset(period.dates()),
        )

    def matches(self, record: NormalizedSaleRecord) -> bool:
        if self.machine_ids is not None and record.machine_id not in self.machine_ids:
            return False
        if self.business_dates is not None and record.business_date not in self.business_dates:
            return False
        return True


def _cents(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


def _money(cents: int) -> Decimal:
    return (Decimal(int(cents)) / 100).quantize(CENT)


def _sales_frame(records: Iterable[NormalizedSaleRecord]) -> pd.DataFrame:
    """One row per successful sale, price in integer cents."""
    rows = [
        {
            "machine_id": r.machine_id,
            "business_date": r.business_date,
            "month": r.business_date.strftime("%Y-%m"),
            "hour": r.business_hour,
            "cents": _cents(r.price_amount),
            "units": r.unit_count,
            "product": r.product_name,
            "payment": r.payment_category.value,
            "toppings": list(r.topping_names),
        }
        for r in records
        if r.is_success
    ]
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    return df.astype({"cents": np.int64, "units": np.int64, "hour": np.int64})


def _grouped(df: pd.DataFrame, by: str) -> pd.DataFrame:
    return df.groupby(by, sort=True).agg(
        cents=("cents", "sum"),
        sale_count=("cents", "size"),
        unit_count=("units", "sum"),
    )


def _buckets(grouped: pd.DataFrame, keys: list, fmt) -> list[Bucket]:
    filled = grouped.reindex(keys, fill_value=0)
    return [
        Bucket(
            key=fmt(row.Index),
            revenue=_money(row.cents),
            sale_count=int(row.sale_count),
            unit_count=int(row.unit_count),
        )
        for row in filled.itertuples()
    ]


def _breakdown(
    df: pd.DataFrame,
    column: str,
    labels: Optional[Mapping[str, str]] = None,
) -> list[BreakdownRow]:
    """Grouped revenue/count by ``column``, sorted by revenue, count, then key."""
    if df.empty:
        return []
    g = _grouped(df, column).reset_index()
    g = g.sort_values(
        ["cents", "sale_count", column], ascending=[False, False, True], kind="mergesort"
    )
    labels = labels or {}
    return [
        BreakdownRow(
            key=str(row[column]),
            label=labels.get(str(row[column]), str(row[column])),
            revenue=_money(row["cents"]),
            sale_count=int(row["sale_count"]),
            unit_count=int(row["unit_count"]),
        )
        for _, row in g.iterrows()
    ]


def _topping_breakdown(df: pd.DataFrame) -> list[BreakdownRow]:
    # A sale with two toppings counts toward both; this breakdown is not additive.
    if df.empty:
        return []
    exploded = df.explode("toppings").dropna(subset=["toppings"])
    exploded = exploded[exploded["toppings"].astype(str).str.len() > 0]
    return _breakdown(exploded, "toppings")


def _average(total: Decimal, count: int) -> Decimal:
    if count == 0:
        return ZERO
    return (total / count).quantize(CENT, rounding=ROUND_HALF_UP)


def aggregate(
    records: Iterable[NormalizedSaleRecord],
    granularity: Granularity | str,
    filters: Optional[AggregateFilters] = None,
    *,
    period: Period,
    machine_filter: str = "all",
    machine_labels: Optional[Mapping[str, str]] = None,
) -> AggregateView:
    """Compute an AggregateView from merged, de-duplicated records.

    Args:
        records: Normalized records, already merged and de-duplicated.
        granularity: "hourly", "daily" or "monthly".
        filters: Extra restriction. Records outside ``period`` are always
            dropped, whatever the filters say.
        period: The business period being aggregated.
        machine_filter: Echoed into the view ("all" or a machine id).
        machine_labels: machine_id -> display name for ``by_machine``.

    Returns:
        AggregateView. An empty record set yields a zero-valued view.

    Raises:
        ValueError: If ``granularity`` is not a known granularity.
    """
    granularity = Granularity(granularity)
    filters = filters or AggregateFilters()
    period_dates = period.dates()
    in_period = set(period_dates)

    kept = [r for r in records if r.business_date in in_period and filters.matches(r)]
    kept.sort(key=lambda r: r.sort_key())

    df = _sales_frame(kept)
    total_cents = int(df["cents"].sum()) if not df.empty else 0
    total_revenue = _money(total_cents)
    sale_count = len(df)
    unit_count = int(df["units"].sum()) if not df.empty else 0

    hourly = _buckets(_grouped(df, "hour"), list(np.arange(24)), lambda h: f"{int(h):02d}:00")
    daily = _buckets(_grouped(df, "business_date"), period_dates, lambda d: d.isoformat())
    months = sorted({d.strftime("%Y-%m") for d in period_dates})
    monthly = _buckets(_grouped(df, "month"), months, str)

    buckets = {
        Granularity.HOURLY: hourly,
        Granularity.DAILY: daily,
        Granularity.MONTHLY: monthly,
    }[granularity]

    active_hours = [b for b in hourly if b.sale_count > 0]
    peak_hour = max(active_hours, key=lambda b: b.sale_count) if active_hours else None

    best_day = worst_day = None
    if period.kind == "month":
        active_days = [b for b in daily if b.sale_count > 0]
        if active_days:
            best_day = max(active_days, key=lambda b: b.revenue)
            worst_day = min(active_days, key=lambda b: b.revenue)

    view = AggregateView(
        period=period,
        granularity=granularity,
        machine_filter=machine_filter,
        total_revenue=total_revenue,
        total_sale_count=sale_count,
        total_unit_count=unit_count,
        average_ticket=_average(total_revenue, sale_count),
        buckets=buckets,
        peak_hour=peak_hour,
        best_day=best_day,
        worst_day=worst_day,
        by_machine=_breakdown(df, "machine_id", machine_labels),
        by_product=_breakdown(df, "product"),
        by_payment=_breakdown(df, "payment", PAYMENT_LABELS),
        by_topping=_topping_breakdown(df),
        records=kept,
    )
    logger.debug(
        "Aggregated %s (%s, %s): %d sale(s), %s revenue",
        period.label,
        machine_filter,
        granularity.value,
        sale_count,
        total_revenue,
    )
    return view
