"""Public API for persisted-vs-live reconciliation.

This module provides an in-memory comparison of two normalized record sets
for the same machines and business dates, matched by dedup key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

import pandas as pd

from vending_core.exceptions import DataQualityError
from vending_core.models import NormalizedSaleRecord
from vending_core.sales.dedupe import dedupe, duplicate_count

logger = logging.getLogger(__name__)

RECORD_COLUMNS = [
    "machine_id",
    "business_date",
    "business_time",
    "source_id",
    "product_name",
    "price_amount",
    "status",
]


@dataclass
class ReconciliationResult:
    """Result of comparing the persisted store with the live API.

    Attributes:
        summary: Dictionary with counts and revenue totals.
        only_live: Sales the live API reports but the store lacks (sync lag).
        only_persisted: Sales the store holds but the live API no longer reports.
        price_mismatches: Sales present in both with a different price.
    """

    summary: dict
    only_live: pd.DataFrame
    only_persisted: pd.DataFrame
    price_mismatches: pd.DataFrame

    @property
    def has_discrepancies(self) -> bool:
        return not (self.only_live.empty and self.only_persisted.empty and self.price_mismatches.empty)


def _checked(records: Iterable[NormalizedSaleRecord], side: str) -> list[NormalizedSaleRecord]:
    items = list(records)
    bad = sorted({type(r).__name__ for r in items if not isinstance(r, NormalizedSaleRecord)})
    if bad:
        raise DataQualityError(
            f"Cannot reconcile {side} records: expected NormalizedSaleRecord, got {bad}"
        )
    return items


def _records_frame(records: Iterable[NormalizedSaleRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "machine_id": r.machine_id,
                "business_date": r.business_date,
                "business_time": r.business_time,
                "source_id": r.source_id,
                "product_name": r.product_name,
                "price_amount": float(r.price_amount),
                "status": r.status.value,
            }
            for r in sorted(records, key=lambda r: r.sort_key())
        ],
        columns=RECORD_COLUMNS,
    )


def reconcile(
    persisted: Iterable[NormalizedSaleRecord],
    live: Iterable[NormalizedSaleRecord],
) -> ReconciliationResult:
    """Match persisted and live records by dedup key and report differences.

    This function:
    - does NOT fetch anything (callers pass already-normalized records),
    - does NOT raise on differences, only on input it cannot compare,
    - MAY log a summary via the logging module.

    Args:
        persisted: Records read from the persisted store.
        live: Records read from the live vendor API for the same scope.

    Returns:
        ReconciliationResult with the three difference frames and a summary.

    Raises:
        DataQualityError: If either side holds something other than normalized
            sale records.
    """
    persisted = _checked(persisted, "persisted")
    live = _checked(live, "live")
    store_by_key = {r.dedup_key: r for r in dedupe(persisted)}
    live_by_key = {r.dedup_key: r for r in dedupe(live)}

    only_live = [r for k, r in live_by_key.items() if k not in store_by_key]
    only_persisted = [r for k, r in store_by_key.items() if k not in live_by_key]
    mismatches = [
        {
            "machine_id": r.machine_id,
            "business_date": r.business_date,
            "business_time": r.business_time,
            "source_id": r.source_id,
            "persisted_price": float(store_by_key[k].price_amount),
            "live_price": float(r.price_amount),
            "difference": float(r.price_amount - store_by_key[k].price_amount),
        }
        for k, r in sorted(live_by_key.items(), key=lambda kv: kv[1].sort_key())
        if k in store_by_key and store_by_key[k].price_amount != r.price_amount
    ]

    summary = {
        "persisted_count": len(store_by_key),
        "live_count": len(live_by_key),
        "matched_count": len(set(store_by_key) & set(live_by_key)),
        "only_live_count": len(only_live),
        "only_persisted_count": len(only_persisted),
        "price_mismatch_count": len(mismatches),
        "persisted_duplicates": duplicate_count(persisted),
        "live_duplicates": duplicate_count(live),
        "lag_revenue": float(sum(r.price_amount for r in only_live if r.is_success)),
    }

    logger.info(
        "Reconciliation: %d matched, %d only live, %d only persisted, %d price mismatch(es)",
        summary["matched_count"],
        summary["only_live_count"],
        summary["only_persisted_count"],
        summary["price_mismatch_count"],
    )

    return ReconciliationResult(
        summary=summary,
        only_live=_records_frame(only_live),
        only_persisted=_records_frame(only_persisted),
        price_mismatches=pd.DataFrame(
            mismatches,
            columns=[
                "machine_id",
                "business_date",
                "business_time",
                "source_id",
                "persisted_price",
                "live_price",
                "difference",
            ],
        ),
    )
