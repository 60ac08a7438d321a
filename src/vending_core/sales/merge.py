"""Merge of persisted and live records with open-period precedence.

The persisted store lags behind the machines: for a business date that is
still open it may be missing sales or hold a stale subset. For open dates
the live API is authoritative; for closed dates the store is.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable

from vending_core.models import NormalizedSaleRecord
from vending_core.sales.dedupe import dedupe

logger = logging.getLogger(__name__)


def open_business_dates(period_dates: Iterable[date], today: date) -> set[date]:
    """Requested dates that are still accumulating sales.

    Only ``today`` can be open; past dates are closed and future dates hold
    no sales yet.
    """
    return {d for d in period_dates if d == today}


def merge(
    persisted: Iterable[NormalizedSaleRecord],
    live: Iterable[NormalizedSaleRecord],
    open_dates: Iterable[date],
) -> list[NormalizedSaleRecord]:
    """Combine both sources into one duplicate-free record list.

    - Persisted records on an open date are discarded.
    - Live records on an open date replace them.
    - Live records outside the open dates are ignored.
    - Persisted records on closed dates are kept.

    The result is de-duplicated again, so a sale present in both sources is
    counted once.
    """
    open_set = set(open_dates)
    kept = [r for r in persisted if r.business_date not in open_set]
    fresh = [r for r in live if r.business_date in open_set]
    merged = dedupe(kept + fresh)
    logger.debug(
        "Merged %d persisted + %d live record(s) into %d (open dates: %s)",
        len(kept),
        len(fresh),
        len(merged),
        sorted(d.isoformat() for d in open_set),
    )
    return merged
