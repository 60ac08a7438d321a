"""De-duplication of normalized sale records by dedup key."""

from __future__ import annotations

import logging
from typing import Iterable

from vending_core.models import NormalizedSaleRecord

logger = logging.getLogger(__name__)


def dedupe(records: Iterable[NormalizedSaleRecord]) -> list[NormalizedSaleRecord]:
    """Keep one record per dedup key, at the position of its first occurrence.

    The first record of a key is kept unless a later record with the same key
    is successful and the kept one is not; the successful record then takes
    the slot. A failed attempt and its successful retry in the same second at
    the same price share a composite key.

    Idempotent: ``dedupe(dedupe(x)) == dedupe(x)``.
    """
    slots: dict[tuple, int] = {}
    out: list[NormalizedSaleRecord] = []
    for r in records:
        pos = slots.get(r.dedup_key)
        if pos is None:
            slots[r.dedup_key] = len(out)
            out.append(r)
        elif r.is_success and not out[pos].is_success:
            logger.debug("Successful sale replaces %s record for %s", out[pos].status.value, r.dedup_key)
            out[pos] = r
    return out


def duplicate_count(records: Iterable[NormalizedSaleRecord]) -> int:
    """Number of records ``dedupe`` would drop."""
    items = list(records)
    return len(items) - len({r.dedup_key for r in items})
