"""View caching with an explicit staleness policy, and late-result guarding.

Cache keys are (period, machine filter, granularity, open/closed). A view of
a closed period cannot change any more and is kept until evicted; a view of
an open period expires after a short TTL (30 s for a day, 60 s for a month
by default).

``RequestTracker`` gives a call site a generation token per request so a
result that arrives after a newer request was issued can be dropped.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from vending_core.models import AggregateView, Granularity, Period

if TYPE_CHECKING:
    from vending_core.config import SalesConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheKey:
    period: Period
    machine_filter: str
    granularity: Granularity
    is_open: bool


class AggregateCache:
    """In-memory AggregateView cache.

    Args:
        open_day_ttl: Seconds an open day view stays fresh.
        open_month_ttl: Seconds an open month view stays fresh.
        clock: Monotonic clock in seconds (tests inject a fake).

    Example:
        >>> cache = AggregateCache()
        >>> key = CacheKey(Period.day("2025-03-14"), "all", Granularity.HOURLY, is_open=False)
        >>> cache.get(key) is None
        True
    """

    def __init__(
        self,
        open_day_ttl: float = 30.0,
        open_month_ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.open_day_ttl = open_day_ttl
        self.open_month_ttl = open_month_ttl
        self._clock = clock
        self._entries: dict[CacheKey, tuple[float, AggregateView]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: SalesConfig) -> AggregateCache:
        return cls(open_day_ttl=config.open_day_ttl, open_month_ttl=config.open_month_ttl)

    def ttl_for(self, key: CacheKey) -> Optional[float]:
        """Seconds before ``key`` goes stale; None means never."""
        if not key.is_open:
            return None
        return self.open_day_ttl if key.period.kind == "day" else self.open_month_ttl

    def get(self, key: CacheKey) -> Optional[AggregateView]:
        """Return a copy of the cached view if it is still fresh, else None."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, view = entry
            ttl = self.ttl_for(key)
            if ttl is not None and self._clock() - stored_at >= ttl:
                del self._entries[key]
                logger.debug("Cache entry expired: %s", key)
                return None
            return view.copy()

    def put(self, key: CacheKey, view: AggregateView) -> None:
        # Partial views are never cached.
        if view.is_partial:
            logger.debug("Not caching partial view for %s", key)
            return
        with self._lock:
            self._entries[key] = (self._clock(), view.copy())

    def invalidate(self, period: Optional[Period] = None) -> int:
        """Drop entries for ``period`` (all entries when None); returns how many."""
        with self._lock:
            keys = [k for k in self._entries if period is None or k.period == period]
            for k in keys:
                del self._entries[k]
        return len(keys)

    def __len__(self) -> int:
        return len(self._entries)


class RequestTracker:
    """Hands out generation tokens; only the newest token is current.

    Example:
        >>> tracker = RequestTracker()
        >>> first = tracker.begin()
        >>> second = tracker.begin()
        >>> tracker.is_current(first), tracker.is_current(second)
        (False, True)
    """

    def __init__(self) -> None:
        self._generation = 0
        self._lock = threading.Lock()

    def begin(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._generation
