"""Vendor/business timezone conversion.

Machines stamp every sale with their own clock (the vendor timezone, China
for the current fleet) while franchisees read reports on the business
calendar (Spain). This module maps between the two.

Both zones are IANA zones resolved through ``zoneinfo``, so the offset between
them follows daylight-saving transitions on either side instead of being a
fixed number of hours.

Examples:
    >>> from datetime import date
    >>> from vending_core.timezone import TimeZoneConverter
    >>> conv = TimeZoneConverter("Asia/Shanghai", "Europe/Madrid")
    >>> conv.to_business("2025-01-15", "02:30")
    (datetime.date(2025, 1, 14), '19:30:00')
    >>> conv.vendor_dates_for(date(2025, 1, 14))
    [datetime.date(2025, 1, 14), datetime.date(2025, 1, 15)]
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import TYPE_CHECKING, Iterable, Optional
from zoneinfo import ZoneInfo

from vending_core.exceptions import TimeConversionError

if TYPE_CHECKING:
    from vending_core.config import SalesConfig
    from vending_core.models import Period

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\s*(\d{4})-(\d{1,2})-(\d{1,2})")
_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?")


def parse_vendor_date(value: date | str) -> date:
    """Parse the date part of a vendor stamp ("2025-01-15" or "2025-01-15 10:00:00").

    Raises:
        TimeConversionError: If no YYYY-MM-DD prefix can be read.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    m = _DATE_RE.match(value or "")
    if not m:
        raise TimeConversionError(f"Unparsable vendor date: {value!r}")
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError as e:
        raise TimeConversionError(f"Invalid vendor date: {value!r}") from e


def parse_vendor_time(value: time | str) -> time:
    """Parse "HH:MM" or "HH:MM:SS" into a time.

    Raises:
        TimeConversionError: If the value is not a clock time.
    """
    if isinstance(value, time):
        return value
    m = _TIME_RE.match(value or "")
    if not m:
        raise TimeConversionError(f"Unparsable vendor time: {value!r}")
    try:
        return time(int(m.group(1)), int(m.group(2)), int(m.group(3) or 0))
    except ValueError as e:
        raise TimeConversionError(f"Invalid vendor time: {value!r}") from e


class TimeZoneConverter:
    """Pure conversion between vendor and business wall-clock time.

    The converter never reads the system clock; "today" is only resolved
    from an explicit ``now`` passed to ``business_today``.
    """

    def __init__(self, vendor_tz: str, business_tz: str) -> None:
        self.vendor_tz_name = vendor_tz
        self.business_tz_name = business_tz
        self.vendor_tz = ZoneInfo(vendor_tz)
        self.business_tz = ZoneInfo(business_tz)

    @classmethod
    def from_config(cls, config: SalesConfig) -> TimeZoneConverter:
        return cls(config.vendor_tz, config.business_tz)

    def __repr__(self) -> str:
        return f"TimeZoneConverter(vendor={self.vendor_tz_name!r}, business={self.business_tz_name!r})"

    def to_business(self, vendor_date: date | str, vendor_time: time | str) -> tuple[date, str]:
        """Map a vendor (date, time) stamp to the business (date, "HH:MM:SS").

        Args:
            vendor_date: Vendor-local date (date or YYYY-MM-DD string).
            vendor_time: Vendor-local time (time or HH:MM[:SS] string).

        Returns:
            Tuple of (business_date, business_time).

        Raises:
            TimeConversionError: If either part cannot be parsed.
        """
        d = parse_vendor_date(vendor_date)
        t = parse_vendor_time(vendor_time)
        stamped = datetime.combine(d, t, tzinfo=self.vendor_tz)
        local = stamped.astimezone(self.business_tz)
        return local.date(), local.strftime("%H:%M:%S")

    def to_vendor(self, business_date: date, business_time: time | str) -> tuple[date, str]:
        """Inverse of ``to_business`` for one business wall-clock moment."""
        t = parse_vendor_time(business_time)
        moment = datetime.combine(business_date, t, tzinfo=self.business_tz)
        local = moment.astimezone(self.vendor_tz)
        return local.date(), local.strftime("%H:%M:%S")

    def _day_bounds(self, business_date: date) -> list[datetime]:
        # Both folds of the first and last instant, so a DST gap or overlap
        # at midnight can only widen the covered range.
        next_day = business_date + timedelta(days=1)
        bounds = []
        for fold in (0, 1):
            first = datetime.combine(business_date, time(0), tzinfo=self.business_tz).replace(fold=fold)
            after = datetime.combine(next_day, time(0), tzinfo=self.business_tz).replace(fold=fold)
            bounds.append(first)
            bounds.append(after - timedelta(microseconds=1))
        return bounds

    def vendor_dates_for(self, business_date: date) -> list[date]:
        """Every vendor date whose local day can hold a sale of ``business_date``.

        The result is sorted and contiguous. It covers the vendor dates of
        the first and last instants of the business day; any sale inside the
        business day falls between them because vendor dates only move
        forward with time.
        """
        vendor_days = [b.astimezone(self.vendor_tz).date() for b in self._day_bounds(business_date)]
        first, last = min(vendor_days), max(vendor_days)
        return [first + timedelta(days=i) for i in range((last - first).days + 1)]

    def vendor_dates_for_dates(self, business_dates: Iterable[date]) -> list[date]:
        """Sorted union of ``vendor_dates_for`` over several business dates."""
        found: set[date] = set()
        for d in business_dates:
            found.update(self.vendor_dates_for(d))
        return sorted(found)

    def vendor_dates_for_period(self, period: Period) -> list[date]:
        return self.vendor_dates_for_dates(period.dates())

    def business_today(self, now: Optional[datetime] = None) -> date:
        """Resolve the business date of ``now`` (the wall clock when None).

        A naive ``now`` is interpreted as UTC.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self.business_tz).date()
