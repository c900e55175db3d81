# Daisios
# Copyright (C) 2026 Jelmer Vernooĳ <jelmer@jelmer.uk>, et al.
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU General Public License
# as published by the Free Software Foundation; version 3
# of the License or (at your option) any later version of
# the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program; if not, write to the Free Software
# Foundation, Inc., 51 Franklin Street, Fifth Floor, Boston,
# MA  02110-1301, USA.


"""Date and date-time values.

A :class:`Temporal` is either a :class:`CalendarDate` (an all-day value,
``VALUE=DATE``) or a :class:`ZonedInstant` (a UTC or zoned date-time). Both
store a millisecond offset from the Unix epoch and are ordered and compared
by that offset alone.

A CalendarDate always sits on UTC midnight of its calendar day, and its
year, month and day are read in UTC, arithmetically. No local clock is ever
consulted for it, so an all-day event cannot drift to a neighbouring day
whatever zone the reader is in.

A ZonedInstant is a genuine instant. Its zone (None for UTC) is only used to
read the wall clock and to do wall-clock arithmetic ("same time next week"
across a DST change), via an injectable offset function.
"""

import functools
import re
import time
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from .timezones import (
    MS_PER_DAY,
    OffsetFunction,
    epoch_to_local,
    epoch_to_naive,
    local_to_epoch,
    naive_to_epoch,
    resolve_zone,
    zone_from_tzinfo,
)

_EPOCH_ORDINAL = date(1970, 1, 1).toordinal()

_DATE_RE = re.compile(r"^\d{8}$")
_UTC_RE = re.compile(r"^(\d{8}T\d{6})Z$")
_LOCAL_RE = re.compile(r"^\d{8}T\d{6}$")


class InvalidDateTime(ValueError):
    """Text that is not an iCalendar DATE or DATE-TIME."""

    def __init__(self, value) -> None:
        super().__init__(f"Invalid iCalendar date or date-time {value!r}")
        self.value = value


@functools.total_ordering
class Temporal:
    """A point in time, either a calendar date or a (zoned) instant."""

    __slots__ = ("_epoch_ms",)

    is_date = False

    def __init__(self, epoch_ms: int) -> None:
        self._epoch_ms = int(epoch_ms)

    @property
    def epoch_ms(self) -> int:
        return self._epoch_ms

    def __eq__(self, other):
        if not isinstance(other, Temporal):
            return NotImplemented
        return self._epoch_ms == other._epoch_ms

    def __lt__(self, other):
        if not isinstance(other, Temporal):
            return NotImplemented
        return self._epoch_ms < other._epoch_ms

    def __hash__(self):
        return hash(self._epoch_ms)

    def to_calendar_date(self, offset_for: Optional[OffsetFunction] = None) -> date:
        raise NotImplementedError(self.to_calendar_date)

    def to_local_datetime(
        self, offset_for: Optional[OffsetFunction] = None
    ) -> datetime:
        """Return the naive wall-clock time of this value."""
        raise NotImplementedError(self.to_local_datetime)

    def to_datetime(self) -> Union[date, datetime]:
        """Convert to a date or an aware datetime."""
        raise NotImplementedError(self.to_datetime)

    def to_ical(self, offset_for: Optional[OffsetFunction] = None) -> str:
        raise NotImplementedError(self.to_ical)

    def add_exact(self, delta: timedelta) -> "Temporal":
        """Add an exact duration, ignoring calendar and wall clock."""
        raise NotImplementedError(self.add_exact)

    def add_calendar_days(self, n: int, offset_for=None) -> "Temporal":
        raise NotImplementedError(self.add_calendar_days)

    def add_calendar_months(self, n: int, offset_for=None) -> "Temporal":
        raise NotImplementedError(self.add_calendar_months)

    def add_calendar_years(self, n: int, offset_for=None) -> "Temporal":
        raise NotImplementedError(self.add_calendar_years)

    def to_day_code(self, offset_for: Optional[OffsetFunction] = None) -> str:
        """Return the calendar day as YYYYMMDD."""
        d = self.to_calendar_date(offset_for)
        return "%04d%02d%02d" % (d.year, d.month, d.day)


class CalendarDate(Temporal):
    """An all-day value, stored as UTC midnight of its day."""

    __slots__ = ()

    is_date = True

    def __init__(self, value: date) -> None:
        if isinstance(value, datetime):
            value = value.date()
        super().__init__((value.toordinal() - _EPOCH_ORDINAL) * MS_PER_DAY)

    @classmethod
    def from_epoch_ms(cls, epoch_ms: int) -> "CalendarDate":
        """Create from a millisecond offset, truncated to its UTC day."""
        return cls(date.fromordinal(_EPOCH_ORDINAL + epoch_ms // MS_PER_DAY))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_calendar_date()!r})"

    def to_calendar_date(self, offset_for=None):
        return date.fromordinal(_EPOCH_ORDINAL + self._epoch_ms // MS_PER_DAY)

    def to_local_datetime(self, offset_for=None):
        return epoch_to_naive(self._epoch_ms)

    def to_datetime(self):
        return self.to_calendar_date()

    def to_ical(self, offset_for=None):
        return self.to_day_code()

    def add_exact(self, delta):
        # Partial days are truncated; a date never gains a time of day.
        return CalendarDate.from_epoch_ms(self._epoch_ms + _timedelta_ms(delta))

    def add_calendar_days(self, n, offset_for=None):
        return CalendarDate.from_epoch_ms(self._epoch_ms + n * MS_PER_DAY)

    def add_calendar_months(self, n, offset_for=None):
        return CalendarDate(self.to_calendar_date() + relativedelta(months=n))

    def add_calendar_years(self, n, offset_for=None):
        return CalendarDate(self.to_calendar_date() + relativedelta(years=n))


class ZonedInstant(Temporal):
    """A date-time instant, with the zone it was expressed in (None for UTC)."""

    __slots__ = ("_zone",)

    def __init__(self, epoch_ms: int, zone: Optional[str] = None) -> None:
        super().__init__(epoch_ms)
        self._zone = zone

    @property
    def zone(self) -> Optional[str]:
        return self._zone

    def __repr__(self) -> str:
        utc = epoch_to_naive(self._epoch_ms)
        return "{}({!r}, zone={!r})".format(
            type(self).__name__, _format_datetime(utc) + "Z", self._zone
        )

    def with_zone(self, zone: Optional[str]) -> "ZonedInstant":
        """Return the same instant expressed in another zone."""
        return ZonedInstant(self._epoch_ms, zone)

    def to_local_datetime(self, offset_for=None):
        return epoch_to_local(self._zone, self._epoch_ms, offset_for)

    def to_calendar_date(self, offset_for=None):
        return self.to_local_datetime(offset_for).date()

    def to_datetime(self):
        utc = epoch_to_naive(self._epoch_ms).replace(tzinfo=timezone.utc)
        if self._zone is None:
            return utc
        return utc.astimezone(ZoneInfo(self._zone))

    def to_ical(self, offset_for=None):
        if self._zone is None:
            return _format_datetime(epoch_to_naive(self._epoch_ms)) + "Z"
        return _format_datetime(self.to_local_datetime(offset_for))

    def add_exact(self, delta):
        return ZonedInstant(self._epoch_ms + _timedelta_ms(delta), self._zone)

    def _shift(self, delta, offset_for):
        local = self.to_local_datetime(offset_for) + delta
        return ZonedInstant(local_to_epoch(self._zone, local, offset_for), self._zone)

    def add_calendar_days(self, n, offset_for=None):
        return self._shift(relativedelta(days=n), offset_for)

    def add_calendar_months(self, n, offset_for=None):
        return self._shift(relativedelta(months=n), offset_for)

    def add_calendar_years(self, n, offset_for=None):
        return self._shift(relativedelta(years=n), offset_for)


def _timedelta_ms(delta):
    return (delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000


def _format_datetime(dt):
    return "%04d%02d%02dT%02d%02d%02d" % (
        dt.year,
        dt.month,
        dt.day,
        dt.hour,
        dt.minute,
        dt.second,
    )


def from_date(value: date) -> CalendarDate:
    return CalendarDate(value)


def from_local_datetime(
    local: datetime,
    zone: Optional[str] = None,
    offset_for: Optional[OffsetFunction] = None,
) -> ZonedInstant:
    """Create an instant from a naive wall-clock time in a zone."""
    zone = resolve_zone(zone)
    return ZonedInstant(local_to_epoch(zone, local, offset_for), zone)


def from_datetime(
    dt: datetime, default_timezone: Union[str, tzinfo, None] = None
) -> ZonedInstant:
    """Create an instant from a datetime.

    Naive (floating) datetimes are read in default_timezone, or UTC if that
    is not set.
    """
    if dt.tzinfo is None:
        if default_timezone is None or isinstance(default_timezone, str):
            return from_local_datetime(dt, default_timezone)
        dt = dt.replace(tzinfo=default_timezone)
    utc = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return ZonedInstant(naive_to_epoch(utc), zone_from_tzinfo(dt))


def from_date_or_datetime(
    value: Union[date, datetime],
    default_timezone: Union[str, tzinfo, None] = None,
) -> Temporal:
    if isinstance(value, datetime):
        return from_datetime(value, default_timezone)
    if isinstance(value, date):
        return from_date(value)
    raise TypeError(f"expected date or datetime, got {type(value).__name__}")


def from_timestamp(
    epoch_ms: int, zone: Optional[str] = None, is_date: bool = False
) -> Temporal:
    if is_date:
        return CalendarDate.from_epoch_ms(epoch_ms)
    return ZonedInstant(epoch_ms, zone)


def now() -> ZonedInstant:
    return ZonedInstant(time.time_ns() // 1000000)


def parse(
    value: str,
    tzid: Optional[str] = None,
    offset_for: Optional[OffsetFunction] = None,
) -> Temporal:
    """Parse an iCalendar DATE or DATE-TIME value.

    Args:
      value: Text such as ``20231215``, ``20231215T140000Z`` or
        ``20231215T140000``
      tzid: TZID parameter for local date-times; floating values without
        one are read as UTC
    Returns: a CalendarDate or ZonedInstant
    Raises:
      InvalidDateTime: if the text is not a DATE or DATE-TIME
    """
    text = value.strip()
    m = _UTC_RE.match(text)
    try:
        if _DATE_RE.match(text):
            return from_date(datetime.strptime(text, "%Y%m%d").date())
        elif m:
            utc = datetime.strptime(m.group(1), "%Y%m%dT%H%M%S")
            return ZonedInstant(naive_to_epoch(utc))
        elif _LOCAL_RE.match(text):
            local = datetime.strptime(text, "%Y%m%dT%H%M%S")
            return from_local_datetime(local, tzid, offset_for)
    except ValueError as e:
        raise InvalidDateTime(value) from e
    raise InvalidDateTime(value)
