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


"""Time windows that bound recurrence expansion."""

from datetime import datetime, time, timezone
from typing import Optional

from . import temporal as _mod_temporal
from .temporal import CalendarDate, Temporal, ZonedInstant

# Matching the min/max date-time a CalDAV server typically advertises.
MIN_EXPANSION_TIME = datetime(1, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
MAX_EXPANSION_TIME = datetime(9999, 12, 31, 23, 59, 59, tzinfo=timezone.utc)

# Days either side of now covered by a typical client sync.
SYNC_WINDOW_DAYS = 365


def _calendar_bound(value, offset_for, round_up):
    if value.is_date:
        return value
    try:
        local = value.to_local_datetime(offset_for)
        ret = CalendarDate(local.date())
        if round_up and local.time() != time(0):
            ret = ret.add_calendar_days(1)
    except (OverflowError, ValueError):
        # Beyond the representable dates; the instant is as good a bound.
        return value
    return ret


class TimeWindow:
    """A half-open range of time: start is inclusive, end exclusive."""

    __slots__ = ("_start", "_end")

    def __init__(self, start: Temporal, end: Temporal) -> None:
        self._start = start
        self._end = end

    @property
    def start(self) -> Temporal:
        return self._start

    @property
    def end(self) -> Temporal:
        return self._end

    def __eq__(self, other):
        if not isinstance(other, TimeWindow):
            return NotImplemented
        return (self._start, self._end) == (other._start, other._end)

    def __hash__(self):
        return hash((self._start, self._end))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._start!r}, {self._end!r})"

    def contains(self, value: Temporal) -> bool:
        return self._start <= value < self._end

    def overlaps(self, start: Temporal, end: Temporal) -> bool:
        """Check whether [start, end) intersects this window.

        Zero-length intervals are points; they overlap when contained.
        """
        if end <= start:
            return self.contains(start)
        return start < self._end and end > self._start

    def as_dates(self, offset_for=None) -> "TimeWindow":
        """Return the window covering the calendar days this one touches.

        Days are read in each bound's own zone; a partly covered day is
        included. All-day values must be compared against this window, not
        against the instants.
        """
        return TimeWindow(
            _calendar_bound(self._start, offset_for, False),
            _calendar_bound(self._end, offset_for, True),
        )

    @classmethod
    def unbounded(cls) -> "TimeWindow":
        return cls(
            _mod_temporal.from_datetime(MIN_EXPANSION_TIME),
            _mod_temporal.from_datetime(MAX_EXPANSION_TIME),
        )

    @classmethod
    def for_month(
        cls, year: int, month: int, zone: Optional[str] = None, offset_for=None
    ) -> "TimeWindow":
        """Cover one calendar month, midnight to midnight in zone."""
        first = _mod_temporal.from_local_datetime(
            datetime(year, month, 1), zone, offset_for
        )
        return cls(first, first.add_calendar_months(1, offset_for))

    @classmethod
    def around_now(
        cls,
        days_before: int,
        days_after: int,
        zone: Optional[str] = None,
        now: Optional[Temporal] = None,
        offset_for=None,
    ) -> "TimeWindow":
        if now is None:
            now = _mod_temporal.now()
        current = ZonedInstant(now.epoch_ms, zone)
        return cls(
            current.add_calendar_days(-days_before, offset_for),
            current.add_calendar_days(days_after, offset_for),
        )

    @classmethod
    def next_days(
        cls, days: int, zone: Optional[str] = None, now=None, offset_for=None
    ) -> "TimeWindow":
        return cls.around_now(0, days, zone, now, offset_for)

    @classmethod
    def sync_window(cls, zone: Optional[str] = None, now=None, offset_for=None):
        return cls.around_now(
            SYNC_WINDOW_DAYS, SYNC_WINDOW_DAYS, zone, now, offset_for
        )
