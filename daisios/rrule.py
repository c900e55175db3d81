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


"""Recurrence rules.

See RFC 5545, section 3.3.10.
"""

import enum
import re
from typing import Optional
from zoneinfo import ZoneInfo

from icalendar.prop import vRecur

from .temporal import Temporal, ZonedInstant, from_date_or_datetime


class InvalidRecurrenceRule(ValueError):
    """A recurrence rule that could not be understood."""

    def __init__(self, text, reason) -> None:
        super().__init__(f"Invalid recurrence rule {text!r}: {reason}")
        self.text = text
        self.reason = reason


class Frequency(enum.Enum):
    SECONDLY = "SECONDLY"
    MINUTELY = "MINUTELY"
    HOURLY = "HOURLY"
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class Weekday(enum.Enum):
    """Day of the week, valued like datetime.weekday()."""

    MO = 0
    TU = 1
    WE = 2
    TH = 3
    FR = 4
    SA = 5
    SU = 6

    @classmethod
    def from_ical(cls, text: str) -> "Weekday":
        try:
            return cls[text.strip().upper()]
        except KeyError:
            raise InvalidRecurrenceRule(text, "unknown weekday") from None

    def to_ical(self) -> str:
        return self.name


_WEEKDAYNUM_RE = re.compile(r"^([+-]?\d{1,2})?([A-Za-z]{2})$")


class WeekdayNum:
    """A BYDAY entry: a weekday, optionally qualified by an ordinal.

    An ordinal of 2 means "the second", -1 "the last" such weekday in the
    month or year; it only has meaning for MONTHLY and YEARLY rules.
    """

    __slots__ = ("_weekday", "_ordinal")

    def __init__(self, weekday: Weekday, ordinal: Optional[int] = None) -> None:
        self._weekday = weekday
        self._ordinal = ordinal

    @property
    def weekday(self) -> Weekday:
        return self._weekday

    @property
    def ordinal(self) -> Optional[int]:
        return self._ordinal

    def __eq__(self, other):
        if not isinstance(other, WeekdayNum):
            return NotImplemented
        return (self._weekday, self._ordinal) == (other._weekday, other._ordinal)

    def __hash__(self):
        return hash((self._weekday, self._ordinal))

    def __repr__(self) -> str:
        if self._ordinal is None:
            return f"{type(self).__name__}({self._weekday})"
        return f"{type(self).__name__}({self._weekday}, {self._ordinal!r})"

    @classmethod
    def from_ical(cls, text: str) -> "WeekdayNum":
        m = _WEEKDAYNUM_RE.match(text.strip())
        if not m:
            raise InvalidRecurrenceRule(text, "invalid BYDAY entry")
        weekday = Weekday.from_ical(m.group(2))
        if m.group(1) is None:
            return cls(weekday)
        return cls(weekday, int(m.group(1)))

    def to_ical(self) -> str:
        if self._ordinal is None:
            return self._weekday.name
        return f"{self._ordinal}{self._weekday.name}"


def _freeze(values):
    if values is None:
        return None
    return tuple(values)


def _ints(recur, key):
    try:
        values = recur[key]
    except KeyError:
        return None
    if not isinstance(values, list):
        values = [values]
    return tuple(int(v) for v in values)


def _single(recur, key):
    try:
        values = recur[key]
    except KeyError:
        return None
    if isinstance(values, list):
        if not values:
            return None
        return values[0]
    return values


class RecurrenceRule:
    """An immutable RRULE value.

    Only the frequency is required. Filters left as None are unconstrained.
    Nothing is validated here: a zero or negative interval, or a rule with
    both count and until, is accepted and resolved during expansion.
    """

    __slots__ = (
        "_frequency",
        "_interval",
        "_count",
        "_until",
        "_by_day",
        "_by_month_day",
        "_by_month",
        "_by_week_no",
        "_by_year_day",
        "_by_set_pos",
        "_week_start",
    )

    def __init__(
        self,
        frequency: Frequency,
        interval: int = 1,
        count: Optional[int] = None,
        until: Optional[Temporal] = None,
        by_day=None,
        by_month_day=None,
        by_month=None,
        by_week_no=None,
        by_year_day=None,
        by_set_pos=None,
        week_start: Weekday = Weekday.MO,
    ) -> None:
        self._frequency = frequency
        self._interval = interval
        self._count = count
        self._until = until
        self._by_day = _freeze(by_day)
        self._by_month_day = _freeze(by_month_day)
        self._by_month = _freeze(by_month)
        self._by_week_no = _freeze(by_week_no)
        self._by_year_day = _freeze(by_year_day)
        self._by_set_pos = _freeze(by_set_pos)
        self._week_start = week_start

    frequency = property(lambda self: self._frequency)
    interval = property(lambda self: self._interval)
    count = property(lambda self: self._count)
    until = property(lambda self: self._until)
    by_day = property(lambda self: self._by_day)
    by_month_day = property(lambda self: self._by_month_day)
    by_month = property(lambda self: self._by_month)
    by_week_no = property(lambda self: self._by_week_no)
    by_year_day = property(lambda self: self._by_year_day)
    by_set_pos = property(lambda self: self._by_set_pos)
    week_start = property(lambda self: self._week_start)

    def _fields(self) -> dict:
        return {name[1:]: getattr(self, name) for name in self.__slots__}

    def __eq__(self, other):
        if not isinstance(other, RecurrenceRule):
            return NotImplemented
        return self._fields() == other._fields()

    def __hash__(self):
        return hash(tuple(self._fields().values()))

    def __repr__(self) -> str:
        args = [repr(self._frequency)]
        for name, value in self._fields().items():
            if name == "frequency" or value is None:
                continue
            if (name, value) in (("interval", 1), ("week_start", Weekday.MO)):
                continue
            args.append(f"{name}={value!r}")
        return "{}({})".format(type(self).__name__, ", ".join(args))

    def replace(self, **overrides) -> "RecurrenceRule":
        """Return a copy with some fields replaced."""
        fields = self._fields()
        fields.update(overrides)
        return type(self)(**fields)

    @classmethod
    def from_vrecur(cls, recur, default_timezone=None) -> "RecurrenceRule":
        """Create from a parsed icalendar vRecur value.

        Args:
          recur: icalendar.prop.vRecur (or a dict with the same layout)
          default_timezone: zone to read a floating UNTIL in
        Raises:
          InvalidRecurrenceRule: if FREQ is missing or unknown
        """
        freq = _single(recur, "FREQ")
        if freq is None:
            raise InvalidRecurrenceRule(recur, "missing FREQ")
        try:
            frequency = Frequency(str(freq).upper())
        except ValueError:
            raise InvalidRecurrenceRule(recur, f"unknown FREQ {freq!r}") from None
        until = _single(recur, "UNTIL")
        if until is not None:
            until = from_date_or_datetime(until, default_timezone)
        by_day = recur.get("BYDAY")
        if by_day is not None:
            if not isinstance(by_day, list):
                by_day = [by_day]
            by_day = [WeekdayNum.from_ical(str(v)) for v in by_day]
        wkst = _single(recur, "WKST")
        interval = _single(recur, "INTERVAL")
        count = _single(recur, "COUNT")
        return cls(
            frequency,
            interval=1 if interval is None else int(interval),
            count=None if count is None else int(count),
            until=until,
            by_day=by_day,
            by_month_day=_ints(recur, "BYMONTHDAY"),
            by_month=_ints(recur, "BYMONTH"),
            by_week_no=_ints(recur, "BYWEEKNO"),
            by_year_day=_ints(recur, "BYYEARDAY"),
            by_set_pos=_ints(recur, "BYSETPOS"),
            week_start=Weekday.MO if wkst is None else Weekday.from_ical(str(wkst)),
        )

    @classmethod
    def from_ical(cls, text: str) -> "RecurrenceRule":
        """Parse RRULE text such as ``FREQ=MONTHLY;BYDAY=2TU``."""
        text = text.strip().upper()
        if text.startswith("RRULE:"):
            text = text[len("RRULE:") :]
        try:
            recur = vRecur.from_ical(text)
        except ValueError as e:
            raise InvalidRecurrenceRule(text, str(e)) from e
        if "FREQ" not in recur:
            raise InvalidRecurrenceRule(text, "missing FREQ")
        return cls.from_vrecur(recur)

    def to_vrecur(self) -> vRecur:
        recur = vRecur()
        recur["FREQ"] = [self._frequency.value]
        if self._until is not None:
            if self._until.is_date:
                recur["UNTIL"] = [self._until.to_datetime()]
            else:
                # UNTIL is always written in UTC for date-time rules.
                utc = ZonedInstant(self._until.epoch_ms).to_datetime()
                recur["UNTIL"] = [utc.replace(tzinfo=ZoneInfo("UTC"))]
        if self._count is not None:
            recur["COUNT"] = [self._count]
        if self._interval != 1:
            recur["INTERVAL"] = [self._interval]
        if self._by_day:
            recur["BYDAY"] = [wdn.to_ical() for wdn in self._by_day]
        for key, values in [
            ("BYMONTHDAY", self._by_month_day),
            ("BYYEARDAY", self._by_year_day),
            ("BYWEEKNO", self._by_week_no),
            ("BYMONTH", self._by_month),
            ("BYSETPOS", self._by_set_pos),
        ]:
            if values:
                recur[key] = list(values)
        if self._week_start != Weekday.MO:
            recur["WKST"] = [self._week_start.name]
        return recur

    def to_ical(self) -> str:
        return self.to_vrecur().to_ical().decode("utf-8")
