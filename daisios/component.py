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


"""Recurring components and their occurrences."""

from datetime import timedelta
from typing import Optional

from .rrule import RecurrenceRule
from .temporal import Temporal


def add_duration(start: Temporal, duration: timedelta, offset_for=None) -> Temporal:
    """Add a DURATION value to a start time.

    Whole days are nominal: they move the wall clock (or the calendar date)
    rather than adding multiples of 24 hours. The remainder is exact.
    """
    days = duration.days
    end = start.add_calendar_days(days, offset_for) if days else start
    rest = duration - timedelta(days=days)
    if rest:
        end = end.add_exact(rest)
    return end


class RecurringComponent:
    """An event, task or journal entry, as far as recurrence is concerned.

    Args:
      start: Anchor start (DTSTART)
      end: Explicit end (DTEND, or DUE for tasks)
      duration: DURATION, used when there is no explicit end
      rule: Recurrence rule (RRULE)
      rdates: Extra occurrence start times (RDATE)
      exdates: Excluded occurrence start times (EXDATE)
      recurrence_id: Set when this component is a detached override of one
        occurrence of the master component with the same uid
    """

    __slots__ = (
        "_start",
        "_end",
        "_duration",
        "_rule",
        "_rdates",
        "_exdates",
        "_recurrence_id",
        "_uid",
        "_summary",
        "_status",
        "_kind",
    )

    def __init__(
        self,
        start: Temporal,
        end: Optional[Temporal] = None,
        duration: Optional[timedelta] = None,
        rule: Optional[RecurrenceRule] = None,
        rdates=(),
        exdates=(),
        recurrence_id: Optional[Temporal] = None,
        uid: Optional[str] = None,
        summary: Optional[str] = None,
        status: Optional[str] = None,
        kind: str = "VEVENT",
    ) -> None:
        self._start = start
        self._end = end
        self._duration = duration
        self._rule = rule
        # Ordered, with repeated instants collapsed.
        self._rdates = tuple(dict.fromkeys(rdates))
        self._exdates = frozenset(exdates)
        self._recurrence_id = recurrence_id
        self._uid = uid
        self._summary = summary
        self._status = status
        self._kind = kind

    start = property(lambda self: self._start)
    end = property(lambda self: self._end)
    duration = property(lambda self: self._duration)
    rule = property(lambda self: self._rule)
    rdates = property(lambda self: self._rdates)
    exdates = property(lambda self: self._exdates)
    recurrence_id = property(lambda self: self._recurrence_id)
    uid = property(lambda self: self._uid)
    summary = property(lambda self: self._summary)
    status = property(lambda self: self._status)
    kind = property(lambda self: self._kind)

    def _fields(self) -> dict:
        return {name[1:]: getattr(self, name) for name in self.__slots__}

    def __eq__(self, other):
        if not isinstance(other, RecurringComponent):
            return NotImplemented
        return self._fields() == other._fields()

    def __hash__(self):
        return hash((self._uid, self._start, self._recurrence_id))

    def __repr__(self) -> str:
        return "{}(uid={!r}, start={!r}, rule={!r})".format(
            type(self).__name__, self._uid, self._start, self._rule
        )

    def replace(self, **overrides) -> "RecurringComponent":
        """Return a copy with some fields replaced."""
        fields = self._fields()
        fields.update(overrides)
        return type(self)(**fields)

    @property
    def is_all_day(self) -> bool:
        return self._start.is_date

    def is_recurring(self) -> bool:
        return self._rule is not None or bool(self._rdates)

    def is_override(self) -> bool:
        return self._recurrence_id is not None

    def end_for(self, start: Temporal, offset_for=None) -> Temporal:
        """Find the end of an occurrence of this component starting at start."""
        if self._end is not None:
            delta = start.epoch_ms - self._start.epoch_ms
            return self._end.add_exact(timedelta(milliseconds=delta))
        if self._duration is not None:
            return add_duration(start, self._duration, offset_for)
        if start.is_date:
            return start.add_calendar_days(1)
        return start

    def effective_end(self, offset_for=None) -> Temporal:
        return self.end_for(self._start, offset_for)


class OccurrenceInstance:
    """One materialized occurrence of a component."""

    __slots__ = ("_component", "_start", "_end", "_recurrence_id")

    def __init__(
        self,
        component: RecurringComponent,
        start: Temporal,
        end: Temporal,
        recurrence_id: Optional[Temporal] = None,
    ) -> None:
        self._component = component
        self._start = start
        self._end = end
        self._recurrence_id = start if recurrence_id is None else recurrence_id

    component = property(lambda self: self._component)
    start = property(lambda self: self._start)
    end = property(lambda self: self._end)
    recurrence_id = property(lambda self: self._recurrence_id)

    @property
    def is_all_day(self) -> bool:
        return self._start.is_date

    @property
    def duration(self) -> timedelta:
        return timedelta(milliseconds=self._end.epoch_ms - self._start.epoch_ms)

    def __eq__(self, other):
        if not isinstance(other, OccurrenceInstance):
            return NotImplemented
        return (
            self._component,
            self._start,
            self._end,
            self._recurrence_id,
        ) == (other._component, other._start, other._end, other._recurrence_id)

    def __hash__(self):
        return hash((self._start, self._end, self._recurrence_id))

    def __repr__(self) -> str:
        return "{}(start={!r}, end={!r}, summary={!r})".format(
            type(self).__name__, self._start, self._end, self._component.summary
        )
