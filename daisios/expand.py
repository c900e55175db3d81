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


"""Recurrence expansion.

The occurrences of a component are::

    (DTSTART + RRULE + RDATE) - EXDATE

restricted to a time window. The rule is evaluated in the local frame of the
anchor start: UTC midnights for all-day components, the wall clock of the
anchor's zone for date-times. dateutil computes the per-period sets (BYxxx
expansion and BYSETPOS); termination, window bounds and resource limits are
applied here.

Expansion is a pure function of its arguments. Malformed rules never raise;
they produce an empty or truncated result instead.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Optional

import dateutil.rrule

from .component import OccurrenceInstance, RecurringComponent
from .rrule import Frequency, RecurrenceRule, Weekday
from .temporal import CalendarDate, Temporal, ZonedInstant
from .timezones import (
    MS_PER_DAY,
    OffsetFunction,
    epoch_to_local,
    epoch_to_naive,
    local_to_epoch,
    zoneinfo_offset,
)
from .window import TimeWindow

DEFAULT_MAX_CANDIDATES = 100000
DEFAULT_MAX_OCCURRENCES = 10000

_DATEUTIL_FREQUENCIES = {
    Frequency.YEARLY: dateutil.rrule.YEARLY,
    Frequency.MONTHLY: dateutil.rrule.MONTHLY,
    Frequency.WEEKLY: dateutil.rrule.WEEKLY,
    Frequency.DAILY: dateutil.rrule.DAILY,
    Frequency.HOURLY: dateutil.rrule.HOURLY,
    Frequency.MINUTELY: dateutil.rrule.MINUTELY,
    Frequency.SECONDLY: dateutil.rrule.SECONDLY,
}

_DATEUTIL_WEEKDAYS = {
    Weekday.MO: dateutil.rrule.MO,
    Weekday.TU: dateutil.rrule.TU,
    Weekday.WE: dateutil.rrule.WE,
    Weekday.TH: dateutil.rrule.TH,
    Weekday.FR: dateutil.rrule.FR,
    Weekday.SA: dateutil.rrule.SA,
    Weekday.SU: dateutil.rrule.SU,
}

_SECONDS_PER_PERIOD = {
    Frequency.HOURLY: 3600,
    Frequency.MINUTELY: 60,
    Frequency.SECONDLY: 1,
}

# (dateutil keyword, rule attribute, largest magnitude allowed)
_NUMERIC_FILTERS = [
    ("bymonthday", "by_month_day", 31),
    ("byyearday", "by_year_day", 366),
    ("byweekno", "by_week_no", 53),
    ("bysetpos", "by_set_pos", 366),
]

# Size of the largest set a single period can produce; one for DAILY and
# shorter periods.
_MAX_SET_SIZE = {
    Frequency.YEARLY: 366,
    Frequency.MONTHLY: 31,
    Frequency.WEEKLY: 7,
}

_MONTH_LENGTHS = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


class ExpansionLimits:
    """Bounds on the work done by a single expansion.

    Args:
      max_candidates: Rule candidates examined before giving up
      max_occurrences: Occurrences returned at most
      time_budget: Wall-clock seconds allowed, or None for no limit
    """

    def __init__(
        self,
        max_candidates: int = DEFAULT_MAX_CANDIDATES,
        max_occurrences: int = DEFAULT_MAX_OCCURRENCES,
        time_budget: Optional[float] = None,
    ) -> None:
        self.max_candidates = max_candidates
        self.max_occurrences = max_occurrences
        self.time_budget = time_budget

    def __repr__(self) -> str:
        return "{}(max_candidates={!r}, max_occurrences={!r}, time_budget={!r})".format(
            type(self).__name__,
            self.max_candidates,
            self.max_occurrences,
            self.time_budget,
        )

    def __eq__(self, other):
        if not isinstance(other, ExpansionLimits):
            return NotImplemented
        return (self.max_candidates, self.max_occurrences, self.time_budget) == (
            other.max_candidates,
            other.max_occurrences,
            other.time_budget,
        )


DEFAULT_LIMITS = ExpansionLimits()


def _to_local(anchor: Temporal, epoch_ms: int, offset_for) -> datetime:
    if anchor.is_date:
        return epoch_to_naive(epoch_ms)
    return epoch_to_local(anchor.zone, epoch_ms, offset_for)


def _from_local(anchor: Temporal, local: datetime, offset_for) -> Temporal:
    if anchor.is_date:
        return CalendarDate(local.date())
    return ZonedInstant(local_to_epoch(anchor.zone, local, offset_for), anchor.zone)


def _local_bound(anchor: Temporal, epoch_ms: int, offset_for) -> datetime:
    """Like _to_local, but clamped to what datetime can represent."""
    try:
        return _to_local(anchor, epoch_ms, offset_for)
    except OverflowError:
        return datetime.max if epoch_ms > 0 else datetime.min


def _max_weekday_ordinal(rule: RecurrenceRule) -> int:
    if rule.frequency == Frequency.MONTHLY or (
        rule.frequency == Frequency.YEARLY and rule.by_month
    ):
        return 5
    return 53


def _rrule_filters(rule: RecurrenceRule) -> Optional[dict]:
    """Translate the BYxxx parts of a rule into dateutil keywords.

    Zero and out-of-range entries are dropped. Returns None when a filter
    is left with nothing that could ever match.
    """
    kwargs = {}
    for keyword, attr, limit in _NUMERIC_FILTERS:
        values = getattr(rule, attr)
        if not values:
            continue
        if keyword == "bysetpos":
            limit = _MAX_SET_SIZE.get(rule.frequency, 1)
        valid = [v for v in values if v != 0 and -limit <= v <= limit]
        if not valid:
            return None
        kwargs[keyword] = valid
    if rule.by_month:
        months = [m for m in rule.by_month if 1 <= m <= 12]
        if not months:
            return None
        kwargs["bymonth"] = months
    if rule.by_day:
        ordinal_limit = _max_weekday_ordinal(rule)
        weekdays = []
        for wdn in rule.by_day:
            weekday = _DATEUTIL_WEEKDAYS[wdn.weekday]
            if not wdn.ordinal or rule.frequency not in (
                Frequency.MONTHLY,
                Frequency.YEARLY,
            ):
                weekdays.append(weekday)
            elif -ordinal_limit <= wdn.ordinal <= ordinal_limit:
                weekdays.append(weekday(wdn.ordinal))
        if not weekdays:
            return None
        kwargs["byweekday"] = weekdays
    return kwargs


def _implied_filters(rule: RecurrenceRule, dtstart: datetime) -> dict:
    """Return the filters dateutil would otherwise derive from dtstart."""
    if rule.by_week_no or rule.by_year_day or rule.by_month_day or rule.by_day:
        return {}
    if rule.frequency == Frequency.YEARLY:
        return {
            "bymonth": list(rule.by_month) if rule.by_month else [dtstart.month],
            "bymonthday": [dtstart.day],
        }
    if rule.frequency == Frequency.MONTHLY:
        return {"bymonthday": [dtstart.day]}
    if rule.frequency == Frequency.WEEKLY:
        return {"byweekday": [_DATEUTIL_WEEKDAYS[Weekday(dtstart.weekday())]]}
    return {}


def _reachable_months(rule: RecurrenceRule, dtstart: datetime) -> set:
    """Return the (leap year, month) pairs the rule's periods can fall in."""
    n = rule.interval
    if rule.frequency == Frequency.YEARLY:
        leaps = {(dtstart.year + k * n) % 4 == 0 for k in range(4)}
        return {(leap, month) for leap in leaps for month in range(1, 13)}
    if rule.frequency == Frequency.MONTHLY:
        first = (dtstart.year % 4) * 12 + dtstart.month - 1
        indexes = {(first + k * n) % 48 for k in range(48)}
        return {(i < 12, i % 12 + 1) for i in indexes}
    return {(leap, month) for leap in (False, True) for month in range(1, 13)}


def _in_week(yearday: int, week_numbers) -> bool:
    # Week 1 starts somewhere between December 29th and January 4th.
    for week in week_numbers:
        for weeks_in_year in (52, 53):
            w = week if week > 0 else weeks_in_year + 1 + week
            if 7 * w - 9 <= yearday <= 7 * w + 3:
                return True
    return False


def _at_ordinal(position: int, length: int, ordinals) -> bool:
    for n in ordinals:
        if n > 0 and 7 * n - 6 <= position <= 7 * n:
            return True
        if n < 0 and length + 7 * n + 1 <= position <= length + 7 * n + 7:
            return True
    return False


def _can_match(rule: RecurrenceRule, filters: dict, dtstart: datetime) -> bool:
    """Check whether any date could ever satisfy the filters together.

    Every date falls on every weekday in some year, so weekdays only
    constrain the position in the month or year. Week numbers are widened to
    the days they could cover. False is only returned for rules that would
    never produce another date.
    """
    months = filters.get("bymonth")
    month_days = filters.get("bymonthday")
    year_days = filters.get("byyearday")
    week_numbers = filters.get("byweekno")
    ordinals = None
    weekdays = filters.get("byweekday")
    if weekdays and all(wd.n for wd in weekdays):
        ordinals = [wd.n for wd in weekdays]
    within_month = rule.frequency == Frequency.MONTHLY or bool(months)
    for leap, month in _reachable_months(rule, dtstart):
        if months and month not in months:
            continue
        year_length = 366 if leap else 365
        month_length = _MONTH_LENGTHS[month - 1]
        first = sum(_MONTH_LENGTHS[: month - 1])
        if leap and month == 2:
            month_length += 1
        elif leap and month > 2:
            first += 1
        for mday in range(1, month_length + 1):
            yday = first + mday
            if month_days and not (
                mday in month_days or mday - month_length - 1 in month_days
            ):
                continue
            if year_days and not (
                yday in year_days or yday - year_length - 1 in year_days
            ):
                continue
            if week_numbers and not _in_week(yday, week_numbers):
                continue
            if ordinals:
                if within_month:
                    if not _at_ordinal(mday, month_length, ordinals):
                        continue
                elif not _at_ordinal(yday, year_length, ordinals):
                    continue
            return True
    return False


def _skip_periods(
    rule: RecurrenceRule, dtstart: datetime, lower: datetime
) -> Optional[datetime]:
    """Find a later period start from which to resume generation.

    Whole multiples of the interval are skipped, so the periods that follow
    are exactly those the rule would have visited. One spare period is kept
    before lower. Returns None if nothing can be skipped.
    """
    n = rule.interval
    if rule.frequency == Frequency.YEARLY:
        k = (lower.year - dtstart.year) // n - 1
        if k < 1:
            return None
        return dtstart.replace(year=dtstart.year + k * n, month=1, day=1)
    if rule.frequency == Frequency.MONTHLY:
        months = (lower.year - dtstart.year) * 12 + lower.month - dtstart.month
        k = months // n - 1
        if k < 1:
            return None
        index = dtstart.year * 12 + dtstart.month - 1 + k * n
        return dtstart.replace(year=index // 12, month=index % 12 + 1, day=1)
    if rule.frequency == Frequency.WEEKLY:
        week_start = dtstart - timedelta(
            days=(dtstart.weekday() - rule.week_start.value) % 7
        )
        k = (lower - week_start).days // 7 // n - 1
        if k < 1:
            return None
        return week_start + timedelta(weeks=k * n)
    if rule.frequency == Frequency.DAILY:
        k = (lower - dtstart).days // n - 1
        if k < 1:
            return None
        return dtstart + timedelta(days=k * n)
    seconds = _SECONDS_PER_PERIOD[rule.frequency]
    k = int((lower - dtstart).total_seconds()) // seconds // n - 1
    if k < 1:
        return None
    return dtstart + timedelta(seconds=k * n * seconds)


def _after_until(value: Temporal, until: Temporal, offset_for) -> bool:
    if until.is_date and not value.is_date:
        # A DATE UNTIL on a date-time rule covers the whole local day.
        return value.to_calendar_date(offset_for) > until.to_calendar_date()
    return value > until


def _rule_starts(
    component: RecurringComponent,
    window: TimeWindow,
    limits: ExpansionLimits,
    offset_for: OffsetFunction,
):
    """Generate the start times produced by a component's rule.

    Yields in increasing order. Count and until are measured from the anchor,
    never from the window; the anchor itself always takes the first count
    slot.
    """
    rule = component.rule
    anchor = component.start
    filters = _rrule_filters(rule)
    if filters is None:
        logging.debug("Recurrence rule %r can never match", rule)
        return
    dtstart = _to_local(anchor, anchor.epoch_ms, offset_for)
    if not _can_match(rule, dict(_implied_filters(rule, dtstart), **filters), dtstart):
        logging.debug("Recurrence rule %r can never match", rule)
        return
    # dateutil only compares this against the values it yields; rules that
    # yield nothing have been rejected above.
    scan_until = _local_bound(anchor, window.end.epoch_ms + MS_PER_DAY, offset_for)
    if rule.count is None:
        span = max(0, component.effective_end(offset_for).epoch_ms - anchor.epoch_ms)
        lower = _local_bound(
            anchor, window.start.epoch_ms - span - MS_PER_DAY, offset_for
        )
        resume = _skip_periods(rule, dtstart, lower)
        if resume is not None:
            filters = dict(_implied_filters(rule, dtstart), **filters)
            dtstart = resume
    generator = dateutil.rrule.rrule(
        _DATEUTIL_FREQUENCIES[rule.frequency],
        dtstart=dtstart,
        interval=rule.interval,
        wkst=_DATEUTIL_WEEKDAYS[rule.week_start],
        until=scan_until,
        **filters,
    )
    deadline = None
    if limits.time_budget is not None:
        deadline = time.monotonic() + limits.time_budget
    accepted = 0
    examined = 0
    previous = None
    for local in generator:
        examined += 1
        if examined > limits.max_candidates:
            logging.warning(
                "Expansion of %r stopped after %d candidates",
                component,
                limits.max_candidates,
            )
            return
        if deadline is not None and time.monotonic() > deadline:
            logging.warning(
                "Expansion of %r exceeded its time budget of %ss",
                component,
                limits.time_budget,
            )
            return
        value = _from_local(anchor, local, offset_for)
        if previous is not None and value <= previous:
            # A wall-clock time in a DST gap lands on the next valid time.
            continue
        previous = value
        if rule.count is not None:
            if accepted == 0 and value != anchor:
                accepted = 1
            if accepted >= rule.count:
                return
        if rule.until is not None and _after_until(value, rule.until, offset_for):
            return
        if value >= window.end:
            return
        accepted += 1
        yield value


def _materialize(
    component: RecurringComponent,
    starts,
    window: TimeWindow,
    limits: ExpansionLimits,
    offset_for: OffsetFunction,
    recurrence_id: Optional[Temporal] = None,
) -> list[OccurrenceInstance]:
    ret = []
    for start in starts:
        if start >= window.end:
            break
        end = component.end_for(start, offset_for)
        if not window.overlaps(start, end):
            continue
        if len(ret) >= limits.max_occurrences:
            logging.warning(
                "Expansion of %r truncated at %d occurrences",
                component,
                limits.max_occurrences,
            )
            break
        ret.append(OccurrenceInstance(component, start, end, recurrence_id))
    return ret


def expand(
    component: RecurringComponent,
    window: TimeWindow,
    limits: Optional[ExpansionLimits] = None,
    offset_for: Optional[OffsetFunction] = None,
) -> list[OccurrenceInstance]:
    """Expand a component into its occurrences within a window.

    Args:
      component: The component to expand
      window: Only occurrences overlapping [window.start, window.end) are
        returned; all-day components are matched against the calendar days
        the window touches
      limits: Work limits; DEFAULT_LIMITS if not given
      offset_for: Zone offset lookup; the zoneinfo database if not given
    Returns: occurrences, strictly ordered by start
    """
    if limits is None:
        limits = DEFAULT_LIMITS
    if offset_for is None:
        offset_for = zoneinfo_offset
    if component.start.is_date:
        window = window.as_dates(offset_for)
    rule = component.rule
    if rule is None and not component.rdates:
        return _materialize(
            component,
            [component.start],
            window,
            limits,
            offset_for,
            component.recurrence_id,
        )
    if rule is not None and rule.interval <= 0:
        logging.debug(
            "Recurrence rule with interval %d has no occurrences", rule.interval
        )
        return []
    starts = {component.start}
    if rule is not None:
        starts.update(_rule_starts(component, window, limits, offset_for))
    starts.update(component.rdates)
    excluded = {(exdate.is_date, exdate.epoch_ms) for exdate in component.exdates}
    starts = [s for s in starts if (s.is_date, s.epoch_ms) not in excluded]
    starts.sort()
    return _materialize(component, starts, window, limits, offset_for)
