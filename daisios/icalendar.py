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


"""Reading recurring components from, and writing occurrences to, iCalendar."""

import logging
from datetime import date, datetime
from typing import Iterator, Optional, Union

from icalendar.cal import Calendar, Component
from icalendar.prop import vDate, vDatetime

from . import temporal as _mod_temporal
from .component import OccurrenceInstance, RecurringComponent
from .expand import ExpansionLimits
from .rrule import RecurrenceRule
from .series import expand_series
from .temporal import Temporal
from .timezones import OffsetFunction
from .window import TimeWindow

# Properties that describe the recurrence set, not a single occurrence.
RECURRENCE_PROPERTIES = ["RRULE", "EXRULE", "RDATE", "EXDATE"]


class MissingProperty(Exception):
    def __init__(self, property_name) -> None:
        super().__init__(f"Property {property_name!r} missing")
        self.property_name = property_name


def temporal_from_ical(value, default_timezone="UTC") -> Temporal:
    """Convert an icalendar date or date-time value.

    Args:
      value: A vDDDTypes property, or a plain date or datetime
      default_timezone: Zone for floating date-times
    """
    return _mod_temporal.from_date_or_datetime(
        getattr(value, "dt", value), default_timezone
    )


def rule_from_ical(recur, default_timezone="UTC") -> RecurrenceRule:
    return RecurrenceRule.from_vrecur(recur, default_timezone)


def _date_list(comp: Component, name: str, default_timezone) -> list[Temporal]:
    try:
        props = comp[name]
    except KeyError:
        return []
    if not isinstance(props, list):
        props = [props]
    ret = []
    for prop in props:
        for entry in prop.dts:
            if isinstance(entry.dt, tuple):
                logging.warning(
                    "Ignoring PERIOD value in %s of %s", name, comp.get("UID")
                )
                continue
            ret.append(temporal_from_ical(entry.dt, default_timezone))
    return ret


def _text(comp: Component, name: str) -> Optional[str]:
    value = comp.get(name)
    if value is None:
        return None
    return str(value)


def component_from_ical(comp: Component, default_timezone="UTC") -> RecurringComponent:
    """Extract the recurrence-related properties of a component.

    Raises:
      MissingProperty: if there is no DTSTART
      InvalidRecurrenceRule: if the RRULE can not be understood
    """
    try:
        start = temporal_from_ical(comp["DTSTART"], default_timezone)
    except KeyError:
        raise MissingProperty("DTSTART") from None
    end = None
    for name in ("DTEND", "DUE"):
        if name in comp:
            end = temporal_from_ical(comp[name], default_timezone)
            break
    duration = None
    if end is None and "DURATION" in comp:
        duration = comp["DURATION"].dt
    rule = None
    recur = comp.get("RRULE")
    if isinstance(recur, list):
        if len(recur) > 1:
            logging.warning(
                "%s has %d RRULE properties, using the first",
                comp.get("UID"),
                len(recur),
            )
        recur = recur[0] if recur else None
    if recur is not None:
        rule = rule_from_ical(recur, default_timezone)
    recurrence_id = None
    if "RECURRENCE-ID" in comp:
        recurrence_id = temporal_from_ical(comp["RECURRENCE-ID"], default_timezone)
    status = _text(comp, "STATUS")
    return RecurringComponent(
        start,
        end=end,
        duration=duration,
        rule=rule,
        rdates=_date_list(comp, "RDATE", default_timezone),
        exdates=_date_list(comp, "EXDATE", default_timezone),
        recurrence_id=recurrence_id,
        uid=_text(comp, "UID"),
        summary=_text(comp, "SUMMARY"),
        status=None if status is None else status.upper(),
        kind=comp.name,
    )


def create_prop_from_temporal(value: Temporal):
    """Create a vDate or vDatetime property for a temporal value."""
    if value.is_date:
        return vDate(value.to_datetime())
    return vDatetime(value.to_datetime())


def _as_temporal(value, default_timezone) -> Temporal:
    if isinstance(value, Temporal):
        return value
    return _mod_temporal.from_date_or_datetime(value, default_timezone)


def _occurrence_component(
    incomp: Component, instance: OccurrenceInstance
) -> Component:
    outcomp = incomp.copy()
    for field in RECURRENCE_PROPERTIES:
        if field in outcomp:
            del outcomp[field]
    outcomp["DTSTART"] = create_prop_from_temporal(instance.start)
    for field in ("DTEND", "DUE"):
        if field in outcomp:
            outcomp[field] = create_prop_from_temporal(instance.end)
    outcomp["RECURRENCE-ID"] = create_prop_from_temporal(instance.recurrence_id)
    return outcomp


def _window(start, end, default_timezone) -> TimeWindow:
    unbounded = TimeWindow.unbounded()
    return TimeWindow(
        unbounded.start if start is None else _as_temporal(start, default_timezone),
        unbounded.end if end is None else _as_temporal(end, default_timezone),
    )


def calendar_occurrences(
    incal: Calendar,
    window: TimeWindow,
    default_timezone="UTC",
    limits: Optional[ExpansionLimits] = None,
    offset_for: Optional[OffsetFunction] = None,
) -> Iterator[tuple[OccurrenceInstance, Component]]:
    """Find the occurrences of all components in a calendar within a window.

    Detached overrides are merged into the series of the master with the
    same UID. Components without DTSTART and VTIMEZONEs are skipped.

    Returns: iterator over (occurrence, source component) tuples, ordered
      by master and then by start
    """
    masters = []
    overrides: dict[Optional[str], dict] = {}
    for comp in incal.subcomponents:
        if comp.name == "VTIMEZONE" or "DTSTART" not in comp:
            continue
        parsed = component_from_ical(comp, default_timezone)
        if parsed.is_override():
            overrides.setdefault(parsed.uid, {})[parsed.recurrence_id] = (parsed, comp)
        else:
            masters.append((parsed, comp))

    for master, comp in masters:
        series = overrides.pop(master.uid, {})
        override_map = {rid: parsed for (rid, (parsed, _)) in series.items()}
        for instance in expand_series(master, override_map, window, limits, offset_for):
            if instance.component.is_override():
                yield instance, series[instance.recurrence_id][1]
            else:
                yield instance, comp

    # Overrides without a master in this calendar.
    date_window = window.as_dates(offset_for)
    for series in overrides.values():
        for parsed, comp in series.values():
            end = parsed.effective_end(offset_for)
            bounds = date_window if parsed.start.is_date else window
            if bounds.overlaps(parsed.start, end):
                yield OccurrenceInstance(parsed, parsed.start, end), comp


def expand_calendar(
    incal: Calendar,
    start: Union[Temporal, date, datetime, None] = None,
    end: Union[Temporal, date, datetime, None] = None,
    default_timezone="UTC",
    limits: Optional[ExpansionLimits] = None,
    offset_for: Optional[OffsetFunction] = None,
) -> Calendar:
    """Expand all recurring components in a calendar.

    Every master component is replaced by one component per occurrence in
    [start, end), each with a RECURRENCE-ID. Detached overrides take the
    place of the occurrence they override. Non-recurring components are
    kept if they overlap the range.

    Args:
      incal: Calendar to expand
      start: Start of the range; unbounded if None
      end: End of the range; unbounded if None
      default_timezone: Zone for floating date-times
    Returns: a new Calendar
    """
    if incal.name != "VCALENDAR":
        raise AssertionError(f"called on file with root component {incal.name}")
    window = _window(start, end, default_timezone)

    outcal = Calendar()
    for field in incal:
        outcal[field] = incal[field]

    for comp in incal.subcomponents:
        if comp.name == "VTIMEZONE":
            outcal.add_component(comp)
        elif "DTSTART" not in comp:
            logging.debug("Keeping %s %s without DTSTART", comp.name, comp.get("UID"))
            outcal.add_component(comp)

    for instance, comp in calendar_occurrences(
        incal, window, default_timezone, limits, offset_for
    ):
        if instance.component.is_recurring() and not instance.component.is_override():
            outcal.add_component(_occurrence_component(comp, instance))
        else:
            outcal.add_component(comp)

    return outcal
