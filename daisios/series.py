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


"""Merging detached overrides into the expansion of a master component."""

from typing import Optional

from .component import OccurrenceInstance, RecurringComponent
from .expand import ExpansionLimits, expand
from .timezones import OffsetFunction
from .window import TimeWindow


def build_override_map(components) -> dict:
    """Map recurrence ids to the components overriding them.

    Components without a recurrence id are ignored. When two overrides
    claim the same occurrence, the last one wins.
    """
    ret = {}
    for comp in components:
        if comp.recurrence_id is not None:
            ret[comp.recurrence_id] = comp
    return ret


def _override_instance(override, window, offset_for):
    if override.status is not None and override.status.upper() == "CANCELLED":
        return None
    if override.start.is_date:
        window = window.as_dates(offset_for)
    end = override.effective_end(offset_for)
    if not window.overlaps(override.start, end):
        return None
    return OccurrenceInstance(override, override.start, end, override.recurrence_id)


def _names_occurrence_outside(master, recurrence_id, window, offset_for):
    """Check whether an override can name an occurrence not in the window.

    Occurrences the master produces within the window have all been matched
    against the overrides already; excluded ones were never there.
    """
    for exdate in master.exdates:
        if (exdate.is_date, exdate.epoch_ms) == (
            recurrence_id.is_date,
            recurrence_id.epoch_ms,
        ):
            return False
    if recurrence_id.is_date:
        window = window.as_dates(offset_for)
    end = master.end_for(recurrence_id, offset_for)
    return not window.overlaps(recurrence_id, end)


def expand_series(
    master: RecurringComponent,
    overrides,
    window: TimeWindow,
    limits: Optional[ExpansionLimits] = None,
    offset_for: Optional[OffsetFunction] = None,
) -> list[OccurrenceInstance]:
    """Expand a master component, applying its detached overrides.

    Args:
      master: The master component
      overrides: Override components, or a map as returned by
        build_override_map
      window: Window to expand in
    Returns: occurrences ordered by start
    """
    if not isinstance(overrides, dict):
        overrides = build_override_map(overrides)
    ret = []
    replaced = set()
    for instance in expand(master, window, limits, offset_for):
        try:
            override = overrides[instance.recurrence_id]
        except KeyError:
            ret.append(instance)
            continue
        replaced.add(instance.recurrence_id)
        replacement = _override_instance(override, window, offset_for)
        if replacement is not None:
            ret.append(replacement)
    # Overrides that moved an occurrence into the window from outside it.
    # Whether the master really produces that occurrence is not checked.
    for recurrence_id, override in overrides.items():
        if recurrence_id in replaced:
            continue
        if not _names_occurrence_outside(master, recurrence_id, window, offset_for):
            continue
        replacement = _override_instance(override, window, offset_for)
        if replacement is not None:
            ret.append(replacement)
    ret.sort(key=lambda instance: instance.start)
    return ret
