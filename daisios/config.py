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


"""Expansion configuration file.

A configuration file looks like::

    [expansion]
    max-candidates = 100000
    max-occurrences = 10000
    time-budget = 2.5
    default-timezone = Europe/Amsterdam
"""

import configparser

from .expand import DEFAULT_MAX_CANDIDATES, DEFAULT_MAX_OCCURRENCES, ExpansionLimits

SECTION = "expansion"


class ExpansionConfig:
    """Settings for expanding calendars."""

    def __init__(self, cp=None):
        if cp is None:
            cp = configparser.ConfigParser()
        if not cp.has_section(SECTION):
            cp.add_section(SECTION)
        self._configparser = cp

    @classmethod
    def from_file(cls, f):
        cp = configparser.ConfigParser()
        cp.read_file(f)
        return cls(cp)

    @classmethod
    def from_string(cls, text):
        cp = configparser.ConfigParser()
        cp.read_string(text)
        return cls(cp)

    def get_max_candidates(self) -> int:
        return int(self._configparser[SECTION]["max-candidates"])

    def set_max_candidates(self, value):
        self._set("max-candidates", value)

    def get_max_occurrences(self) -> int:
        return int(self._configparser[SECTION]["max-occurrences"])

    def set_max_occurrences(self, value):
        self._set("max-occurrences", value)

    def get_time_budget(self) -> float:
        return float(self._configparser[SECTION]["time-budget"])

    def set_time_budget(self, value):
        self._set("time-budget", value)

    def get_default_timezone(self) -> str:
        return self._configparser[SECTION]["default-timezone"]

    def set_default_timezone(self, value):
        self._set("default-timezone", value)

    def _set(self, key, value):
        if value is not None:
            self._configparser[SECTION][key] = str(value)
        else:
            del self._configparser[SECTION][key]

    def limits(self) -> ExpansionLimits:
        """Build expansion limits, using defaults for unset keys."""
        try:
            max_candidates = self.get_max_candidates()
        except KeyError:
            max_candidates = DEFAULT_MAX_CANDIDATES
        try:
            max_occurrences = self.get_max_occurrences()
        except KeyError:
            max_occurrences = DEFAULT_MAX_OCCURRENCES
        try:
            time_budget = self.get_time_budget()
        except KeyError:
            time_budget = None
        return ExpansionLimits(
            max_candidates=max_candidates,
            max_occurrences=max_occurrences,
            time_budget=time_budget,
        )

    def write(self, f):
        self._configparser.write(f)
