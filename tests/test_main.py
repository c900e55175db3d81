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


"""Tests for daisios.__main__."""

import argparse
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stdout
from io import StringIO

from daisios.__main__ import add_parser, expand_main, main, parse_bound
from daisios import temporal
from daisios.temporal import CalendarDate, InvalidDateTime

CALENDAR = """\
BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//Test//Test//EN
BEGIN:VEVENT
UID:standup@example.com
DTSTART:20240101T090000Z
DTEND:20240101T091500Z
SUMMARY:Standup
RRULE:FREQ=DAILY;COUNT=3
END:VEVENT
END:VCALENDAR
"""


class ParseBoundTests(unittest.TestCase):
    def test_ical(self):
        self.assertEqual("20240101T090000Z", parse_bound("20240101T090000Z").to_ical())

    def test_ical_date(self):
        self.assertIsInstance(parse_bound("20240101"), CalendarDate)

    def test_iso(self):
        self.assertEqual(
            temporal.parse("20240101T080000Z"), parse_bound("2024-01-01T09:00:00+01:00")
        )
        self.assertIsInstance(parse_bound("2024-01-01"), CalendarDate)

    def test_local(self):
        value = parse_bound("20240101T090000", "Europe/Berlin")
        self.assertEqual("Europe/Berlin", value.zone)

    def test_invalid(self):
        self.assertRaises(InvalidDateTime, parse_bound, "next tuesday")


class ExpandMainTests(unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.test_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.test_dir)
        self.path = os.path.join(self.test_dir, "calendar.ics")
        with open(self.path, "w") as f:
            f.write(CALENDAR)

    def run_expand(self, *argv):
        parser = argparse.ArgumentParser()
        add_parser(parser)
        args = parser.parse_args(list(argv) + [self.path])
        out = StringIO()
        ret = expand_main(args, parser, out)
        return ret, out.getvalue()

    def test_text(self):
        ret, output = self.run_expand()
        self.assertEqual(0, ret)
        self.assertEqual(
            [
                "20240101T090000Z 20240101T091500Z Standup",
                "20240102T090000Z 20240102T091500Z Standup",
                "20240103T090000Z 20240103T091500Z Standup",
            ],
            output.splitlines(),
        )

    def test_window(self):
        ret, output = self.run_expand("--start", "20240102", "--end", "20240103")
        self.assertEqual(
            ["20240102T090000Z 20240102T091500Z Standup"], output.splitlines()
        )

    def test_max_occurrences(self):
        with self.assertLogs(level="WARNING"):
            ret, output = self.run_expand("--max-occurrences", "2")
        self.assertEqual(2, len(output.splitlines()))

    def test_config(self):
        config_path = os.path.join(self.test_dir, "daisios.conf")
        with open(config_path, "w") as f:
            f.write("[expansion]\nmax-occurrences = 1\n")
        with self.assertLogs(level="WARNING"):
            ret, output = self.run_expand("--config", config_path)
        self.assertEqual(1, len(output.splitlines()))

    def test_ics(self):
        ret, output = self.run_expand("--format", "ics")
        self.assertEqual(0, ret)
        self.assertEqual(3, output.count("BEGIN:VEVENT"))
        self.assertEqual(3, output.count("RECURRENCE-ID:"))
        self.assertNotIn("RRULE", output)

    def test_invalid_rule(self):
        with open(self.path, "w") as f:
            f.write(CALENDAR.replace("FREQ=DAILY;", ""))
        with self.assertLogs(level="WARNING"):
            ret, output = self.run_expand()
        self.assertEqual(1, ret)
        self.assertEqual("", output)


class MainTests(unittest.TestCase):
    def test_version(self):
        with redirect_stdout(StringIO()) as out:
            with self.assertRaises(SystemExit) as cm:
                main(["--version"])
        self.assertEqual(0, cm.exception.code)
        self.assertTrue(out.getvalue().startswith("daisios "))

    def test_no_subcommand(self):
        with redirect_stdout(StringIO()):
            self.assertEqual(1, main([]))
