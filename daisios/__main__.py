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


"""Daisios command-line handling."""

import argparse
import logging
import sys

from dateutil.parser import isoparse
from icalendar.cal import Calendar

from . import __version__
from . import temporal as _mod_temporal
from .config import ExpansionConfig
from .icalendar import MissingProperty, calendar_occurrences, expand_calendar
from .temporal import InvalidDateTime
from .window import TimeWindow


def parse_bound(text, default_timezone="UTC"):
    """Parse a window bound given on the command line.

    Accepts iCalendar text (``20240101``, ``20240101T090000Z``) as well as
    ISO 8601 (``2024-01-01``, ``2024-01-01T09:00:00+01:00``).
    """
    try:
        return _mod_temporal.parse(text, default_timezone)
    except InvalidDateTime:
        pass
    try:
        value = isoparse(text)
    except ValueError as e:
        raise InvalidDateTime(text) from e
    if len(text) == 10:
        return _mod_temporal.from_date(value.date())
    return _mod_temporal.from_datetime(value, default_timezone)


def add_parser(parser):
    parser.add_argument(
        "--start", type=str, help="Start of the window (inclusive)."
    )
    parser.add_argument("--end", type=str, help="End of the window (exclusive).")
    parser.add_argument(
        "--timezone",
        type=str,
        help="Zone for floating times and window bounds (default: UTC).",
    )
    parser.add_argument("--config", type=str, help="Path to configuration file.")
    parser.add_argument(
        "--max-occurrences",
        type=int,
        help="Maximum number of occurrences per component.",
    )
    parser.add_argument(
        "--format",
        choices=["text", "ics"],
        default="text",
        help="Output format.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Show debug output."
    )
    parser.add_argument("files", nargs="+", metavar="FILE", help="iCalendar file.")


def format_occurrence(instance) -> str:
    summary = instance.component.summary
    return "{} {} {}".format(
        instance.start.to_ical(),
        instance.end.to_ical(),
        "" if summary is None else summary,
    ).rstrip()


def expand_main(args, parser, out=None):
    if out is None:
        out = sys.stdout
    if args.config:
        with open(args.config) as f:
            config = ExpansionConfig.from_file(f)
    else:
        config = ExpansionConfig()
    limits = config.limits()
    if args.max_occurrences is not None:
        limits.max_occurrences = args.max_occurrences
    default_timezone = args.timezone
    if default_timezone is None:
        try:
            default_timezone = config.get_default_timezone()
        except KeyError:
            default_timezone = "UTC"

    unbounded = TimeWindow.unbounded()
    try:
        start = parse_bound(args.start, default_timezone) if args.start else None
        end = parse_bound(args.end, default_timezone) if args.end else None
    except InvalidDateTime as e:
        parser.error(str(e))
    window = TimeWindow(
        unbounded.start if start is None else start,
        unbounded.end if end is None else end,
    )

    ret = 0
    for path in args.files:
        with open(path, "rb") as f:
            cal = Calendar.from_ical(f.read())
        try:
            if args.format == "ics":
                outcal = expand_calendar(
                    cal, window.start, window.end, default_timezone, limits
                )
                out.write(outcal.to_ical().decode("utf-8"))
            else:
                for instance, _ in calendar_occurrences(
                    cal, window, default_timezone, limits
                ):
                    out.write(format_occurrence(instance) + "\n")
        except (MissingProperty, ValueError) as e:
            logging.warning("Unable to expand %s: %s", path, e)
            ret = 1
    return ret


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(prog="daisios")
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s " + ".".join(map(str, __version__)),
    )

    subparsers = parser.add_subparsers(help="Subcommands", dest="subcommand")
    expand_parser = subparsers.add_parser(
        "expand",
        usage="%(prog)s [OPTIONS] FILE...",
        help="Print the occurrences of recurring components",
    )
    add_parser(expand_parser)
    args = parser.parse_args(argv)

    if args.subcommand == "expand":
        logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
        return expand_main(args, parser)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
