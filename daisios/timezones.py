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


"""Timezone offset lookup.

Nothing in Daisios computes UTC offsets itself. Wall-clock arithmetic asks
an offset function of the shape ``offset_for(zone_id, epoch_ms)``, which
returns the UTC offset in effect for ``zone_id`` at the given instant. The
default implementation consults the system's zoneinfo database; callers can
inject their own (for example a fixed offset in tests, or the device zone
rules of a client).
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

OffsetFunction = Callable[[str, int], timedelta]

MS_PER_SECOND = 1000
MS_PER_DAY = 86400 * MS_PER_SECOND

UTC_ZONE_IDS = frozenset(["UTC", "Etc/UTC", "Etc/Zulu", "Zulu", "GMT", "Etc/GMT"])

# Non-standard identifiers seen in the wild from some servers.
ZONE_ALIASES = {
    "US/Eastern": "America/New_York",
    "US/Pacific": "America/Los_Angeles",
    "US/Central": "America/Chicago",
    "US/Mountain": "America/Denver",
    "Eastern Standard Time": "America/New_York",
    "Pacific Standard Time": "America/Los_Angeles",
    "Central Standard Time": "America/Chicago",
    "Mountain Standard Time": "America/Denver",
    "GMT Standard Time": "Europe/London",
    "W. Europe Standard Time": "Europe/Berlin",
}

_NAIVE_EPOCH = datetime(1970, 1, 1)


def epoch_to_naive(epoch_ms: int) -> datetime:
    """Convert a millisecond offset to a naive UTC datetime."""
    return _NAIVE_EPOCH + timedelta(milliseconds=epoch_ms)


def naive_to_epoch(dt: datetime) -> int:
    """Convert a naive datetime, read as UTC, to a millisecond offset."""
    delta = dt - _NAIVE_EPOCH
    return (
        delta.days * MS_PER_DAY
        + delta.seconds * MS_PER_SECOND
        + delta.microseconds // 1000
    )


def zoneinfo_offset(zone_id: str, epoch_ms: int) -> timedelta:
    """Look up the UTC offset of a zone using the zoneinfo database."""
    tz = ZoneInfo(zone_id)
    utc = epoch_to_naive(epoch_ms).replace(tzinfo=timezone.utc)
    try:
        offset = utc.astimezone(tz).utcoffset()
    except OverflowError:
        # Within a day of datetime.min/max; read the rules at the naive time.
        offset = tz.utcoffset(utc.replace(tzinfo=None))
    assert offset is not None
    return offset


def fixed_offset(hours: int = 0, minutes: int = 0) -> OffsetFunction:
    """Create an offset function that reports one offset for every zone."""
    offset = timedelta(hours=hours, minutes=minutes)

    def offset_for(zone_id, epoch_ms):
        return offset

    return offset_for


def _offset_ms(offset_for: OffsetFunction, zone_id: str, epoch_ms: int) -> int:
    offset = offset_for(zone_id, epoch_ms)
    return (offset.days * 86400 + offset.seconds) * MS_PER_SECOND


def epoch_to_local(
    zone_id: Optional[str],
    epoch_ms: int,
    offset_for: Optional[OffsetFunction] = None,
) -> datetime:
    """Return the naive wall-clock time of an instant in a zone.

    A zone of None means UTC.
    """
    if zone_id is None:
        return epoch_to_naive(epoch_ms)
    if offset_for is None:
        offset_for = zoneinfo_offset
    return epoch_to_naive(epoch_ms + _offset_ms(offset_for, zone_id, epoch_ms))


def local_to_epoch(
    zone_id: Optional[str],
    local: datetime,
    offset_for: Optional[OffsetFunction] = None,
) -> int:
    """Convert a naive wall-clock time in a zone to a millisecond offset.

    Ambiguous times (a DST overlap) resolve to the earlier instant. Times that
    do not exist (a DST gap) are read with the offset from before the
    transition, which moves them forward by the length of the gap.
    """
    naive_ms = naive_to_epoch(local)
    if zone_id is None:
        return naive_ms
    if offset_for is None:
        offset_for = zoneinfo_offset
    before = _offset_ms(offset_for, zone_id, naive_ms - MS_PER_DAY)
    after = _offset_ms(offset_for, zone_id, naive_ms + MS_PER_DAY)
    for candidate in sorted({naive_ms - before, naive_ms - after}):
        if candidate + _offset_ms(offset_for, zone_id, candidate) == naive_ms:
            return candidate
    return naive_ms - before


def resolve_zone(tzid: Optional[str]) -> Optional[str]:
    """Normalize a TZID.

    Returns None for UTC and for identifiers that cannot be resolved.
    """
    if tzid is None:
        return None
    tzid = tzid.strip()
    if tzid in UTC_ZONE_IDS:
        return None
    try:
        ZoneInfo(tzid)
    except (ZoneInfoNotFoundError, ValueError):
        try:
            return ZONE_ALIASES[tzid]
        except KeyError:
            logging.warning("Unknown timezone %r, assuming UTC", tzid)
            return None
    return tzid


def zone_from_tzinfo(dt: datetime) -> Optional[str]:
    """Find the zone identifier of an aware datetime.

    Returns None for UTC. Fixed whole-hour offsets map onto the Etc/GMT
    zones; other fixed offsets have no identifier and also return None.
    """
    tz = dt.tzinfo
    if tz is None:
        return None
    key = getattr(tz, "key", None) or getattr(tz, "zone", None)
    if key is not None:
        return resolve_zone(key)
    offset = dt.utcoffset()
    if not offset:
        return None
    seconds = offset.days * 86400 + offset.seconds
    if seconds % 3600 == 0:
        # POSIX sign convention: Etc/GMT-5 is five hours east of UTC.
        return "Etc/GMT%+d" % (-seconds // 3600)
    logging.debug("No zone identifier for fixed offset %s, using UTC", offset)
    return None
