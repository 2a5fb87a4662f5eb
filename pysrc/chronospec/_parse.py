import logging
import re
from typing import NoReturn

from ._common import (
    DAY,
    HOUR,
    MAX_PERIOD_SECONDS,
    MINUTE,
    WEEK,
    YEAR,
    InvalidSpecification,
    Nanos,
    lazy_pattern,
)
from ._math import days_from_civil, days_in_month

_log = logging.getLogger(__name__)

# Offset in minutes east of UTC
OffsetMinutes = int


def _parse_nanos(s: str) -> Nanos:
    # shorter fractions are padded, longer ones truncated (not rounded)
    return int(s[:9].ljust(9, "0"))


# ---------------------------------------------------------------------------
# Periods
# ---------------------------------------------------------------------------

_SECONDS_SUFFIX = r"s(?:ec(?:ond)?s?)?"

_PERIOD_PATTERN = rf"""
    (?:\s*(?P<years>[0-9]+)\s*y(?:(?:ea)?rs?)?)?
    (?:\s*(?P<weeks>[0-9]+)\s*w(?:(?:ee)?ks?)?)?
    (?:\s*(?P<days>[0-9]+)\s*d(?:a?ys?)?)?
    (?:\s*(?P<hours>[0-9]+)\s*h(?:(?:ou)?rs?)?)?
    (?:\s*(?P<minutes>[0-9]+)\s*m(?:in(?:ute)?s?)?)?
    (?:
        # decimal seconds, e.g. 1.23s or .5s
        \s*(?P<whole>[0-9]+)?[.,](?P<fraction>[0-9]+)\s*{_SECONDS_SUFFIX}
      |
        # whole seconds followed by explicit sub-second units
        (?:\s*(?P<seconds>[0-9]+)\s*{_SECONDS_SUFFIX})?
        (?:\s*(?P<millis>[0-9]+)\s*m(?:illi)?{_SECONDS_SUFFIX})?
        (?:\s*(?P<micros>[0-9]+)\s*(?:[uμµ]|micro){_SECONDS_SUFFIX})?
        (?:\s*(?P<nanos>[0-9]+)\s*n(?:ano)?{_SECONDS_SUFFIX})?
    )
    \s*
"""
_PERIOD_FLAGS = re.VERBOSE | re.IGNORECASE

_NS = 1_000_000_000
_MAX_PERIOD_NANOS = MAX_PERIOD_SECONDS * _NS + _NS - 1
# More significant digits than this always overflows
_MAX_FIELD_DIGITS = len(str(_MAX_PERIOD_NANOS))

# (group name, nanoseconds per unit, name used in error messages)
_PERIOD_FIELDS = (
    ("years", YEAR * _NS, "year(s)"),
    ("weeks", WEEK * _NS, "week(s)"),
    ("days", DAY * _NS, "day(s)"),
    ("hours", HOUR * _NS, "hour(s)"),
    ("minutes", MINUTE * _NS, "minute(s)"),
    ("whole", _NS, "seconds"),
    ("seconds", _NS, "seconds"),
    ("millis", 1_000_000, "milliseconds"),
    ("micros", 1_000, "microseconds"),
    ("nanos", 1, "nanoseconds"),
)


def period_from_spec(s: str) -> tuple[int, Nanos]:
    """Parse a period specification into whole seconds and nanoseconds"""
    match = lazy_pattern(_PERIOD_PATTERN, _PERIOD_FLAGS).fullmatch(s)
    # The grammar also matches empty input, which we don't allow
    if match is None or not any(match.groups()):
        _log.debug("Rejected period specification %r", s)
        raise InvalidSpecification(f"Invalid period specification: {s!r}")

    total = 0
    for group, nanos_per_unit, name in _PERIOD_FIELDS:
        raw = match[group]
        if raw is None:
            continue
        digits = raw.lstrip("0")
        if len(digits) > _MAX_FIELD_DIGITS:
            _overflow(name, s)
        total += int(digits or "0") * nanos_per_unit
        if total > _MAX_PERIOD_NANOS:
            _overflow(name, s)

    if (fraction := match["fraction"]) is not None:
        total += _parse_nanos(fraction)
        if total > _MAX_PERIOD_NANOS:
            _overflow("fractional seconds", s)

    secs, nanos = divmod(total, _NS)
    return secs, nanos


def _overflow(name: str, s: str) -> NoReturn:
    raise InvalidSpecification(
        f"Invalid {name} in period {s!r}: out of range"
    )


# ---------------------------------------------------------------------------
# Instants
# ---------------------------------------------------------------------------

_RFC3339_PATTERN = (
    r"(\d{4})-(\d{2})-(\d{2})[Tt ](\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?"
    r"(?:[Zz]|([+-])(\d{2}):(\d{2}))"
)

_ISO8601_PATTERN = r"""
    (?P<year>[0-9]{4})
    (?:
        -?(?P<month>0[1-9]|1[012])?
        (?:-?(?P<day>0[1-9]|[12][0-9]|3[01])?)?
    )?
    (?:
        (?:[Tt]|\s+)
        (?P<hour>[01][0-9]|2[0-3])
        (?:
            :?(?P<minute>[0-5][0-9])
            (?:
                :?(?P<second>[0-5][0-9]|60)
                (?:[.,](?P<fraction>[0-9]+))?
            )?
        )?
    )?
    (?:
        \s*
        (?:
            [Zz]
          | (?P<sign>[+\-−])
            (?P<offset_hours>[0-9]{2})
            (?::?(?P<offset_minutes>[0-9]{2}))?
        )
    )?
"""


def instant_from_spec(s: str) -> tuple[int, int, OffsetMinutes]:
    """Parse a timestamp into UTC epoch seconds, nanoseconds and the offset.

    A leap second is folded into the preceding second, with nanoseconds
    of 1_000_000_000 or more.
    """
    try:
        return _instant_from_rfc3339(s)
    except ValueError:
        pass

    normalized = _normalize_iso8601(s)
    if normalized is None:
        _log.debug("Rejected timestamp %r", s)
        _timestamp_err(s)

    _log.debug("Normalized timestamp %r to %r", s, normalized)
    try:
        return _instant_from_rfc3339(normalized)
    except ValueError:
        _log.debug("Rejected timestamp %r", s)
        _timestamp_err(s, normalized)


def _timestamp_err(s: str, normalized: str | None = None) -> NoReturn:
    if normalized is None:
        raise InvalidSpecification(f"Invalid timestamp: {s!r}") from None
    raise InvalidSpecification(
        f"Invalid timestamp: {s!r} (interpreted as {normalized!r})"
    ) from None


def _instant_from_rfc3339(s: str) -> tuple[int, int, OffsetMinutes]:
    match = lazy_pattern(_RFC3339_PATTERN, re.ASCII).fullmatch(s)
    if match is None:
        raise ValueError("Invalid RFC 3339 format")
    year, month, day, hour, minute, second = map(int, match.groups()[:6])
    fraction, sign, offset_hrs, offset_mins = match.groups()[6:]

    if not (
        1 <= month <= 12
        and 1 <= day <= days_in_month(year, month)
        and hour < 24
        and minute < 60
        and second <= 60
    ):
        raise ValueError("Date or time out of range")

    if sign is None:
        offset = 0
    else:
        if int(offset_hrs) > 23 or int(offset_mins) > 59:
            raise ValueError("Offset out of range")
        offset = int(offset_hrs) * 60 + int(offset_mins)
        if sign == "-":
            offset = -offset

    nanos = _parse_nanos(fraction) if fraction else 0
    if second == 60:
        second = 59
        nanos += 1_000_000_000

    secs = (
        days_from_civil(year, month, day) * DAY
        + hour * HOUR
        + minute * MINUTE
        + second
        - offset * MINUTE
    )
    return secs, nanos, offset


def _normalize_iso8601(s: str) -> str | None:
    # the pattern itself has no leading or trailing whitespace
    match = lazy_pattern(_ISO8601_PATTERN, re.VERBOSE).fullmatch(s.strip())
    if match is None:
        return None
    if match["sign"] is None:
        zone = "Z"
    else:
        zone = "{}{}:{}".format(
            "+" if match["sign"] == "+" else "-",
            match["offset_hours"],
            match["offset_minutes"] or "00",
        )
    return "{}-{}-{}T{}:{}:{}{}{}".format(
        match["year"],
        match["month"] or "01",
        match["day"] or "01",
        match["hour"] or "00",
        match["minute"] or "00",
        match["second"] or "00",
        f".{match['fraction']}" if match["fraction"] else "",
        zone,
    )
