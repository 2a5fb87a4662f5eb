# The MIT License (MIT)
#
# Copyright (c) Arie Bovenberg
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL THE
# AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR OTHER
# LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE, ARISING FROM,
# OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR OTHER DEALINGS IN THE
# SOFTWARE.

# Maintainer's notes:
#
# - The value types live in one file, so they can 'know' about each other
#   (a Period converts to a Timeout and back) without circular imports.
# - Parsing lives in ``_parse.py``. The classes only assemble and format.
# - There is no way to get the current time. Instants always come from
#   the outside.
from __future__ import annotations

__version__ = "0.1.0"

import json
from abc import ABC, abstractmethod
from datetime import datetime as _datetime, timedelta as _timedelta
from struct import pack, unpack
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar, no_type_check

from ._common import (
    DAY,
    HOUR,
    MAX_OFFSET_MINUTES,
    MAX_PERIOD_SECONDS,
    MINUTE,
    WEEK,
    YEAR,
    InvalidSpecification,
    mk_fixed_tzinfo,
)
from ._math import civil_from_days, days_from_civil
from ._parse import instant_from_spec, period_from_spec

__all__ = [
    # Values
    "Period",
    "Instant",
    "Timeout",
    # Exceptions
    "InvalidSpecification",
    # Constants
    "YEAR",
    "WEEK",
    "DAY",
    "HOUR",
    "MINUTE",
]

_object_new = object.__new__
_NS = 1_000_000_000
_MAX_TIMEOUT_MILLIS = (1 << 64) - 1
_T = TypeVar("_T", bound="_CanonicalString")


class _ImmutableBase:
    __slots__ = ()

    # Immutable classes don't need to be copied
    @no_type_check
    def __copy__(self):
        return self

    @no_type_check
    def __deepcopy__(self, _):
        return self


if TYPE_CHECKING:
    from typing import final
else:

    def final(cls):

        def init_subclass_not_allowed(cls, **kwargs):  # pragma: no cover
            raise TypeError("Subclassing not allowed")

        cls.__init_subclass__ = classmethod(init_subclass_not_allowed)
        return cls


class _CanonicalString(_ImmutableBase, ABC):
    """Values that are written and read as a single canonical string.

    Serialization (JSON, pydantic) is exactly ``format()``,
    and deserialization is exactly ``parse()``.
    """

    __slots__ = ()

    @abstractmethod
    def format(self) -> str:
        """Format as the canonical string. Inverse of :meth:`parse`."""

    @classmethod
    @abstractmethod
    def parse(cls: type[_T], s: str, /) -> _T:
        """Parse a string. Inverse of :meth:`format`."""

    def __str__(self) -> str:
        return self.format()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.format()})"

    def format_json(self) -> str:
        """Serialize as a JSON string scalar

        Example
        -------
        >>> Period.parse("90 minutes").format_json()
        '"1h30m"'
        """
        return json.dumps(self.format(), ensure_ascii=False)

    @classmethod
    def parse_json(cls: type[_T], s: str | bytes, /) -> _T:
        """Deserialize from a JSON string scalar.
        Inverse of :meth:`format_json`.

        Raises :class:`InvalidSpecification` if the JSON is malformed,
        isn't a string, or the string itself is not valid.
        """
        try:
            value = json.loads(s)
        except ValueError:
            raise InvalidSpecification(f"Invalid JSON: {s!r}") from None
        if not isinstance(value, str):
            raise InvalidSpecification(
                f"Expected a JSON string, got {type(value).__name__}: {s!r}"
            )
        return cls.parse(value)

    @classmethod
    def __get_pydantic_core_schema__(cls, _source: Any, _handler: Any) -> Any:
        from pydantic_core import core_schema

        from_str = core_schema.no_info_after_validator_function(
            cls.parse, core_schema.str_schema()
        )
        return core_schema.json_or_python_schema(
            json_schema=from_str,
            python_schema=core_schema.union_schema(
                [core_schema.is_instance_schema(cls), from_str]
            ),
            serialization=core_schema.plain_serializer_function_ser_schema(
                str, when_used="json-unless-none"
            ),
        )


@final
class Period(_CanonicalString):
    """A non-negative elapsed time with nanosecond precision

    Periods are written in a human-friendly notation like ``1w2d3h4.5s``.
    Parsing is lenient about spelling; formatting always produces
    the same canonical text.

    Example
    -------
    >>> p = Period.parse("2 years 18 Weeks 4 dy 12 hrs 0.000456 SEC")
    Period(2y18w4d12h456us)
    >>> p.in_seconds_nanos()
    (74390400, 456000)

    Note
    ----
    A year counts as exactly 365.25 days. This is a simplification of
    the true solar year that keeps periods free of odd remainders.
    """

    __slots__ = ("_secs", "_nanos")

    ZERO: ClassVar[Period]
    """A period of zero"""
    MAX: ClassVar[Period]
    """The largest possible period"""

    def __init__(self, seconds: int = 0, nanoseconds: int = 0) -> None:
        if type(seconds) is not int or type(nanoseconds) is not int:
            raise TypeError("seconds and nanoseconds must be integers")
        if seconds < 0 or nanoseconds < 0:
            raise InvalidSpecification("Period cannot be negative")
        # nanoseconds beyond one second carry over into the seconds
        extra_secs, self._nanos = divmod(nanoseconds, _NS)
        self._secs = seconds + extra_secs
        if self._secs > MAX_PERIOD_SECONDS:
            raise InvalidSpecification("Period out of range")

    @classmethod
    def parse(cls, s: str, /) -> Period:
        """Parse a period specification like ``1w2d3h4.5s``

        Units must appear from large to small. Each has several
        spellings (e.g. ``h``, ``hr``, ``hours``), matched case-insensitively.
        Seconds can either have a decimal fraction, or be followed by
        ``ms``, ``us`` and ``ns`` terms, but not both.

        Example
        -------
        >>> Period.parse("1 week 2.5 sec")
        Period(1w2.5s)
        >>> Period.parse("1500ms")
        Period(1.5s)
        >>> Period.parse("1.5s200ns")  # fraction mixed with ns
        Traceback (most recent call last):
          ...
        InvalidSpecification: Invalid period specification: '1.5s200ns'
        """
        return cls._from_unchecked(*period_from_spec(s))

    def format(self) -> str:
        """Format as the canonical period specification

        Zero-valued units are left out. Sub-second parts are written as
        a decimal fraction if the period also has whole seconds (or both
        millisecond and nanosecond precision), otherwise in the finest
        unit which holds data.

        Example
        -------
        >>> Period(604_800, 1_123_000_000).format()
        '1w1.123s'
        >>> Period(0, 120_000).format()
        '120us'
        """
        secs = self._secs
        parts = []
        for weight, suffix in _PERIOD_UNITS:
            n, secs = divmod(secs, weight)
            if n:
                parts.append(f"{n}{suffix}")

        nanos = self._nanos
        is_ms = nanos >= 1_000_000
        is_us = nanos // 1_000 % 1_000 > 0
        is_ns = nanos % 1_000 > 0
        if (secs and is_ms) or (is_ms and is_ns):
            parts.append(f"{secs}.{nanos:09d}".rstrip("0") + "s")
        else:
            if secs:
                parts.append(f"{secs}s")
            if is_ns:
                parts.append(f"{nanos}ns")
            elif is_us:
                parts.append(f"{nanos // 1_000}us")
            elif is_ms:
                parts.append(f"{nanos // 1_000_000}ms")
        return "".join(parts) or "0s"

    def in_seconds_nanos(self) -> tuple[int, int]:
        """The whole seconds and the remaining nanoseconds

        Example
        -------
        >>> Period.parse("1m1.5s").in_seconds_nanos()
        (61, 500000000)
        """
        return self._secs, self._nanos

    def in_nanoseconds(self) -> int:
        """The total size in nanoseconds"""
        return self._secs * _NS + self._nanos

    def in_seconds(self) -> float:
        """The total size in seconds. May be imprecise for large periods."""
        return self._secs + self._nanos / _NS

    def py_timedelta(self) -> _timedelta:
        """Convert to a :class:`~datetime.timedelta`

        Inverse of :meth:`from_py_timedelta`

        Note
        ----
        Nanoseconds are rounded to the nearest even microsecond.
        Periods beyond the range of ``timedelta`` raise ``OverflowError``.
        """
        return _timedelta(
            seconds=self._secs, microseconds=round(self._nanos / 1_000)
        )

    @classmethod
    def from_py_timedelta(cls, td: _timedelta, /) -> Period:
        """Create from a :class:`~datetime.timedelta`

        Inverse of :meth:`py_timedelta`

        Example
        -------
        >>> Period.from_py_timedelta(timedelta(seconds=5400))
        Period(1h30m)
        """
        if td < _timedelta(0):
            raise InvalidSpecification("Period cannot be negative")
        return cls._from_unchecked(
            td.days * DAY + td.seconds, td.microseconds * 1_000
        )

    def timeout(self) -> Timeout:
        """Convert to a :class:`Timeout`, saturating on overflow.
        Alias for :meth:`Timeout.from_period`"""
        return Timeout.from_period(self)

    def __eq__(self, other: object) -> bool:
        """Compare for equality

        Example
        -------
        >>> Period.parse("90s") == Period.parse("1m30s")
        True
        """
        if not isinstance(other, Period):
            return NotImplemented
        return self._secs == other._secs and self._nanos == other._nanos

    def __hash__(self) -> int:
        return hash((self._secs, self._nanos))

    def __lt__(self, other: Period) -> bool:
        if not isinstance(other, Period):
            return NotImplemented
        return (self._secs, self._nanos) < (other._secs, other._nanos)

    def __le__(self, other: Period) -> bool:
        if not isinstance(other, Period):
            return NotImplemented
        return (self._secs, self._nanos) <= (other._secs, other._nanos)

    def __gt__(self, other: Period) -> bool:
        if not isinstance(other, Period):
            return NotImplemented
        return (self._secs, self._nanos) > (other._secs, other._nanos)

    def __ge__(self, other: Period) -> bool:
        if not isinstance(other, Period):
            return NotImplemented
        return (self._secs, self._nanos) >= (other._secs, other._nanos)

    def __bool__(self) -> bool:
        """True if the period is non-zero"""
        return bool(self._secs or self._nanos)

    @no_type_check
    def __reduce__(self):
        return _unpkl_period, (pack("<QI", self._secs, self._nanos),)

    @classmethod
    def _from_unchecked(cls, secs: int, nanos: int) -> Period:
        new = _object_new(cls)
        new._secs = secs
        new._nanos = nanos
        return new


_PERIOD_UNITS = (
    (YEAR, "y"),
    (WEEK, "w"),
    (DAY, "d"),
    (HOUR, "h"),
    (MINUTE, "m"),
)


# A separate unpickling function allows us to make backwards-compatible changes
# to the pickling format in the future
@no_type_check
def _unpkl_period(data: bytes) -> Period:
    return Period._from_unchecked(*unpack("<QI", data))


Period.ZERO = Period()
Period.MAX = Period._from_unchecked(MAX_PERIOD_SECONDS, _NS - 1)


@final
class Timeout(_ImmutableBase):
    """A timeout in whole milliseconds

    Example
    -------
    >>> Timeout()
    Timeout(60000ms)
    >>> Period.parse("1w1.23s").timeout()
    Timeout(604801230ms)
    """

    __slots__ = ("_millis",)

    DEFAULT: ClassVar[Timeout]
    """The default timeout of one minute"""
    MAX: ClassVar[Timeout]
    """The longest timeout. Conversions saturate to this value."""

    def __init__(self, milliseconds: int = 60_000) -> None:
        if type(milliseconds) is not int:
            raise TypeError("milliseconds must be an integer")
        if not 0 <= milliseconds <= _MAX_TIMEOUT_MILLIS:
            raise InvalidSpecification(
                f"Timeout out of range: {milliseconds}ms"
            )
        self._millis = milliseconds

    @classmethod
    def from_period(cls, p: Period, /) -> Timeout:
        """Convert a period to a timeout. Never fails.

        Important
        ---------
        This conversion is lossy: sub-millisecond precision is
        truncated, and periods too long to express in milliseconds
        saturate to :attr:`Timeout.MAX` instead of raising an error.
        """
        if p._secs >= _MAX_TIMEOUT_MILLIS // 1_000:
            return cls.MAX
        return cls._from_unchecked(p._secs * 1_000 + p._nanos // 1_000_000)

    def in_milliseconds(self) -> int:
        return self._millis

    def period(self) -> Period:
        """Convert to a :class:`Period`. This is always exact."""
        secs, millis = divmod(self._millis, 1_000)
        return Period._from_unchecked(secs, millis * 1_000_000)

    def py_timedelta(self) -> _timedelta:
        """Convert to a :class:`~datetime.timedelta`"""
        return _timedelta(milliseconds=self._millis)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Timeout):
            return NotImplemented
        return self._millis == other._millis

    def __hash__(self) -> int:
        return hash(self._millis)

    def __lt__(self, other: Timeout) -> bool:
        if not isinstance(other, Timeout):
            return NotImplemented
        return self._millis < other._millis

    def __le__(self, other: Timeout) -> bool:
        if not isinstance(other, Timeout):
            return NotImplemented
        return self._millis <= other._millis

    def __gt__(self, other: Timeout) -> bool:
        if not isinstance(other, Timeout):
            return NotImplemented
        return self._millis > other._millis

    def __ge__(self, other: Timeout) -> bool:
        if not isinstance(other, Timeout):
            return NotImplemented
        return self._millis >= other._millis

    def __repr__(self) -> str:
        return f"Timeout({self._millis}ms)"

    @no_type_check
    def __reduce__(self):
        return Timeout, (self._millis,)

    @classmethod
    def _from_unchecked(cls, millis: int) -> Timeout:
        new = _object_new(cls)
        new._millis = millis
        return new


Timeout.DEFAULT = Timeout()
Timeout.MAX = Timeout._from_unchecked(_MAX_TIMEOUT_MILLIS)


@final
class Instant(_CanonicalString):
    """A moment in time, displayed at a fixed UTC offset

    Instants are equal and ordered by the moment they represent,
    regardless of the offset used to display them.
    Use :meth:`exact_eq` to also compare the offset.

    Example
    -------
    >>> a = Instant.parse("2018-10-11T03:23:38-08:00")
    Instant(2018-10-11T03:23:38-08:00)
    >>> a == Instant.parse("20181011 112338 Z")
    True

    Note
    ----
    There is no ``now()``. Instants are supplied from the outside,
    either as text or as a UNIX timestamp.
    """

    # The leap second 23:59:60 is stored as the preceding second
    # with nanoseconds of 1_000_000_000 or more.
    __slots__ = ("_secs", "_nanos", "_offset")

    def __init__(self) -> None:
        raise TypeError(
            "Instant instances cannot be created through the constructor. "
            "Use `Instant.parse` or `Instant.from_timestamp` instead."
        )

    @classmethod
    def from_timestamp(cls, i: int, /) -> Instant:
        """Create an Instant from a UNIX timestamp (in seconds), at UTC.

        This never fails for an integer argument.
        The inverse of the ``timestamp()`` method.

        Example
        -------
        >>> Instant.from_timestamp(1539228218)
        Instant(2018-10-11T03:23:38+00:00)
        """
        if not isinstance(i, int):
            raise TypeError("method requires an integer")
        return cls._from_unchecked(i, 0, 0)

    @classmethod
    def parse(cls, s: str, /) -> Instant:
        """Parse an RFC 3339 timestamp, or a more lenient ISO 8601 variant

        Besides strict RFC 3339, surrounding whitespace is allowed,
        separators may be left out where unambiguous, month/day and
        time fields may be omitted, ``,`` may start the fraction,
        and the offset may be ``±HH``, ``±HHMM``, use a unicode minus,
        or be left out entirely (meaning UTC).

        Example
        -------
        >>> Instant.parse("2015-02-18T23:59:60.234567-05:00")
        Instant(2015-02-18T23:59:60.234567-05:00)
        >>> Instant.parse(" 20181011 0323 ")
        Instant(2018-10-11T03:23:00+00:00)
        """
        return cls._from_unchecked(*instant_from_spec(s))

    def format(self) -> str:
        """Format as RFC 3339, at the instant's own offset

        The fraction has 3, 6 or 9 digits, and is left out if zero.

        Example
        -------
        >>> Instant.from_timestamp(1539228218).format()
        '2018-10-11T03:23:38+00:00'
        """
        year, month, day, hour, minute, second, nanos = self._civil()
        offset = abs(self._offset)
        return (
            f"{year:04d}-{month:02d}-{day:02d}"
            f"T{hour:02d}:{minute:02d}:{second:02d}"
            + _format_fraction(nanos)
            + ("-" if self._offset < 0 else "+")
            + f"{offset // 60:02d}:{offset % 60:02d}"
        )

    def timestamp(self) -> int:
        """The UNIX timestamp in whole seconds. A leap second counts as
        the second before it."""
        return self._secs

    def timestamp_nanos(self) -> int:
        """The UNIX timestamp in nanoseconds"""
        return self._secs * _NS + self._nanos

    @property
    def year(self) -> int:
        return self._civil()[0]

    @property
    def month(self) -> int:
        return self._civil()[1]

    @property
    def day(self) -> int:
        return self._civil()[2]

    @property
    def hour(self) -> int:
        return self._civil()[3]

    @property
    def minute(self) -> int:
        return self._civil()[4]

    @property
    def second(self) -> int:
        """The second, which is ``60`` during a leap second"""
        return self._civil()[5]

    @property
    def nanosecond(self) -> int:
        return self._civil()[6]

    @property
    def offset_minutes(self) -> int:
        """The UTC offset in minutes, positive east of UTC"""
        return self._offset

    @property
    def is_leap_second(self) -> bool:
        return self._nanos >= _NS

    def to_fixed_offset(self, minutes: int = 0, /) -> Instant:
        """The same moment, displayed at another offset

        Example
        -------
        >>> Instant.parse("2018-10-11T03:23:38Z").to_fixed_offset(-480)
        Instant(2018-10-10T19:23:38-08:00)
        """
        if type(minutes) is not int:
            raise TypeError("offset must be an integer number of minutes")
        if abs(minutes) > MAX_OFFSET_MINUTES:
            raise InvalidSpecification(f"Offset out of range: {minutes}")
        return self._from_unchecked(self._secs, self._nanos, minutes)

    def exact_eq(self, other: Instant, /) -> bool:
        """Compare the moment *and* the offset

        Example
        -------
        >>> a = Instant.parse("2018-10-11T03:23:38Z")
        >>> b = a.to_fixed_offset(60)
        >>> a == b
        True
        >>> a.exact_eq(b)
        False
        """
        if type(other) is not Instant:
            raise TypeError("Can't compare different types")
        return (self._secs, self._nanos, self._offset) == (
            other._secs,
            other._nanos,
            other._offset,
        )

    def py_datetime(self) -> _datetime:
        """Convert to an aware :class:`~datetime.datetime` with a fixed offset

        Note
        ----
        Nanoseconds are truncated to microseconds. A leap second,
        which ``datetime`` can't represent, becomes ``:59.999999``.
        Years outside the range of ``datetime`` raise ``ValueError``.
        """
        year, month, day, hour, minute, second, nanos = self._civil()
        if second == 60:
            second, micros = 59, 999_999
        else:
            micros = nanos // 1_000
        return _datetime(
            year,
            month,
            day,
            hour,
            minute,
            second,
            micros,
            mk_fixed_tzinfo(self._offset * 60),
        )

    @classmethod
    def from_py_datetime(cls, d: _datetime, /) -> Instant:
        """Create an Instant from an aware standard library ``datetime``,
        keeping its offset.

        The inverse of the ``py_datetime()`` method.
        """
        if d.tzinfo is None:
            raise InvalidSpecification(
                "Cannot create Instant from a naive datetime"
            )
        if (offset := d.utcoffset()) is None:
            raise InvalidSpecification(
                "Cannot create Instant from datetime with utcoffset() None"
            )
        if offset % _timedelta(minutes=1):
            raise InvalidSpecification(
                f"Offset must be a whole number of minutes, got {offset}"
            )
        offset_mins = offset // _timedelta(minutes=1)
        secs = (
            days_from_civil(d.year, d.month, d.day) * DAY
            + d.hour * HOUR
            + d.minute * MINUTE
            + d.second
            - offset_mins * MINUTE
        )
        return cls._from_unchecked(secs, d.microsecond * 1_000, offset_mins)

    def __eq__(self, other: object) -> bool:
        """Check if two instants represent the same moment

        Example
        -------
        >>> Instant.parse("2018-10-11T03:23:38") == Instant.parse(
        ...     "2018-10-11T04:23:38+01:00"
        ... )
        True
        """
        if not isinstance(other, Instant):
            return NotImplemented
        return self._secs == other._secs and self._nanos == other._nanos

    def __hash__(self) -> int:
        return hash((self._secs, self._nanos))

    def __lt__(self, other: Instant) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return (self._secs, self._nanos) < (other._secs, other._nanos)

    def __le__(self, other: Instant) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return (self._secs, self._nanos) <= (other._secs, other._nanos)

    def __gt__(self, other: Instant) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return (self._secs, self._nanos) > (other._secs, other._nanos)

    def __ge__(self, other: Instant) -> bool:
        if not isinstance(other, Instant):
            return NotImplemented
        return (self._secs, self._nanos) >= (other._secs, other._nanos)

    # Timestamps can be arbitrarily large, so these aren't packed as structs
    @no_type_check
    def __reduce__(self):
        return _unpkl_instant, (self._secs, self._nanos, self._offset)

    def _civil(self) -> tuple[int, int, int, int, int, int, int]:
        days, secs = divmod(self._secs + self._offset * MINUTE, DAY)
        year, month, day = civil_from_days(days)
        hour, secs = divmod(secs, HOUR)
        minute, second = divmod(secs, MINUTE)
        nanos = self._nanos
        if nanos >= _NS:
            second += 1
            nanos -= _NS
        return year, month, day, hour, minute, second, nanos

    @classmethod
    def _from_unchecked(cls, secs: int, nanos: int, offset: int) -> Instant:
        new = _object_new(cls)
        new._secs = secs
        new._nanos = nanos
        new._offset = offset
        return new


def _format_fraction(nanos: int) -> str:
    if not nanos:
        return ""
    elif nanos % 1_000_000 == 0:
        return f".{nanos // 1_000_000:03d}"
    elif nanos % 1_000 == 0:
        return f".{nanos // 1_000:06d}"
    return f".{nanos:09d}"


@no_type_check
def _unpkl_instant(secs: int, nanos: int, offset: int) -> Instant:
    return Instant._from_unchecked(secs, nanos, offset)


# We expose the public members in the root of the module.
# For clarity, we remove the "_pychronospec" part from the names,
# since this is an implementation detail.
for name in __all__:
    member = locals()[name]
    if getattr(member, "__module__", None) in (
        __name__,
        "chronospec._common",
    ):
        member.__module__ = "chronospec"

# clear up loop variables so they don't leak into the namespace
del name
del member

for _unpkl in (_unpkl_period, _unpkl_instant):
    _unpkl.__module__ = "chronospec"


# disable further subclassing
final(_ImmutableBase)
final(_CanonicalString)
