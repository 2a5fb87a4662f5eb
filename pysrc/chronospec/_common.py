from datetime import timedelta as _timedelta, timezone as _timezone
from functools import lru_cache
from re import Pattern, compile as _compile

Nanos = int  # 0-999_999_999

# Unit weights in seconds. A year is a fixed 365.25 days, not a calendar year.
YEAR = 31_557_600
WEEK = 604_800
DAY = 86_400
HOUR = 3_600
MINUTE = 60

MAX_PERIOD_SECONDS = (1 << 64) - 1
MAX_OFFSET_MINUTES = 24 * 60 - 1


class InvalidSpecification(ValueError):
    """A string or value could not be interpreted as a period or timestamp"""


# Compiled patterns are shared process-wide. Created on first use,
# never mutated afterwards.
@lru_cache
def lazy_pattern(source: str, flags: int = 0, /) -> Pattern[str]:
    return _compile(source, flags)


# Fixed-offset tzinfo objects are cached to avoid creating identical ones.
# It's very common to only have whole-hour offsets, so this helps a lot.
@lru_cache
def mk_fixed_tzinfo(secs: int, /) -> _timezone:
    return _timezone(_timedelta(seconds=secs))
