"""
Stress tests for thread-safety of the shared pattern cache.

Note this isn't a unit test, because it relies on a clean cache
"""

import sys
import time
from threading import Thread

from chronospec import Instant, Period

if not hasattr(sys, "_is_gil_enabled") or sys._is_gil_enabled():
    # Running with GIL enabled can still be useful to compare performance,
    # but be sure to warn that threading hasn't been stress tested.
    print("WARNING: Running with GIL enabled. Threading not stress tested.")


NUM_THREADS = 16
NUM_ITERATIONS = 500
PERIOD_SAMPLE = [
    "1w1.23s",
    "2 years 18 Weeks 4 dy 12 hrs 0.000456 SEC",
    "1y60000ms25μs100nanos",
    "600millisecond25usecs100nanos",
    ".0000251s",
    "1.23s456ns",  # invalid
    "0s",
]
TIMESTAMP_SAMPLE = [
    "2018-10-11T03:23:38Z",
    "2018-01-01 03:23:00 +00",
    "20150218 235960,234567 −05",
    "2015-02-18T23:59:60.234567-05:00",
    "2018-02-30T00:00:00Z",  # invalid
]
assert len(PERIOD_SAMPLE) % NUM_THREADS and len(
    TIMESTAMP_SAMPLE
) % NUM_THREADS, "Samples should not be evenly divisible by number of threads"
PERIODS = PERIOD_SAMPLE * (NUM_THREADS * NUM_ITERATIONS)
TIMESTAMPS = TIMESTAMP_SAMPLE * (NUM_THREADS * NUM_ITERATIONS)


def parse_periods(specs):
    """Parse periods, and check they format the same as the first time"""
    expected = {}
    for s in specs:
        try:
            result = Period.parse(s).format()
        except ValueError as e:
            result = str(e)
        assert expected.setdefault(s, result) == result


def parse_timestamps(specs):
    """Parse timestamps, and check they format the same as the first time"""
    expected = {}
    for s in specs:
        try:
            result = Instant.parse(s).format()
        except ValueError as e:
            result = str(e)
        assert expected.setdefault(s, result) == result


def main(func, work):
    print(f"Starting test: {func.__name__}")
    threads = []

    start_time = time.time()

    for n in range(NUM_THREADS):
        thread = Thread(target=func, args=(work[n::NUM_THREADS],))
        threads.append(thread)
        thread.start()

    for thread in threads:
        thread.join()

    end_time = time.time()
    print(f"Execution time: {end_time - start_time:.2f} seconds")


if __name__ == "__main__":
    main(parse_periods, PERIODS)
    main(parse_timestamps, TIMESTAMPS)
