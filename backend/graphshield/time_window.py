"""
time_window.py – Stateless windowing primitives over timestamped records.

Any object with a `timestamp` attribute can be analysed (TransactionEdge,
EdgeTransaction, Transaction).

Sliding window
--------------
For every record, a forward-looking window [t, t + window] is opened at its
timestamp (both ends inclusive).  The densest window wins; ties go to the
earliest start because the comparison is strict.  Counting uses bisection
over the sorted timestamps, so each window costs O(log n).
"""
from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from operator import attrgetter
from typing import List, Optional, Sequence

from .config import DEFAULT_WINDOW_HOURS, HIGH_VELOCITY_HOURS, HIGH_VELOCITY_MIN_TX

_HOUR_SECONDS = 3600.0
_by_timestamp = attrgetter("timestamp")


@dataclass(frozen=True)
class WindowCount:
    start: datetime
    end: datetime
    count: int


@dataclass(frozen=True)
class Window:
    start: datetime
    end: datetime
    items: list


@dataclass
class SlidingWindowResult:
    max_count: int = 0
    max_window: Optional[Window] = None
    windows: List[WindowCount] = field(default_factory=list)


def _span_hours(sorted_items: Sequence) -> float:
    first = sorted_items[0].timestamp
    last = sorted_items[-1].timestamp
    return (last - first).total_seconds() / _HOUR_SECONDS


class TimeWindowAnalyzer:
    def __init__(self, window_hours: float = DEFAULT_WINDOW_HOURS):
        self.window_hours = window_hours

    def _delta(self, window_hours: Optional[float]) -> timedelta:
        return timedelta(hours=window_hours if window_hours else self.window_hours)

    def is_within_window(self, t1: datetime, t2: datetime) -> bool:
        return abs(t2 - t1) <= self._delta(None)

    def window_start(self, timestamp: datetime, window_hours: Optional[float] = None) -> datetime:
        return timestamp - self._delta(window_hours)

    def window_end(self, timestamp: datetime, window_hours: Optional[float] = None) -> datetime:
        return timestamp + self._delta(window_hours)

    def group_by_time_window(self, items: Sequence, window_hours: Optional[float] = None) -> List[list]:
        """
        Tumbling grouping: a new group opens whenever a record falls more than
        one window past the first record of the current group.
        """
        if not items:
            return []
        delta = self._delta(window_hours)
        ordered = sorted(items, key=_by_timestamp)

        groups: List[list] = []
        current = [ordered[0]]
        group_start = ordered[0].timestamp
        for item in ordered[1:]:
            if item.timestamp - group_start <= delta:
                current.append(item)
            else:
                groups.append(current)
                current = [item]
                group_start = item.timestamp
        groups.append(current)
        return groups

    def sliding_window_analysis(self, items: Sequence, window_hours: Optional[float] = None) -> SlidingWindowResult:
        """Find the densest forward window; see module docstring."""
        result = SlidingWindowResult()
        if not items:
            return result

        delta = self._delta(window_hours)
        ordered = sorted(items, key=_by_timestamp)
        stamps = [item.timestamp for item in ordered]

        for ts in stamps:
            end = ts + delta
            lo = bisect.bisect_left(stamps, ts)
            hi = bisect.bisect_right(stamps, end)
            count = hi - lo
            if count > result.max_count:
                result.max_count = count
                result.max_window = Window(start=ts, end=end, items=ordered[lo:hi])
            result.windows.append(WindowCount(start=ts, end=end, count=count))

        return result

    def calculate_velocity(self, items: Sequence) -> float:
        """Records per hour across the whole span."""
        if len(items) < 2:
            return 0.0
        hours = _span_hours(sorted(items, key=_by_timestamp))
        if hours == 0:
            return float(len(items))
        return len(items) / hours

    def is_high_velocity(self, items: Sequence, threshold_hours: float = HIGH_VELOCITY_HOURS) -> bool:
        if len(items) < HIGH_VELOCITY_MIN_TX:
            return False
        return _span_hours(sorted(items, key=_by_timestamp)) <= threshold_hours
