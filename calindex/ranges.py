"""
Multi-day range index and visual lane assignment.

Ranges are stacked into at most MAX_LANES rows per day. Assignment is a
chronological sweep over every covered day: lanes are released the day after
a range ends, waiting (overflow) ranges are promoted into freed lanes, then
ranges starting that day are placed. Long ranges never take a lane.

When anything is in overflow the lane ceiling drops by one so the last row
stays free for a "more" indicator.
"""

import logging
from typing import Any, Optional

from .types import (
    DateKey,
    RangeRecord,
    end_date_from_duration,
    iter_days,
    parse_minutes,
    to_date_key,
)

logger = logging.getLogger(__name__)


# Maximum concurrent lanes per day
MAX_LANES = 4

# Ranges spanning more days than this stay in overflow for their whole span
MAX_LANE_RANGE_DAYS = 5

# Lanes below this index stay visible even on crowded days
ALWAYS_VISIBLE_LANES = 2


def build_range(
    path: str,
    name: str,
    *,
    date_start: Any = None,
    date_end: Any = None,
    scheduled: Any = None,
    time_estimate: Any = None,
    color: Optional[str] = None,
    tags: tuple[str, ...] = (),
) -> Optional[RangeRecord]:
    """
    Resolve a RangeRecord from an explicit start/end pair or from a
    scheduled date plus a minute estimate.

    The explicit pair takes precedence when it resolves to a valid,
    non-inverted span; otherwise the scheduled pair is tried.

    Returns:
        The record, or None when neither source yields a valid span
    """
    start = to_date_key(date_start)
    end = to_date_key(date_end)
    if start and end and start <= end:
        return RangeRecord(path=path, name=name, date_start=start, date_end=end,
                           color=color, tags=tags)

    sched = to_date_key(scheduled)
    minutes = parse_minutes(time_estimate)
    if sched and minutes:
        end = end_date_from_duration(sched, minutes)
        if end is not None:
            return RangeRecord(path=path, name=name, date_start=sched, date_end=end,
                               color=color, tags=tags)
    return None


def _next_free_lane(occupied: set[int], ceiling: int) -> Optional[int]:
    for lane in range(ceiling):
        if lane not in occupied:
            return lane
    return None


class RangeManager:
    """
    Interval index over RangeRecords with lane, overflow and emergence views.

    Structural changes (add/remove) do not recompute lanes by themselves;
    call assign_lanes() once after a batch of changes.
    """

    def __init__(self):
        # path -> record, insertion ordered (re-adding moves to the end)
        self._ranges: dict[str, RangeRecord] = {}
        self._ranges_by_date: dict[DateKey, list[RangeRecord]] = {}
        self._dates_by_path: dict[str, set[DateKey]] = {}
        self._slots_by_date: dict[DateKey, dict[str, int]] = {}
        self._overflow_by_date: dict[DateKey, list[str]] = {}
        self._emergence: dict[str, DateKey] = {}

    def clear(self) -> None:
        self._ranges.clear()
        self._ranges_by_date.clear()
        self._dates_by_path.clear()
        self._slots_by_date.clear()
        self._overflow_by_date.clear()
        self._emergence.clear()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def add_range(self, record: RangeRecord) -> bool:
        """Register a range. Invalid or inverted spans are dropped.

        Returns:
            True if the record was registered
        """
        start = to_date_key(record.date_start)
        end = to_date_key(record.date_end)
        if not start or not end or start > end:
            logger.debug("Dropping invalid range for %s: %s..%s",
                         record.path, record.date_start, record.date_end)
            return False
        self._ranges.pop(record.path, None)
        self._ranges[record.path] = record
        return True

    def remove_range(self, path: str) -> bool:
        return self._ranges.pop(path, None) is not None

    def has_range(self, path: str) -> bool:
        return path in self._ranges

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def all_ranges(self) -> list[RangeRecord]:
        return list(self._ranges.values())

    def get_ranges_for_date(self, key: DateKey) -> list[RangeRecord]:
        return list(self._ranges_by_date.get(key, ()))

    def get_range_slots(self, key: DateKey) -> dict[str, int]:
        """Lane of every range holding one on ``key`` (path -> lane)."""
        return dict(self._slots_by_date.get(key, {}))

    def get_overflow(self, key: DateKey) -> list[str]:
        """Paths active on ``key`` without a lane."""
        return list(self._overflow_by_date.get(key, ()))

    def get_emergence(self, path: str) -> Optional[DateKey]:
        return self._emergence.get(path)

    def is_emergence(self, path: str, key: DateKey) -> bool:
        return self._emergence.get(path) == key

    def dates_for_path(self, path: str) -> set[DateKey]:
        return set(self._dates_by_path.get(path, ()))

    # -------------------------------------------------------------------------
    # Lane sweep
    # -------------------------------------------------------------------------

    def assign_lanes(self) -> None:
        """Rebuild the date membership, lane, overflow and emergence views."""
        self._ranges_by_date.clear()
        self._dates_by_path.clear()
        self._slots_by_date.clear()
        self._overflow_by_date.clear()
        self._emergence.clear()

        if not self._ranges:
            return

        starting: dict[DateKey, list[RangeRecord]] = {}
        for record in self._ranges.values():
            days = set()
            for key in iter_days(record.date_start, record.date_end):
                self._ranges_by_date.setdefault(key, []).append(record)
                days.add(key)
            self._dates_by_path[record.path] = days
            starting.setdefault(record.date_start, []).append(record)

        first = min(r.date_start for r in self._ranges.values())
        last = max(r.date_end for r in self._ranges.values())

        active: dict[str, int] = {}
        occupied: set[int] = set()
        # dict as an insertion-ordered set
        overflow: dict[str, None] = {}
        prev_visible: set[str] = set()
        first_day = True

        # Gap days are swept too so lanes free up on the right day
        for key in iter_days(first, last):
            for path, lane in list(active.items()):
                if self._ranges[path].date_end < key:
                    del active[path]
                    occupied.discard(lane)
            for path in list(overflow):
                if self._ranges[path].date_end < key:
                    del overflow[path]

            for path in list(overflow):
                record = self._ranges[path]
                if record.duration_days > MAX_LANE_RANGE_DAYS:
                    continue
                ceiling = MAX_LANES - 1 if len(overflow) > 1 else MAX_LANES
                lane = _next_free_lane(occupied, ceiling)
                if lane is not None:
                    active[path] = lane
                    occupied.add(lane)
                    del overflow[path]

            for record in starting.get(key, ()):
                if record.duration_days > MAX_LANE_RANGE_DAYS:
                    overflow[record.path] = None
                    continue
                ceiling = MAX_LANES - 1 if overflow else MAX_LANES
                lane = _next_free_lane(occupied, ceiling)
                if lane is None:
                    overflow[record.path] = None
                else:
                    active[record.path] = lane
                    occupied.add(lane)

            crowded = len(active) + len(overflow) > MAX_LANES or bool(overflow)
            visible = {
                path for path, lane in active.items()
                if lane < ALWAYS_VISIBLE_LANES or not crowded
            }

            if not first_day:
                for path in visible - prev_visible:
                    if self._ranges[path].date_start < key:
                        self._emergence[path] = key

            if active:
                self._slots_by_date[key] = dict(active)
            if overflow:
                self._overflow_by_date[key] = list(overflow)
            prev_visible = visible
            first_day = False

        logger.debug("Assigned lanes for %d ranges over %s..%s",
                     len(self._ranges), first, last)
