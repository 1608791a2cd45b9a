"""Interval arithmetic on minutes-since-midnight used for free-time lookups.

All intervals are half-open ``[start, end)`` and expressed in minutes so that
the routines service can feed in stored ``time`` values after conversion.
"""

from typing import Iterable, List, NamedTuple


class Interval(NamedTuple):
    start: int
    end: int

    @property
    def duration(self) -> int:
        return self.end - self.start


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """Sort by start and merge overlapping or touching intervals."""
    merged: List[Interval] = []
    for current in sorted(i for i in intervals if i.end > i.start):
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def invert_intervals(
    busy: Iterable[Interval], window_start: int, window_end: int
) -> List[Interval]:
    """Free intervals inside the window, i.e. the complement of busy time."""
    free: List[Interval] = []
    cursor = window_start
    for block in merge_intervals(busy):
        if block.end <= window_start or block.start >= window_end:
            continue
        if block.start > cursor:
            free.append(Interval(cursor, min(block.start, window_end)))
        cursor = max(cursor, block.end)
        if cursor >= window_end:
            break
    if cursor < window_end:
        free.append(Interval(cursor, window_end))
    return free


def intersect_intervals(
    first: List[Interval], second: List[Interval]
) -> List[Interval]:
    """Two-pointer intersection of two sorted, non-overlapping interval lists."""
    result: List[Interval] = []
    i = j = 0
    while i < len(first) and j < len(second):
        start = max(first[i].start, second[j].start)
        end = min(first[i].end, second[j].end)
        if start < end:
            result.append(Interval(start, end))
        # advance whichever interval finishes first
        if first[i].end < second[j].end:
            i += 1
        else:
            j += 1
    return result


def filter_min_duration(intervals: Iterable[Interval], minutes: int) -> List[Interval]:
    return [i for i in intervals if i.duration >= minutes]


def free_slots(
    busy: Iterable[Interval], window_start: int, window_end: int, min_minutes: int = 0
) -> List[Interval]:
    return filter_min_duration(
        invert_intervals(busy, window_start, window_end), min_minutes
    )


def mutual_free_slots(
    busy_a: Iterable[Interval],
    busy_b: Iterable[Interval],
    window_start: int,
    window_end: int,
    min_minutes: int = 0,
) -> List[Interval]:
    """Slots in the window where neither party is busy, at least min_minutes long."""
    free_a = invert_intervals(busy_a, window_start, window_end)
    free_b = invert_intervals(busy_b, window_start, window_end)
    return filter_min_duration(intersect_intervals(free_a, free_b), min_minutes)
