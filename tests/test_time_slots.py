import pytest
from datetime import time

from campus_connect.utils.datetime_utils import (
    format_minutes,
    minutes_since_midnight,
    parse_time_of_day,
)
from campus_connect.utils.time_slots import (
    Interval,
    free_slots,
    intersect_intervals,
    invert_intervals,
    merge_intervals,
    mutual_free_slots,
)

WINDOW = (8 * 60, 22 * 60)

pytestmark = pytest.mark.unit


def hm(value: str) -> int:
    return minutes_since_midnight(parse_time_of_day(value))


def span(start: str, end: str) -> Interval:
    return Interval(hm(start), hm(end))


class TestMergeIntervals:
    """Sorting and merging busy blocks."""

    def test_overlapping_and_touching_blocks_merge(self):
        merged = merge_intervals(
            [span("10:00", "11:00"), span("09:00", "10:00"), span("10:30", "12:00")]
        )
        assert merged == [span("09:00", "12:00")]

    def test_disjoint_blocks_stay_separate_and_sorted(self):
        merged = merge_intervals([span("13:00", "14:00"), span("09:00", "10:00")])
        assert merged == [span("09:00", "10:00"), span("13:00", "14:00")]

    def test_empty_blocks_are_ignored(self):
        assert merge_intervals([Interval(600, 600)]) == []


class TestInvertIntervals:
    """Free time inside the daily window."""

    def test_no_routines_means_whole_window_free(self):
        assert invert_intervals([], *WINDOW) == [Interval(*WINDOW)]

    def test_blocks_outside_window_are_ignored(self):
        free = invert_intervals([span("06:00", "07:00"), span("22:30", "23:00")], *WINDOW)
        assert free == [Interval(*WINDOW)]

    def test_block_straddling_window_start_is_clipped(self):
        free = invert_intervals([span("07:00", "09:00")], *WINDOW)
        assert free == [Interval(hm("09:00"), WINDOW[1])]

    def test_fully_busy_day_has_no_free_time(self):
        assert invert_intervals([span("07:00", "23:00")], *WINDOW) == []


class TestMutualFreeTime:
    """Merge, invert and intersect two schedules."""

    def test_documented_example(self):
        busy_a = [span("09:00", "10:00"), span("11:00", "12:00")]
        busy_b = [span("09:30", "11:30")]

        slots = mutual_free_slots(busy_a, busy_b, *WINDOW, min_minutes=30)

        assert [(format_minutes(s.start), format_minutes(s.end)) for s in slots] == [
            ("08:00", "09:00"),
            ("12:00", "22:00"),
        ]

    def test_min_duration_filters_short_gaps(self):
        busy_a = [span("09:00", "10:00"), span("10:20", "12:00")]
        slots = mutual_free_slots(busy_a, [], *WINDOW, min_minutes=30)
        assert span("10:00", "10:20") not in slots

    def test_zero_min_duration_keeps_every_gap(self):
        busy_a = [span("09:00", "10:00"), span("10:20", "12:00")]
        slots = free_slots(busy_a, *WINDOW, min_minutes=0)
        assert span("10:00", "10:20") in slots

    def test_intersection_of_disjoint_lists_is_empty(self):
        first = [span("08:00", "09:00")]
        second = [span("09:00", "10:00")]
        assert intersect_intervals(first, second) == []


class TestTimeParsing:
    """Time-of-day helpers."""

    @pytest.mark.parametrize("value", ["25:00", "ab:cd", "9", ""])
    def test_rejects_invalid_values(self, value):
        with pytest.raises(ValueError):
            parse_time_of_day(value)

    def test_accepts_seconds(self):
        assert parse_time_of_day("09:15:30") == time(9, 15, 30)

    def test_started_minute_counts_when_rounding_up(self):
        assert minutes_since_midnight(time(10, 30, 30)) == 630
        assert minutes_since_midnight(time(10, 30, 30), round_up=True) == 631
        assert minutes_since_midnight(time(10, 30), round_up=True) == 630

    def test_format_minutes_pads(self):
        assert format_minutes(hm("08:05")) == "08:05"
