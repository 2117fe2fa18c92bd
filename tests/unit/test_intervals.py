from datetime import datetime, timedelta, timezone
from itertools import product

import pytest

from salon_booking.utils.intervals import TimeInterval, overlaps


def t(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 3, 10, hour, minute, tzinfo=timezone.utc)


class TestTimeInterval:
    def test_rejects_empty_or_inverted_interval(self):
        with pytest.raises(ValueError):
            TimeInterval(t(10), t(10))
        with pytest.raises(ValueError):
            TimeInterval(t(11), t(10))

    def test_from_duration(self):
        interval = TimeInterval.from_duration(t(10), 45)
        assert interval.end == t(10, 45)
        assert interval.duration == timedelta(minutes=45)


class TestOverlaps:
    def test_back_to_back_intervals_do_not_overlap(self):
        assert not overlaps(
            TimeInterval(t(10), t(10, 30)), TimeInterval(t(10, 30), t(11))
        )
        assert not overlaps(
            TimeInterval(t(10, 30), t(11)), TimeInterval(t(10), t(10, 30))
        )

    def test_one_minute_overlap_is_detected(self):
        assert overlaps(TimeInterval(t(10), t(10, 31)), TimeInterval(t(10, 30), t(11)))

    def test_containment_overlaps(self):
        outer = TimeInterval(t(9), t(12))
        inner = TimeInterval(t(10), t(10, 30))
        assert overlaps(outer, inner)
        assert inner.overlaps(outer)

    def test_identical_intervals_overlap(self):
        interval = TimeInterval(t(14), t(15))
        assert overlaps(interval, interval)

    def test_overlap_is_symmetric(self):
        points = [t(9), t(9, 30), t(10), t(10, 30), t(11)]
        intervals = [
            TimeInterval(start, end) for start, end in product(points, points) if start < end
        ]
        for a, b in product(intervals, intervals):
            assert overlaps(a, b) == overlaps(b, a)
