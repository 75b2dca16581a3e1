from datetime import datetime, timedelta, timezone

import pytest

from cages.timeutils import format_distance_to_now

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize('delta,expected', [
    (timedelta(seconds=2), 'vài giây trước'),
    (timedelta(seconds=30), '30 giây trước'),
    (timedelta(minutes=5), '5 phút trước'),
    (timedelta(hours=3), '3 giờ trước'),
    (timedelta(days=2), '2 ngày trước'),
])
def test_format_distance_to_now(delta, expected):
    assert format_distance_to_now(NOW - delta, now=NOW) == expected
