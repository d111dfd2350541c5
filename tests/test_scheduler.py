from datetime import datetime

import pytest

from scripts.run_scheduler import next_run_time


@pytest.mark.parametrize(
    "now, expected",
    [
        (datetime(2025, 1, 13, 10, 15), datetime(2025, 1, 13, 10, 59, 30)),
        (datetime(2025, 1, 13, 10, 0, 0), datetime(2025, 1, 13, 10, 59, 30)),
        (datetime(2025, 1, 13, 10, 59, 30), datetime(2025, 1, 13, 11, 0)),
        (datetime(2025, 1, 13, 23, 59, 45), datetime(2025, 1, 14, 0, 0)),
    ],
)
def test_next_run_time(now, expected):
    assert next_run_time(now) == expected
