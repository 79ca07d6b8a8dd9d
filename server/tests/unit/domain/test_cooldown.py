# server/tests/unit/domain/test_cooldown.py
import datetime as dt

import pytest

from alerting.domain.policies import cooldown_permitted

pytestmark = pytest.mark.unit

NOW = dt.datetime(2024, 5, 1, 12, 0, tzinfo=dt.timezone.utc)


def test_never_triggered_is_permitted():
    assert cooldown_permitted(None, 5, NOW) is True


def test_boundaries_are_inclusive():
    assert cooldown_permitted(NOW - dt.timedelta(minutes=5), 5, NOW) is True
    assert cooldown_permitted(NOW - dt.timedelta(minutes=4, seconds=59), 5, NOW) is False
    assert cooldown_permitted(NOW - dt.timedelta(minutes=7), 5, NOW) is True


def test_naive_datetimes_are_treated_as_utc():
    naive_last = (NOW - dt.timedelta(minutes=2)).replace(tzinfo=None)
    assert cooldown_permitted(naive_last, 5, NOW) is False
    assert cooldown_permitted(naive_last, 1, NOW.replace(tzinfo=None)) is True


def test_other_timezones_are_normalised():
    paris = dt.timezone(dt.timedelta(hours=2))
    last = (NOW - dt.timedelta(minutes=6)).astimezone(paris)
    assert cooldown_permitted(last, 5, NOW) is True
