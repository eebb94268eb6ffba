import time
from datetime import datetime, timedelta, timezone

import pytest

from golink.timer import CachedTimer


def test_cached_timer_starts_near_current_time():
    before = datetime.now(timezone.utc)
    with CachedTimer(timedelta(milliseconds=10)) as timer:
        start = timer.now()
    after = datetime.now(timezone.utc)
    assert before <= start <= after


def test_cached_timer_advances():
    with CachedTimer(timedelta(milliseconds=10)) as timer:
        first = timer.now()
        time.sleep(0.15)
        second = timer.now()
    assert second > first


def test_cached_timer_advances_in_whole_steps():
    step = timedelta(milliseconds=10)
    with CachedTimer(step) as timer:
        first = timer.now()
        time.sleep(0.1)
        second = timer.now()
    assert (second - first) % step == timedelta(0)


def test_cached_timer_is_frozen_after_stop():
    timer = CachedTimer(timedelta(milliseconds=5))
    timer.stop()
    frozen = timer.now()
    time.sleep(0.05)
    assert timer.now() == frozen


def test_non_positive_step_is_rejected():
    with pytest.raises(ValueError):
        CachedTimer(timedelta(0))