import random
from datetime import timedelta

import pytest

from golink.utils import (
    calculate_backoff_by_attempt,
    calculate_backoff_by_time,
    is_empty,
    to_duration,
    to_duration_ms,
)

SECOND = timedelta(seconds=1)


@pytest.fixture
def no_jitter(monkeypatch):
    monkeypatch.setattr(random, "random", lambda: 0.0)


@pytest.fixture
def full_jitter(monkeypatch):
    monkeypatch.setattr(random, "random", lambda: 1.0)


def test_backoff_by_time_attempt_zero_is_base(no_jitter):
    assert calculate_backoff_by_time(0, SECOND, timedelta(seconds=30)) == SECOND


def test_backoff_by_time_grows(no_jitter):
    delays = [calculate_backoff_by_time(n, SECOND, timedelta(hours=1)) for n in range(6)]
    assert delays == sorted(delays)
    assert all(later == earlier * 2 for earlier, later in zip(delays, delays[1:]))


def test_backoff_by_time_is_capped(no_jitter):
    cap = timedelta(seconds=30)
    assert calculate_backoff_by_time(10, SECOND, cap) == cap


def test_backoff_by_time_huge_attempt_is_capped(no_jitter):
    cap = timedelta(seconds=30)
    assert calculate_backoff_by_time(5000, SECOND, cap) == cap


def test_backoff_jitter_stays_within_ten_percent(full_jitter):
    cap = timedelta(seconds=30)
    assert calculate_backoff_by_time(10, SECOND, cap) == cap * 1.1


def test_backoff_by_time_random_bounds():
    cap = timedelta(seconds=30)
    for _ in range(50):
        delay = calculate_backoff_by_time(20, SECOND, cap)
        assert cap <= delay <= cap * 1.1


def test_backoff_by_attempt_caps_exponent(no_jitter):
    capped = calculate_backoff_by_attempt(100, SECOND, 3)
    assert capped == calculate_backoff_by_attempt(3, SECOND, 3)
    assert capped > calculate_backoff_by_attempt(2, SECOND, 3)


def test_backoff_by_attempt_zero_is_base(no_jitter):
    assert calculate_backoff_by_attempt(0, SECOND, 5) == SECOND


@pytest.mark.parametrize("text", ["", "   ", "\t\n ", "\u3000"])
def test_is_empty_true(text):
    assert is_empty(text) is True


@pytest.mark.parametrize("text", ["a", "  a  ", "\tx\n"])
def test_is_empty_false(text):
    assert is_empty(text) is False


def test_to_duration_seconds():
    assert to_duration(5) == timedelta(seconds=5)


def test_to_duration_milliseconds():
    assert to_duration_ms(1500) == timedelta(milliseconds=1500)
    assert to_duration_ms(1000) == to_duration(1)