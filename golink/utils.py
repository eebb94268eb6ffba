"""Small helpers: retry backoff, string checks and duration conversion."""

import random
from datetime import timedelta

_JITTER_RATIO = 0.1


def _exponential_seconds(base_delay: timedelta, attempt: int) -> float:
    base = base_delay.total_seconds()
    try:
        return base * 2.0 ** attempt
    except OverflowError:
        return float("inf") if base > 0 else 0.0


def _with_jitter(backoff: float) -> timedelta:
    jitter = random.random() * (backoff * _JITTER_RATIO)
    return timedelta(seconds=backoff + jitter)


def calculate_backoff_by_time(attempt: int, base_delay: timedelta, max_delay: timedelta) -> timedelta:
    """Exponential backoff with up to 10% jitter, capped at max_delay before jitter."""
    backoff = min(_exponential_seconds(base_delay, attempt), max_delay.total_seconds())
    return _with_jitter(backoff)


def calculate_backoff_by_attempt(attempt: int, base_delay: timedelta, max_attempts: int) -> timedelta:
    """Exponential backoff with up to 10% jitter, the exponent capped at max_attempts."""
    attempt = min(attempt, max_attempts)
    return _with_jitter(_exponential_seconds(base_delay, attempt))


def is_empty(text: str) -> bool:
    """Tell whether a string is empty or whitespace only."""
    return text.strip() == ""


def to_duration(seconds: int) -> timedelta:
    """Convert a whole number of seconds to a duration."""
    return timedelta(seconds=int(seconds))


def to_duration_ms(milliseconds: int) -> timedelta:
    """Convert a whole number of milliseconds to a duration."""
    return timedelta(milliseconds=int(milliseconds))