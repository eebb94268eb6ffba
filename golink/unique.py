"""Base62 short codes and snowflake identifiers."""

import threading
from datetime import datetime, timedelta, timezone

from .settings import SnowflakeNodeSettings
from .timer import Timer

ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz"
BASE = 62

_INDEX = {char: position for position, char in enumerate(ALPHABET)}
_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_INT64_MASK = (1 << 64) - 1
_INT64_MAX = (1 << 63) - 1
_SECONDS_THRESHOLD_BITS = 50


def base62_encode(value: int) -> str:
    """Encode an integer (by magnitude) as a base62 string."""
    if value == 0:
        return ALPHABET[0]
    n = abs(value)
    chars = []
    while n > 0:
        n, remainder = divmod(n, BASE)
        chars.append(ALPHABET[remainder])
    return "".join(reversed(chars))


def base62_decode(text: str) -> int:
    """Decode a base62 string into a signed 64-bit integer."""
    result = 0
    for char in text:
        index = _INDEX.get(char)
        if index is None:
            raise ValueError("invalid character in base62 string")
        result = (result * BASE + index) & _INT64_MASK
    return result - (1 << 64) if result > _INT64_MAX else result


def _unix_seconds(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return (moment - _UNIX_EPOCH) // timedelta(seconds=1)


def _unix_millis(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return (moment - _UNIX_EPOCH) // timedelta(milliseconds=1)


class SnowflakeNode:
    """Thread-safe generator of time-ordered unique identifiers."""

    def __init__(self, config: SnowflakeNodeSettings, clock: Timer) -> None:
        layout = config.config
        node_max = -1 ^ (-1 << layout.node)
        step_max = -1 ^ (-1 << layout.step)
        if config.worker_id < 0 or config.worker_id > node_max:
            raise ValueError("node ID exceeds maximum allowed by configuration")

        total_bits = layout.total_bits or 63
        if total_bits <= layout.node + layout.step:
            raise ValueError("total bits must be greater than node + step bits")

        if total_bits in (63, 64):
            limit_mask = _INT64_MAX
        else:
            limit_mask = (1 << total_bits) - 1

        self._lock = threading.Lock()
        self._timestamp = 0
        self._node = config.worker_id
        self._step = 0
        self._epoch = layout.epoch
        self._total_bits = total_bits
        self._step_max = step_max
        self._time_shift = layout.node + layout.step
        self._node_shift = layout.step
        self._limit_mask = limit_mask
        self._clock = clock

    def _current(self) -> int:
        moment = self._clock.now()
        # Narrow layouts count seconds so the time part does not overflow quickly.
        if self._total_bits < _SECONDS_THRESHOLD_BITS:
            return _unix_seconds(moment)
        return _unix_millis(moment)

    def generate(self) -> int:
        """Return the next unique identifier."""
        with self._lock:
            now = max(self._current(), self._timestamp)
            if now == self._timestamp:
                self._step = (self._step + 1) & self._step_max
                if self._step == 0:
                    while now <= self._timestamp:
                        now = self._current()
            else:
                self._step = 0
            self._timestamp = now

            identifier = (
                ((now - self._epoch) << self._time_shift)
                | (self._node << self._node_shift)
                | self._step
            )
            return identifier & self._limit_mask