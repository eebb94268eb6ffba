"""Redis-backed cache engine storing JSON-encoded values."""

import json
import threading
from dataclasses import asdict, dataclass, is_dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional, Union

import redis
from redis.backoff import ExponentialBackoff
from redis.cluster import ClusterNode, RedisCluster
from redis.retry import Retry
from redis.sentinel import Sentinel

from .settings import RedisSettings
from .utils import to_duration, to_duration_ms

DEFAULT_POOL_SIZE = 10
DEFAULT_MIN_IDLE_CONNS = 5
DEFAULT_POOL_TIMEOUT = 5
DEFAULT_DIAL_TIMEOUT = 5
DEFAULT_READ_TIMEOUT = 3
DEFAULT_WRITE_TIMEOUT = 3
DEFAULT_MAX_RETRIES = 3
DEFAULT_MIN_RETRY_BACKOFF = 300
DEFAULT_MAX_RETRY_BACKOFF = 500

_DEFAULT_HOST = "localhost"
_DEFAULT_PORT = 6379

Ttl = Union[timedelta, int, float, None]


class RedisError(Exception):
    """Base class of cache engine errors."""


class KeyNotFoundError(RedisError):
    """The key is not in the cache."""

    def __init__(self, message: str = "key not found") -> None:
        super().__init__(message)


class PingFailedError(RedisError):
    """The server did not answer a ping."""


class ConnectionFailedError(RedisError):
    """A connection to the server could not be established."""


@dataclass
class GeoLocation:
    """A named point on the map."""

    member: str
    longitude: float
    latitude: float


def _json_default(obj: Any) -> Any:
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    raise TypeError(f"object of type {type(obj).__name__} is not JSON serializable")


def _marshal(value: Any) -> bytes:
    return json.dumps(value, default=_json_default, separators=(",", ":"), ensure_ascii=False).encode()


def _ttl_ms(ttl: Ttl) -> Optional[int]:
    if ttl is None:
        return None
    seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
    millis = int(seconds * 1000)
    return millis if millis > 0 else None


def _parse_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        return address or _DEFAULT_HOST, _DEFAULT_PORT
    return host or _DEFAULT_HOST, int(port) if port else _DEFAULT_PORT


def _text(raw: Any) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8", errors="replace")
    return str(raw)


def _build_client(config: RedisSettings) -> Any:
    """Pick a sentinel, cluster or single-node client, as the settings suggest."""
    read_timeout = to_duration(config.read_timeout).total_seconds()
    dial_timeout = to_duration(config.dial_timeout).total_seconds()
    retry = Retry(
        ExponentialBackoff(
            cap=to_duration_ms(config.max_retry_backoff).total_seconds(),
            base=to_duration_ms(config.min_retry_backoff).total_seconds(),
        ),
        config.max_retries,
    )
    password = config.password or None
    addresses = [_parse_address(address) for address in config.addrs] or [(_DEFAULT_HOST, _DEFAULT_PORT)]

    if config.master_name:
        sentinel = Sentinel(addresses, socket_timeout=read_timeout)
        return sentinel.master_for(
            config.master_name,
            db=config.database,
            password=password,
            socket_timeout=read_timeout,
            socket_connect_timeout=dial_timeout,
            retry=retry,
            max_connections=config.pool_size,
        )
    if len(addresses) > 1:
        return RedisCluster(
            startup_nodes=[ClusterNode(host, port) for host, port in addresses],
            password=password,
            socket_timeout=read_timeout,
            socket_connect_timeout=dial_timeout,
        )
    host, port = addresses[0]
    return redis.Redis(
        host=host,
        port=port,
        db=config.database,
        password=password,
        socket_timeout=read_timeout,
        socket_connect_timeout=dial_timeout,
        retry=retry,
        max_connections=config.pool_size,
    )


class RedisEngine:
    """A cache engine storing values as JSON in Redis."""

    def __init__(self, config: RedisSettings, client: Any = None) -> None:
        self._config = config
        self._client = client
        self._lock = threading.Lock()

    @property
    def config(self) -> RedisSettings:
        """The settings in use, defaults filled in after connecting."""
        return self._config

    @property
    def client(self) -> Any:
        """The underlying Redis client."""
        return self._client

    def _set_default_config(self) -> None:
        config = self._config
        config.pool_size = config.pool_size or DEFAULT_POOL_SIZE
        config.min_idle_conns = config.min_idle_conns or DEFAULT_MIN_IDLE_CONNS
        config.pool_timeout = config.pool_timeout or DEFAULT_POOL_TIMEOUT
        config.dial_timeout = config.dial_timeout or DEFAULT_DIAL_TIMEOUT
        config.read_timeout = config.read_timeout or DEFAULT_READ_TIMEOUT
        config.write_timeout = config.write_timeout or DEFAULT_WRITE_TIMEOUT
        config.max_retries = config.max_retries or DEFAULT_MAX_RETRIES
        config.min_retry_backoff = config.min_retry_backoff or DEFAULT_MIN_RETRY_BACKOFF
        config.max_retry_backoff = config.max_retry_backoff or DEFAULT_MAX_RETRY_BACKOFF

    def connect(self) -> None:
        """Fill in default settings, create the client if needed and ping the server."""
        self._set_default_config()
        if self._client is None:
            self._client = _build_client(self._config)
        try:
            self._client.ping()
        except Exception as exc:
            raise PingFailedError(f"redis ping failed: {exc}") from exc

    def get(self, key: str) -> bytes:
        """Return the raw stored bytes of a key; raise KeyNotFoundError if absent."""
        value = self._client.get(key)
        if value is None:
            raise KeyNotFoundError()
        return value.encode() if isinstance(value, str) else bytes(value)

    def delete(self, key: str) -> None:
        """Remove a key."""
        with self._lock:
            self._client.delete(key)

    def invalidate_prefix(self, prefix: str) -> None:
        """Remove every key starting with the prefix."""
        with self._lock:
            keys = self._client.keys(prefix + "*")
            if keys:
                self._client.delete(*keys)

    def set(self, key: str, value: Any, ttl: Ttl = None) -> None:
        """Store a value as JSON; a missing or non-positive ttl means no expiry."""
        with self._lock:
            data = _marshal(value)
            self._client.set(key, data, px=_ttl_ms(ttl))

    def batch_set(self, values: dict[str, Any], ttl: Ttl = None) -> None:
        """Store several values in one pipeline."""
        with self._lock:
            encoded = {key: _marshal(value) for key, value in values.items()}
            pipe = self._client.pipeline()
            px = _ttl_ms(ttl)
            for key, data in encoded.items():
                pipe.set(key, data, px=px)
            pipe.execute()

    def delete_batch(self, keys: list[str]) -> None:
        """Remove several keys."""
        self._client.delete(*keys)

    def geo_add(self, key: str, *args: GeoLocation) -> None:
        """Add named points to a geospatial index."""
        if not args:
            return
        with self._lock:
            values: list[Any] = []
            for location in args:
                values.extend((location.longitude, location.latitude, location.member))
            pipe = self._client.pipeline()
            pipe.geoadd(key, values)
            pipe.execute()

    def geo_remove(self, key: str, *args: str) -> None:
        """Remove members from a geospatial index."""
        if not args:
            return
        with self._lock:
            pipe = self._client.pipeline()
            pipe.zrem(key, *args)
            pipe.execute()

    def geo_radius(
        self, key: str, longitude: float, latitude: float, radius: float, unit: str
    ) -> list[GeoLocation]:
        """Return members within the radius, nearest first."""
        with self._lock:
            result = self._client.geosearch(
                key,
                longitude=longitude,
                latitude=latitude,
                radius=radius,
                unit=unit,
                sort="ASC",
                withcoord=True,
                withdist=True,
            )
        locations = []
        for item in result:
            name = item[0]
            lon, lat = item[-1]
            locations.append(GeoLocation(member=_text(name), longitude=float(lon), latitude=float(lat)))
        return locations

    def close(self) -> None:
        """Close the client."""
        if self._client is not None:
            self._client.close()

    def __enter__(self) -> "RedisEngine":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def new_connection(config: RedisSettings, client: Any = None) -> RedisEngine:
    """Create an engine and connect it; raise ConnectionFailedError on failure."""
    engine = RedisEngine(config, client)
    try:
        engine.connect()
    except Exception as exc:
        raise ConnectionFailedError(f"failed to connect to Redis: {exc}") from exc
    return engine