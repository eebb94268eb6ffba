import fnmatch
from datetime import datetime, timedelta

import pytest
import redis

from golink.redis_engine import (
    ConnectionFailedError,
    GeoLocation,
    KeyNotFoundError,
    PingFailedError,
    RedisEngine,
    new_connection,
)
from golink.settings import RedisSettings


class FakePipeline:
    def __init__(self, owner):
        self.owner = owner
        self.commands = []

    def set(self, key, value, px=None):
        self.commands.append(("set", key, value, px))
        return self

    def geoadd(self, name, values):
        self.commands.append(("geoadd", name, list(values)))
        return self

    def zrem(self, name, *members):
        self.commands.append(("zrem", name, members))
        return self

    def execute(self):
        self.owner.executed.append(list(self.commands))
        for command in self.commands:
            if command[0] == "set":
                self.owner.set(command[1], command[2], px=command[3])
            elif command[0] == "geoadd":
                values = command[2]
                index = self.owner.geo.setdefault(command[1], {})
                for start in range(0, len(values), 3):
                    lon, lat, member = values[start:start + 3]
                    index[member] = (lon, lat)
            elif command[0] == "zrem":
                index = self.owner.geo.get(command[1], {})
                for member in command[2]:
                    index.pop(member, None)
        return [True] * len(self.commands)


class FakeRedis:
    def __init__(self, ping_error=None):
        self.store = {}
        self.expiry = {}
        self.geo = {}
        self.executed = []
        self.ping_error = ping_error
        self.closed = False
        self.geosearch_calls = []
        self.geosearch_result = None

    def ping(self):
        if self.ping_error is not None:
            raise self.ping_error
        return True

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, px=None):
        self.store[key] = value
        self.expiry[key] = px
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if key in self.store:
                del self.store[key]
                removed += 1
        return removed

    def keys(self, pattern):
        return [key for key in self.store if fnmatch.fnmatchcase(key, pattern)]

    def pipeline(self):
        return FakePipeline(self)

    def geosearch(self, name, **kwargs):
        self.geosearch_calls.append((name, kwargs))
        if self.geosearch_result is not None:
            return self.geosearch_result
        return [
            [str(member).encode(), 0.0, coords]
            for member, coords in self.geo.get(name, {}).items()
        ]

    def close(self):
        self.closed = True


@pytest.fixture
def fake():
    return FakeRedis()


@pytest.fixture
def engine(fake):
    settings = RedisSettings(
        addrs=["localhost:6379"],
        pool_size=10,
        min_idle_conns=1,
        dial_timeout=5,
        read_timeout=3,
        write_timeout=3,
        pool_timeout=5,
        max_retries=3,
        min_retry_backoff=100,
        max_retry_backoff=500,
    )
    return new_connection(settings, fake)


def test_set_stores_json(engine, fake):
    engine.set("test-set-key", {"foo": "bar"}, 0)
    assert engine.get("test-set-key") == b'{"foo":"bar"}'
    assert fake.expiry["test-set-key"] is None


def test_get_returns_json_bytes(engine):
    engine.set("test-get-key", "some-value", 0)
    assert engine.get("test-get-key") == b'"some-value"'


def test_update_overwrites(engine):
    engine.set("test-update-key", "value1", 0)
    engine.set("test-update-key", "value2", 0)
    assert engine.get("test-update-key") == b'"value2"'


def test_delete_removes_key(engine):
    engine.set("test-delete-key", "val", 0)
    engine.delete("test-delete-key")
    with pytest.raises(KeyNotFoundError):
        engine.get("test-delete-key")


def test_invalidate_prefix(engine):
    engine.set("prefix-1", "v1", 0)
    engine.set("prefix-2", "v2", 0)
    engine.set("other-key", "v3", 0)
    engine.invalidate_prefix("prefix-")
    with pytest.raises(KeyNotFoundError):
        engine.get("prefix-1")
    with pytest.raises(KeyNotFoundError):
        engine.get("prefix-2")
    assert engine.get("other-key") == b'"v3"'


def test_get_missing_key_raises(engine):
    with pytest.raises(KeyNotFoundError, match="key not found"):
        engine.get("missing")


def test_ttl_is_passed_in_milliseconds(engine, fake):
    engine.set("k", 1, timedelta(hours=1))
    engine.set("j", 1, 2)
    assert engine.get("k") == b"1"
    assert engine.get("j") == b"1"
    assert fake.expiry["k"] == 3_600_000
    assert fake.expiry["j"] == 2000


def test_set_serialises_dates(engine):
    engine.set("d", {"at": datetime(2024, 1, 2, 3, 4, 5)})
    assert engine.get("d") == b'{"at":"2024-01-02T03:04:05"}'


def test_set_rejects_unserialisable(engine, fake):
    with pytest.raises(TypeError):
        engine.set("bad", object())
    assert "bad" not in fake.store


def test_batch_set_uses_one_pipeline(engine, fake):
    engine.batch_set({"a": 1, "b": [1, 2]}, timedelta(seconds=5))
    assert engine.get("a") == b"1"
    assert engine.get("b") == b"[1,2]"
    assert len(fake.executed) == 1
    assert fake.expiry == {"a": 5000, "b": 5000}


def test_delete_batch(engine):
    engine.set("a", 1)
    engine.set("b", 2)
    engine.set("c", 3)
    engine.delete_batch(["a", "b"])
    assert engine.get("c") == b"3"
    with pytest.raises(KeyNotFoundError):
        engine.get("a")
    with pytest.raises(KeyNotFoundError):
        engine.get("b")


def test_geo_add_and_remove(engine):
    engine.geo_add("places", GeoLocation("home", 13.4, 52.5), GeoLocation("work", 2.3, 48.8))
    assert engine.geo_radius("places", 0.0, 0.0, 10000, "km") == [
        GeoLocation("home", 13.4, 52.5),
        GeoLocation("work", 2.3, 48.8),
    ]
    engine.geo_remove("places", "home")
    assert engine.geo_radius("places", 0.0, 0.0, 10000, "km") == [GeoLocation("work", 2.3, 48.8)]


def test_geo_add_without_locations_does_nothing(engine, fake):
    engine.geo_add("places")
    engine.geo_remove("places")
    assert engine.geo_radius("places", 0.0, 0.0, 10, "km") == []
    assert fake.executed == []


def test_geo_radius_converts_results(engine, fake):
    fake.geosearch_result = [[b"home", 0.5, (13.4, 52.5)], [b"park", 1.5, (13.5, 52.6)]]
    found = engine.geo_radius("places", 13.4, 52.5, 10, "km")
    assert found == [GeoLocation("home", 13.4, 52.5), GeoLocation("park", 13.5, 52.6)]
    name, kwargs = fake.geosearch_calls[0]
    assert name == "places"
    assert kwargs["radius"] == 10
    assert kwargs["unit"] == "km"
    assert kwargs["sort"] == "ASC"


def test_defaults_are_filled_in(fake):
    settings = RedisSettings()
    engine = new_connection(settings, fake)
    assert engine.config.pool_size == 10
    assert engine.config.min_idle_conns == 5
    assert engine.config.dial_timeout == 5
    assert engine.config.read_timeout == 3
    assert engine.config.max_retries == 3
    assert engine.config.min_retry_backoff == 300
    assert engine.config.max_retry_backoff == 500


def test_ping_failure_raises_connection_failed():
    fake = FakeRedis(ping_error=redis.ConnectionError("refused"))
    with pytest.raises(ConnectionFailedError) as info:
        new_connection(RedisSettings(), fake)
    assert isinstance(info.value.__cause__, PingFailedError)


def test_connect_raises_ping_failed():
    engine = RedisEngine(RedisSettings(), FakeRedis(ping_error=redis.ConnectionError("down")))
    with pytest.raises(PingFailedError, match="redis ping failed"):
        engine.connect()