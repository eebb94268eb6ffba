"""Application configuration and its loading from nested mappings."""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from typing import Any, get_args, get_origin

_TRUE_WORDS = {"1", "t", "true"}
_FALSE_WORDS = {"0", "f", "false", ""}


@dataclass
class WideColumnSettings:
    """Connection settings for a wide column store."""

    hosts: list[str] = field(default_factory=list)
    keyspace: str = ""
    username: str = ""
    password: str = ""
    port: int = 0
    timeout: int = 0
    retries: int = 0


@dataclass
class DatabaseSettings:
    """Connection settings for a relational database."""

    driver: str = ""
    host: str = ""
    port: int = 0
    username: str = ""
    password: str = ""
    database: str = ""
    max_open_conns: int = 0
    max_idle_conns: int = 0
    conn_max_lifetime: int = 0


@dataclass
class ServerSettings:
    """HTTP server settings."""

    mode: str = ""
    host: str = ""
    port: int = 0


@dataclass
class MongoDBSettings:
    """Connection settings for MongoDB."""

    host: str = ""
    username: str = ""
    password: str = ""
    database: str = ""
    max_pool_size: int = 0
    min_pool_size: int = 0
    max_conn_idle_time: int = 0
    port: int = 0
    timeout: int = 0


@dataclass
class LoggerSettings:
    """Logging and log file rotation settings."""

    log_level: str = ""
    file_log_name: str = ""
    max_backups: int = 0
    max_age: int = 0
    max_size: int = 0
    compress: bool = False


@dataclass
class RedisSettings:
    """Connection settings for Redis (timeouts in seconds, backoffs in ms)."""

    addrs: list[str] = field(default_factory=list)
    master_name: str = ""
    password: str = ""
    database: int = 0
    pool_size: int = 0
    min_idle_conns: int = 0
    pool_timeout: int = 0
    dial_timeout: int = 0
    read_timeout: int = 0
    write_timeout: int = 0
    max_retries: int = 0
    max_retry_backoff: int = 0
    min_retry_backoff: int = 0


@dataclass
class KafkaSettings:
    """Message broker settings (milliseconds unless stated otherwise)."""

    brokers: list[str] = field(default_factory=list)
    flush_frequency: int = 0
    flush_bytes: int = 0
    max_message_bytes: int = 0
    timeout: int = 0
    max_retries: int = 0
    retry_backoff: int = 0
    max_processing_time: int = 0
    consumer_batch_size: int = 0
    consumer_batch_interval: int = 0


@dataclass
class ElasticsearchSettings:
    """Connection settings for Elasticsearch."""

    addresses: list[str] = field(default_factory=list)
    username: str = ""
    password: str = ""


@dataclass
class SnowflakeSettings:
    """Bit layout and epoch of snowflake identifiers."""

    epoch: int = 0
    node: int = 0
    step: int = 0
    total_bits: int = 0


@dataclass
class SnowflakeNodeSettings:
    """Snowflake layout plus the worker id of this node."""

    config: SnowflakeSettings = field(default_factory=SnowflakeSettings)
    worker_id: int = 0


@dataclass
class Config:
    """The whole application configuration."""

    server: ServerSettings = field(default_factory=ServerSettings)
    mongodb: MongoDBSettings = field(default_factory=MongoDBSettings)
    logger: LoggerSettings = field(default_factory=LoggerSettings)
    redis: RedisSettings = field(default_factory=RedisSettings)
    kafka: KafkaSettings = field(default_factory=KafkaSettings)
    elasticsearch: ElasticsearchSettings = field(default_factory=ElasticsearchSettings)
    wide_column: WideColumnSettings = field(default_factory=WideColumnSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    snowflake_node: SnowflakeNodeSettings = field(default_factory=SnowflakeNodeSettings)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "Config":
        """Build a configuration from nested mappings, matching keys case-insensitively."""
        return _load(cls, data, "")


def _load(cls: type, data: Any, path: str) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise TypeError(f"{path or 'config'}: expected a mapping, got {type(data).__name__}")
    lowered = {str(key).lower(): value for key, value in data.items()}
    values = {}
    for item in fields(cls):
        if item.name in lowered:
            name = f"{path}.{item.name}" if path else item.name
            values[item.name] = _convert(item.type, lowered[item.name], name)
    return cls(**values)


def _convert(target: Any, value: Any, path: str) -> Any:
    if isinstance(target, type) and is_dataclass(target):
        return _load(target, value, path)
    if get_origin(target) is list:
        (item_type,) = get_args(target)
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",") if value else []
        return [_convert(item_type, element, path) for element in value]
    if target is bool:
        return _to_bool(value, path)
    if target is int:
        return _to_int(value, path)
    if target is str:
        return "" if value is None else str(value)
    return value


def _to_bool(value: Any, path: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).lower()
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    raise ValueError(f"{path}: cannot parse {value!r} as a boolean")


def _to_int(value: Any, path: str) -> int:
    if value is None:
        return 0
    if isinstance(value, (bool, int)):
        return int(value)
    if isinstance(value, float):
        return int(value)
    try:
        return int(str(value), 0)
    except ValueError as exc:
        raise ValueError(f"{path}: cannot parse {value!r} as an integer") from exc