"""Message queue configuration, handler middleware and header propagation."""

import functools
import json
import traceback
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping
from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import date, datetime
from typing import Any, Optional

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_TRACE_ID = "X-Trace-ID"

CONTEXT_KEY_REQUEST_ID = "request_id"
CONTEXT_KEY_TRACE_ID = "trace_id"

_PROPAGATED = (
    (HEADER_REQUEST_ID, CONTEXT_KEY_REQUEST_ID),
    (HEADER_TRACE_ID, CONTEXT_KEY_TRACE_ID),
)
_HEADER_TO_CONTEXT = dict(_PROPAGATED)

Context = Mapping[str, Any]
Handler = Callable[[Context, Optional[bytes], Optional[bytes]], Any]
Middleware = Callable[[Handler], Handler]
ErrorHandler = Callable[[BaseException], None]


@dataclass
class ProducerConfig:
    """Producer batching and retry settings (times in milliseconds)."""

    flush_frequency: int = 0
    flush_bytes: int = 0
    max_message_bytes: int = 0
    max_retries: int = 0
    retry_backoff: int = 0
    return_successes: bool = False


@dataclass
class ConsumerConfig:
    """Consumer group settings (times in milliseconds)."""

    initial_offset: int = 0
    session_timeout: int = 0
    max_processing_time: int = 0


@dataclass
class KafkaConfig:
    """Broker list, client id and producer/consumer settings."""

    brokers: list[str] = field(default_factory=list)
    client_id: str = ""
    producer_info: ProducerConfig = field(default_factory=ProducerConfig)
    consumer_info: ConsumerConfig = field(default_factory=ConsumerConfig)


class HandlerError(Exception):
    """A message handler failed."""


class Producer(ABC):
    """Publishes messages without waiting for acknowledgement."""

    @abstractmethod
    def publish(self, context: Context, topic: str, key: Optional[bytes], value: bytes) -> None:
        """Enqueue a message for the topic."""


def chain(handler: Handler, *args: Middleware) -> Handler:
    """Wrap a handler in middlewares; the first middleware is the outermost."""
    for middleware in reversed(args):
        handler = middleware(handler)
    return handler


def recovery(handler: Handler) -> Handler:
    """Turn unexpected exceptions from the handler into HandlerError."""

    @functools.wraps(handler)
    def wrapped(context: Context, key: Optional[bytes], value: Optional[bytes]) -> Any:
        try:
            return handler(context, key, value)
        except HandlerError:
            raise
        except Exception as exc:
            stack = traceback.format_exc()
            raise HandlerError(f"panic recovered in kafka handler: {exc}\nStack: {stack}") from exc

    return wrapped


def _text(raw: Any) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8", errors="replace")
    return str(raw)


def build_context(headers: Optional[Iterable[tuple[Any, Any]]]) -> dict[str, str]:
    """Build a context from message headers, keeping request and trace ids."""
    context: dict[str, str] = {}
    for raw_key, raw_value in headers or ():
        context_key = _HEADER_TO_CONTEXT.get(_text(raw_key))
        if context_key is not None:
            context[context_key] = _text(raw_value)
    return context


def build_headers(context: Optional[Context]) -> list[tuple[bytes, bytes]]:
    """Build message headers from the request and trace ids in a context."""
    headers: list[tuple[bytes, bytes]] = []
    if not context:
        return headers
    for header, context_key in _PROPAGATED:
        value = context.get(context_key)
        if isinstance(value, str) and value:
            headers.append((header.encode(), value.encode()))
    return headers


def _json_default(obj: Any) -> Any:
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"object of type {type(obj).__name__} is not JSON serializable")


def publish_json(
    producer: Producer,
    topic: str,
    data: Any,
    context: Optional[Context] = None,
    key_func: Optional[Callable[[Any], str]] = None,
) -> None:
    """Serialise data to JSON and publish it, keyed by key_func when given."""
    try:
        payload = json.dumps(data, default=_json_default, separators=(",", ":")).encode()
    except (TypeError, ValueError) as exc:
        raise TypeError(f"failed to marshal data: {exc}") from exc
    key = key_func(data).encode() if key_func is not None else None
    producer.publish(context if context is not None else {}, topic, key, payload)