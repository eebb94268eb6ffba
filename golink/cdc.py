"""Change data capture consumer that replicates link changes in batches."""

import json
import logging
import queue
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .links import TOPIC_LINK_CDC, ChangeEvent, Link, Operation
from .messaging import HandlerError, chain, recovery

POOL_SIZE = 10
DEFAULT_BATCH_SIZE = 100
DEFAULT_BATCH_INTERVAL = timedelta(milliseconds=500)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_RFC3339 = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[Tt](\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})$"
)
_STOP = object()

_log = logging.getLogger(__name__)


def decode_cdc_string(value: Any) -> str:
    """Decode a string column sent either plain or wrapped as {"value": ...}."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        inner = value.get("value")
        if inner is None:
            return ""
        if isinstance(inner, str):
            return inner
        raise ValueError("cdc string value must be a string")
    raise ValueError(f"cannot decode {type(value).__name__} as a cdc string")


def _from_millis(value: float) -> datetime:
    return _EPOCH + timedelta(milliseconds=int(value))


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_rfc3339(text: str) -> Optional[datetime]:
    match = _RFC3339.match(text)
    if match is None:
        return None
    fraction = (match[3] or "")[:6].ljust(6, "0")
    offset = "+00:00" if match[4].upper() == "Z" else match[4]
    try:
        return datetime.fromisoformat(f"{match[1]}T{match[2]}.{fraction}{offset}")
    except ValueError:
        return None


def decode_cdc_time(value: Any) -> Optional[datetime]:
    """Decode a timestamp sent as epoch millis, RFC 3339 text or {"value": millis}.

    Anything that cannot be read gives None.
    """
    if _is_number(value):
        return _from_millis(value)
    if isinstance(value, str):
        return _parse_rfc3339(value)
    if isinstance(value, dict):
        inner = value.get("value")
        if _is_number(inner):
            return _from_millis(inner)
    return None


@dataclass
class CDCLink:
    """A link row as it appears in a change event."""

    id: str = ""
    original_url: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Any) -> "CDCLink":
        """Decode a row image from a change event."""
        if not isinstance(data, dict):
            raise ValueError("cdc row must be an object")
        link_id = data.get("id")
        if link_id is None:
            link_id = ""
        elif not isinstance(link_id, str):
            raise ValueError("cdc id must be a string")
        return cls(
            id=link_id,
            original_url=decode_cdc_string(data.get("original_url")),
            created_at=decode_cdc_time(data.get("created_at")),
            updated_at=decode_cdc_time(data.get("updated_at")),
        )

    def to_entity(self) -> Link:
        """Build a link from the row image."""
        return Link(
            id=self.id,
            original_url=self.original_url,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


def _row(data: Any) -> Optional[Link]:
    if data is None:
        return None
    return CDCLink.from_dict(data).to_entity()


def extract_payload(value: Optional[bytes]) -> Optional[ChangeEvent]:
    """Decode a change message; None for an empty (tombstone) message.

    Raises ValueError when the message is malformed.
    """
    if not value:
        return None
    message = json.loads(value)
    if not isinstance(message, dict):
        raise ValueError("cdc message must be an object")
    envelope = message.get("payload")
    payload = envelope if isinstance(envelope, dict) else message

    raw_op = payload.get("op")
    try:
        op = Operation(raw_op)
    except ValueError as exc:
        raise ValueError(f"unknown cdc operation {raw_op!r}") from exc

    ts_ms = payload.get("ts_ms") or 0
    if not _is_number(ts_ms):
        raise ValueError("cdc ts_ms must be a number")

    return ChangeEvent(
        op=op,
        before=_row(payload.get("before")),
        after=_row(payload.get("after")),
        source=payload.get("source"),
        ts_ms=int(ts_ms),
    )


class CDCConsumer:
    """Collects link change events into batches and applies them on a worker pool.

    A batch is handed over when it is full or when the batch interval elapses.
    """

    def __init__(
        self,
        consumer: Any,
        service: Any,
        batch_size: int = 0,
        batch_interval: Optional[timedelta] = None,
        pool_size: int = POOL_SIZE,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._consumer = consumer
        self._service = service
        self._batch_size = batch_size if batch_size > 0 else DEFAULT_BATCH_SIZE
        if batch_interval is None or batch_interval <= timedelta(0):
            batch_interval = DEFAULT_BATCH_INTERVAL
        self._interval = batch_interval.total_seconds()
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=self._batch_size * 2)
        self._stopping = threading.Event()
        self._pool = ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="link-cdc")
        self._loop: Optional[threading.Thread] = None
        self._log = logger or _log

    def handle(self, context: Any, key: Optional[bytes], value: Optional[bytes]) -> None:
        """Decode one message and queue it for the next batch; malformed ones are skipped."""
        try:
            event = extract_payload(value)
        except ValueError as exc:
            self._log.warning("Skipping malformed CDC message: %s", exc)
            return
        if event is None:
            return
        while not self._stopping.is_set():
            try:
                self._queue.put(event, timeout=0.1)
                return
            except queue.Full:
                continue
        raise HandlerError("link cdc consumer is stopping")

    def _on_error(self, exc: BaseException) -> None:
        self._log.error("LinkCDCConsumer error: %s", exc)

    def start(self) -> Any:
        """Start batching and subscribe to the link change topic."""
        if self._loop is None:
            self._stopping.clear()
            self._loop = threading.Thread(target=self._run, name="link-cdc-batch", daemon=True)
            self._loop.start()
        self._log.info("Starting Link CDC Consumer (Batch Mode) topic=%s", TOPIC_LINK_CDC)
        return self._consumer.start({}, [TOPIC_LINK_CDC], chain(self.handle, recovery), self._on_error)

    def stop(self) -> None:
        """Close the subscription, flush pending events and wait for the workers."""
        try:
            self._consumer.close()
        finally:
            self._stopping.set()
            try:
                self._queue.put_nowait(_STOP)
            except queue.Full:
                pass
            if self._loop is not None:
                self._loop.join()
                self._loop = None
            else:
                self._flush(self._drain())
            self._pool.shutdown(wait=True)

    def _drain(self) -> list[ChangeEvent]:
        items = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return items
            if item is not _STOP:
                items.append(item)

    def _run(self) -> None:
        batch: list[ChangeEvent] = []
        deadline = time.monotonic() + self._interval
        while True:
            if self._stopping.is_set():
                batch.extend(self._drain())
                for start in range(0, len(batch), self._batch_size):
                    self._flush(batch[start:start + self._batch_size])
                return
            try:
                item = self._queue.get(timeout=max(0.0, deadline - time.monotonic()))
            except queue.Empty:
                item = None
            if item is not None and item is not _STOP:
                batch.append(item)
                if len(batch) >= self._batch_size:
                    self._flush(batch)
                    batch = []
            if time.monotonic() >= deadline:
                self._flush(batch)
                batch = []
                deadline = time.monotonic() + self._interval

    def _flush(self, batch: list[ChangeEvent]) -> None:
        if not batch:
            return
        try:
            self._pool.submit(self._process, list(batch))
        except RuntimeError as exc:
            self._log.error("Failed to submit batch to worker pool: %s", exc)

    def _process(self, batch: list[ChangeEvent]) -> None:
        try:
            self._service.handle_link_batch_change(batch)
        except Exception as exc:
            self._log.error("Failed to process link batch: %s", exc)