import json
import threading
from datetime import datetime, timedelta, timezone

import pytest

from golink.cdc import (
    CDCConsumer,
    CDCLink,
    decode_cdc_string,
    decode_cdc_time,
    extract_payload,
)
from golink.links import TOPIC_LINK_CDC, Operation


def _message(op, before=None, after=None):
    return json.dumps(
        {
            "schema": {},
            "payload": {"op": op, "before": before, "after": after, "source": {"table": "links"}, "ts_ms": 7},
        }
    ).encode()


class FakeConsumer:
    def __init__(self):
        self.topics = []
        self.handler = None
        self.closed = False

    def start(self, context, topics, handler, err_handler):
        self.topics.append(list(topics))
        self.handler = handler

    def close(self):
        self.closed = True


class RecordingService:
    def __init__(self):
        self.batches = []
        self.called = threading.Event()

    def handle_link_batch_change(self, batch):
        self.batches.append(batch)
        self.called.set()


def test_decode_cdc_string_plain_and_wrapped():
    assert decode_cdc_string("abc") == "abc"
    assert decode_cdc_string({"value": "https://example.com"}) == "https://example.com"
    assert decode_cdc_string(None) == ""


def test_decode_cdc_string_rejects_numbers():
    with pytest.raises(ValueError):
        decode_cdc_string(5)


def test_decode_cdc_time_variants():
    assert decode_cdc_time(0) == datetime.fromtimestamp(0, timezone.utc)
    assert decode_cdc_time({"value": 1000}) == datetime.fromtimestamp(1, timezone.utc)
    assert decode_cdc_time("2024-01-02T03:04:05Z") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert decode_cdc_time("not a time") is None
    assert decode_cdc_time(None) is None


def test_cdc_link_to_entity():
    link = CDCLink.from_dict({"id": "abc", "original_url": {"value": "https://example.com"}, "created_at": 0})
    entity = link.to_entity()
    assert entity.id == "abc"
    assert entity.original_url == "https://example.com"
    assert entity.created_at == datetime.fromtimestamp(0, timezone.utc)
    assert entity.updated_at is None


def test_extract_payload_create_and_delete():
    created = extract_payload(_message("c", after={"id": "a", "original_url": "https://example.com"}))
    assert created.op == Operation.CREATE
    assert created.after.id == "a"
    assert created.before is None
    assert created.ts_ms == 7

    deleted = extract_payload(_message("d", before={"id": "b"}))
    assert deleted.op == Operation.DELETE
    assert deleted.before.id == "b"


def test_extract_payload_without_envelope():
    event = extract_payload(json.dumps({"op": "c", "after": {"id": "x"}}).encode())
    assert event.after.id == "x"


def test_extract_payload_empty_and_malformed():
    assert extract_payload(b"") is None
    with pytest.raises(ValueError):
        extract_payload(b"not json")
    with pytest.raises(ValueError):
        extract_payload(_message("zz"))


def test_consumer_flushes_full_batch():
    fake, service = FakeConsumer(), RecordingService()
    consumer = CDCConsumer(fake, service, batch_size=2, batch_interval=timedelta(seconds=60))
    consumer.start()
    assert fake.topics == [[TOPIC_LINK_CDC]]
    fake.handler({}, None, _message("c", after={"id": "a"}))
    fake.handler({}, None, _message("c", after={"id": "b"}))
    assert service.called.wait(5)
    consumer.stop()
    assert [event.after.id for event in service.batches[0]] == ["a", "b"]
    assert fake.closed


def test_consumer_flushes_on_interval():
    fake, service = FakeConsumer(), RecordingService()
    consumer = CDCConsumer(fake, service, batch_size=100, batch_interval=timedelta(milliseconds=50))
    consumer.start()
    fake.handler({}, None, _message("c", after={"id": "a"}))
    assert service.called.wait(5)
    consumer.stop()
    assert len(service.batches[0]) == 1


def test_stop_flushes_pending_events():
    fake, service = FakeConsumer(), RecordingService()
    consumer = CDCConsumer(fake, service, batch_size=10, batch_interval=timedelta(seconds=60))
    consumer.start()
    fake.handler({}, None, _message("d", before={"id": "gone"}))
    consumer.stop()
    assert len(service.batches) == 1
    assert service.batches[0][0].before.id == "gone"


def test_malformed_messages_are_skipped():
    fake, service = FakeConsumer(), RecordingService()
    consumer = CDCConsumer(fake, service, batch_size=1, batch_interval=timedelta(seconds=60))
    consumer.start()
    fake.handler({}, None, b"not json")
    fake.handler({}, None, b"")
    consumer.stop()
    assert service.batches == []