"""
Unit tests for the Kafka consumer loop
"""
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiokafka.errors import KafkaError

from core.kafka import KafkaEventConsumer, decode_message


def _record(value, topic="user-topic", offset=0):
    raw = value if value is None or isinstance(value, bytes) else json.dumps(value).encode("utf-8")
    return SimpleNamespace(topic=topic, partition=0, offset=offset, value=raw)


class FakeConsumer:
    """Stands in for AIOKafkaConsumer: yields the given records then ends"""

    def __init__(self, records):
        self.records = records
        self.start = AsyncMock()
        self.stop = AsyncMock()
        self.commit = AsyncMock()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for record in self.records:
            yield record


@pytest.fixture
def router():
    router = MagicMock()
    router.route = AsyncMock()
    return router


class TestDecodeMessage:

    @pytest.mark.parametrize("raw", [None, b"", b"not json", b"\xff\xfe"])
    def test_unusable_values_decode_to_none(self, raw):
        assert decode_message(raw) is None

    def test_json_object(self):
        assert decode_message(b'{"eventType": "USER_CREATED", "data": {}}') == {
            "eventType": "USER_CREATED",
            "data": {},
        }


class TestKafkaEventConsumer:

    @pytest.mark.asyncio
    async def test_handle_record_routes_decoded_payload(self, router):
        consumer = KafkaEventConsumer(router, topics=["user-topic"], consumer=FakeConsumer([]))
        message = {"eventType": "USER_CREATED", "data": {"userId": "u1"}}

        await consumer.handle_record(_record(message))

        router.route.assert_awaited_once_with("user-topic", message)

    @pytest.mark.asyncio
    async def test_handle_record_drops_empty_values(self, router):
        consumer = KafkaEventConsumer(router, topics=["user-topic"], consumer=FakeConsumer([]))

        with patch("core.kafka.structured_logger") as logger:
            await consumer.handle_record(_record(None))

        router.route.assert_not_awaited()
        logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_run_commits_after_every_message(self, router):
        records = [_record({"eventType": "USER_CREATED", "data": {"userId": f"u{i}"}}, offset=i) for i in range(3)]
        fake = FakeConsumer(records)
        consumer = KafkaEventConsumer(router, topics=["user-topic"], consumer=fake)

        await consumer.run()

        fake.start.assert_awaited_once()
        assert router.route.await_count == 3
        assert fake.commit.await_count == 3
        fake.stop.assert_awaited_once()
        assert consumer.is_running is False

    @pytest.mark.asyncio
    async def test_commit_failure_does_not_stop_the_loop(self, router):
        records = [_record({"eventType": "USER_CREATED", "data": {}}, offset=i) for i in range(2)]
        fake = FakeConsumer(records)
        fake.commit.side_effect = [KafkaError(), None]
        consumer = KafkaEventConsumer(router, topics=["user-topic"], consumer=fake)

        await consumer.run()

        assert router.route.await_count == 2
        fake.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_stop_ends_the_loop_after_current_message(self, router):
        records = [_record({"eventType": "USER_CREATED", "data": {}}, offset=i) for i in range(3)]
        fake = FakeConsumer(records)
        consumer = KafkaEventConsumer(router, topics=["user-topic"], consumer=fake)
        router.route.side_effect = lambda topic, payload: consumer.stop()

        await consumer.run()

        assert router.route.await_count == 1
        fake.commit.assert_awaited_once()
        fake.stop.assert_awaited_once()
