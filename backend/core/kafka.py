import asyncio
import json
from typing import Any, List, Optional

from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError

from core.config import settings
from core.events import EventRouter
from core.logging import get_structured_logger

structured_logger = get_structured_logger("kafka")


def decode_message(raw: Optional[bytes]) -> Any:
    """Decode a message value; empty or malformed JSON yields None"""
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None


class KafkaEventConsumer:
    """
    Consume the configured topics and hand every message to the router.

    Each message is routed to completion before the next is read, so order
    within a partition is kept. Offsets are committed after routing returns,
    whatever the outcome: there is no retry queue.
    """

    def __init__(
        self,
        router: EventRouter,
        topics: Optional[List[str]] = None,
        consumer: Optional[AIOKafkaConsumer] = None,
    ):
        self.router = router
        self.topics = topics or settings.KAFKA_TOPICS
        self._consumer = consumer
        self._running = False

    def _build_consumer(self) -> AIOKafkaConsumer:
        return AIOKafkaConsumer(
            *self.topics,
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            client_id=settings.KAFKA_CLIENT_ID,
            group_id=settings.KAFKA_CONSUMER_GROUP_ID,
            auto_offset_reset=settings.KAFKA_AUTO_OFFSET_RESET,
            enable_auto_commit=False,
            session_timeout_ms=settings.KAFKA_SESSION_TIMEOUT_MS,
            heartbeat_interval_ms=settings.KAFKA_HEARTBEAT_INTERVAL_MS,
            retry_backoff_ms=settings.KAFKA_RETRY_BACKOFF_MS,
        )

    async def handle_record(self, msg) -> None:
        payload = decode_message(msg.value)
        if payload is None:
            structured_logger.warning(
                f"Received empty or invalid message from topic {msg.topic}",
                metadata={"topic": msg.topic, "partition": msg.partition, "offset": msg.offset},
            )
            return
        await self.router.route(msg.topic, payload)

    async def run(self) -> None:
        """Start the consumer and process messages until stopped or cancelled"""
        if self._consumer is None:
            self._consumer = self._build_consumer()

        structured_logger.info("Starting Kafka consumer...", metadata={"topics": self.topics})
        await self._consumer.start()
        self._running = True
        structured_logger.info("Kafka consumer started.")

        try:
            async for msg in self._consumer:
                await self.handle_record(msg)
                try:
                    await self._consumer.commit()
                except KafkaError as e:
                    structured_logger.error(
                        "Failed to commit Kafka offset",
                        metadata={"topic": msg.topic, "partition": msg.partition, "offset": msg.offset},
                        exception=e,
                    )
                if not self._running:
                    break
        except asyncio.CancelledError:
            structured_logger.info("Kafka consumer cancelled")
            raise
        finally:
            await self._consumer.stop()
            self._running = False
            structured_logger.info("Kafka consumer stopped.")

    def stop(self) -> None:
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running
