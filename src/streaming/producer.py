"""
Async Kafka publisher for encoded orders.

Features:
- Explicit acknowledgment level (leader or all in-sync replicas)
- Blocks each publish until the broker acknowledges the write
- Broker failures surfaced as PublishError, no internal retry
- Throughput and error metrics
- Graceful shutdown with message flushing
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaConnectionError, KafkaError

from config.settings import KafkaSettings, get_settings
from src.orders.exceptions import PublishError
from src.utils.logging import get_logger

logger = get_logger(__name__)


class AckLevel(str, Enum):
    """How many replicas must confirm a write before publish returns."""

    LEADER = "leader"
    ALL = "all"

    @property
    def acks(self) -> int | str:
        """Value of the producer ``acks`` option."""
        return 1 if self is AckLevel.LEADER else "all"


@dataclass(frozen=True)
class PublishReceipt:
    """Broker acknowledgment for one message."""

    topic: str
    partition: int
    offset: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "topic": self.topic,
            "partition": self.partition,
            "offset": self.offset,
        }


class OrderPublisher:
    """
    Async Kafka publisher for order payloads.

    Handles:
    - Connection lifecycle
    - Acknowledged sends with an explicit ack level
    - Error reporting per message
    - Graceful shutdown with message flushing

    The producer client can be injected, which lets tests replace the
    broker with a double.
    """

    def __init__(
        self,
        bootstrap_servers: str | None = None,
        client_id: str | None = None,
        ack_level: AckLevel | str | None = None,
        request_timeout_ms: int | None = None,
        producer: AIOKafkaProducer | None = None,
        settings: KafkaSettings | None = None,
    ) -> None:
        """
        Initialize the order publisher.

        Args:
            bootstrap_servers: Kafka bootstrap servers
            client_id: Client identifier
            ack_level: Acknowledgment level (defaults to ALL)
            request_timeout_ms: Time to wait for a broker acknowledgment
            producer: Pre-built producer client (skips client creation)
            settings: Kafka settings used for any option not given
        """
        kafka = settings or get_settings().kafka

        self.bootstrap_servers = bootstrap_servers or kafka.bootstrap_servers
        self.ack_level = AckLevel(ack_level or kafka.ack_level)

        self._producer: AIOKafkaProducer | None = producer
        self._owns_producer = producer is None
        self._started = False
        self._lock = asyncio.Lock()

        # Producer configuration
        self._config = {
            "bootstrap_servers": self.bootstrap_servers,
            "client_id": client_id or kafka.client_id,
            "key_serializer": lambda k: k.encode("utf-8") if k is not None else None,
            "acks": self.ack_level.acks,
            "request_timeout_ms": request_timeout_ms or kafka.request_timeout_ms,
        }

        # Metrics
        self._messages_sent = 0
        self._messages_failed = 0
        self._bytes_sent = 0

    async def start(self) -> None:
        """Start the producer and connect to Kafka."""
        async with self._lock:
            if self._started:
                return

            try:
                if self._producer is None:
                    self._producer = AIOKafkaProducer(**self._config)
                await self._producer.start()
                self._started = True

                logger.info(
                    "Kafka publisher started",
                    bootstrap_servers=self.bootstrap_servers,
                    ack_level=self.ack_level.value,
                )

            except KafkaConnectionError as e:
                logger.error("Failed to connect to Kafka", error=str(e))
                raise

    async def stop(self) -> None:
        """Stop the producer and flush pending messages."""
        async with self._lock:
            if not self._started or not self._producer:
                return

            try:
                await self._producer.flush()
                await self._producer.stop()

                logger.info(
                    "Kafka publisher stopped",
                    messages_sent=self._messages_sent,
                    messages_failed=self._messages_failed,
                    bytes_sent=self._bytes_sent,
                )

            except KafkaError as e:
                logger.error("Error stopping publisher", error=str(e))

            finally:
                if self._owns_producer:
                    self._producer = None
                self._started = False

    async def publish(
        self,
        topic: str,
        payload: bytes,
        key: str | None = None,
    ) -> PublishReceipt:
        """
        Publish one payload and wait for the broker acknowledgment.

        Args:
            topic: Target topic
            payload: Encoded message value
            key: Optional message key for partitioning

        Returns:
            Receipt with the partition and offset of the write

        Raises:
            PublishError: If the publisher is not started or the broker
                rejects or times out the write
        """
        if not self._started or not self._producer:
            self._messages_failed += 1
            raise PublishError(topic, "publisher not started")

        try:
            record_metadata = await self._producer.send_and_wait(
                topic,
                value=payload,
                key=key,
            )

        except KafkaError as e:
            self._messages_failed += 1
            raise PublishError(topic, str(e) or type(e).__name__) from e

        self._messages_sent += 1
        self._bytes_sent += len(payload)

        receipt = PublishReceipt(
            topic=topic,
            partition=record_metadata.partition,
            offset=record_metadata.offset,
        )

        logger.debug("Message published", **receipt.to_dict())

        return receipt

    def get_stats(self) -> dict[str, Any]:
        """Get publisher statistics."""
        return {
            "started": self._started,
            "ack_level": self.ack_level.value,
            "messages_sent": self._messages_sent,
            "messages_failed": self._messages_failed,
            "bytes_sent": self._bytes_sent,
        }

    @property
    def is_started(self) -> bool:
        return self._started

    async def __aenter__(self) -> "OrderPublisher":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.stop()
