"""
Shared test fixtures and configuration.
"""

import random
from collections import defaultdict
from dataclasses import dataclass
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.settings import AppSettings, KafkaSettings, MetricsSettings, TimerSettings
from src.orders.models import Order
from src.streaming.consumer import deserialize_message

# ============================================================================
# Fake Broker
# ============================================================================


@dataclass
class FakeRecord:
    """Stored message, shaped like aiokafka's RecordMetadata/ConsumerRecord."""

    topic: str
    partition: int
    offset: int
    key: Any
    value: Any


class FakeBroker:
    """In-memory stand-in for Kafka: one partition per topic."""

    def __init__(self) -> None:
        self.topics: dict[str, list[FakeRecord]] = defaultdict(list)
        self.failures: list[Exception] = []

    def fail_next(self, error: Exception) -> None:
        """Make the next send raise error instead of appending."""
        self.failures.append(error)

    def producer(self) -> "FakeProducer":
        return FakeProducer(self)

    def consumer(self, topic: str) -> "FakeConsumer":
        return FakeConsumer(self, topic)

    def values(self, topic: str) -> list[bytes]:
        return [record.value for record in self.topics[topic]]


class FakeProducer:
    """Producer double with the subset of AIOKafkaProducer the publisher uses."""

    def __init__(self, broker: FakeBroker) -> None:
        self.broker = broker
        self.started = False
        self.flushed = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    async def flush(self) -> None:
        self.flushed = True

    async def send_and_wait(self, topic: str, value: bytes | None = None, key: Any = None) -> FakeRecord:
        if self.broker.failures:
            raise self.broker.failures.pop(0)

        log = self.broker.topics[topic]
        record = FakeRecord(topic=topic, partition=0, offset=len(log), key=key, value=value)
        log.append(record)
        return record


class FakeConsumer:
    """Consumer double that yields everything currently stored on its topic, then ends."""

    def __init__(self, broker: FakeBroker, topic: str) -> None:
        self.broker = broker
        self.topic = topic
        self.position = 0
        self.started = False

    async def start(self) -> None:
        self.started = True

    async def stop(self) -> None:
        self.started = False

    def __aiter__(self) -> "FakeConsumer":
        return self

    async def __anext__(self) -> FakeRecord:
        log = self.broker.topics[self.topic]
        if self.position >= len(log):
            raise StopAsyncIteration

        stored = log[self.position]
        self.position += 1
        return FakeRecord(
            topic=stored.topic,
            partition=stored.partition,
            offset=stored.offset,
            key=stored.key,
            value=deserialize_message(stored.value),
        )


@pytest.fixture
def fake_broker() -> FakeBroker:
    """Fresh in-memory broker."""
    return FakeBroker()


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def camel_order() -> Order:
    return Order(id=2, item="Camel", amount=7, description="Camel in Action")


@pytest.fixture
def strimzi_order() -> Order:
    return Order(id=3, item="Strimzi", amount=4, description="Strimzi in Action")


@pytest.fixture
def seeded_rng() -> random.Random:
    return random.Random(42)


# ============================================================================
# Mock Fixtures
# ============================================================================


@pytest.fixture
def mock_kafka_producer() -> MagicMock:
    """Mock Kafka producer acknowledging every send at partition 0, offset 0."""
    producer = AsyncMock()
    producer.start = AsyncMock()
    producer.stop = AsyncMock()
    producer.flush = AsyncMock()
    producer.send_and_wait = AsyncMock(return_value=MagicMock(partition=0, offset=0))
    return producer


@pytest.fixture
def mock_kafka_consumer() -> MagicMock:
    """Mock Kafka consumer."""
    consumer = AsyncMock()
    consumer.start = AsyncMock()
    consumer.stop = AsyncMock()
    return consumer


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def kafka_settings() -> KafkaSettings:
    return KafkaSettings(bootstrap_servers="localhost:9092")


@pytest.fixture
def app_settings(kafka_settings: KafkaSettings) -> AppSettings:
    """Settings with a fast timer and the exporter disabled."""
    return AppSettings(
        env="development",
        log_format="console",
        kafka=kafka_settings,
        timer=TimerSettings(period_ms=50, delay_ms=0),
        metrics=MetricsSettings(enabled=False),
    )
