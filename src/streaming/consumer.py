"""
Async Kafka consumer for book order topics.

Features:
- One consumer per topic, each in its own consumer group
- At-least-once delivery with the client's default offset auto-commit
- Logs every received message; extra handlers can be registered
- Graceful shutdown
"""

import asyncio
from collections.abc import Callable, Coroutine
from datetime import datetime
from typing import Any

from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaConnectionError, KafkaError

from config.settings import AppSettings, KafkaSettings, get_settings
from src.monitoring.metrics import PipelineMetrics
from src.utils.logging import get_logger

logger = get_logger(__name__)

# Type alias for message handlers
MessageHandler = Callable[[str], Coroutine[Any, Any, None]]


def deserialize_message(data: bytes | None) -> str:
    """Decode a message value; payloads on both topics are UTF-8 text."""
    if data is None:
        return ""
    return data.decode("utf-8", errors="replace")


class BookConsumer:
    """
    Async Kafka consumer bound to exactly one topic and one group.

    Handles:
    - Consumer group membership
    - Message deserialization
    - Logging of every delivered message
    - Callback-based message processing
    - Graceful shutdown

    Delivery is at-least-once: a message may be seen again after a
    restart without a committed offset. No deduplication is done.
    """

    def __init__(
        self,
        topic: str,
        group_id: str | None = None,
        name: str | None = None,
        bootstrap_servers: str | None = None,
        auto_offset_reset: str | None = None,
        consumer: AIOKafkaConsumer | None = None,
        metrics: PipelineMetrics | None = None,
        settings: KafkaSettings | None = None,
    ) -> None:
        """
        Initialize the book consumer.

        Args:
            topic: Topic to subscribe to
            group_id: Consumer group ID (defaults to the topic name)
            name: Label used in log lines, e.g. "Camel"
            bootstrap_servers: Kafka bootstrap servers
            auto_offset_reset: Where to start if no offset ("earliest" or "latest")
            consumer: Pre-built consumer client (skips client creation)
            metrics: Optional metrics sink
            settings: Kafka settings used for any option not given
        """
        kafka = settings or get_settings().kafka

        self.topic = topic
        self.group_id = group_id or topic
        self.name = name or topic
        self.bootstrap_servers = bootstrap_servers or kafka.bootstrap_servers

        self._consumer: AIOKafkaConsumer | None = consumer
        self._owns_consumer = consumer is None
        self._metrics = metrics
        self._started = False
        self._running = False
        self._lock = asyncio.Lock()
        self._consume_task: asyncio.Task | None = None
        self._consume_error: str | None = None

        # Consumer configuration
        self._config = {
            "bootstrap_servers": self.bootstrap_servers,
            "group_id": self.group_id,
            "client_id": f"{kafka.client_id}-{self.group_id}",
            "value_deserializer": deserialize_message,
            "key_deserializer": lambda k: k.decode("utf-8") if k is not None else None,
            "enable_auto_commit": kafka.enable_auto_commit,
            "auto_commit_interval_ms": kafka.auto_commit_interval_ms,
            "auto_offset_reset": auto_offset_reset or kafka.auto_offset_reset,
        }

        self._handlers: list[MessageHandler] = []

        # Metrics
        self._messages_processed = 0
        self._messages_failed = 0
        self._last_message_time: datetime | None = None

    async def start(self) -> None:
        """Start the consumer and subscribe to the topic."""
        async with self._lock:
            if self._started:
                return

            try:
                if self._consumer is None:
                    self._consumer = AIOKafkaConsumer(self.topic, **self._config)
                await self._consumer.start()
                self._started = True

                logger.info(
                    "Kafka consumer started",
                    topic=self.topic,
                    group_id=self.group_id,
                    bootstrap_servers=self.bootstrap_servers,
                )

            except KafkaConnectionError as e:
                logger.error("Failed to connect to Kafka", topic=self.topic, error=str(e))
                raise

    async def stop(self) -> None:
        """Stop the consumer gracefully."""
        async with self._lock:
            self._running = False

            task, self._consume_task = self._consume_task, None
            if task:
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                except Exception as e:
                    # Already reported by _on_consume_done
                    logger.debug("Consume loop had ended with an error", topic=self.topic, error=str(e))

            if not self._started or not self._consumer:
                return

            try:
                await self._consumer.stop()

                logger.info(
                    "Kafka consumer stopped",
                    topic=self.topic,
                    messages_processed=self._messages_processed,
                    messages_failed=self._messages_failed,
                )

            except KafkaError as e:
                logger.error("Error stopping consumer", topic=self.topic, error=str(e))

            finally:
                if self._owns_consumer:
                    self._consumer = None
                self._started = False

    def register_handler(self, handler: MessageHandler) -> None:
        """
        Register an extra message handler.

        Args:
            handler: Async function called with each payload
        """
        self._handlers.append(handler)
        logger.info("Registered handler for topic", topic=self.topic)

    async def on_message(self, payload: str) -> None:
        """Record receipt of one message."""
        self._last_message_time = datetime.now()
        logger.info(f"[{self.name}] Message from Kafka", topic=self.topic, body=payload)

        if self._metrics:
            self._metrics.record_consumed(self.topic, self.group_id)

        for handler in self._handlers:
            try:
                await handler(payload)
            except Exception as e:
                self._messages_failed += 1
                logger.error(
                    "Handler error",
                    topic=self.topic,
                    handler=getattr(handler, "__name__", repr(handler)),
                    error=str(e),
                )

        self._messages_processed += 1

    async def consume(self) -> None:
        """
        Start consuming messages in a loop.

        This method runs until stop() is called.
        """
        if not self._started or not self._consumer:
            raise RuntimeError("Consumer not started")

        self._running = True
        logger.info("Starting message consumption loop", topic=self.topic)

        try:
            async for message in self._consumer:
                if not self._running:
                    break

                if message.topic != self.topic:
                    logger.warning(
                        "Message from unexpected topic",
                        expected=self.topic,
                        topic=message.topic,
                    )
                    continue

                await self.on_message(message.value)

                logger.debug(
                    "Message processed",
                    topic=message.topic,
                    partition=message.partition,
                    offset=message.offset,
                )

        except asyncio.CancelledError:
            logger.info("Consume loop cancelled", topic=self.topic)
        except KafkaError as e:
            logger.error("Error in consume loop", topic=self.topic, error=str(e))
            raise

    def get_stats(self) -> dict[str, Any]:
        """Get consumer statistics."""
        return {
            "started": self._started,
            "running": self._running,
            "messages_processed": self._messages_processed,
            "messages_failed": self._messages_failed,
            "last_message_time": self._last_message_time.isoformat() if self._last_message_time else None,
            "topic": self.topic,
            "group_id": self.group_id,
            "consume_error": self._consume_error,
        }

    async def run_forever(self) -> None:
        """
        Start consuming in the background.

        Starts the consumer and runs the consume loop as a task.
        """
        await self.start()
        self._consume_error = None
        self._consume_task = asyncio.create_task(self.consume())
        self._consume_task.add_done_callback(self._on_consume_done)

    def _on_consume_done(self, task: asyncio.Task) -> None:
        """Report a consume loop that ended on its own with an error."""
        if task.cancelled():
            return

        error = task.exception()
        if error is None:
            return

        self._running = False
        self._consume_error = str(error) or type(error).__name__
        logger.error(
            "Consume loop stopped unexpectedly",
            topic=self.topic,
            group_id=self.group_id,
            error=self._consume_error,
        )

    async def __aenter__(self) -> "BookConsumer":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.stop()


def create_book_consumers(
    settings: AppSettings | None = None,
    metrics: PipelineMetrics | None = None,
) -> list[BookConsumer]:
    """Build the Camel and Strimzi consumers; each group is named after its topic."""
    settings = settings or get_settings()
    kafka = settings.kafka

    return [
        BookConsumer(
            topic=kafka.camel_topic,
            group_id=kafka.camel_topic,
            name="Camel",
            metrics=metrics,
            settings=kafka,
        ),
        BookConsumer(
            topic=kafka.strimzi_topic,
            group_id=kafka.strimzi_topic,
            name="Strimzi",
            metrics=metrics,
            settings=kafka,
        ),
    ]
