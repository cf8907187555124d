"""
Order pipeline: generate, route, encode and publish one order per tick.

Each run walks a fixed state machine:

    IDLE -> GENERATED -> ROUTED -> ENCODED -> PUBLISH_PENDING
         -> PUBLISHED | PUBLISH_FAILED

A run that the encoder rejects ends in ENCODING_FAILED; any other error
(a custom router or key function raising) ends it in FAILED. Failures are
logged and recorded on the run; they never propagate to the trigger,
so the next tick always runs.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from config.settings import KafkaSettings
from src.monitoring.metrics import PipelineMetrics
from src.orders.exceptions import EncodingError, PublishError
from src.orders.generator import OrderGenerator
from src.orders.models import Order
from src.routing.encoders import ENCODERS, Encoder
from src.routing.router import Branch, route
from src.streaming.producer import OrderPublisher, PublishReceipt
from src.utils.logging import get_logger, log_context

logger = get_logger(__name__)


class RunState(str, Enum):
    """States of a single pipeline run."""

    IDLE = "idle"
    GENERATED = "generated"
    ROUTED = "routed"
    ENCODED = "encoded"
    PUBLISH_PENDING = "publish_pending"
    PUBLISHED = "published"
    PUBLISH_FAILED = "publish_failed"
    ENCODING_FAILED = "encoding_failed"
    FAILED = "failed"


TERMINAL_STATES = frozenset(
    {RunState.PUBLISHED, RunState.PUBLISH_FAILED, RunState.ENCODING_FAILED, RunState.FAILED}
)


@dataclass(frozen=True)
class Route:
    """Encoding and destination topic of one branch."""

    encoder: Encoder
    topic: str


@dataclass
class PipelineRun:
    """Record of one pipeline run."""

    started_at: datetime
    states: list[RunState] = field(default_factory=lambda: [RunState.IDLE])
    order: Order | None = None
    branch: Branch | None = None
    topic: str | None = None
    payload: bytes | None = None
    receipt: PublishReceipt | None = None
    error: str | None = None
    completed_at: datetime | None = None

    @property
    def state(self) -> RunState:
        return self.states[-1]

    @property
    def succeeded(self) -> bool:
        return self.state == RunState.PUBLISHED

    def advance(self, state: RunState) -> None:
        self.states.append(state)
        if state in TERMINAL_STATES:
            self.completed_at = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "state": self.state.value,
            "states": [s.value for s in self.states],
            "order": self.order.to_dict() if self.order else None,
            "branch": self.branch.value if self.branch else None,
            "topic": self.topic,
            "receipt": self.receipt.to_dict() if self.receipt else None,
            "error": self.error,
        }


def build_routes(kafka: KafkaSettings) -> dict[Branch, Route]:
    """Branch lookup table: each branch pairs its wire encoder with its topic."""
    topics = {
        Branch.CAMEL: kafka.camel_topic,
        Branch.STRIMZI: kafka.strimzi_topic,
    }
    return {branch: Route(encoder=ENCODERS[branch], topic=topics[branch]) for branch in Branch}


class OrderPipeline:
    """
    Explicit composition of generator, router, encoders and publisher.

    Runs are serialized: a tick that fires while another run is in
    flight waits for it, so publishes to the same topic keep their
    submission order.
    """

    def __init__(
        self,
        generator: OrderGenerator,
        publisher: OrderPublisher,
        routes: dict[Branch, Route],
        router: Callable[[Order], Branch] = route,
        metrics: PipelineMetrics | None = None,
        key_func: Callable[[Order], str | None] | None = None,
    ) -> None:
        """
        Initialize the pipeline.

        Args:
            generator: Source of new orders
            publisher: Started publisher used for every run
            routes: Encoder and topic for each branch
            router: Branch selection function
            metrics: Optional metrics sink
            key_func: Optional message key for an order (no key if None)
        """
        missing = set(Branch) - set(routes)
        if missing:
            raise ValueError(f"No route for branches: {sorted(b.value for b in missing)}")

        self.generator = generator
        self.publisher = publisher
        self.routes = routes
        self.router = router
        self._metrics = metrics
        self._key_func = key_func

        self._lock = asyncio.Lock()
        self._state = RunState.IDLE

        self._runs = 0
        self._published = 0
        self._failed = 0
        self._last_run: PipelineRun | None = None

    async def run_once(self) -> PipelineRun:
        """Execute one tick: generate, route, encode and publish one order."""
        async with self._lock:
            run = PipelineRun(started_at=datetime.now(UTC))
            try:
                await self._execute(run)
            except Exception as e:
                run.error = f"{type(e).__name__}: {e}"
                self._failed += 1
                self._transition(run, RunState.FAILED)
                if self._metrics and run.topic:
                    self._metrics.record_failure(run.topic, type(e).__name__)
                logger.error(
                    "Order pipeline run failed",
                    order_id=run.order.id if run.order else None,
                    error=run.error,
                    exc_info=True,
                )
            finally:
                self._runs += 1
                self._last_run = run
                self._state = RunState.IDLE
            return run

    async def _execute(self, run: PipelineRun) -> None:
        order = self.generator.generate()
        run.order = order
        self._transition(run, RunState.GENERATED)
        if self._metrics:
            self._metrics.record_generated(order.item)

        with log_context(order_id=order.id):
            branch = self.router(order)
            selected = self.routes[branch]
            run.branch = branch
            run.topic = selected.topic
            self._transition(run, RunState.ROUTED)

            logger.info(f"Processing a {order.item} book", branch=branch.value, topic=selected.topic)

            try:
                run.payload = selected.encoder(order)
            except EncodingError as e:
                run.error = str(e)
                self._failed += 1
                self._transition(run, RunState.ENCODING_FAILED)
                if self._metrics:
                    self._metrics.record_failure(selected.topic, type(e).__name__)
                logger.error("Failed to encode order", field=e.field, error=str(e))
                return

            self._transition(run, RunState.ENCODED)

            key = self._key_func(order) if self._key_func else None
            self._transition(run, RunState.PUBLISH_PENDING)
            started = time.perf_counter()

            try:
                run.receipt = await self.publisher.publish(selected.topic, run.payload, key=key)
            except PublishError as e:
                run.error = str(e)
                self._failed += 1
                self._transition(run, RunState.PUBLISH_FAILED)
                if self._metrics:
                    self._metrics.record_failure(selected.topic, type(e.__cause__ or e).__name__)
                logger.error("Failed to publish order", topic=selected.topic, error=e.reason)
                return

            self._published += 1
            self._transition(run, RunState.PUBLISHED)
            if self._metrics:
                self._metrics.record_published(selected.topic, time.perf_counter() - started)

            logger.info(
                "Order published",
                topic=run.receipt.topic,
                partition=run.receipt.partition,
                offset=run.receipt.offset,
            )

    def _transition(self, run: PipelineRun, state: RunState) -> None:
        run.advance(state)
        self._state = state

    async def drain(self) -> None:
        """Wait for the in-flight run, if any, to finish."""
        async with self._lock:
            pass

    @property
    def state(self) -> RunState:
        """State of the in-flight run, IDLE between runs."""
        return self._state

    @property
    def last_run(self) -> PipelineRun | None:
        return self._last_run

    def get_stats(self) -> dict[str, Any]:
        """Get pipeline statistics."""
        return {
            "state": self._state.value,
            "runs": self._runs,
            "published": self._published,
            "failed": self._failed,
            "last_order_id": self.generator.last_id,
        }
