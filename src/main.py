"""
Book order router service.

Wires the order pipeline to its periodic trigger and runs the two
topic consumers alongside it until the process is told to stop.
"""

import asyncio
import signal
from typing import Any

from config.settings import AppSettings, get_settings
from src.monitoring.metrics import PipelineMetrics
from src.orders.generator import OrderGenerator
from src.pipeline.order_pipeline import OrderPipeline, build_routes
from src.services.scheduler import SchedulerService, create_order_scheduler
from src.streaming.consumer import BookConsumer, create_book_consumers
from src.streaming.producer import OrderPublisher
from src.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


class BookOrderApplication:
    """Owns the publisher, pipeline, scheduler and consumers of one process."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        publisher: OrderPublisher | None = None,
        consumers: list[BookConsumer] | None = None,
        metrics: PipelineMetrics | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.metrics = metrics or PipelineMetrics()

        self.publisher = publisher or OrderPublisher(settings=self.settings.kafka)
        self.pipeline = OrderPipeline(
            generator=OrderGenerator(),
            publisher=self.publisher,
            routes=build_routes(self.settings.kafka),
            metrics=self.metrics,
        )
        self.scheduler: SchedulerService = create_order_scheduler(self.pipeline, self.settings.timer)
        self.consumers = consumers if consumers is not None else create_book_consumers(self.settings, self.metrics)

        self._stop_event = asyncio.Event()

    async def start(self) -> None:
        """Start consumers first, then the publisher, then the trigger."""
        logger.info("Starting book order router", env=self.settings.env)

        if self.settings.metrics.enabled:
            self.metrics.serve(self.settings.metrics.port)

        for consumer in self.consumers:
            await consumer.run_forever()

        await self.publisher.start()
        await self.scheduler.start()

        logger.info(
            "Book order router started",
            period_ms=self.settings.timer.period_ms,
            delay_ms=self.settings.timer.delay_ms,
        )

    async def stop(self) -> None:
        """Stop new ticks, drain the in-flight run, then close clients."""
        logger.info("Shutting down book order router")

        await self.scheduler.stop()
        await self.pipeline.drain()
        await self.publisher.stop()

        for consumer in self.consumers:
            await consumer.stop()

        logger.info("Book order router shutdown complete", **self.pipeline.get_stats())

    def request_stop(self) -> None:
        self._stop_event.set()

    async def run_forever(self) -> None:
        """Run until request_stop() is called or the process receives SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # Unavailable on Windows event loops and outside the main thread
                logger.debug("Signal handler not installed", signal=sig.name)

        try:
            # A failed start still stops whatever had already started
            await self.start()
            await self._stop_event.wait()
        finally:
            await self.stop()
            for sig in installed:
                loop.remove_signal_handler(sig)

    def get_stats(self) -> dict[str, Any]:
        return {
            "pipeline": self.pipeline.get_stats(),
            "publisher": self.publisher.get_stats(),
            "scheduler": self.scheduler.get_stats(),
            "consumers": {c.topic: c.get_stats() for c in self.consumers},
        }


def main() -> None:
    """Console entry point."""
    settings = get_settings()
    setup_logging(settings)
    asyncio.run(BookOrderApplication(settings).run_forever())


if __name__ == "__main__":
    main()
