"""
Scheduler Service for the periodic order trigger.

Responsibilities:
- Fire registered tasks on an interval, after an initial delay
- Run ticks serially: one instance per task, missed ticks coalesced
- Keep per-task run and error counts
"""

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config.settings import TimerSettings
from src.pipeline.order_pipeline import OrderPipeline
from src.utils.logging import get_logger

logger = get_logger(__name__)

ORDER_TASK_ID = "generate_order"


class TaskStatus(str, Enum):
    """Outcome of the last run of a scheduled task."""

    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ScheduledTask:
    """Definition of a scheduled task."""

    task_id: str
    name: str
    func: Callable
    interval_seconds: float
    initial_delay_seconds: float = 0.0
    max_instances: int = 1
    coalesce: bool = True
    misfire_grace_time: int = 60

    # Runtime stats
    last_run: datetime | None = None
    last_status: TaskStatus | None = None
    run_count: int = 0
    error_count: int = 0


class SchedulerService:
    """
    Scheduler for the background tasks of the service.

    Each task fires on its own interval; ticks of one task never overlap.
    """

    def __init__(self, timezone: str = "UTC") -> None:
        self._timezone = timezone
        self._scheduler: AsyncIOScheduler | None = None
        self._tasks: dict[str, ScheduledTask] = {}
        self._running = False

    def _create_scheduler(self) -> AsyncIOScheduler:
        """Create and configure the APScheduler instance."""
        scheduler = AsyncIOScheduler(
            timezone=self._timezone,
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
        )

        scheduler.add_listener(self._on_job_executed, EVENT_JOB_EXECUTED)
        scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)

        return scheduler

    def _on_job_executed(self, event: JobExecutionEvent) -> None:
        """Handle successful job execution."""
        task = self._tasks.get(event.job_id)
        if task:
            task.last_run = datetime.now(UTC)
            task.last_status = TaskStatus.COMPLETED
            task.run_count += 1

        logger.debug("Job executed successfully", job_id=event.job_id)

    def _on_job_error(self, event: JobExecutionEvent) -> None:
        """Handle job execution error."""
        task = self._tasks.get(event.job_id)
        if task:
            task.last_run = datetime.now(UTC)
            task.last_status = TaskStatus.FAILED
            task.run_count += 1
            task.error_count += 1

        logger.error("Job execution failed", job_id=event.job_id, error=str(event.exception))

    def register_task(self, task: ScheduledTask) -> None:
        """Register a task; it is scheduled on the next start()."""
        self._tasks[task.task_id] = task
        logger.info(
            "Task registered",
            task_id=task.task_id,
            name=task.name,
            interval_seconds=task.interval_seconds,
            initial_delay_seconds=task.initial_delay_seconds,
        )

    async def start(self) -> None:
        """Start the scheduler service."""
        if self._running:
            logger.warning("Scheduler already running")
            return

        self._scheduler = self._create_scheduler()

        for task in self._tasks.values():

            async def wrapped_func(func: Callable = task.func) -> Any:
                result = func()
                if inspect.isawaitable(result):
                    result = await result
                return result

            self._scheduler.add_job(
                wrapped_func,
                IntervalTrigger(seconds=task.interval_seconds, timezone=self._timezone),
                id=task.task_id,
                name=task.name,
                max_instances=task.max_instances,
                coalesce=task.coalesce,
                misfire_grace_time=task.misfire_grace_time,
                next_run_time=datetime.now(UTC) + timedelta(seconds=task.initial_delay_seconds),
            )

        self._scheduler.start()
        self._running = True

        logger.info("Scheduler service started", task_count=len(self._tasks))

    async def stop(self) -> None:
        """Stop issuing new ticks; in-flight runs are left to the caller to drain."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("Scheduler service stopped")

    def get_task(self, task_id: str) -> ScheduledTask | None:
        """Get a task by ID."""
        return self._tasks.get(task_id)

    def get_next_run_time(self, task_id: str) -> datetime | None:
        """Get next scheduled run time for a task."""
        if self._scheduler:
            job = self._scheduler.get_job(task_id)
            if job:
                return job.next_run_time
        return None

    def get_stats(self) -> dict[str, Any]:
        """Get scheduler statistics."""
        return {
            "running": self._running,
            "total_tasks": len(self._tasks),
            "total_executions": sum(t.run_count for t in self._tasks.values()),
            "total_errors": sum(t.error_count for t in self._tasks.values()),
        }

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running


def create_order_scheduler(pipeline: OrderPipeline, timer: TimerSettings) -> SchedulerService:
    """
    Create a scheduler that runs the order pipeline periodically.

    Args:
        pipeline: Pipeline to run on every tick
        timer: Tick period and initial delay

    Returns:
        Configured SchedulerService
    """
    scheduler = SchedulerService()

    scheduler.register_task(
        ScheduledTask(
            task_id=ORDER_TASK_ID,
            name="Generate Order",
            func=pipeline.run_once,
            interval_seconds=timer.period_ms / 1000,
            initial_delay_seconds=timer.delay_ms / 1000,
        )
    )

    return scheduler
