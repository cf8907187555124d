"""
Phase 6 Tests: Background Services

Tests for:
- Scheduler service firing tasks on its interval trigger
- Order trigger configuration
"""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.settings import TimerSettings
from src.services.scheduler import (
    ORDER_TASK_ID,
    ScheduledTask,
    SchedulerService,
    TaskStatus,
    create_order_scheduler,
)


async def run_scheduler_for(scheduler: SchedulerService, seconds: float) -> None:
    """Let the real trigger fire for a while, then stop it."""
    await scheduler.start()
    try:
        await asyncio.sleep(seconds)
    finally:
        await scheduler.stop()


# =============================================================================
# Scheduler Service Tests
# =============================================================================


class TestSchedulerService:
    """Tests for SchedulerService."""

    @pytest.fixture
    def scheduler(self):
        """Create a fresh scheduler for each test."""
        return SchedulerService()

    @pytest.fixture
    def task(self):
        return ScheduledTask(
            task_id="test_task",
            name="Test Task",
            func=MagicMock(return_value="done"),
            interval_seconds=60,
        )

    def test_create_scheduler(self, scheduler):
        assert scheduler.is_running is False

    def test_register_task(self, scheduler, task):
        scheduler.register_task(task)

        assert scheduler.get_task("test_task") is task
        assert scheduler.get_task("missing") is None

    @pytest.mark.asyncio
    async def test_start_and_stop(self, scheduler, task):
        scheduler.register_task(task)

        await scheduler.start()
        try:
            assert scheduler.is_running is True
            assert scheduler.get_next_run_time("test_task") is not None
        finally:
            await scheduler.stop()

        assert scheduler.is_running is False
        assert scheduler.get_next_run_time("test_task") is None

    @pytest.mark.asyncio
    async def test_trigger_runs_async_task(self, scheduler):
        func = AsyncMock(return_value=42)
        task = ScheduledTask(task_id="a", name="A", func=func, interval_seconds=0.02)
        scheduler.register_task(task)

        await run_scheduler_for(scheduler, 0.15)

        assert func.await_count >= 2
        assert task.run_count >= 2
        assert task.error_count == 0
        assert task.last_status == TaskStatus.COMPLETED
        assert task.last_run is not None

    @pytest.mark.asyncio
    async def test_trigger_runs_sync_task(self, scheduler):
        func = MagicMock(return_value="done")
        task = ScheduledTask(task_id="s", name="S", func=func, interval_seconds=0.02)
        scheduler.register_task(task)

        await run_scheduler_for(scheduler, 0.1)

        assert func.call_count >= 1
        assert task.last_status == TaskStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_failing_task_keeps_firing(self, scheduler):
        func = AsyncMock(side_effect=RuntimeError("boom"))
        task = ScheduledTask(task_id="bad", name="Bad", func=func, interval_seconds=0.02)
        scheduler.register_task(task)

        await run_scheduler_for(scheduler, 0.15)

        assert task.error_count >= 2
        assert task.run_count == task.error_count
        assert task.last_status == TaskStatus.FAILED
        assert scheduler.get_stats()["total_errors"] == task.error_count

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, scheduler, task):
        scheduler.register_task(task)

        await scheduler.start()
        try:
            await scheduler.start()
            assert scheduler.is_running is True
        finally:
            await scheduler.stop()

    def test_get_stats(self, scheduler, task):
        scheduler.register_task(task)
        stats = scheduler.get_stats()

        assert stats["running"] is False
        assert stats["total_tasks"] == 1
        assert stats["total_executions"] == 0


# =============================================================================
# Order Trigger Tests
# =============================================================================


class TestOrderScheduler:
    """Tests for create_order_scheduler()."""

    def test_task_configuration(self):
        pipeline = MagicMock()
        pipeline.run_once = AsyncMock()

        scheduler = create_order_scheduler(pipeline, TimerSettings(period_ms=2500, delay_ms=500))
        task = scheduler.get_task(ORDER_TASK_ID)

        assert task.func is pipeline.run_once
        assert task.interval_seconds == 2.5
        assert task.initial_delay_seconds == 0.5
        assert task.max_instances == 1
        assert task.coalesce is True

    @pytest.mark.asyncio
    async def test_first_tick_after_delay(self):
        pipeline = MagicMock()
        pipeline.run_once = AsyncMock()
        scheduler = create_order_scheduler(pipeline, TimerSettings(period_ms=1000, delay_ms=60000))

        before = datetime.now(UTC)
        await scheduler.start()
        try:
            next_run = scheduler.get_next_run_time(ORDER_TASK_ID)
        finally:
            await scheduler.stop()

        assert next_run >= before + timedelta(seconds=59)
        pipeline.run_once.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ticks_drive_pipeline(self):
        pipeline = MagicMock()
        pipeline.run_once = AsyncMock()
        scheduler = create_order_scheduler(pipeline, TimerSettings(period_ms=20, delay_ms=0))

        await run_scheduler_for(scheduler, 0.15)

        assert pipeline.run_once.await_count >= 2
        assert scheduler.get_task(ORDER_TASK_ID).run_count >= 2
