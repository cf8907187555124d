"""
Background services for the book order router.

This module provides:
- Scheduler service firing the order pipeline periodically
"""

from src.services.scheduler import (
    ORDER_TASK_ID,
    ScheduledTask,
    SchedulerService,
    TaskStatus,
    create_order_scheduler,
)

__all__ = [
    "ORDER_TASK_ID",
    "ScheduledTask",
    "SchedulerService",
    "TaskStatus",
    "create_order_scheduler",
]
