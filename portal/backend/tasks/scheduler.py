"""
Task Scheduler Configuration.

Configures the Taskiq scheduler for the periodic job maintenance tasks.
Uses LabelScheduleSource for static schedules defined in task decorators.

Usage:
    # Start scheduler process
    portal scheduler

    # Or directly with taskiq
    taskiq scheduler portal.backend.tasks.scheduler:scheduler

Important:
    Run only ONE scheduler instance. Multiple instances will cause
    duplicate task execution.
"""

from typing import TYPE_CHECKING

from portal.backend.core.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from taskiq import TaskiqScheduler


def create_scheduler() -> "TaskiqScheduler":
    """
    Create the Taskiq scheduler with every scheduled task registered.

    Returns:
        Configured TaskiqScheduler instance
    """
    from taskiq import TaskiqScheduler
    from taskiq.schedule_sources import LabelScheduleSource

    from portal.backend.tasks.broker import get_broker
    from portal.backend.tasks.scheduled import register_scheduled_tasks

    broker = get_broker()
    register_scheduled_tasks()

    # LabelScheduleSource reads schedule config from task decorators
    label_source = LabelScheduleSource(broker)

    scheduler = TaskiqScheduler(
        broker=broker,
        sources=[label_source],
    )

    logger.info("Taskiq scheduler configured with LabelScheduleSource")

    return scheduler


# Lazy scheduler initialization
_scheduler: "TaskiqScheduler | None" = None


def get_scheduler() -> "TaskiqScheduler":
    """Get the scheduler instance, creating it if necessary."""
    global _scheduler
    if _scheduler is None:
        _scheduler = create_scheduler()
    return _scheduler


def __getattr__(name: str):
    """Lazy attribute access for scheduler."""
    if name == "scheduler":
        return get_scheduler()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
