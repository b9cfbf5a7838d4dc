"""
Background Tasks Package.

Taskiq-based background job processing with a Redis backend.

Two kinds of tasks:
1. run_background_job (portal.backend.tasks.jobs) - executes background_jobs rows by id
2. Scheduled tasks (portal.backend.tasks.scheduled) - triggered by time (cron)

Job types and their handlers live in portal.backend.tasks.handlers.

CLI Commands:
    portal worker       # taskiq worker portal.backend.tasks.worker:broker
    portal scheduler    # taskiq scheduler portal.backend.tasks.scheduler:scheduler

Note:
    Nothing is imported eagerly here: services import tasks.dispatch, and
    the handlers import services.

Important:
    Run only ONE scheduler instance to avoid duplicate task execution.
"""


def __getattr__(name: str):
    """Lazy attribute access for broker and scheduler."""
    if name == "broker":
        from portal.backend.tasks.broker import get_broker

        return get_broker()
    if name == "scheduler":
        from portal.backend.tasks.scheduler import get_scheduler

        return get_scheduler()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
