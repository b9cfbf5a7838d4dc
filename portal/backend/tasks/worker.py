"""
Worker Entry Point.

Import target for ``taskiq worker``: builds the broker and registers
run_background_job plus the scheduled tasks so the worker can execute
everything the API and the scheduler send.

    taskiq worker portal.backend.tasks.worker:broker
"""

from portal.backend.tasks.broker import get_broker
from portal.backend.tasks.jobs import get_job_task
from portal.backend.tasks.scheduled import register_scheduled_tasks

broker = get_broker()
get_job_task()
register_scheduled_tasks()
