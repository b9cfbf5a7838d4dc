"""
Job Handler Registry.

Maps background job types to the coroutine that performs them. Every
handler receives a session of its own and the job row, and returns the
JSON-serializable result stored on the row.

Adding a job type:
    @job_handler("my_type")
    async def my_handler(session: AsyncSession, job: BackgroundJob) -> dict:
        ...

The type must also be listed under a queue in config/settings/jobs.yaml
so that POST /jobs accepts it and it gets a default priority.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.exceptions import ValidationError
from portal.backend.models.job import BackgroundJob
from portal.backend.services.commerce import CommerceService
from portal.backend.services.email import EmailService
from portal.backend.services.proposal import ProposalService
from portal.backend.services.seo import SeoService
from portal.backend.services.signal import SignalService

JobHandler = Callable[[AsyncSession, BackgroundJob], Awaitable[dict[str, Any]]]

JOB_HANDLERS: dict[str, JobHandler] = {}


def job_handler(job_type: str) -> Callable[[JobHandler], JobHandler]:
    """Register the decorated coroutine as the handler of ``job_type``."""

    def decorator(func: JobHandler) -> JobHandler:
        if job_type in JOB_HANDLERS:
            raise ValueError(f"Duplicate handler for job type {job_type}")
        JOB_HANDLERS[job_type] = func
        return func

    return decorator


def get_handler(job_type: str) -> JobHandler | None:
    return JOB_HANDLERS.get(job_type)


def require_param(job: BackgroundJob, name: str) -> Any:
    value = (job.params or {}).get(name)
    if value in (None, ""):
        raise ValidationError(f"Job parameter {name} is required", details={"job_type": job.type})
    return value


@job_handler("email_campaign_send")
async def send_email_campaign(session: AsyncSession, job: BackgroundJob) -> dict[str, Any]:
    return await EmailService(session).run_campaign_send(require_param(job, "campaign_id"))


@job_handler("crawl_sitemap")
async def crawl_sitemap(session: AsyncSession, job: BackgroundJob) -> dict[str, Any]:
    return await SeoService(session).crawl_site(require_param(job, "site_id"))


@job_handler("seo_ai_analyze")
async def analyze_site(session: AsyncSession, job: BackgroundJob) -> dict[str, Any]:
    return await SeoService(session).analyze_site(require_param(job, "site_id"))


@job_handler("proposal_ai_edit")
async def edit_proposal(session: AsyncSession, job: BackgroundJob) -> dict[str, Any]:
    return await ProposalService(session).apply_ai_edit(
        require_param(job, "proposal_id"), require_param(job, "instructions"),
    )


@job_handler("signal_echo_reply")
async def echo_reply(session: AsyncSession, job: BackgroundJob) -> dict[str, Any]:
    return await SignalService(session).reply_to_thread(require_param(job, "message_id"))


@job_handler("shopify_sync")
async def sync_shopify_store(session: AsyncSession, job: BackgroundJob) -> dict[str, Any]:
    return await CommerceService(session).sync_store(require_param(job, "store_id"))
