"""
Unit tests for background job execution.

Jobs run against the test database through db_session_factory with the
handler registry patched.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.backend.core.exceptions import ExternalServiceError, ValidationError
from portal.backend.core.utils import utc_now
from portal.backend.integrations.resend import ResendClient
from portal.backend.models.email import EmailCampaign
from portal.backend.models.job import BackgroundJob
from portal.backend.models.organization import Organization
from portal.backend.tasks.handlers import JOB_HANDLERS, get_handler, job_handler, require_param
from portal.backend.tasks.jobs import describe_error, execute_job, retry_delay_seconds


async def _create_job(
    factory: async_sessionmaker[AsyncSession], **fields,
) -> str:
    fields.setdefault("type", "crawl_sitemap")
    fields.setdefault("params", {"site_id": "s-1"})
    fields.setdefault("max_retries", 3)
    async with factory() as session:
        job = BackgroundJob(**fields)
        session.add(job)
        await session.commit()
        return job.id


async def _load(factory: async_sessionmaker[AsyncSession], job_id: str) -> BackgroundJob:
    async with factory() as session:
        return await session.get(BackgroundJob, job_id)


class TestRetryDelay:
    def test_exponential(self):
        assert [retry_delay_seconds(n) for n in range(4)] == [5, 10, 20, 40]


class TestDescribeError:
    def test_application_error_uses_code(self):
        assert describe_error(ExternalServiceError("sitemap timed out")) == (
            "SYS_EXTERNAL_SERVICE_ERROR: sitemap timed out"
        )

    def test_other_errors_use_type(self):
        assert describe_error(KeyError("site_id")) == "KeyError: 'site_id'"


class TestHandlerRegistry:
    def test_every_queued_type_has_handler(self):
        from portal.backend.services.job import registered_job_types

        for job_type in registered_job_types():
            assert get_handler(job_type) is not None, job_type

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ValueError):
            job_handler("crawl_sitemap")(AsyncMock())

    def test_unknown_type(self):
        assert get_handler("nope") is None
        assert "nope" not in JOB_HANDLERS

    def test_require_param(self):
        job = BackgroundJob(type="crawl_sitemap", params={"site_id": "s-1", "empty": ""})
        assert require_param(job, "site_id") == "s-1"
        with pytest.raises(ValidationError):
            require_param(job, "empty")
        with pytest.raises(ValidationError):
            require_param(job, "missing")


class TestExecuteJob:
    @pytest.mark.asyncio
    async def test_success_records_result(self, db_session_factory):
        job_id = await _create_job(db_session_factory)
        handler = AsyncMock(return_value={"pages_found": 12})

        with patch("portal.backend.tasks.jobs.get_handler", return_value=handler):
            result = await execute_job(job_id, db_session_factory)

        assert result == {"pages_found": 12}
        job = await _load(db_session_factory, job_id)
        assert job.status == "completed"
        assert job.result == {"pages_found": 12}
        assert job.started_at is not None
        assert job.completed_at is not None
        assert handler.await_args.args[1].id == job_id

    @pytest.mark.asyncio
    async def test_non_pending_job_is_skipped(self, db_session_factory):
        """A second delivery of the same id must not run the job again."""
        job_id = await _create_job(db_session_factory, status="completed")
        handler = AsyncMock()

        with patch("portal.backend.tasks.jobs.get_handler", return_value=handler):
            assert await execute_job(job_id, db_session_factory) is None

        handler.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_is_requeued_with_backoff(self, db_session_factory):
        job_id = await _create_job(db_session_factory, retry_count=1)
        handler = AsyncMock(side_effect=ExternalServiceError("sitemap unreachable"))
        before = utc_now()

        with patch("portal.backend.tasks.jobs.get_handler", return_value=handler):
            assert await execute_job(job_id, db_session_factory) is None

        job = await _load(db_session_factory, job_id)
        assert job.status == "pending"
        assert job.retry_count == 2
        assert job.error == "SYS_EXTERNAL_SERVICE_ERROR: sitemap unreachable"
        assert before + timedelta(seconds=10) <= job.run_after <= utc_now() + timedelta(seconds=10)

    @pytest.mark.asyncio
    async def test_retry_not_claimed_before_run_after(self, db_session_factory):
        job_id = await _create_job(db_session_factory, run_after=utc_now() + timedelta(minutes=1))
        handler = AsyncMock()

        with patch("portal.backend.tasks.jobs.get_handler", return_value=handler):
            assert await execute_job(job_id, db_session_factory) is None

        handler.assert_not_awaited()
        assert (await _load(db_session_factory, job_id)).status == "pending"

    @pytest.mark.asyncio
    async def test_final_failure_stays_failed(self, db_session_factory):
        job_id = await _create_job(db_session_factory, retry_count=3, max_retries=3)
        handler = AsyncMock(side_effect=RuntimeError("boom"))

        with patch("portal.backend.tasks.jobs.get_handler", return_value=handler):
            await execute_job(job_id, db_session_factory)

        job = await _load(db_session_factory, job_id)
        assert job.status == "failed"
        assert job.run_after is None
        assert job.error == "RuntimeError: boom"

    @pytest.mark.asyncio
    async def test_unknown_type_fails(self, db_session_factory):
        job_id = await _create_job(db_session_factory, type="mystery", max_retries=0)

        await execute_job(job_id, db_session_factory)

        job = await _load(db_session_factory, job_id)
        assert job.status == "failed"
        assert job.error.startswith("UNKNOWN_JOB_TYPE")


class TestHandlerFailureState:
    """State a handler commits before failing must survive the job rollback."""

    @pytest.mark.asyncio
    async def test_campaign_marked_failed_when_email_unconfigured(self, db_session_factory):
        async with db_session_factory() as session:
            org = Organization(name="Acme", slug="acme", features={})
            session.add(org)
            await session.flush()
            campaign = EmailCampaign(
                org_id=org.id, name="Spring", subject="Deals", content="<p>Hi</p>", status="sending",
            )
            session.add(campaign)
            await session.commit()
        job_id = await _create_job(
            db_session_factory, type="email_campaign_send", params={"campaign_id": campaign.id}, max_retries=0,
        )
        resend = MagicMock(spec=ResendClient)
        resend.is_configured = False

        with patch("portal.backend.services.email.ResendClient", return_value=resend):
            assert await execute_job(job_id, db_session_factory) is None

        async with db_session_factory() as session:
            assert (await session.get(EmailCampaign, campaign.id)).status == "failed"
        job = await _load(db_session_factory, job_id)
        assert job.status == "failed"
        assert job.error.startswith("SYS_NOT_CONFIGURED")
