"""
Unit tests for scheduled background tasks.

Task functions are called directly with the test session factory,
bypassing broker registration which requires Redis.
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from portal.backend.core.utils import utc_now
from portal.backend.models.contact import Contact
from portal.backend.models.email import EmailCampaign
from portal.backend.models.invoice import Invoice
from portal.backend.models.job import BackgroundJob
from portal.backend.models.organization import Organization
from portal.backend.services.mail import Mailer
from portal.backend.tasks.scheduled import (
    SCHEDULED_TASKS,
    cleanup_finished_jobs,
    dispatch_pending_jobs,
    generate_recurring_invoices,
    send_due_invoice_reminders,
    start_scheduled_campaigns,
)


async def _seed(factory, *instances):
    async with factory() as session:
        session.add_all(instances)
        await session.commit()


async def _jobs(factory) -> list[BackgroundJob]:
    from sqlalchemy import select

    async with factory() as session:
        return list((await session.execute(select(BackgroundJob))).scalars())


class TestDispatchPendingJobs:
    @pytest.mark.asyncio
    async def test_redispatches_stale_pending_jobs(self, db_session_factory):
        old = utc_now() - timedelta(minutes=5)
        stale = BackgroundJob(type="crawl_sitemap", status="pending", created_at=old)
        fresh = BackgroundJob(type="crawl_sitemap", status="pending")
        running = BackgroundJob(type="crawl_sitemap", status="running", created_at=old)
        await _seed(db_session_factory, stale, fresh, running)
        dispatch = AsyncMock(return_value=True)

        with patch("portal.backend.tasks.scheduled.dispatch_job", dispatch):
            result = await dispatch_pending_jobs(session_factory=db_session_factory)

        assert result == {"found": 1, "dispatched": 1}
        dispatch.assert_awaited_once_with(stale.id)

    @pytest.mark.asyncio
    async def test_high_priority_first(self, db_session_factory):
        old = utc_now() - timedelta(minutes=5)
        low = BackgroundJob(type="signal_echo_reply", priority="low", created_at=old - timedelta(minutes=1))
        high = BackgroundJob(type="email_campaign_send", priority="high", created_at=old)
        await _seed(db_session_factory, low, high)
        dispatch = AsyncMock(return_value=False)

        with patch("portal.backend.tasks.scheduled.dispatch_job", dispatch):
            result = await dispatch_pending_jobs(session_factory=db_session_factory)

        assert result == {"found": 2, "dispatched": 0}
        assert [call.args[0] for call in dispatch.await_args_list] == [high.id, low.id]

    @pytest.mark.asyncio
    async def test_retry_waits_for_backoff(self, db_session_factory):
        old = utc_now() - timedelta(minutes=5)
        due = BackgroundJob(type="crawl_sitemap", retry_count=1, created_at=old,
                            run_after=utc_now() - timedelta(seconds=1))
        waiting = BackgroundJob(type="crawl_sitemap", retry_count=2, created_at=old,
                                run_after=utc_now() + timedelta(minutes=1))
        await _seed(db_session_factory, due, waiting)
        dispatch = AsyncMock(return_value=True)

        with patch("portal.backend.tasks.scheduled.dispatch_job", dispatch):
            result = await dispatch_pending_jobs(session_factory=db_session_factory)

        assert result == {"found": 1, "dispatched": 1}
        dispatch.assert_awaited_once_with(due.id)


class TestCleanupFinishedJobs:
    @pytest.mark.asyncio
    async def test_deletes_only_old_finished_jobs(self, db_session_factory):
        old = utc_now() - timedelta(days=30)
        await _seed(
            db_session_factory,
            BackgroundJob(type="crawl_sitemap", status="completed", created_at=old),
            BackgroundJob(type="crawl_sitemap", status="failed", created_at=old),
            BackgroundJob(type="crawl_sitemap", status="pending", created_at=old),
            BackgroundJob(type="crawl_sitemap", status="completed"),
        )

        result = await cleanup_finished_jobs(session_factory=db_session_factory)

        assert result == {"deleted": 2, "older_than_days": 7}
        assert len(await _jobs(db_session_factory)) == 2


class TestGenerateRecurringInvoices:
    @pytest.mark.asyncio
    async def test_issues_child_and_advances_parent(self, db_session_factory):
        org = Organization(name="Acme", slug="acme", features={})
        await _seed(db_session_factory, org)
        contact = Contact(org_id=org.id, email="carol@client.test", type="client", role="client")
        await _seed(db_session_factory, contact)
        due = utc_now() - timedelta(hours=1)
        parent = Invoice(
            org_id=org.id,
            contact_id=contact.id,
            number_seq=1084,
            invoice_number="INV-01084",
            amount=Decimal("500.00"),
            tax_rate=Decimal("10"),
            tax_amount=Decimal("50.00"),
            total=Decimal("550.00"),
            status="sent",
            payment_token="tok-parent",
            payment_token_expires_at=utc_now() + timedelta(days=30),
            is_recurring=True,
            recurring_interval="weekly",
            next_invoice_date=due,
        )
        await _seed(db_session_factory, parent)

        result = await generate_recurring_invoices(session_factory=db_session_factory)

        assert result["generated"] == 1
        async with db_session_factory() as session:
            child = await session.get(Invoice, result["invoice_ids"][0])
            refreshed = await session.get(Invoice, parent.id)
        assert child.parent_invoice_id == parent.id
        assert child.total == Decimal("550.00")
        assert child.status == "sent"
        assert child.invoice_number == "INV-01085"
        assert refreshed.next_invoice_date == due + timedelta(days=7)

    @pytest.mark.asyncio
    async def test_nothing_due(self, db_session_factory):
        assert await generate_recurring_invoices(session_factory=db_session_factory) == {
            "generated": 0,
            "invoice_ids": [],
        }


def _invoice(org_id: str, contact_id: str, seq: int, **fields) -> Invoice:
    values = {
        "org_id": org_id,
        "contact_id": contact_id,
        "number_seq": seq,
        "invoice_number": f"INV-{seq:05d}",
        "amount": Decimal("100.00"),
        "tax_amount": Decimal("0.00"),
        "total": Decimal("100.00"),
        "status": "sent",
        "payment_token": f"tok-{seq}",
        "payment_token_expires_at": utc_now() + timedelta(days=30),
    }
    values.update(fields)
    return Invoice(**values)


class TestSendDueInvoiceReminders:
    @pytest.fixture
    async def billed(self, db_session_factory):
        org = Organization(name="Acme", slug="acme", features={})
        await _seed(db_session_factory, org)
        contact = Contact(org_id=org.id, email="carol@client.test", type="client", role="client")
        await _seed(db_session_factory, contact)
        return org, contact

    @pytest.mark.asyncio
    async def test_reminds_due_invoices_on_schedule(self, db_session_factory, billed):
        org, contact = billed
        past = utc_now() - timedelta(minutes=1)
        due = _invoice(org.id, contact.id, 1085, next_reminder_at=past)
        later = _invoice(org.id, contact.id, 1086, next_reminder_at=utc_now() + timedelta(days=2))
        paid = _invoice(org.id, contact.id, 1087, status="paid", next_reminder_at=past)
        await _seed(db_session_factory, due, later, paid)

        with patch.object(Mailer, "send", new=AsyncMock(return_value="re_1")) as send:
            result = await send_due_invoice_reminders(session_factory=db_session_factory)

        assert result == {"overdue": 0, "reminders_sent": 1}
        assert send.await_count == 1
        async with db_session_factory() as session:
            reminded = await session.get(Invoice, due.id)
        assert reminded.reminder_count == 1
        assert reminded.last_reminder_at is not None
        # second gap in the 3/7/14 schedule
        gap = reminded.next_reminder_at - reminded.last_reminder_at
        assert gap == timedelta(days=7)

    @pytest.mark.asyncio
    async def test_stops_after_last_scheduled_reminder(self, db_session_factory, billed):
        org, contact = billed
        past = utc_now() - timedelta(minutes=1)
        last = _invoice(org.id, contact.id, 1085, reminder_count=2, next_reminder_at=past)
        done = _invoice(org.id, contact.id, 1086, reminder_count=3, next_reminder_at=past)
        await _seed(db_session_factory, last, done)

        with patch.object(Mailer, "send", new=AsyncMock(return_value="re_1")):
            result = await send_due_invoice_reminders(session_factory=db_session_factory)

        assert result["reminders_sent"] == 1
        async with db_session_factory() as session:
            assert (await session.get(Invoice, last.id)).reminder_count == 3
            assert (await session.get(Invoice, last.id)).next_reminder_at is None
            assert (await session.get(Invoice, done.id)).reminder_count == 3

    @pytest.mark.asyncio
    async def test_marks_overdue(self, db_session_factory, billed):
        org, contact = billed
        late = _invoice(org.id, contact.id, 1085, due_at=utc_now() - timedelta(days=1))
        current = _invoice(org.id, contact.id, 1086, due_at=utc_now() + timedelta(days=1))
        draft = _invoice(org.id, contact.id, 1087, status="draft", due_at=utc_now() - timedelta(days=1))
        await _seed(db_session_factory, late, current, draft)

        with patch.object(Mailer, "send", new=AsyncMock(return_value="re_1")):
            result = await send_due_invoice_reminders(session_factory=db_session_factory)

        assert result == {"overdue": 1, "reminders_sent": 0}
        async with db_session_factory() as session:
            assert (await session.get(Invoice, late.id)).status == "overdue"
            assert (await session.get(Invoice, current.id)).status == "sent"
            assert (await session.get(Invoice, draft.id)).status == "draft"

    @pytest.mark.asyncio
    async def test_unsent_reminder_retried_next_run(self, db_session_factory, billed):
        org, contact = billed
        due = _invoice(org.id, contact.id, 1085, next_reminder_at=utc_now() - timedelta(minutes=1))
        await _seed(db_session_factory, due)

        with patch.object(Mailer, "send", new=AsyncMock(return_value=None)):
            result = await send_due_invoice_reminders(session_factory=db_session_factory)

        assert result["reminders_sent"] == 0
        async with db_session_factory() as session:
            assert (await session.get(Invoice, due.id)).reminder_count == 0


class TestStartScheduledCampaigns:
    @pytest.mark.asyncio
    async def test_due_campaign_enqueued(self, db_session_factory):
        org = Organization(name="Acme", slug="acme", features={})
        await _seed(db_session_factory, org)
        due = EmailCampaign(org_id=org.id, name="Spring", status="scheduled",
                            scheduled_at=utc_now() - timedelta(minutes=1))
        later = EmailCampaign(org_id=org.id, name="Summer", status="scheduled",
                              scheduled_at=utc_now() + timedelta(days=30))
        await _seed(db_session_factory, due, later)

        with patch("portal.backend.services.job.dispatch_job", AsyncMock(return_value=True)):
            result = await start_scheduled_campaigns(session_factory=db_session_factory)

        assert result["started"] == 1
        jobs = await _jobs(db_session_factory)
        assert jobs[0].type == "email_campaign_send"
        assert jobs[0].params == {"campaign_id": due.id}
        assert jobs[0].priority == "high"
        async with db_session_factory() as session:
            assert (await session.get(EmailCampaign, due.id)).status == "sending"
            assert (await session.get(EmailCampaign, later.id)).status == "scheduled"


class TestScheduledTasksConfiguration:
    """Tests for scheduled task configuration metadata."""

    def test_all_tasks_have_cron_schedule(self):
        for task_name, config in SCHEDULED_TASKS.items():
            assert config["schedule"], f"{task_name} has empty schedule"
            for schedule in config["schedule"]:
                assert "cron" in schedule, f"{task_name} schedule missing cron"

    def test_all_tasks_have_function_and_description(self):
        for task_name, config in SCHEDULED_TASKS.items():
            assert callable(config["function"]), f"{task_name} function not callable"
            assert config["description"]

    def test_pollers_run_every_minute(self):
        assert SCHEDULED_TASKS["dispatch_pending_jobs"]["schedule"][0]["cron"] == "* * * * *"
        assert SCHEDULED_TASKS["start_scheduled_campaigns"]["schedule"][0]["cron"] == "* * * * *"

    def test_recurring_invoices_daily(self):
        assert SCHEDULED_TASKS["generate_recurring_invoices"]["schedule"][0]["cron"] == "0 6 * * *"

    def test_invoice_reminders_daily(self):
        assert SCHEDULED_TASKS["send_due_invoice_reminders"]["schedule"][0]["cron"] == "0 14 * * *"
