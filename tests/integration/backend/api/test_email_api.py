"""
Integration tests for email marketing and tracking.

Campaign lifecycle, templates, lists and subscribers, one-off sends,
the open pixel and click redirect, and the campaign send job body.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.exceptions import ExternalServiceError, ServiceNotConfiguredError
from portal.backend.integrations.resend import ResendClient
from portal.backend.models.email import EmailCampaign, EmailList, EmailSubscriber, EmailTracking
from portal.backend.models.job import BackgroundJob
from portal.backend.services.email import TRACKING_PIXEL, EmailService


async def _list_with(session: AsyncSession, org_id: str, *emails: str) -> EmailList:
    email_list = EmailList(org_id=org_id, name="Newsletter")
    session.add(email_list)
    await session.flush()
    session.add_all(EmailSubscriber(list_id=email_list.id, email=e) for e in emails)
    await session.flush()
    return email_list


async def _campaign(session: AsyncSession, org_id: str, **fields) -> EmailCampaign:
    values = {"name": "Spring promo", "subject": "Spring deals", "content": "<p>Hello</p>"}
    values.update(fields)
    campaign = EmailCampaign(org_id=org_id, **values)
    session.add(campaign)
    await session.flush()
    return campaign


async def _tracked(session: AsyncSession, org_id: str, campaign_id: str | None = None) -> EmailTracking:
    row = EmailTracking(org_id=org_id, campaign_id=campaign_id, to_email="x@y.test", subject="Hi", status="sent")
    session.add(row)
    await session.flush()
    return row


class TestCampaigns:
    @pytest.mark.asyncio
    async def test_create_and_list(self, client: AsyncClient, api, sales_headers, db_session, org):
        email_list = await _list_with(db_session, org.id)
        created = api.assert_success(
            await client.post(
                "/api/v1/email/campaigns",
                headers=sales_headers,
                json={"name": "Launch", "subject": "We launched", "content": "<p>News</p>", "list_id": email_list.id},
            ),
            201,
        )["data"]
        assert created["status"] == "draft"

        body = api.assert_success(await client.get("/api/v1/email/campaigns", headers=sales_headers))
        assert [c["id"] for c in body["data"]] == [created["id"]]

    @pytest.mark.asyncio
    async def test_foreign_list_rejected(self, client: AsyncClient, api, sales_headers, db_session, other_org):
        foreign = await _list_with(db_session, other_org.id)
        response = await client.post(
            "/api/v1/email/campaigns", headers=sales_headers, json={"name": "x", "list_id": foreign.id},
        )
        api.assert_error(response, 404, "RES_NOT_FOUND")

    @pytest.mark.asyncio
    async def test_send_queues_high_priority_job(
        self, client: AsyncClient, api, sales_headers, db_session, org, dispatched_jobs,
    ):
        email_list = await _list_with(db_session, org.id, "a@x.test")
        campaign = await _campaign(db_session, org.id, list_id=email_list.id)

        data = api.assert_success(
            await client.post(f"/api/v1/email/campaigns/{campaign.id}/send", headers=sales_headers), 202,
        )["data"]

        dispatched_jobs.assert_awaited_once_with(data["job_id"])
        job = await db_session.get(BackgroundJob, data["job_id"])
        assert job.type == "email_campaign_send"
        assert job.priority == "high"
        assert job.params == {"campaign_id": campaign.id}
        assert (await db_session.get(EmailCampaign, campaign.id)).status == "sending"

    @pytest.mark.asyncio
    async def test_send_without_list_rejected(self, client: AsyncClient, api, sales_headers, db_session, org):
        campaign = await _campaign(db_session, org.id)
        response = await client.post(f"/api/v1/email/campaigns/{campaign.id}/send", headers=sales_headers)
        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")

    @pytest.mark.asyncio
    async def test_send_twice_rejected(self, client: AsyncClient, api, sales_headers, db_session, org):
        campaign = await _campaign(db_session, org.id, status="sent")
        response = await client.post(f"/api/v1/email/campaigns/{campaign.id}/send", headers=sales_headers)
        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")

    @pytest.mark.asyncio
    async def test_schedule_pause_resume(self, client: AsyncClient, api, sales_headers, db_session, org):
        campaign = await _campaign(db_session, org.id)
        base = f"/api/v1/email/campaigns/{campaign.id}"

        scheduled = api.assert_success(
            await client.post(
                f"{base}/schedule", headers=sales_headers, json={"scheduled_at": "2030-01-01T09:00:00+02:00"},
            ),
        )["data"]
        assert scheduled["status"] == "scheduled"
        assert scheduled["scheduled_at"].startswith("2030-01-01T07:00:00")

        paused = api.assert_success(await client.post(f"{base}/pause", headers=sales_headers))["data"]
        assert paused["status"] == "paused"

        resumed = api.assert_success(await client.post(f"{base}/resume", headers=sales_headers))["data"]
        assert resumed["status"] == "scheduled"

        api.assert_error(await client.post(f"{base}/resume", headers=sales_headers), 400)

    @pytest.mark.asyncio
    async def test_cannot_delete_while_sending(self, client: AsyncClient, api, sales_headers, db_session, org):
        campaign = await _campaign(db_session, org.id, status="sending")
        response = await client.delete(f"/api/v1/email/campaigns/{campaign.id}", headers=sales_headers)
        api.assert_error(response, 409, "RES_CONFLICT")

    @pytest.mark.asyncio
    async def test_stats_rates(self, client: AsyncClient, api, sales_headers, db_session, org):
        campaign = await _campaign(
            db_session, org.id, status="sent", sent_count=200, open_count=50, click_count=10, bounce_count=4,
        )
        stats = api.assert_success(
            await client.get(f"/api/v1/email/campaigns/{campaign.id}/stats", headers=sales_headers),
        )["data"]
        assert stats["open_rate"] == 25.0
        assert stats["click_rate"] == 20.0
        assert stats["bounce_rate"] == 2.0

    @pytest.mark.asyncio
    async def test_clients_forbidden(self, client: AsyncClient, api, client_headers):
        api.assert_error(await client.get("/api/v1/email/campaigns", headers=client_headers), 403)


class TestTemplatesAndLists:
    @pytest.mark.asyncio
    async def test_template_crud(self, client: AsyncClient, api, sales_headers):
        created = api.assert_success(
            await client.post(
                "/api/v1/email/templates",
                headers=sales_headers,
                json={"name": "Welcome", "subject": "Welcome aboard", "content": "<p>Hi</p>", "category": "onboarding"},
            ),
            201,
        )["data"]
        url = f"/api/v1/email/templates/{created['id']}"

        updated = api.assert_success(await client.patch(url, headers=sales_headers, json={"subject": "Welcome!"}))
        assert updated["data"]["subject"] == "Welcome!"
        assert len(api.assert_success(await client.get("/api/v1/email/templates", headers=sales_headers))["data"]) == 1

        assert (await client.delete(url, headers=sales_headers)).status_code == 204
        api.assert_error(await client.get(url, headers=sales_headers), 404)

    @pytest.mark.asyncio
    async def test_subscribers(self, client: AsyncClient, api, sales_headers):
        email_list = api.assert_success(
            await client.post("/api/v1/email/lists", headers=sales_headers, json={"name": "Customers"}), 201,
        )["data"]
        base = f"/api/v1/email/lists/{email_list['id']}/subscribers"

        added = api.assert_success(
            await client.post(base, headers=sales_headers, json={"email": " Pat@Example.com "}), 201,
        )["data"]
        assert added["email"] == "pat@example.com"
        assert added["status"] == "subscribed"

        dup = await client.post(base, headers=sales_headers, json={"email": "pat@example.com"})
        api.assert_error(dup, 409, "RES_CONFLICT")

        bad = await client.post(base, headers=sales_headers, json={"email": "not-an-email"})
        api.assert_error(bad, 400, "VAL_VALIDATION_ERROR")

        gone = api.assert_success(
            await client.delete(f"{base}/{added['id']}", headers=sales_headers),
        )["data"]
        assert gone["status"] == "unsubscribed"
        assert gone["unsubscribed_at"] is not None


class TestSendOne:
    @pytest.mark.asyncio
    async def test_send_records_tracking(self, client: AsyncClient, api, sales_headers, client_contact, db_session):
        with patch.object(ResendClient, "send_email", new=AsyncMock(return_value="re_123")) as send:
            data = api.assert_success(
                await client.post(
                    "/api/v1/email/send",
                    headers=sales_headers,
                    json={
                        "to": "Carol@Client.test",
                        "subject": "Checking in",
                        "content": "<p>How is it going?</p>",
                        "contact_id": client_contact.id,
                    },
                ),
                202,
            )["data"]

        assert data["provider_id"] == "re_123"
        to, subject, html = send.await_args.args
        assert to == "carol@client.test"
        assert subject == "Checking in"
        assert f"/email/track/open/{data['tracking_id']}" in html

        row = await db_session.get(EmailTracking, data["tracking_id"])
        assert row.status == "sent"
        assert row.contact_id == client_contact.id

    @pytest.mark.asyncio
    async def test_requires_recipient_and_body(self, client: AsyncClient, api, sales_headers):
        response = await client.post("/api/v1/email/send", headers=sales_headers, json={"subject": "x"})
        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")

    @pytest.mark.asyncio
    async def test_not_configured(self, client: AsyncClient, api, sales_headers):
        response = await client.post(
            "/api/v1/email/send", headers=sales_headers, json={"to": "a@b.test", "subject": "s", "content": "c"},
        )
        api.assert_error(response, 500, "SYS_NOT_CONFIGURED")


class TestTracking:
    @pytest.mark.asyncio
    async def test_open_pixel_counts_first_open_once(self, client: AsyncClient, db_session, org):
        campaign = await _campaign(db_session, org.id, status="sent", sent_count=1)
        row = await _tracked(db_session, org.id, campaign.id)

        for _ in range(2):
            response = await client.get(f"/api/v1/email/track/open/{row.id}")
            assert response.status_code == 200
            assert response.headers["content-type"] == "image/gif"
            assert response.content == TRACKING_PIXEL
            assert "no-store" in response.headers["cache-control"]

        await db_session.refresh(row)
        await db_session.refresh(campaign)
        assert row.open_count == 2
        assert row.status == "opened"
        assert campaign.open_count == 1

    @pytest.mark.asyncio
    async def test_unknown_id_still_serves_pixel(self, client: AsyncClient):
        response = await client.get("/api/v1/email/track/open/does-not-exist")
        assert response.status_code == 200
        assert response.content == TRACKING_PIXEL

    @pytest.mark.asyncio
    async def test_click_redirects_and_counts_open(self, client: AsyncClient, db_session, org):
        campaign = await _campaign(db_session, org.id, status="sent", sent_count=1)
        row = await _tracked(db_session, org.id, campaign.id)

        response = await client.get(
            f"/api/v1/email/track/click/{row.id}", params={"url": "https://example.com/offer?x=1"},
        )

        assert response.status_code == 302
        assert response.headers["location"] == "https://example.com/offer?x=1"
        await db_session.refresh(row)
        await db_session.refresh(campaign)
        assert row.status == "clicked"
        assert row.opened_at is not None
        assert campaign.click_count == 1
        assert campaign.open_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["javascript:alert(1)", "/relative", "ftp://files.test/x", ""])
    async def test_click_rejects_unsafe_urls(self, client: AsyncClient, api, db_session, org, url):
        row = await _tracked(db_session, org.id)
        response = await client.get(f"/api/v1/email/track/click/{row.id}", params={"url": url})
        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")

    @pytest.mark.asyncio
    async def test_click_unknown_id_still_redirects(self, client: AsyncClient):
        response = await client.get("/api/v1/email/track/click/missing", params={"url": "https://example.com"})
        assert response.status_code == 302


def _resend(send_side_effect=None) -> MagicMock:
    resend = MagicMock(spec=ResendClient)
    resend.is_configured = True
    resend.send_email = AsyncMock(side_effect=send_side_effect or ["re_1", "re_2", "re_3"])
    return resend


class TestCampaignSendJob:
    @pytest.mark.asyncio
    async def test_sends_to_subscribed_only(self, db_session, org):
        email_list = await _list_with(db_session, org.id, "a@x.test", "b@x.test")
        db_session.add(EmailSubscriber(list_id=email_list.id, email="gone@x.test", status="unsubscribed"))
        campaign = await _campaign(db_session, org.id, status="sending", list_id=email_list.id)
        resend = _resend()

        result = await EmailService(db_session, client=resend).run_campaign_send(campaign.id)

        assert result == {"campaign_id": campaign.id, "sent": 2, "bounced": 0}
        assert {call.args[0] for call in resend.send_email.await_args_list} == {"a@x.test", "b@x.test"}
        assert campaign.status == "sent"
        assert campaign.sent_count == 2
        rows = (await db_session.execute(select(EmailTracking).where(EmailTracking.campaign_id == campaign.id))).scalars()
        assert {r.status for r in rows} == {"sent"}

    @pytest.mark.asyncio
    async def test_rejected_send_counts_bounce(self, db_session, org):
        email_list = await _list_with(db_session, org.id, "a@x.test", "b@x.test")
        campaign = await _campaign(db_session, org.id, status="sending", list_id=email_list.id)
        resend = _resend(["re_1", ExternalServiceError("rejected")])

        result = await EmailService(db_session, client=resend).run_campaign_send(campaign.id)

        assert result["sent"] == 1
        assert result["bounced"] == 1
        assert campaign.bounce_count == 1

    @pytest.mark.asyncio
    async def test_paused_campaign_skipped(self, db_session, org):
        campaign = await _campaign(db_session, org.id, status="paused")
        resend = _resend()

        result = await EmailService(db_session, client=resend).run_campaign_send(campaign.id)

        assert result == {"campaign_id": campaign.id, "skipped": "paused"}
        resend.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconfigured_marks_failed(self, db_session, org):
        email_list = await _list_with(db_session, org.id, "a@x.test")
        campaign = await _campaign(db_session, org.id, status="sending", list_id=email_list.id)
        resend = _resend()
        resend.is_configured = False

        with pytest.raises(ServiceNotConfiguredError):
            await EmailService(db_session, client=resend).run_campaign_send(campaign.id)
        assert campaign.status == "failed"
