"""
Email Service.

Campaigns, templates, lists and subscribers, one-off sends, and the
open/click tracking that feeds campaign statistics.
"""

from html import escape
from typing import Any
from urllib.parse import urlparse

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.config import get_app_config
from portal.backend.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    ServiceNotConfiguredError,
    ValidationError,
)
from portal.backend.core.utils import percentage, to_naive_utc, utc_now
from portal.backend.integrations.resend import ResendClient
from portal.backend.models.email import (
    CAMPAIGN_SENDABLE_STATUSES,
    EmailCampaign,
    EmailList,
    EmailSubscriber,
    EmailTemplate,
    EmailTracking,
)
from portal.backend.models.job import BackgroundJob
from portal.backend.repositories.contact import ContactRepository
from portal.backend.repositories.email import (
    EmailCampaignRepository,
    EmailListRepository,
    EmailSubscriberRepository,
    EmailTemplateRepository,
    EmailTrackingRepository,
)
from portal.backend.schemas.email import (
    CampaignCreate,
    CampaignUpdate,
    ListCreate,
    SendEmailRequest,
    SubscriberCreate,
    TemplateCreate,
    TemplateUpdate,
)
from portal.backend.services.base import BaseService
from portal.backend.services.job import JobService
from portal.backend.services.mail import public_url

# 1x1 transparent GIF served by the open-tracking endpoint
TRACKING_PIXEL = (
    b"GIF89a\x01\x00\x01\x00\x80\x00\x00\x00\x00\x00\xff\xff\xff"
    b"!\xf9\x04\x01\x00\x00\x00\x00,\x00\x00\x00\x00\x01\x00\x01\x00\x00\x02\x02D\x01\x00;"
)


def tracking_url(kind: str, tracking_id: str) -> str:
    prefix = get_app_config().application.api_prefix
    return public_url(f"{prefix}/email/track/{kind}/{tracking_id}")


def with_open_pixel(html: str, tracking_id: str) -> str:
    """Append the open-tracking pixel, unless tracking is switched off."""
    if not get_app_config().features.email_tracking_enabled:
        return html
    pixel = tracking_url("open", tracking_id)
    return f'{html}\n<img src="{escape(pixel, quote=True)}" width="1" height="1" alt="" />'


def is_safe_redirect(url: str | None) -> bool:
    if not url:
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def campaign_stats(campaign: EmailCampaign) -> dict[str, Any]:
    """Counters plus open, click and bounce rates in percent."""
    return {
        "sent_count": campaign.sent_count,
        "open_count": campaign.open_count,
        "click_count": campaign.click_count,
        "bounce_count": campaign.bounce_count,
        "open_rate": percentage(campaign.open_count, campaign.sent_count),
        "click_rate": percentage(campaign.click_count, campaign.open_count),
        "bounce_rate": percentage(campaign.bounce_count, campaign.sent_count),
    }


class EmailService(BaseService):
    """Service for email marketing and one-off sends."""

    def __init__(self, session: AsyncSession, client: ResendClient | None = None) -> None:
        super().__init__(session)
        self.campaigns = EmailCampaignRepository(session)
        self.templates = EmailTemplateRepository(session)
        self.lists = EmailListRepository(session)
        self.subscribers = EmailSubscriberRepository(session)
        self.tracking = EmailTrackingRepository(session)
        self.contacts = ContactRepository(session)
        self._client = client

    @property
    def client(self) -> ResendClient:
        if self._client is None:
            self._client = ResendClient()
        return self._client

    # -------------------------------------------------------------------------
    # Campaigns
    # -------------------------------------------------------------------------

    async def list_campaigns(
        self, org_id: str, status: str | None = None, limit: int = 50, offset: int = 0,
    ) -> tuple[list[EmailCampaign], int]:
        return await self.campaigns.list_for_org(org_id, status=status, limit=limit, offset=offset)

    async def get_campaign(self, org_id: str, campaign_id: str) -> EmailCampaign:
        return await self.campaigns.get_in_org(campaign_id, org_id)

    async def _check_refs(self, org_id: str, template_id: str | None, list_id: str | None) -> None:
        if template_id:
            await self.templates.get_in_org(template_id, org_id)
        if list_id:
            await self.lists.get_in_org(list_id, org_id)

    async def create_campaign(self, org_id: str, created_by: str, data: CampaignCreate) -> EmailCampaign:
        await self._check_refs(org_id, data.template_id, data.list_id)
        self._log_operation("Creating campaign", org_id=org_id, name=data.name)
        return await self._execute_db_operation(
            "create_campaign",
            self.campaigns.create(
                org_id=org_id, created_by=created_by, status="draft", **data.model_dump(),
            ),
        )

    async def update_campaign(self, org_id: str, campaign_id: str, data: CampaignUpdate) -> EmailCampaign:
        campaign = await self.campaigns.get_in_org(campaign_id, org_id)
        update_data = data.model_dump(exclude_unset=True)
        await self._check_refs(org_id, update_data.get("template_id"), update_data.get("list_id"))
        if not update_data:
            return campaign
        return await self._execute_db_operation(
            "update_campaign", self.campaigns.apply(campaign, **update_data),
        )

    async def delete_campaign(self, org_id: str, campaign_id: str) -> None:
        campaign = await self.campaigns.get_in_org(campaign_id, org_id)
        if campaign.status == "sending":
            raise ConflictError("Campaign is being sent")
        self._log_operation("Deleting campaign", campaign_id=campaign_id)
        await self._execute_db_operation("delete_campaign", self.campaigns.remove(campaign))

    async def send_campaign(self, org_id: str, campaign_id: str, created_by: str | None) -> BackgroundJob:
        """
        Start sending a campaign in the background.

        Raises:
            ValidationError: Campaign not in draft or scheduled, or has no list
        """
        campaign = await self.campaigns.get_in_org(campaign_id, org_id)
        if campaign.status not in CAMPAIGN_SENDABLE_STATUSES:
            raise ValidationError(f"Campaign cannot be sent from status {campaign.status}")
        if not campaign.list_id:
            raise ValidationError("Campaign has no recipient list")

        await self.campaigns.apply(campaign, status="sending")
        return await JobService(self.session).enqueue(
            "email_campaign_send", {"campaign_id": campaign.id}, org_id=org_id, created_by=created_by,
        )

    async def schedule_campaign(self, org_id: str, campaign_id: str, scheduled_at) -> EmailCampaign:
        self._validate_required({"scheduled_at": scheduled_at}, ["scheduled_at"])
        campaign = await self.campaigns.get_in_org(campaign_id, org_id)
        if campaign.status not in (*CAMPAIGN_SENDABLE_STATUSES, "paused"):
            raise ValidationError(f"Campaign cannot be scheduled from status {campaign.status}")
        return await self.campaigns.apply(
            campaign, status="scheduled", scheduled_at=to_naive_utc(scheduled_at),
        )

    async def pause_campaign(self, org_id: str, campaign_id: str) -> EmailCampaign:
        campaign = await self.campaigns.get_in_org(campaign_id, org_id)
        if campaign.status not in ("sending", "scheduled"):
            raise ValidationError(f"Campaign cannot be paused from status {campaign.status}")
        return await self.campaigns.apply(campaign, status="paused")

    async def resume_campaign(self, org_id: str, campaign_id: str) -> EmailCampaign:
        campaign = await self.campaigns.get_in_org(campaign_id, org_id)
        if campaign.status != "paused":
            raise ValidationError("Only paused campaigns can be resumed")
        return await self.campaigns.apply(
            campaign, status="scheduled" if campaign.scheduled_at else "draft",
        )

    async def get_stats(self, org_id: str, campaign_id: str) -> dict[str, Any]:
        return campaign_stats(await self.campaigns.get_in_org(campaign_id, org_id))

    async def _resolve_content(
        self, org_id: str, subject: str | None, content: str | None, template_id: str | None,
    ) -> tuple[str | None, str | None]:
        if template_id:
            template = await self.templates.get_in_org(template_id, org_id)
            return subject or template.subject, content or template.content
        return subject, content

    async def run_campaign_send(self, campaign_id: str) -> dict[str, Any]:
        """
        Job handler body: email every subscribed member of the campaign list.

        Each recipient gets a tracking row; the open pixel points at it. A
        rejected send is counted as a bounce and does not stop the run.
        """
        campaign = await self.campaigns.get_by_id(campaign_id)
        if campaign.status == "paused":
            return {"campaign_id": campaign.id, "skipped": "paused"}
        subject, content = await self._resolve_content(
            campaign.org_id, campaign.subject, campaign.content, campaign.template_id,
        )
        if not subject or not content:
            await self._fail_campaign(campaign, "missing content")
            raise ValidationError("Campaign has no subject or content")
        if not self.client.is_configured:
            await self._fail_campaign(campaign, "email not configured")
            raise ServiceNotConfiguredError("Email sending is not configured")

        recipients = (
            await self.subscribers.list_for_list(campaign.list_id, subscribed_only=True)
            if campaign.list_id
            else []
        )
        sent = bounced = 0
        for subscriber in recipients:
            row = await self.tracking.create(
                org_id=campaign.org_id,
                campaign_id=campaign.id,
                to_email=subscriber.email,
                subject=subject,
                status="queued",
            )
            try:
                provider_id = await self.client.send_email(
                    subscriber.email, subject, with_open_pixel(content, row.id),
                )
            except ExternalServiceError as e:
                bounced += 1
                await self.tracking.apply(row, status="bounced")
                self._log_debug("Campaign send rejected", campaign_id=campaign.id, error=e.message)
                continue
            sent += 1
            await self.tracking.apply(row, status="sent", provider_id=provider_id, sent_at=utc_now())

        await self.campaigns.apply(
            campaign,
            status="sent",
            sent_at=utc_now(),
            sent_count=campaign.sent_count + sent,
            bounce_count=campaign.bounce_count + bounced,
        )
        self._log_operation("Campaign sent", campaign_id=campaign.id, sent=sent, bounced=bounced)
        return {"campaign_id": campaign.id, "sent": sent, "bounced": bounced}

    async def _fail_campaign(self, campaign: EmailCampaign, reason: str) -> None:
        """Commit the failed status; the job session rolls back once the error propagates."""
        await self.campaigns.apply(campaign, status="failed")
        await self.session.commit()
        self._log_operation("Campaign failed", campaign_id=campaign.id, reason=reason)

    # -------------------------------------------------------------------------
    # Templates
    # -------------------------------------------------------------------------

    async def list_templates(self, org_id: str) -> list[EmailTemplate]:
        return await self.templates.list_for_org(org_id)

    async def get_template(self, org_id: str, template_id: str) -> EmailTemplate:
        return await self.templates.get_in_org(template_id, org_id)

    async def create_template(self, org_id: str, data: TemplateCreate) -> EmailTemplate:
        return await self._execute_db_operation(
            "create_template", self.templates.create(org_id=org_id, **data.model_dump()),
        )

    async def update_template(self, org_id: str, template_id: str, data: TemplateUpdate) -> EmailTemplate:
        template = await self.templates.get_in_org(template_id, org_id)
        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            return template
        return await self._execute_db_operation(
            "update_template", self.templates.apply(template, **update_data),
        )

    async def delete_template(self, org_id: str, template_id: str) -> None:
        template = await self.templates.get_in_org(template_id, org_id)
        await self._execute_db_operation("delete_template", self.templates.remove(template))

    # -------------------------------------------------------------------------
    # Lists and subscribers
    # -------------------------------------------------------------------------

    async def list_lists(self, org_id: str) -> list[EmailList]:
        return await self.lists.list_for_org(org_id)

    async def create_list(self, org_id: str, data: ListCreate) -> EmailList:
        return await self._execute_db_operation(
            "create_list", self.lists.create(org_id=org_id, **data.model_dump()),
        )

    async def delete_list(self, org_id: str, list_id: str) -> None:
        email_list = await self.lists.get_in_org(list_id, org_id)
        self._log_operation("Deleting list", list_id=list_id)
        await self._execute_db_operation("delete_list", self.lists.remove(email_list))

    async def list_subscribers(self, org_id: str, list_id: str) -> list[EmailSubscriber]:
        await self.lists.get_in_org(list_id, org_id)
        return await self.subscribers.list_for_list(list_id)

    async def add_subscriber(self, org_id: str, list_id: str, data: SubscriberCreate) -> EmailSubscriber:
        """
        Add an address to a list.

        Raises:
            ValidationError: Not an email address
            ConflictError: Address already on the list
        """
        await self.lists.get_in_org(list_id, org_id)
        email = data.email.strip().lower()
        if "@" not in email:
            raise ValidationError("Invalid email address", details={"field": "email"})
        if await self.subscribers.get_by_email(list_id, email) is not None:
            raise ConflictError("Email already subscribed to this list")

        return await self._execute_db_operation(
            "add_subscriber",
            self.subscribers.create(list_id=list_id, email=email, name=data.name),
            conflict_message="Email already subscribed to this list",
        )

    async def unsubscribe(self, org_id: str, list_id: str, subscriber_id: str) -> EmailSubscriber:
        await self.lists.get_in_org(list_id, org_id)
        subscriber = await self.subscribers.get_by_id(subscriber_id)
        if subscriber.list_id != list_id:
            raise ValidationError("Subscriber is not on this list")
        return await self.subscribers.apply(
            subscriber, status="unsubscribed", unsubscribed_at=utc_now(),
        )

    # -------------------------------------------------------------------------
    # One-off send and tracking
    # -------------------------------------------------------------------------

    async def send_one(self, org_id: str, data: SendEmailRequest) -> EmailTracking:
        """
        Send a single email and record a tracking row.

        Raises:
            ValidationError: Missing recipient, body, or subject
            ServiceNotConfiguredError: Resend not configured
            ExternalServiceError: Resend rejected the send
        """
        if not data.to or not (data.content or data.template_id):
            raise ValidationError("to and either content or template_id are required")
        subject, content = await self._resolve_content(
            org_id, data.subject, data.content, data.template_id,
        )
        self._validate_required({"subject": subject}, ["subject"])

        contact_id = data.contact_id
        if contact_id:
            await self.contacts.get_in_org(contact_id, org_id)

        row = await self.tracking.create(
            org_id=org_id,
            contact_id=contact_id,
            to_email=data.to.strip().lower(),
            subject=subject,
            status="queued",
        )
        provider_id = await self.client.send_email(row.to_email, subject, with_open_pixel(content, row.id))
        self._log_operation("Email sent", tracking_id=row.id, contact_id=contact_id)
        return await self.tracking.apply(row, status="sent", provider_id=provider_id, sent_at=utc_now())

    async def track_open(self, tracking_id: str) -> None:
        """Stamp an open. Unknown ids are ignored; the pixel is served regardless."""
        row = await self.tracking.get_by_id_or_none(tracking_id)
        if row is None:
            return
        first_open = row.opened_at is None
        await self.tracking.apply(
            row,
            open_count=row.open_count + 1,
            opened_at=row.opened_at or utc_now(),
            status="opened" if row.status in ("sent", "queued") else row.status,
        )
        if first_open and row.campaign_id:
            campaign = await self.campaigns.get_by_id_or_none(row.campaign_id)
            if campaign is not None:
                await self.campaigns.apply(campaign, open_count=campaign.open_count + 1)

    async def track_click(self, tracking_id: str, url: str | None) -> str:
        """
        Stamp a click and return the URL to redirect to.

        A click without a prior open also counts as an open.

        Raises:
            ValidationError: url missing or not an absolute http(s) URL
        """
        if not is_safe_redirect(url):
            raise ValidationError("A valid url parameter is required")
        row = await self.tracking.get_by_id_or_none(tracking_id)
        if row is None:
            return url

        first_click = row.clicked_at is None
        first_open = row.opened_at is None
        now = utc_now()
        await self.tracking.apply(
            row,
            click_count=row.click_count + 1,
            clicked_at=row.clicked_at or now,
            opened_at=row.opened_at or now,
            status="clicked",
        )
        if row.campaign_id and (first_click or first_open):
            campaign = await self.campaigns.get_by_id_or_none(row.campaign_id)
            if campaign is not None:
                await self.campaigns.apply(
                    campaign,
                    click_count=campaign.click_count + int(first_click),
                    open_count=campaign.open_count + int(first_open),
                )
        return url

    async def start_due_campaigns(self, now=None) -> list[BackgroundJob]:
        """Move scheduled campaigns whose time has come into sending."""
        now = now or utc_now()
        jobs = []
        for campaign in await self.campaigns.list_due_scheduled(now):
            await self.campaigns.apply(campaign, status="sending")
            jobs.append(
                await JobService(self.session).enqueue(
                    "email_campaign_send",
                    {"campaign_id": campaign.id},
                    org_id=campaign.org_id,
                    created_by=campaign.created_by,
                )
            )
        return jobs
