"""
Email Repositories.

Data access for campaigns, templates, lists, subscribers, and tracking rows.
"""

from datetime import datetime

from sqlalchemy import func

from portal.backend.models.email import (
    EmailCampaign,
    EmailList,
    EmailSubscriber,
    EmailTemplate,
    EmailTracking,
)
from portal.backend.repositories.base import BaseRepository


class EmailCampaignRepository(BaseRepository[EmailCampaign]):
    model = EmailCampaign
    label = "Campaign"

    async def list_for_org(
        self, org_id: str, status: str | None = None, limit: int = 50, offset: int = 0,
    ) -> tuple[list[EmailCampaign], int]:
        conditions = [EmailCampaign.org_id == org_id]
        if status:
            conditions.append(EmailCampaign.status == status)
        items = await self.find(
            *conditions, order_by=EmailCampaign.created_at.desc(), limit=limit, offset=offset,
        )
        return items, await self.count(*conditions)

    async def list_due_scheduled(self, now: datetime) -> list[EmailCampaign]:
        """Scheduled campaigns whose send time has come."""
        return await self.find(
            EmailCampaign.status == "scheduled",
            EmailCampaign.scheduled_at.is_not(None),
            EmailCampaign.scheduled_at <= now,
            order_by=EmailCampaign.scheduled_at.asc(),
        )


class EmailTemplateRepository(BaseRepository[EmailTemplate]):
    model = EmailTemplate
    label = "Template"

    async def list_for_org(self, org_id: str) -> list[EmailTemplate]:
        return await self.find(EmailTemplate.org_id == org_id, order_by=EmailTemplate.name.asc())


class EmailListRepository(BaseRepository[EmailList]):
    model = EmailList
    label = "List"

    async def list_for_org(self, org_id: str) -> list[EmailList]:
        return await self.find(EmailList.org_id == org_id, order_by=EmailList.name.asc())


class EmailSubscriberRepository(BaseRepository[EmailSubscriber]):
    model = EmailSubscriber
    label = "Subscriber"

    async def list_for_list(
        self, list_id: str, subscribed_only: bool = False,
    ) -> list[EmailSubscriber]:
        conditions = [EmailSubscriber.list_id == list_id]
        if subscribed_only:
            conditions.append(EmailSubscriber.status == "subscribed")
        return await self.find(*conditions, order_by=EmailSubscriber.subscribed_at.asc())

    async def get_by_email(self, list_id: str, email: str) -> EmailSubscriber | None:
        return await self.find_one(
            EmailSubscriber.list_id == list_id,
            func.lower(EmailSubscriber.email) == email.lower(),
        )


class EmailTrackingRepository(BaseRepository[EmailTracking]):
    model = EmailTracking
    label = "Tracked email"

    async def list_for_org(
        self, org_id: str, contact_id: str | None = None, limit: int = 50,
    ) -> list[EmailTracking]:
        conditions = [EmailTracking.org_id == org_id]
        if contact_id:
            conditions.append(EmailTracking.contact_id == contact_id)
        return await self.find(*conditions, order_by=EmailTracking.sent_at.desc(), limit=limit)
