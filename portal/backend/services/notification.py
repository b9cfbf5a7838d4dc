"""
Notification Service.

Creates in-app notifications for contacts.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.repositories.contact import ContactRepository
from portal.backend.repositories.crm import NotificationRepository
from portal.backend.services.base import BaseService


class NotificationService(BaseService):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = NotificationRepository(session)
        self.contacts = ContactRepository(session)

    async def notify(
        self,
        org_id: str,
        contact_ids: list[str],
        type: str,
        title: str,
        body: str | None = None,
        link: str | None = None,
    ) -> int:
        """Create one notification per contact. Returns how many were created."""
        for contact_id in contact_ids:
            await self.repo.create(
                org_id=org_id, contact_id=contact_id, type=type, title=title, body=body, link=link,
            )
        if contact_ids:
            self._log_debug("Notifications created", type=type, count=len(contact_ids))
        return len(contact_ids)

    async def notify_org_admins(
        self,
        org_id: str,
        type: str,
        title: str,
        body: str | None = None,
        link: str | None = None,
    ) -> int:
        admins = await self.contacts.list_org_admins(org_id)
        return await self.notify(org_id, [a.id for a in admins], type, title, body, link)
