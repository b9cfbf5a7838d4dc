"""
Message Repository.

Data access for threaded messages.
"""

from datetime import datetime

from sqlalchemy import or_, update

from portal.backend.models.message import Message
from portal.backend.repositories.base import BaseRepository


class MessageRepository(BaseRepository[Message]):
    """Repository for Message model."""

    model = Message
    label = "Message"

    async def list_threads(self, org_id: str, contact_id: str, limit: int = 50) -> list[Message]:
        """Root messages of threads the contact takes part in, newest first."""
        return await self.find(
            Message.org_id == org_id,
            Message.parent_id.is_(None),
            or_(Message.sender_id == contact_id, Message.recipient_id == contact_id),
            order_by=Message.created_at.desc(),
            limit=limit,
        )

    async def list_replies(self, parent_id: str) -> list[Message]:
        return await self.find(Message.parent_id == parent_id, order_by=Message.created_at.asc())

    async def count_unread(self, org_id: str, contact_id: str) -> int:
        return await self.count(
            Message.org_id == org_id,
            Message.recipient_id == contact_id,
            Message.is_read.is_(False),
        )

    async def mark_thread_read(
        self, thread_id: str, contact_id: str, read_at: datetime,
    ) -> int:
        """Mark root and replies addressed to the contact as read."""
        result = await self.session.execute(
            update(Message)
            .where(
                or_(Message.id == thread_id, Message.parent_id == thread_id),
                Message.recipient_id == contact_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
        )
        return result.rowcount or 0
