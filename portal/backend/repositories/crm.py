"""
CRM Repositories.

Data access for notes, calls, follow-ups, tasks, and notifications.
"""

from datetime import datetime

from sqlalchemy import update

from portal.backend.models.crm import CallFollowUp, CallLog, CrmNote, Notification, Task
from portal.backend.repositories.base import BaseRepository


class CrmNoteRepository(BaseRepository[CrmNote]):
    model = CrmNote
    label = "Note"

    async def list_for_contact(self, org_id: str, contact_id: str) -> list[CrmNote]:
        return await self.find(
            CrmNote.org_id == org_id,
            CrmNote.contact_id == contact_id,
            order_by=CrmNote.created_at.desc(),
        )


class CallLogRepository(BaseRepository[CallLog]):
    model = CallLog
    label = "Call"

    async def list_for_org(
        self,
        org_id: str,
        contact_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CallLog]:
        conditions = [CallLog.org_id == org_id]
        if contact_id:
            conditions.append(CallLog.contact_id == contact_id)
        return await self.find(
            *conditions, order_by=CallLog.called_at.desc(), limit=limit, offset=offset,
        )


class CallFollowUpRepository(BaseRepository[CallFollowUp]):
    model = CallFollowUp
    label = "Follow-up"

    async def list_assigned(
        self, org_id: str, assigned_to: str, status: str,
    ) -> list[CallFollowUp]:
        return await self.find(
            CallFollowUp.org_id == org_id,
            CallFollowUp.assigned_to == assigned_to,
            CallFollowUp.status == status,
            order_by=CallFollowUp.due_at.asc(),
        )


class TaskRepository(BaseRepository[Task]):
    model = Task
    label = "Task"

    async def list_for_org(
        self,
        org_id: str,
        status: str | None = None,
        assigned_to: str | None = None,
        project_id: str | None = None,
        limit: int = 100,
    ) -> list[Task]:
        conditions = [Task.org_id == org_id]
        if status:
            conditions.append(Task.status == status)
        if assigned_to:
            conditions.append(Task.assigned_to == assigned_to)
        if project_id:
            conditions.append(Task.project_id == project_id)
        return await self.find(*conditions, order_by=Task.due_at.asc(), limit=limit)

    async def count_upcoming(self, org_id: str, until: datetime) -> int:
        """Open tasks due on or before ``until``."""
        return await self.count(
            Task.org_id == org_id,
            Task.status != "done",
            Task.due_at.is_not(None),
            Task.due_at <= until,
        )


class NotificationRepository(BaseRepository[Notification]):
    model = Notification
    label = "Notification"

    async def list_for_contact(
        self, org_id: str, contact_id: str, unread_only: bool = False, limit: int = 50,
    ) -> list[Notification]:
        conditions = [Notification.org_id == org_id, Notification.contact_id == contact_id]
        if unread_only:
            conditions.append(Notification.is_read.is_(False))
        return await self.find(
            *conditions, order_by=Notification.created_at.desc(), limit=limit,
        )

    async def mark_all_read(self, org_id: str, contact_id: str, read_at: datetime) -> int:
        """Mark every unread notification of a contact as read. Returns rows changed."""
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.org_id == org_id,
                Notification.contact_id == contact_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
        )
        return result.rowcount or 0
