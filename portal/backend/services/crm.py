"""
CRM Service.

Prospects and the sales pipeline, plus calls, follow-ups, tasks,
notifications and notes. Every query is scoped to the acting organization.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.exceptions import ConflictError, NotFoundError
from portal.backend.core.utils import utc_now
from portal.backend.models.contact import Contact
from portal.backend.models.crm import CallFollowUp, CallLog, CrmNote, Notification, Task
from portal.backend.models.email import EmailTracking
from portal.backend.models.project import Project
from portal.backend.repositories.contact import ContactRepository
from portal.backend.repositories.crm import (
    CallFollowUpRepository,
    CallLogRepository,
    CrmNoteRepository,
    NotificationRepository,
    TaskRepository,
)
from portal.backend.repositories.email import EmailTrackingRepository
from portal.backend.repositories.project import ProjectRepository
from portal.backend.schemas.crm import (
    FollowUpUpdate,
    NoteCreate,
    ProspectConvert,
    ProspectCreate,
    ProspectUpdate,
    TaskUpdate,
)
from portal.backend.services.base import BaseService

SUMMARY_LENGTH = 200


def _summarize(text: str | None) -> str | None:
    if text is None or len(text) <= SUMMARY_LENGTH:
        return text
    return text[: SUMMARY_LENGTH - 3] + "..."


def merge_activity(
    calls: list[CallLog],
    emails: list[EmailTracking],
    notes: list[CrmNote],
) -> list[dict[str, Any]]:
    """Flatten calls, emails and notes into one timeline, newest first."""
    items = [
        {"type": "call", "id": c.id, "date": c.called_at, "summary": _summarize(c.summary)}
        for c in calls
    ]
    items += [
        {"type": "email", "id": e.id, "date": e.sent_at, "summary": e.subject}
        for e in emails
    ]
    items += [
        {"type": "note", "id": n.id, "date": n.created_at, "summary": _summarize(n.content)}
        for n in notes
    ]
    items.sort(key=lambda item: item["date"], reverse=True)
    return items


class CrmService(BaseService):
    """Service for CRM business logic."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.contacts = ContactRepository(session)
        self.calls = CallLogRepository(session)
        self.follow_ups = CallFollowUpRepository(session)
        self.tasks = TaskRepository(session)
        self.notifications = NotificationRepository(session)
        self.notes = CrmNoteRepository(session)
        self.emails = EmailTrackingRepository(session)
        self.projects = ProjectRepository(session)

    # -------------------------------------------------------------------------
    # Prospects
    # -------------------------------------------------------------------------

    async def list_prospects(
        self,
        org_id: str,
        stage: str | None = None,
        rep: str | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Contact], int]:
        return await self.contacts.list_prospects(
            org_id, stage=stage, rep=rep, search=search, limit=limit, offset=offset,
        )

    async def get_prospect(self, org_id: str, prospect_id: str) -> Contact:
        return await self.contacts.get_in_org(prospect_id, org_id)

    async def create_prospect(self, org_id: str, data: ProspectCreate) -> Contact:
        """
        Create a prospect. The email is stored lowercased.

        Raises:
            ValidationError: Email missing
            ConflictError: Email already used in this organization
        """
        fields = data.model_dump()
        self._validate_required(fields, ["email"])
        email = fields.pop("email").strip().lower()

        if await self.contacts.get_by_email_in_org(email, org_id) is not None:
            raise ConflictError("A contact with this email already exists")

        self._log_operation("Creating prospect", org_id=org_id)
        return await self._execute_db_operation(
            "create_prospect",
            self.contacts.create(org_id=org_id, email=email, type="prospect", role="client", **fields),
        )

    async def update_prospect(self, org_id: str, prospect_id: str, data: ProspectUpdate) -> Contact:
        contact = await self.contacts.get_in_org(prospect_id, org_id)
        update_data = data.model_dump(exclude_unset=True)
        if "email" in update_data and update_data["email"]:
            update_data["email"] = update_data["email"].strip().lower()
        if not update_data:
            return contact

        self._log_operation("Updating prospect", prospect_id=prospect_id, fields=list(update_data))
        return await self._execute_db_operation(
            "update_prospect", self.contacts.apply(contact, **update_data),
        )

    async def delete_prospect(self, org_id: str, prospect_id: str) -> None:
        contact = await self.contacts.get_in_org(prospect_id, org_id)
        self._log_operation("Deleting prospect", prospect_id=prospect_id)
        await self._execute_db_operation("delete_prospect", self.contacts.remove(contact))

    async def get_activity(self, org_id: str, prospect_id: str) -> list[dict[str, Any]]:
        """Calls, tracked emails and notes of a contact merged newest first."""
        await self.contacts.get_in_org(prospect_id, org_id)
        calls = await self.calls.list_for_org(org_id, contact_id=prospect_id, limit=200)
        emails = await self.emails.list_for_org(org_id, contact_id=prospect_id, limit=200)
        notes = await self.notes.list_for_contact(org_id, prospect_id)
        return merge_activity(calls, emails, notes)

    async def convert_prospect(
        self, org_id: str, prospect_id: str, data: ProspectConvert,
    ) -> tuple[Contact, Project | None]:
        """Turn a prospect into a won client, optionally opening a project."""
        contact = await self.contacts.get_in_org(prospect_id, org_id)
        contact = await self.contacts.apply(
            contact, type="client", pipeline_stage="won", converted_at=utc_now(),
        )

        project = None
        if data.project_name:
            project = await self.projects.create(
                org_id=org_id,
                contact_id=contact.id,
                name=data.project_name,
                project_type=data.project_type,
                status="planning",
            )

        self._log_operation(
            "Prospect converted",
            prospect_id=prospect_id,
            project_id=project.id if project else None,
        )
        return contact, project

    # -------------------------------------------------------------------------
    # Calls, emails, follow-ups, tasks
    # -------------------------------------------------------------------------

    async def list_calls(
        self, org_id: str, contact_id: str | None = None, limit: int = 50, offset: int = 0,
    ) -> list[CallLog]:
        return await self.calls.list_for_org(org_id, contact_id=contact_id, limit=limit, offset=offset)

    async def get_call(self, org_id: str, call_id: str) -> CallLog:
        return await self.calls.get_in_org(call_id, org_id)

    async def list_emails(
        self, org_id: str, contact_id: str | None = None, limit: int = 50,
    ) -> list[EmailTracking]:
        return await self.emails.list_for_org(org_id, contact_id=contact_id, limit=limit)

    async def list_follow_ups(
        self, org_id: str, contact_id: str, status: str = "pending",
    ) -> list[CallFollowUp]:
        return await self.follow_ups.list_assigned(org_id, contact_id, status)

    async def update_follow_up(
        self, org_id: str, follow_up_id: str, data: FollowUpUpdate,
    ) -> CallFollowUp:
        """Completing a follow-up stamps completed_at; reopening clears it."""
        follow_up = await self.follow_ups.get_in_org(follow_up_id, org_id)
        update_data = data.model_dump(exclude_unset=True)
        status = update_data.get("status")
        if status == "completed" and follow_up.status != "completed":
            update_data["completed_at"] = utc_now()
        elif status is not None and status != "completed":
            update_data["completed_at"] = None
        return await self.follow_ups.apply(follow_up, **update_data)

    async def list_tasks(
        self, org_id: str, status: str | None = None, assigned_to: str | None = None,
    ) -> list[Task]:
        return await self.tasks.list_for_org(org_id, status=status, assigned_to=assigned_to)

    async def update_task(self, org_id: str, task_id: str, data: TaskUpdate) -> Task:
        task = await self.tasks.get_in_org(task_id, org_id)
        update_data = data.model_dump(exclude_unset=True)
        status = update_data.get("status")
        if status == "done" and task.status != "done":
            update_data["completed_at"] = utc_now()
        elif status is not None and status != "done":
            update_data["completed_at"] = None
        return await self.tasks.apply(task, **update_data)

    # -------------------------------------------------------------------------
    # Notifications and notes
    # -------------------------------------------------------------------------

    async def list_notifications(
        self, org_id: str, contact_id: str, unread_only: bool = False,
    ) -> list[Notification]:
        return await self.notifications.list_for_contact(org_id, contact_id, unread_only=unread_only)

    async def mark_notification_read(
        self, org_id: str, contact_id: str, notification_id: str,
    ) -> Notification:
        notification = await self.notifications.get_in_org(notification_id, org_id)
        if notification.contact_id != contact_id:
            raise NotFoundError("Notification not found")
        if notification.is_read:
            return notification
        return await self.notifications.apply(notification, is_read=True, read_at=utc_now())

    async def mark_all_notifications_read(self, org_id: str, contact_id: str) -> int:
        return await self.notifications.mark_all_read(org_id, contact_id, utc_now())

    async def add_note(self, org_id: str, author_id: str, data: NoteCreate) -> CrmNote:
        """
        Attach a note to a contact.

        Raises:
            ValidationError: contact_id or content blank
            NotFoundError: Contact not in this organization
        """
        self._validate_required(data.model_dump(), ["contact_id", "content"])
        await self.contacts.get_in_org(data.contact_id, org_id)
        return await self._execute_db_operation(
            "add_note",
            self.notes.create(
                org_id=org_id,
                contact_id=data.contact_id,
                author_id=author_id,
                content=data.content.strip(),
            ),
        )

    async def list_users(self, org_id: str) -> list[Contact]:
        """Staff of the organization (admin, sales, manager)."""
        return await self.contacts.list_staff(org_id)
