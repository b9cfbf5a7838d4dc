"""
Message Service.

Threaded messaging between staff and clients, with the Echo assistant
joining a thread when addressed directly or mentioned as @echo.
"""

import re

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from portal.backend.core.utils import utc_now
from portal.backend.models.contact import Contact
from portal.backend.models.message import Message
from portal.backend.repositories.contact import ContactRepository
from portal.backend.repositories.message import MessageRepository
from portal.backend.repositories.project import ProjectRepository
from portal.backend.schemas.message import MessageCreate
from portal.backend.services.base import BaseService
from portal.backend.services.job import JobService

SENDER_ROLES = ("admin", "client")
ECHO_MENTION = re.compile(r"(^|\W)@echo\b", re.IGNORECASE)
ECHO_DEFAULT_SUBJECT = "Echo Chat"


def classify_thread(recipient: Contact, content: str) -> str:
    """echo when addressed to the assistant, group when @echo is mentioned, else direct."""
    if recipient.type == "assistant":
        return "echo"
    if ECHO_MENTION.search(content):
        return "group"
    return "direct"


class MessageService(BaseService):
    """Service for threaded messages."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.repo = MessageRepository(session)
        self.contacts = ContactRepository(session)
        self.projects = ProjectRepository(session)

    async def send_message(self, org_id: str, sender: Contact, data: MessageCreate) -> Message:
        """
        Post a message, starting a new thread unless parent_id is given.

        Raises:
            ValidationError: recipient_id or content missing, or subject missing on a new thread
            AuthorizationError: Sender is neither admin nor client
            NotFoundError: Recipient, project or parent not in this organization
        """
        self._validate_required(data.model_dump(), ["recipient_id", "content"])
        if sender.role not in SENDER_ROLES:
            raise AuthorizationError("Only admins and clients can send messages")

        recipient = await self.contacts.get_in_org(data.recipient_id, org_id)
        if data.project_id:
            await self.projects.get_in_org(data.project_id, org_id)

        parent = None
        if data.parent_id:
            parent = await self.repo.get_in_org(data.parent_id, org_id)
            if parent.parent_id:
                # replies always hang off the root
                parent = await self.repo.get_by_id(parent.parent_id)

        thread_type = parent.thread_type if parent else classify_thread(recipient, data.content)
        if thread_type == "direct" and parent is not None and ECHO_MENTION.search(data.content):
            thread_type = "group"

        subject = data.subject
        if parent is None and not subject:
            if thread_type != "echo":
                raise ValidationError("subject is required for a new thread", details={"field": "subject"})
            subject = ECHO_DEFAULT_SUBJECT

        message = await self._execute_db_operation(
            "send_message",
            self.repo.create(
                org_id=org_id,
                project_id=data.project_id or (parent.project_id if parent else None),
                sender_id=sender.id,
                recipient_id=recipient.id,
                parent_id=parent.id if parent else None,
                subject=subject if parent is None else None,
                content=data.content,
                thread_type=thread_type,
            ),
        )
        self._log_operation(
            "Message sent", message_id=message.id, thread_type=thread_type, parent_id=message.parent_id,
        )

        if thread_type in ("echo", "group"):
            await JobService(self.session).enqueue(
                "signal_echo_reply", {"message_id": message.id}, org_id=org_id, created_by=sender.id,
            )
        return message

    async def list_threads(self, org_id: str, contact_id: str, limit: int = 50) -> list[Message]:
        return await self.repo.list_threads(org_id, contact_id, limit=limit)

    async def _get_visible_root(self, org_id: str, contact_id: str, message_id: str) -> Message:
        message = await self.repo.get_in_org(message_id, org_id)
        root = await self.repo.get_by_id(message.parent_id) if message.parent_id else message
        if contact_id not in (root.sender_id, root.recipient_id):
            replies = await self.repo.list_replies(root.id)
            if not any(contact_id in (r.sender_id, r.recipient_id) for r in replies):
                raise NotFoundError("Message not found")
        return root

    async def get_thread(self, org_id: str, contact_id: str, message_id: str) -> tuple[Message, list[Message]]:
        root = await self._get_visible_root(org_id, contact_id, message_id)
        return root, await self.repo.list_replies(root.id)

    async def mark_read(self, org_id: str, contact_id: str, message_id: str) -> int:
        root = await self._get_visible_root(org_id, contact_id, message_id)
        return await self.repo.mark_thread_read(root.id, contact_id, utc_now())

    async def unread_count(self, org_id: str, contact_id: str) -> int:
        return await self.repo.count_unread(org_id, contact_id)
