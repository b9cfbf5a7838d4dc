"""
Signal Service.

The per-organization Echo assistant: configuration, direct chat
conversations, and LLM replies to Echo and group message threads.
"""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.exceptions import AuthorizationError, NotFoundError
from portal.backend.core.utils import utc_now
from portal.backend.integrations.llm import LLMClient
from portal.backend.models.contact import Contact
from portal.backend.models.message import Message
from portal.backend.models.signal import SignalConfig, SignalConversation
from portal.backend.repositories.contact import ContactRepository
from portal.backend.repositories.message import MessageRepository
from portal.backend.repositories.signal import (
    SignalConfigRepository,
    SignalConversationRepository,
    SignalMessageRepository,
)
from portal.backend.schemas.signal import SignalConfigUpdate
from portal.backend.services.base import BaseService

# Conversation turns sent to the model with each chat request
CHAT_HISTORY_LIMIT = 20


def build_system_prompt(config: SignalConfig) -> str:
    prompt = (
        f"You are {config.assistant_name}, the assistant of a digital agency's client portal. "
        f"Answer in a {config.tone} tone. Be concise."
    )
    if config.instructions:
        prompt = f"{prompt}\n\n{config.instructions}"
    return prompt


class SignalService(BaseService):
    """Service for the Echo assistant."""

    def __init__(self, session: AsyncSession, llm: LLMClient | None = None) -> None:
        super().__init__(session)
        self.configs = SignalConfigRepository(session)
        self.conversations = SignalConversationRepository(session)
        self.messages = SignalMessageRepository(session)
        self.contacts = ContactRepository(session)
        self.threads = MessageRepository(session)
        self._llm = llm

    @property
    def llm(self) -> LLMClient:
        if self._llm is None:
            self._llm = LLMClient()
        return self._llm

    async def get_config(self, org_id: str) -> SignalConfig:
        """The org's assistant settings, created with defaults on first use."""
        config = await self.configs.get_for_org(org_id)
        if config is None:
            config = await self._execute_db_operation(
                "create_signal_config", self.configs.create(org_id=org_id),
            )
        return config

    async def update_config(self, org_id: str, data: SignalConfigUpdate) -> SignalConfig:
        config = await self.get_config(org_id)
        update_data = data.model_dump(exclude_unset=True)
        if not update_data:
            return config
        self._log_operation("Updating assistant config", org_id=org_id, fields=list(update_data))
        return await self.configs.apply(config, **update_data)

    async def ensure_assistant(self, org_id: str) -> Contact:
        """The contact Echo messages are sent from, created when missing."""
        config = await self.get_config(org_id)
        if config.assistant_contact_id:
            assistant = await self.contacts.get_by_id_or_none(config.assistant_contact_id)
            if assistant is not None:
                return assistant

        assistant = await self.contacts.create(
            org_id=org_id,
            email=f"echo+{org_id}@assistant.invalid",
            name=config.assistant_name,
            type="assistant",
            role="assistant",
        )
        await self.configs.apply(config, assistant_contact_id=assistant.id)
        return assistant

    # -------------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------------

    async def chat(
        self, org_id: str, contact: Contact, message: str, conversation_id: str | None = None,
    ) -> tuple[SignalConversation, Any]:
        """
        Send one user message to Echo and store the reply.

        Raises:
            AuthorizationError: Assistant disabled for the org
            NotFoundError: conversation_id is not one of the contact's conversations
        """
        config = await self.get_config(org_id)
        if not config.enabled:
            raise AuthorizationError("Assistant is disabled for this organization")

        if conversation_id:
            conversation = await self._get_own_conversation(org_id, contact.id, conversation_id)
        else:
            conversation = await self.conversations.create(
                org_id=org_id, contact_id=contact.id, title=message.strip()[:80],
            )

        await self.messages.create(conversation_id=conversation.id, role="user", content=message)
        history = await self.messages.recent(conversation.id, CHAT_HISTORY_LIMIT)

        reply_text = await self.llm.complete(
            [{"role": "system", "content": build_system_prompt(config)}]
            + [{"role": m.role, "content": m.content} for m in history]
        )
        reply = await self.messages.create(
            conversation_id=conversation.id, role="assistant", content=reply_text,
        )
        await self.conversations.apply(conversation, last_message_at=utc_now())

        self._log_debug("Echo chat reply", conversation_id=conversation.id, turns=len(history))
        return conversation, reply

    async def _get_own_conversation(
        self, org_id: str, contact_id: str, conversation_id: str,
    ) -> SignalConversation:
        conversation = await self.conversations.get_in_org(conversation_id, org_id)
        if conversation.contact_id != contact_id:
            raise NotFoundError("Conversation not found")
        return conversation

    async def list_conversations(self, org_id: str, contact_id: str) -> list[SignalConversation]:
        return await self.conversations.list_for_contact(org_id, contact_id)

    async def get_conversation(
        self, org_id: str, contact_id: str, conversation_id: str,
    ) -> tuple[SignalConversation, list]:
        conversation = await self._get_own_conversation(org_id, contact_id, conversation_id)
        return conversation, await self.messages.list_for_conversation(conversation.id)

    async def rate_conversation(
        self, org_id: str, contact_id: str, conversation_id: str, rating: int,
    ) -> SignalConversation:
        conversation = await self._get_own_conversation(org_id, contact_id, conversation_id)
        return await self.conversations.apply(conversation, rating=rating)

    # -------------------------------------------------------------------------
    # Message threads
    # -------------------------------------------------------------------------

    async def reply_to_thread(self, message_id: str) -> dict[str, Any]:
        """
        Job handler body: answer an Echo or group thread as the assistant.

        The reply goes to the sender of the triggering message, threaded
        under the root.
        """
        message = await self.threads.get_by_id(message_id)
        config = await self.get_config(message.org_id)
        if not config.enabled:
            return {"message_id": message_id, "skipped": "disabled"}

        root_id = message.parent_id or message.id
        root = await self.threads.get_by_id(root_id)
        thread: list[Message] = [root, *await self.threads.list_replies(root_id)]
        assistant = await self.ensure_assistant(message.org_id)

        history = [
            {
                "role": "assistant" if m.sender_id == assistant.id else "user",
                "content": m.content,
            }
            for m in thread[-CHAT_HISTORY_LIMIT:]
        ]
        reply_text = await self.llm.complete(
            [{"role": "system", "content": build_system_prompt(config)}, *history]
        )
        reply = await self.threads.create(
            org_id=message.org_id,
            project_id=root.project_id,
            sender_id=assistant.id,
            recipient_id=message.sender_id,
            parent_id=root_id,
            content=reply_text,
            thread_type=root.thread_type,
        )
        self._log_operation("Echo replied to thread", thread_id=root_id, reply_id=reply.id)
        return {"message_id": message_id, "reply_id": reply.id}
