"""
Signal Repositories.

Data access for Echo configuration and conversations.
"""

from portal.backend.models.signal import SignalConfig, SignalConversation, SignalMessage
from portal.backend.repositories.base import BaseRepository


class SignalConfigRepository(BaseRepository[SignalConfig]):
    model = SignalConfig
    label = "Signal config"

    async def get_for_org(self, org_id: str) -> SignalConfig | None:
        return await self.find_one(SignalConfig.org_id == org_id)


class SignalConversationRepository(BaseRepository[SignalConversation]):
    model = SignalConversation
    label = "Conversation"

    async def list_for_contact(
        self, org_id: str, contact_id: str, limit: int = 50,
    ) -> list[SignalConversation]:
        return await self.find(
            SignalConversation.org_id == org_id,
            SignalConversation.contact_id == contact_id,
            order_by=SignalConversation.updated_at.desc(),
            limit=limit,
        )


class SignalMessageRepository(BaseRepository[SignalMessage]):
    model = SignalMessage
    label = "Conversation message"

    async def list_for_conversation(self, conversation_id: str) -> list[SignalMessage]:
        return await self.find(
            SignalMessage.conversation_id == conversation_id,
            order_by=SignalMessage.created_at.asc(),
        )

    async def recent(self, conversation_id: str, limit: int) -> list[SignalMessage]:
        """The last ``limit`` messages, oldest first."""
        newest = await self.find(
            SignalMessage.conversation_id == conversation_id,
            order_by=SignalMessage.created_at.desc(),
            limit=limit,
        )
        return list(reversed(newest))
