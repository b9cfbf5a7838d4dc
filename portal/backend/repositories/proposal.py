"""
Proposal Repository.

Data access for proposals.
"""

from portal.backend.models.proposal import Proposal
from portal.backend.repositories.base import BaseRepository


class ProposalRepository(BaseRepository[Proposal]):
    """Repository for Proposal model."""

    model = Proposal
    label = "Proposal"

    async def list_for_org(
        self,
        org_id: str,
        status: str | None = None,
        contact_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Proposal], int]:
        conditions = [Proposal.org_id == org_id]
        if status:
            conditions.append(Proposal.status == status)
        if contact_id:
            conditions.append(Proposal.contact_id == contact_id)
        items = await self.find(
            *conditions, order_by=Proposal.created_at.desc(), limit=limit, offset=offset,
        )
        return items, await self.count(*conditions)
