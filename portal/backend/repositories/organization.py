"""
Organization Repository.

Data access for tenants and memberships.
"""

from sqlalchemy import select

from portal.backend.models.contact import Contact
from portal.backend.models.organization import Organization, OrganizationMember
from portal.backend.repositories.base import BaseRepository


class OrganizationRepository(BaseRepository[Organization]):
    """Repository for Organization model."""

    model = Organization
    label = "Organization"

    async def get_by_slug(self, slug: str) -> Organization | None:
        return await self.find_one(Organization.slug == slug)

    async def list_all(self, limit: int = 50, offset: int = 0) -> list[Organization]:
        return await self.find(order_by=Organization.name.asc(), limit=limit, offset=offset)


class OrganizationMemberRepository(BaseRepository[OrganizationMember]):
    """Repository for OrganizationMember model."""

    model = OrganizationMember
    label = "Member"

    async def get_membership(self, org_id: str, contact_id: str) -> OrganizationMember | None:
        return await self.find_one(
            OrganizationMember.org_id == org_id,
            OrganizationMember.contact_id == contact_id,
        )

    async def list_with_contacts(
        self, org_id: str,
    ) -> list[tuple[OrganizationMember, Contact]]:
        """Members of an organization joined with their contact rows."""
        result = await self.session.execute(
            select(OrganizationMember, Contact)
            .join(Contact, Contact.id == OrganizationMember.contact_id)
            .where(OrganizationMember.org_id == org_id)
            .order_by(OrganizationMember.created_at.asc())
        )
        return [(member, contact) for member, contact in result.all()]
