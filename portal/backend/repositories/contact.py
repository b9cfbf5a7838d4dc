"""
Contact Repository.

Data access for contacts (users, clients, prospects).
"""

from sqlalchemy import func, or_, select

from portal.backend.models.contact import STAFF_ROLES, Contact
from portal.backend.repositories.base import BaseRepository


class ContactRepository(BaseRepository[Contact]):
    """Repository for Contact model."""

    model = Contact
    label = "Contact"

    async def get_login_candidate(self, email: str) -> Contact | None:
        """
        Find the contact that may log in with this email.

        Only contacts with a password set are candidates; the oldest wins
        when the same address exists in several organizations.
        """
        result = await self.session.execute(
            select(Contact)
            .where(
                func.lower(Contact.email) == email.strip().lower(),
                Contact.password_hash.is_not(None),
            )
            .order_by(Contact.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_by_invite_token(self, token: str) -> Contact | None:
        """Find the contact holding an account setup token."""
        return await self.find_one(Contact.invite_token == token)

    async def get_by_email_in_org(self, email: str, org_id: str) -> Contact | None:
        """Find a contact by email within one organization."""
        return await self.find_one(
            func.lower(Contact.email) == email.strip().lower(),
            Contact.org_id == org_id,
        )

    async def list_prospects(
        self,
        org_id: str,
        stage: str | None = None,
        rep: str | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[Contact], int]:
        """
        List prospects of an organization with filters and total count.

        Args:
            org_id: Tenant
            stage: Pipeline stage filter
            rep: Assigned sales rep filter
            search: Case-insensitive match on name, email, or company
        """
        conditions = [Contact.org_id == org_id, Contact.type == "prospect"]
        if stage:
            conditions.append(Contact.pipeline_stage == stage)
        if rep:
            conditions.append(Contact.assigned_to == rep)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    Contact.name.ilike(pattern),
                    Contact.email.ilike(pattern),
                    Contact.company.ilike(pattern),
                )
            )

        items = await self.find(
            *conditions,
            order_by=Contact.created_at.desc(),
            limit=limit,
            offset=offset,
        )
        total = await self.count(*conditions)
        return items, total

    async def list_staff(self, org_id: str) -> list[Contact]:
        """Contacts of the organization that can own CRM work."""
        return await self.find(
            Contact.org_id == org_id,
            Contact.role.in_(STAFF_ROLES),
            order_by=Contact.name.asc(),
        )

    async def list_org_admins(self, org_id: str) -> list[Contact]:
        """Admins of an organization (notification recipients)."""
        return await self.find(
            Contact.org_id == org_id,
            Contact.role == "admin",
        )

    async def count_by_stage(self, org_id: str) -> dict[str, int]:
        """Number of prospects per pipeline stage."""
        result = await self.session.execute(
            select(Contact.pipeline_stage, func.count())
            .where(Contact.org_id == org_id, Contact.type == "prospect")
            .group_by(Contact.pipeline_stage)
        )
        return {stage or "new": count for stage, count in result.all()}
