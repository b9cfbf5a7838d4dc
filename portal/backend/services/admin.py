"""
Admin Service.

Organizations, memberships and client invitations.
"""

import re
from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.config import get_app_config
from portal.backend.core.exceptions import AuthorizationError, ConflictError, ValidationError
from portal.backend.core.security import generate_invite_token, hash_password
from portal.backend.core.utils import utc_now
from portal.backend.models.contact import Contact
from portal.backend.models.organization import DEFAULT_FEATURES, Organization, OrganizationMember
from portal.backend.repositories.contact import ContactRepository
from portal.backend.repositories.organization import (
    OrganizationMemberRepository,
    OrganizationRepository,
)
from portal.backend.schemas.admin import (
    ClientInvite,
    MemberCreate,
    MemberUpdate,
    OrganizationCreate,
    OrganizationUpdate,
)
from portal.backend.services.base import BaseService
from portal.backend.services.mail import public_url

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


def merge_features(overrides: dict[str, bool] | None) -> dict[str, bool]:
    """Default feature switches with the given keys overriding them."""
    features = dict(DEFAULT_FEATURES)
    features.update(overrides or {})
    return features


def setup_url(token: str) -> str:
    return public_url(f"/setup-password?token={token}")


def member_view(member: OrganizationMember, contact: Contact) -> dict[str, Any]:
    return {
        "id": member.id,
        "org_id": member.org_id,
        "contact_id": member.contact_id,
        "role": member.role,
        "access_level": member.access_level,
        "email": contact.email,
        "name": contact.name,
        "invite_pending": contact.invite_token is not None,
        "created_at": member.created_at,
    }


class AdminService(BaseService):
    """Service for tenant administration."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.orgs = OrganizationRepository(session)
        self.members = OrganizationMemberRepository(session)
        self.contacts = ContactRepository(session)

    # -------------------------------------------------------------------------
    # Organizations
    # -------------------------------------------------------------------------

    async def create_organization(self, data: OrganizationCreate) -> Organization:
        """
        Create a tenant.

        Raises:
            ValidationError: name or slug missing, or slug not ``[a-z0-9-]+``
            ConflictError: Slug taken
        """
        self._validate_required(data.model_dump(), ["name", "slug"])
        slug = data.slug.strip()
        if not SLUG_PATTERN.match(slug):
            raise ValidationError(
                "Slug may only contain lowercase letters, digits and hyphens",
                details={"field": "slug"},
            )
        if await self.orgs.get_by_slug(slug) is not None:
            raise ConflictError("Organization slug already exists")

        self._log_operation("Creating organization", slug=slug)
        return await self._execute_db_operation(
            "create_organization",
            self.orgs.create(
                name=data.name.strip(),
                slug=slug,
                domain=data.domain,
                plan=data.plan,
                features=merge_features(data.features),
            ),
            conflict_message="Organization slug already exists",
        )

    async def list_organizations(self, limit: int = 50, offset: int = 0) -> list[Organization]:
        return await self.orgs.list_all(limit=limit, offset=offset)

    async def get_organization(self, org_id: str) -> Organization:
        return await self.orgs.get_by_id(org_id)

    async def update_organization(self, org_id: str, data: OrganizationUpdate) -> Organization:
        org = await self.orgs.get_by_id(org_id)
        update_data = data.model_dump(exclude_unset=True)
        if "features" in update_data:
            update_data["features"] = {**merge_features(org.features), **(update_data["features"] or {})}
        if not update_data:
            return org
        self._log_operation("Updating organization", org_id=org_id, fields=list(update_data))
        return await self.orgs.apply(org, **update_data)

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    async def check_member_admin(self, actor: Contact, org_id: str) -> None:
        """
        Platform admins, and owners or admins with organization-wide
        access, may manage an org's members.
        """
        await self.orgs.get_by_id(org_id)
        if actor.role == "admin":
            return
        membership = await self.members.get_membership(org_id, actor.id)
        if (
            membership is None
            or membership.role not in ("owner", "admin")
            or membership.access_level != "organization"
        ):
            raise AuthorizationError("Not allowed to manage members of this organization")

    async def list_members(self, actor: Contact, org_id: str) -> list[dict[str, Any]]:
        await self.check_member_admin(actor, org_id)
        return [member_view(m, c) for m, c in await self.members.list_with_contacts(org_id)]

    async def add_member(self, actor: Contact, org_id: str, data: MemberCreate) -> dict[str, Any]:
        """
        Add a member, creating an invited contact when the email is new.

        Raises:
            ConflictError: Contact already a member
        """
        await self.check_member_admin(actor, org_id)
        email = data.email.strip().lower()
        contact = await self.contacts.get_by_email_in_org(email, org_id)
        if contact is None:
            contact = await self.contacts.create(
                org_id=org_id,
                email=email,
                name=data.name,
                type="client",
                role="client",
                **self._new_invite(),
            )
        elif await self.members.get_membership(org_id, contact.id) is not None:
            raise ConflictError("Contact is already a member of this organization")

        member = await self._execute_db_operation(
            "add_member",
            self.members.create(
                org_id=org_id, contact_id=contact.id, role=data.role, access_level=data.access_level,
            ),
            conflict_message="Contact is already a member of this organization",
        )
        self._log_operation("Member added", org_id=org_id, contact_id=contact.id, role=data.role)
        return member_view(member, contact)

    async def _get_member(self, org_id: str, member_id: str) -> OrganizationMember:
        member = await self.members.get_by_id(member_id)
        if member.org_id != org_id:
            raise ValidationError("Member does not belong to this organization")
        return member

    async def update_member(
        self, actor: Contact, org_id: str, member_id: str, data: MemberUpdate,
    ) -> dict[str, Any]:
        await self.check_member_admin(actor, org_id)
        member = await self._get_member(org_id, member_id)
        update_data = data.model_dump(exclude_unset=True)
        if update_data:
            member = await self.members.apply(member, **update_data)
        contact = await self.contacts.get_by_id(member.contact_id)
        return member_view(member, contact)

    async def remove_member(self, actor: Contact, org_id: str, member_id: str) -> None:
        await self.check_member_admin(actor, org_id)
        member = await self._get_member(org_id, member_id)
        self._log_operation("Member removed", org_id=org_id, contact_id=member.contact_id)
        await self.members.remove(member)

    # -------------------------------------------------------------------------
    # Clients
    # -------------------------------------------------------------------------

    def _new_invite(self) -> dict[str, Any]:
        days = get_app_config().security.invite_token_expire_days
        return {
            "invite_token": generate_invite_token(),
            "invite_expires_at": utc_now() + timedelta(days=days),
        }

    async def invite_client(self, org_id: str, data: ClientInvite) -> Contact:
        """
        Create a client contact with a pending invite.

        Raises:
            ConflictError: Email already belongs to a contact of the org
        """
        email = data.email.strip().lower()
        if await self.contacts.get_by_email_in_org(email, org_id) is not None:
            raise ConflictError("A contact with this email already exists")

        contact = await self._execute_db_operation(
            "invite_client",
            self.contacts.create(
                org_id=org_id,
                email=email,
                name=data.name.strip(),
                company=data.company,
                type="client",
                role="client",
                **self._new_invite(),
            ),
        )
        self._log_operation("Client invited", org_id=org_id, contact_id=contact.id)
        return contact

    async def create_platform_admin(
        self, email: str, name: str | None, password: str, org_id: str | None = None,
    ) -> Contact:
        """
        Create a platform admin able to log in immediately.

        Raises:
            ValidationError: Password shorter than security.password_min_length
            ConflictError: An admin with this email already exists
        """
        self._validate_string_length(
            password, "password", min_length=get_app_config().security.password_min_length,
        )
        email = email.strip().lower()
        existing = await self.contacts.get_login_candidate(email)
        if existing is not None and existing.role == "admin":
            raise ConflictError("An admin with this email already exists")

        if org_id is not None:
            await self.orgs.get_by_id(org_id)
        contact = await self._execute_db_operation(
            "create_platform_admin",
            self.contacts.create(
                org_id=org_id,
                email=email,
                name=name,
                type="user",
                role="admin",
                password_hash=hash_password(password),
            ),
        )
        self._log_operation("Platform admin created", contact_id=contact.id, org_id=org_id)
        return contact
