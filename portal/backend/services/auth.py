"""
Auth Service.

Password login, password change and invite-based account setup.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.config import get_app_config
from portal.backend.core.exceptions import AuthenticationError, GoneError, NotFoundError
from portal.backend.core.rate_limiter import get_rate_limiter
from portal.backend.core.security import create_session_token, hash_password, verify_password
from portal.backend.core.utils import utc_now
from portal.backend.models.contact import Contact
from portal.backend.models.organization import Organization
from portal.backend.repositories.contact import ContactRepository
from portal.backend.repositories.organization import OrganizationRepository
from portal.backend.services.base import BaseService

INVALID_CREDENTIALS = "Invalid email or password"


class AuthService(BaseService):
    """
    Service for authentication.

    Every login failure reports the same message so callers cannot tell
    unknown emails from wrong passwords.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.contacts = ContactRepository(session)
        self.organizations = OrganizationRepository(session)

    async def login(self, email: str, password: str) -> tuple[Contact, str]:
        """
        Verify credentials and issue a session token.

        Raises:
            RateLimitError: Too many attempts for this email
            AuthenticationError: Unknown email, no password set, or wrong password
        """
        normalized = email.strip().lower()
        if get_app_config().features.auth_rate_limit_enabled:
            get_rate_limiter().enforce("login", normalized)

        contact = await self.contacts.get_login_candidate(normalized)
        if contact is None or not verify_password(password, contact.password_hash):
            self._logger.warning("Login failed", extra={"email": normalized})
            raise AuthenticationError(INVALID_CREDENTIALS)

        await self.contacts.apply(contact, last_login_at=utc_now())
        self._log_operation("Login succeeded", contact_id=contact.id)
        return contact, self.issue_token(contact)

    def issue_token(self, contact: Contact) -> str:
        return create_session_token(contact.id, contact.org_id, contact.role)

    async def change_password(self, contact: Contact, current_password: str, new_password: str) -> None:
        """
        Replace the password after checking the current one.

        Raises:
            AuthenticationError: Current password does not match
        """
        if not verify_password(current_password, contact.password_hash):
            raise AuthenticationError("Current password is incorrect")

        self._validate_string_length(
            new_password,
            "new_password",
            min_length=get_app_config().security.password_min_length,
        )
        await self.contacts.apply(contact, password_hash=hash_password(new_password))
        self._log_operation("Password changed", contact_id=contact.id)

    async def setup_password(self, token: str, password: str) -> tuple[Contact, str]:
        """
        Consume an invite token, set the password and start a session.

        Raises:
            NotFoundError: Unknown token
            GoneError: Token expired
        """
        contact = await self.contacts.get_by_invite_token(token)
        if contact is None:
            raise NotFoundError("Invite not found")
        if contact.invite_expires_at is not None and contact.invite_expires_at < utc_now():
            raise GoneError("Invite link has expired")

        self._validate_string_length(
            password,
            "password",
            min_length=get_app_config().security.password_min_length,
        )
        await self.contacts.apply(
            contact,
            password_hash=hash_password(password),
            invite_token=None,
            invite_expires_at=None,
            last_login_at=utc_now(),
        )
        self._log_operation("Account setup completed", contact_id=contact.id)
        return contact, self.issue_token(contact)

    async def get_organization(self, org_id: str | None) -> Organization | None:
        if not org_id:
            return None
        return await self.organizations.get_by_id_or_none(org_id)
