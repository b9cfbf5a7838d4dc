"""
FastAPI Dependencies.

Shared dependencies for request handling: database session, request id,
and the authenticated request context.

Authentication is enforced once for the whole v1 router by
``enforce_authentication``; paths matching PUBLIC_PATH_PATTERNS skip it.
Endpoints then receive the resolved context through ``CurrentAuth``.
"""

import re
import uuid
from dataclasses import dataclass
from typing import Annotated

import structlog
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.config import get_app_config
from portal.backend.core.database import get_db_session
from portal.backend.core.exceptions import AuthenticationError, AuthorizationError
from portal.backend.core.logging import get_logger
from portal.backend.core.security import decode_token
from portal.backend.models.contact import STAFF_ROLES, Contact
from portal.backend.models.organization import OrganizationMember
from portal.backend.repositories.contact import ContactRepository
from portal.backend.repositories.organization import OrganizationMemberRepository

logger = get_logger(__name__)

# Type alias for database session dependency
DbSession = Annotated[AsyncSession, Depends(get_db_session)]

# Paths (relative to the API prefix) reachable without a session
PUBLIC_PATH_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern)
    for pattern in (
        r"^/auth/(login|logout|setup-password)$",
        r"^/invoices/pay-public$",
        r"^/invoices/by-token/[^/]+$",
        r"^/proposals/[^/]+/track-view$",
        r"^/email/track/(open|click)/[^/]+$",
    )
)


def is_public_path(path: str, api_prefix: str | None = None) -> bool:
    """
    Check whether a request path is on the unauthenticated allow-list.

    Args:
        path: Full request path or a path relative to the API prefix
        api_prefix: Prefix to strip (defaults to application.yaml api_prefix)
    """
    if api_prefix is None:
        api_prefix = get_app_config().application.api_prefix
    if path.startswith(api_prefix):
        path = path[len(api_prefix):]
    path = path.rstrip("/") or "/"
    return any(pattern.match(path) for pattern in PUBLIC_PATH_PATTERNS)


async def get_request_id(request: Request, x_request_id: str | None = Header(None)) -> str:
    """
    Extract or generate request ID.

    Prefers the id bound by RequestContextMiddleware.
    """
    state_id = getattr(request.state, "request_id", None)
    return state_id or x_request_id or str(uuid.uuid4())


RequestId = Annotated[str, Depends(get_request_id)]


# =============================================================================
# Authentication
# =============================================================================


@dataclass
class AuthContext:
    """The authenticated contact and the organization the request acts in."""

    contact: Contact
    org_id: str | None
    membership: OrganizationMember | None = None

    @property
    def contact_id(self) -> str:
        return self.contact.id

    @property
    def is_admin(self) -> bool:
        """Platform admin: may act in any organization."""
        return self.contact.role == "admin"

    @property
    def is_org_manager(self) -> bool:
        """Owner or admin of the current org with organization-wide access."""
        if self.is_admin:
            return True
        membership = self.membership
        return (
            membership is not None
            and membership.role in ("owner", "admin")
            and membership.access_level == "organization"
        )

    def require_org(self) -> str:
        """Return the organization id, failing when the contact has none."""
        if not self.org_id:
            raise AuthorizationError("No organization selected")
        return self.org_id


def _extract_token(request: Request) -> str | None:
    """Bearer header wins over the session cookie."""
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()

    cookie_name = get_app_config().security.cookie.name
    return request.cookies.get(cookie_name)


async def resolve_auth_context(request: Request, db: AsyncSession) -> AuthContext:
    """
    Authenticate the request and resolve the acting organization.

    Raises:
        AuthenticationError: No token, invalid token, or unknown contact
        AuthorizationError: X-Organization-Id names an org the contact cannot act in
    """
    token = _extract_token(request)
    if not token:
        raise AuthenticationError("Authentication required")

    claims = decode_token(token)
    contact = await ContactRepository(db).get_by_id_or_none(claims["sub"])
    if contact is None:
        raise AuthenticationError("Session no longer valid")

    members = OrganizationMemberRepository(db)
    requested_org = request.headers.get("X-Organization-Id")
    org_id = requested_org or contact.org_id
    membership = await members.get_membership(org_id, contact.id) if org_id else None

    if requested_org and requested_org != contact.org_id:
        if contact.role != "admin" and membership is None:
            logger.warning(
                "Organization switch denied",
                extra={"contact_id": contact.id, "org_id": requested_org},
            )
            raise AuthorizationError("Not a member of this organization")

    return AuthContext(contact=contact, org_id=org_id, membership=membership)


async def enforce_authentication(request: Request, db: DbSession) -> None:
    """
    Router-level guard for the v1 API.

    Public paths pass through untouched; every other request must carry
    a valid session. The resolved context is stored on request.state.
    """
    if is_public_path(request.url.path):
        request.state.auth = None
        return
    auth = await resolve_auth_context(request, db)
    request.state.auth = auth

    structlog.contextvars.bind_contextvars(contact_id=auth.contact_id, org_id=auth.org_id)


async def get_auth_context(request: Request, db: DbSession) -> AuthContext:
    """Endpoint dependency returning the authenticated context."""
    auth = getattr(request.state, "auth", None)
    if auth is None:
        auth = await resolve_auth_context(request, db)
        request.state.auth = auth
    return auth


CurrentAuth = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(auth: CurrentAuth) -> AuthContext:
    """Only platform admins pass."""
    if not auth.is_admin:
        raise AuthorizationError("Admin access required")
    return auth


AdminAuth = Annotated[AuthContext, Depends(require_admin)]


async def require_staff(auth: CurrentAuth) -> AuthContext:
    """Staff roles (admin, sales, manager) pass; clients do not."""
    if auth.contact.role not in STAFF_ROLES:
        raise AuthorizationError("Staff access required")
    return auth


StaffAuth = Annotated[AuthContext, Depends(require_staff)]
