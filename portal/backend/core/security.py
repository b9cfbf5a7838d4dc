"""
Security Utilities.

Password hashing, session tokens, and one-time tokens for invites
and invoice payment links.
"""

import secrets
from datetime import timedelta
from typing import Any

import bcrypt
from jose import JWTError, jwt

from portal.backend.core.config import get_app_config, get_settings
from portal.backend.core.exceptions import AuthenticationError
from portal.backend.core.logging import get_logger
from portal.backend.core.utils import utc_now

logger = get_logger(__name__)

SESSION_TOKEN_TYPE = "session"


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password_bytes, salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Verify a password against its hash. A missing hash never verifies."""
    if not hashed_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            hashed_password.encode("utf-8"),
        )
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


def create_session_token(
    contact_id: str,
    org_id: str | None,
    role: str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create the JWT carried in the session cookie or bearer header.

    Args:
        contact_id: Authenticated contact (sub claim)
        org_id: Contact's home organization
        role: Contact role (admin, sales, manager, client, ...)
        expires_delta: Optional custom lifetime, defaults to security.yaml

    Returns:
        Encoded JWT
    """
    settings = get_settings()
    jwt_config = get_app_config().security.jwt

    if expires_delta is None:
        expires_delta = timedelta(days=jwt_config.session_expire_days)

    claims = {
        "sub": contact_id,
        "org_id": org_id,
        "role": role,
        "exp": utc_now() + expires_delta,
        "type": SESSION_TOKEN_TYPE,
        "aud": jwt_config.audience,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=jwt_config.algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a session JWT.

    Raises:
        AuthenticationError: If token is invalid, expired, or not a session token
    """
    settings = get_settings()
    jwt_config = get_app_config().security.jwt
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[jwt_config.algorithm],
            audience=jwt_config.audience,
        )
    except JWTError as e:
        logger.warning("Token decode failed", extra={"error": str(e)})
        raise AuthenticationError("Invalid or expired token")

    if payload.get("type") != SESSION_TOKEN_TYPE or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired token")
    return payload


def generate_payment_token() -> str:
    """32 random bytes as hex, used in invoice magic links."""
    return secrets.token_hex(32)


def generate_invite_token() -> str:
    """URL-safe one-time token for account setup links."""
    return secrets.token_urlsafe(32)
