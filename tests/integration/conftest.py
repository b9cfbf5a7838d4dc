"""
Integration Test Fixtures.

Fixtures for integration tests - real database, real FastAPI app.
These fixtures build on the root conftest.py database fixtures.

External services stay unconfigured (no Square, Resend or OpenAI keys),
and job dispatch to the taskiq broker is replaced by a recorder.
"""

from collections.abc import AsyncGenerator, Callable, Generator
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.database import get_db_session
from portal.backend.core.security import create_session_token, hash_password
from portal.backend.models.contact import Contact
from portal.backend.models.organization import Organization, OrganizationMember

TEST_PASSWORD = "correct-horse-battery"


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def dispatched_jobs() -> Generator[AsyncMock, None, None]:
    """Record job ids handed to the broker instead of sending them."""
    with patch("portal.backend.services.job.dispatch_job", new=AsyncMock(return_value=True)) as mock:
        yield mock


@pytest.fixture
async def client(
    db_session: AsyncSession,
    dispatched_jobs: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client bound to the test database session.

    Usage:
        async def test_health_endpoint(client: AsyncClient):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session
        await db_session.flush()

    from portal.backend.main import create_app

    app = create_app()
    app.dependency_overrides[get_db_session] = override_get_db_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Seed Data Fixtures
# =============================================================================


async def _add(session: AsyncSession, instance: Any) -> Any:
    session.add(instance)
    await session.flush()
    return instance


@pytest.fixture
async def org(db_session: AsyncSession) -> Organization:
    """An active tenant."""
    return await _add(db_session, Organization(name="Acme Agency", slug="acme", features={}))


@pytest.fixture
async def other_org(db_session: AsyncSession) -> Organization:
    """A second tenant, for isolation checks."""
    return await _add(db_session, Organization(name="Other Co", slug="other", features={}))


@pytest.fixture
async def admin(db_session: AsyncSession, org: Organization) -> Contact:
    """Platform admin with a password, home org ``org``."""
    return await _add(
        db_session,
        Contact(
            org_id=org.id,
            email="admin@acme.test",
            name="Ada Admin",
            type="user",
            role="admin",
            password_hash=hash_password(TEST_PASSWORD),
        ),
    )


@pytest.fixture
async def sales(db_session: AsyncSession, org: Organization) -> Contact:
    """Sales rep (staff, not admin) with an organization membership."""
    contact = await _add(
        db_session,
        Contact(
            org_id=org.id,
            email="rep@acme.test",
            name="Sam Sales",
            type="user",
            role="sales",
            password_hash=hash_password(TEST_PASSWORD),
        ),
    )
    await _add(db_session, OrganizationMember(org_id=org.id, contact_id=contact.id, role="member"))
    return contact


@pytest.fixture
async def client_contact(db_session: AsyncSession, org: Organization) -> Contact:
    """A client of ``org`` who can log in."""
    return await _add(
        db_session,
        Contact(
            org_id=org.id,
            email="carol@client.test",
            name="Carol Client",
            company="Client Ltd",
            type="client",
            role="client",
            password_hash=hash_password(TEST_PASSWORD),
        ),
    )


@pytest.fixture
async def other_client(db_session: AsyncSession, org: Organization) -> Contact:
    """A second client of the same org."""
    return await _add(
        db_session,
        Contact(
            org_id=org.id,
            email="dave@client.test",
            name="Dave Client",
            type="client",
            role="client",
            password_hash=hash_password(TEST_PASSWORD),
        ),
    )


# =============================================================================
# Authentication Fixtures
# =============================================================================


def bearer(contact: Contact) -> dict[str, str]:
    """Authorization header carrying a session token for ``contact``."""
    token = create_session_token(contact.id, contact.org_id, contact.role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin: Contact) -> dict[str, str]:
    return bearer(admin)


@pytest.fixture
def sales_headers(sales: Contact) -> dict[str, str]:
    return bearer(sales)


@pytest.fixture
def client_headers(client_contact: Contact) -> dict[str, str]:
    return bearer(client_contact)


@pytest.fixture
def other_client_headers(other_client: Contact) -> dict[str, str]:
    return bearer(other_client)


# =============================================================================
# API Response Assertion Helpers
# =============================================================================


class ApiAssertions:
    """Helper class for API response assertions."""

    @staticmethod
    def assert_success(response: Any, expected_status: int = 200) -> dict[str, Any]:
        """
        Assert API response is successful.

        Returns:
            Response JSON data
        """
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        data = response.json()
        assert data.get("success") is True, f"Response not successful: {data}"
        return data

    @staticmethod
    def assert_error(
        response: Any,
        expected_status: int,
        expected_code: str | None = None,
    ) -> dict[str, Any]:
        """
        Assert API response is an error in the standard envelope.

        Returns:
            Response JSON data
        """
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        data = response.json()
        assert data.get("success") is False, f"Response should be error: {data}"
        assert data.get("error") is not None, f"Missing error details: {data}"

        if expected_code:
            actual_code = data["error"].get("code")
            assert actual_code == expected_code, (
                f"Expected error code {expected_code}, got {actual_code}"
            )

        return data


@pytest.fixture
def api() -> ApiAssertions:
    """Provide API assertion helpers."""
    return ApiAssertions()


@pytest.fixture
def headers_for() -> Callable[[Contact], dict[str, str]]:
    """Build auth headers for any contact created inside a test."""
    return bearer


@pytest.fixture
def test_password() -> str:
    """Password of every seeded contact."""
    return TEST_PASSWORD
