"""Integration tests for threaded messages and Echo routing."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from portal.backend.models.contact import Contact
from portal.backend.models.job import BackgroundJob
from portal.backend.models.message import Message


@pytest.fixture
async def assistant(db_session, org) -> Contact:
    contact = Contact(org_id=org.id, email="echo@acme.test", name="Echo", type="assistant", role="client")
    db_session.add(contact)
    await db_session.flush()
    return contact


async def _start_thread(client: AsyncClient, api, headers, recipient_id: str, content: str = "Hello", **extra):
    body = {"recipient_id": recipient_id, "content": content, "subject": "Kickoff", **extra}
    return api.assert_success(await client.post("/api/v1/messages", headers=headers, json=body), 201)["data"]


class TestThreads:
    @pytest.mark.asyncio
    async def test_start_and_reply(
        self, client: AsyncClient, api, admin_headers, client_headers, admin, client_contact,
    ):
        root = await _start_thread(client, api, admin_headers, client_contact.id)
        assert root["thread_type"] == "direct"
        assert root["subject"] == "Kickoff"

        reply = api.assert_success(
            await client.post(
                "/api/v1/messages",
                headers=client_headers,
                json={"recipient_id": admin.id, "content": "Thanks!", "parent_id": root["id"]},
            ),
            201,
        )["data"]
        assert reply["parent_id"] == root["id"]
        assert reply["subject"] is None

        thread = api.assert_success(await client.get(f"/api/v1/messages/{reply['id']}", headers=admin_headers))["data"]
        assert thread["root"]["id"] == root["id"]
        assert [r["id"] for r in thread["replies"]] == [reply["id"]]

    @pytest.mark.asyncio
    async def test_reply_to_reply_hangs_off_root(
        self, client: AsyncClient, api, admin_headers, client_headers, admin, client_contact,
    ):
        root = await _start_thread(client, api, admin_headers, client_contact.id)
        first = api.assert_success(
            await client.post(
                "/api/v1/messages",
                headers=client_headers,
                json={"recipient_id": admin.id, "content": "one", "parent_id": root["id"]},
            ),
            201,
        )["data"]
        second = api.assert_success(
            await client.post(
                "/api/v1/messages",
                headers=admin_headers,
                json={"recipient_id": client_contact.id, "content": "two", "parent_id": first["id"]},
            ),
            201,
        )["data"]
        assert second["parent_id"] == root["id"]

    @pytest.mark.asyncio
    async def test_new_thread_needs_subject(self, client: AsyncClient, api, admin_headers, client_contact):
        response = await client.post(
            "/api/v1/messages", headers=admin_headers, json={"recipient_id": client_contact.id, "content": "Hi"},
        )
        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")

    @pytest.mark.asyncio
    async def test_recipient_in_other_org_not_found(
        self, client: AsyncClient, api, client_headers, db_session, other_org,
    ):
        stranger = Contact(org_id=other_org.id, email="eve@other.test", name="Eve", type="client", role="client")
        db_session.add(stranger)
        await db_session.flush()

        response = await client.post(
            "/api/v1/messages",
            headers=client_headers,
            json={"recipient_id": stranger.id, "content": "Hi", "subject": "Hello"},
        )

        api.assert_error(response, 404, "RES_NOT_FOUND")
        assert (await db_session.execute(select(Message))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_sales_cannot_send(self, client: AsyncClient, api, sales_headers, client_contact):
        response = await client.post(
            "/api/v1/messages",
            headers=sales_headers,
            json={"recipient_id": client_contact.id, "content": "Hi", "subject": "x"},
        )
        api.assert_error(response, 403, "AUTHZ_FORBIDDEN")

    @pytest.mark.asyncio
    async def test_outsider_cannot_read_thread(
        self, client: AsyncClient, api, admin_headers, other_client_headers, client_contact,
    ):
        root = await _start_thread(client, api, admin_headers, client_contact.id)
        response = await client.get(f"/api/v1/messages/{root['id']}", headers=other_client_headers)
        api.assert_error(response, 404, "RES_NOT_FOUND")

    @pytest.mark.asyncio
    async def test_list_only_my_threads(
        self, client: AsyncClient, api, admin_headers, client_headers, client_contact, other_client,
    ):
        mine = await _start_thread(client, api, admin_headers, client_contact.id)
        await _start_thread(client, api, admin_headers, other_client.id)

        threads = api.assert_success(await client.get("/api/v1/messages", headers=client_headers))["data"]
        assert [t["id"] for t in threads] == [mine["id"]]


class TestUnread:
    @pytest.mark.asyncio
    async def test_mark_thread_read(
        self, client: AsyncClient, api, admin_headers, client_headers, admin, client_contact,
    ):
        root = await _start_thread(client, api, admin_headers, client_contact.id)
        await client.post(
            "/api/v1/messages",
            headers=admin_headers,
            json={"recipient_id": client_contact.id, "content": "Also this", "parent_id": root["id"]},
        )

        count = api.assert_success(await client.get("/api/v1/messages/unread-count", headers=client_headers))
        assert count["data"] == {"unread": 2}

        after = api.assert_success(await client.post(f"/api/v1/messages/{root['id']}/read", headers=client_headers))
        assert after["data"] == {"unread": 0}

        admin_count = api.assert_success(await client.get("/api/v1/messages/unread-count", headers=admin_headers))
        assert admin_count["data"] == {"unread": 0}


class TestEchoRouting:
    @pytest.mark.asyncio
    async def test_message_to_assistant_is_echo_thread(
        self, client: AsyncClient, api, client_headers, assistant, db_session, dispatched_jobs,
    ):
        response = await client.post(
            "/api/v1/messages",
            headers=client_headers,
            json={"recipient_id": assistant.id, "content": "What is my balance?"},
        )

        data = api.assert_success(response, 201)["data"]
        assert data["thread_type"] == "echo"
        assert data["subject"] == "Echo Chat"

        job = (await db_session.execute(select(BackgroundJob))).scalar_one()
        assert job.type == "signal_echo_reply"
        assert job.params == {"message_id": data["id"]}
        dispatched_jobs.assert_awaited_once_with(job.id)

    @pytest.mark.asyncio
    async def test_mention_makes_group_thread(
        self, client: AsyncClient, api, admin_headers, client_contact, db_session, dispatched_jobs,
    ):
        root = await _start_thread(client, api, admin_headers, client_contact.id, content="Hey @Echo, summarize please")
        assert root["thread_type"] == "group"
        assert dispatched_jobs.await_count == 1

    @pytest.mark.asyncio
    async def test_email_address_is_not_a_mention(
        self, client: AsyncClient, api, admin_headers, client_contact, dispatched_jobs,
    ):
        root = await _start_thread(client, api, admin_headers, client_contact.id, content="mail me at bob@echo.test")
        assert root["thread_type"] == "direct"
        dispatched_jobs.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mention_in_reply_upgrades_direct_reply(
        self, client: AsyncClient, api, admin_headers, client_headers, admin, client_contact, dispatched_jobs,
    ):
        root = await _start_thread(client, api, admin_headers, client_contact.id)
        reply = api.assert_success(
            await client.post(
                "/api/v1/messages",
                headers=client_headers,
                json={"recipient_id": admin.id, "content": "@echo can you help?", "parent_id": root["id"]},
            ),
            201,
        )["data"]
        assert reply["thread_type"] == "group"
        assert dispatched_jobs.await_count == 1
