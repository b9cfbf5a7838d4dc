"""Integration tests for the background job endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.models.job import BackgroundJob


async def _job(session: AsyncSession, org_id: str | None, **fields) -> BackgroundJob:
    values = {"type": "crawl_sitemap", "status": "pending", "priority": "normal", "params": {"site_id": "s-1"}}
    values.update(fields)
    job = BackgroundJob(org_id=org_id, **values)
    session.add(job)
    await session.flush()
    return job


class TestCreateJob:
    @pytest.mark.asyncio
    async def test_queue_registered_type(self, client: AsyncClient, api, sales_headers, sales, dispatched_jobs):
        data = api.assert_success(
            await client.post(
                "/api/v1/jobs", headers=sales_headers, json={"type": "shopify_sync", "params": {"store_id": "st-1"}},
            ),
            202,
        )["data"]
        assert data["status"] == "pending"
        dispatched_jobs.assert_awaited_once_with(data["job_id"])

        job = api.assert_success(await client.get(f"/api/v1/jobs/{data['job_id']}", headers=sales_headers))["data"]
        assert job["type"] == "shopify_sync"
        assert job["priority"] == "normal"
        assert job["created_by"] == sales.id
        assert job["max_retries"] == 3

    @pytest.mark.asyncio
    async def test_explicit_priority_wins(self, client: AsyncClient, api, sales_headers):
        data = api.assert_success(
            await client.post("/api/v1/jobs", headers=sales_headers, json={"type": "seo_ai_analyze", "priority": "high"}),
            202,
        )["data"]
        job = api.assert_success(await client.get(f"/api/v1/jobs/{data['job_id']}", headers=sales_headers))["data"]
        assert job["priority"] == "high"

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, client: AsyncClient, api, sales_headers, dispatched_jobs):
        response = await client.post("/api/v1/jobs", headers=sales_headers, json={"type": "mine_bitcoin"})
        body = api.assert_error(response, 400, "VAL_VALIDATION_ERROR")
        assert "crawl_sitemap" in body["error"]["details"]["allowed"]
        dispatched_jobs.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_clients_cannot_queue(self, client: AsyncClient, api, client_headers):
        response = await client.post("/api/v1/jobs", headers=client_headers, json={"type": "crawl_sitemap"})
        api.assert_error(response, 403, "AUTHZ_FORBIDDEN")


class TestInspectJobs:
    @pytest.mark.asyncio
    async def test_list_filters(self, client: AsyncClient, api, sales_headers, db_session, org, other_org):
        await _job(db_session, org.id)
        failed = await _job(db_session, org.id, type="shopify_sync", status="failed")
        await _job(db_session, other_org.id)

        everything = api.assert_success(await client.get("/api/v1/jobs", headers=sales_headers))["data"]
        assert len(everything) == 2

        only_failed = api.assert_success(
            await client.get("/api/v1/jobs", headers=sales_headers, params={"status": "failed"}),
        )["data"]
        assert [j["id"] for j in only_failed] == [failed.id]

        by_type = api.assert_success(
            await client.get("/api/v1/jobs", headers=sales_headers, params={"type": "crawl_sitemap"}),
        )["data"]
        assert len(by_type) == 1

    @pytest.mark.asyncio
    async def test_other_org_job_not_found(self, client: AsyncClient, api, sales_headers, db_session, other_org):
        foreign = await _job(db_session, other_org.id)
        api.assert_error(await client.get(f"/api/v1/jobs/{foreign.id}", headers=sales_headers), 404)

    @pytest.mark.asyncio
    async def test_stats_include_every_bucket(self, client: AsyncClient, api, sales_headers, db_session, org):
        await _job(db_session, org.id)
        await _job(db_session, org.id, status="completed", priority="high")

        stats = api.assert_success(await client.get("/api/v1/jobs/stats", headers=sales_headers))["data"]
        assert stats["total"] == 2
        assert stats["by_status"] == {"pending": 1, "running": 0, "completed": 1, "failed": 0, "cancelled": 0}
        assert stats["by_priority"] == {"high": 1, "normal": 1, "low": 0}


class TestCancelAndRetry:
    @pytest.mark.asyncio
    async def test_cancel_pending(self, client: AsyncClient, api, sales_headers, db_session, org):
        job = await _job(db_session, org.id)
        data = api.assert_success(await client.post(f"/api/v1/jobs/{job.id}/cancel", headers=sales_headers))["data"]
        assert data["status"] == "cancelled"
        assert data["completed_at"] is not None

    @pytest.mark.asyncio
    async def test_cancel_running_conflicts(self, client: AsyncClient, api, sales_headers, db_session, org):
        job = await _job(db_session, org.id, status="running")
        response = await client.post(f"/api/v1/jobs/{job.id}/cancel", headers=sales_headers)
        api.assert_error(response, 409, "RES_CONFLICT")

    @pytest.mark.asyncio
    async def test_retry_failed_creates_linked_job(
        self, client: AsyncClient, api, sales_headers, db_session, org, dispatched_jobs,
    ):
        failed = await _job(db_session, org.id, status="failed", priority="low", error="boom")

        data = api.assert_success(await client.post(f"/api/v1/jobs/{failed.id}/retry", headers=sales_headers), 202)
        retry = api.assert_success(
            await client.get(f"/api/v1/jobs/{data['data']['job_id']}", headers=sales_headers),
        )["data"]

        assert retry["id"] != failed.id
        assert retry["retry_of"] == failed.id
        assert retry["status"] == "pending"
        assert retry["priority"] == "low"
        assert retry["params"] == {"site_id": "s-1"}
        dispatched_jobs.assert_awaited_once_with(retry["id"])

    @pytest.mark.asyncio
    async def test_retry_completed_conflicts(self, client: AsyncClient, api, sales_headers, db_session, org):
        job = await _job(db_session, org.id, status="completed")
        response = await client.post(f"/api/v1/jobs/{job.id}/retry", headers=sales_headers)
        api.assert_error(response, 409, "RES_CONFLICT")
