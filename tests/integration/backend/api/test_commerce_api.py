"""Integration tests for Shopify store connections and product sync."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.exceptions import ExternalServiceError, ValidationError
from portal.backend.integrations.shopify import ShopifyClient
from portal.backend.models.commerce import ShopifyProduct, ShopifyStore, ShopifySyncLog
from portal.backend.models.job import BackgroundJob
from portal.backend.services.commerce import CommerceService


async def _store(session: AsyncSession, org_id: str, **fields) -> ShopifyStore:
    values = {"shop_domain": "acme.myshopify.com", "access_token": "shpat_secret"}
    values.update(fields)
    store = ShopifyStore(org_id=org_id, **values)
    session.add(store)
    await session.flush()
    return store


def _product(shopify_id: int, title: str, price: str = "19.99", qty: int = 3) -> dict:
    return {
        "id": shopify_id,
        "title": title,
        "handle": title.lower().replace(" ", "-"),
        "status": "active",
        "variants": [{"price": price, "inventory_quantity": qty}],
    }


class FakeShopifyClient:
    """Serves canned product pages; ``fail_after`` raises once that many pages were served."""

    pages: list[list[dict]] = []
    fail_after: int | None = None

    def __init__(self, shop_domain: str, access_token: str) -> None:
        self.shop_domain = shop_domain

    async def __aenter__(self) -> "FakeShopifyClient":
        return self

    async def __aexit__(self, *exc) -> None:
        return None

    async def iter_product_pages(self):
        for index, page in enumerate(self.pages):
            if self.fail_after is not None and index >= self.fail_after:
                raise ExternalServiceError("Shopify returned HTTP 503")
            yield page


@pytest.fixture
def fake_shopify():
    FakeShopifyClient.pages = []
    FakeShopifyClient.fail_after = None
    return FakeShopifyClient


class TestStores:
    @pytest.mark.asyncio
    async def test_connect_validates_token(self, client: AsyncClient, api, sales_headers):
        with patch.object(ShopifyClient, "get_shop", new=AsyncMock(return_value={"name": "Acme Goods"})):
            data = api.assert_success(
                await client.post(
                    "/api/v1/commerce/stores",
                    headers=sales_headers,
                    json={"shop_domain": "https://Acme.myshopify.com/admin", "access_token": "shpat_x"},
                ),
                201,
            )["data"]

        assert data["shop_domain"] == "acme.myshopify.com"
        assert data["shop_name"] == "Acme Goods"
        assert data["is_active"] is True
        assert "access_token" not in data

    @pytest.mark.asyncio
    async def test_rejected_token(self, client: AsyncClient, api, sales_headers, db_session):
        rejected = AsyncMock(side_effect=ValidationError("Shopify rejected the access token"))
        with patch.object(ShopifyClient, "get_shop", new=rejected):
            response = await client.post(
                "/api/v1/commerce/stores", headers=sales_headers, json={"shop_domain": "acme", "access_token": "bad"},
            )
        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")
        assert (await db_session.execute(select(ShopifyStore))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_invalid_domain(self, client: AsyncClient, api, sales_headers):
        response = await client.post(
            "/api/v1/commerce/stores", headers=sales_headers, json={"shop_domain": "!!!", "access_token": "x"},
        )
        api.assert_error(response, 400, "VAL_VALIDATION_ERROR")

    @pytest.mark.asyncio
    async def test_already_connected(self, client: AsyncClient, api, sales_headers, db_session, org):
        await _store(db_session, org.id)
        response = await client.post(
            "/api/v1/commerce/stores", headers=sales_headers, json={"shop_domain": "acme", "access_token": "x"},
        )
        api.assert_error(response, 409, "RES_CONFLICT")

    @pytest.mark.asyncio
    async def test_reconnect_inactive_store(self, client: AsyncClient, api, sales_headers, db_session, org):
        store = await _store(db_session, org.id, is_active=False)
        with patch.object(ShopifyClient, "get_shop", new=AsyncMock(return_value={"name": "Acme"})):
            data = api.assert_success(
                await client.post(
                    "/api/v1/commerce/stores",
                    headers=sales_headers,
                    json={"shop_domain": "acme", "access_token": "shpat_new"},
                ),
                201,
            )["data"]
        assert data["id"] == store.id
        assert data["is_active"] is True
        assert store.access_token == "shpat_new"

    @pytest.mark.asyncio
    async def test_deactivate_hides_store_and_blocks_sync(
        self, client: AsyncClient, api, sales_headers, db_session, org, dispatched_jobs,
    ):
        store = await _store(db_session, org.id)

        data = api.assert_success(await client.delete(f"/api/v1/commerce/stores/{store.id}", headers=sales_headers))
        assert data["data"]["is_active"] is False

        listed = api.assert_success(await client.get("/api/v1/commerce/stores", headers=sales_headers))["data"]
        assert listed == []

        response = await client.post(f"/api/v1/commerce/stores/{store.id}/sync", headers=sales_headers)
        api.assert_error(response, 409, "RES_CONFLICT")
        dispatched_jobs.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_clients_forbidden(self, client: AsyncClient, api, client_headers):
        api.assert_error(await client.get("/api/v1/commerce/stores", headers=client_headers), 403)


class TestSync:
    @pytest.mark.asyncio
    async def test_sync_queues_job(self, client: AsyncClient, api, sales_headers, db_session, org, dispatched_jobs):
        store = await _store(db_session, org.id)

        accepted = api.assert_success(
            await client.post(f"/api/v1/commerce/stores/{store.id}/sync", headers=sales_headers), 202,
        )["data"]

        job = await db_session.get(BackgroundJob, accepted["job_id"])
        assert job.type == "shopify_sync"
        assert job.params == {"store_id": store.id}
        dispatched_jobs.assert_awaited_once_with(job.id)

    @pytest.mark.asyncio
    async def test_sync_upserts_products(self, db_session, org, fake_shopify):
        store = await _store(db_session, org.id)
        db_session.add(
            ShopifyProduct(org_id=org.id, store_id=store.id, shopify_id="1", title="Old name", price=Decimal("5.00"))
        )
        await db_session.flush()
        fake_shopify.pages = [
            [_product(1, "Blue Mug", "12.50", 4), _product(2, "Red Mug")],
            [_product(3, "Tote Bag", "30.00", 0)],
        ]

        result = await CommerceService(db_session, client_factory=fake_shopify).sync_store(store.id)

        assert result == {"store_id": store.id, "products_synced": 3}
        products = {
            p.shopify_id: p
            for p in (await db_session.execute(select(ShopifyProduct))).scalars().all()
        }
        assert set(products) == {"1", "2", "3"}
        assert products["1"].title == "Blue Mug"
        assert products["1"].price == Decimal("12.50")
        assert products["1"].inventory_quantity == 4

        log = (await db_session.execute(select(ShopifySyncLog))).scalar_one()
        assert log.status == "completed"
        assert log.products_synced == 3
        assert store.last_sync_status == "completed"
        assert store.last_sync_at is not None

    @pytest.mark.asyncio
    async def test_failed_sync_is_recorded(self, db_session, org, fake_shopify):
        store = await _store(db_session, org.id)
        store_id = store.id
        fake_shopify.pages = [[_product(1, "Blue Mug")], [_product(2, "Red Mug")]]
        fake_shopify.fail_after = 1

        with pytest.raises(ExternalServiceError):
            await CommerceService(db_session, client_factory=fake_shopify).sync_store(store_id)

        log = (await db_session.execute(select(ShopifySyncLog))).scalar_one()
        assert log.status == "failed"
        assert "503" in log.error
        assert log.completed_at is not None

        refreshed = await db_session.get(ShopifyStore, store_id)
        assert refreshed.last_sync_status == "failed"
        assert "503" in refreshed.last_sync_error
        assert (await db_session.execute(select(ShopifyProduct))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_malformed_product_fails_sync(self, db_session, org, fake_shopify):
        store = await _store(db_session, org.id)
        store_id = store.id
        fake_shopify.pages = [[{"title": "No id"}]]

        with pytest.raises(KeyError):
            await CommerceService(db_session, client_factory=fake_shopify).sync_store(store_id)

        log = (await db_session.execute(select(ShopifySyncLog))).scalar_one()
        assert log.status == "failed"
        assert log.error == "KeyError: 'id'"
        refreshed = await db_session.get(ShopifyStore, store_id)
        assert refreshed.last_sync_status == "failed"
        assert refreshed.last_sync_error == "KeyError: 'id'"

    @pytest.mark.asyncio
    async def test_sync_logs_endpoint(self, client: AsyncClient, api, sales_headers, db_session, org):
        store = await _store(db_session, org.id)
        db_session.add(ShopifySyncLog(org_id=org.id, store_id=store.id, status="completed", products_synced=7))
        await db_session.flush()

        logs = api.assert_success(
            await client.get(f"/api/v1/commerce/stores/{store.id}/sync-log", headers=sales_headers),
        )["data"]
        assert [entry["products_synced"] for entry in logs] == [7]


class TestProductSearch:
    @pytest.mark.asyncio
    async def test_search_by_title(self, client: AsyncClient, api, sales_headers, db_session, org, other_org):
        store = await _store(db_session, org.id)
        foreign = await _store(db_session, other_org.id, shop_domain="other.myshopify.com")
        db_session.add_all([
            ShopifyProduct(org_id=org.id, store_id=store.id, shopify_id="1", title="Blue Mug"),
            ShopifyProduct(org_id=org.id, store_id=store.id, shopify_id="2", title="Tote Bag"),
            ShopifyProduct(org_id=other_org.id, store_id=foreign.id, shopify_id="1", title="Blue Mug"),
        ])
        await db_session.flush()

        body = api.assert_success(
            await client.get("/api/v1/commerce/products", headers=sales_headers, params={"search": "mug"}),
        )
        assert [p["title"] for p in body["data"]] == ["Blue Mug"]
        assert body["pagination"]["total"] == 1

        everything = api.assert_success(
            await client.get("/api/v1/commerce/products", headers=sales_headers, params={"store_id": store.id}),
        )
        assert everything["pagination"]["total"] == 2
