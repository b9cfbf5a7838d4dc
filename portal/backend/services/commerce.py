"""
Commerce Service.

Shopify store connections and the product sync job.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from portal.backend.core.exceptions import ApplicationError, ConflictError
from portal.backend.core.utils import utc_now
from portal.backend.integrations.shopify import ShopifyClient, normalize_shop_domain
from portal.backend.models.commerce import ShopifyProduct, ShopifyStore, ShopifySyncLog
from portal.backend.models.job import BackgroundJob
from portal.backend.repositories.commerce import (
    ShopifyProductRepository,
    ShopifyStoreRepository,
    ShopifySyncLogRepository,
)
from portal.backend.schemas.commerce import StoreConnect
from portal.backend.services.base import BaseService
from portal.backend.services.job import JobService


def product_fields(product: dict[str, Any]) -> dict[str, Any]:
    """Columns of a ShopifyProduct taken from a products.json entry."""
    variants = product.get("variants") or []
    first = variants[0] if variants else {}
    try:
        price = Decimal(str(first["price"])) if first.get("price") is not None else None
    except InvalidOperation:
        price = None
    inventory = sum(v.get("inventory_quantity") or 0 for v in variants) if variants else None
    image = product.get("image") or {}
    return {
        "title": product.get("title") or "(untitled)",
        "handle": product.get("handle"),
        "vendor": product.get("vendor"),
        "product_type": product.get("product_type"),
        "status": product.get("status"),
        "price": price,
        "inventory_quantity": inventory,
        "image_url": image.get("src"),
    }


class CommerceService(BaseService):
    """Service for Shopify stores and products."""

    def __init__(self, session: AsyncSession, client_factory=ShopifyClient) -> None:
        super().__init__(session)
        self.stores = ShopifyStoreRepository(session)
        self.products = ShopifyProductRepository(session)
        self.sync_logs = ShopifySyncLogRepository(session)
        self.client_factory = client_factory

    async def list_stores(self, org_id: str) -> list[ShopifyStore]:
        return await self.stores.list_active(org_id)

    async def connect_store(self, org_id: str, data: StoreConnect) -> ShopifyStore:
        """
        Connect a store after validating its token against shop.json.

        Raises:
            ValidationError: Bad domain or token rejected by Shopify
            ConflictError: Store already connected to the org
        """
        shop_domain = normalize_shop_domain(data.shop_domain)
        existing = await self.stores.get_by_domain(org_id, shop_domain)
        if existing is not None and existing.is_active:
            raise ConflictError("Store already connected")

        async with self.client_factory(shop_domain, data.access_token) as client:
            shop = await client.get_shop()

        if existing is not None:
            self._log_operation("Reconnecting store", org_id=org_id, shop_domain=shop_domain)
            return await self.stores.apply(
                existing, access_token=data.access_token, shop_name=shop.get("name"), is_active=True,
            )

        self._log_operation("Connecting store", org_id=org_id, shop_domain=shop_domain)
        return await self._execute_db_operation(
            "connect_store",
            self.stores.create(
                org_id=org_id,
                shop_domain=shop_domain,
                shop_name=shop.get("name"),
                access_token=data.access_token,
            ),
            conflict_message="Store already connected",
        )

    async def deactivate_store(self, org_id: str, store_id: str) -> ShopifyStore:
        store = await self.stores.get_in_org(store_id, org_id)
        self._log_operation("Deactivating store", store_id=store_id)
        return await self.stores.apply(store, is_active=False)

    async def request_sync(self, org_id: str, store_id: str, created_by: str | None) -> BackgroundJob:
        store = await self.stores.get_in_org(store_id, org_id)
        if not store.is_active:
            raise ConflictError("Store is not active")
        return await JobService(self.session).enqueue(
            "shopify_sync", {"store_id": store_id}, org_id=org_id, created_by=created_by,
        )

    async def list_sync_logs(self, org_id: str, store_id: str, limit: int = 10) -> list[ShopifySyncLog]:
        await self.stores.get_in_org(store_id, org_id)
        return await self.sync_logs.latest(store_id, limit=limit)

    async def search_products(
        self,
        org_id: str,
        store_id: str | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ShopifyProduct], int]:
        return await self.products.search(
            org_id, store_id=store_id, search=search, limit=limit, offset=offset,
        )

    async def sync_store(self, store_id: str) -> dict[str, Any]:
        """
        Job handler body: upsert every product of a store.

        The sync log and the store's last_sync fields are committed even
        when the sync fails, so the failure stays visible after rollback.
        """
        store = await self.stores.get_by_id(store_id)
        log = await self.sync_logs.create(org_id=store.org_id, store_id=store.id, status="running")
        await self.stores.apply(store, last_sync_status="running")
        log_id = log.id
        await self.session.commit()

        synced = 0
        try:
            async with self.client_factory(store.shop_domain, store.access_token) as client:
                async for page in client.iter_product_pages():
                    now = utc_now()
                    for product in page:
                        shopify_id = str(product["id"])
                        fields = product_fields(product)
                        existing = await self.products.get_by_shopify_id(store.id, shopify_id)
                        if existing is None:
                            await self.products.create(
                                org_id=store.org_id,
                                store_id=store.id,
                                shopify_id=shopify_id,
                                synced_at=now,
                                **fields,
                            )
                        else:
                            await self.products.apply(existing, synced_at=now, **fields)
                        synced += 1
        except Exception as e:
            error = e.message if isinstance(e, ApplicationError) else f"{type(e).__name__}: {e}"
            await self.session.rollback()
            now = utc_now()
            await self.sync_logs.update(
                log_id, status="failed", error=error, products_synced=synced, completed_at=now,
            )
            await self.stores.update(
                store_id, last_sync_status="failed", last_sync_error=error, last_sync_at=now,
            )
            await self.session.commit()
            raise

        now = utc_now()
        await self.sync_logs.apply(log, status="completed", products_synced=synced, completed_at=now)
        await self.stores.apply(store, last_sync_status="completed", last_sync_error=None, last_sync_at=now)
        self._log_operation("Store synced", store_id=store.id, products=synced)
        return {"store_id": store.id, "products_synced": synced}
