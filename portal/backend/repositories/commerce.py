"""
Commerce Repositories.

Data access for Shopify stores, products, and sync logs.
"""

from portal.backend.models.commerce import ShopifyProduct, ShopifyStore, ShopifySyncLog
from portal.backend.repositories.base import BaseRepository


class ShopifyStoreRepository(BaseRepository[ShopifyStore]):
    model = ShopifyStore
    label = "Store"

    async def list_active(self, org_id: str) -> list[ShopifyStore]:
        return await self.find(
            ShopifyStore.org_id == org_id,
            ShopifyStore.is_active.is_(True),
            order_by=ShopifyStore.created_at.asc(),
        )

    async def get_by_domain(self, org_id: str, shop_domain: str) -> ShopifyStore | None:
        return await self.find_one(
            ShopifyStore.org_id == org_id, ShopifyStore.shop_domain == shop_domain,
        )


class ShopifyProductRepository(BaseRepository[ShopifyProduct]):
    model = ShopifyProduct
    label = "Product"

    async def get_by_shopify_id(self, store_id: str, shopify_id: str) -> ShopifyProduct | None:
        return await self.find_one(
            ShopifyProduct.store_id == store_id, ShopifyProduct.shopify_id == shopify_id,
        )

    async def search(
        self,
        org_id: str,
        store_id: str | None = None,
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ShopifyProduct], int]:
        conditions = [ShopifyProduct.org_id == org_id]
        if store_id:
            conditions.append(ShopifyProduct.store_id == store_id)
        if search:
            conditions.append(ShopifyProduct.title.ilike(f"%{search}%"))
        items = await self.find(
            *conditions, order_by=ShopifyProduct.title.asc(), limit=limit, offset=offset,
        )
        return items, await self.count(*conditions)


class ShopifySyncLogRepository(BaseRepository[ShopifySyncLog]):
    model = ShopifySyncLog
    label = "Sync log"

    async def latest(self, store_id: str, limit: int = 10) -> list[ShopifySyncLog]:
        return await self.find(
            ShopifySyncLog.store_id == store_id,
            order_by=ShopifySyncLog.started_at.desc(),
            limit=limit,
        )
