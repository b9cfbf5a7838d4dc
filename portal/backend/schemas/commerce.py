"""
Commerce Schemas.

Shopify stores, synced products and sync history.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class StoreConnect(BaseModel):
    shop_domain: str = Field(..., min_length=1, max_length=255, examples=["acme", "acme.myshopify.com"])
    access_token: str = Field(..., min_length=1, max_length=255)


class StoreResponse(BaseModel):
    """Stores never expose their access token."""

    id: str
    shop_domain: str
    shop_name: str | None
    is_active: bool
    last_sync_status: str | None
    last_sync_at: datetime | None
    last_sync_error: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductResponse(BaseModel):
    id: str
    store_id: str
    shopify_id: str
    title: str
    handle: str | None
    vendor: str | None
    product_type: str | None
    status: str | None
    price: Decimal | None
    inventory_quantity: int | None
    image_url: str | None
    synced_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SyncLogResponse(BaseModel):
    id: str
    store_id: str
    status: str
    products_synced: int
    error: str | None
    started_at: datetime
    completed_at: datetime | None

    model_config = ConfigDict(from_attributes=True)
