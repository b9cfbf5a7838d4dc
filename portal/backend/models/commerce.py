"""
Commerce Models.

Connected Shopify stores, their cached products, and sync history.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from portal.backend.core.utils import utc_now
from portal.backend.models.base import Base, OrgScopedMixin, TimestampMixin, UUIDMixin


class ShopifyStore(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """A Shopify shop connected with an Admin API access token."""

    __tablename__ = "shopify_stores"
    __table_args__ = (UniqueConstraint("org_id", "shop_domain", name="uq_shopify_store"),)

    shop_domain: Mapped[str] = mapped_column(String(255), nullable=False)
    shop_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    access_token: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)
    last_sync_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_sync_error: Mapped[str | None] = mapped_column(Text, nullable=True)


class ShopifyProduct(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """Local copy of a Shopify product."""

    __tablename__ = "shopify_products"
    __table_args__ = (UniqueConstraint("store_id", "shopify_id", name="uq_shopify_product"),)

    store_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shopify_stores.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    shopify_id: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    handle: Mapped[str | None] = mapped_column(String(255), nullable=True)
    vendor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    product_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    price: Mapped[Decimal | None] = mapped_column(nullable=True)
    inventory_quantity: Mapped[int | None] = mapped_column(nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    synced_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)


class ShopifySyncLog(UUIDMixin, TimestampMixin, OrgScopedMixin, Base):
    """One run of the product sync."""

    __tablename__ = "shopify_sync_log"

    store_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("shopify_stores.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    status: Mapped[str] = mapped_column(String(20), default="running", nullable=False)
    products_synced: Mapped[int] = mapped_column(default=0, nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
