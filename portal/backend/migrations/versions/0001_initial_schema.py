"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 00:00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(12, 2)


def _id() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def _fk(name: str, target: str, ondelete: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.String(36), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def _org_id(nullable: bool = False) -> sa.Column:
    return _fk("org_id", "organizations.id", "CASCADE", nullable=nullable)


def _index(table: str, *columns: str, unique: bool = False) -> None:
    for column in columns:
        op.create_index(f"ix_{table}_{column}", table, [column], unique=unique)


def upgrade() -> None:
    # -- Tenancy and people ---------------------------------------------------
    op.create_table(
        "organizations",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("domain", sa.String(255), nullable=True),
        sa.Column("plan", sa.String(50), nullable=False),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    _index("organizations", "slug", unique=True)

    op.create_table(
        "contacts",
        _id(),
        _org_id(nullable=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("pipeline_stage", sa.String(30), nullable=True),
        _fk("assigned_to", "contacts.id", "SET NULL"),
        sa.Column("lead_source", sa.String(100), nullable=True),
        sa.Column("lead_score", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("converted_at", sa.DateTime(), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("invite_token", sa.String(100), nullable=True, unique=True),
        sa.Column("invite_expires_at", sa.DateTime(), nullable=True),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _index("contacts", "org_id", "email", "type", "pipeline_stage", "assigned_to")

    op.create_table(
        "organization_members",
        _id(),
        _org_id(),
        _fk("contact_id", "contacts.id", "CASCADE", nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("access_level", sa.String(20), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "contact_id", name="uq_org_member"),
    )
    _index("organization_members", "org_id", "contact_id")

    # -- Sales and delivery ---------------------------------------------------
    op.create_table(
        "proposals",
        _id(),
        _org_id(),
        _fk("contact_id", "contacts.id", "CASCADE", nullable=False),
        _fk("created_by", "contacts.id", "SET NULL"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("line_items", sa.JSON(), nullable=False),
        sa.Column("total", MONEY, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("valid_until", sa.DateTime(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("first_viewed_at", sa.DateTime(), nullable=True),
        sa.Column("last_viewed_at", sa.DateTime(), nullable=True),
        sa.Column("view_count", sa.Integer(), nullable=False),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        sa.Column("declined_at", sa.DateTime(), nullable=True),
        sa.Column("decline_reason", sa.Text(), nullable=True),
        sa.Column("signed_at", sa.DateTime(), nullable=True),
        sa.Column("signature_data", sa.Text(), nullable=True),
        sa.Column("signer_name", sa.String(255), nullable=True),
        sa.Column("signer_email", sa.String(320), nullable=True),
        sa.Column("deposit_amount", MONEY, nullable=True),
        sa.Column("deposit_paid_at", sa.DateTime(), nullable=True),
        sa.Column("deposit_payment_id", sa.String(100), nullable=True),
        *_timestamps(),
    )
    _index("proposals", "org_id", "contact_id", "status")

    op.create_table(
        "projects",
        _id(),
        _org_id(),
        _fk("contact_id", "contacts.id", "SET NULL"),
        _fk("proposal_id", "proposals.id", "SET NULL"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("project_type", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("budget", MONEY, nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _index("projects", "org_id", "contact_id", "status")

    op.create_table(
        "project_checklist_items",
        _id(),
        _fk("project_id", "projects.id", "CASCADE", nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        _fk("completed_by", "contacts.id", "SET NULL"),
        *_timestamps(),
    )
    _index("project_checklist_items", "project_id")

    # -- CRM ------------------------------------------------------------------
    op.create_table(
        "crm_notes",
        _id(),
        _org_id(),
        _fk("contact_id", "contacts.id", "CASCADE", nullable=False),
        _fk("author_id", "contacts.id", "SET NULL"),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
    )
    _index("crm_notes", "org_id", "contact_id")

    op.create_table(
        "call_logs",
        _id(),
        _org_id(),
        _fk("contact_id", "contacts.id", "CASCADE", nullable=False),
        _fk("caller_id", "contacts.id", "SET NULL"),
        sa.Column("direction", sa.String(10), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False),
        sa.Column("outcome", sa.String(50), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("recording_url", sa.String(1000), nullable=True),
        sa.Column("called_at", sa.DateTime(), nullable=False),
        *_timestamps(),
    )
    _index("call_logs", "org_id", "contact_id")

    op.create_table(
        "call_follow_ups",
        _id(),
        _org_id(),
        _fk("call_id", "call_logs.id", "CASCADE"),
        _fk("contact_id", "contacts.id", "CASCADE"),
        _fk("assigned_to", "contacts.id", "SET NULL"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("due_at", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _index("call_follow_ups", "org_id", "contact_id", "assigned_to", "status")

    op.create_table(
        "tasks",
        _id(),
        _org_id(),
        _fk("project_id", "projects.id", "CASCADE"),
        _fk("contact_id", "contacts.id", "SET NULL"),
        _fk("assigned_to", "contacts.id", "SET NULL"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("due_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _index("tasks", "org_id", "project_id", "assigned_to", "status")

    op.create_table(
        "notifications",
        _id(),
        _org_id(),
        _fk("contact_id", "contacts.id", "CASCADE", nullable=False),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("link", sa.String(500), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("read_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _index("notifications", "org_id", "contact_id")

    # -- Billing --------------------------------------------------------------
    op.create_table(
        "invoices",
        _id(),
        _org_id(),
        _fk("contact_id", "contacts.id", "CASCADE", nullable=False),
        _fk("project_id", "projects.id", "SET NULL"),
        _fk("parent_invoice_id", "invoices.id", "SET NULL"),
        sa.Column("number_seq", sa.Integer(), nullable=False, unique=True),
        sa.Column("invoice_number", sa.String(30), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("tax_rate", MONEY, nullable=False),
        sa.Column("tax_amount", MONEY, nullable=False),
        sa.Column("total", MONEY, nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("due_at", sa.DateTime(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("payment_token", sa.String(64), nullable=False),
        sa.Column("payment_token_expires_at", sa.DateTime(), nullable=False),
        sa.Column("square_payment_id", sa.String(100), nullable=True),
        sa.Column("payment_method", sa.String(20), nullable=True),
        sa.Column("reminder_count", sa.Integer(), nullable=False),
        sa.Column("last_reminder_at", sa.DateTime(), nullable=True),
        sa.Column("next_reminder_at", sa.DateTime(), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False),
        sa.Column("recurring_interval", sa.String(20), nullable=True),
        sa.Column("recurring_day_of_month", sa.Integer(), nullable=True),
        sa.Column("next_invoice_date", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _index("invoices", "org_id", "contact_id", "status", "next_invoice_date")
    _index("invoices", "payment_token", unique=True)

    # -- Email ----------------------------------------------------------------
    op.create_table(
        "email_templates",
        _id(),
        _org_id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(500), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("category", sa.String(50), nullable=True),
        *_timestamps(),
    )
    _index("email_templates", "org_id")

    op.create_table(
        "email_lists",
        _id(),
        _org_id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
    )
    _index("email_lists", "org_id")

    op.create_table(
        "email_subscribers",
        _id(),
        _fk("list_id", "email_lists.id", "CASCADE", nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("subscribed_at", sa.DateTime(), nullable=False),
        sa.Column("unsubscribed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("list_id", "email", name="uq_list_subscriber"),
    )
    _index("email_subscribers", "list_id")

    op.create_table(
        "email_campaigns",
        _id(),
        _org_id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(500), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        _fk("template_id", "email_templates.id", "SET NULL"),
        _fk("list_id", "email_lists.id", "SET NULL"),
        _fk("created_by", "contacts.id", "SET NULL"),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("sent_count", sa.Integer(), nullable=False),
        sa.Column("open_count", sa.Integer(), nullable=False),
        sa.Column("click_count", sa.Integer(), nullable=False),
        sa.Column("bounce_count", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    _index("email_campaigns", "org_id", "status")

    op.create_table(
        "email_tracking",
        _id(),
        _org_id(),
        _fk("contact_id", "contacts.id", "SET NULL"),
        _fk("campaign_id", "email_campaigns.id", "CASCADE"),
        sa.Column("to_email", sa.String(320), nullable=False),
        sa.Column("subject", sa.String(500), nullable=True),
        sa.Column("provider_id", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("sent_at", sa.DateTime(), nullable=False),
        sa.Column("opened_at", sa.DateTime(), nullable=True),
        sa.Column("clicked_at", sa.DateTime(), nullable=True),
        sa.Column("open_count", sa.Integer(), nullable=False),
        sa.Column("click_count", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    _index("email_tracking", "org_id", "contact_id", "campaign_id")

    # -- Messages and jobs ----------------------------------------------------
    op.create_table(
        "messages",
        _id(),
        _org_id(),
        _fk("project_id", "projects.id", "SET NULL"),
        _fk("sender_id", "contacts.id", "CASCADE", nullable=False),
        _fk("recipient_id", "contacts.id", "CASCADE", nullable=False),
        _fk("parent_id", "messages.id", "CASCADE"),
        sa.Column("subject", sa.String(500), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("thread_type", sa.String(10), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("read_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _index("messages", "org_id", "project_id", "sender_id", "recipient_id", "parent_id")

    op.create_table(
        "background_jobs",
        _id(),
        _org_id(nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("params", sa.JSON(), nullable=False),
        sa.Column("result", sa.JSON(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False),
        sa.Column("max_retries", sa.Integer(), nullable=False),
        _fk("retry_of", "background_jobs.id", "SET NULL"),
        _fk("created_by", "contacts.id", "SET NULL"),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _index("background_jobs", "org_id", "type", "status")

    # -- SEO ------------------------------------------------------------------
    op.create_table(
        "seo_sites",
        _id(),
        _org_id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("settings", sa.JSON(), nullable=False),
        sa.Column("last_crawled_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "domain", name="uq_seo_site_domain"),
    )
    _index("seo_sites", "org_id")

    op.create_table(
        "seo_pages",
        _id(),
        _org_id(),
        _fk("site_id", "seo_sites.id", "CASCADE", nullable=False),
        sa.Column("url", sa.String(1000), nullable=False),
        sa.Column("path", sa.String(1000), nullable=True),
        sa.Column("page_type", sa.String(50), nullable=True),
        sa.Column("title", sa.String(500), nullable=True),
        sa.Column("meta_description", sa.Text(), nullable=True),
        sa.Column("h1", sa.String(500), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("lastmod", sa.String(50), nullable=True),
        sa.Column("last_crawled_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("site_id", "url", name="uq_seo_page_url"),
    )
    _index("seo_pages", "org_id", "site_id")

    op.create_table(
        "seo_keywords",
        _id(),
        _org_id(),
        _fk("site_id", "seo_sites.id", "CASCADE", nullable=False),
        sa.Column("keyword", sa.String(255), nullable=False),
        sa.Column("is_tracked", sa.Boolean(), nullable=False),
        sa.Column("is_local", sa.Boolean(), nullable=False),
        sa.Column("target_url", sa.String(1000), nullable=True),
        sa.Column("search_volume", sa.Integer(), nullable=True),
        sa.Column("position", sa.Float(), nullable=True),
        sa.Column("previous_position", sa.Float(), nullable=True),
        sa.Column("clicks", sa.Integer(), nullable=False),
        sa.Column("impressions", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("site_id", "keyword", name="uq_seo_keyword"),
    )
    _index("seo_keywords", "org_id", "site_id")

    op.create_table(
        "seo_recommendations",
        _id(),
        _org_id(),
        _fk("site_id", "seo_sites.id", "CASCADE", nullable=False),
        _fk("page_id", "seo_pages.id", "CASCADE"),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("current_value", sa.Text(), nullable=True),
        sa.Column("suggested_value", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("applied_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _index("seo_recommendations", "org_id", "site_id", "status")

    # -- Signal (Echo assistant) ----------------------------------------------
    op.create_table(
        "signal_config",
        _id(),
        _org_id(),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("assistant_name", sa.String(100), nullable=False),
        sa.Column("tone", sa.String(50), nullable=False),
        sa.Column("instructions", sa.Text(), nullable=True),
        _fk("assistant_contact_id", "contacts.id", "SET NULL"),
        *_timestamps(),
        sa.UniqueConstraint("org_id", name="uq_signal_config_org"),
    )
    _index("signal_config", "org_id")

    op.create_table(
        "signal_conversations",
        _id(),
        _org_id(),
        _fk("contact_id", "contacts.id", "CASCADE", nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("last_message_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _index("signal_conversations", "org_id", "contact_id")

    op.create_table(
        "signal_messages",
        _id(),
        _fk("conversation_id", "signal_conversations.id", "CASCADE", nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        *_timestamps(),
    )
    _index("signal_messages", "conversation_id")

    # -- Commerce -------------------------------------------------------------
    op.create_table(
        "shopify_stores",
        _id(),
        _org_id(),
        sa.Column("shop_domain", sa.String(255), nullable=False),
        sa.Column("shop_name", sa.String(255), nullable=True),
        sa.Column("access_token", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_sync_status", sa.String(20), nullable=True),
        sa.Column("last_sync_at", sa.DateTime(), nullable=True),
        sa.Column("last_sync_error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("org_id", "shop_domain", name="uq_shopify_store"),
    )
    _index("shopify_stores", "org_id")

    op.create_table(
        "shopify_products",
        _id(),
        _org_id(),
        _fk("store_id", "shopify_stores.id", "CASCADE", nullable=False),
        sa.Column("shopify_id", sa.String(30), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("handle", sa.String(255), nullable=True),
        sa.Column("vendor", sa.String(255), nullable=True),
        sa.Column("product_type", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=True),
        sa.Column("price", MONEY, nullable=True),
        sa.Column("inventory_quantity", sa.Integer(), nullable=True),
        sa.Column("image_url", sa.String(1000), nullable=True),
        sa.Column("synced_at", sa.DateTime(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("store_id", "shopify_id", name="uq_shopify_product"),
    )
    _index("shopify_products", "org_id", "store_id")

    op.create_table(
        "shopify_sync_log",
        _id(),
        _org_id(),
        _fk("store_id", "shopify_stores.id", "CASCADE", nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("products_synced", sa.Integer(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    _index("shopify_sync_log", "org_id", "store_id")


def downgrade() -> None:
    # Reverse dependency order; indexes go with their tables
    for table in (
        "shopify_sync_log",
        "shopify_products",
        "shopify_stores",
        "signal_messages",
        "signal_conversations",
        "signal_config",
        "seo_recommendations",
        "seo_keywords",
        "seo_pages",
        "seo_sites",
        "background_jobs",
        "messages",
        "email_tracking",
        "email_campaigns",
        "email_subscribers",
        "email_lists",
        "email_templates",
        "invoices",
        "notifications",
        "tasks",
        "call_follow_ups",
        "call_logs",
        "crm_notes",
        "project_checklist_items",
        "projects",
        "proposals",
        "organization_members",
        "contacts",
        "organizations",
    ):
        op.drop_table(table)
