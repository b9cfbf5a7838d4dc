"""job run_after and datetime lastmod

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-17 12:00:00

seo_pages.lastmod is dropped and re-added as a timestamp; the values are
refilled by the next sitemap crawl.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0002"
down_revision: Union[str, None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    with op.batch_alter_table("background_jobs") as batch:
        batch.add_column(sa.Column("run_after", sa.DateTime(), nullable=True))

    with op.batch_alter_table("seo_pages") as batch:
        batch.drop_column("lastmod")
    with op.batch_alter_table("seo_pages") as batch:
        batch.add_column(sa.Column("lastmod", sa.DateTime(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("seo_pages") as batch:
        batch.drop_column("lastmod")
    with op.batch_alter_table("seo_pages") as batch:
        batch.add_column(sa.Column("lastmod", sa.String(50), nullable=True))

    with op.batch_alter_table("background_jobs") as batch:
        batch.drop_column("run_after")
