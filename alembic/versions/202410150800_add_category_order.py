"""add category display order

Revision ID: 202410150800
Revises: 202410010900
Create Date: 2024-10-15 08:00:00.000000

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "202410150800"
down_revision = "202410010900"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("categories") as batch:
        batch.add_column(
            sa.Column("order", sa.Integer(), nullable=False, server_default="0")
        )
    op.create_index("ix_categories_user_order", "categories", ["user_id", "order"])

    # Existing categories get 0..n-1 per user, oldest first.
    conn = op.get_bind()
    categories = sa.table(
        "categories",
        sa.column("id", sa.Integer()),
        sa.column("user_id", sa.Integer()),
        sa.column("created_at", sa.DateTime()),
        sa.column("order", sa.Integer()),
    )
    rows = conn.execute(
        sa.select(categories.c.id, categories.c.user_id).order_by(
            categories.c.user_id, categories.c.created_at, categories.c.id
        )
    ).all()
    position: dict[int, int] = {}
    for row in rows:
        index = position.get(row.user_id, 0)
        conn.execute(
            categories.update()
            .where(categories.c.id == row.id)
            .values({"order": index})
        )
        position[row.user_id] = index + 1


def downgrade() -> None:
    op.drop_index("ix_categories_user_order", table_name="categories")
    with op.batch_alter_table("categories") as batch:
        batch.drop_column("order")
