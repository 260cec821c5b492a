"""unique category names per user regardless of case

Revision ID: 202411050900
Revises: 202410150800
Create Date: 2024-11-05 09:00:00.000000

"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op


revision = "202411050900"
down_revision = "202410150800"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "uq_categories_user_lower_name",
        "categories",
        ["user_id", sa.text("lower(name)")],
        unique=True,
    )


def downgrade() -> None:
    op.drop_index("uq_categories_user_lower_name", table_name="categories")
