"""Create entity table.

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00

"""

from __future__ import annotations

from typing import TYPE_CHECKING

import sqlalchemy as sa
from alembic import op

if TYPE_CHECKING:
    from collections.abc import Sequence

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "entity",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_id", sa.String(length=255), nullable=False),
        sa.Column("device_id", sa.String(length=255), nullable=False),
        sa.Column("external_id", sa.String(length=255), nullable=True),
        sa.Column("domain", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("icon", sa.String(length=255), nullable=True),
        sa.Column("state", sa.String(length=255), nullable=False),
        sa.Column("attributes", sa.Text(), nullable=False),
        sa.Column("source", sa.String(length=16), nullable=False),
        sa.Column("last_changed", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(source IN ('external', 'hybrid') AND external_id IS NOT NULL) "
            "OR (source = 'internal' AND external_id IS NULL)",
            name=op.f("ck_entity_source_external_id"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_entity")),
        sa.UniqueConstraint("entity_id", name=op.f("uq_entity_entity_id")),
        sa.UniqueConstraint("external_id", name=op.f("uq_entity_external_id")),
    )
    op.create_index("ix_entity_domain_source", "entity", ["domain", "source"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_entity_domain_source", table_name="entity")
    op.drop_table("entity")
