"""create reader availability and reading packages

Revision ID: 20261012_02
Revises: 20261012_01
Create Date: 2026-10-12 10:20:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261012_02"
down_revision: str | None = "20261012_01"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "reader_availability",
        sa.Column("id", sa.Integer(), sa.Identity(), nullable=False),
        sa.Column("reader_id", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("time_zone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("reading_types", sa.JSON(), nullable=False),
        sa.Column("max_concurrent_sessions", sa.Integer(), nullable=True),
        sa.Column("break_duration", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["reader_id"], ["reader_profiles.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_reader_availability_day_of_week"),
        sa.CheckConstraint("end_time > start_time", name="ck_reader_availability_window"),
    )
    op.create_index(op.f("ix_reader_availability_id"), "reader_availability", ["id"], unique=False)
    op.create_index(op.f("ix_reader_availability_reader_id"), "reader_availability", ["reader_id"], unique=False)

    op.create_table(
        "reading_packages",
        sa.Column("id", sa.Integer(), sa.Identity(), nullable=False),
        sa.Column("reader_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("original_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("reading_type", sa.String(length=10), nullable=False),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("is_popular", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["reader_id"], ["reader_profiles.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_reading_packages_id"), "reading_packages", ["id"], unique=False)
    op.create_index(op.f("ix_reading_packages_reader_id"), "reading_packages", ["reader_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_reading_packages_reader_id"), table_name="reading_packages")
    op.drop_index(op.f("ix_reading_packages_id"), table_name="reading_packages")
    op.drop_table("reading_packages")

    op.drop_index(op.f("ix_reader_availability_reader_id"), table_name="reader_availability")
    op.drop_index(op.f("ix_reader_availability_id"), table_name="reader_availability")
    op.drop_table("reader_availability")
