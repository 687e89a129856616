"""create scheduled readings

Revision ID: 20261012_03
Revises: 20261012_02
Create Date: 2026-10-12 10:45:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261012_03"
down_revision: str | None = "20261012_02"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "scheduled_readings",
        sa.Column("id", sa.Integer(), sa.Identity(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("reader_id", sa.Integer(), nullable=False),
        sa.Column("package_id", sa.Integer(), nullable=True),
        sa.Column("reading_type", sa.String(length=10), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("time_zone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("special_requests", sa.Text(), nullable=True),
        sa.Column("recurring_pattern", sa.JSON(), nullable=True),
        sa.Column("series_parent_id", sa.Integer(), nullable=True),
        sa.Column("rescheduled_from_id", sa.Integer(), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=500), nullable=True),
        sa.Column("reschedule_reason", sa.String(length=500), nullable=True),
        sa.Column("payment_intent_id", sa.String(length=128), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_minutes", sa.Integer(), nullable=True),
        sa.Column("total_cost", sa.Numeric(10, 2), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["reader_id"], ["reader_profiles.user_id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["package_id"], ["reading_packages.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["series_parent_id"], ["scheduled_readings.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["rescheduled_from_id"], ["scheduled_readings.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_scheduled_readings_id"), "scheduled_readings", ["id"], unique=False)
    op.create_index(op.f("ix_scheduled_readings_client_id"), "scheduled_readings", ["client_id"], unique=False)
    op.create_index(op.f("ix_scheduled_readings_reader_id"), "scheduled_readings", ["reader_id"], unique=False)
    op.create_index(op.f("ix_scheduled_readings_status"), "scheduled_readings", ["status"], unique=False)
    op.create_index(
        "ix_scheduled_readings_reader_start",
        "scheduled_readings",
        ["reader_id", "scheduled_at"],
        unique=False,
    )
    op.create_index(
        "uq_scheduled_readings_reader_active_start",
        "scheduled_readings",
        ["reader_id", "scheduled_at"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'confirmed', 'in_progress')"),
    )


def downgrade() -> None:
    op.drop_index("uq_scheduled_readings_reader_active_start", table_name="scheduled_readings")
    op.drop_index("ix_scheduled_readings_reader_start", table_name="scheduled_readings")
    op.drop_index(op.f("ix_scheduled_readings_status"), table_name="scheduled_readings")
    op.drop_index(op.f("ix_scheduled_readings_reader_id"), table_name="scheduled_readings")
    op.drop_index(op.f("ix_scheduled_readings_client_id"), table_name="scheduled_readings")
    op.drop_index(op.f("ix_scheduled_readings_id"), table_name="scheduled_readings")
    op.drop_table("scheduled_readings")
