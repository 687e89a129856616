"""create instant reading requests

Revision ID: 20261014_04
Revises: 20261012_03
Create Date: 2026-10-14 09:30:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261014_04"
down_revision: str | None = "20261012_03"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "reading_requests",
        sa.Column("id", sa.Integer(), sa.Identity(), nullable=False),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("reader_id", sa.Integer(), nullable=False),
        sa.Column("reading_type", sa.String(length=10), nullable=False),
        sa.Column("session_type", sa.String(length=10), nullable=False, server_default="instant"),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("urgency", sa.String(length=10), nullable=False, server_default="medium"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["client_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["reader_id"], ["reader_profiles.user_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_reading_requests_id"), "reading_requests", ["id"], unique=False)
    op.create_index(op.f("ix_reading_requests_client_id"), "reading_requests", ["client_id"], unique=False)
    op.create_index(op.f("ix_reading_requests_reader_id"), "reading_requests", ["reader_id"], unique=False)
    op.create_index(op.f("ix_reading_requests_status"), "reading_requests", ["status"], unique=False)
    op.create_index(op.f("ix_reading_requests_expires_at"), "reading_requests", ["expires_at"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_reading_requests_expires_at"), table_name="reading_requests")
    op.drop_index(op.f("ix_reading_requests_status"), table_name="reading_requests")
    op.drop_index(op.f("ix_reading_requests_reader_id"), table_name="reading_requests")
    op.drop_index(op.f("ix_reading_requests_client_id"), table_name="reading_requests")
    op.drop_index(op.f("ix_reading_requests_id"), table_name="reading_requests")
    op.drop_table("reading_requests")
