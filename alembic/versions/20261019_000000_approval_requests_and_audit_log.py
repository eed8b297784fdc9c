"""Approval requests and audit log for Bastion-AI

Revision ID: 20261019_000000
Revises: None
Create Date: 2026-10-19 00:00:00.000000

This is the initial migration that creates the tables of the approval gateway:
- bastion_requests: one row per proposed action and its life-cycle status
- bastion_audit_log: append-only trail of every transition

Revision format: YYYYMMDD_HHMMSS_description

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261019_000000"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JsonType = sa.JSON().with_variant(JSONB(), "postgresql")


def upgrade() -> None:
    """Create the request and audit tables."""

    op.create_table(
        "bastion_requests",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("plugin", sa.String(128), nullable=False),
        sa.Column("action", sa.String(128), nullable=False),
        sa.Column("params", JsonType, nullable=True),
        sa.Column("preview", sa.Text(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("otp_hash", sa.String(255), nullable=True),
        sa.Column("otp_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("result", JsonType, nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("ttl_seconds", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bastion_requests_status", "status"),
        sa.Index("ix_bastion_requests_created_at", "created_at"),
    )

    op.create_table(
        "bastion_audit_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("request_id", sa.String(64), nullable=False),
        sa.Column("event", sa.String(32), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("details", sa.Text(), nullable=False, server_default="{}"),
        sa.PrimaryKeyConstraint("id"),
        sa.Index("ix_bastion_audit_log_request_id", "request_id"),
        sa.Index("ix_bastion_audit_log_event", "event"),
        sa.Index("ix_bastion_audit_log_timestamp", "timestamp"),
    )


def downgrade() -> None:
    """Drop all tables created in upgrade."""
    op.drop_table("bastion_audit_log")
    op.drop_table("bastion_requests")
