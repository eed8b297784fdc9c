from __future__ import annotations

"""SQLAlchemy ORM models for approval persistence.

These ORM models define the SQL schema used by the SQL repository
implementation in ``bastion_ai.approval_core.repos.sql``.

Design
------

- Requests hold the whole life cycle of one proposed action, including the
  hash of the active one-time code and the terminal result or error.
- Audit rows form an append-only timeline. ``details`` is stored as JSON text
  so that substring search behaves the same on SQLite and PostgreSQL.

Table names are prefixed with ``bastion_`` to avoid collisions in shared databases.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JsonType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class RequestRow(Base):
    """Row model for ``bastion_requests``.

    Key fields:

    - ``status``: life-cycle status, only changed through conditional updates.
    - ``otp_hash``: argon2 hash of the active code, non-null only while APPROVED.
    - ``otp_attempts``: failed verifications since the code was issued.
    """

    __tablename__ = "bastion_requests"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    plugin: Mapped[str] = mapped_column(String(128))
    action: Mapped[str] = mapped_column(String(128))
    params: Mapped[Any] = mapped_column(JsonType, nullable=True)
    preview: Mapped[str] = mapped_column(Text)

    status: Mapped[str] = mapped_column(String(16), index=True)
    otp_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    otp_attempts: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    executed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    result: Mapped[Any] = mapped_column(JsonType, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    ttl_seconds: Mapped[int] = mapped_column(Integer)


class AuditRow(Base):
    """Row model for ``bastion_audit_log``.

    Rows are inserted once and never updated or deleted.
    """

    __tablename__ = "bastion_audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[str] = mapped_column(String(64), index=True)
    event: Mapped[str] = mapped_column(String(32), index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    details: Mapped[str] = mapped_column(Text, default="{}")
