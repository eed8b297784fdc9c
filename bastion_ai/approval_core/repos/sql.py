from __future__ import annotations

"""SQLAlchemy async repository implementations.

This module provides a SQL-backed persistence implementation for the
repository interfaces defined in ``bastion_ai.approval_core.repos.interfaces``.

Usage
-----

Typical wiring (tests or application setup):

- Create an async engine with ``create_engine``.
- Create tables with ``create_all`` (for tests/dev; production typically uses
  migrations).
- Create a session factory with ``create_sessionmaker``.
- Build repository instances with ``build_sql_repos``.

Transaction model
-----------------

Each repository method opens an ``AsyncSession``, performs its operation, and
commits. Status transitions are issued as a single
``UPDATE ... WHERE id = :id AND status = :expected`` so that the database,
not the caller, decides which of two concurrent actors wins.
"""

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ..errors import DuplicateRequestError
from ..schemas.domain import (
    ACTIVE_STATUSES,
    ApprovalRequest,
    AuditEvent,
    AuditEventKind,
    RequestStatus,
)
from .interfaces import AuditRepository, RequestRepository
from .models import AuditRow, Base, RequestRow

_MUTABLE_FIELDS = frozenset(
    {
        "otp_hash",
        "otp_attempts",
        "decided_at",
        "confirmed_at",
        "executed_at",
        "result",
        "error",
    }
)


def create_engine(db_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    The helper normalizes Postgres URLs to ensure the async driver is used.
    For example, it rewrites ``postgresql://`` and other variants to
    ``postgresql+asyncpg://``. In-memory SQLite URLs share one connection so
    that every session sees the same database.
    """
    url = re.sub(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://", "postgresql+asyncpg://", db_url, count=1)
    if url.startswith("sqlite") and ":memory:" in url:
        return create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an ``async_sessionmaker`` with safe defaults for this project."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables for the current ORM metadata.

    This is mainly intended for tests and local development.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back; every stored timestamp is UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _status_value(status: Any) -> str:
    return str(getattr(status, "value", status))


def _row_to_request(row: RequestRow) -> ApprovalRequest:
    return ApprovalRequest(
        id=row.id,
        plugin=row.plugin,
        action=row.action,
        params=row.params,
        preview=row.preview,
        status=RequestStatus(row.status),
        otp_hash=row.otp_hash,
        otp_attempts=row.otp_attempts,
        created_at=_as_utc(row.created_at),
        decided_at=_as_utc(row.decided_at),
        confirmed_at=_as_utc(row.confirmed_at),
        executed_at=_as_utc(row.executed_at),
        result=row.result,
        error=row.error,
        ttl_seconds=row.ttl_seconds,
    )


def _row_to_event(row: AuditRow) -> AuditEvent:
    return AuditEvent(
        id=row.id,
        request_id=row.request_id,
        event=AuditEventKind(row.event),
        timestamp=_as_utc(row.timestamp),
        details=json.loads(row.details) if row.details else {},
    )


def _check_fields(fields: dict[str, Any]) -> None:
    if "status" in fields:
        raise ValueError("status can only change through compare_and_set_status")
    unknown = set(fields) - _MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Unknown or immutable request fields: {sorted(unknown)}")


@dataclass(frozen=True)
class SqlRequestRepository(RequestRepository):
    """SQL implementation of ``RequestRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def create(self, request: ApprovalRequest) -> None:
        """
        Persist a new approval request.

        Args:
            request: The request domain object to insert.
        """
        async with self.session_factory() as s:
            s.add(
                RequestRow(
                    id=request.id,
                    plugin=request.plugin,
                    action=request.action,
                    params=request.params,
                    preview=request.preview,
                    status=_status_value(request.status),
                    otp_hash=request.otp_hash,
                    otp_attempts=request.otp_attempts,
                    created_at=request.created_at,
                    decided_at=request.decided_at,
                    confirmed_at=request.confirmed_at,
                    executed_at=request.executed_at,
                    result=request.result,
                    error=request.error,
                    ttl_seconds=request.ttl_seconds,
                )
            )
            try:
                await s.commit()
            except IntegrityError as e:
                await s.rollback()
                raise DuplicateRequestError(request.id) from e

    async def get(self, request_id: str) -> Optional[ApprovalRequest]:
        """
        Retrieve a request by its id.

        Args:
            request_id: The request identifier.

        Returns:
            The ApprovalRequest domain object if found, otherwise None.
        """
        async with self.session_factory() as s:
            row = await s.get(RequestRow, request_id)
            if row is None:
                return None
            return _row_to_request(row)

    async def list_active(self) -> List[ApprovalRequest]:
        async with self.session_factory() as s:
            stmt = (
                select(RequestRow)
                .where(RequestRow.status.in_([_status_value(st) for st in ACTIVE_STATUSES]))
                .order_by(RequestRow.created_at.asc(), RequestRow.id.asc())
            )
            result = await s.execute(stmt)
            return [_row_to_request(row) for row in result.scalars().all()]

    async def compare_and_set_status(
        self,
        request_id: str,
        expected: RequestStatus,
        to: RequestStatus,
        **fields: Any,
    ) -> bool:
        """
        Conditionally move a request from ``expected`` to ``to``.

        Args:
            request_id: The request identifier.
            expected: The status the row must currently hold.
            to: The new status.
            fields: Extra columns written in the same statement.

        Returns:
            True if the row was transitioned, False if it was missing or had moved on.
        """
        _check_fields(fields)
        stmt = (
            update(RequestRow)
            .where(RequestRow.id == request_id, RequestRow.status == _status_value(expected))
            .values(status=_status_value(to), **fields)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as s:
            result = await s.execute(stmt)
            await s.commit()
            return result.rowcount == 1

    async def update_fields(self, request_id: str, **fields: Any) -> bool:
        """
        Update non-status columns of a request.

        Args:
            request_id: The request identifier.
            fields: Columns to write.

        Returns:
            True if the request exists and was updated.
        """
        _check_fields(fields)
        if not fields:
            return await self.get(request_id) is not None
        stmt = (
            update(RequestRow)
            .where(RequestRow.id == request_id)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as s:
            result = await s.execute(stmt)
            await s.commit()
            return result.rowcount == 1

    async def record_failed_attempt(self, request_id: str, max_attempts: int) -> Optional[int]:
        stmt = (
            update(RequestRow)
            .where(
                RequestRow.id == request_id,
                RequestRow.status == RequestStatus.approved.value,
                RequestRow.otp_attempts < max_attempts,
            )
            .values(otp_attempts=RequestRow.otp_attempts + 1)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as s:
            result = await s.execute(stmt)
            if result.rowcount != 1:
                await s.rollback()
                return None
            attempts = await s.scalar(select(RequestRow.otp_attempts).where(RequestRow.id == request_id))
            await s.commit()
            return attempts


@dataclass(frozen=True)
class SqlAuditRepository(AuditRepository):
    """SQL implementation of ``AuditRepository`` (append-only)."""

    session_factory: async_sessionmaker[AsyncSession]

    async def append(self, event: AuditEvent) -> AuditEvent:
        """
        Append a new audit event to the log.

        Args:
            event: The event domain object.

        Returns:
            The stored event including its assigned id.
        """
        row = AuditRow(
            request_id=event.request_id,
            event=_status_value(event.event),
            timestamp=event.timestamp,
            details=json.dumps(event.details, default=str, sort_keys=True, ensure_ascii=False),
        )
        async with self.session_factory() as s:
            s.add(row)
            await s.commit()
            return event.model_copy(update={"id": row.id})

    async def list_for_request(self, request_id: str) -> List[AuditEvent]:
        async with self.session_factory() as s:
            stmt = select(AuditRow).where(AuditRow.request_id == request_id).order_by(AuditRow.id.asc())
            result = await s.execute(stmt)
            return [_row_to_event(row) for row in result.scalars().all()]

    async def search(self, query: str = "", limit: int = 100) -> List[AuditEvent]:
        """
        Search the log by substring over event kind or details.

        Args:
            query: Substring to look for; an empty query matches everything.
            limit: Max number of events to return.

        Returns:
            Matching events, newest first.
        """
        async with self.session_factory() as s:
            stmt = select(AuditRow)
            if query:
                escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
                pattern = f"%{escaped}%"
                stmt = stmt.where(
                    or_(
                        AuditRow.event.like(pattern, escape="\\"),
                        AuditRow.details.like(pattern, escape="\\"),
                    )
                )
            stmt = stmt.order_by(AuditRow.timestamp.desc(), AuditRow.id.desc()).limit(limit)
            result = await s.execute(stmt)
            return [_row_to_event(row) for row in result.scalars().all()]


@dataclass(frozen=True)
class SqlRepoBundle:
    """Convenience bundle of all SQL repositories for dependency injection."""

    requests: SqlRequestRepository
    audit: SqlAuditRepository


def build_sql_repos(*, session_factory: async_sessionmaker[AsyncSession]) -> SqlRepoBundle:
    """Build a ``SqlRepoBundle`` from a session factory."""
    return SqlRepoBundle(
        requests=SqlRequestRepository(session_factory=session_factory),
        audit=SqlAuditRepository(session_factory=session_factory),
    )
