from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from bastion_ai.approval_core.errors import DuplicateRequestError
from bastion_ai.approval_core.repos.sql import (
    SqlRepoBundle,
    build_sql_repos,
    create_all,
    create_engine,
    create_sessionmaker,
)
from bastion_ai.approval_core.schemas.domain import (
    ApprovalRequest,
    AuditEvent,
    AuditEventKind,
    RequestStatus,
)

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
async def repos(tmp_path) -> SqlRepoBundle:
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path}/bastion.db")
    await create_all(engine)
    try:
        yield build_sql_repos(session_factory=create_sessionmaker(engine))
    finally:
        await engine.dispose()


def _request(**overrides) -> ApprovalRequest:
    fields = dict(
        plugin="github",
        action="create_repo",
        params={"name": "repo", "private": True, "topics": ["a", "b"]},
        preview="Create repository",
        created_at=T0,
    )
    fields.update(overrides)
    return ApprovalRequest(**fields)


@pytest.mark.asyncio
async def test_create_and_get_round_trips_fields(repos: SqlRepoBundle) -> None:
    req = _request()
    await repos.requests.create(req)

    got = await repos.requests.get(req.id)
    assert got is not None
    assert got.id == req.id
    assert got.params == {"name": "repo", "private": True, "topics": ["a", "b"]}
    assert got.status == RequestStatus.pending
    assert got.created_at == T0
    assert got.created_at.tzinfo is not None
    assert got.otp_hash is None
    assert got.otp_attempts == 0


@pytest.mark.asyncio
async def test_get_missing_returns_none(repos: SqlRepoBundle) -> None:
    assert await repos.requests.get("does-not-exist") is None


@pytest.mark.asyncio
async def test_create_duplicate_id_raises(repos: SqlRepoBundle) -> None:
    req = _request()
    await repos.requests.create(req)
    with pytest.raises(DuplicateRequestError):
        await repos.requests.create(req)


@pytest.mark.asyncio
async def test_compare_and_set_status_moves_only_from_expected(repos: SqlRepoBundle) -> None:
    req = _request()
    await repos.requests.create(req)

    ok = await repos.requests.compare_and_set_status(
        req.id, RequestStatus.pending, RequestStatus.approved, otp_hash="h", decided_at=T0
    )
    assert ok is True
    again = await repos.requests.compare_and_set_status(req.id, RequestStatus.pending, RequestStatus.rejected)
    assert again is False

    got = await repos.requests.get(req.id)
    assert got.status == RequestStatus.approved
    assert got.otp_hash == "h"
    assert got.decided_at == T0


@pytest.mark.asyncio
async def test_compare_and_set_status_missing_request(repos: SqlRepoBundle) -> None:
    assert (
        await repos.requests.compare_and_set_status("missing", RequestStatus.pending, RequestStatus.approved) is False
    )


@pytest.mark.asyncio
async def test_concurrent_compare_and_set_has_one_winner(repos: SqlRepoBundle) -> None:
    req = _request()
    await repos.requests.create(req)

    results = await asyncio.gather(
        *[
            repos.requests.compare_and_set_status(req.id, RequestStatus.pending, RequestStatus.approved)
            for _ in range(5)
        ]
    )
    assert sorted(results) == [False, False, False, False, True]


@pytest.mark.asyncio
async def test_status_cannot_be_written_as_a_field(repos: SqlRepoBundle) -> None:
    req = _request()
    await repos.requests.create(req)
    with pytest.raises(ValueError):
        await repos.requests.update_fields(req.id, status="COMPLETED")
    with pytest.raises(ValueError):
        await repos.requests.compare_and_set_status(
            req.id, RequestStatus.pending, RequestStatus.approved, plugin="other"
        )


@pytest.mark.asyncio
async def test_update_fields(repos: SqlRepoBundle) -> None:
    req = _request()
    await repos.requests.create(req)

    assert await repos.requests.update_fields(req.id, error="boom") is True
    assert await repos.requests.update_fields("missing", error="boom") is False
    assert (await repos.requests.get(req.id)).error == "boom"


@pytest.mark.asyncio
async def test_record_failed_attempt_is_bounded(repos: SqlRepoBundle) -> None:
    req = _request(status=RequestStatus.approved, otp_hash="h", decided_at=T0)
    await repos.requests.create(req)

    assert await repos.requests.record_failed_attempt(req.id, 3) == 1
    assert await repos.requests.record_failed_attempt(req.id, 3) == 2
    assert await repos.requests.record_failed_attempt(req.id, 3) == 3
    assert await repos.requests.record_failed_attempt(req.id, 3) is None
    assert (await repos.requests.get(req.id)).otp_attempts == 3


@pytest.mark.asyncio
async def test_record_failed_attempt_requires_approved(repos: SqlRepoBundle) -> None:
    req = _request()
    await repos.requests.create(req)
    assert await repos.requests.record_failed_attempt(req.id, 3) is None
    assert (await repos.requests.get(req.id)).otp_attempts == 0


@pytest.mark.asyncio
async def test_list_active_returns_pending_and_approved_oldest_first(repos: SqlRepoBundle) -> None:
    newer = _request(created_at=T0 + timedelta(seconds=10))
    older = _request(created_at=T0, status=RequestStatus.approved, otp_hash="h", decided_at=T0)
    done = _request(created_at=T0 - timedelta(seconds=10), status=RequestStatus.completed)
    for r in (newer, older, done):
        await repos.requests.create(r)

    active = await repos.requests.list_active()
    assert [r.id for r in active] == [older.id, newer.id]


@pytest.mark.asyncio
async def test_audit_append_assigns_ids_and_lists_in_order(repos: SqlRepoBundle) -> None:
    first = await repos.audit.append(
        AuditEvent(request_id="r1", event=AuditEventKind.request_created, details={"plugin": "github"})
    )
    second = await repos.audit.append(
        AuditEvent(request_id="r1", event=AuditEventKind.request_approved, details={"by": "human"})
    )
    await repos.audit.append(AuditEvent(request_id="r2", event=AuditEventKind.request_created))

    assert first.id is not None and second.id is not None
    assert second.id > first.id

    events = await repos.audit.list_for_request("r1")
    assert [e.event for e in events] == [AuditEventKind.request_created, AuditEventKind.request_approved]
    assert events[0].details == {"plugin": "github"}
    assert events[0].timestamp.tzinfo is not None


@pytest.mark.asyncio
async def test_audit_search_matches_kind_and_details_newest_first(repos: SqlRepoBundle) -> None:
    await repos.audit.append(
        AuditEvent(
            request_id="r1",
            event=AuditEventKind.request_created,
            timestamp=T0,
            details={"plugin": "github", "action": "create_repo"},
        )
    )
    await repos.audit.append(
        AuditEvent(request_id="r1", event=AuditEventKind.otp_failed, timestamp=T0 + timedelta(seconds=1))
    )
    await repos.audit.append(
        AuditEvent(
            request_id="r2",
            event=AuditEventKind.request_created,
            timestamp=T0 + timedelta(seconds=2),
            details={"plugin": "slack", "action": "post"},
        )
    )

    everything = await repos.audit.search("")
    assert [e.request_id for e in everything] == ["r2", "r1", "r1"]

    by_kind = await repos.audit.search("OTP_FAILED")
    assert [e.event for e in by_kind] == [AuditEventKind.otp_failed]

    by_details = await repos.audit.search("create_repo")
    assert [e.request_id for e in by_details] == ["r1"]

    assert len(await repos.audit.search("", limit=2)) == 2


@pytest.mark.asyncio
async def test_audit_search_treats_wildcards_literally(repos: SqlRepoBundle) -> None:
    await repos.audit.append(
        AuditEvent(request_id="r1", event=AuditEventKind.request_rejected, details={"reason": "100% wrong"})
    )
    await repos.audit.append(
        AuditEvent(request_id="r2", event=AuditEventKind.request_rejected, details={"reason": "looks fine"})
    )

    hits = await repos.audit.search("%")
    assert [e.request_id for e in hits] == ["r1"]


async def test_audit_search_matches_non_ascii_details(repos: SqlRepoBundle) -> None:
    await repos.audit.append(
        AuditEvent(
            request_id="r1",
            event=AuditEventKind.request_rejected,
            details={"reason": "falsches Repo für Müller"},
        )
    )

    hits = await repos.audit.search("Müller")

    assert [e.request_id for e in hits] == ["r1"]
    assert hits[0].details == {"reason": "falsches Repo für Müller"}
