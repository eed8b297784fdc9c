"""Audit trail helpers shared by the engine and the sweeper."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .repos.interfaces import AuditRepository, RequestRepository
from .schemas.domain import ApprovalRequest, AuditEvent, AuditEventKind, RequestStatus

logger = logging.getLogger(__name__)


async def record(
    audit: AuditRepository,
    request_id: str,
    kind: AuditEventKind,
    details: Optional[Dict[str, Any]] = None,
) -> Optional[AuditEvent]:
    """Append one audit event for a transition that has already committed.

    A failed write is logged and does not undo the transition.
    """
    try:
        return await audit.append(AuditEvent(request_id=request_id, event=kind, details=details or {}))
    except Exception:
        logger.exception("Failed to write audit event %s for request %s", kind.value, request_id)
        return None


async def expire_request(
    requests: RequestRepository,
    audit: AuditRepository,
    request: ApprovalRequest,
) -> bool:
    """Force a stale request into EXPIRED.

    Returns:
        True if this caller performed the transition, False if another actor
        moved the request first.
    """
    previous = request.status
    moved = await requests.compare_and_set_status(request.id, previous, RequestStatus.expired, otp_hash=None)
    if not moved:
        return False
    logger.info("Request %s expired from %s", request.id, previous.value)
    await record(audit, request.id, AuditEventKind.request_expired, {"from": previous.value})
    return True
