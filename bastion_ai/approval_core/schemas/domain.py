from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import Field

from .base import BaseSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RequestStatus(str, Enum):
    pending = "PENDING"
    approved = "APPROVED"
    confirmed = "CONFIRMED"
    executing = "EXECUTING"
    completed = "COMPLETED"
    rejected = "REJECTED"
    expired = "EXPIRED"
    error = "ERROR"


ACTIVE_STATUSES = (RequestStatus.pending, RequestStatus.approved)
TERMINAL_STATUSES = (
    RequestStatus.completed,
    RequestStatus.rejected,
    RequestStatus.expired,
    RequestStatus.error,
)


class AuditEventKind(str, Enum):
    request_created = "REQUEST_CREATED"
    request_approved = "REQUEST_APPROVED"
    request_rejected = "REQUEST_REJECTED"
    request_confirmed = "REQUEST_CONFIRMED"
    request_completed = "REQUEST_COMPLETED"
    request_error = "REQUEST_ERROR"
    request_expired = "REQUEST_EXPIRED"
    otp_failed = "OTP_FAILED"


class RiskLevel(str, Enum):
    read = "read"
    write = "write"
    destructive = "destructive"


class _RequestFields(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))

    plugin: str
    action: str
    params: Any = None
    preview: str

    status: RequestStatus = RequestStatus.pending
    otp_attempts: int = 0

    created_at: datetime = Field(default_factory=_utc_now)
    decided_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    executed_at: Optional[datetime] = None

    result: Any = None
    error: Optional[str] = None

    ttl_seconds: int = 300


class ApprovalRequestView(_RequestFields):
    """Read projection of an approval request without the one-time-code hash."""


class ApprovalRequest(_RequestFields):
    otp_hash: Optional[str] = None

    def expires_at(self) -> Optional[datetime]:
        """Deadline of the current wait, or ``None`` when nothing is awaited.

        A PENDING request waits for a human decision and is anchored on
        ``created_at``. An APPROVED request waits for the agent to present the
        code and is anchored on ``decided_at``.
        """
        if self.status == RequestStatus.pending:
            anchor = self.created_at
        elif self.status == RequestStatus.approved:
            anchor = self.decided_at or self.created_at
        else:
            return None
        return anchor + timedelta(seconds=self.ttl_seconds)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        deadline = self.expires_at()
        return deadline is not None and (now or _utc_now()) > deadline

    def to_view(self) -> ApprovalRequestView:
        return ApprovalRequestView.model_validate(self.model_dump(exclude={"otp_hash"}))


class AuditEvent(BaseSchema):
    id: Optional[int] = None
    request_id: str
    event: AuditEventKind
    timestamp: datetime = Field(default_factory=_utc_now)
    details: Dict[str, Any] = Field(default_factory=dict)


class ConfirmationResult(BaseSchema):
    """Outcome of a confirmed request once the plugin has been called."""

    status: RequestStatus
    result: Any = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RequestStatus.completed
