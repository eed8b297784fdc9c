"""Domain schemas for approval requests, audit events and confirmation outcomes."""

from .base import BaseSchema
from .domain import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    ApprovalRequest,
    ApprovalRequestView,
    AuditEvent,
    AuditEventKind,
    ConfirmationResult,
    RequestStatus,
    RiskLevel,
)

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "ApprovalRequest",
    "ApprovalRequestView",
    "AuditEvent",
    "AuditEventKind",
    "BaseSchema",
    "ConfirmationResult",
    "RequestStatus",
    "RiskLevel",
]
