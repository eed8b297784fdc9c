"""Error types raised by the approval engine.

Purpose:
- Give every rejected operation a typed exception instead of a status flag.
- Carry the HTTP status and a machine-readable ``code`` so the server layer
  can render responses without knowing engine internals.

Usage:
- Catch ``ApprovalError`` for any engine rejection and inspect ``status_code``
  or ``code``.
- ``DuplicateRequestError`` is a store-level failure and is not part of the
  HTTP taxonomy.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class ApprovalError(Exception):
    """Base error for rejected approval operations.

    Args:
        message: Human-readable error description.
        request_id: Optional id of the approval request involved.
    """

    status_code: int = 400
    code: str = "bad_request"

    def __init__(self, message: str, *, request_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.request_id = request_id

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.message}


class BadRequestError(ApprovalError):
    """Raised when a call is missing a required input (HTTP 400)."""


class SubmissionRejectedError(BadRequestError):
    """Raised when a submission names an unknown action or fails plugin checks.

    Args:
        message: Human-readable error description.
        errors: Reasons reported by the plugin, if any.
    """

    code = "invalid_submission"

    def __init__(self, message: str, *, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["errors"] = self.errors
        return payload


class RequestNotFoundError(ApprovalError):
    """Raised when the approval request does not exist (HTTP 404)."""

    status_code = 404
    code = "not_found"

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Approval request not found: {request_id}", request_id=request_id)


class InvalidStateError(ApprovalError):
    """Raised when the request is not in the status the operation requires (HTTP 409)."""

    status_code = 409
    code = "invalid_state"


class InvalidOtpError(ApprovalError):
    """Raised when the presented one-time code does not match (HTTP 401)."""

    status_code = 401
    code = "invalid_otp"

    def __init__(self, request_id: str, *, attempts: int) -> None:
        super().__init__("invalid otp", request_id=request_id)
        self.attempts = attempts


class OtpAttemptsExceededError(ApprovalError):
    """Raised once the request has used up its verification attempts (HTTP 403)."""

    status_code = 403
    code = "max_attempts_exceeded"

    def __init__(self, request_id: str) -> None:
        super().__init__("max attempts exceeded", request_id=request_id)


class RequestExpiredError(ApprovalError):
    """Raised when the request's time window has elapsed (HTTP 410)."""

    status_code = 410
    code = "expired"

    def __init__(self, request_id: str) -> None:
        super().__init__("expired", request_id=request_id)


class DuplicateRequestError(ValueError):
    """Raised by the request store when an id is inserted twice."""

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Approval request already exists: {request_id}")
        self.request_id = request_id
