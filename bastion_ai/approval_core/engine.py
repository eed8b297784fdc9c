"""Approval request life cycle.

``ApprovalEngine`` owns the state machine of an approval request::

    PENDING -> APPROVED -> CONFIRMED -> EXECUTING -> COMPLETED | ERROR
    PENDING -> REJECTED
    PENDING | APPROVED -> EXPIRED

Every transition is a conditional write against the request store followed by
one audit event. A conditional write that changes nothing means another actor
(a second approver, a concurrent confirm, the expiry sweeper) got there first;
the engine reports that as a conflict or as expiry and never retries.

Plugin calls happen at two points only: validation and preview during
``submit`` and execution after a successful ``confirm``. Execution failures of
any kind land the request in ERROR with the failure message; they are never
retried.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, NoReturn, Optional

from bastion_ai.core.monitoring import log_transition
from bastion_ai.plugin_client.errors import PluginApiError
from bastion_ai.plugin_client.models import ExecutionResult
from bastion_ai.plugin_client.registry import PluginRegistry

from . import audit as audit_trail
from .errors import (
    BadRequestError,
    InvalidOtpError,
    InvalidStateError,
    OtpAttemptsExceededError,
    RequestExpiredError,
    RequestNotFoundError,
    SubmissionRejectedError,
)
from .otp import OneTimeCodeService
from .repos.interfaces import AuditRepository, RequestRepository
from .schemas.domain import (
    ApprovalRequest,
    ApprovalRequestView,
    AuditEvent,
    AuditEventKind,
    ConfirmationResult,
    RequestStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_EXECUTION_ERROR = "execution failed"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalEngine:
    """Drive approval requests through their life cycle."""

    def __init__(
        self,
        *,
        requests: RequestRepository,
        audit: AuditRepository,
        registry: PluginRegistry,
        otp: Optional[OneTimeCodeService] = None,
        request_ttl_seconds: int = 300,
        max_otp_attempts: int = 3,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.requests = requests
        self.audit = audit
        self.registry = registry
        self.otp = otp or OneTimeCodeService()
        self.request_ttl_seconds = request_ttl_seconds
        self.max_otp_attempts = max_otp_attempts
        self._clock = clock

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get(self, request_id: str) -> ApprovalRequestView:
        return (await self._load(request_id)).to_view()

    async def list_active(self) -> List[ApprovalRequestView]:
        return [r.to_view() for r in await self.requests.list_active()]

    async def search_audit(self, query: str = "", limit: int = 100) -> List[AuditEvent]:
        return await self.audit.search(query, limit=limit)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def submit(self, plugin: str, action: str, params: Any) -> ApprovalRequestView:
        """
        Register a proposed action as a PENDING request.

        The plugin must declare the action, accept the params and render a
        preview. Nothing is stored unless all three succeed.

        Raises:
            SubmissionRejectedError: On an unknown action, failed validation or failed preview.
        """
        if not plugin or not action:
            raise SubmissionRejectedError("plugin and action are required")
        if not self.registry.has_action(plugin, action):
            raise SubmissionRejectedError("unknown plugin action", errors=[f"{plugin}.{action}"])
        client = self.registry.client_for(plugin)
        if client is None:
            raise SubmissionRejectedError("plugin not configured", errors=[plugin])

        try:
            validation = await client.validate(action, params)
        except PluginApiError as e:
            logger.warning("Validation call for %s.%s failed: %s", plugin, action, e)
            raise SubmissionRejectedError("plugin validation failed", errors=[str(e)]) from e
        if not validation.valid:
            raise SubmissionRejectedError("validation failed", errors=validation.errors or ["invalid params"])

        try:
            preview = await client.preview(action, params)
        except PluginApiError as e:
            logger.warning("Preview call for %s.%s failed: %s", plugin, action, e)
            raise SubmissionRejectedError("preview required and failed", errors=[str(e)]) from e

        request = ApprovalRequest(
            plugin=plugin,
            action=action,
            params=params,
            preview=preview.render(),
            created_at=self._clock(),
            ttl_seconds=self.request_ttl_seconds,
        )
        await self.requests.create(request)
        logger.info("Request %s created for %s.%s", request.id, plugin, action)
        log_transition(request.id, "", RequestStatus.pending.value, plugin=plugin, action=action)
        await audit_trail.record(
            self.audit, request.id, AuditEventKind.request_created, {"plugin": plugin, "action": action}
        )
        return request.to_view()

    async def approve(self, request_id: str, actor: str = "human") -> str:
        """
        Approve a PENDING request and return its one-time code.

        The code is returned exactly once; only its hash is stored.

        Raises:
            RequestNotFoundError: If the request does not exist.
            InvalidStateError: If the request is not PENDING.
            RequestExpiredError: If the time to approve has elapsed or the request already expired.
        """
        request = await self._load(request_id)
        self._require(request, RequestStatus.pending)
        now = self._clock()
        await self._reject_if_stale(request, now)

        code = self.otp.generate()
        hashed = await self.otp.hash_async(code)
        moved = await self.requests.compare_and_set_status(
            request_id,
            RequestStatus.pending,
            RequestStatus.approved,
            otp_hash=hashed,
            otp_attempts=0,
            decided_at=now,
        )
        if not moved:
            await self._raise_conflict(request_id)

        logger.info("Request %s approved by %s", request_id, actor)
        log_transition(request_id, RequestStatus.pending.value, RequestStatus.approved.value, actor=actor)
        await audit_trail.record(self.audit, request_id, AuditEventKind.request_approved, {"by": actor})
        return code

    async def reject(self, request_id: str, reason: str = "") -> None:
        """
        Reject a PENDING request.

        Raises:
            RequestNotFoundError: If the request does not exist.
            InvalidStateError: If the request is not PENDING.
            RequestExpiredError: If the time to approve has elapsed or the request already expired.
        """
        request = await self._load(request_id)
        self._require(request, RequestStatus.pending)
        now = self._clock()
        await self._reject_if_stale(request, now)

        moved = await self.requests.compare_and_set_status(
            request_id, RequestStatus.pending, RequestStatus.rejected, decided_at=now
        )
        if not moved:
            await self._raise_conflict(request_id)

        logger.info("Request %s rejected", request_id)
        log_transition(request_id, RequestStatus.pending.value, RequestStatus.rejected.value)
        await audit_trail.record(self.audit, request_id, AuditEventKind.request_rejected, {"reason": reason or ""})

    async def confirm(self, request_id: str, code: str) -> ConfirmationResult:
        """
        Verify the one-time code and execute the approved action.

        On a valid code the request moves APPROVED -> CONFIRMED -> EXECUTING and
        the plugin is asked to execute. The outcome is stored as COMPLETED or
        ERROR and returned; an ERROR outcome is a result, not an exception.

        Raises:
            BadRequestError: If no code was presented.
            RequestNotFoundError: If the request does not exist.
            InvalidStateError: If the request is not APPROVED or lost a race.
            OtpAttemptsExceededError: If all verification attempts are used up.
            RequestExpiredError: If the time to confirm has elapsed or the request already expired.
            InvalidOtpError: If the code is wrong.
        """
        if not code:
            raise BadRequestError("otp required", request_id=request_id)
        request = await self._load(request_id)
        self._require(request, RequestStatus.approved)
        if not request.otp_hash:
            raise InvalidStateError("invalid state", request_id=request_id)
        if request.otp_attempts >= self.max_otp_attempts:
            raise OtpAttemptsExceededError(request_id)
        now = self._clock()
        await self._reject_if_stale(request, now)

        if not await self.otp.verify_async(code, request.otp_hash):
            await self._fail_verification(request_id)

        moved = await self.requests.compare_and_set_status(
            request_id,
            RequestStatus.approved,
            RequestStatus.confirmed,
            otp_hash=None,
            confirmed_at=self._clock(),
        )
        if not moved:
            await self._raise_conflict(request_id)
        logger.info("Request %s confirmed", request_id)
        log_transition(request_id, RequestStatus.approved.value, RequestStatus.confirmed.value)
        await audit_trail.record(self.audit, request_id, AuditEventKind.request_confirmed)

        if not await self.requests.compare_and_set_status(
            request_id, RequestStatus.confirmed, RequestStatus.executing
        ):
            await self._raise_conflict(request_id)
        log_transition(request_id, RequestStatus.confirmed.value, RequestStatus.executing.value)

        outcome = await self._execute(request)
        return await self._finish(request, outcome)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load(self, request_id: str) -> ApprovalRequest:
        request = await self.requests.get(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    @staticmethod
    def _require(request: ApprovalRequest, status: RequestStatus) -> None:
        if request.status == RequestStatus.expired:
            raise RequestExpiredError(request.id)
        if request.status != status:
            raise InvalidStateError("invalid state", request_id=request.id)

    async def _reject_if_stale(self, request: ApprovalRequest, now: datetime) -> None:
        if not request.is_expired(now):
            return
        await audit_trail.expire_request(self.requests, self.audit, request)
        raise RequestExpiredError(request.id)

    async def _raise_conflict(self, request_id: str) -> NoReturn:
        current = await self.requests.get(request_id)
        if current is not None and current.status == RequestStatus.expired:
            raise RequestExpiredError(request_id)
        raise InvalidStateError("invalid state", request_id=request_id)

    async def _fail_verification(self, request_id: str) -> NoReturn:
        attempts = await self.requests.record_failed_attempt(request_id, self.max_otp_attempts)
        if attempts is None:
            # The guard failed: attempts ran out or the request moved on meanwhile.
            current = await self.requests.get(request_id)
            if (
                current is not None
                and current.status == RequestStatus.approved
                and current.otp_attempts >= self.max_otp_attempts
            ):
                raise OtpAttemptsExceededError(request_id)
            await self._raise_conflict(request_id)
        logger.info("Request %s failed verification (%s/%s)", request_id, attempts, self.max_otp_attempts)
        await audit_trail.record(self.audit, request_id, AuditEventKind.otp_failed, {"attempts": attempts})
        raise InvalidOtpError(request_id, attempts=attempts)

    async def _execute(self, request: ApprovalRequest) -> ExecutionResult:
        client = self.registry.client_for(request.plugin)
        if client is None:
            return ExecutionResult(success=False, error=f"plugin not configured: {request.plugin}")
        try:
            return await client.execute(request.action, request.params)
        except PluginApiError as e:
            logger.error("Execution of request %s failed: %s", request.id, e)
            return ExecutionResult(success=False, error=str(e))
        except Exception as e:
            logger.exception("Execution of request %s raised unexpectedly", request.id)
            return ExecutionResult(success=False, error=str(e) or type(e).__name__)

    async def _finish(self, request: ApprovalRequest, outcome: ExecutionResult) -> ConfirmationResult:
        finished_at = self._clock()
        if outcome.success:
            if not await self.requests.compare_and_set_status(
                request.id,
                RequestStatus.executing,
                RequestStatus.completed,
                result=outcome.result,
                executed_at=finished_at,
            ):
                await self._raise_conflict(request.id)
            logger.info("Request %s completed", request.id)
            log_transition(request.id, RequestStatus.executing.value, RequestStatus.completed.value)
            await audit_trail.record(
                self.audit, request.id, AuditEventKind.request_completed, {"result": outcome.result}
            )
            return ConfirmationResult(status=RequestStatus.completed, result=outcome.result)

        error = outcome.error or DEFAULT_EXECUTION_ERROR
        if not await self.requests.compare_and_set_status(
            request.id,
            RequestStatus.executing,
            RequestStatus.error,
            error=error,
            executed_at=finished_at,
        ):
            await self._raise_conflict(request.id)
        logger.warning("Request %s ended in error: %s", request.id, error)
        log_transition(request.id, RequestStatus.executing.value, RequestStatus.error.value, error=error)
        await audit_trail.record(self.audit, request.id, AuditEventKind.request_error, {"error": error})
        return ConfirmationResult(status=RequestStatus.error, error=error)
