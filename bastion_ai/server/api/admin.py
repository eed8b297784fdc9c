"""
Admin Endpoints.

The human approver logs in, reviews active requests, approves or rejects them
and searches the audit trail. Everything except ``POST /api/login`` requires
the approver credential (bearer password or session cookie).
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response

from bastion_ai.approval_core.errors import BadRequestError
from bastion_ai.approval_core.schemas.domain import ApprovalRequestView, AuditEvent
from bastion_ai.core.logging_config import get_logger
from bastion_ai.server.core.constant import AUDIT_SEARCH_LIMIT, SESSION_COOKIE_NAME
from bastion_ai.server.core.security import issue_session_token, unauthorized, verify_password_async
from bastion_ai.server.schemas import (
    ApproveResponse,
    ErrorResponse,
    LoginBody,
    RejectBody,
    StatusResponse,
)
from bastion_ai.server.services.deps import EngineDep, RuntimeDep, require_admin

logger = get_logger(__name__)

login_router = APIRouter()
router = APIRouter(dependencies=[Depends(require_admin)])


@login_router.post(
    "/login",
    summary="Log In",
    description="Exchange the approver password for a session cookie.",
    responses={400: {"model": ErrorResponse}, 401: {"description": "Unauthorized"}},
)
async def login(body: LoginBody, response: Response, runtime: RuntimeDep):
    """
    Log in as the approver.

    On success a signed, expiring ``bastion_session`` cookie is set.
    """
    if not body.password:
        raise BadRequestError("password required")
    security = runtime.settings.security
    if not await verify_password_async(runtime.password_hasher, body.password, security.admin_password_hash):
        logger.warning("Rejected admin login attempt")
        raise unauthorized()
    response.set_cookie(
        SESSION_COOKIE_NAME,
        issue_session_token(security.session_secret, security.session_ttl_seconds),
        max_age=security.session_ttl_seconds,
        httponly=True,
        samesite="strict",
        secure=security.session_cookie_secure,
    )
    return {"ok": True}


@router.get(
    "/requests/pending",
    response_model=List[ApprovalRequestView],
    summary="List Active Requests",
    description="List PENDING and APPROVED requests, oldest first.",
)
async def list_pending(engine: EngineDep):
    return await engine.list_active()


@router.get(
    "/requests/{request_id}",
    response_model=ApprovalRequestView,
    summary="Get Request",
    responses={404: {"model": ErrorResponse}},
)
async def get_request(request_id: str, engine: EngineDep):
    return await engine.get(request_id)


@router.post(
    "/requests/{request_id}/approve",
    response_model=ApproveResponse,
    summary="Approve Request",
    description="Approve a PENDING request and receive its one-time code.",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 410: {"model": ErrorResponse}},
)
async def approve_request(request_id: str, engine: EngineDep):
    """
    Approve a request.

    The returned code is the only copy in clear; hand it to the agent out of band.
    """
    return ApproveResponse(otp=await engine.approve(request_id))


@router.post(
    "/requests/{request_id}/reject",
    response_model=StatusResponse,
    summary="Reject Request",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 410: {"model": ErrorResponse}},
)
async def reject_request(request_id: str, engine: EngineDep, body: Optional[RejectBody] = None):
    await engine.reject(request_id, reason=(body.reason if body else None) or "")
    return StatusResponse(status="rejected")


@router.get(
    "/audit",
    response_model=List[AuditEvent],
    summary="Search Audit Log",
    description="Up to 100 most recent audit events whose kind or details contain the query.",
)
async def search_audit(engine: EngineDep, q: str = Query(default="", description="Substring to search for")):
    return await engine.search_audit(q, limit=AUDIT_SEARCH_LIMIT)
