"""
Agent Endpoints.

The agent submits proposed actions, presents one-time codes and polls request
status. Every endpoint requires the agent bearer token.
"""

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from bastion_ai.approval_core.schemas.domain import ApprovalRequestView
from bastion_ai.server.schemas import (
    ConfirmRequestBody,
    ConfirmResponse,
    ErrorResponse,
    SubmitRequestBody,
    SubmitResponse,
)
from bastion_ai.server.services.deps import EngineDep, require_agent

router = APIRouter(dependencies=[Depends(require_agent)])


@router.post(
    "/request",
    response_model=SubmitResponse,
    summary="Submit Action",
    description="Propose a plugin action for human approval.",
    responses={400: {"model": ErrorResponse}, 401: {"description": "Unauthorized"}},
)
async def submit_request(body: SubmitRequestBody, engine: EngineDep):
    """
    Submit a proposed action.

    The plugin validates the parameters and renders a preview before the
    request is stored as PENDING.
    """
    view = await engine.submit(body.plugin, body.action, body.params)
    return SubmitResponse(request_id=view.id)


@router.post(
    "/request/{request_id}/confirm",
    summary="Confirm Action",
    description="Present the one-time code and execute the approved action.",
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        410: {"model": ErrorResponse},
        200: {"model": ConfirmResponse},
        500: {"model": ConfirmResponse},
    },
)
async def confirm_request(request_id: str, body: ConfirmRequestBody, engine: EngineDep):
    """
    Confirm an approved request.

    Answers 200 when the plugin completed the action and 500 with the captured
    error when it did not.
    """
    outcome = await engine.confirm(request_id, body.otp or "")
    if outcome.succeeded:
        return JSONResponse(content=jsonable_encoder({"status": "completed", "result": outcome.result}))
    return JSONResponse(status_code=500, content={"status": "error", "error": outcome.error})


@router.get(
    "/request/{request_id}",
    response_model=ApprovalRequestView,
    summary="Get Request",
    description="Read the current state of an approval request.",
    responses={404: {"model": ErrorResponse}},
)
async def get_request(request_id: str, engine: EngineDep):
    return await engine.get(request_id)
