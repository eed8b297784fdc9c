"""
Exception handlers for approval engine rejections and malformed bodies.

Engine errors carry their own HTTP status and machine-readable code, so the
handler only renders them. Body validation failures are client errors and are
reported as 400 rather than FastAPI's default 422.
"""

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from bastion_ai.approval_core.errors import ApprovalError
from bastion_ai.core.logging_config import get_logger

logger = get_logger(__name__)


async def approval_error_handler(request: Request, exc: ApprovalError) -> JSONResponse:
    logger.info(
        f"{request.method} {request.url.path} rejected with {exc.status_code} {exc.code}: {exc.message}",
        extra={"request_id": exc.request_id, "error_code": exc.code},
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "invalid_request", "detail": jsonable_encoder(exc.errors())},
    )
