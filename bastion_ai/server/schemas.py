"""
Request and response bodies of the HTTP surface.

Domain objects (``ApprovalRequestView``, ``AuditEvent``) are returned as-is;
the models here only describe what the endpoints accept and the small
envelopes they answer with.
"""

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubmitRequestBody(BaseModel):
    model_config = ConfigDict(extra="forbid")

    plugin: str = Field(..., min_length=1, description="Name of a configured plugin", examples=["github"])
    action: str = Field(..., min_length=1, description="Action declared in the plugin manifest", examples=["create_repo"])
    params: Any = Field(..., description="Opaque action arguments forwarded to the plugin", examples=[{"name": "repo"}])


class SubmitResponse(BaseModel):
    request_id: str = Field(..., description="Identifier of the new approval request")
    status: Literal["pending"] = "pending"


class ConfirmRequestBody(BaseModel):
    otp: Optional[str] = Field(default=None, description="One-time code handed to the approver")


class ConfirmResponse(BaseModel):
    status: Literal["completed", "error"]
    result: Any = None
    error: Optional[str] = None


class LoginBody(BaseModel):
    password: Optional[str] = Field(default=None, description="Approver password")


class RejectBody(BaseModel):
    reason: Optional[str] = Field(default=None, description="Why the request was rejected", examples=["wrong repository"])


class ApproveResponse(BaseModel):
    otp: str = Field(..., description="One-time code; shown once and never stored in clear")


class StatusResponse(BaseModel):
    status: str


class ErrorResponse(BaseModel):
    error: str
    detail: Any = None
    errors: Optional[List[str]] = None
