"""
Request Dependencies.

Provides the gateway runtime, the approval engine and the credential checks
for the agent and admin domains to API endpoints.
"""

from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials

from bastion_ai.approval_core.engine import ApprovalEngine
from bastion_ai.server.core.security import (
    bearer_scheme,
    bearer_token,
    check_agent_key,
    session_cookie,
    unauthorized,
    verify_password_async,
    verify_session_token,
)
from bastion_ai.server.services.runtime import GatewayRuntime


def get_runtime(request: Request) -> GatewayRuntime:
    return request.app.state.runtime


RuntimeDep = Annotated[GatewayRuntime, Depends(get_runtime)]


def get_engine(runtime: RuntimeDep) -> ApprovalEngine:
    return runtime.engine


EngineDep = Annotated[ApprovalEngine, Depends(get_engine)]


async def require_agent(
    runtime: RuntimeDep,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> None:
    if not check_agent_key(bearer_token(credentials), runtime.settings.security.agent_api_key):
        raise unauthorized()


async def require_admin(
    request: Request,
    runtime: RuntimeDep,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> None:
    security = runtime.settings.security
    if verify_session_token(security.session_secret, session_cookie(request)):
        return
    password = bearer_token(credentials)
    if password and await verify_password_async(runtime.password_hasher, password, security.admin_password_hash):
        return
    raise unauthorized()
