"""
Credential checks for the two authentication domains.

- Agent domain: ``Authorization: Bearer <agent api key>``, compared in
  constant time.
- Admin domain: ``Authorization: Bearer <approver password>`` verified
  against the stored argon2 hash, or a session cookie issued by
  ``POST /api/login``. Session tokens are ``<nonce>.<expires>.<signature>``
  signed with HMAC-SHA256 and are stateless.

Every failure is the same 401 ``{"detail": "unauthorized"}`` so callers learn
nothing about why their credentials were refused.
"""

import asyncio
import hashlib
import hmac
import secrets
import time
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from bastion_ai.core.logging_config import get_logger
from bastion_ai.server.core.constant import SESSION_COOKIE_NAME

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


def check_agent_key(presented: Optional[str], expected: str) -> bool:
    if not presented or not expected:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())


def verify_password(hasher: PasswordHasher, password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


async def verify_password_async(hasher: PasswordHasher, password: str, password_hash: str) -> bool:
    return await asyncio.to_thread(verify_password, hasher, password, password_hash)


def _sign(secret: str, payload: str) -> str:
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def issue_session_token(secret: str, ttl_seconds: int, *, now: Optional[float] = None) -> str:
    """Create a signed admin session token valid for ``ttl_seconds``."""
    expires = int((now if now is not None else time.time()) + ttl_seconds)
    payload = f"{secrets.token_urlsafe(16)}.{expires}"
    return f"{payload}.{_sign(secret, payload)}"


def verify_session_token(secret: str, token: Optional[str], *, now: Optional[float] = None) -> bool:
    if not token or not secret:
        return False
    try:
        nonce, expires, signature = token.split(".")
        expires_at = int(expires)
    except ValueError:
        return False
    if not hmac.compare_digest(signature, _sign(secret, f"{nonce}.{expires}")):
        return False
    return (now if now is not None else time.time()) < expires_at


def session_cookie(request: Request) -> Optional[str]:
    return request.cookies.get(SESSION_COOKIE_NAME)


def bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials
