"""One-time code issuance and verification.

Codes are short strings drawn uniformly from ``A-Z0-9`` with a CSPRNG and are
never stored in clear. The stored form is an argon2id hash produced by
``argon2-cffi``; verification goes through the hasher's own verifier.

Hashing is deliberately slow, so the async helpers run it in a worker thread
to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import secrets
import string
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

OTP_ALPHABET = string.ascii_uppercase + string.digits
DEFAULT_OTP_LENGTH = 6


class OneTimeCodeService:
    """Generate, hash and verify one-time codes."""

    def __init__(self, *, length: int = DEFAULT_OTP_LENGTH, hasher: Optional[PasswordHasher] = None) -> None:
        if length < 1:
            raise ValueError("One-time code length must be positive")
        self.length = length
        self._hasher = hasher or PasswordHasher()

    def generate(self, length: Optional[int] = None) -> str:
        n = length or self.length
        return "".join(secrets.choice(OTP_ALPHABET) for _ in range(n))

    def hash(self, code: str) -> str:
        return self._hasher.hash(code)

    def verify(self, code: str, hashed: str) -> bool:
        """Return True only if ``code`` matches ``hashed``.

        A mismatch, a malformed hash or an empty input all verify as False.
        """
        if not code or not hashed:
            return False
        try:
            return self._hasher.verify(hashed, code)
        except (VerificationError, InvalidHashError):
            return False

    async def hash_async(self, code: str) -> str:
        return await asyncio.to_thread(self.hash, code)

    async def verify_async(self, code: str, hashed: str) -> bool:
        return await asyncio.to_thread(self.verify, code, hashed)
