"""Background expiry of stale approval requests.

The sweeper periodically lists active requests and force-expires every one
whose deadline has passed (see ``ApprovalRequest.expires_at``). It races with
request handlers through the same conditional writes they use: a request
that moved on in the meantime is skipped silently.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .audit import expire_request
from .repos.interfaces import AuditRepository, RequestRepository

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExpirySweeper:
    """Periodic task that expires stale requests.

    Args:
        requests: Request store to scan and transition.
        audit: Audit log for ``REQUEST_EXPIRED`` events.
        interval_seconds: Delay between two ticks.
        clock: Source of the current UTC time.
    """

    def __init__(
        self,
        requests: RequestRepository,
        audit: AuditRepository,
        *,
        interval_seconds: float = 1.0,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("Sweep interval must be positive")
        self.requests = requests
        self.audit = audit
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="bastion-expiry-sweeper")
        logger.info("Expiry sweeper started (interval=%ss)", self.interval_seconds)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Expiry sweeper stopped")

    async def run_once(self) -> List[str]:
        """Run a single sweep.

        Returns:
            Ids of the requests this tick moved to EXPIRED.
        """
        now = self._clock()
        expired: List[str] = []
        for request in await self.requests.list_active():
            if request.is_expired(now) and await expire_request(self.requests, self.audit, request):
                expired.append(request.id)
        if expired:
            logger.info("Expiry sweep expired %d request(s)", len(expired))
        return expired

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Expiry sweep failed")
