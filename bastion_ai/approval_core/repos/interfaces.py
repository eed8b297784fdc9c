from __future__ import annotations

"""Repository interface contracts.

The approval engine and the expiry sweeper depend on these Protocols instead
of concrete persistence implementations.

Contract guidelines
-------------------

- All methods are async.
- Implementations must not leak sessions or transactions to callers.
- The request repository is the only writer of request rows. Every status
  change goes through ``compare_and_set_status`` so that two concurrent actors
  can never both move the same request out of the same status.
- The audit repository is append-only.
"""

from typing import Any, List, Optional, Protocol

from ..schemas.domain import ApprovalRequest, AuditEvent, RequestStatus


class RequestRepository(Protocol):
    """Persist and transition approval requests."""

    async def create(self, request: ApprovalRequest) -> None:
        """
        Insert a new approval request.

        Args:
            request: The request to persist.

        Raises:
            DuplicateRequestError: If a request with the same id already exists.
        """
        ...

    async def get(self, request_id: str) -> Optional[ApprovalRequest]:
        """
        Retrieve a request by its id, or ``None`` when it does not exist.
        """
        ...

    async def list_active(self) -> List[ApprovalRequest]:
        """
        List PENDING and APPROVED requests, oldest first.
        """
        ...

    async def compare_and_set_status(
        self,
        request_id: str,
        expected: RequestStatus,
        to: RequestStatus,
        **fields: Any,
    ) -> bool:
        """
        Move a request from ``expected`` to ``to`` in a single conditional write.

        Args:
            request_id: The request to transition.
            expected: The status the request must currently have.
            to: The status to move into.
            fields: Additional columns written in the same statement.

        Returns:
            True if exactly one row changed, False otherwise.
        """
        ...

    async def update_fields(self, request_id: str, **fields: Any) -> bool:
        """
        Update non-status columns of a request.

        Raises:
            ValueError: If ``status`` is among the fields.
        """
        ...

    async def record_failed_attempt(self, request_id: str, max_attempts: int) -> Optional[int]:
        """
        Atomically increment the failed verification counter.

        The increment only applies while the request is APPROVED and still has
        attempts left.

        Returns:
            The new attempt count, or None when the guard did not match.
        """
        ...


class AuditRepository(Protocol):
    """Append-only log of request transitions."""

    async def append(self, event: AuditEvent) -> AuditEvent:
        """
        Append an event and return it with its assigned id.
        """
        ...

    async def list_for_request(self, request_id: str) -> List[AuditEvent]:
        """
        List the events of one request in the order they were written.
        """
        ...

    async def search(self, query: str = "", limit: int = 100) -> List[AuditEvent]:
        """
        Search events whose kind or details contain ``query``, newest first.
        """
        ...
