"""Repository interfaces and SQL implementations for approval persistence.

The repository layer is the persistence boundary for the approval engine.

Responsibilities
----------------

- Provide a small set of async repository interfaces (Protocols) that the
  engine and the expiry sweeper depend on.
- Persist durable, auditable records:

  - approval requests and their life-cycle status,
  - the append-only audit log of every transition.

Design notes
------------

Status changes are compare-and-set operations: the caller names the status it
expects and the store applies the change only if the row still holds it. A
caller that loses the race is told so and decides how to report it; the store
never retries.
"""

from .interfaces import AuditRepository, RequestRepository
from .sql import (
    SqlAuditRepository,
    SqlRepoBundle,
    SqlRequestRepository,
    build_sql_repos,
    create_all,
    create_engine,
    create_sessionmaker,
)

__all__ = [
    "AuditRepository",
    "RequestRepository",
    "SqlAuditRepository",
    "SqlRepoBundle",
    "SqlRequestRepository",
    "build_sql_repos",
    "create_all",
    "create_engine",
    "create_sessionmaker",
]
