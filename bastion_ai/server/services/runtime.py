"""
Gateway Runtime.

Wires the approval engine, the plugin registry, the expiry sweeper and the
database for one application instance, and owns their start-up and shutdown.
The runtime is stored on ``app.state.runtime`` by the application lifespan.
"""

from dataclasses import dataclass
from typing import Optional

import httpx
from argon2 import PasswordHasher

from bastion_ai.approval_core.engine import ApprovalEngine
from bastion_ai.approval_core.otp import OneTimeCodeService
from bastion_ai.approval_core.repos.sql import build_sql_repos
from bastion_ai.approval_core.sweeper import ExpirySweeper
from bastion_ai.core.logging_config import get_logger
from bastion_ai.plugin_client.registry import PluginRegistry
from bastion_ai.server.core.config import Settings
from bastion_ai.server.core.database import Database, build_database, init_db

logger = get_logger(__name__)


@dataclass
class GatewayRuntime:
    settings: Settings
    database: Database
    registry: PluginRegistry
    engine: ApprovalEngine
    sweeper: ExpirySweeper
    password_hasher: PasswordHasher

    async def start(self) -> None:
        """
        Bring the gateway up.

        The database is prepared first, then every plugin manifest is loaded;
        a plugin that cannot be loaded aborts start-up. The sweeper only starts
        once the registry is complete.
        """
        await init_db(self.database, self.settings)
        await self.registry.load()
        logger.info("Plugin registry loaded: %s", ", ".join(self.registry.plugins) or "(none)")
        if not self.settings.security.agent_api_key:
            logger.warning("No agent API key configured; the agent endpoints will refuse every call")
        if not self.settings.security.admin_password_hash:
            logger.warning("No admin password hash configured; the admin endpoints will refuse every call")
        self.sweeper.start()

    async def stop(self) -> None:
        await self.sweeper.stop()
        await self.registry.aclose()
        await self.database.dispose()


def build_runtime(
    settings: Settings,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    password_hasher: Optional[PasswordHasher] = None,
) -> GatewayRuntime:
    """
    Build a runtime from settings.

    Args:
        settings: Gateway settings.
        http_client: Optional shared client for plugin calls (tests pass one backed by ``httpx.MockTransport``).
        password_hasher: Optional argon2 hasher used for both one-time codes and the admin password.
    """
    hasher = password_hasher or PasswordHasher()
    database = build_database(settings)
    repos = build_sql_repos(session_factory=database.session_factory)
    registry = PluginRegistry(
        settings.plugins.urls,
        timeout=settings.plugins.timeout_seconds,
        client=http_client,
    )
    engine = ApprovalEngine(
        requests=repos.requests,
        audit=repos.audit,
        registry=registry,
        otp=OneTimeCodeService(length=settings.approvals.otp_length, hasher=hasher),
        request_ttl_seconds=settings.approvals.request_ttl_seconds,
        max_otp_attempts=settings.approvals.otp_max_attempts,
    )
    sweeper = ExpirySweeper(
        repos.requests,
        repos.audit,
        interval_seconds=settings.approvals.sweep_interval_seconds,
    )
    return GatewayRuntime(
        settings=settings,
        database=database,
        registry=registry,
        engine=engine,
        sweeper=sweeper,
        password_hasher=hasher,
    )
