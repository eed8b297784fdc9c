"""
Main Application Entry Point.

This module builds the FastAPI application, registers middleware, exception
handlers and routers, and manages the gateway runtime through the lifespan.
"""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from argon2 import PasswordHasher
from fastapi import FastAPI

from bastion_ai.core.logging_config import get_logger, setup_logging
from bastion_ai.core.monitoring import initialize_logfire

from .api import admin, agent, health
from .core import constant
from .core.config import Settings, get_settings
from .exception_handlers import setup_exception_handlers
from .middleware import LogfireMiddleware
from .services.runtime import build_runtime

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    password_hasher: Optional[PasswordHasher] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Gateway settings; defaults to the process-wide settings.
        http_client: Optional client for plugin calls.
        password_hasher: Optional argon2 hasher for codes and the admin password.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Manage application lifespan events.

        Start-up fails, and the server does not accept traffic, if the
        database cannot be prepared or any plugin manifest cannot be loaded.
        """
        logger.info("Starting up Bastion-AI Gateway...")
        runtime = build_runtime(settings, http_client=http_client, password_hasher=password_hasher)
        try:
            await runtime.start()
        except Exception as e:
            logger.error(f"Gateway start-up failed: {e}", exc_info=True)
            await runtime.stop()
            raise
        app.state.runtime = runtime
        logger.info("Gateway ready")

        yield

        logger.info("Shutting down Bastion-AI Gateway...")
        await runtime.stop()

    app = FastAPI(
        title=constant.PROJECT_NAME,
        description="""
        Bastion-AI Gateway API

        A human-approval gateway between an autonomous agent and action-executing plugins.
        Agents submit proposed actions; a human approves them and hands out a one-time code
        that the agent must present before the action is executed.
        """,
        version=constant.API_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(LogfireMiddleware)
    setup_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(agent.router, tags=["agent"])
    app.include_router(admin.login_router, prefix=constant.ADMIN_API_PREFIX, tags=["admin"])
    app.include_router(admin.router, prefix=constant.ADMIN_API_PREFIX, tags=["admin"])

    initialize_logfire(app)
    return app


def run() -> None:
    """Run the gateway with uvicorn using the configured host and port."""
    settings = get_settings()
    setup_logging(log_level=settings.server.log_level)
    uvicorn.run(
        "bastion_ai.server.main:app",
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.server.log_level.lower(),
    )


setup_logging()
app = create_app()
