"""
Configuration Settings.

This module defines the gateway configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.

Environment variables use the ``BASTION_`` prefix and double underscore (__) as
delimiters for nested properties. For example:
``BASTION_SECURITY__AGENT_API_KEY`` maps to ``settings.security.agent_api_key``
and ``BASTION_PLUGINS__URLS='{"github": "http://localhost:8201"}'`` maps to
``settings.plugins.urls``.
"""

import secrets
from functools import lru_cache
from typing import Dict

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# =====================================================================
# Grouped Configuration Models
# =====================================================================


class ServerConfig(BaseModel):
    """HTTP server and logging configuration."""

    host: str = Field(default="0.0.0.0", description="Gateway host address to bind to")
    port: int = Field(default=8100, description="Gateway port number")
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    log_format: str = Field(default="detailed", description="Log format (simple, detailed, json)")
    log_file_dir: str = Field(default="logs", description="Directory for the log file")
    enable_file_logging: bool = Field(default=False, description="Also write logs to a file")

    model_config = {"populate_by_name": True}


class DatabaseConfig(BaseModel):
    """Request store configuration."""

    url: str = Field(
        default="sqlite+aiosqlite:///./bastion.db",
        description="Async SQLAlchemy URL; postgres:// URLs are rewritten to use asyncpg",
    )
    create_tables: bool = Field(
        default=True,
        description="Create missing tables on startup (use Alembic migrations in production)",
    )

    model_config = {"populate_by_name": True}


class SecurityConfig(BaseModel):
    """Credentials for the agent and admin domains."""

    agent_api_key: str = Field(default="", description="Shared bearer token presented by the agent")
    admin_password_hash: str = Field(default="", description="argon2 hash of the approver password")
    session_secret: str = Field(
        default_factory=lambda: secrets.token_hex(32),
        description="HMAC key for admin session cookies (random per process by default)",
    )
    session_ttl_seconds: int = Field(default=3600, gt=0, description="Lifetime of an admin session cookie")
    session_cookie_secure: bool = Field(default=False, description="Mark the session cookie Secure")

    model_config = {"populate_by_name": True}


class ApprovalsConfig(BaseModel):
    """Approval life-cycle configuration."""

    request_ttl_seconds: int = Field(default=300, gt=0, description="Time to approve and time to confirm")
    otp_length: int = Field(default=6, ge=4, description="Length of the one-time code")
    otp_max_attempts: int = Field(default=3, gt=0, description="Failed verifications allowed per code")
    sweep_interval_seconds: float = Field(default=1.0, gt=0, description="Delay between expiry sweeps")

    model_config = {"populate_by_name": True}


class PluginsConfig(BaseModel):
    """Plugin registry configuration."""

    urls: Dict[str, str] = Field(default_factory=dict, description="Plugin name to base URL")
    timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for every outbound plugin call")

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Gateway settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    model_config = SettingsConfigDict(
        env_prefix="BASTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    server: ServerConfig = Field(default_factory=ServerConfig, description="HTTP server configuration")
    database: DatabaseConfig = Field(default_factory=DatabaseConfig, description="Database configuration")
    security: SecurityConfig = Field(default_factory=SecurityConfig, description="Credential configuration")
    approvals: ApprovalsConfig = Field(default_factory=ApprovalsConfig, description="Approval configuration")
    plugins: PluginsConfig = Field(default_factory=PluginsConfig, description="Plugin configuration")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
