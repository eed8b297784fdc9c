"""Unit tests for environment-driven settings."""

import os

import pytest
from pydantic import ValidationError

from bastion_ai.server.core.config import ApprovalsConfig, Settings


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Run from an empty directory with no BASTION_* variables set."""
    for key in list(os.environ):
        if key.startswith("BASTION_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


def test_defaults(clean_env) -> None:
    settings = Settings()
    assert settings.server.port == 8100
    assert settings.database.url == "sqlite+aiosqlite:///./bastion.db"
    assert settings.approvals.request_ttl_seconds == 300
    assert settings.approvals.otp_length == 6
    assert settings.approvals.otp_max_attempts == 3
    assert settings.security.agent_api_key == ""
    assert settings.plugins.urls == {}
    assert len(settings.security.session_secret) == 64


def test_nested_environment_variables(clean_env, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BASTION_SECURITY__AGENT_API_KEY", "agent-key")
    monkeypatch.setenv("BASTION_APPROVALS__REQUEST_TTL_SECONDS", "120")
    monkeypatch.setenv("BASTION_PLUGINS__URLS", '{"github": "http://localhost:8201"}')
    monkeypatch.setenv("BASTION_DATABASE__URL", "postgresql://u:p@db/bastion")

    settings = Settings()

    assert settings.security.agent_api_key == "agent-key"
    assert settings.approvals.request_ttl_seconds == 120
    assert settings.plugins.urls == {"github": "http://localhost:8201"}
    assert settings.database.url == "postgresql://u:p@db/bastion"


def test_dotenv_file_is_read(clean_env, tmp_path) -> None:
    (tmp_path / ".env").write_text("BASTION_SERVER__PORT=9000\n")
    assert Settings().server.port == 9000


@pytest.mark.parametrize("field,value", [("otp_length", 3), ("request_ttl_seconds", 0), ("otp_max_attempts", 0)])
def test_approval_bounds(field, value) -> None:
    with pytest.raises(ValidationError):
        ApprovalsConfig(**{field: value})
