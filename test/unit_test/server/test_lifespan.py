"""Unit tests for application start-up and shutdown."""

import httpx
import pytest

from bastion_ai.plugin_client.errors import PluginRegistryError
from bastion_ai.server.core.config import DatabaseConfig, PluginsConfig, SecurityConfig, Settings
from bastion_ai.server.main import create_app


def _settings(tmp_path, urls) -> Settings:
    return Settings(
        database=DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path}/bastion.db"),
        security=SecurityConfig(agent_api_key="agent-key", session_secret="secret"),
        plugins=PluginsConfig(urls=urls),
    )


async def test_startup_loads_plugins_and_starts_sweeper(tmp_path, plugin, plugin_http, password_hasher) -> None:
    app = create_app(
        _settings(tmp_path, {plugin.name: plugin.url}),
        http_client=plugin_http(plugin),
        password_hasher=password_hasher,
    )

    async with app.router.lifespan_context(app):
        runtime = app.state.runtime
        assert runtime.registry.loaded
        assert runtime.sweeper.running
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://localhost") as c:
            assert (await c.get("/health")).json() == {"status": "ok"}
            assert (await c.get("/version")).json() == {"version": "0.1.0", "plugins": {"github": "1.0.0"}}

    assert not runtime.sweeper.running
    assert (tmp_path / "bastion.db").exists()


async def test_unreachable_plugin_aborts_startup(tmp_path, plugin, plugin_http, password_hasher) -> None:
    app = create_app(
        _settings(tmp_path, {plugin.name: plugin.url, "ghost": "http://mock-ghost"}),
        http_client=plugin_http(plugin),
        password_hasher=password_hasher,
    )

    with pytest.raises(PluginRegistryError):
        async with app.router.lifespan_context(app):
            pass

    assert not hasattr(app.state, "runtime")
