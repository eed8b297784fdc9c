from __future__ import annotations

import logging

import pytest

from bastion_ai.plugin_client.errors import PluginRegistryError
from bastion_ai.plugin_client.registry import PluginRegistry


@pytest.mark.asyncio
async def test_load_collects_every_manifest(make_plugin, plugin_http) -> None:
    github = make_plugin("github")
    slack = make_plugin("slack", actions={"post_message": {"risk": "write"}, "read_channel": {"risk": "read"}})
    registry = PluginRegistry({"slack": slack.url, "github": github.url + "/"}, client=plugin_http(github, slack))

    assert not registry.loaded
    await registry.load()

    assert registry.loaded
    assert registry.plugins == ["github", "slack"]
    assert registry.manifest("slack").version == "1.0.0"
    assert registry.has_action("github", "create_repo")
    assert registry.has_action("slack", "read_channel")
    assert not registry.has_action("github", "post_message")
    assert not registry.has_action("gitlab", "create_repo")
    assert registry.action("gitlab", "create_repo") is None
    assert registry.resolve_address("github") == "http://mock-github"
    assert registry.resolve_address("gitlab") is None
    assert registry.client_for("slack").name == "slack"
    assert registry.client_for("gitlab") is None


@pytest.mark.asyncio
async def test_one_unreachable_plugin_fails_the_whole_load(make_plugin, plugin_http) -> None:
    github = make_plugin("github")
    registry = PluginRegistry({"github": github.url, "ghost": "http://mock-ghost"}, client=plugin_http(github))

    with pytest.raises(PluginRegistryError, match="ghost"):
        await registry.load()

    assert not registry.loaded
    assert registry.manifest("github") is None


@pytest.mark.asyncio
async def test_failing_manifest_endpoint_fails_the_load(plugin, plugin_http) -> None:
    plugin.manifest_status = 503
    registry = PluginRegistry({plugin.name: plugin.url}, client=plugin_http(plugin))
    with pytest.raises(PluginRegistryError):
        await registry.load()


@pytest.mark.asyncio
async def test_second_load_is_refused(plugin, plugin_http) -> None:
    registry = PluginRegistry({plugin.name: plugin.url}, client=plugin_http(plugin))
    await registry.load()
    with pytest.raises(PluginRegistryError, match="already loaded"):
        await registry.load()


@pytest.mark.asyncio
async def test_manifest_name_mismatch_is_logged(make_plugin, plugin_http, caplog: pytest.LogCaptureFixture) -> None:
    plugin = make_plugin("github")
    registry = PluginRegistry({"gh": plugin.url}, client=plugin_http(plugin))

    with caplog.at_level(logging.WARNING, logger="bastion_ai.plugin_client.registry"):
        await registry.load()

    assert registry.has_action("gh", "create_repo")
    assert "published a manifest named github" in caplog.text


@pytest.mark.asyncio
async def test_empty_registry_loads(plugin_http) -> None:
    registry = PluginRegistry({}, client=plugin_http())
    await registry.load()
    assert registry.loaded
    assert registry.plugins == []
