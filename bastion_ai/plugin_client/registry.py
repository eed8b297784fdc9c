"""Registry of the plugins configured for this gateway.

The registry maps a plugin name to its base URL and, after ``load()``, to the
manifest the plugin published. Loading is all-or-nothing: a single plugin that
is unreachable or serves a malformed manifest aborts the load, and the gateway
refuses to start. Once loaded the registry is read-only and may be shared by
concurrent handlers without locking.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

import httpx

from .client import PluginClient
from .errors import PluginApiError, PluginRegistryError
from .models import PluginAction, PluginManifest

logger = logging.getLogger(__name__)


class PluginRegistry:
    def __init__(
        self,
        urls: Mapping[str, str],
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._urls: Mapping[str, str] = MappingProxyType({name: url.rstrip("/") for name, url in urls.items()})
        self._owns_client = client is None
        self._http = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._clients: Dict[str, PluginClient] = {
            name: PluginClient(name, url, timeout=timeout, client=self._http) for name, url in self._urls.items()
        }
        self._manifests: Mapping[str, PluginManifest] = MappingProxyType({})
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def plugins(self) -> List[str]:
        return sorted(self._urls)

    async def load(self) -> None:
        """Fetch every plugin manifest.

        Raises:
            PluginRegistryError: If any manifest cannot be fetched or parsed, or
                if the registry was already loaded.
        """
        if self._loaded:
            raise PluginRegistryError("Plugin registry is already loaded")
        manifests: Dict[str, PluginManifest] = {}
        for name, client in self._clients.items():
            try:
                manifest = await client.manifest()
            except PluginApiError as e:
                raise PluginRegistryError(f"Failed to load manifest for {name}: {e}") from e
            if manifest.name != name:
                logger.warning("Plugin %s published a manifest named %s", name, manifest.name)
            manifests[name] = manifest
            logger.info(
                "Loaded plugin %s v%s from %s with %d action(s)",
                name,
                manifest.version,
                self._urls[name],
                len(manifest.actions),
            )
        self._manifests = MappingProxyType(manifests)
        self._loaded = True

    def manifest(self, plugin: str) -> Optional[PluginManifest]:
        return self._manifests.get(plugin)

    def action(self, plugin: str, action: str) -> Optional[PluginAction]:
        manifest = self._manifests.get(plugin)
        if manifest is None:
            return None
        return manifest.actions.get(action)

    def has_action(self, plugin: str, action: str) -> bool:
        return self.action(plugin, action) is not None

    def resolve_address(self, plugin: str) -> Optional[str]:
        return self._urls.get(plugin)

    def client_for(self, plugin: str) -> Optional[PluginClient]:
        return self._clients.get(plugin)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
