"""Client side of the plugin action protocol.

Plugins are separate HTTP services exposing ``/manifest``, ``/validate``,
``/actions/{action}/preview``, ``/execute`` and ``/health``. This package
holds the async client for one plugin and the registry of all configured
plugins.
"""

from .client import PluginClient
from .errors import PluginApiError, PluginRegistryError
from .models import (
    ExecutionResult,
    PluginAction,
    PluginManifest,
    PreviewResult,
    ValidationResult,
)
from .registry import PluginRegistry

__all__ = [
    "ExecutionResult",
    "PluginAction",
    "PluginApiError",
    "PluginClient",
    "PluginManifest",
    "PluginRegistry",
    "PluginRegistryError",
    "PreviewResult",
    "ValidationResult",
]
