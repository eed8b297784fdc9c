"""Error types specific to the plugin protocol layer.

Purpose:
- Provide typed exceptions thrown by ``PluginClient`` and ``PluginRegistry``.
- Expose HTTP-oriented context (status code, response body) for diagnosis.

Usage:
- Catch ``PluginApiError`` around any single plugin call.
- ``PluginRegistryError`` is raised at startup when the plugin set cannot be
  loaded; it is fatal for the gateway.
"""

from __future__ import annotations

from typing import Any, Optional


class PluginApiError(Exception):
    """Base error for plugin call failures.

    Args:
        message: Human-readable error description.
        status_code: Optional HTTP status code associated with the failure.
        details: Optional structured payload from the plugin (e.g., response body).
    """
    def __init__(self, message: str, *, status_code: Optional[int] = None, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class PluginRegistryError(Exception):
    """Raised when the plugin registry cannot be loaded or is misused."""
