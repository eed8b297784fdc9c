"""
Health Check Endpoints.

This module provides basic system status endpoints (health, version)
used for monitoring and deployment verification. They require no credentials.
"""

from fastapi import APIRouter

from bastion_ai.server.core.constant import API_VERSION
from bastion_ai.server.services.deps import RuntimeDep

router = APIRouter()


@router.get(
    "/health",
    summary="Health Check",
    description="Check the operational status of the gateway.",
    response_description="Status object.",
)
async def health_check():
    """
    Health check endpoint.

    Returns a simple status indicator to confirm the server is running and reachable.
    """
    return {"status": "ok"}


@router.get(
    "/version",
    summary="Get Version",
    description="Retrieve version information for the gateway and its loaded plugins.",
    response_description="Version object.",
)
async def version(runtime: RuntimeDep):
    """
    Get gateway version.

    Also lists the loaded plugins with the version each published in its manifest.
    """
    plugins = {}
    for name in runtime.registry.plugins:
        manifest = runtime.registry.manifest(name)
        plugins[name] = manifest.version if manifest else None
    return {"version": API_VERSION, "plugins": plugins}
