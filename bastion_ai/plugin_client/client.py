from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from .errors import PluginApiError
from .models import (
    ActionCall,
    ExecutionResult,
    PluginManifest,
    PreviewResult,
    ValidationResult,
)


def preview_query(params: Any) -> Dict[str, str]:
    """Flatten action params into preview query parameters.

    Booleans are lower-cased, nested values are JSON-encoded and ``None``
    values are dropped. Params that are not a mapping produce no query.
    """
    if not isinstance(params, dict):
        return {}
    query: Dict[str, str] = {}
    for k, v in params.items():
        if v is None:
            continue
        if isinstance(v, bool):
            query[str(k)] = str(v).lower()
        elif isinstance(v, (dict, list)):
            query[str(k)] = json.dumps(v, separators=(",", ":"))
        else:
            query[str(k)] = str(v)
    return query


class PluginClient:
    """
    Async HTTP client for one plugin speaking the action protocol.

    Responsibilities:
    - manifest
    - validate
    - preview
    - execute
    - health

    Every call is bounded by the client timeout. Transport failures, non-success
    responses and malformed bodies all surface as ``PluginApiError``.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.name = name
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._owns_client = client is None
        self._http = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._logger = logging.getLogger(__name__)

    async def _call(self, op: str, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        self._logger.debug("PluginClient.%s: %s %s plugin=%s", op, method, url, self.name)
        try:
            r = await self._http.request(method, url, timeout=self._timeout, **kwargs)
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise PluginApiError(
                f"Plugin {self.name} {op} failed: {e.response.status_code}",
                status_code=e.response.status_code,
                details=e.response.text,
            ) from e
        except httpx.HTTPError as e:
            raise PluginApiError(f"Plugin {self.name} {op} failed: {type(e).__name__}: {e}") from e
        try:
            return r.json()
        except ValueError as e:
            raise PluginApiError(
                f"Plugin {self.name} {op} returned a malformed body",
                status_code=r.status_code,
                details=r.text,
            ) from e

    def _parse(self, op: str, model: Any, data: Any) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise PluginApiError(f"Plugin {self.name} {op} returned an unexpected shape", details=data) from e

    async def manifest(self) -> PluginManifest:
        data = await self._call("manifest", "GET", "/manifest")
        manifest = self._parse("manifest", PluginManifest, data)
        self._logger.debug(
            "PluginClient.manifest: plugin=%s version=%s actions=%s",
            self.name,
            manifest.version,
            sorted(manifest.actions),
        )
        return manifest

    async def validate(self, action: str, params: Any) -> ValidationResult:
        body = ActionCall(action=action, params=params).model_dump(mode="json")
        data = await self._call("validate", "POST", "/validate", json=body)
        return self._parse("validate", ValidationResult, data)

    async def preview(self, action: str, params: Any) -> PreviewResult:
        query = preview_query(params)
        data = await self._call("preview", "GET", f"/actions/{action}/preview", params=query or None)
        return self._parse("preview", PreviewResult, data)

    async def execute(self, action: str, params: Any) -> ExecutionResult:
        body = ActionCall(action=action, params=params).model_dump(mode="json")
        try:
            data = await self._call("execute", "POST", "/execute", json=body)
        except PluginApiError as e:
            # A failing plugin may still describe its failure in the body.
            reported = self._reported_failure(e.details)
            if reported is None:
                raise
            return reported
        return self._parse("execute", ExecutionResult, data)

    @staticmethod
    def _reported_failure(details: Any) -> Optional[ExecutionResult]:
        if not isinstance(details, str) or not details:
            return None
        try:
            result = ExecutionResult.model_validate_json(details)
        except ValidationError:
            return None
        if result.success or not result.error:
            return None
        return result

    async def health(self) -> bool:
        try:
            await self._call("health", "GET", "/health")
        except PluginApiError as e:
            self._logger.warning("PluginClient.health: plugin=%s unhealthy: %s", self.name, e)
            return False
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
