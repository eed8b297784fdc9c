from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx
import pytest
from argon2 import PasswordHasher

# Load dotenv files early so test fixtures can read settings via os.getenv
try:  # pragma: no cover
    from dotenv import load_dotenv

    TEST_ROOT = Path(__file__).resolve().parent
    load_dotenv(TEST_ROOT / ".env", override=False)
except Exception:
    pass


@pytest.fixture(autouse=True)
def _global_offline_http_guard(monkeypatch: pytest.MonkeyPatch):
    allowed_prefixes: Iterable[str] = (
        "http://mock",
        "https://mock",
        "http://localhost",
        "http://127.0.0.1",
        "http://0.0.0.0",
        "/",  # Allow relative paths (used by ASGI transport)
    )

    orig_sync = httpx._client.Client.request
    orig_async = httpx._client.AsyncClient.request

    def _is_allowed(url_str: str) -> bool:
        return any(url_str.startswith(p) for p in allowed_prefixes)

    def offline_sync(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return orig_sync(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard: {url_str}")

    async def offline_async(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return await orig_async(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard (async): {url_str}")

    monkeypatch.setattr(httpx._client.Client, "request", offline_sync, raising=True)
    monkeypatch.setattr(httpx._client.AsyncClient, "request", offline_async, raising=True)


@pytest.fixture(scope="session")
def password_hasher() -> PasswordHasher:
    """Cheap argon2 parameters so hashing does not dominate test time."""
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


class FakePlugin:
    """Answer the plugin protocol for one plugin at ``http://mock-<name>``.

    Each endpoint's answer can be changed per test; every request received is
    kept in ``calls``.
    """

    def __init__(self, name: str = "github", actions: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self.name = name
        self.actions = actions or {
            "create_repo": {"description": "Create a repository", "risk": "write", "params_schema": {}},
        }
        self.manifest_status = 200
        self.valid = True
        self.errors: Optional[List[str]] = None
        self.validate_status = 200
        self.preview_status = 200
        self.preview_body: Dict[str, Any] = {"summary": "Create repository", "details": "owner/repo (private)"}
        self.execute_status = 200
        self.execute_body: Any = {"success": True, "result": {"url": "https://example.invalid/owner/repo"}}
        self.execute_exception: Optional[Exception] = None
        self.calls: List[httpx.Request] = []

    @property
    def host(self) -> str:
        return f"mock-{self.name}"

    @property
    def url(self) -> str:
        return f"http://{self.host}"

    def calls_to(self, path_suffix: str) -> List[httpx.Request]:
        return [c for c in self.calls if c.url.path.endswith(path_suffix)]

    @staticmethod
    def body_of(request: httpx.Request) -> Any:
        return json.loads(request.content.decode())

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        if path == "/manifest":
            if self.manifest_status != 200:
                return httpx.Response(self.manifest_status, text="unavailable")
            return httpx.Response(
                200,
                json={"name": self.name, "version": "1.0.0", "description": "fake", "actions": self.actions},
            )
        if path == "/validate":
            if self.validate_status != 200:
                return httpx.Response(self.validate_status, text="validator down")
            body: Dict[str, Any] = {"valid": self.valid}
            if self.errors is not None:
                body["errors"] = self.errors
            return httpx.Response(200, json=body)
        if path.startswith("/actions/") and path.endswith("/preview"):
            if self.preview_status != 200:
                return httpx.Response(self.preview_status, json={"error": "cannot preview"})
            return httpx.Response(200, json=self.preview_body)
        if path == "/execute":
            if self.execute_exception is not None:
                raise self.execute_exception
            if isinstance(self.execute_body, str):
                return httpx.Response(self.execute_status, text=self.execute_body)
            return httpx.Response(self.execute_status, json=self.execute_body)
        if path == "/health":
            return httpx.Response(200, json={"status": "ok"})
        return httpx.Response(404, json={"error": "not found"})


def _plugin_transport(*plugins: FakePlugin) -> httpx.MockTransport:
    by_host = {p.host: p for p in plugins}

    def handler(request: httpx.Request) -> httpx.Response:
        plugin = by_host.get(request.url.host)
        if plugin is None:
            raise httpx.ConnectError(f"no plugin at {request.url.host}", request=request)
        return plugin.handle(request)

    return httpx.MockTransport(handler)


@pytest.fixture
def plugin() -> FakePlugin:
    """A ``github`` plugin declaring ``create_repo``."""
    return FakePlugin()


@pytest.fixture
def make_plugin() -> Callable[..., FakePlugin]:
    return FakePlugin


@pytest.fixture
async def plugin_http():
    """Factory for ``httpx.AsyncClient`` instances routed to fake plugins."""
    clients: List[httpx.AsyncClient] = []

    def _make(*plugins: FakePlugin) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=_plugin_transport(*plugins))
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()
