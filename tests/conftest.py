import json
import os
import sys
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

# Add parent directory to path to allow importing the application modules
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("MOD_SETTINGS_BACKEND", "memory")

from mods.models import UnifiedSearchParams, UnifiedSearchResponse  # noqa: E402
from mods.providers.base import ModProvider  # noqa: E402
from observability.logging import clear_secrets  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_log_secrets():
    yield
    clear_secrets()


class RecordingTransport:
    """
    Route table for httpx.MockTransport.

    Maps a URL path to a JSON payload, an (status, payload) tuple, or a
    callable taking the request. Every request is recorded.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = dict(routes or {})
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"message": f"no route for {request.url.path}"})
        if callable(route):
            return route(request)
        if isinstance(route, tuple):
            status, payload = route
            return httpx.Response(status, json=payload)
        return httpx.Response(200, json=route)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))

    def paths(self) -> List[str]:
        return [r.url.path for r in self.requests]

    def last(self, path: str) -> httpx.Request:
        return [r for r in self.requests if r.url.path == path][-1]


@pytest.fixture
def transport_factory() -> Callable[..., RecordingTransport]:
    return RecordingTransport


def json_body(response: httpx.Response) -> Any:
    return json.loads(response.content)


class FakeProvider(ModProvider):
    """In-process adapter for registry and service tests."""

    display_name = "Fake"

    def __init__(
        self,
        provider_id: str = "fake",
        *,
        total: int = 0,
        error: Optional[Exception] = None,
        configured: bool = True,
    ):
        super().__init__()
        self.id = provider_id
        self.display_name = provider_id.title()
        self.total = total
        self.error = error
        self.search_calls: List[UnifiedSearchParams] = []
        self.initialize_calls = 0
        if configured:
            self.api_key = f"{provider_id}-key"

    async def initialize(self, config):
        self.initialize_calls += 1
        await super().initialize(config)

    async def search_projects(self, params: UnifiedSearchParams) -> UnifiedSearchResponse:
        self.search_calls.append(params)
        if self.error is not None:
            raise self.error
        return UnifiedSearchResponse(
            projects=[],
            total=self.total,
            page=params.page,
            page_size=params.page_size,
            has_more=False,
            provider_id=self.id,
        )

    async def get_project(self, project_id):
        raise NotImplementedError

    async def get_categories(self):
        return []

    async def get_version_dependencies(self, project_id, version_id):
        return []

    async def download_version(self, project_id, version_id):
        raise NotImplementedError


@pytest.fixture
def fake_provider_factory() -> Callable[..., FakeProvider]:
    return FakeProvider
