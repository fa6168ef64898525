"""
Consumer-side client for the ``/api/mods`` HTTP surface.

Keeps a small in-process cache of the provider list and of per-provider
categories and tags; everything else is fetched on every call.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from mods.models import (
    MultiProviderSearchResponse,
    ProviderInfo,
    UnifiedCategory,
    UnifiedDependency,
    UnifiedProject,
    UnifiedSearchParams,
    UnifiedSearchResponse,
    UnifiedTag,
)

logger = logging.getLogger(__name__)

API_PREFIX = "/api/mods"


class ModProviderApiError(Exception):
    """Non-2xx answer from the mod provider API."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def build_search_query(params: UnifiedSearchParams) -> Dict[str, str]:
    query: Dict[str, str] = {}
    if params.query:
        query["q"] = params.query
    if params.classification:
        query["classification"] = params.classification.value
    if params.categories:
        query["categories"] = ",".join(params.categories)
    if params.tags:
        query["tags"] = ",".join(params.tags)
    if params.game_version:
        query["gameVersion"] = params.game_version
    query["page"] = str(params.page)
    query["pageSize"] = str(params.page_size)
    if params.sort_by:
        query["sortBy"] = params.sort_by
    if params.sort_order:
        query["sortOrder"] = params.sort_order
    return query


def merge_search_results(response: MultiProviderSearchResponse) -> List[UnifiedProject]:
    """Flatten a multi-provider response into one list, provider order kept."""
    return [project for result in response.results for project in result.projects]


class ModProviderClient:
    def __init__(
        self,
        base_url: str = "",
        *,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout

        self._providers_cache: Optional[List[ProviderInfo]] = None
        self._categories_cache: Dict[str, List[UnifiedCategory]] = {}
        self._tags_cache: Dict[str, List[UnifiedTag]] = {}

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url}{API_PREFIX}{endpoint}"

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        response = await self._get_client().request(
            method, self._url(endpoint), headers=self._headers(), **kwargs
        )
        if response.is_success:
            return response

        message = f"HTTP {response.status_code}: {response.reason_phrase}"
        status_code = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message") or message
            status_code = body.get("statusCode") or status_code
        elif response.text:
            message = response.text

        logger.error(f"[ModProviderClient] {method} {endpoint} failed: {status_code} {message}")
        raise ModProviderApiError(status_code, message)

    async def _get_json(self, endpoint: str, params: Optional[Dict[str, str]] = None) -> Any:
        response = await self._request("GET", endpoint, params=params)
        return response.json()

    # Providers

    async def get_providers(self) -> List[ProviderInfo]:
        data = await self._get_json("/providers")
        return [ProviderInfo.model_validate(item) for item in data]

    async def configure_provider(self, provider_id: str, api_key: str) -> None:
        await self._request("POST", f"/providers/{provider_id}/configure", json={"apiKey": api_key})
        # Configured state changed server-side
        self.clear_providers_cache()

    # Search

    async def search_provider(
        self, provider_id: str, params: Optional[UnifiedSearchParams] = None
    ) -> UnifiedSearchResponse:
        query = build_search_query(params or UnifiedSearchParams())
        data = await self._get_json(f"/providers/{provider_id}/search", query)
        return UnifiedSearchResponse.model_validate(data)

    async def search_all(self, params: Optional[UnifiedSearchParams] = None) -> MultiProviderSearchResponse:
        query = build_search_query(params or UnifiedSearchParams())
        data = await self._get_json("/search", query)
        return MultiProviderSearchResponse.model_validate(data)

    # Projects

    async def get_project(self, provider_id: str, project_id: str) -> UnifiedProject:
        data = await self._get_json(f"/providers/{provider_id}/projects/{project_id}")
        return UnifiedProject.model_validate(data)

    async def get_project_by_slug(self, provider_id: str, slug: str) -> UnifiedProject:
        data = await self._get_json(f"/providers/{provider_id}/projects/slug/{slug}")
        return UnifiedProject.model_validate(data)

    async def get_categories(self, provider_id: str) -> List[UnifiedCategory]:
        data = await self._get_json(f"/providers/{provider_id}/categories")
        return [UnifiedCategory.model_validate(item) for item in data]

    async def get_tags(self, provider_id: str) -> List[UnifiedTag]:
        data = await self._get_json(f"/providers/{provider_id}/tags")
        return [UnifiedTag.model_validate(item) for item in data]

    async def get_version_dependencies(
        self, provider_id: str, project_id: str, version_id: str
    ) -> List[UnifiedDependency]:
        data = await self._get_json(
            f"/providers/{provider_id}/projects/{project_id}/versions/{version_id}/dependencies"
        )
        return [UnifiedDependency.model_validate(item) for item in data]

    def download_url(self, provider_id: str, project_id: str, version_id: str) -> str:
        return self._url(f"/providers/{provider_id}/projects/{project_id}/versions/{version_id}/download")

    async def download(self, provider_id: str, project_id: str, version_id: str) -> bytes:
        response = await self._request(
            "GET", f"/providers/{provider_id}/projects/{project_id}/versions/{version_id}/download"
        )
        return response.content

    # Cache

    async def get_cached_providers(self) -> List[ProviderInfo]:
        if self._providers_cache is None:
            self._providers_cache = await self.get_providers()
        return self._providers_cache

    async def get_cached_categories(self, provider_id: str) -> List[UnifiedCategory]:
        if provider_id not in self._categories_cache:
            self._categories_cache[provider_id] = await self.get_categories(provider_id)
        return self._categories_cache[provider_id]

    async def get_cached_tags(self, provider_id: str) -> List[UnifiedTag]:
        if provider_id not in self._tags_cache:
            self._tags_cache[provider_id] = await self.get_tags(provider_id)
        return self._tags_cache[provider_id]

    def clear_cache(self) -> None:
        self._providers_cache = None
        self._categories_cache.clear()
        self._tags_cache.clear()

    def clear_providers_cache(self) -> None:
        self._providers_cache = None

    async def get_configured_providers(self) -> List[ProviderInfo]:
        return [p for p in await self.get_cached_providers() if p.is_configured]

    async def has_configured_provider(self) -> bool:
        return any(p.is_configured for p in await self.get_cached_providers())

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
