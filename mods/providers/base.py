"""Base class for mod provider adapters."""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, FrozenSet, List, Mapping, Optional

import httpx

from exceptions import (
    ProviderNotConfiguredError,
    UnsupportedOperationError,
    UpstreamError,
    map_upstream_status,
)
from mods.models import (
    ProviderCapability,
    ProviderConfig,
    ProviderInfo,
    UnifiedCategory,
    UnifiedDependency,
    UnifiedProject,
    UnifiedSearchParams,
    UnifiedSearchResponse,
    UnifiedTag,
)
from mods.streams import DownloadStream

logger = logging.getLogger(__name__)

try:
    DEFAULT_TIMEOUT_SECONDS = float(os.getenv("MOD_PROVIDER_TIMEOUT_SECONDS", "30.0"))
except ValueError:
    DEFAULT_TIMEOUT_SECONDS = 30.0


class ModProvider(ABC):
    """
    One marketplace behind the unified contract.

    Subclasses set the identity attributes, the credential header and the
    optional ``capabilities`` they implement. All adapter state (credential,
    discovered upstream ids, cached lookups) lives on the instance.
    """

    id: str
    display_name: str
    icon_url: Optional[str] = None
    description: Optional[str] = None
    requires_api_key: bool = True
    capabilities: FrozenSet[ProviderCapability] = frozenset()

    api_key_header: str = "x-api-key"
    default_base_url: str = ""

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.api_key: Optional[str] = None
        self.timeout: float = DEFAULT_TIMEOUT_SECONDS
        self.rate_limit: Optional[int] = None
        self._client = client
        self._owns_client = client is None

    @property
    def log_tag(self) -> str:
        return f"[{type(self).__name__}]"

    # Capability query

    def supports(self, capability: ProviderCapability) -> bool:
        return capability in self.capabilities

    def info(self) -> ProviderInfo:
        return ProviderInfo(
            id=self.id,
            display_name=self.display_name,
            icon_url=self.icon_url,
            requires_api_key=self.requires_api_key,
            is_configured=self.is_configured(),
            description=self.description,
        )

    # Configuration

    async def initialize(self, config: ProviderConfig) -> None:
        """Store credentials and client hints. Safe to call repeatedly."""
        if config.api_key:
            self.api_key = config.api_key
        if config.rate_limit is not None:
            self.rate_limit = config.rate_limit
        if config.timeout and config.timeout != self.timeout:
            self.timeout = config.timeout
            if self._owns_client and self._client is not None:
                await self._client.aclose()
                self._client = None
        logger.info(f"{self.log_tag} Initialized{' with API key' if self.api_key else ''}")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def set_api_key(self, api_key: str) -> None:
        self.api_key = api_key
        logger.info(f"{self.log_tag} API key updated")

    # HTTP plumbing

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
            self._owns_client = True
        return self._client

    def _require_api_key(self) -> str:
        if not self.api_key:
            raise ProviderNotConfiguredError(self.id)
        return self.api_key

    def _auth_headers(self) -> Dict[str, str]:
        return {self.api_key_header: self._require_api_key()}

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}{path}"

    @staticmethod
    def _error_message(text: str) -> str:
        try:
            payload = json.loads(text)
        except ValueError:
            return text
        if isinstance(payload, Mapping) and payload.get("message"):
            return str(payload["message"])
        return text

    async def _request_json(self, path: str, *, params: Optional[Mapping[str, Any]] = None) -> Any:
        headers = self._auth_headers()
        url = self._url(path)
        logger.info(f"{self.log_tag} Fetching: {url}")

        try:
            response = await self._get_client().get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"{self.display_name} request failed: {type(e).__name__}", provider=self.id
            ) from e

        if response.is_error:
            text = response.text
            logger.error(f"{self.log_tag} Error response: {text[:500]}")
            raise map_upstream_status(response.status_code, self.id, self._error_message(text))

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"{self.display_name} returned a malformed response body", provider=self.id
            ) from e

    async def _open_stream(self, url: str) -> DownloadStream:
        headers = self._auth_headers()
        logger.info(f"{self.log_tag} Downloading: {url}")
        client = self._get_client()
        request = client.build_request("GET", url, headers=headers)

        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"{self.display_name} download failed: {type(e).__name__}", provider=self.id
            ) from e

        if response.is_error:
            await response.aread()
            await response.aclose()
            logger.error(f"{self.log_tag} Download error: HTTP {response.status_code}")
            raise map_upstream_status(response.status_code, self.id, "Download failed")

        return DownloadStream(response)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # Required operations

    @abstractmethod
    async def search_projects(self, params: UnifiedSearchParams) -> UnifiedSearchResponse:
        ...

    @abstractmethod
    async def get_project(self, project_id: str) -> UnifiedProject:
        ...

    @abstractmethod
    async def get_categories(self) -> List[UnifiedCategory]:
        ...

    @abstractmethod
    async def get_version_dependencies(
        self, project_id: str, version_id: str
    ) -> List[UnifiedDependency]:
        """Advisory lookup; implementations return [] on upstream failure."""

    @abstractmethod
    async def download_version(self, project_id: str, version_id: str) -> DownloadStream:
        ...

    # Optional operations, gated by ``capabilities``

    async def get_project_by_slug(self, slug: str) -> UnifiedProject:
        raise UnsupportedOperationError(self.id, "slug-based lookup")

    async def get_tags(self) -> List[UnifiedTag]:
        raise UnsupportedOperationError(self.id, "tags")

    def get_download_url(self, project_id: str, version_id: str) -> Optional[str]:
        return None
