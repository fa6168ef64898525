"""Mod provider service: the single entry point callers depend on."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable, List, NamedTuple, Optional

from exceptions import (
    ProviderNotConfiguredError,
    ProviderNotFoundError,
    ResourceNotFoundError,
    UnsupportedOperationError,
)
from mods.constants import api_key_setting
from mods.models import (
    MultiProviderSearchResponse,
    ProviderCapability,
    ProviderConfig,
    ProviderInfo,
    UnifiedCategory,
    UnifiedDependency,
    UnifiedModMetadata,
    UnifiedProject,
    UnifiedSearchParams,
    UnifiedSearchResponse,
    UnifiedTag,
)
from mods.providers import CurseForgeProvider, ModProvider, ModtaleProvider
from mods.providers.base import DEFAULT_TIMEOUT_SECONDS
from mods.registry import ModProviderRegistry
from mods.streams import DownloadStream
from observability.logging import register_secret
from services.settings import SettingsStore

logger = logging.getLogger(__name__)


class InstallationDownload(NamedTuple):
    stream: DownloadStream
    metadata: UnifiedModMetadata


def default_providers() -> List[ModProvider]:
    return [ModtaleProvider(), CurseForgeProvider()]


class ModProviderService:
    """
    Coordinates the settings store, the registry and the adapters.

    Every per-provider operation first checks that the provider exists and is
    configured, so an unconfigured provider is reported as such instead of as
    a network failure.
    """

    def __init__(
        self,
        settings: SettingsStore,
        *,
        registry: Optional[ModProviderRegistry] = None,
        provider_factory: Callable[[], Iterable[ModProvider]] = default_providers,
        timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.settings = settings
        self.registry = registry or ModProviderRegistry()
        self._provider_factory = provider_factory
        self.timeout = timeout
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Register the known providers and apply stored API keys. Runs once."""
        async with self._init_lock:
            if self._initialized:
                return

            logger.info("[ModProviderService] Initializing...")
            for provider in self._provider_factory():
                self.registry.register(provider)

            await self._load_provider_configs()

            self._initialized = True
            logger.info(
                "[ModProviderService] Initialized with providers: "
                + ", ".join(p.id for p in self.registry.get_all())
            )

    def _config(self, api_key: str) -> ProviderConfig:
        return ProviderConfig(api_key=api_key, timeout=self.timeout)

    async def _load_provider_configs(self) -> None:
        for provider in self.registry.get_all():
            api_key = await self.settings.get(api_key_setting(provider.id))
            if not api_key:
                continue
            register_secret(api_key)
            try:
                await provider.initialize(self._config(api_key))
            except Exception as e:
                logger.error(
                    f"[ModProviderService] Failed to initialize {provider.id}: {type(e).__name__}: {e}"
                )

    # Lookup

    def get_providers(self) -> List[ProviderInfo]:
        return self.registry.get_provider_info()

    def get_provider(self, provider_id: str) -> Optional[ModProvider]:
        return self.registry.get(provider_id)

    def has_provider(self, provider_id: str) -> bool:
        return self.registry.has(provider_id)

    def _require_provider(self, provider_id: str) -> ModProvider:
        provider = self.registry.get(provider_id)
        if provider is None:
            raise ProviderNotFoundError(provider_id)
        return provider

    def _require_configured(self, provider_id: str) -> ModProvider:
        provider = self._require_provider(provider_id)
        if not provider.is_configured():
            raise ProviderNotConfiguredError(provider_id)
        return provider

    # Configuration

    async def set_api_key(self, provider_id: str, api_key: str, actor: Optional[str] = None) -> None:
        provider = self._require_provider(provider_id)
        register_secret(api_key)

        await self.settings.set(api_key_setting(provider_id), api_key, actor)
        provider.set_api_key(api_key)
        # Re-run discovery that depends on the credential
        await provider.initialize(self._config(api_key))

        logger.info(f"[ModProviderService] API key updated for provider: {provider_id}")

    # Reads

    async def search(self, provider_id: str, params: UnifiedSearchParams) -> UnifiedSearchResponse:
        provider = self._require_configured(provider_id)
        return await provider.search_projects(params)

    async def search_all(self, params: UnifiedSearchParams) -> MultiProviderSearchResponse:
        return await self.registry.search_all(params)

    async def get_project(self, provider_id: str, project_id: str) -> UnifiedProject:
        provider = self._require_configured(provider_id)
        return await provider.get_project(project_id)

    async def get_project_by_slug(self, provider_id: str, slug: str) -> UnifiedProject:
        provider = self._require_configured(provider_id)
        if not provider.supports(ProviderCapability.PROJECT_BY_SLUG):
            raise UnsupportedOperationError(provider_id, "slug-based lookup")
        return await provider.get_project_by_slug(slug)

    async def get_categories(self, provider_id: str) -> List[UnifiedCategory]:
        provider = self._require_configured(provider_id)
        return await provider.get_categories()

    async def get_tags(self, provider_id: str) -> List[UnifiedTag]:
        provider = self._require_configured(provider_id)
        if not provider.supports(ProviderCapability.TAGS):
            return []
        return await provider.get_tags()

    async def get_version_dependencies(
        self, provider_id: str, project_id: str, version_id: str
    ) -> List[UnifiedDependency]:
        provider = self._require_configured(provider_id)
        return await provider.get_version_dependencies(project_id, version_id)

    def get_download_url(self, provider_id: str, project_id: str, version_id: str) -> Optional[str]:
        """Direct link when the provider allows hot-linking, else None."""
        provider = self._require_configured(provider_id)
        if not provider.supports(ProviderCapability.DIRECT_DOWNLOAD_URL):
            return None
        return provider.get_download_url(project_id, version_id)

    async def download_version(self, provider_id: str, project_id: str, version_id: str) -> DownloadStream:
        provider = self._require_configured(provider_id)
        return await provider.download_version(project_id, version_id)

    async def download_for_installation(
        self, provider_id: str, project_id: str, version_id: str
    ) -> InstallationDownload:
        """
        Download a version and describe what is being installed.

        Falls back to the project's latest version when ``version_id`` is not
        among its versions; the metadata names the version actually fetched.
        """
        provider = self._require_configured(provider_id)

        project = await provider.get_project(project_id)
        version = project.find_version(version_id) or project.latest_version
        if version is None:
            raise ResourceNotFoundError(
                f"Version {version_id} not found for project {project_id}",
                detail={"provider": provider_id, "project_id": project_id, "version_id": version_id},
            )
        if version.id != version_id:
            logger.warning(
                f"[ModProviderService] Version {version_id} not found for {provider_id}/{project_id}, "
                f"using latest version {version.id}"
            )

        stream = await provider.download_version(project_id, version.id)

        metadata = UnifiedModMetadata(
            provider_id=provider_id,
            project_id=project_id,
            project_title=project.title,
            project_icon_url=project.icon_url,
            version_id=version.id,
            version_name=version.version,
            classification=project.classification,
            file_size=version.file_size,
            file_hash=version.file_hash,
        )
        return InstallationDownload(stream=stream, metadata=metadata)

    async def aclose(self) -> None:
        for provider in self.registry.get_all():
            await provider.aclose()
