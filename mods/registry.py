"""In-memory registry of mod provider adapters."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

from mods.executors import run_search_isolated
from mods.metrics import log_search_summary
from mods.models import MultiProviderSearchResponse, ProviderInfo, UnifiedSearchParams
from mods.providers.base import ModProvider

logger = logging.getLogger(__name__)


class ModProviderRegistry:
    """
    Owns the adapter instances keyed by provider id.

    The registry never builds or configures adapters; it only stores them,
    answers lookups and fans searches out across the configured ones.
    """

    def __init__(self):
        self.providers: Dict[str, ModProvider] = {}

    def register(self, provider: ModProvider) -> None:
        if provider.id in self.providers:
            logger.warning(f"[ModProviderRegistry] Provider {provider.id} already registered, replacing")
        self.providers[provider.id] = provider
        logger.info(f"[ModProviderRegistry] Registered provider: {provider.display_name} ({provider.id})")

    def unregister(self, provider_id: str) -> Optional[ModProvider]:
        provider = self.providers.pop(provider_id, None)
        if provider is not None:
            logger.info(f"[ModProviderRegistry] Unregistered provider: {provider_id}")
        return provider

    def get(self, provider_id: str) -> Optional[ModProvider]:
        return self.providers.get(provider_id)

    def get_all(self) -> List[ModProvider]:
        return list(self.providers.values())

    def has(self, provider_id: str) -> bool:
        return provider_id in self.providers

    def get_configured(self) -> List[ModProvider]:
        return [p for p in self.get_all() if p.is_configured()]

    def get_provider_info(self) -> List[ProviderInfo]:
        return [p.info() for p in self.get_all()]

    def __len__(self) -> int:
        return len(self.providers)

    async def search_all(self, params: UnifiedSearchParams) -> MultiProviderSearchResponse:
        """
        Search every configured provider concurrently.

        Waits for all of them; a provider that raises contributes an empty
        response instead of failing the aggregate.
        """
        configured = self.get_configured()
        if not configured:
            return MultiProviderSearchResponse(results=[])

        outcomes = await asyncio.gather(
            *(run_search_isolated(provider, params) for provider in configured)
        )

        log_search_summary([metrics for _, metrics in outcomes])
        return MultiProviderSearchResponse(results=[response for response, _ in outcomes])
