"""Provider search execution with failure isolation and timing."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Tuple

from mods.metrics import ProviderSearchMetrics, log_provider_result
from mods.models import UnifiedSearchParams, UnifiedSearchResponse
from observability.logging import provider_context
from observability.metrics import track_provider_error, track_provider_search

if TYPE_CHECKING:
    from mods.providers.base import ModProvider

logger = logging.getLogger(__name__)


async def run_search_isolated(
    provider: "ModProvider", params: UnifiedSearchParams
) -> Tuple[UnifiedSearchResponse, ProviderSearchMetrics]:
    """
    Run one provider's search; never raises.

    A failing provider is replaced by an empty response carrying its own id and
    the requested page/pageSize, so sibling providers are unaffected.
    """
    started = time.monotonic()
    try:
        with provider_context(provider.id):
            response = await provider.search_projects(params)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        metrics = ProviderSearchMetrics(
            provider_id=provider.id,
            status="ok",
            result_count=len(response.projects),
            total=response.total,
            latency_ms=elapsed_ms,
        )
        track_provider_search(provider.id, elapsed_ms / 1000, metrics.result_count)
    except Exception as e:
        elapsed_ms = int((time.monotonic() - started) * 1000)
        track_provider_error(provider.id, type(e).__name__)
        logger.error(
            f"[ModProviderRegistry] Search failed for {provider.id}: {type(e).__name__}: {e}"
        )
        response = UnifiedSearchResponse.empty(provider.id, params)
        metrics = ProviderSearchMetrics(
            provider_id=provider.id,
            status="error",
            result_count=0,
            total=0,
            latency_ms=elapsed_ms,
            error_message=f"Search failed: {str(e)[:100]}",
        )

    log_provider_result(metrics)
    return response, metrics
