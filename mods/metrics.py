"""Structured logging for per-provider search outcomes."""

import logging
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger("mods.metrics")


@dataclass
class ProviderSearchMetrics:
    """Outcome of one provider's search call."""
    provider_id: str
    status: str  # ok, error
    result_count: int
    total: int
    latency_ms: int
    error_message: Optional[str] = None


def log_provider_result(metrics: ProviderSearchMetrics) -> None:
    """Emit one structured log line for a provider search."""
    log = logger.info if metrics.status == "ok" else logger.warning
    log(
        f"[SEARCH] provider={metrics.provider_id} status={metrics.status} "
        f"results={metrics.result_count} total={metrics.total} latency={metrics.latency_ms}ms",
        extra={
            "event": "provider_search",
            "provider_id": metrics.provider_id,
            "status": metrics.status,
            "result_count": metrics.result_count,
            "total": metrics.total,
            "latency_ms": metrics.latency_ms,
            "error_message": metrics.error_message,
        },
    )


def log_search_summary(metrics: List[ProviderSearchMetrics]) -> None:
    """Emit the aggregate line for one multi-provider search."""
    failed = [m.provider_id for m in metrics if m.status != "ok"]
    logger.info(
        f"[SEARCH] providers={len(metrics)} failed={len(failed)} "
        f"total={sum(m.total for m in metrics)}",
        extra={
            "event": "search_all",
            "providers_called": len(metrics),
            "providers_failed": failed,
        },
    )
