"""
Observability for the mod provider backend: structured logging with
correlation and provider ids, Prometheus metrics and request middleware.
"""

from .logging import (
    correlation_id_context,
    get_correlation_id,
    get_logger,
    provider_context,
    register_secret,
    setup_logging,
)
from .metrics import metrics_registry, track_provider_error, track_provider_search
from .middleware import ObservabilityMiddleware

__all__ = [
    "ObservabilityMiddleware",
    "correlation_id_context",
    "get_correlation_id",
    "get_logger",
    "metrics_registry",
    "provider_context",
    "register_secret",
    "setup_logging",
    "track_provider_error",
    "track_provider_search",
]
