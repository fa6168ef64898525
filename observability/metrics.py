"""
Prometheus metrics for the mod provider backend.

RED metrics (Rate, Errors, Duration) for HTTP traffic plus per-provider
search metrics.
"""

from prometheus_client import REGISTRY, Counter, Gauge, Histogram

metrics_registry = REGISTRY

# HTTP Metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=metrics_registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=metrics_registry,
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method", "endpoint"],
    registry=metrics_registry,
)

# Mod Provider Metrics
mod_provider_search_duration_seconds = Histogram(
    "mod_provider_search_duration_seconds",
    "Mod provider search duration in seconds",
    ["provider"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=metrics_registry,
)

mod_provider_search_errors_total = Counter(
    "mod_provider_search_errors_total",
    "Total mod provider search errors",
    ["provider", "error_type"],
    registry=metrics_registry,
)

mod_provider_search_results_count = Histogram(
    "mod_provider_search_results_count",
    "Number of projects returned by one provider search",
    ["provider"],
    buckets=[0, 1, 5, 10, 20, 50, 100],
    registry=metrics_registry,
)


def track_provider_search(provider_id: str, duration_seconds: float, result_count: int) -> None:
    mod_provider_search_duration_seconds.labels(provider=provider_id).observe(duration_seconds)
    mod_provider_search_results_count.labels(provider=provider_id).observe(result_count)


def track_provider_error(provider_id: str, error_type: str) -> None:
    mod_provider_search_errors_total.labels(provider=provider_id, error_type=error_type).inc()
