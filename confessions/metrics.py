"""
Prometheus metrics for the Confessions API.

This module provides:
- HTTP request counter (method, path, status)
- Confession outcome counter (result)
- Request latency histogram (method, path)

Metrics are stored in-memory using prometheus-client.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST


# =============================================================================
# Metric Definitions
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "path", "status"]
)

# result: created, validation_error, profanity, toxic, rate_limited, upstream_error
confession_outcomes_total = Counter(
    "confession_outcomes_total",
    "Total confession submission outcomes",
    labelnames=["result"]
)

request_latency_seconds = Histogram(
    "request_latency_seconds",
    "Request latency in seconds",
    labelnames=["method", "path"]
)

# Error codes mapped to outcome labels
OUTCOME_BY_CODE = {
    "VALIDATION": "validation_error",
    "INVALID_JSON": "validation_error",
    "PROFANITY": "profanity",
    "TOXIC": "toxic",
    "RATE_LIMITED": "rate_limited",
    "UPSTREAM_ERROR": "upstream_error",
}


# =============================================================================
# Helper Functions
# =============================================================================

def record_http_request(method: str, path: str, status: int, latency_seconds: float) -> None:
    """
    Record an HTTP request in metrics.

    Args:
        method: HTTP method (GET, POST, etc.)
        path: Request path
        status: HTTP status code
        latency_seconds: Request processing time in seconds
    """
    # Normalize path to avoid high-cardinality labels
    normalized_path = path.split("?")[0]

    http_requests_total.labels(
        method=method,
        path=normalized_path,
        status=str(status)
    ).inc()

    request_latency_seconds.labels(
        method=method,
        path=normalized_path
    ).observe(latency_seconds)


def record_confession_outcome(result: str) -> None:
    """
    Record a confession submission outcome.

    Args:
        result: "created" or an error outcome from OUTCOME_BY_CODE
    """
    confession_outcomes_total.labels(result=result).inc()


def outcome_for_code(code: str) -> str:
    return OUTCOME_BY_CODE.get(code, "upstream_error")


def get_metrics() -> bytes:
    """Generate Prometheus exposition format metrics."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
