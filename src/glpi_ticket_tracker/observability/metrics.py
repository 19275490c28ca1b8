from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Histogram,
    generate_latest,
)

glpi_requests_total = Counter(
    "glpi_requests_total",
    "Number of GLPI API requests by endpoint and outcome.",
    labelnames=("endpoint", "outcome"),
)
glpi_degraded_total = Counter(
    "glpi_degraded_total",
    "Number of GLPI sub-resource lookups that degraded to an empty result.",
    labelnames=("resource",),
)

ticket_fetch_seconds = Histogram(
    "ticket_fetch_seconds",
    "Seconds spent aggregating a single ticket.",
)
search_seconds = Histogram(
    "search_seconds",
    "Seconds spent running a paginated ticket search.",
)


def render_latest(*, registry=REGISTRY) -> tuple[bytes, str]:
    return generate_latest(registry), CONTENT_TYPE_LATEST
