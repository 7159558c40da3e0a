"""Prometheus metrics for search and refresh."""

import logging

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.core import CollectorRegistry

logger = logging.getLogger(__name__)

# Dedicated registry so the default process collectors stay out of the way
docsearch_registry = CollectorRegistry()

search_requests = Counter(
    'docsearch_search_requests_total',
    'Total number of search requests',
    ['search_type', 'status'],
    registry=docsearch_registry
)

search_fallbacks = Counter(
    'docsearch_search_fallbacks_total',
    'Searches that fell back from the vector path to keyword matching',
    ['reason'],
    registry=docsearch_registry
)

search_duration = Histogram(
    'docsearch_search_duration_seconds',
    'Search request duration in seconds',
    ['search_type'],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
    registry=docsearch_registry
)

search_results_count = Histogram(
    'docsearch_search_results_count',
    'Number of search results returned',
    ['search_type'],
    buckets=[0, 1, 5, 10, 20, 50, 100],
    registry=docsearch_registry
)

malformed_rows = Counter(
    'docsearch_malformed_rows_total',
    'Stored rows that could not be decoded',
    registry=docsearch_registry
)

refresh_documents = Counter(
    'docsearch_refresh_documents_total',
    'Documents processed by refresh runs',
    ['status'],
    registry=docsearch_registry
)


def record_search_metrics(search_type: str, status: str, duration: float, result_count: int = 0):
    """Record one search call."""
    search_requests.labels(search_type=search_type, status=status).inc()
    search_duration.labels(search_type=search_type).observe(duration)
    if status == "success":
        search_results_count.labels(search_type=search_type).observe(result_count)


def record_fallback(reason: str):
    search_fallbacks.labels(reason=reason).inc()


def record_malformed_row():
    malformed_rows.inc()


def record_refresh(refreshed: int, failed: int):
    refresh_documents.labels(status="success").inc(refreshed)
    refresh_documents.labels(status="failed").inc(failed)


def render_metrics() -> tuple:
    """Return (payload, content type) for a scrape endpoint."""
    return generate_latest(docsearch_registry), CONTENT_TYPE_LATEST
