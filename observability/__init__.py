"""Observability package for the docs search service."""

from .logging import setup_logging, JSONFormatter, ColoredFormatter
from .metrics import (
    docsearch_registry,
    record_search_metrics,
    record_fallback,
    record_malformed_row,
    record_refresh,
    render_metrics
)

__all__ = [
    'setup_logging',
    'JSONFormatter',
    'ColoredFormatter',
    'docsearch_registry',
    'record_search_metrics',
    'record_fallback',
    'record_malformed_row',
    'record_refresh',
    'render_metrics'
]
