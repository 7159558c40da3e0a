"""Pipelines package for the docs search service.

Provides corpus acquisition and the refresh (re-index) pipeline.
"""

from .fetcher import DocsFetcher, LocalDocsSource
from .refresh import DocsRefresher, RefreshReport

__all__ = [
    'DocsFetcher',
    'LocalDocsSource',
    'DocsRefresher',
    'RefreshReport'
]
