"""Search core: models, errors and the filter compiler.

The engine itself lives in ``search.engine`` and is imported from there.
"""

from .errors import (
    DocSearchError,
    FetchError,
    MalformedRowError,
    RefreshError,
    SearchError,
    VectorSearchUnavailable
)
from .filters import ConstraintFragment, compile_filters
from .models import (
    CodeCategory,
    CodeExample,
    Difficulty,
    Document,
    SearchFilters,
    SearchOptions,
    SearchResult
)

__all__ = [
    'CodeCategory',
    'CodeExample',
    'ConstraintFragment',
    'Difficulty',
    'DocSearchError',
    'Document',
    'FetchError',
    'MalformedRowError',
    'RefreshError',
    'SearchError',
    'SearchFilters',
    'SearchOptions',
    'SearchResult',
    'VectorSearchUnavailable',
    'compile_filters'
]
