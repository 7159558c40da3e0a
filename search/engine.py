"""Search engine: vector similarity with keyword fallback.

``search`` runs as an explicit two-step strategy. The vector step reports a
``VectorOutcome`` (rows, empty, or failed); the keyword step runs when the
vector step failed, or when it came back empty and ``fallback_on_empty`` is
set. Only a keyword-step failure reaches the caller, as ``SearchError``.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence

import numpy as np

from config.settings import SearchConfig
from indexer.embeddings import HashEmbedder
from indexer.vector_codec import decode, to_query_literal
from observability.metrics import record_fallback, record_malformed_row, record_search_metrics

from .errors import MalformedRowError, SearchError, VectorSearchUnavailable
from .filters import ConstraintFragment, compile_filters
from .models import CodeExample, Difficulty, Document, SearchOptions, SearchResult

logger = logging.getLogger(__name__)

DOC_COLUMNS = (
    "d.id, d.content, d.concept, d.related_concepts, d.code_examples, "
    "d.difficulty, d.tags, d.embedding, d.last_updated"
)

KEYWORD_MATCH = """(
    d.content LIKE ? ESCAPE '\\'
    OR d.concept LIKE ? ESCAPE '\\'
    OR d.tags LIKE ? ESCAPE '\\'
    OR EXISTS (
        SELECT 1 FROM code_metadata cm
        WHERE cm.doc_id = d.id
        AND (
            cm.runes LIKE ? ESCAPE '\\'
            OR cm.functions LIKE ? ESCAPE '\\'
            OR cm.components LIKE ? ESCAPE '\\'
        )
    )
)"""
KEYWORD_FIELDS = 6


class Store(Protocol):
    """Read capability the engine needs from the store."""

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        ...


class VectorStatus(str, Enum):
    ROWS = "rows"
    EMPTY = "empty"
    FAILED = "failed"


@dataclass
class VectorOutcome:
    """Result of the vector step of a search."""
    status: VectorStatus
    rows: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[VectorSearchUnavailable] = None


def like_pattern(query: str) -> str:
    """Substring LIKE pattern with the wildcard characters in ``query`` escaped."""
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SearchEngine:
    """Answers queries against the docs store.

    The engine holds no state beyond its collaborators: the store handle,
    the embedder and the configuration.
    """

    def __init__(self, store: Store, embedder: Optional[HashEmbedder] = None,
                 config: Optional[SearchConfig] = None):
        self.store = store
        self.config = config or SearchConfig()
        self.embedder = embedder or HashEmbedder(self.config.embedding_dim)
        if self.embedder.dimensions != self.config.embedding_dim:
            raise ValueError(
                f"Embedder produces {self.embedder.dimensions} dimensions, "
                f"configured embedding_dim is {self.config.embedding_dim}"
            )

    def _resolve_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.config.default_limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValueError(f"limit must be a positive integer, got {limit!r}")
        return limit

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """Search documents by natural-language query.

        Args:
            query: Free text query
            options: Optional limit and filters

        Returns:
            Results ordered by descending similarity; keyword matches all
            score 1.0.

        Raises:
            SearchError: the keyword query failed, or a row could not be
                decoded under the ``fail`` malformed-row policy
        """
        options = options or SearchOptions()
        limit = self._resolve_limit(options.limit)
        fragment = compile_filters(options.filters)
        start = time.perf_counter()

        outcome = await self._vector_step(query, fragment, limit)
        search_type = "vector"
        rows = outcome.rows

        if outcome.status is VectorStatus.FAILED:
            logger.warning(f"Vector search failed, falling back to keyword search: {outcome.error}")
            record_fallback("error")
            rows = await self._keyword_step(query, fragment, limit, start)
            search_type = "keyword"
        elif outcome.status is VectorStatus.EMPTY and self.config.fallback_on_empty:
            logger.debug("Vector search returned no rows, falling back to keyword search")
            record_fallback("empty")
            rows = await self._keyword_step(query, fragment, limit, start)
            search_type = "keyword"

        try:
            results = self._decode_rows(rows)
        except MalformedRowError as e:
            record_search_metrics(search_type, "error", time.perf_counter() - start)
            raise SearchError(e) from e

        record_search_metrics(search_type, "success", time.perf_counter() - start, len(results))
        logger.debug(f"Search '{query}' returned {len(results)} {search_type} results")
        return results

    async def _vector_step(self, query: str, fragment: ConstraintFragment, limit: int) -> VectorOutcome:
        try:
            query_embedding = self.embedder.embed(query)
            if not np.any(query_embedding):
                return VectorOutcome(VectorStatus.EMPTY)

            rows = await self.store.fetch_all(
                f"""
                SELECT {DOC_COLUMNS},
                       vector_similarity_cos(d.embedding, ?) AS similarity
                FROM docs d
                WHERE d.embedding IS NOT NULL{fragment.and_suffix()}
                ORDER BY similarity DESC
                LIMIT ?
                """,
                [to_query_literal(query_embedding, self.config.embedding_dim), *fragment.params, limit]
            )
        except Exception as e:
            return VectorOutcome(VectorStatus.FAILED, error=VectorSearchUnavailable(e))

        if not rows:
            return VectorOutcome(VectorStatus.EMPTY)
        return VectorOutcome(VectorStatus.ROWS, rows=rows)

    async def _keyword_step(self, query: str, fragment: ConstraintFragment, limit: int,
                            start: float) -> List[Dict[str, Any]]:
        pattern = like_pattern(query)
        try:
            return await self.store.fetch_all(
                f"""
                SELECT {DOC_COLUMNS}, 1.0 AS similarity
                FROM docs d
                WHERE {KEYWORD_MATCH}{fragment.and_suffix()}
                LIMIT ?
                """,
                [*([pattern] * KEYWORD_FIELDS), *fragment.params, limit]
            )
        except Exception as e:
            logger.error(f"Search error: {e}")
            record_search_metrics("keyword", "error", time.perf_counter() - start)
            raise SearchError(e) from e

    async def similar_docs(self, embedding: np.ndarray, limit: int = 5) -> List[SearchResult]:
        """Nearest documents to a precomputed embedding; store errors propagate unchanged."""
        limit = self._resolve_limit(limit)
        start = time.perf_counter()
        rows = await self.store.fetch_all(
            f"""
            SELECT {DOC_COLUMNS},
                   vector_similarity_cos(d.embedding, ?) AS similarity
            FROM docs d
            WHERE d.embedding IS NOT NULL
            ORDER BY similarity DESC
            LIMIT ?
            """,
            [to_query_literal(embedding, self.config.embedding_dim), limit]
        )
        results = self._decode_rows(rows)
        record_search_metrics("similar", "success", time.perf_counter() - start, len(results))
        return results

    async def search_by_concept(self, concept: str, options: Optional[SearchOptions] = None) -> List[SearchResult]:
        """Exact match on the primary concept; every result scores 1.0."""
        options = options or SearchOptions()
        limit = self._resolve_limit(options.limit)
        fragment = compile_filters(options.filters)
        start = time.perf_counter()
        rows = await self.store.fetch_all(
            f"""
            SELECT {DOC_COLUMNS}, 1.0 AS similarity
            FROM docs d
            WHERE d.concept = ?{fragment.and_suffix()}
            LIMIT ?
            """,
            [concept, *fragment.params, limit]
        )
        results = self._decode_rows(rows)
        record_search_metrics("concept", "success", time.perf_counter() - start, len(results))
        return results

    def _decode_rows(self, rows: List[Dict[str, Any]]) -> List[SearchResult]:
        results = []
        for row in rows:
            try:
                doc = self.decode_row(row)
            except MalformedRowError as e:
                record_malformed_row()
                if self.config.malformed_row_policy == "fail":
                    raise
                logger.warning(f"Skipping malformed row: {e}")
                continue
            similarity = row.get("similarity")
            results.append(SearchResult(doc=doc, similarity=float(similarity) if similarity is not None else 0.0))
        return results

    def decode_row(self, row: Dict[str, Any]) -> Document:
        """Turn a ``docs`` row into a Document.

        Raises:
            MalformedRowError: a JSON column, the difficulty, the embedding
                blob or the timestamp cannot be decoded
        """
        doc_id = row.get("id")
        related_concepts = _json_list(row, "related_concepts", doc_id)
        tags = _json_list(row, "tags", doc_id)

        try:
            code_examples = [CodeExample.from_dict(item) for item in _json_list(row, "code_examples", doc_id)]
        except (AttributeError, TypeError, ValueError) as e:
            raise MalformedRowError(f"invalid code_examples entry: {e}", doc_id) from e

        try:
            difficulty = Difficulty(row.get("difficulty") or Difficulty.INTERMEDIATE.value)
        except ValueError as e:
            raise MalformedRowError(f"unknown difficulty {row.get('difficulty')!r}", doc_id) from e

        blob = row.get("embedding")
        embedding = decode(blob, self.config.embedding_dim, doc_id) if blob else None

        return Document(
            id=doc_id,
            content=row.get("content") or "",
            concept=row.get("concept") or "",
            related_concepts=[str(c) for c in related_concepts],
            code_examples=code_examples,
            difficulty=difficulty,
            tags=[str(t) for t in tags],
            embedding=embedding,
            last_updated=_parse_timestamp(row.get("last_updated"), doc_id),
        )


def _json_list(row: Dict[str, Any], column: str, doc_id: Optional[str]) -> List[Any]:
    raw = row.get(column)
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedRowError(f"{column} is not valid JSON: {e}", doc_id) from e
    if not isinstance(value, list):
        raise MalformedRowError(f"{column} is not a JSON array", doc_id)
    return value


def _parse_timestamp(value: Any, doc_id: Optional[str]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as e:
        raise MalformedRowError(f"invalid last_updated {value!r}", doc_id) from e
