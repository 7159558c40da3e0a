"""Refresh pipeline: acquire, process, embed and store the corpus.

Refresh is a full re-embed of whatever the source returns. Documents that
disappeared from the source are left in the store untouched.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

from indexer.embeddings import HashEmbedder
from indexer.markdown import process_markdown
from indexer.sqlite_adapter import SQLiteAdapter
from observability.metrics import record_refresh
from search.errors import RefreshError

logger = logging.getLogger(__name__)


class DocsSource(Protocol):
    async def get_all_docs(self) -> List[Tuple[str, str]]:
        ...


@dataclass
class RefreshReport:
    """Outcome of one refresh run."""
    refreshed: int = 0
    failed: int = 0
    paths: List[str] = field(default_factory=list)
    duration: float = 0.0

    def to_dict(self):
        return {
            "refreshed": self.refreshed,
            "failed": self.failed,
            "paths": list(self.paths),
            "duration": round(self.duration, 3),
        }


class DocsRefresher:
    """Rebuilds stored documents from a docs source."""

    def __init__(self, store: SQLiteAdapter, source: DocsSource,
                 embedder: Optional[HashEmbedder] = None, dim: int = 1536):
        self.store = store
        self.source = source
        self.embedder = embedder or HashEmbedder(dim)
        if self.embedder.dimensions != dim:
            raise ValueError(f"Embedder produces {self.embedder.dimensions} dimensions, expected {dim}")

    async def refresh(self) -> RefreshReport:
        """Re-acquire and re-index every document from the source.

        Returns:
            RefreshReport with counts of refreshed and failed documents

        Raises:
            RefreshError: the source could not be read
        """
        start = time.perf_counter()
        clear_cache = getattr(self.source, 'clear_cache', None)
        if callable(clear_cache):
            clear_cache()

        try:
            docs = await self.source.get_all_docs()
        except Exception as e:
            logger.error(f"Failed to acquire documents: {e}")
            raise RefreshError(e) from e

        report = RefreshReport()
        for path, content in docs:
            try:
                await self._index_one(path, content)
            except Exception as e:
                logger.error(f"Failed to index {path}: {e}")
                report.failed += 1
                continue
            report.refreshed += 1
            report.paths.append(path)

        report.duration = time.perf_counter() - start
        record_refresh(report.refreshed, report.failed)
        logger.info(
            f"Refresh complete: {report.refreshed} documents indexed, "
            f"{report.failed} failed in {report.duration:.2f}s"
        )
        return report

    async def _index_one(self, path: str, content: str):
        processed = process_markdown(path, content)
        doc = processed.to_document(self.embedder.embed(processed.content))
        await self.store.upsert_document(path, doc)
        await self.store.replace_code_metadata(doc.id, doc.code_examples)
        logger.debug(f"Indexed {path} as {doc.id} ({len(doc.code_examples)} code examples)")
