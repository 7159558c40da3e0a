"""SQLite database adapter for the docs search service.

Holds the single shared connection, creates the schema and exposes the
query capabilities the search engine consumes: plain row fetches plus a
``vector_similarity_cos(embedding, query)`` SQL function. Writes are only
issued by the refresh pipeline.
"""

import sqlite3
import logging
import json
from typing import List, Dict, Any, Optional, Sequence
from datetime import datetime, timezone
from pathlib import Path

from indexer.embeddings import cosine_similarity
from indexer.vector_codec import coerce_vector, encode
from search.errors import MalformedRowError
from search.models import CodeExample, Document

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"
VECTOR_SIMILARITY_FUNCTION = "vector_similarity_cos"


def _sql_cosine_similarity(stored, query) -> Optional[float]:
    """SQL function body; a NULL or undecodable stored vector yields NULL.

    The row itself is still returned and rejected later by row decoding.
    """
    b = coerce_vector(query)
    try:
        a = coerce_vector(stored)
        if a is None or b is None:
            return None
        return cosine_similarity(a, b)
    except (MalformedRowError, ValueError) as e:
        logger.debug(f"Unscorable stored embedding: {e}")
        return None


class SQLiteAdapter:
    """SQLite database adapter with a vector similarity function."""

    def __init__(self, db_path: str, enable_vector_functions: bool = True):
        self.db_path = db_path
        self.enable_vector_functions = enable_vector_functions
        self.conn: Optional[sqlite3.Connection] = None

    async def initialize(self):
        """Open the SQLite connection and ensure schema exists."""
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys = ON")

            if self.enable_vector_functions:
                self.conn.create_function(
                    VECTOR_SIMILARITY_FUNCTION, 2, _sql_cosine_similarity, deterministic=True
                )

            with open(SCHEMA_PATH, 'r', encoding='utf-8') as f:
                schema_sql = f.read()
            self.conn.executescript(schema_sql)
            self.conn.commit()

            logger.info(f"SQLite adapter initialized: {self.db_path}")

        except Exception as e:
            logger.error(f"Failed to initialize SQLite: {e}")
            raise

    async def close(self):
        """Close SQLite connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("SQLite connection closed")

    def _connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise RuntimeError("Store not initialized. Call initialize() first.")
        return self.conn

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a read query and return rows as dictionaries."""
        cursor = self._connection().execute(sql, tuple(params))
        try:
            return [dict(row) for row in cursor.fetchall()]
        finally:
            cursor.close()

    async def fetch_one(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        cursor = self._connection().execute(sql, tuple(params))
        try:
            row = cursor.fetchone()
            return dict(row) if row else None
        finally:
            cursor.close()

    async def upsert_document(self, path: str, doc: Document) -> None:
        """Insert or overwrite a document by id; last write wins."""
        embedding_blob = encode(doc.embedding) if doc.embedding is not None else None
        last_updated = (doc.last_updated or datetime.now(timezone.utc)).isoformat()

        conn = self._connection()
        conn.execute(
            """
            INSERT INTO docs (id, path, content, concept, related_concepts, code_examples,
                              difficulty, tags, embedding, last_updated)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                path = excluded.path,
                content = excluded.content,
                concept = excluded.concept,
                related_concepts = excluded.related_concepts,
                code_examples = excluded.code_examples,
                difficulty = excluded.difficulty,
                tags = excluded.tags,
                embedding = excluded.embedding,
                last_updated = excluded.last_updated
            """,
            (
                doc.id,
                path,
                doc.content,
                doc.concept,
                json.dumps(doc.related_concepts),
                json.dumps([ex.to_dict() for ex in doc.code_examples]),
                doc.difficulty.value,
                json.dumps(doc.tags),
                embedding_blob,
                last_updated,
            )
        )
        conn.commit()

    async def replace_code_metadata(self, doc_id: str, examples: List[CodeExample]) -> None:
        """Replace the code facet rows belonging to a document."""
        conn = self._connection()
        conn.execute("DELETE FROM code_metadata WHERE doc_id = ?", (doc_id,))
        conn.executemany(
            """
            INSERT INTO code_metadata (id, doc_id, category, runes, functions, components)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    f"{doc_id}:{i}",
                    doc_id,
                    example.category.value,
                    json.dumps(example.runes),
                    json.dumps(example.functions),
                    json.dumps(example.components),
                )
                for i, example in enumerate(examples)
            ]
        )
        conn.commit()

    async def list_documents(self, limit: int = 100, cursor: Optional[str] = None) -> List[Dict[str, Any]]:
        """List document ids, paths and concepts ordered by id for pagination."""
        if cursor:
            return await self.fetch_all(
                "SELECT id, path, concept FROM docs WHERE id > ? ORDER BY id LIMIT ?",
                (cursor, limit)
            )
        return await self.fetch_all(
            "SELECT id, path, concept FROM docs ORDER BY id LIMIT ?",
            (limit,)
        )

    async def get_document_row(self, doc_id: str) -> Optional[Dict[str, Any]]:
        return await self.fetch_one("SELECT * FROM docs WHERE id = ?", (doc_id,))

    async def count_documents(self) -> int:
        row = await self.fetch_one("SELECT COUNT(*) AS count FROM docs")
        return int(row["count"]) if row else 0

    async def get_stats(self) -> Dict[str, Any]:
        """Get database statistics."""
        docs = await self.count_documents()
        embedded = await self.fetch_one("SELECT COUNT(*) AS count FROM docs WHERE embedding IS NOT NULL")
        code_blocks = await self.fetch_one("SELECT COUNT(*) AS count FROM code_metadata")
        return {
            "documents": docs,
            "embedded_documents": int(embedded["count"]) if embedded else 0,
            "code_blocks": int(code_blocks["count"]) if code_blocks else 0,
            "vector_functions": self.enable_vector_functions,
        }
