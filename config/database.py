"""Database configuration and factory for the docs search service.

The store is an explicitly constructed object: callers build it from a
``DatabaseConfig``, own its lifecycle (``initialize`` / ``close``) and pass it
to whatever needs it.
"""

import os
import logging
from enum import Enum
from typing import TYPE_CHECKING
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from indexer.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class DatabaseType(str, Enum):
    """Supported database types."""
    SQLITE = "sqlite"


class DatabaseConfig(BaseModel):
    """Database configuration."""
    type: DatabaseType = Field(default=DatabaseType.SQLITE, description="Database type")

    # SQLite configuration
    sqlite_path: str = Field(default="data/docsearch.db", description="SQLite database path")

    # Registers vector_similarity_cos on the connection; disable to run keyword-only
    enable_vector_functions: bool = Field(default=True, description="Expose vector similarity SQL functions")

    @classmethod
    def from_env(cls) -> 'DatabaseConfig':
        """Create configuration from environment variables."""
        db_type = os.getenv('DOCSEARCH_DB_TYPE', 'sqlite').lower()
        if db_type != DatabaseType.SQLITE.value:
            raise ValueError(f"Unsupported database type: {db_type}")

        return cls(
            type=DatabaseType.SQLITE,
            sqlite_path=os.getenv('DOCSEARCH_SQLITE_PATH', 'data/docsearch.db'),
            enable_vector_functions=_env_flag('DOCSEARCH_VECTOR_FUNCTIONS', True)
        )


def create_store(config: DatabaseConfig) -> 'SQLiteAdapter':
    """Build (but do not open) the store described by ``config``."""
    # Import here to avoid circular imports
    from indexer.sqlite_adapter import SQLiteAdapter

    logger.info(f"Creating {config.type.value} store at {config.sqlite_path}")
    return SQLiteAdapter(
        config.sqlite_path,
        enable_vector_functions=config.enable_vector_functions
    )


async def open_store(config: DatabaseConfig) -> 'SQLiteAdapter':
    """Build and initialize a store; the caller is responsible for closing it."""
    store = create_store(config)
    await store.initialize()
    return store
