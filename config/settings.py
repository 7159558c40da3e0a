"""Service settings for search, corpus acquisition and transports.

Every model can be built with defaults for tests or from environment
variables with ``from_env()``.
"""

import os
from typing import List, Literal

from pydantic import BaseModel, Field, field_validator

from .database import DatabaseConfig, _env_flag

DEFAULT_DOC_PATHS = [
    '/llms.txt',
    '/llms-full.txt',
    '/llms-small.txt',
    '/docs/svelte/llms.txt',
    '/docs/kit/llms.txt',
    '/docs/cli/llms.txt',
]


class SearchConfig(BaseModel):
    """Search engine behaviour."""
    default_limit: int = Field(default=5, ge=1, description="Result count when the caller gives none")
    embedding_dim: int = Field(default=1536, ge=1, description="Embedding dimensionality")
    fallback_on_empty: bool = Field(
        default=True,
        description="Run the keyword query when the vector query succeeds with zero rows"
    )
    malformed_row_policy: Literal["skip", "fail"] = Field(
        default="skip",
        description="Drop undecodable rows with a warning, or fail the whole call"
    )

    @classmethod
    def from_env(cls) -> 'SearchConfig':
        return cls(
            default_limit=int(os.getenv('DOCSEARCH_DEFAULT_LIMIT', '5')),
            embedding_dim=int(os.getenv('DOCSEARCH_EMBEDDING_DIM', '1536')),
            fallback_on_empty=_env_flag('DOCSEARCH_FALLBACK_ON_EMPTY', True),
            malformed_row_policy=os.getenv('DOCSEARCH_MALFORMED_ROWS', 'skip').lower()
        )


class FetcherConfig(BaseModel):
    """Remote documentation source."""
    base_url: str = "https://svelte.dev"
    doc_paths: List[str] = Field(default_factory=lambda: list(DEFAULT_DOC_PATHS))
    cache_ttl_seconds: float = Field(default=3600.0, ge=0)
    request_timeout: int = Field(default=30, ge=1)
    user_agent: str = "docsearch-mcp"

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip('/')

    @classmethod
    def from_env(cls) -> 'FetcherConfig':
        paths = os.getenv('DOCSEARCH_DOC_PATHS')
        return cls(
            base_url=os.getenv('DOCSEARCH_BASE_URL', 'https://svelte.dev'),
            doc_paths=[p.strip() for p in paths.split(',') if p.strip()] if paths else list(DEFAULT_DOC_PATHS),
            cache_ttl_seconds=float(os.getenv('DOCSEARCH_CACHE_TTL', '3600')),
            request_timeout=int(os.getenv('DOCSEARCH_REQUEST_TIMEOUT', '30')),
            user_agent=os.getenv('DOCSEARCH_USER_AGENT', 'docsearch-mcp')
        )


class ServerConfig(BaseModel):
    """Transport settings shared by the MCP server and the HTTP API."""
    max_limit: int = Field(default=20, ge=1, description="Upper clamp applied to caller limits")
    host: str = "127.0.0.1"
    port: int = 8001
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> 'ServerConfig':
        return cls(
            max_limit=int(os.getenv('DOCSEARCH_MAX_LIMIT', '20')),
            host=os.getenv('DOCSEARCH_HOST', '127.0.0.1'),
            port=int(os.getenv('DOCSEARCH_PORT', '8001')),
            log_level=os.getenv('DOCSEARCH_LOG_LEVEL', 'INFO'),
            log_json=_env_flag('DOCSEARCH_LOG_JSON', False)
        )


class AppConfig(BaseModel):
    """Aggregate configuration for a running service."""
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def from_env(cls) -> 'AppConfig':
        return cls(
            database=DatabaseConfig.from_env(),
            search=SearchConfig.from_env(),
            fetcher=FetcherConfig.from_env(),
            server=ServerConfig.from_env()
        )
