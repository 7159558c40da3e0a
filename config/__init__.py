"""Configuration module for the docs search service.

Provides configuration management for the store, search engine, corpus
acquisition and transports.
"""

from .database import (
    DatabaseConfig,
    DatabaseType,
    create_store,
    open_store
)
from .settings import (
    AppConfig,
    FetcherConfig,
    SearchConfig,
    ServerConfig
)

__all__ = [
    'AppConfig',
    'DatabaseConfig',
    'DatabaseType',
    'FetcherConfig',
    'SearchConfig',
    'ServerConfig',
    'create_store',
    'open_store'
]
