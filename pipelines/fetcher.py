"""Corpus acquisition for the docs search service.

``DocsFetcher`` pulls the configured documentation paths over HTTP with a
small in-memory TTL cache. ``LocalDocsSource`` reads a directory of
markdown files instead, for offline indexing and tests.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import aiohttp

from config.settings import FetcherConfig
from search.errors import FetchError

logger = logging.getLogger(__name__)


class DocsFetcher:
    """Asynchronous fetcher for the remote documentation corpus."""

    def __init__(self, config: Optional[FetcherConfig] = None):
        self.config = config or FetcherConfig()
        self.session: Optional[aiohttp.ClientSession] = None
        self._cache: Dict[str, Tuple[str, float]] = {}

    async def __aenter__(self):
        """Async context manager entry."""
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
        self.session = aiohttp.ClientSession(
            timeout=timeout,
            headers={'User-Agent': self.config.user_agent}
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Close the fetcher session."""
        if self.session:
            await self.session.close()
            self.session = None

    def _cached(self, path: str) -> Optional[str]:
        entry = self._cache.get(path)
        if entry is None:
            return None
        content, fetched_at = entry
        if time.monotonic() - fetched_at >= self.config.cache_ttl_seconds:
            del self._cache[path]
            return None
        return content

    async def _fetch(self, path: str) -> str:
        if not self.session:
            await self.__aenter__()

        url = f"{self.config.base_url}{path}"
        logger.debug(f"Fetching {url}")
        try:
            async with self.session.get(url, allow_redirects=True) as response:
                if response.status != 200:
                    raise FetchError(path, f"HTTP {response.status}")
                return await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FetchError(path, str(e) or type(e).__name__) from e

    async def get_doc(self, path: str) -> str:
        """Fetch one documentation path, serving it from the cache while fresh.

        Raises:
            FetchError: the request failed or returned a non-200 status
        """
        cached = self._cached(path)
        if cached is not None:
            logger.debug(f"Cache hit for {path}")
            return cached

        content = await self._fetch(path)
        self._cache[path] = (content, time.monotonic())
        return content

    async def get_all_docs(self) -> List[Tuple[str, str]]:
        """Fetch every configured path concurrently.

        Returns:
            List of (path, content) pairs in configured order
        """
        contents = await asyncio.gather(*(self.get_doc(path) for path in self.config.doc_paths))
        logger.info(f"Fetched {len(contents)} documents from {self.config.base_url}")
        return list(zip(self.config.doc_paths, contents))

    def clear_cache(self):
        self._cache.clear()


class LocalDocsSource:
    """Markdown files under a directory, keyed by their relative path."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    async def get_all_docs(self) -> List[Tuple[str, str]]:
        if not self.directory.is_dir():
            raise FetchError(str(self.directory), "not a directory")

        docs = []
        for file_path in sorted(self.directory.rglob('*.md')):
            relative = file_path.relative_to(self.directory).as_posix()
            docs.append((relative, file_path.read_text(encoding='utf-8')))
        logger.info(f"Loaded {len(docs)} documents from {self.directory}")
        return docs
