"""HTTP API for the docs search service."""

import asyncio
import datetime
import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel, Field

from config.database import create_store
from config.settings import AppConfig, ServerConfig
from indexer.embeddings import HashEmbedder
from observability.logging import setup_logging
from observability.metrics import render_metrics
from pipelines.fetcher import DocsFetcher
from pipelines.refresh import DocsRefresher
from search.engine import SearchEngine
from search.errors import RefreshError, SearchError
from search.models import SearchFilters, SearchOptions

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


class SearchRequest(BaseModel):
    q: str
    k: Optional[int] = Field(default=None, ge=1)
    filters: Optional[SearchFilters] = None


class ConceptSearchRequest(BaseModel):
    concept: str = Field(min_length=1)
    k: Optional[int] = Field(default=None, ge=1)
    filters: Optional[SearchFilters] = None


def create_app(engine: SearchEngine, refresher: Optional[DocsRefresher] = None,
               config: Optional[ServerConfig] = None) -> FastAPI:
    """Build the API around an already initialized engine.

    Args:
        engine: Search engine whose store is open
        refresher: Optional refresh pipeline backing ``POST /refresh``
        config: Transport settings; ``max_limit`` caps ``k``
    """
    config = config or ServerConfig()
    app = FastAPI(title="Docs Search API", version=API_VERSION)

    def options(k: Optional[int], filters: Optional[SearchFilters]) -> SearchOptions:
        limit = min(k, config.max_limit) if k is not None else None
        return SearchOptions(limit=limit, filters=filters)

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "message": "Docs Search API",
            "version": API_VERSION,
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics"
        }

    @app.get("/health")
    async def health():
        status = {
            "status": "healthy",
            "timestamp": datetime.datetime.now().isoformat(),
            "version": API_VERSION
        }
        get_stats = getattr(engine.store, "get_stats", None)
        if get_stats is not None:
            try:
                status["database"] = await get_stats()
            except Exception as e:
                logger.error(f"Health check failed: {e}")
                status["status"] = "degraded"
                status["database"] = {"error": str(e)}
        return status

    @app.post("/search")
    async def search(req: SearchRequest):
        try:
            results = await engine.search(req.q, options(req.k, req.filters))
        except SearchError as e:
            logger.error(f"Search error: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return {
            "query": req.q,
            "count": len(results),
            "results": [result.to_dict() for result in results]
        }

    @app.post("/search/concept")
    async def search_by_concept(req: ConceptSearchRequest):
        try:
            results = await engine.search_by_concept(req.concept, options(req.k, req.filters))
        except Exception as e:
            logger.error(f"Concept search error: {e}")
            raise HTTPException(status_code=500, detail=f"Concept search failed: {e}")
        return {
            "concept": req.concept,
            "count": len(results),
            "results": [result.to_dict() for result in results]
        }

    @app.post("/refresh")
    async def refresh():
        if refresher is None:
            raise HTTPException(status_code=503, detail="Refresh is not configured")
        try:
            report = await refresher.refresh()
        except RefreshError as e:
            logger.error(f"Refresh error: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return report.to_dict()

    @app.get("/metrics")
    async def metrics():
        payload, content_type = render_metrics()
        return Response(content=payload, media_type=content_type)

    return app


def run():
    """Serve the API with uvicorn using environment configuration."""
    import uvicorn

    config = AppConfig.from_env()
    setup_logging(config.server.log_level, service_name="docsearch-api", use_json=config.server.log_json)

    store = create_store(config.database)
    asyncio.run(store.initialize())
    embedder = HashEmbedder(config.search.embedding_dim)
    engine = SearchEngine(store, embedder, config.search)
    fetcher = DocsFetcher(config.fetcher)
    refresher = DocsRefresher(store, fetcher, embedder, config.search.embedding_dim)

    app = create_app(engine, refresher, config.server)

    @app.on_event("shutdown")
    async def shutdown_event():
        await fetcher.close()
        await store.close()
        logger.info("Store and fetcher closed")

    uvicorn.run(app, host=config.server.host, port=config.server.port, log_level=config.server.log_level.lower())


if __name__ == "__main__":
    run()
