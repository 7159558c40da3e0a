"""Tests for the HTTP API."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from config.settings import SearchConfig, ServerConfig
from indexer.embeddings import HashEmbedder
from indexer.sqlite_adapter import SQLiteAdapter
from pipelines.refresh import RefreshReport
from search.engine import SearchEngine
from search.errors import RefreshError, SearchError
from server.rag_api import create_app

from .conftest import TEST_DIM, load_corpus


@pytest.fixture
def api_store():
    """Corpus store opened outside pytest-asyncio; TestClient runs its own loop."""
    store = SQLiteAdapter(":memory:")
    embedder = HashEmbedder(TEST_DIM)
    asyncio.run(store.initialize())
    asyncio.run(load_corpus(store, embedder))
    yield store
    asyncio.run(store.close())


@pytest.fixture
def api_engine(api_store):
    return SearchEngine(api_store, HashEmbedder(TEST_DIM), SearchConfig(embedding_dim=TEST_DIM))


@pytest.fixture
def refresher():
    refresher = MagicMock()
    refresher.refresh = AsyncMock(return_value=RefreshReport(refreshed=2, failed=1, paths=["a.md", "b.md"]))
    return refresher


@pytest.fixture
def client(api_engine, refresher):
    return TestClient(create_app(api_engine, refresher, ServerConfig(max_limit=4)))


class TestRAGAPI:
    """Test suite for API endpoints."""

    def test_health_check_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"]["documents"] == 5

    def test_search_endpoint(self, client):
        response = client.post("/search", json={"q": "reactive state rune", "k": 2})
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["results"][0]["doc"]["id"] == "doc-state"
        assert "embedding" not in data["results"][0]["doc"]

    def test_search_k_is_capped(self, client):
        response = client.post("/search", json={"q": "state", "k": 100})
        assert response.json()["count"] == 4

    def test_search_with_filters(self, client):
        response = client.post("/search", json={"q": "state", "filters": {"difficulty": "advanced"}})
        ids = [r["doc"]["id"] for r in response.json()["results"]]
        assert ids == ["doc-snippets"]

    def test_search_validation(self, client):
        assert client.post("/search", json={"q": "state", "k": 0}).status_code == 422
        assert client.post("/search", json={"k": 2}).status_code == 422
        assert client.post("/search", json={"q": "x", "filters": {"difficulty": "expert"}}).status_code == 422

    def test_search_error_maps_to_500(self, client, api_engine):
        api_engine.search = AsyncMock(side_effect=SearchError(RuntimeError("disk I/O error")))
        response = client.post("/search", json={"q": "state"})
        assert response.status_code == 500
        assert response.json()["detail"] == "search failed: disk I/O error"

    def test_concept_endpoint(self, client):
        response = client.post("/search/concept", json={"concept": "reactivity"})
        assert response.status_code == 200
        data = response.json()
        assert {r["doc"]["id"] for r in data["results"]} == {"doc-state", "doc-derived"}
        assert all(r["similarity"] == 1.0 for r in data["results"])

    def test_refresh_endpoint(self, client, refresher):
        response = client.post("/refresh")
        assert response.status_code == 200
        assert response.json()["refreshed"] == 2
        assert response.json()["failed"] == 1
        refresher.refresh.assert_awaited_once()

    def test_refresh_failure(self, client, refresher):
        refresher.refresh.side_effect = RefreshError(RuntimeError("HTTP 503"))
        response = client.post("/refresh")
        assert response.status_code == 500
        assert response.json()["detail"] == "refresh failed: HTTP 503"

    def test_refresh_not_configured(self, api_engine):
        client = TestClient(create_app(api_engine))
        assert client.post("/refresh").status_code == 503

    def test_metrics_endpoint(self, client):
        client.post("/search", json={"q": "state"})
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "docsearch_search_requests_total" in response.text
