"""Tests for the MCP JSON-RPC server."""

import io
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from config.settings import ServerConfig
from pipelines.refresh import RefreshReport
from search.errors import RefreshError, SearchError
from server.mcp_server import MCPServer, serve_stdio


def _request(method, params=None, request_id=1):
    message = {"jsonrpc": "2.0", "id": request_id, "method": method}
    if params is not None:
        message["params"] = params
    return message


def _tool_payload(response):
    return json.loads(response["result"]["content"][0]["text"])


@pytest.fixture
def refresher():
    refresher = MagicMock()
    refresher.refresh = AsyncMock(return_value=RefreshReport(refreshed=6, failed=0, paths=[]))
    return refresher


@pytest.fixture
def server(engine, store, refresher):
    return MCPServer(engine, store, refresher, ServerConfig(max_limit=3))


class TestProtocol:

    @pytest.mark.asyncio
    async def test_initialize(self, server):
        response = await server.handle_request(_request("initialize", {"clientInfo": {"name": "pytest"}}))
        assert response["id"] == 1
        assert response["result"]["protocolVersion"] == "2024-11-05"
        assert response["result"]["serverInfo"]["name"] == "docsearch-mcp-server"

    @pytest.mark.asyncio
    async def test_initialized_notification_has_no_response(self, server):
        assert await server.handle_request({"jsonrpc": "2.0", "method": "initialized"}) is None
        assert server.session_initialized

    @pytest.mark.asyncio
    async def test_unknown_method(self, server):
        response = await server.handle_request(_request("prompts/list"))
        assert response["error"]["code"] == -32601

    @pytest.mark.asyncio
    async def test_wrong_jsonrpc_version(self, server):
        response = await server.handle_request({"jsonrpc": "1.0", "id": 7, "method": "tools/list"})
        assert response["id"] == 7
        assert response["error"]["code"] == -32600

    @pytest.mark.asyncio
    async def test_tools_list(self, server):
        response = await server.handle_request(_request("tools/list"))
        names = [tool["name"] for tool in response["result"]["tools"]]
        assert names == ["search_docs", "search_by_concept", "refresh_docs"]
        assert response["result"]["tools"][0]["inputSchema"]["properties"]["limit"]["maximum"] == 3


class TestTools:

    @pytest.mark.asyncio
    async def test_search_docs(self, server):
        response = await server.handle_request(_request(
            "tools/call", {"name": "search_docs", "arguments": {"query": "reactive state rune", "limit": 2}}
        ))
        payload = _tool_payload(response)
        assert len(payload) == 2
        assert payload[0]["id"] == "doc-state"
        assert set(payload[0]) == {"id", "concept", "difficulty", "tags", "similarity", "content"}

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, server):
        response = await server.handle_request(_request(
            "tools/call", {"name": "search_docs", "arguments": {"query": "state", "limit": 50}}
        ))
        assert len(_tool_payload(response)) == 3

        response = await server.handle_request(_request(
            "tools/call", {"name": "search_docs", "arguments": {"query": "state", "limit": 0}}
        ))
        assert len(_tool_payload(response)) == 1

    @pytest.mark.asyncio
    async def test_search_with_filters(self, server):
        response = await server.handle_request(_request(
            "tools/call",
            {"name": "search_docs", "arguments": {"query": "runes", "filters": {"tags": ["props", "slots"]}}}
        ))
        assert {item["id"] for item in _tool_payload(response)} == {"doc-props", "doc-snippets"}

    @pytest.mark.asyncio
    async def test_invalid_filters(self, server):
        response = await server.handle_request(_request(
            "tools/call", {"name": "search_docs", "arguments": {"query": "x", "filters": {"difficulty": "expert"}}}
        ))
        assert response["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_missing_query(self, server):
        response = await server.handle_request(_request(
            "tools/call", {"name": "search_docs", "arguments": {"limit": 2}}
        ))
        assert response["error"]["code"] == -32602
        assert response["error"]["message"] == "Invalid search parameters"

    @pytest.mark.asyncio
    async def test_search_failure_is_internal_error(self, server):
        server.engine.search = AsyncMock(side_effect=SearchError(RuntimeError("disk I/O error")))
        response = await server.handle_request(_request(
            "tools/call", {"name": "search_docs", "arguments": {"query": "state"}}
        ))
        assert response["error"]["code"] == -32603
        assert response["error"]["message"] == "search failed: disk I/O error"

    @pytest.mark.asyncio
    async def test_search_by_concept(self, server):
        response = await server.handle_request(_request(
            "tools/call", {"name": "search_by_concept", "arguments": {"concept": "reactivity"}}
        ))
        payload = _tool_payload(response)
        assert {item["id"] for item in payload} == {"doc-state", "doc-derived"}
        assert all(item["similarity"] == 1.0 for item in payload)

    @pytest.mark.asyncio
    async def test_refresh_docs(self, server, refresher):
        response = await server.handle_request(_request("tools/call", {"name": "refresh_docs"}))
        assert response["result"]["content"][0]["text"] == "Successfully refreshed 6 documentation files"
        refresher.refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_refresh_failure(self, server, refresher):
        refresher.refresh.side_effect = RefreshError(RuntimeError("HTTP 503"))
        response = await server.handle_request(_request("tools/call", {"name": "refresh_docs"}))
        assert response["error"]["code"] == -32603
        assert "HTTP 503" in response["error"]["message"]

    @pytest.mark.asyncio
    async def test_unknown_tool(self, server):
        response = await server.handle_request(_request("tools/call", {"name": "delete_docs"}))
        assert response["error"]["code"] == -32601


class TestResources:

    @pytest.mark.asyncio
    async def test_list_and_read(self, server):
        listing = await server.handle_request(_request("resources/list"))
        resources = listing["result"]["resources"]
        assert len(resources) == 5
        assert all(r["uri"].startswith("svelte-docs://") for r in resources)

        routing = next(r for r in resources if r["name"] == "routing")
        response = await server.handle_request(_request("resources/read", {"uri": routing["uri"]}))
        assert response["result"]["contents"][0]["text"].startswith("SvelteKit routing")

    @pytest.mark.asyncio
    async def test_list_pagination(self, server):
        first = await server.handle_request(_request("resources/list", {"limit": 2}))
        assert len(first["result"]["resources"]) == 2
        cursor = first["result"]["nextCursor"]

        second = await server.handle_request(_request("resources/list", {"limit": 2, "cursor": cursor}))
        first_uris = {r["uri"] for r in first["result"]["resources"]}
        assert not first_uris & {r["uri"] for r in second["result"]["resources"]}

    @pytest.mark.asyncio
    async def test_list_limit_is_clamped(self, server):
        zero = await server.handle_request(_request("resources/list", {"limit": 0}))
        assert len(zero["result"]["resources"]) == 1

        negative = await server.handle_request(_request("resources/list", {"limit": -1}))
        assert len(negative["result"]["resources"]) == 1

    @pytest.mark.asyncio
    async def test_list_limit_must_be_integer(self, server):
        response = await server.handle_request(_request("resources/list", {"limit": "ten"}))
        assert response["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_read_unknown_resource(self, server):
        response = await server.handle_request(_request("resources/read", {"uri": "svelte-docs://missing"}))
        assert response["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_read_wrong_scheme(self, server):
        response = await server.handle_request(_request("resources/read", {"uri": "file:///etc/passwd"}))
        assert response["error"]["code"] == -32602


class TestStdioLoop:

    @pytest.mark.asyncio
    async def test_one_response_per_request(self, server):
        stdin = io.StringIO(
            json.dumps(_request("tools/list", request_id=1)) + "\n"
            + json.dumps({"jsonrpc": "2.0", "method": "initialized"}) + "\n"
            + "{not json\n"
            + "\n"
        )
        stdout = io.StringIO()

        await serve_stdio(server, stdin, stdout)

        lines = [json.loads(line) for line in stdout.getvalue().splitlines()]
        assert len(lines) == 2
        assert lines[0]["id"] == 1
        assert lines[1]["error"]["code"] == -32700
