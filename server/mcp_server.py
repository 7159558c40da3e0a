# Docs search MCP Server - JSON-RPC 2.0 over stdio
# Exposes search tools and stored documents as Model Context Protocol resources

import sys, json, asyncio, logging
from typing import Dict, Any, List, Optional

from pydantic import ValidationError

from config.settings import AppConfig, ServerConfig
from config.database import open_store
from indexer.embeddings import HashEmbedder
from indexer.sqlite_adapter import SQLiteAdapter
from observability.logging import setup_logging
from pipelines.fetcher import DocsFetcher
from pipelines.refresh import DocsRefresher
from search.engine import SearchEngine
from search.errors import DocSearchError, MalformedRowError, SearchError
from search.models import SearchFilters, SearchOptions, SearchResult

logger = logging.getLogger(__name__)

RESOURCE_PREFIX = "svelte-docs://"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class MCPError(Exception):
    """Error that maps onto a JSON-RPC error object."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _limit_schema(max_limit: int) -> Dict[str, Any]:
    return {
        "type": "integer",
        "description": "Maximum number of results (default: 5)",
        "minimum": 1,
        "maximum": max_limit
    }


FILTERS_SCHEMA = {
    "type": "object",
    "description": "Optional metadata filters; all given fields must match",
    "properties": {
        "difficulty": {"type": "string", "enum": ["beginner", "intermediate", "advanced"]},
        "tags": {"type": "array", "items": {"type": "string"}},
        "concepts": {"type": "array", "items": {"type": "string"}},
        "category": {"type": "array", "items": {"type": "string"}},
        "has_runes": {"type": "array", "items": {"type": "string"}},
        "has_functions": {"type": "array", "items": {"type": "string"}},
        "has_components": {"type": "array", "items": {"type": "string"}}
    }
}


class MCPServer:
    def __init__(self, engine: SearchEngine, store: SQLiteAdapter,
                 refresher: Optional[DocsRefresher] = None, config: Optional[ServerConfig] = None):
        self.engine = engine
        self.store = store
        self.refresher = refresher
        self.config = config or ServerConfig()
        self.capabilities = {
            "resources": {
                "listChanged": False
            },
            "tools": {
                "listChanged": False
            }
        }
        self.server_info = {
            "name": "docsearch-mcp-server",
            "version": "1.0.0"
        }
        self.session_initialized = False

    def _clamp_limit(self, raw: Any) -> int:
        """Clamp a caller limit to [1, max_limit]; non-integers get the default."""
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raw = self.engine.config.default_limit
        return max(1, min(int(raw), self.config.max_limit))

    def _options(self, args: Dict[str, Any]) -> SearchOptions:
        filters = args.get("filters")
        try:
            return SearchOptions(
                limit=self._clamp_limit(args.get("limit")),
                filters=SearchFilters.model_validate(filters) if filters else None
            )
        except ValidationError as e:
            raise MCPError(INVALID_PARAMS, f"Invalid filters: {e}")

    async def handle_initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Handle MCP initialize request"""
        client_info = params.get("clientInfo", {})
        logger.info(f"Initializing MCP session with client: {client_info.get('name', 'unknown')}")

        return {
            "protocolVersion": "2024-11-05",
            "capabilities": self.capabilities,
            "serverInfo": self.server_info
        }

    async def handle_initialized(self, params: Dict[str, Any]) -> None:
        """Handle MCP initialized notification"""
        self.session_initialized = True
        logger.info("MCP session initialized successfully")

    async def handle_resources_list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """List stored documents as resources"""
        cursor = params.get("cursor")
        limit = params.get("limit", 100)
        if isinstance(limit, bool) or not isinstance(limit, int):
            raise MCPError(INVALID_PARAMS, "Resource list limit must be an integer")
        limit = max(1, min(limit, 200))

        rows = await self.store.list_documents(limit, cursor)
        resources = [
            {
                "uri": f"{RESOURCE_PREFIX}{row['id']}",
                "name": row['concept'] or row['path'],
                "description": f"Documentation from {row['path']}",
                "mimeType": "text/markdown"
            }
            for row in rows
        ]

        result = {"resources": resources}
        if len(rows) == limit:
            result["nextCursor"] = rows[-1]["id"]
        return result

    async def handle_resources_read(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Read a stored document by id"""
        uri = params.get("uri", "")
        if not isinstance(uri, str) or not uri.startswith(RESOURCE_PREFIX):
            raise MCPError(INVALID_PARAMS, f"Invalid resource URI prefix: {uri}")

        doc_id = uri[len(RESOURCE_PREFIX):]
        row = await self.store.get_document_row(doc_id)
        if row is None:
            raise MCPError(INVALID_PARAMS, f"Resource not found: {uri}")

        try:
            doc = self.engine.decode_row(row)
        except MalformedRowError as e:
            raise MCPError(INTERNAL_ERROR, f"Failed to read resource: {e}")

        return {
            "contents": [{
                "uri": uri,
                "mimeType": "text/markdown",
                "text": doc.content
            }]
        }

    async def handle_tools_list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """List available MCP tools"""
        return {
            "tools": [
                {
                    "name": "search_docs",
                    "description": "Search Svelte documentation using semantic similarity",
                    "inputSchema": {
                        "type": "object",
                        "properties": {
                            "query": {
                                "type": "string",
                                "description": "Search query text"
                            },
                            "limit": _limit_schema(self.config.max_limit),
                            "filters": FILTERS_SCHEMA
                        },
                        "required": ["query"]
                    }
                },
                {
                    "name": "search_by_concept",
                    "description": "List documents whose primary concept matches exactly",
                    "inputSchema": {
                        "type": "object",
                        "properties": {
                            "concept": {
                                "type": "string",
                                "description": "Concept name, e.g. 'reactivity'"
                            },
                            "limit": _limit_schema(self.config.max_limit),
                            "filters": FILTERS_SCHEMA
                        },
                        "required": ["concept"]
                    }
                },
                {
                    "name": "refresh_docs",
                    "description": "Refresh documentation cache and update database",
                    "inputSchema": {
                        "type": "object",
                        "properties": {},
                        "required": []
                    }
                }
            ]
        }

    async def handle_tools_call(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Execute MCP tool calls"""
        name = params.get("name")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise MCPError(INVALID_PARAMS, "Tool arguments must be an object")

        if name == "search_docs":
            return await self._tool_search_docs(arguments)
        elif name == "search_by_concept":
            return await self._tool_search_by_concept(arguments)
        elif name == "refresh_docs":
            return await self._tool_refresh_docs(arguments)
        else:
            raise MCPError(METHOD_NOT_FOUND, f"Unknown tool: {name}")

    @staticmethod
    def _results_content(results: List[SearchResult]) -> Dict[str, Any]:
        payload = [
            {
                "id": result.doc.id,
                "concept": result.doc.concept,
                "difficulty": result.doc.difficulty.value,
                "tags": result.doc.tags,
                "similarity": result.similarity,
                "content": result.doc.content
            }
            for result in results
        ]
        return {"content": [{"type": "text", "text": json.dumps(payload, indent=2)}]}

    async def _tool_search_docs(self, args: Dict[str, Any]) -> Dict[str, Any]:
        query = args.get("query")
        if not isinstance(query, str):
            raise MCPError(INVALID_PARAMS, "Invalid search parameters")

        options = self._options(args)
        try:
            results = await self.engine.search(query, options)
        except SearchError as e:
            raise MCPError(INTERNAL_ERROR, str(e))
        except DocSearchError as e:
            raise MCPError(INTERNAL_ERROR, f"Search failed: {e}")
        return self._results_content(results)

    async def _tool_search_by_concept(self, args: Dict[str, Any]) -> Dict[str, Any]:
        concept = args.get("concept")
        if not isinstance(concept, str) or not concept.strip():
            raise MCPError(INVALID_PARAMS, "Invalid concept parameter")

        options = self._options(args)
        try:
            results = await self.engine.search_by_concept(concept, options)
        except Exception as e:
            raise MCPError(INTERNAL_ERROR, f"Concept search failed: {e}")
        return self._results_content(results)

    async def _tool_refresh_docs(self, args: Dict[str, Any]) -> Dict[str, Any]:
        if self.refresher is None:
            raise MCPError(INTERNAL_ERROR, "Refresh is not configured")

        try:
            report = await self.refresher.refresh()
        except DocSearchError as e:
            raise MCPError(INTERNAL_ERROR, f"Refresh failed: {e}")

        text = f"Successfully refreshed {report.refreshed} documentation files"
        if report.failed:
            text += f" ({report.failed} failed)"
        return {"content": [{"type": "text", "text": text}]}

    async def handle_request(self, request_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Dispatch one JSON-RPC 2.0 message"""
        request_id = request_data.get("id") if isinstance(request_data, dict) else None
        try:
            if not isinstance(request_data, dict) or request_data.get("jsonrpc") != "2.0":
                raise MCPError(INVALID_REQUEST, "Invalid JSON-RPC version")

            method = request_data.get("method")
            params = request_data.get("params") or {}

            if not method:
                raise MCPError(INVALID_REQUEST, "Missing method")

            if method == "initialize":
                result = await self.handle_initialize(params)
            elif method in ("initialized", "notifications/initialized"):
                await self.handle_initialized(params)
                return None  # Notification, no response
            elif method == "resources/list":
                result = await self.handle_resources_list(params)
            elif method == "resources/read":
                result = await self.handle_resources_read(params)
            elif method == "tools/list":
                result = await self.handle_tools_list(params)
            elif method == "tools/call":
                result = await self.handle_tools_call(params)
            else:
                raise MCPError(METHOD_NOT_FOUND, f"Unknown method: {method}")

            return {
                "jsonrpc": "2.0",
                "id": request_id,
                "result": result
            }

        except MCPError as e:
            logger.warning(f"Request failed ({e.code}): {e.message}")
            return _error_response(request_id, e.code, e.message)
        except Exception as e:
            logger.error(f"Error handling request: {e}")
            return _error_response(request_id, INTERNAL_ERROR, str(e))


def _error_response(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {
            "code": code,
            "message": message
        }
    }


async def serve_stdio(server: MCPServer, stdin=None, stdout=None):
    """Read one JSON-RPC message per line until EOF."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    logger.info("Starting MCP server in stdio mode")

    while True:
        line = stdin.readline()
        if not line:
            break
        if not line.strip():
            continue

        try:
            request_data = json.loads(line)
        except json.JSONDecodeError as e:
            response = _error_response(None, PARSE_ERROR, f"Parse error: {e}")
        else:
            response = await server.handle_request(request_data)

        if response:  # Don't send response for notifications
            stdout.write(json.dumps(response) + "\n")
            stdout.flush()


async def main():
    """Main entry point for MCP server"""
    config = AppConfig.from_env()
    # stdout carries the protocol
    setup_logging(config.server.log_level, service_name="docsearch-mcp",
                  use_json=config.server.log_json, stream=sys.stderr)

    store = await open_store(config.database)
    embedder = HashEmbedder(config.search.embedding_dim)
    engine = SearchEngine(store, embedder, config.search)

    async with DocsFetcher(config.fetcher) as fetcher:
        refresher = DocsRefresher(store, fetcher, embedder, config.search.embedding_dim)
        server = MCPServer(engine, store, refresher, config.server)
        try:
            await serve_stdio(server)
        finally:
            await store.close()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
