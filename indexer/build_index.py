# Builds the docs search database and runs one-off searches against it.

import argparse, asyncio, json, logging, sys
from typing import List, Optional

from config.database import open_store
from config.settings import AppConfig
from indexer.embeddings import HashEmbedder
from observability.logging import setup_logging
from pipelines.fetcher import DocsFetcher, LocalDocsSource
from pipelines.refresh import DocsRefresher
from search.engine import SearchEngine
from search.errors import DocSearchError
from search.models import Difficulty, SearchFilters, SearchOptions

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docsearch-index", description="Docs search index tools")
    parser.add_argument("--db", help="SQLite database path (overrides DOCSEARCH_SQLITE_PATH)")
    parser.add_argument("--log-level", default=None, help="Log level")
    sub = parser.add_subparsers(dest="command", required=True)

    refresh = sub.add_parser("refresh", help="Fetch, embed and store all documents")
    refresh.add_argument("--docs-dir", help="Index markdown files from a local directory instead of the remote source")

    search = sub.add_parser("search", help="Run a search and print JSON results")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=None)
    search.add_argument("--concept", action="store_true", help="Treat QUERY as an exact concept name")
    search.add_argument("--tag", action="append", dest="tags", help="Require one of these tags (repeatable)")
    search.add_argument("--difficulty", choices=[d.value for d in Difficulty])
    return parser


async def refresh_command(config: AppConfig, docs_dir: Optional[str]) -> int:
    store = await open_store(config.database)
    embedder = HashEmbedder(config.search.embedding_dim)
    try:
        if docs_dir:
            source = LocalDocsSource(docs_dir)
            report = await DocsRefresher(store, source, embedder, config.search.embedding_dim).refresh()
        else:
            async with DocsFetcher(config.fetcher) as fetcher:
                report = await DocsRefresher(store, fetcher, embedder, config.search.embedding_dim).refresh()
    finally:
        await store.close()

    print(f"Indexed {report.refreshed} files into {config.database.sqlite_path} ({report.failed} failed)")
    return 0 if report.failed == 0 else 1


async def search_command(config: AppConfig, args: argparse.Namespace) -> int:
    filters = None
    if args.tags or args.difficulty:
        filters = SearchFilters(tags=args.tags, difficulty=args.difficulty)
    options = SearchOptions(limit=args.limit, filters=filters)

    store = await open_store(config.database)
    try:
        engine = SearchEngine(store, HashEmbedder(config.search.embedding_dim), config.search)
        if args.concept:
            results = await engine.search_by_concept(args.query, options)
        else:
            results = await engine.search(args.query, options)
    finally:
        await store.close()

    print(json.dumps([result.to_dict() for result in results], indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = AppConfig.from_env()
    if args.db:
        config.database.sqlite_path = args.db
    setup_logging(args.log_level or config.server.log_level, service_name="docsearch-index", stream=sys.stderr)

    try:
        if args.command == "refresh":
            return asyncio.run(refresh_command(config, args.docs_dir))
        return asyncio.run(search_command(config, args))
    except (DocSearchError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
