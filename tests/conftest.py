"""Shared fixtures: a small documentation corpus in an in-memory SQLite store."""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from config.settings import SearchConfig
from indexer.embeddings import HashEmbedder
from indexer.sqlite_adapter import SQLiteAdapter
from search.engine import SearchEngine
from search.models import CodeCategory, CodeExample, Difficulty, Document

TEST_DIM = 256

CORPUS = [
    {
        "id": "doc-state",
        "path": "reactivity/state.md",
        "concept": "reactivity",
        "content": "Declare reactive state with the $state rune. Assigning to state updates the page.",
        "tags": ["runes", "state"],
        "related_concepts": [],
        "difficulty": Difficulty.BEGINNER,
        "code_examples": [
            CodeExample(
                language="svelte",
                code="let count = $state(0);\nfunction increment() { count += 1; }",
                category=CodeCategory.STATE_MANAGEMENT,
                runes=["state"],
                functions=["increment"],
            )
        ],
    },
    {
        "id": "doc-derived",
        "path": "reactivity/derived.md",
        "concept": "reactivity",
        "content": "Derived values recompute when their dependencies change, declared with the $derived rune.",
        "tags": ["runes", "derived"],
        "related_concepts": ["state"],
        "difficulty": Difficulty.INTERMEDIATE,
        "code_examples": [
            CodeExample(
                language="svelte",
                code="let doubled = $derived(count * 2);",
                category=CodeCategory.STATE_MANAGEMENT,
                runes=["derived"],
            )
        ],
    },
    {
        "id": "doc-routing",
        "path": "kit/routing.md",
        "concept": "routing",
        "content": "SvelteKit routing is filesystem based. Each route directory holds a +page.svelte file.",
        "tags": ["routing", "kit"],
        "related_concepts": ["layouts"],
        "difficulty": Difficulty.INTERMEDIATE,
        "code_examples": [
            CodeExample(
                language="svelte",
                code="<Layout>\n  <slot />\n</Layout>",
                category=CodeCategory.ROUTING,
                components=["Layout"],
            )
        ],
    },
    {
        "id": "doc-props",
        "path": "components/props.md",
        "concept": "props",
        "content": "Components receive their inputs through the $props rune.",
        "tags": ["props"],
        "related_concepts": ["components"],
        "difficulty": Difficulty.BEGINNER,
        "code_examples": [
            CodeExample(
                language="svelte",
                code="let { label } = $props();\n<Button {label} />",
                category=CodeCategory.COMPONENTS,
                runes=["props"],
                components=["Button"],
            )
        ],
    },
    {
        "id": "doc-snippets",
        "path": "components/snippets.md",
        "concept": "snippets",
        "content": "Slots were replaced by snippets for advanced component composition.",
        "tags": ["slots"],
        "related_concepts": [],
        "difficulty": Difficulty.ADVANCED,
        "code_examples": [],
    },
]

CORPUS_IDS = {entry["id"] for entry in CORPUS}


def make_document(entry: dict, embedder: HashEmbedder) -> Document:
    return Document(
        id=entry["id"],
        content=entry["content"],
        concept=entry["concept"],
        related_concepts=list(entry["related_concepts"]),
        code_examples=list(entry["code_examples"]),
        difficulty=entry["difficulty"],
        tags=list(entry["tags"]),
        embedding=embedder.embed(entry["content"]),
        last_updated=datetime(2024, 5, 1, tzinfo=timezone.utc),
    )


async def load_corpus(store: SQLiteAdapter, embedder: HashEmbedder):
    for entry in CORPUS:
        doc = make_document(entry, embedder)
        await store.upsert_document(entry["path"], doc)
        await store.replace_code_metadata(doc.id, doc.code_examples)


@pytest.fixture
def embedder():
    return HashEmbedder(TEST_DIM)


@pytest.fixture
def search_config():
    return SearchConfig(embedding_dim=TEST_DIM)


@pytest_asyncio.fixture
async def empty_store():
    store = SQLiteAdapter(":memory:")
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def store(embedder):
    store = SQLiteAdapter(":memory:")
    await store.initialize()
    await load_corpus(store, embedder)
    yield store
    await store.close()


@pytest_asyncio.fixture
async def keyword_only_store(embedder):
    """Corpus on a connection without the vector similarity function."""
    store = SQLiteAdapter(":memory:", enable_vector_functions=False)
    await store.initialize()
    await load_corpus(store, embedder)
    yield store
    await store.close()


@pytest.fixture
def engine(store, embedder, search_config):
    return SearchEngine(store, embedder, search_config)
