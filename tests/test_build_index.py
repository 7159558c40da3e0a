"""Tests for the indexing CLI."""

import json

import pytest

from indexer.build_index import build_parser, main

STATE_DOC = "# State\n\nDeclare reactive state with the $state rune.\n"
ROUTING_DOC = "# Routing\n\nFilesystem routing for SvelteKit pages.\n"


@pytest.fixture
def docs_dir(tmp_path):
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "state.md").write_text(STATE_DOC, encoding="utf-8")
    (docs / "routing.md").write_text(ROUTING_DOC, encoding="utf-8")
    return docs


def test_parser_search_options():
    args = build_parser().parse_args(["search", "runes", "--limit", "3", "--tag", "a", "--tag", "b"])
    assert args.command == "search"
    assert args.limit == 3
    assert args.tags == ["a", "b"]


def test_refresh_then_search(tmp_path, docs_dir, capsys, monkeypatch, restore_logging):
    monkeypatch.setenv("DOCSEARCH_EMBEDDING_DIM", "128")
    db = str(tmp_path / "index.db")

    assert main(["--db", db, "refresh", "--docs-dir", str(docs_dir)]) == 0
    assert "Indexed 2 files" in capsys.readouterr().out

    assert main(["--db", db, "search", "reactive state", "--limit", "1"]) == 0
    results = json.loads(capsys.readouterr().out)
    assert len(results) == 1
    assert results[0]["doc"]["concept"] == "state"

    assert main(["--db", db, "search", "routing", "--concept"]) == 0
    results = json.loads(capsys.readouterr().out)
    assert [r["doc"]["concept"] for r in results] == ["routing"]


def test_missing_docs_dir_fails(tmp_path, restore_logging):
    db = str(tmp_path / "index.db")
    assert main(["--db", db, "refresh", "--docs-dir", str(tmp_path / "missing")]) == 1


@pytest.fixture
def restore_logging():
    import logging

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
