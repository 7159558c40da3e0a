"""Indexing: embeddings, vector codec, markdown processing and the SQLite store."""
