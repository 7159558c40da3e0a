# Docs search embeddings module
# Hash-based bag-of-words embeddings; no model download, no network

import math
import re
import logging
from collections import Counter
from typing import Dict, List

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_DIMENSIONS = 1536
MIN_TOKEN_LENGTH = 3

# ASCII word characters only; \s still matches Unicode whitespace
_NON_WORD = re.compile(r"[^A-Za-z0-9_\s]")


def tokenize(text: str) -> List[str]:
    """Lowercase, drop punctuation, split on whitespace and keep tokens of 3+ characters."""
    cleaned = _NON_WORD.sub("", text.lower())
    return [token for token in cleaned.split() if len(token) >= MIN_TOKEN_LENGTH]


def term_frequencies(tokens: List[str]) -> Dict[str, int]:
    return dict(Counter(tokens))


def string_hash(token: str) -> int:
    """Polynomial string hash (h * 31 + code point) wrapped to a signed 32-bit int."""
    h = 0
    for ch in token:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


class HashEmbedder:
    """Maps text to a fixed-length, L2-normalised term-frequency vector.

    Each distinct token lands in bucket ``abs(hash) % dimensions``. Bucket
    collisions between different tokens are accepted. Similarity between two
    embeddings is a lexical-overlap proxy, not a semantic one.
    """

    def __init__(self, dimensions: int = DEFAULT_DIMENSIONS):
        """
        Initialize embedder

        Args:
            dimensions: Length of every produced vector
        """
        if dimensions < 1:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions

    def bucket(self, token: str) -> int:
        return abs(string_hash(token)) % self.dimensions

    def embed(self, text: str) -> np.ndarray:
        """Generate the embedding for a single text.

        Text without usable tokens yields the all-zero vector.
        """
        tokens = tokenize(text)
        vector = np.zeros(self.dimensions, dtype=np.float64)
        if not tokens:
            return vector.astype(np.float32)

        scale = math.sqrt(len(tokens))
        for token, freq in term_frequencies(tokens).items():
            vector[self.bucket(token)] += freq / scale

        norm = np.linalg.norm(vector)
        if norm == 0:
            return vector.astype(np.float32)
        return (vector / norm).astype(np.float32)

    def embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        """Generate embeddings for multiple texts."""
        return [self.embed(text) for text in texts]


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity; 0.0 when either vector has zero norm."""
    if a.shape != b.shape:
        raise ValueError(f"Vectors must have same dimension: {a.shape[0]} != {b.shape[0]}")
    denom = float(np.linalg.norm(a)) * float(np.linalg.norm(b))
    if denom == 0:
        return 0.0
    return float(np.dot(a, b) / denom)
