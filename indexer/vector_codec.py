"""Conversion between embedding vectors and their stored/query encodings.

Stored form: little-endian float32 bytes, 4 bytes per component.
Query form: ``[x0,x1,...]`` text whose decimals parse back to exactly the
same float32 components.
"""

import json
from typing import Optional, Sequence, Union

import numpy as np

from search.errors import MalformedRowError

FLOAT32_LE = np.dtype('<f4')
BYTES_PER_COMPONENT = FLOAT32_LE.itemsize

VectorLike = Union[np.ndarray, Sequence[float]]


def _as_float32(vector: VectorLike, dim: Optional[int] = None) -> np.ndarray:
    arr = np.asarray(vector, dtype=FLOAT32_LE)
    if arr.ndim != 1:
        raise ValueError(f"Expected a 1-D vector, got shape {arr.shape}")
    if dim is not None and arr.shape[0] != dim:
        raise ValueError(f"Vector must have dimension {dim}, got {arr.shape[0]}")
    return arr


def encode(vector: VectorLike, dim: Optional[int] = None) -> bytes:
    """Encode a vector as little-endian float32 bytes."""
    return _as_float32(vector, dim).tobytes()


def decode(blob: Union[bytes, bytearray, memoryview], dim: Optional[int] = None,
           doc_id: Optional[str] = None) -> np.ndarray:
    """Decode float32 bytes back into a vector.

    Raises:
        MalformedRowError: if the byte length is not a multiple of 4, or the
            component count differs from ``dim``
    """
    raw = bytes(blob)
    if len(raw) % BYTES_PER_COMPONENT:
        raise MalformedRowError(
            f"embedding blob length {len(raw)} is not a multiple of {BYTES_PER_COMPONENT}",
            doc_id
        )
    vector = np.frombuffer(raw, dtype=FLOAT32_LE).astype(np.float32)
    if dim is not None and vector.shape[0] != dim:
        raise MalformedRowError(
            f"embedding has {vector.shape[0]} components, expected {dim}",
            doc_id
        )
    return vector


def to_query_literal(vector: VectorLike, dim: Optional[int] = None) -> str:
    """Render a vector as the textual argument accepted by the similarity SQL function."""
    arr = _as_float32(vector, dim)
    # repr of the widened float32 parses back to the identical float32
    return "[" + ",".join(repr(float(x)) for x in arr) + "]"


def from_query_literal(literal: str) -> np.ndarray:
    """Parse a query literal produced by ``to_query_literal``."""
    try:
        values = json.loads(literal)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid vector literal: {e}") from e
    if not isinstance(values, list):
        raise ValueError("Vector literal must be a JSON array")
    return _as_float32(values)


def coerce_vector(value: Union[bytes, bytearray, memoryview, str, None]) -> Optional[np.ndarray]:
    """Accept either stored bytes or a query literal; None passes through."""
    if value is None:
        return None
    if isinstance(value, str):
        return from_query_literal(value)
    return decode(value)
