"""Vector similarity and stored-vector encoding helpers."""

import json
from collections.abc import Sequence
from typing import Any

import numpy as np

from context_engine.core.errors import ParseFailure


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two vectors.

    A length mismatch means a stale or incompatible embedding and scores 0,
    as does a zero-norm vector.
    """
    if len(a) != len(b):
        return 0.0

    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)
    denominator = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if denominator == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / denominator)


def cosine_similarities(query: Sequence[float], vectors: Sequence[Sequence[float]]) -> list[float]:
    """
    Cosine similarity of one query vector against many candidates.

    Candidates with the query's dimension are stacked into one matrix;
    the rest, and zero-norm rows, score 0.
    """
    scores = np.zeros(len(vectors))
    query_vec = np.asarray(query, dtype=float)
    query_norm = np.linalg.norm(query_vec)

    same_dim = [i for i, vector in enumerate(vectors) if len(vector) == len(query_vec)]
    if not same_dim or query_norm == 0:
        return scores.tolist()

    matrix = np.asarray([vectors[i] for i in same_dim], dtype=float)
    norms = np.linalg.norm(matrix, axis=1) * query_norm
    dots = matrix @ query_vec
    safe_norms = np.where(norms > 0, norms, 1.0)
    scores[same_dim] = np.where(norms > 0, dots / safe_norms, 0.0)
    return scores.tolist()


def parse_vector(raw: Any) -> list[float]:
    """
    Decode a stored vector.

    Accepts a native numeric array or the bracketed comma-separated string
    form (``"[0.1,0.2,...]"``) that pgvector columns come back as.

    Raises:
        ParseFailure: If the value is not a non-empty numeric vector
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ParseFailure(f"Vector string is not a bracketed list: {e}") from e

    if not isinstance(raw, (list, tuple)):
        raise ParseFailure(f"Vector is not a string or array: {type(raw).__name__}")

    if not raw:
        raise ParseFailure("Vector is empty")

    vector: list[float] = []
    for value in raw:
        # bool is an int subclass but never a valid component
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ParseFailure(f"Vector component is not numeric: {value!r}")
        vector.append(float(value))

    return vector


def serialize_vector(vector: Sequence[float]) -> str:
    """Encode a vector in the bracketed string form used for writes."""
    return "[" + ",".join(repr(float(v)) for v in vector) + "]"
