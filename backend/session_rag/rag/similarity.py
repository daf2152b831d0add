"""Cosine similarity and exact (linear scan) ranking."""

from typing import Callable, Iterable, Sequence, TypeVar

import numpy as np

from session_rag.core.errors import DimensionMismatchError

T = TypeVar("T")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors.

    Args:
        a: First vector.
        b: Second vector, same length as ``a``.

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero norm.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(
            f"Vectors must have the same length (got {len(a)} and {len(b)})"
        )

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    denominator = float(np.linalg.norm(vec_a) * np.linalg.norm(vec_b))
    if denominator == 0.0:
        return 0.0

    similarity = float(np.dot(vec_a, vec_b) / denominator)
    # Rounding can push |v|==|w| cases a hair outside the valid range
    return max(-1.0, min(1.0, similarity))


def rank_by_similarity(
    query: Sequence[float],
    items: Iterable[T],
    key: Callable[[T], Sequence[float]],
    limit: int | None = None,
) -> list[tuple[T, float]]:
    """Score every item against ``query`` and sort best first.

    Args:
        query: Query vector.
        items: Candidates to score.
        key: Returns the vector of a candidate.
        limit: Keep at most this many results.

    Returns:
        (item, similarity) pairs in descending similarity order.
    """
    scored = [(item, cosine_similarity(query, key(item))) for item in items]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    if limit is not None:
        scored = scored[:limit]
    return scored
