"""Vector and text similarity used by memory search and the embedding cache."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from rapidfuzz.distance import Levenshtein


def cosine_similarities(query: Sequence[float], candidates: Sequence[Sequence[float]]) -> list[float]:
    """Cosine similarity of *query* against each candidate vector.

    Candidates whose dimension differs from the query score ``-1.0`` so they
    never pass a similarity threshold.
    """
    if not candidates:
        return []
    q = np.asarray(query, dtype=float)
    q_norm = np.linalg.norm(q)
    scores: list[float] = []
    for candidate in candidates:
        vec = np.asarray(candidate, dtype=float)
        if vec.shape != q.shape:
            scores.append(-1.0)
            continue
        denom = max(float(q_norm * np.linalg.norm(vec)), 1e-10)
        scores.append(float(np.dot(q, vec) / denom))
    return scores


def edit_distance(left: str, right: str, *, cutoff: int | None = None) -> int:
    """Levenshtein distance; above *cutoff* the result is ``cutoff + 1``."""
    return Levenshtein.distance(left, right, score_cutoff=cutoff)


__all__ = ["cosine_similarities", "edit_distance"]
