"""
Vector similarity for embedding comparison.

Pure functions only; safe to call from any thread.
"""

from typing import Sequence, Union

import numpy as np

from .errors import DimensionMismatch

Vector = Union[np.ndarray, Sequence[float]]


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Calculate cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector of the same dimensionality

    Returns:
        Similarity in [-1.0, 1.0]; 0.0 if either vector has zero magnitude

    Raises:
        DimensionMismatch: If the vectors differ in length
        ValueError: If either vector contains non-finite values
    """
    a = np.asarray(a, dtype=np.float64).ravel()
    b = np.asarray(b, dtype=np.float64).ravel()

    if a.shape[0] != b.shape[0]:
        raise DimensionMismatch(a.shape[0], b.shape[0])

    if not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
        raise ValueError("Vector contains non-finite values")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = np.dot(a, b) / (norm_a * norm_b)

    # Rounding can push identical vectors slightly past 1.0
    return float(np.clip(similarity, -1.0, 1.0))


def similarity_to_score(similarity: float) -> int:
    """Map cosine similarity to a 0-100 display score."""
    return int(round(max(0.0, similarity) * 100))
