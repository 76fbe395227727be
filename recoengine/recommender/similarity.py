"""Similarity kernels.

Cosine similarity compares sparse feature vectors (profile vs product,
product vs product). Jaccard similarity compares sets of purchased product
ids when matching neighbor users.
"""

import logging
from typing import AbstractSet, Hashable, List, Mapping, Sequence

import numpy as np
from scipy.sparse import csr_matrix
from sklearn.feature_extraction import DictVectorizer
from sklearn.metrics.pairwise import cosine_similarity as sk_cosine_similarity

# Configure module logger
logger = logging.getLogger(__name__)


def cosine_similarity(
    vector_a: Mapping[str, float],
    vector_b: Mapping[str, float],
) -> float:
    """Cosine similarity of two sparse vectors.

    Keys missing from one vector count as 0 there. Weights are non-negative,
    so the result lies in [0, 1].

    Args:
        vector_a: First feature vector.
        vector_b: Second feature vector.

    Returns:
        ``dot / (|a| * |b|)``, or 0.0 when either vector is all zeros.
    """
    keys = sorted(set(vector_a) | set(vector_b))
    if not keys:
        return 0.0

    a = np.array([vector_a.get(k, 0.0) for k in keys], dtype=np.float64)
    b = np.array([vector_b.get(k, 0.0) for k in keys], dtype=np.float64)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    return min(max(similarity, 0.0), 1.0)


def batch_cosine_similarity(
    vector: Mapping[str, float],
    candidates: Sequence[Mapping[str, float]],
) -> List[float]:
    """Cosine similarity of one vector against many.

    Vectorizes all inputs into a shared sparse matrix so large catalogs are
    scored in one pass.

    Args:
        vector: Reference feature vector (e.g. a user's interests).
        candidates: Feature vectors to score, e.g. one per product.

    Returns:
        Similarities in the same order as ``candidates``.
    """
    if not candidates:
        return []

    vectorizer = DictVectorizer(sparse=True)
    matrix: csr_matrix = vectorizer.fit_transform([dict(vector), *map(dict, candidates)])

    if matrix.shape[1] == 0:
        return [0.0] * len(candidates)

    scores = sk_cosine_similarity(matrix[0], matrix[1:])[0]
    scores = np.clip(scores, 0.0, 1.0)

    logger.debug(
        "Scored candidates by cosine similarity",
        extra={"num_candidates": len(candidates), "num_features": matrix.shape[1]},
    )

    return [float(s) for s in scores]


def jaccard_similarity(set_a: AbstractSet[Hashable], set_b: AbstractSet[Hashable]) -> float:
    """Jaccard similarity ``|A & B| / |A | B|``; 0.0 for an empty union."""
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)
