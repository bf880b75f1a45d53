"""
Exact k-nearest-neighbour search over binary descriptors.

Two interchangeable brute-force backends compute Hamming distances:
    opencv  cv2.BFMatcher with NORM_HAMMING (default)
    faiss   faiss.IndexBinaryFlat, built per reference set

Both return (distances, indices) arrays of shape (N, k), with index -1
where a query row has fewer than k neighbours (reference set smaller
than k).
"""

import os
import logging
from typing import Tuple

import cv2
import faiss
import numpy as np

from .descriptors import DESCRIPTOR_SIZE

logger = logging.getLogger(__name__)

DEFAULT_BACKEND = os.environ.get("KNN_BACKEND", "opencv")


class HammingKnn:
    """Base class for Hamming-distance kNN backends."""

    name = "base"

    def search(self, query: np.ndarray, reference: np.ndarray,
               k: int = 2) -> Tuple[np.ndarray, np.ndarray]:
        raise NotImplementedError


def _empty_result(n: int, k: int) -> Tuple[np.ndarray, np.ndarray]:
    return np.zeros((n, k), dtype=np.int32), np.full((n, k), -1, dtype=np.int64)


class BFMatcherKnn(HammingKnn):
    """OpenCV brute-force matcher."""

    name = "opencv"

    def __init__(self):
        # Stateless between calls, safe to share across threads
        self._matcher = cv2.BFMatcher(cv2.NORM_HAMMING, crossCheck=False)

    def search(self, query, reference, k=2):
        distances, indices = _empty_result(len(query), k)
        if len(query) == 0 or len(reference) == 0:
            return distances, indices

        for row, neighbours in enumerate(self._matcher.knnMatch(query, reference, k=k)):
            for col, m in enumerate(neighbours[:k]):
                distances[row, col] = int(round(m.distance))
                indices[row, col] = m.trainIdx
        return distances, indices


class FaissBinaryKnn(HammingKnn):
    """faiss exact binary index, rebuilt for every reference set."""

    name = "faiss"

    def search(self, query, reference, k=2):
        if len(query) == 0 or len(reference) == 0:
            return _empty_result(len(query), k)

        index = faiss.IndexBinaryFlat(DESCRIPTOR_SIZE * 8)
        index.add(reference)
        distances, indices = index.search(query, k)
        return distances.astype(np.int32), indices.astype(np.int64)


_BACKENDS = {
    BFMatcherKnn.name: BFMatcherKnn,
    FaissBinaryKnn.name: FaissBinaryKnn,
}


def get_backend(name: str = None) -> HammingKnn:
    """Instantiate a backend by name ("opencv" or "faiss")."""
    name = (name or DEFAULT_BACKEND).lower()
    try:
        backend_cls = _BACKENDS[name]
    except KeyError:
        raise ValueError(
            f"Unknown kNN backend {name!r}; expected one of {sorted(_BACKENDS)}"
        ) from None

    logger.info(f"Using {backend_cls.name} kNN backend")
    return backend_cls()
