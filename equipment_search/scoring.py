"""
Ratio-test scoring and ranking of template matches.

A query descriptor supports a template when its nearest reference
descriptor is clearly closer than the second nearest (Lowe's ratio test).
A template's confidence is the number of query descriptors that pass.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, List

import numpy as np

# Lowe's ratio test threshold; lower = stricter matching
RATIO_THRESHOLD = float(os.environ.get("MATCH_DISTANCE_RATIO", "0.75"))


@dataclass(frozen=True)
class MatchResult:
    """A template that passed the confidence threshold for one query."""

    template_name: str
    confidence: int

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.template_name, "confidence": self.confidence}


def count_good_matches(distances: np.ndarray,
                       indices: np.ndarray,
                       ratio: float = RATIO_THRESHOLD) -> int:
    """
    Count query descriptors whose k=2 neighbours pass the ratio test.

    Args:
        distances: (N, 2) Hamming distances to the nearest and second
            nearest reference descriptor of each query row.
        indices: (N, 2) reference indices; -1 marks a missing neighbour.
        ratio: Ratio test threshold.

    Returns:
        Number of rows where nearest < ratio * second nearest. Rows with
        fewer than two neighbours never count.
    """
    if distances.size == 0 or distances.ndim != 2 or distances.shape[1] < 2:
        return 0

    nearest = distances[:, 0].astype(np.float64)
    second = distances[:, 1].astype(np.float64)
    complete = (indices[:, 0] >= 0) & (indices[:, 1] >= 0)

    good = complete & (nearest < ratio * second)
    return int(np.count_nonzero(good))


def rank_matches(results: List[MatchResult], top_n: int) -> List[MatchResult]:
    """
    Sort by confidence (highest first) and keep the top_n.

    sorted() is stable, so templates with equal confidence keep the order
    in which they were evaluated.
    """
    if top_n <= 0:
        return []
    return sorted(results, key=lambda r: -r.confidence)[:top_n]
