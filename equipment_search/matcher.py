"""
Template matcher.

Compares a query descriptor collection against every reference template
of a category with a k=2 Hamming nearest-neighbour search and the ratio
test, then ranks templates by the number of good matches.

Matching is brute force over all templates. With early_exit the scan
stops at the first template that reaches the threshold; that template is
not necessarily the best one. This is an opt-in fast path for callers
that only need some confident identification.
"""

import os
import logging
from typing import List, Optional

import numpy as np

from .category_cache import CategoryCache
from .descriptors import as_descriptor_matrix
from .errors import LoadError, MalformedDescriptorData
from .knn import HammingKnn, get_backend
from .scoring import RATIO_THRESHOLD, MatchResult, count_good_matches, rank_matches

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = int(os.environ.get("MATCH_THRESHOLD", "10"))
DEFAULT_TOP_N = int(os.environ.get("MATCH_TOP_N", "3"))


class Matcher:
    """Matches query descriptors against a category's cached templates."""

    def __init__(self,
                 cache: CategoryCache,
                 backend: Optional[HammingKnn] = None,
                 ratio: float = RATIO_THRESHOLD):
        self.cache = cache
        self.backend = backend or get_backend()
        self.ratio = ratio

    def match(self,
              query: np.ndarray,
              category: str,
              threshold: int = DEFAULT_THRESHOLD,
              top_n: int = DEFAULT_TOP_N,
              early_exit: bool = False) -> List[MatchResult]:
        """
        Find the templates in a category that best match a query.

        Args:
            query: (N, 32) binary descriptors of the unknown crop.
            category: Category to match against, e.g. "weapon/main".
            threshold: Minimum good-match count for a template to be
                included.
            top_n: Maximum number of results.
            early_exit: Stop scanning at the first template reaching the
                threshold.

        Returns:
            MatchResults sorted by confidence descending. Empty when the
            query is empty, the category has no usable templates, or the
            query cannot be converted for matching.
        """
        if query is None or np.size(query) == 0:
            logger.info("Query descriptors are empty, skipping matching.")
            return []

        try:
            templates = self.cache.ensure_loaded(category)
        except LoadError as e:
            logger.warning(f"Features for {category} could not be loaded: {e}. Skipping match.")
            return []

        if not templates:
            logger.warning(f"No templates available for {category}. Skipping match.")
            return []

        try:
            query_matrix = as_descriptor_matrix(query)
        except MalformedDescriptorData as e:
            logger.error(f"Failed to convert query descriptors: {e}")
            return []

        results = []
        evaluated = 0
        for name, reference in templates.items():
            confidence = self._score_template(query_matrix, name, reference)
            evaluated += 1
            if confidence is None:
                continue

            logger.debug(f"{category}/{name}: {confidence} good matches")
            if confidence >= threshold:
                results.append(MatchResult(name, confidence))
                if early_exit:
                    logger.debug(f"Early exit at {name} after {evaluated} templates")
                    break

        ranked = rank_matches(results, top_n)
        logger.info(
            f"Match complete for {category}: {evaluated} templates evaluated → "
            f"{len(ranked)} results"
        )
        return ranked

    def _score_template(self, query: np.ndarray, name: str,
                        reference: np.ndarray) -> Optional[int]:
        """Good-match count for one template, or None if it must be skipped."""
        if reference is None or reference.size == 0:
            logger.warning(f"Cached template descriptors for {name!r} are empty or invalid.")
            return None
        if reference.dtype != np.uint8 or reference.ndim != 2 or reference.shape[1] != query.shape[1]:
            logger.warning(f"Cached template descriptors for {name!r} are not {query.shape[1]}-byte uint8. Skipping.")
            return None

        try:
            distances, indices = self.backend.search(query, reference, k=2)
        except Exception as e:
            logger.error(f"Error matching against template {name!r}: {e}")
            return None

        return count_good_matches(distances, indices, self.ratio)
