"""
Reads per-category cache artifacts from disk.

Each category has one JSON artifact at <cache_dir>/<category>_features.json
holding two parallel lists:
    template_names:   template identifiers
    descriptors_list: base64 descriptor blobs, same length and order

Bad entries are skipped with a log line; only a missing artifact or a
structurally broken one fails the whole load.
"""

import os
import json
import logging
from typing import Dict, Optional

import numpy as np

from .descriptors import decode_descriptors
from .errors import ArtifactMalformed, ArtifactMissing, MalformedDescriptorData

logger = logging.getLogger(__name__)

# Directory holding the pre-built artifacts
DEFAULT_CACHE_DIR = os.environ.get("CACHE_DIR")

ARTIFACT_SUFFIX = "_features.json"


class CacheLoader:
    """Loads reference descriptors for one category at a time."""

    def __init__(self, cache_dir: Optional[str] = None):
        cache_dir = cache_dir or DEFAULT_CACHE_DIR
        if not cache_dir:
            raise ValueError("CACHE_DIR is not set")
        self.cache_dir = cache_dir

    def artifact_path(self, category: str) -> str:
        return os.path.join(self.cache_dir, f"{category}{ARTIFACT_SUFFIX}")

    def load(self, category: str) -> Dict[str, np.ndarray]:
        """
        Load and decode every usable entry of a category's artifact.

        Args:
            category: Category identifier, e.g. "weapon/main".

        Returns:
            Dict mapping template name to its (N, 32) uint8 descriptors.
            May be empty if the artifact lists no usable templates.

        Raises:
            ArtifactMissing: No artifact file exists for the category.
            ArtifactMalformed: The file is not valid JSON or the two lists
                are absent or differ in length.
        """
        path = self.artifact_path(category)
        logger.info(f"Loading cache for {category} from: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ArtifactMissing(category, f"Cache file not found for {category}: {path}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ArtifactMalformed(category, f"Cache file for {category} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ArtifactMalformed(category, f"Invalid cache file format for {category}")

        names = data.get("template_names")
        blobs = data.get("descriptors_list")
        if not isinstance(names, list) or not isinstance(blobs, list):
            raise ArtifactMalformed(category, f"Invalid cache file format for {category}")
        if len(names) != len(blobs):
            raise ArtifactMalformed(
                category,
                f"Invalid cache file format for {category}: "
                f"{len(names)} template names but {len(blobs)} descriptor blobs",
            )

        logger.info(f"Loading {len(names)} features for {category} from cache...")

        entries = {}
        for name, blob in zip(names, blobs):
            if not isinstance(name, str):
                logger.warning(f"Skipping template with non-string name {name!r} ({category})")
                continue
            if not blob:
                logger.warning(f"Null or empty descriptor string found for {name} ({category}) in cache.")
                continue

            try:
                descriptors = decode_descriptors(blob)
            except MalformedDescriptorData as e:
                logger.error(f"Error deserializing descriptor for {name} ({category}): {e}")
                continue

            if descriptors.size == 0:
                logger.warning(f"Deserialized descriptor for {name} ({category}) is empty.")
                continue

            if name in entries:
                logger.warning(f"Duplicate template {name} in {category}, keeping the later entry")
            entries[name] = descriptors

        logger.info(f"Successfully loaded {len(entries)} features for {category}.")
        return entries
