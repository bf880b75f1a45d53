"""
Builds per-category cache artifacts from template images.

Scans a directory of template crops, extracts ORB descriptors from each
and writes <cache_dir>/<category>_features.json in the format read by
CacheLoader. Template names are the image file stems.
"""

import os
import json
import logging
from typing import List

from .cache_loader import ARTIFACT_SUFFIX
from .descriptors import encode_descriptors
from .features import DEFAULT_N_FEATURES, extract_descriptors, load_image

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".webp"}


def write_artifact(path: str, template_names: List[str], descriptors_list: List[str]) -> None:
    """Write the two parallel lists as a JSON artifact."""
    if len(template_names) != len(descriptors_list):
        raise ValueError(
            f"{len(template_names)} template names but {len(descriptors_list)} descriptor blobs"
        )

    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"template_names": template_names, "descriptors_list": descriptors_list}, f)


def build_category_artifact(image_dir: str,
                            cache_dir: str,
                            category: str,
                            n_features: int = DEFAULT_N_FEATURES) -> dict:
    """
    Build the cache artifact for one category.

    Images that cannot be read, or that yield no descriptors, are kept in
    the artifact with an empty blob so the catalogue still lists them;
    the loader skips such entries.

    Args:
        image_dir: Directory of template images.
        cache_dir: Root cache directory.
        category: Category identifier; may contain '/'.
        n_features: ORB keypoint budget per template.

    Returns:
        Dict with 'success', 'templates', 'with_descriptors', 'errors'
        and 'artifact_path'.
    """
    filenames = sorted(
        f for f in os.listdir(image_dir)
        if os.path.splitext(f)[1].lower() in IMAGE_EXTENSIONS
    )
    if not filenames:
        return {"success": False, "error": f"No template images found in {image_dir}"}

    logger.info(f"Building {category} cache from {len(filenames)} images in {image_dir}")

    names = []
    blobs = []
    with_descriptors = 0
    errors = 0

    for filename in filenames:
        name = os.path.splitext(filename)[0]
        try:
            descriptors = extract_descriptors(load_image(os.path.join(image_dir, filename)), n_features)
        except FileNotFoundError as e:
            logger.warning(f"Failed to process {filename}: {e}")
            descriptors = None
            errors += 1

        if descriptors is not None and descriptors.size > 0:
            with_descriptors += 1
        elif descriptors is not None:
            logger.warning(f"No descriptors extracted for {filename}")

        names.append(name)
        blobs.append(encode_descriptors(descriptors))

    path = os.path.join(cache_dir, f"{category}{ARTIFACT_SUFFIX}")
    write_artifact(path, names, blobs)

    logger.info(
        f"Cache built for {category}: {len(names)} templates, "
        f"{with_descriptors} with descriptors, {errors} errors"
    )

    return {
        "success": True,
        "templates": len(names),
        "with_descriptors": with_descriptors,
        "errors": errors,
        "artifact_path": path,
    }
