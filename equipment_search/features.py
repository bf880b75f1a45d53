"""
ORB feature extraction for equipment crops.

Produces the 32-byte binary descriptors stored in cache artifacts and
sent in detection requests. Crops are small, flat game art, so only a
grayscale conversion is applied before detection.
"""

import os
import logging

import cv2
import numpy as np

from .descriptors import empty_descriptors

logger = logging.getLogger(__name__)

DEFAULT_N_FEATURES = int(os.environ.get("ORB_N_FEATURES", "200"))


def load_image(path: str) -> np.ndarray:
    """Read an image from disk as BGR uint8."""
    image = cv2.imread(path, cv2.IMREAD_COLOR)
    if image is None:
        raise FileNotFoundError(f"Could not read image: {path}")
    return image


def _as_uint8(image: np.ndarray) -> np.ndarray:
    """Scale [0, 1] float images to 0..255 and saturate everything else."""
    if image.dtype == np.uint8:
        return image
    if np.issubdtype(image.dtype, np.floating):
        image = np.nan_to_num(image)
        if image.size and image.max() <= 1.0:
            image = image * 255
    return np.clip(image, 0, 255).astype(np.uint8)


def to_gray(image: np.ndarray) -> np.ndarray:
    image = _as_uint8(image)
    if image.ndim == 2:
        return np.ascontiguousarray(image)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def extract_descriptors(image: np.ndarray,
                        n_features: int = DEFAULT_N_FEATURES) -> np.ndarray:
    """
    Extract ORB descriptors from a BGR, BGRA or grayscale image.

    Args:
        image: uint8 image (float images in [0, 1] are rescaled).
        n_features: Maximum number of keypoints to keep.

    Returns:
        uint8 ndarray of shape (N, 32); (0, 32) if no keypoints were
        found or extraction failed.
    """
    try:
        gray = to_gray(image)
        orb = cv2.ORB_create(nfeatures=n_features)
        _, descriptors = orb.detectAndCompute(gray, None)
    except cv2.error as e:
        logger.error(f"ORB extraction error: {e}")
        return empty_descriptors()

    if descriptors is None:
        logger.debug("No ORB keypoints found")
        return empty_descriptors()

    logger.debug(f"Extracted {len(descriptors)} ORB features")
    return descriptors
