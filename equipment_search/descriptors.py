"""
Binary descriptor codec.

Reference and query descriptors travel as base64 text. Once decoded they
are ORB-style binary vectors, 32 bytes each, stacked into an (N, 32)
uint8 array, the layout cv2.BFMatcher and faiss binary indexes expect.
"""

import base64
import binascii
import logging
from typing import Union

import numpy as np

from .errors import MalformedDescriptorData

logger = logging.getLogger(__name__)

# ORB descriptors are 256 bits
DESCRIPTOR_SIZE = 32


def empty_descriptors() -> np.ndarray:
    return np.empty((0, DESCRIPTOR_SIZE), dtype=np.uint8)


def decode_descriptors(encoded: Union[str, bytes]) -> np.ndarray:
    """
    Decode a base64 blob into a descriptor matrix.

    Args:
        encoded: Base64 text (str or ASCII bytes). An empty blob is valid
            and decodes to an empty collection.

    Returns:
        uint8 ndarray of shape (N, DESCRIPTOR_SIZE). The array owns its
        memory; nothing refers back to the decode buffer.

    Raises:
        MalformedDescriptorData: If the text is not valid base64 or the
            decoded length is not a multiple of DESCRIPTOR_SIZE.
    """
    if encoded is None:
        raise MalformedDescriptorData("Descriptor blob is missing")

    try:
        raw = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise MalformedDescriptorData(f"Failed to decode base64 content: {e}") from e

    if len(raw) % DESCRIPTOR_SIZE != 0:
        raise MalformedDescriptorData(
            f"Invalid descriptor buffer length: {len(raw)}. "
            f"Must be a multiple of {DESCRIPTOR_SIZE}."
        )

    if not raw:
        return empty_descriptors()

    count = len(raw) // DESCRIPTOR_SIZE
    return np.frombuffer(raw, dtype=np.uint8).reshape(count, DESCRIPTOR_SIZE).copy()


def encode_descriptors(descriptors: np.ndarray) -> str:
    """Encode a descriptor matrix as base64 text. None encodes to ''."""
    if descriptors is None:
        return ""

    raw = np.ascontiguousarray(descriptors).view(np.uint8).tobytes()
    if len(raw) % DESCRIPTOR_SIZE != 0:
        raise MalformedDescriptorData(
            f"Descriptor buffer of {len(raw)} bytes is not a multiple of {DESCRIPTOR_SIZE}"
        )
    return base64.b64encode(raw).decode("ascii")


def as_descriptor_matrix(descriptors) -> np.ndarray:
    """
    Coerce an array into the contiguous (N, 32) uint8 layout used for matching.

    Raises:
        MalformedDescriptorData: If the input cannot be reinterpreted as
            fixed-width binary descriptors.
    """
    try:
        array = np.asarray(descriptors)
    except (TypeError, ValueError) as e:
        raise MalformedDescriptorData(f"Descriptors are not array-like: {e}") from e

    if array.dtype != np.uint8:
        if not np.issubdtype(array.dtype, np.number):
            raise MalformedDescriptorData(f"Cannot convert {array.dtype} descriptors to uint8")
        logger.warning(f"Query descriptors are {array.dtype}, converting to uint8")
        if array.size and (array.min() < 0 or array.max() > 255):
            raise MalformedDescriptorData("Descriptor values fall outside the uint8 range")
        array = array.astype(np.uint8)

    if array.ndim != 2 or array.shape[1] != DESCRIPTOR_SIZE:
        raise MalformedDescriptorData(
            f"Expected descriptors of shape (N, {DESCRIPTOR_SIZE}), got {array.shape}"
        )

    return np.ascontiguousarray(array)
