"""
equipment_search: descriptor matching for game equipment crops.

Identifies an unknown equipment crop by comparing its ORB descriptors
against per-category catalogues of reference templates, loaded lazily
from pre-built cache artifacts.

Modules:
    descriptors     Base64 <-> (N, 32) uint8 descriptor codec
    categories      Configured category set and routes
    cache_loader    Reads and validates per-category artifacts
    category_cache  Lazy, per-category locked reference cache
    knn             Hamming kNN backends (OpenCV, faiss)
    scoring         Ratio test and result ranking
    matcher         Template matching against a category
    service         Framework-neutral request handling
    features        ORB extraction for crops
    cache_builder   Builds artifacts from template images
    cli             Command-line entry point
"""

__version__ = "1.0.0"

from .cache_loader import CacheLoader
from .category_cache import CacheState, CacheStatus, CategoryCache
from .descriptors import DESCRIPTOR_SIZE, decode_descriptors, encode_descriptors
from .errors import (
    ArtifactMalformed,
    ArtifactMissing,
    InvalidRequest,
    LoadError,
    MalformedDescriptorData,
    UnknownCategory,
)
from .matcher import Matcher
from .scoring import MatchResult
from .service import DetectionService
