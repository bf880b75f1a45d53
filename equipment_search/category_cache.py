"""
Process-wide cache of reference descriptors, keyed by category.

Lifecycle per category:
    UNLOADED -> LOADING -> LOADED (entries) | LOAD_FAILED (error)

A category is loaded lazily on its first ensure_loaded() call. Loads are
serialized per category, so concurrent first-use callers trigger a single
artifact read and all observe the winner's result. Loads of different
categories never contend. Once published, entries are read-only for the
lifetime of the process; there is no refresh or eviction path.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

import numpy as np

from .cache_loader import CacheLoader
from .categories import configured_categories
from .errors import ArtifactMalformed, LoadError, UnknownCategory

logger = logging.getLogger(__name__)


class CacheStatus(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    LOAD_FAILED = "load-failed"


@dataclass(frozen=True)
class CacheState:
    """Snapshot of one category's load state."""

    status: CacheStatus
    entries: Optional[Mapping[str, np.ndarray]] = None
    error: Optional[LoadError] = None


_UNLOADED = CacheState(CacheStatus.UNLOADED)
_LOADING = CacheState(CacheStatus.LOADING)


def _detached(error: LoadError) -> LoadError:
    """Copy of a load failure with no traceback, safe to store and raise again."""
    return type(error)(error.category, str(error))


def _freeze(entries: Mapping[str, np.ndarray]) -> Mapping[str, np.ndarray]:
    frozen = {}
    for name, descriptors in entries.items():
        if isinstance(descriptors, np.ndarray):
            descriptors.setflags(write=False)
        frozen[name] = descriptors
    return MappingProxyType(frozen)


class CategoryCache:
    """
    Owns the reference catalogue of every configured category.

    The matcher receives an instance of this class instead of reaching for
    module-level state, so tests and services can run isolated caches.
    """

    def __init__(self, loader: CacheLoader, categories: Optional[Iterable[str]] = None):
        """
        Args:
            loader: Object with a load(category) -> dict method.
            categories: Category identifiers to serve. Defaults to the
                configured category set.
        """
        self.loader = loader
        names = tuple(categories) if categories is not None else configured_categories()

        self._states: Dict[str, CacheState] = {name: _UNLOADED for name in names}
        self._locks: Dict[str, threading.Lock] = {name: threading.Lock() for name in names}
        self._preload_lock = threading.Lock()
        self._ready: Optional[threading.Event] = None
        self._preload_thread: Optional[threading.Thread] = None

    @property
    def categories(self) -> List[str]:
        return list(self._states)

    def get(self, category: str) -> CacheState:
        """Return the current state of a category without blocking."""
        try:
            return self._states[category]
        except KeyError:
            raise UnknownCategory(category, f"Unknown category: {category}") from None

    def ensure_loaded(self, category: str) -> Mapping[str, np.ndarray]:
        """
        Return a category's reference entries, loading them on first use.

        Args:
            category: Category identifier.

        Returns:
            Read-only mapping of template name to descriptor matrix. An
            empty mapping means the category exists but has no usable
            templates.

        Raises:
            UnknownCategory: The category is not configured.
            ArtifactMissing: No artifact exists for the category.
            ArtifactMalformed: The artifact could not be used. Failures are
                recorded, and later calls raise a fresh error of the same
                type and message without reading storage again.
        """
        state = self.get(category)
        if state.status is CacheStatus.LOADED:
            return state.entries

        with self._locks[category]:
            # Another caller may have finished the load while we waited
            state = self._states[category]
            if state.status is CacheStatus.LOADED:
                return state.entries
            if state.status is CacheStatus.LOAD_FAILED:
                raise _detached(state.error)

            self._states[category] = _LOADING
            try:
                entries = self.loader.load(category)
            except LoadError as e:
                self._states[category] = CacheState(CacheStatus.LOAD_FAILED, error=_detached(e))
                logger.warning(f"Failed to load cache for {category}: {e}")
                raise
            except Exception as e:
                error = ArtifactMalformed(category, f"Failed to load cache for {category}: {e}")
                self._states[category] = CacheState(CacheStatus.LOAD_FAILED, error=_detached(error))
                logger.error(f"Failed to load cache for {category}: {e}")
                raise error from e
            except BaseException:
                # Interrupted mid-load: nothing was published, allow a retry
                self._states[category] = _UNLOADED
                raise

            published = _freeze(entries)
            self._states[category] = CacheState(CacheStatus.LOADED, entries=published)
            if not published:
                logger.warning(f"Cache for {category} loaded with no usable templates")
            return published

    def loaded_categories(self) -> List[str]:
        return [name for name, state in self._states.items() if state.status is CacheStatus.LOADED]

    def preload(self, categories: Optional[Iterable[str]] = None) -> threading.Event:
        """
        Load categories on a background thread.

        Returns the one-shot event that is set once every requested
        category has been attempted. Load errors are logged, not raised.
        """
        with self._preload_lock:
            if self._ready is not None:
                return self._ready

            targets = list(categories) if categories is not None else self.categories
            ready = threading.Event()
            self._ready = ready
            self._preload_thread = threading.Thread(target=self._preload, args=(targets, ready),
                                                    name="category-cache-preload", daemon=True)
            self._preload_thread.start()
        return ready

    def _preload(self, targets: List[str], ready: threading.Event):
        try:
            for category in targets:
                try:
                    self.ensure_loaded(category)
                except LoadError as e:
                    logger.warning(f"Preload skipped {category}: {e}")
        finally:
            ready.set()

    def wait_ready(self, timeout: Optional[float] = None) -> bool:
        """
        Block until a started preload finishes and its thread has exited.

        Returns True if nothing is pending, False if the timeout expired.
        """
        with self._preload_lock:
            ready, thread = self._ready, self._preload_thread
        if ready is None:
            return True
        if not ready.wait(timeout):
            return False
        thread.join()
        return True
