"""Shared test fixtures for equipment search tests."""

import os
import json
import threading
import time

import numpy as np
import cv2
import pytest

from equipment_search.cache_loader import CacheLoader
from equipment_search.category_cache import CategoryCache
from equipment_search.descriptors import DESCRIPTOR_SIZE, encode_descriptors


def random_descriptors(rng, n):
    return rng.randint(0, 256, (n, DESCRIPTOR_SIZE), dtype=np.uint8)


def template_sharing(query, count, rng, noise=20):
    """Reference set containing the first `count` query rows plus unrelated rows."""
    return np.vstack([query[:count], random_descriptors(rng, noise)])


class CountingLoader(CacheLoader):
    """CacheLoader that records how many artifact reads happen."""

    def __init__(self, cache_dir, delay=0.0):
        super().__init__(cache_dir)
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def load(self, category):
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        return super().load(category)


class StaticLoader:
    """Loader serving in-memory reference sets."""

    def __init__(self, catalogues):
        self.catalogues = catalogues
        self.calls = 0

    def load(self, category):
        self.calls += 1
        return dict(self.catalogues[category])


@pytest.fixture
def rng():
    return np.random.RandomState(1234)


@pytest.fixture
def query(rng):
    """20 random query descriptors."""
    return random_descriptors(rng, 20)


@pytest.fixture
def cache_dir(tmp_path):
    return str(tmp_path / "cache")


@pytest.fixture
def write_raw_artifact(cache_dir):
    """Write an arbitrary JSON document as a category artifact."""
    def _write(category, document):
        path = os.path.join(cache_dir, f"{category}_features.json")
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            if isinstance(document, str):
                f.write(document)
            else:
                json.dump(document, f)
        return path
    return _write


@pytest.fixture
def write_catalogue(write_raw_artifact):
    """Write a {name: descriptors} mapping as a category artifact."""
    def _write(category, templates):
        return write_raw_artifact(category, {
            "template_names": list(templates),
            "descriptors_list": [encode_descriptors(d) for d in templates.values()],
        })
    return _write


@pytest.fixture
def static_cache():
    """Build a CategoryCache over in-memory catalogues."""
    def _build(catalogues):
        return CategoryCache(StaticLoader(catalogues), categories=list(catalogues))
    return _build


@pytest.fixture(params=["opencv", "faiss"])
def backend_name(request):
    return request.param


@pytest.fixture
def noise_image():
    """Generate a 200x200 random noise image (many distinct ORB features)."""
    rng = np.random.RandomState(42)
    return rng.randint(0, 255, (200, 200, 3), dtype=np.uint8)


@pytest.fixture
def other_noise_image():
    rng = np.random.RandomState(7)
    return rng.randint(0, 255, (200, 200, 3), dtype=np.uint8)


@pytest.fixture
def blank_image():
    return np.ones((120, 120, 3), dtype=np.uint8) * 255


@pytest.fixture
def image_dir(tmp_path, noise_image, other_noise_image, blank_image):
    """Directory of template crops: two textured, one featureless."""
    directory = tmp_path / "templates"
    directory.mkdir()
    cv2.imwrite(str(directory / "sword_a.png"), noise_image)
    cv2.imwrite(str(directory / "sword_b.png"), other_noise_image)
    cv2.imwrite(str(directory / "plain.png"), blank_image)
    (directory / "notes.txt").write_text("not an image")
    return str(directory)
