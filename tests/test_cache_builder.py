"""Tests for ORB extraction and artifact building."""

import json
import os

import numpy as np
import pytest

from equipment_search.cache_builder import build_category_artifact, write_artifact
from equipment_search.cache_loader import CacheLoader
from equipment_search.category_cache import CategoryCache
from equipment_search.features import extract_descriptors, load_image, to_gray
from equipment_search.matcher import Matcher


class TestExtractDescriptors:
    """Tests for ORB descriptor extraction."""

    def test_output_layout(self, noise_image):
        descriptors = extract_descriptors(noise_image)
        assert descriptors.dtype == np.uint8
        assert descriptors.ndim == 2
        assert descriptors.shape[1] == 32
        assert 0 < len(descriptors) <= 200

    def test_respects_feature_budget(self, noise_image):
        assert len(extract_descriptors(noise_image, n_features=50)) <= 50

    def test_blank_image_yields_empty(self, blank_image):
        assert extract_descriptors(blank_image).shape == (0, 32)

    def test_grayscale_and_float_input(self, noise_image):
        gray = noise_image[:, :, 0]
        assert extract_descriptors(gray).shape[1] == 32
        assert extract_descriptors(noise_image.astype(np.float32) / 255.0).shape[1] == 32

    def test_out_of_range_values_saturate(self):
        image = np.array([[300.0, -5.0, 128.0, 2.0]], dtype=np.float32)
        assert to_gray(image).tolist() == [[255, 0, 128, 2]]
        assert to_gray(np.array([[70000, 40]], dtype=np.int32)).tolist() == [[255, 40]]

    def test_unit_float_is_rescaled(self):
        image = np.array([[0.0, 0.5, 1.0]], dtype=np.float64)
        assert to_gray(image).tolist() == [[0, 127, 255]]

    def test_load_image_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_image(str(tmp_path / "missing.png"))


class TestWriteArtifact:
    """Tests for artifact serialization."""

    def test_rejects_unequal_lists(self, tmp_path):
        with pytest.raises(ValueError):
            write_artifact(str(tmp_path / "x_features.json"), ["a"], [])

    def test_creates_parent_directories(self, tmp_path):
        path = tmp_path / "cache" / "weapon" / "main_features.json"
        write_artifact(str(path), ["a"], [""])
        assert json.loads(path.read_text()) == {"template_names": ["a"], "descriptors_list": [""]}


class TestBuildCategoryArtifact:
    """Tests for building and consuming a category cache."""

    def test_builds_artifact(self, image_dir, cache_dir):
        summary = build_category_artifact(image_dir, cache_dir, "weapon/main")

        assert summary["success"]
        assert summary["templates"] == 3
        assert summary["with_descriptors"] == 2
        assert summary["errors"] == 0
        assert summary["artifact_path"] == os.path.join(cache_dir, "weapon/main_features.json")

        with open(summary["artifact_path"], encoding="utf-8") as f:
            document = json.load(f)
        assert document["template_names"] == ["plain", "sword_a", "sword_b"]
        assert document["descriptors_list"][0] == ""

    def test_loader_skips_featureless_templates(self, image_dir, cache_dir):
        build_category_artifact(image_dir, cache_dir, "weapon/main")
        entries = CacheLoader(cache_dir).load("weapon/main")
        assert set(entries) == {"sword_a", "sword_b"}

    def test_built_cache_identifies_template(self, image_dir, cache_dir, noise_image):
        build_category_artifact(image_dir, cache_dir, "weapon/main")
        matcher = Matcher(CategoryCache(CacheLoader(cache_dir)))

        results = matcher.match(extract_descriptors(noise_image), "weapon/main")
        assert results
        assert results[0].template_name == "sword_a"

    def test_empty_directory(self, tmp_path, cache_dir):
        empty = tmp_path / "empty"
        empty.mkdir()
        summary = build_category_artifact(str(empty), cache_dir, "chara")
        assert not summary["success"]
