"""Tests for the base64 descriptor codec."""

import base64

import numpy as np
import pytest

from equipment_search.descriptors import (
    DESCRIPTOR_SIZE, as_descriptor_matrix, decode_descriptors, encode_descriptors,
)
from equipment_search.errors import MalformedDescriptorData


class TestDecodeDescriptors:
    """Tests for decoding transport blobs."""

    def test_decodes_fixed_width_rows(self, rng):
        raw = rng.randint(0, 256, 3 * DESCRIPTOR_SIZE, dtype=np.uint8).tobytes()
        decoded = decode_descriptors(base64.b64encode(raw).decode("ascii"))
        assert decoded.shape == (3, DESCRIPTOR_SIZE)
        assert decoded.dtype == np.uint8
        assert decoded.tobytes() == raw

    def test_accepts_bytes(self):
        decoded = decode_descriptors(base64.b64encode(bytes(64)))
        assert decoded.shape == (2, DESCRIPTOR_SIZE)

    def test_empty_blob_is_empty_collection(self):
        decoded = decode_descriptors("")
        assert decoded.shape == (0, DESCRIPTOR_SIZE)
        assert decoded.size == 0

    @pytest.mark.parametrize("length", [1, 31, 33, 63, 100])
    def test_rejects_non_multiple_length(self, length):
        blob = base64.b64encode(bytes(length)).decode("ascii")
        with pytest.raises(MalformedDescriptorData, match="multiple of 32"):
            decode_descriptors(blob)

    def test_rejects_invalid_base64(self):
        with pytest.raises(MalformedDescriptorData):
            decode_descriptors("not base64!!")

    def test_rejects_none(self):
        with pytest.raises(MalformedDescriptorData):
            decode_descriptors(None)

    def test_result_is_writable_copy(self):
        decoded = decode_descriptors(base64.b64encode(bytes(32)))
        assert decoded.flags.owndata
        decoded[0, 0] = 1


class TestEncodeDescriptors:
    """Tests for encoding descriptors into artifacts."""

    def test_inverse_of_decode(self, query):
        assert np.array_equal(decode_descriptors(encode_descriptors(query)), query)

    def test_none_and_empty_encode_to_empty_string(self):
        assert encode_descriptors(None) == ""
        assert encode_descriptors(np.empty((0, DESCRIPTOR_SIZE), dtype=np.uint8)) == ""

    def test_rejects_partial_descriptor(self):
        with pytest.raises(MalformedDescriptorData):
            encode_descriptors(np.zeros(10, dtype=np.uint8))


class TestAsDescriptorMatrix:
    """Tests for query conversion before matching."""

    def test_passes_uint8_through(self, query):
        assert as_descriptor_matrix(query) is query

    def test_converts_integer_dtype(self, query):
        converted = as_descriptor_matrix(query.astype(np.int32))
        assert converted.dtype == np.uint8
        assert np.array_equal(converted, query)

    def test_rejects_out_of_range_values(self):
        with pytest.raises(MalformedDescriptorData):
            as_descriptor_matrix(np.full((1, DESCRIPTOR_SIZE), 300, dtype=np.int32))

    def test_rejects_wrong_width(self):
        with pytest.raises(MalformedDescriptorData, match="shape"):
            as_descriptor_matrix(np.zeros((4, 16), dtype=np.uint8))

    def test_rejects_non_numeric(self):
        with pytest.raises(MalformedDescriptorData):
            as_descriptor_matrix(np.array([["a"] * DESCRIPTOR_SIZE]))
