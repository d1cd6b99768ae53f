"""Tests for the concurrent tensor body decoder."""
from __future__ import annotations

import itertools
import threading

import numpy as np
import pytest

from imx500_ssd.core.tensor import (
    InvalidHeaderError,
    InvalidSchemaError,
    LayoutOverflowError,
    TruncatedBufferError,
    UnsupportedElementWidthError,
    UnsupportedReorderError,
    decode_all,
    dequantize,
    plan_layout,
    reorder_to_logical,
)
from imx500_ssd.core.tensor import decoder as decoder_module
from imx500_ssd.core.tensor.decoder import ELEMENT_DTYPES
from imx500_ssd.core.tensor.frame_builder import encode_body, quantize

STRIDE = 32
LINE_LEN = 8


def _decode(tensors, stride=STRIDE, max_line_len=LINE_LEN, **kwargs):
    descriptors = [descriptor for descriptor, _ in tensors]
    body = encode_body(tensors, stride, max_line_len)
    return decode_all(descriptors, plan_layout(descriptors), body, stride, max_line_len, **kwargs)


def _reference_reorder(wire, dimensions):
    """Coefficient-loop remap from wire order to logical order."""
    sizes = [dim.size for dim in dimensions]
    out = np.empty_like(wire)
    for index in itertools.product(*(range(size) for size in sizes)):
        logical = 0
        multiplier = 1
        for pos, value in enumerate(index):
            logical += value * multiplier
            multiplier *= sizes[pos]
        wire_index = 0
        for pos, value in enumerate(index):
            wire_stride = 1
            for other in dimensions:
                if other.serialization_index < dimensions[pos].serialization_index:
                    wire_stride *= other.size
            wire_index += value * wire_stride
        out[logical] = wire[wire_index]
    return out


class TestElementDecoding:
    def test_unsigned_8_bit_spans_lines(self, descriptor_factory):
        descriptor = descriptor_factory((20,))
        raw = np.arange(200, 220, dtype=np.uint8)

        output = _decode([(descriptor, raw)])

        np.testing.assert_array_equal(output, raw.astype(np.float32))

    def test_signed_8_bit(self, descriptor_factory):
        descriptor = descriptor_factory((20,), signed=True)
        raw = np.arange(-10, 10, dtype=np.int8)

        output = _decode([(descriptor, raw)])

        np.testing.assert_array_equal(output, raw.astype(np.float32))

    def test_16_bit_is_little_endian(self, descriptor_factory):
        descriptor = descriptor_factory((3,), bits=16)
        body = bytes([0x34, 0x12, 0x78, 0x56, 0, 0, 0, 0, 0xBC, 0x9A, 0, 0, 0, 0, 0, 0])

        output = decode_all([descriptor], plan_layout([descriptor]), body, stride=8, max_line_len=4)

        np.testing.assert_array_equal(output, np.array([0x1234, 0x5678, 0x9ABC], dtype=np.float32))

    def test_16_bit_signed(self, descriptor_factory):
        descriptor = descriptor_factory((2,), bits=16, signed=True)
        body = bytes([0xFF, 0xFF, 0x00, 0x80])

        output = decode_all([descriptor], plan_layout([descriptor]), body, stride=4, max_line_len=4)

        np.testing.assert_array_equal(output, np.array([-1, -32768], dtype=np.float32))

    def test_odd_line_length_reads_whole_elements(self, descriptor_factory):
        descriptor = descriptor_factory((4,), bits=16)
        body = bytes([1, 0, 2, 0, 0xEE, 0xEE, 0xEE, 0xEE, 3, 0, 4, 0, 0xEE, 0xEE, 0xEE, 0xEE])

        output = decode_all([descriptor], plan_layout([descriptor]), body, stride=8, max_line_len=3)

        np.testing.assert_array_equal(output, np.array([1, 2, 3, 4], dtype=np.float32))

    def test_odd_line_length_round_trip(self, descriptor_factory):
        descriptor = descriptor_factory((40,), bits=16)
        raw = np.arange(1000, 1040, dtype=np.uint16)

        output = _decode([(descriptor, raw)], stride=128, max_line_len=63)

        np.testing.assert_array_equal(output, raw.astype(np.float32))

    def test_dequantization(self, descriptor_factory):
        descriptor = descriptor_factory((3,), scale=0.5, shift=10)
        raw = np.array([10, 12, 0], dtype=np.uint8)

        output = _decode([(descriptor, raw)])

        np.testing.assert_allclose(output, [0.0, 1.0, -5.0])

    @pytest.mark.parametrize("bits,signed", [(8, False), (8, True), (16, False), (16, True)])
    @pytest.mark.parametrize("scale", [0.5, 0.1, 1.0 / 200.0, 3.0])
    def test_quantize_inverts_dequantize(self, descriptor_factory, rng, bits, signed, scale):
        descriptor = descriptor_factory((64,), bits=bits, signed=signed, scale=scale, shift=int(rng.integers(0, 300)))
        dtype = ELEMENT_DTYPES[(bits, descriptor.signedness)]
        info = np.iinfo(dtype)
        raw = rng.integers(info.min, info.max, size=64, endpoint=True).astype(dtype)

        values = dequantize(raw, descriptor.quantization_shift, descriptor.quantization_scale)

        np.testing.assert_array_equal(quantize(values, descriptor), raw)


class TestConcurrentDecode:
    @pytest.mark.parametrize("tensor_count", [1, 2, 3, 4])
    def test_matches_sequential_decode(self, descriptor_factory, rng, tensor_count):
        tensors = []
        expected = []
        for tensor_id in range(tensor_count):
            bits = int(rng.choice([8, 16]))
            signed = bool(rng.integers(0, 2))
            shape = tuple(int(size) for size in rng.integers(1, 9, size=rng.integers(1, 3)))
            descriptor = descriptor_factory(shape, bits=bits, signed=signed, scale=0.25, shift=1, tensor_id=tensor_id)
            dtype = ELEMENT_DTYPES[(bits, descriptor.signedness)]
            info = np.iinfo(dtype)
            raw = rng.integers(info.min, info.max, size=int(np.prod(shape)), endpoint=True).astype(dtype)
            tensors.append((descriptor, raw))
            expected.append(dequantize(raw, 1, 0.25))

        concurrent = _decode(tensors)
        sequential = _decode(tensors, max_workers=1)

        np.testing.assert_array_equal(concurrent, sequential)
        np.testing.assert_array_equal(concurrent, np.concatenate(expected))

    def test_dispatches_longest_tensor_first(self, descriptor_factory, monkeypatch):
        tensors = [
            (descriptor_factory((8,), tensor_id=0), np.zeros(8, dtype=np.uint8)),
            (descriptor_factory((24,), tensor_id=1), np.zeros(24, dtype=np.uint8)),
            (descriptor_factory((16,), tensor_id=2), np.zeros(16, dtype=np.uint8)),
        ]
        seen = []
        original = decoder_module.decode_tensor

        def recording(source, *args):
            seen.append(source.index)
            return original(source, *args)

        monkeypatch.setattr(decoder_module, "decode_tensor", recording)

        _decode(tensors, max_workers=1)

        assert seen == [1, 2, 0]

    def test_joins_every_task_and_raises_first_failure(self, descriptor_factory, monkeypatch):
        tensors = [
            (descriptor_factory((8,), tensor_id=0), np.zeros(8, dtype=np.uint8)),
            (descriptor_factory((24,), tensor_id=1), np.zeros(24, dtype=np.uint8)),
            (descriptor_factory((16,), tensor_id=2), np.zeros(16, dtype=np.uint8)),
        ]
        seen = []
        lock = threading.Lock()
        original = decoder_module.decode_tensor

        def failing(source, *args):
            with lock:
                seen.append(source.index)
            if source.index == 0:
                raise TruncatedBufferError("tensor 0")
            if source.index == 2:
                raise InvalidSchemaError("tensor 2")
            return original(source, *args)

        monkeypatch.setattr(decoder_module, "decode_tensor", failing)

        with pytest.raises(InvalidSchemaError, match="tensor 2"):
            _decode(tensors)
        assert sorted(seen) == [0, 1, 2]


class TestReorder:
    def test_two_dimensional_swap(self, descriptor_factory):
        descriptor = descriptor_factory((10, 4), bits=16, serialization=(1, 0))
        logical = np.arange(40, dtype=np.uint16)
        wire = logical.reshape(4, 10).T.ravel()

        output = _decode([(descriptor, wire)], stride=64, max_line_len=32)

        np.testing.assert_array_equal(output, logical.astype(np.float32))

    @pytest.mark.parametrize("order", list(itertools.permutations(range(3))))
    def test_three_dimensional_permutations(self, descriptor_factory, order):
        descriptor = descriptor_factory((2, 3, 4), serialization=order)
        wire = np.arange(24, dtype=np.float32)

        np.testing.assert_array_equal(
            reorder_to_logical(wire, descriptor.dimensions),
            _reference_reorder(wire, descriptor.dimensions),
        )

    def test_rank_four_reorder_is_unsupported(self, descriptor_factory):
        descriptor = descriptor_factory((2, 2, 2, 2), serialization=(1, 0, 2, 3))
        with pytest.raises(UnsupportedReorderError):
            _decode([(descriptor, np.zeros(16, dtype=np.uint8))])

    def test_rank_four_in_logical_order_decodes(self, descriptor_factory):
        descriptor = descriptor_factory((2, 2, 2, 2))
        raw = np.arange(16, dtype=np.uint8)
        np.testing.assert_array_equal(_decode([(descriptor, raw)]), raw.astype(np.float32))

    def test_serialization_indices_must_be_a_permutation(self, descriptor_factory):
        descriptor = descriptor_factory((2, 3), serialization=(0, 0))
        with pytest.raises(InvalidSchemaError):
            _decode([(descriptor, np.zeros(6, dtype=np.uint8))])


class TestDecodeFailures:
    def test_unsupported_element_width(self, descriptor_factory):
        descriptor = descriptor_factory((4,), bits=32)
        with pytest.raises(UnsupportedElementWidthError):
            decode_all([descriptor], plan_layout([descriptor]), bytes(64), STRIDE, LINE_LEN)

    def test_offsets_past_planned_layout(self, descriptor_factory):
        first = descriptor_factory((4,))
        second = descriptor_factory((4,), tensor_id=1)
        with pytest.raises(LayoutOverflowError):
            decode_all([first, second], plan_layout([first]), bytes(128), STRIDE, LINE_LEN)

    def test_truncated_body(self, descriptor_factory):
        descriptor = descriptor_factory((20,))
        body = encode_body([(descriptor, np.zeros(20, dtype=np.uint8))], STRIDE, LINE_LEN)
        with pytest.raises(TruncatedBufferError):
            decode_all([descriptor], plan_layout([descriptor]), body[: 2 * STRIDE], STRIDE, LINE_LEN)

    def test_zero_line_length(self, descriptor_factory):
        descriptor = descriptor_factory((4,))
        with pytest.raises(InvalidHeaderError):
            decode_all([descriptor], plan_layout([descriptor]), bytes(64), STRIDE, 0)
