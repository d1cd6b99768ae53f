"""Concurrent decode of the output tensor body into one flat float buffer.

Each output tensor occupies a run of whole lines in the body, back-to-back in
schema order. A line carries at most ``max_line_len`` payload bytes and lines
are ``stride`` bytes apart. Every tensor is decoded by its own task; tasks read
disjoint line runs and write disjoint slices of the output array.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from .errors import (
    EmptyOutputError,
    InvalidHeaderError,
    InvalidSchemaError,
    LayoutOverflowError,
    SizeOverflowError,
    TruncatedBufferError,
    UnsupportedElementWidthError,
    UnsupportedReorderError,
)
from .layout import U32_MAX, OutputLayout
from .schema import Dimension, OutputTensorDescriptor, TensorFormat

logger = logging.getLogger("tensor.decoder")

MAX_REORDER_RANK = 3

ELEMENT_DTYPES = {
    (8, TensorFormat.SIGNED): np.dtype("i1"),
    (8, TensorFormat.UNSIGNED): np.dtype("u1"),
    (16, TensorFormat.SIGNED): np.dtype("<i2"),
    (16, TensorFormat.UNSIGNED): np.dtype("<u2"),
}


@dataclass(frozen=True)
class TensorSource:
    """Where one tensor lives in the body and where it lands in the output."""

    index: int
    descriptor: OutputTensorDescriptor
    source_offset: int
    line_count: int
    byte_size: int
    element_count: int
    output_offset: int


def _element_width(descriptor: OutputTensorDescriptor) -> int:
    if descriptor.bits_per_element not in (8, 16):
        logger.error("Invalid bitsPerElement value = %d", descriptor.bits_per_element)
        raise UnsupportedElementWidthError(
            f"Tensor {descriptor.id} has unsupported bit width {descriptor.bits_per_element}"
        )
    return descriptor.bits_per_element // 8


def plan_sources(
    descriptors: Sequence[OutputTensorDescriptor],
    layout: OutputLayout,
    stride: int,
    max_line_len: int,
) -> List[TensorSource]:
    """Locate each tensor's line run and output slice.

    Raises ``LayoutOverflowError`` as soon as a running output offset passes
    the planned total, so no task can ever write outside the buffer.
    """
    sources = []
    line_offset = 0
    offset = 0
    for index, descriptor in enumerate(descriptors):
        width = _element_width(descriptor)
        byte_size = width
        for dim in descriptor.dimensions:
            byte_size *= dim.size
            if byte_size >= U32_MAX // descriptor.bits_per_element // 8:
                raise SizeOverflowError(f"Byte size of tensor {descriptor.id} overflows")
        line_count = math.ceil(byte_size / max_line_len)
        element_count = byte_size // width
        sources.append(
            TensorSource(
                index=index,
                descriptor=descriptor,
                source_offset=line_offset * stride,
                line_count=line_count,
                byte_size=byte_size,
                element_count=element_count,
                output_offset=offset,
            )
        )
        line_offset += line_count
        offset += element_count
        if offset > layout.total_element_count:
            logger.error("Error in parsing output tensor offset %d > output_size", offset)
            raise LayoutOverflowError(
                f"Tensor {descriptor.id} ends at {offset}, past {layout.total_element_count} planned elements"
            )
    return sources


def _gather_rows(body: memoryview, source: TensorSource, stride: int, max_line_len: int, width: int) -> bytes:
    # A row is read in whole elements, so an odd line length still yields full 16-bit values.
    row_bytes = -(-max_line_len // width) * width
    remaining = source.byte_size
    rows = []
    position = source.source_offset
    for _ in range(source.line_count):
        take = min(row_bytes, remaining)
        if position + take > len(body):
            raise TruncatedBufferError(
                f"Tensor {source.descriptor.id} needs bytes up to {position + take}, body has {len(body)}"
            )
        rows.append(body[position : position + take])
        remaining -= take
        position += stride
        if remaining <= 0:
            break
    return b"".join(rows)


def dequantize(raw: np.ndarray, shift: int, scale: float) -> np.ndarray:
    """Map fixed-point samples to floats: ``(raw - shift) * scale``."""
    return (raw.astype(np.int32) - shift).astype(np.float32) * np.float32(scale)


def reorder_to_logical(values: np.ndarray, dimensions: Sequence[Dimension]) -> np.ndarray:
    """Remap values from wire dimension order to logical dimension order.

    Position 0 is the fastest-varying dimension both on the wire and in the
    logical layout; the list position of a dimension is its logical position.
    """
    rank = len(dimensions)
    if rank > MAX_REORDER_RANK:
        raise UnsupportedReorderError(f"Reorder of a rank {rank} tensor is not supported")
    wire_positions = sorted(dim.serialization_index for dim in dimensions)
    if wire_positions != list(range(rank)):
        raise InvalidSchemaError(f"Serialization indices {wire_positions} are not a permutation")

    wire_sizes = [0] * rank
    for dim in dimensions:
        wire_sizes[dim.serialization_index] = dim.size
    # numpy shapes list the slowest axis first, hence the reversals.
    wire = values.reshape(wire_sizes[::-1])
    axes = [rank - 1 - dimensions[rank - 1 - axis].serialization_index for axis in range(rank)]
    return np.ascontiguousarray(wire.transpose(axes)).ravel()


def decode_tensor(source: TensorSource, body: bytes, stride: int, max_line_len: int) -> np.ndarray:
    """Decode a single tensor into logical-order float32 values."""
    descriptor = source.descriptor
    width = _element_width(descriptor)
    if not source.element_count:
        logger.error("Invalid output tensor size (0) for tensor %d", descriptor.id)
        raise EmptyOutputError(f"Tensor {descriptor.id} has no elements")

    payload = _gather_rows(memoryview(body), source, stride, max_line_len, width)
    raw = np.frombuffer(payload, dtype=ELEMENT_DTYPES[(descriptor.bits_per_element, descriptor.signedness)])
    values = dequantize(raw[: source.element_count], descriptor.quantization_shift, descriptor.quantization_scale)
    if descriptor.needs_reorder:
        values = reorder_to_logical(values, descriptor.dimensions)
    return values


def _decode_into(output: np.ndarray, source: TensorSource, body: bytes, stride: int, max_line_len: int) -> None:
    values = decode_tensor(source, body, stride, max_line_len)
    output[source.output_offset : source.output_offset + source.element_count] = values


def decode_all(
    descriptors: Sequence[OutputTensorDescriptor],
    layout: OutputLayout,
    body: bytes,
    stride: int,
    max_line_len: int,
    max_workers: Optional[int] = None,
) -> np.ndarray:
    """Decode every output tensor concurrently into one flat float32 array.

    Tensors are dispatched longest first. Every task is joined before
    returning; if any failed, the first failure in dispatch order is raised.
    """
    if max_line_len <= 0:
        raise InvalidHeaderError("Max line length must be positive")
    sources = plan_sources(descriptors, layout, stride, max_line_len)
    output = np.zeros(layout.total_element_count, dtype=np.float32)

    ordered = sorted(sources, key=lambda source: source.line_count, reverse=True)
    workers = max_workers or max(1, len(ordered))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="TensorDecode") as pool:
        futures = [pool.submit(_decode_into, output, source, body, stride, max_line_len) for source in ordered]
        wait(futures)

    errors = [future.exception() for future in futures if future.exception() is not None]
    if errors:
        logger.debug("%d of %d tensor decode tasks failed", len(errors), len(futures))
        raise errors[0]
    return output


__all__ = [
    "MAX_REORDER_RANK",
    "TensorSource",
    "decode_all",
    "decode_tensor",
    "dequantize",
    "plan_sources",
    "reorder_to_logical",
]
