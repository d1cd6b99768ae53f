"""Encode side of the metadata stream: header, interleaved schema and tensor body."""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from .decoder import ELEMENT_DTYPES
from .header import HEADER_STRUCT, BODY_LINE_OFFSET, HEADER_BLOCK_SIZE, FrameHeader
from .schema import OutputTensorDescriptor


def quantize(values: Sequence[float], descriptor: OutputTensorDescriptor) -> np.ndarray:
    """Inverse of dequantization: ``round(value / scale + shift)``, clipped to the element range."""
    dtype = ELEMENT_DTYPES[(descriptor.bits_per_element, descriptor.signedness)]
    info = np.iinfo(dtype)
    raw = np.rint(np.asarray(values, dtype=np.float64) / descriptor.quantization_scale + descriptor.quantization_shift)
    return np.clip(raw, info.min, info.max).astype(dtype)


def pack_header(header: FrameHeader) -> bytes:
    """Serialise the header fields into the fixed header block."""
    packed = HEADER_STRUCT.pack(
        int(header.valid),
        header.frame_count,
        header.max_line_len,
        header.schema_byte_size,
        header.network_id,
        header.tensor_format_tag,
    )
    return packed + bytes(HEADER_BLOCK_SIZE - len(packed))


def write_header_lines(header: FrameHeader, schema: bytes, stride: int) -> bytearray:
    """Lay out the header block followed by the schema, wrapping at ``stride``."""
    if len(schema) != header.schema_byte_size:
        raise ValueError(f"Schema is {len(schema)} bytes, header declares {header.schema_byte_size}")
    total = HEADER_BLOCK_SIZE + len(schema)
    line_count = max(1, -(-total // stride))
    lines = bytearray(line_count * stride)
    lines[:HEADER_BLOCK_SIZE] = pack_header(header)
    line_start = 0
    cursor = HEADER_BLOCK_SIZE
    for byte in schema:
        if cursor >= stride:
            cursor = 0
            line_start += stride
        lines[line_start + cursor] = byte
        cursor += 1
    return lines


def encode_body(
    tensors: Sequence[Tuple[OutputTensorDescriptor, np.ndarray]],
    stride: int,
    max_line_len: int,
) -> bytes:
    """Pack raw tensor samples (already in wire order) into stride-spaced lines.

    Each line carries whole elements: an odd ``max_line_len`` is rounded up
    to the element width, the same way the decoder reads it back.
    """
    body = bytearray()
    for descriptor, raw in tensors:
        dtype = np.dtype(ELEMENT_DTYPES[(descriptor.bits_per_element, descriptor.signedness)])
        row_bytes = -(-max_line_len // dtype.itemsize) * dtype.itemsize
        if row_bytes > stride:
            raise ValueError(f"Line length {row_bytes} exceeds stride {stride}")
        payload = np.asarray(raw).astype(dtype).tobytes()
        for start in range(0, len(payload), row_bytes):
            chunk = payload[start : start + row_bytes]
            body.extend(chunk)
            body.extend(bytes(stride - len(chunk)))
    return bytes(body)


def build_frame(header: FrameHeader, schema: bytes, body: bytes, stride: int) -> bytes:
    """Assemble a full metadata frame; the schema must fit in the header line."""
    if HEADER_BLOCK_SIZE + len(schema) > BODY_LINE_OFFSET * stride:
        raise ValueError(f"Schema of {len(schema)} bytes does not fit before the body at stride {stride}")
    return bytes(write_header_lines(header, schema, stride)) + body


def make_header(
    schema: bytes,
    max_line_len: int,
    network_id: int,
    frame_count: int = 0,
    valid: bool = True,
    tensor_format_tag: int = 0,
) -> FrameHeader:
    return FrameHeader(
        valid=valid,
        frame_count=frame_count,
        max_line_len=max_line_len,
        schema_byte_size=len(schema),
        network_id=network_id,
        tensor_format_tag=tensor_format_tag,
    )


__all__ = ["build_frame", "encode_body", "make_header", "pack_header", "quantize", "write_header_lines"]
