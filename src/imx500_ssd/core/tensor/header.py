"""Frame header parsing and schema blob extraction."""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass

from .errors import InvalidHeaderError, TruncatedBufferError

logger = logging.getLogger("tensor.header")

# valid, frame_count, max_line_len, schema_byte_size, network_id, tensor_format_tag
HEADER_STRUCT = struct.Struct("<BBHHHB")
HEADER_BLOCK_SIZE = 12
# The output tensor body starts on the line after the header line.
BODY_LINE_OFFSET = 1


@dataclass(frozen=True)
class FrameHeader:
    """Fixed header found at byte 0 of every metadata frame."""

    valid: bool
    frame_count: int
    max_line_len: int
    schema_byte_size: int
    network_id: int
    tensor_format_tag: int

    def require_decodable(self) -> None:
        """Raise unless the header can drive a body decode."""
        if not self.valid:
            raise InvalidHeaderError("Frame is not marked valid")
        if self.max_line_len == 0:
            raise InvalidHeaderError("Header declares a zero max line length")


def read_header(raw: bytes) -> FrameHeader:
    """Read the header fields without touching the schema blob."""
    if len(raw) < HEADER_BLOCK_SIZE:
        raise InvalidHeaderError(f"Buffer of {len(raw)} bytes is shorter than the header block")
    valid, frame_count, max_line_len, schema_size, network_id, tensor_type = HEADER_STRUCT.unpack_from(raw, 0)
    return FrameHeader(
        valid=bool(valid),
        frame_count=frame_count,
        max_line_len=max_line_len,
        schema_byte_size=schema_size,
        network_id=network_id,
        tensor_format_tag=tensor_type,
    )


def parse_header(raw: bytes, stride: int) -> tuple[FrameHeader, bytes]:
    """Parse the frame header and pull out the schema blob that follows it.

    The schema starts right after the header block and is streamed as the tail
    of fixed-width lines: whenever the in-line cursor reaches ``stride`` the
    copy continues at offset 0 of the next line.
    """
    header = read_header(raw)
    logger.debug(
        "Header: valid %s count %d max len %d schema size %d network id %d tensor type %d",
        header.valid,
        header.frame_count,
        header.max_line_len,
        header.schema_byte_size,
        header.network_id,
        header.tensor_format_tag,
    )
    if not header.valid:
        raise InvalidHeaderError("Frame is not marked valid")

    schema = bytearray(header.schema_byte_size)
    line_start = 0
    cursor = HEADER_BLOCK_SIZE
    for index in range(header.schema_byte_size):
        if stride and cursor >= stride:
            cursor = 0
            line_start += stride
        position = line_start + cursor
        if position >= len(raw):
            raise TruncatedBufferError(
                f"Schema blob needs {header.schema_byte_size} bytes but buffer ends after {index}"
            )
        schema[index] = raw[position]
        cursor += 1
    return header, bytes(schema)


__all__ = ["BODY_LINE_OFFSET", "FrameHeader", "HEADER_BLOCK_SIZE", "parse_header", "read_header"]
