"""Reader for the AP params schema table embedded in each metadata frame.

The schema is a FlatBuffers buffer. Only the tables needed to describe output
tensors are read, and every access is bounds-checked so a corrupt frame raises
``InvalidSchemaError`` instead of reading garbage.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Tuple

from .errors import InvalidSchemaError

logger = logging.getLogger("tensor.schema")


class TensorFormat(IntEnum):
    """Element signedness as declared by the schema."""

    SIGNED = 0
    UNSIGNED = 1


# Field ids in declaration order of each table.
AP_PARAMS_NETWORKS = 0

NETWORK_ID = 0
NETWORK_TYPE = 1
NETWORK_INPUT_TENSORS = 2
NETWORK_OUTPUT_TENSORS = 3

OUTPUT_TENSOR_ID = 0
OUTPUT_TENSOR_NAME = 1
OUTPUT_TENSOR_NUM_DIMENSIONS = 2
OUTPUT_TENSOR_BITS_PER_ELEMENT = 3
OUTPUT_TENSOR_DIMENSIONS = 4
OUTPUT_TENSOR_SHIFT = 5
OUTPUT_TENSOR_SCALE = 6
OUTPUT_TENSOR_FORMAT = 7

DIMENSION_ID = 0
DIMENSION_SIZE = 1
DIMENSION_SERIALIZATION_INDEX = 2
DIMENSION_PADDING = 3


@dataclass(frozen=True)
class Dimension:
    """One tensor dimension with its logical and on-wire positions."""

    ordinal: int
    size: int
    serialization_index: int
    padding: int = 0


@dataclass(frozen=True)
class OutputTensorDescriptor:
    """Shape, bit width and quantization of one output tensor."""

    id: int
    name: str
    dimensions: Tuple[Dimension, ...]
    bits_per_element: int
    quantization_shift: int
    quantization_scale: float
    signedness: TensorFormat

    @property
    def needs_reorder(self) -> bool:
        """True when the wire dimension order differs from the logical one."""
        return any(dim.serialization_index != dim.ordinal for dim in self.dimensions)

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(dim.size for dim in self.dimensions)


@dataclass(frozen=True)
class NetworkSchema:
    """Network entry matched by id, with its output tensors."""

    network_id: int
    network_type: str
    input_tensor_count: int
    outputs: Tuple[OutputTensorDescriptor, ...]


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise InvalidSchemaError(msg)


@dataclass(frozen=True)
class _Table:
    data: bytes
    table_offset: int
    vtable_offset: int
    vtable_len: int

    @classmethod
    def at(cls, data: bytes, table_offset: int) -> "_Table":
        _require(0 <= table_offset and table_offset + 4 <= len(data), f"table at {table_offset} out of range")
        vtable_rel = _read(data, "<i", table_offset)
        _require(vtable_rel != 0, f"invalid vtable relative offset at {table_offset}")
        vtable_offset = table_offset - vtable_rel
        _require(0 <= vtable_offset and vtable_offset + 4 <= len(data), "vtable header out of range")
        vtable_len = _read(data, "<H", vtable_offset)
        object_len = _read(data, "<H", vtable_offset + 2)
        _require(vtable_len >= 4 and vtable_len % 2 == 0, f"invalid vtable length {vtable_len}")
        _require(vtable_offset + vtable_len <= len(data), "vtable overruns buffer")
        _require(table_offset + object_len <= len(data), "table object overruns buffer")
        return cls(data=data, table_offset=table_offset, vtable_offset=vtable_offset, vtable_len=vtable_len)

    def field_offset(self, field_id: int) -> Optional[int]:
        entry = 4 + field_id * 2
        if entry + 2 > self.vtable_len:
            return None
        rel = _read(self.data, "<H", self.vtable_offset + entry)
        if rel == 0:
            return None
        return self.table_offset + rel

    def scalar(self, field_id: int, fmt: str, default=0):
        off = self.field_offset(field_id)
        if off is None:
            return default
        return _read(self.data, fmt, off)

    def _indirect(self, field_id: int) -> Optional[int]:
        off = self.field_offset(field_id)
        if off is None:
            return None
        target = off + _read(self.data, "<I", off)
        _require(target + 4 <= len(self.data), f"offset field {field_id} out of bounds")
        return target

    def string(self, field_id: int) -> str:
        target = self._indirect(field_id)
        if target is None:
            return ""
        length = _read(self.data, "<I", target)
        _require(target + 4 + length <= len(self.data), f"string field {field_id} overruns buffer")
        return self.data[target + 4 : target + 4 + length].decode("utf-8", errors="replace")

    def tables(self, field_id: int) -> List["_Table"]:
        target = self._indirect(field_id)
        if target is None:
            return []
        count = _read(self.data, "<I", target)
        _require(target + 4 + count * 4 <= len(self.data), f"vector field {field_id} overruns buffer")
        result = []
        for index in range(count):
            slot = target + 4 + index * 4
            result.append(_Table.at(self.data, slot + _read(self.data, "<I", slot)))
        return result


def _read(data: bytes, fmt: str, offset: int):
    size = struct.calcsize(fmt)
    _require(0 <= offset and offset + size <= len(data), f"read of {size} bytes at {offset} out of range")
    return struct.unpack_from(fmt, data, offset)[0]


def _root(schema_bytes: bytes) -> _Table:
    _require(len(schema_bytes) >= 8, f"schema blob of {len(schema_bytes)} bytes is too short")
    return _Table.at(schema_bytes, _read(schema_bytes, "<I", 0))


def _parse_dimension(table: _Table, index: int) -> Dimension:
    dim = Dimension(
        ordinal=table.scalar(DIMENSION_ID, "<B"),
        size=table.scalar(DIMENSION_SIZE, "<H"),
        serialization_index=table.scalar(DIMENSION_SERIALIZATION_INDEX, "<B"),
        padding=table.scalar(DIMENSION_PADDING, "<B"),
    )
    if dim.padding != 0:
        logger.error("Non-zero padding for dimension %d", index)
        raise InvalidSchemaError(f"Non-zero padding {dim.padding} for dimension {index}")
    return dim


def _parse_output_tensor(table: _Table) -> OutputTensorDescriptor:
    num_dimensions = table.scalar(OUTPUT_TENSOR_NUM_DIMENSIONS, "<B")
    dim_tables = table.tables(OUTPUT_TENSOR_DIMENSIONS)
    _require(
        len(dim_tables) == num_dimensions,
        f"numOfDimensions {num_dimensions} does not match {len(dim_tables)} dimension entries",
    )
    dimensions = tuple(_parse_dimension(dim_table, idx) for idx, dim_table in enumerate(dim_tables))
    # Only 0 marks a signed tensor; any other format byte reads as unsigned.
    raw_format = table.scalar(OUTPUT_TENSOR_FORMAT, "<B")
    signedness = TensorFormat.SIGNED if raw_format == TensorFormat.SIGNED else TensorFormat.UNSIGNED
    return OutputTensorDescriptor(
        id=table.scalar(OUTPUT_TENSOR_ID, "<B"),
        name=table.string(OUTPUT_TENSOR_NAME),
        dimensions=dimensions,
        bits_per_element=table.scalar(OUTPUT_TENSOR_BITS_PER_ELEMENT, "<B"),
        quantization_shift=table.scalar(OUTPUT_TENSOR_SHIFT, "<H"),
        quantization_scale=table.scalar(OUTPUT_TENSOR_SCALE, "<f", 0.0),
        signedness=signedness,
    )


def parse_network(schema_bytes: bytes, network_id: int) -> Optional[NetworkSchema]:
    """Return the first network entry whose id matches, or None."""
    networks = _root(schema_bytes).tables(AP_PARAMS_NETWORKS)
    logger.debug("Networks size: %d", len(networks))
    for network in networks:
        if network.scalar(NETWORK_ID, "<H") != network_id:
            continue
        network_type = network.string(NETWORK_TYPE)
        input_count = len(network.tables(NETWORK_INPUT_TENSORS))
        outputs = tuple(_parse_output_tensor(tensor) for tensor in network.tables(NETWORK_OUTPUT_TENSORS))
        logger.debug("Network: %s, i/p size: %d, o/p size: %d", network_type, input_count, len(outputs))
        return NetworkSchema(
            network_id=network_id,
            network_type=network_type,
            input_tensor_count=input_count,
            outputs=outputs,
        )
    return None


def parse_schema(schema_bytes: bytes, network_id: int) -> List[OutputTensorDescriptor]:
    """Return the output tensor descriptors of ``network_id``.

    An unknown network yields an empty list; layout planning then rejects the
    frame with ``EmptyOutputError``.
    """
    network = parse_network(schema_bytes, network_id)
    if network is None:
        return []
    return list(network.outputs)


__all__ = [
    "Dimension",
    "NetworkSchema",
    "OutputTensorDescriptor",
    "TensorFormat",
    "parse_network",
    "parse_schema",
]
