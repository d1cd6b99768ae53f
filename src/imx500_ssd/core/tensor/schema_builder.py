"""Build AP params schema blobs with the ``flatbuffers`` library.

Mirror of ``schema.py``: field ids must stay in step with the reader.
FlatBuffer construction is bottom-up, leaves first and root last.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import flatbuffers

from . import schema as fields
from .schema import Dimension, OutputTensorDescriptor


@dataclass(frozen=True)
class NetworkSpec:
    """One network entry to serialise."""

    network_id: int
    outputs: Sequence[OutputTensorDescriptor]
    network_type: str = "ssd_mobilenet"
    input_tensor_count: int = 1
    # Overrides numOfDimensions for every output, for malformed-schema fixtures.
    num_dimensions_override: Optional[int] = None


def _build_dimension(builder: flatbuffers.Builder, dim: Dimension) -> int:
    builder.StartObject(4)
    builder.PrependUint16Slot(fields.DIMENSION_SIZE, dim.size, 0)
    builder.PrependUint8Slot(fields.DIMENSION_ID, dim.ordinal, 0)
    builder.PrependUint8Slot(fields.DIMENSION_SERIALIZATION_INDEX, dim.serialization_index, 0)
    builder.PrependUint8Slot(fields.DIMENSION_PADDING, dim.padding, 0)
    return builder.EndObject()


def _table_vector(builder: flatbuffers.Builder, offsets: Sequence[int]) -> int:
    builder.StartVector(4, len(offsets), 4)
    for offset in reversed(offsets):
        builder.PrependUOffsetTRelative(offset)
    return builder.EndVector()


def _build_output_tensor(builder: flatbuffers.Builder, tensor: OutputTensorDescriptor, num_dimensions: int) -> int:
    name_off = builder.CreateString(tensor.name)
    dims_vec = _table_vector(builder, [_build_dimension(builder, dim) for dim in tensor.dimensions])

    builder.StartObject(8)
    builder.PrependUOffsetTRelativeSlot(fields.OUTPUT_TENSOR_NAME, name_off, 0)
    builder.PrependUOffsetTRelativeSlot(fields.OUTPUT_TENSOR_DIMENSIONS, dims_vec, 0)
    builder.PrependFloat32Slot(fields.OUTPUT_TENSOR_SCALE, tensor.quantization_scale, 0.0)
    builder.PrependUint16Slot(fields.OUTPUT_TENSOR_SHIFT, tensor.quantization_shift, 0)
    builder.PrependUint8Slot(fields.OUTPUT_TENSOR_ID, tensor.id, 0)
    builder.PrependUint8Slot(fields.OUTPUT_TENSOR_NUM_DIMENSIONS, num_dimensions, 0)
    builder.PrependUint8Slot(fields.OUTPUT_TENSOR_BITS_PER_ELEMENT, tensor.bits_per_element, 0)
    builder.PrependUint8Slot(fields.OUTPUT_TENSOR_FORMAT, int(tensor.signedness), 0)
    return builder.EndObject()


def _build_input_tensor(builder: flatbuffers.Builder) -> int:
    builder.StartObject(0)
    return builder.EndObject()


def _build_network(builder: flatbuffers.Builder, network: NetworkSpec) -> int:
    type_off = builder.CreateString(network.network_type)
    num_dimensions = network.num_dimensions_override
    outputs = [
        _build_output_tensor(
            builder,
            tensor,
            len(tensor.dimensions) if num_dimensions is None else num_dimensions,
        )
        for tensor in network.outputs
    ]
    outputs_vec = _table_vector(builder, outputs)
    inputs_vec = _table_vector(builder, [_build_input_tensor(builder) for _ in range(network.input_tensor_count)])

    builder.StartObject(4)
    builder.PrependUOffsetTRelativeSlot(fields.NETWORK_TYPE, type_off, 0)
    builder.PrependUOffsetTRelativeSlot(fields.NETWORK_INPUT_TENSORS, inputs_vec, 0)
    builder.PrependUOffsetTRelativeSlot(fields.NETWORK_OUTPUT_TENSORS, outputs_vec, 0)
    builder.PrependUint16Slot(fields.NETWORK_ID, network.network_id, 0)
    return builder.EndObject()


def build_schema(networks: Sequence[NetworkSpec]) -> bytes:
    """Serialise ``networks`` into an AP params blob."""
    builder = flatbuffers.Builder(256)
    network_offsets = [_build_network(builder, network) for network in networks]
    networks_vec = _table_vector(builder, network_offsets)

    builder.StartObject(1)
    builder.PrependUOffsetTRelativeSlot(fields.AP_PARAMS_NETWORKS, networks_vec, 0)
    root = builder.EndObject()
    builder.Finish(root)
    return bytes(builder.Output())


__all__ = ["NetworkSpec", "build_schema"]
