"""Shared fixtures for decoder tests.

Schema blobs are built with the flatbuffers-backed schema builder and frames
with the frame builder, so tests never depend on captured sensor dumps.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Sequence, Tuple

import numpy as np
import pytest

from imx500_ssd.core.entities import MetadataFrame
from imx500_ssd.core.tensor import Dimension, OutputTensorDescriptor, TensorFormat
from imx500_ssd.core.tensor.frame_builder import build_frame, encode_body, make_header
from imx500_ssd.core.tensor.schema_builder import NetworkSpec, build_schema

TEST_STRIDE = 512
TEST_LINE_LEN = 64


def make_descriptor(
    shape: Sequence[int],
    bits: int = 8,
    scale: float = 1.0,
    shift: int = 0,
    signed: bool = False,
    serialization: Sequence[int] | None = None,
    tensor_id: int = 0,
    name: str = "tensor",
    padding: int = 0,
) -> OutputTensorDescriptor:
    order = list(range(len(shape))) if serialization is None else list(serialization)
    return OutputTensorDescriptor(
        id=tensor_id,
        name=name,
        dimensions=tuple(
            Dimension(ordinal=idx, size=size, serialization_index=order[idx], padding=padding)
            for idx, size in enumerate(shape)
        ),
        bits_per_element=bits,
        quantization_shift=shift,
        quantization_scale=scale,
        signedness=TensorFormat.SIGNED if signed else TensorFormat.UNSIGNED,
    )


def build_tensor_frame(
    tensors: Sequence[Tuple[OutputTensorDescriptor, np.ndarray]],
    network_id: int = 7,
    stride: int = TEST_STRIDE,
    max_line_len: int = TEST_LINE_LEN,
) -> bytes:
    descriptors = [descriptor for descriptor, _ in tensors]
    schema = build_schema([NetworkSpec(network_id=network_id, outputs=descriptors)])
    header = make_header(schema, max_line_len=max_line_len, network_id=network_id)
    return build_frame(header, schema, encode_body(tensors, stride, max_line_len), stride)


def wrap_frame(buffer: bytes, stride: int = TEST_STRIDE, size: Tuple[int, int] = (640, 480), frame_id: int = 1):
    return MetadataFrame(
        buffer=buffer,
        stride=stride,
        width=size[0],
        height=size[1],
        timestamp=datetime.now(timezone.utc),
        frame_id=frame_id,
        source="test",
    )


@pytest.fixture()
def descriptor_factory():
    return make_descriptor


@pytest.fixture()
def frame_factory():
    return build_tensor_frame


@pytest.fixture()
def metadata_frame():
    return wrap_frame


@pytest.fixture()
def rng():
    return np.random.default_rng(20231)


@pytest.fixture()
def isolated_logging():
    """Restore the root logger after a test reconfigures it."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
