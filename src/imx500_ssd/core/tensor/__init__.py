"""Decoding of IMX500 output tensor metadata into float tensors."""

from .cache import PlannedNetwork, SchemaCache, plan_network
from .decoder import MAX_REORDER_RANK, decode_all, decode_tensor, dequantize, reorder_to_logical
from .errors import (
    EmptyOutputError,
    InvalidHeaderError,
    InvalidSchemaError,
    LayoutOverflowError,
    SizeOverflowError,
    TensorDecodeError,
    TruncatedBufferError,
    UnexpectedLayoutError,
    UnsupportedElementWidthError,
    UnsupportedReorderError,
)
from .header import BODY_LINE_OFFSET, FrameHeader, parse_header
from .layout import OutputLayout, plan_layout
from .schema import Dimension, NetworkSchema, OutputTensorDescriptor, TensorFormat, parse_network, parse_schema

__all__ = [
    "BODY_LINE_OFFSET",
    "Dimension",
    "EmptyOutputError",
    "FrameHeader",
    "InvalidHeaderError",
    "InvalidSchemaError",
    "LayoutOverflowError",
    "MAX_REORDER_RANK",
    "NetworkSchema",
    "OutputLayout",
    "OutputTensorDescriptor",
    "PlannedNetwork",
    "SchemaCache",
    "SizeOverflowError",
    "TensorDecodeError",
    "TensorFormat",
    "TruncatedBufferError",
    "UnexpectedLayoutError",
    "UnsupportedElementWidthError",
    "UnsupportedReorderError",
    "decode_all",
    "decode_tensor",
    "dequantize",
    "parse_header",
    "parse_network",
    "parse_schema",
    "plan_layout",
    "plan_network",
    "reorder_to_logical",
]
