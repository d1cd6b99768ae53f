"""Errors raised while decoding IMX500 output tensor metadata."""

from __future__ import annotations


class TensorDecodeError(Exception):
    """Base class for frame-scoped decode failures."""

    kind = "DecodeError"


class InvalidHeaderError(TensorDecodeError):
    """Frame header is not valid or cannot be read."""

    kind = "InvalidHeader"


class InvalidSchemaError(TensorDecodeError):
    """Schema table is malformed or describes an impossible tensor."""

    kind = "InvalidSchema"


class SizeOverflowError(TensorDecodeError):
    """A size computation would leave the 32-bit range."""

    kind = "Overflow"


class EmptyOutputError(TensorDecodeError):
    """No output tensors, or no output elements, for the frame."""

    kind = "EmptyOutput"


class UnsupportedElementWidthError(TensorDecodeError):
    """Element bit width other than 8 or 16."""

    kind = "UnsupportedElementWidth"


class LayoutOverflowError(TensorDecodeError):
    """A tensor offset runs past the planned output size."""

    kind = "LayoutOverflow"


class UnexpectedLayoutError(TensorDecodeError):
    """Decoded output does not have the SSD shape."""

    kind = "UnexpectedLayout"


class UnsupportedReorderError(TensorDecodeError):
    """Dimension reorder requested for a tensor of rank greater than 3."""

    kind = "UnsupportedReorder"


class TruncatedBufferError(TensorDecodeError):
    """Raw metadata buffer ends before the data it declares."""

    kind = "TruncatedBuffer"


__all__ = [
    "EmptyOutputError",
    "InvalidHeaderError",
    "InvalidSchemaError",
    "LayoutOverflowError",
    "SizeOverflowError",
    "TensorDecodeError",
    "TruncatedBufferError",
    "UnexpectedLayoutError",
    "UnsupportedElementWidthError",
    "UnsupportedReorderError",
]
