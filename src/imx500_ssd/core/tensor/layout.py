"""Flat output buffer layout for a frame's output tensors."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

from .errors import EmptyOutputError, SizeOverflowError
from .schema import OutputTensorDescriptor

logger = logging.getLogger("tensor.layout")

U32_MAX = 0xFFFFFFFF
FLOAT_BYTES = 4


@dataclass(frozen=True)
class OutputLayout:
    """Element counts and offsets of each tensor inside the flat buffer."""

    total_element_count: int
    per_tensor_element_count: Tuple[int, ...]
    per_tensor_offset: Tuple[int, ...]

    def span(self, index: int) -> Tuple[int, int]:
        """Half-open ``[start, stop)`` range reserved for tensor ``index``."""
        start = self.per_tensor_offset[index]
        return start, start + self.per_tensor_element_count[index]


def dimension_product(descriptor: OutputTensorDescriptor) -> int:
    """Product of the dimension sizes, guarded before every multiply."""
    product = 1
    for dim in descriptor.dimensions:
        if dim.size and product >= U32_MAX // dim.size:
            logger.error("Invalid dimension product for tensor %d", descriptor.id)
            raise SizeOverflowError(f"Dimension product of tensor {descriptor.id} overflows")
        product *= dim.size
    return product


def plan_layout(descriptors: Sequence[OutputTensorDescriptor]) -> OutputLayout:
    """Reserve one contiguous slot range per tensor in a flat float buffer."""
    counts = []
    offsets = []
    total = 0
    for descriptor in descriptors:
        product = dimension_product(descriptor)
        if total >= U32_MAX - product:
            logger.error("Invalid total output size")
            raise SizeOverflowError("Total output element count overflows")
        offsets.append(total)
        counts.append(product)
        total += product

    if not descriptors or total == 0:
        raise EmptyOutputError(f"Output has {len(descriptors)} tensors and {total} elements")

    logger.debug("Final output size: %d", total)
    if total >= U32_MAX // FLOAT_BYTES:
        raise SizeOverflowError(f"Output of {total} floats overflows the buffer size range")

    return OutputLayout(
        total_element_count=total,
        per_tensor_element_count=tuple(counts),
        per_tensor_offset=tuple(offsets),
    )


__all__ = ["OutputLayout", "dimension_product", "plan_layout"]
