"""Synthesise IMX500 MobileNet-SSD metadata frames.

The simulated sensor emits the SSD output as four tensors, the way the
network's post-processing layer does: boxes, classes, scores and the detection
count. The box tensor is streamed slot-major (the four coordinates of one slot
are adjacent on the wire) and reordered to coordinate-major on decode.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

import numpy as np

from .config.models import DEFAULT_STRIDE
from .core.detector.ssd import SSD_OUTPUT_SIZE, SSD_SLOT_COUNT
from .core.tensor.frame_builder import build_frame, encode_body, make_header, quantize
from .core.tensor.schema import Dimension, OutputTensorDescriptor, TensorFormat
from .core.tensor.schema_builder import NetworkSpec, build_schema

DEFAULT_NETWORK_ID = 7
DEFAULT_MAX_LINE_LEN = 64
DEFAULT_SIM_STRIDE = DEFAULT_STRIDE

BOX_SCALE = 1.0 / 10000.0
SCORE_SCALE = 1.0 / 200.0


def ssd_descriptors() -> List[OutputTensorDescriptor]:
    """Output tensors of the simulated MobileNet-SSD network, in body order."""
    slots = SSD_SLOT_COUNT
    return [
        OutputTensorDescriptor(
            id=0,
            name="boxes",
            dimensions=(
                Dimension(ordinal=0, size=slots, serialization_index=1),
                Dimension(ordinal=1, size=4, serialization_index=0),
            ),
            bits_per_element=16,
            quantization_shift=0,
            quantization_scale=BOX_SCALE,
            signedness=TensorFormat.UNSIGNED,
        ),
        OutputTensorDescriptor(
            id=1,
            name="classes",
            dimensions=(Dimension(ordinal=0, size=slots, serialization_index=0),),
            bits_per_element=8,
            quantization_shift=0,
            quantization_scale=1.0,
            signedness=TensorFormat.UNSIGNED,
        ),
        OutputTensorDescriptor(
            id=2,
            name="scores",
            dimensions=(Dimension(ordinal=0, size=slots, serialization_index=0),),
            bits_per_element=8,
            quantization_shift=0,
            quantization_scale=SCORE_SCALE,
            signedness=TensorFormat.UNSIGNED,
        ),
        OutputTensorDescriptor(
            id=3,
            name="num_detections",
            dimensions=(Dimension(ordinal=0, size=1, serialization_index=0),),
            bits_per_element=8,
            quantization_shift=0,
            quantization_scale=1.0,
            signedness=TensorFormat.UNSIGNED,
        ),
    ]


def ssd_output_values(
    boxes: Sequence[Tuple[float, float, float, float]],
    classes: Sequence[int],
    scores: Sequence[float],
    count: int | None = None,
) -> np.ndarray:
    """Arrange per-slot ``(y_min, x_min, y_max, x_max)`` boxes into the 61-value layout."""
    slots = SSD_SLOT_COUNT
    if not (len(boxes) == len(classes) == len(scores)) or len(boxes) > slots:
        raise ValueError(f"Need matching box, class and score lists of at most {slots} entries")
    values = np.zeros(SSD_OUTPUT_SIZE, dtype=np.float32)
    for slot, box in enumerate(boxes):
        for coord, value in enumerate(box):
            values[coord * slots + slot] = value
    values[4 * slots : 4 * slots + len(classes)] = classes
    values[5 * slots : 5 * slots + len(scores)] = scores
    values[6 * slots] = len(boxes) if count is None else count
    return values


def encode_ssd_frame(
    values: Sequence[float],
    network_id: int = DEFAULT_NETWORK_ID,
    stride: int = DEFAULT_SIM_STRIDE,
    max_line_len: int = DEFAULT_MAX_LINE_LEN,
    frame_count: int = 0,
) -> bytes:
    """Quantize a 61-value SSD output and wrap it in a full metadata frame."""
    values = np.asarray(values, dtype=np.float32)
    if values.size != SSD_OUTPUT_SIZE:
        raise ValueError(f"Expected {SSD_OUTPUT_SIZE} values, got {values.size}")
    slots = SSD_SLOT_COUNT
    boxes_desc, classes_desc, scores_desc, count_desc = descriptors = ssd_descriptors()

    boxes_wire = values[: 4 * slots].reshape(4, slots).T.ravel()
    tensors = [
        (boxes_desc, quantize(boxes_wire, boxes_desc)),
        (classes_desc, quantize(values[4 * slots : 5 * slots], classes_desc)),
        (scores_desc, quantize(values[5 * slots : 6 * slots], scores_desc)),
        (count_desc, quantize(values[6 * slots :], count_desc)),
    ]
    schema = build_schema([NetworkSpec(network_id=network_id, outputs=descriptors)])
    header = make_header(schema, max_line_len=max_line_len, network_id=network_id, frame_count=frame_count)
    return build_frame(header, schema, encode_body(tensors, stride, max_line_len), stride)


def demo_values(detections: int = 3, score: float = 0.9) -> np.ndarray:
    """A small, deterministic SSD output with ``detections`` diagonal boxes."""
    boxes = []
    for slot in range(detections):
        start = 0.05 + slot * 0.08
        boxes.append((start, start, start + 0.2, start + 0.25))
    classes = [slot % 80 for slot in range(detections)]
    return ssd_output_values(boxes, classes, [score] * detections)
