"""Interpretation of the MobileNet-SSD output tensor.

The network emits 61 values laid out coordinate-major:

    [y_min x10][x_min x10][y_max x10][x_max x10][class x10][score x10][count]

Box coordinates are normalized to [0, 1].
"""

from __future__ import annotations

import logging
import math
from typing import Sequence, Tuple

import numpy as np

from ..entities import DetectionBox, DetectionSet
from ..tensor.errors import UnexpectedLayoutError

logger = logging.getLogger("detector.ssd")

SSD_SLOT_COUNT = 10
# bbox(10*4) + class(10) + scores(10) + numDetections(1)
SSD_OUTPUT_SIZE = 61
U16_MAX = 0xFFFF


def _to_pixel(normalized: np.float32, extent: int) -> int:
    value = float(normalized * np.float32(extent - 1))
    rounded = math.copysign(math.floor(abs(value) + 0.5), value)
    return min(max(int(rounded), 0), U16_MAX)


def split_output(values: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray, int]:
    """Split the flat output into boxes, classes, scores and the clamped count.

    Boxes come back as a ``(slots, 4)`` array of ``y_min, x_min, y_max, x_max``.
    """
    slots = SSD_SLOT_COUNT
    boxes = values[: 4 * slots].reshape(4, slots).T
    classes = values[4 * slots : 5 * slots]
    scores = values[5 * slots : 6 * slots]
    raw_count = float(values[6 * slots])
    if not math.isfinite(raw_count):
        raise UnexpectedLayoutError(f"Detection count {raw_count} is not a number")
    count = max(0, int(raw_count))
    if count > slots:
        logger.info("Unexpected value for numDetections: %d, setting it to %d", count, slots)
        count = slots
    return boxes, classes, scores, count


def interpret(
    buffer: Sequence[float],
    max_detections: int,
    threshold: float,
    frame_size: Tuple[int, int],
) -> DetectionSet:
    """Turn the decoded SSD tensor into pixel-space detections.

    Slots are visited in model order; a slot is kept when its score is at
    least ``threshold``. The first ``max_detections`` kept slots are returned
    without re-ranking.
    """
    values = np.asarray(buffer, dtype=np.float32).ravel()
    if values.size != SSD_OUTPUT_SIZE:
        logger.error("Invalid totalSize %d", values.size)
        raise UnexpectedLayoutError(f"SSD output has {values.size} values, expected {SSD_OUTPUT_SIZE}")

    boxes, classes, scores, count = split_output(values)
    width, height = frame_size
    limit = np.float32(threshold)

    result = DetectionSet()
    for slot in range(count):
        if scores[slot] < limit:
            continue
        if not (np.isfinite(boxes[slot]).all() and np.isfinite(classes[slot])):
            raise UnexpectedLayoutError(f"Detection slot {slot} holds a non-finite box or class value")
        y_min, x_min, y_max, x_max = boxes[slot]
        result.boxes.append(
            DetectionBox(
                x_min=_to_pixel(x_min, width),
                y_min=_to_pixel(y_min, height),
                x_max=_to_pixel(x_max, width),
                y_max=_to_pixel(y_max, height),
            )
        )
        result.scores.append(float(scores[slot]))
        result.class_indices.append(int(classes[slot]) & 0xFF)

    if len(result.boxes) > max_detections:
        del result.boxes[max_detections:]
        del result.scores[max_detections:]
        del result.class_indices[max_detections:]
    result.count = len(result.boxes)

    logger.debug("Number of detections: %d", result.count)
    for index in range(result.count):
        box = result.boxes[index]
        logger.debug(
            "[%d] = [%d, %d, %d, %d], score %.3f, class %d",
            index,
            box.x_min,
            box.x_max,
            box.y_min,
            box.y_max,
            result.scores[index],
            result.class_indices[index],
        )
    return result


__all__ = ["SSD_OUTPUT_SIZE", "SSD_SLOT_COUNT", "interpret", "split_output"]
