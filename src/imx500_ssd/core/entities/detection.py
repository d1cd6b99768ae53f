"""Detection result entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass(frozen=True)
class DetectionBox:
    """Box corners in destination-frame pixels, each within 16 bits."""

    x_min: int
    y_min: int
    x_max: int
    y_max: int

    def as_xywh(self) -> Tuple[int, int, int, int]:
        return self.x_min, self.y_min, self.x_max - self.x_min, self.y_max - self.y_min


@dataclass
class DetectionSet:
    """Kept SSD detections for one frame, in model slot order."""

    count: int = 0
    boxes: List[DetectionBox] = field(default_factory=list)
    scores: List[float] = field(default_factory=list)
    class_indices: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle in pixel coordinates (origin plus size)."""

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_corners(cls, box: DetectionBox) -> "BoundingBox":
        return cls(*box.as_xywh())

    def corners(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.x + self.width, self.y + self.height

    def center(self) -> Tuple[float, float]:
        """Center of the rectangle in pixel coordinates."""
        return (self.x + self.width / 2.0, self.y + self.height / 2.0)


@dataclass(frozen=True)
class Detection:
    """A single labeled detection handed to the detection sink."""

    class_id: int
    label: str
    confidence: float
    bbox: BoundingBox

    def to_dict(self) -> dict:
        return {
            "class_id": self.class_id,
            "label": self.label,
            "confidence": round(float(self.confidence), 4),
            "box": list(self.bbox.corners()),
        }
