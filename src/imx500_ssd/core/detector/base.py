"""Detector interface and result container."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Sequence

from ..entities import Detection, DetectionSet, MetadataFrame


@dataclass
class DetectionResult:
    """Decoded detections for one metadata frame."""

    frame: MetadataFrame
    detections: Sequence[Detection]
    detection_set: DetectionSet
    decode_time_ms: float


class DetectorBase(abc.ABC):
    """Base class for detectors that consume IMX500 inference metadata."""

    @abc.abstractmethod
    def detect(self, frame: MetadataFrame) -> DetectionResult:
        """Decode the frame's metadata and return its detections."""
