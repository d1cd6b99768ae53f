"""Detectors built on the tensor decoder."""

from .base import DetectionResult, DetectorBase
from .mobilenet import Imx500MobileNetDetector
from .ssd import SSD_OUTPUT_SIZE, SSD_SLOT_COUNT, interpret

__all__ = [
    "DetectionResult",
    "DetectorBase",
    "Imx500MobileNetDetector",
    "SSD_OUTPUT_SIZE",
    "SSD_SLOT_COUNT",
    "interpret",
]
