"""Core entities shared by the decoder, detector and services."""

from .detection import BoundingBox, Detection, DetectionBox, DetectionSet
from .frame import MetadataFrame

__all__ = ["BoundingBox", "Detection", "DetectionBox", "DetectionSet", "MetadataFrame"]
