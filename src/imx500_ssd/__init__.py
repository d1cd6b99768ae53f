"""IMX500 on-sensor inference metadata decoder for MobileNet-SSD."""

from __future__ import annotations

from importlib import import_module
from typing import Any

from .config import Config, load_config
from .core.detector import DetectionResult, Imx500MobileNetDetector, interpret
from .core.entities import Detection, DetectionSet, MetadataFrame

__all__ = [
    "Config",
    "Detection",
    "DetectionResult",
    "DetectionSet",
    "Imx500MobileNetDetector",
    "MetadataFrame",
    "interpret",
    "load_config",
    "main",
]


def __getattr__(name: str) -> Any:
    """Lazily import the CLI so library users do not pull in OpenCV."""
    if name == "main":
        module = import_module("imx500_ssd.main")
        return getattr(module, "main")
    raise AttributeError(name)
