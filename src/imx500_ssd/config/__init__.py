"""Configuration package for the IMX500 SSD decoder."""

from .loader import load_class_names, load_config
from .models import DEFAULT_STRIDE, Config, DecoderConfig, LoggingConfig, MobileNetConfig, StreamConfig

__all__ = [
    "Config",
    "DEFAULT_STRIDE",
    "DecoderConfig",
    "LoggingConfig",
    "MobileNetConfig",
    "StreamConfig",
    "load_class_names",
    "load_config",
]
