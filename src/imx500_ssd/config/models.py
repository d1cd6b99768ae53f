"""Dataclass definitions for application configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Mapping, Optional, Sequence, Tuple

# Line stride of the IMX500 output tensor metadata in bytes.
DEFAULT_STRIDE = 4064


@dataclass(frozen=True)
class StreamConfig:
    """Geometry of the metadata stream and of the frames detections map onto."""

    stride: int = DEFAULT_STRIDE
    output_size: Sequence[int] = (640, 480)

    def frame_size(self) -> Tuple[int, int]:
        return int(self.output_size[0]), int(self.output_size[1])


@dataclass(frozen=True)
class MobileNetConfig:
    """MobileNet-SSD post-processing settings."""

    max_detections: int = 5
    threshold: float = 0.3
    class_file: Optional[Path] = None
    classes: Sequence[str] = ()


@dataclass(frozen=True)
class DecoderConfig:
    """Tensor decoder tuning."""

    max_workers: Optional[int] = None
    cache_schema: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    """Logging level, file path and rotation."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    filepath: Path = Path("logs/imx500_ssd.log")
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 5
    console: bool = True
    # Per-logger level overrides, keyed by logger name.
    loggers: Mapping[str, str] = field(default_factory=dict)

    def resolved_path(self) -> Path:
        return Path(self.filepath).expanduser().resolve()


@dataclass(frozen=True)
class Config:
    """Root configuration object."""

    stream: StreamConfig = field(default_factory=StreamConfig)
    mobilenet: MobileNetConfig = field(default_factory=MobileNetConfig)
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
