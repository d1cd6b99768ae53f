"""Configuration loader utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .models import Config, DecoderConfig, LoggingConfig, MobileNetConfig, StreamConfig


def _normalize_path(path: Path | str) -> Path:
    return path if isinstance(path, Path) else Path(path)


def _load_raw_config(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found at {config_path}")

    suffix = config_path.suffix.lower()
    with config_path.open("r", encoding="utf-8") as stream:
        if suffix in {".yaml", ".yml"}:
            return yaml.safe_load(stream) or {}
        if suffix == ".json":
            return json.load(stream)
        raise ValueError(f"Unsupported config format: {suffix}")


def load_class_names(class_file: Path | str) -> List[str]:
    """Read class names, one per line, keeping line order as class index."""
    path = _normalize_path(class_file)
    with path.open("r", encoding="utf-8") as stream:
        return [line.rstrip("\r\n") for line in stream]


def load_config(config_path: Path | str) -> Config:
    """Load configuration file and construct Config dataclass."""

    config_path = _normalize_path(config_path)
    raw = _load_raw_config(config_path)

    stream_raw = dict(raw.get("stream", {}))
    if "output_size" in stream_raw:
        stream_raw["output_size"] = _size(stream_raw["output_size"])
    stream = StreamConfig(**stream_raw)
    if stream.stride <= 0:
        raise ValueError(f"Stream stride must be positive, got {stream.stride}")

    mobilenet = _load_mobilenet_config(raw.get("mobilenet", {}), config_path.parent)
    decoder = DecoderConfig(**raw.get("decoder", {}))

    logging_raw = dict(raw.get("logging", {}))
    log_path = logging_raw.get("filepath")
    if log_path:
        logging_raw["filepath"] = (config_path.parent / log_path).resolve()
    logging = LoggingConfig(**logging_raw)

    return Config(stream=stream, mobilenet=mobilenet, decoder=decoder, logging=logging)


def _size(value: Any) -> tuple[int, int]:
    if value is None or len(value) != 2:
        raise ValueError("output_size must be a sequence of two integers [width, height].")
    width, height = int(value[0]), int(value[1])
    if width <= 0 or height <= 0:
        raise ValueError(f"output_size must be positive, got {width}x{height}")
    return width, height


def _load_mobilenet_config(raw_mobilenet: Any, base_dir: Path) -> MobileNetConfig:
    if not isinstance(raw_mobilenet, dict):
        return MobileNetConfig()

    mobilenet_raw = dict(raw_mobilenet)
    threshold = float(mobilenet_raw.get("threshold", MobileNetConfig.threshold))
    if not 0.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must lie in [0, 1], got {threshold}")
    mobilenet_raw["threshold"] = threshold

    # Class names file is resolved relative to the config file, like the log path.
    class_file = mobilenet_raw.get("class_file")
    if class_file:
        class_path = (base_dir / class_file).resolve()
        mobilenet_raw["class_file"] = class_path
        if not mobilenet_raw.get("classes"):
            mobilenet_raw["classes"] = tuple(load_class_names(class_path))
    if "classes" in mobilenet_raw:
        mobilenet_raw["classes"] = tuple(mobilenet_raw["classes"])
    return MobileNetConfig(**mobilenet_raw)
