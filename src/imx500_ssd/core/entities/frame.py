"""Metadata frame container used across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple


@dataclass(frozen=True)
class MetadataFrame:
    """Raw inference metadata of one camera frame plus its output geometry."""

    buffer: bytes
    stride: int
    width: int
    height: int
    timestamp: datetime
    frame_id: int
    source: Optional[str] = None

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def copy_with(self, **kwargs) -> "MetadataFrame":
        values = {
            "buffer": self.buffer,
            "stride": self.stride,
            "width": self.width,
            "height": self.height,
            "timestamp": self.timestamp,
            "frame_id": self.frame_id,
            "source": self.source,
        }
        values.update(kwargs)
        return MetadataFrame(**values)
