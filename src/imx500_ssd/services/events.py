"""Events published to the detection sink."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Sequence

from ..core.entities import Detection, MetadataFrame


class EventType(Enum):
    """Kinds of events travelling on the bus."""

    DETECTION = auto()
    DECODE_FAILED = auto()
    STOP = auto()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DetectionEvent:
    """Detections decoded from one metadata frame."""

    detections: Sequence[Detection]
    frame: MetadataFrame
    decode_time_ms: float = 0.0
    created_at: datetime = field(default_factory=_utc_now)
    type: EventType = field(init=False, default=EventType.DETECTION)


@dataclass(frozen=True)
class DecodeFailedEvent:
    """A frame was skipped because its metadata could not be decoded."""

    frame_id: int
    kind: str
    message: str
    source: str | None = None
    created_at: datetime = field(default_factory=_utc_now)
    type: EventType = field(init=False, default=EventType.DECODE_FAILED)


@dataclass(frozen=True)
class StopEvent:
    """Signals consumers that no more frames will follow."""

    reason: str | None = None
    created_at: datetime = field(default_factory=_utc_now)
    type: EventType = field(init=False, default=EventType.STOP)
