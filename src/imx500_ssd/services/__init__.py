"""Service layer: metadata sources, event bus and the frame processor."""

from .event_bus import EventBus
from .events import DecodeFailedEvent, DetectionEvent, EventType, StopEvent
from .frame_source import BufferSource, DumpFileSource, MetadataSource, expand_dump_paths
from .pipeline import FrameProcessor, ProcessingStats

__all__ = [
    "BufferSource",
    "DecodeFailedEvent",
    "DetectionEvent",
    "DumpFileSource",
    "EventBus",
    "EventType",
    "FrameProcessor",
    "MetadataSource",
    "ProcessingStats",
    "StopEvent",
    "expand_dump_paths",
]
