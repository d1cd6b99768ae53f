"""Frame processing loop: decode each frame and publish the outcome."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.detector import DetectionResult, DetectorBase
from ..core.entities import MetadataFrame
from ..core.tensor import TensorDecodeError
from .event_bus import EventBus
from .events import DecodeFailedEvent, DetectionEvent
from .frame_source import MetadataSource

logger = logging.getLogger("services.pipeline")


@dataclass
class ProcessingStats:
    processed: int = 0
    failed: int = 0
    detections: int = 0


class FrameProcessor:
    """Run the detector on frames and report results on the event bus.

    A frame that fails to decode is skipped: the failure is logged and
    published, and processing continues with the next frame.
    """

    def __init__(self, detector: DetectorBase, bus: EventBus) -> None:
        self._detector = detector
        self._bus = bus
        self.stats = ProcessingStats()

    def process(self, frame: MetadataFrame) -> Optional[DetectionResult]:
        try:
            result = self._detector.detect(frame)
        except TensorDecodeError as exc:
            self.stats.failed += 1
            logger.warning("Skipping frame %d (%s): %s", frame.frame_id, exc.kind, exc)
            self._bus.publish(
                DecodeFailedEvent(frame_id=frame.frame_id, kind=exc.kind, message=str(exc), source=frame.source)
            )
            return None

        self.stats.processed += 1
        self.stats.detections += len(result.detections)
        self._bus.publish(
            DetectionEvent(detections=result.detections, frame=frame, decode_time_ms=result.decode_time_ms)
        )
        return result

    def run(self, source: MetadataSource, max_frames: Optional[int] = None) -> ProcessingStats:
        """Drain ``source`` (up to ``max_frames``), then publish a StopEvent.

        The StopEvent is published even when the source fails, so a consumer
        listening on the bus always terminates.
        """
        frames = 0
        try:
            source.start()
            while max_frames is None or frames < max_frames:
                success, frame = source.read()
                if not success or frame is None:
                    break
                frames += 1
                self.process(frame)
        finally:
            source.stop()
            self._bus.stop(reason="source exhausted")
        logger.info(
            "Processed %d frame(s), skipped %d, %d detection(s)",
            self.stats.processed,
            self.stats.failed,
            self.stats.detections,
        )
        return self.stats
