"""IMX500 MobileNet-SSD detector running the full metadata decode."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import List, Optional, Sequence

from ...config.models import DecoderConfig, MobileNetConfig
from ..entities import BoundingBox, Detection, DetectionSet, MetadataFrame
from ..tensor import BODY_LINE_OFFSET, SchemaCache, decode_all, parse_header, plan_network
from .base import DetectionResult, DetectorBase
from .ssd import interpret

logger = logging.getLogger("detector.mobilenet")


class Imx500MobileNetDetector(DetectorBase):
    """Header, schema, layout, body decode and SSD interpretation in one call."""

    def __init__(self, config: MobileNetConfig, decoder: Optional[DecoderConfig] = None) -> None:
        self._config = config
        self._decoder = decoder or DecoderConfig()
        self._names: List[str] = list(config.classes)
        self._cache: Optional[SchemaCache] = SchemaCache() if self._decoder.cache_schema else None

    @property
    def cache(self) -> Optional[SchemaCache]:
        return self._cache

    def decode(self, frame: MetadataFrame) -> DetectionSet:
        """Decode ``frame`` into a DetectionSet; any TensorDecodeError propagates."""
        header, schema = parse_header(frame.buffer, frame.stride)
        header.require_decodable()

        if self._cache is not None:
            planned = self._cache.resolve(schema, header.network_id)
        else:
            planned = plan_network(schema, header.network_id)

        body = frame.buffer[BODY_LINE_OFFSET * frame.stride :]
        output = decode_all(
            planned.descriptors,
            planned.layout,
            body,
            frame.stride,
            header.max_line_len,
            max_workers=self._decoder.max_workers,
        )
        return interpret(output, self._config.max_detections, self._config.threshold, frame.size)

    def detect(self, frame: MetadataFrame) -> DetectionResult:
        start = perf_counter()
        detection_set = self.decode(frame)
        decode_time_ms = (perf_counter() - start) * 1000.0
        detections = self.label(detection_set)
        logger.debug("Frame %d produced %d detections (%.1f ms)", frame.frame_id, len(detections), decode_time_ms)
        return DetectionResult(
            frame=frame,
            detections=detections,
            detection_set=detection_set,
            decode_time_ms=decode_time_ms,
        )

    def label(self, detection_set: DetectionSet) -> List[Detection]:
        """Attach class names and convert boxes to origin plus size."""
        detections: List[Detection] = []
        for box, score, class_id in zip(detection_set.boxes, detection_set.scores, detection_set.class_indices):
            detections.append(
                Detection(
                    class_id=class_id,
                    label=_class_name(self._names, class_id),
                    confidence=score,
                    bbox=BoundingBox.from_corners(box),
                )
            )
        return detections


def _class_name(names: Sequence[str], class_id: int) -> str:
    if class_id < len(names):
        return names[class_id]
    logger.warning("Class index %d outside the %d known class names", class_id, len(names))
    return f"class_{class_id}"
