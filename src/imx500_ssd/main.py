"""Command-line entry point: decode metadata dumps or synthesise test frames."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .config import Config, load_config
from .core.detector import Imx500MobileNetDetector
from .core.entities import Detection
from .infra import configure_logging, install_exception_hook
from .services import DecodeFailedEvent, DetectionEvent, DumpFileSource, EventBus, FrameProcessor
from .simulator import DEFAULT_MAX_LINE_LEN, DEFAULT_NETWORK_ID, demo_values, encode_ssd_frame

logger = logging.getLogger("app.main")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="IMX500 MobileNet-SSD metadata decoder.")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML/JSON configuration file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    decode = subparsers.add_parser("decode", help="Decode raw metadata dumps into detections.")
    decode.add_argument("dumps", nargs="+", type=Path, help="Dump files or directories of dumps.")
    decode.add_argument("--stride", type=int, default=None, help="Override the line stride in bytes.")
    decode.add_argument("--size", type=int, nargs=2, metavar=("WIDTH", "HEIGHT"), default=None)
    decode.add_argument("--json", action="store_true", help="Print one JSON object per frame.")
    decode.add_argument("--image", type=Path, default=None, help="Image to draw the detections on.")
    decode.add_argument("--output-image", type=Path, default=None, help="Where to write the annotated image.")

    synth = subparsers.add_parser("synth", help="Write a synthetic MobileNet-SSD metadata frame.")
    synth.add_argument("output", type=Path)
    synth.add_argument("--detections", type=int, default=3)
    synth.add_argument("--score", type=float, default=0.9)
    synth.add_argument("--network-id", type=int, default=DEFAULT_NETWORK_ID)
    synth.add_argument("--stride", type=int, default=None)
    synth.add_argument("--max-line-len", type=int, default=DEFAULT_MAX_LINE_LEN)
    return parser.parse_args(argv)


def draw_overlay(image: np.ndarray, detections: Sequence[Detection]) -> np.ndarray:
    """Draw detection boxes and labels on a copy of ``image``."""
    annotated = image.copy()
    for det in detections:
        x1, y1, x2, y2 = det.bbox.corners()
        cv2.rectangle(annotated, (x1, y1), (x2, y2), (0, 255, 0), 2)
        label = f"{det.label} {det.confidence:.2f}"
        cv2.putText(
            annotated,
            label,
            (x1, max(0, y1 - 10)),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.5,
            (0, 255, 0),
            1,
            cv2.LINE_AA,
        )
    return annotated


def format_event(event: DetectionEvent, as_json: bool) -> str:
    if as_json:
        return json.dumps(
            {
                "frame_id": event.frame.frame_id,
                "source": event.frame.source,
                "decode_time_ms": round(event.decode_time_ms, 3),
                "detections": [det.to_dict() for det in event.detections],
            }
        )
    lines = [f"{event.frame.source}: {len(event.detections)} detection(s)"]
    for det in event.detections:
        x, y, w, h = det.bbox.x, det.bbox.y, det.bbox.width, det.bbox.height
        lines.append(f"  {det.label} ({det.class_id}) {det.confidence:.2f} at x={x} y={y} w={w} h={h}")
    return "\n".join(lines)


def run_decode(config: Config, args: argparse.Namespace) -> int:
    stride = args.stride or config.stream.stride
    frame_size: Tuple[int, int] = tuple(args.size) if args.size else config.stream.frame_size()

    image = None
    if args.image is not None:
        image = cv2.imread(str(args.image))
        if image is None:
            raise FileNotFoundError(f"Unable to load image at {args.image}")
        frame_size = (image.shape[1], image.shape[0])
        logger.info("Denormalizing boxes to image size %dx%d", *frame_size)

    source = DumpFileSource(args.dumps, stride=stride, frame_size=frame_size)
    # Unbounded: the printer must see every frame, however slow the terminal.
    bus = EventBus(maxsize=0)
    processor = FrameProcessor(Imx500MobileNetDetector(config.mobilenet, config.decoder), bus)

    failures: List[BaseException] = []

    def _process_all() -> None:
        try:
            processor.run(source)
        except Exception as exc:
            failures.append(exc)

    worker = threading.Thread(target=_process_all, name="FrameProcessor", daemon=True)
    worker.start()

    last_detections: List[Detection] = []
    try:
        for event in bus.listen():
            if isinstance(event, DetectionEvent):
                print(format_event(event, args.json))
                last_detections = list(event.detections)
            elif isinstance(event, DecodeFailedEvent) and args.json:
                print(json.dumps({"frame_id": event.frame_id, "source": event.source, "error": event.kind}))
    except KeyboardInterrupt:
        logger.info("Interrupted by user (Ctrl+C).")
        source.stop()
    worker.join()
    if failures:
        raise failures[0]

    if image is not None:
        output = args.output_image or args.image.with_name(f"{args.image.stem}_detections{args.image.suffix}")
        cv2.imwrite(str(output), draw_overlay(image, last_detections))
        logger.info("Annotated image written to %s", output)

    stats = processor.stats
    logger.info("Decoded %d frame(s), skipped %d", stats.processed, stats.failed)
    return 0 if stats.failed == 0 else 2


def run_synth(config: Config, args: argparse.Namespace) -> int:
    stride = args.stride or config.stream.stride
    values = demo_values(detections=args.detections, score=args.score)
    frame = encode_ssd_frame(values, network_id=args.network_id, stride=stride, max_line_len=args.max_line_len)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    args.output.write_bytes(frame)
    logger.info("Wrote %d-byte frame with %d detection(s) to %s", len(frame), args.detections, args.output)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(args.config) if args.config else Config()
    except Exception as exc:
        print(f"Unable to read configuration: {exc}", file=sys.stderr)
        return 1

    configure_logging(config.logging)
    install_exception_hook()
    if args.config:
        logger.info("Configuration loaded from %s", args.config)

    if args.command == "synth":
        return run_synth(config, args)
    return run_decode(config, args)


if __name__ == "__main__":
    sys.exit(main())
