"""Tests for frame sources, the event bus and the processing loop."""
from __future__ import annotations

import numpy as np
import pytest

from imx500_ssd.config.models import MobileNetConfig
from imx500_ssd.core.detector import Imx500MobileNetDetector
from imx500_ssd.services import (
    BufferSource,
    DecodeFailedEvent,
    DetectionEvent,
    DumpFileSource,
    EventBus,
    FrameProcessor,
    StopEvent,
)
from imx500_ssd.services.events import EventType
from imx500_ssd.services.frame_source import expand_dump_paths
from imx500_ssd.simulator import DEFAULT_SIM_STRIDE, demo_values, encode_ssd_frame

FRAME_SIZE = (640, 480)


@pytest.fixture()
def good_frame():
    return encode_ssd_frame(demo_values(detections=2))


@pytest.fixture()
def processor():
    bus = EventBus()
    return FrameProcessor(Imx500MobileNetDetector(MobileNetConfig(classes=("person", "bicycle"))), bus), bus


class TestFrameProcessor:
    def test_bad_frame_is_skipped_and_reported(self, processor, good_frame):
        frame_processor, bus = processor
        source = BufferSource([good_frame, b"\x00" * 64, good_frame], DEFAULT_SIM_STRIDE, FRAME_SIZE)

        stats = frame_processor.run(source)

        assert (stats.processed, stats.failed, stats.detections) == (2, 1, 4)
        events = bus.drain()
        assert [type(event) for event in events] == [DetectionEvent, DecodeFailedEvent, DetectionEvent, StopEvent]
        failed = events[1]
        assert failed.kind == "InvalidHeader"
        assert failed.frame_id == 2
        assert failed.type is EventType.DECODE_FAILED
        assert [det.label for det in events[0].detections] == ["person", "bicycle"]

    def test_max_frames_limits_the_run(self, processor, good_frame):
        frame_processor, bus = processor
        source = BufferSource([good_frame] * 5, DEFAULT_SIM_STRIDE, FRAME_SIZE)

        stats = frame_processor.run(source, max_frames=2)

        assert stats.processed == 2
        assert isinstance(bus.drain()[-1], StopEvent)

    def test_process_returns_none_on_failure(self, processor, metadata_frame):
        frame_processor, bus = processor
        assert frame_processor.process(metadata_frame(b"\x01")) is None
        assert isinstance(bus.get(timeout=1), DecodeFailedEvent)

    @pytest.mark.filterwarnings("ignore::RuntimeWarning")
    def test_overflowing_scale_is_skipped(
        self, processor, good_frame, descriptor_factory, frame_factory, metadata_frame
    ):
        frame_processor, bus = processor
        raw = np.zeros(61, dtype=np.uint8)
        raw[40] = 200
        raw[50] = 1
        raw[60] = 1
        overflowing = frame_factory(
            [(descriptor_factory((61, 1), scale=3e38), raw)], network_id=3, stride=DEFAULT_SIM_STRIDE
        )

        assert frame_processor.process(metadata_frame(overflowing, stride=DEFAULT_SIM_STRIDE)) is None
        failed = bus.get(timeout=1)
        assert isinstance(failed, DecodeFailedEvent)
        assert failed.kind == "UnexpectedLayout"

        source = BufferSource([overflowing, good_frame], DEFAULT_SIM_STRIDE, FRAME_SIZE)
        stats = frame_processor.run(source)
        assert (stats.processed, stats.failed) == (1, 2)


class TestEventBus:
    def test_full_queue_drops_events(self):
        bus = EventBus(maxsize=1)
        bus.publish(StopEvent(reason="first"))
        bus.publish(StopEvent(reason="second"))

        events = bus.drain()

        assert [event.reason for event in events] == ["first"]
        assert bus.dropped == 1

    def test_drain_empty_bus(self):
        assert EventBus().drain() == []

    def test_listen_ends_after_stop(self):
        bus = EventBus()
        bus.publish(DecodeFailedEvent(frame_id=1, kind="InvalidHeader", message="bad"))
        bus.stop(reason="done")
        bus.publish(DecodeFailedEvent(frame_id=2, kind="InvalidHeader", message="late"))

        events = list(bus.listen(timeout=1))

        assert [type(event) for event in events] == [DecodeFailedEvent, StopEvent]
        assert events[-1].reason == "done"
        assert len(bus.drain()) == 1

    def test_run_publishes_stop_when_source_fails(self, processor, tmp_path):
        frame_processor, bus = processor
        source = DumpFileSource([tmp_path / "absent.bin"], DEFAULT_SIM_STRIDE, FRAME_SIZE)

        with pytest.raises(FileNotFoundError):
            frame_processor.run(source)

        assert isinstance(bus.drain()[-1], StopEvent)


class TestDumpFileSource:
    def test_replays_files_in_order(self, tmp_path, good_frame):
        for name in ("b.bin", "a.bin", "notes.txt"):
            (tmp_path / name).write_bytes(good_frame)
        source = DumpFileSource([tmp_path], DEFAULT_SIM_STRIDE, FRAME_SIZE)

        source.start()
        first = source.read()
        second = source.read()
        third = source.read()
        source.stop()

        assert len(source) == 2
        assert first[0] and first[1].source.endswith("a.bin")
        assert second[1].source.endswith("b.bin")
        assert second[1].frame_id == 2
        assert third == (False, None)

    def test_missing_file_fails_on_start(self, tmp_path):
        source = DumpFileSource([tmp_path / "absent.bin"], DEFAULT_SIM_STRIDE, FRAME_SIZE)
        with pytest.raises(FileNotFoundError):
            source.start()

    def test_read_before_start(self, tmp_path, good_frame):
        path = tmp_path / "frame.raw"
        path.write_bytes(good_frame)
        assert DumpFileSource([path], DEFAULT_SIM_STRIDE, FRAME_SIZE).read() == (False, None)

    def test_expand_keeps_explicit_files(self, tmp_path):
        explicit = tmp_path / "capture.any"
        assert expand_dump_paths([explicit]) == [explicit]
