"""
Tests for the pipeline engine.
"""

import threading
from typing import Optional
from unittest.mock import MagicMock

import numpy as np
import pytest

from models.access import REASON_REGISTERED, REASON_UNREGISTERED, RegistryEntry
from models.config import Config
from models.detection import RawDetection
from models.frame import FrameData
from observation.base import ObservationConfig, ObservationSource
from pipeline.channel import DecisionChannel
from pipeline.engine import PipelineConfig, PipelineEngine, create_engine_from_config
from runtime.context import RuntimeContext
from conftest import FakeRegistry


class MockObservationSource(ObservationSource):
    """Mock source yielding blank frames with synthetic timestamps."""

    def __init__(self, max_frames: Optional[int] = 10, dt: float = 0.1, gaps=(), fail_open: bool = False):
        super().__init__(ObservationConfig(source_id="mock"))
        self._max_frames = max_frames
        self._dt = dt
        self._gaps = set(gaps)
        self._fail_open = fail_open
        self._pos = 0
        self.closed = False

    def open(self) -> None:
        if self._fail_open:
            raise RuntimeError("camera not found")
        self._is_open = True

    def next_frame(self) -> Optional[FrameData]:
        if not self.is_available():
            return None
        pos = self._pos
        self._pos += 1
        if pos in self._gaps:
            return None
        self._frame_index += 1
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        return FrameData.from_numpy(frame, timestamp=1000.0 + pos * self._dt, frame_index=pos, source="mock")

    def is_available(self) -> bool:
        return self._is_open and (self._max_frames is None or self._pos < self._max_frames)

    def close(self) -> None:
        self._is_open = False
        self.closed = True


def plate_detection():
    return RawDetection.from_xywh(100, 100, 120, 40, confidence=0.9)


def make_engine(source=None, text=("P0X4G21", 0.9), registry=None, **overrides):
    source = source or MockObservationSource(max_frames=10)
    detector = MagicMock()
    detector.detect.return_value = [plate_detection()]
    recognizer = MagicMock()
    recognizer.read.return_value = text
    registry = registry or FakeRegistry([
        RegistryEntry(entry_id=1, code="POX4G21", owner_name="Carlos", vehicle_model="Civic"),
    ])

    channel = DecisionChannel()
    events = []
    channel.subscribe(events.append, name="collect")

    ctx = RuntimeContext(
        config=Config(),
        db=registry,
        detector=detector,
        recognizer=recognizer,
        source=source,
        channel=channel,
    )
    settings = {"sampling_cadence": 1, "failure_backoff": 0.0}
    settings.update(overrides)
    engine = PipelineEngine(ctx, PipelineConfig(**settings))
    return engine, events


class TestEndToEnd:
    """Full flow from detections to published decisions."""

    def test_registered_plate_authorized(self):
        """P0X4G21 read, normalized to POX4G21 and matched exactly."""
        engine, events = make_engine()
        engine.run()

        assert len(events) == 1
        event = events[0]
        assert event.authorized
        assert event.code == "POX4G21"
        assert event.decision.info == "Carlos - Civic"
        assert event.decision.reason == REASON_REGISTERED
        assert event.recognition.raw_text == "P0X4G21"
        assert event.region_image is not None
        assert event.debug_image is None
        assert engine.ctx.db.logged == [event.decision]

    def test_unregistered_plate_denied(self):
        engine, events = make_engine(text=("XYZ9Q99", 0.8))
        engine.run()

        assert len(events) == 1
        assert not events[0].authorized
        assert events[0].decision.reason == REASON_UNREGISTERED
        assert events[0].decision.info == "unknown"

    def test_invalid_read_produces_no_decision(self):
        engine, events = make_engine(text=("AB", 0.4))
        engine.run()

        assert events == []
        assert engine.stats.rejected_reads == 3
        assert engine.ctx.db.logged == []

    def test_repeat_confirmations_suppressed_by_cooldown(self):
        """Frames 2, 5 and 8 each confirm a sighting; only the first decision is emitted."""
        engine, events = make_engine()
        engine.run()

        assert engine.stats.sightings_processed == 3
        assert engine.stats.decisions == 1
        assert engine.stats.suppressed == 2
        assert engine.ctx.recognizer.read.call_count == 3
        assert len(events) == 1


class TestSampling:
    """Detector cadence and confirmation timing."""

    def test_detector_runs_every_nth_frame(self):
        engine, _ = make_engine(sampling_cadence=3)
        engine.run()

        # Frames 0, 3, 6, 9
        assert engine.ctx.detector.detect.call_count == 4
        assert engine.stats.frame_count == 10

    def test_confirmation_spans_skipped_frames(self):
        engine, events = make_engine(sampling_cadence=3)
        engine.run()

        # Matches on frames 0, 3, 6 confirm the sighting on frame 6
        assert len(events) == 1
        assert events[0].frame_index == 6

    def test_short_timeout_warns(self, caplog):
        make_engine(sampling_cadence=3, tracker_timeout=5)
        assert "less than twice the sampling cadence" in caplog.text


class TestFailures:
    """Per-frame failures are logged and absorbed."""

    def test_detector_error_treated_as_no_detections(self):
        engine, events = make_engine()
        engine.ctx.detector.detect.side_effect = RuntimeError("inference crashed")
        engine.run()

        assert engine.stats.frame_count == 10
        assert engine.stats.detector_errors == 10
        assert events == []

    def test_recognizer_error_treated_as_empty_text(self):
        engine, events = make_engine()
        engine.ctx.recognizer.read.side_effect = RuntimeError("tesseract died")
        engine.run()

        assert engine.stats.recognizer_errors == 3
        assert engine.stats.rejected_reads == 3
        assert events == []
        assert len(engine.tracker) <= 2

    def test_log_failure_still_publishes(self):
        registry = FakeRegistry(
            [RegistryEntry(entry_id=1, code="POX4G21", owner_name="Carlos", vehicle_model="Civic")],
            log_ok=False,
        )
        engine, events = make_engine(registry=registry)
        engine.run()

        assert len(events) == 1
        assert engine.stats.log_failures == 1

    def test_region_outside_frame_skips_recognition(self):
        """Sightings whose padded box misses the frame are completed without a read."""
        engine, events = make_engine(source=MockObservationSource(max_frames=9))
        engine.ctx.detector.detect.return_value = [RawDetection.from_xywh(5000, 5000, 120, 40)]
        engine.run()

        assert engine.stats.sightings_processed == 3
        assert engine.stats.invalid_regions == 3
        assert engine.ctx.recognizer.read.call_count == 0
        assert len(engine.tracker) == 0
        assert events == []

    def test_unhandled_error_ends_loop_with_teardown(self, caplog):
        engine, events = make_engine()
        engine.resolver.resolve = MagicMock(side_effect=RuntimeError("resolver exploded"))

        engine.run()

        # Frame 2 confirms the first sighting and raises
        assert engine.stats.frame_count == 3
        assert "Pipeline error: resolver exploded" in caplog.text
        assert len(engine.tracker) == 0
        assert engine.source.closed
        assert engine.ctx.detector.close.called
        assert engine.ctx.recognizer.close.called
        assert engine.ctx.db.closed
        assert engine.channel.is_closed
        assert events == []

    def test_registry_failure_denies(self):
        engine, events = make_engine(registry=FakeRegistry(fail_with="disk I/O error"))
        engine.run()

        assert len(events) == 1
        assert not events[0].authorized
        assert events[0].decision.reason == "lookup failed"

    def test_consecutive_empty_reads_stop_loop(self):
        source = MockObservationSource(max_frames=100, gaps=range(5, 100))
        engine, _ = make_engine(source=source, max_consecutive_failures=4)
        engine.run()

        assert engine.stats.frame_count == 5
        assert source.closed

    def test_isolated_empty_reads_tolerated(self):
        source = MockObservationSource(max_frames=10, gaps={2, 5})
        engine, _ = make_engine(source=source, max_consecutive_failures=2)
        engine.run()

        assert engine.stats.frame_count == 8


class TestLifecycle:
    """Start/stop and teardown."""

    def test_teardown_releases_everything(self):
        engine, _ = make_engine()
        engine.run()

        assert engine.source.closed
        assert engine.ctx.detector.close.called
        assert engine.ctx.recognizer.close.called
        assert engine.ctx.db.closed
        assert engine.channel.is_closed

    def test_release_failure_does_not_skip_others(self):
        engine, _ = make_engine()
        engine.ctx.detector.close.side_effect = RuntimeError("device busy")
        engine.run()

        assert engine.ctx.recognizer.close.called
        assert engine.ctx.db.closed
        assert [name for name, _ in engine.ctx.release_errors] == ["detector"]

    def test_open_failure_raises_after_teardown(self):
        engine, _ = make_engine(source=MockObservationSource(fail_open=True))

        with pytest.raises(RuntimeError):
            engine.run()

        assert engine.ctx.db.closed
        assert engine.channel.is_closed

    def test_start_and_stop_background_thread(self):
        source = MockObservationSource(max_frames=None)
        engine, _ = make_engine(source=source, target_fps=200.0)

        thread = engine.start()
        assert isinstance(thread, threading.Thread)
        assert thread.daemon

        # Wait until a few frames went through
        for _ in range(200):
            if engine.stats.frame_count >= 3:
                break
            threading.Event().wait(0.01)

        engine.stop()
        engine.join(timeout=5)

        assert not engine.is_running
        assert engine.stats.frame_count >= 3
        assert source.closed

    def test_housekeeping_prunes_cooldown(self):
        engine, _ = make_engine(housekeeping_interval_frames=5)
        engine.resolver.prune = MagicMock(return_value=0)
        engine.run()

        assert engine.resolver.prune.call_count == 2

    def test_debug_image_attached(self):
        engine, events = make_engine(attach_debug_images=True)
        engine.run()

        assert events[0].debug_image is not None
        assert events[0].debug_image.shape == (480, 640, 3)
        assert events[0].debug_image.any()
        assert events[0].ocr_input_image is None

    def test_recognizer_input_attached(self):
        engine, events = make_engine(attach_debug_images=True)
        binary = np.full((130, 410), 255, dtype=np.uint8)
        engine.ctx.recognizer.last_input_image = binary
        engine.run()

        assert events[0].ocr_input_image.shape == (130, 410)
        assert events[0].ocr_input_image is not binary

    def test_no_debug_imagery_by_default(self):
        engine, events = make_engine()
        engine.ctx.recognizer.last_input_image = np.zeros((130, 410), dtype=np.uint8)
        engine.run()

        assert events[0].debug_image is None
        assert events[0].ocr_input_image is None


class TestFactory:
    def test_create_engine_from_config(self):
        config = Config.from_dict({
            "detection": {"sampling_cadence": 2},
            "tracking": {"confirmation_threshold": 4, "tracker_timeout": 12},
            "access": {"cooldown_window": 30.0, "cooldown_retention": 120.0},
            "recognition": {"grammar": "LLLDDDD"},
        })
        ctx = RuntimeContext(
            config=config,
            db=FakeRegistry(),
            detector=MagicMock(),
            recognizer=MagicMock(),
            source=MockObservationSource(),
        )

        engine = create_engine_from_config(config, ctx)

        assert engine.config.sampling_cadence == 2
        assert engine.tracker.confirmation_threshold == 4
        assert engine.tracker.tracker_timeout == 12
        assert engine.resolver.cooldown.window == 30.0
        assert engine.normalizer.grammar.pattern == "LLLDDDD"
        assert "log" in engine.channel.observer_stats()
        engine.channel.close()
