"""
Pipeline engine for the plate gate.

One sequential loop per frame:
acquire -> detect (every Nth frame) -> track -> for each confirmed sighting:
extract region, recognize, normalize, resolve -> publish -> housekeeping ->
throttle.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional

import cv2
import numpy as np

from access.cooldown import CooldownLedger
from access.resolver import AccessResolver
from models.config import Config
from models.decision_event import DecisionEvent
from models.detection import RawDetection
from models.frame import FrameData
from models.sighting import Sighting
from pipeline.channel import DecisionChannel, log_decision_event
from pipeline.stages.extract import RegionExtractor
from recognition.grammar import PlateGrammar
from recognition.normalizer import CodeNormalizer
from runtime.context import RuntimeContext
from tracking.tracker import SightingTracker


@dataclass
class PipelineConfig:
    """
    Configuration for the pipeline engine.

    Attributes:
        sampling_cadence: Run the detector on every Nth frame (frame 0 included).
        confirmation_threshold: Matches needed before a sighting is processed.
        tracker_timeout: Frames without a match before a sighting is dropped.
        proximity_tolerance: Max per-coordinate pixel difference for a match.
        region_expansion_fraction: Padding added around boxes before recognition.
        max_edit_distance: Max Levenshtein distance for approximate matches.
        cooldown_window: Seconds during which repeat decisions are suppressed.
        cooldown_retention: Seconds before cooldown records are pruned.
        housekeeping_interval_frames: Frames between cooldown pruning runs.
        target_fps: Frame rate cap. None = run as fast as frames arrive.
        max_consecutive_failures: Empty reads in a row before stopping.
        failure_backoff: Seconds to wait after an empty read.
        stats_log_interval: Seconds between status log messages.
        cleanup_interval: Seconds between access log cleanup runs.
        log_retention_days: Days of access log to retain.
        attach_debug_images: Attach an annotated frame to each event.
    """
    sampling_cadence: int = 3
    confirmation_threshold: int = 3
    tracker_timeout: int = 10
    proximity_tolerance: int = 50
    region_expansion_fraction: float = 0.15
    max_edit_distance: int = 3
    cooldown_window: float = 15.0
    cooldown_retention: float = 60.0
    housekeeping_interval_frames: int = 30
    target_fps: Optional[float] = None
    max_consecutive_failures: int = 10
    failure_backoff: float = 0.5
    stats_log_interval: float = 60.0
    cleanup_interval: float = 86400.0  # 24 hours
    log_retention_days: int = 90
    attach_debug_images: bool = False

    @classmethod
    def from_config(cls, config: Config) -> "PipelineConfig":
        """Flatten the sections of the application config the loop needs."""
        return cls(
            sampling_cadence=config.detection.sampling_cadence,
            confirmation_threshold=config.tracking.confirmation_threshold,
            tracker_timeout=config.tracking.tracker_timeout,
            proximity_tolerance=config.tracking.proximity_tolerance,
            region_expansion_fraction=config.tracking.region_expansion_fraction,
            max_edit_distance=config.access.max_edit_distance,
            cooldown_window=config.access.cooldown_window,
            cooldown_retention=config.access.cooldown_retention,
            housekeeping_interval_frames=config.access.housekeeping_interval_frames,
            target_fps=config.pipeline.target_fps,
            max_consecutive_failures=config.pipeline.max_consecutive_failures,
            stats_log_interval=config.pipeline.stats_log_interval,
            log_retention_days=config.storage.log_retention_days,
            attach_debug_images=config.pipeline.attach_debug_images,
        )


@dataclass
class PipelineStats:
    """Runtime statistics for the pipeline."""
    frame_count: int = 0
    detection_runs: int = 0
    detections: int = 0
    detector_errors: int = 0
    sightings_processed: int = 0
    invalid_regions: int = 0
    recognizer_errors: int = 0
    rejected_reads: int = 0
    decisions: int = 0
    authorized: int = 0
    denied: int = 0
    suppressed: int = 0
    log_failures: int = 0
    start_time: float = field(default_factory=time.time)
    last_stats_log_time: float = field(default_factory=time.time)
    last_cleanup_time: float = field(default_factory=time.time)
    consecutive_failures: int = 0


class PipelineEngine:
    """
    Main processing engine for access decisions.

    This engine:
    - Reads frames from the context's ObservationSource
    - Runs the detector on sampled frames and feeds the tracker every frame
    - Gives each confirmed sighting one recognition attempt
    - Resolves valid codes and publishes decisions to the channel
    - Releases every resource on exit, whatever the exit path

    Example:
        ctx = RuntimeContext(config=cfg, db=db, detector=detector,
                             recognizer=recognizer, source=source,
                             channel=DecisionChannel())
        engine = PipelineEngine(ctx, PipelineConfig.from_config(cfg))
        engine.start()
        ...
        engine.stop()
    """

    def __init__(
        self,
        ctx: RuntimeContext,
        config: PipelineConfig,
        normalizer: Optional[CodeNormalizer] = None,
    ):
        self.ctx = ctx
        self.config = config
        self.stats = PipelineStats()

        self.tracker = SightingTracker(
            confirmation_threshold=config.confirmation_threshold,
            tracker_timeout=config.tracker_timeout,
            proximity_tolerance=config.proximity_tolerance,
        )
        self.extractor = RegionExtractor(config.region_expansion_fraction)
        self.normalizer = normalizer or CodeNormalizer()
        self.resolver = AccessResolver(
            registry=ctx.db,
            cooldown=CooldownLedger(config.cooldown_window, config.cooldown_retention),
            max_edit_distance=config.max_edit_distance,
        )
        if ctx.channel is None:
            ctx.channel = DecisionChannel()

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_frame_time: Optional[float] = None

        if config.tracker_timeout < 2 * config.sampling_cadence:
            logging.warning(
                f"tracker_timeout ({config.tracker_timeout}) is less than twice the sampling "
                f"cadence ({config.sampling_cadence}); one missed detection can expire a sighting"
            )

    @property
    def source(self):
        return self.ctx.source

    @property
    def channel(self) -> DecisionChannel:
        return self.ctx.channel

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> threading.Thread:
        """Run the loop on a background daemon thread."""
        if self.is_running:
            raise RuntimeError("Pipeline is already running")
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name="pipeline", daemon=True)
        self._thread.start()
        return self._thread

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def stop(self) -> None:
        """Signal the pipeline to stop after the current frame."""
        self._stop_event.set()

    def run(self) -> None:
        """
        Run the main processing loop until stopped or the source ends.

        Raises:
            RuntimeError: If the source cannot be opened (after teardown).
        """
        self.stats = PipelineStats()

        try:
            self.source.open()
        except Exception:
            self._cleanup()
            raise

        logging.info(f"Pipeline started: source={getattr(self.source, 'source_id', self.source)}")

        try:
            while not self._stop_event.is_set():
                started = time.perf_counter()

                if not self.source.is_available():
                    logging.info("Source ended")
                    break

                frame_data = self.source.next_frame()

                if frame_data is None:
                    if not self.source.is_available():
                        logging.info("Source ended")
                        break
                    self.stats.consecutive_failures += 1
                    if self.stats.consecutive_failures >= self.config.max_consecutive_failures:
                        logging.error(
                            f"Too many consecutive failures ({self.stats.consecutive_failures}), stopping"
                        )
                        break
                    logging.warning(
                        f"Frame read failed ({self.stats.consecutive_failures}/"
                        f"{self.config.max_consecutive_failures})"
                    )
                    self._stop_event.wait(self.config.failure_backoff)
                    continue

                self.stats.consecutive_failures = 0
                for event in self._process_frame(frame_data):
                    self.channel.publish(event)

                self._handle_periodic_tasks()
                self._throttle(started)

        except KeyboardInterrupt:
            logging.info("Pipeline interrupted by user")
        except Exception as e:
            logging.exception(f"Pipeline error: {e}")
        finally:
            self._cleanup()

    def _process_frame(self, frame_data: FrameData) -> List[DecisionEvent]:
        """
        Process a single frame through detection, tracking and recognition.

        Returns the decision events produced on this frame.
        """
        frame_index = self.stats.frame_count
        self.stats.frame_count += 1
        self._last_frame_time = frame_data.timestamp

        detections: List[RawDetection] = []
        if frame_index % self.config.sampling_cadence == 0:
            detections = self._detect(frame_data, frame_index)

        self.tracker.update(detections)

        events: List[DecisionEvent] = []
        for sighting in self.tracker.ready_for_processing():
            event = self._process_sighting(sighting, frame_data, frame_index)
            if event is not None:
                events.append(event)
        return events

    def _detect(self, frame_data: FrameData, frame_index: int) -> List[RawDetection]:
        self.stats.detection_runs += 1
        try:
            detections = self.ctx.detector.detect(frame_data.frame)
        except Exception as e:
            self.stats.detector_errors += 1
            logging.warning(f"Detector failed on frame {frame_index}: {e}")
            return []

        self.stats.detections += len(detections)
        return [
            dataclasses.replace(d, timestamp=frame_data.timestamp, frame_index=frame_index)
            if d.timestamp is None else d
            for d in detections
        ]

    def _process_sighting(
        self,
        sighting: Sighting,
        frame_data: FrameData,
        frame_index: int,
    ) -> Optional[DecisionEvent]:
        """
        Give a confirmed sighting its single processing attempt.

        The sighting is completed whatever happens here.
        """
        try:
            self.stats.sightings_processed += 1
            bbox = sighting.last_detection.bbox

            region = self.extractor.extract(frame_data.frame, bbox)
            if region is None:
                self.stats.invalid_regions += 1
                logging.warning(f"Sighting {sighting.sighting_id}: region {bbox.as_xywh()} outside frame")
                return None

            started = time.perf_counter()
            try:
                raw_text, confidence = self.ctx.recognizer.read(region)
            except Exception as e:
                self.stats.recognizer_errors += 1
                logging.warning(f"Recognizer failed for sighting {sighting.sighting_id}: {e}")
                raw_text, confidence = "", 0.0

            result = self.normalizer.normalize(raw_text, confidence, started)
            if not result.is_valid:
                self.stats.rejected_reads += 1
                logging.info(f"Sighting {sighting.sighting_id}: plate read rejected ('{result.raw_text}')")
                return None

            decision = self.resolver.resolve(result.processed_text, now=frame_data.timestamp)
            if decision is None:
                self.stats.suppressed += 1
                return None

            self.stats.decisions += 1
            if decision.authorized:
                self.stats.authorized += 1
            else:
                self.stats.denied += 1
            logging.debug(f"{decision} (raw='{result.raw_text}', ocr={result.confidence:.0%})")

            self._log_decision(decision)

            debug_image = None
            ocr_input_image = None
            if self.config.attach_debug_images:
                debug_image = self._draw_overlay(frame_data.copy_pixels(), sighting, decision)
                ocr_input_image = self._recognizer_input()

            return DecisionEvent(
                decision=decision,
                recognition=result,
                sighting_id=sighting.sighting_id,
                frame_index=frame_index,
                region_image=region,
                debug_image=debug_image,
                ocr_input_image=ocr_input_image,
            )
        finally:
            self.tracker.complete(sighting.sighting_id)

    def _recognizer_input(self) -> Optional[np.ndarray]:
        """Preprocessed image from the last read, for recognizers that keep one."""
        image = getattr(self.ctx.recognizer, "last_input_image", None)
        if isinstance(image, np.ndarray):
            return image.copy()
        return None

    def _log_decision(self, decision) -> None:
        try:
            ok = self.ctx.db.log_decision(decision)
        except Exception as e:
            logging.warning(f"Access log write raised for {decision.code}: {e}")
            ok = False
        if not ok:
            self.stats.log_failures += 1
            logging.warning(f"Access log write failed for {decision.code}, publishing anyway")

    def _draw_overlay(self, frame: np.ndarray, sighting: Sighting, decision) -> np.ndarray:
        """Box and verdict drawn on a copy of the frame."""
        color = (0, 200, 0) if decision.authorized else (0, 0, 255)
        x1, y1, x2, y2 = sighting.last_detection.bbox.as_xyxy()
        label = f"{decision.code} {'OK' if decision.authorized else 'DENIED'}"

        cv2.rectangle(frame, (x1, y1), (x2, y2), color, 2)
        font = cv2.FONT_HERSHEY_SIMPLEX
        (tw, th), _ = cv2.getTextSize(label, font, 0.6, 2)
        top = max(0, y1 - th - 8)
        cv2.rectangle(frame, (x1, top), (x1 + tw + 6, top + th + 8), color, -1)
        cv2.putText(frame, label, (x1 + 3, top + th + 3), font, 0.6, (255, 255, 255), 2)
        return frame

    def _handle_periodic_tasks(self) -> None:
        """Run periodic tasks (cooldown pruning, logging, cleanup)."""
        if self.stats.frame_count % self.config.housekeeping_interval_frames == 0:
            pruned = self.resolver.prune(now=self._last_frame_time)
            if pruned:
                logging.debug(f"Housekeeping: pruned {pruned} cooldown record(s)")

        now = time.time()

        if now - self.stats.last_stats_log_time >= self.config.stats_log_interval:
            elapsed = max(now - self.stats.start_time, 1e-6)
            logging.info(
                f"Pipeline stats: frames={self.stats.frame_count} "
                f"({self.stats.frame_count / elapsed:.1f} fps), "
                f"sightings={len(self.tracker)}, processed={self.stats.sightings_processed}, "
                f"decisions={self.stats.decisions} (authorized={self.stats.authorized}, "
                f"denied={self.stats.denied}, suppressed={self.stats.suppressed}), "
                f"rejected_reads={self.stats.rejected_reads}"
            )
            self.stats.last_stats_log_time = now

        if now - self.stats.last_cleanup_time >= self.config.cleanup_interval:
            if hasattr(self.ctx.db, "cleanup_old_logs"):
                self.ctx.db.cleanup_old_logs(retention_days=self.config.log_retention_days)
            self.stats.last_cleanup_time = now
            logging.info(f"Access log cleanup completed (retention: {self.config.log_retention_days} days)")

    def _throttle(self, started: float) -> None:
        if not self.config.target_fps:
            return
        remaining = 1.0 / self.config.target_fps - (time.perf_counter() - started)
        if remaining > 0:
            self._stop_event.wait(remaining)

    def _cleanup(self) -> None:
        """Release resources; every release is attempted."""
        self._stop_event.set()
        errors = self.ctx.release_all()
        if errors:
            logging.warning(f"Teardown finished with {len(errors)} release error(s): {errors}")
        logging.info(
            f"Pipeline stopped: frames={self.stats.frame_count}, decisions={self.stats.decisions}, "
            f"expired_sightings={self.tracker.expired_count}"
        )


def create_engine_from_config(config: Config, ctx: RuntimeContext) -> PipelineEngine:
    """
    Factory function to create a PipelineEngine from the application config.

    The built-in logging observer is subscribed to the context's channel.
    """
    if ctx.channel is None:
        ctx.channel = DecisionChannel(queue_size=config.pipeline.observer_queue_size)
    ctx.channel.subscribe(log_decision_event, name="log")

    normalizer = CodeNormalizer(
        grammar=PlateGrammar(pattern=config.recognition.grammar),
        shift_heuristic=config.recognition.shift_heuristic,
    )
    return PipelineEngine(ctx, PipelineConfig.from_config(config), normalizer=normalizer)
