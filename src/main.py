"""
Plate gate: real-time vehicle access decisions from a camera feed.

Reads frames, confirms plate detections over several frames, reads and
normalizes the plate text, and authorizes or denies access against the
registered vehicle database.

Usage:
    python src/main.py --config config/config.yaml

Arguments:
    --config: Path to configuration file
    --video: Use this video file instead of the configured camera
"""

import argparse
import logging
import os
import signal
import sys
from typing import Any, Dict, Optional, Tuple

import yaml

from inference.cpu_backend import CpuYoloConfig, UltralyticsCpuBackend
from models.config import CameraConfig, Config
from observation import ObservationSource, OpenCVSource, OpenCVSourceConfig
from ops.logging import setup_logging
from pipeline.engine import PipelineEngine, create_engine_from_config
from recognition.grammar import DIGIT_SLOT, LETTER_SLOT
from recognition.tesseract_backend import TesseractConfig, TesseractRecognizer
from runtime.context import RuntimeContext
from storage.database import Database, RegistryError

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_pos_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_non_neg_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['camera', 'detection', 'storage', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Camera
    camera = config.get('camera') or {}
    if 'device_id' not in camera:
        return False, "Missing camera.device_id"
    if isinstance(camera['device_id'], bool) or not isinstance(camera['device_id'], (int, str)):
        return False, "camera.device_id must be an integer (index) or string (URL or file)"
    if isinstance(camera['device_id'], int) and camera['device_id'] < 0:
        return False, "camera.device_id integer must be non-negative"
    if camera.get('resolution') is not None:
        res = camera['resolution']
        if not isinstance(res, list) or len(res) != 2 or not all(_is_pos_int(x) for x in res):
            return False, "camera.resolution must be a list of two positive integers [width, height]"
    if camera.get('fps') is not None and not _is_pos_int(camera['fps']):
        return False, "camera.fps must be a positive integer"
    if camera.get('fallback_video') is not None and not isinstance(camera['fallback_video'], str):
        return False, "camera.fallback_video must be a file path"
    if 'max_retries' in camera and not _is_pos_int(camera['max_retries']):
        return False, "camera.max_retries must be a positive integer"

    # Detection
    detection = config.get('detection') or {}
    if not isinstance(detection.get('model'), str) or not detection.get('model'):
        return False, "detection.model is required"
    for key in ('conf_threshold', 'iou_threshold'):
        if key in detection:
            v = detection[key]
            if not _is_number(v) or not (0 <= v <= 1):
                return False, f"detection.{key} must be a number between 0 and 1"
    cadence = detection.get('sampling_cadence', 3)
    if not _is_pos_int(cadence):
        return False, "detection.sampling_cadence must be a positive integer"

    # Recognition
    recognition = config.get('recognition') or {}
    grammar = recognition.get('grammar', 'LLLDLDD')
    if not isinstance(grammar, str) or not grammar or set(grammar) - {LETTER_SLOT, DIGIT_SLOT}:
        return False, "recognition.grammar must be a non-empty string of 'L' and 'D'"
    psm = recognition.get('page_segmentation_mode', 7)
    if not _is_non_neg_int(psm) or psm > 13:
        return False, "recognition.page_segmentation_mode must be an integer between 0 and 13"
    if not _is_pos_int(recognition.get('min_height', 120)):
        return False, "recognition.min_height must be a positive integer"
    if not _is_non_neg_int(recognition.get('border_size', 5)):
        return False, "recognition.border_size must be a non-negative integer"

    # Tracking
    tracking = config.get('tracking') or {}
    for key in ('confirmation_threshold', 'tracker_timeout', 'proximity_tolerance'):
        if key in tracking and not _is_pos_int(tracking[key]):
            return False, f"tracking.{key} must be a positive integer"
    fraction = tracking.get('region_expansion_fraction', 0.15)
    if not _is_number(fraction) or not (0 <= fraction < 1):
        return False, "tracking.region_expansion_fraction must be in [0, 1)"
    if tracking.get('tracker_timeout', 10) < cadence:
        return False, (
            f"tracking.tracker_timeout ({tracking.get('tracker_timeout', 10)}) must be at least "
            f"detection.sampling_cadence ({cadence})"
        )

    # Access
    access = config.get('access') or {}
    window = access.get('cooldown_window', 15.0)
    retention = access.get('cooldown_retention', 60.0)
    if not _is_number(window) or window <= 0:
        return False, "access.cooldown_window must be a positive number of seconds"
    if not _is_number(retention) or retention < window:
        return False, "access.cooldown_retention must be a number >= access.cooldown_window"
    if not _is_non_neg_int(access.get('max_edit_distance', 3)):
        return False, "access.max_edit_distance must be a non-negative integer"
    if not _is_pos_int(access.get('housekeeping_interval_frames', 30)):
        return False, "access.housekeeping_interval_frames must be a positive integer"

    # Pipeline
    pipeline = config.get('pipeline') or {}
    if pipeline.get('target_fps') is not None:
        if not _is_number(pipeline['target_fps']) or pipeline['target_fps'] <= 0:
            return False, "pipeline.target_fps must be a positive number"
    for key in ('max_consecutive_failures', 'observer_queue_size'):
        if key in pipeline and not _is_pos_int(pipeline[key]):
            return False, f"pipeline.{key} must be a positive integer"
    if 'stats_log_interval' in pipeline:
        if not _is_number(pipeline['stats_log_interval']) or pipeline['stats_log_interval'] <= 0:
            return False, "pipeline.stats_log_interval must be a positive number"

    # Storage
    storage = config.get('storage') or {}
    if 'local_database_path' not in storage:
        return False, "Missing storage.local_database_path"
    if not isinstance(storage['local_database_path'], str):
        return False, "storage.local_database_path must be a string"
    if 'log_retention_days' in storage and not _is_pos_int(storage['log_retention_days']):
        return False, "storage.log_retention_days must be a positive integer"
    seeds = storage.get('seed_vehicles') or []
    if not isinstance(seeds, list):
        return False, "storage.seed_vehicles must be a list"
    for i, seed in enumerate(seeds):
        if not isinstance(seed, dict) or not seed.get('code') or not seed.get('owner_name'):
            return False, f"storage.seed_vehicles[{i}] needs code and owner_name"

    # Logging
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def open_source(camera: CameraConfig, video_override: Optional[str] = None) -> ObservationSource:
    """
    Open the primary frame source, falling back to the configured video file.

    Raises:
        RuntimeError: If neither source can be opened.
    """
    if video_override:
        source = OpenCVSource(OpenCVSourceConfig.for_video_file(video_override, loop=camera.loop_video))
        source.open()
        return source

    primary = OpenCVSource(OpenCVSourceConfig.from_camera_config(camera))
    try:
        primary.open()
        return primary
    except RuntimeError as e:
        if not camera.fallback_video:
            raise
        logging.warning(f"Camera unavailable ({e}), falling back to video file {camera.fallback_video}")

    fallback = OpenCVSource(OpenCVSourceConfig.for_video_file(camera.fallback_video, loop=camera.loop_video))
    fallback.open()
    return fallback


def install_signal_handlers(engine: PipelineEngine) -> None:
    """SIGINT/SIGTERM stop the engine after the current frame."""
    def _handle(signum, _frame):
        logging.info(f"Received signal {signum}, stopping")
        engine.stop()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def main() -> int:
    """Main application function."""
    parser = argparse.ArgumentParser(description='Plate gate - vehicle access control')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--video', type=str, default=None,
                        help='Read frames from this video file instead of the camera')
    args = parser.parse_args()

    raw_config = load_config(args.config)

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        return 1

    setup_logging(raw_config['log_path'], raw_config['log_level'])
    config = Config.from_dict(raw_config)

    logging.info("Starting plate gate")

    ctx = RuntimeContext(config=config, db=None, detector=None, recognizer=None)
    try:
        db = Database(config.storage.local_database_path)
        ctx.db = db
        db.initialize()
        db.seed_vehicles(config.storage.seed_vehicles)

        ctx.detector = UltralyticsCpuBackend(
            CpuYoloConfig(
                model=config.detection.model,
                conf_threshold=float(config.detection.conf_threshold),
                iou_threshold=float(config.detection.iou_threshold),
            )
        )
        rcfg = config.recognition
        ctx.recognizer = TesseractRecognizer(
            TesseractConfig(
                language=rcfg.language,
                tesseract_cmd=rcfg.tesseract_cmd,
                page_segmentation_mode=rcfg.page_segmentation_mode,
                min_height=rcfg.min_height,
                border_size=rcfg.border_size,
            )
        )
        ctx.source = open_source(config.camera, args.video)
    except (RegistryError, ImportError, RuntimeError) as e:
        logging.error(f"Startup failed: {e}")
        ctx.release_all()
        return 1
    except Exception as e:
        logging.exception(f"Startup failed: {e}")
        ctx.release_all()
        return 1

    engine = create_engine_from_config(config, ctx)
    install_signal_handlers(engine)

    try:
        engine.run()
    except RuntimeError as e:
        logging.error(f"Pipeline could not start: {e}")
        return 1

    logging.info("Plate gate stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
