"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


@dataclass
class CameraConfig:
    """Frame source configuration."""
    device_id: Union[int, str] = 0
    fallback_video: Optional[str] = None
    loop_video: bool = False
    resolution: Optional[List[int]] = None
    fps: Optional[int] = None
    max_retries: int = 3

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        """Adapter: Create from config dictionary."""
        return cls(
            device_id=d.get("device_id", 0),
            fallback_video=d.get("fallback_video"),
            loop_video=d.get("loop_video", False),
            resolution=d.get("resolution"),
            fps=d.get("fps"),
            max_retries=d.get("max_retries", 3),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "device_id": self.device_id,
            "loop_video": self.loop_video,
            "max_retries": self.max_retries,
        }
        if self.fallback_video is not None:
            d["fallback_video"] = self.fallback_video
        if self.resolution is not None:
            d["resolution"] = self.resolution
        if self.fps is not None:
            d["fps"] = self.fps
        return d


@dataclass
class DetectionConfig:
    """Plate detector configuration."""
    model: str = "models/best.pt"
    conf_threshold: float = 0.4
    iou_threshold: float = 0.45
    sampling_cadence: int = 3

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        return cls(
            model=d.get("model", "models/best.pt"),
            conf_threshold=d.get("conf_threshold", 0.4),
            iou_threshold=d.get("iou_threshold", 0.45),
            sampling_cadence=d.get("sampling_cadence", 3),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "conf_threshold": self.conf_threshold,
            "iou_threshold": self.iou_threshold,
            "sampling_cadence": self.sampling_cadence,
        }


@dataclass
class RecognitionConfig:
    """Text recognizer and plate grammar configuration."""
    language: str = "eng"
    tesseract_cmd: Optional[str] = None
    page_segmentation_mode: int = 7
    min_height: int = 120
    border_size: int = 5
    grammar: str = "LLLDLDD"
    shift_heuristic: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RecognitionConfig":
        return cls(
            language=d.get("language", "eng"),
            tesseract_cmd=d.get("tesseract_cmd"),
            page_segmentation_mode=d.get("page_segmentation_mode", 7),
            min_height=d.get("min_height", 120),
            border_size=d.get("border_size", 5),
            grammar=d.get("grammar", "LLLDLDD"),
            shift_heuristic=d.get("shift_heuristic", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "language": self.language,
            "page_segmentation_mode": self.page_segmentation_mode,
            "min_height": self.min_height,
            "border_size": self.border_size,
            "grammar": self.grammar,
            "shift_heuristic": self.shift_heuristic,
        }
        if self.tesseract_cmd is not None:
            d["tesseract_cmd"] = self.tesseract_cmd
        return d


@dataclass
class TrackingConfig:
    """Temporal confirmation tracker configuration."""
    confirmation_threshold: int = 3
    tracker_timeout: int = 10
    proximity_tolerance: int = 50
    region_expansion_fraction: float = 0.15

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TrackingConfig":
        return cls(
            confirmation_threshold=d.get("confirmation_threshold", 3),
            tracker_timeout=d.get("tracker_timeout", 10),
            proximity_tolerance=d.get("proximity_tolerance", 50),
            region_expansion_fraction=d.get("region_expansion_fraction", 0.15),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "confirmation_threshold": self.confirmation_threshold,
            "tracker_timeout": self.tracker_timeout,
            "proximity_tolerance": self.proximity_tolerance,
            "region_expansion_fraction": self.region_expansion_fraction,
        }


@dataclass
class AccessConfig:
    """Access resolution and cooldown configuration."""
    cooldown_window: float = 15.0
    cooldown_retention: float = 60.0
    max_edit_distance: int = 3
    housekeeping_interval_frames: int = 30

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AccessConfig":
        return cls(
            cooldown_window=d.get("cooldown_window", 15.0),
            cooldown_retention=d.get("cooldown_retention", 60.0),
            max_edit_distance=d.get("max_edit_distance", 3),
            housekeeping_interval_frames=d.get("housekeeping_interval_frames", 30),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cooldown_window": self.cooldown_window,
            "cooldown_retention": self.cooldown_retention,
            "max_edit_distance": self.max_edit_distance,
            "housekeeping_interval_frames": self.housekeeping_interval_frames,
        }


@dataclass
class PipelineSettings:
    """Frame loop configuration."""
    target_fps: Optional[float] = None
    max_consecutive_failures: int = 10
    stats_log_interval: float = 60.0
    attach_debug_images: bool = False
    observer_queue_size: int = 32

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PipelineSettings":
        return cls(
            target_fps=d.get("target_fps"),
            max_consecutive_failures=d.get("max_consecutive_failures", 10),
            stats_log_interval=d.get("stats_log_interval", 60.0),
            attach_debug_images=d.get("attach_debug_images", False),
            observer_queue_size=d.get("observer_queue_size", 32),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "max_consecutive_failures": self.max_consecutive_failures,
            "stats_log_interval": self.stats_log_interval,
            "attach_debug_images": self.attach_debug_images,
            "observer_queue_size": self.observer_queue_size,
        }
        if self.target_fps is not None:
            d["target_fps"] = self.target_fps
        return d


@dataclass
class StorageConfig:
    """Registry database configuration."""
    local_database_path: str = "data/anpr.sqlite"
    log_retention_days: int = 90
    seed_vehicles: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StorageConfig":
        return cls(
            local_database_path=d.get("local_database_path", "data/anpr.sqlite"),
            log_retention_days=d.get("log_retention_days", 90),
            seed_vehicles=list(d.get("seed_vehicles") or []),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "local_database_path": self.local_database_path,
            "log_retention_days": self.log_retention_days,
            "seed_vehicles": self.seed_vehicles,
        }


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    access: AccessConfig = field(default_factory=AccessConfig)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_path: str = "logs/plate_gate.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera") or {}),
            detection=DetectionConfig.from_dict(d.get("detection") or {}),
            recognition=RecognitionConfig.from_dict(d.get("recognition") or {}),
            tracking=TrackingConfig.from_dict(d.get("tracking") or {}),
            access=AccessConfig.from_dict(d.get("access") or {}),
            pipeline=PipelineSettings.from_dict(d.get("pipeline") or {}),
            storage=StorageConfig.from_dict(d.get("storage") or {}),
            log_path=d.get("log_path", "logs/plate_gate.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or logging the effective config)."""
        return {
            "camera": self.camera.to_dict(),
            "detection": self.detection.to_dict(),
            "recognition": self.recognition.to_dict(),
            "tracking": self.tracking.to_dict(),
            "access": self.access.to_dict(),
            "pipeline": self.pipeline.to_dict(),
            "storage": self.storage.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
