"""
Typed models for the plate gate application.

Plain dataclasses shared by the tracker, recognizer, resolver and pipeline.
"""

from .frame import FrameData
from .detection import BoundingBox, RawDetection
from .sighting import Sighting, SightingState
from .recognition import RecognitionResult
from .access import AccessDecision, RegistryEntry
from .decision_event import DecisionEvent
from .config import (
    Config,
    CameraConfig,
    DetectionConfig,
    RecognitionConfig,
    TrackingConfig,
    AccessConfig,
    PipelineSettings,
    StorageConfig,
)

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "BoundingBox",
    "RawDetection",
    # Tracking
    "Sighting",
    "SightingState",
    # Recognition
    "RecognitionResult",
    # Access
    "AccessDecision",
    "RegistryEntry",
    "DecisionEvent",
    # Config
    "Config",
    "CameraConfig",
    "DetectionConfig",
    "RecognitionConfig",
    "TrackingConfig",
    "AccessConfig",
    "PipelineSettings",
    "StorageConfig",
]
