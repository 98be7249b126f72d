"""
Pipeline module for the plate gate.

The pipeline orchestrates the full processing flow:
- Frame acquisition from observation sources
- Sampled detection and temporal confirmation
- Region extraction, recognition and code normalization
- Access resolution and decision publication
"""

from .channel import DecisionChannel, log_decision_event
from .engine import PipelineConfig, PipelineEngine, PipelineStats, create_engine_from_config
from .stages.extract import RegionExtractor

__all__ = [
    "PipelineEngine",
    "PipelineConfig",
    "PipelineStats",
    "create_engine_from_config",
    "DecisionChannel",
    "log_decision_event",
    "RegionExtractor",
]
