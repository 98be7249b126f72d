"""
Observation layer for pluggable frame sources.

Abstracts where frames come from (camera, stream, video file) from the
access pipeline. Each source implements ObservationSource and returns
FrameData objects.
"""

from .base import ObservationConfig, ObservationSource
from .opencv_source import OpenCVSource, OpenCVSourceConfig

__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
]
