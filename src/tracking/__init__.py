"""
Tracking module.

Temporal confirmation of plate detections across frames.
"""

from .arena import Arena
from .tracker import SightingTracker

__all__ = ["Arena", "SightingTracker"]
