"""
Sighting models for the temporal confirmation tracker.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .detection import RawDetection


class SightingState(str, Enum):
    """Lifecycle state of a sighting relative to a confirmation threshold."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSED = "processed"
    EXPIRED = "expired"


@dataclass
class Sighting:
    """
    A candidate plate being followed across frames before it is confirmed.

    Attributes:
        sighting_id: Arena handle, unique for the whole run.
        last_detection: Most recent detection absorbed by this sighting.
        confirmation_count: Number of detections matched so far (>= 1).
        frames_since_last_detection: Frames elapsed since the last match.
        processed: Whether the single downstream processing attempt ran.
        expired: Dropped by the tracker after going unmatched too long.
    """
    sighting_id: int
    last_detection: RawDetection
    confirmation_count: int = 1
    frames_since_last_detection: int = 0
    processed: bool = False
    expired: bool = False

    def state(self, confirmation_threshold: int) -> SightingState:
        if self.expired:
            return SightingState.EXPIRED
        if self.processed:
            return SightingState.PROCESSED
        if self.confirmation_count >= confirmation_threshold:
            return SightingState.CONFIRMED
        return SightingState.PENDING

    def is_ready(self, confirmation_threshold: int) -> bool:
        """Confirmed and not yet handed to recognition."""
        return self.state(confirmation_threshold) is SightingState.CONFIRMED
