"""
Temporal confirmation tracker for plate detections.

Detections arrive sparse and noisy (the detector may only run every Nth
frame). A plate is only handed to recognition once it has been re-detected
in roughly the same place enough times. Association is a plain proximity
test on the box's top-left corner and size, first match wins.
"""

import logging
from typing import List, Optional, Sequence

from models.detection import BoundingBox, RawDetection
from models.sighting import Sighting
from .arena import Arena


class SightingTracker:
    """
    Tracks candidate plates across frames.

    This tracker is responsible for:
    - Ageing every sighting once per frame and expiring stale ones
    - Matching detections to existing sightings by pixel proximity
    - Reporting sightings that reached the confirmation threshold

    Each confirmed sighting gets exactly one processing attempt, after which
    it is removed with complete(); a plate that is still in view has to be
    confirmed again from scratch.
    """

    def __init__(
        self,
        confirmation_threshold: int = 3,
        tracker_timeout: int = 10,
        proximity_tolerance: int = 50,
    ):
        """
        Initialize the sighting tracker.

        Args:
            confirmation_threshold: Matched detections needed before a
                                    sighting is ready for processing
            tracker_timeout: Frames a sighting may go unmatched before it
                             is dropped
            proximity_tolerance: Max pixel difference allowed on each of
                                 x, y, width and height for a match
        """
        self.confirmation_threshold = confirmation_threshold
        self.tracker_timeout = tracker_timeout
        self.proximity_tolerance = proximity_tolerance

        self.sightings: Arena[Sighting] = Arena()
        self.expired_count = 0
        self.completed_count = 0

        logging.info(
            f"Sighting tracker initialized (confirm={confirmation_threshold}, "
            f"timeout={tracker_timeout}, tolerance={proximity_tolerance}px)"
        )

    def update(self, detections: Sequence[RawDetection]) -> List[int]:
        """
        Advance the tracker by one frame.

        Args:
            detections: Detections for this frame; empty on frames where the
                        detector did not run or found nothing.

        Returns:
            Ids of sightings that expired on this frame.
        """
        for sighting in self.sightings:
            sighting.frames_since_last_detection += 1

        expired = self._remove_expired()

        for det in detections:
            match = self._find_match(det.bbox)
            if match is not None:
                match.confirmation_count += 1
                match.last_detection = det
                match.frames_since_last_detection = 0
                logging.debug(
                    f"Sighting {match.sighting_id}: confirmation "
                    f"{match.confirmation_count}/{self.confirmation_threshold}"
                )
            else:
                handle = self.sightings.reserve()
                self.sightings.insert(handle, Sighting(sighting_id=handle, last_detection=det))
                logging.debug(f"New sighting {handle} created at {det.bbox.as_xywh()}")

        return expired

    def _remove_expired(self) -> List[int]:
        removed = self.sightings.remove_where(
            lambda s: s.frames_since_last_detection > self.tracker_timeout
        )
        for handle, sighting in removed:
            sighting.expired = True
            logging.debug(f"Sighting {handle} expired (no detection for {self.tracker_timeout}+ frames)")
        self.expired_count += len(removed)
        return [handle for handle, _ in removed]

    def _find_match(self, bbox: BoundingBox) -> Optional[Sighting]:
        """First sighting, in creation order, whose last box is close enough."""
        for sighting in self.sightings:
            if self.is_nearby(bbox, sighting.last_detection.bbox):
                return sighting
        return None

    def is_nearby(self, a: BoundingBox, b: BoundingBox) -> bool:
        """True when x, y, width and height each differ by less than the tolerance."""
        tol = self.proximity_tolerance
        return (
            abs(a.x - b.x) < tol
            and abs(a.y - b.y) < tol
            and abs(a.width - b.width) < tol
            and abs(a.height - b.height) < tol
        )

    def ready_for_processing(self) -> List[Sighting]:
        """Confirmed sightings that have not had their processing attempt yet."""
        return [s for s in self.sightings if s.is_ready(self.confirmation_threshold)]

    def complete(self, sighting_id: int) -> Optional[Sighting]:
        """
        Mark a sighting processed and drop it, whatever the outcome was.

        Returns:
            The removed sighting, or None if it no longer exists.
        """
        sighting = self.sightings.remove(sighting_id)
        if sighting is None:
            return None
        sighting.processed = True
        self.completed_count += 1
        return sighting

    def get(self, sighting_id: int) -> Optional[Sighting]:
        return self.sightings.get(sighting_id)

    def get_all_sightings(self) -> List[Sighting]:
        """All in-flight sightings, pending and confirmed."""
        return self.sightings.values()

    def __len__(self) -> int:
        return len(self.sightings)
