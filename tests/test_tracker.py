"""
Tests for SightingTracker temporal confirmation.
"""

from models.detection import RawDetection
from models.sighting import SightingState
from tracking.tracker import SightingTracker


def det(x, y, w=120, h=40, conf=0.9):
    return RawDetection.from_xywh(x, y, w, h, confidence=conf)


class TestTrackerBasics:
    """Basic tracker functionality tests."""

    def test_tracker_init(self):
        """Tracker initializes with default parameters."""
        tracker = SightingTracker()

        assert tracker.confirmation_threshold == 3
        assert tracker.tracker_timeout == 10
        assert tracker.proximity_tolerance == 50
        assert len(tracker) == 0

    def test_empty_detections(self):
        """Tracker handles an empty detection list."""
        tracker = SightingTracker()

        expired = tracker.update([])

        assert expired == []
        assert len(tracker) == 0

    def test_first_detection_creates_sighting(self):
        tracker = SightingTracker()
        tracker.update([det(100, 100)])

        sightings = tracker.get_all_sightings()
        assert len(sightings) == 1
        assert sightings[0].confirmation_count == 1
        assert sightings[0].frames_since_last_detection == 0
        assert sightings[0].state(3) is SightingState.PENDING


class TestConfirmation:
    """Confirmation counting across frames."""

    def test_consecutive_matches_increment_count(self):
        """N matching frames give count N."""
        tracker = SightingTracker(confirmation_threshold=5)
        for i in range(4):
            tracker.update([det(100 + i * 5, 200)])

        sighting = tracker.get_all_sightings()[0]
        assert sighting.confirmation_count == 4
        assert len(tracker) == 1

    def test_ready_on_frame_threshold_reached(self):
        """A sighting becomes eligible on the frame it reaches the threshold."""
        tracker = SightingTracker(confirmation_threshold=3)

        tracker.update([det(100, 100)])
        assert tracker.ready_for_processing() == []
        tracker.update([det(110, 105)])
        assert tracker.ready_for_processing() == []
        tracker.update([det(120, 110)])

        ready = tracker.ready_for_processing()
        assert len(ready) == 1
        assert ready[0].confirmation_count == 3

    def test_match_replaces_last_detection(self):
        tracker = SightingTracker()
        tracker.update([det(100, 100)])
        tracker.update([det(130, 120)])

        s = tracker.get_all_sightings()[0]
        assert s.last_detection.bbox.as_xywh() == (130, 120, 120, 40)

    def test_detection_too_far_creates_new_sighting(self):
        tracker = SightingTracker()
        tracker.update([det(100, 100)])
        tracker.update([det(400, 100)])

        assert len(tracker) == 2
        assert [s.confirmation_count for s in tracker.get_all_sightings()] == [1, 1]


class TestProximity:
    """Proximity test on x, y, width and height."""

    def test_tolerance_is_strict(self):
        """A difference of exactly the tolerance is not a match."""
        tracker = SightingTracker(proximity_tolerance=50)
        a = det(100, 100).bbox
        assert tracker.is_nearby(a, det(149, 100).bbox)
        assert not tracker.is_nearby(a, det(150, 100).bbox)

    def test_size_difference_breaks_match(self):
        tracker = SightingTracker(proximity_tolerance=50)
        a = det(100, 100, w=100, h=40).bbox
        assert not tracker.is_nearby(a, det(100, 100, w=160, h=40).bbox)
        assert not tracker.is_nearby(a, det(100, 100, w=100, h=95).bbox)

    def test_first_match_in_creation_order_wins(self):
        """Overlapping candidates resolve to the oldest sighting."""
        tracker = SightingTracker(proximity_tolerance=50)
        tracker.update([det(100, 100), det(160, 100)])
        assert len(tracker) == 2

        # Within tolerance of both sightings
        tracker.update([det(130, 100)])

        first, second = tracker.get_all_sightings()
        assert first.confirmation_count == 2
        assert second.confirmation_count == 1


class TestExpiry:
    """Timeout and id stability."""

    def test_expires_after_timeout(self):
        """No match for more than tracker_timeout frames removes the sighting."""
        tracker = SightingTracker(tracker_timeout=10)
        tracker.update([det(100, 100)])
        sid = tracker.get_all_sightings()[0].sighting_id

        for _ in range(10):
            assert tracker.update([]) == []
        assert len(tracker) == 1

        expired = tracker.update([])
        assert expired == [sid]
        assert len(tracker) == 0
        assert tracker.expired_count == 1

    def test_expired_state_from_any_state(self):
        """Pending and confirmed sightings both end up EXPIRED when dropped."""
        tracker = SightingTracker(confirmation_threshold=2, tracker_timeout=1)
        tracker.update([det(100, 100), det(400, 100)])
        tracker.update([det(400, 100)])
        pending, confirmed = tracker.get_all_sightings()
        assert pending.state(2) is SightingState.PENDING
        assert confirmed.state(2) is SightingState.CONFIRMED

        tracker.update([])
        tracker.update([])

        assert len(tracker) == 0
        assert pending.state(2) is SightingState.EXPIRED
        assert confirmed.state(2) is SightingState.EXPIRED
        assert not confirmed.is_ready(2)

    def test_expired_id_never_reused(self):
        tracker = SightingTracker(tracker_timeout=1)
        tracker.update([det(100, 100)])
        old_id = tracker.get_all_sightings()[0].sighting_id
        tracker.update([])
        tracker.update([])
        assert len(tracker) == 0

        tracker.update([det(100, 100)])
        assert tracker.get_all_sightings()[0].sighting_id > old_id

    def test_match_resets_age(self):
        tracker = SightingTracker(tracker_timeout=3)
        tracker.update([det(100, 100)])
        for _ in range(2):
            tracker.update([])
        tracker.update([det(105, 100)])
        for _ in range(3):
            tracker.update([])

        assert len(tracker) == 1
        assert tracker.get_all_sightings()[0].confirmation_count == 2


class TestCompletion:
    """One processing attempt per confirmed sighting."""

    def test_complete_removes_and_marks_processed(self):
        tracker = SightingTracker(confirmation_threshold=1)
        tracker.update([det(100, 100)])
        sighting = tracker.ready_for_processing()[0]

        removed = tracker.complete(sighting.sighting_id)

        assert removed is sighting
        assert removed.processed
        assert removed.state(1) is SightingState.PROCESSED
        assert len(tracker) == 0
        assert tracker.completed_count == 1

    def test_complete_unknown_id(self):
        tracker = SightingTracker()
        assert tracker.complete(42) is None

    def test_plate_still_in_view_is_reconfirmed_from_scratch(self):
        tracker = SightingTracker(confirmation_threshold=2)
        tracker.update([det(100, 100)])
        tracker.update([det(100, 100)])
        first = tracker.ready_for_processing()[0]
        tracker.complete(first.sighting_id)

        tracker.update([det(100, 100)])
        assert tracker.ready_for_processing() == []
        new = tracker.get_all_sightings()[0]
        assert new.sighting_id != first.sighting_id
        assert new.confirmation_count == 1
