"""
DecisionEvent model published to decision observers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .access import AccessDecision
from .recognition import RecognitionResult


@dataclass(frozen=True)
class DecisionEvent:
    """
    One emitted access decision plus the context it was made from.

    Attributes:
        decision: The immutable access decision.
        recognition: Recognition result that produced the code.
        sighting_id: Tracker handle of the confirmed sighting.
        frame_index: Index of the frame the sighting was processed on.
        region_image: Cropped plate region handed to the recognizer.
        debug_image: Annotated full frame, when debug imagery is enabled.
        ocr_input_image: Binarized image the recognizer actually read, when
                         debug imagery is enabled and the recognizer keeps it.
    """
    decision: AccessDecision
    recognition: RecognitionResult
    sighting_id: int
    frame_index: int = 0
    region_image: Optional[np.ndarray] = None
    debug_image: Optional[np.ndarray] = None
    ocr_input_image: Optional[np.ndarray] = None

    @property
    def code(self) -> str:
        return self.decision.code

    @property
    def authorized(self) -> bool:
        return self.decision.authorized

    def to_dict(self) -> dict:
        """Serializable view; image payloads are reduced to their shapes."""
        d = self.decision.to_dict()
        d.update({
            "raw_text": self.recognition.raw_text,
            "ocr_confidence": self.recognition.confidence,
            "sighting_id": self.sighting_id,
            "frame_index": self.frame_index,
            "region_shape": list(self.region_image.shape) if self.region_image is not None else None,
            "has_debug_image": self.debug_image is not None,
            "has_ocr_input_image": self.ocr_input_image is not None,
        })
        return d
