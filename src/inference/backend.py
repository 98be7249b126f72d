"""
Plate detector interface.

Detectors return plate boxes in the pixel coordinates of the frame they were
given, already filtered by their own confidence threshold.
"""

from __future__ import annotations

from typing import List, Protocol

import numpy as np

from models.detection import RawDetection


class InferenceBackend(Protocol):
    def detect(self, frame: np.ndarray) -> List[RawDetection]:
        ...

    def close(self) -> None:
        ...
