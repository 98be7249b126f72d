"""
FrameData model for frames read from the gate camera.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass
class FrameData:
    """
    A captured frame and where/when it came from.

    The timestamp is the clock the access pipeline runs on: cooldown windows
    and pruning are measured between frame timestamps, not wall time at
    processing.

    Attributes:
        frame: Pixel data as a numpy array (BGR).
        width: Frame width in pixels.
        height: Frame height in pixels.
        timestamp: Unix timestamp when the frame was captured.
        frame_index: Sequential frame number since the source was opened.
        source: Identifier of the frame source.
    """
    frame: np.ndarray
    width: int
    height: int
    timestamp: float
    frame_index: int = 0
    source: Optional[str] = None

    @classmethod
    def from_numpy(
        cls,
        frame: np.ndarray,
        timestamp: float,
        frame_index: int = 0,
        source: Optional[str] = None,
    ) -> "FrameData":
        """Wrap a bare numpy image, reading its size from the array shape."""
        h, w = frame.shape[:2]
        return cls(
            frame=frame,
            width=w,
            height=h,
            timestamp=timestamp,
            frame_index=frame_index,
            source=source,
        )

    @classmethod
    def captured(cls, frame: np.ndarray, frame_index: int, source: Optional[str] = None) -> "FrameData":
        """Stamp a freshly read image with the current time."""
        return cls.from_numpy(frame, timestamp=time.time(), frame_index=frame_index, source=source)

    def copy_pixels(self) -> np.ndarray:
        """Independent copy of the image, safe to draw on."""
        return self.frame.copy()

    @property
    def size(self) -> Tuple[int, int]:
        """Return (width, height)."""
        return (self.width, self.height)
