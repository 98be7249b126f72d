"""
Detection models for plate detector output.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    An axis-aligned box in pixel coordinates, stored as top-left + size.

    Attributes:
        x: Left edge x coordinate.
        y: Top edge y coordinate.
        width: Box width in pixels.
        height: Box height in pixels.
    """
    x: int
    y: int
    width: int
    height: int

    @property
    def x2(self) -> int:
        return self.x + self.width

    @property
    def y2(self) -> int:
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def area(self) -> int:
        return self.width * self.height

    def as_xywh(self) -> Tuple[int, int, int, int]:
        """Return as (x, y, width, height) tuple."""
        return (self.x, self.y, self.width, self.height)

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        """Return as (x1, y1, x2, y2) tuple, the form cv2 drawing calls take."""
        return (self.x, self.y, self.x2, self.y2)

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float) -> "BoundingBox":
        """Create from corner coordinates, rounding to whole pixels."""
        left, top = int(round(x1)), int(round(y1))
        return cls(
            x=left,
            y=top,
            width=int(round(x2)) - left,
            height=int(round(y2)) - top,
        )


@dataclass(frozen=True)
class RawDetection:
    """
    A single plate detection for one frame.

    Attributes:
        bbox: Bounding box in pixel coordinates of the source frame.
        confidence: Detector confidence score (0-1).
        timestamp: Capture timestamp of the frame the box came from.
        frame_index: Index of that frame, when known.
    """
    bbox: BoundingBox
    confidence: float = 1.0
    timestamp: Optional[float] = None
    frame_index: Optional[int] = None

    @classmethod
    def from_xywh(
        cls,
        x: int,
        y: int,
        w: int,
        h: int,
        confidence: float = 1.0,
        timestamp: Optional[float] = None,
    ) -> "RawDetection":
        """Create a detection from (x, y, width, height)."""
        return cls(
            bbox=BoundingBox(x=x, y=y, width=w, height=h),
            confidence=confidence,
            timestamp=timestamp,
        )

    def __str__(self) -> str:
        b = self.bbox
        return f"RawDetection(box=[{b.x},{b.y},{b.width}x{b.height}], conf={self.confidence:.1%})"
