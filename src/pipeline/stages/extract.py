"""
Region extraction stage.

Turns a confirmed sighting's last bounding box into the pixel region handed
to the recognizer. The box is padded on every side, since detector boxes tend
to clip the outer characters, then clamped to the frame.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from models.detection import BoundingBox


def expand_region(
    box: BoundingBox,
    frame_width: int,
    frame_height: int,
    fraction: float = 0.15,
) -> Optional[BoundingBox]:
    """
    Pad a box by a fraction of its size and clamp it to the frame.

    Args:
        box: Detected plate box.
        frame_width: Frame width in pixels.
        frame_height: Frame height in pixels.
        fraction: Padding per side, as a fraction of the box width/height.

    Returns:
        The padded box, or None when nothing of it lies inside the frame.
    """
    pad_x = int(box.width * fraction)
    pad_y = int(box.height * fraction)

    x1 = max(0, box.x - pad_x)
    y1 = max(0, box.y - pad_y)
    x2 = min(frame_width, box.x2 + pad_x)
    y2 = min(frame_height, box.y2 + pad_y)

    if x2 - x1 <= 0 or y2 - y1 <= 0:
        return None
    return BoundingBox(x=x1, y=y1, width=x2 - x1, height=y2 - y1)


def crop_region(frame: np.ndarray, region: BoundingBox) -> np.ndarray:
    """Copy the pixels of region out of frame."""
    return frame[region.y:region.y2, region.x:region.x2].copy()


class RegionExtractor:
    """
    Pads and crops sighting boxes out of frames.

    Example:
        extractor = RegionExtractor(expansion_fraction=0.15)
        crop = extractor.extract(frame, sighting.last_detection.bbox)
        if crop is None:
            ...  # nothing to recognize
    """

    def __init__(self, expansion_fraction: float = 0.15):
        self.expansion_fraction = expansion_fraction

    def extract(self, frame: np.ndarray, box: BoundingBox) -> Optional[np.ndarray]:
        h, w = frame.shape[:2]
        region = expand_region(box, w, h, self.expansion_fraction)
        if region is None:
            return None
        return crop_region(frame, region)
