"""
Tesseract recognizer backend (pytesseract).

Plate crops from the detector are small and low contrast, so each region is
upscaled, binarized and padded before it reaches Tesseract.
"""

from __future__ import annotations

import logging
import string
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .base import Recognizer


@dataclass(frozen=True)
class TesseractConfig:
    language: str = "eng"
    tesseract_cmd: Optional[str] = None
    page_segmentation_mode: int = 7  # single text line
    min_height: int = 120
    border_size: int = 5
    whitelist: str = string.ascii_uppercase + string.digits


def preprocess_region(image: np.ndarray, min_height: int = 120, border_size: int = 5) -> np.ndarray:
    """
    Prepare a plate crop for OCR.

    Upscales (Lanczos) so the crop is at least min_height tall, converts to
    grayscale, applies Otsu binarization and adds a white border.
    """
    if image is None or image.size == 0:
        raise ValueError("Cannot preprocess an empty region")

    h, w = image.shape[:2]
    if h < min_height:
        scale = min_height / float(h)
        image = cv2.resize(image, (max(1, int(round(w * scale))), min_height), interpolation=cv2.INTER_LANCZOS4)

    gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image
    _, binary = cv2.threshold(gray, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)

    if border_size > 0:
        binary = cv2.copyMakeBorder(
            binary, border_size, border_size, border_size, border_size,
            cv2.BORDER_CONSTANT, value=255,
        )
    return binary


def mean_confidence(confs: List) -> float:
    """Mean of Tesseract word confidences (0-100, -1 for non-words) scaled to 0-1."""
    values = []
    for c in confs:
        try:
            v = float(c)
        except (TypeError, ValueError):
            continue
        if v >= 0:
            values.append(v)
    if not values:
        return 0.0
    return float(np.mean(values)) / 100.0


class TesseractRecognizer(Recognizer):
    def __init__(self, cfg: TesseractConfig):
        self.cfg = cfg
        try:
            import pytesseract  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "pytesseract is not installed. Install with `pip install pytesseract` "
                "and make sure the tesseract binary is on PATH."
            ) from e

        if cfg.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = cfg.tesseract_cmd
        self._tess = pytesseract
        # Binarized input of the most recent read, kept for debug imagery
        self.last_input_image: Optional[np.ndarray] = None
        self._config = (
            f"--oem 3 --psm {cfg.page_segmentation_mode} "
            f"-c tessedit_char_whitelist={cfg.whitelist}"
        )

        version = self._tess.get_tesseract_version()
        logging.info(f"Tesseract recognizer initialized (version {version}, psm={cfg.page_segmentation_mode})")

    def read(self, region_image: np.ndarray) -> Tuple[str, float]:
        self.last_input_image = None
        prepared = preprocess_region(region_image, self.cfg.min_height, self.cfg.border_size)
        self.last_input_image = prepared
        data = self._tess.image_to_data(
            prepared,
            lang=self.cfg.language,
            config=self._config,
            output_type=self._tess.Output.DICT,
        )
        words = [str(t).strip() for t in data.get("text", []) if t and str(t).strip()]
        text = "".join(words)
        if not text:
            return "", 0.0
        return text, mean_confidence(data.get("conf", []))

    def close(self) -> None:
        """Nothing to release; pytesseract runs the binary per call and holds no handle."""
        self.last_input_image = None
