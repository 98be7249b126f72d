"""
CPU plate detector backed by an Ultralytics YOLO model.

The model file is a single-class licence plate detector (e.g. a fine-tuned
YOLOv8n exported as best.pt). Ultralytics is an optional extra, so it is
imported when the backend is constructed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from models.detection import BoundingBox, RawDetection
from .backend import InferenceBackend


@dataclass(frozen=True)
class CpuYoloConfig:
    model: str
    conf_threshold: float = 0.4
    iou_threshold: float = 0.45
    classes: Optional[Sequence[int]] = None
    device: str = "cpu"


class UltralyticsCpuBackend(InferenceBackend):
    def __init__(self, cfg: CpuYoloConfig):
        self.cfg = cfg
        try:
            from ultralytics import YOLO  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "Ultralytics is not installed. Install with `pip install ultralytics` "
                "or `pip install .[yolo]`."
            ) from e

        self._model = YOLO(cfg.model)
        logging.info(f"YOLO plate detector loaded: {cfg.model} (conf>={cfg.conf_threshold})")

    def detect(self, frame: np.ndarray) -> List[RawDetection]:
        results = self._model.predict(
            source=frame,
            conf=self.cfg.conf_threshold,
            iou=self.cfg.iou_threshold,
            classes=list(self.cfg.classes) if self.cfg.classes is not None else None,
            device=self.cfg.device,
            verbose=False,
        )
        if not results:
            return []

        boxes = getattr(results[0], "boxes", None)
        if boxes is None:
            return []

        xyxy = boxes.xyxy.cpu().numpy() if hasattr(boxes.xyxy, "cpu") else np.asarray(boxes.xyxy)
        conf = boxes.conf.cpu().numpy() if hasattr(boxes.conf, "cpu") else np.asarray(boxes.conf)

        h, w = frame.shape[:2]
        out: List[RawDetection] = []
        for (x1, y1, x2, y2), c in zip(xyxy, conf):
            bbox = BoundingBox.from_xyxy(
                max(0.0, float(x1)), max(0.0, float(y1)),
                min(float(w), float(x2)), min(float(h), float(y2)),
            )
            if bbox.width <= 0 or bbox.height <= 0:
                continue
            out.append(RawDetection(bbox=bbox, confidence=float(c)))

        return out

    def close(self) -> None:
        self._model = None
