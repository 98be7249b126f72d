"""
OpenCV-based observation source.

Supports:
- USB webcams (device_id as int, e.g., 0)
- Stream URLs (device_id as str, e.g., rtsp://... or http://...)
- Video files (device_id as file path), optionally looping at end of file
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from urllib.parse import urlsplit, urlunsplit

import cv2

from models.config import CameraConfig
from models.frame import FrameData
from .base import ObservationConfig, ObservationSource


def describe_device(device_id: Union[int, str]) -> str:
    """Printable device name with any URL credentials masked."""
    if isinstance(device_id, str) and "://" in device_id:
        parts = urlsplit(device_id)
        if parts.password:
            netloc = f"{parts.username}:***@{parts.hostname}"
            if parts.port:
                netloc += f":{parts.port}"
            return urlunsplit(parts._replace(netloc=netloc))
    return str(device_id)


@dataclass
class OpenCVSourceConfig(ObservationConfig):
    """
    Configuration for OpenCV-based observation sources.

    Attributes:
        device_id: Camera index (int), stream URL (str), or file path (str).
        loop: Rewind video files instead of ending the stream.
        buffer_size: OpenCV capture buffer size (reduces latency for live feeds).
        max_retries: Attempts to open the device before giving up.
        max_read_failures: Consecutive failed reads from a live device
                           before it is reported unavailable.
    """
    device_id: Union[int, str] = 0
    loop: bool = False
    buffer_size: int = 1
    max_retries: int = 3
    max_read_failures: int = 3

    @classmethod
    def from_camera_config(cls, camera: CameraConfig, source_id: str = "camera") -> "OpenCVSourceConfig":
        """Build the primary (camera) source config."""
        return cls(
            source_id=source_id,
            resolution=tuple(camera.resolution) if camera.resolution else None,
            fps=camera.fps,
            device_id=camera.device_id,
            max_retries=camera.max_retries,
        )

    @classmethod
    def for_video_file(cls, path: str, loop: bool = False, source_id: str = "video") -> "OpenCVSourceConfig":
        return cls(source_id=source_id, device_id=path, loop=loop, max_retries=1)


class OpenCVSource(ObservationSource):
    """
    cv2.VideoCapture wrapped as an ObservationSource.

    Example:
        config = OpenCVSourceConfig(device_id=0, resolution=(1280, 720))
        with OpenCVSource(config) as source:
            for frame_data in source:
                process(frame_data.frame)
    """

    def __init__(self, config: OpenCVSourceConfig):
        super().__init__(config)
        self._opencv_config = config
        self._cap: Optional[cv2.VideoCapture] = None
        self._consecutive_failures = 0
        self._ended = False
        self._loops = 0

    @property
    def device_id(self) -> Union[int, str]:
        return self._opencv_config.device_id

    @property
    def is_file(self) -> bool:
        return (
            isinstance(self.device_id, str)
            and "://" not in self.device_id
            and os.path.exists(self.device_id)
        )

    def open(self) -> None:
        if self._is_open:
            return

        if isinstance(self.device_id, str) and "://" not in self.device_id and not os.path.exists(self.device_id):
            raise RuntimeError(f"Video file not found: {self.device_id}")

        self._initialize(retry_count=0)
        self._is_open = True
        self._ended = False
        self._frame_index = 0

        logging.info(
            f"OpenCVSource opened: source_id={self.source_id}, "
            f"device={describe_device(self.device_id)}, resolution={self._opencv_config.resolution}"
        )

    def _initialize(self, retry_count: int = 0) -> None:
        """Initialize or reinitialize the capture device."""
        if self._cap is not None:
            self._cap.release()
            self._cap = None

        if retry_count > 0:
            wait_time = min(2 ** retry_count, 10)
            logging.info(
                f"Retrying initialization (attempt {retry_count + 1}/"
                f"{self._opencv_config.max_retries}) after {wait_time}s"
            )
            time.sleep(wait_time)

        self._cap = cv2.VideoCapture(self.device_id)

        if not self._cap.isOpened():
            if retry_count < self._opencv_config.max_retries - 1:
                logging.warning(f"Failed to open device {describe_device(self.device_id)}, retrying...")
                return self._initialize(retry_count + 1)
            self._cap.release()
            self._cap = None
            raise RuntimeError(
                f"Failed to open device {describe_device(self.device_id)} after "
                f"{self._opencv_config.max_retries} attempts"
            )

        if isinstance(self.device_id, int) and self._opencv_config.resolution:
            w, h = self._opencv_config.resolution
            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, w)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, h)
            if self._opencv_config.fps:
                self._cap.set(cv2.CAP_PROP_FPS, self._opencv_config.fps)
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self._opencv_config.buffer_size)

            logging.info(
                f"Camera actual settings - Resolution: ("
                f"{self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)}x{self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)}), "
                f"FPS: {self._cap.get(cv2.CAP_PROP_FPS)}"
            )

        self._consecutive_failures = 0

    def next_frame(self) -> Optional[FrameData]:
        if not self._is_open or self._cap is None or self._ended:
            return None

        ret, frame = self._cap.read()

        if (not ret or frame is None) and self.is_file:
            if not self._opencv_config.loop:
                logging.info("End of video file reached")
                self._ended = True
                return None
            self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            self._loops += 1
            logging.debug(f"Video file rewound (loop {self._loops})")
            ret, frame = self._cap.read()

        if not ret or frame is None:
            self._consecutive_failures += 1
            if self._consecutive_failures > self._opencv_config.max_read_failures:
                logging.error("Too many consecutive read failures, source unavailable")
                self._ended = True
            else:
                logging.warning(f"Failed to read frame (failures: {self._consecutive_failures})")
            return None

        self._consecutive_failures = 0
        self._frame_index += 1
        return FrameData.captured(frame, frame_index=self._frame_index, source=self.source_id)

    def is_available(self) -> bool:
        return self._is_open and self._cap is not None and not self._ended

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        if self._is_open:
            logging.info(f"OpenCVSource closed: source_id={self.source_id}")
        self._is_open = False

    def get_video_info(self) -> Dict[str, Any]:
        """Size, fps and (for files) frame count of the open capture."""
        if self._cap is None or not self._cap.isOpened():
            return {}

        return {
            "width": int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            "height": int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            "fps": self._cap.get(cv2.CAP_PROP_FPS),
            "frame_count": int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT)) if self.is_file else None,
        }
