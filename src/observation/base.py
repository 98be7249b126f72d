"""
ObservationSource interface for pluggable frame sources.

The pipeline only talks to this contract, so a camera, a stream URL, a video
file or a test double are interchangeable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

from models.frame import FrameData


@dataclass
class ObservationConfig:
    """
    Base configuration for observation sources.

    Attributes:
        source_id: Identifier for this source (e.g., "gate-cam").
        resolution: Target resolution as (width, height). None = source default.
        fps: Target frames per second. None = source default.
        metadata: Additional source-specific configuration.
    """
    source_id: str = "default"
    resolution: Optional[Tuple[int, int]] = None
    fps: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ObservationSource(ABC):
    """
    Abstract base class for frame sources.

    Lifecycle:
        1. Create instance with config
        2. Call open() (raises RuntimeError if the source cannot be opened)
        3. Call next_frame() while is_available()
        4. Call close() to release resources

    Can also be used as a context manager:
        with OpenCVSource(config) as source:
            for frame_data in source:
                process(frame_data)
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames delivered since open."""
        return self._frame_index

    @abstractmethod
    def open(self) -> None:
        """
        Open the source.

        Raises:
            RuntimeError: If the source cannot be opened.
        """

    @abstractmethod
    def next_frame(self) -> Optional[FrameData]:
        """
        Next frame, or None when no frame could be read this time.

        A None result with is_available() still true is a transient miss;
        with is_available() false the stream has ended.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Whether more frames can be expected."""

    @abstractmethod
    def close(self) -> None:
        """Release the source. Safe to call multiple times."""

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[FrameData]:
        """Yield frames until the source is exhausted."""
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")

        while self.is_available():
            frame_data = self.next_frame()
            if frame_data is None:
                if not self.is_available():
                    break
                continue
            yield frame_data
