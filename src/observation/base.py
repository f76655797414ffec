"""
FrameSource interface.

Anything that can hand the pipeline its current frame implements
ObservationSource: a webcam, a video file, a still-image sequence or a test
double. The pipeline only needs open/read/close and to know when a finite
source has run out.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

from models.frame import FrameData


@dataclass
class ObservationConfig:
    """
    Base configuration for observation sources.

    Attributes:
        source_id: Identifier for this source (e.g. "main-camera").
        resolution: Requested (width, height). None = source default.
        fps: Requested frames per second. None = source default.
        metadata: Additional source-specific settings.
    """
    source_id: str = "default"
    resolution: Optional[tuple[int, int]] = None
    fps: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ObservationSource(ABC):
    """
    Abstract base class for frame sources.

    Lifecycle:
        1. Create instance with config
        2. open() to acquire the device (RuntimeError if it cannot be opened)
        3. read() repeatedly; None means "no frame this time"
        4. close() to release resources

    A None from read() is not the end of the stream unless `exhausted` is
    True; live cameras routinely return nothing while warming up.
    """

    def __init__(self, config: ObservationConfig):
        self._config = config
        self._is_open = False
        self._frame_index = 0
        self._exhausted = False

    @property
    def source_id(self) -> str:
        return self._config.source_id

    @property
    def is_open(self) -> bool:
        return self._is_open

    @property
    def frame_index(self) -> int:
        """Number of frames read since open."""
        return self._frame_index

    @property
    def exhausted(self) -> bool:
        """True once a finite source (file, image list) has no more frames."""
        return self._exhausted

    @abstractmethod
    def open(self) -> None:
        """
        Acquire the source.

        Raises:
            RuntimeError: If the source cannot be opened.
        """

    @abstractmethod
    def read(self) -> Optional[FrameData]:
        """Current frame, or None if none is available right now."""

    @abstractmethod
    def close(self) -> None:
        """Release the source. Safe to call multiple times."""

    def __enter__(self) -> "ObservationSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __iter__(self) -> Iterator[FrameData]:
        if not self._is_open:
            raise RuntimeError("Source must be open before iterating")
        while not self._exhausted:
            frame_data = self.read()
            if frame_data is not None:
                yield frame_data
