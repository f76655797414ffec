"""
Frame preprocessing for detector input.

Frames are letterboxed into a square canvas (frame drawn at the origin, so
padding only ever lands on the bottom/right), resized to the model input
with bilinear interpolation and scaled to [0, 1].
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from runtime.errors import ReadinessError
from .backend import ModelSpec


@dataclass
class PreprocessResult:
    """
    Detector input for one tick plus the ratios needed to invert it.

    Dividing a model-pixel coordinate by x_ratio / y_ratio gives the
    coordinate in frame pixels.

    Attributes:
        tensor: Input tensor shaped per ModelSpec (float32).
        x_ratio: input_width / padded_size.
        y_ratio: input_height / padded_size.
        frame_width: Width of the source frame.
        frame_height: Height of the source frame.
    """
    tensor: Optional[np.ndarray]
    x_ratio: float
    y_ratio: float
    frame_width: int
    frame_height: int

    def ratios_for(self, dest_width: int, dest_height: int) -> Tuple[float, float]:
        """
        Ratios that project model pixels straight into a destination that
        may be scaled relative to the frame (e.g. a smaller display canvas).
        """
        return (
            self.x_ratio * self.frame_width / dest_width,
            self.y_ratio * self.frame_height / dest_height,
        )

    def release(self) -> None:
        self.tensor = None


class Preprocessor:
    """
    Builds detector input tensors from frames.

    Keeps one scratch canvas across ticks and reallocates it only when the
    padded size changes, so a steady stream does not allocate a canvas per
    frame.

    Args:
        spec: Model input requirements.
        swap_rb: Convert BGR frames to RGB.
    """

    def __init__(self, spec: ModelSpec, swap_rb: bool = True):
        self.spec = spec
        self.swap_rb = swap_rb
        self._canvas: Optional[np.ndarray] = None

    def process(self, frame: np.ndarray) -> PreprocessResult:
        """
        Letterbox, resize and normalize a frame.

        Raises:
            ReadinessError: If the frame is missing or has zero width/height.
        """
        if frame is None or frame.ndim < 2:
            raise ReadinessError("Frame not available")
        frame_h, frame_w = frame.shape[:2]
        if frame_w <= 0 or frame_h <= 0:
            raise ReadinessError(f"Frame has no pixels ({frame_w}x{frame_h})")

        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)

        padded_size = max(frame_w, frame_h)
        canvas = self._scratch_canvas(padded_size)
        canvas.fill(0)
        canvas[:frame_h, :frame_w] = frame[:, :, :3]

        resized = cv2.resize(
            canvas,
            (self.spec.input_width, self.spec.input_height),
            interpolation=cv2.INTER_LINEAR,
        )
        if self.swap_rb:
            resized = cv2.cvtColor(resized, cv2.COLOR_BGR2RGB)

        tensor = resized.astype(np.float32) / 255.0
        if self.spec.channels_first:
            tensor = np.transpose(tensor, (2, 0, 1))
        if self.spec.batched:
            tensor = np.expand_dims(tensor, 0)

        return PreprocessResult(
            tensor=np.ascontiguousarray(tensor),
            x_ratio=self.spec.input_width / padded_size,
            y_ratio=self.spec.input_height / padded_size,
            frame_width=frame_w,
            frame_height=frame_h,
        )

    def _scratch_canvas(self, size: int) -> np.ndarray:
        if self._canvas is None or self._canvas.shape[0] != size:
            self._canvas = np.zeros((size, size, 3), dtype=np.uint8)
        return self._canvas
