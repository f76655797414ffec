"""
Inference backend interface.

Backends return raw output tensors; turning them into detections is the
decoder's job. A backend only has to declare its input shape and run a
forward pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional, Protocol, Sequence

import numpy as np

from runtime.errors import ResourceReleaseError


class TensorLayout(str, Enum):
    CHANNELS_FIRST = "channels_first"
    CHANNELS_LAST = "channels_last"


@dataclass(frozen=True)
class ModelSpec:
    """
    Input tensor requirements of a detector, derived once per session.

    Attributes:
        input_height: Model input height in pixels.
        input_width: Model input width in pixels.
        layout: Channel ordering of the input tensor.
        batched: Whether the input carries a leading batch dimension.
    """
    input_height: int
    input_width: int
    layout: TensorLayout = TensorLayout.CHANNELS_LAST
    batched: bool = True

    @property
    def channels_first(self) -> bool:
        return self.layout is TensorLayout.CHANNELS_FIRST

    @property
    def tensor_shape(self) -> tuple:
        if self.channels_first:
            shape = (3, self.input_height, self.input_width)
        else:
            shape = (self.input_height, self.input_width, 3)
        return (1,) + shape if self.batched else shape

    @classmethod
    def from_input_shape(cls, shape: Sequence[Optional[int]]) -> "ModelSpec":
        """
        Derive a ModelSpec from a declared input shape.

        Handles [N,3,H,W], [N,H,W,3], [3,H,W] and [H,W,3]. Channels-first is
        chosen only when the channel-sized axis is 3 and the trailing axis is
        not, so a 3x3 image still reads as channels-last.

        Raises:
            ValueError: For any other rank or non-positive spatial dims.
        """
        dims = list(shape or [])
        if len(dims) == 4:
            channels_first = dims[1] == 3 and dims[3] != 3
            h, w = (dims[2], dims[3]) if channels_first else (dims[1], dims[2])
            batched = True
        elif len(dims) == 3:
            channels_first = dims[0] == 3 and dims[2] != 3
            h, w = (dims[1], dims[2]) if channels_first else (dims[0], dims[1])
            batched = False
        else:
            raise ValueError(f"Unsupported model input rank {len(dims)}: {dims}")

        if h is None or w is None or int(h) <= 0 or int(w) <= 0:
            raise ValueError(f"Model input shape has no usable spatial size: {dims}")

        return cls(
            input_height=int(h),
            input_width=int(w),
            layout=TensorLayout.CHANNELS_FIRST if channels_first else TensorLayout.CHANNELS_LAST,
            batched=batched,
        )


class Detector(Protocol):
    @property
    def input_shape(self) -> Sequence[int]:
        ...

    def infer(self, tensor: np.ndarray) -> Sequence[Any]:
        ...


def release_tensor(tensor: Any) -> None:
    """Release a backend tensor if it exposes dispose()/release()."""
    for name in ("dispose", "release"):
        fn = getattr(tensor, name, None)
        if callable(fn):
            try:
                fn()
            except Exception as e:
                raise ResourceReleaseError(f"{type(tensor).__name__}.{name}() failed: {e}") from e
            return


class RawOutput:
    """
    Output tensors of one inference call, scoped to a single tick.

    Use as a context manager; every tensor is released on exit whether the
    body returned or raised. Release failures are logged and swallowed so a
    bad buffer never aborts the loop.

    Example:
        with RawOutput(detector.infer(tensor)) as raw:
            boxes = raw.arrays[0]
    """

    def __init__(self, tensors: Any):
        if tensors is None:
            tensors = []
        elif isinstance(tensors, (list, tuple)):
            tensors = list(tensors)
        else:
            tensors = [tensors]
        self._tensors: List[Any] = tensors
        self._arrays: Optional[List[np.ndarray]] = None
        self.released = False

    def __len__(self) -> int:
        return len(self._tensors)

    @property
    def shapes(self) -> List[tuple]:
        return [tuple(np.shape(t)) for t in self._tensors]

    @property
    def arrays(self) -> List[np.ndarray]:
        """Tensors viewed as float32 numpy arrays (converted once)."""
        if self.released:
            raise RuntimeError("RawOutput used after release")
        if self._arrays is None:
            self._arrays = [_to_numpy(t) for t in self._tensors]
        return self._arrays

    def release(self) -> None:
        if self.released:
            return
        for tensor in self._tensors:
            try:
                release_tensor(tensor)
            except ResourceReleaseError as e:
                logging.warning(f"Tensor release failed: {e}")
        self._tensors = []
        self._arrays = None
        self.released = True

    def __enter__(self) -> "RawOutput":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()


def _to_numpy(tensor: Any) -> np.ndarray:
    if hasattr(tensor, "numpy") and callable(tensor.numpy):
        tensor = tensor.numpy()
    return np.asarray(tensor, dtype=np.float32)
