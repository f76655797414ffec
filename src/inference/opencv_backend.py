"""
OpenCV DNN inference backend.

Loads an exported detector (ONNX, TF frozen graph, ...) with cv2.dnn and
returns every unconnected output as a raw tensor. No post-processing happens
here so the decoder sees the model's native layout.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Sequence

import cv2
import numpy as np

from runtime.errors import CapabilityUnavailable
from .backend import Detector


@dataclass(frozen=True)
class OpenCVDnnConfig:
    """
    Configuration for the OpenCV DNN backend.

    Attributes:
        model: Path to the exported detector file.
        input_shape: Declared input shape, e.g. [1, 3, 640, 640] (NCHW) or
            [1, 640, 640, 3] (NHWC). The preprocessor derives its ModelSpec
            from this.
    """
    model: str
    input_shape: List[int] = field(default_factory=lambda: [1, 3, 640, 640])


class OpenCVDnnBackend(Detector):
    """
    Detector backed by cv2.dnn.

    infer() returns the network's unconnected outputs untouched.

    Raises:
        CapabilityUnavailable: If the model file is missing or cv2.dnn
            cannot load it.
    """

    def __init__(self, cfg: OpenCVDnnConfig):
        self.cfg = cfg
        if not cfg.model or not os.path.exists(cfg.model):
            raise CapabilityUnavailable(f"Model file not found: {cfg.model!r}")
        try:
            self._net = cv2.dnn.readNet(cfg.model)
        except cv2.error as e:
            raise CapabilityUnavailable(f"cv2.dnn could not load {cfg.model}: {e}") from e
        self._output_names = list(self._net.getUnconnectedOutLayersNames())
        logging.info(f"Loaded detector {cfg.model} outputs={self._output_names}")

    @property
    def input_shape(self) -> Sequence[int]:
        return list(self.cfg.input_shape)

    def infer(self, tensor: np.ndarray) -> List[np.ndarray]:
        self._net.setInput(tensor)
        outputs = self._net.forward(self._output_names)
        return [np.asarray(o) for o in outputs]

    def warmup(self) -> None:
        """Run one forward pass on a ones tensor so the first real tick is not slow."""
        dummy = np.ones(self.cfg.input_shape, dtype=np.float32)
        self.infer(dummy)
