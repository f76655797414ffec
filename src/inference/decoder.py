"""
Detector output decoding.

Detectors exported from different toolchains disagree on output layout. Two
conventions are supported:

- THREE_TENSOR_NMS: boxes[N*4], scores[N], classes[N] (plus an optional
  valid-detection count), with non-max suppression already applied by the
  network. An all-zero boxes tensor means "nothing detected".
- DENSE_ANCHOR_GRID: one (batch, channels, anchors) tensor where
  channels = 4 + num_classes, or 5 + num_classes when an objectness row
  follows the box rows. The (batch, anchors, channels) transpose is also
  accepted.

The layout is classified from declared shapes only, never from values, and
anything unrecognised raises DecodeError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence

import numpy as np

from models.detection import BoundingBox, Detection, DetectionSet
from runtime.errors import DecodeError
from .backend import RawOutput


class LayoutKind(str, Enum):
    THREE_TENSOR_NMS = "three_tensor_nms"
    DENSE_ANCHOR_GRID = "dense_anchor_grid"


@dataclass(frozen=True)
class OutputLayout:
    """
    Classified output layout.

    Attributes:
        kind: Which export convention the output follows.
        has_objectness: Dense grid carries an objectness row (row 4).
        channels_last: Dense grid is (batch, anchors, channels).
        count: Number of candidate rows (NMS detections or grid anchors).
    """
    kind: LayoutKind
    has_objectness: bool = False
    channels_last: bool = False
    count: int = 0


def classify_layout(shapes: Sequence[tuple], num_classes: int) -> OutputLayout:
    """
    Decide which decode path applies to a set of output shapes.

    Raises:
        DecodeError: If the shapes match neither convention.
    """
    shapes = [tuple(int(d) for d in s) for s in shapes]

    if len(shapes) in (3, 4):
        boxes_size, scores_size, classes_size = (int(np.prod(s)) for s in shapes[:3])
        valid_ok = len(shapes) == 3 or int(np.prod(shapes[3])) == 1
        if boxes_size == 4 * scores_size and classes_size == scores_size and valid_ok:
            return OutputLayout(kind=LayoutKind.THREE_TENSOR_NMS, count=scores_size)
        raise DecodeError(f"Output tensors {shapes} are not boxes/scores/classes")

    if len(shapes) == 1 and len(shapes[0]) == 3:
        _, axis1, axis2 = shapes[0]
        plain = 4 + num_classes
        with_obj = 5 + num_classes
        if axis1 in (plain, with_obj):
            return OutputLayout(
                kind=LayoutKind.DENSE_ANCHOR_GRID,
                has_objectness=axis1 == with_obj,
                channels_last=False,
                count=axis2,
            )
        if axis2 in (plain, with_obj):
            return OutputLayout(
                kind=LayoutKind.DENSE_ANCHOR_GRID,
                has_objectness=axis2 == with_obj,
                channels_last=True,
                count=axis1,
            )
        raise DecodeError(
            f"Grid output {shapes[0]} has no axis of {plain} or {with_obj} channels "
            f"for {num_classes} classes"
        )

    raise DecodeError(f"Unsupported detector output shapes: {shapes}")


class OutputDecoder:
    """
    Converts raw detector output into a DetectionSet.

    Every returned detection has score >= threshold. The RawOutput is
    released before decode() returns, including when it raises.

    Args:
        labels: Class label table indexed by class id.
        threshold: Minimum score kept in the output.
    """

    def __init__(self, labels: Sequence[str], threshold: float = 0.5):
        if not labels:
            raise ValueError("Label table must not be empty")
        self.labels = list(labels)
        self.threshold = float(threshold)

    @property
    def num_classes(self) -> int:
        return len(self.labels)

    def label_for(self, class_id: int) -> str:
        if 0 <= class_id < len(self.labels):
            return self.labels[class_id]
        return f"unknown_{class_id}"

    def decode(self, raw: RawOutput) -> DetectionSet:
        """
        Decode one tick's output.

        Raises:
            DecodeError: If the output layout is not recognised or the
                tensor contents cannot be read as detections.
        """
        with raw:
            try:
                layout = classify_layout(raw.shapes, self.num_classes)
                if layout.kind is LayoutKind.THREE_TENSOR_NMS:
                    detections = self._decode_nms(raw.arrays)
                elif layout.kind is LayoutKind.DENSE_ANCHOR_GRID:
                    detections = self._decode_grid(raw.arrays[0], layout)
                else:  # pragma: no cover - LayoutKind is closed
                    raise DecodeError(f"No decoder for layout {layout.kind}")
            except (ValueError, TypeError, IndexError, OverflowError) as e:
                raise DecodeError(f"Malformed detector output: {type(e).__name__}: {e}") from e

        logging.debug(f"[decode] layout={layout.kind.value} kept={len(detections)}/{layout.count}")
        return detections

    def _decode_nms(self, arrays: List[np.ndarray]) -> DetectionSet:
        boxes = arrays[0].reshape(-1)
        if not np.any(boxes != 0):
            return []
        scores = arrays[1].reshape(-1)
        classes = arrays[2].reshape(-1)

        n = scores.shape[0]
        if len(arrays) == 4:
            valid = float(arrays[3].reshape(-1)[0])
            if not np.isfinite(valid):
                raise DecodeError(f"Non-finite valid detection count: {valid}")
            n = max(0, min(n, int(valid)))
        boxes = boxes.reshape(-1, 4)

        out: DetectionSet = []
        for i in range(n):
            score = float(np.clip(scores[i], 0.0, 1.0))
            # NaN fails every comparison, so test for a pass rather than a miss
            if not score >= self.threshold:
                continue
            if not np.isfinite(classes[i]):
                raise DecodeError(f"Non-finite class id at row {i}")
            if not np.all(np.isfinite(boxes[i])):
                continue
            class_id = int(classes[i])
            out.append(
                Detection(
                    bbox=BoundingBox.from_tuple(boxes[i]),
                    score=score,
                    class_id=class_id,
                    label=self.label_for(class_id),
                )
            )
        return out

    def _decode_grid(self, grid: np.ndarray, layout: OutputLayout) -> DetectionSet:
        rows = grid[0]
        if layout.channels_last:
            rows = rows.T  # -> (channels, anchors)

        cx, cy, w, h = rows[0], rows[1], rows[2], rows[3]
        class_start = 5 if layout.has_objectness else 4
        class_rows = rows[class_start:class_start + self.num_classes]

        class_ids = np.argmax(class_rows, axis=0)
        scores = class_rows[class_ids, np.arange(class_rows.shape[1])]
        if layout.has_objectness:
            scores = scores * rows[4]
        scores = np.clip(scores, 0.0, 1.0)

        finite = np.isfinite(cx) & np.isfinite(cy) & np.isfinite(w) & np.isfinite(h)
        keep = np.flatnonzero((scores >= self.threshold) & (w > 0) & (h > 0) & finite)

        out: DetectionSet = []
        for i in keep:
            class_id = int(class_ids[i])
            out.append(
                Detection(
                    bbox=BoundingBox.from_center(float(cx[i]), float(cy[i]), float(w[i]), float(h[i])),
                    score=float(scores[i]),
                    class_id=class_id,
                    label=self.label_for(class_id),
                )
            )
        return out
