"""
Coordinate mapping stage.

Projects decoded boxes into destination (display) pixel space. Decoders
emit either normalized [0, 1] boxes or boxes in model-input pixels, and the
two are told apart by magnitude: a box whose coordinates all sit within
normalized_threshold is normalized.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from models.detection import BoundingBox, Detection


@dataclass
class MappingStageConfig:
    """
    Attributes:
        normalized_threshold: Max absolute coordinate for a normalized box.
        min_box_px: Mapped boxes with width or height at or below this are dropped.
    """
    normalized_threshold: float = 1.5
    min_box_px: float = 5.0


def is_normalized(bbox: BoundingBox, threshold: float = 1.5) -> bool:
    return all(abs(v) <= threshold for v in bbox.as_tuple())


def _clamp(value: float, upper: float) -> float:
    return min(max(float(value), 0.0), float(upper))


def map_bbox(
    bbox: BoundingBox,
    dest_width: float,
    dest_height: float,
    x_ratio: float,
    y_ratio: float,
    normalized_threshold: float = 1.5,
) -> BoundingBox:
    """
    Map one box into destination space, clamped and ordered.

    Pure function of its arguments.
    """
    x1, y1, x2, y2 = bbox.as_tuple()
    if is_normalized(bbox, normalized_threshold):
        x1, x2 = x1 * dest_width, x2 * dest_width
        y1, y2 = y1 * dest_height, y2 * dest_height
    else:
        x1, x2 = x1 / x_ratio, x2 / x_ratio
        y1, y2 = y1 / y_ratio, y2 / y_ratio

    x1, x2 = _clamp(x1, dest_width), _clamp(x2, dest_width)
    y1, y2 = _clamp(y1, dest_height), _clamp(y2, dest_height)
    return BoundingBox(x1=min(x1, x2), y1=min(y1, y2), x2=max(x1, x2), y2=max(y1, y2))


class CoordinateMapper:
    """
    Maps detections into destination pixel space and drops boxes that end up
    too small to be meaningful (mostly boxes clamped against an edge).

    Example:
        mapper = CoordinateMapper(MappingStageConfig())
        mapped = mapper.map_all(detections, 1280, 720, x_ratio, y_ratio)
    """

    def __init__(self, config: Optional[MappingStageConfig] = None):
        self._config = config or MappingStageConfig()

    @property
    def config(self) -> MappingStageConfig:
        return self._config

    def map_one(
        self,
        detection: Detection,
        dest_width: float,
        dest_height: float,
        x_ratio: float,
        y_ratio: float,
    ) -> Optional[Detection]:
        """Return the mapped detection, or None if it falls below the size floor."""
        bbox = map_bbox(
            detection.bbox,
            dest_width,
            dest_height,
            x_ratio,
            y_ratio,
            self._config.normalized_threshold,
        )
        if bbox.width <= self._config.min_box_px or bbox.height <= self._config.min_box_px:
            logging.debug(
                f"[map] dropped {detection.label}: {bbox.width:.1f}x{bbox.height:.1f}px "
                f"<= {self._config.min_box_px}"
            )
            return None
        return detection.with_bbox(bbox)

    def map_all(
        self,
        detections: Sequence[Detection],
        dest_width: float,
        dest_height: float,
        x_ratio: float,
        y_ratio: float,
    ) -> List[Detection]:
        out: List[Detection] = []
        for det in detections:
            mapped = self.map_one(det, dest_width, dest_height, x_ratio, y_ratio)
            if mapped is not None:
                out.append(mapped)
        return out
