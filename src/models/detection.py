"""
Detection models for object detection results.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in corner form.

    Until a box has passed through the coordinate mapper its units are
    unresolved: either model-input pixels or normalized [0, 1] values.

    Attributes:
        x1: Left edge x coordinate.
        y1: Top edge y coordinate.
        x2: Right edge x coordinate.
        y2: Bottom edge y coordinate.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    def as_tuple(self) -> Tuple[float, float, float, float]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x1, self.y1, self.x2, self.y2)

    @classmethod
    def from_tuple(cls, t: Sequence[float]) -> "BoundingBox":
        """Create from (x1, y1, x2, y2) tuple."""
        return cls(x1=float(t[0]), y1=float(t[1]), x2=float(t[2]), y2=float(t[3]))

    @classmethod
    def from_center(cls, cx: float, cy: float, w: float, h: float) -> "BoundingBox":
        """Create from center form (cx, cy, width, height)."""
        return cls(x1=cx - w / 2, y1=cy - h / 2, x2=cx + w / 2, y2=cy + h / 2)


@dataclass(frozen=True)
class Detection:
    """
    A single detection from the output decoder.

    Attributes:
        bbox: Bounding box (unresolved units until mapped).
        score: Confidence score in [0, 1].
        class_id: Class index reported by the detector.
        label: Human-readable class name from the label table.
    """
    bbox: BoundingBox
    score: float
    class_id: int
    label: str

    @property
    def width(self) -> float:
        return self.bbox.width

    @property
    def height(self) -> float:
        return self.bbox.height

    def with_bbox(self, bbox: BoundingBox) -> "Detection":
        """Return a copy with a different bounding box."""
        return replace(self, bbox=bbox)

    def to_dict(self) -> Dict[str, object]:
        return {
            "class_id": self.class_id,
            "label": self.label,
            "score": self.score,
            "bbox": list(self.bbox.as_tuple()),
        }


# One decode call's ordered output. May be empty.
DetectionSet = List[Detection]


def best_by_label(detections: Sequence[Detection], label: str) -> Optional[Detection]:
    """Highest-scoring detection with the given label, or None."""
    best: Optional[Detection] = None
    for det in detections:
        if det.label != label:
            continue
        if best is None or det.score > best.score:
            best = det
    return best
