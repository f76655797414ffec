"""
Events emitted by a capture session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .detection import Detection


@dataclass(frozen=True)
class CaptureEvent:
    """
    A capture goal firing.

    Attributes:
        goal_id: Identifier of the goal that fired (e.g. "without_glass_image").
        timestamp_ms: Session clock reading at the fire, in milliseconds.
        detections: Detections that satisfied the goal's predicate.
    """
    goal_id: str
    timestamp_ms: float
    detections: List[Detection] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal_id": self.goal_id,
            "timestamp_ms": self.timestamp_ms,
            "detections": [d.to_dict() for d in self.detections],
        }


@dataclass(frozen=True)
class GuidanceReading:
    """
    A measurement for the guidance UI.

    Attributes:
        label: Tracked class that was observed.
        measurement: Mapped bounding box width in display pixels.
    """
    label: str
    measurement: float
