"""
Capture goals and the predicates that arm them.

A capture plan is an ordered, immutable tuple of CaptureGoal. Each goal
carries a predicate over one tick's detections; the automaton only ever
evaluates the goal it currently has armed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Tuple

from models.config import GoalConfig
from models.detection import Detection


class GoalPredicate(ABC):
    """
    Condition a tick's detections must meet for a goal to count as stable.

    Predicates are pure: they read detections and return the ones that
    qualify. An empty list means the condition is not met.
    """

    @abstractmethod
    def qualifying(self, detections: Sequence[Detection]) -> List[Detection]:
        """Detections that satisfy the predicate, or [] when it is false."""

    def __call__(self, detections: Sequence[Detection]) -> bool:
        return bool(self.qualifying(detections))


@dataclass(frozen=True)
class LabelsPresent(GoalPredicate):
    """True when every required label is observed at least once."""
    labels: Tuple[str, ...]

    def qualifying(self, detections: Sequence[Detection]) -> List[Detection]:
        seen = {d.label for d in detections}
        if not set(self.labels).issubset(seen):
            return []
        return [d for d in detections if d.label in self.labels]


@dataclass(frozen=True)
class WidthInRange(GoalPredicate):
    """True when `label` is observed with a box width within [min_px, max_px]."""
    label: str
    min_px: float
    max_px: float

    def qualifying(self, detections: Sequence[Detection]) -> List[Detection]:
        return [
            d for d in detections
            if d.label == self.label and self.min_px <= d.width <= self.max_px
        ]


@dataclass(frozen=True)
class CaptureGoal:
    """
    One step of the capture plan.

    Attributes:
        id: Identifier passed to the capture callback.
        predicate: Condition evaluated on detections above confidence_threshold.
        required_stable_frames: Consecutive true ticks needed before firing.
        min_gap_after_previous_ms: Phase gap after the previous goal fired.
            Ignored for the first goal.
        confidence_threshold: Minimum score for a detection to be considered.
    """
    id: str
    predicate: GoalPredicate
    required_stable_frames: int = 2
    min_gap_after_previous_ms: float = 0.0
    confidence_threshold: float = 0.5

    def evaluate(self, detections: Sequence[Detection]) -> List[Detection]:
        confident = [d for d in detections if d.score >= self.confidence_threshold]
        return self.predicate.qualifying(confident)


def predicate_from_dict(d: Dict[str, Any]) -> GoalPredicate:
    """
    Build a predicate from its config dict.

    Raises:
        ValueError: For an unknown kind or missing fields.
    """
    kind = d.get("kind", "labels_present")
    if kind == "labels_present":
        labels = d.get("labels")
        if not labels or not isinstance(labels, (list, tuple)):
            raise ValueError("labels_present predicate needs a non-empty 'labels' list")
        return LabelsPresent(labels=tuple(str(x) for x in labels))
    if kind == "width_in_range":
        if "label" not in d:
            raise ValueError("width_in_range predicate needs a 'label'")
        min_px = float(d.get("min_px", 0.0))
        max_px = float(d.get("max_px", float("inf")))
        if min_px > max_px:
            raise ValueError(f"width_in_range min_px {min_px} > max_px {max_px}")
        return WidthInRange(label=str(d["label"]), min_px=min_px, max_px=max_px)
    raise ValueError(f"Unknown predicate kind: {kind!r}")


def goal_from_config(cfg: GoalConfig) -> CaptureGoal:
    return CaptureGoal(
        id=cfg.id,
        predicate=predicate_from_dict(cfg.predicate),
        required_stable_frames=max(1, int(cfg.stable_frames)),
        min_gap_after_previous_ms=max(0.0, float(cfg.min_gap_after_previous_ms)),
        confidence_threshold=float(cfg.confidence_threshold),
    )


def build_plan(goal_configs: Sequence[GoalConfig]) -> Tuple[CaptureGoal, ...]:
    """Build an immutable capture plan. Goal ids must be unique."""
    plan = tuple(goal_from_config(g) for g in goal_configs)
    ids = [g.id for g in plan]
    if len(set(ids)) != len(ids):
        raise ValueError(f"Duplicate capture goal ids: {ids}")
    return plan
