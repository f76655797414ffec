"""
Capture triggering.

The automaton walks an ordered plan of capture goals and fires each one
exactly once, after its predicate has been stable, the cooldown has passed
and the phase gap since the previous goal has elapsed.
"""

from .goals import (
    CaptureGoal,
    GoalPredicate,
    LabelsPresent,
    WidthInRange,
    build_plan,
    goal_from_config,
    predicate_from_dict,
)
from .automaton import AutomatonState, CaptureAutomaton, CaptureCallback

__all__ = [
    "CaptureGoal",
    "GoalPredicate",
    "LabelsPresent",
    "WidthInRange",
    "build_plan",
    "goal_from_config",
    "predicate_from_dict",
    "AutomatonState",
    "CaptureAutomaton",
    "CaptureCallback",
]
