"""
Capture automaton.

Decides, once per tick, whether the armed capture goal fires. Only the goal
at goal_index is ever evaluated: earlier goals are complete and later goals
are dormant, so at most one capture can fire per tick.

Fire conditions for the armed goal G:
- G's predicate has held for G.required_stable_frames consecutive ticks
- more than cooldown_ms has passed since the last fire (any goal)
- G is the first goal, or more than G.min_gap_after_previous_ms has passed
  since the previous goal fired
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from models.capture_event import CaptureEvent
from models.detection import Detection
from .goals import CaptureGoal

CaptureCallback = Callable[[str, List[Detection]], None]


@dataclass
class AutomatonState:
    """
    Mutable per-session automaton state.

    Timestamps are None until the first fire so the cooldown never blocks the
    first capture, whatever the clock origin.
    """
    goal_index: int = 0
    consecutive_stable_count: int = 0
    last_fire_ts: Optional[float] = None
    previous_goal_fire_ts: Optional[float] = None
    completed_goal_ids: List[str] = field(default_factory=list)


class CaptureAutomaton:
    """
    Stability, cooldown and phase-gated capture state machine.

    Example:
        automaton = CaptureAutomaton(plan, cooldown_ms=2000, on_capture=save)
        for detections, now in ticks:
            event = automaton.step(detections, now)
    """

    def __init__(
        self,
        plan: Sequence[CaptureGoal],
        cooldown_ms: float = 2000.0,
        on_capture: Optional[CaptureCallback] = None,
    ):
        self._plan = tuple(plan)
        self._cooldown_ms = max(0.0, float(cooldown_ms))
        self._on_capture = on_capture
        self._state = AutomatonState()

    @property
    def plan(self) -> Sequence[CaptureGoal]:
        return self._plan

    @property
    def cooldown_ms(self) -> float:
        return self._cooldown_ms

    @property
    def state(self) -> AutomatonState:
        return self._state

    @property
    def is_done(self) -> bool:
        return self._state.goal_index >= len(self._plan)

    @property
    def armed_goal(self) -> Optional[CaptureGoal]:
        if self.is_done:
            return None
        return self._plan[self._state.goal_index]

    def reset(self) -> None:
        """Restore the initial state for a new session."""
        self._state = AutomatonState()
        logging.info("Capture state reset")

    def step(self, detections: Sequence[Detection], now: float) -> Optional[CaptureEvent]:
        """
        Advance one tick.

        Args:
            detections: Mapped detections for this tick.
            now: Session clock in milliseconds.

        Returns:
            The CaptureEvent if the armed goal fired, else None.
        """
        goal = self.armed_goal
        if goal is None:
            return None
        st = self._state

        qualifying = goal.evaluate(detections)
        if qualifying:
            st.consecutive_stable_count += 1
        else:
            st.consecutive_stable_count = 0

        stable = st.consecutive_stable_count >= goal.required_stable_frames
        cooled = st.last_fire_ts is None or (now - st.last_fire_ts) > self._cooldown_ms
        gap_ok = (
            st.goal_index == 0
            or st.previous_goal_fire_ts is None
            or (now - st.previous_goal_fire_ts) > goal.min_gap_after_previous_ms
        )

        logging.debug(
            f"[capture] goal={goal.id} stable={st.consecutive_stable_count}/"
            f"{goal.required_stable_frames} cooled={cooled} gap_ok={gap_ok}"
        )

        if not (stable and cooled and gap_ok):
            if stable and not gap_ok:
                remaining = goal.min_gap_after_previous_ms - (now - st.previous_goal_fire_ts)
                logging.debug(f"[capture] waiting phase gap... {remaining:.0f}ms remaining")
            return None

        return self._fire(goal, qualifying, now)

    def _fire(self, goal: CaptureGoal, qualifying: List[Detection], now: float) -> CaptureEvent:
        st = self._state
        st.last_fire_ts = now
        st.previous_goal_fire_ts = now
        st.completed_goal_ids.append(goal.id)
        st.goal_index += 1
        st.consecutive_stable_count = 0

        event = CaptureEvent(goal_id=goal.id, timestamp_ms=now, detections=list(qualifying))
        logging.info(
            f"Capture fired: goal={goal.id} detections="
            f"{[f'{d.label}({d.score:.2f})' for d in qualifying]}"
        )

        if self._on_capture is not None:
            try:
                self._on_capture(goal.id, list(qualifying))
            except Exception as e:
                logging.warning(f"Capture callback error for {goal.id}: {e}")

        return event

    def snapshot(self) -> Dict[str, Any]:
        """Plain-dict view of the current state for status reporting."""
        st = self._state
        armed = self.armed_goal
        return {
            "goal_index": st.goal_index,
            "armed_goal": armed.id if armed else None,
            "required_stable_frames": armed.required_stable_frames if armed else None,
            "consecutive_stable_count": st.consecutive_stable_count,
            "last_fire_ts": st.last_fire_ts,
            "previous_goal_fire_ts": st.previous_goal_fire_ts,
            "completed_goal_ids": list(st.completed_goal_ids),
            "plan": [g.id for g in self._plan],
            "done": self.is_done,
        }
