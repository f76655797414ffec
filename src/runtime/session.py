"""
Capture session.

A session owns everything that persists across ticks for one video stream:
the capture automaton (and through it the AutomatonState) plus the external
sinks. Sessions are never shared between streams.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from algorithms.capture import CaptureAutomaton, CaptureCallback, CaptureGoal, build_plan
from models.capture_event import CaptureEvent, GuidanceReading
from models.config import Config
from models.detection import Detection, best_by_label

GuidanceCallback = Callable[[GuidanceReading], None]
LogSink = Callable[[str], None]


def _noop_log(message: str) -> None:
    pass


@dataclass
class SessionSinks:
    """External callbacks a session reports to. All optional."""
    on_capture: Optional[CaptureCallback] = None
    on_guidance: Optional[GuidanceCallback] = None
    log_sink: LogSink = _noop_log


@dataclass
class CaptureSession:
    """
    Per-stream capture state plus its sinks.

    The automaton is only touched from the loop driver's tick. Other threads
    (the status API) ask for a reset with request_reset(); the driver applies
    it at the start of its next tick.
    """
    automaton: CaptureAutomaton
    tracked_labels: Sequence[str] = field(default_factory=list)
    sinks: SessionSinks = field(default_factory=SessionSinks)
    events: List[CaptureEvent] = field(default_factory=list)
    _reset_requested: bool = field(default=False, init=False, repr=False)

    @property
    def is_done(self) -> bool:
        return self.automaton.is_done

    def request_reset(self) -> None:
        self._reset_requested = True

    def apply_pending_reset(self) -> bool:
        """Reset now if a reset was requested. Returns True if it did."""
        if not self._reset_requested:
            return False
        self._reset_requested = False
        self.reset()
        return True

    def reset(self) -> None:
        self.automaton.reset()
        self.events.clear()

    def process(self, detections: Sequence[Detection], now_ms: float) -> Optional[CaptureEvent]:
        event = self.automaton.step(detections, now_ms)
        if event is not None:
            self.events.append(event)
        return event

    def report_guidance(self, detections: Sequence[Detection]) -> List[GuidanceReading]:
        """Send the best box width for each tracked label seen this tick."""
        readings: List[GuidanceReading] = []
        for label in self.tracked_labels:
            det = best_by_label(detections, label)
            if det is None:
                continue
            readings.append(GuidanceReading(label=label, measurement=round(det.width, 2)))

        if self.sinks.on_guidance is not None:
            for reading in readings:
                try:
                    self.sinks.on_guidance(reading)
                except Exception as e:
                    logging.warning(f"Guidance callback error: {e}")
        return readings

    def log(self, message: str) -> None:
        try:
            self.sinks.log_sink(message)
        except Exception as e:
            logging.warning(f"Log sink error: {e}")

    def snapshot(self) -> Dict[str, Any]:
        snap = self.automaton.snapshot()
        snap["events"] = [
            {"goal_id": e.goal_id, "timestamp_ms": e.timestamp_ms, "detections": len(e.detections)}
            for e in self.events
        ]
        return snap


def create_session_from_config(
    config: Config,
    on_capture: Optional[CaptureCallback] = None,
    on_guidance: Optional[GuidanceCallback] = None,
    log_sink: Optional[LogSink] = None,
) -> CaptureSession:
    """
    Build a fresh session from typed config.

    Raises:
        ValueError: If the capture plan is invalid.
    """
    plan: Sequence[CaptureGoal] = build_plan(config.capture.goals)
    automaton = CaptureAutomaton(plan, cooldown_ms=config.capture.cooldown_ms, on_capture=on_capture)
    sinks = SessionSinks(
        on_capture=on_capture,
        on_guidance=on_guidance,
        log_sink=log_sink or _noop_log,
    )
    logging.info(f"Capture session created: plan={[g.id for g in plan]}")
    return CaptureSession(
        automaton=automaton,
        tracked_labels=list(config.guidance.tracked_labels),
        sinks=sinks,
    )
