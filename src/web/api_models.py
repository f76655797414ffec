from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class CaptureEventSummary(BaseModel):
    goal_id: str
    timestamp_ms: float
    detections: int = Field(..., description="Number of qualifying detections at fire time")


class SessionSnapshot(BaseModel):
    goal_index: int
    armed_goal: Optional[str] = Field(None, description="Goal currently armed; None once done")
    required_stable_frames: Optional[int] = None
    consecutive_stable_count: int
    last_fire_ts: Optional[float] = None
    previous_goal_fire_ts: Optional[float] = None
    completed_goal_ids: List[str] = Field(default_factory=list)
    plan: List[str] = Field(default_factory=list)
    done: bool
    events: List[CaptureEventSummary] = Field(default_factory=list)


class LoopStatsSummary(BaseModel):
    running: bool = False
    busy: bool = False
    tick_count: int = 0
    skipped_ticks: int = 0
    decode_errors: int = 0
    inference_errors: int = 0
    tick_errors: int = 0
    busy_rejections: int = 0
    fire_count: int = 0
    uptime_seconds: Optional[int] = None


class SessionStatusResponse(BaseModel):
    """Status for UI polling: session progress plus loop counters."""
    status: str = Field(..., description="capturing|complete|idle")
    session: Optional[SessionSnapshot] = None
    loop: LoopStatsSummary
    timestamp: float


class ResetResponse(BaseModel):
    scheduled: bool
    message: str
