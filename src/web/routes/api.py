from __future__ import annotations

import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, HTTPException

from ..api_models import LoopStatsSummary, ResetResponse, SessionStatusResponse
from ..state import state

router = APIRouter()


def _loop_summary(sys_stats: Dict[str, Any], now: float) -> Dict[str, Any]:
    start_time = sys_stats.get("start_time") or None
    summary = {k: v for k, v in sys_stats.items() if k in LoopStatsSummary.model_fields}
    summary["uptime_seconds"] = int(now - start_time) if start_time else None
    return summary


@router.get("/status", response_model=SessionStatusResponse)
def status():
    """
    Session progress for the UI.

    - status: idle (no session), capturing, or complete
    - session: automaton snapshot plus fired events
    - loop: tick counters from the loop driver
    """
    now = time.time()
    sys_stats = state.get_system_stats_copy()
    loop = _loop_summary(sys_stats, now)

    session = state.session
    if session is None:
        return {"status": "idle", "session": None, "loop": loop, "timestamp": now}

    snapshot = session.snapshot()
    return {
        "status": "complete" if snapshot["done"] else "capturing",
        "session": snapshot,
        "loop": loop,
        "timestamp": now,
    }


@router.post("/session/reset", response_model=ResetResponse)
def reset_session():
    """Schedule a session reset; the loop applies it at the start of its next tick."""
    session = state.session
    if session is None:
        raise HTTPException(status_code=409, detail="No active capture session")

    session.request_reset()
    logging.info("Session reset requested via API")
    return {"scheduled": True, "message": "Reset applies on the next tick"}
