"""
FastAPI application factory for the capture status API.

Routes:
- /api/status -> session snapshot + loop stats
- /api/session/reset -> schedule a session reset
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import api


def create_app() -> FastAPI:
    """Create the FastAPI app and wire routes."""
    app = FastAPI(
        title="Align Capture",
        version="0.1.0",
        description="Status API for the visual alignment capture assistant",
    )

    # CORS for a locally served capture UI
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")
    return app
