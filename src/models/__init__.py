"""
Typed models for the alignment capture application.

Frames, detections, capture events and configuration are plain dataclasses
so they can be passed between stages and serialized without extra glue.
"""

from .frame import FrameData
from .detection import BoundingBox, Detection, DetectionSet
from .capture_event import CaptureEvent, GuidanceReading
from .config import (
    Config,
    CameraConfig,
    ModelConfig,
    MappingConfig,
    GoalConfig,
    CaptureConfig,
    GuidanceConfig,
    LoopConfig,
    WebConfig,
)

__all__ = [
    # Frame
    "FrameData",
    # Detection
    "BoundingBox",
    "Detection",
    "DetectionSet",
    # Capture
    "CaptureEvent",
    "GuidanceReading",
    # Config
    "Config",
    "CameraConfig",
    "ModelConfig",
    "MappingConfig",
    "GoalConfig",
    "CaptureConfig",
    "GuidanceConfig",
    "LoopConfig",
    "WebConfig",
]
