"""
Observation layer for pluggable frame sources.

Each source implements the ObservationSource interface and returns FrameData
objects, so the loop driver never touches capture devices directly.
"""

from .base import ObservationSource, ObservationConfig
from .opencv_source import OpenCVSource, OpenCVSourceConfig

__all__ = [
    "ObservationSource",
    "ObservationConfig",
    "OpenCVSource",
    "OpenCVSourceConfig",
]
