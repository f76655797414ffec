"""
Pipeline module for the alignment capture assistant.

The pipeline sequences one tick per frame:
- Preprocess the frame into the detector's input tensor
- Run the detector and decode its raw output
- Map detections into display space (CoordinateMapper stage)
- Step the capture session and report guidance
"""

from .engine import (
    LoopDriver,
    LoopDriverConfig,
    LoopStats,
    TickResult,
    create_driver_from_config,
)
from .stages.mapping import CoordinateMapper, MappingStageConfig, map_bbox

__all__ = [
    "LoopDriver",
    "LoopDriverConfig",
    "LoopStats",
    "TickResult",
    "create_driver_from_config",
    "CoordinateMapper",
    "MappingStageConfig",
    "map_bbox",
]
