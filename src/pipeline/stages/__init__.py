"""
Pipeline stages.
"""

from .mapping import CoordinateMapper, MappingStageConfig, map_bbox

__all__ = ["CoordinateMapper", "MappingStageConfig", "map_bbox"]
