"""
Runtime layer: session ownership and pipeline error types.
"""

from .errors import (
    CapabilityUnavailable,
    DecodeError,
    InferenceError,
    PipelineError,
    ReadinessError,
    ResourceReleaseError,
)

__all__ = [
    "PipelineError",
    "ReadinessError",
    "DecodeError",
    "InferenceError",
    "ResourceReleaseError",
    "CapabilityUnavailable",
]
