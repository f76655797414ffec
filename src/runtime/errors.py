"""
Error types raised by the frame-analysis pipeline.

Only CapabilityUnavailable is terminal; every other error is scoped to a
single tick and the loop keeps scheduling.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ReadinessError(PipelineError):
    """The frame is not available yet (zero width/height). Skip the tick."""


class DecodeError(PipelineError):
    """Detector output has an unexpected rank or shape."""


class InferenceError(PipelineError):
    """The detector call failed for this tick."""


class ResourceReleaseError(PipelineError):
    """A tensor or buffer could not be released. Logged, never propagated."""


class CapabilityUnavailable(PipelineError):
    """Frame source or detector is absent at session start."""
