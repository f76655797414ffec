"""
Inference layer: model input spec, preprocessing, detector backends and
output decoding.
"""

from .backend import Detector, ModelSpec, RawOutput, TensorLayout
from .decoder import LayoutKind, OutputDecoder, OutputLayout, classify_layout
from .preprocess import Preprocessor, PreprocessResult

__all__ = [
    "Detector",
    "ModelSpec",
    "RawOutput",
    "TensorLayout",
    "LayoutKind",
    "OutputDecoder",
    "OutputLayout",
    "classify_layout",
    "Preprocessor",
    "PreprocessResult",
]
