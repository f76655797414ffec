"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.detection import BoundingBox, Detection  # noqa: E402


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
camera:
  device_id: 0
  resolution: [640, 480]
  fps: 30

model:
  path: "models/test.onnx"
  input_shape: [1, 3, 640, 640]
  class_threshold: 0.5

capture:
  cooldown_ms: 2000
  goals:
    - id: without_glass_image
      predicate: {kind: labels_present, labels: [triangle]}
    - id: with_glass_image
      predicate: {kind: labels_present, labels: [triangle]}
      min_gap_after_previous_ms: 6000

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "camera": {
            "device_id": 0,
            "resolution": [1280, 720],
            "fps": 30,
        },
        "model": {
            "path": "models/test.onnx",
            "input_shape": [1, 3, 640, 640],
            "labels": ["left_square", "right_square", "triangle", "glass", "left_circle", "right_circle"],
            "class_threshold": 0.5,
        },
        "mapping": {
            "normalized_threshold": 1.5,
            "min_box_px": 5,
        },
        "capture": {
            "cooldown_ms": 2000,
            "goals": [
                {
                    "id": "without_glass_image",
                    "predicate": {"kind": "labels_present", "labels": ["triangle"]},
                    "stable_frames": 2,
                },
                {
                    "id": "with_glass_image",
                    "predicate": {"kind": "labels_present", "labels": ["triangle"]},
                    "stable_frames": 2,
                    "min_gap_after_previous_ms": 6000,
                },
            ],
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


def make_detection(label, score=0.9, bbox=(10, 10, 110, 60), class_id=0):
    """Build a Detection with a corner-form bbox."""
    return Detection(bbox=BoundingBox.from_tuple(bbox), score=score, class_id=class_id, label=label)


@pytest.fixture
def det():
    """Factory fixture for detections."""
    return make_detection
