"""
Typed configuration models matching the YAML config structure.

Every heuristic constant the pipeline relies on lives here with its default,
so a session can be tuned without touching code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

DEFAULT_LABELS = [
    "left_square",
    "right_square",
    "triangle",
    "glass",
    "left_circle",
    "right_circle",
]


@dataclass
class CameraConfig:
    """Camera configuration."""
    device_id: Union[int, str] = 0
    resolution: List[int] = field(default_factory=lambda: [1920, 1080])
    fps: int = 30

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CameraConfig":
        return cls(
            device_id=d.get("device_id", 0),
            resolution=d.get("resolution", [1920, 1080]),
            fps=d.get("fps", 30),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "resolution": self.resolution,
            "fps": self.fps,
        }


@dataclass
class ModelConfig:
    """
    Detector model configuration.

    Attributes:
        path: Model file loaded by the detector backend.
        input_shape: Declared input shape, e.g. [1, 3, 640, 640].
        labels: Class label table, indexed by class id. Must match the
            model's training order; nothing checks this at runtime.
        class_threshold: Decoder score threshold.
        swap_rb: Convert BGR frames to RGB before inference.
        warmup: Run one dummy inference at session start.
    """
    path: str = ""
    input_shape: List[int] = field(default_factory=lambda: [1, 3, 640, 640])
    labels: List[str] = field(default_factory=lambda: list(DEFAULT_LABELS))
    class_threshold: float = 0.5
    swap_rb: bool = True
    warmup: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ModelConfig":
        return cls(
            path=d.get("path", ""),
            input_shape=d.get("input_shape", [1, 3, 640, 640]),
            labels=d.get("labels") or list(DEFAULT_LABELS),
            class_threshold=d.get("class_threshold", 0.5),
            swap_rb=d.get("swap_rb", True),
            warmup=d.get("warmup", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "input_shape": self.input_shape,
            "labels": self.labels,
            "class_threshold": self.class_threshold,
            "swap_rb": self.swap_rb,
            "warmup": self.warmup,
        }


@dataclass
class MappingConfig:
    """
    Coordinate mapping configuration.

    Attributes:
        normalized_threshold: Boxes whose coordinates all have absolute value
            at or below this are treated as normalized [0, 1].
        min_box_px: Mapped boxes this narrow or short (or smaller) are dropped.
        display_size: Destination [width, height]; None uses the frame size.
    """
    normalized_threshold: float = 1.5
    min_box_px: float = 5.0
    display_size: Optional[List[int]] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MappingConfig":
        return cls(
            normalized_threshold=d.get("normalized_threshold", 1.5),
            min_box_px=d.get("min_box_px", 5.0),
            display_size=d.get("display_size"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "normalized_threshold": self.normalized_threshold,
            "min_box_px": self.min_box_px,
        }
        if self.display_size is not None:
            d["display_size"] = self.display_size
        return d


@dataclass
class GoalConfig:
    """
    One capture goal.

    predicate is a dict with a "kind" key:
        {"kind": "labels_present", "labels": ["triangle"]}
        {"kind": "width_in_range", "label": "triangle", "min_px": 80, "max_px": 140}
    """
    id: str
    predicate: Dict[str, Any] = field(default_factory=dict)
    stable_frames: int = 2
    min_gap_after_previous_ms: float = 0.0
    confidence_threshold: float = 0.5

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GoalConfig":
        return cls(
            id=d["id"],
            predicate=dict(d.get("predicate") or {}),
            stable_frames=d.get("stable_frames", 2),
            min_gap_after_previous_ms=d.get("min_gap_after_previous_ms", 0.0),
            confidence_threshold=d.get("confidence_threshold", 0.5),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "predicate": dict(self.predicate),
            "stable_frames": self.stable_frames,
            "min_gap_after_previous_ms": self.min_gap_after_previous_ms,
            "confidence_threshold": self.confidence_threshold,
        }


def _default_goals() -> List[GoalConfig]:
    return [
        GoalConfig(
            id="without_glass_image",
            predicate={"kind": "labels_present", "labels": ["triangle"]},
            stable_frames=2,
            min_gap_after_previous_ms=0.0,
        ),
        GoalConfig(
            id="with_glass_image",
            predicate={"kind": "labels_present", "labels": ["triangle"]},
            stable_frames=2,
            min_gap_after_previous_ms=6000.0,
        ),
    ]


@dataclass
class CaptureConfig:
    """Capture plan: ordered goals plus the global cooldown between fires."""
    cooldown_ms: float = 2000.0
    goals: List[GoalConfig] = field(default_factory=_default_goals)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CaptureConfig":
        goals_list = d.get("goals")
        goals = [GoalConfig.from_dict(g) for g in goals_list] if goals_list else _default_goals()
        return cls(
            cooldown_ms=d.get("cooldown_ms", 2000.0),
            goals=goals,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cooldown_ms": self.cooldown_ms,
            "goals": [g.to_dict() for g in self.goals],
        }


@dataclass
class GuidanceConfig:
    """Classes whose box width is reported to the guidance callback."""
    tracked_labels: List[str] = field(default_factory=lambda: ["triangle", "glass"])

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GuidanceConfig":
        return cls(tracked_labels=d.get("tracked_labels", ["triangle", "glass"]))

    def to_dict(self) -> Dict[str, Any]:
        return {"tracked_labels": self.tracked_labels}


@dataclass
class LoopConfig:
    """
    Loop driver configuration.

    Attributes:
        max_ticks_per_second: Throttle cap for the pull loop.
        stop_when_complete: Stop once every capture goal has fired.
        heartbeat_every: Emit an INFO heartbeat every N ticks (0 disables).
    """
    max_ticks_per_second: float = 15.0
    stop_when_complete: bool = True
    heartbeat_every: int = 15

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LoopConfig":
        return cls(
            max_ticks_per_second=d.get("max_ticks_per_second", 15.0),
            stop_when_complete=d.get("stop_when_complete", True),
            heartbeat_every=d.get("heartbeat_every", 15),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_ticks_per_second": self.max_ticks_per_second,
            "stop_when_complete": self.stop_when_complete,
            "heartbeat_every": self.heartbeat_every,
        }


@dataclass
class WebConfig:
    """Status API configuration."""
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(
            enabled=d.get("enabled", False),
            host=d.get("host", "127.0.0.1"),
            port=d.get("port", 5000),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    camera: CameraConfig = field(default_factory=CameraConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    mapping: MappingConfig = field(default_factory=MappingConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    guidance: GuidanceConfig = field(default_factory=GuidanceConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/align_capture.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            camera=CameraConfig.from_dict(d.get("camera", {}) or {}),
            model=ModelConfig.from_dict(d.get("model", {}) or {}),
            mapping=MappingConfig.from_dict(d.get("mapping", {}) or {}),
            capture=CaptureConfig.from_dict(d.get("capture", {}) or {}),
            guidance=GuidanceConfig.from_dict(d.get("guidance", {}) or {}),
            loop=LoopConfig.from_dict(d.get("loop", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/align_capture.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or logging)."""
        return {
            "camera": self.camera.to_dict(),
            "model": self.model.to_dict(),
            "mapping": self.mapping.to_dict(),
            "capture": self.capture.to_dict(),
            "guidance": self.guidance.to_dict(),
            "loop": self.loop.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
