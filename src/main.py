"""
Alignment capture assistant.

Reads frames from a camera or video file, runs the detector on each one and
fires the configured reference-image captures once the subject holds the
calibrated pose.

Usage:
    python src/main.py --config config/config.yaml --web

Arguments:
    --config: Path to configuration file
    --web: Serve the status API (overrides web.enabled)
    --output-dir: Directory where captured frames are written
"""

import os
import sys
import argparse
import logging
import threading
import time
from typing import Dict, Any, Tuple, Optional

import cv2
import uvicorn
import yaml

from algorithms.capture import predicate_from_dict
from inference.opencv_backend import OpenCVDnnBackend, OpenCVDnnConfig
from models.config import Config
from models.frame import FrameData
from observation.opencv_source import OpenCVSource, OpenCVSourceConfig
from ops.logging import VALID_LOG_LEVELS, make_log_sink, setup_logging
from pipeline.engine import TickResult, create_driver_from_config
from runtime.errors import CapabilityUnavailable
from runtime.session import create_session_from_config
from web.app import create_app
from web.state import state as web_state


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Explicit path last, unless it is the local override file itself
        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_unit_interval(value: Any) -> bool:
    return _is_number(value) and 0 < value <= 1


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    # Required top-level sections
    required_sections = ['camera', 'model', 'capture', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Validate camera settings
    camera = config.get('camera') or {}
    if 'device_id' not in camera:
        return False, "Missing camera.device_id"
    if not isinstance(camera['device_id'], (int, str)) or isinstance(camera['device_id'], bool):
        return False, "camera.device_id must be an integer (index) or string (file path or URL)"
    if isinstance(camera['device_id'], int) and camera['device_id'] < 0:
        return False, "camera.device_id integer must be non-negative"
    if 'resolution' in camera:
        resolution = camera['resolution']
        if not isinstance(resolution, list) or len(resolution) != 2:
            return False, "camera.resolution must be a list of [width, height]"
        if not all(isinstance(x, int) and x > 0 for x in resolution):
            return False, "camera.resolution values must be positive integers"
    if 'fps' in camera and (not isinstance(camera['fps'], int) or camera['fps'] <= 0):
        return False, "camera.fps must be a positive integer"

    # Validate model settings
    model = config.get('model') or {}
    if not isinstance(model.get('path'), str) or not model.get('path'):
        return False, "model.path is required"
    labels = model.get('labels')
    if labels is not None:
        if not isinstance(labels, list) or not labels or not all(isinstance(x, str) and x for x in labels):
            return False, "model.labels must be a non-empty list of strings"
        if len(set(labels)) != len(labels):
            return False, "model.labels must not contain duplicates"
    if 'class_threshold' in model and not _is_unit_interval(model['class_threshold']):
        return False, "model.class_threshold must be in (0, 1]"
    if 'input_shape' in model:
        shape = model['input_shape']
        if not isinstance(shape, list) or len(shape) not in (3, 4):
            return False, "model.input_shape must be a list of 3 or 4 integers"
        if not all(isinstance(x, int) and x > 0 for x in shape):
            return False, "model.input_shape values must be positive integers"

    # Validate mapping settings
    mapping = config.get('mapping') or {}
    if 'normalized_threshold' in mapping:
        if not _is_number(mapping['normalized_threshold']) or mapping['normalized_threshold'] <= 0:
            return False, "mapping.normalized_threshold must be a positive number"
    if 'min_box_px' in mapping:
        if not _is_number(mapping['min_box_px']) or mapping['min_box_px'] < 0:
            return False, "mapping.min_box_px must be a non-negative number"
    display_size = mapping.get('display_size')
    if display_size is not None:
        if not isinstance(display_size, list) or len(display_size) != 2:
            return False, "mapping.display_size must be a list of [width, height]"
        if not all(isinstance(x, int) and x > 0 for x in display_size):
            return False, "mapping.display_size values must be positive integers"

    # Validate capture plan
    capture = config.get('capture') or {}
    if 'cooldown_ms' in capture:
        if not _is_number(capture['cooldown_ms']) or capture['cooldown_ms'] < 0:
            return False, "capture.cooldown_ms must be a non-negative number"
    goals = capture.get('goals')
    if goals is not None:
        if not isinstance(goals, list) or not goals:
            return False, "capture.goals must be a non-empty list"
        seen_ids = set()
        for i, goal in enumerate(goals):
            if not isinstance(goal, dict) or not goal.get('id'):
                return False, f"capture.goals[{i}].id is required"
            if goal['id'] in seen_ids:
                return False, f"capture.goals[{i}].id duplicates {goal['id']!r}"
            seen_ids.add(goal['id'])
            stable = goal.get('stable_frames', 2)
            if not isinstance(stable, int) or isinstance(stable, bool) or stable < 1:
                return False, f"capture.goals[{i}].stable_frames must be a positive integer"
            gap = goal.get('min_gap_after_previous_ms', 0)
            if not _is_number(gap) or gap < 0:
                return False, f"capture.goals[{i}].min_gap_after_previous_ms must be a non-negative number"
            if not _is_unit_interval(goal.get('confidence_threshold', 0.5)):
                return False, f"capture.goals[{i}].confidence_threshold must be in (0, 1]"
            try:
                predicate_from_dict(goal.get('predicate') or {})
            except ValueError as e:
                return False, f"capture.goals[{i}].predicate: {e}"

    # Validate loop settings
    loop = config.get('loop') or {}
    if 'max_ticks_per_second' in loop:
        if not _is_number(loop['max_ticks_per_second']) or loop['max_ticks_per_second'] < 0:
            return False, "loop.max_ticks_per_second must be a non-negative number"
    if 'heartbeat_every' in loop:
        if not isinstance(loop['heartbeat_every'], int) or loop['heartbeat_every'] < 0:
            return False, "loop.heartbeat_every must be a non-negative integer"

    # Validate web settings
    web = config.get('web') or {}
    if 'port' in web and (not isinstance(web['port'], int) or not (0 < web['port'] < 65536)):
        return False, "web.port must be an integer between 1 and 65535"

    # Validate log settings
    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


MIN_CROP_PX = 10


def crop_detections(frame, detections, display_size=None, min_px=MIN_CROP_PX):
    """
    Cut one crop per detection out of a frame.

    Detections are in display space when display_size is set, so boxes are
    scaled back to frame pixels first. Crops no larger than min_px on either
    side are skipped.

    Returns:
        List of (detection, crop) pairs.
    """
    frame_h, frame_w = frame.shape[:2]
    sx = frame_w / display_size[0] if display_size else 1.0
    sy = frame_h / display_size[1] if display_size else 1.0

    crops = []
    for det in detections:
        x1 = max(0, int(det.bbox.x1 * sx))
        y1 = max(0, int(det.bbox.y1 * sy))
        x2 = min(frame_w, int(det.bbox.x2 * sx))
        y2 = min(frame_h, int(det.bbox.y2 * sy))
        if x2 - x1 <= min_px or y2 - y1 <= min_px:
            continue
        crops.append((det, frame[y1:y2, x1:x2]))
    return crops


def make_frame_saver(output_dir: str, display_size: Optional[Tuple[int, int]] = None):
    """
    Driver callback for ticks that fired a capture.

    Writes the full frame plus one crop per qualifying detection, named
    <goal>_<ms>_<label>_<confidence>.jpg.
    """

    def save(frame_data: FrameData, result: TickResult) -> None:
        if result.event is None:
            return
        goal_id = result.event.goal_id
        stamp = int(time.time() * 1000)
        path = os.path.join(output_dir, f"{goal_id}_{stamp}.jpg")
        if cv2.imwrite(path, frame_data.frame):
            logging.info(f"Saved capture {goal_id} to {path}")
        else:
            logging.error(f"Failed to write capture {goal_id} to {path}")

        for det, crop in crop_detections(frame_data.frame, result.event.detections, display_size):
            crop_path = os.path.join(
                output_dir, f"{goal_id}_{stamp}_{det.label}_{round(det.score * 100)}.jpg"
            )
            if cv2.imwrite(crop_path, crop):
                logging.info(f"Cropped {det.label} object: {crop.shape[1]}x{crop.shape[0]}px")
            else:
                logging.error(f"Failed to write crop {crop_path}")

    return save


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Alignment Capture Assistant')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--web', action='store_true',
                        help='Serve the status API')
    parser.add_argument('--output-dir', type=str, default='output/captures',
                        help='Directory for captured frames')
    args = parser.parse_args()

    raw_config = load_config(args.config)

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(raw_config['log_path'], raw_config['log_level'])
    config = Config.from_dict(raw_config)

    if not os.path.exists(args.output_dir):
        os.makedirs(args.output_dir)

    logging.info("Starting Alignment Capture Assistant")

    try:
        detector = OpenCVDnnBackend(
            OpenCVDnnConfig(model=config.model.path, input_shape=config.model.input_shape)
        )
        if config.model.warmup:
            detector.warmup()

        source = OpenCVSource(
            OpenCVSourceConfig.from_camera_config(config.camera.to_dict(), source_id="camera")
        )

        def on_capture(goal_id, detections):
            labels = ", ".join(d.label for d in detections)
            logging.info(f"Capture fired: {goal_id} ({labels})")

        def on_guidance(reading):
            logging.debug(f"Guidance: {reading.label} width={reading.measurement}")

        session = create_session_from_config(
            config,
            on_capture=on_capture,
            on_guidance=on_guidance,
            log_sink=make_log_sink(),
        )
        driver = create_driver_from_config(config, session, source, detector)
        display = config.mapping.display_size
        driver.add_callback(make_frame_saver(args.output_dir, tuple(display) if display else None))

        web_state.set_config(raw_config)
        web_state.set_session(session)
        web_state.set_driver(driver)
        web_state.update_system_stats({"start_time": time.time()})

        if args.web or config.web.enabled:
            def run_web_app():
                uvicorn.run(
                    create_app(),
                    host=config.web.host,
                    port=config.web.port,
                    log_level="info",
                )

            web_thread = threading.Thread(target=run_web_app, daemon=True)
            web_thread.start()
            logging.info(f"Status API started on {config.web.host}:{config.web.port}")

        driver.run()

        snapshot = session.snapshot()
        logging.info(
            f"Session finished: completed={snapshot['completed_goal_ids']} done={snapshot['done']}"
        )
    except CapabilityUnavailable as e:
        logging.error(f"Cannot start capture loop: {e}")
        sys.exit(1)
    except ValueError as e:
        logging.error(f"Invalid capture plan: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
