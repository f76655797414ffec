"""
Tests for the capture session.
"""

import pytest

from models.capture_event import GuidanceReading
from models.config import Config
from runtime.session import create_session_from_config


@pytest.fixture
def config(valid_config):
    return Config.from_dict(valid_config)


class TestGuidance:
    def test_reports_best_width_per_tracked_label(self, config, det):
        readings = []
        session = create_session_from_config(config, on_guidance=readings.append)

        session.report_guidance([
            det("triangle", 0.6, bbox=(0, 0, 50, 50)),
            det("triangle", 0.9, bbox=(0, 0, 123.456, 50)),
            det("glass", 0.8, bbox=(10, 0, 40, 50)),
            det("left_square", 0.99, bbox=(0, 0, 300, 50)),
        ])

        assert readings == [
            GuidanceReading(label="triangle", measurement=123.46),
            GuidanceReading(label="glass", measurement=30.0),
        ]

    def test_absent_labels_not_reported(self, config, det):
        readings = []
        session = create_session_from_config(config, on_guidance=readings.append)

        session.report_guidance([det("left_circle")])

        assert readings == []

    def test_guidance_callback_error_logged(self, config, det, caplog):
        def boom(reading):
            raise RuntimeError("bar widget gone")

        session = create_session_from_config(config, on_guidance=boom)

        readings = session.report_guidance([det("triangle")])

        assert len(readings) == 1
        assert "bar widget gone" in caplog.text


class TestSessionLifecycle:
    def test_process_records_events(self, config, det):
        captured = []
        session = create_session_from_config(config, on_capture=lambda gid, dets: captured.append(gid))

        session.process([det("triangle")], 0)
        event = session.process([det("triangle")], 100)

        assert event.goal_id == "without_glass_image"
        assert captured == ["without_glass_image"]
        assert [e.goal_id for e in session.events] == ["without_glass_image"]

    def test_reset_request_applied_later(self, config, det):
        session = create_session_from_config(config)
        session.process([det("triangle")], 0)
        session.process([det("triangle")], 100)

        session.request_reset()
        assert session.automaton.state.goal_index == 1

        assert session.apply_pending_reset() is True
        assert session.automaton.state.goal_index == 0
        assert session.events == []
        assert session.apply_pending_reset() is False

    def test_snapshot_includes_events(self, config, det):
        session = create_session_from_config(config)
        session.process([det("triangle")], 0)
        session.process([det("triangle")], 100)

        snap = session.snapshot()

        assert snap["completed_goal_ids"] == ["without_glass_image"]
        assert snap["events"] == [{"goal_id": "without_glass_image", "timestamp_ms": 100, "detections": 1}]

    def test_log_sink_errors_swallowed(self, config, caplog):
        def bad_sink(message):
            raise IOError("console closed")

        session = create_session_from_config(config, log_sink=bad_sink)

        session.log("hello")

        assert "console closed" in caplog.text

    def test_invalid_plan_raises(self, valid_config):
        valid_config["capture"]["goals"][0]["predicate"] = {"kind": "nope"}

        with pytest.raises(ValueError):
            create_session_from_config(Config.from_dict(valid_config))
