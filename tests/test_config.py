"""
Smoke tests for configuration loading and validation.
"""

import pytest

from main import load_config, validate_config
from models.config import Config, DEFAULT_LABELS


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_valid_config_passes(self, valid_config):
        """A complete valid config passes validation."""
        is_valid, error = validate_config(valid_config)

        assert is_valid is True
        assert error is None

    @pytest.mark.parametrize("section", ["camera", "model", "capture", "log_path", "log_level"])
    def test_missing_required_section(self, valid_config, section):
        del valid_config[section]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert section in error

    def test_invalid_log_level(self, valid_config):
        valid_config["log_level"] = "VERBOSE"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "log_level" in error

    def test_negative_device_id(self, valid_config):
        valid_config["camera"]["device_id"] = -1

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "device_id" in error

    def test_device_id_may_be_file_path(self, valid_config):
        valid_config["camera"]["device_id"] = "clips/session.mp4"

        is_valid, _ = validate_config(valid_config)

        assert is_valid is True

    def test_missing_model_path(self, valid_config):
        valid_config["model"]["path"] = ""

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "model.path" in error

    @pytest.mark.parametrize("threshold", [0, -0.1, 1.5, "high"])
    def test_class_threshold_out_of_range(self, valid_config, threshold):
        valid_config["model"]["class_threshold"] = threshold

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "class_threshold" in error

    def test_duplicate_labels_rejected(self, valid_config):
        valid_config["model"]["labels"] = ["triangle", "triangle"]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "duplicates" in error

    def test_unknown_predicate_kind(self, valid_config):
        valid_config["capture"]["goals"][0]["predicate"] = {"kind": "smiling"}

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "predicate" in error

    def test_duplicate_goal_ids(self, valid_config):
        valid_config["capture"]["goals"][1]["id"] = "without_glass_image"

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "duplicates" in error

    def test_zero_stable_frames(self, valid_config):
        valid_config["capture"]["goals"][0]["stable_frames"] = 0

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "stable_frames" in error

    def test_negative_cooldown(self, valid_config):
        valid_config["capture"]["cooldown_ms"] = -5

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "cooldown_ms" in error

    def test_bad_display_size(self, valid_config):
        valid_config["mapping"]["display_size"] = [1280]

        is_valid, error = validate_config(valid_config)

        assert is_valid is False
        assert "display_size" in error


class TestLoadConfig:
    """Tests for layered config loading."""

    def test_loads_default_yaml(self, temp_config_dir):
        config = load_config(str(temp_config_dir / "config.yaml"))

        assert config["camera"]["resolution"] == [640, 480]
        assert config["model"]["path"] == "models/test.onnx"
        assert config["log_level"] == "INFO"

    def test_local_override_merges(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("""
capture:
  cooldown_ms: 500
log_level: "DEBUG"
""")

        config = load_config(str(temp_config_dir / "config.yaml"))

        assert config["capture"]["cooldown_ms"] == 500
        assert len(config["capture"]["goals"]) == 2
        assert config["log_level"] == "DEBUG"

    def test_explicit_path_applied_last(self, temp_config_dir):
        (temp_config_dir / "config.yaml").write_text("log_level: DEBUG\n")
        explicit = temp_config_dir / "bench.yaml"
        explicit.write_text("log_level: WARNING\nmodel:\n  class_threshold: 0.6\n")

        config = load_config(str(explicit))

        assert config["log_level"] == "WARNING"
        assert config["model"]["class_threshold"] == 0.6
        assert config["model"]["path"] == "models/test.onnx"

    def test_loaded_defaults_validate(self, temp_config_dir):
        config = load_config(str(temp_config_dir / "config.yaml"))

        is_valid, error = validate_config(config)

        assert is_valid is True, error


class TestTypedConfig:
    def test_defaults(self):
        config = Config.from_dict({})

        assert config.model.labels == DEFAULT_LABELS
        assert config.model.class_threshold == 0.5
        assert config.mapping.normalized_threshold == 1.5
        assert config.mapping.min_box_px == 5.0
        assert config.capture.cooldown_ms == 2000.0
        assert [g.id for g in config.capture.goals] == ["without_glass_image", "with_glass_image"]
        assert config.capture.goals[1].min_gap_after_previous_ms == 6000.0
        assert config.loop.max_ticks_per_second == 15.0

    def test_round_trip_preserves_goals(self, valid_config):
        config = Config.from_dict(valid_config)

        again = Config.from_dict(config.to_dict())

        assert again.capture.to_dict() == config.capture.to_dict()
        assert again.model.to_dict() == config.model.to_dict()
