"""Tests for engine configuration."""

from imu_gestures.config import EngineConfig


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig()
        assert config.start_threshold == 0.25
        assert config.stop_threshold == 0.95
        assert config.min_duration_ms == 1000.0
        assert config.recognition_threshold == 0.85
        assert config.phase_delay_s == 2.0
        assert config.iterations == 20000

    def test_yaml_round_trip(self, tmp_path):
        config = EngineConfig(start_threshold=0.3, iterations=500)
        path = tmp_path / "conf" / "engine.yml"
        config.to_yaml(path)
        assert EngineConfig.from_yaml(path) == config

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "engine.yml"
        path.write_text("stop_threshold: 0.5\n")
        config = EngineConfig.from_yaml(path)
        assert config.stop_threshold == 0.5
        assert config.start_threshold == 0.25

    def test_empty_file(self, tmp_path):
        path = tmp_path / "engine.yml"
        path.write_text("")
        assert EngineConfig.from_yaml(path) == EngineConfig()

    def test_unknown_keys_ignored(self):
        config = EngineConfig.from_dict({"hidden_size": 12, "colour": "red"})
        assert config.hidden_size == 12
        assert not hasattr(config, "colour")
