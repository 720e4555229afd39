"""
Tests for configuration loading
"""

import pytest
import yaml

from cortexviz.config import CortexVizConfig


class TestDefaults:
    def test_defaults_are_valid(self):
        config = CortexVizConfig()
        assert config.validate() == []
        assert config.compressor.max_bucket_count == 200
        assert config.display.hide_below_count == 1

    def test_threshold_for_layer(self):
        config = CortexVizConfig()
        config.clustering.layer_thresholds["rgn-1/layer-3"] = 12.0
        assert config.clustering.threshold_for("rgn-1", "layer-3") == 12.0
        assert config.clustering.threshold_for("rgn-0", "layer-3") == 7.0


class TestYaml:
    def test_round_trip(self, tmp_path):
        config = CortexVizConfig()
        config.compressor.max_bucket_count = 50
        config.clustering.layer_thresholds = {"rgn-0/layer-4": 3.0}
        config.journal.fetch_timeout_sec = None
        path = tmp_path / "cortexviz.yaml"

        config.to_yaml(path)
        loaded = CortexVizConfig.from_yaml(path)

        assert loaded.to_dict() == config.to_dict()

    def test_partial_file_keeps_defaults(self, tmp_path):
        path = tmp_path / "cortexviz.yaml"
        path.write_text(yaml.safe_dump({"display": {"hide_below_count": 3}}))

        config = CortexVizConfig.from_yaml(path)

        assert config.display.hide_below_count == 3
        assert config.compressor.max_bucket_count == 200

    def test_missing_file_gives_defaults(self, tmp_path):
        config = CortexVizConfig.from_yaml(tmp_path / "nope.yaml")
        assert config.to_dict() == CortexVizConfig().to_dict()

    def test_unknown_keys_rejected(self):
        with pytest.raises(ValueError):
            CortexVizConfig.from_dict({"compressor": {"max_buckets": 3}})
        with pytest.raises(ValueError):
            CortexVizConfig.from_dict({"renderer": {}})


class TestEnv:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CORTEXVIZ_MAX_BUCKETS", "64")
        monkeypatch.setenv("CORTEXVIZ_THRESHOLD", "4.5")
        monkeypatch.setenv("CORTEXVIZ_HIDE_BELOW", "2")
        monkeypatch.setenv("CORTEXVIZ_FETCH_TIMEOUT", "0")
        monkeypatch.setenv("CORTEXVIZ_DEBUG", "true")
        monkeypatch.setenv("CORTEXVIZ_LOG_LEVEL", "debug")

        config = CortexVizConfig.from_env()

        assert config.compressor.max_bucket_count == 64
        assert config.clustering.default_threshold == 4.5
        assert config.display.hide_below_count == 2.0
        assert config.journal.fetch_timeout_sec is None
        assert config.debug
        assert config.log_level == "DEBUG"

    def test_env_applies_over_base(self, monkeypatch):
        monkeypatch.delenv("CORTEXVIZ_MAX_BUCKETS", raising=False)
        monkeypatch.setenv("CORTEXVIZ_THRESHOLD", "2")
        base = CortexVizConfig()
        base.compressor.max_bucket_count = 10

        config = CortexVizConfig.from_env(base)

        assert config.compressor.max_bucket_count == 10
        assert config.clustering.default_threshold == 2.0


class TestValidate:
    def test_reports_problems(self):
        config = CortexVizConfig()
        config.compressor.max_bucket_count = 0
        config.clustering.layer_thresholds = {"layer-3": 1.0}
        config.journal.fetch_timeout_sec = -1
        config.log_level = "LOUD"

        problems = config.validate()

        assert len(problems) == 4
        assert any("max_bucket_count" in p for p in problems)
        assert any("'layer-3'" in p for p in problems)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
