"""
Tests for configuration loading and resolution.
"""

import pytest

from stackweave.config.loader import DEFAULTS, Config, _merge_dict, load_config
from stackweave.config.resolver import resolve_config
from stackweave.exceptions import ConfigurationError


class TestConfig:
    """Tests for Config class."""

    def test_basic_access(self):
        cfg = Config({"name": "edge", "gcp": {"project": "demo"}})
        assert cfg.get("name") == "edge"
        assert cfg.data["gcp"]["project"] == "demo"

    def test_defaults_merged(self):
        cfg = Config({"gcp": {"project": "demo"}})
        assert cfg.get("gcp.region") == "us-central1"
        assert cfg.get("app.replicas") == 2
        assert cfg.get("state.path") == ".stackweave/state.yaml"

    def test_defaults_not_shared(self):
        cfg = Config({})
        cfg.data["app"]["replicas"] = 9
        assert DEFAULTS["app"]["replicas"] == 2

    def test_without_defaults(self):
        cfg = Config({"a": 1}, defaults=False)
        assert list(cfg) == ["a"]

    def test_dot_notation_missing_returns_default(self):
        cfg = Config({"a": 1})
        assert cfg.get("a.b.c", "fallback") == "fallback"

    def test_none_returns_default(self):
        cfg = Config({"executor": {"max_concurrency": None}})
        assert cfg.get("executor.max_concurrency", 4) == 4

    def test_contains(self):
        cfg = Config({"a": {"b": 1}})
        assert "a" in cfg
        assert "a.b" in cfg
        assert "a.c" not in cfg

    def test_getitem(self):
        cfg = Config({"a": {"b": "c"}})
        assert cfg["a.b"] == "c"
        with pytest.raises(KeyError):
            _ = cfg["missing"]

    def test_require(self):
        cfg = Config({"gcp": {"project": ""}})
        with pytest.raises(ConfigurationError, match="Missing required configuration value 'gcp.project'") as exc_info:
            cfg.require("gcp.project")
        assert exc_info.value.details["key"] == "gcp.project"
        assert Config({"gcp": {"project": "demo"}}).require("gcp.project") == "demo"

    def test_to_dict_is_a_copy(self):
        cfg = Config({"gcp": {"project": "demo"}})
        data = cfg.to_dict()
        data["gcp"]["project"] = "other"
        assert cfg.get("gcp.project") == "demo"


class TestValidate:
    """Tests for Config.validate."""

    def test_valid(self):
        Config({"gcp": {"project": "demo"}}).validate()

    def test_collects_every_error(self):
        cfg = Config(
            {
                "gcp": {"region": "us-central1"},
                "nodes_per_zone": 0,
                "app": {"replicas": -1},
                "executor": {"max_concurrency": 0, "task_timeout": "soon"},
            }
        )
        with pytest.raises(ConfigurationError, match="Invalid configuration") as exc_info:
            cfg.validate()
        errors = exc_info.value.details["errors"]
        assert "'gcp.project' is required" in errors
        assert any("nodes_per_zone" in e for e in errors)
        assert any("app.replicas" in e for e in errors)
        assert any("executor.max_concurrency" in e for e in errors)
        assert any("executor.task_timeout" in e for e in errors)

    def test_section_must_be_mapping(self):
        cfg = Config({"gcp": {"project": "demo"}, "retry": "always"})
        with pytest.raises(ConfigurationError, match="'retry' must be a mapping"):
            cfg.validate()

    def test_bool_is_not_a_count(self):
        with pytest.raises(ConfigurationError, match="nodes_per_zone"):
            Config({"gcp": {"project": "demo"}, "nodes_per_zone": True}).validate()


class TestLoadConfig:
    """Tests for load_config."""

    def test_load_basic(self, tmp_path):
        (tmp_path / "config.yaml").write_text("name: edge\ngcp:\n  project: demo\n")
        cfg = load_config(tmp_path)
        assert cfg.get("name") == "edge"
        assert cfg.get("gcp.region") == "us-central1"

    def test_env_override(self, tmp_path):
        (tmp_path / "config.yaml").write_text("gcp:\n  project: demo\n  region: us-central1\nnodes_per_zone: 1\n")
        (tmp_path / "config.prod.yaml").write_text("gcp:\n  region: europe-west1\nnodes_per_zone: 3\n")
        cfg = load_config(tmp_path, env="prod")
        assert cfg.get("gcp.project") == "demo"
        assert cfg.get("gcp.region") == "europe-west1"
        assert cfg.get("nodes_per_zone") == 3

    def test_missing_env_file_is_ignored(self, tmp_path):
        (tmp_path / "config.yaml").write_text("gcp:\n  project: demo\n")
        assert load_config(tmp_path, env="staging").get("gcp.project") == "demo"

    def test_env_placeholder(self, tmp_path):
        (tmp_path / "config.yaml").write_text("state:\n  path: .stackweave/{env}/state.yaml\n")
        assert load_config(tmp_path, env="prod").get("state.path") == ".stackweave/prod/state.yaml"

    def test_env_var_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("STACKWEAVE_TEST_PROJECT", "from-env")
        (tmp_path / "config.yaml").write_text("gcp:\n  project: ${STACKWEAVE_TEST_PROJECT}\n")
        assert load_config(tmp_path).get("gcp.project") == "from-env"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Configuration file not found"):
            load_config(tmp_path)

    def test_invalid_yaml(self, tmp_path):
        (tmp_path / "config.yaml").write_text("gcp:\n  project: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Error parsing config.yaml"):
            load_config(tmp_path)

    def test_non_mapping(self, tmp_path):
        (tmp_path / "config.yaml").write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_config(tmp_path)


class TestResolver:
    """Tests for environment variable substitution."""

    def test_default_value(self, monkeypatch):
        monkeypatch.delenv("STACKWEAVE_UNSET_VAR", raising=False)
        resolved = resolve_config({"project": "${STACKWEAVE_UNSET_VAR:-fallback}"})
        assert resolved == {"project": "fallback"}

    def test_unset_without_default_left_as_written(self, monkeypatch):
        monkeypatch.delenv("STACKWEAVE_UNSET_VAR", raising=False)
        assert resolve_config({"project": "${STACKWEAVE_UNSET_VAR}"}) == {"project": "${STACKWEAVE_UNSET_VAR}"}

    def test_nested_and_non_strings(self, monkeypatch):
        monkeypatch.setenv("STACKWEAVE_REGION", "asia-east1")
        data = {"gcp": {"region": "${STACKWEAVE_REGION}"}, "zones": ["{env}-a", 3], "enabled": True}
        assert resolve_config(data, env="dev") == {
            "gcp": {"region": "asia-east1"},
            "zones": ["dev-a", 3],
            "enabled": True,
        }


class TestMergeDict:
    def test_nested_merge(self):
        base = {"gcp": {"project": "demo", "region": "us-central1"}, "app": {"replicas": 2}}
        _merge_dict(base, {"gcp": {"region": "europe-west1"}, "app": 4})
        assert base == {"gcp": {"project": "demo", "region": "europe-west1"}, "app": 4}
