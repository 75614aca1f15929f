"""Tests for run-config validation and runtime settings."""

import json

import pytest

from promptloop.api.models import ConfigError
from promptloop.config import DEFAULT_BUDGET, Settings, load_config, load_tooling_config
from tests.conftest import make_config


class TestLoadConfig:
    def test_valid_config(self):
        config = load_config(json.dumps(make_config()))
        assert config.model == "test-model"
        assert config.delims.reasoning == ("<think>", "</think>")
        assert config.delims.tool_call == ("<tool_call>", "</tool_call>")
        assert config.budget == 20000

    def test_optional_fields_default(self):
        raw = make_config()
        for key in ("api_key", "temperature", "budget"):
            del raw[key]
        del raw["delims"]["reasoning"]
        config = load_config(json.dumps(raw))
        assert config.api_key is None
        assert config.temperature is None
        assert config.top_p is None
        assert config.delims.reasoning is None
        assert config.budget == DEFAULT_BUDGET
        assert config.stream is True

    def test_unknown_keys_ignored(self):
        config = load_config(json.dumps(make_config(workspace_dir="/tmp/x")))
        assert not hasattr(config, "workspace_dir")

    @pytest.mark.parametrize("field", ["base_url", "model", "delims"])
    def test_missing_required_field(self, field):
        raw = make_config()
        del raw[field]
        with pytest.raises(ConfigError, match=field):
            load_config(json.dumps(raw))

    def test_missing_tool_call_delims(self):
        raw = make_config()
        del raw["delims"]["tool_call"]
        with pytest.raises(ConfigError, match="delims.tool_call"):
            load_config(json.dumps(raw))

    def test_delim_pair_must_have_two_items(self):
        raw = make_config()
        raw["delims"]["available_tools"] = ["<tools>"]
        with pytest.raises(ConfigError):
            load_config(json.dumps(raw))

    def test_empty_delimiter_rejected(self):
        raw = make_config()
        raw["delims"]["tool_call"] = ["", "</tool_call>"]
        with pytest.raises(ConfigError, match="non-empty"):
            load_config(json.dumps(raw))

    def test_negative_budget_rejected(self):
        with pytest.raises(ConfigError, match="budget"):
            load_config(json.dumps(make_config(budget=-1)))

    def test_malformed_json(self):
        with pytest.raises(ConfigError):
            load_config("{")

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            load_config("[]")


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("PROMPTLOOP_COMPLETION_MAX_ATTEMPTS", raising=False)
        s = Settings(_env_file=None)
        assert s.completion_max_attempts == 5
        assert s.log_level == "info"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("PROMPTLOOP_COMPLETION_MAX_ATTEMPTS", "9")
        assert Settings(_env_file=None).completion_max_attempts == 9

    def test_backoff_doubles_and_caps(self):
        s = Settings(retry_backoff_base=1.0, retry_backoff_max=5.0, _env_file=None)
        assert [s.backoff_delay(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


class TestLoadToolingConfig:
    def test_defaults(self):
        cfg = load_tooling_config(json.dumps(make_config()))
        assert cfg.system_prompt == ""
        assert cfg.status_tool == "status"
        assert cfg.workspace_dir is None

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"workspace_dir": 5}, "workspace_dir"),
            ({"status_tool": 7}, "status_tool"),
            ({"status_tool": ""}, "status_tool"),
            ({"system_prompt": None}, "system_prompt"),
        ],
    )
    def test_wrong_types_rejected(self, overrides, field):
        with pytest.raises(ConfigError, match=field):
            load_tooling_config(json.dumps(make_config(**overrides)))
