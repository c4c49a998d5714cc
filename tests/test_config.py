"""Tests for the config module."""

import os

import pytest

from logscout.config import (
    Config,
    SourceConfig,
    config_from_dict,
    dedup_sources,
    load_config,
    resolve_config_path,
)
from logscout.errors import ConfigError

ENV_VARS = [
    "LOGSCOUT_POLL_INTERVAL", "LOGSCOUT_QUEUE_CAPACITY",
    "LOGSCOUT_SHUTDOWN_TIMEOUT", "LOGSCOUT_KILL_TIMEOUT", "LOGSCOUT_CONFIG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for k in ENV_VARS:
        monkeypatch.delenv(k, raising=False)


def _write(tmp_path, text: str) -> str:
    p = tmp_path / "config.yaml"
    p.write_text(text)
    return str(p)


VALID_YAML = """
follow: true
include: ["ERROR"]
exclude: ["healthcheck"]
sources:
  - name: app
    type: file
    path: /var/log/app.log
  - name: kernel
    type: command
    command: journalctl
    args: ["-k", "-f"]
"""


class TestConfigDefaults:
    def test_defaults(self):
        cfg = Config()
        assert cfg.follow is False
        assert cfg.include == ()
        assert cfg.exclude == ()
        assert cfg.poll_interval == 0.25
        assert cfg.queue_capacity == 64
        assert cfg.shutdown_timeout == 5.0
        assert cfg.kill_timeout == 2.0

    def test_frozen(self):
        cfg = Config()
        with pytest.raises(AttributeError):
            cfg.follow = True


class TestLoadConfig:
    def test_valid_file(self, tmp_path):
        cfg = load_config(_write(tmp_path, VALID_YAML))
        assert cfg.follow is True
        assert cfg.include == ("ERROR",)
        assert cfg.exclude == ("healthcheck",)
        assert cfg.sources[0] == SourceConfig(name="app", kind="file", path="/var/log/app.log")
        assert cfg.sources[1] == SourceConfig(
            name="kernel", kind="command", command="journalctl", args=("-k", "-f"),
        )

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="failed to read"):
            load_config(str(tmp_path / "nope.yaml"))

    def test_bad_yaml(self, tmp_path):
        with pytest.raises(ConfigError, match="failed to parse YAML"):
            load_config(_write(tmp_path, "sources: [unclosed"))

    def test_empty_file(self, tmp_path):
        with pytest.raises(ConfigError, match="empty"):
            load_config(_write(tmp_path, ""))

    def test_follow_override(self, tmp_path):
        cfg = load_config(_write(tmp_path, VALID_YAML), follow=False)
        assert cfg.follow is False

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOGSCOUT_POLL_INTERVAL", "0.05")
        monkeypatch.setenv("LOGSCOUT_QUEUE_CAPACITY", "8")
        monkeypatch.setenv("LOGSCOUT_SHUTDOWN_TIMEOUT", "1.5")
        monkeypatch.setenv("LOGSCOUT_KILL_TIMEOUT", "0.5")
        cfg = load_config(_write(tmp_path, VALID_YAML))
        assert cfg.poll_interval == 0.05
        assert cfg.queue_capacity == 8
        assert cfg.shutdown_timeout == 1.5
        assert cfg.kill_timeout == 0.5

    def test_bad_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOGSCOUT_QUEUE_CAPACITY", "lots")
        with pytest.raises(ConfigError, match="environment"):
            load_config(_write(tmp_path, VALID_YAML))

    def test_non_positive_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LOGSCOUT_POLL_INTERVAL", "0")
        with pytest.raises(ConfigError, match="positive"):
            load_config(_write(tmp_path, VALID_YAML))


class TestValidation:
    def test_no_sources(self):
        with pytest.raises(ConfigError, match="sources"):
            config_from_dict({"sources": []})

    def test_missing_sources_key(self):
        with pytest.raises(ConfigError):
            config_from_dict({"follow": True})

    def test_not_a_mapping(self):
        with pytest.raises(ConfigError):
            config_from_dict(["a", "b"])

    def test_blank_name(self):
        with pytest.raises(ConfigError):
            config_from_dict({"sources": [{"name": "  ", "type": "file", "path": "x"}]})

    def test_unknown_type(self):
        with pytest.raises(ConfigError):
            config_from_dict({"sources": [{"name": "a", "type": "socket"}]})

    def test_missing_type(self):
        with pytest.raises(ConfigError):
            config_from_dict({"sources": [{"name": "a", "path": "x"}]})

    def test_kind_alias(self):
        cfg = config_from_dict({"sources": [{"name": "a", "kind": "file", "path": "x"}]})
        assert cfg.sources[0].kind == "file"

    def test_include_must_be_strings(self):
        with pytest.raises(ConfigError):
            config_from_dict({"include": [1], "sources": [{"name": "a", "type": "file"}]})

    def test_all_errors_reported(self):
        with pytest.raises(ConfigError) as exc:
            config_from_dict({"follow": "yes", "poll_interval": -1,
                              "sources": [{"name": "a", "type": "file"}]})
        msg = str(exc.value)
        assert "follow" in msg
        assert "poll_interval" in msg

    def test_follow_is_optional_and_defaults_off(self):
        cfg = config_from_dict({"sources": [{"name": "a", "type": "file", "path": "x"}]})
        assert cfg.follow is False

    def test_follow_must_be_boolean(self):
        with pytest.raises(ConfigError, match="follow"):
            config_from_dict({"follow": "yes",
                              "sources": [{"name": "a", "type": "file", "path": "x"}]})

    def test_missing_path_is_not_a_config_error(self):
        cfg = config_from_dict({"sources": [{"name": "a", "type": "file"}]})
        assert cfg.sources[0].path is None

    def test_name_is_stripped(self):
        cfg = config_from_dict({"sources": [{"name": " app ", "type": "file", "path": "x"}]})
        assert cfg.sources[0].name == "app"


class TestDedup:
    def test_keeps_first(self):
        sources = [
            SourceConfig(name="a", kind="file", path="1"),
            SourceConfig(name="b", kind="file", path="2"),
            SourceConfig(name="a", kind="file", path="3"),
        ]
        result = dedup_sources(sources)
        assert [s.path for s in result] == ["1", "2"]

    def test_config_dedups(self):
        cfg = config_from_dict({"sources": [
            {"name": "a", "type": "file", "path": "1"},
            {"name": "a", "type": "command", "command": "ls"},
        ]})
        assert len(cfg.sources) == 1
        assert cfg.sources[0].kind == "file"


class TestResolvePath:
    def test_cli_wins(self, monkeypatch):
        monkeypatch.setenv("LOGSCOUT_CONFIG", "/env.yaml")
        assert resolve_config_path("/cli.yaml") == "/cli.yaml"

    def test_env(self, monkeypatch):
        monkeypatch.setenv("LOGSCOUT_CONFIG", "/env.yaml")
        assert resolve_config_path(None) == "/env.yaml"

    def test_default(self):
        assert resolve_config_path(None) == "config.yaml"
