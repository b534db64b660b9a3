"""Tests for configuration loading."""

import logging
from pathlib import Path

import pytest

from texel_plane.config import load_config, setup_logging

ENV_KEYS = [
    "TEXEL_BITBUCKET_URL",
    "TEXEL_CACHE_TTL",
    "TEXEL_TIMEOUT",
    "TEXEL_COMMIT_HOST",
    "TEXEL_SCAN_DEPTH",
    "TEXEL_SCAN_CONCURRENCY",
    "TEXEL_CHANGES_URL",
    "TEXEL_CHANGES_PREFIX",
    "TEXEL_LOG_LEVEL",
]


@pytest.fixture
def clean_env(tmp_path: Path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestConfig:
    def test_defaults(self, tmp_path: Path, clean_env):
        config = load_config(tmp_path / "missing.toml")
        assert config.bitbucket.base_url == "https://api.bitbucket.org/2.0"
        assert config.bitbucket.cache_ttl == 5.0
        assert config.bitbucket.commit_host is None
        assert config.directory.max_depth == 8
        assert config.changes.url.endswith("changes.db")
        assert config.changes.prefix == "local"
        assert config.log_level == "WARNING"

    def test_env_override(self, tmp_path: Path, clean_env, monkeypatch):
        monkeypatch.setenv("TEXEL_CACHE_TTL", "0.5")
        monkeypatch.setenv("TEXEL_SCAN_DEPTH", "3")
        monkeypatch.setenv("TEXEL_CHANGES_URL", "sqlite://")
        monkeypatch.setenv("TEXEL_COMMIT_HOST", "ci")

        config = load_config(tmp_path / "missing.toml")
        assert config.bitbucket.cache_ttl == 0.5
        assert config.bitbucket.commit_host == "ci"
        assert config.directory.max_depth == 3
        assert config.changes.url == "sqlite://"

    def test_toml_file(self, tmp_path: Path, clean_env):
        toml_path = tmp_path / "texel.toml"
        toml_path.write_text("""
log_level = "DEBUG"

[bitbucket]
base_url = "https://bitbucket.example/2.0"
page_length = 50

[directory]
concurrency = 2

[changes]
prefix = "team"
""")
        config = load_config(toml_path)
        assert config.bitbucket.base_url == "https://bitbucket.example/2.0"
        assert config.bitbucket.page_length == 50
        assert config.directory.concurrency == 2
        assert config.changes.prefix == "team"
        assert config.log_level == "DEBUG"

    def test_toml_in_working_directory(self, tmp_path: Path, clean_env):
        (tmp_path / "texel.toml").write_text('[bitbucket]\ntimeout = 3.5\n')

        config = load_config()
        assert config.bitbucket.timeout == 3.5

    def test_env_overrides_toml(self, tmp_path: Path, clean_env, monkeypatch):
        monkeypatch.setenv("TEXEL_BITBUCKET_URL", "https://env.example/2.0")

        toml_path = tmp_path / "texel.toml"
        toml_path.write_text("""
[bitbucket]
base_url = "https://bitbucket.example/2.0"
""")
        config = load_config(toml_path)
        assert config.bitbucket.base_url == "https://env.example/2.0"  # env wins

    def test_setup_logging(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.append(kw))

        setup_logging("debug")
        setup_logging("nonsense")

        assert calls[0]["level"] == logging.DEBUG
        assert calls[1]["level"] == logging.INFO
