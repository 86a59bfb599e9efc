"""Tests for the config system."""

import pytest

from mates_prefs.core.config import MatesConfig, MatrixConfig, PrefsConfig, ServerConfig


def test_prefs_defaults():
    cfg = PrefsConfig()
    assert cfg.event_type == "dev.mates.user_prefs"
    assert cfg.poll_interval == 0.4
    assert cfg.avatar_size == 48
    assert cfg.home_label == "home"
    assert cfg.api_name == "matesUserData"


def test_matrix_defaults():
    cfg = MatrixConfig()
    assert cfg.homeserver == "https://matrix.org"
    assert cfg.request_timeout * 1000 > cfg.sync_timeout_ms


def test_matrix_from_env(monkeypatch):
    monkeypatch.setenv("MATRIX_HOMESERVER", "https://hs.example/")
    monkeypatch.setenv("MATRIX_ACCESS_TOKEN", "syt_abc")
    monkeypatch.setenv("MATRIX_USER_ID", "@me:hs.example")
    monkeypatch.setenv("MATES_SYNC_TIMEOUT_MS", "1000")
    cfg = MatrixConfig.from_env()
    assert cfg.homeserver == "https://hs.example"
    assert cfg.access_token == "syt_abc"
    assert cfg.user_id == "@me:hs.example"
    assert cfg.sync_timeout_ms == 1000


def test_prefs_from_env(monkeypatch):
    monkeypatch.setenv("MATES_PREFS_EVENT_TYPE", "org.example.prefs")
    monkeypatch.setenv("MATES_POLL_INTERVAL", "0.1")
    monkeypatch.setenv("MATES_ACTIVE_SPACE", "Team")
    cfg = PrefsConfig.from_env()
    assert cfg.event_type == "org.example.prefs"
    assert cfg.poll_interval == 0.1
    assert cfg.active_space == "Team"


@pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("no", False), ("", False)])
def test_debug_api_flag(monkeypatch, raw, expected):
    monkeypatch.setenv("MATES_DEBUG_API", raw)
    assert ServerConfig.from_env().debug_api is expected


def test_config_frozen():
    cfg = PrefsConfig()
    with pytest.raises(Exception):
        cfg.event_type = "something-else"  # type: ignore


def test_config_composition():
    cfg = MatesConfig()
    assert cfg.prefs.event_type == "dev.mates.user_prefs"
    assert cfg.server.port == 8010
