"""Tests for lib/bestiary/config.py"""

import logging
import os

from bestiary import config


def test_bestiary_paths(monkeypatch):
    monkeypatch.setenv("BESTIARY_PATHS", os.pathsep.join(["a.json", " ", "b.json "]))
    assert config.get_bestiary_paths() == ["a.json", "b.json"]
    monkeypatch.delenv("BESTIARY_PATHS")
    assert config.get_bestiary_paths() == []


def test_storage_settings(monkeypatch):
    monkeypatch.setenv("STORAGE_API_BASE", "https://store.test/ ")
    monkeypatch.setenv("STORAGE_API_KEY", " key ")
    assert config.get_storage_base_url() == "https://store.test"
    assert config.get_storage_api_key() == "key"


def test_render_settings(monkeypatch):
    monkeypatch.delenv("RENDER_HOST", raising=False)
    monkeypatch.setenv("RENDER_PORT", "not-a-port")
    assert config.get_render_host() == "127.0.0.1"
    assert config.get_render_port() == 8788
    monkeypatch.setenv("RENDER_PORT", "9000")
    assert config.get_render_port() == 9000


def test_log_level(monkeypatch):
    monkeypatch.setenv("BESTIARY_LOG_LEVEL", "debug")
    assert config.get_log_level() == "DEBUG"
    monkeypatch.delenv("BESTIARY_LOG_LEVEL")
    assert config.get_log_level() == "INFO"


def test_configure_logging_once(monkeypatch):
    root = logging.getLogger()
    level = root.level
    try:
        config.configure_logging("warning")
        count = len(root.handlers)
        assert config.configure_logging("DEBUG") is root
        assert len(root.handlers) == count
        assert root.level == logging.DEBUG
    finally:
        root.setLevel(level)
