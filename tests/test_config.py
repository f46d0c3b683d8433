"""
tests/test_config.py — YAML Configuration Loader
=================================================
"""

from __future__ import annotations

import dataclasses

import pytest

from bazaar.config import BazaarConfig, load_config


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_partial_file_overrides_only_named_keys(tmp_path):
    cfg = load_config(_write(tmp_path, "pool_size: 2\noperation_timeout: 5\n"))
    assert cfg.pool_size == 2
    assert cfg.operation_timeout == 5.0
    assert isinstance(cfg.operation_timeout, float)
    assert cfg.max_overflow == BazaarConfig().max_overflow


def test_empty_file_gives_defaults(tmp_path):
    assert load_config(_write(tmp_path, "")) == BazaarConfig()


def test_log_level_upper_cased(tmp_path):
    assert load_config(_write(tmp_path, "log_level: debug\n")).log_level == "DEBUG"


def test_unknown_key_rejected(tmp_path):
    with pytest.raises(ValueError, match="database_url"):
        load_config(_write(tmp_path, "database_url: sqlite://\n"))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
    assert load_config(tmp_path / "nope.yaml", required=False) == BazaarConfig()


def test_config_is_frozen():
    with pytest.raises(dataclasses.FrozenInstanceError):
        BazaarConfig().pool_size = 99
