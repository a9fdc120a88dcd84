"""Unit tests for the configuration loader."""

import json
import pytest
from pathlib import Path

from tasktrail.core.config import (
    MAX_BULK_TARGETS,
    get_data_directory,
    get_default_config,
    get_default_config_path,
    get_section,
    load_config,
    save_config,
)


# ------------------------------------------------------------------
# get_data_directory
# ------------------------------------------------------------------

def test_get_data_directory_macos(monkeypatch):
    monkeypatch.setattr("tasktrail.core.config.sys.platform", "darwin")
    result = get_data_directory()
    assert result == Path.home() / "Library" / "Application Support" / "TaskTrail"


def test_get_data_directory_windows(monkeypatch):
    monkeypatch.setattr("tasktrail.core.config.sys.platform", "win32")
    monkeypatch.setenv("APPDATA", "/fake/appdata")
    result = get_data_directory()
    assert result == Path("/fake/appdata") / "TaskTrail"


def test_get_data_directory_windows_no_appdata(monkeypatch):
    monkeypatch.setattr("tasktrail.core.config.sys.platform", "win32")
    monkeypatch.delenv("APPDATA", raising=False)
    result = get_data_directory()
    assert result == Path.home() / "AppData" / "Roaming" / "TaskTrail"


def test_get_data_directory_linux(monkeypatch):
    monkeypatch.setattr("tasktrail.core.config.sys.platform", "linux")
    result = get_data_directory()
    assert result == Path.home() / ".tasktrail"


# ------------------------------------------------------------------
# defaults
# ------------------------------------------------------------------

def test_default_config_has_required_keys():
    cfg = get_default_config()
    assert cfg["bulk"]["max_targets"] == MAX_BULK_TARGETS
    assert cfg["bulk"]["ms_per_item"] == 50
    assert cfg["trends"]["stable_threshold"] == 0.1
    assert "database_path" in cfg


def test_default_config_path_is_json():
    assert get_default_config_path().name == "config.json"


def test_get_section_fills_missing_keys():
    section = get_section({"bulk": {"max_targets": 10}}, "bulk")
    assert section == {"max_targets": 10, "ms_per_item": 50}


def test_get_section_ignores_non_dict():
    assert get_section({"trends": "oops"}, "trends")["velocity_weeks"] == 8


# ------------------------------------------------------------------
# load / save
# ------------------------------------------------------------------

def test_load_creates_defaults_when_missing(tmp_path):
    path = tmp_path / "sub" / "config.json"
    cfg = load_config(path)
    assert path.exists()
    assert cfg == get_default_config()


def test_round_trip(tmp_path):
    path = tmp_path / "config.json"
    cfg = {"dashboard_port": 6000, "bulk": {"max_targets": 20}}
    save_config(cfg, path)
    assert load_config(path) == cfg


def test_invalid_json_returns_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_config(path) == get_default_config()


def test_non_object_returns_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps([1, 2]), encoding="utf-8")
    assert load_config(path) == get_default_config()
