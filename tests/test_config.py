"""Tests for config loading and merging."""

import pytest

from chat_exporter.config import DEFAULTS, deep_merge, load_config, service_config


def test_deep_merge_nested():
    target = {"a": {"x": 1, "y": 2}, "b": 1}
    deep_merge(target, {"a": {"y": 3}, "c": 4})
    assert target == {"a": {"x": 1, "y": 3}, "b": 1, "c": 4}


def test_file_overrides_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("markdown:\n  heading_level: 2\ncdp:\n  port: 9333\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg["markdown"]["heading_level"] == 2
    assert cfg["markdown"]["turn_style"] == "merged"
    assert cfg["cdp"]["port"] == 9333
    assert cfg["cdp"]["host"] == DEFAULTS["cdp"]["host"]


def test_defaults_are_not_mutated(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("output:\n  format: json\n", encoding="utf-8")
    load_config(path)
    assert DEFAULTS["output"]["format"] == "md"


def test_explicit_missing_path_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path)["output"]["format"] == "md"


def test_non_mapping_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_service_config():
    assert service_config(DEFAULTS, "copilot")["assistant_label"] == "Copilot"
    with pytest.raises(KeyError):
        service_config(DEFAULTS, "bard")
