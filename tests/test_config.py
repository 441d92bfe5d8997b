import json

import pytest

from gradebook.config import load_settings


def test_defaults_without_config(tmp_data_dir, monkeypatch):
    monkeypatch.delenv("GRADEBOOK_LOG_LEVEL", raising=False)
    monkeypatch.delenv("GRADEBOOK_CORS_ORIGINS", raising=False)
    settings = load_settings(str(tmp_data_dir))
    assert settings.data_dir == str(tmp_data_dir)
    assert settings.passing_mark == 10.0
    assert settings.max_note == 20.0
    assert settings.log_level == "INFO"
    assert settings.cors_origins == ["http://localhost:5173"]


def test_grading_settings_from_config_json(tmp_data_dir):
    (tmp_data_dir / "config.json").write_text(json.dumps({
        "grading_settings": {"passing_mark": 50, "max_note": 100}
    }))
    settings = load_settings(str(tmp_data_dir))
    assert settings.passing_mark == 50.0
    assert settings.max_note == 100.0


def test_environment_overrides(tmp_data_dir, monkeypatch):
    monkeypatch.setenv("GRADEBOOK_DATA_DIR", str(tmp_data_dir))
    monkeypatch.setenv("GRADEBOOK_LOG_LEVEL", "debug")
    monkeypatch.setenv("GRADEBOOK_CORS_ORIGINS", "http://a.test, http://b.test,")
    settings = load_settings()
    assert settings.data_dir == str(tmp_data_dir)
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins == ["http://a.test", "http://b.test"]


def test_rejects_non_positive_scale(tmp_data_dir):
    (tmp_data_dir / "config.json").write_text(json.dumps({"grading_settings": {"max_note": 0}}))
    with pytest.raises(ValueError):
        load_settings(str(tmp_data_dir))


def test_config_json_wins_over_environment(tmp_data_dir, monkeypatch):
    monkeypatch.setenv("GRADEBOOK_PASSING_MARK", "12")
    monkeypatch.setenv("GRADEBOOK_MAX_NOTE", "40")
    (tmp_data_dir / "config.json").write_text(json.dumps({"grading_settings": {"max_note": 100}}))
    settings = load_settings(str(tmp_data_dir))
    assert settings.passing_mark == 12.0
    assert settings.max_note == 100.0


def test_rejects_unknown_log_level(tmp_data_dir, monkeypatch):
    monkeypatch.setenv("GRADEBOOK_LOG_LEVEL", "chatty")
    with pytest.raises(ValueError):
        load_settings(str(tmp_data_dir))
