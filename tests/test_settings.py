"""Tests for settings persistence and validation."""

import json

import pytest

from trombinoscope import settings as settings_mod
from trombinoscope.settings import Settings, load_settings, save_settings, validate_settings


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    monkeypatch.setattr(settings_mod, "config_dir", lambda: tmp_path)
    return tmp_path


def _valid(**overrides):
    data = Settings().to_json()
    data.update(overrides)
    return data


class TestValidate:
    def test_defaults_are_valid(self):
        assert validate_settings(Settings().to_json()) == []

    def test_not_a_dict(self):
        assert validate_settings([1, 2]) == ["Settings data must be a dict"]

    def test_missing_keys(self):
        errors = validate_settings({"aspect_ratio": [4, 5]})
        assert len(errors) == 1
        assert "jpeg_quality" in errors[0]

    @pytest.mark.parametrize("overrides", [
        {"aspect_ratio": [4]},
        {"aspect_ratio": [4, 0]},
        {"aspect_ratio": [4, 5.5]},
        {"aspect_ratio": "4:5"},
        {"step_base": 0},
        {"step_base": True},
        {"step_base": 2.5},
        {"modifier_multipliers": []},
        {"modifier_multipliers": {"shift": 0}},
        {"modifier_multipliers": {"meta": 2}},
        {"modifier_multipliers": {"alt": "3"}},
        {"jpeg_quality": 0},
        {"jpeg_quality": 101},
    ])
    def test_invalid_values(self, overrides):
        assert validate_settings(_valid(**overrides))

    def test_partial_multipliers_are_fine(self):
        assert validate_settings(_valid(modifier_multipliers={"shift": 2.5})) == []


class TestLoadSave:
    def test_first_launch_writes_defaults(self, config_home):
        loaded = load_settings()
        assert loaded == Settings()
        raw = json.loads((config_home / "settings.json").read_text(encoding="utf-8"))
        assert raw["version"] == 1
        assert raw["settings"]["aspect_ratio"] == [4, 5]

    def test_round_trip(self, config_home):
        custom = Settings(aspect_ratio=(3, 2), step_base=4, modifier_multipliers={"shift": 10}, jpeg_quality=80)
        save_settings(custom)
        assert load_settings() == custom

    def test_save_rejects_invalid(self, config_home):
        with pytest.raises(ValueError):
            save_settings(Settings(step_base=0))
        assert not (config_home / "settings.json").exists()

    @pytest.mark.parametrize("content", [
        "{not json",
        json.dumps({"aspect_ratio": [4, 5]}),
        json.dumps({"version": 99, "settings": Settings().to_json()}),
        json.dumps({"version": 1, "settings": {"step_base": -1}}),
    ])
    def test_bad_file_restores_defaults(self, config_home, content):
        path = config_home / "settings.json"
        path.write_text(content, encoding="utf-8")
        assert load_settings() == Settings()
        assert json.loads(path.read_text(encoding="utf-8"))["settings"] == Settings().to_json()
