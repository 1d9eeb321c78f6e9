"""Tests for calendar.toml settings."""

import pytest

from calindex.config import (
    CONFIG_FILENAME,
    CalendarSettings,
    DateProperty,
    HolidaySource,
    MarkerStyle,
    TaskMarkers,
    load_or_default_settings,
    load_settings,
    save_settings,
)


class TestLoad:

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path)

    def test_default_is_not_written(self, tmp_path):
        settings = load_or_default_settings(tmp_path)
        assert settings.path == tmp_path
        assert settings.custom_date_properties == []
        assert not (tmp_path / CONFIG_FILENAME).exists()

    def test_invalid_toml(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("[display\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_settings(tmp_path)

    def test_newer_version_rejected(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("[calendar]\nversion = 99\n", encoding="utf-8")
        with pytest.raises(ValueError, match="newer"):
            load_settings(tmp_path)

    def test_sections(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("""
[display]
max_symbols = 3
dots_only_for_tags = true

[tags."#work"]
symbol = "💼"
color = "blue"

[tags."#hidden"]
enabled = false

[[date_properties]]
name = "deadline"
symbol = "!"

[[date_properties]]
name = "anniversary"
recurring = true

[tasks.due]
enabled = false

[holidays]
folder = "Cal/Holidays"

[[holidays.sources]]
type = "country"
country_code = "us"
""", encoding="utf-8")
        settings = load_settings(tmp_path)
        assert settings.max_symbols == 3
        assert settings.dots_only_for_tags
        assert settings.collapse_duplicate_symbols
        assert settings.tag_appearance == {"#work": MarkerStyle("💼", "blue")}
        assert settings.custom_date_properties == [
            DateProperty(name="deadline", symbol="!"),
            DateProperty(name="anniversary", recurring=True),
        ]
        assert settings.task_markers.due is None
        assert settings.task_markers.scheduled == TaskMarkers().scheduled
        assert settings.holiday_folder == "Cal/Holidays"
        assert [s.source_id for s in settings.holiday_sources] == ["US"]


class TestSave:

    def test_saved_settings_load_back(self, tmp_path):
        settings = CalendarSettings(
            path=tmp_path / "cfg",
            max_symbols=4,
            tag_appearance={"#meeting": MarkerStyle(symbol="👥")},
            custom_date_properties=[DateProperty(name="birthday", color="pink", recurring=True)],
            task_markers=TaskMarkers(completed=None),
            holiday_sources=[HolidaySource(type="custom", name="Team Days", color="blue")],
        )
        save_settings(settings)
        assert settings.exists()
        assert load_settings(tmp_path / "cfg") == settings

    def test_save_without_directory(self):
        with pytest.raises(ValueError):
            save_settings(CalendarSettings())
