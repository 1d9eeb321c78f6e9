"""
Configuration management for the calendar index.

Settings are stored as a TOML file (``calendar.toml``) next to the vault or
in the calindex home directory. They describe which extra date properties to
index and how notes, tags and task markers are drawn.
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import tomli_w


CONFIG_FILENAME = "calendar.toml"
CONFIG_VERSION = 1


def get_home_dir() -> Path:
    """Directory for calindex state (config fallback, error log)."""
    home = os.environ.get("CALINDEX_HOME")
    if home:
        return Path(home)
    return Path.home() / ".calindex"


@dataclass
class MarkerStyle:
    """How a synthesized marker or a tag is drawn."""
    symbol: Optional[str] = None
    color: Optional[str] = None


@dataclass
class DateProperty:
    """A custom frontmatter key that places a note on a date."""
    name: str
    color: Optional[str] = None
    symbol: Optional[str] = None
    recurring: bool = False


@dataclass
class TaskMarkers:
    """Marker styles for task dates. A None style disables that marker."""
    scheduled: Optional[MarkerStyle] = field(
        default_factory=lambda: MarkerStyle("⏳", "var(--color-orange-text)"))
    due: Optional[MarkerStyle] = field(
        default_factory=lambda: MarkerStyle("📅", "var(--color-red-text)"))
    completed: Optional[MarkerStyle] = field(
        default_factory=lambda: MarkerStyle("✅", "var(--color-green-text)"))


@dataclass
class HolidaySource:
    """A stored holiday list: a country code or a custom named list."""
    type: str
    country_code: Optional[str] = None
    name: Optional[str] = None
    color: Optional[str] = None

    @property
    def source_id(self) -> str:
        if self.type == "country" and self.country_code:
            return self.country_code.upper()
        return "_".join((self.name or "").split())


@dataclass
class CalendarSettings:
    """Complete calendar configuration."""
    path: Optional[Path] = None
    version: int = CONFIG_VERSION

    default_dot_color: str = "var(--color-red-text)"
    default_bar_color: str = "var(--color-blue-text)"
    tag_appearance: dict[str, MarkerStyle] = field(default_factory=dict)
    collapse_duplicate_symbols: bool = True
    dots_only_for_tags: bool = False
    dots_only_for_properties: bool = False
    max_symbols: int = 5

    custom_date_properties: list[DateProperty] = field(default_factory=list)
    task_markers: TaskMarkers = field(default_factory=TaskMarkers)

    holiday_folder: str = "Holidays"
    holiday_sources: list[HolidaySource] = field(default_factory=list)

    @property
    def config_path(self) -> Optional[Path]:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME if self.path else None

    def exists(self) -> bool:
        path = self.config_path
        return path is not None and path.exists()


# -------------------------------------------------------------------------
# TOML <-> settings
# -------------------------------------------------------------------------

def _parse_style(section: Any) -> Optional[MarkerStyle]:
    if not isinstance(section, dict):
        return None
    if section.get("enabled") is False:
        return None
    return MarkerStyle(symbol=section.get("symbol"), color=section.get("color"))


def _style_to_dict(style: Optional[MarkerStyle]) -> dict:
    if style is None:
        return {"enabled": False}
    d = {}
    if style.symbol is not None:
        d["symbol"] = style.symbol
    if style.color is not None:
        d["color"] = style.color
    return d


def settings_from_dict(data: dict, path: Optional[Path] = None) -> CalendarSettings:
    """
    Build settings from parsed TOML data.

    Raises:
        ValueError: If the config version is newer than supported
    """
    version = data.get("calendar", {}).get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    display = data.get("display", {})
    defaults = CalendarSettings()

    tags = {
        name: style
        for name, section in data.get("tags", {}).items()
        if (style := _parse_style(section)) is not None
    }

    properties = [
        DateProperty(
            name=p["name"],
            color=p.get("color"),
            symbol=p.get("symbol"),
            recurring=bool(p.get("recurring", False)),
        )
        for p in data.get("date_properties", [])
        if p.get("name")
    ]

    task_section = data.get("tasks", {})
    default_markers = TaskMarkers()
    markers = TaskMarkers(**{
        kind: _parse_style(task_section[kind]) if kind in task_section else getattr(default_markers, kind)
        for kind in ("scheduled", "due", "completed")
    })

    holidays = data.get("holidays", {})
    sources = [
        HolidaySource(
            type=s.get("type", "country"),
            country_code=s.get("country_code"),
            name=s.get("name"),
            color=s.get("color"),
        )
        for s in holidays.get("sources", [])
    ]

    return CalendarSettings(
        path=path,
        version=version,
        default_dot_color=display.get("default_dot_color", defaults.default_dot_color),
        default_bar_color=display.get("default_bar_color", defaults.default_bar_color),
        tag_appearance=tags,
        collapse_duplicate_symbols=display.get("collapse_duplicate_symbols", defaults.collapse_duplicate_symbols),
        dots_only_for_tags=display.get("dots_only_for_tags", defaults.dots_only_for_tags),
        dots_only_for_properties=display.get("dots_only_for_properties", defaults.dots_only_for_properties),
        max_symbols=display.get("max_symbols", defaults.max_symbols),
        custom_date_properties=properties,
        task_markers=markers,
        holiday_folder=holidays.get("folder", defaults.holiday_folder),
        holiday_sources=sources,
    )


def settings_to_dict(settings: CalendarSettings) -> dict:
    """Build the TOML structure for settings."""
    def prop_to_dict(p: DateProperty) -> dict:
        d: dict[str, Any] = {"name": p.name, "recurring": p.recurring}
        if p.color is not None:
            d["color"] = p.color
        if p.symbol is not None:
            d["symbol"] = p.symbol
        return d

    def source_to_dict(s: HolidaySource) -> dict:
        d = {"type": s.type}
        for key in ("country_code", "name", "color"):
            value = getattr(s, key)
            if value is not None:
                d[key] = value
        return d

    return {
        "calendar": {"version": settings.version},
        "display": {
            "default_dot_color": settings.default_dot_color,
            "default_bar_color": settings.default_bar_color,
            "collapse_duplicate_symbols": settings.collapse_duplicate_symbols,
            "dots_only_for_tags": settings.dots_only_for_tags,
            "dots_only_for_properties": settings.dots_only_for_properties,
            "max_symbols": settings.max_symbols,
        },
        "tags": {name: _style_to_dict(style) for name, style in settings.tag_appearance.items()},
        "date_properties": [prop_to_dict(p) for p in settings.custom_date_properties],
        "tasks": {
            kind: _style_to_dict(getattr(settings.task_markers, kind))
            for kind in ("scheduled", "due", "completed")
        },
        "holidays": {
            "folder": settings.holiday_folder,
            "sources": [source_to_dict(s) for s in settings.holiday_sources],
        },
    }


def load_settings(config_dir: Path) -> CalendarSettings:
    """
    Load settings from a directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = config_dir / CONFIG_FILENAME
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid config {config_path}: {e}") from e

    return settings_from_dict(data, path=config_dir)


def save_settings(settings: CalendarSettings) -> None:
    """
    Save settings to their directory.

    Creates the directory if it doesn't exist.
    """
    if settings.path is None:
        raise ValueError("Settings have no directory to save to")
    settings.path.mkdir(parents=True, exist_ok=True)
    with open(settings.config_path, "wb") as f:
        tomli_w.dump(settings_to_dict(settings), f)


def load_or_default_settings(config_dir: Optional[Path]) -> CalendarSettings:
    """
    Load settings from ``config_dir`` if present, otherwise defaults.

    A missing config is not written into the vault.
    """
    if config_dir is not None and (config_dir / CONFIG_FILENAME).exists():
        return load_settings(config_dir)
    return CalendarSettings(path=config_dir)
