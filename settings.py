"""
settings.py

Persistent settings for the puml2drawio command line.

Handles cross-platform settings storage using TOML format with platformdirs
for proper user config directory detection.

Settings file location:
    - Windows: %APPDATA%/puml2drawio/settings.toml
    - macOS: ~/Library/Application Support/puml2drawio/settings.toml
    - Linux: ~/.config/puml2drawio/settings.toml

Only the CLI reads these values; ``plantuml.importer.convert`` takes every
option as an argument.  If settings.toml is corrupted, defaults are used.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import platformdirs

# TOML reading - use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import tomli_w

APP_NAME = "puml2drawio"

# Global settings manager instance (singleton)
_settings_manager: Optional["SettingsManager"] = None


def get_settings() -> "SettingsManager":
    """Get the global settings manager instance.

    Returns:
        The singleton SettingsManager instance.
    """
    global _settings_manager
    if _settings_manager is None:
        _settings_manager = SettingsManager()
    return _settings_manager


# =============================================================================
# Sections
# =============================================================================

@dataclass
class OutputSettings:
    """Defaults for the ``convert`` and ``regenerate`` commands.

    Defaults:
        diagram_name: "PlantUML Import"
        wrap_in_document: True
        wrap_in_group: True
        group_id_prefix: "puml-grp"
        extension: ".drawio"
    """
    diagram_name: str = "PlantUML Import"  # Default: "PlantUML Import"
    wrap_in_document: bool = True          # Default: True
    wrap_in_group: bool = True             # Default: True
    group_id_prefix: str = "puml-grp"      # Default: "puml-grp" (group id "puml-grp-1")
    extension: str = ".drawio"             # Default: ".drawio"

    @property
    def group_id(self) -> str:
        return f"{self.group_id_prefix}-1"


@dataclass
class LoggingSettings:
    """Logging defaults.

    Defaults:
        level: "WARNING"
    """
    level: str = "WARNING"  # Default: "WARNING"; -v forces DEBUG


@dataclass
class AppSettings:
    """Root settings container."""
    output: OutputSettings = field(default_factory=OutputSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)


class SettingsManager:
    """Manages loading, saving, and accessing application settings.

    Settings are stored in a TOML file at the platform-appropriate location.
    If the settings file doesn't exist, defaults are used and the file is
    created on first save.

    Args:
        app_name: Application name used for the config directory.
        settings_dir: Explicit directory, overriding the platform location.
    """

    def __init__(self, app_name: str = APP_NAME, settings_dir: Optional[Path] = None):
        self.settings_dir = Path(settings_dir or platformdirs.user_config_dir(app_name))
        self.settings_file = self.settings_dir / "settings.toml"
        self.settings = self.load()
        self._needs_save = not self.settings_file.exists()  # Save if file didn't exist

    def ensure_file_complete(self) -> None:
        """Ensure settings file exists with all sections. Call once at startup."""
        if self._needs_save or not self.settings_file.exists():
            self.save()
            self._needs_save = False

    def load(self) -> AppSettings:
        """Load settings from the TOML file.

        Returns:
            AppSettings instance with values from file or defaults if file
            doesn't exist or is invalid.
        """
        if not self.settings_file.exists():
            return AppSettings()

        try:
            with open(self.settings_file, "rb") as f:
                data = tomllib.load(f)
        except (tomllib.TOMLDecodeError, OSError, UnicodeDecodeError):
            # If file is corrupted or unreadable, return defaults
            return AppSettings()
        return self._parse_toml(data)

    def _parse_toml(self, data: Dict[str, Any]) -> AppSettings:
        """Parse TOML data into AppSettings.

        Missing keys, and keys of the wrong type, keep their defaults.

        Args:
            data: Parsed TOML dictionary.

        Returns:
            AppSettings instance populated from TOML data.
        """
        settings = AppSettings()

        output = data.get("output", {})
        if isinstance(output, dict):
            o = settings.output
            o.diagram_name = _typed(output, "diagram_name", o.diagram_name)
            o.wrap_in_document = _typed(output, "wrap_in_document", o.wrap_in_document)
            o.wrap_in_group = _typed(output, "wrap_in_group", o.wrap_in_group)
            o.group_id_prefix = _typed(output, "group_id_prefix", o.group_id_prefix)
            o.extension = _typed(output, "extension", o.extension)

        log_section = data.get("logging", {})
        if isinstance(log_section, dict):
            settings.logging.level = _typed(log_section, "level", settings.logging.level).upper()

        return settings

    def save(self) -> None:
        """Save current settings to the TOML file.

        Creates the settings directory if it doesn't exist.
        """
        self.settings_dir.mkdir(parents=True, exist_ok=True)
        with open(self.settings_file, "wb") as f:
            tomli_w.dump(self._to_toml_dict(), f)

    def _to_toml_dict(self) -> Dict[str, Any]:
        """Convert settings to a TOML-compatible dictionary structure.

        Returns:
            Dictionary organized by TOML sections.
        """
        s = self.settings
        return {
            "output": {
                "diagram_name": s.output.diagram_name,
                "wrap_in_document": s.output.wrap_in_document,
                "wrap_in_group": s.output.wrap_in_group,
                "group_id_prefix": s.output.group_id_prefix,
                "extension": s.output.extension,
            },
            "logging": {
                "level": s.logging.level,
            },
        }

    def to_toml(self) -> str:
        """Convert current settings to a TOML-formatted string.

        Returns:
            TOML representation of the current settings.
        """
        return tomli_w.dumps(self._to_toml_dict())

    def get_settings_path(self) -> Path:
        """Get the path to the settings file.

        Returns:
            Path object pointing to the settings file location.
        """
        return self.settings_file


def _typed(section: Dict[str, Any], key: str, default: Any) -> Any:
    value = section.get(key, default)
    return value if isinstance(value, type(default)) else default
