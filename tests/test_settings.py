"""Tests for settings — TOML persistence and tolerant loading."""
from __future__ import annotations

import pytest
from settings import AppSettings, SettingsManager


@pytest.fixture()
def manager(tmp_path):
    return SettingsManager(settings_dir=tmp_path)


class TestSettingsManager:

    def test_defaults_without_file(self, manager):
        s = manager.settings
        assert s.output.diagram_name == "PlantUML Import"
        assert s.output.wrap_in_document and s.output.wrap_in_group
        assert s.output.group_id == "puml-grp-1"
        assert s.logging.level == "WARNING"

    def test_file_created_on_first_run(self, manager, tmp_path):
        assert not (tmp_path / "settings.toml").exists()
        manager.ensure_file_complete()
        assert manager.get_settings_path() == tmp_path / "settings.toml"
        assert manager.get_settings_path().exists()

    def test_save_and_reload(self, manager, tmp_path):
        manager.settings.output.diagram_name = "Flows"
        manager.settings.output.wrap_in_group = False
        manager.settings.logging.level = "DEBUG"
        manager.save()

        reloaded = SettingsManager(settings_dir=tmp_path).settings
        assert reloaded.output.diagram_name == "Flows"
        assert reloaded.output.wrap_in_group is False
        assert reloaded.logging.level == "DEBUG"

    def test_corrupt_file_uses_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text("[output\nname = ", encoding="utf-8")
        assert SettingsManager(settings_dir=tmp_path).settings == AppSettings()

    def test_wrong_types_keep_defaults(self, tmp_path):
        (tmp_path / "settings.toml").write_text(
            "[output]\n"
            "wrap_in_group = \"no\"\n"
            "extension = 3\n"
            "group_id_prefix = \"diagram\"\n"
            "[logging]\n"
            "level = \"info\"\n",
            encoding="utf-8",
        )
        s = SettingsManager(settings_dir=tmp_path).settings
        assert s.output.wrap_in_group is True
        assert s.output.extension == ".drawio"
        assert s.output.group_id == "diagram-1"
        assert s.logging.level == "INFO"

    def test_section_of_wrong_shape_ignored(self, tmp_path):
        (tmp_path / "settings.toml").write_text("output = 5\n", encoding="utf-8")
        assert SettingsManager(settings_dir=tmp_path).settings == AppSettings()

    def test_to_toml(self, manager):
        text = manager.to_toml()
        assert "[output]" in text
        assert 'diagram_name = "PlantUML Import"' in text
        assert "[logging]" in text
