"""Tests for main — the puml2drawio command line."""
from __future__ import annotations

import io

import main
import pytest
from plantuml.importer import get_supported_types
from settings import SettingsManager

SOURCE = "@startuml\nAlice -> Bob : hello\n@enduml\n"


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    manager = SettingsManager(settings_dir=tmp_path / "config")
    monkeypatch.setattr(main, "get_settings", lambda: manager)
    return manager


@pytest.fixture()
def puml(tmp_path):
    path = tmp_path / "flow.puml"
    path.write_text(SOURCE, encoding="utf-8")
    return path


class TestConvert:

    def test_to_stdout(self, puml, capsys):
        assert main.main(["convert", str(puml)]) == 0
        out = capsys.readouterr().out
        assert out.startswith("<mxfile>")
        assert 'id="puml-grp-1"' in out

    def test_to_file(self, puml, tmp_path):
        target = tmp_path / "flow.drawio"
        assert main.main(["convert", str(puml), "-o", str(target)]) == 0
        assert "<UserObject" in target.read_text(encoding="utf-8")

    def test_flags(self, puml, capsys):
        assert main.main(["convert", str(puml), "--no-document", "--no-group"]) == 0
        out = capsys.readouterr().out
        assert "<mxfile>" not in out
        assert "UserObject" not in out

    def test_group_id(self, puml, capsys):
        main.main(["convert", str(puml), "--group-id", "seq-7"])
        assert 'id="seq-7"' in capsys.readouterr().out

    def test_stdin(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", io.StringIO(SOURCE))
        assert main.main(["convert", "-"]) == 0
        assert "<mxfile>" in capsys.readouterr().out

    def test_settings_applied(self, puml, capsys, isolated_settings):
        isolated_settings.settings.output.diagram_name = "From Settings"
        isolated_settings.settings.output.group_id_prefix = "cfg"
        main.main(["convert", str(puml)])
        out = capsys.readouterr().out
        assert 'name="From Settings"' in out
        assert 'id="cfg-1"' in out

    def test_output_without_suffix_gets_extension(self, puml, tmp_path, isolated_settings):
        isolated_settings.settings.output.extension = ".xml"
        assert main.main(["convert", str(puml), "-o", str(tmp_path / "flow")]) == 0
        assert (tmp_path / "flow.xml").exists()
        assert not (tmp_path / "flow").exists()

    def test_settings_file_written(self, puml, isolated_settings):
        main.main(["convert", str(puml), "-o", str(puml.with_suffix(".drawio"))])
        assert isolated_settings.get_settings_path().exists()

    def test_unknown_input_fails(self, tmp_path, capsys):
        empty = tmp_path / "empty.puml"
        empty.write_text("' nothing here\n", encoding="utf-8")
        assert main.main(["convert", str(empty)]) == 1
        err = capsys.readouterr().err
        assert "Unable to detect PlantUML diagram type" in err


class TestDrawingCommands:

    @pytest.fixture()
    def drawing(self, puml, tmp_path):
        target = tmp_path / "flow.drawio"
        main.main(["convert", str(puml), "-o", str(target), "--group-id", "keep-me"])
        return target

    def test_extract(self, drawing, capsys):
        assert main.main(["extract", str(drawing)]) == 0
        assert capsys.readouterr().out == SOURCE

    def test_extract_without_source(self, tmp_path, capsys):
        plain = tmp_path / "plain.drawio"
        plain.write_text("<mxfile/>", encoding="utf-8")
        assert main.main(["extract", str(plain)]) == 1
        assert "No PlantUML source" in capsys.readouterr().err

    def test_regenerate_keeps_group(self, drawing, capsys):
        assert main.main(["regenerate", str(drawing)]) == 0
        assert 'id="keep-me"' in capsys.readouterr().out

    def test_regenerate_output_gets_default_extension(self, drawing, tmp_path):
        assert main.main(["regenerate", str(drawing), "-o", str(tmp_path / "again")]) == 0
        assert "keep-me" in (tmp_path / "again.drawio").read_text(encoding="utf-8")

    def test_regenerate_with_new_source(self, drawing, tmp_path, capsys):
        edited = tmp_path / "edited.puml"
        edited.write_text("@startuml\n:A;\n:B;\n@enduml\n", encoding="utf-8")
        assert main.main(["regenerate", str(drawing), "--source", str(edited)]) == 0
        out = capsys.readouterr().out
        assert 'id="keep-me"' in out
        assert "A;" in out


class TestTypes:

    def test_lists_detection_order(self, capsys):
        assert main.main(["types"]) == 0
        assert capsys.readouterr().out.split() == get_supported_types()
