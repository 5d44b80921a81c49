"""Tests for plantuml/common.py — helpers shared by every dialect."""
from __future__ import annotations

from plantuml.common import (
    Decor,
    LineStyle,
    dedent_note,
    has_start_marker,
    html_label,
    iter_source_lines,
    line_style_of,
    name_to_code,
    parse_bracket_style,
    rank_layers,
    relation_style,
    unquote,
)


class TestSourceLines:

    def test_skips_framing_and_comments(self):
        text = (
            "@startuml\n"
            "' a comment\n"
            "skinparam monochrome true\n"
            "A -> B\n"
            "/' block\n"
            "still comment '/\n"
            "!include foo.puml\n"
            "@enduml\n"
        )
        lines = [line for line, _ in iter_source_lines(text) if line]
        assert lines == ["A -> B"]

    def test_skinparam_and_style_blocks(self):
        text = "skinparam class {\n  BackgroundColor red\n}\n<style>\nx\n</style>\nclass A"
        lines = [line for line, _ in iter_source_lines(text) if line]
        assert lines == ["class A"]

    def test_inline_block_comment_removed(self):
        lines = [line for line, _ in iter_source_lines("A /' note '/ -> B")]
        assert lines == ["A  -> B"]

    def test_raw_keeps_indentation(self):
        pairs = list(iter_source_lines("  indented  "))
        assert pairs == [("indented", "  indented")]


class TestNames:

    def test_name_to_code(self):
        assert name_to_code("Guest User") == "GuestUser"
        assert name_to_code("a.b_c-d!") == "a.b_cd"

    def test_unquote(self):
        assert unquote('"x y"') == "x y"
        assert unquote("x") == "x"

    def test_html_label(self):
        assert html_label("a\\nb\nc") == "a<br>b<br>c"

    def test_start_marker(self):
        assert has_start_marker("@startstate\n", "state")
        assert not has_start_marker("@startuml\n", "state")
        assert has_start_marker("  @startstate\n", "state")

    def test_start_marker_only_at_line_start(self):
        assert not has_start_marker("@startuml\n' see @startclass\n", "class")
        assert not has_start_marker("A -> B : @startstate\n", "state")


class TestDedentNote:

    def test_common_indent_removed(self):
        assert dedent_note(["    first", "      second", "", "    third"]) == "first\n  second\n\nthird"

    def test_blank_edges_trimmed(self):
        assert dedent_note(["", "  x", "  "]) == "x"


class TestRelationStyle:

    def test_line_styles(self):
        assert line_style_of("--") == LineStyle.SOLID
        assert line_style_of("..") == LineStyle.DASHED
        assert line_style_of("==") == LineStyle.BOLD
        assert line_style_of("~~") == LineStyle.DOTTED

    def test_extends_is_hollow_block(self):
        style = relation_style(Decor.EXTENDS, Decor.NONE, LineStyle.SOLID)
        assert style["startArrow"] == "block"
        assert style["startFill"] == 0
        assert style["endArrow"] == "none"

    def test_dashed_and_color(self):
        style = relation_style(Decor.NONE, Decor.ARROW, LineStyle.DASHED, "red")
        assert style["dashed"] == 1
        assert style["strokeColor"] == "#FF0000"

    def test_bracket_style(self):
        assert parse_bracket_style("[#blue,dashed]") == {"color": "#blue", "line_style": LineStyle.DASHED}
        assert parse_bracket_style("[thickness=3]") == {"line_style": LineStyle.BOLD}
        assert parse_bracket_style(None) == {}


class TestRankLayers:

    def test_chain(self):
        assert rank_layers(["a", "b", "c"], [("a", "b"), ("b", "c")]) == [["a"], ["b"], ["c"]]

    def test_back_edge_ignored(self):
        assert rank_layers(["a", "b"], [("a", "b"), ("b", "a")]) == [["a"], ["b"]]

    def test_unlinked_nodes_share_first_layer(self):
        assert rank_layers(["a", "b", "c"], [("a", "c")]) == [["a", "b"], ["c"]]

    def test_empty(self):
        assert rank_layers([], []) == []
