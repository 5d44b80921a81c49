"""Tests for drawio/builder.py and drawio/colors.py — the XML primitive layer."""
from __future__ import annotations

import xml.etree.ElementTree as ET

import pytest
from drawio.builder import (
    Cell,
    IdGenerator,
    MalformedCell,
    bounding_box,
    build_document,
    build_style,
    build_user_object,
    edge,
    free_edge,
    merge_style,
    parse_style,
    serialize_cells,
    vertex,
    xml_escape,
    xml_unescape,
)
from drawio.colors import normalize_color


# ═══════════════════════════════════════════════════════════
# Escaping
# ═══════════════════════════════════════════════════════════

class TestEscaping:

    def test_escapes_markup_characters(self):
        assert xml_escape("a<b>&\"c'") == "a&lt;b&gt;&amp;&quot;c&apos;"

    def test_escapes_line_breaks(self):
        assert xml_escape("a\nb\rc") == "a&#xa;b&#xd;c"

    def test_none_is_empty(self):
        assert xml_escape(None) == ""

    def test_unescape_inverts(self):
        text = "@startuml\nA -> B : <<x>> & \"y\"\r\n@enduml"
        assert xml_unescape(xml_escape(text)) == text

    def test_unescape_keeps_escaped_entities_literal(self):
        assert xml_unescape("&amp;lt;") == "&lt;"

    def test_stereotype_markers_escaped(self):
        assert xml_escape("<<interface>>") == "&lt;&lt;interface&gt;&gt;"


# ═══════════════════════════════════════════════════════════
# Styles
# ═══════════════════════════════════════════════════════════

class TestStyles:

    def test_trailing_semicolon(self):
        assert build_style({"rounded": 1, "html": 1}) == "rounded=1;html=1;"

    def test_bare_key(self):
        assert build_style({"ellipse": None, "fillColor": "#000000"}) == "ellipse;fillColor=#000000;"

    def test_empty_map(self):
        assert build_style({}) == ""
        assert build_style(None) == ""

    def test_numbers_formatted(self):
        assert build_style({"opacity": 30.0, "size": 0.25, "dashed": True}) == "opacity=30;size=0.25;dashed=1;"

    def test_parse_and_merge(self):
        style = "shape=note;fillColor=#FFF2CC;"
        assert parse_style(style) == {"shape": "note", "fillColor": "#FFF2CC"}
        assert merge_style(style, fillColor="#FF0000") == "shape=note;fillColor=#FF0000;"


# ═══════════════════════════════════════════════════════════
# Cells
# ═══════════════════════════════════════════════════════════

class TestCells:

    def test_empty_id_is_malformed(self):
        with pytest.raises(MalformedCell):
            Cell(id="")

    def test_vertex_attribute_order(self):
        xml = vertex("puml-1", "A & B", "rounded=1;", "grp", 10, 20, 120, 60).to_xml()
        assert xml.startswith('<mxCell id="puml-1" value="A &amp; B" style="rounded=1;" vertex="1" parent="grp">')
        assert '<mxGeometry x="10" y="20" width="120" height="60" as="geometry"/>' in xml

    def test_edge_source_target(self):
        xml = edge("puml-3", "", "endArrow=block;", "grp", "puml-1", "puml-2").to_xml()
        root = ET.fromstring(xml)
        assert root.get("edge") == "1"
        assert root.get("source") == "puml-1"
        assert root.get("target") == "puml-2"
        assert root.find("mxGeometry").get("relative") == "1"

    def test_free_edge_points(self):
        cell = free_edge("e", "", "", "1", (0, 0), (100, 50), [(50, 0), (50, 50)])
        root = ET.fromstring(cell.to_xml())
        geo = root.find("mxGeometry")
        assert geo.find("mxPoint[@as='sourcePoint']").get("x") == "0"
        assert geo.find("mxPoint[@as='targetPoint']").get("y") == "50"
        assert len(geo.find("Array").findall("mxPoint")) == 2

    def test_id_generator_sequence(self):
        gen = IdGenerator("puml")
        assert [gen(), gen(), gen()] == ["puml-1", "puml-2", "puml-3"]

    def test_bounding_box_only_counts_parent(self):
        cells = [
            vertex("a", "", "", "grp", 10, 10, 100, 50),
            vertex("b", "", "", "other", 500, 500, 100, 50),
            free_edge("c", "", "", "grp", (0, 0), (300, 20)),
        ]
        assert bounding_box(cells, "grp") == (300, 60)


# ═══════════════════════════════════════════════════════════
# Framing
# ═══════════════════════════════════════════════════════════

class TestFraming:

    def test_document_is_well_formed(self):
        cells = serialize_cells([vertex("puml-1", "A", "", "grp", 0, 0, 10, 10)])
        body = build_user_object("grp", "@startuml\nA\n@enduml", cells, 30, 30)
        root = ET.fromstring(build_document(body, "Page"))
        assert root.tag == "mxfile"
        assert root.find("diagram").get("name") == "Page"
        ids = [c.get("id") for c in root.iter("mxCell")]
        assert ids[:2] == ["0", "1"]
        user = root.find(".//UserObject")
        assert user.get("plantUml") == "@startuml\nA\n@enduml"
        assert user.find("mxCell").get("style") == "group;editable=0;connectable=0;"

    def test_user_object_requires_id(self):
        with pytest.raises(MalformedCell):
            build_user_object("", "x", "")


# ═══════════════════════════════════════════════════════════
# Colours
# ═══════════════════════════════════════════════════════════

class TestColors:

    @pytest.mark.parametrize("raw, expected", [
        ("#LightBlue", "#ADD8E6"),
        ("red", "#FF0000"),
        ("#f00", "#F00"),
        ("FFAA00", "#FFAA00"),
        ("#abcdef", "#ABCDEF"),
    ])
    def test_known_spellings(self, raw, expected):
        assert normalize_color(raw) == expected

    def test_unknown_passes_through(self):
        assert normalize_color("#NotAColour") == "#NotAColour"

    def test_empty(self):
        assert normalize_color(None) is None
        assert normalize_color("") is None
