"""Tests for plantuml/importer — dialect detection, conversion and regeneration."""
from __future__ import annotations

import xml.etree.ElementTree as ET

import pytest
from drawio.builder import parse_style
from plantuml import importer
from plantuml.importer import (
    DEFAULT_GROUP_ID,
    GROUP_MARGIN,
    DiagramHandler,
    SourceNotFound,
    UnknownDialect,
    convert,
    detect_diagram_type,
    extract_plantuml,
    get_supported_types,
    regenerate,
    register_diagram_handler,
)

SEQUENCE = "@startuml\nAlice -> Bob : hello\nBob --> Alice : ok\n@enduml"
CLASS = "@startuml\nclass Foo\nclass Bar\nFoo <|-- Bar\n@enduml"
ACTIVITY_IF = (
    "@startuml\nstart\nif (x?) then (yes)\n:A;\nelseif (y?) then (yes)\n:B;\n"
    "else (no)\n:C;\nendif\nstop\n@enduml"
)
STATE_CHAIN = "@startuml\n[*] --> A\nA --> B : go\nB --> [*]\n@enduml"
STATE_COMPOSITE = "@startuml\nstate Outer {\n[*] --> Inner\nInner --> [*]\n}\n@enduml"
ACTIVITY_PAIR = "@startuml\n:A;\n:B;\n@enduml"
TIMING = "@startuml\nrobust \"Web\" as W\nconcise C\n@0\nW is Idle\n@100\nW is Busy\n@enduml"
USECASE = "@startuml\nactor User\nUser --> (Login)\n@enduml"
COMPONENT = "@startuml\n[Web] --> [DB]\n@enduml"


def _cells(xml):
    root = ET.fromstring(xml)
    return list(root.iter("mxCell"))


def _styles(cells):
    return [parse_style(c.get("style") or "") for c in cells]


def _edges(cells):
    return [c for c in cells if c.get("edge") == "1"]


def _vertices(cells):
    return [c for c in cells if c.get("vertex") == "1"]


# ═══════════════════════════════════════════════════════════
# Detection
# ═══════════════════════════════════════════════════════════

class TestDetection:

    @pytest.mark.parametrize("source, expected", [
        (SEQUENCE, "sequence"),
        (CLASS, "class"),
        (ACTIVITY_IF, "activity"),
        (STATE_CHAIN, "state"),
        (STATE_COMPOSITE, "state"),
        (ACTIVITY_PAIR, "activity"),
        (TIMING, "timing"),
        (USECASE, "usecase"),
        (COMPONENT, "component"),
    ])
    def test_heuristics(self, source, expected):
        assert detect_diagram_type(source) == expected

    def test_fixed_order(self):
        assert get_supported_types()[:7] == [
            "class", "usecase", "component", "timing", "state", "activity", "sequence",
        ]

    def test_marker_wins_over_heuristics(self):
        assert detect_diagram_type("@startstate\nAlice -> Bob\n@endstate") == "state"
        assert detect_diagram_type("@startdeployment\nnode N\n@enddeployment") == "component"

    def test_marker_inside_comment_or_label_ignored(self):
        assert detect_diagram_type("@startuml\n' see @startclass\nAlice -> Bob\n@enduml") == "sequence"
        assert detect_diagram_type("@startuml\nAlice -> Bob : @startstate\n@enduml") == "sequence"

    def test_sequence_reply_is_not_state(self):
        assert detect_diagram_type("A -> B : ask\nB --> A : answer") == "sequence"

    @pytest.mark.parametrize("source", [
        "",
        "   \n\n",
        "@startuml\n' only a comment\n/' and a block '/\n@enduml",
    ])
    def test_nothing_recognised(self, source):
        assert detect_diagram_type(source) is None
        with pytest.raises(UnknownDialect) as exc_info:
            convert(source)
        assert exc_info.value.supported == get_supported_types()
        assert "sequence" in str(exc_info.value)


class TestRegistry:

    @pytest.fixture()
    def handlers(self, monkeypatch):
        monkeypatch.setattr(importer, "_HANDLERS", dict(importer._HANDLERS))
        return importer._HANDLERS

    def test_rejects_incomplete_handler(self, handlers):
        with pytest.raises(TypeError):
            register_diagram_handler("bad", object())
        assert "bad" not in handlers

    def test_custom_handler_tried_last(self, handlers):
        handler = DiagramHandler(
            detect=lambda text: "ping" in text,
            parse=lambda text: text,
            emit=lambda model, parent_id: [],
            markers=("ping",),
        )
        register_diagram_handler("ping", handler)
        assert get_supported_types()[-1] == "ping"
        assert detect_diagram_type("ping") == "ping"
        assert detect_diagram_type("@startping\nA -> B\n@endping") == "ping"
        assert detect_diagram_type(SEQUENCE) == "sequence"
        assert convert("ping").diagram_type == "ping"


# ═══════════════════════════════════════════════════════════
# Conversion scenarios
# ═══════════════════════════════════════════════════════════

class TestScenarios:

    def test_sequence_messages(self):
        result = convert(SEQUENCE)
        assert result.diagram_type == "sequence"
        messages = [
            c for c in _edges(_cells(result.xml))
            if parse_style(c.get("style")).get("endArrow") != "none"
        ]
        assert len(messages) == 2
        first, second = _styles(messages)
        assert first["endArrow"] == second["endArrow"] == "block"
        assert "dashed" not in first
        assert second["dashed"] == "1"

    def test_class_inheritance(self):
        result = convert(CLASS)
        assert result.diagram_type == "class"
        cells = _cells(result.xml)
        swimlanes = [c for c in _vertices(cells) if "swimlane" in parse_style(c.get("style"))]
        assert sorted(c.get("value") for c in swimlanes) == ["Bar", "Foo"]
        ids = {c.get("value"): c.get("id") for c in swimlanes}
        (link,) = _edges(cells)
        style = parse_style(link.get("style"))
        assert (style["endArrow"], style["endFill"]) == ("block", "0")
        assert (link.get("source"), link.get("target")) == (ids["Bar"], ids["Foo"])

    def test_activity_if_chain(self):
        result = convert(ACTIVITY_IF)
        assert result.diagram_type == "activity"
        cells = _cells(result.xml)
        styles = _styles(_vertices(cells))
        assert len([s for s in styles if s.get("shape") == "rhombus"]) == 3
        values = [c.get("value") for c in _vertices(cells)]
        for action in ("A", "B", "C"):
            assert values.count(action) == 1
        labels = [c.get("value") for c in _edges(cells) if c.get("value")]
        assert labels == ["yes", "yes", "no"]

    def test_state_chain(self):
        result = convert(STATE_CHAIN)
        assert result.diagram_type == "state"
        cells = _cells(result.xml)
        assert len(_edges(cells)) == 3
        ellipses = [s for s in _styles(_vertices(cells)) if "ellipse" in s]
        # initial, plus outer ring and inner bullet of the final state
        assert len(ellipses) == 3

    def test_state_composite_container(self):
        result = convert(STATE_COMPOSITE)
        cells = _cells(result.xml)
        outer = next(c for c in cells if c.get("value") == "Outer")
        inner = next(c for c in cells if c.get("value") == "Inner")
        assert parse_style(outer.get("style"))["container"] == "1"
        assert inner.get("parent") in (outer.get("id"), DEFAULT_GROUP_ID)

    def test_activity_pair(self):
        result = convert(ACTIVITY_PAIR)
        cells = _cells(result.xml)
        ids = {c.get("value"): c.get("id") for c in _vertices(cells)}
        (link,) = _edges(cells)
        assert (link.get("source"), link.get("target")) == (ids["A"], ids["B"])


# ═══════════════════════════════════════════════════════════
# Document structure
# ═══════════════════════════════════════════════════════════

class TestDocument:

    @pytest.mark.parametrize("source", [
        SEQUENCE, CLASS, ACTIVITY_IF, STATE_CHAIN, STATE_COMPOSITE, TIMING, USECASE, COMPONENT,
    ])
    def test_ids_unique_and_parents_resolve(self, source):
        root = ET.fromstring(convert(source).xml)
        cells = [c for c in root.iter("mxCell") if c.get("id") is not None]
        ids = [c.get("id") for c in cells] + [g.get("id") for g in root.iter("UserObject")]
        assert len(ids) == len(set(ids))
        known = set(ids)
        for c in cells:
            if c.get("id") == "0":
                continue
            assert c.get("parent") in known
        for c in _edges(cells):
            for end in ("source", "target"):
                if c.get(end) is not None:
                    assert c.get(end) in known

    def test_document_frame(self):
        root = ET.fromstring(convert(SEQUENCE, diagram_name="Flow").xml)
        assert root.tag == "mxfile"
        assert root.find("diagram").get("name") == "Flow"
        assert [c.get("id") for c in root.iter("mxCell")][:2] == ["0", "1"]

    def test_group_embeds_source(self):
        root = ET.fromstring(convert(CLASS).xml)
        group = next(root.iter("UserObject"))
        assert group.get("id") == DEFAULT_GROUP_ID
        assert group.get("plantUml") == CLASS
        assert "editable=0" in group.find("mxCell").get("style")

    def test_group_sized_around_children(self):
        xml = convert(ACTIVITY_PAIR).xml
        root = ET.fromstring(xml)
        geo = next(root.iter("UserObject")).find("mxCell/mxGeometry")
        children = [c for c in root.iter("mxCell") if c.get("parent") == DEFAULT_GROUP_ID]
        right = max(
            float(g.get("x")) + float(g.get("width"))
            for g in (c.find("mxGeometry") for c in children if c.get("vertex") == "1")
        )
        assert float(geo.get("width")) == pytest.approx(right + GROUP_MARGIN)

    def test_unwrapped_output(self):
        xml = convert(ACTIVITY_PAIR, wrap_in_document=False, wrap_in_group=False).xml
        assert "<mxfile>" not in xml
        assert "UserObject" not in xml
        cells = _cells(f"<root>{xml}</root>")
        assert {c.get("parent") for c in cells} == {"1"}

    def test_special_characters_survive(self):
        source = '@startuml\nAlice -> Bob : a < b & "c"\n@enduml'
        xml = convert(source).xml
        assert extract_plantuml(xml) == source
        labels = [c.get("value") for c in _edges(_cells(xml))]
        assert 'a < b & "c"' in labels


# ═══════════════════════════════════════════════════════════
# Regeneration
# ═══════════════════════════════════════════════════════════

class TestRegenerate:

    def test_extract_round_trip(self):
        xml = convert(STATE_COMPOSITE).xml
        assert extract_plantuml(xml) == STATE_COMPOSITE

    def test_extract_missing(self):
        assert extract_plantuml("<mxfile/>") is None

    def test_regenerate_is_idempotent(self):
        first = convert(ACTIVITY_IF)
        again = regenerate(first.xml)
        assert again.xml == first.xml
        assert again.diagram_type == "activity"

    def test_regenerate_keeps_group_id(self):
        xml = convert(CLASS, group_id="my-group").xml
        again = regenerate(xml)
        assert 'id="my-group"' in again.xml
        assert DEFAULT_GROUP_ID not in again.xml

    def test_regenerate_with_new_source(self):
        xml = convert(CLASS, group_id="g7").xml
        again = regenerate(xml, SEQUENCE)
        assert again.diagram_type == "sequence"
        assert extract_plantuml(again.xml) == SEQUENCE
        assert 'id="g7"' in again.xml

    def test_regenerate_without_source(self):
        with pytest.raises(SourceNotFound):
            regenerate("<mxfile><diagram/></mxfile>")
