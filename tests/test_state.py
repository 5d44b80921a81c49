"""Tests for plantuml/state — pseudostate scoping, composites and emission."""
from __future__ import annotations

import pytest
from drawio.builder import parse_style
from plantuml.common import DIRECTION_WORDS
from plantuml.state.emitter import (
    BAR_STYLE,
    CHOICE_STYLE,
    FINAL_OUTER_STYLE,
    SEPARATOR_STYLE,
    emit_state_diagram,
)
from plantuml.state.model import Direction, StateType
from plantuml.state.parser import parse_arrow_style, parse_line_color, parse_state_diagram, type_from_stereotype


def _types(diagram):
    return sorted(el.type for el in diagram.elements.values())


# ═══════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════

class TestHelpers:

    def test_pseudostate_stereotypes(self):
        assert type_from_stereotype("<<choice>>") == StateType.CHOICE
        assert type_from_stereotype("<< fork >>") == StateType.FORK_JOIN
        assert type_from_stereotype("<<history*>>") == StateType.DEEP_HISTORY
        assert type_from_stereotype("<<business>>") is None

    def test_arrow_style(self):
        assert parse_arrow_style("#red,dashed") == {"line_style": "dashed", "color": "#red"}
        assert parse_arrow_style(None) == {"line_style": None, "color": None}

    def test_line_color(self):
        assert parse_line_color("##[dashed]blue") == ("blue", "dashed")
        assert parse_line_color("##red") == ("red", None)


# ═══════════════════════════════════════════════════════════
# Parser
# ═══════════════════════════════════════════════════════════

class TestParser:

    def test_simple_chain(self):
        d = parse_state_diagram("@startuml\n[*] --> A\nA --> B : go\nB --> [*]\n@enduml")
        assert len(d.elements) == 4
        assert _types(d) == sorted([StateType.INITIAL, StateType.STATE, StateType.STATE, StateType.FINAL])
        assert len(d.transitions) == 3
        assert d.transitions[1].label == "go"

    def test_composite_scoped_pseudostates(self):
        d = parse_state_diagram(
            "[*] --> Outer\n"
            "state Outer {\n"
            "[*] --> Inner\n"
            "Inner --> [*]\n"
            "}\n"
            "Outer --> [*]\n"
        )
        outer = d.elements["Outer"]
        assert outer.is_composite
        inner_codes = [c for c in outer.children if c.startswith("__")]
        assert any(c.startswith("__initial_Outer__") for c in inner_codes)
        assert any(c.startswith("__final_Outer__") for c in inner_codes)
        top_pseudo = [c for c in d.top_level() if c.startswith("__")]
        assert len(top_pseudo) == 2
        assert not set(top_pseudo) & set(inner_codes)
        assert d.elements["Inner"].parent_code == "Outer"
        assert len(outer.child_transitions) == 2
        assert len(d.transitions) == 4

    def test_concurrent_regions(self):
        d = parse_state_diagram(
            "state Active {\n"
            "[*] --> A\n"
            "--\n"
            "[*] --> B\n"
            "}\n"
        )
        active = d.elements["Active"]
        assert len(active.regions) == 2
        assert active.children == []
        assert "A" in active.regions[0].elements
        assert "B" in active.regions[1].elements
        initials = [c for c in active.all_children() if d.elements[c].type == StateType.INITIAL]
        assert len(set(initials)) == 2

    def test_history_scoped_to_owner(self):
        d = parse_state_diagram("state S {\nA --> [H]\n}\nX --> S[H]")
        history = [c for c, el in d.elements.items() if el.type == StateType.HISTORY]
        assert history == ["__history_S__"]
        assert d.elements["__history_S__"].parent_code == "S"

    def test_declarations(self):
        d = parse_state_diagram(
            'state "Long Name" as LN #LightBlue ##[dashed]red\n'
            "state c1 <<choice>>\n"
            "state Idle : waiting\n"
            "Idle : entry / reset\n"
        )
        ln = d.elements["LN"]
        assert ln.display_name == "Long Name"
        assert ln.color == "#LightBlue"
        assert (ln.line_color, ln.line_style) == ("red", "dashed")
        assert d.elements["c1"].type == StateType.CHOICE
        assert d.elements["Idle"].descriptions == ["waiting", "entry / reset"]

    def test_arrow_variants(self):
        d = parse_state_diagram("A -[#red,dashed]-> B\nA -right-> C\nD <-- E")
        styled, directed, reverse = d.transitions
        assert (styled.color, styled.line_style) == ("#red", "dashed")
        assert directed.direction == DIRECTION_WORDS["right"]
        assert (reverse.source, reverse.target) == ("E", "D")

    def test_synchro_bar(self):
        d = parse_state_diagram("A --> ==sync==\n==sync== --> B")
        assert d.elements["sync"].type == StateType.SYNCHRO_BAR
        assert len(d.transitions) == 2

    def test_directives_and_notes(self):
        d = parse_state_diagram(
            "title Machine\n"
            "left to right direction\n"
            "hide empty description\n"
            "A --> B\n"
            "note left of A : first\n"
            "note on link : on the edge\n"
            "note right of B\n"
            "  multi\n"
            "end note\n"
        )
        assert d.title == "Machine"
        assert d.direction == Direction.LEFT_TO_RIGHT
        assert d.hide_empty_description
        assert [n.text for n in d.notes] == ["first", "on the edge", "multi"]
        assert d.notes[1].link_index == 0
        assert d.notes[2].entity_code == "B"

    def test_stray_closer_ignored(self):
        d = parse_state_diagram("}\nA --> B")
        assert len(d.transitions) == 1


# ═══════════════════════════════════════════════════════════
# Emitter
# ═══════════════════════════════════════════════════════════

class TestEmitter:

    @pytest.fixture()
    def chain(self):
        d = parse_state_diagram("@startuml\n[*] --> A\nA --> B : go\nB --> [*]\n@enduml")
        return emit_state_diagram(d, "grp")

    def test_final_is_two_cells(self, chain):
        ellipses = [c for c in chain if c.vertex and "ellipse" in parse_style(c.style)]
        assert len(ellipses) == 3
        assert len([c for c in chain if c.style == FINAL_OUTER_STYLE]) == 1

    def test_transitions(self, chain):
        edges = [c for c in chain if c.edge]
        assert len(edges) == 3
        assert [c.value for c in edges] == ["", "go", ""]
        assert all(parse_style(c.style)["endArrow"] == "block" for c in edges)

    def test_states_flow_downwards(self, chain):
        a = next(c for c in chain if c.value == "A")
        b = next(c for c in chain if c.value == "B")
        assert a.geometry.y < b.geometry.y

    def test_composite_is_container(self):
        d = parse_state_diagram("state Outer {\n[*] --> Inner\nInner --> [*]\n}")
        cells = emit_state_diagram(d, "grp")
        outer = next(c for c in cells if c.value == "Outer")
        inner = next(c for c in cells if c.value == "Inner")
        assert parse_style(outer.style)["container"] == "1"
        assert cells.index(outer) < cells.index(inner)
        og, ig = outer.geometry, inner.geometry
        assert og.x < ig.x and ig.x + ig.width < og.x + og.width
        assert og.y < ig.y and ig.y + ig.height < og.y + og.height

    def test_region_separator(self):
        d = parse_state_diagram("state Active {\n[*] --> A\n--\n[*] --> B\n}")
        cells = emit_state_diagram(d, "1")
        assert len([c for c in cells if c.style == SEPARATOR_STYLE]) == 1

    def test_pseudostate_shapes(self):
        d = parse_state_diagram("state c <<choice>>\nstate f <<fork>>\nc --> f")
        cells = emit_state_diagram(d, "1")
        styles = [c.style for c in cells if c.vertex]
        assert CHOICE_STYLE in styles
        assert BAR_STYLE in styles

    def test_described_state_has_body(self):
        d = parse_state_diagram("Idle : entry / reset\nIdle : exit / log")
        cells = emit_state_diagram(d, "1")
        header = next(c for c in cells if c.value == "Idle")
        body = next(c for c in cells if c.parent == header.id)
        assert body.value == "entry / reset<br>exit / log"

    def test_stereotype_label(self):
        d = parse_state_diagram("state Busy <<long>>")
        cells = emit_state_diagram(d, "1")
        assert cells[0].value == "«long»<br>Busy"
