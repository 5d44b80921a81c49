"""Tests for plantuml/sequence — arrow parsing, the line parser and the emitter."""
from __future__ import annotations

import pytest
from drawio.builder import parse_style
from plantuml.sequence.arrows import ArrowBody, ArrowDecoration, ArrowHead, parse_arrow
from plantuml.sequence.emitter import emit_sequence_diagram, format_number
from plantuml.sequence.model import (
    AutoNumber,
    Delay,
    Divider,
    Fragment,
    LifeEvent,
    Message,
    Note,
    ParticipantType,
    Reference,
)
from plantuml.sequence.parser import parse_sequence_diagram


def _messages(cells):
    return [c for c in cells if c.edge and "endArrow=none" not in c.style]


# ═══════════════════════════════════════════════════════════
# Arrow strings
# ═══════════════════════════════════════════════════════════

class TestArrows:

    def test_plain(self):
        a = parse_arrow("->")
        assert (a.head1, a.head2, a.body) == (ArrowHead.NONE, ArrowHead.NORMAL, ArrowBody.SOLID)

    def test_two_dashes_are_dotted(self):
        assert parse_arrow("-->").body == ArrowBody.DOTTED

    def test_async(self):
        assert parse_arrow("->>").head2 == ArrowHead.ASYNC

    def test_reverse(self):
        a = parse_arrow("<-")
        assert a.is_reverse
        assert a.head1 == ArrowHead.NORMAL

    def test_bidirectional(self):
        assert parse_arrow("<->").is_bidirectional

    def test_decorations(self):
        a = parse_arrow("o->x")
        assert a.decoration1 == ArrowDecoration.CIRCLE
        assert a.head2 == ArrowHead.CROSS

    def test_modifier(self):
        a = parse_arrow("-[#red,bold]->")
        assert a.color == "#red"
        assert a.body == ArrowBody.BOLD

    def test_malformed_falls_back(self):
        a = parse_arrow("=>")
        assert a.head2 == ArrowHead.NORMAL
        assert a.body == ArrowBody.SOLID


# ═══════════════════════════════════════════════════════════
# Parser
# ═══════════════════════════════════════════════════════════

class TestParser:

    def test_participants_and_aliases(self):
        d = parse_sequence_diagram(
            'actor "Web User" as U #LightBlue\n'
            "database DB order 10\n"
            "participant API <<service>>\n"
        )
        assert list(d.participants) == ["U", "DB", "API"]
        assert d.participants["U"].display_name == "Web User"
        assert d.participants["U"].type == ParticipantType.ACTOR
        assert d.participants["DB"].order == 10
        assert d.participants["API"].stereotype == "service"

    def test_implicit_participants(self):
        d = parse_sequence_diagram("Alice -> Bob : hi")
        assert list(d.participants) == ["Alice", "Bob"]
        msg = d.elements[0]
        assert isinstance(msg, Message)
        assert (msg.source, msg.target, msg.label) == ("Alice", "Bob", "hi")

    def test_reverse_arrow_swaps_ends(self):
        msg = parse_sequence_diagram("Alice <- Bob : back").elements[0]
        assert (msg.source, msg.target) == ("Bob", "Alice")
        assert msg.arrow.head2 == ArrowHead.NORMAL

    def test_fragments_nest(self):
        d = parse_sequence_diagram(
            "alt ok\n"
            "A -> B\n"
            "else failed\n"
            "loop 3 times\n"
            "B -> A\n"
            "end\n"
            "end\n"
            "A -> C\n"
        )
        alt = d.elements[0]
        assert isinstance(alt, Fragment)
        assert [s.condition for s in alt.sections] == ["ok", "failed"]
        inner = alt.sections[1].elements[0]
        assert isinstance(inner, Fragment) and inner.type == "loop"
        assert isinstance(d.elements[1], Message)

    def test_stray_end_ignored(self):
        d = parse_sequence_diagram("end\nA -> B")
        assert len(d.elements) == 1

    def test_multiline_note_dedented(self):
        d = parse_sequence_diagram(
            "A -> B\n"
            "note over A, B\n"
            "    line one\n"
            "      line two\n"
            "end note\n"
        )
        note = d.elements[1]
        assert isinstance(note, Note)
        assert note.participants == ["A", "B"]
        assert note.text == "line one\n  line two"

    def test_note_on_arrow(self):
        d = parse_sequence_diagram("A -> B\nnote right : about the arrow")
        assert d.elements[0].note.text == "about the arrow"

    def test_separators_and_directives(self):
        d = parse_sequence_diagram(
            "autonumber 10 5\n"
            "== Phase ==\n"
            "...later...\n"
            "ref over A : other\n"
            "activate A\n"
            "hide footbox\n"
        )
        kinds = [type(e) for e in d.elements]
        assert kinds == [AutoNumber, Divider, Delay, Reference, LifeEvent]
        assert d.elements[0].start == 10 and d.elements[0].step == 5
        assert d.hide_footbox

    def test_activation_shortcut(self):
        msg = parse_sequence_diagram("A -> B ++ : call").elements[0]
        assert msg.activation == "++"
        assert msg.label == "call"


# ═══════════════════════════════════════════════════════════
# Emitter
# ═══════════════════════════════════════════════════════════

class TestEmitter:

    @pytest.fixture()
    def cells(self):
        d = parse_sequence_diagram("@startuml\nAlice -> Bob : hello\nBob --> Alice : ok\n@enduml")
        return emit_sequence_diagram(d, "grp")

    def test_two_message_edges(self, cells):
        messages = _messages(cells)
        assert [c.value for c in messages] == ["hello", "ok"]
        for c in messages:
            assert parse_style(c.style)["endArrow"] == "block"
        assert "dashed" not in parse_style(messages[0].style)
        assert parse_style(messages[1].style)["dashed"] == "1"

    def test_header_and_footer_per_participant(self, cells):
        names = [c.value for c in cells if c.vertex]
        assert names.count("Alice") == 2
        assert names.count("Bob") == 2

    def test_all_cells_parented(self, cells):
        assert all(c.parent == "grp" for c in cells)
        ids = [c.id for c in cells]
        assert len(ids) == len(set(ids))

    def test_hide_footbox(self):
        d = parse_sequence_diagram("hide footbox\nA -> B")
        names = [c.value for c in emit_sequence_diagram(d, "1") if c.vertex]
        assert names.count("A") == 1

    def test_autonumber_prefixes_labels(self):
        d = parse_sequence_diagram("autonumber\nA -> B : one\nB -> A : two")
        assert [c.value for c in _messages(emit_sequence_diagram(d, "1"))] == ["1 one", "2 two"]

    def test_format_number(self):
        assert format_number(7, "[000]") == "[007]"
        assert format_number(7, None) == "7"
