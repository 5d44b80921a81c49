"""Tests for plantuml/classdiagram — member parsing, the line parser and the emitter."""
from __future__ import annotations

import pytest
from drawio.builder import parse_style
from plantuml.classdiagram.emitter import emit_class_diagram, format_member, header_lines
from plantuml.classdiagram.model import (
    EntityType,
    JsonNodeType,
    MemberType,
    Separator,
    SeparatorStyle,
    Visibility,
)
from plantuml.classdiagram.parser import parse_class_diagram, parse_json_text, parse_member
from plantuml.common import Decor, LineStyle


def _by_value(cells, value):
    return next(c for c in cells if c.vertex and c.value == value)


# ═══════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════

class TestMembers:

    def test_field(self):
        m = parse_member("-id : int")
        assert m.member_type == MemberType.FIELD
        assert m.visibility == Visibility.PRIVATE
        assert (m.name, m.return_type) == ("id", "int")

    def test_method(self):
        m = parse_member("{static} +count(a, b) : int")
        assert m.member_type == MemberType.METHOD
        assert m.is_static
        assert m.visibility == Visibility.PUBLIC
        assert (m.name, m.parameters, m.return_type) == ("count", "a, b", "int")

    def test_forced_field(self):
        m = parse_member("{field} callback()")
        assert m.member_type == MemberType.FIELD

    def test_abstract_method(self):
        m = parse_member("{abstract} #run()")
        assert m.is_abstract
        assert m.visibility == Visibility.PROTECTED

    def test_format_member(self):
        assert format_member(parse_member("+get(k) : V")) == "+ get(k) : V"
        assert format_member(parse_member("name")) == "name"


class TestJson:

    def test_object(self):
        node = parse_json_text('{"a": 1, "b": [true, null]}')
        assert node.type == JsonNodeType.OBJECT
        key, child = node.entries[1]
        assert key == "b"
        assert [i.value for i in child.items] == ["true", "null"]

    def test_invalid_kept_as_text(self):
        node = parse_json_text("{not json")
        assert node.type == JsonNodeType.SCALAR
        assert node.value == "{not json"


# ═══════════════════════════════════════════════════════════
# Parser
# ═══════════════════════════════════════════════════════════

class TestParser:

    def test_entity_kinds(self):
        d = parse_class_diagram(
            "abstract class Shape\n"
            "interface Drawable\n"
            "enum Color {\n"
            "RED\n"
            "GREEN\n"
            "}\n"
            'class "Long Name" as LN <<entity>> #LightBlue\n'
        )
        assert d.entities["Shape"].type == EntityType.ABSTRACT_CLASS
        assert d.entities["Shape"].is_abstract
        assert d.entities["Drawable"].type == EntityType.INTERFACE
        assert [m.name for m in d.entities["Color"].members] == ["RED", "GREEN"]
        ln = d.entities["LN"]
        assert ln.display_name == "Long Name"
        assert ln.stereotypes == ["entity"]
        assert ln.color == "#LightBlue"

    def test_body_with_separator(self):
        d = parse_class_diagram("class A {\n+x : int\n-- ops --\n+run()\n}")
        members = d.entities["A"].members
        assert isinstance(members[1], Separator)
        assert members[1].label == "ops"
        assert members[1].style == SeparatorStyle.SOLID
        assert members[2].member_type == MemberType.METHOD

    def test_generic_and_extends(self):
        d = parse_class_diagram("class Box<T> extends Base implements Sized, Iterable")
        box = d.entities["Box"]
        assert box.generic_params == "T"
        assert box.extends == ["Base"]
        assert box.implements == ["Sized", "Iterable"]
        assert "Base" in d.entities

    def test_inheritance_normalised_child_to_parent(self):
        d = parse_class_diagram("Foo <|-- Bar")
        link = d.links[0]
        assert (link.source, link.target) == ("Bar", "Foo")
        assert link.right_decor == Decor.EXTENDS
        assert link.left_decor == Decor.NONE

    def test_link_labels_and_style(self):
        d = parse_class_diagram('A "1" *-- "many" B : has >')
        link = d.links[0]
        assert (link.source, link.target) == ("B", "A")
        assert link.right_label == "1"
        assert link.left_label == "many"
        assert link.label == "has >"

    def test_dashed_link(self):
        d = parse_class_diagram("A ..> B")
        assert d.links[0].line_style == LineStyle.DASHED

    def test_shorthand_member(self):
        d = parse_class_diagram("User : +name : str")
        assert d.entities["User"].members[0].name == "name"

    def test_packages(self):
        d = parse_class_diagram("package app {\nclass A\npackage inner {\nclass B\n}\n}")
        app = d.packages[0]
        assert app.entities == ["A"]
        assert app.sub_packages[0].path == "app.inner"
        assert d.entities["B"].package_path == "app.inner"

    def test_map_body(self):
        d = parse_class_diagram("map Cfg {\nhost => localhost\nowner *-> User\n}")
        entries = d.entities["Cfg"].map_entries
        assert (entries[0].key, entries[0].value) == ("host", "localhost")
        assert entries[1].linked_target == "User"
        assert (d.links[0].source, d.links[0].target) == ("Cfg", "User")

    def test_json_body(self):
        d = parse_class_diagram('json J {\n"a": 1,\n"b": [1, 2]\n}')
        root = d.entities["J"].json_root
        assert root.type == JsonNodeType.OBJECT
        assert [k for k, _ in root.entries] == ["a", "b"]

    def test_hide_and_remove(self):
        d = parse_class_diagram("hide empty members\nhide A methods\nremove B\nclass A\nclass B")
        assert "empty members" in d.hidden_members["*"]
        assert "methods" in d.hidden_members["A"]
        assert "B" in d.removed

    def test_notes(self):
        d = parse_class_diagram(
            "class A\n"
            "note left of A : short\n"
            "note as N1\n"
            "  floating\n"
            "end note\n"
        )
        assert d.notes[0].entity_code == "A"
        assert d.notes[0].position == "left"
        assert d.notes[1].alias == "N1"
        assert d.notes[1].text == "floating"
        assert "N1" not in d.entities

    def test_unterminated_body_dropped(self):
        d = parse_class_diagram("class A {\n+x : int")
        assert "A" not in d.entities


# ═══════════════════════════════════════════════════════════
# Emitter
# ═══════════════════════════════════════════════════════════

class TestEmitter:

    @pytest.fixture()
    def cells(self):
        d = parse_class_diagram("@startuml\nclass Foo\nclass Bar\nFoo <|-- Bar\n@enduml")
        return emit_class_diagram(d, "grp")

    def test_two_swimlanes(self, cells):
        swimlanes = [c for c in cells if c.vertex and "swimlane" in parse_style(c.style)]
        assert sorted(c.value for c in swimlanes) == ["Bar", "Foo"]

    def test_inheritance_edge(self, cells):
        edges = [c for c in cells if c.edge]
        assert len(edges) == 1
        style = parse_style(edges[0].style)
        assert style["endArrow"] == "block"
        assert style["endFill"] == "0"
        assert edges[0].source == _by_value(cells, "Bar").id
        assert edges[0].target == _by_value(cells, "Foo").id

    def test_members_are_children(self):
        d = parse_class_diagram("class A {\n+x : int\n+run()\n}")
        cells = emit_class_diagram(d, "1")
        box = _by_value(cells, "A")
        rows = [c.value for c in cells if c.parent == box.id]
        assert rows == ["+ x : int", "+ run()"]

    def test_hidden_members_not_emitted(self):
        d = parse_class_diagram("hide members\nclass A {\n+x : int\n}")
        cells = emit_class_diagram(d, "1")
        assert [c for c in cells if c.parent == _by_value(cells, "A").id] == []

    def test_removed_entity_skipped(self):
        d = parse_class_diagram("class A\nclass B\nA --> B\nremove B")
        cells = emit_class_diagram(d, "1")
        assert [c.value for c in cells if c.vertex] == ["A"]
        assert not any(c.edge for c in cells)

    def test_header_lines(self):
        d = parse_class_diagram("interface Repo<T> <<generic>>")
        assert header_lines(d.entities["Repo"]) == ["<<interface>>", "<<generic>>", "Repo<T>"]

    def test_note_connected(self):
        d = parse_class_diagram("class A\nnote right of A : hi")
        cells = emit_class_diagram(d, "1")
        note = _by_value(cells, "hi")
        connector = next(c for c in cells if c.edge)
        assert (connector.source, connector.target) == (note.id, _by_value(cells, "A").id)

    def test_extends_keyword_draws_edge(self):
        d = parse_class_diagram("class Base\nclass Child extends Base")
        cells = emit_class_diagram(d, "1")
        e = next(c for c in cells if c.edge)
        assert e.source == _by_value(cells, "Child").id
        assert e.target == _by_value(cells, "Base").id
