"""Tests for plantuml/component — component/deployment parsing and port pinning."""
from __future__ import annotations

from drawio.builder import parse_style
from plantuml.component.emitter import PORT_SIZE, emit_component_diagram
from plantuml.component.parser import parse_component_diagram
from plantuml.description.model import ElementType


def _cell(cells, value):
    return next(c for c in cells if c.vertex and c.value == value)


class TestParser:

    def test_bracket_and_interface_refs(self):
        d = parse_component_diagram("() HTTP - [Web Server]\n[Web Server] --> DB : sql")
        assert d.elements["HTTP"].type == ElementType.INTERFACE
        assert d.elements["WebServer"].display_name == "Web Server"
        assert d.elements["DB"].type == ElementType.COMPONENT
        assert [(link.source, link.target) for link in d.links] == [("HTTP", "WebServer"), ("WebServer", "DB")]
        assert d.links[1].label == "sql"

    def test_keywords(self):
        d = parse_component_diagram(
            "node Server\n"
            "database Store #LightGreen\n"
            'cloud "Public Net" as Net\n'
            "queue Jobs <<kafka>>\n"
        )
        assert d.elements["Server"].type == ElementType.NODE
        assert d.elements["Store"].color == "#LightGreen"
        assert d.elements["Net"].display_name == "Public Net"
        assert d.elements["Jobs"].stereotypes == ["kafka"]

    def test_standalone_shorthands(self):
        d = parse_component_diagram('[Billing] as B <<service>>\n() "Rest API" as API')
        assert d.elements["B"].display_name == "Billing"
        assert d.elements["B"].stereotypes == ["service"]
        assert d.elements["API"].type == ElementType.INTERFACE

    def test_multiline_bracket_label(self):
        d = parse_component_diagram("component C1 [\n  first line\n  second line\n]\nC1 --> C2")
        assert d.elements["C1"].display_name == "first line\nsecond line"
        assert "C2" in d.elements

    def test_multiline_quoted_label(self):
        d = parse_component_diagram('node "top line\nbottom line" as N1')
        assert d.elements["N1"].display_name == "top line\nbottom line"
        assert d.elements["N1"].type == ElementType.NODE

    def test_nested_containers(self):
        d = parse_component_diagram(
            'node "Host" as H {\n'
            "  frame Inner {\n"
            "    [App]\n"
            "  }\n"
            "}\n"
        )
        host = d.containers[0]
        assert host.code == "H"
        assert host.sub_containers[0].path == "H.Inner"
        assert d.elements["App"].container_path == "H.Inner"

    def test_link_to_container(self):
        d = parse_component_diagram("package Lib {\n[Core]\n}\n[Core] ..> Lib")
        assert "Lib" not in d.elements
        assert d.links[0].target == "Lib"


class TestEmitter:

    def test_interface_is_small_circle(self):
        cells = emit_component_diagram(parse_component_diagram("() HTTP - [Web]"), "grp")
        iface = _cell(cells, "HTTP")
        style = parse_style(iface.style)
        assert "ellipse" in style
        assert (iface.geometry.width, iface.geometry.height) == (20, 20)

    def test_component_shape(self):
        cells = emit_component_diagram(parse_component_diagram("[Web]"), "1")
        assert parse_style(_cell(cells, "Web").style)["shape"] == "component"

    def test_ports_pinned_to_container_border(self):
        d = parse_component_diagram("component Box {\n  portin p1\n  portout p2\n  [Inner]\n}")
        cells = emit_component_diagram(d, "1")
        box = _cell(cells, "Box").geometry
        p1 = _cell(cells, "p1").geometry
        p2 = _cell(cells, "p2").geometry
        assert p1.x == box.x - PORT_SIZE / 2
        assert p2.x == box.x + box.width - PORT_SIZE / 2
        assert box.y < p1.y < box.y + box.height

    def test_edge_to_container(self):
        d = parse_component_diagram("package Lib {\n[Core]\n}\n[Client] --> Lib")
        cells = emit_component_diagram(d, "1")
        link = next(c for c in cells if c.edge)
        assert link.target == _cell(cells, "Lib").id
        assert link.source == _cell(cells, "Client").id
