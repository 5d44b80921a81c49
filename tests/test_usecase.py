"""Tests for plantuml/usecase — actors, use cases and their shared description layout."""
from __future__ import annotations

from drawio.builder import parse_style
from plantuml.common import Decor, LineStyle
from plantuml.description.model import DiagramDirection, ElementType
from plantuml.usecase.emitter import emit_usecase_diagram
from plantuml.usecase.parser import parse_usecase_diagram


class TestParser:

    def test_declarations(self):
        d = parse_usecase_diagram(
            'actor "Web User" as WU\n'
            "actor/ Auditor\n"
            "usecase (Login) as UC1\n"
            "usecase/ Report\n"
        )
        assert d.elements["WU"].display_name == "Web User"
        assert d.elements["WU"].type == ElementType.ACTOR
        assert d.elements["Auditor"].type == ElementType.ACTOR_BUSINESS
        assert d.elements["UC1"].display_name == "Login"
        assert d.elements["UC1"].type == ElementType.USECASE
        assert d.elements["Report"].type == ElementType.USECASE_BUSINESS

    def test_shorthands_in_links(self):
        d = parse_usecase_diagram(":Admin: --> (Manage users)")
        assert d.elements["Admin"].type == ElementType.ACTOR
        assert d.elements["Manageusers"].display_name == "Manage users"
        link = d.links[0]
        assert (link.source, link.target) == ("Admin", "Manageusers")
        assert link.right_decor == Decor.ARROW

    def test_bare_identifiers_are_actors(self):
        d = parse_usecase_diagram("Guest -- Browse")
        assert d.elements["Guest"].type == ElementType.ACTOR

    def test_later_declaration_upgrades_implicit(self):
        d = parse_usecase_diagram("Guest --> Browse\nusecase Browse <<read>>")
        assert d.elements["Browse"].type == ElementType.USECASE
        assert d.elements["Browse"].stereotypes == ["read"]

    def test_standalone_shorthands(self):
        d = parse_usecase_diagram(":Customer: as C #Gold\n(Pay)/ as P")
        assert d.elements["C"].color == "#Gold"
        assert d.elements["P"].type == ElementType.USECASE_BUSINESS

    def test_container_and_direction(self):
        d = parse_usecase_diagram("left to right direction\nrectangle Shop {\n(Checkout)\n}")
        assert d.direction == DiagramDirection.LEFT_TO_RIGHT
        assert d.containers[0].elements == ["Checkout"]
        assert d.elements["Checkout"].container_path == "Shop"

    def test_link_label_and_dashed(self):
        d = parse_usecase_diagram("(A) ..> (B) : <<include>>")
        assert d.links[0].label == "<<include>>"
        assert d.links[0].line_style == LineStyle.DASHED


class TestEmitter:

    def test_actor_and_usecase_shapes(self):
        d = parse_usecase_diagram("actor User\nusecase (Login) as UC1\nUser --> UC1")
        cells = emit_usecase_diagram(d, "grp")
        actor = next(c for c in cells if c.value == "User")
        usecase = next(c for c in cells if c.value == "Login")
        assert parse_style(actor.style)["shape"] == "umlActor"
        assert "ellipse" in parse_style(usecase.style)
        link = next(c for c in cells if c.edge)
        assert (link.source, link.target) == (actor.id, usecase.id)

    def test_actor_ranked_above_usecase(self):
        d = parse_usecase_diagram("User --> (Login)")
        cells = emit_usecase_diagram(d, "1")
        actor = next(c for c in cells if c.value == "User")
        usecase = next(c for c in cells if c.value == "Login")
        assert actor.geometry.y + actor.geometry.height <= usecase.geometry.y

    def test_container_emitted_before_children(self):
        d = parse_usecase_diagram("rectangle Shop {\n(Checkout)\n}")
        cells = emit_usecase_diagram(d, "1")
        assert [c.value for c in cells if c.vertex] == ["Shop", "Checkout"]
        shop, checkout = cells[0].geometry, cells[1].geometry
        assert shop.x < checkout.x
        assert checkout.x + checkout.width < shop.x + shop.width

    def test_note_of_element(self):
        d = parse_usecase_diagram("actor User\nnote right of User : the customer")
        cells = emit_usecase_diagram(d, "1")
        note = next(c for c in cells if c.value == "the customer")
        assert parse_style(note.style)["shape"] == "note"
        connector = next(c for c in cells if c.edge)
        assert connector.source == note.id
