"""
plantuml/description/emitter.py

Layout and cell emission shared by the use case and component emitters.

Elements are ranked along their links (sources before targets) and each
rank becomes a row, or a column under ``left to right direction``.
Containers are laid out the same way inside their own padding and are
emitted first so they sit behind their children.  Element cells stay
parented to the diagram root with absolute coordinates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from drawio.builder import Cell, IdGenerator, build_style, edge, vertex
from drawio.colors import normalize_color
from plantuml.common import (
    NOTE_CONNECTOR_STYLE,
    edge_label,
    html_label,
    note_style,
    rank_layers,
    relation_style,
    text_lines,
)
from plantuml.description.model import (
    ACTOR_TYPES,
    PORT_TYPES,
    Container,
    DescriptionDiagram,
    DiagramDirection,
    Element,
    ElementType,
    Note,
    NotePosition,
    Relationship,
)

log = logging.getLogger(__name__)


# ───────────────────────────────────────────────
# Layout constants
# ───────────────────────────────────────────────

DEFAULT_WIDTH = 120
DEFAULT_HEIGHT = 60
ACTOR_WIDTH = 40
ACTOR_HEIGHT = 80
CHAR_WIDTH = 8
H_GAP = 80
V_GAP = 80
MARGIN = 40
MAX_PER_RANK = 5
NOTE_WIDTH = 140
NOTE_MIN_HEIGHT = 40
NOTE_LINE_HEIGHT = 16
NOTE_GAP = 20
CONTAINER_PADDING = 30
CONTAINER_HEADER = 30
STEREO_LINE = 14
TITLE_HEIGHT = 30


# ───────────────────────────────────────────────
# Styles
# ───────────────────────────────────────────────

_FOLDER = {"shape": "folder", "tabWidth": 80, "tabHeight": 20, "tabPosition": "left"}

SHAPE_STYLES: Dict[str, Dict[str, Any]] = {
    ElementType.ACTOR: {
        "shape": "umlActor", "verticalLabelPosition": "bottom",
        "verticalAlign": "top", "outlineConnect": 0,
    },
    ElementType.USECASE: {"ellipse": None},
    ElementType.COMPONENT: {"shape": "component", "align": "left", "spacingLeft": 36},
    ElementType.NODE: {"shape": "cube", "size": 10, "flipH": 1},
    ElementType.CLOUD: {"shape": "cloud"},
    ElementType.DATABASE: {"shape": "cylinder3", "size": 15},
    ElementType.STORAGE: {"rounded": 1, "arcSize": 40},
    ElementType.ARTIFACT: {"shape": "note", "size": 12},
    ElementType.FOLDER: dict(_FOLDER),
    ElementType.PACKAGE: dict(_FOLDER),
    ElementType.FILE: {"shape": "note", "size": 15},
    ElementType.FRAME: {"shape": "mxgraph.sysml.package", "labelX": 90},
    ElementType.RECTANGLE: {"rounded": 0},
    ElementType.AGENT: {"rounded": 0},
    ElementType.INTERFACE: {
        "ellipse": None, "aspect": "fixed", "verticalLabelPosition": "bottom",
        "verticalAlign": "top",
    },
    ElementType.PERSON: {"rounded": 1, "arcSize": 50},
    ElementType.BOUNDARY: {
        "shape": "umlBoundary", "verticalLabelPosition": "bottom", "verticalAlign": "top",
    },
    ElementType.CONTROL: {
        "shape": "umlControl", "verticalLabelPosition": "bottom", "verticalAlign": "top",
    },
    ElementType.ENTITY_DESC: {
        "shape": "umlEntity", "verticalLabelPosition": "bottom", "verticalAlign": "top",
    },
    ElementType.HEXAGON: {"shape": "hexagon", "perimeter": "hexagonPerimeter2", "size": 0.25},
    ElementType.CARD: {"shape": "card", "size": 18},
    ElementType.QUEUE: {"shape": "cylinder3", "direction": "south", "size": 12},
    ElementType.STACK: {"shape": "process"},
    ElementType.LABEL: {"text": None, "strokeColor": "none", "fillColor": "none"},
    ElementType.COLLECTIONS: {"rounded": 0, "shadow": 1},
    ElementType.PORT: {"rounded": 0, "fillColor": "#000000", "labelPosition": "right",
                       "align": "left", "verticalLabelPosition": "top", "verticalAlign": "bottom"},
}
SHAPE_STYLES[ElementType.ACTOR_BUSINESS] = dict(SHAPE_STYLES[ElementType.ACTOR])
SHAPE_STYLES[ElementType.USECASE_BUSINESS] = dict(SHAPE_STYLES[ElementType.USECASE], strokeWidth=2)
SHAPE_STYLES[ElementType.PORTIN] = dict(SHAPE_STYLES[ElementType.PORT], labelPosition="left",
                                        align="right")
SHAPE_STYLES[ElementType.PORTOUT] = dict(SHAPE_STYLES[ElementType.PORT])


def element_style(element: Element) -> Dict[str, Any]:
    style: Dict[str, Any] = {"html": 1, "whiteSpace": "wrap", "align": "center",
                             "verticalAlign": "middle"}
    style.update(SHAPE_STYLES.get(element.type, {"rounded": 0}))
    if element.color:
        style["fillColor"] = normalize_color(element.color)
    if element.line_color:
        style["strokeColor"] = normalize_color(element.line_color)
    return style


def container_style(container: Container) -> Dict[str, Any]:
    style: Dict[str, Any] = {
        "html": 1,
        "whiteSpace": "wrap",
        "verticalAlign": "top",
        "fontStyle": 1,
        "fillColor": "none",
        "strokeColor": "#666666",
        "fontSize": 12,
        "container": 1,
        "collapsible": 0,
    }
    shape = SHAPE_STYLES.get(container.type, {"rounded": 0})
    style.update({k: v for k, v in shape.items() if k not in ("align", "spacingLeft")})
    if container.type == ElementType.FRAME:
        style["align"] = "left"
        style["spacingLeft"] = 8
    if container.color:
        style["fillColor"] = normalize_color(container.color)
    return style


TITLE_STYLE = build_style({
    "text": None,
    "html": 1,
    "align": "center",
    "verticalAlign": "middle",
    "fontStyle": 1,
    "fontSize": 16,
})


def label_of(name: str, stereotypes: Iterable[str]) -> str:
    """Stereotype lines above the name, as the cell value."""
    lines = [f"<<{s}>>" for s in stereotypes]
    lines.append(html_label(name))
    return "<br>".join(lines)


def text_width(text: str) -> int:
    return max((len(line) for line in text_lines(text)), default=0) * CHAR_WIDTH


def note_height(text: str) -> float:
    return max(NOTE_MIN_HEIGHT, len(text_lines(text)) * NOTE_LINE_HEIGHT + 16)


@dataclass
class Box:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2


# ═══════════════════════════════════════════════════════════
# Emitter
# ═══════════════════════════════════════════════════════════

class DescriptionEmitter:
    """Ranked layout + cell emission for one description diagram.

    Subclasses override :meth:`element_size` and may hook
    :meth:`after_layout` to place elements the rank layout skips.
    """

    def __init__(self, parent_id: str):
        self.parent_id = parent_id
        self.next_id = IdGenerator("puml")
        self.cells: List[Cell] = []
        self.diagram: Optional[DescriptionDiagram] = None
        self.sizes: Dict[str, Tuple[float, float]] = {}
        self.positions: Dict[str, Box] = {}
        self.container_boxes: Dict[str, Box] = {}
        self.cell_ids: Dict[str, str] = {}

    def emit(self, diagram: DescriptionDiagram) -> List[Cell]:
        self.diagram = diagram
        for code, element in diagram.elements.items():
            self.sizes[code] = self.element_size(element)

        origin_x = MARGIN
        origin_y = MARGIN
        if diagram.title:
            origin_y += TITLE_HEIGHT
        if any(n.position == NotePosition.LEFT and n.entity_code for n in diagram.notes):
            origin_x += NOTE_WIDTH + NOTE_GAP
        if any(n.position == NotePosition.TOP and n.entity_code for n in diagram.notes):
            origin_y += NOTE_MIN_HEIGHT + NOTE_GAP
        self._layout(origin_x, origin_y)
        self.after_layout()

        if diagram.title:
            right = max((b.right for b in self.positions.values()), default=DEFAULT_WIDTH)
            self.cells.append(vertex(
                self.next_id(), diagram.title, TITLE_STYLE, self.parent_id,
                MARGIN, MARGIN / 2, max(right - MARGIN, DEFAULT_WIDTH), TITLE_HEIGHT,
            ))
        for container in diagram.containers:
            self._emit_container(container)
        for element in diagram.elements.values():
            self._emit_element(element)
        self._emit_notes()
        for link in diagram.links:
            self._emit_link(link)
        return self.cells

    # ═══════════════════════════════════════════════════════
    # Measure / layout
    # ═══════════════════════════════════════════════════════

    def element_size(self, element: Element) -> Tuple[float, float]:
        if element.type in ACTOR_TYPES:
            return ACTOR_WIDTH, ACTOR_HEIGHT
        lines = len(text_lines(element.display_name)) + len(element.stereotypes)
        width = max(DEFAULT_WIDTH, text_width(element.display_name) + 40)
        return width, max(DEFAULT_HEIGHT, lines * 18 + 24)

    def after_layout(self) -> None:
        """Hook run once every ranked element and container has a box."""

    def _ltr(self) -> bool:
        return self.diagram.direction == DiagramDirection.LEFT_TO_RIGHT

    def _ranked(self, element: Element) -> bool:
        return not (element.type in PORT_TYPES and element.container_path)

    def _ordered(self, codes: List[str]) -> List[str]:
        """Keep ``together`` groups adjacent."""
        groups = {c: g for g in self.diagram.together_groups for c in g}
        result: List[str] = []
        for code in codes:
            if code in result:
                continue
            for member in groups.get(code, [code]):
                if member in codes and member not in result:
                    result.append(member)
        return result

    def _arrange(self, codes: List[str], x0: float, y0: float) -> Tuple[float, float]:
        """Place *codes* rank by rank from ``(x0, y0)``; return (right, bottom)."""
        elements = self.diagram.elements
        codes = [c for c in self._ordered(codes) if c in self.sizes and self._ranked(elements[c])]
        links = [(link.source, link.target) for link in self.diagram.links]
        ranks: List[List[str]] = []
        for layer in rank_layers(codes, links):
            ranks.extend(layer[i:i + MAX_PER_RANK] for i in range(0, len(layer), MAX_PER_RANK))

        right, bottom = x0, y0
        x, y = x0, y0
        for rank in ranks:
            if self._ltr():
                column_width = max(self.sizes[c][0] for c in rank)
                cy = y0
                for code in rank:
                    w, h = self.sizes[code]
                    self.positions[code] = Box(x + (column_width - w) / 2, cy, w, h)
                    cy += h + V_GAP / 2
                right = x + column_width
                bottom = max(bottom, cy - V_GAP / 2)
                x += column_width + H_GAP
            else:
                row_height = max(self.sizes[c][1] for c in rank)
                cx = x0
                for code in rank:
                    w, h = self.sizes[code]
                    self.positions[code] = Box(cx, y + (row_height - h) / 2, w, h)
                    cx += w + H_GAP
                right = max(right, cx - H_GAP)
                bottom = y + row_height
                y += row_height + V_GAP
        return right, bottom

    def _layout(self, x0: float, y0: float) -> None:
        contained = set()
        for container in self.diagram.iter_containers():
            contained.update(container.elements)
        roots = [code for code in self.diagram.elements if code not in contained]
        x, y = x0, y0
        if roots:
            right, bottom = self._arrange(roots, x, y)
            if self._ltr():
                x = right + H_GAP
            else:
                y = bottom + V_GAP
        for container in self.diagram.containers:
            right, bottom = self._layout_container(container, x, y)
            if self._ltr():
                x = right + H_GAP
            else:
                y = bottom + V_GAP

    def _layout_container(self, container: Container, x0: float, y0: float) -> Tuple[float, float]:
        inner_x = x0 + CONTAINER_PADDING
        inner_y = y0 + CONTAINER_HEADER + STEREO_LINE * len(container.stereotypes)
        right = x0 + max(DEFAULT_WIDTH, text_width(container.name) + 2 * CONTAINER_PADDING)
        bottom = inner_y
        if container.elements:
            r, b = self._arrange(container.elements, inner_x, inner_y)
            right, bottom = max(right, r), max(bottom, b)
        sx, sy = inner_x, (bottom + CONTAINER_PADDING if bottom > inner_y else inner_y)
        for sub in container.sub_containers:
            r, b = self._layout_container(sub, sx, sy)
            right, bottom = max(right, r), max(bottom, b)
            if self._ltr():
                sx = r + H_GAP / 2
            else:
                sy = b + V_GAP / 2
        box = Box(x0, y0, right + CONTAINER_PADDING - x0, bottom + CONTAINER_PADDING - y0)
        self.container_boxes[container.path] = box
        self.positions.setdefault(container.code, box)
        return box.right, box.bottom

    # ═══════════════════════════════════════════════════════
    # Emission
    # ═══════════════════════════════════════════════════════

    def _emit_container(self, container: Container) -> None:
        box = self.container_boxes.get(container.path)
        if box is None:
            return
        cell_id = self.next_id()
        self.cell_ids.setdefault(container.code, cell_id)
        self.cells.append(vertex(
            cell_id, label_of(container.name, container.stereotypes),
            build_style(container_style(container)), self.parent_id,
            box.x, box.y, box.width, box.height,
        ))
        for sub in container.sub_containers:
            self._emit_container(sub)

    def _emit_element(self, element: Element) -> None:
        box = self.positions.get(element.code)
        if box is None or element.code in self.cell_ids:
            return
        cell_id = self.next_id()
        self.cell_ids[element.code] = cell_id
        self.cells.append(vertex(
            cell_id, label_of(element.display_name, element.stereotypes),
            build_style(element_style(element)), self.parent_id,
            box.x, box.y, box.width, box.height,
        ))

    def _emit_notes(self) -> None:
        bottom = max((b.bottom for b in self.positions.values()), default=MARGIN) + V_GAP / 2
        free_x = MARGIN
        for note in self.diagram.notes:
            height = note_height(note.text)
            x, y = self._note_position(note, height)
            if x is None:
                x, y = free_x, bottom
                free_x += NOTE_WIDTH + NOTE_GAP
            note_id = self.next_id()
            if note.alias:
                self.cell_ids[note.alias] = note_id
            self.cells.append(vertex(
                note_id, html_label(note.text), build_style(note_style(note.color)),
                self.parent_id, x, y, NOTE_WIDTH, height,
            ))
            target = self.cell_ids.get(note.entity_code) if note.entity_code else None
            if target:
                self.cells.append(edge(
                    self.next_id(), "", build_style(NOTE_CONNECTOR_STYLE), self.parent_id,
                    note_id, target,
                ))

    def _note_position(self, note: Note, height: float) -> Tuple[Optional[float], Optional[float]]:
        if note.entity_code:
            box = self.positions.get(note.entity_code)
            if box is None:
                return None, None
            if note.position == NotePosition.LEFT:
                return box.x - NOTE_WIDTH - NOTE_GAP, box.y
            if note.position == NotePosition.TOP:
                return box.x, box.y - height - NOTE_GAP
            if note.position == NotePosition.BOTTOM:
                return box.x, box.bottom + NOTE_GAP
            return box.right + NOTE_GAP, box.y
        if note.on_link and note.link_index is not None:
            link = self.diagram.links[note.link_index]
            a, b = self.positions.get(link.source), self.positions.get(link.target)
            if a and b:
                (ax, ay), (bx, by) = a.center, b.center
                return (ax + bx) / 2 + NOTE_GAP, max((ay + by) / 2 - height / 2, 0)
        return None, None

    def _emit_link(self, link: Relationship) -> None:
        source = self.cell_ids.get(link.source)
        target = self.cell_ids.get(link.target)
        if source is None or target is None:
            log.debug("link %s -> %s has no drawn end", link.source, link.target)
            return
        edge_id = self.next_id()
        style = relation_style(link.left_decor, link.right_decor, link.line_style, link.color)
        self.cells.append(edge(
            edge_id, html_label(link.label or ""), build_style(style), self.parent_id,
            source, target,
        ))
        if link.left_label:
            self.cells.append(edge_label(self.next_id(), edge_id, link.left_label, -0.8))
        if link.right_label:
            self.cells.append(edge_label(self.next_id(), edge_id, link.right_label, 0.8))
