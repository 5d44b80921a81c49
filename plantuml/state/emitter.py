"""
plantuml/state/emitter.py

Lay out a :class:`StateDiagram` and emit draw.io cells.

    1. Measure (bottom-up): every composite lays out its children in
       topological layers along the diagram's main axis; concurrent
       regions stack vertically.
    2. Place (top-down): relative offsets become absolute positions.
    3. Emit in z-order: composites, leaves, notes, then transitions.

All cells are parented to the group with absolute coordinates, so
transitions may cross composite borders freely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from drawio.builder import Cell, IdGenerator, build_style, edge, free_edge, vertex
from drawio.colors import normalize_color
from plantuml.common import NOTE_CONNECTOR_STYLE, html_label, note_style, rank_layers
from plantuml.state.model import Direction, StateDiagram, StateElement, StateType, Transition


# ───────────────────────────────────────────────
# Layout constants
# ───────────────────────────────────────────────

STATE_MIN_WIDTH = 120
STATE_MIN_HEIGHT = 40
CHAR_WIDTH = 7
STATE_PADDING = 30
DESC_HEADER = 26
DESC_LINE_HEIGHT = 18
CIRCLE_SIZE = 24
FINAL_OUTER_SIZE = 28
FINAL_INNER_SIZE = 16
DIAMOND_SIZE = 30
BAR_WIDTH = 60
BAR_HEIGHT = 5
HISTORY_SIZE = 28
NOTE_WIDTH = 140
NOTE_MIN_HEIGHT = 40
NOTE_LINE_HEIGHT = 16
NOTE_OFFSET = 160
H_GAP = 60
V_GAP = 40
COMPOSITE_PAD = 20
COMPOSITE_HEADER = 30
MARGIN = 40
CONCURRENT_SEP = 10
TITLE_HEIGHT = 30

_LEAF_SIZES: Dict[str, Tuple[int, int]] = {
    StateType.INITIAL: (CIRCLE_SIZE, CIRCLE_SIZE),
    StateType.FINAL: (FINAL_OUTER_SIZE, FINAL_OUTER_SIZE),
    StateType.CHOICE: (DIAMOND_SIZE, DIAMOND_SIZE),
    StateType.FORK_JOIN: (BAR_WIDTH, BAR_HEIGHT),
    StateType.SYNCHRO_BAR: (BAR_WIDTH, BAR_HEIGHT),
    StateType.HISTORY: (HISTORY_SIZE, HISTORY_SIZE),
    StateType.DEEP_HISTORY: (HISTORY_SIZE, HISTORY_SIZE),
}


# ───────────────────────────────────────────────
# Styles
# ───────────────────────────────────────────────

def _border(s: Dict[str, Any], el: StateElement) -> Dict[str, Any]:
    if el.color:
        s["fillColor"] = normalize_color(el.color)
    if el.line_color:
        s["strokeColor"] = normalize_color(el.line_color)
    if el.line_style == "dashed":
        s["dashed"] = 1
    elif el.line_style == "dotted":
        s["dashed"] = 1
        s["dashPattern"] = "1 4"
    elif el.line_style == "bold":
        s["strokeWidth"] = 2
    return s


def _state_style(el: StateElement) -> str:
    return build_style(_border({
        "rounded": 1,
        "whiteSpace": "wrap",
        "html": 1,
        "arcSize": 20,
    }, el))


def _described_state_style(el: StateElement) -> str:
    return build_style(_border({
        "shape": "swimlane",
        "rounded": 1,
        "html": 1,
        "fontStyle": 1,
        "align": "center",
        "startSize": DESC_HEADER,
        "arcSize": 10,
        "swimlaneLine": 1,
    }, el))


def _composite_style(el: StateElement) -> str:
    s: Dict[str, Any] = {
        "rounded": 1,
        "whiteSpace": "wrap",
        "html": 1,
        "container": 1,
        "collapsible": 0,
        "verticalAlign": "top",
        "fontStyle": 1,
        "arcSize": 10,
        "fillColor": normalize_color(el.color) if el.color else "none",
    }
    if el.line_color:
        s["strokeColor"] = normalize_color(el.line_color)
    return build_style(s)


def _ellipse(fill: str, **extra: Any) -> str:
    s: Dict[str, Any] = {"ellipse": None, "fillColor": fill, "strokeColor": "#000000"}
    s.update(extra)
    s["html"] = 1
    return build_style(s)


INITIAL_STYLE = _ellipse("#000000")
FINAL_OUTER_STYLE = _ellipse("none", strokeWidth=2)
FINAL_INNER_STYLE = _ellipse("#000000")
HISTORY_STYLE = _ellipse("none", fontStyle=1, fontSize=14)

CHOICE_STYLE = build_style({
    "rhombus": None,
    "fillColor": "#FFFDE7",
    "strokeColor": "#000000",
    "html": 1,
})

BAR_STYLE = build_style({
    "fillColor": "#000000",
    "strokeColor": "#000000",
    "rounded": 1,
    "arcSize": 50,
    "html": 1,
})

DESCRIPTION_BODY_STYLE = build_style({
    "html": 1,
    "align": "left",
    "verticalAlign": "top",
    "overflow": "hidden",
    "whiteSpace": "wrap",
    "fillColor": "none",
    "strokeColor": "none",
    "spacingLeft": 4,
})

SEPARATOR_STYLE = build_style({
    "html": 1,
    "dashed": 1,
    "endArrow": "none",
    "endFill": 0,
    "strokeColor": "#999999",
})

TITLE_STYLE = build_style({
    "text": None,
    "html": 1,
    "align": "center",
    "verticalAlign": "middle",
    "fontStyle": 1,
    "fontSize": 16,
    "fillColor": "none",
    "strokeColor": "none",
})


def _transition_style(t: Transition) -> str:
    s: Dict[str, Any] = {"html": 1, "endArrow": "block", "endFill": 1}
    if t.line_style == "dashed":
        s["dashed"] = 1
    elif t.line_style == "dotted":
        s["dashed"] = 1
        s["dashPattern"] = "1 4"
    elif t.line_style == "bold":
        s["strokeWidth"] = 2
    elif t.line_style == "hidden":
        s["opacity"] = 0
    if t.color:
        s["strokeColor"] = normalize_color(t.color)
    if t.cross_start:
        s["startArrow"] = "cross"
        s["startFill"] = 0
        s["startSize"] = 10
    if t.circle_end:
        s["endArrow"] = "oval"
        s["endFill"] = 0
        s["endSize"] = 8
    return build_style(s)


def _label(el: StateElement) -> str:
    if not el.stereotypes:
        return el.display_name
    stereo = " ".join(f"«{s}»" for s in el.stereotypes)
    return f"{stereo}<br>{el.display_name}"


def _text_width(text: str) -> int:
    return len(text) * CHAR_WIDTH + STATE_PADDING


# ───────────────────────────────────────────────
# Side tables
# ───────────────────────────────────────────────

@dataclass
class _Block:
    """Result of laying out a list of sibling states."""
    width: float = 0
    height: float = 0
    offsets: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    separators: List[float] = field(default_factory=list)


@dataclass
class _Pos:
    x: float
    y: float
    w: float
    h: float


class StateEmitter:
    """Three-pass layout + cell emission for one state diagram."""

    def __init__(self, parent_id: str):
        self.parent_id = parent_id
        self.next_id = IdGenerator("puml")
        self.cells: List[Cell] = []
        self.diagram: Optional[StateDiagram] = None
        self.sizes: Dict[str, Tuple[float, float]] = {}
        self.blocks: Dict[str, _Block] = {}
        self.pos: Dict[str, _Pos] = {}
        self.ids: Dict[str, str] = {}

    def emit(self, diagram: StateDiagram) -> List[Cell]:
        self.diagram = diagram
        top_level = diagram.top_level()
        top = MARGIN

        if diagram.title:
            self.cells.append(vertex(
                self.next_id(), diagram.title, TITLE_STYLE, self.parent_id,
                MARGIN, 0, max(300, len(diagram.title) * 9), TITLE_HEIGHT,
            ))
            top += TITLE_HEIGHT

        root = self._layout(top_level)
        self._place(top_level, root, MARGIN, top)

        for code in top_level:
            self._emit_composites(code)
        for code in top_level:
            self._emit_leaves(code)
        self._emit_notes(MARGIN + root.width + H_GAP)
        self._emit_transitions()
        return self.cells

    # ═══════════════════════════════════════════════════════
    # Measure
    # ═══════════════════════════════════════════════════════

    def _measure(self, code: str) -> Tuple[float, float]:
        el = self.diagram.elements[code]
        if el.is_composite:
            size = self._measure_composite(el)
        else:
            size = self._measure_leaf(el)
        self.sizes[code] = size
        return size

    def _measure_leaf(self, el: StateElement) -> Tuple[float, float]:
        if el.type in _LEAF_SIZES:
            return _LEAF_SIZES[el.type]
        width = max(STATE_MIN_WIDTH, _text_width(el.display_name))
        height = STATE_MIN_HEIGHT
        for stereo in el.stereotypes:
            width = max(width, _text_width(stereo) + 4 * CHAR_WIDTH)
        if el.descriptions:
            height = DESC_HEADER + len(el.descriptions) * DESC_LINE_HEIGHT + 8
            for desc in el.descriptions:
                width = max(width, _text_width(desc))
        return width, height

    def _measure_composite(self, el: StateElement) -> Tuple[float, float]:
        if el.regions:
            block = _Block()
            for i, region in enumerate(el.regions):
                if i:
                    block.height += CONCURRENT_SEP
                    block.separators.append(block.height)
                    block.height += CONCURRENT_SEP
                inner = self._layout(region.elements)
                for code, (dx, dy) in inner.offsets.items():
                    block.offsets[code] = (dx, dy + block.height)
                block.width = max(block.width, inner.width)
                block.height += inner.height
            # center each region's content within the widest region
            for region in el.regions:
                inner_w = max(
                    (block.offsets[c][0] + self.sizes[c][0] for c in region.elements),
                    default=0,
                )
                shift = (block.width - inner_w) / 2
                for c in region.elements:
                    dx, dy = block.offsets[c]
                    block.offsets[c] = (dx + shift, dy)
        else:
            block = self._layout(el.children)
        self.blocks[el.code] = block

        width = max(_text_width(el.display_name), block.width + COMPOSITE_PAD * 2)
        height = COMPOSITE_HEADER + block.height + COMPOSITE_PAD * 2
        return width, height

    def _ancestor_in(self, code: str, members: set) -> Optional[str]:
        """The member of *members* that is *code* or one of its ancestors."""
        seen = set()
        while code is not None and code not in seen:
            if code in members:
                return code
            seen.add(code)
            el = self.diagram.elements.get(code)
            code = el.parent_code if el else None
        return None

    def _layout(self, codes: List[str]) -> _Block:
        """Measure *codes* and lay them out in topological layers.

        Layers run down the page for top-to-bottom diagrams and across it
        for left-to-right ones; nodes within a layer are centered on the
        cross axis.
        """
        block = _Block()
        if not codes:
            return block
        for code in codes:
            self._measure(code)

        members = set(codes)
        links = []
        for t in self.diagram.transitions:
            src = self._ancestor_in(t.source, members)
            dst = self._ancestor_in(t.target, members)
            if src and dst:
                links.append((src, dst))
        layers = rank_layers(codes, links)

        ltr = self.diagram.direction == Direction.LEFT_TO_RIGHT
        # main-axis extent of each layer and cross-axis extent of its nodes
        spans = []
        for layer in layers:
            main = max(self.sizes[c][0 if ltr else 1] for c in layer)
            cross = sum(self.sizes[c][1 if ltr else 0] for c in layer)
            cross += (V_GAP if ltr else H_GAP) * (len(layer) - 1)
            spans.append((main, cross))
        cross_total = max(cross for _, cross in spans)

        along = 0.0
        for layer, (main, cross) in zip(layers, spans):
            across = (cross_total - cross) / 2
            for c in layer:
                w, h = self.sizes[c]
                if ltr:
                    block.offsets[c] = (along + (main - w) / 2, across)
                    across += h + V_GAP
                else:
                    block.offsets[c] = (across, along + (main - h) / 2)
                    across += w + H_GAP
            along += main + (H_GAP if ltr else V_GAP)
        along -= H_GAP if ltr else V_GAP

        if ltr:
            block.width, block.height = along, cross_total
        else:
            block.width, block.height = cross_total, along
        return block

    # ═══════════════════════════════════════════════════════
    # Place
    # ═══════════════════════════════════════════════════════

    def _place(self, codes: List[str], block: _Block, x: float, y: float) -> None:
        for code in codes:
            dx, dy = block.offsets[code]
            w, h = self.sizes[code]
            self.pos[code] = _Pos(x + dx, y + dy, w, h)
            inner = self.blocks.get(code)
            if inner is None:
                continue
            el = self.diagram.elements[code]
            pos = self.pos[code]
            inner_x = pos.x + (pos.w - inner.width) / 2
            inner_y = pos.y + COMPOSITE_HEADER + COMPOSITE_PAD
            self._place(el.all_children(), inner, inner_x, inner_y)

    # ═══════════════════════════════════════════════════════
    # Emit
    # ═══════════════════════════════════════════════════════

    def _vertex(
        self, value: str, style: str, x: float, y: float, w: float, h: float,
        parent: Optional[str] = None,
    ) -> str:
        cell_id = self.next_id()
        self.cells.append(vertex(cell_id, value, style, parent or self.parent_id, x, y, w, h))
        return cell_id

    def _emit_composites(self, code: str) -> None:
        el = self.diagram.elements[code]
        if not el.is_composite:
            return
        pos = self.pos[code]
        self.ids[code] = self._vertex(
            _label(el), _composite_style(el), pos.x, pos.y, pos.w, pos.h
        )
        block = self.blocks[code]
        inner_y = pos.y + COMPOSITE_HEADER + COMPOSITE_PAD
        for sep_y in block.separators:
            self.cells.append(free_edge(
                self.next_id(), "", SEPARATOR_STYLE, self.parent_id,
                (pos.x + 5, inner_y + sep_y), (pos.x + pos.w - 5, inner_y + sep_y),
            ))
        for child in el.all_children():
            self._emit_composites(child)

    def _emit_leaves(self, code: str) -> None:
        el = self.diagram.elements[code]
        if el.is_composite:
            for child in el.all_children():
                self._emit_leaves(child)
            return
        self._emit_leaf(el, self.pos[code])

    def _emit_leaf(self, el: StateElement, pos: _Pos) -> None:
        if el.type == StateType.INITIAL:
            cell_id = self._vertex("", INITIAL_STYLE, pos.x, pos.y, pos.w, pos.h)
        elif el.type == StateType.FINAL:
            cell_id = self._vertex("", FINAL_OUTER_STYLE, pos.x, pos.y, pos.w, pos.h)
            offset = (FINAL_OUTER_SIZE - FINAL_INNER_SIZE) / 2
            self._vertex(
                "", FINAL_INNER_STYLE, pos.x + offset, pos.y + offset,
                FINAL_INNER_SIZE, FINAL_INNER_SIZE,
            )
        elif el.type == StateType.CHOICE:
            cell_id = self._vertex("", CHOICE_STYLE, pos.x, pos.y, pos.w, pos.h)
        elif el.type in (StateType.FORK_JOIN, StateType.SYNCHRO_BAR):
            cell_id = self._vertex("", BAR_STYLE, pos.x, pos.y, pos.w, pos.h)
        elif el.type == StateType.HISTORY:
            cell_id = self._vertex("H", HISTORY_STYLE, pos.x, pos.y, pos.w, pos.h)
        elif el.type == StateType.DEEP_HISTORY:
            cell_id = self._vertex("H*", HISTORY_STYLE, pos.x, pos.y, pos.w, pos.h)
        elif el.descriptions:
            cell_id = self._vertex(
                _label(el), _described_state_style(el), pos.x, pos.y, pos.w, pos.h
            )
            self._vertex(
                "<br>".join(el.descriptions), DESCRIPTION_BODY_STYLE,
                0, DESC_HEADER, pos.w, pos.h - DESC_HEADER, parent=cell_id,
            )
        else:
            cell_id = self._vertex(_label(el), _state_style(el), pos.x, pos.y, pos.w, pos.h)
        self.ids[el.code] = cell_id

    def _note_anchor(self, note, height: float, free: List[float]) -> Tuple[float, float]:
        """Position of a note next to its state, its transition, or floating."""
        target = self.pos.get(note.entity_code) if note.entity_code else None
        if target is not None:
            if note.position == "left":
                return target.x - NOTE_OFFSET, target.y
            if note.position == "top":
                return target.x, target.y - height - V_GAP
            if note.position == "bottom":
                return target.x, target.y + target.h + V_GAP
            return target.x + target.w + H_GAP, target.y
        if note.on_link and note.link_index < len(self.diagram.transitions):
            t = self.diagram.transitions[note.link_index]
            a, b = self.pos.get(t.source), self.pos.get(t.target)
            if a and b:
                return (a.x + b.x) / 2 + H_GAP, (a.y + b.y) / 2
        # floating notes stack in a column right of the diagram
        x, y = free
        free[1] = y + height + V_GAP
        return x, y

    def _emit_notes(self, free_x: float) -> None:
        free = [free_x, MARGIN]
        for note in self.diagram.notes:
            lines = note.text.split("\n")
            height = max(NOTE_MIN_HEIGHT, len(lines) * NOTE_LINE_HEIGHT + 16)
            x, y = self._note_anchor(note, height, free)
            note_id = self._vertex(
                html_label(note.text), build_style(note_style(note.color)),
                x, y, NOTE_WIDTH, height,
            )
            target = self.ids.get(note.entity_code) if note.entity_code else None
            if target:
                self.cells.append(edge(
                    self.next_id(), "", build_style(NOTE_CONNECTOR_STYLE),
                    self.parent_id, note_id, target,
                ))

    def _emit_transitions(self) -> None:
        for t in self.diagram.transitions:
            source = self.ids.get(t.source)
            target = self.ids.get(t.target)
            if source is None or target is None:
                continue
            self.cells.append(edge(
                self.next_id(), html_label(t.label or ""), _transition_style(t),
                self.parent_id, source, target,
            ))


def emit_state_diagram(diagram: StateDiagram, parent_id: str) -> List[Cell]:
    """Emit *diagram* as draw.io cells parented to *parent_id*."""
    return StateEmitter(parent_id).emit(diagram)
