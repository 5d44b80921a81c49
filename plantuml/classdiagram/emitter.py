"""
plantuml/classdiagram/emitter.py

Lay out a :class:`ClassDiagram` on a grid and emit draw.io cells.

Entities are swimlane containers whose body rows are child cells stacked
under the header.  Top-level entities fill a four-column grid; each
package gets its own grid inside a folder shape below them.  draw.io's
own layout tools can rearrange the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from drawio.builder import Cell, IdGenerator, build_style, edge, vertex
from drawio.colors import normalize_color
from plantuml.common import (
    EDGE_LABEL_STYLE,
    NOTE_CONNECTOR_STYLE,
    edge_label,
    html_label,
    note_style,
    relation_style,
    text_lines,
)
from plantuml.classdiagram.model import (
    ClassDiagram,
    ClassEntity,
    EntityType,
    JsonNode,
    JsonNodeType,
    Member,
    MemberType,
    Note,
    NotePosition,
    Package,
    Relationship,
    Separator,
    SeparatorStyle,
    Visibility,
)


# ───────────────────────────────────────────────
# Layout constants
# ───────────────────────────────────────────────

CLASS_WIDTH = 160
HEADER_HEIGHT = 26
HEADER_LINE = 18
ROW_HEIGHT = 26
SEPARATOR_HEIGHT = 8
CHAR_WIDTH = 7
H_GAP = 60
V_GAP = 80
MARGIN = 40
COLS_PER_ROW = 4
NOTE_WIDTH = 140
NOTE_MIN_HEIGHT = 40
NOTE_LINE_HEIGHT = 16
NOTE_GAP = 20
PACKAGE_PADDING = 30
PACKAGE_HEADER = 30
SMALL_SIZE = 20
TITLE_HEIGHT = 30
JSON_INDENT = 12

_TYPE_PREFIX: Dict[str, str] = {
    EntityType.INTERFACE: "interface",
    EntityType.ENUM: "enumeration",
    EntityType.ANNOTATION: "annotation",
    EntityType.ENTITY: "entity",
    EntityType.PROTOCOL: "protocol",
    EntityType.STRUCT: "struct",
    EntityType.EXCEPTION: "exception",
    EntityType.METACLASS: "metaclass",
    EntityType.STEREOTYPE_TYPE: "stereotype",
    EntityType.DATACLASS: "dataclass",
    EntityType.RECORD: "record",
}

_VISIBILITY_SYMBOL = {
    Visibility.PUBLIC: "+",
    Visibility.PRIVATE: "-",
    Visibility.PROTECTED: "#",
    Visibility.PACKAGE: "~",
}

_SMALL_TYPES = (
    EntityType.CIRCLE, EntityType.DIAMOND,
    EntityType.LOLLIPOP_FULL, EntityType.LOLLIPOP_HALF,
)


# ───────────────────────────────────────────────
# Styles
# ───────────────────────────────────────────────

def _class_style(entity: ClassEntity, header: float) -> str:
    font = 1
    if entity.type == EntityType.INTERFACE:
        font = 2
    elif entity.is_abstract:
        font = 3
    elif entity.type == EntityType.OBJECT:
        font = 5
    s: Dict[str, Any] = {
        "swimlane": None,
        "fontStyle": font,
        "align": "center",
        "verticalAlign": "top",
        "childLayout": "stackLayout",
        "horizontal": 1,
        "startSize": header,
        "horizontalStack": 0,
        "resizeParent": 1,
        "resizeParentMax": 0,
        "resizeLast": 0,
        "collapsible": 1,
        "marginBottom": 0,
        "whiteSpace": "wrap",
        "html": 1,
    }
    if entity.color:
        s["fillColor"] = normalize_color(entity.color)
    if entity.line_color:
        s["strokeColor"] = normalize_color(entity.line_color)
    return build_style(s)


def _row_style(font_style: int = 0, indent: int = 0, bordered: bool = False) -> str:
    s: Dict[str, Any] = {
        "text": None,
        "strokeColor": "inherit" if bordered else "none",
        "fillColor": "none",
        "align": "left",
        "verticalAlign": "top",
        "spacingLeft": 4 + indent,
        "spacingRight": 4,
        "overflow": "hidden",
        "rotatable": 0,
        "points": "[[0,0.5],[1,0.5]]",
        "portConstraint": "eastwest",
        "whiteSpace": "wrap",
        "html": 1,
        "fontStyle": font_style,
    }
    return build_style(s)


_SEPARATOR_DASH = {
    SeparatorStyle.DOTTED: {"dashed": 1, "dashPattern": "1 2"},
    SeparatorStyle.DOUBLE: {"strokeWidth": 3},
    SeparatorStyle.THICK: {"strokeWidth": 2},
}


def _separator_style(sep: Separator) -> str:
    s: Dict[str, Any] = {
        "line": None,
        "strokeWidth": 1,
        "fillColor": "none",
        "align": "left",
        "verticalAlign": "middle",
        "spacingTop": -1,
        "spacingLeft": 3,
        "spacingRight": 3,
        "rotatable": 0,
        "labelPosition": "right",
        "points": "[]",
        "portConstraint": "eastwest",
        "strokeColor": "inherit",
    }
    s.update(_SEPARATOR_DASH.get(sep.style, {}))
    return build_style(s)


def _package_style(pkg: Package) -> str:
    return build_style({
        "shape": "folder",
        "fontStyle": 1,
        "tabWidth": 80,
        "tabHeight": 20,
        "tabPosition": "left",
        "html": 1,
        "whiteSpace": "wrap",
        "verticalAlign": "top",
        "align": "left",
        "spacingLeft": 6,
        "fillColor": normalize_color(pkg.color) if pkg.color else "none",
        "strokeColor": "#666666",
        "fontSize": 12,
    })


_SMALL_STYLES: Dict[str, Dict[str, Any]] = {
    EntityType.DIAMOND: {"rhombus": None, "html": 1, "fillColor": "#ffffff"},
    EntityType.CIRCLE: {"ellipse": None, "html": 1, "aspect": "fixed"},
    EntityType.LOLLIPOP_FULL: {
        "ellipse": None, "html": 1, "aspect": "fixed", "fillColor": "none",
        "verticalLabelPosition": "bottom", "verticalAlign": "top",
    },
    EntityType.LOLLIPOP_HALF: {
        "shape": "requiredInterface", "html": 1, "fillColor": "none",
        "verticalLabelPosition": "bottom", "verticalAlign": "top",
    },
}

QUALIFIER_STYLE: Dict[str, Any] = {
    "edgeLabel": None,
    "html": 1,
    "align": "center",
    "verticalAlign": "middle",
    "resizable": 0,
    "fillColor": "#ffffff",
    "strokeColor": "#000000",
}

TITLE_STYLE = build_style({
    "text": None,
    "html": 1,
    "align": "center",
    "verticalAlign": "middle",
    "fontStyle": 1,
    "fontSize": 16,
})


# ───────────────────────────────────────────────
# Labels
# ───────────────────────────────────────────────

def format_member(member: Member) -> str:
    """``+ name(params) : Type`` label for a member row."""
    label = ""
    if member.visibility in _VISIBILITY_SYMBOL:
        label = _VISIBILITY_SYMBOL[member.visibility] + " "
    label += member.name
    if member.member_type == MemberType.METHOD and member.parameters is not None:
        label += f"({member.parameters})"
    if member.return_type:
        label += f" : {member.return_type}"
    return label


def _member_font(member: Member) -> int:
    if member.is_static:
        return 4
    if member.is_abstract:
        return 2
    return 0


def header_lines(entity: ClassEntity) -> List[str]:
    """Header text lines: type keyword, stereotypes, then the name."""
    lines = []
    if entity.type in _TYPE_PREFIX:
        lines.append(f"<<{_TYPE_PREFIX[entity.type]}>>")
    lines += [f"<<{s}>>" for s in entity.stereotypes]
    name = entity.display_name
    if entity.generic_params:
        name += f"<{entity.generic_params}>"
    lines.append(name)
    return lines


def _json_rows(node: JsonNode, depth: int = 0) -> List[Tuple[str, int]]:
    """Flatten a JSON tree into ``(text, depth)`` rows."""
    rows: List[Tuple[str, int]] = []
    if node.type == JsonNodeType.OBJECT:
        for key, child in node.entries:
            if child.type == JsonNodeType.SCALAR:
                rows.append((f'"{key}": {child.value}', depth))
            else:
                rows.append((f'"{key}":', depth))
                rows += _json_rows(child, depth + 1)
    elif node.type == JsonNodeType.ARRAY:
        for child in node.items:
            if child.type == JsonNodeType.SCALAR:
                rows.append((f"- {child.value}", depth))
            else:
                rows.append(("-", depth))
                rows += _json_rows(child, depth + 1)
    else:
        rows.append((node.value, depth))
    return rows


# ───────────────────────────────────────────────
# Body rows
# ───────────────────────────────────────────────

@dataclass
class _Row:
    """One body row, ready to emit as a child of the swimlane."""
    text: str
    height: float
    style: str
    split: Optional[str] = None


def _visible(entity: ClassEntity, diagram: ClassDiagram) -> List[Any]:
    hidden = set()
    for key in ("*", entity.code, *(f"<<{s}>>" for s in entity.stereotypes)):
        hidden |= diagram.hidden_members.get(key, set())
    members = [m for m in entity.members if isinstance(m, Member)]
    if "empty members" in hidden and not members:
        return []
    if "empty methods" in hidden and not any(m.member_type == MemberType.METHOD for m in members):
        hidden.add("methods")
    if "empty fields" in hidden and not any(m.member_type == MemberType.FIELD for m in members):
        hidden.add("fields")

    def shown(m: Any) -> bool:
        if isinstance(m, Separator):
            return "members" not in hidden
        if "members" in hidden:
            return False
        if "methods" in hidden and m.member_type == MemberType.METHOD:
            return False
        if "fields" in hidden and m.member_type == MemberType.FIELD:
            return False
        return True

    return [m for m in entity.members if shown(m)]


def body_rows(entity: ClassEntity, diagram: ClassDiagram) -> List[_Row]:
    """Rows to stack under the header of *entity*."""
    rows: List[_Row] = []
    if entity.type == EntityType.MAP:
        for entry in entity.map_entries:
            rows.append(_Row(entry.key, ROW_HEIGHT, _row_style(bordered=True),
                             split=entry.value or ""))
    elif entity.type == EntityType.JSON:
        if entity.json_root is not None:
            for text, depth in _json_rows(entity.json_root):
                rows.append(_Row(text, ROW_HEIGHT, _row_style(indent=depth * JSON_INDENT)))
    else:
        for m in _visible(entity, diagram):
            if isinstance(m, Separator):
                rows.append(_Row(m.label, SEPARATOR_HEIGHT, _separator_style(m)))
            elif entity.type == EntityType.OBJECT:
                rows.append(_Row(m.raw_text, ROW_HEIGHT, _row_style()))
            else:
                rows.append(_Row(format_member(m), ROW_HEIGHT, _row_style(_member_font(m))))
    return rows


def _text_width(text: str) -> int:
    return max((len(line) for line in text_lines(text)), default=0) * CHAR_WIDTH + 16


def _note_height(text: str) -> float:
    return max(NOTE_MIN_HEIGHT, len(text_lines(text)) * NOTE_LINE_HEIGHT + 16)


@dataclass
class _Box:
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


class ClassEmitter:
    """Grid layout + cell emission for one class diagram."""

    def __init__(self, parent_id: str):
        self.parent_id = parent_id
        self.next_id = IdGenerator("puml")
        self.cells: List[Cell] = []
        self.diagram: Optional[ClassDiagram] = None
        self.sizes: Dict[str, Tuple[float, float, float]] = {}
        self.positions: Dict[str, _Box] = {}
        self.package_boxes: Dict[str, _Box] = {}
        self.cell_ids: Dict[str, str] = {}

    def emit(self, diagram: ClassDiagram) -> List[Cell]:
        self.diagram = diagram
        for code, entity in self._entities():
            self.sizes[code] = self._measure(entity)

        origin_x = MARGIN
        origin_y = MARGIN
        if diagram.title:
            origin_y += TITLE_HEIGHT
        if any(n.position == NotePosition.LEFT and n.entity_code for n in diagram.notes):
            origin_x += NOTE_WIDTH + NOTE_GAP
        if any(n.position == NotePosition.TOP and n.entity_code for n in diagram.notes):
            origin_y += NOTE_MIN_HEIGHT + NOTE_GAP
        bottom = self._layout(origin_x, origin_y)

        if diagram.title:
            width = max((b.right for b in self.positions.values()), default=CLASS_WIDTH)
            self.cells.append(vertex(
                self.next_id(), diagram.title, TITLE_STYLE, self.parent_id,
                MARGIN, MARGIN / 2, max(width - MARGIN, CLASS_WIDTH), TITLE_HEIGHT,
            ))
        for pkg in diagram.packages:
            self._emit_package(pkg)
        for code, entity in self._entities():
            self._emit_entity(entity)
        self._emit_notes(bottom)
        self._emit_inheritance()
        for link in diagram.links:
            self._emit_link(link)
        return self.cells

    def _entities(self):
        for code, entity in self.diagram.entities.items():
            if code not in self.diagram.removed:
                yield code, entity

    # ═══════════════════════════════════════════════════════
    # Measure / layout
    # ═══════════════════════════════════════════════════════

    def _measure(self, entity: ClassEntity) -> Tuple[float, float, float]:
        """(width, height, header height) of *entity*."""
        if entity.type in _SMALL_TYPES:
            return SMALL_SIZE, SMALL_SIZE, 0
        lines = header_lines(entity)
        header = HEADER_HEIGHT + (len(lines) - 1) * HEADER_LINE
        rows = body_rows(entity, self.diagram)
        width = max([CLASS_WIDTH, *(_text_width(ln) for ln in lines)])
        for row in rows:
            text = row.text if row.split is None else f"{row.text}  {row.split}"
            width = max(width, _text_width(text))
        height = header + sum(r.height for r in rows)
        if not rows and not self._hides_empty(entity):
            height += ROW_HEIGHT
        return width, height, header

    def _hides_empty(self, entity: ClassEntity) -> bool:
        hidden = self.diagram.hidden_members
        keys = ("*", entity.code)
        return any(
            c in hidden.get(k, set()) for k in keys for c in ("empty members", "members")
        ) or entity.type == EntityType.OBJECT

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

    def _grid(self, codes: List[str], x0: float, y0: float) -> float:
        col, x, y, row_height = 0, x0, y0, 0.0
        for code in self._ordered(codes):
            if code not in self.sizes:
                continue
            w, h, _ = self.sizes[code]
            self.positions[code] = _Box(x, y, w, h)
            row_height = max(row_height, h)
            col += 1
            if col >= COLS_PER_ROW:
                col, x = 0, x0
                y += row_height + V_GAP
                row_height = 0
            else:
                x += w + H_GAP
        return y + row_height

    def _layout(self, x0: float, y0: float) -> float:
        packaged = set()

        def collect(pkg: Package) -> None:
            packaged.update(pkg.entities)
            for sub in pkg.sub_packages:
                collect(sub)

        for pkg in self.diagram.packages:
            collect(pkg)
        roots = [code for code, _ in self._entities() if code not in packaged]
        y = y0
        if roots:
            y = self._grid(roots, x0, y) + V_GAP
        for pkg in self.diagram.packages:
            y = self._layout_package(pkg, x0, y) + V_GAP
        return y

    def _layout_package(self, pkg: Package, x0: float, y0: float) -> float:
        inner_x = x0 + PACKAGE_PADDING
        y = y0 + PACKAGE_HEADER
        right = x0 + max(CLASS_WIDTH, _text_width(pkg.name)) + 2 * PACKAGE_PADDING
        codes = [c for c in pkg.entities if c in self.sizes]
        if codes:
            y = self._grid(codes, inner_x, y)
            right = max(right, *(self.positions[c].right + PACKAGE_PADDING for c in codes))
        for sub in pkg.sub_packages:
            y = self._layout_package(sub, inner_x, y + PACKAGE_PADDING)
            right = max(right, self.package_boxes[sub.path].right + PACKAGE_PADDING)
        bottom = y + PACKAGE_PADDING
        self.package_boxes[pkg.path] = _Box(x0, y0, right - x0, bottom - y0)
        return bottom

    # ═══════════════════════════════════════════════════════
    # Emission
    # ═══════════════════════════════════════════════════════

    def _emit_package(self, pkg: Package) -> None:
        box = self.package_boxes.get(pkg.path)
        if box is None:
            return
        self.cells.append(vertex(
            self.next_id(), pkg.name, _package_style(pkg), self.parent_id,
            box.x, box.y, box.width, box.height,
        ))
        for sub in pkg.sub_packages:
            self._emit_package(sub)

    def _emit_entity(self, entity: ClassEntity) -> None:
        box = self.positions.get(entity.code)
        if box is None:
            return
        cell_id = self.next_id()
        self.cell_ids[entity.code] = cell_id

        if entity.type in _SMALL_TYPES:
            style = dict(_SMALL_STYLES[entity.type])
            if entity.color:
                style["fillColor"] = normalize_color(entity.color)
            label = "" if entity.type == EntityType.DIAMOND else entity.display_name
            self.cells.append(vertex(
                cell_id, label, build_style(style), self.parent_id,
                box.x, box.y, box.width, box.height,
            ))
            return

        _, _, header = self.sizes[entity.code]
        self.cells.append(vertex(
            cell_id, "<br>".join(header_lines(entity)), _class_style(entity, header),
            self.parent_id, box.x, box.y, box.width, box.height,
        ))
        y = header
        for row in body_rows(entity, self.diagram):
            if row.split is None:
                self.cells.append(vertex(
                    self.next_id(), row.text, row.style, cell_id, 0, y, box.width, row.height,
                ))
            else:
                half = box.width / 2
                self.cells.append(vertex(
                    self.next_id(), row.text, row.style, cell_id, 0, y, half, row.height,
                ))
                self.cells.append(vertex(
                    self.next_id(), row.split, row.style, cell_id, half, y, half, row.height,
                ))
            y += row.height

    def _emit_notes(self, bottom: float) -> None:
        free_x = MARGIN
        for note in self.diagram.notes:
            height = _note_height(note.text)
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
        if note.link_index is not None:
            link = self.diagram.links[note.link_index]
            a, b = self.positions.get(link.source), self.positions.get(link.target)
            if a and b:
                x = (a.x + a.right + b.x + b.right) / 4 + NOTE_GAP
                y = (a.y + a.bottom + b.y + b.bottom) / 4 - height / 2
                return x, max(y, 0)
        return None, None

    def _emit_inheritance(self) -> None:
        for code, entity in self._entities():
            child = self.cell_ids.get(code)
            if child is None:
                continue
            for parent_code, dashed in (
                [(p, False) for p in entity.extends] + [(i, True) for i in entity.implements]
            ):
                parent = self.cell_ids.get(parent_code)
                if parent is None:
                    continue
                style: Dict[str, Any] = {
                    "html": 1,
                    "rounded": 0,
                    "endArrow": "block",
                    "endFill": 0,
                    "startArrow": "none",
                    "startFill": 0,
                }
                if dashed:
                    style["dashed"] = 1
                self.cells.append(edge(
                    self.next_id(), "", build_style(style), self.parent_id, child, parent,
                ))

    def _emit_link(self, link: Relationship) -> None:
        source = self.cell_ids.get(link.source)
        target = self.cell_ids.get(link.target)
        if source is None or target is None:
            return
        edge_id = self.next_id()
        style = relation_style(link.left_decor, link.right_decor, link.line_style, link.color)
        self.cells.append(edge(
            edge_id, html_label(link.label or ""), build_style(style), self.parent_id,
            source, target,
        ))
        for text, position, style in (
            (link.left_label, -0.8, EDGE_LABEL_STYLE),
            (link.right_label, 0.8, EDGE_LABEL_STYLE),
            (link.left_qualifier, -0.95, QUALIFIER_STYLE),
            (link.right_qualifier, 0.95, QUALIFIER_STYLE),
        ):
            if text:
                self.cells.append(edge_label(self.next_id(), edge_id, text, position, style))


def emit_class_diagram(diagram: ClassDiagram, parent_id: str) -> List[Cell]:
    """Emit *diagram* as draw.io cells parented to *parent_id*."""
    return ClassEmitter(parent_id).emit(diagram)
