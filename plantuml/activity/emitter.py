"""
plantuml/activity/emitter.py

Lay out an :class:`ActivityDiagram` as a vertical flowchart and emit
draw.io cells.

Three passes over the instruction tree:

    1. Measure (post-order) → ``{width, height}`` per instruction
    2. Place   (pre-order)  → ``(x, y)`` per instruction
    3. Emit    (pre-order)  → cells, wired by ``_emit_sequence``

Geometry lives in side-tables keyed by ``node_id``; the model is never
touched.  Branching blocks place their branches side by side; loops route
their back-edge around the left side.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from drawio.builder import Cell, IdGenerator, build_style, edge, vertex
from drawio.colors import normalize_color
from plantuml.activity.model import (
    LEFT,
    RIGHT,
    NON_FLOW,
    Action,
    ActivityDiagram,
    Arrow,
    Break,
    End,
    Fork,
    If,
    Instruction,
    Kill,
    Note,
    Partition,
    Repeat,
    Start,
    Stop,
    Switch,
    While,
    walk,
)


# ───────────────────────────────────────────────
# Layout constants
# ───────────────────────────────────────────────

ACTION_WIDTH = 140
ACTION_HEIGHT = 40
ACTION_CHAR_WIDTH = 7
ACTION_PADDING = 30
ACTION_LINE_HEIGHT = 20
DIAMOND_SIZE = 40
CIRCLE_SIZE = 30
BAR_WIDTH = 40
BAR_HEIGHT = 4
BAR_SPREAD = 0.7
NOTE_WIDTH = 140
NOTE_MIN_HEIGHT = 40
NOTE_LINE_HEIGHT = 16
NOTE_OFFSET = 160
H_GAP = 40
V_GAP = 30
PARTITION_PAD = 20
PARTITION_HEADER = 25
SWIMLANE_MIN_W = 200
SWIMLANE_HEADER = 30
MARGIN = 40
LOOP_OFFSET = 30
TITLE_HEIGHT = 30

DEFAULT_LANE = "__default__"


# ───────────────────────────────────────────────
# Styles
# ───────────────────────────────────────────────

def _action_style(color: Optional[str]) -> str:
    s: Dict[str, Any] = {
        "rounded": 1,
        "whiteSpace": "wrap",
        "html": 1,
        "align": "center",
        "verticalAlign": "middle",
    }
    if color:
        s["fillColor"] = normalize_color(color)
    return build_style(s)


def _circle_style(fill: str, stroke: str, stroke_width: Optional[int] = None) -> str:
    s: Dict[str, Any] = {
        "shape": "ellipse",
        "fillColor": fill,
        "strokeColor": stroke,
    }
    if stroke_width:
        s["strokeWidth"] = stroke_width
    s["html"] = 1
    s["resizable"] = 0
    return build_style(s)


START_STYLE = _circle_style("#000000", "#000000")
FINAL_OUTER_STYLE = _circle_style("none", "#000000", stroke_width=2)
FINAL_INNER_STYLE = _circle_style("#000000", "#000000")
KILL_STYLE = _circle_style("#FF0000", "#FF0000")

MERGE_STYLE = build_style({
    "shape": "rhombus",
    "fillColor": "#FFFDE7",
    "strokeColor": "#000000",
    "html": 1,
})

BAR_STYLE = build_style({
    "rounded": 1,
    "fillColor": "#444444",
    "strokeColor": "#444444",
    "html": 1,
    "arcSize": 50,
})

TITLE_STYLE = build_style({
    "text": None,
    "html": 1,
    "fontSize": 14,
    "fontStyle": 1,
    "align": "left",
    "verticalAlign": "middle",
    "strokeColor": "none",
    "fillColor": "none",
})


def _diamond_style(color: Optional[str]) -> str:
    return build_style({
        "shape": "rhombus",
        "whiteSpace": "wrap",
        "html": 1,
        "fillColor": normalize_color(color) if color else "#FFFDE7",
        "strokeColor": "#000000",
    })


def _partition_style(color: Optional[str]) -> str:
    return build_style({
        "rounded": 0,
        "whiteSpace": "wrap",
        "html": 1,
        "verticalAlign": "top",
        "fontStyle": 1,
        "fillColor": normalize_color(color) if color else "none",
        "strokeColor": "#666666",
    })


def _note_style(color: Optional[str]) -> str:
    return build_style({
        "shape": "note",
        "whiteSpace": "wrap",
        "html": 1,
        "size": 14,
        "verticalAlign": "top",
        "align": "left",
        "spacingLeft": 4,
        "fillColor": normalize_color(color) if color else "#FFF2CC",
        "strokeColor": "#D6B656",
    })


def _edge_style(color: Optional[str] = None, dashed: bool = False) -> str:
    s: Dict[str, Any] = {
        "html": 1,
        "rounded": 0,
        "endArrow": "block",
        "endFill": 1,
    }
    if color:
        s["strokeColor"] = normalize_color(color)
    if dashed:
        s["dashed"] = 1
    return build_style(s)


def _side(prefix: str, side: str) -> Dict[str, Any]:
    return {
        f"{prefix}X": 0 if side == LEFT else 1,
        f"{prefix}Y": 0.5,
        f"{prefix}Dx": 0,
        f"{prefix}Dy": 0,
    }


def _loop_back_style(exit_side: str = LEFT, entry_side: str = LEFT) -> str:
    s: Dict[str, Any] = {
        "html": 1,
        "rounded": 1,
        "endArrow": "block",
        "endFill": 1,
        "edgeStyle": "orthogonalEdgeStyle",
        "curved": 1,
    }
    s.update(_side("exit", exit_side))
    s.update(_side("entry", entry_side))
    return build_style(s)


def _swimlane_style(color: Optional[str]) -> str:
    return build_style({
        "shape": "swimlane",
        "startSize": SWIMLANE_HEADER,
        "html": 1,
        "collapsible": 0,
        "fontStyle": 1,
        "fillColor": normalize_color(color) if color else "none",
        "swimlaneLine": 1,
    })


def _text_size(text: str) -> Tuple[float, float]:
    lines = (text or "").split("\n")
    longest = max(len(ln) for ln in lines)
    width = max(ACTION_WIDTH, longest * ACTION_CHAR_WIDTH + ACTION_PADDING)
    height = max(ACTION_HEIGHT, len(lines) * ACTION_LINE_HEIGHT + 20)
    return width, height


# ───────────────────────────────────────────────
# Side-table records
# ───────────────────────────────────────────────

@dataclass
class _Box:
    """Measured size and placed position of one instruction."""
    width: float = 0
    height: float = 0
    x: float = 0
    y: float = 0
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class _Ends:
    """Entry and exit cell ids of an emitted instruction (None = no cell)."""
    entry: Optional[str] = None
    exit: Optional[str] = None


# ───────────────────────────────────────────────
# Emitter
# ───────────────────────────────────────────────

class ActivityEmitter:
    """Three-pass layout + cell emission for one activity diagram."""

    def __init__(self, parent_id: str):
        self.parent_id = parent_id
        self.next_id = IdGenerator("puml")
        self.cells: List[Cell] = []
        self.boxes: Dict[int, _Box] = {}
        self.exit_labels: Dict[int, Optional[str]] = {}
        self.lane_cx: Optional[Dict[str, float]] = None
        self.lane_boxes: Dict[str, _Box] = {}

    def emit(self, diagram: ActivityDiagram) -> List[Cell]:
        instructions = diagram.instructions
        top = MARGIN
        if diagram.title:
            self.cells.append(vertex(
                self.next_id(), diagram.title, TITLE_STYLE, self.parent_id,
                MARGIN, 5, max(ACTION_WIDTH, len(diagram.title) * 9), TITLE_HEIGHT - 5,
            ))
            top += TITLE_HEIGHT

        width, height = self._measure_sequence(instructions)

        if diagram.swimlanes:
            self._place_swimlanes(diagram, instructions, height, top)
            self._emit_swimlanes(diagram)
        else:
            self._place_sequence(instructions, MARGIN + width / 2, top)

        self._emit_sequence(instructions)
        return self.cells

    # ═══════════════════════════════════════════════════════
    # Measure
    # ═══════════════════════════════════════════════════════

    def _measure_sequence(self, instructions: List[Instruction]) -> Tuple[float, float]:
        total_h = 0.0
        max_w = 0.0
        for instr in instructions:
            w, h = self._measure(instr)
            box = self.boxes.setdefault(instr.node_id, _Box())
            box.width, box.height = w, h
            if isinstance(instr, NON_FLOW):
                continue
            if total_h > 0:
                total_h += V_GAP
            total_h += h
            max_w = max(max_w, w)
        return (max_w or ACTION_WIDTH), total_h

    def _measure(self, instr: Instruction) -> Tuple[float, float]:
        if isinstance(instr, Action):
            return _text_size(instr.label)
        if isinstance(instr, (Start, Stop, End, Kill)):
            return CIRCLE_SIZE, CIRCLE_SIZE
        if isinstance(instr, (Break, Arrow)):
            return 0, 0
        if isinstance(instr, If):
            return self._measure_if(instr)
        if isinstance(instr, (While, Repeat)):
            return self._measure_loop(instr)
        if isinstance(instr, Switch):
            return self._measure_columns(
                instr, [case.body for case in instr.cases], DIAMOND_SIZE, DIAMOND_SIZE / 2
            )
        if isinstance(instr, Fork):
            return self._measure_columns(instr, instr.branches, BAR_HEIGHT, BAR_HEIGHT)
        if isinstance(instr, Partition):
            w, h = self._measure_sequence(instr.body)
            self._extra(instr)["body"] = (w, h)
            return w + PARTITION_PAD * 2, PARTITION_HEADER + h + PARTITION_PAD
        if isinstance(instr, Note):
            lines = (instr.text or "").split("\n")
            return NOTE_WIDTH, max(NOTE_MIN_HEIGHT, len(lines) * NOTE_LINE_HEIGHT + 16)
        return ACTION_WIDTH, ACTION_HEIGHT

    def _extra(self, instr: Instruction) -> Dict[str, Any]:
        return self.boxes.setdefault(instr.node_id, _Box()).extra

    def _measure_if(self, instr: If) -> Tuple[float, float]:
        extra = self._extra(instr)
        if instr.only_breaks():
            extra["columns"] = []
            return DIAMOND_SIZE, DIAMOND_SIZE

        bodies = [instr.then_branch]
        bodies += [eib.body for eib in instr.elseif_branches]
        bodies.append(instr.else_branch)

        columns = []
        max_h = 0.0
        for body in bodies:
            w, h = self._measure_sequence(body)
            columns.append(max(w, DIAMOND_SIZE))
            max_h = max(max_h, h)
        extra["columns"] = columns

        total_w = sum(columns) + H_GAP * (len(columns) - 1)
        height = DIAMOND_SIZE + V_GAP + max_h + V_GAP + DIAMOND_SIZE / 2
        return total_w, height

    def _measure_loop(self, instr: Instruction) -> Tuple[float, float]:
        extra = self._extra(instr)
        body_w, body_h = self._measure_sequence(instr.body)
        extra["body"] = (body_w, body_h)
        width = max(body_w, DIAMOND_SIZE) + LOOP_OFFSET * 2
        if isinstance(instr, While):
            return width, DIAMOND_SIZE + V_GAP + body_h + V_GAP

        header_h = 0.0
        if instr.start_label:
            sw, sh = _text_size(instr.start_label)
            extra["start"] = (sw, sh)
            header_h = sh + V_GAP
        return width, header_h + body_h + V_GAP + DIAMOND_SIZE + V_GAP

    def _measure_columns(
        self,
        instr: Instruction,
        bodies: List[List[Instruction]],
        top_h: float,
        bottom_h: float,
    ) -> Tuple[float, float]:
        columns = []
        max_h = 0.0
        for body in bodies:
            w, h = self._measure_sequence(body)
            columns.append(max(w, ACTION_WIDTH))
            max_h = max(max_h, h)
        spread = sum(columns) + H_GAP * max(len(columns) - 1, 0)
        extra = self._extra(instr)
        extra["columns"] = columns
        if isinstance(instr, Fork):
            extra["bar_width"] = max(BAR_WIDTH, spread * BAR_SPREAD)
            width = max(spread, BAR_WIDTH)
        else:
            width = max(spread, DIAMOND_SIZE)
        return width, top_h + V_GAP + max_h + V_GAP + bottom_h

    # ═══════════════════════════════════════════════════════
    # Place
    # ═══════════════════════════════════════════════════════

    def _lane_center(self, instr: Instruction, default_cx: float) -> float:
        if self.lane_cx is not None and instr.swimlane:
            return self.lane_cx.get(instr.swimlane, default_cx)
        return default_cx

    def _place_sequence(
        self,
        instructions: List[Instruction],
        cx: float,
        y: float,
    ) -> None:
        current_y = y
        last_y = y
        note_bottom = {LEFT: 0.0, RIGHT: 0.0}
        for instr in instructions:
            if isinstance(instr, (Arrow, Break)):
                continue
            instr_cx = self._lane_center(instr, cx)
            box = self.boxes[instr.node_id]
            if isinstance(instr, Note):
                note_y = max(last_y, note_bottom[instr.position])
                self._place_note(instr, instr_cx, note_y)
                note_bottom[instr.position] = note_y + box.height + 4
                continue
            self._place(instr, instr_cx, current_y)
            last_y = current_y
            current_y += box.height + V_GAP

    def _place(self, instr: Instruction, cx: float, y: float) -> None:
        box = self.boxes[instr.node_id]
        box.x = cx - box.width / 2
        box.y = y
        if isinstance(instr, If):
            self._place_if(instr, cx, y)
        elif isinstance(instr, While):
            box.extra["diamond"] = (cx - DIAMOND_SIZE / 2, y)
            self._place_sequence(instr.body, cx, y + DIAMOND_SIZE + V_GAP)
        elif isinstance(instr, Repeat):
            self._place_repeat(instr, cx, y)
        elif isinstance(instr, Switch):
            box.extra["diamond"] = (cx - DIAMOND_SIZE / 2, y)
            self._place_columns(box, [c.body for c in instr.cases], cx, y + DIAMOND_SIZE + V_GAP)
            box.extra["merge"] = (cx - DIAMOND_SIZE / 4, y + box.height - DIAMOND_SIZE / 2)
        elif isinstance(instr, Fork):
            bar_w = box.extra["bar_width"]
            box.extra["top_bar"] = (cx - bar_w / 2, y)
            self._place_columns(box, instr.branches, cx, y + BAR_HEIGHT + V_GAP)
            box.extra["bottom_bar"] = (cx - bar_w / 2, y + box.height - BAR_HEIGHT)
        elif isinstance(instr, Partition):
            self._place_sequence(instr.body, cx, y + PARTITION_HEADER)

    def _place_columns(
        self, box: _Box, bodies: List[List[Instruction]], cx: float, y: float
    ) -> List[float]:
        """Place bodies side by side under a header; return column centers."""
        col_x = cx - box.width / 2
        centers = []
        for body, col_w in zip(bodies, box.extra["columns"]):
            col_cx = col_x + col_w / 2
            self._place_sequence(body, col_cx, y)
            centers.append(col_cx)
            col_x += col_w + H_GAP
        return centers

    def _place_if(self, instr: If, cx: float, y: float) -> None:
        box = self.boxes[instr.node_id]
        if instr.only_breaks():
            box.extra["diamond"] = (cx - DIAMOND_SIZE / 2, y)
            return

        bodies = [instr.then_branch]
        bodies += [eib.body for eib in instr.elseif_branches]
        bodies.append(instr.else_branch)
        centers = self._place_columns(box, bodies, cx, y + DIAMOND_SIZE + V_GAP)

        if instr.elseif_branches:
            # main diamond above the then column, one diamond per elseif column
            box.extra["diamond"] = (centers[0] - DIAMOND_SIZE / 2, y)
            box.extra["elseif_diamonds"] = [
                (c - DIAMOND_SIZE / 2, y) for c in centers[1:-1]
            ]
        else:
            box.extra["diamond"] = (cx - DIAMOND_SIZE / 2, y)
        box.extra["merge"] = (cx - DIAMOND_SIZE / 4, y + box.height - DIAMOND_SIZE / 2)

    def _place_repeat(self, instr: Repeat, cx: float, y: float) -> None:
        box = self.boxes[instr.node_id]
        current_y = y
        if "start" in box.extra:
            sw, sh = box.extra["start"]
            box.extra["start_pos"] = (cx - sw / 2, current_y)
            current_y += sh + V_GAP
        self._place_sequence(instr.body, cx, current_y)
        current_y += box.extra["body"][1] + V_GAP
        box.extra["diamond"] = (cx - DIAMOND_SIZE / 2, current_y)

    def _place_note(self, instr: Note, cx: float, y: float) -> None:
        box = self.boxes[instr.node_id]
        offset = -NOTE_OFFSET if instr.position == LEFT else NOTE_OFFSET
        box.x = cx + offset - NOTE_WIDTH / 2
        box.y = y

    def _place_swimlanes(
        self,
        diagram: ActivityDiagram,
        instructions: List[Instruction],
        total_height: float,
        top: float,
    ) -> None:
        lanes = list(diagram.swimlanes)
        if any(i.swimlane is None for i in instructions):
            lanes.insert(0, DEFAULT_LANE)

        widths = {name: float(SWIMLANE_MIN_W) for name in lanes}
        for instr in walk(instructions):
            if isinstance(instr, (Arrow, Note, Break)):
                continue
            lane = instr.swimlane or DEFAULT_LANE
            if lane not in widths:
                continue
            widths[lane] = max(widths[lane], self.boxes[instr.node_id].width + PARTITION_PAD * 2)

        self.lane_cx = {}
        lane_x = float(MARGIN)
        for name in lanes:
            self.lane_boxes[name] = _Box(
                width=widths[name],
                height=total_height + SWIMLANE_HEADER + MARGIN * 2,
                x=lane_x,
                y=top - MARGIN,
            )
            self.lane_cx[name] = lane_x + widths[name] / 2
            lane_x += widths[name]

        self._place_sequence(instructions, self.lane_cx[lanes[0]], top + SWIMLANE_HEADER)

    # ═══════════════════════════════════════════════════════
    # Emit
    # ═══════════════════════════════════════════════════════

    def _emit_swimlanes(self, diagram: ActivityDiagram) -> None:
        for name, lane in diagram.swimlanes.items():
            box = self.lane_boxes.get(name)
            if box is None:
                continue
            self.cells.append(vertex(
                self.next_id(), lane.label or name, _swimlane_style(lane.color),
                self.parent_id, box.x, box.y, box.width, box.height,
            ))

    def _emit_sequence(self, instructions: List[Instruction]) -> _Ends:
        """Emit *instructions* in order and chain them with edges.

        Returns:
            Entry id of the first flow cell and exit id of the last one.
        """
        first: Optional[str] = None
        prev_exit: Optional[str] = None
        prev_instr: Optional[Instruction] = None
        pending: Optional[Arrow] = None

        for instr in instructions:
            if isinstance(instr, Arrow):
                pending = instr
                continue

            ends = self._emit_instruction(instr)

            if first is None:
                first = ends.entry

            if prev_exit is not None and ends.entry is not None:
                label = pending.label if pending else None
                if label is None and prev_instr is not None:
                    label = self.exit_labels.get(prev_instr.node_id)
                self._edge(
                    prev_exit, ends.entry, label,
                    pending.color if pending else None,
                    pending.dashed if pending else False,
                )

            pending = None
            # notes and breaks keep the chain; kill (exit None) cuts it
            if ends.entry is not None or ends.exit is not None:
                prev_exit = ends.exit
                prev_instr = instr

        return _Ends(first, prev_exit)

    def _emit_instruction(self, instr: Instruction) -> _Ends:
        if isinstance(instr, Action):
            return self._emit_box(instr, instr.label, _action_style(instr.color))
        if isinstance(instr, Start):
            return self._emit_box(instr, "", START_STYLE)
        if isinstance(instr, (Stop, End)):
            return self._emit_final(instr)
        if isinstance(instr, Kill):
            ends = self._emit_box(instr, "", KILL_STYLE)
            return _Ends(ends.entry, None)
        if isinstance(instr, Break):
            return _Ends()
        if isinstance(instr, If):
            return self._emit_if(instr)
        if isinstance(instr, While):
            return self._emit_while(instr)
        if isinstance(instr, Repeat):
            return self._emit_repeat(instr)
        if isinstance(instr, Switch):
            return self._emit_switch(instr)
        if isinstance(instr, Fork):
            return self._emit_fork(instr)
        if isinstance(instr, Partition):
            return self._emit_partition(instr)
        if isinstance(instr, Note):
            self._emit_box(instr, instr.text, _note_style(instr.color))
            return _Ends()
        return _Ends()

    def _vertex(self, value: str, style: str, x: float, y: float, w: float, h: float) -> str:
        cell_id = self.next_id()
        self.cells.append(vertex(cell_id, value, style, self.parent_id, x, y, w, h))
        return cell_id

    def _emit_box(self, instr: Instruction, value: str, style: str) -> _Ends:
        box = self.boxes[instr.node_id]
        cell_id = self._vertex(value or "", style, box.x, box.y, box.width, box.height)
        return _Ends(cell_id, cell_id)

    def _emit_final(self, instr: Instruction) -> _Ends:
        box = self.boxes[instr.node_id]
        outer = self._vertex("", FINAL_OUTER_STYLE, box.x, box.y, CIRCLE_SIZE, CIRCLE_SIZE)
        inner_size = round(CIRCLE_SIZE * 0.53)
        offset = round((CIRCLE_SIZE - inner_size) / 2)
        self._vertex(
            "", FINAL_INNER_STYLE, box.x + offset, box.y + offset, inner_size, inner_size
        )
        return _Ends(outer, outer)

    def _diamond(self, label: str, color: Optional[str], pos: Tuple[float, float]) -> str:
        return self._vertex(label or "", _diamond_style(color), pos[0], pos[1],
                            DIAMOND_SIZE, DIAMOND_SIZE)

    def _merge(self, pos: Tuple[float, float]) -> str:
        return self._vertex("", MERGE_STYLE, pos[0], pos[1], DIAMOND_SIZE / 2, DIAMOND_SIZE / 2)

    def _branch_into(
        self, source: str, body: List[Instruction], merge: str, label: Optional[str]
    ) -> None:
        """Emit *body* between *source* and *merge*; empty bodies link directly."""
        ends = self._emit_sequence(body)
        self._edge(source, ends.entry if ends.entry else merge, label)
        if ends.entry and ends.exit:
            self._edge(ends.exit, merge)

    def _emit_if(self, instr: If) -> _Ends:
        extra = self.boxes[instr.node_id].extra
        diamond = self._diamond(instr.condition, instr.color, extra["diamond"])
        if instr.only_breaks():
            return _Ends(diamond, diamond)

        merge = self._merge(extra["merge"])
        self._branch_into(diamond, instr.then_branch, merge, instr.then_label)

        last = diamond
        for eib, pos in zip(instr.elseif_branches, extra.get("elseif_diamonds", [])):
            eib_diamond = self._diamond(eib.condition, None, pos)
            self._edge(last, eib_diamond)
            self._branch_into(eib_diamond, eib.body, merge, eib.label or "yes")
            last = eib_diamond

        self._branch_into(last, instr.else_branch, merge, instr.else_label)
        return _Ends(diamond, merge)

    def _emit_while(self, instr: While) -> _Ends:
        extra = self.boxes[instr.node_id].extra
        diamond = self._diamond(instr.condition, instr.color, extra["diamond"])
        ends = self._emit_sequence(instr.body)
        if ends.entry:
            self._edge(diamond, ends.entry, instr.yes_label)
        if ends.exit:
            self._loop_back(ends.exit, diamond)
        self.exit_labels[instr.node_id] = instr.no_label
        return _Ends(diamond, diamond)

    def _emit_repeat(self, instr: Repeat) -> _Ends:
        extra = self.boxes[instr.node_id].extra
        top: Optional[str] = None
        if "start" in extra:
            sw, sh = extra["start"]
            sx, sy = extra["start_pos"]
            top = self._vertex(instr.start_label, _action_style(None), sx, sy, sw, sh)

        ends = self._emit_sequence(instr.body)
        if top is not None and ends.entry:
            self._edge(top, ends.entry)
        if top is None:
            top = ends.entry

        diamond = self._diamond(instr.condition, instr.color, extra["diamond"])
        if ends.exit:
            self._edge(ends.exit, diamond)
        self._loop_back(diamond, top or diamond, instr.yes_label)
        self.exit_labels[instr.node_id] = instr.no_label
        return _Ends(top or diamond, diamond)

    def _emit_switch(self, instr: Switch) -> _Ends:
        extra = self.boxes[instr.node_id].extra
        diamond = self._diamond(instr.condition, instr.color, extra["diamond"])
        merge = self._merge(extra["merge"])
        for case in instr.cases:
            ends = self._emit_sequence(case.body)
            if ends.entry:
                self._edge(diamond, ends.entry, case.label)
            if ends.exit:
                self._edge(ends.exit, merge)
        return _Ends(diamond, merge)

    def _emit_fork(self, instr: Fork) -> _Ends:
        extra = self.boxes[instr.node_id].extra
        bar_w = extra["bar_width"]
        top_x, top_y = extra["top_bar"]
        bot_x, bot_y = extra["bottom_bar"]
        top_bar = self._vertex("", BAR_STYLE, top_x, top_y, bar_w, BAR_HEIGHT)
        bottom_bar = self._vertex("", BAR_STYLE, bot_x, bot_y, bar_w, BAR_HEIGHT)
        for branch in instr.branches:
            ends = self._emit_sequence(branch)
            if ends.entry:
                self._edge(top_bar, ends.entry)
            if ends.exit:
                self._edge(ends.exit, bottom_bar)
        return _Ends(top_bar, bottom_bar)

    def _emit_partition(self, instr: Partition) -> _Ends:
        box = self.boxes[instr.node_id]
        frame = self._vertex(instr.name, _partition_style(instr.color),
                             box.x, box.y, box.width, box.height)
        ends = self._emit_sequence(instr.body)
        if ends.entry is None and ends.exit is None:
            return _Ends(frame, frame)
        return ends

    def _edge(
        self,
        source: Optional[str],
        target: Optional[str],
        label: Optional[str] = None,
        color: Optional[str] = None,
        dashed: bool = False,
    ) -> None:
        if source is None or target is None:
            return
        self.cells.append(edge(
            self.next_id(), label or "", _edge_style(color, dashed),
            self.parent_id, source, target,
        ))

    def _loop_back(self, source: str, target: str, label: Optional[str] = None) -> None:
        self.cells.append(edge(
            self.next_id(), label or "", _loop_back_style(LEFT, LEFT),
            self.parent_id, source, target,
        ))


def emit_activity_diagram(diagram: ActivityDiagram, parent_id: str) -> List[Cell]:
    """Emit *diagram* as draw.io cells parented to *parent_id*."""
    return ActivityEmitter(parent_id).emit(diagram)
