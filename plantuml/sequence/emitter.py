"""
plantuml/sequence/emitter.py

Lay out a :class:`SequenceDiagram` and emit draw.io cells.

Participants become columns; the element list is walked once, top to
bottom, with a y cursor.  Messages are freestanding edges between
lifeline x positions, so the output needs no attached edges.  Cells are
collected in layers and concatenated at the end so that boxes and
fragment frames sit behind lifelines, and lifelines behind messages.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from drawio.builder import Cell, IdGenerator, build_style, free_edge, vertex
from drawio.colors import normalize_color
from plantuml.common import html_label, note_style, text_lines
from plantuml.sequence.arrows import ArrowBody, ArrowConfig, ArrowDecoration, ArrowHead
from plantuml.sequence.model import (
    AutoNumber,
    Delay,
    Divider,
    Element,
    ExoMessage,
    ExoType,
    Fragment,
    FragmentType,
    HSpace,
    LifeEvent,
    LifeEventType,
    Message,
    Note,
    Participant,
    ParticipantType,
    Reference,
    SequenceDiagram,
)


# ───────────────────────────────────────────────
# Layout constants
# ───────────────────────────────────────────────

PARTICIPANT_WIDTH = 120
PARTICIPANT_HEIGHT = 40
PARTICIPANT_GAP = 40
CHAR_WIDTH = 7
TEXT_PADDING = 20
LABEL_BELOW = 20
LIFELINE_TOP_MARGIN = 30
ROW_HEIGHT = 40
LINE_HEIGHT = 16
ACTIVATION_WIDTH = 10
ACTIVATION_NEST = 5
NOTE_WIDTH = 120
NOTE_MARGIN = 10
FRAGMENT_PADDING = 10
FRAGMENT_HEADER = 20
FRAGMENT_TAB_WIDTH = 60
SECTION_GAP = 20
DIVIDER_HEIGHT = 20
DELAY_HEIGHT = 30
HSPACE_DEFAULT = 20
REF_MIN_HEIGHT = 30
MARGIN_LEFT = 40
MARGIN_TOP = 20
TITLE_HEIGHT = 30
BOX_HEADER = 20
SELF_WIDTH = 30
SELF_HEIGHT = 20
EXO_LENGTH = 60
DESTROY_SIZE = 18

# (width, height, label below the shape)
_SHAPE_SIZES: Dict[str, Tuple[int, int, bool]] = {
    ParticipantType.ACTOR: (40, 50, True),
    ParticipantType.BOUNDARY: (50, 50, True),
    ParticipantType.CONTROL: (50, 50, True),
    ParticipantType.ENTITY: (50, 50, True),
    ParticipantType.DATABASE: (40, 60, True),
    ParticipantType.QUEUE: (60, 40, False),
}


# ───────────────────────────────────────────────
# Styles
# ───────────────────────────────────────────────

_PARTICIPANT_SHAPES: Dict[str, Dict[str, Any]] = {
    ParticipantType.PARTICIPANT: {"rounded": 1, "whiteSpace": "wrap"},
    ParticipantType.ACTOR: {"shape": "umlActor", "verticalLabelPosition": "bottom", "verticalAlign": "top"},
    ParticipantType.BOUNDARY: {"shape": "umlBoundary", "verticalLabelPosition": "bottom", "verticalAlign": "top"},
    ParticipantType.CONTROL: {"ellipse": None, "shape": "umlControl", "verticalLabelPosition": "bottom", "verticalAlign": "top"},
    ParticipantType.ENTITY: {"ellipse": None, "shape": "umlEntity", "verticalLabelPosition": "bottom", "verticalAlign": "top"},
    ParticipantType.DATABASE: {"shape": "cylinder3", "size": 8, "verticalLabelPosition": "bottom", "verticalAlign": "top"},
    ParticipantType.QUEUE: {"shape": "cylinder3", "direction": "south", "size": 8, "whiteSpace": "wrap"},
    ParticipantType.COLLECTIONS: {"shape": "mxgraph.basic.layered_rect", "dx": 6, "whiteSpace": "wrap"},
}


def _participant_style(p: Participant) -> str:
    s: Dict[str, Any] = dict(_PARTICIPANT_SHAPES.get(p.type, _PARTICIPANT_SHAPES[ParticipantType.PARTICIPANT]))
    s["html"] = 1
    s["fillColor"] = normalize_color(p.color) if p.color else "#dae8fc"
    s["strokeColor"] = "#6c8ebf"
    return build_style(s)


LIFELINE_STYLE = build_style({
    "html": 1,
    "dashed": 1,
    "dashPattern": "4 4",
    "strokeColor": "#999999",
    "endArrow": "none",
    "startArrow": "none",
})


def _activation_style(color: Optional[str]) -> str:
    return build_style({
        "html": 1,
        "fillColor": normalize_color(color) if color else "#f5f5f5",
        "strokeColor": "#666666",
    })


_NOTE_SHAPES = {"hnote": "hexagon", "rnote": "rectangle"}


def _note_style(shape: str, color: Optional[str]) -> str:
    s = note_style(color)
    if shape in _NOTE_SHAPES:
        s["shape"] = _NOTE_SHAPES[shape]
        if shape == "hnote":
            s["perimeter"] = "hexagonPerimeter2"
            s["size"] = 0.1
    return build_style(s)


DIVIDER_STYLE = build_style({
    "html": 1,
    "fillColor": "#eeeeee",
    "strokeColor": "#666666",
    "align": "center",
    "verticalAlign": "middle",
    "fontStyle": 1,
})

DELAY_STYLE = build_style({
    "text": None,
    "html": 1,
    "align": "center",
    "verticalAlign": "middle",
    "fontStyle": 2,
    "fillColor": "none",
    "strokeColor": "none",
})


def _fragment_style(color: Optional[str]) -> str:
    return build_style({
        "html": 1,
        "fillColor": normalize_color(color) if color else "none",
        "strokeColor": "#000000",
        "verticalAlign": "top",
        "align": "left",
        "spacingLeft": FRAGMENT_TAB_WIDTH + 6,
        "fontStyle": 1,
    })


FRAGMENT_TAB_STYLE = build_style({
    "shape": "card",
    "direction": "west",
    "size": 6,
    "html": 1,
    "fillColor": "#e6e6e6",
    "strokeColor": "#000000",
    "fontStyle": 1,
    "align": "left",
    "spacingLeft": 4,
})

SECTION_STYLE = build_style({
    "html": 1,
    "dashed": 1,
    "dashPattern": "6 4",
    "endArrow": "none",
    "startArrow": "none",
    "strokeColor": "#000000",
    "align": "left",
    "verticalAlign": "top",
    "labelPosition": "right",
})


def _reference_style(color: Optional[str]) -> str:
    return build_style({
        "html": 1,
        "whiteSpace": "wrap",
        "fillColor": normalize_color(color) if color else "#f5f5f5",
        "strokeColor": "#000000",
    })


def _box_style(color: Optional[str]) -> str:
    s: Dict[str, Any] = {
        "html": 1,
        "dashed": 1,
        "verticalAlign": "top",
        "fontStyle": 1,
        "strokeColor": "#666666",
        "fillColor": "none",
    }
    if color:
        s["fillColor"] = normalize_color(color)
        s["fillOpacity"] = 20
    return build_style(s)


DESTROY_STYLE = build_style({
    "shape": "mxgraph.basic.x",
    "fillColor": "#FF0000",
    "strokeColor": "#FF0000",
    "html": 1,
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

_HEAD_ENDS: Dict[str, Tuple[str, int]] = {
    ArrowHead.NORMAL: ("block", 1),
    ArrowHead.ASYNC: ("open", 0),
    ArrowHead.CROSS: ("cross", 0),
    ArrowHead.NONE: ("none", 0),
}


def message_style(arrow: ArrowConfig, self_message: bool = False) -> str:
    """Edge style for a message arrow."""
    s: Dict[str, Any] = {
        "html": 1,
        "verticalAlign": "bottom",
        "rounded": 0,
    }
    end, end_fill = _HEAD_ENDS[arrow.head2]
    start, start_fill = _HEAD_ENDS[arrow.head1]
    if arrow.decoration2 == ArrowDecoration.CIRCLE:
        end, end_fill = "oval", 0
    if arrow.decoration1 == ArrowDecoration.CIRCLE:
        start, start_fill = "oval", 0
    s["endArrow"] = end
    s["endFill"] = end_fill
    s["startArrow"] = start
    s["startFill"] = start_fill

    if arrow.body in (ArrowBody.DOTTED, ArrowBody.DASHED):
        s["dashed"] = 1
    elif arrow.body == ArrowBody.BOLD:
        s["strokeWidth"] = 2
    elif arrow.body == ArrowBody.HIDDEN:
        s["opacity"] = 0
        s["textOpacity"] = 0
    if arrow.color:
        s["strokeColor"] = normalize_color(arrow.color)
        s["fontColor"] = normalize_color(arrow.color)
    if self_message:
        s["align"] = "left"
        s["spacingLeft"] = 4
    return build_style(s)


def format_number(number: int, fmt: Optional[str]) -> str:
    """Render an autonumber value; zero runs in *fmt* are padded to their width."""
    if not fmt:
        return str(number)
    m = re.search(r"0+|#+", fmt)
    if m is None:
        return f"{fmt}{number}"
    run = m.group(0)
    digits = str(number).zfill(len(run)) if run[0] == "0" else str(number)
    return fmt[:m.start()] + digits + fmt[m.end():]


def _text_width(text: str) -> int:
    return max((len(line) for line in text_lines(text)), default=0) * CHAR_WIDTH + TEXT_PADDING


def _text_height(text: str) -> int:
    return len(text_lines(text)) * LINE_HEIGHT


# ───────────────────────────────────────────────
# Side tables
# ───────────────────────────────────────────────

@dataclass
class _Column:
    participant: Participant
    center: float
    width: float
    height: float
    label_below: bool
    header_y: Optional[float] = None
    end_y: Optional[float] = None
    destroyed: bool = False

    @property
    def lifeline_top(self) -> float:
        return self.header_y + self.height + (LABEL_BELOW if self.label_below else 0)


@dataclass
class _Bar:
    start: float
    depth: int
    caller: Optional[str] = None
    color: Optional[str] = None


@dataclass
class _Numbering:
    active: bool = False
    value: int = 1
    step: int = 1
    format: Optional[str] = None

    def next_label(self, label: str) -> str:
        if not self.active:
            return label
        number = format_number(self.value, self.format)
        self.value += self.step
        return f"{number} {label}".strip()


@dataclass
class _Layers:
    boxes: List[Cell] = field(default_factory=list)
    frames: List[Cell] = field(default_factory=list)
    lifelines: List[Cell] = field(default_factory=list)
    bars: List[Cell] = field(default_factory=list)
    shapes: List[Cell] = field(default_factory=list)
    messages: List[Cell] = field(default_factory=list)

    def all(self) -> List[Cell]:
        return self.boxes + self.frames + self.lifelines + self.bars + self.shapes + self.messages


class SequenceEmitter:
    """Single-pass layout + cell emission for one sequence diagram."""

    def __init__(self, parent_id: str):
        self.parent_id = parent_id
        self.next_id = IdGenerator("puml")
        self.layers = _Layers()
        self.diagram: Optional[SequenceDiagram] = None
        self.columns: Dict[str, _Column] = {}
        self.bars: Dict[str, List[_Bar]] = {}
        self.numbering = _Numbering()
        self.pending_create: set = set()
        self.cursor = 0.0
        self.header_top = 0.0
        self.left_edge = 0.0
        self.right_edge = 0.0
        self.last_message_y: Optional[float] = None
        self.last_message: Optional[Message] = None
        self.last_message_cell: Optional[Cell] = None

    def emit(self, diagram: SequenceDiagram) -> List[Cell]:
        self.diagram = diagram
        top = MARGIN_TOP
        if diagram.title:
            top += TITLE_HEIGHT
        if diagram.boxes:
            top += BOX_HEADER
        self.header_top = top

        self._layout_columns()
        if diagram.title:
            self.layers.shapes.append(vertex(
                self.next_id(), diagram.title, TITLE_STYLE, self.parent_id,
                self.left_edge, MARGIN_TOP / 2,
                max(300, self.right_edge - self.left_edge), TITLE_HEIGHT,
            ))

        header_rows = [
            c.height + (LABEL_BELOW if c.label_below else 0) for c in self.columns.values()
        ]
        self.cursor = top + max(header_rows, default=PARTICIPANT_HEIGHT) + LIFELINE_TOP_MARGIN
        self._walk(diagram.elements, 0)
        self._finish()
        return self.layers.all()

    # ═══════════════════════════════════════════════════════
    # Columns
    # ═══════════════════════════════════════════════════════

    def _layout_columns(self) -> None:
        participants = self.diagram.ordered_participants()
        index = {p.code: i for i, p in enumerate(participants)}
        # label width needed between neighbouring columns
        needs: Dict[int, float] = {}
        self_needs: Dict[int, float] = {}
        for message in self._messages(self.diagram.elements):
            if message.is_return or message.source not in index or message.target not in index:
                continue
            a, b = index[message.source], index[message.target]
            width = _text_width(message.label) if message.label else 0
            if a == b:
                self_needs[a] = max(self_needs.get(a, 0), width + SELF_WIDTH)
            elif abs(a - b) == 1:
                lo = min(a, b)
                needs[lo] = max(needs.get(lo, 0), width)

        x = MARGIN_LEFT
        prev: Optional[_Column] = None
        for i, p in enumerate(participants):
            if p.type in _SHAPE_SIZES:
                w, h, below = _SHAPE_SIZES[p.type]
            else:
                w, h, below = max(PARTICIPANT_WIDTH, _text_width(p.display_name)), PARTICIPANT_HEIGHT, False
            if prev is None:
                center = x + max(w, _text_width(p.display_name) if below else w) / 2
            else:
                spacing = prev.width / 2 + PARTICIPANT_GAP + w / 2
                spacing = max(spacing, needs.get(i - 1, 0), self_needs.get(i - 1, 0))
                center = prev.center + spacing
            column = _Column(p, center, w, h, below, header_y=self.header_top)
            self.columns[p.code] = column
            self.bars[p.code] = []
            prev = column

        if self.columns:
            cols = list(self.columns.values())
            self.left_edge = min(c.center - c.width / 2 for c in cols) - EXO_LENGTH / 2
            self.right_edge = max(
                c.center + max(c.width / 2, self_needs.get(index[c.participant.code], 0))
                for c in cols
            ) + EXO_LENGTH / 2
        else:
            self.left_edge, self.right_edge = MARGIN_LEFT, MARGIN_LEFT + PARTICIPANT_WIDTH
        self.left_edge = max(self.left_edge, 0)

    def _messages(self, elements: List[Element]):
        for el in elements:
            if isinstance(el, Message):
                yield el
            elif isinstance(el, Fragment):
                for section in el.sections:
                    yield from self._messages(section.elements)

    # ═══════════════════════════════════════════════════════
    # Walk
    # ═══════════════════════════════════════════════════════

    def _walk(self, elements: List[Element], depth: int) -> None:
        for el in elements:
            if isinstance(el, Message):
                self._emit_message(el)
            elif isinstance(el, ExoMessage):
                self._emit_exo(el)
            elif isinstance(el, LifeEvent):
                self._emit_life_event(el)
            elif isinstance(el, Fragment):
                self._emit_fragment(el, depth)
            elif isinstance(el, Note):
                self._emit_note(el)
            elif isinstance(el, Divider):
                self._emit_divider(el)
            elif isinstance(el, Delay):
                self._emit_delay(el)
            elif isinstance(el, HSpace):
                self.cursor += el.size if el.size is not None else HSPACE_DEFAULT
                self.last_message_cell = None
            elif isinstance(el, Reference):
                self._emit_reference(el)
            elif isinstance(el, AutoNumber):
                self._apply_autonumber(el)

    def _apply_autonumber(self, el: AutoNumber) -> None:
        if el.stop:
            self.numbering.active = False
            return
        self.numbering.active = True
        if el.start is not None:
            self.numbering.value = el.start
        self.numbering.step = el.step
        if el.format is not None or not el.resume:
            self.numbering.format = el.format

    # ── activations ────────────────────────────────────────

    def _x_at(self, code: str, toward: float) -> float:
        """Lifeline x for a message endpoint, on the edge of the active bar."""
        column = self.columns[code]
        stack = self.bars[code]
        if not stack:
            return column.center
        offset = (len(stack) - 1) * ACTIVATION_NEST
        if toward < column.center:
            return column.center - ACTIVATION_WIDTH / 2 + offset
        return column.center + ACTIVATION_WIDTH / 2 + offset

    def _activate(self, code: str, y: float, caller: Optional[str] = None,
                  color: Optional[str] = None) -> None:
        stack = self.bars[code]
        stack.append(_Bar(start=y, depth=len(stack), caller=caller, color=color))

    def _deactivate(self, code: str, y: float) -> None:
        stack = self.bars.get(code)
        if not stack:
            return
        bar = stack.pop()
        column = self.columns[code]
        end = max(y, bar.start + ACTIVATION_WIDTH)
        self.layers.bars.append(vertex(
            self.next_id(), "", _activation_style(bar.color), self.parent_id,
            column.center - ACTIVATION_WIDTH / 2 + bar.depth * ACTIVATION_NEST, bar.start,
            ACTIVATION_WIDTH, end - bar.start,
        ))

    def _destroy(self, code: str, y: float) -> None:
        while self.bars.get(code):
            self._deactivate(code, y)
        column = self.columns[code]
        column.destroyed = True
        column.end_y = y
        self.layers.shapes.append(vertex(
            self.next_id(), "", DESTROY_STYLE, self.parent_id,
            column.center - DESTROY_SIZE / 2, y - DESTROY_SIZE / 2,
            DESTROY_SIZE, DESTROY_SIZE,
        ))

    def _pre_activation(self, shortcut: Optional[str], source: Optional[str],
                        target: str, y: float, color: Optional[str]) -> None:
        if shortcut in ("++", "--++", "++--"):
            self._activate(target, y, caller=source, color=color)
        elif shortcut == "**":
            self.pending_create.add(target)

    def _post_activation(self, shortcut: Optional[str], source: Optional[str],
                         target: str, y: float) -> None:
        if shortcut in ("--", "--++", "++--") and source is not None:
            self._deactivate(source, y)
        elif shortcut == "!!":
            self._destroy(target, y)

    def _return_ends(self) -> Tuple[Optional[str], Optional[str]]:
        """Source and target of a ``return``: the innermost activation and its caller."""
        latest: Optional[Tuple[float, str, _Bar]] = None
        for code, stack in self.bars.items():
            if stack and (latest is None or stack[-1].start >= latest[0]):
                latest = (stack[-1].start, code, stack[-1])
        if latest is None:
            if self.last_message is not None and not self.last_message.is_return:
                return self.last_message.target, self.last_message.source
            return None, None
        _, code, bar = latest
        caller = bar.caller
        if caller is None or caller == code:
            caller = next((c for c in self.columns if c != code), code)
        return code, caller

    # ── messages ───────────────────────────────────────────

    def _row(self, parallel: bool, label: str) -> float:
        if parallel and self.last_message_y is not None:
            return self.last_message_y
        extra = max(0, _text_height(label) - LINE_HEIGHT) if label else 0
        self.cursor += extra
        y = self.cursor + ROW_HEIGHT / 2
        self.cursor += ROW_HEIGHT
        return y

    def _place_created(self, code: str, y: float) -> bool:
        """Drop a created participant's header at row *y*; True when it moved."""
        if code not in self.pending_create:
            return False
        self.pending_create.discard(code)
        column = self.columns[code]
        column.header_y = y - column.height / 2
        self.cursor = max(self.cursor, column.lifeline_top + ROW_HEIGHT / 2)
        return True

    def _emit_message(self, message: Message) -> None:
        source, target = message.source, message.target
        if message.is_return:
            source, target = self._return_ends()
            if source is None:
                return
        if source not in self.columns or target not in self.columns:
            return

        y = self._row(message.is_parallel, message.label)
        self._pre_activation(message.activation, source, target, y, message.activation_color)
        label = html_label(self.numbering.next_label(message.label))

        if source == target:
            x = self._x_at(source, self.columns[source].center + 1)
            cell = free_edge(
                self.next_id(), label, message_style(message.arrow, True), self.parent_id,
                (x, y), (x, y + SELF_HEIGHT),
                points=[(x + SELF_WIDTH, y), (x + SELF_WIDTH, y + SELF_HEIGHT)],
            )
            self.cursor += SELF_HEIGHT
        else:
            target_center = self.columns[target].center
            source_center = self.columns[source].center
            x1 = self._x_at(source, target_center)
            created = self._place_created(target, y)
            if created:
                half = self.columns[target].width / 2
                x2 = target_center - half if source_center < target_center else target_center + half
            else:
                x2 = self._x_at(target, source_center)
            cell = free_edge(
                self.next_id(), label, message_style(message.arrow), self.parent_id,
                (x1, y), (x2, y),
            )
        self.layers.messages.append(cell)

        for extra in message.multicast:
            if extra in self.columns and extra != source:
                self.layers.messages.append(free_edge(
                    self.next_id(), "", message_style(message.arrow), self.parent_id,
                    (self._x_at(source, self.columns[extra].center), y),
                    (self._x_at(extra, self.columns[source].center), y),
                ))

        if message.note is not None:
            self._emit_arrow_note(message, source, target, y)

        self._post_activation(message.activation, source, target, y)
        if message.is_return:
            self._deactivate(source, y)
        self.last_message_y = y
        self.last_message = Message(source=source, target=target)
        self.last_message_cell = cell

    def _emit_exo(self, exo: ExoMessage) -> None:
        if exo.participant not in self.columns:
            return
        y = self._row(exo.is_parallel, exo.label)
        left = exo.exo_type in (ExoType.FROM_LEFT, ExoType.TO_LEFT)
        incoming = exo.exo_type in (ExoType.FROM_LEFT, ExoType.FROM_RIGHT)
        if incoming:
            self._pre_activation(exo.activation, None, exo.participant, y, None)
        if left:
            start = (self.left_edge, y)
            end = (self._x_at(exo.participant, self.left_edge), y)
        else:
            start = (self._x_at(exo.participant, self.right_edge), y)
            end = (self.right_edge, y)
        label = html_label(self.numbering.next_label(exo.label))
        cell = free_edge(
            self.next_id(), label, message_style(exo.arrow), self.parent_id, start, end,
        )
        self.layers.messages.append(cell)
        if not incoming and exo.activation in ("--", "--++", "++--"):
            self._deactivate(exo.participant, y)
        elif exo.activation == "!!":
            self._destroy(exo.participant, y)
        self.last_message_y = y
        self.last_message = None
        self.last_message_cell = cell

    def _emit_arrow_note(self, message: Message, source: str, target: str, y: float) -> None:
        note = message.note
        width = max(NOTE_WIDTH, _text_width(note.text))
        height = _text_height(note.text) + NOTE_MARGIN
        xs = sorted((self.columns[source].center, self.columns[target].center))
        if note.position == "left":
            x, top = xs[0] - width - NOTE_MARGIN, y - height / 2
        elif note.position == "top":
            x, top = (xs[0] + xs[1] - width) / 2, y - height - NOTE_MARGIN
        elif note.position == "bottom":
            x, top = (xs[0] + xs[1] - width) / 2, y + NOTE_MARGIN
        else:
            x, top = xs[1] + (SELF_WIDTH if source == target else 0) + NOTE_MARGIN, y - height / 2
        self.layers.shapes.append(vertex(
            self.next_id(), html_label(note.text), _note_style("note", note.color),
            self.parent_id, x, top, width, height,
        ))
        self.cursor = max(self.cursor, top + height + NOTE_MARGIN)

    # ── lifeline events ────────────────────────────────────

    def _emit_life_event(self, event: LifeEvent) -> None:
        code = event.participant
        if code not in self.columns:
            return
        last = self.last_message
        follows_message = self.last_message_cell is not None and last is not None
        if event.type == LifeEventType.ACTIVATE:
            if follows_message and last.target == code:
                self._activate(code, self.last_message_y, caller=last.source, color=event.color)
                self._snap_to_bar(code)
            else:
                self._activate(code, self.cursor, color=event.color)
        elif event.type == LifeEventType.DEACTIVATE:
            if follows_message and last.source == code:
                self._deactivate(code, self.last_message_y)
            else:
                self._deactivate(code, self.cursor)
        elif event.type == LifeEventType.DESTROY:
            y = self.last_message_y if follows_message and last.target == code else self.cursor
            self._destroy(code, y)
            self.cursor = max(self.cursor, y + DESTROY_SIZE)
        elif event.type == LifeEventType.CREATE:
            self.pending_create.add(code)

    def _snap_to_bar(self, code: str) -> None:
        """Move the end of the previous message onto the newly activated bar."""
        cell = self.last_message_cell
        geo = cell.geometry
        if geo.points:
            return
        _, ty = geo.target_point
        sx, _ = geo.source_point
        geo.target_point = (self._x_at(code, sx), ty)

    # ── blocks ─────────────────────────────────────────────

    def _span(self, codes: List[str], pad: float) -> Tuple[float, float]:
        columns = [self.columns[c] for c in codes if c in self.columns]
        if not columns:
            columns = list(self.columns.values())
        if not columns:
            return self.left_edge, self.right_edge
        left = min(c.center - c.width / 2 for c in columns) - pad
        right = max(c.center + c.width / 2 for c in columns) + pad
        return left, right

    def _involved(self, elements: List[Element]) -> List[str]:
        codes: List[str] = []
        for el in elements:
            if isinstance(el, Message):
                codes += [el.source, el.target, *el.multicast]
            elif isinstance(el, (ExoMessage, LifeEvent)):
                codes.append(el.participant)
            elif isinstance(el, (Note, Reference)):
                codes += el.participants
            elif isinstance(el, Fragment):
                for section in el.sections:
                    codes += self._involved(section.elements)
        return [c for c in codes if c]

    def _emit_fragment(self, fragment: Fragment, depth: int) -> None:
        frame_index = len(self.layers.frames)
        top = self.cursor
        self.cursor += FRAGMENT_HEADER + FRAGMENT_PADDING
        self.last_message_cell = None

        separators: List[Tuple[float, str]] = []
        for i, section in enumerate(fragment.sections):
            if i:
                separators.append((self.cursor, section.condition))
                self.cursor += SECTION_GAP
            self._walk(section.elements, depth + 1)
        self.cursor += FRAGMENT_PADDING
        bottom = self.cursor
        self.cursor += FRAGMENT_PADDING

        involved = self._involved([s for section in fragment.sections for s in section.elements])
        pad = max(FRAGMENT_PADDING, 30 - 8 * depth)
        left, right = self._span(involved, pad)
        right = max(right, left + FRAGMENT_TAB_WIDTH + _text_width(fragment.label))

        if fragment.type == FragmentType.GROUP:
            kind, condition = fragment.label or "group", ""
        else:
            kind = fragment.type
            first = fragment.sections[0].condition if fragment.sections else fragment.label
            condition = f"[{first}]" if first else ""

        cells = [
            vertex(
                self.next_id(), condition, _fragment_style(fragment.color), self.parent_id,
                left, top, right - left, bottom - top,
            ),
            vertex(
                self.next_id(), kind, FRAGMENT_TAB_STYLE, self.parent_id,
                left, top, max(FRAGMENT_TAB_WIDTH, _text_width(kind)), FRAGMENT_HEADER,
            ),
        ]
        for y, cond in separators:
            cells.append(free_edge(
                self.next_id(), f"[{cond}]" if cond else "", SECTION_STYLE, self.parent_id,
                (left, y), (right, y),
            ))
        self.layers.frames[frame_index:frame_index] = cells

    def _emit_note(self, note: Note) -> None:
        width = max(NOTE_WIDTH, _text_width(note.text))
        height = _text_height(note.text) + NOTE_MARGIN
        top = self.cursor
        if note.is_across or not note.participants:
            left, right = self._span([], NOTE_MARGIN)
            x, width = left, right - left
        elif note.position == "over":
            centers = [self.columns[c].center for c in note.participants if c in self.columns]
            if len(centers) > 1:
                x = min(centers) - NOTE_MARGIN * 3
                width = max(width, max(centers) - min(centers) + NOTE_MARGIN * 6)
            else:
                x = centers[0] - width / 2 if centers else self.left_edge
        else:
            column = self.columns[note.participants[0]]
            if note.position == "left":
                x = column.center - width - NOTE_MARGIN
            else:
                x = column.center + NOTE_MARGIN
        self.layers.shapes.append(vertex(
            self.next_id(), html_label(note.text), _note_style(note.shape, note.color),
            self.parent_id, x, top, width, height,
        ))
        self.cursor += height + NOTE_MARGIN
        self.last_message_cell = None

    def _emit_divider(self, divider: Divider) -> None:
        self.cursor += NOTE_MARGIN
        width = self.right_edge - self.left_edge
        self.layers.shapes.append(vertex(
            self.next_id(), divider.label, DIVIDER_STYLE, self.parent_id,
            self.left_edge, self.cursor, width, DIVIDER_HEIGHT,
        ))
        self.cursor += DIVIDER_HEIGHT + NOTE_MARGIN
        self.last_message_cell = None

    def _emit_delay(self, delay: Delay) -> None:
        if delay.label:
            self.layers.shapes.append(vertex(
                self.next_id(), delay.label, DELAY_STYLE, self.parent_id,
                self.left_edge, self.cursor, self.right_edge - self.left_edge, DELAY_HEIGHT,
            ))
        self.cursor += DELAY_HEIGHT
        self.last_message_cell = None

    def _emit_reference(self, ref: Reference) -> None:
        left, right = self._span(ref.participants, FRAGMENT_PADDING)
        height = max(REF_MIN_HEIGHT, _text_height(ref.text) + FRAGMENT_HEADER)
        self.layers.shapes.append(vertex(
            self.next_id(), html_label(f"ref: {ref.text}"), _reference_style(ref.color),
            self.parent_id, left, self.cursor, right - left, height,
        ))
        self.cursor += height + NOTE_MARGIN
        self.last_message_cell = None

    # ═══════════════════════════════════════════════════════
    # Finish
    # ═══════════════════════════════════════════════════════

    def _finish(self) -> None:
        end_y = self.cursor + NOTE_MARGIN
        for code in self.columns:
            while self.bars[code]:
                self._deactivate(code, end_y)

        footer_bottom = end_y
        for column in self.columns.values():
            p = column.participant
            bottom = column.end_y if column.destroyed else end_y
            style = _participant_style(p)
            label = p.display_name
            if p.stereotype:
                label = f"«{p.stereotype}»<br>{label}"
            self.layers.shapes.append(vertex(
                self.next_id(), label, style, self.parent_id,
                column.center - column.width / 2, column.header_y, column.width, column.height,
            ))
            self.layers.lifelines.append(free_edge(
                self.next_id(), "", LIFELINE_STYLE, self.parent_id,
                (column.center, column.lifeline_top), (column.center, bottom),
            ))
            if not column.destroyed and not self.diagram.hide_footbox:
                self.layers.shapes.append(vertex(
                    self.next_id(), label, style, self.parent_id,
                    column.center - column.width / 2, bottom, column.width, column.height,
                ))
                footer_bottom = max(
                    footer_bottom,
                    bottom + column.height + (LABEL_BELOW if column.label_below else 0),
                )

        for box in self.diagram.boxes:
            left, right = self._span(box.participants, FRAGMENT_PADDING)
            if not box.participants:
                continue
            top = self.header_top - BOX_HEADER
            self.layers.boxes.append(vertex(
                self.next_id(), box.title, _box_style(box.color), self.parent_id,
                left, top, right - left, footer_bottom - top + NOTE_MARGIN,
            ))


def emit_sequence_diagram(diagram: SequenceDiagram, parent_id: str) -> List[Cell]:
    """Emit *diagram* as draw.io cells parented to *parent_id*."""
    return SequenceEmitter(parent_id).emit(diagram)
