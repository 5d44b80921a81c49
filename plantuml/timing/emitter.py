"""
plantuml/timing/emitter.py

Lay out a :class:`TimingDiagram` and emit draw.io cells.

Players are stacked as horizontal lanes with their label on the left
and the waveform to the right.  Time maps linearly to x; the scale is
chosen so the closest pair of instants sits ``2 * TIME_UNIT_WIDTH``
apart, clamped to a sensible total width.  Waveforms are freestanding
edges, so nothing is attached.  Cells are emitted back to front:
highlights, lane backgrounds, waveforms, notes, constraints, messages,
the time axis, and finally player labels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from drawio.builder import Cell, IdGenerator, build_style, free_edge, vertex
from drawio.colors import normalize_color
from plantuml.common import html_label, note_style, text_lines
from plantuml.timing.model import Player, PlayerType, StateChange, TimingDiagram


# ───────────────────────────────────────────────
# Layout constants
# ───────────────────────────────────────────────

LABEL_WIDTH = 120
PLAYER_GAP = 20
WAVEFORM_LEFT = 140
TIME_UNIT_WIDTH = 40
MIN_WAVEFORM_WIDTH = 200
MAX_WAVEFORM_WIDTH = 1600
ROBUST_LEVEL_HEIGHT = 20
ROBUST_MIN_HEIGHT = 60
ROBUST_PAD = 5
CONCISE_HEIGHT = 30
CLOCK_HEIGHT = 40
BINARY_HEIGHT = 30
ANALOG_HEIGHT = 60
RECTANGLE_HEIGHT = 30
WAVE_PAD = 6
AXIS_HEIGHT = 30
MARGIN = 20
TITLE_HEIGHT = 30
TICK_HEIGHT = 8
NOTE_WIDTH = 140
NOTE_MIN_HEIGHT = 40
NOTE_LINE_HEIGHT = 16
NOTE_GAP = 10
CONSTRAINT_OFFSET = 20
CONSTRAINT_STEP = 25
MIN_LABEL_SEGMENT = 20
MAX_CLOCK_EDGES = 2000

HIDDEN_STATES = ("{-}", "{hidden}", "{...}")
BINARY_HIGH = ("high", "1", "true", "on")


# ───────────────────────────────────────────────
# Styles
# ───────────────────────────────────────────────

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

PLAYER_LABEL_STYLE = build_style({
    "text": None,
    "html": 1,
    "align": "right",
    "verticalAlign": "middle",
    "spacingRight": 8,
    "fontStyle": 1,
    "fontSize": 12,
    "whiteSpace": "wrap",
    "fillColor": "none",
    "strokeColor": "none",
})

LANE_STYLE = build_style({
    "html": 1,
    "fillColor": "#FAFAFA",
    "strokeColor": "#E0E0E0",
    "opacity": 50,
})

STATE_LABEL_STYLE = build_style({
    "text": None,
    "html": 1,
    "align": "left",
    "verticalAlign": "bottom",
    "fontSize": 10,
    "fillColor": "none",
    "strokeColor": "none",
})

AXIS_LINE_STYLE = build_style({
    "html": 1,
    "endArrow": "none",
    "startArrow": "none",
    "strokeColor": "#666666",
})

AXIS_LABEL_STYLE = build_style({
    "text": None,
    "html": 1,
    "align": "center",
    "verticalAlign": "top",
    "fontSize": 9,
    "fontColor": "#666666",
    "fillColor": "none",
    "strokeColor": "none",
})

CONSTRAINT_STYLE = build_style({
    "html": 1,
    "startArrow": "block",
    "endArrow": "block",
    "startFill": 1,
    "endFill": 1,
    "strokeColor": "#D32F2F",
    "fontColor": "#D32F2F",
    "fontSize": 10,
    "labelBackgroundColor": "#FFFFFF",
})

MESSAGE_STYLE = build_style({
    "html": 1,
    "endArrow": "block",
    "endFill": 1,
    "strokeColor": "#1565C0",
    "fontSize": 10,
    "labelBackgroundColor": "#FFFFFF",
})


def _wave_style(color: Optional[str] = None) -> str:
    return build_style({
        "html": 1,
        "endArrow": "none",
        "startArrow": "none",
        "strokeWidth": 1.5,
        "strokeColor": normalize_color(color) if color else "#000000",
        "rounded": 0,
    })


def _bar_style(player: Player, color: Optional[str]) -> str:
    if player.type == PlayerType.RECTANGLE:
        s: Dict[str, Any] = {"fillColor": "#FFF3E0", "strokeColor": "#F57C00"}
    else:
        s = {
            "shape": "hexagon", "perimeter": "hexagonPerimeter2", "size": 6,
            "fixedSize": 1, "fillColor": "#E1F5FE", "strokeColor": "#0288D1",
        }
    s.update({"html": 1, "whiteSpace": "wrap", "fontSize": 10})
    if color or player.color:
        s["fillColor"] = normalize_color(color or player.color)
    return build_style(s)


def _highlight_style(color: Optional[str]) -> str:
    return build_style({
        "html": 1,
        "fillColor": normalize_color(color) if color else "#FFD700",
        "strokeColor": "none",
        "opacity": 30,
        "verticalLabelPosition": "bottom",
        "verticalAlign": "top",
        "fontSize": 10,
    })


def format_time(t: float) -> str:
    """``100`` for whole instants, one decimal otherwise."""
    if float(t).is_integer():
        return str(int(t))
    return f"{t:.1f}"


def lane_height(player: Player) -> float:
    if player.type == PlayerType.ROBUST:
        levels = max(2, len(player.states))
        return max(ROBUST_MIN_HEIGHT, levels * ROBUST_LEVEL_HEIGHT + ROBUST_PAD * 2)
    return {
        PlayerType.CONCISE: CONCISE_HEIGHT,
        PlayerType.CLOCK: CLOCK_HEIGHT,
        PlayerType.BINARY: BINARY_HEIGHT,
        PlayerType.ANALOG: ANALOG_HEIGHT,
        PlayerType.RECTANGLE: RECTANGLE_HEIGHT,
    }.get(player.type, CONCISE_HEIGHT)


@dataclass
class _Lane:
    player: Player
    y: float
    height: float

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> float:
        return self.y + self.height / 2

    @property
    def high(self) -> float:
        return self.y + WAVE_PAD

    @property
    def low(self) -> float:
        return self.bottom - WAVE_PAD


class TimingEmitter:
    """Lane layout + cell emission for one timing diagram."""

    def __init__(self, parent_id: str):
        self.parent_id = parent_id
        self.next_id = IdGenerator("puml")
        self.cells: List[Cell] = []
        self.diagram: Optional[TimingDiagram] = None
        self.lanes: Dict[str, _Lane] = {}
        self.times: List[float] = []
        self.time_min: float = 0
        self.time_max: float = 0
        self.scale: float = TIME_UNIT_WIDTH
        self.waveform_width: float = MIN_WAVEFORM_WIDTH
        self.top = MARGIN
        self.lanes_bottom = MARGIN

    def emit(self, diagram: TimingDiagram) -> List[Cell]:
        self.diagram = diagram
        self._time_range()
        self._layout_lanes()

        if diagram.title:
            self._add(vertex(
                self.next_id(), diagram.title, TITLE_STYLE, self.parent_id,
                MARGIN, MARGIN / 2, self.wave_end - MARGIN, TITLE_HEIGHT,
            ))
        self._emit_highlights()
        for lane in self.lanes.values():
            self._add(vertex(
                self.next_id(), "", LANE_STYLE, self.parent_id,
                WAVEFORM_LEFT, lane.y, self.waveform_width, lane.height,
            ))
        for lane in self.lanes.values():
            self._emit_waveform(lane)
        self._emit_notes()
        bottom = self._emit_constraints()
        self._emit_messages()
        if not diagram.hide_time_axis:
            self._emit_axis(bottom)
        self._emit_labels()
        return self.cells

    def _add(self, cell: Cell) -> Cell:
        self.cells.append(cell)
        return cell

    # ═══════════════════════════════════════════════════════
    # Geometry
    # ═══════════════════════════════════════════════════════

    @property
    def wave_end(self) -> float:
        return WAVEFORM_LEFT + self.waveform_width

    def x_of(self, t: float) -> float:
        return WAVEFORM_LEFT + (t - self.time_min) * self.scale

    def _time_range(self) -> None:
        self.times = self.diagram.all_times()
        periods = [
            p.clock_period for p in self.diagram.players.values()
            if p.type == PlayerType.CLOCK and p.clock_period > 0
        ]
        if not self.times:
            self.times = [0]
        self.time_min, self.time_max = self.times[0], self.times[-1]
        if self.time_max == self.time_min and periods:
            self.time_max = self.time_min + 4 * max(periods)

        span = self.time_max - self.time_min
        if span <= 0:
            self.waveform_width = MIN_WAVEFORM_WIDTH
            self.scale = 0
            return
        gaps = [b - a for a, b in zip(self.times, self.times[1:]) if b > a]
        unit = min(gaps + periods) if gaps or periods else span
        width = span / unit * TIME_UNIT_WIDTH * 2
        self.waveform_width = max(MIN_WAVEFORM_WIDTH, min(MAX_WAVEFORM_WIDTH, width))
        self.scale = self.waveform_width / span

    def _layout_lanes(self) -> None:
        y = MARGIN + (TITLE_HEIGHT if self.diagram.title else 0)
        self.top = y
        for code, player in self.diagram.players.items():
            height = lane_height(player)
            self.lanes[code] = _Lane(player, y, height)
            compact = player.compact or self.diagram.compact_mode
            y += height + (PLAYER_GAP / 2 if compact else PLAYER_GAP)
        self.lanes_bottom = y

    # ═══════════════════════════════════════════════════════
    # Waveforms
    # ═══════════════════════════════════════════════════════

    def _segments(self, player: Player) -> List[Tuple[StateChange, float, float]]:
        """Each state change with the x range it holds for."""
        changes = player.state_changes
        result = []
        for i, sc in enumerate(changes):
            x2 = self.x_of(changes[i + 1].time) if i + 1 < len(changes) else self.wave_end
            result.append((sc, self.x_of(sc.time), x2))
        return result

    def _emit_waveform(self, lane: _Lane) -> None:
        kind = lane.player.type
        if kind == PlayerType.ROBUST:
            self._emit_robust(lane)
        elif kind in (PlayerType.CONCISE, PlayerType.RECTANGLE):
            self._emit_bars(lane)
        elif kind == PlayerType.CLOCK:
            self._emit_clock(lane)
        elif kind == PlayerType.BINARY:
            self._emit_levels(lane, lambda state: lane.high if state.lower() in BINARY_HIGH else lane.low)
        elif kind == PlayerType.ANALOG:
            self._emit_analog(lane)

    def _polyline(self, points: List[Tuple[float, float]], color: Optional[str] = None) -> None:
        if len(points) < 2:
            return
        self._add(free_edge(
            self.next_id(), "", _wave_style(color), self.parent_id,
            points[0], points[-1], points[1:-1],
        ))

    def _emit_robust(self, lane: _Lane) -> None:
        player = lane.player
        states = player.states or ["?"]
        levels = max(2, len(states))
        step = (lane.height - ROBUST_PAD * 2) / levels

        def level_y(state: str) -> float:
            idx = states.index(state) if state in states else len(states) - 1
            return lane.y + ROBUST_PAD + step * idx + step / 2

        previous: Optional[float] = None
        for sc, x1, x2 in self._segments(player):
            if sc.state in HIDDEN_STATES:
                previous = None
                continue
            y = level_y(sc.state)
            if previous is not None and previous != y:
                self._polyline([(x1, previous), (x1, y)], sc.color or player.color)
            self._polyline([(x1, y), (x2, y)], sc.color or player.color)
            if x2 - x1 > MIN_LABEL_SEGMENT:
                label = player.state_label(sc.state)
                if sc.comment:
                    label = f"{label} ({sc.comment})"
                self._add(vertex(
                    self.next_id(), html_label(label), STATE_LABEL_STYLE, self.parent_id,
                    x1 + 2, y - 16, x2 - x1 - 4, 14,
                ))
            previous = y

    def _emit_bars(self, lane: _Lane) -> None:
        player = lane.player
        for sc, x1, x2 in self._segments(player):
            if x2 <= x1:
                continue
            if sc.state in HIDDEN_STATES:
                self._polyline([(x1, lane.center), (x2, lane.center)], "#999999")
                continue
            value = player.state_label(sc.state)
            if sc.comment:
                value = f"{value}<br>{sc.comment}"
            self._add(vertex(
                self.next_id(), html_label(value), _bar_style(player, sc.color), self.parent_id,
                x1, lane.y + WAVE_PAD / 2, x2 - x1, lane.height - WAVE_PAD,
            ))

    def _emit_levels(self, lane: _Lane, level_of: Callable[[str], float]) -> None:
        """Step waveform through fixed levels (binary players)."""
        points: List[Tuple[float, float]] = []
        for sc, x1, x2 in self._segments(lane.player):
            y = level_of(sc.state)
            if points and points[-1][1] != y:
                points.append((x1, y))
            elif not points:
                points.append((x1, y))
            points.append((x2, y))
        self._polyline(points, lane.player.color)

    def _emit_clock(self, lane: _Lane) -> None:
        player = lane.player
        period, pulse = player.clock_period, player.clock_pulse
        if period <= 0:
            return
        pulse = min(max(pulse, 0), period)

        def is_high(t: float) -> bool:
            return t >= player.clock_offset and (t - player.clock_offset) % period < pulse

        edges = []
        k = int((self.time_min - player.clock_offset) // period)
        while len(edges) < MAX_CLOCK_EDGES:
            rise = player.clock_offset + k * period
            if rise > self.time_max:
                break
            for t in (rise, rise + pulse):
                if self.time_min < t < self.time_max:
                    edges.append(t)
            k += 1

        y = lane.high if is_high(self.time_min) else lane.low
        points = [(self.x_of(self.time_min), y)]
        for t in sorted(set(edges)):
            x = self.x_of(t)
            y_next = lane.high if is_high(t) else lane.low
            if y_next == y:
                continue
            points += [(x, y), (x, y_next)]
            y = y_next
        points.append((self.wave_end, y))
        self._polyline(points, player.color)

    def _emit_analog(self, lane: _Lane) -> None:
        player = lane.player
        samples = []
        for sc, x1, _x2 in self._segments(player):
            try:
                samples.append((x1, float(sc.state)))
            except ValueError:
                continue
        if not samples:
            return
        values = [v for _, v in samples]
        low = player.analog_start if player.analog_start is not None else min(values)
        high = player.analog_end if player.analog_end is not None else max(values)
        if high == low:
            low, high = low - 1, high + 1
        span_y = lane.low - lane.high

        def y_of(v: float) -> float:
            return lane.low - (v - low) / (high - low) * span_y

        points = [(x, y_of(v)) for x, v in samples]
        points.append((self.wave_end, points[-1][1]))
        self._polyline(points, player.color)

    # ═══════════════════════════════════════════════════════
    # Annotations
    # ═══════════════════════════════════════════════════════

    def _emit_highlights(self) -> None:
        top = self.top - 4
        height = self.lanes_bottom - PLAYER_GAP - top + 4
        for h in self.diagram.highlights:
            x1, x2 = sorted((self.x_of(h.start), self.x_of(h.end)))
            self._add(vertex(
                self.next_id(), html_label(h.caption), _highlight_style(h.color),
                self.parent_id, x1, top, max(x2 - x1, 2), max(height, 1),
            ))

    def _emit_notes(self) -> None:
        placed: Dict[str, int] = {}
        for note in self.diagram.notes:
            lane = self.lanes.get(note.player_code)
            if lane is None:
                continue
            lines = len(text_lines(note.text))
            height = max(NOTE_MIN_HEIGHT, lines * NOTE_LINE_HEIGHT + 16)
            index = placed.get(note.player_code, 0)
            placed[note.player_code] = index + 1
            x = self.wave_end + NOTE_GAP + index * (NOTE_WIDTH + NOTE_GAP)
            y = lane.y if note.position == "top" else lane.bottom - height
            self._add(vertex(
                self.next_id(), html_label(note.text), build_style(note_style(note.color)),
                self.parent_id, x, y, NOTE_WIDTH, height,
            ))

    def _emit_constraints(self) -> float:
        """Draw constraints below the lanes; returns the y below the last one."""
        y = self.lanes_bottom - PLAYER_GAP + CONSTRAINT_OFFSET
        for c in self.diagram.constraints:
            lane = self.lanes.get(c.player_code) if c.player_code else None
            cy = lane.bottom + CONSTRAINT_OFFSET / 2 if lane else y
            self._add(free_edge(
                self.next_id(), html_label(c.label), CONSTRAINT_STYLE, self.parent_id,
                (self.x_of(c.time1), cy), (self.x_of(c.time2), cy),
            ))
            if lane is None:
                y += CONSTRAINT_STEP
        return y

    def _emit_messages(self) -> None:
        for msg in self.diagram.messages:
            src = self.lanes.get(msg.from_player)
            dst = self.lanes.get(msg.to_player)
            if src is None or dst is None:
                continue
            self._add(free_edge(
                self.next_id(), html_label(msg.label), MESSAGE_STYLE, self.parent_id,
                (self.x_of(msg.from_time), src.center), (self.x_of(msg.to_time), dst.center),
            ))

    def _emit_axis(self, y: float) -> None:
        axis_y = y + AXIS_HEIGHT / 3
        self._add(free_edge(
            self.next_id(), "", AXIS_LINE_STYLE, self.parent_id,
            (WAVEFORM_LEFT, axis_y), (self.wave_end, axis_y),
        ))
        for t in self.times:
            x = self.x_of(t)
            self._add(free_edge(
                self.next_id(), "", AXIS_LINE_STYLE, self.parent_id,
                (x, axis_y), (x, axis_y + TICK_HEIGHT),
            ))
            self._add(vertex(
                self.next_id(), format_time(t), AXIS_LABEL_STYLE, self.parent_id,
                x - 15, axis_y + TICK_HEIGHT + 2, 30, 14,
            ))

    def _emit_labels(self) -> None:
        for lane in self.lanes.values():
            player = lane.player
            label = player.display_name
            if player.stereotype:
                label = f"«{player.stereotype}»\n{label}"
            self._add(vertex(
                self.next_id(), html_label(label), PLAYER_LABEL_STYLE, self.parent_id,
                MARGIN, lane.y, LABEL_WIDTH - 10, lane.height,
            ))


def emit_timing_diagram(diagram: TimingDiagram, parent_id: str) -> List[Cell]:
    """Emit *diagram* as draw.io cells parented to *parent_id*."""
    return TimingEmitter(parent_id).emit(diagram)
