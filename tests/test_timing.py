"""Tests for plantuml/timing — players, time resolution and waveform emission."""
from __future__ import annotations

import pytest
from drawio.builder import parse_style
from plantuml.timing.emitter import (
    CONSTRAINT_STYLE,
    LANE_STYLE,
    MAX_WAVEFORM_WIDTH,
    MESSAGE_STYLE,
    MIN_WAVEFORM_WIDTH,
    PLAYER_LABEL_STYLE,
    ROBUST_MIN_HEIGHT,
    TIME_UNIT_WIDTH,
    WAVEFORM_LEFT,
    TimingEmitter,
    emit_timing_diagram,
    format_time,
    lane_height,
)
from plantuml.timing.model import Player, PlayerType
from plantuml.timing.parser import parse_timing_diagram

SOURCE = """@startuml
robust "Web Browser" as WB
concise "Web User" as WU
WB has Idle,Processing,Waiting

@0
WU is Idle
WB is Idle

@100
WU is Waiting
WB is Processing

@300
WB is Waiting
@enduml
"""


# ═══════════════════════════════════════════════════════════
# Parser
# ═══════════════════════════════════════════════════════════

class TestParser:

    def test_players(self):
        d = parse_timing_diagram(SOURCE)
        assert list(d.players) == ["WB", "WU"]
        assert d.players["WB"].type == PlayerType.ROBUST
        assert d.players["WB"].display_name == "Web Browser"
        assert d.players["WU"].type == PlayerType.CONCISE

    def test_declared_state_order(self):
        d = parse_timing_diagram(SOURCE)
        assert d.players["WB"].states == ["Idle", "Processing", "Waiting"]

    def test_state_changes(self):
        d = parse_timing_diagram(SOURCE)
        wb = d.players["WB"]
        assert [(sc.time, sc.state) for sc in wb.state_changes] == [
            (0, "Idle"), (100, "Processing"), (300, "Waiting"),
        ]
        assert d.all_times() == [0, 100, 300]

    def test_player_context_and_relative_times(self):
        d = parse_timing_diagram(
            "concise C\n"
            "@C\n"
            "0 is A\n"
            "+50 is B\n"
            "+25 is C\n"
        )
        assert [(sc.time, sc.state) for sc in d.players["C"].state_changes] == [
            (0, "A"), (50, "B"), (75, "C"),
        ]

    def test_time_aliases(self):
        d = parse_timing_diagram(
            "robust R\n"
            "@20 as :boot\n"
            "R is Up\n"
            "@:boot\n"
            "R is Down\n"
            "@R\n"
        )
        assert d.time_aliases == {"boot": 20}
        assert [sc.time for sc in d.players["R"].state_changes] == [20, 20]

    def test_clock_binary_analog(self):
        d = parse_timing_diagram(
            "clock clk with period 50 pulse 10 offset 5\n"
            "clock slow with period 40\n"
            "binary \"Enable\" as EN\n"
            "analog \"Vcc\" between 0 and 5 as V\n"
        )
        clk = d.players["clk"]
        assert (clk.clock_period, clk.clock_pulse, clk.clock_offset) == (50, 10, 5)
        assert d.players["slow"].clock_pulse == 20
        assert d.players["EN"].type == PlayerType.BINARY
        v = d.players["V"]
        assert (v.analog_start, v.analog_end) == (0, 5)
        assert v.display_name == "Vcc"

    def test_state_alias_and_quoted_states(self):
        d = parse_timing_diagram(
            'robust R\n'
            'R has "Powered down" as off\n'
            '@0\n'
            'R is off\n'
            '@10\n'
            'R is "in use" #pink : busy\n'
        )
        r = d.players["R"]
        assert r.state_label("off") == "Powered down"
        last = r.state_changes[-1]
        assert (last.state, last.color, last.comment) == ("in use", "#pink", "busy")

    def test_annotations(self):
        d = parse_timing_diagram(
            "robust R\n"
            "concise C\n"
            "@0\nR is A\n@100\nR is B\n"
            "R@0 <-> @100 : {100 ms}\n"
            "@0 <-> @50\n"
            "R@0 -> C@100 : wake\n"
            "highlight 20 to 60 #Gold : busy\n"
            "note top of R : first\n"
            "note bottom of C\n"
            "  second\n"
            "end note\n"
        )
        assert d.constraints[0].player_code == "R"
        assert d.constraints[0].label == "{100 ms}"
        assert d.constraints[1].player_code is None
        msg = d.messages[0]
        assert (msg.from_player, msg.to_player, msg.to_time, msg.label) == ("R", "C", 100, "wake")
        h = d.highlights[0]
        assert (h.start, h.end, h.color, h.caption) == (20, 60, "#Gold", "busy")
        assert [(n.position, n.player_code, n.text) for n in d.notes] == [
            ("top", "R", "first"), ("bottom", "C", "second"),
        ]

    def test_later_declaration_merges_implicit_player(self):
        d = parse_timing_diagram("X is A\nconcise \"Ex\" as X")
        assert len(d.players) == 1
        assert d.players["X"].type == PlayerType.CONCISE
        assert d.players["X"].display_name == "Ex"
        assert len(d.players["X"].state_changes) == 1

    def test_header_directives(self):
        d = parse_timing_diagram("title Bus\nmode compact\nhide time-axis")
        assert d.title == "Bus"
        assert d.compact_mode
        assert d.hide_time_axis


# ═══════════════════════════════════════════════════════════
# Emitter
# ═══════════════════════════════════════════════════════════

class TestEmitter:

    @pytest.fixture()
    def cells(self):
        return emit_timing_diagram(parse_timing_diagram(SOURCE), "grp")

    def test_one_label_and_lane_per_player(self, cells):
        labels = [c.value for c in cells if c.style == PLAYER_LABEL_STYLE]
        assert labels == ["Web Browser", "Web User"]
        assert len([c for c in cells if c.style == LANE_STYLE]) == 2

    def test_labels_emitted_last(self, cells):
        assert cells[-1].style == PLAYER_LABEL_STYLE

    def test_concise_bars(self, cells):
        bars = [c for c in cells if parse_style(c.style).get("shape") == "hexagon"]
        assert [c.value for c in bars] == ["Idle", "Waiting"]
        assert bars[0].geometry.x == WAVEFORM_LEFT

    def test_axis_labels(self, cells):
        values = [c.value for c in cells if c.vertex]
        for t in ("0", "100", "300"):
            assert t in values

    def test_hidden_axis(self):
        d = parse_timing_diagram("hide time-axis\n" + SOURCE)
        cells = emit_timing_diagram(d, "1")
        assert "300" not in [c.value for c in cells if c.vertex]

    def test_all_cells_share_parent(self, cells):
        assert {c.parent for c in cells} == {"grp"}

    def test_scale_from_smallest_gap(self):
        emitter = TimingEmitter("1")
        emitter.emit(parse_timing_diagram(SOURCE))
        # closest instants (100 apart) sit two time units apart
        assert emitter.scale * 100 == pytest.approx(2 * TIME_UNIT_WIDTH)
        assert emitter.x_of(0) == WAVEFORM_LEFT

    def test_width_clamped(self):
        emitter = TimingEmitter("1")
        emitter.emit(parse_timing_diagram("robust R\n@0\nR is A\n@1\nR is B\n@10000\nR is C"))
        assert emitter.waveform_width == MAX_WAVEFORM_WIDTH
        emitter = TimingEmitter("1")
        emitter.emit(parse_timing_diagram("robust R\n@0\nR is A"))
        assert emitter.waveform_width == MIN_WAVEFORM_WIDTH

    def test_robust_hidden_state_breaks_line(self):
        d = parse_timing_diagram("robust R\n@0\nR is A\n@100\nR is {-}\n@200\nR is A")
        cells = emit_timing_diagram(d, "1")
        waves = [c for c in cells if c.edge and c.geometry.source_point is not None
                 and parse_style(c.style).get("strokeWidth") == "1.5"]
        # two horizontal runs, no vertical transition into or out of the gap
        assert len(waves) == 2
        assert all(w.geometry.source_point[1] == w.geometry.target_point[1] for w in waves)

    def test_clock_square_wave(self):
        d = parse_timing_diagram("clock clk with period 50\n@0\n@200")
        cells = emit_timing_diagram(d, "1")
        wave = next(c for c in cells if c.edge and c.geometry.points)
        ys = {p[1] for p in [wave.geometry.source_point, *wave.geometry.points, wave.geometry.target_point]}
        assert len(ys) == 2

    def test_constraint_and_message(self):
        d = parse_timing_diagram(
            "robust R\nconcise C\n@0\nR is A\n@100\nC is B\n"
            "R@0 <-> @100 : span\nR@0 -> C@100 : ping"
        )
        cells = emit_timing_diagram(d, "1")
        constraint = next(c for c in cells if c.style == CONSTRAINT_STYLE)
        assert constraint.value == "span"
        message = next(c for c in cells if c.style == MESSAGE_STYLE)
        assert message.value == "ping"
        assert message.geometry.source_point[1] < message.geometry.target_point[1]

    def test_notes_right_of_waveform(self):
        d = parse_timing_diagram("robust R\n@0\nR is A\n@10\nR is B\nnote top of R : hi")
        emitter = TimingEmitter("1")
        cells = emitter.emit(d)
        note = next(c for c in cells if c.value == "hi")
        assert note.geometry.x > emitter.wave_end


class TestHelpers:

    def test_format_time(self):
        assert format_time(100) == "100"
        assert format_time(2.0) == "2"
        assert format_time(2.5) == "2.5"

    def test_lane_height(self):
        assert lane_height(Player(code="R")) == ROBUST_MIN_HEIGHT
        tall = Player(code="R", states=[str(i) for i in range(6)])
        assert lane_height(tall) > ROBUST_MIN_HEIGHT
        assert lane_height(Player(code="C", type=PlayerType.CONCISE)) < ROBUST_MIN_HEIGHT
