"""Tests for plantuml/activity — block parsing, the three-pass layout and edge wiring."""
from __future__ import annotations

import pytest
from drawio.builder import parse_style
from plantuml.activity.emitter import (
    BAR_STYLE,
    CIRCLE_SIZE,
    FINAL_OUTER_STYLE,
    KILL_STYLE,
    START_STYLE,
    emit_activity_diagram,
)
from plantuml.activity.model import (
    Action,
    Arrow,
    End,
    Fork,
    If,
    Note,
    Partition,
    Repeat,
    Start,
    Stop,
    Switch,
    While,
    walk,
)
from plantuml.activity.parser import parse_activity_diagram

SCENARIO_IF = (
    "@startuml\nstart\nif (x?) then (yes)\n:A;\nelseif (y?) then (yes)\n:B;\n"
    "else (no)\n:C;\nendif\nstop\n@enduml"
)


def _emit(text):
    return emit_activity_diagram(parse_activity_diagram(text), "grp")


def _rhombi(cells):
    return [c for c in cells if c.vertex and parse_style(c.style).get("shape") == "rhombus"]


def _cell(cells, value):
    return next(c for c in cells if c.vertex and c.value == value)


# ═══════════════════════════════════════════════════════════
# Parser
# ═══════════════════════════════════════════════════════════

class TestParser:

    def test_if_elseif_else(self):
        d = parse_activity_diagram(SCENARIO_IF)
        start, branch, stop = d.instructions
        assert isinstance(start, Start) and isinstance(stop, Stop)
        assert isinstance(branch, If)
        assert (branch.condition, branch.then_label, branch.else_label) == ("x?", "yes", "no")
        assert [a.label for a in branch.then_branch] == ["A"]
        assert branch.elseif_branches[0].condition == "y?"
        assert [a.label for a in branch.elseif_branches[0].body] == ["B"]
        assert [a.label for a in branch.else_branch] == ["C"]

    def test_while(self):
        d = parse_activity_diagram("while (more?) is (yes)\n:work;\nendwhile (no)")
        loop = d.instructions[0]
        assert isinstance(loop, While)
        assert (loop.condition, loop.yes_label, loop.no_label) == ("more?", "yes", "no")
        assert [a.label for a in loop.body] == ["work"]

    def test_repeat(self):
        d = parse_activity_diagram("repeat :init;\n:step;\nrepeat while (again?) is (yes) not (no)")
        loop = d.instructions[0]
        assert isinstance(loop, Repeat)
        assert loop.start_label == "init"
        assert (loop.condition, loop.yes_label, loop.no_label) == ("again?", "yes", "no")

    def test_switch(self):
        d = parse_activity_diagram(
            "switch (kind)\ncase (a)\n:A;\ncase (b)\n:B;\nendswitch"
        )
        switch = d.instructions[0]
        assert isinstance(switch, Switch)
        assert [c.label for c in switch.cases] == ["a", "b"]
        assert [c.body[0].label for c in switch.cases] == ["A", "B"]

    def test_fork_and_split(self):
        d = parse_activity_diagram(
            "fork\n:A;\nfork again\n:B;\nend fork\nsplit\n:C;\nsplit again\n:D;\nend split"
        )
        fork, split = d.instructions
        assert type(fork) is Fork
        assert len(fork.branches) == 2
        assert len(split.branches) == 2

    def test_partition(self):
        d = parse_activity_diagram("partition Setup {\n:A;\n}\n:B;")
        part = d.instructions[0]
        assert isinstance(part, Partition)
        assert part.name == "Setup"
        assert [a.label for a in part.body] == ["A"]
        assert d.instructions[1].label == "B"

    def test_swimlanes(self):
        d = parse_activity_diagram("|Lane1|\nstart\n:A;\n|#pink|Lane2|\n:B;")
        assert list(d.swimlanes) == ["Lane1", "Lane2"]
        assert d.swimlanes["Lane2"].color == "#pink"
        assert [i.swimlane for i in d.instructions] == ["Lane1", "Lane1", "Lane2"]

    def test_multiline_action(self):
        d = parse_activity_diagram(":first\nsecond;")
        assert d.instructions[0].label == "first\nsecond"

    def test_arrow_attaches_before_next(self):
        d = parse_activity_diagram(":A;\n-[#red,dashed]-> go;\n:B;")
        a, arrow, b = d.instructions
        assert isinstance(arrow, Arrow)
        assert (arrow.label, arrow.color, arrow.dashed) == ("go", "#red", True)

    def test_notes(self):
        d = parse_activity_diagram(":A;\nnote right: hi\nfloating note left\n  multi\nend note")
        notes = [i for i in d.instructions if isinstance(i, Note)]
        assert [n.text for n in notes] == ["hi", "multi"]
        assert notes[1].floating

    def test_bare_end_and_stray_closers(self):
        d = parse_activity_diagram("endif\nend fork\n:A;\nend")
        assert [type(i) for i in d.instructions] == [Action, End]

    def test_node_ids_unique(self):
        d = parse_activity_diagram(SCENARIO_IF)
        ids = [i.node_id for i in walk(d.instructions)]
        assert len(ids) == len(set(ids))


# ═══════════════════════════════════════════════════════════
# Emitter
# ═══════════════════════════════════════════════════════════

class TestEmitter:

    @pytest.fixture()
    def if_cells(self):
        return _emit(SCENARIO_IF)

    def test_if_diamonds(self, if_cells):
        assert len(_rhombi(if_cells)) == 3

    def test_if_actions_and_terminals(self, if_cells):
        assert sorted(c.value for c in if_cells if c.vertex and c.value) == ["A", "B", "C", "x?", "y?"]
        # the stop's inner bullet shares the start fill but is smaller
        starts = [c for c in if_cells if c.style == START_STYLE and c.geometry.width == CIRCLE_SIZE]
        assert len(starts) == 1
        assert len([c for c in if_cells if c.style == FINAL_OUTER_STYLE]) == 1

    def test_if_edge_labels_in_order(self, if_cells):
        labels = [c.value for c in if_cells if c.edge and c.value]
        assert labels == ["yes", "yes", "no"]

    def test_two_actions_one_edge(self):
        cells = _emit("@startuml\n:A;\n:B;\n@enduml")
        a, b = _cell(cells, "A"), _cell(cells, "B")
        edges = [c for c in cells if c.edge]
        assert len(edges) == 1
        assert (edges[0].source, edges[0].target) == (a.id, b.id)
        assert a.geometry.y < b.geometry.y

    def test_break_only_if_has_no_merge(self):
        cells = _emit(":A;\nif (c?) then\nbreak\nendif\n:B;")
        assert len(_rhombi(cells)) == 1

    def test_while_loops_back(self):
        cells = _emit("while (more?) is (yes)\n:work;\nendwhile (no)\n:done;")
        diamond = _cell(cells, "more?")
        work = _cell(cells, "work")
        back = next(c for c in cells if c.edge and c.source == work.id)
        assert back.target == diamond.id
        assert parse_style(back.style)["exitX"] == "0"
        exit_edge = next(c for c in cells if c.edge and c.target == _cell(cells, "done").id)
        assert exit_edge.value == "no"

    def test_repeat_loops_to_first_step(self):
        cells = _emit("repeat\n:step;\nrepeat while (again?) is (yes)")
        step = _cell(cells, "step")
        diamond = _cell(cells, "again?")
        back = next(c for c in cells if c.edge and c.source == diamond.id)
        assert back.target == step.id
        assert back.value == "yes"

    def test_fork_bars(self):
        cells = _emit("fork\n:A;\nfork again\n:B;\nend fork")
        bars = [c for c in cells if c.style == BAR_STYLE]
        assert len(bars) == 2
        top, bottom = bars
        a, b = _cell(cells, "A"), _cell(cells, "B")
        assert a.geometry.x != b.geometry.x
        out_of_top = {c.target for c in cells if c.edge and c.source == top.id}
        assert out_of_top == {a.id, b.id}
        into_bottom = {c.source for c in cells if c.edge and c.target == bottom.id}
        assert into_bottom == {a.id, b.id}

    def test_kill_cuts_the_chain(self):
        cells = _emit(":A;\nkill\n:B;")
        kill = next(c for c in cells if c.style == KILL_STYLE)
        b = _cell(cells, "B")
        assert not any(c.edge and c.target == b.id for c in cells)
        assert any(c.edge and c.target == kill.id for c in cells)

    def test_arrow_label_on_edge(self):
        cells = _emit(":A;\n-> go;\n:B;")
        e = next(c for c in cells if c.edge)
        assert e.value == "go"

    def test_swimlane_frames(self):
        cells = _emit("|Lane1|\nstart\n:A;\n|Lane2|\n:B;")
        lanes = [c for c in cells if parse_style(c.style).get("shape") == "swimlane"]
        assert [c.value for c in lanes] == ["Lane1", "Lane2"]
        a, b = _cell(cells, "A"), _cell(cells, "B")
        assert lanes[0].geometry.x <= a.geometry.x < lanes[1].geometry.x <= b.geometry.x

    def test_nested_instruction_uses_its_own_lane(self):
        cells = _emit("|A|\nstart\nif (x?) then (yes)\n|B|\n:inB;\nendif\n|A|\nstop")
        lanes = {
            c.value: c for c in cells if parse_style(c.style).get("shape") == "swimlane"
        }
        lane_b = lanes["B"].geometry
        action = _cell(cells, "inB").geometry
        center = action.x + action.width / 2
        assert lane_b.x <= center <= lane_b.x + lane_b.width
        assert action.x + action.width <= lane_b.x + lane_b.width
