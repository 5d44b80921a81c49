"""
plantuml/activity/parser.py

Line-oriented parser for PlantUML activity diagrams.

Nested control structures are tracked with a block stack; each frame
remembers the block kind, the owning instruction and the list new
instructions are appended to.  Standalone arrows are held as a pending
arrow and inserted just before the next flow-carrying instruction.

The parser is total: unknown lines and mismatched closers are ignored.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from plantuml.common import dedent_note, iter_source_lines
from plantuml.activity.model import (
    LEFT,
    RIGHT,
    Action,
    ActivityDiagram,
    Arrow,
    Break,
    ElseIfBranch,
    End,
    Fork,
    If,
    Instruction,
    Kill,
    Note,
    Partition,
    Repeat,
    Split,
    Start,
    Stop,
    Swimlane,
    Switch,
    SwitchCase,
    While,
)

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════
# Pattern catalog
# ═══════════════════════════════════════════════════════════

_COLOR = r"#\w+(?:[-\\|/]\w+)?"
_LINE_STYLE_WORD = r"(?:#\w+|dotted|dashed|plain|bold|hidden|norank|single|thickness=\d+)"
_LINE_STYLE = rf"{_LINE_STYLE_WORD}(?:[,;]{_LINE_STYLE_WORD})*"

RE_TITLE = re.compile(r"^(?i:title)\s+(.+)$")
RE_SWIMLANE = re.compile(rf"^\|(?:({_COLOR})\|)?([^|]+)\|(.+)?\s*$")

RE_START = re.compile(r"^(?i:start)\s*$")
RE_STOP = re.compile(r"^(?i:stop)\s*$")
RE_END = re.compile(r"^(?i:end)\s*$")
RE_KILL = re.compile(r"^(?i:kill|detach)\s*$")
RE_BREAK = re.compile(r"^(?i:break)\s*$")

RE_ENDIF = re.compile(r"^(?i:end\s*if)\s*$")
RE_ELSEIF = re.compile(
    r"^(?:\((.+?)\)\s*)?(?i:else\s*if)\s*\((.+?)\)\s*(?i:then)\s*(?:\((.+?)\))?\s*;?\s*$"
)
RE_ELSE = re.compile(r"^(?i:else)\s*(?:\((.+?)\))?\s*;?\s*$")
RE_ENDWHILE = re.compile(
    r"^(?i:end\s*while|while\s*end)\s*(?:\((.+?)\))?\s*;?\s*$"
)
RE_REPEAT_WHILE = re.compile(
    r"^(?i:repeat\s*while)\s*"
    r"(?:\((.+?)\)\s*"                                        # condition
    r"(?:(?i:is|equals?)\s*\((.+?)\)\s*(?:(?i:not)\s*\((.+?)\))?\s*"  # is (yes) [not (no)]
    r"|(?i:not)\s*\((.+?)\)\s*)?)?"                            # or: not (no)
    r"(?:(?:->|-\[[^\]]+\]->)\s*(.+?))?\s*;?\s*$"              # backward arrow label
)
RE_ENDSWITCH = re.compile(r"^(?i:end\s*switch)\s*$")
RE_END_FORK = re.compile(r"^(?i:end\s*fork|fork\s*end)\s*(?:\{[^}]*\})?\s*$")
RE_END_SPLIT = re.compile(r"^(?i:end\s*split|split\s*end)\s*$")
RE_CLOSE_GROUP = re.compile(r"^\}\s*$")

RE_IF = re.compile(
    rf"^(?:({_COLOR})\s*:)?\s*(?i:if)\s*\((.+?)\)\s*(?i:then)\s*(?:\((.+?)\))?\s*;?\s*$"
)
RE_IF_IS = re.compile(
    rf"^(?:({_COLOR})\s*:)?\s*(?i:if)\s*\((.+?)\)\s*(?i:is|equals?)\s*\((.+?)\)\s*(?i:then)\s*;?\s*$"
)
RE_WHILE = re.compile(
    rf"^(?:({_COLOR})\s*:)?\s*(?i:while)\s*\((.+?)\)\s*(?:(?i:is|equals?)\s*\((.+?)\))?\s*;?\s*$"
)
RE_REPEAT = re.compile(rf"^(?:({_COLOR})\s*:)?\s*(?i:repeat)\s*(?::(.+?);)?\s*$")
RE_SWITCH = re.compile(rf"^(?:({_COLOR})\s*:)?\s*(?i:switch)\s*\((.+?)\)\s*$")
RE_CASE = re.compile(r"^(?i:case)\s*\((.+?)\)\s*$")
RE_FORK = re.compile(r"^(?i:fork)\s*;?\s*$")
RE_FORK_AGAIN = re.compile(r"^(?i:fork\s+again)\s*;?\s*$")
RE_SPLIT = re.compile(r"^(?i:split)\s*;?\s*$")
RE_SPLIT_AGAIN = re.compile(r"^(?i:split\s+again)\s*;?\s*$")
RE_PARTITION = re.compile(
    rf"^(?i:(partition|package|rectangle|card|group))\s+(?:({_COLOR})\s+)?"
    rf"(?:\"([^\"]+)\"|(\S+))\s*(?:({_COLOR})\s*)?(?:\{{)?\s*$"
)

RE_NOTE = re.compile(
    rf"^((?i:floating)\s+)?(?i:note)\s+(?i:(left|right))\s*(?:({_COLOR})\s*)?:\s*(.+)$"
)
RE_NOTE_START = re.compile(
    rf"^((?i:floating)\s+)?(?i:note)\s+(?i:(left|right))\s*(?:({_COLOR})\s*)?$"
)
RE_END_NOTE = re.compile(r"^(?i:end\s*note)\s*$")

RE_BACKWARD = re.compile(r"^(?i:backward)\s*:(.+?);$")
RE_ACTIVITY = re.compile(rf"^(?:({_COLOR})\s*)?:(.+);$", re.DOTALL)
RE_ACTIVITY_START = re.compile(rf"^(?:({_COLOR})\s*)?:(.*)$")
RE_ACTIVITY_END = re.compile(r"^(.*);$")

RE_ARROW = re.compile(
    rf"^(?:->|-\[({_LINE_STYLE})\]->)\s*(?:(.+?)\s*;|(.+))?\s*$"
)


# ═══════════════════════════════════════════════════════════
# Parser
# ═══════════════════════════════════════════════════════════

NORMAL = "normal"
MULTILINE_NOTE = "multiline_note"
MULTILINE_ACTIVITY = "multiline_activity"

IF_THEN = "if_then"
IF_ELSE = "if_else"
ELSEIF = "elseif"
WHILE_BODY = "while_body"
REPEAT_BODY = "repeat_body"
SWITCH_CASE = "switch_case"
FORK_BRANCH = "fork_branch"
SPLIT_BRANCH = "split_branch"
PARTITION_BODY = "partition_body"

_IF_FRAMES = (IF_THEN, ELSEIF, IF_ELSE)


@dataclass
class _Frame:
    block_type: str
    instruction: Instruction
    target: Optional[List[Instruction]]


class ActivityParser:
    """Stateful single-use parser; call :meth:`parse` once per source."""

    def __init__(self) -> None:
        self.diagram = ActivityDiagram()
        self.state = NORMAL
        self.stack: List[_Frame] = []
        self.current_swimlane: Optional[str] = None
        self.pending_arrow: Optional[Arrow] = None
        self.buffer: List[str] = []
        self.context: Dict[str, Any] = {}
        self._next_node = 0

        self._recognizers = [
            self._parse_title,
            self._parse_swimlane,
            # terminals
            self._parse_start,
            self._parse_stop,
            self._parse_kill,
            self._parse_break,
            # closers
            self._parse_endif,
            self._parse_elseif,
            self._parse_else,
            self._parse_endwhile,
            self._parse_repeat_while,
            self._parse_endswitch,
            self._parse_end_fork,
            self._parse_end_split,
            self._parse_close_group,
            # bare "end" only after every "end X"
            self._parse_end,
            # openers
            self._parse_if,
            self._parse_while,
            self._parse_repeat,
            self._parse_switch,
            self._parse_case,
            self._parse_fork_again,
            self._parse_fork,
            self._parse_split_again,
            self._parse_split,
            self._parse_partition,
            # notes
            self._parse_note,
            self._parse_note_start,
            # actions
            self._parse_backward,
            self._parse_activity,
            self._parse_activity_start,
            # arrows last
            self._parse_arrow,
        ]

    def parse(self, text: str) -> ActivityDiagram:
        for line, raw in iter_source_lines(text):
            if self.state == MULTILINE_NOTE:
                if not self._handle_end_note(line):
                    self.buffer.append(raw)
                continue
            if self.state == MULTILINE_ACTIVITY:
                if not self._handle_activity_end(line, raw):
                    self.buffer.append(raw)
                continue
            if not line or re.match(r"^(?i:hide|show)\s", line):
                continue
            if not any(recognize(line) for recognize in self._recognizers):
                log.debug("activity: ignored line %r", line)
        return self.diagram

    # ── helpers ────────────────────────────────────────────

    def _current_target(self) -> List[Instruction]:
        if not self.stack:
            return self.diagram.instructions
        target = self.stack[-1].target
        if target is None:
            # instructions between "switch" and the first "case" are dropped
            return []
        return target

    def _new(self, instr: Instruction) -> Instruction:
        self._next_node += 1
        instr.node_id = self._next_node
        instr.swimlane = self.current_swimlane
        return instr

    def _add(self, instr: Instruction) -> None:
        """Append *instr*, flushing the pending arrow before flow instructions."""
        self._new(instr)
        target = self._current_target()
        if self.pending_arrow is not None and not isinstance(instr, Note):
            self.pending_arrow.swimlane = self.current_swimlane
            target.append(self.pending_arrow)
            self.pending_arrow = None
        target.append(instr)

    def _top(self, *block_types: str) -> Optional[_Frame]:
        if self.stack and self.stack[-1].block_type in block_types:
            return self.stack[-1]
        log.debug("activity: closer without matching block ignored")
        return None

    # ── title / swimlane ───────────────────────────────────

    def _parse_title(self, line: str) -> bool:
        m = RE_TITLE.match(line)
        if not m:
            return False
        self.diagram.title = m.group(1).strip()
        return True

    def _parse_swimlane(self, line: str) -> bool:
        m = RE_SWIMLANE.match(line)
        if not m:
            return False
        name = m.group(2).strip()
        if name not in self.diagram.swimlanes:
            self.diagram.swimlanes[name] = Swimlane(
                name=name,
                color=m.group(1),
                label=m.group(3).strip() if m.group(3) else None,
            )
        self.current_swimlane = name
        return True

    # ── terminals ──────────────────────────────────────────

    def _terminal(self, pattern: re.Pattern, kind: type, line: str) -> bool:
        if not pattern.match(line):
            return False
        self._add(kind())
        return True

    def _parse_start(self, line: str) -> bool:
        return self._terminal(RE_START, Start, line)

    def _parse_stop(self, line: str) -> bool:
        return self._terminal(RE_STOP, Stop, line)

    def _parse_end(self, line: str) -> bool:
        return self._terminal(RE_END, End, line)

    def _parse_kill(self, line: str) -> bool:
        return self._terminal(RE_KILL, Kill, line)

    def _parse_break(self, line: str) -> bool:
        return self._terminal(RE_BREAK, Break, line)

    # ── if / elseif / else / endif ─────────────────────────

    def _parse_if(self, line: str) -> bool:
        m = RE_IF.match(line) or RE_IF_IS.match(line)
        if not m:
            return False
        instr = If(condition=m.group(2), then_label=m.group(3), color=m.group(1))
        self._add(instr)
        self.stack.append(_Frame(IF_THEN, instr, instr.then_branch))
        return True

    def _parse_elseif(self, line: str) -> bool:
        m = RE_ELSEIF.match(line)
        if not m:
            return False
        frame = self._top(IF_THEN, ELSEIF)
        if frame is None:
            return True
        self.stack.pop()
        instr = frame.instruction
        if m.group(1):
            instr.else_label = m.group(1)
        branch = ElseIfBranch(condition=m.group(2), label=m.group(3))
        instr.elseif_branches.append(branch)
        self.stack.append(_Frame(ELSEIF, instr, branch.body))
        return True

    def _parse_else(self, line: str) -> bool:
        m = RE_ELSE.match(line)
        if not m:
            return False
        frame = self._top(IF_THEN, ELSEIF)
        if frame is None:
            return True
        self.stack.pop()
        instr = frame.instruction
        instr.else_label = m.group(1) or instr.else_label
        self.stack.append(_Frame(IF_ELSE, instr, instr.else_branch))
        return True

    def _parse_endif(self, line: str) -> bool:
        if not RE_ENDIF.match(line):
            return False
        if self._top(*_IF_FRAMES) is not None:
            self.stack.pop()
        return True

    # ── while / repeat ─────────────────────────────────────

    def _parse_while(self, line: str) -> bool:
        m = RE_WHILE.match(line)
        if not m:
            return False
        instr = While(condition=m.group(2), yes_label=m.group(3), color=m.group(1))
        self._add(instr)
        self.stack.append(_Frame(WHILE_BODY, instr, instr.body))
        return True

    def _parse_endwhile(self, line: str) -> bool:
        m = RE_ENDWHILE.match(line)
        if not m:
            return False
        frame = self._top(WHILE_BODY)
        if frame is not None:
            frame.instruction.no_label = m.group(1)
            self.stack.pop()
        return True

    def _parse_repeat(self, line: str) -> bool:
        m = RE_REPEAT.match(line)
        if not m:
            return False
        instr = Repeat(start_label=m.group(2), color=m.group(1))
        self._add(instr)
        self.stack.append(_Frame(REPEAT_BODY, instr, instr.body))
        return True

    def _parse_repeat_while(self, line: str) -> bool:
        m = RE_REPEAT_WHILE.match(line)
        if not m:
            return False
        frame = self._top(REPEAT_BODY)
        if frame is not None:
            instr = frame.instruction
            instr.condition = m.group(1) or ""
            instr.yes_label = m.group(2)
            instr.no_label = m.group(3) or m.group(4)
            self.stack.pop()
        return True

    # ── switch / case ──────────────────────────────────────

    def _parse_switch(self, line: str) -> bool:
        m = RE_SWITCH.match(line)
        if not m:
            return False
        instr = Switch(condition=m.group(2), color=m.group(1))
        self._add(instr)
        self.stack.append(_Frame(SWITCH_CASE, instr, None))
        return True

    def _parse_case(self, line: str) -> bool:
        m = RE_CASE.match(line)
        if not m:
            return False
        frame = self._top(SWITCH_CASE)
        if frame is not None:
            case = SwitchCase(label=m.group(1))
            frame.instruction.cases.append(case)
            frame.target = case.body
        return True

    def _parse_endswitch(self, line: str) -> bool:
        if not RE_ENDSWITCH.match(line):
            return False
        if self._top(SWITCH_CASE) is not None:
            self.stack.pop()
        return True

    # ── fork / split ───────────────────────────────────────

    def _open_parallel(self, instr: Fork, block_type: str) -> None:
        first: List[Instruction] = []
        instr.branches.append(first)
        self._add(instr)
        self.stack.append(_Frame(block_type, instr, first))

    def _again(self, block_type: str) -> None:
        frame = self._top(block_type)
        if frame is not None:
            branch: List[Instruction] = []
            frame.instruction.branches.append(branch)
            frame.target = branch

    def _parse_fork(self, line: str) -> bool:
        if not RE_FORK.match(line):
            return False
        self._open_parallel(Fork(), FORK_BRANCH)
        return True

    def _parse_fork_again(self, line: str) -> bool:
        if not RE_FORK_AGAIN.match(line):
            return False
        self._again(FORK_BRANCH)
        return True

    def _parse_end_fork(self, line: str) -> bool:
        if not RE_END_FORK.match(line):
            return False
        if self._top(FORK_BRANCH) is not None:
            self.stack.pop()
        return True

    def _parse_split(self, line: str) -> bool:
        if not RE_SPLIT.match(line):
            return False
        self._open_parallel(Split(), SPLIT_BRANCH)
        return True

    def _parse_split_again(self, line: str) -> bool:
        if not RE_SPLIT_AGAIN.match(line):
            return False
        self._again(SPLIT_BRANCH)
        return True

    def _parse_end_split(self, line: str) -> bool:
        if not RE_END_SPLIT.match(line):
            return False
        if self._top(SPLIT_BRANCH) is not None:
            self.stack.pop()
        return True

    # ── partition ──────────────────────────────────────────

    def _parse_partition(self, line: str) -> bool:
        m = RE_PARTITION.match(line)
        if not m:
            return False
        instr = Partition(name=m.group(3) or m.group(4), color=m.group(2) or m.group(5))
        self._add(instr)
        self.stack.append(_Frame(PARTITION_BODY, instr, instr.body))
        return True

    def _parse_close_group(self, line: str) -> bool:
        if not RE_CLOSE_GROUP.match(line):
            return False
        if self._top(PARTITION_BODY) is not None:
            self.stack.pop()
        return True

    # ── notes ──────────────────────────────────────────────

    def _parse_note(self, line: str) -> bool:
        m = RE_NOTE.match(line)
        if not m:
            return False
        self._add(Note(
            floating=m.group(1) is not None,
            position=LEFT if m.group(2).lower() == "left" else RIGHT,
            color=m.group(3),
            text=m.group(4).replace("\\n", "\n"),
        ))
        return True

    def _parse_note_start(self, line: str) -> bool:
        m = RE_NOTE_START.match(line)
        if not m:
            return False
        self.context = {
            "floating": m.group(1) is not None,
            "position": LEFT if m.group(2).lower() == "left" else RIGHT,
            "color": m.group(3),
        }
        self.buffer = []
        self.state = MULTILINE_NOTE
        return True

    def _handle_end_note(self, line: str) -> bool:
        if not RE_END_NOTE.match(line):
            return False
        self._add(Note(text=dedent_note(self.buffer), **self.context))
        self.state = NORMAL
        self.context = {}
        return True

    # ── actions ────────────────────────────────────────────

    def _parse_backward(self, line: str) -> bool:
        m = RE_BACKWARD.match(line)
        if not m:
            return False
        self._add(Action(label=m.group(1)))
        return True

    def _parse_activity(self, line: str) -> bool:
        m = RE_ACTIVITY.match(line)
        if not m:
            return False
        self._add(Action(label=m.group(2), color=m.group(1)))
        return True

    def _parse_activity_start(self, line: str) -> bool:
        m = RE_ACTIVITY_START.match(line)
        if not m or line.endswith(";"):
            return False
        self.context = {"color": m.group(1), "first": m.group(2)}
        self.buffer = []
        self.state = MULTILINE_ACTIVITY
        return True

    def _handle_activity_end(self, line: str, raw: str) -> bool:
        m = RE_ACTIVITY_END.match(raw.rstrip())
        if not m:
            return False
        lines = [self.context["first"], *self.buffer, m.group(1)]
        label = "\n".join(ln.strip() for ln in lines).strip("\n")
        self._add(Action(label=label, color=self.context["color"]))
        self.state = NORMAL
        self.context = {}
        return True

    # ── arrows ─────────────────────────────────────────────

    def _parse_arrow(self, line: str) -> bool:
        m = RE_ARROW.match(line)
        if not m:
            return False
        label = m.group(2) or m.group(3)
        arrow = Arrow(label=label.strip() if label else None)
        if m.group(1):
            style = m.group(1)
            color = re.search(r"#\w+", style)
            if color:
                arrow.color = color.group(0)
            arrow.dashed = bool(re.search(r"(?i:dashed|dotted)", style))
        # a second arrow before any instruction replaces the first
        self.pending_arrow = self._new(arrow)
        return True


def parse_activity_diagram(text: str) -> ActivityDiagram:
    """Parse PlantUML activity diagram text.

    Args:
        text: Raw PlantUML source.

    Returns:
        Populated :class:`ActivityDiagram`.  Never raises for input data.
    """
    return ActivityParser().parse(text)
