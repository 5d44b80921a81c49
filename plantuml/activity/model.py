"""
plantuml/activity/model.py

Intermediate model for PlantUML activity diagrams (the ``:action;`` syntax).

Activity diagrams are trees: if/while/repeat/switch/fork/partition blocks
own nested instruction lists.  Each instruction kind is its own dataclass
carrying only the fields it needs; every kind shares ``node_id`` (a stable
key for the emitter's geometry side-tables) and ``swimlane`` (the lane that
was current when the parser saw it).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Type


LEFT = "left"
RIGHT = "right"


@dataclass
class Instruction:
    """Common base of every activity instruction."""
    node_id: int = 0
    swimlane: Optional[str] = None


@dataclass
class Action(Instruction):
    """``:label;`` box.  Multiline labels are joined with newlines."""
    label: str = ""
    color: Optional[str] = None


@dataclass
class Start(Instruction):
    pass


@dataclass
class Stop(Instruction):
    pass


@dataclass
class End(Instruction):
    pass


@dataclass
class Kill(Instruction):
    """``kill`` or ``detach``: the flow ends without a final node."""


@dataclass
class Break(Instruction):
    """``break``: emits nothing and ends its branch."""


@dataclass
class Arrow(Instruction):
    """Standalone ``->`` line that styles the next edge."""
    label: Optional[str] = None
    color: Optional[str] = None
    dashed: bool = False


@dataclass
class ElseIfBranch:
    condition: str = ""
    label: Optional[str] = None
    body: List[Instruction] = field(default_factory=list)


@dataclass
class If(Instruction):
    """``if (c) then (yes) ... [elseif ...] [else (no) ...] endif``.

    Attributes:
        condition: Text shown in the decision diamond.
        then_label: Label on the edge into the then-branch.
        else_label: Label on the edge into the else-branch (or merge).
        color: Optional diamond fill colour.
        then_branch: Instructions of the then-branch.
        else_branch: Instructions of the else-branch.
        elseif_branches: Ordered ``elseif`` branches.
    """
    condition: str = ""
    then_label: Optional[str] = None
    else_label: Optional[str] = None
    color: Optional[str] = None
    then_branch: List[Instruction] = field(default_factory=list)
    else_branch: List[Instruction] = field(default_factory=list)
    elseif_branches: List[ElseIfBranch] = field(default_factory=list)

    def only_breaks(self) -> bool:
        """True for ``if (x) then; break; endif`` with no else/elseif."""
        return (
            not self.else_branch
            and not self.elseif_branches
            and bool(self.then_branch)
            and all(isinstance(i, Break) for i in self.then_branch)
        )


@dataclass
class While(Instruction):
    condition: str = ""
    yes_label: Optional[str] = None
    no_label: Optional[str] = None
    color: Optional[str] = None
    body: List[Instruction] = field(default_factory=list)


@dataclass
class Repeat(Instruction):
    """``repeat [:start;] ... repeat while (c) is (yes) not (no)``."""
    start_label: Optional[str] = None
    condition: str = ""
    yes_label: Optional[str] = None
    no_label: Optional[str] = None
    color: Optional[str] = None
    body: List[Instruction] = field(default_factory=list)


@dataclass
class SwitchCase:
    label: str = ""
    body: List[Instruction] = field(default_factory=list)


@dataclass
class Switch(Instruction):
    condition: str = ""
    color: Optional[str] = None
    cases: List[SwitchCase] = field(default_factory=list)


@dataclass
class Fork(Instruction):
    """``fork ... fork again ... end fork``; each branch runs in parallel."""
    branches: List[List[Instruction]] = field(default_factory=list)


@dataclass
class Split(Fork):
    """``split ... split again ... end split``."""


@dataclass
class Partition(Instruction):
    """``partition Name { ... }`` (also package/rectangle/card/group)."""
    name: str = ""
    color: Optional[str] = None
    body: List[Instruction] = field(default_factory=list)


@dataclass
class Note(Instruction):
    position: str = RIGHT
    text: str = ""
    color: Optional[str] = None
    floating: bool = False


# Kinds that do not take vertical room in a sequence.
NON_FLOW: Tuple[Type[Instruction], ...] = (Arrow, Note, Break)


@dataclass
class Swimlane:
    name: str = ""
    color: Optional[str] = None
    label: Optional[str] = None


@dataclass
class ActivityDiagram:
    """Root of a parsed activity diagram.

    Attributes:
        title: Diagram title, if any.
        instructions: Top-level instruction sequence.
        swimlanes: Lane name → definition, in order of first appearance.
    """
    title: Optional[str] = None
    instructions: List[Instruction] = field(default_factory=list)
    swimlanes: Dict[str, Swimlane] = field(default_factory=dict)


def walk(instructions: List[Instruction]):
    """Yield every instruction in *instructions*, depth first, pre-order."""
    for instr in instructions:
        yield instr
        if isinstance(instr, If):
            yield from walk(instr.then_branch)
            for eib in instr.elseif_branches:
                yield from walk(eib.body)
            yield from walk(instr.else_branch)
        elif isinstance(instr, (While, Repeat, Partition)):
            yield from walk(instr.body)
        elif isinstance(instr, Switch):
            for case in instr.cases:
                yield from walk(case.body)
        elif isinstance(instr, Fork):
            for branch in instr.branches:
                yield from walk(branch)
