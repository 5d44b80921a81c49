"""
plantuml/state/model.py

Intermediate model for PlantUML state diagrams.

Composite states own their children by code only; the diagram-wide
``elements`` dict is the single owner of every :class:`StateElement`.
Pseudostates (``[*]``, ``[H]``, ``[H*]``) are resolved by the parser to
synthetic codes scoped to the enclosing composite.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional


class StateType:
    STATE = "state"
    INITIAL = "initial"
    FINAL = "final"
    CHOICE = "choice"
    FORK_JOIN = "fork_join"
    HISTORY = "history"
    DEEP_HISTORY = "deep_history"
    SYNCHRO_BAR = "synchro_bar"


class Direction:
    LEFT_TO_RIGHT = "left_to_right"
    TOP_TO_BOTTOM = "top_to_bottom"


@dataclass
class Region:
    """One concurrent region of a composite state.

    Attributes:
        separator: ``-`` or ``|`` (the character of the separator line).
        elements: Codes of the states placed in this region.
        transitions: Transitions declared inside this region.
    """
    separator: str = "-"
    elements: List[str] = field(default_factory=list)
    transitions: List["Transition"] = field(default_factory=list)


@dataclass
class StateElement:
    """A state, pseudostate or composite.

    Attributes:
        code: Unique key in :attr:`StateDiagram.elements`.
        display_name: Label text.
        type: One of the :class:`StateType` values.
        color: Background colour (``#...`` or a colour name).
        line_color: Border colour from ``##color``.
        line_style: ``dashed``, ``dotted`` or ``bold`` from ``##[style]``.
        stereotypes: Non-pseudostate stereotypes, without ``<< >>``.
        descriptions: ``State : text`` lines (entry/do/exit ...).
        children: Codes of direct children when there are no regions.
        child_transitions: Transitions declared directly inside.
        regions: Concurrent regions; when non-empty, ``children`` is empty.
        parent_code: Code of the enclosing composite, or None at top level.
    """
    code: str
    display_name: str
    type: str = StateType.STATE
    color: Optional[str] = None
    line_color: Optional[str] = None
    line_style: Optional[str] = None
    stereotypes: List[str] = field(default_factory=list)
    descriptions: List[str] = field(default_factory=list)
    children: List[str] = field(default_factory=list)
    child_transitions: List["Transition"] = field(default_factory=list)
    regions: List[Region] = field(default_factory=list)
    parent_code: Optional[str] = None

    @property
    def is_composite(self) -> bool:
        return bool(self.children or self.regions)

    def all_children(self) -> List[str]:
        """Direct children in declaration order, across all regions."""
        if self.regions:
            return [code for region in self.regions for code in region.elements]
        return list(self.children)


@dataclass
class Transition:
    """A ``A --> B : label`` transition.

    ``length`` is the number of dashes in the arrow body; it is a layout
    hint only.
    """
    source: str
    target: str
    label: Optional[str] = None
    direction: Optional[str] = None
    line_style: Optional[str] = None
    color: Optional[str] = None
    cross_start: bool = False
    circle_end: bool = False
    length: int = 2


@dataclass
class StateNote:
    """A note attached to a state, to a transition, or floating.

    Attributes:
        position: ``left``, ``right``, ``top`` or ``bottom``.
        text: Note body, newline separated.
        entity_code: Target state for ``note <pos> of X``.
        alias: Name of a floating ``note "..." as N``.
        color: Background colour.
        link_index: Index into :attr:`StateDiagram.transitions` for
            ``note on link``.
    """
    position: str = "right"
    text: str = ""
    entity_code: Optional[str] = None
    alias: Optional[str] = None
    color: Optional[str] = None
    link_index: Optional[int] = None

    @property
    def on_link(self) -> bool:
        return self.link_index is not None


@dataclass
class StateDiagram:
    """Root of a parsed state diagram.

    Attributes:
        title: Diagram title, if any.
        direction: Main layout axis (:class:`Direction`).
        hide_empty_description: ``hide empty description`` was given.
        elements: Code → element, in order of first reference.
        transitions: Every transition, at any nesting depth.
        notes: All notes in declaration order.
    """
    title: Optional[str] = None
    direction: str = Direction.TOP_TO_BOTTOM
    hide_empty_description: bool = False
    elements: Dict[str, StateElement] = field(default_factory=dict)
    transitions: List[Transition] = field(default_factory=list)
    notes: List[StateNote] = field(default_factory=list)

    def get_or_create(self, code: str, display_name: str, type_: str) -> StateElement:
        """Return the element for *code*, creating it when missing.

        An existing placeholder is upgraded: its type only when it is still
        a plain ``STATE``, its display name only when it still equals the
        code.
        """
        el = self.elements.get(code)
        if el is None:
            el = StateElement(code=code, display_name=display_name, type=type_)
            self.elements[code] = el
            return el
        if type_ != StateType.STATE and el.type == StateType.STATE:
            el.type = type_
        if display_name != code and el.display_name == el.code:
            el.display_name = display_name
        return el

    def top_level(self) -> List[str]:
        return [code for code, el in self.elements.items() if el.parent_code is None]
