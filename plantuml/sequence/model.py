"""
plantuml/sequence/model.py

Intermediate model for PlantUML sequence diagrams.

The diagram is an ordered list of elements (messages, notes, fragments,
dividers ...).  Fragments own their own element lists per section, so
the element list is a tree.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from plantuml.sequence.arrows import ArrowConfig


class ParticipantType:
    PARTICIPANT = "participant"
    ACTOR = "actor"
    BOUNDARY = "boundary"
    CONTROL = "control"
    ENTITY = "entity"
    QUEUE = "queue"
    DATABASE = "database"
    COLLECTIONS = "collections"

    ALL = (
        PARTICIPANT, ACTOR, BOUNDARY, CONTROL, ENTITY, QUEUE, DATABASE, COLLECTIONS,
    )


class LifeEventType:
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    DESTROY = "destroy"
    CREATE = "create"


class FragmentType:
    ALT = "alt"
    LOOP = "loop"
    OPT = "opt"
    PAR = "par"
    BREAK = "break"
    CRITICAL = "critical"
    GROUP = "group"


class ExoType:
    FROM_LEFT = "from_left"
    TO_LEFT = "to_left"
    FROM_RIGHT = "from_right"
    TO_RIGHT = "to_right"


@dataclass
class Participant:
    """A lifeline owner.

    Attributes:
        code: Identifier used in messages.
        display_name: Header label.
        type: One of :class:`ParticipantType`.
        color: Header fill colour.
        stereotype: ``<<stereotype>>`` text, without brackets.
        order: Explicit ``order N`` value; lower sorts first.
        is_created: Declared with ``create``; its header starts at the
            creating message instead of the top.
    """
    code: str
    display_name: str
    type: str = ParticipantType.PARTICIPANT
    color: Optional[str] = None
    stereotype: Optional[str] = None
    order: Optional[int] = None
    is_created: bool = False


@dataclass
class NoteOnArrow:
    position: str = "right"
    text: str = ""
    color: Optional[str] = None


@dataclass
class Message:
    """A message between two participants (or a ``return``).

    ``source`` and ``target`` are in drawing order: the arrow head of
    ``arrow.head2`` always lands on ``target``.
    """
    source: str
    target: str
    label: str = ""
    arrow: ArrowConfig = field(default_factory=ArrowConfig)
    note: Optional[NoteOnArrow] = None
    is_parallel: bool = False
    is_return: bool = False
    multicast: List[str] = field(default_factory=list)
    activation: Optional[str] = None
    activation_color: Optional[str] = None

    @property
    def is_self(self) -> bool:
        return self.source == self.target


@dataclass
class ExoMessage:
    """A lost or found message with one end on the diagram border."""
    participant: str
    label: str = ""
    arrow: ArrowConfig = field(default_factory=ArrowConfig)
    exo_type: str = ExoType.FROM_LEFT
    is_parallel: bool = False
    activation: Optional[str] = None


@dataclass
class LifeEvent:
    participant: str
    type: str
    color: Optional[str] = None


@dataclass
class FragmentSection:
    condition: str = ""
    elements: List["Element"] = field(default_factory=list)


@dataclass
class Fragment:
    """``alt``/``loop``/``opt``/``par``/``break``/``critical``/``group``.

    The first section carries the opening label; ``else`` / ``also`` add
    further sections.
    """
    type: str
    label: str = ""
    color: Optional[str] = None
    sections: List[FragmentSection] = field(default_factory=list)


@dataclass
class Note:
    """A note beside or over one or more lifelines.

    Attributes:
        participants: Codes of the lifelines the note is attached to.
        position: ``left``, ``right`` or ``over``.
        text: Note body.
        shape: ``note``, ``hnote`` (hexagon) or ``rnote`` (rectangle).
        color: Background colour.
        is_across: ``note across`` spans every lifeline.
    """
    participants: List[str] = field(default_factory=list)
    position: str = "right"
    text: str = ""
    shape: str = "note"
    color: Optional[str] = None
    is_across: bool = False


@dataclass
class Divider:
    label: str = ""


@dataclass
class Delay:
    label: str = ""


@dataclass
class HSpace:
    size: Optional[int] = None


@dataclass
class Reference:
    participants: List[str] = field(default_factory=list)
    text: str = ""
    color: Optional[str] = None


@dataclass
class Box:
    title: str = ""
    color: Optional[str] = None
    participants: List[str] = field(default_factory=list)


@dataclass
class AutoNumber:
    """An ``autonumber`` directive.

    Attributes:
        start: First number, or None to continue the running count.
        step: Increment between messages.
        format: Optional format such as ``"<b>[000]"``; zero runs are
            padded to their width.
        stop: ``autonumber stop``.
        resume: ``autonumber resume``.
    """
    start: Optional[int] = 1
    step: int = 1
    format: Optional[str] = None
    stop: bool = False
    resume: bool = False


Element = Union[
    Message, ExoMessage, LifeEvent, Fragment, Note, Divider, Delay, HSpace,
    Reference, AutoNumber,
]


@dataclass
class SequenceDiagram:
    """Root of a parsed sequence diagram.

    Attributes:
        title: Diagram title.
        participants: Code → participant, in declaration order.
        elements: Top-level elements in source order.
        boxes: ``box ... end box`` groupings.
        hide_footbox: ``hide footbox`` was given.
    """
    title: Optional[str] = None
    hide_footbox: bool = False
    participants: Dict[str, Participant] = field(default_factory=dict)
    elements: List[Element] = field(default_factory=list)
    boxes: List[Box] = field(default_factory=list)

    def get_or_create(self, code: str, display_name: Optional[str] = None,
                      type_: str = ParticipantType.PARTICIPANT) -> Participant:
        """Return the participant for *code*, declaring it implicitly if new."""
        p = self.participants.get(code)
        if p is None:
            p = Participant(code=code, display_name=display_name or code, type=type_)
            self.participants[code] = p
        return p

    def ordered_participants(self) -> List[Participant]:
        """Participants left to right: explicit ``order`` first, then declaration order."""
        indexed = list(enumerate(self.participants.values()))
        indexed.sort(key=lambda item: (
            item[1].order if item[1].order is not None else float("inf"), item[0]
        ))
        return [p for _, p in indexed]
