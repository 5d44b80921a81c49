"""
plantuml/sequence/parser.py

Line-oriented parser for PlantUML sequence diagrams.

Fragments (``alt``, ``loop`` ...) are tracked with a stack; new elements
go to the last section of the innermost open fragment.  Multiline notes
and references collect raw lines until their closer.

The parser is total: unknown lines and stray ``end`` keywords are ignored.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from plantuml.common import dedent_note, iter_source_lines
from plantuml.sequence.arrows import ArrowConfig, ArrowHead, parse_arrow
from plantuml.sequence.model import (
    AutoNumber,
    Box,
    Delay,
    Divider,
    Element,
    ExoMessage,
    ExoType,
    Fragment,
    FragmentSection,
    FragmentType,
    HSpace,
    LifeEvent,
    LifeEventType,
    Message,
    Note,
    NoteOnArrow,
    ParticipantType,
    Reference,
    SequenceDiagram,
)

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════
# Pattern catalog
# ═══════════════════════════════════════════════════════════

_COLOR = r"#\w+(?:[-\\|/]\w+)?"
_PART = r'(?:"([^"]+)"|([\w.@]+))'
_PART_NC = r'(?:"[^"]+"|[\w.@]+)'
_PARTS = rf"{_PART_NC}(?:\s*,\s*{_PART_NC})*"
_ARROW = (
    r"(?:[ox](?=[-<>/\\]))?"
    r"(?:<<|<|//|/|\\\\|\\)?"
    r"-+(?:\[[^\]]*\])?-*"
    r"(?:>>|>|//|/|\\\\|\\)?"
    r"(?:[ox](?![\w.@]))?"
)
_ACTIVATION = r"--\+\+|\+\+--|\+\+|--|\*\*|!!"
_TYPES = "|".join(ParticipantType.ALL)

RE_TITLE = re.compile(r"^(?i:title)\s+(.+)$")
RE_HIDE_FOOTBOX = re.compile(r"^(?i:hide\s+footbox)\s*$")
RE_AUTONUMBER = re.compile(r"^(?i:autonumber)\b\s*(.*)$")
RE_AUTONUMBER_ARGS = re.compile(r'^(-?\d+)?\s*(\d+)?\s*(?:"([^"]*)")?\s*$')
RE_AUTONUMBER_RESUME = re.compile(r'^(?i:resume)\s*(\d+)?\s*(?:"([^"]*)")?\s*$')

RE_BOX = re.compile(rf'^(?i:box)(?:\s+"([^"]*)"|\s+([^#"\s][^#"]*?))?\s*({_COLOR})?\s*$')
RE_END_BOX = re.compile(r"^(?i:end\s*box)\s*$")

RE_PARTICIPANT = re.compile(
    rf"^(?:(?i:(create))\s+)?(?i:({_TYPES}))\s+"
    r'(?:"([^"]+)"|([\w.@]+))'
    r'(?:\s+(?i:as)\s+(?:"([^"]+)"|([\w.@]+)))?'
    r"\s*(?:<<\s*(.+?)\s*>>)?"
    r"\s*(?:(?i:order)\s+(-?\d+))?"
    rf"\s*({_COLOR})?"
    r"\s*(?:(?i:order)\s+(-?\d+))?\s*$"
)
RE_CREATE = re.compile(rf"^(?i:create)\s+{_PART}\s*$")

RE_DIVIDER = re.compile(r"^==\s*(.*?)\s*==$")
RE_DELAY = re.compile(r"^\.\.\.(?:\s*(.*?)\s*\.\.\.)?$")
RE_HSPACE = re.compile(r"^\|\|(\d+)?\|\|?$")

RE_LIFE_EVENT = re.compile(
    rf"^(?i:(activate|deactivate|destroy))\s+{_PART}\s*({_COLOR})?\s*$"
)
RE_RETURN = re.compile(r"^(?i:return)\b\s*(.*)$")

RE_GROUP_START = re.compile(
    rf"^(?i:(alt|loop|opt|par2|par|break|critical|group))\b\s*({_COLOR})?\s*(.*)$"
)
RE_GROUP_ELSE = re.compile(rf"^(?i:else|also)\b\s*({_COLOR})?\s*(.*)$")
RE_GROUP_END = re.compile(r"^(?i:end)\s*$")

RE_NOTE = re.compile(
    rf"^(?i:(note|hnote|rnote))\s+(?i:(left|right|over))(?:\s+(?i:of))?\s+({_PARTS})"
    rf"\s*({_COLOR})?\s*:\s*(.*)$"
)
RE_NOTE_START = re.compile(
    rf"^(?i:(note|hnote|rnote))\s+(?i:(left|right|over))(?:\s+(?i:of))?\s+({_PARTS})"
    rf"\s*({_COLOR})?\s*$"
)
RE_NOTE_ACROSS = re.compile(
    rf"^(?i:(note|hnote|rnote))\s+(?i:across)\s*({_COLOR})?\s*(?::\s*(.*))?$"
)
RE_ARROW_NOTE = re.compile(
    rf"^(?i:note)\s+(?i:(left|right|top|bottom))\s*({_COLOR})?\s*:\s*(.*)$"
)
RE_ARROW_NOTE_START = re.compile(
    rf"^(?i:note)\s+(?i:(left|right|top|bottom))\s*({_COLOR})?\s*$"
)
RE_END_NOTE = re.compile(r"^(?i:end\s*(?:note|hnote|rnote))\s*$")

RE_REF = re.compile(rf"^(?i:ref)\s*({_COLOR})?\s+(?i:over)\s+({_PARTS})\s*:\s*(.*)$")
RE_REF_START = re.compile(rf"^(?i:ref)\s*({_COLOR})?\s+(?i:over)\s+({_PARTS})\s*$")
RE_END_REF = re.compile(r"^(?i:end\s*ref)\s*$")

RE_EXO_LEFT = re.compile(
    rf"^(&\s*)?[\[?]\s*({_ARROW})\s*{_PART}\s*({_ACTIVATION})?\s*({_COLOR})?"
    r"\s*(?::\s*(.*))?$"
)
RE_EXO_RIGHT = re.compile(
    rf"^(&\s*)?{_PART}\s*({_ARROW})\s*[\]?]\s*({_ACTIVATION})?\s*({_COLOR})?"
    r"\s*(?::\s*(.*))?$"
)
RE_MESSAGE = re.compile(
    rf"^(&\s*)?{_PART}\s*({_ARROW})\s*{_PART}"
    rf"((?:\s*&\s*{_PART_NC})*)"
    rf"\s*({_ACTIVATION})?\s*({_COLOR})?"
    r"\s*(?::\s*(.*))?$"
)


def _split_parts(text: str) -> List[str]:
    """Split ``A, "B C", D`` into participant codes."""
    return [p.strip().strip('"') for p in re.findall(r'"[^"]+"|[^,\s]+', text)]


def _pick(quoted: Optional[str], plain: Optional[str]) -> str:
    return quoted if quoted is not None else (plain or "")


# ═══════════════════════════════════════════════════════════
# Parser
# ═══════════════════════════════════════════════════════════

NORMAL = "normal"
MULTILINE_NOTE = "multiline_note"


class SequenceParser:
    """Stateful single-use parser; call :meth:`parse` once per source."""

    def __init__(self) -> None:
        self.diagram = SequenceDiagram()
        self.state = NORMAL
        self.stack: List[Fragment] = []
        self.current_box: Optional[Box] = None
        self.last_message: Optional[Message] = None
        self.buffer: List[str] = []
        self.context: Dict[str, Any] = {}

        self._recognizers = [
            self._parse_title,
            self._parse_autonumber,
            self._parse_box_start,
            self._parse_box_end,
            self._parse_participant,
            self._parse_create,
            self._parse_divider,
            self._parse_delay,
            self._parse_hspace,
            self._parse_life_event,
            self._parse_return,
            # notes and refs before fragments: "end note" / "end ref"
            self._parse_note_across,
            self._parse_note,
            self._parse_note_start,
            self._parse_arrow_note,
            self._parse_arrow_note_start,
            self._parse_ref,
            self._parse_ref_start,
            self._parse_group_start,
            self._parse_group_else,
            self._parse_group_end,
            # messages last
            self._parse_exo_left,
            self._parse_exo_right,
            self._parse_message,
        ]

    def parse(self, text: str) -> SequenceDiagram:
        for line, raw in iter_source_lines(text):
            if self.state == MULTILINE_NOTE:
                if RE_END_NOTE.match(line) or RE_END_REF.match(line):
                    self._finish_multiline()
                else:
                    self.buffer.append(raw)
                continue
            if RE_HIDE_FOOTBOX.match(line):
                self.diagram.hide_footbox = True
                continue
            if not line or re.match(r"^(?i:hide|show|newpage|ignore\s+newpage)\b", line):
                continue
            if not any(recognize(line) for recognize in self._recognizers):
                log.debug("sequence: ignored line %r", line)
        if self.state == MULTILINE_NOTE:
            log.debug("sequence: unterminated %s dropped", self.context.get("kind"))
        return self.diagram

    # ── helpers ────────────────────────────────────────────

    def _target(self) -> List[Element]:
        if self.stack:
            return self.stack[-1].sections[-1].elements
        return self.diagram.elements

    def _add(self, element: Element) -> None:
        self._target().append(element)

    def _participant(self, code: str) -> str:
        self.diagram.get_or_create(code)
        return code

    def _finish_multiline(self) -> None:
        text = dedent_note(self.buffer)
        ctx = self.context
        kind = ctx["kind"]
        if kind == "note":
            self._add(Note(
                participants=ctx["participants"], position=ctx["position"],
                text=text, shape=ctx["shape"], color=ctx["color"],
                is_across=ctx.get("is_across", False),
            ))
        elif kind == "arrow_note":
            self._attach_arrow_note(ctx["position"], text, ctx["color"])
        elif kind == "ref":
            self._add(Reference(participants=ctx["participants"], text=text, color=ctx["color"]))
        self.state = NORMAL
        self.buffer = []
        self.context = {}

    def _start_multiline(self, **context: Any) -> None:
        self.state = MULTILINE_NOTE
        self.buffer = []
        self.context = context

    def _attach_arrow_note(self, position: str, text: str, color: Optional[str]) -> None:
        if self.last_message is None:
            log.debug("sequence: note on arrow without a message ignored")
            return
        self.last_message.note = NoteOnArrow(position=position.lower(), text=text, color=color)

    # ── header-ish ─────────────────────────────────────────

    def _parse_title(self, line: str) -> bool:
        m = RE_TITLE.match(line)
        if not m:
            return False
        self.diagram.title = m.group(1).strip()
        return True

    def _parse_autonumber(self, line: str) -> bool:
        m = RE_AUTONUMBER.match(line)
        if not m:
            return False
        rest = m.group(1).strip()
        if rest.lower() == "stop":
            self._add(AutoNumber(start=None, stop=True))
            return True
        resume = RE_AUTONUMBER_RESUME.match(rest)
        if resume:
            self._add(AutoNumber(
                start=None, step=int(resume.group(1) or 1),
                format=resume.group(2), resume=True,
            ))
            return True
        args = RE_AUTONUMBER_ARGS.match(rest)
        if not args:
            log.debug("sequence: unsupported autonumber %r", rest)
            self._add(AutoNumber())
            return True
        self._add(AutoNumber(
            start=int(args.group(1)) if args.group(1) else 1,
            step=int(args.group(2)) if args.group(2) else 1,
            format=args.group(3),
        ))
        return True

    def _parse_box_start(self, line: str) -> bool:
        m = RE_BOX.match(line)
        if not m:
            return False
        title = _pick(m.group(1), m.group(2)).strip()
        self.current_box = Box(title=title, color=m.group(3))
        self.diagram.boxes.append(self.current_box)
        return True

    def _parse_box_end(self, line: str) -> bool:
        if not RE_END_BOX.match(line):
            return False
        self.current_box = None
        return True

    def _parse_participant(self, line: str) -> bool:
        m = RE_PARTICIPANT.match(line)
        if not m:
            return False
        first_quoted, first_plain = m.group(3), m.group(4)
        second_quoted, second_plain = m.group(5), m.group(6)
        if second_quoted is not None:
            code, display = _pick(first_quoted, first_plain), second_quoted
        elif second_plain is not None:
            code, display = second_plain, _pick(first_quoted, first_plain)
        else:
            display = _pick(first_quoted, first_plain)
            code = display

        p = self.diagram.get_or_create(code, display, m.group(2).lower())
        p.display_name = display
        p.type = m.group(2).lower()
        if m.group(7):
            p.stereotype = m.group(7)
        if m.group(9):
            p.color = m.group(9)
        order = m.group(8) or m.group(10)
        if order is not None:
            p.order = int(order)
        if m.group(1):
            p.is_created = True
            self._add(LifeEvent(participant=code, type=LifeEventType.CREATE))
        if self.current_box is not None and code not in self.current_box.participants:
            self.current_box.participants.append(code)
        return True

    def _parse_create(self, line: str) -> bool:
        m = RE_CREATE.match(line)
        if not m:
            return False
        code = _pick(m.group(1), m.group(2))
        self.diagram.get_or_create(code).is_created = True
        self._add(LifeEvent(participant=code, type=LifeEventType.CREATE))
        return True

    # ── separators ─────────────────────────────────────────

    def _parse_divider(self, line: str) -> bool:
        m = RE_DIVIDER.match(line)
        if not m:
            return False
        self._add(Divider(label=m.group(1)))
        return True

    def _parse_delay(self, line: str) -> bool:
        m = RE_DELAY.match(line)
        if not m:
            return False
        self._add(Delay(label=m.group(1) or ""))
        return True

    def _parse_hspace(self, line: str) -> bool:
        m = RE_HSPACE.match(line)
        if not m:
            return False
        self._add(HSpace(size=int(m.group(1)) if m.group(1) else None))
        return True

    # ── lifeline events ────────────────────────────────────

    def _parse_life_event(self, line: str) -> bool:
        m = RE_LIFE_EVENT.match(line)
        if not m:
            return False
        code = self._participant(_pick(m.group(2), m.group(3)))
        self._add(LifeEvent(participant=code, type=m.group(1).lower(), color=m.group(4)))
        return True

    def _parse_return(self, line: str) -> bool:
        m = RE_RETURN.match(line)
        if not m:
            return False
        message = Message(
            source="", target="", label=m.group(1).strip(),
            arrow=parse_arrow("-->"), is_return=True,
        )
        self._add(message)
        self.last_message = message
        return True

    # ── notes and references ───────────────────────────────

    def _parse_note_across(self, line: str) -> bool:
        m = RE_NOTE_ACROSS.match(line)
        if not m:
            return False
        shape, color, text = m.group(1).lower(), m.group(2), m.group(3)
        if text is None:
            self._start_multiline(
                kind="note", participants=[], position="over", shape=shape,
                color=color, is_across=True,
            )
        else:
            self._add(Note(position="over", text=text, shape=shape, color=color, is_across=True))
        return True

    def _parse_note(self, line: str) -> bool:
        m = RE_NOTE.match(line)
        if not m:
            return False
        parts = [self._participant(p) for p in _split_parts(m.group(3))]
        self._add(Note(
            participants=parts, position=m.group(2).lower(), text=m.group(5),
            shape=m.group(1).lower(), color=m.group(4),
        ))
        return True

    def _parse_note_start(self, line: str) -> bool:
        m = RE_NOTE_START.match(line)
        if not m:
            return False
        parts = [self._participant(p) for p in _split_parts(m.group(3))]
        self._start_multiline(
            kind="note", participants=parts, position=m.group(2).lower(),
            shape=m.group(1).lower(), color=m.group(4),
        )
        return True

    def _parse_arrow_note(self, line: str) -> bool:
        m = RE_ARROW_NOTE.match(line)
        if not m:
            return False
        self._attach_arrow_note(m.group(1), m.group(3), m.group(2))
        return True

    def _parse_arrow_note_start(self, line: str) -> bool:
        m = RE_ARROW_NOTE_START.match(line)
        if not m:
            return False
        self._start_multiline(kind="arrow_note", position=m.group(1), color=m.group(2))
        return True

    def _parse_ref(self, line: str) -> bool:
        m = RE_REF.match(line)
        if not m:
            return False
        parts = [self._participant(p) for p in _split_parts(m.group(2))]
        self._add(Reference(participants=parts, text=m.group(3), color=m.group(1)))
        return True

    def _parse_ref_start(self, line: str) -> bool:
        m = RE_REF_START.match(line)
        if not m:
            return False
        parts = [self._participant(p) for p in _split_parts(m.group(2))]
        self._start_multiline(kind="ref", participants=parts, color=m.group(1))
        return True

    # ── fragments ──────────────────────────────────────────

    def _parse_group_start(self, line: str) -> bool:
        m = RE_GROUP_START.match(line)
        if not m:
            return False
        kind = m.group(1).lower()
        if kind == "par2":
            kind = FragmentType.PAR
        label = m.group(3).strip()
        fragment = Fragment(type=kind, label=label, color=m.group(2))
        fragment.sections.append(FragmentSection(condition=label))
        self._add(fragment)
        self.stack.append(fragment)
        return True

    def _parse_group_else(self, line: str) -> bool:
        m = RE_GROUP_ELSE.match(line)
        if not m:
            return False
        if not self.stack:
            log.debug("sequence: else outside a fragment ignored")
            return True
        self.stack[-1].sections.append(FragmentSection(condition=m.group(2).strip()))
        return True

    def _parse_group_end(self, line: str) -> bool:
        if not RE_GROUP_END.match(line):
            return False
        if not self.stack:
            log.debug("sequence: end outside a fragment ignored")
            return True
        self.stack.pop()
        return True

    # ── messages ───────────────────────────────────────────

    def _parse_exo_left(self, line: str) -> bool:
        m = RE_EXO_LEFT.match(line)
        if not m:
            return False
        arrow = parse_arrow(m.group(2))
        code = self._participant(_pick(m.group(3), m.group(4)))
        exo_type = ExoType.FROM_LEFT if arrow.head2 != ArrowHead.NONE else ExoType.TO_LEFT
        self._add_exo(arrow, code, exo_type, m.group(1), m.group(5), m.group(6), m.group(7))
        return True

    def _parse_exo_right(self, line: str) -> bool:
        m = RE_EXO_RIGHT.match(line)
        if not m:
            return False
        code = self._participant(_pick(m.group(2), m.group(3)))
        arrow = parse_arrow(m.group(4))
        exo_type = ExoType.TO_RIGHT if arrow.head2 != ArrowHead.NONE else ExoType.FROM_RIGHT
        self._add_exo(arrow, code, exo_type, m.group(1), m.group(5), m.group(6), m.group(7))
        return True

    def _add_exo(
        self, arrow: ArrowConfig, code: str, exo_type: str, parallel: Optional[str],
        activation: Optional[str], color: Optional[str], label: Optional[str],
    ) -> None:
        if color and not activation:
            arrow.color = color
        self._add(ExoMessage(
            participant=code, label=(label or "").strip(), arrow=arrow,
            exo_type=exo_type, is_parallel=bool(parallel), activation=activation,
        ))

    def _parse_message(self, line: str) -> bool:
        m = RE_MESSAGE.match(line)
        if not m:
            return False
        left = self._participant(_pick(m.group(2), m.group(3)))
        arrow = parse_arrow(m.group(4))
        right = self._participant(_pick(m.group(5), m.group(6)))
        multicast = [self._participant(p) for p in _split_parts(m.group(7).replace("&", ","))]

        source, target = left, right
        if arrow.is_reverse:
            source, target = right, left
            arrow = arrow.reversed()

        activation, color = m.group(8), m.group(9)
        message = Message(
            source=source, target=target, label=(m.group(10) or "").strip(),
            arrow=arrow, is_parallel=bool(m.group(1)), multicast=multicast,
            activation=activation,
        )
        if color:
            if activation:
                message.activation_color = color
            else:
                arrow.color = color
        self._add(message)
        self.last_message = message
        return True


def parse_sequence_diagram(text: str) -> SequenceDiagram:
    """Parse PlantUML sequence source into a :class:`SequenceDiagram`."""
    return SequenceParser().parse(text)


