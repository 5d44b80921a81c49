"""
plantuml/state/parser.py

Line-oriented parser for PlantUML state diagrams.

Composite nesting is tracked with a stack of composite codes.  Inside a
composite that has concurrent regions, new children and transitions go to
the last region.  ``[*]``, ``[H]`` and ``[H*]`` resolve to synthetic codes
scoped to the enclosing composite (or region), so identical tokens in
different composites never collide.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from plantuml.common import DIRECTION_WORDS, dedent_note, iter_source_lines, name_to_code
from plantuml.state.model import (
    Direction,
    Region,
    StateDiagram,
    StateElement,
    StateNote,
    StateType,
    Transition,
)

log = logging.getLogger(__name__)

TOP_SCOPE = "__top__"


# ═══════════════════════════════════════════════════════════
# Pattern catalog
# ═══════════════════════════════════════════════════════════

# plain ident, ident[H], ident[H*], [*], [H], [H*], ==bar==
_ENT = r"([\w.:]+\[H\*?\]|\[\*\]|\[H\*?\]|==+[\w.:]+==+|[\w.:]+)"
_ENT_DECO = _ENT + r"(?:\s*(<<[^>]+>>))?(?:\s*(#\w+))?"

_ARROW_STYLE_WORD = r"(?:#\w+|(?i:dotted|dashed|plain|bold|hidden|norank)|thickness=\d+)"
_ARROW_STYLE = rf"{_ARROW_STYLE_WORD}(?:,{_ARROW_STYLE_WORD})*"
_DIR = r"(?i:left|right|up|down|le?|ri?|up?|do?)"

_NAME_FORMS = (
    r'(?:"([^"]+)"\s+(?i:as)\s+([\w.]+)'   # "Display" as Code
    r'|([\w.]+)\s+(?i:as)\s+"([^"]+)"'     # Code as "Display"
    r'|"([^"]+)"'                          # "Display"
    r"|([\w.]+))"                          # Code
)
_STEREO = r"(?:\s*(<<[^>]+>>))?"
_BG_COLOR = r"(?:\s*(#\w+))?"
_LINE_COLOR = r"(?:\s*(##(?:\[(?i:dotted|dashed|bold)\])?\w*))?"

RE_COMPOSITE_STATE = re.compile(
    rf"^(?i:state)\s+{_NAME_FORMS}{_STEREO}{_BG_COLOR}{_LINE_COLOR}\s*(?:\{{|\b(?i:begin))\s*$"
)
RE_STATE_DECL = re.compile(
    rf"^(?i:state)\s+{_NAME_FORMS}{_STEREO}{_BG_COLOR}{_LINE_COLOR}(?:\s*:\s*(.*))?$"
)
RE_END_STATE = re.compile(r"^(?:(?i:end\s?state)|\})$")
RE_FRAME_START = re.compile(rf"^(?i:frame)\s+{_NAME_FORMS}{_STEREO}{_BG_COLOR}\s*\{{\s*$")

RE_LINK_FORWARD = re.compile(
    rf"^{_ENT_DECO}\s*"
    r"(x)?(-+)"
    rf"(?:\[({_ARROW_STYLE})\])?({_DIR})?(?:\[({_ARROW_STYLE})\])?"
    r"(-*)>"
    r"\s*(o(?=\s))?"
    rf"\s*{_ENT_DECO}"
    r"(?:\s*:\s*(.+))?$"
)
RE_LINK_REVERSE = re.compile(
    rf"^{_ENT_DECO}\s*"
    r"(o(?=\s))?\s*<(-*)"
    rf"(?:\[({_ARROW_STYLE})\])?({_DIR})?(?:\[({_ARROW_STYLE})\])?"
    r"(-+)(x)?"
    rf"\s*{_ENT_DECO}"
    r"(?:\s*:\s*(.+))?$"
)

RE_ADD_FIELD = re.compile(r'^(?:([\w.]+)|"([^"]+)")\s*:\s*(.*)$')
RE_CONCURRENT = re.compile(r"^(--+|\|\|+)$")
RE_DIRECTION_LTR = re.compile(r"^(?i:left\s+to\s+right\s+direction)$")
RE_DIRECTION_TTB = re.compile(r"^(?i:top\s+to\s+bottom\s+direction)$")
RE_HIDE_EMPTY = re.compile(r"^(?i:hide\s+empty\s+description)$")
RE_HIDE_SHOW = re.compile(r"^(?i:hide|show)\s")
RE_TITLE = re.compile(r"^(?i:title)\s+(.+)$")

_NOTE_TARGET = r'(?:([\w.]+)|"([^"]+)")'
RE_NOTE_SINGLE = re.compile(
    rf"^(?i:note)\s+(?i:(left|right|top|bottom))\s+(?i:of)\s+{_NOTE_TARGET}\s*(?:(#\w+)\s*)?:\s*(.+)$"
)
RE_NOTE_MULTI_START = re.compile(
    rf"^(?i:note)\s+(?i:(left|right|top|bottom))\s+(?i:of)\s+{_NOTE_TARGET}\s*(?:(#\w+)\s*)?$"
)
RE_NOTE_FLOATING = re.compile(r'^(?i:note)\s+"([^"]+)"\s+(?i:as)\s+([\w.]+)(?:\s*(#\w+))?$')
RE_NOTE_ON_LINK = re.compile(
    r"^(?i:note)\s+(?:(?i:(left|right|top|bottom))\s+)?(?i:on\s+link)\s*(?:(#\w+)\s*)?:\s*(.+)$"
)
RE_NOTE_ON_LINK_MULTI_START = re.compile(
    r"^(?i:note)\s+(?:(?i:(left|right|top|bottom))\s+)?(?i:on\s+link)\s*(?:(#\w+))?$"
)
RE_END_NOTE = re.compile(r"^(?i:end\s*note)$")

RE_HISTORY = re.compile(r"^\[(?i:H)\]$")
RE_DEEP_HISTORY = re.compile(r"^\[(?i:H)\*\]$")
RE_OWNED_HISTORY = re.compile(r"^([\w.:]+)\[(?i:H)(\*?)\]$")
RE_SYNCHRO_BAR = re.compile(r"^==+(.+?)==+$")

_PSEUDO_STEREOTYPES: Dict[str, str] = {
    "choice": StateType.CHOICE,
    "fork": StateType.FORK_JOIN,
    "join": StateType.FORK_JOIN,
    "start": StateType.INITIAL,
    "end": StateType.FINAL,
    "history": StateType.HISTORY,
    "history*": StateType.DEEP_HISTORY,
}

_ARROW_LINE_STYLES = {
    "dashed": "dashed",
    "dotted": "dotted",
    "bold": "bold",
    "hidden": "hidden",
    "plain": "solid",
}


# ═══════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════

def _strip_stereotype(stereo: str) -> str:
    return stereo.strip()[2:-2].strip()


def type_from_stereotype(stereo: Optional[str]) -> Optional[str]:
    """Map ``<<choice>>``, ``<<fork>>`` ... to a pseudostate type, else None."""
    if not stereo:
        return None
    return _PSEUDO_STEREOTYPES.get(_strip_stereotype(stereo).lower())


def parse_arrow_style(text: Optional[str]) -> Dict[str, Optional[str]]:
    """Parse the inside of ``-[#red,dashed]->`` into line style and colour."""
    result: Dict[str, Optional[str]] = {"line_style": None, "color": None}
    if not text:
        return result
    for part in text.split(","):
        part = part.strip()
        if part.startswith("#"):
            result["color"] = part
        elif part.lower() in _ARROW_LINE_STYLES:
            result["line_style"] = _ARROW_LINE_STYLES[part.lower()]
    return result


def parse_line_color(raw: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split ``##[dashed]red`` into ``("red", "dashed")``."""
    if not raw:
        return None, None
    s = raw[2:] if raw.startswith("##") else raw
    style = None
    m = re.match(r"^\[(\w+)\]", s)
    if m:
        style = m.group(1).lower()
        s = s[m.end():]
    return (s or None), style


def _name_and_code(m: re.Match) -> Tuple[str, str]:
    """Resolve the four name forms of :data:`_NAME_FORMS` to (code, display)."""
    if m.group(1) and m.group(2):
        return m.group(2), m.group(1)
    if m.group(3) and m.group(4):
        return m.group(3), m.group(4)
    if m.group(5):
        return name_to_code(m.group(5)), m.group(5)
    return m.group(6), m.group(6)


# ═══════════════════════════════════════════════════════════
# Parser
# ═══════════════════════════════════════════════════════════

NORMAL = "normal"
MULTILINE_NOTE = "multiline_note"


class StateParser:
    """Stateful single-use parser; call :meth:`parse` once per source."""

    def __init__(self) -> None:
        self.diagram = StateDiagram()
        self.state = NORMAL
        self.stack: List[str] = []
        self.buffer: List[str] = []
        self.note_target: Dict[str, Any] = {}

        self._recognizers = [
            self._parse_title,
            self._parse_direction,
            self._parse_hide_empty,
            self._parse_composite_start,
            self._parse_composite_end,
            self._parse_frame_start,
            self._parse_concurrent_separator,
            self._parse_state_declaration,
            self._parse_note_single,
            self._parse_note_floating,
            self._parse_note_on_link,
            self._parse_note_on_link_start,
            self._parse_note_start,
            self._parse_link_forward,
            self._parse_link_reverse,
            self._parse_add_field,
        ]

    def parse(self, text: str) -> StateDiagram:
        for line, raw in iter_source_lines(text):
            if self.state == MULTILINE_NOTE:
                if RE_END_NOTE.match(line):
                    self._finish_note()
                else:
                    self.buffer.append(raw)
                continue
            if not line:
                continue
            if RE_HIDE_SHOW.match(line) and not RE_HIDE_EMPTY.match(line):
                continue
            if not any(recognize(line) for recognize in self._recognizers):
                log.debug("state: ignored line %r", line)
        if self.state == MULTILINE_NOTE:
            log.debug("state: unterminated note dropped")
        return self.diagram

    # ── scope ──────────────────────────────────────────────

    def _parent(self) -> Optional[StateElement]:
        if not self.stack:
            return None
        return self.diagram.elements[self.stack[-1]]

    def _scope_code(self) -> str:
        parent = self._parent()
        if parent is None:
            return TOP_SCOPE
        if parent.regions:
            return f"{parent.code}_r{len(parent.regions) - 1}"
        return parent.code

    def _current_transitions(self) -> List[Transition]:
        parent = self._parent()
        if parent is None:
            return self.diagram.transitions
        if parent.regions:
            return parent.regions[-1].transitions
        return parent.child_transitions

    def _register_child(self, code: str) -> None:
        parent = self._parent()
        # an open composite never becomes a child of itself or its descendants
        if parent is None or code in self.stack:
            return
        self._adopt(parent, code)

    def _adopt(self, parent: StateElement, code: str) -> None:
        el = self.diagram.elements.get(code)
        if el is None:
            return
        if el.parent_code is None:
            el.parent_code = parent.code
        elif el.parent_code != parent.code:
            return
        members = parent.regions[-1].elements if parent.regions else parent.children
        if code not in members:
            members.append(code)

    def _push_composite(self, code: str) -> None:
        self.stack.append(code)

    # ── entity resolution ──────────────────────────────────

    def _owned_pseudo(self, prefix: str, display: str, type_: str, owner: str) -> str:
        code = f"__{prefix}_{owner}__"
        self.diagram.get_or_create(code, display, type_)
        self._adopt(self.diagram.get_or_create(owner, owner, StateType.STATE), code)
        return code

    def _resolve_entity(self, raw: str, is_source: bool) -> str:
        """Map a transition endpoint token to an element code, creating it."""
        token = raw.strip()

        if token == "[*]":
            if is_source:
                code = f"__initial_{self._scope_code()}__"
                self.diagram.get_or_create(code, "[*]", StateType.INITIAL)
            else:
                code = f"__final_{self._scope_code()}__"
                self.diagram.get_or_create(code, "[*]", StateType.FINAL)
            self._register_child(code)
            return code

        if RE_HISTORY.match(token):
            code = f"__history_{self._scope_code()}__"
            self.diagram.get_or_create(code, "H", StateType.HISTORY)
            self._register_child(code)
            return code

        if RE_DEEP_HISTORY.match(token):
            code = f"__deephistory_{self._scope_code()}__"
            self.diagram.get_or_create(code, "H*", StateType.DEEP_HISTORY)
            self._register_child(code)
            return code

        m = RE_OWNED_HISTORY.match(token)
        if m:
            if m.group(2):
                return self._owned_pseudo("deephistory", "H*", StateType.DEEP_HISTORY, m.group(1))
            return self._owned_pseudo("history", "H", StateType.HISTORY, m.group(1))

        m = RE_SYNCHRO_BAR.match(token)
        if m:
            code = m.group(1)
            self.diagram.get_or_create(code, code, StateType.SYNCHRO_BAR)
            self._register_child(code)
            return code

        self.diagram.get_or_create(token, token, StateType.STATE)
        self._register_child(token)
        return token

    def _decorate(
        self,
        el: StateElement,
        stereotype: Optional[str],
        color: Optional[str],
        line_color: Optional[str],
    ) -> None:
        if color:
            el.color = color
        if line_color:
            lc, ls = parse_line_color(line_color)
            if lc:
                el.line_color = lc
            if ls:
                el.line_style = ls
        if stereotype and type_from_stereotype(stereotype) is None:
            text = _strip_stereotype(stereotype)
            if text not in el.stereotypes:
                el.stereotypes.append(text)

    # ── simple directives ──────────────────────────────────

    def _parse_title(self, line: str) -> bool:
        m = RE_TITLE.match(line)
        if m is None:
            return False
        self.diagram.title = m.group(1).strip()
        return True

    def _parse_direction(self, line: str) -> bool:
        if RE_DIRECTION_LTR.match(line):
            self.diagram.direction = Direction.LEFT_TO_RIGHT
            return True
        if RE_DIRECTION_TTB.match(line):
            self.diagram.direction = Direction.TOP_TO_BOTTOM
            return True
        return False

    def _parse_hide_empty(self, line: str) -> bool:
        if RE_HIDE_EMPTY.match(line):
            self.diagram.hide_empty_description = True
            return True
        return False

    # ── states and composites ──────────────────────────────

    def _parse_composite_start(self, line: str) -> bool:
        m = RE_COMPOSITE_STATE.match(line)
        if m is None:
            return False
        code, display = _name_and_code(m)
        stereotype = m.group(7)
        el = self.diagram.get_or_create(
            code, display, type_from_stereotype(stereotype) or StateType.STATE
        )
        self._decorate(el, stereotype, m.group(8), m.group(9))
        self._register_child(code)
        self._push_composite(code)
        return True

    def _parse_composite_end(self, line: str) -> bool:
        if not RE_END_STATE.match(line):
            return False
        if not self.stack:
            log.debug("state: closer without open composite ignored")
            return True
        self.stack.pop()
        return True

    def _parse_frame_start(self, line: str) -> bool:
        m = RE_FRAME_START.match(line)
        if m is None:
            return False
        code, display = _name_and_code(m)
        el = self.diagram.get_or_create(code, display, StateType.STATE)
        self._decorate(el, None, m.group(8), None)
        self._register_child(code)
        self._push_composite(code)
        return True

    def _parse_concurrent_separator(self, line: str) -> bool:
        m = RE_CONCURRENT.match(line)
        if m is None:
            return False
        parent = self._parent()
        if parent is None:
            return False
        separator = m.group(1)[0]
        if not parent.regions:
            # previous direct children move into region 0
            parent.regions.append(Region(
                separator=separator,
                elements=list(parent.children),
                transitions=list(parent.child_transitions),
            ))
            parent.children = []
            parent.child_transitions = []
        parent.regions.append(Region(separator=separator))
        return True

    def _parse_state_declaration(self, line: str) -> bool:
        m = RE_STATE_DECL.match(line)
        if m is None:
            return False
        code, display = _name_and_code(m)
        stereotype = m.group(7)
        el = self.diagram.get_or_create(
            code, display, type_from_stereotype(stereotype) or StateType.STATE
        )
        self._decorate(el, stereotype, m.group(8), m.group(9))
        if m.group(10):
            el.descriptions.append(m.group(10).strip())
        self._register_child(code)
        return True

    def _parse_add_field(self, line: str) -> bool:
        if re.match(r"^(?i:state|note)\s+", line):
            return False
        m = RE_ADD_FIELD.match(line)
        if m is None:
            return False
        code = m.group(1) or name_to_code(m.group(2))
        el = self.diagram.get_or_create(code, m.group(2) or code, StateType.STATE)
        el.descriptions.append(m.group(3).strip())
        self._register_child(code)
        return True

    # ── notes ──────────────────────────────────────────────

    def _parse_note_single(self, line: str) -> bool:
        m = RE_NOTE_SINGLE.match(line)
        if m is None:
            return False
        self.diagram.notes.append(StateNote(
            position=m.group(1).lower(),
            text=m.group(5).strip(),
            entity_code=m.group(2) or name_to_code(m.group(3)),
            color=m.group(4),
        ))
        return True

    def _parse_note_floating(self, line: str) -> bool:
        m = RE_NOTE_FLOATING.match(line)
        if m is None:
            return False
        self.diagram.notes.append(StateNote(
            text=m.group(1), alias=m.group(2), color=m.group(3),
        ))
        return True

    def _last_link_index(self) -> Optional[int]:
        if not self.diagram.transitions:
            return None
        return len(self.diagram.transitions) - 1

    def _parse_note_on_link(self, line: str) -> bool:
        m = RE_NOTE_ON_LINK.match(line)
        if m is None:
            return False
        self.diagram.notes.append(StateNote(
            position=(m.group(1) or "right").lower(),
            text=m.group(3).strip(),
            color=m.group(2),
            link_index=self._last_link_index(),
        ))
        return True

    def _parse_note_on_link_start(self, line: str) -> bool:
        m = RE_NOTE_ON_LINK_MULTI_START.match(line)
        if m is None:
            return False
        self._open_note(
            position=(m.group(1) or "right").lower(),
            color=m.group(2),
            link_index=self._last_link_index(),
        )
        return True

    def _parse_note_start(self, line: str) -> bool:
        m = RE_NOTE_MULTI_START.match(line)
        if m is None:
            return False
        self._open_note(
            position=m.group(1).lower(),
            color=m.group(4),
            entity_code=m.group(2) or name_to_code(m.group(3)),
        )
        return True

    def _open_note(self, **target: Any) -> None:
        self.note_target = target
        self.buffer = []
        self.state = MULTILINE_NOTE

    def _finish_note(self) -> None:
        self.diagram.notes.append(StateNote(text=dedent_note(self.buffer), **self.note_target))
        self.note_target = {}
        self.buffer = []
        self.state = NORMAL

    # ── transitions ────────────────────────────────────────

    def _add_transition(
        self,
        source_raw: str, source_stereo: Optional[str], source_color: Optional[str],
        target_raw: str, target_stereo: Optional[str], target_color: Optional[str],
        styles: Tuple[Optional[str], Optional[str]],
        direction: Optional[str],
        length: int,
        cross_start: bool,
        circle_end: bool,
        label: Optional[str],
    ) -> None:
        source = self._resolve_entity(source_raw, True)
        target = self._resolve_entity(target_raw, False)
        self._apply_inline(source, source_stereo, source_color)
        self._apply_inline(target, target_stereo, target_color)

        first, second = (parse_arrow_style(s) for s in styles)
        transition = Transition(
            source=source,
            target=target,
            label=label.strip() if label else None,
            direction=DIRECTION_WORDS.get(direction.lower()) if direction else None,
            line_style=first["line_style"] or second["line_style"],
            color=first["color"] or second["color"],
            cross_start=cross_start,
            circle_end=circle_end,
            length=length,
        )
        scoped = self._current_transitions()
        scoped.append(transition)
        if scoped is not self.diagram.transitions:
            self.diagram.transitions.append(transition)

    def _apply_inline(self, code: str, stereo: Optional[str], color: Optional[str]) -> None:
        el = self.diagram.elements.get(code)
        if el is None:
            return
        if stereo:
            special = type_from_stereotype(stereo)
            if special:
                el.type = special
            elif _strip_stereotype(stereo) not in el.stereotypes:
                el.stereotypes.append(_strip_stereotype(stereo))
        if color and el.color is None:
            el.color = color

    def _parse_link_forward(self, line: str) -> bool:
        m = RE_LINK_FORWARD.match(line)
        if m is None:
            return False
        self._add_transition(
            m.group(1), m.group(2), m.group(3),
            m.group(11), m.group(12), m.group(13),
            styles=(m.group(6), m.group(8)),
            direction=m.group(7),
            length=len(m.group(5) or "") + len(m.group(9) or ""),
            cross_start=m.group(4) is not None,
            circle_end=m.group(10) is not None,
            label=m.group(14),
        )
        return True

    def _parse_link_reverse(self, line: str) -> bool:
        m = RE_LINK_REVERSE.match(line)
        if m is None:
            return False
        # the right-hand entity is the source
        self._add_transition(
            m.group(11), m.group(12), m.group(13),
            m.group(1), m.group(2), m.group(3),
            styles=(m.group(8), m.group(6)),
            direction=m.group(7),
            length=len(m.group(5) or "") + len(m.group(9) or ""),
            cross_start=m.group(10) is not None,
            circle_end=m.group(4) is not None,
            label=m.group(14),
        )
        return True


def parse_state_diagram(text: str) -> StateDiagram:
    """Parse PlantUML state-diagram source into a :class:`StateDiagram`."""
    return StateParser().parse(text)
