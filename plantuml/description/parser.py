"""
plantuml/description/parser.py

Line-oriented parser shared by the use case and component/deployment
dialects.

:class:`DescriptionParser` knows containers, ``together`` groups, notes,
links and the entity shorthands (``:Actor:``, ``(Use case)``,
``[Component]``, ``() Interface``).  Subclasses supply the declaration
keyword table and the element type given to bare identifiers, and may
append recognizers of their own.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from plantuml.common import (
    DIRECTION_WORDS,
    LEFT_DECOR_MAP,
    LEFT_DECOR_RE,
    RIGHT_DECOR_MAP,
    RIGHT_DECOR_RE,
    Decor,
    dedent_note,
    iter_source_lines,
    line_style_of,
    name_to_code,
    parse_bracket_style,
)
from plantuml.description.model import (
    CONTAINER_KEYWORD_MAP,
    Container,
    DescriptionDiagram,
    DiagramDirection,
    Element,
    ElementType,
    Note,
    NotePosition,
    Relationship,
)

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════
# Pattern catalog
# ═══════════════════════════════════════════════════════════

def keyword_pattern(keywords) -> str:
    """Regex alternation of *keywords*, longest first."""
    return "|".join(re.escape(k) for k in sorted(keywords, key=len, reverse=True))


_IDENT = r"[\w][\w.]*"
_COMPONENT_REF = r"\[[^\[\]]+\]"
_ACTOR_REF = r":[^:]+:/?"
_USECASE_REF = r"\([^)]+\)/?"
_INTERFACE_REF = r'\(\)\s*(?:"[^"]+"|[\w][\w.]*)'
ANY_IDENT = (
    rf'(?:"[^"]+"|{_COMPONENT_REF}|{_ACTOR_REF}|{_INTERFACE_REF}|{_USECASE_REF}|{_IDENT})'
)
_BODY = r"(?:-+|\.+|=+|~+)"
_COLOR = r"#[\w]+(?:[-\\|/]\w+)?"

RE_TITLE = re.compile(r"^(?i:title)\s+(.+)$")
RE_LTR = re.compile(r"^(?i:left\s+to\s+right\s+direction)\s*$")
RE_TTB = re.compile(r"^(?i:top\s+to\s+bottom\s+direction)\s*$")
RE_TOGETHER = re.compile(r"^(?i:together)\s*\{\s*$")
RE_BLOCK_END = re.compile(r"^\}\s*$")
RE_HIDE_SHOW = re.compile(r"^(?i:hide|show|remove)\s+.+$")
RE_CONTAINER = re.compile(
    rf"^(?i:({keyword_pattern(CONTAINER_KEYWORD_MAP)}))\s+(.+?)\s*\{{\s*$"
)

RE_NAME_QUOTED_AS = re.compile(r'^"([^"]+)"\s+(?i:as)\s+([\w.]+)')
RE_NAME_AS_QUOTED = re.compile(r'^([\w.]+)\s+(?i:as)\s+"([^"]+)"')
RE_NAME_BRACKET = re.compile(r"^\[([^\]]+)\](?:\s+(?i:as)\s+([\w.]+))?")
RE_NAME_PAREN = re.compile(r"^\(([^)]+)\)(?:\s+(?i:as)\s+([\w.]+))?")
RE_NAME_COLON = re.compile(r"^:([^:]+):(?:\s+(?i:as)\s+([\w.]+))?")
RE_NAME_AS_NAME = re.compile(r"^([\w.]+)\s+(?i:as)\s+([\w.]+)")
RE_NAME_QUOTED = re.compile(r'^"([^"]+)"')
RE_NAME_PLAIN = re.compile(r"^([\w.]+)")
RE_STEREO = re.compile(r"<<\s*([^>]+?)\s*>>")
RE_LINE_COLOR = re.compile(r"##(?:\[\w+\])?(\w+)")
RE_FILL_COLOR = re.compile(r"(?<!#)#(\w+(?:[-\\|/]\w+)?)")
RE_DESCRIPTION = re.compile(r"^\[([^\]]*)\]")

RE_ACTOR_SHORTHAND = re.compile(
    rf"^:([^:]+):(/)?\s*(?:(?i:as)\s+([\w.]+))?\s*(<<[^>]+>>)?\s*({_COLOR})?\s*$"
)
RE_USECASE_SHORTHAND = re.compile(
    rf"^\(([^)]+)\)(/)?\s*(?:(?i:as)\s+([\w.]+))?\s*(<<[^>]+>>)?\s*({_COLOR})?\s*$"
)

RE_LINK = re.compile(
    rf"^({ANY_IDENT})"
    r'(?:\s+"([^"]+)")?'
    r"\s*"
    rf"({LEFT_DECOR_RE})?"
    rf"({_BODY})"
    r"(\[[^\]]*\])?"
    rf"(?:(left|right|up|down|le|ri|do|l|r|u|d)(\[[^\]]*\])?({_BODY}))?"
    rf"({RIGHT_DECOR_RE})?"
    r"\s*"
    r'(?:"([^"]+)"\s*)?'
    rf"({ANY_IDENT})"
    r"(?:\s*:\s*(.+))?$",
    re.IGNORECASE,
)

RE_REF_COMPONENT = re.compile(r"^\[([^\[\]]+)\]$")
RE_REF_INTERFACE = re.compile(r'^\(\)\s*(?:"([^"]+)"|([\w][\w.]*))$')
RE_REF_ACTOR = re.compile(r"^:([^:]+):(/)?$")
RE_REF_USECASE = re.compile(r"^\(([^)]+)\)(/)?$")
RE_REF_QUOTED = re.compile(r'^"([^"]+)"$')

_NOTE_POS = r"(left|right|top|bottom)"
RE_NOTE_OF = re.compile(
    rf"^(?i:note)\s+(?i:{_NOTE_POS})\s+(?i:of)\s+({ANY_IDENT})\s*({_COLOR})?\s*:\s*(.*)$"
)
RE_NOTE_OF_START = re.compile(
    rf"^(?i:note)\s+(?i:{_NOTE_POS})\s+(?i:of)\s+({ANY_IDENT})\s*({_COLOR})?\s*$"
)
RE_NOTE_FLOATING = re.compile(
    rf'^(?i:note)\s+"([^"]*)"\s+(?i:as)\s+(\w+)\s*({_COLOR})?\s*$'
)
RE_NOTE_FLOATING_START = re.compile(rf"^(?i:note)\s+(?i:as)\s+(\w+)\s*({_COLOR})?\s*$")
RE_NOTE_LINK = re.compile(
    rf"^(?i:note)\s+(?:(?i:{_NOTE_POS})\s+)?(?i:on\s+link)\s*({_COLOR})?\s*:\s*(.*)$"
)
RE_NOTE_LINK_START = re.compile(
    rf"^(?i:note)\s+(?:(?i:{_NOTE_POS})\s+)?(?i:on\s+link)\s*({_COLOR})?\s*$"
)
RE_END_NOTE = re.compile(r"^(?i:end\s*note)\s*$")


NORMAL = "normal"
MULTILINE_NOTE = "multiline_note"


class DescriptionParser:
    """Stateful single-use parser; call :meth:`parse` once per source.

    Attributes:
        DIALECT: Name used in log messages.
        DEFAULT_TYPE: Element type for bare identifiers and quoted names.
        ELEMENT_KEYWORDS: Declaration keyword to :class:`ElementType`.
    """

    DIALECT = "description"
    DEFAULT_TYPE = ElementType.COMPONENT
    ELEMENT_KEYWORDS: Dict[str, str] = {}

    def __init__(self) -> None:
        self.diagram = DescriptionDiagram()
        self.state = NORMAL
        # open brace contexts: ("container", Container) or ("together", [codes])
        self.blocks: List[Tuple[str, Any]] = []
        self.buffer: List[str] = []
        self.note: Optional[Note] = None
        self.note_aliases: set = set()
        self._declaration_re = re.compile(
            rf"^(?i:({keyword_pattern(self.ELEMENT_KEYWORDS)}))\s+(.+)$"
        )

        self._recognizers: List[Callable[[str], bool]] = [
            self._parse_title,
            self._parse_direction,
            self._parse_together,
            self._parse_container,
            self._parse_block_end,
            self._parse_hide_show,
            self._parse_declaration,
            self._parse_note_of,
            self._parse_floating_note,
            self._parse_note_on_link,
            self._parse_note_on_link_start,
            self._parse_note_of_start,
            self._parse_floating_note_start,
            self._parse_link,
            self._parse_actor_shorthand,
            self._parse_usecase_shorthand,
        ]

    def parse(self, text: str) -> DescriptionDiagram:
        for line, raw in iter_source_lines(text):
            if self.state == MULTILINE_NOTE:
                if RE_END_NOTE.match(line):
                    self._finish_note()
                else:
                    self.buffer.append(raw)
                continue
            if self.state != NORMAL:
                self._multiline_line(line, raw)
                continue
            if not line:
                continue
            if not any(recognize(line) for recognize in self._recognizers):
                log.debug("%s: ignored line %r", self.DIALECT, line)
        if self.state != NORMAL:
            log.debug("%s: unterminated %s dropped", self.DIALECT, self.state)
        return self.diagram

    def _multiline_line(self, line: str, raw: str) -> None:
        """Hook for subclass multiline states."""
        self.state = NORMAL

    # ── helpers ────────────────────────────────────────────

    def _container(self) -> Optional[Container]:
        for kind, block in reversed(self.blocks):
            if kind == "container":
                return block
        return None

    def _place(self, element: Element) -> None:
        container = self._container()
        if container is not None and element.container_path is None:
            element.container_path = container.path
            container.elements.append(element.code)
        for kind, block in reversed(self.blocks):
            if kind == "together":
                if element.code not in block:
                    block.append(element.code)
                break

    def _declare(self, element: Element) -> Element:
        """Register a declared element, upgrading an implicit one."""
        existing = self.diagram.elements.get(element.code)
        if existing is None:
            self.diagram.elements[element.code] = element
            existing = element
        else:
            if existing.type == self.DEFAULT_TYPE:
                existing.type = element.type
            if existing.display_name == existing.code:
                existing.display_name = element.display_name
            for stereo in element.stereotypes:
                if stereo not in existing.stereotypes:
                    existing.stereotypes.append(stereo)
            existing.color = element.color or existing.color
            existing.line_color = element.line_color or existing.line_color
        self._place(existing)
        return existing

    def _implicit(self, code: str, display_name: str, type: str) -> str:
        if code in self.note_aliases or code in self.diagram.elements:
            return code
        if self.diagram.find_container(code) is not None:
            return code
        element = Element(code=code, display_name=display_name, type=type)
        self.diagram.elements[code] = element
        self._place(element)
        return code

    def resolve(self, raw: str, create: bool = True) -> str:
        """Return the code named by an entity reference, creating it if needed.

        Handles ``[Component]``, ``() Interface``, ``() "Interface"``,
        ``:Actor:``, ``:Actor:/``, ``(Use case)``, ``(Use case)/``,
        ``"Quoted name"`` and bare identifiers.
        """
        raw = raw.strip()
        found = self._match_ref(raw)
        if found is None:
            return raw
        code, display, type = found
        if create:
            self._implicit(code, display, type)
        return code

    def _match_ref(self, raw: str) -> Optional[Tuple[str, str, str]]:
        m = RE_REF_COMPONENT.match(raw)
        if m:
            display = m.group(1).strip().strip('"')
            return name_to_code(display), display, ElementType.COMPONENT
        m = RE_REF_INTERFACE.match(raw)
        if m:
            if m.group(1):
                return name_to_code(m.group(1)), m.group(1), ElementType.INTERFACE
            return m.group(2), m.group(2), ElementType.INTERFACE
        m = RE_REF_ACTOR.match(raw)
        if m:
            display = m.group(1).strip()
            kind = ElementType.ACTOR_BUSINESS if m.group(2) else ElementType.ACTOR
            return name_to_code(display), display, kind
        m = RE_REF_USECASE.match(raw)
        if m:
            display = m.group(1).strip()
            kind = ElementType.USECASE_BUSINESS if m.group(2) else ElementType.USECASE
            return name_to_code(display), display, kind
        m = RE_REF_QUOTED.match(raw)
        if m:
            return name_to_code(m.group(1)), m.group(1), self.DEFAULT_TYPE
        return raw, raw, self.DEFAULT_TYPE

    @staticmethod
    def split_name(text: str) -> Optional[Tuple[str, str, str]]:
        """Split a declared name off *text*.

        Returns:
            ``(code, display_name, rest)`` or None when *text* does not
            start with a name.
        """
        text = text.strip()
        m = RE_NAME_QUOTED_AS.match(text)
        if m:
            return m.group(2), m.group(1), text[m.end():].strip()
        m = RE_NAME_AS_QUOTED.match(text)
        if m:
            return m.group(1), m.group(2), text[m.end():].strip()
        for pattern in (RE_NAME_BRACKET, RE_NAME_PAREN, RE_NAME_COLON):
            m = pattern.match(text)
            if m:
                display = m.group(1).strip().strip('"')
                return m.group(2) or name_to_code(display), display, text[m.end():].strip()
        m = RE_NAME_AS_NAME.match(text)
        if m:
            return m.group(2), m.group(1), text[m.end():].strip()
        m = RE_NAME_QUOTED.match(text)
        if m:
            return name_to_code(m.group(1)), m.group(1), text[m.end():].strip()
        m = RE_NAME_PLAIN.match(text)
        if m:
            return m.group(1), m.group(1), text[m.end():].strip()
        return None

    @staticmethod
    def apply_decorations(target: Any, rest: str) -> str:
        """Move stereotypes and colours from *rest* onto *target*.

        Returns what is left of *rest*.
        """
        target.stereotypes.extend(RE_STEREO.findall(rest))
        rest = RE_STEREO.sub("", rest)
        m = RE_LINE_COLOR.search(rest)
        if m and hasattr(target, "line_color"):
            target.line_color = "#" + m.group(1)
            rest = rest[:m.start()] + rest[m.end():]
        m = RE_FILL_COLOR.search(rest)
        if m:
            target.color = "#" + m.group(1)
            rest = rest[:m.start()] + rest[m.end():]
        return rest.strip()

    # ── recognizers ────────────────────────────────────────

    def _parse_title(self, line: str) -> bool:
        m = RE_TITLE.match(line)
        if not m:
            return False
        self.diagram.title = m.group(1).strip()
        return True

    def _parse_direction(self, line: str) -> bool:
        if RE_LTR.match(line):
            self.diagram.direction = DiagramDirection.LEFT_TO_RIGHT
            return True
        if RE_TTB.match(line):
            self.diagram.direction = DiagramDirection.TOP_TO_BOTTOM
            return True
        return False

    def _parse_together(self, line: str) -> bool:
        if not RE_TOGETHER.match(line):
            return False
        self.blocks.append(("together", []))
        return True

    def _parse_container(self, line: str) -> bool:
        m = RE_CONTAINER.match(line)
        if not m:
            return False
        parsed = self.split_name(m.group(2))
        if parsed is None:
            return False
        code, name, rest = parsed
        parent = self._container()
        container = Container(
            name=name,
            code=code,
            type=CONTAINER_KEYWORD_MAP[m.group(1).lower()],
            path=f"{parent.path}.{code}" if parent else code,
        )
        self.apply_decorations(container, rest)
        if parent is not None:
            parent.sub_containers.append(container)
        else:
            self.diagram.containers.append(container)
        self.blocks.append(("container", container))
        return True

    def _parse_block_end(self, line: str) -> bool:
        if not RE_BLOCK_END.match(line):
            return False
        if not self.blocks:
            log.debug("%s: unmatched closing brace ignored", self.DIALECT)
            return True
        kind, block = self.blocks.pop()
        if kind == "together" and block:
            self.diagram.together_groups.append(block)
        return True

    def _parse_hide_show(self, line: str) -> bool:
        if not RE_HIDE_SHOW.match(line):
            return False
        log.debug("%s: %r has no effect", self.DIALECT, line)
        return True

    def _parse_declaration(self, line: str) -> bool:
        m = self._declaration_re.match(line)
        if not m:
            return False
        keyword = m.group(1).lower()
        parsed = self.split_name(m.group(2))
        if parsed is None:
            return False
        code, display, rest = parsed
        element = Element(code=code, display_name=display, type=self.ELEMENT_KEYWORDS[keyword])
        rest = self.apply_decorations(element, rest)
        described = RE_DESCRIPTION.match(rest)
        if described:
            element.display_name = described.group(1).strip() or element.display_name
        self._declare(element)
        return True

    def _parse_actor_shorthand(self, line: str) -> bool:
        m = RE_ACTOR_SHORTHAND.match(line)
        if not m:
            return False
        display = m.group(1).strip()
        kind = ElementType.ACTOR_BUSINESS if m.group(2) else ElementType.ACTOR
        self._shorthand(m.group(3) or name_to_code(display), display, kind, m.group(4), m.group(5))
        return True

    def _parse_usecase_shorthand(self, line: str) -> bool:
        m = RE_USECASE_SHORTHAND.match(line)
        if not m:
            return False
        display = m.group(1).strip()
        kind = ElementType.USECASE_BUSINESS if m.group(2) else ElementType.USECASE
        self._shorthand(m.group(3) or name_to_code(display), display, kind, m.group(4), m.group(5))
        return True

    def _shorthand(self, code: str, display: str, type: str,
                   stereo: Optional[str], color: Optional[str]) -> None:
        element = Element(code=code, display_name=display, type=type, color=color)
        if stereo:
            element.stereotypes.extend(RE_STEREO.findall(stereo))
        self._declare(element)

    def _parse_link(self, line: str) -> bool:
        m = RE_LINK.match(line)
        if not m:
            return False
        (left, left_label, left_decor, body1, style1, direction, style2, body2,
         right_decor, right_label, right, label) = m.groups()
        link = Relationship(
            source=self.resolve(left),
            target=self.resolve(right),
            left_decor=LEFT_DECOR_MAP.get(left_decor or "", Decor.NONE),
            right_decor=RIGHT_DECOR_MAP.get(right_decor or "", Decor.NONE),
            line_style=line_style_of(body1 + (body2 or "")),
            label=label.strip() if label else None,
            left_label=left_label,
            right_label=right_label,
            direction=DIRECTION_WORDS.get(direction.lower()) if direction else None,
        )
        modifiers = parse_bracket_style((style1 or "") + (style2 or ""))
        if modifiers.get("color"):
            link.color = modifiers["color"]
        if modifiers.get("line_style"):
            link.line_style = modifiers["line_style"]
        self.diagram.add_link(link)
        return True

    # ── notes ──────────────────────────────────────────────

    def _parse_note_of(self, line: str) -> bool:
        m = RE_NOTE_OF.match(line)
        if not m:
            return False
        self.diagram.notes.append(Note(
            position=m.group(1).lower(), text=m.group(4).strip(),
            entity_code=self.resolve(m.group(2), create=False), color=m.group(3),
        ))
        return True

    def _parse_note_of_start(self, line: str) -> bool:
        m = RE_NOTE_OF_START.match(line)
        if not m:
            return False
        self._start_note(Note(
            position=m.group(1).lower(), entity_code=self.resolve(m.group(2), create=False),
            color=m.group(3),
        ))
        return True

    def _parse_floating_note(self, line: str) -> bool:
        m = RE_NOTE_FLOATING.match(line)
        if not m:
            return False
        self.note_aliases.add(m.group(2))
        self.diagram.notes.append(Note(text=m.group(1), alias=m.group(2), color=m.group(3)))
        return True

    def _parse_floating_note_start(self, line: str) -> bool:
        m = RE_NOTE_FLOATING_START.match(line)
        if not m:
            return False
        self.note_aliases.add(m.group(1))
        self._start_note(Note(alias=m.group(1), color=m.group(2)))
        return True

    def _parse_note_on_link(self, line: str) -> bool:
        m = RE_NOTE_LINK.match(line)
        if not m:
            return False
        self.diagram.notes.append(Note(
            position=(m.group(1) or NotePosition.RIGHT).lower(), text=m.group(3).strip(),
            color=m.group(2), on_link=True, link_index=self._last_link(),
        ))
        return True

    def _parse_note_on_link_start(self, line: str) -> bool:
        m = RE_NOTE_LINK_START.match(line)
        if not m:
            return False
        self._start_note(Note(
            position=(m.group(1) or NotePosition.RIGHT).lower(), color=m.group(2),
            on_link=True, link_index=self._last_link(),
        ))
        return True

    def _last_link(self) -> Optional[int]:
        return len(self.diagram.links) - 1 if self.diagram.links else None

    def _start_note(self, note: Note) -> None:
        self.note = note
        self.buffer = []
        self.state = MULTILINE_NOTE

    def _finish_note(self) -> None:
        self.note.text = dedent_note(self.buffer)
        self.diagram.notes.append(self.note)
        self.note = None
        self.buffer = []
        self.state = NORMAL
