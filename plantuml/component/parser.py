"""
plantuml/component/parser.py

Component and deployment dialect of the description parser.

Adds the full element keyword set, the ``[Component]`` and
``() Interface`` standalone shorthands, ports, and element declarations
whose label spans several lines::

    component C1 [
      first line
      second line
    ]

    node "first line
    second line" as N1
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional

from plantuml.common import name_to_code
from plantuml.description.model import DescriptionDiagram, Element, ElementType
from plantuml.description.parser import RE_STEREO, DescriptionParser, NORMAL, keyword_pattern


ELEMENT_KEYWORD_MAP: Dict[str, str] = {
    "person": ElementType.PERSON,
    "artifact": ElementType.ARTIFACT,
    "actor/": ElementType.ACTOR_BUSINESS,
    "actor": ElementType.ACTOR,
    "folder": ElementType.FOLDER,
    "card": ElementType.CARD,
    "file": ElementType.FILE,
    "package": ElementType.PACKAGE,
    "rectangle": ElementType.RECTANGLE,
    "hexagon": ElementType.HEXAGON,
    "label": ElementType.LABEL,
    "node": ElementType.NODE,
    "frame": ElementType.FRAME,
    "cloud": ElementType.CLOUD,
    "database": ElementType.DATABASE,
    "queue": ElementType.QUEUE,
    "stack": ElementType.STACK,
    "storage": ElementType.STORAGE,
    "agent": ElementType.AGENT,
    "usecase/": ElementType.USECASE_BUSINESS,
    "usecase": ElementType.USECASE,
    "component": ElementType.COMPONENT,
    "boundary": ElementType.BOUNDARY,
    "control": ElementType.CONTROL,
    "entity": ElementType.ENTITY_DESC,
    "interface": ElementType.INTERFACE,
    "circle": ElementType.INTERFACE,
    "collections": ElementType.COLLECTIONS,
    "port": ElementType.PORT,
    "portin": ElementType.PORTIN,
    "portout": ElementType.PORTOUT,
}

_KEYWORDS = keyword_pattern(ELEMENT_KEYWORD_MAP)
_COLOR = r"#\w+"

RE_COMPONENT_SHORTHAND = re.compile(
    rf"^\[([^\[\]]+)\](?:\s+(?i:as)\s+([\w.]+))?\s*(<<[^>]+>>)?\s*({_COLOR})?\s*$"
)
RE_INTERFACE_SHORTHAND = re.compile(
    r'^\(\)\s*(?:"([^"]+)"(?:\s+(?i:as)\s+([\w.]+))?|([\w.]+)(?:\s+(?i:as)\s+([\w.]+))?)'
    rf"\s*(<<[^>]+>>)?\s*({_COLOR})?\s*$"
)
RE_BRACKET_START = re.compile(
    rf"^(?i:({_KEYWORDS}))\s+([\w.]+)\s*(<<[^>]+>>)?\s*({_COLOR})?\s*\[\s*(.*)$"
)
RE_BRACKET_END = re.compile(r"^(.*?)\]\s*$")
RE_QUOTE_START = re.compile(rf'^(?i:({_KEYWORDS}))\s+"([^"]*)$')
RE_QUOTE_END = re.compile(
    rf'^(.*?)"(?:\s+(?i:as)\s+([\w.]+))?\s*(<<[^>]+>>)?\s*({_COLOR})?\s*$'
)

MULTILINE_BRACKET = "multiline_bracket"
MULTILINE_QUOTE = "multiline_quote"


class ComponentParser(DescriptionParser):

    DIALECT = "component"
    DEFAULT_TYPE = ElementType.COMPONENT
    ELEMENT_KEYWORDS = ELEMENT_KEYWORD_MAP

    def __init__(self) -> None:
        super().__init__()
        self.pending: Optional[Element] = None
        self.lines: List[str] = []
        at = self._recognizers.index(self._parse_declaration)
        self._recognizers[at:at] = [self._parse_bracket_start, self._parse_quote_start]
        self._recognizers += [self._parse_component_shorthand, self._parse_interface_shorthand]

    # ── multiline declarations ─────────────────────────────

    def _parse_bracket_start(self, line: str) -> bool:
        m = RE_BRACKET_START.match(line)
        if not m or "]" in m.group(5):
            return False
        self.pending = Element(
            code=m.group(2), type=ELEMENT_KEYWORD_MAP[m.group(1).lower()], color=m.group(4),
        )
        if m.group(3):
            self.pending.stereotypes.extend(RE_STEREO.findall(m.group(3)))
        self.lines = [m.group(5)] if m.group(5).strip() else []
        self.state = MULTILINE_BRACKET
        return True

    def _parse_quote_start(self, line: str) -> bool:
        m = RE_QUOTE_START.match(line)
        if not m:
            return False
        self.pending = Element(code="", type=ELEMENT_KEYWORD_MAP[m.group(1).lower()])
        self.lines = [m.group(2)]
        self.state = MULTILINE_QUOTE
        return True

    def _multiline_line(self, line: str, raw: str) -> None:
        end = RE_BRACKET_END if self.state == MULTILINE_BRACKET else RE_QUOTE_END
        m = end.match(line)
        if not m:
            self.lines.append(line)
            return
        if m.group(1).strip():
            self.lines.append(m.group(1).strip())
        element = self.pending
        if self.state == MULTILINE_QUOTE:
            first = next((ln for ln in self.lines if ln.strip()), "")
            element.code = m.group(2) or name_to_code(first) or f"elem{len(self.diagram.elements) + 1}"
            if m.group(3):
                element.stereotypes.extend(RE_STEREO.findall(m.group(3)))
            element.color = m.group(4)
        element.display_name = "\n".join(ln for ln in self.lines if ln.strip()) or element.code
        self.pending = None
        self.lines = []
        self.state = NORMAL
        self._declare(element)

    # ── shorthands ─────────────────────────────────────────

    def _parse_component_shorthand(self, line: str) -> bool:
        m = RE_COMPONENT_SHORTHAND.match(line)
        if not m:
            return False
        display = m.group(1).strip().strip('"')
        self._shorthand(
            m.group(2) or name_to_code(display), display, ElementType.COMPONENT,
            m.group(3), m.group(4),
        )
        return True

    def _parse_interface_shorthand(self, line: str) -> bool:
        m = RE_INTERFACE_SHORTHAND.match(line)
        if not m:
            return False
        if m.group(1):
            display, code = m.group(1), m.group(2) or name_to_code(m.group(1))
        else:
            display, code = m.group(3), m.group(4) or m.group(3)
        self._shorthand(code, display, ElementType.INTERFACE, m.group(5), m.group(6))
        return True


def parse_component_diagram(text: str) -> DescriptionDiagram:
    """Parse PlantUML component or deployment source into a :class:`DescriptionDiagram`."""
    return ComponentParser().parse(text)
