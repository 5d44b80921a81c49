"""
plantuml/classdiagram/parser.py

Line-oriented parser for PlantUML class diagrams, including the object,
map and JSON entity kinds.

Block state is a stack of open brace contexts (package, namespace,
together); entity, map and JSON bodies and multiline notes are separate
parser states because their lines have their own grammar.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from plantuml.common import (
    DIRECTION_WORDS,
    LEFT_DECOR_MAP,
    LEFT_DECOR_RE,
    RIGHT_DECOR_MAP,
    RIGHT_DECOR_RE,
    Decor,
    LineStyle,
    dedent_note,
    iter_source_lines,
    line_style_of,
    parse_bracket_style,
    unquote,
)
from plantuml.classdiagram.model import (
    ClassDiagram,
    ClassEntity,
    EntityType,
    JsonNode,
    JsonNodeType,
    MapEntry,
    Member,
    MemberType,
    Note,
    NotePosition,
    Package,
    Relationship,
    Separator,
    SeparatorStyle,
    Visibility,
)

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════
# Pattern catalog
# ═══════════════════════════════════════════════════════════

# Longest keyword first so "abstract class" wins over "abstract".
ENTITY_KEYWORDS: Dict[str, str] = {
    "abstract class": EntityType.ABSTRACT_CLASS,
    "static class": EntityType.CLASS,
    "stereotype": EntityType.STEREOTYPE_TYPE,
    "annotation": EntityType.ANNOTATION,
    "dataclass": EntityType.DATACLASS,
    "exception": EntityType.EXCEPTION,
    "interface": EntityType.INTERFACE,
    "metaclass": EntityType.METACLASS,
    "abstract": EntityType.ABSTRACT_CLASS,
    "protocol": EntityType.PROTOCOL,
    "diamond": EntityType.DIAMOND,
    "circle": EntityType.CIRCLE,
    "entity": EntityType.ENTITY,
    "object": EntityType.OBJECT,
    "record": EntityType.RECORD,
    "struct": EntityType.STRUCT,
    "class": EntityType.CLASS,
    "enum": EntityType.ENUM,
    "json": EntityType.JSON,
    "map": EntityType.MAP,
}
_KEYWORDS = "|".join(k.replace(" ", r"\s+") for k in ENTITY_KEYWORDS)

_IDENT = r"(?:\"[^\"]+\"|[\w][\w.]*)"

RE_TITLE = re.compile(r"^(?i:title)\s+(.+)$")
RE_HIDE_SHOW = re.compile(r"^(?i:(hide|show))\s+(.+)$")
RE_REMOVE = re.compile(r"^(?i:remove)\s+(.+)$")
RE_TOGETHER = re.compile(r"^(?i:together)\s*\{\s*$")
RE_PACKAGE = re.compile(
    r'^(?i:(package|namespace))\s+(?:"([^"]+)"|([^\s{#<]+))'
    r"(?:\s+(?i:as)\s+[\w.]+)?"
    r"\s*(?:<<[^>]+>>)?\s*(#\w+)?\s*(\{)?\s*$"
)
RE_BLOCK_END = re.compile(r"^\}\s*$")
RE_DIAMOND = re.compile(r"^<>\s+([\w.]+)\s*$")
RE_LOLLIPOP = re.compile(r'^\(\)\s+(?:"([^"]+)"(?:\s+(?i:as)\s+([\w.]+))?|([\w.]+))\s*$')
RE_ENTITY_HEAD = re.compile(rf"^(?i:({_KEYWORDS}))\s+(.*)$")

RE_NAME_QUOTED_AS = re.compile(r'^"([^"]+)"\s+(?i:as)\s+([\w.]+)')
RE_NAME_AS_QUOTED = re.compile(r'^([\w.]+)\s+(?i:as)\s+"([^"]+)"')
RE_NAME_AS_NAME = re.compile(r"^([\w.]+)\s+(?i:as)\s+([\w.]+)")
RE_NAME_QUOTED = re.compile(r'^"([^"]+)"')
RE_NAME_PLAIN = re.compile(r"^([\w.]+)")
RE_GENERIC = re.compile(r"^<(?!<)([^>]+)>")
RE_EXTENDS = re.compile(
    r"^(?i:extends)\s+(.+?)(?=\s+(?i:implements)\b|\s*<<|\s*#|\s*\{|\s*$)"
)
RE_IMPLEMENTS = re.compile(r"^(?i:implements)\s+(.+?)(?=\s*<<|\s*#|\s*\{|\s*$)")
RE_STEREO = re.compile(r"<<\s*([^>]+?)\s*>>")
RE_LINE_COLOR = re.compile(r"##(?:\[\w+\])?(\w+)")
RE_FILL_COLOR = re.compile(r"(?<!#)#(\w+(?:[-\\|/]\w+)?)")

RE_SEPARATOR = re.compile(r"^(--|\.\.|==|__)\s*(.*?)\s*(?:--|\.\.|==|__)?$")
RE_CLASSIFIER = re.compile(r"\{(static|classifier|abstract|field|method)\}\s*", re.IGNORECASE)
RE_VISIBILITY = re.compile(r"^([+\-#~])\s*")
RE_METHOD = re.compile(r"^(.+?)\(([^)]*)\)\s*(?::\s*(.+))?$")
RE_FIELD = re.compile(r"^(.+?)\s*:\s*(.+)$")

RE_MAP_LINK = re.compile(r"^(.+?)\s*\*-+>\s*([\w.]+)\s*$")
RE_MAP_ENTRY = re.compile(r"^(.+?)\s*=>\s*(.*)$")

RE_LINK = re.compile(
    rf"^({_IDENT})"
    r'(?:\s+"([^"]+)")?'
    r"(?:\s*\[([^\]]+)\])?"
    r"\s*"
    rf"({LEFT_DECOR_RE})?"
    r"([-.=]+)"
    r"(\[[^\]]*\])?"
    r"(?:(left|right|up|down|le|ri|do|l|r|u|d)(\[[^\]]*\])?([-.=]+))?"
    rf"({RIGHT_DECOR_RE})?"
    r"\s*"
    r'(?:"([^"]+)"\s*)?'
    r"(?:\[([^\]]+)\]\s*)?"
    rf"({_IDENT})"
    r"(?:\s*:\s*(.+))?$",
    re.IGNORECASE,
)
RE_SHORTHAND_MEMBER = re.compile(r"^([\w.]+)\s*:\s*(.+)$")

_NOTE_POS = r"(left|right|top|bottom)"
RE_NOTE_OF = re.compile(
    rf"^(?i:note)\s+(?i:{_NOTE_POS})\s+(?i:of)\s+({_IDENT})\s*(#\w+)?\s*:\s*(.*)$"
)
RE_NOTE_OF_START = re.compile(
    rf"^(?i:note)\s+(?i:{_NOTE_POS})\s+(?i:of)\s+({_IDENT})\s*(#\w+)?\s*$"
)
RE_NOTE_FLOATING = re.compile(r'^(?i:note)\s+"([^"]*)"\s+(?i:as)\s+(\w+)\s*(#\w+)?\s*$')
RE_NOTE_FLOATING_START = re.compile(r"^(?i:note)\s+(?i:as)\s+(\w+)\s*(#\w+)?\s*$")
RE_NOTE_LINK = re.compile(rf"^(?i:note)\s+(?:(?i:{_NOTE_POS})\s+)?(?i:on\s+link)\s*(#\w+)?\s*:\s*(.*)$")
RE_NOTE_LINK_START = re.compile(rf"^(?i:note)\s+(?:(?i:{_NOTE_POS})\s+)?(?i:on\s+link)\s*(#\w+)?\s*$")
RE_END_NOTE = re.compile(r"^(?i:end\s*note)\s*$")

_VISIBILITY = {
    "+": Visibility.PUBLIC,
    "-": Visibility.PRIVATE,
    "#": Visibility.PROTECTED,
    "~": Visibility.PACKAGE,
}

_SEPARATOR_STYLES = {
    "--": SeparatorStyle.SOLID,
    "..": SeparatorStyle.DOTTED,
    "==": SeparatorStyle.DOUBLE,
    "__": SeparatorStyle.THICK,
}


def parse_member(text: str) -> Member:
    """Parse one class body line into a :class:`Member`.

    Handles ``{static}``/``{abstract}``/``{field}``/``{method}``
    classifiers, visibility prefixes, ``name(params) : Type`` methods and
    ``name : Type`` fields.
    """
    member = Member(raw_text=text)
    forced: Optional[str] = None
    for m in RE_CLASSIFIER.finditer(text):
        kind = m.group(1).lower()
        if kind in ("static", "classifier"):
            member.is_static = True
        elif kind == "abstract":
            member.is_abstract = True
        else:
            forced = kind
    text = RE_CLASSIFIER.sub("", text).strip()

    m = RE_VISIBILITY.match(text)
    if m and len(text) > 1:
        member.visibility = _VISIBILITY[m.group(1)]
        text = text[m.end():]

    is_method = "(" in text if forced is None else forced == MemberType.METHOD
    if is_method:
        member.member_type = MemberType.METHOD
        m = RE_METHOD.match(text)
        if m:
            member.name = m.group(1).strip()
            member.parameters = m.group(2).strip()
            member.return_type = m.group(3).strip() if m.group(3) else None
        else:
            member.name = text
            member.parameters = ""
    else:
        member.member_type = MemberType.FIELD
        m = RE_FIELD.match(text)
        if m:
            member.name = m.group(1).strip()
            member.return_type = m.group(2).strip()
        else:
            member.name = text.strip()
    return member


def json_to_node(value: Any) -> JsonNode:
    """Convert a decoded JSON value into a :class:`JsonNode` tree."""
    if isinstance(value, dict):
        return JsonNode(
            JsonNodeType.OBJECT,
            entries=[(k, json_to_node(v)) for k, v in value.items()],
        )
    if isinstance(value, list):
        return JsonNode(JsonNodeType.ARRAY, items=[json_to_node(v) for v in value])
    if value is None:
        return JsonNode(JsonNodeType.SCALAR, "null")
    if isinstance(value, bool):
        return JsonNode(JsonNodeType.SCALAR, "true" if value else "false")
    return JsonNode(JsonNodeType.SCALAR, str(value))


def parse_json_text(text: str) -> JsonNode:
    """Decode *text*; undecodable input becomes a single scalar node."""
    text = text.strip()
    try:
        return json_to_node(json.loads(text))
    except ValueError:
        log.debug("class: json body kept as text: %r", text)
        return JsonNode(JsonNodeType.SCALAR, text)


# ═══════════════════════════════════════════════════════════
# Parser
# ═══════════════════════════════════════════════════════════

NORMAL = "normal"
ENTITY_BODY = "entity_body"
MAP_BODY = "map_body"
JSON_BODY = "json_body"
MULTILINE_NOTE = "multiline_note"


class ClassParser:
    """Stateful single-use parser; call :meth:`parse` once per source."""

    def __init__(self) -> None:
        self.diagram = ClassDiagram()
        self.state = NORMAL
        # open brace contexts: ("package", Package) or ("together", [codes])
        self.blocks: List[Tuple[str, Any]] = []
        self.current: Optional[ClassEntity] = None
        self.json_depth = 0
        self.buffer: List[str] = []
        self.note: Optional[Note] = None
        self.note_aliases: set = set()

        self._recognizers = [
            self._parse_title,
            self._parse_hide_show,
            self._parse_remove,
            self._parse_together,
            self._parse_package,
            self._parse_block_end,
            self._parse_diamond,
            self._parse_lollipop,
            self._parse_note_on_link,
            self._parse_note_on_link_start,
            self._parse_note_of,
            self._parse_note_of_start,
            self._parse_floating_note,
            self._parse_floating_note_start,
            self._parse_entity,
            self._parse_link,
            self._parse_shorthand_member,
        ]

    def parse(self, text: str) -> ClassDiagram:
        for line, raw in iter_source_lines(text):
            if self.state == MULTILINE_NOTE:
                if RE_END_NOTE.match(line):
                    self._finish_note()
                else:
                    self.buffer.append(raw)
                continue
            if not line:
                continue
            if self.state == ENTITY_BODY:
                self._body_line(line)
            elif self.state == MAP_BODY:
                self._map_line(line)
            elif self.state == JSON_BODY:
                self._json_line(line)
            elif not any(recognize(line) for recognize in self._recognizers):
                log.debug("class: ignored line %r", line)
        if self.state != NORMAL:
            log.debug("class: unterminated %s dropped", self.state)
        return self.diagram

    # ── helpers ────────────────────────────────────────────

    def _package(self) -> Optional[Package]:
        for kind, block in reversed(self.blocks):
            if kind == "package":
                return block
        return None

    def _declare(self, entity: ClassEntity) -> None:
        """Register a declared entity, replacing an implicit one in place."""
        existing = self.diagram.entities.get(entity.code)
        if existing is not None:
            entity.members = existing.members + entity.members
        package = self._package()
        if package is not None:
            entity.package_path = package.path
            if entity.code not in package.entities:
                package.entities.append(entity.code)
        self.diagram.entities[entity.code] = entity
        for kind, block in reversed(self.blocks):
            if kind == "together":
                block.append(entity.code)
                break

    def _reference(self, code: str) -> None:
        if code not in self.note_aliases:
            self.diagram.get_or_create(code)

    # ── top-level recognizers ──────────────────────────────

    def _parse_title(self, line: str) -> bool:
        m = RE_TITLE.match(line)
        if not m:
            return False
        self.diagram.title = m.group(1).strip()
        return True

    def _parse_hide_show(self, line: str) -> bool:
        m = RE_HIDE_SHOW.match(line)
        if not m:
            return False
        action, what = m.group(1).lower(), m.group(2).strip().lower()
        words = what.split()
        categories = ("members", "methods", "fields", "attributes")
        if words[-1] not in categories:
            # hide circle, hide stereotype, hide @unlinked ...
            log.debug("class: %s %s has no effect", action, what)
            return True
        category = "fields" if words[-1] == "attributes" else words[-1]
        key = "*"
        if len(words) > 1 and words[-2] == "empty":
            category = "empty " + category
            words = words[:-1]
        if len(words) > 1:
            key = m.group(2).split()[0]
        hidden = self.diagram.hidden_members.setdefault(key, set())
        if action == "hide":
            hidden.add(category)
        else:
            hidden.discard(category)
        return True

    def _parse_remove(self, line: str) -> bool:
        m = RE_REMOVE.match(line)
        if not m:
            return False
        self.diagram.removed.add(unquote(m.group(1).strip()))
        return True

    def _parse_together(self, line: str) -> bool:
        if not RE_TOGETHER.match(line):
            return False
        self.blocks.append(("together", []))
        return True

    def _parse_package(self, line: str) -> bool:
        m = RE_PACKAGE.match(line)
        if not m:
            return False
        name = m.group(2) or m.group(3)
        parent = self._package()
        package = Package(
            name=name,
            path=f"{parent.path}.{name}" if parent else name,
            color=m.group(4),
        )
        if parent is not None:
            parent.sub_packages.append(package)
        else:
            self.diagram.packages.append(package)
        self.blocks.append(("package", package))
        return True

    def _parse_block_end(self, line: str) -> bool:
        if not RE_BLOCK_END.match(line):
            return False
        if not self.blocks:
            log.debug("class: unmatched closing brace ignored")
            return True
        kind, block = self.blocks.pop()
        if kind == "together" and block:
            self.diagram.together_groups.append(block)
        return True

    def _parse_diamond(self, line: str) -> bool:
        m = RE_DIAMOND.match(line)
        if not m:
            return False
        self._declare(ClassEntity(code=m.group(1), type=EntityType.DIAMOND))
        return True

    def _parse_lollipop(self, line: str) -> bool:
        m = RE_LOLLIPOP.match(line)
        if not m:
            return False
        if m.group(3):
            code = name = m.group(3)
        else:
            name = m.group(1)
            code = m.group(2) or name
        self._declare(ClassEntity(code=code, display_name=name, type=EntityType.LOLLIPOP_FULL))
        return True

    def _parse_entity(self, line: str) -> bool:
        m = RE_ENTITY_HEAD.match(line)
        if not m:
            return False
        keyword = " ".join(m.group(1).lower().split())
        parsed = self._entity_name(m.group(2))
        if parsed is None:
            return False
        code, display, rest = parsed
        entity = ClassEntity(code=code, display_name=display, type=ENTITY_KEYWORDS[keyword])
        entity.is_abstract = entity.type == EntityType.ABSTRACT_CLASS

        # a JSON scalar or inline document follows the name directly
        if entity.type == EntityType.JSON and rest and not rest.endswith("{"):
            entity.json_root = parse_json_text(rest)
            self._declare(entity)
            return True
        if entity.type == EntityType.JSON and rest.startswith("{") and rest.count("{") == rest.count("}"):
            entity.json_root = parse_json_text(rest)
            self._declare(entity)
            return True

        m = RE_GENERIC.match(rest)
        if m:
            entity.generic_params = m.group(1).strip()
            rest = rest[m.end():].strip()
        m = RE_EXTENDS.match(rest)
        if m:
            entity.extends = [unquote(s.strip()) for s in m.group(1).split(",") if s.strip()]
            rest = rest[m.end():].strip()
        m = RE_IMPLEMENTS.match(rest)
        if m:
            entity.implements = [unquote(s.strip()) for s in m.group(1).split(",") if s.strip()]
            rest = rest[m.end():].strip()
        entity.stereotypes = RE_STEREO.findall(rest)
        rest = RE_STEREO.sub("", rest)
        m = RE_LINE_COLOR.search(rest)
        if m:
            entity.line_color = "#" + m.group(1)
            rest = rest[:m.start()] + rest[m.end():]
        m = RE_FILL_COLOR.search(rest)
        if m:
            entity.color = "#" + m.group(1)
            rest = rest[:m.start()] + rest[m.end():]
        rest = rest.strip()

        for parent in entity.extends + entity.implements:
            self._reference(parent)

        if rest.endswith("{") or rest == "{":
            self._open_body(entity)
        else:
            inline = re.match(r"^\{(.*)\}$", rest)
            if inline:
                for part in inline.group(1).split(";"):
                    if part.strip():
                        entity.members.append(parse_member(part.strip()))
            self._declare(entity)
        return True

    def _entity_name(self, text: str) -> Optional[Tuple[str, str, str]]:
        """Split ``"Name" as Code``, ``Code as "Name"``, ``Name`` forms off *text*."""
        text = text.strip()
        m = RE_NAME_QUOTED_AS.match(text)
        if m:
            return m.group(2), m.group(1), text[m.end():].strip()
        m = RE_NAME_AS_QUOTED.match(text)
        if m:
            return m.group(1), m.group(2), text[m.end():].strip()
        m = RE_NAME_AS_NAME.match(text)
        if m:
            return m.group(2), m.group(1), text[m.end():].strip()
        m = RE_NAME_QUOTED.match(text)
        if m:
            return m.group(1), m.group(1), text[m.end():].strip()
        m = RE_NAME_PLAIN.match(text)
        if m:
            return m.group(1), m.group(1), text[m.end():].strip()
        return None

    def _open_body(self, entity: ClassEntity) -> None:
        self.current = entity
        if entity.type == EntityType.MAP:
            self.state = MAP_BODY
        elif entity.type == EntityType.JSON:
            self.state = JSON_BODY
            self.json_depth = 1
            self.buffer = []
        else:
            self.state = ENTITY_BODY

    def _close_body(self) -> None:
        entity, self.current = self.current, None
        self.state = NORMAL
        self._declare(entity)

    def _parse_link(self, line: str) -> bool:
        m = RE_LINK.match(line)
        if not m:
            return False
        (left, left_label, left_qual, left_decor, body1, style1,
         direction, style2, body2, right_decor, right_label, right_qual,
         right, label) = m.groups()
        left, right = unquote(left), unquote(right)
        self._reference(left)
        self._reference(right)

        link = Relationship(
            source=left,
            target=right,
            left_decor=LEFT_DECOR_MAP.get(left_decor or "", Decor.NONE),
            right_decor=RIGHT_DECOR_MAP.get(right_decor or "", Decor.NONE),
            line_style=line_style_of(body1 + (body2 or "")),
            label=label.strip() if label else None,
            left_label=left_label,
            right_label=right_label,
            left_qualifier=left_qual,
            right_qualifier=right_qual,
            direction=DIRECTION_WORDS.get(direction.lower()) if direction else None,
        )
        modifiers = parse_bracket_style((style1 or "") + (style2 or ""))
        if modifiers.get("color"):
            link.color = modifiers["color"]
        if modifiers.get("line_style"):
            link.line_style = modifiers["line_style"]

        if link.left_decor != Decor.NONE and link.right_decor == Decor.NONE:
            # "Parent <|-- Child" is drawn from Child to Parent
            link = Relationship(
                source=link.target,
                target=link.source,
                left_decor=Decor.NONE,
                right_decor=link.left_decor,
                line_style=link.line_style,
                label=link.label,
                left_label=link.right_label,
                right_label=link.left_label,
                left_qualifier=link.right_qualifier,
                right_qualifier=link.left_qualifier,
                direction=_OPPOSITE.get(link.direction),
                color=link.color,
            )
        self.diagram.add_link(link)
        return True

    def _parse_shorthand_member(self, line: str) -> bool:
        m = RE_SHORTHAND_MEMBER.match(line)
        if not m:
            return False
        entity = self.diagram.get_or_create(m.group(1))
        entity.members.append(parse_member(m.group(2).strip()))
        return True

    # ── notes ──────────────────────────────────────────────

    def _parse_note_of(self, line: str) -> bool:
        m = RE_NOTE_OF.match(line)
        if not m:
            return False
        code = unquote(m.group(2))
        self._reference(code)
        self.diagram.notes.append(Note(
            position=m.group(1).lower(), text=m.group(4).strip(),
            entity_code=code, color=m.group(3),
        ))
        return True

    def _parse_note_of_start(self, line: str) -> bool:
        m = RE_NOTE_OF_START.match(line)
        if not m:
            return False
        code = unquote(m.group(2))
        self._reference(code)
        self._start_note(Note(position=m.group(1).lower(), entity_code=code, color=m.group(3)))
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
            color=m.group(2), link_index=self._last_link(),
        ))
        return True

    def _parse_note_on_link_start(self, line: str) -> bool:
        m = RE_NOTE_LINK_START.match(line)
        if not m:
            return False
        self._start_note(Note(
            position=(m.group(1) or NotePosition.RIGHT).lower(),
            color=m.group(2), link_index=self._last_link(),
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

    # ── bodies ─────────────────────────────────────────────

    def _body_line(self, line: str) -> None:
        if RE_BLOCK_END.match(line):
            self._close_body()
            return
        m = RE_SEPARATOR.match(line)
        if m:
            self.current.members.append(
                Separator(label=m.group(2), style=_SEPARATOR_STYLES[m.group(1)])
            )
            return
        self.current.members.append(parse_member(line))

    def _map_line(self, line: str) -> None:
        if RE_BLOCK_END.match(line):
            self._close_body()
            return
        m = RE_MAP_LINK.match(line)
        if m:
            target = m.group(2)
            self.current.map_entries.append(MapEntry(key=m.group(1).strip(), linked_target=target))
            self._reference(target)
            self.diagram.add_link(Relationship(
                source=self.current.code, target=target, right_decor=Decor.ARROW,
                line_style=LineStyle.SOLID,
            ))
            return
        m = RE_MAP_ENTRY.match(line)
        if m:
            self.current.map_entries.append(MapEntry(key=m.group(1).strip(), value=m.group(2).strip()))
        else:
            log.debug("class: ignored map line %r", line)

    def _json_line(self, line: str) -> None:
        self.json_depth += line.count("{") + line.count("[") - line.count("}") - line.count("]")
        if self.json_depth <= 0:
            tail = line.rstrip()[:-1] if line.rstrip().endswith("}") else line
            if tail.strip():
                self.buffer.append(tail)
            self.current.json_root = parse_json_text("{" + "\n".join(self.buffer) + "}")
            self.buffer = []
            self._close_body()
        else:
            self.buffer.append(line)


_OPPOSITE = {"left": "right", "right": "left", "up": "down", "down": "up"}


def parse_class_diagram(text: str) -> ClassDiagram:
    """Parse PlantUML class diagram source into a :class:`ClassDiagram`."""
    return ClassParser().parse(text)
