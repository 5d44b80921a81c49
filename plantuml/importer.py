"""
plantuml/importer.py

Convert PlantUML source into draw.io (mxGraph) XML.

Detection runs over a dispatch table of diagram handlers.  Explicit
``@start<dialect>`` markers are honoured first; otherwise each handler's
heuristic is tried in registration order and the first match wins.
Narrow dialects are registered before broad ones because the sequence
heuristic matches any arrow-like line.

The converted cells are parented to a non-editable group whose
``UserObject`` wrapper carries the original source, so a drawing can be
regenerated from its own XML.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from drawio.builder import (
    bounding_box,
    build_document,
    build_user_object,
    serialize_cells,
    xml_unescape,
)
from plantuml.activity.emitter import emit_activity_diagram
from plantuml.activity.parser import parse_activity_diagram
from plantuml.classdiagram.emitter import emit_class_diagram
from plantuml.classdiagram.parser import parse_class_diagram
from plantuml.common import has_start_marker, iter_source_lines
from plantuml.component.emitter import emit_component_diagram
from plantuml.component.parser import parse_component_diagram
from plantuml.sequence.emitter import emit_sequence_diagram
from plantuml.sequence.parser import parse_sequence_diagram
from plantuml.state.emitter import emit_state_diagram
from plantuml.state.parser import parse_state_diagram
from plantuml.timing.emitter import emit_timing_diagram
from plantuml.timing.parser import parse_timing_diagram
from plantuml.usecase.emitter import emit_usecase_diagram
from plantuml.usecase.parser import parse_usecase_diagram

log = logging.getLogger(__name__)

DEFAULT_GROUP_ID = "puml-grp-1"
DEFAULT_DIAGRAM_NAME = "PlantUML Import"
GROUP_MARGIN = 20


# ═══════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════

class UnknownDialect(ValueError):
    """No registered handler recognised the source.

    Attributes:
        supported: Registered diagram type keys, in detection order.
    """

    def __init__(self, supported: List[str]):
        self.supported = list(supported)
        super().__init__(
            "Unable to detect PlantUML diagram type. Supported types: "
            + ", ".join(self.supported)
        )


class SourceNotFound(ValueError):
    """The XML carries no embedded PlantUML source."""


# ═══════════════════════════════════════════════════════════
# Handlers
# ═══════════════════════════════════════════════════════════

@dataclass
class DiagramHandler:
    """Detect/parse/emit triple for one dialect.

    Attributes:
        detect: ``detect(text) -> bool`` heuristic.
        parse: ``parse(text) -> model``.
        emit: ``emit(model, parent_id) -> List[Cell]``.
        markers: ``@start<marker>`` names that select this dialect
            outright.
    """
    detect: Callable[[str], bool]
    parse: Callable[[str], Any]
    emit: Callable[[Any, str], list]
    markers: Tuple[str, ...] = field(default_factory=tuple)


@dataclass
class ConversionResult:
    xml: str
    diagram_type: str


def _lines(text: str) -> List[str]:
    return [line for line, _raw in iter_source_lines(text) if line]


# ── class ───────────────────────────────────────────────

_CLASS_KEYWORD_RE = re.compile(
    r"^(?:abstract\s+class|abstract|class|interface|enum|annotation|entity|struct"
    r"|record|object|map|json)\s+",
    re.IGNORECASE,
)
_CLASS_RELATION_RE = re.compile(r"<\|--|--\|>|\*--|--\*|o--|--o\b|<\|\.\.|\.\.?\|>")


def detect_class(text: str) -> bool:
    keywords = relations = 0
    for line in _lines(text):
        if _CLASS_KEYWORD_RE.match(line):
            keywords += 1
        if _CLASS_RELATION_RE.search(line):
            relations += 1
    return keywords >= 2 or (keywords >= 1 and relations >= 1)


# ── usecase ─────────────────────────────────────────────

_USECASE_KEYWORD_RE = re.compile(r"^usecase/?\s+", re.IGNORECASE)
_ACTOR_KEYWORD_RE = re.compile(r"^actor/?\s+", re.IGNORECASE)
_ACTOR_SHORTHAND_RE = re.compile(r"^:[^:]+:")
_USECASE_SHORTHAND_RE = re.compile(r"(?:^|[-.=]>?\s*)\([^()*]+\)")


def detect_usecase(text: str) -> bool:
    usecases = actors = actor_shorthand = usecase_shorthand = 0
    for line in _lines(text):
        if _USECASE_KEYWORD_RE.match(line):
            usecases += 1
        if _ACTOR_KEYWORD_RE.match(line):
            actors += 1
        if _ACTOR_SHORTHAND_RE.match(line):
            actor_shorthand += 1
        if _USECASE_SHORTHAND_RE.search(line):
            usecase_shorthand += 1
    return (
        usecases >= 2
        or (usecases >= 1 and (actors or actor_shorthand or usecase_shorthand) > 0)
        or (usecase_shorthand >= 1 and (actors or actor_shorthand) > 0)
    )


# ── component ───────────────────────────────────────────

_COMPONENT_STRONG_RE = re.compile(
    r"^(?:component|node|cloud|artifact|folder|frame|storage|card|agent|stack"
    r"|hexagon|file|port|portin|portout)\s+",
    re.IGNORECASE,
)
_COMPONENT_WEAK_RE = re.compile(
    r"^(?:database|queue|interface|rectangle|package|collections)\s+", re.IGNORECASE,
)
_BRACKET_SHORTHAND_RE = re.compile(r"(?:^|[-.=~]>?\s*)\[(?!#)[^\[\]*]+\](?!\s*-)")
_INTERFACE_SHORTHAND_RE = re.compile(r"^\(\)\s*\S")
_SEQUENCE_ONLY_RE = re.compile(
    r"^(?:participant|activate|deactivate|autonumber|alt|loop|opt|par)\b", re.IGNORECASE,
)


def detect_component(text: str) -> bool:
    strong = weak = 0
    sequence_hint = False
    for line in _lines(text):
        if _COMPONENT_STRONG_RE.match(line):
            strong += 1
        elif _COMPONENT_WEAK_RE.match(line):
            weak += 1
        if _BRACKET_SHORTHAND_RE.search(line) or _INTERFACE_SHORTHAND_RE.match(line):
            strong += 1
        if _SEQUENCE_ONLY_RE.match(line):
            sequence_hint = True
    return strong >= 1 or (weak >= 2 and not sequence_hint)


# ── timing ──────────────────────────────────────────────

_TIMING_PLAYER_RE = re.compile(
    r"^(?:compact\s+)?(?:robust|concise|binary|analog)\s+", re.IGNORECASE,
)
_TIMING_CLOCK_RE = re.compile(r"^(?:compact\s+)?clock\s+.*\bwith\s+period\b", re.IGNORECASE)
_TIMING_HIGHLIGHT_RE = re.compile(r"^highlight\s+\S+\s+to\s+", re.IGNORECASE)
_TIMING_AT_RE = re.compile(r"^@\+?\d")


def detect_timing(text: str) -> bool:
    score = 0
    for line in _lines(text):
        if _TIMING_PLAYER_RE.match(line) or _TIMING_CLOCK_RE.match(line):
            score += 2
        elif _TIMING_HIGHLIGHT_RE.match(line) or _TIMING_AT_RE.match(line):
            score += 1
    return score >= 2


# ── state ───────────────────────────────────────────────

_STATE_SIGNALS: List[Tuple[re.Pattern, int]] = [
    (re.compile(r"\[\*\]"), 3),
    (re.compile(r"^state\s+", re.IGNORECASE), 2),
    (re.compile(r"<<\s*(?:choice|fork|join|history\*?)\s*>>", re.IGNORECASE), 2),
    (re.compile(r"^hide\s+empty\s+description", re.IGNORECASE), 2),
]
_STATE_ARROW_RE = re.compile(r"-->")


def detect_state(text: str) -> bool:
    score = 0
    arrows = False
    for line in _lines(text):
        for pattern, weight in _STATE_SIGNALS:
            if pattern.search(line):
                score += weight
        if _STATE_ARROW_RE.search(line):
            arrows = True
    # arrows count once; sequence replies use the same token
    return score + (1 if arrows else 0) >= 3


# ── activity ────────────────────────────────────────────

_ACTIVITY_SIGNALS = [
    re.compile(r"^:.*;$"),
    re.compile(r"^:[^:]*$"),
    re.compile(r"^(?:start|stop|kill|detach)$", re.IGNORECASE),
    re.compile(r"^if\s*\(.*\)\s*then\b", re.IGNORECASE),
    re.compile(r"^while\s*\(", re.IGNORECASE),
    re.compile(r"^repeat\b", re.IGNORECASE),
    re.compile(r"^switch\s*\(", re.IGNORECASE),
    re.compile(r"^fork$", re.IGNORECASE),
    re.compile(r"^split$", re.IGNORECASE),
    re.compile(r"^partition\s+", re.IGNORECASE),
    re.compile(r"^\|(?:#\w+\|)?[^|]+\|"),
]


def detect_activity(text: str) -> bool:
    return any(p.match(line) for line in _lines(text) for p in _ACTIVITY_SIGNALS)


# ── sequence ────────────────────────────────────────────

_SEQUENCE_ARROW_RE = re.compile(r"[\w.@\"\]\[]+\s*[<ox]?-+[>|<\]}\[{\\/]")
_SEQUENCE_KEYWORD_RE = re.compile(
    r"^(?:participant|actor|boundary|control|activate|deactivate|destroy|alt|loop|opt"
    r"|return|autonumber)\b",
    re.IGNORECASE,
)


def detect_sequence(text: str) -> bool:
    return any(
        _SEQUENCE_ARROW_RE.search(line) or _SEQUENCE_KEYWORD_RE.match(line)
        for line in _lines(text)
    )


# ═══════════════════════════════════════════════════════════
# Registry
# ═══════════════════════════════════════════════════════════

_HANDLERS: Dict[str, DiagramHandler] = {
    "class": DiagramHandler(
        detect_class, parse_class_diagram, emit_class_diagram, ("class",),
    ),
    "usecase": DiagramHandler(
        detect_usecase, parse_usecase_diagram, emit_usecase_diagram, ("usecase",),
    ),
    "component": DiagramHandler(
        detect_component, parse_component_diagram, emit_component_diagram,
        ("component", "deployment"),
    ),
    "timing": DiagramHandler(
        detect_timing, parse_timing_diagram, emit_timing_diagram, ("timing",),
    ),
    "state": DiagramHandler(
        detect_state, parse_state_diagram, emit_state_diagram, ("state",),
    ),
    "activity": DiagramHandler(
        detect_activity, parse_activity_diagram, emit_activity_diagram, ("activity",),
    ),
    "sequence": DiagramHandler(
        detect_sequence, parse_sequence_diagram, emit_sequence_diagram, ("sequence",),
    ),
}


def register_diagram_handler(key: str, handler: DiagramHandler) -> None:
    """Add or replace the handler for *key*.

    New keys are tried after the built-in dialects.

    Raises:
        TypeError: If *handler* lacks a callable ``detect``, ``parse`` or
            ``emit``.
    """
    for name in ("detect", "parse", "emit"):
        if not callable(getattr(handler, name, None)):
            raise TypeError(f"Handler for {key!r} must provide a callable {name}")
    _HANDLERS[key] = handler


def get_supported_types() -> List[str]:
    return list(_HANDLERS)


def detect_diagram_type(text: str) -> Optional[str]:
    """Return the diagram type key for *text*, or None.

    An explicit ``@start<marker>`` selects its dialect regardless of
    order; otherwise the first heuristic match wins.
    """
    for key, handler in _HANDLERS.items():
        markers = getattr(handler, "markers", ())
        if markers and has_start_marker(text, *markers):
            return key
    for key, handler in _HANDLERS.items():
        if handler.detect(text):
            return key
    return None


# ═══════════════════════════════════════════════════════════
# Conversion
# ═══════════════════════════════════════════════════════════

def convert(
    source: str,
    wrap_in_document: bool = True,
    wrap_in_group: bool = True,
    group_id: Optional[str] = None,
    diagram_name: str = DEFAULT_DIAGRAM_NAME,
) -> ConversionResult:
    """Convert PlantUML *source* into draw.io XML.

    Args:
        source: PlantUML text, with or without ``@startuml``/``@enduml``.
        wrap_in_document: Wrap the cells in an ``<mxfile>`` document.
        wrap_in_group: Parent the cells to a non-editable group that
            embeds *source*.
        group_id: Id of that group; ``puml-grp-1`` by default.
        diagram_name: Name of the ``<diagram>`` page.

    Returns:
        :class:`ConversionResult` with the XML and detected type key.

    Raises:
        UnknownDialect: If no handler recognises *source*.
    """
    diagram_type = detect_diagram_type(source)
    if diagram_type is None:
        raise UnknownDialect(get_supported_types())
    handler = _HANDLERS[diagram_type]

    gid = group_id or DEFAULT_GROUP_ID
    parent_id = gid if wrap_in_group else "1"

    model = handler.parse(source)
    cells = handler.emit(model, parent_id)
    log.debug("convert: %s diagram, %d cells", diagram_type, len(cells))

    body = serialize_cells(cells)
    if wrap_in_group:
        width, height = bounding_box(cells, parent_id)
        body = build_user_object(
            gid, source, body, width + GROUP_MARGIN, height + GROUP_MARGIN,
        )
    xml = build_document(body, diagram_name) if wrap_in_document else body
    return ConversionResult(xml=xml, diagram_type=diagram_type)


_PLANTUML_ATTR_RE = re.compile(r'plantUml="([^"]*)"')
_USER_OBJECT_ID_RE = re.compile(r'<UserObject\b[^>]*?\bid="([^"]+)"')


def extract_plantuml(xml: str) -> Optional[str]:
    """Return the PlantUML source embedded in *xml*, or None."""
    m = _PLANTUML_ATTR_RE.search(xml)
    if not m or not m.group(1):
        return None
    return xml_unescape(m.group(1))


def regenerate(
    existing_xml: str,
    new_source: Optional[str] = None,
    **options: Any,
) -> ConversionResult:
    """Re-convert a drawing from its embedded (or replacement) source.

    The existing group id is kept unless ``group_id`` is passed.

    Raises:
        SourceNotFound: If *new_source* is None and *existing_xml* has no
            embedded source.
        UnknownDialect: If the source is not recognised.
    """
    source = new_source
    if not source:
        source = extract_plantuml(existing_xml)
        if not source:
            raise SourceNotFound("No PlantUML source found in the provided XML")

    if not options.get("group_id"):
        m = _USER_OBJECT_ID_RE.search(existing_xml)
        if m:
            options["group_id"] = xml_unescape(m.group(1))
    return convert(source, **options)
