"""
plantuml/classdiagram/model.py

Intermediate model for PlantUML class, object, map and JSON diagrams.

The parser fills a :class:`ClassDiagram`; the emitter reads it.  Objects,
maps and JSON documents are entities like any class, distinguished by
their :class:`EntityType` and carrying their own body fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Union

from plantuml.common import Decor, LineStyle


class EntityType:
    CLASS = "class"
    ABSTRACT_CLASS = "abstract_class"
    INTERFACE = "interface"
    ANNOTATION = "annotation"
    ENUM = "enum"
    ENTITY = "entity"
    PROTOCOL = "protocol"
    STRUCT = "struct"
    EXCEPTION = "exception"
    METACLASS = "metaclass"
    STEREOTYPE_TYPE = "stereotype_type"
    DATACLASS = "dataclass"
    RECORD = "record"
    OBJECT = "object"
    MAP = "map"
    JSON = "json"
    CIRCLE = "circle"
    DIAMOND = "diamond"
    LOLLIPOP_FULL = "lollipop_full"
    LOLLIPOP_HALF = "lollipop_half"


class Visibility:
    PUBLIC = "public"        # +
    PRIVATE = "private"      # -
    PROTECTED = "protected"  # #
    PACKAGE = "package"      # ~


class MemberType:
    FIELD = "field"
    METHOD = "method"


class SeparatorStyle:
    SOLID = "solid"    # --
    DOTTED = "dotted"  # ..
    DOUBLE = "double"  # ==
    THICK = "thick"    # __


class NotePosition:
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"


class JsonNodeType:
    OBJECT = "object"
    ARRAY = "array"
    SCALAR = "scalar"


@dataclass
class Member:
    """One field or method line of a class body.

    Attributes:
        raw_text: The line as written.
        name: Member name without visibility, parameters or type.
        return_type: Field type or method return type.
        visibility: One of :class:`Visibility`, or None when unmarked.
        is_static: ``{static}`` / ``{classifier}`` modifier.
        is_abstract: ``{abstract}`` modifier.
        member_type: :class:`MemberType`.
        parameters: Method parameter list text, without parentheses.
    """
    raw_text: str
    name: str = ""
    return_type: Optional[str] = None
    visibility: Optional[str] = None
    is_static: bool = False
    is_abstract: bool = False
    member_type: str = MemberType.FIELD
    parameters: Optional[str] = None


@dataclass
class Separator:
    label: str = ""
    style: str = SeparatorStyle.SOLID


BodyLine = Union[Member, Separator]


@dataclass
class MapEntry:
    """A ``key => value`` row, or ``key *-> Target`` when ``linked_target`` is set."""
    key: str
    value: Optional[str] = None
    linked_target: Optional[str] = None


@dataclass
class JsonNode:
    """A node of a parsed JSON body.

    OBJECT nodes use ``entries`` (key, node) pairs, ARRAY nodes use
    ``items`` and SCALAR nodes carry their text in ``value``.
    """
    type: str
    value: str = ""
    entries: List[tuple] = field(default_factory=list)
    items: List["JsonNode"] = field(default_factory=list)


@dataclass
class ClassEntity:
    """A class-like box (or one of the small connector shapes).

    Attributes:
        code: Identifier used by relationships.
        display_name: Header text.
        type: One of :class:`EntityType`.
        generic_params: Text between ``<`` and ``>`` after the name.
        stereotypes: ``<<...>>`` texts in declaration order.
        color: Fill colour.
        line_color: Border colour (``##color``).
        extends: Parent codes from ``extends``.
        implements: Interface codes from ``implements``.
        members: Body lines (members and separators).
        is_abstract: Declared with ``abstract``.
        package_path: Dotted path of the enclosing package, if any.
        map_entries: Rows of a ``map`` body.
        json_root: Parsed body of a ``json`` entity.
    """
    code: str
    display_name: str = ""
    type: str = EntityType.CLASS
    generic_params: Optional[str] = None
    stereotypes: List[str] = field(default_factory=list)
    color: Optional[str] = None
    line_color: Optional[str] = None
    extends: List[str] = field(default_factory=list)
    implements: List[str] = field(default_factory=list)
    members: List[BodyLine] = field(default_factory=list)
    is_abstract: bool = False
    package_path: Optional[str] = None
    map_entries: List[MapEntry] = field(default_factory=list)
    json_root: Optional[JsonNode] = None

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.code


@dataclass
class Relationship:
    """A link between two entities.

    ``left_*`` fields belong to ``source``, ``right_*`` fields to ``target``.
    """
    source: str
    target: str
    left_decor: str = Decor.NONE
    right_decor: str = Decor.NONE
    line_style: str = LineStyle.SOLID
    label: Optional[str] = None
    left_label: Optional[str] = None
    right_label: Optional[str] = None
    left_qualifier: Optional[str] = None
    right_qualifier: Optional[str] = None
    direction: Optional[str] = None
    color: Optional[str] = None


@dataclass
class Package:
    """A ``package`` / ``namespace`` block; ``path`` is dotted from the top."""
    name: str
    path: str
    color: Optional[str] = None
    entities: List[str] = field(default_factory=list)
    sub_packages: List["Package"] = field(default_factory=list)


@dataclass
class Note:
    """A note attached to an entity, a link, or floating on its own.

    Attributes:
        position: :class:`NotePosition` relative to the entity.
        text: Note body.
        entity_code: Attached entity, or None.
        alias: Code of a floating ``note "..." as N``.
        color: Background colour.
        link_index: Index into ``ClassDiagram.links`` for ``note on link``.
    """
    position: str = NotePosition.RIGHT
    text: str = ""
    entity_code: Optional[str] = None
    alias: Optional[str] = None
    color: Optional[str] = None
    link_index: Optional[int] = None


@dataclass
class ClassDiagram:
    """Root of a parsed class diagram.

    Attributes:
        title: Diagram title.
        entities: Code to entity, in declaration order.
        links: Relationships in source order.
        packages: Top-level packages.
        notes: All notes.
        together_groups: ``together { }`` groups of entity codes.
        hidden_members: Entity code (or ``"*"``) to hidden categories
            (``members``, ``methods``, ``fields``).
        removed: Codes dropped by ``remove``.
    """
    title: Optional[str] = None
    entities: Dict[str, ClassEntity] = field(default_factory=dict)
    links: List[Relationship] = field(default_factory=list)
    packages: List[Package] = field(default_factory=list)
    notes: List[Note] = field(default_factory=list)
    together_groups: List[List[str]] = field(default_factory=list)
    hidden_members: Dict[str, Set[str]] = field(default_factory=dict)
    removed: Set[str] = field(default_factory=set)

    def add_entity(self, entity: ClassEntity) -> ClassEntity:
        """Register *entity*; an existing entity with the same code wins."""
        return self.entities.setdefault(entity.code, entity)

    def get_or_create(self, code: str) -> ClassEntity:
        return self.add_entity(ClassEntity(code=code))

    def add_link(self, link: Relationship) -> int:
        self.links.append(link)
        return len(self.links) - 1
