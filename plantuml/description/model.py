"""
plantuml/description/model.py

Intermediate model shared by the "description" family of PlantUML
diagrams: use case, component and deployment.

All three describe boxes of a fixed vocabulary (actors, use cases,
components, nodes, databases ...) nested in brace containers and joined
by decorated links, so one model serves them; only the keyword set and
the default element type differ per dialect.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from plantuml.common import Decor, LineStyle


class ElementType:
    ACTOR = "actor"
    ACTOR_BUSINESS = "actor_business"
    USECASE = "usecase"
    USECASE_BUSINESS = "usecase_business"
    PACKAGE = "package"
    RECTANGLE = "rectangle"
    FRAME = "frame"
    CLOUD = "cloud"
    NODE = "node"
    FOLDER = "folder"
    DATABASE = "database"
    COMPONENT = "component"
    BOUNDARY = "boundary"
    CONTROL = "control"
    ENTITY_DESC = "entity_desc"
    CARD = "card"
    FILE = "file"
    AGENT = "agent"
    STORAGE = "storage"
    QUEUE = "queue"
    STACK = "stack"
    HEXAGON = "hexagon"
    PERSON = "person"
    LABEL = "label"
    COLLECTIONS = "collections"
    INTERFACE = "interface"
    ARTIFACT = "artifact"
    PORT = "port"
    PORTIN = "portin"
    PORTOUT = "portout"


ACTOR_TYPES = (ElementType.ACTOR, ElementType.ACTOR_BUSINESS)
USECASE_TYPES = (ElementType.USECASE, ElementType.USECASE_BUSINESS)
PORT_TYPES = (ElementType.PORT, ElementType.PORTIN, ElementType.PORTOUT)


class DiagramDirection:
    TOP_TO_BOTTOM = "ttb"
    LEFT_TO_RIGHT = "ltr"


class NotePosition:
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"


# Keywords that open a brace container.
CONTAINER_KEYWORD_MAP: Dict[str, str] = {
    "package": ElementType.PACKAGE,
    "rectangle": ElementType.RECTANGLE,
    "frame": ElementType.FRAME,
    "cloud": ElementType.CLOUD,
    "node": ElementType.NODE,
    "folder": ElementType.FOLDER,
    "database": ElementType.DATABASE,
    "component": ElementType.COMPONENT,
    "card": ElementType.CARD,
    "file": ElementType.FILE,
    "hexagon": ElementType.HEXAGON,
    "storage": ElementType.STORAGE,
    "queue": ElementType.QUEUE,
    "stack": ElementType.STACK,
    "agent": ElementType.AGENT,
    "artifact": ElementType.ARTIFACT,
}


@dataclass
class Element:
    """A leaf box of a description diagram.

    Attributes:
        code: Identifier used by links and notes.
        display_name: Label; may contain newlines for multiline declarations.
        type: One of :class:`ElementType`.
        color: Fill colour.
        line_color: Border colour.
        stereotypes: ``<<...>>`` texts.
        container_path: Dotted path of the enclosing container, if any.
    """
    code: str
    display_name: str = ""
    type: str = ElementType.COMPONENT
    color: Optional[str] = None
    line_color: Optional[str] = None
    stereotypes: List[str] = field(default_factory=list)
    container_path: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.code


@dataclass
class Relationship:
    source: str
    target: str
    left_decor: str = Decor.NONE
    right_decor: str = Decor.NONE
    line_style: str = LineStyle.SOLID
    label: Optional[str] = None
    left_label: Optional[str] = None
    right_label: Optional[str] = None
    direction: Optional[str] = None
    color: Optional[str] = None


@dataclass
class Container:
    """A brace block (``package X { ... }``, ``node N { ... }``).

    Attributes:
        name: Display name.
        code: Identifier; links may target a container by its code.
        type: One of the :data:`CONTAINER_KEYWORD_MAP` values.
        path: Dotted path from the outermost container.
        color: Fill colour.
        stereotypes: ``<<...>>`` texts.
        elements: Codes of the elements declared directly inside.
        sub_containers: Nested containers in declaration order.
    """
    name: str
    code: str
    type: str = ElementType.PACKAGE
    path: str = ""
    color: Optional[str] = None
    stereotypes: List[str] = field(default_factory=list)
    elements: List[str] = field(default_factory=list)
    sub_containers: List["Container"] = field(default_factory=list)


@dataclass
class Note:
    position: str = NotePosition.RIGHT
    text: str = ""
    entity_code: Optional[str] = None
    alias: Optional[str] = None
    color: Optional[str] = None
    on_link: bool = False
    link_index: Optional[int] = None


@dataclass
class DescriptionDiagram:
    """Root of a parsed use case, component or deployment diagram.

    Attributes:
        title: Diagram title.
        elements: Code to element, in first-seen order.
        links: Relationships in source order.
        containers: Top-level containers.
        notes: All notes.
        direction: :class:`DiagramDirection`.
        together_groups: ``together { }`` groups of element codes.
    """
    title: Optional[str] = None
    elements: Dict[str, Element] = field(default_factory=dict)
    links: List[Relationship] = field(default_factory=list)
    containers: List[Container] = field(default_factory=list)
    notes: List[Note] = field(default_factory=list)
    direction: str = DiagramDirection.TOP_TO_BOTTOM
    together_groups: List[List[str]] = field(default_factory=list)

    def add_element(self, element: Element) -> Element:
        return self.elements.setdefault(element.code, element)

    def get_or_create(self, code: str, display_name: Optional[str] = None,
                      type: str = ElementType.COMPONENT) -> Element:
        return self.add_element(Element(code=code, display_name=display_name or code, type=type))

    def add_link(self, link: Relationship) -> int:
        self.links.append(link)
        return len(self.links) - 1

    def iter_containers(self):
        """Yield every container, depth first."""
        stack = list(reversed(self.containers))
        while stack:
            container = stack.pop()
            yield container
            stack.extend(reversed(container.sub_containers))

    def find_container(self, code: str) -> Optional[Container]:
        for container in self.iter_containers():
            if container.code == code:
                return container
        return None
