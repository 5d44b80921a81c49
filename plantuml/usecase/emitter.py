"""
plantuml/usecase/emitter.py

Use case diagram emitter: stick-figure actors and ellipse use cases on
the shared description layout.  Actors have no incoming links in a
typical diagram, so they land in the first rank and their use cases in
the next one.
"""

from __future__ import annotations

from typing import List, Tuple

from drawio.builder import Cell
from plantuml.common import text_lines
from plantuml.description.emitter import (
    ACTOR_HEIGHT,
    ACTOR_WIDTH,
    DescriptionEmitter,
    text_width,
)
from plantuml.description.model import ACTOR_TYPES, USECASE_TYPES, DescriptionDiagram, Element

USECASE_WIDTH = 140
USECASE_HEIGHT = 60


class UsecaseEmitter(DescriptionEmitter):

    def element_size(self, element: Element) -> Tuple[float, float]:
        if element.type in ACTOR_TYPES:
            return ACTOR_WIDTH, ACTOR_HEIGHT
        if element.type in USECASE_TYPES:
            lines = len(text_lines(element.display_name)) + len(element.stereotypes)
            width = max(USECASE_WIDTH, text_width(element.display_name) + 40)
            return width, max(USECASE_HEIGHT, lines * 18 + 28)
        return super().element_size(element)


def emit_usecase_diagram(diagram: DescriptionDiagram, parent_id: str) -> List[Cell]:
    """Emit *diagram* as draw.io cells parented to *parent_id*."""
    return UsecaseEmitter(parent_id).emit(diagram)
