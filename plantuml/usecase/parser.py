"""
plantuml/usecase/parser.py

Use case dialect of the description parser: ``actor`` and ``usecase``
declarations (with their business ``/`` variants) on top of the shared
containers, notes, links and ``:Actor:`` / ``(Use case)`` shorthands.
"""

from __future__ import annotations

from typing import Dict

from plantuml.description.model import DescriptionDiagram, ElementType
from plantuml.description.parser import DescriptionParser


class UsecaseParser(DescriptionParser):
    """Bare identifiers in links are actors, as PlantUML draws them."""

    DIALECT = "usecase"
    DEFAULT_TYPE = ElementType.ACTOR
    ELEMENT_KEYWORDS: Dict[str, str] = {
        "actor/": ElementType.ACTOR_BUSINESS,
        "actor": ElementType.ACTOR,
        "usecase/": ElementType.USECASE_BUSINESS,
        "usecase": ElementType.USECASE,
        "person": ElementType.PERSON,
    }


def parse_usecase_diagram(text: str) -> DescriptionDiagram:
    """Parse PlantUML use case diagram source into a :class:`DescriptionDiagram`."""
    return UsecaseParser().parse(text)
