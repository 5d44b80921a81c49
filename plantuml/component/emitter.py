"""
plantuml/component/emitter.py

Component and deployment diagram emitter.

Uses the shared description layout; interfaces are drawn as small
circles, and ports declared inside a container are pinned to its
border after layout (``portin`` on the left edge, ``portout`` on the
right, plain ``port`` on the top).
"""

from __future__ import annotations

from typing import Dict, List, Tuple

from drawio.builder import Cell
from plantuml.description.emitter import Box, DescriptionEmitter, text_width
from plantuml.description.model import PORT_TYPES, DescriptionDiagram, Element, ElementType

INTERFACE_SIZE = 20
PORT_SIZE = 12
PORT_SPACING = 30
LABEL_HEIGHT = 20


class ComponentEmitter(DescriptionEmitter):

    def element_size(self, element: Element) -> Tuple[float, float]:
        if element.type == ElementType.INTERFACE:
            return INTERFACE_SIZE, INTERFACE_SIZE
        if element.type in PORT_TYPES:
            return PORT_SIZE, PORT_SIZE
        if element.type == ElementType.LABEL:
            return max(80, text_width(element.display_name)), LABEL_HEIGHT
        return super().element_size(element)

    def after_layout(self) -> None:
        """Pin container ports to the container border."""
        by_side: Dict[Tuple[str, str], List[str]] = {}
        for code, element in self.diagram.elements.items():
            if element.type in PORT_TYPES and element.container_path in self.container_boxes:
                by_side.setdefault((element.container_path, element.type), []).append(code)

        for (path, kind), codes in by_side.items():
            box = self.container_boxes[path]
            half = PORT_SIZE / 2
            for i, code in enumerate(codes):
                offset = PORT_SPACING * (i + 1)
                if kind == ElementType.PORTIN:
                    x, y = box.x - half, min(box.y + offset, box.bottom - PORT_SIZE)
                elif kind == ElementType.PORTOUT:
                    x, y = box.right - half, min(box.y + offset, box.bottom - PORT_SIZE)
                else:
                    x, y = min(box.x + offset, box.right - PORT_SIZE), box.y - half
                self.positions[code] = Box(x, y, PORT_SIZE, PORT_SIZE)


def emit_component_diagram(diagram: DescriptionDiagram, parent_id: str) -> List[Cell]:
    """Emit *diagram* as draw.io cells parented to *parent_id*."""
    return ComponentEmitter(parent_id).emit(diagram)
