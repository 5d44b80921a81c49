"""
plantuml/sequence/arrows.py

Parse sequence-diagram arrow strings (``->``, ``-->>``, ``o<->x``,
``-[#red,bold]->`` ...) into :class:`ArrowConfig` records.

An arrow is read as::

    [decoration] [left dressing] body [right dressing] [decoration]

Decorations are ``o`` (circle) and ``x`` (cross).  Dressings are ``<``,
``<<``, ``>``, ``>>``, ``/``, ``//``, ``\\`` and ``\\\\``.  The body is
one or more ``-``; two or more make a dotted line.  Bracketed modifiers
are stripped first.  Anything unparseable falls back to a plain
``->``-style arrow.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from plantuml.common import LineStyle, parse_bracket_style


class ArrowHead:
    NONE = "none"
    NORMAL = "normal"   # >
    ASYNC = "async"     # >>
    CROSS = "cross"     # x


class ArrowBody:
    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"
    BOLD = "bold"
    HIDDEN = "hidden"


class ArrowPart:
    FULL = "full"
    TOP = "top"
    BOTTOM = "bottom"


class ArrowDecoration:
    NONE = "none"
    CIRCLE = "circle"


@dataclass
class ArrowConfig:
    """Both ends and the body of one arrow.

    ``head1`` / ``decoration1`` belong to the start of the line and
    ``head2`` / ``decoration2`` to its end.

    Attributes:
        head1: Head at the start (:class:`ArrowHead`).
        head2: Head at the end.
        body: Line style (:class:`ArrowBody`).
        part: Full or half head (``/`` and ``\\`` dressings).
        decoration1: Circle at the start.
        decoration2: Circle at the end.
        color: Colour from a ``[#color]`` modifier.
        length: Number of ``-`` in the body.
    """
    head1: str = ArrowHead.NONE
    head2: str = ArrowHead.NORMAL
    body: str = ArrowBody.SOLID
    part: str = ArrowPart.FULL
    decoration1: str = ArrowDecoration.NONE
    decoration2: str = ArrowDecoration.NONE
    color: Optional[str] = None
    length: int = 1

    @property
    def is_reverse(self) -> bool:
        """True for ``<-`` style arrows that point at their left operand."""
        return self.head1 != ArrowHead.NONE and self.head2 == ArrowHead.NONE

    @property
    def is_bidirectional(self) -> bool:
        return self.head1 != ArrowHead.NONE and self.head2 != ArrowHead.NONE

    def reversed(self) -> "ArrowConfig":
        """The same arrow drawn from its other end."""
        return replace(
            self,
            head1=self.head2, head2=self.head1,
            decoration1=self.decoration2, decoration2=self.decoration1,
        )


_LEFT_DRESSINGS = ("<<", "//", "\\\\", "<", "/", "\\")
_RIGHT_DRESSINGS = (">>", "//", "\\\\", ">", "/", "\\")
_MODIFIER_RE = re.compile(r"\[([^\]]*)\]")

_BODY_FROM_LINE_STYLE = {
    LineStyle.DASHED: ArrowBody.DASHED,
    LineStyle.DOTTED: ArrowBody.DOTTED,
    LineStyle.BOLD: ArrowBody.BOLD,
    LineStyle.HIDDEN: ArrowBody.HIDDEN,
}


def _dressing_head(dressing: str) -> str:
    if not dressing:
        return ArrowHead.NONE
    if dressing in ("<<", ">>"):
        return ArrowHead.ASYNC
    return ArrowHead.NORMAL


def _dressing_part(dressing: str, right: bool) -> str:
    if "\\" in dressing:
        return ArrowPart.TOP if right else ArrowPart.BOTTOM
    if "/" in dressing:
        return ArrowPart.BOTTOM if right else ArrowPart.TOP
    return ArrowPart.FULL


def _peel(text: str) -> Tuple[str, str, str, str, str]:
    """Split *text* into (decor1, left dressing, body, right dressing, decor2)."""
    decor1 = decor2 = ""
    if text[:1] in ("o", "x"):
        decor1, text = text[0], text[1:]
    if text[-1:] in ("o", "x"):
        decor2, text = text[-1], text[:-1]
    left = next((d for d in _LEFT_DRESSINGS if text.startswith(d)), "")
    text = text[len(left):]
    right = next((d for d in _RIGHT_DRESSINGS if text.endswith(d)), "")
    if right:
        text = text[:-len(right)]
    return decor1, left, text, right, decor2


def parse_arrow(text: Optional[str]) -> ArrowConfig:
    """Parse a PlantUML sequence arrow.

    Args:
        text: Arrow token such as ``->``, ``<<--``, ``o->x`` or
            ``-[#red]>``.

    Returns:
        The parsed :class:`ArrowConfig`; a default solid ``->`` arrow when
        *text* is empty or has no dashes.
    """
    config = ArrowConfig()
    if not text or "-" not in text:
        return config

    arrow = text.strip()
    modifiers = {}
    for m in _MODIFIER_RE.finditer(arrow):
        modifiers.update(parse_bracket_style(m.group(1)))
    arrow = _MODIFIER_RE.sub("", arrow)

    decor1, left, body, right, decor2 = _peel(arrow)
    config.length = body.count("-")
    config.body = ArrowBody.DOTTED if config.length >= 2 else ArrowBody.SOLID
    config.head1 = ArrowHead.NONE
    config.head2 = ArrowHead.NONE

    if decor1 == "o":
        config.decoration1 = ArrowDecoration.CIRCLE
    elif decor1 == "x":
        config.head1 = ArrowHead.CROSS
    if decor2 == "o":
        config.decoration2 = ArrowDecoration.CIRCLE
    elif decor2 == "x":
        config.head2 = ArrowHead.CROSS

    if left and config.head1 == ArrowHead.NONE:
        config.head1 = _dressing_head(left)
    if right and config.head2 == ArrowHead.NONE:
        config.head2 = _dressing_head(right)
    if right:
        config.part = _dressing_part(right, True)
    elif left:
        config.part = _dressing_part(left, False)
    if not left and not right and config.head1 == config.head2 == ArrowHead.NONE:
        # bare "-" is treated as a plain forward arrow
        config.head2 = ArrowHead.NORMAL

    if modifiers.get("color"):
        config.color = modifiers["color"]
    if modifiers.get("line_style") in _BODY_FROM_LINE_STYLE:
        config.body = _BODY_FROM_LINE_STYLE[modifiers["line_style"]]
    return config
