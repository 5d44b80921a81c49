"""
plantuml/common.py

Helpers shared by every PlantUML dialect parser and emitter: source line
cleanup, name-to-code derivation, note indentation, the relationship
decorator vocabulary and the draw.io arrow-end mapping for it.
"""

from __future__ import annotations

import re
from collections import deque
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from drawio.builder import Cell, Geometry, build_style
from drawio.colors import normalize_color


# ───────────────────────────────────────────────
# Source lines
# ───────────────────────────────────────────────

_SKIP_RE = re.compile(
    r"^(?:@start\w*|@end\w*|skinparam\b|scale\b|!|allowmixing\b|allow_mixing\b)",
    re.IGNORECASE,
)
_SKINPARAM_BLOCK_RE = re.compile(r"^skinparam\b[^{]*\{\s*$", re.IGNORECASE)
_STYLE_BLOCK_START_RE = re.compile(r"^<style>\s*$", re.IGNORECASE)
_STYLE_BLOCK_END_RE = re.compile(r"^</style>\s*$", re.IGNORECASE)
_INLINE_BLOCK_COMMENT_RE = re.compile(r"/'.*?'/")


def iter_source_lines(text: str) -> Iterator[Tuple[str, str]]:
    """Yield ``(stripped, raw)`` pairs for the significant lines of *text*.

    Comments (``'...`` and ``/' ... '/``), ``@start``/``@end`` markers,
    ``skinparam`` lines and blocks, ``<style>`` blocks, ``scale`` and
    preprocessor (``!``) lines are dropped.  Blank lines are yielded as
    ``("", raw)`` so multiline collectors can keep them.

    Args:
        text: Raw PlantUML source.

    Yields:
        Tuple of (stripped line, original line with trailing whitespace
        removed).
    """
    in_block_comment = False
    skin_depth = 0
    in_style = False

    for raw in text.replace("\r\n", "\n").replace("\r", "\n").split("\n"):
        raw = raw.rstrip()
        line = raw.strip()

        if in_block_comment:
            if "'/" in line:
                in_block_comment = False
                line = line[line.index("'/") + 2:].strip()
                if not line:
                    continue
                raw = line
            else:
                continue

        if "/'" in line:
            line = _INLINE_BLOCK_COMMENT_RE.sub("", line).strip()
            if "/'" in line:
                in_block_comment = True
                line = line[:line.index("/'")].strip()
            if not line:
                continue
            raw = line

        if in_style:
            if _STYLE_BLOCK_END_RE.match(line):
                in_style = False
            continue
        if _STYLE_BLOCK_START_RE.match(line):
            in_style = True
            continue

        if skin_depth:
            skin_depth += line.count("{") - line.count("}")
            continue
        if _SKINPARAM_BLOCK_RE.match(line):
            skin_depth = 1
            continue

        if line.startswith("'"):
            continue
        if _SKIP_RE.match(line):
            continue
        yield line, raw


def has_start_marker(text: str, *names: str) -> bool:
    """Return True when *text* carries ``@start<name>`` for one of *names*."""
    for name in names:
        if re.search(rf"^\s*@start{name}\b", text, re.IGNORECASE | re.MULTILINE):
            return True
    return False


def name_to_code(name: str) -> str:
    """Derive an entity code from a display name.

    Everything that is not alphanumeric, ``.`` or ``_`` is dropped, so
    ``"Guest User"`` becomes ``GuestUser``.
    """
    return re.sub(r"[^\w.]", "", name)


def dedent_note(lines: List[str]) -> str:
    """Join multiline note lines after stripping their common indentation.

    Blank lines are kept but do not take part in the minimum.
    """
    indents = [len(ln) - len(ln.lstrip()) for ln in lines if ln.strip()]
    cut = min(indents) if indents else 0
    body = [ln[cut:] if ln.strip() else "" for ln in lines]
    while body and not body[0]:
        body.pop(0)
    while body and not body[-1]:
        body.pop()
    return "\n".join(body)


def unquote(text: str) -> str:
    """Drop one pair of surrounding double quotes."""
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        return text[1:-1]
    return text


def html_label(text: str) -> str:
    r"""Turn PlantUML line breaks (``\n`` escapes and newlines) into ``<br>``."""
    return text.replace("\\n", "<br>").replace("\n", "<br>")


def text_lines(text: str) -> List[str]:
    r"""Split a label on PlantUML ``\n`` escapes and real newlines."""
    return text.replace("\\n", "\n").split("\n")


# ───────────────────────────────────────────────
# Relationship vocabulary (class, usecase, component)
# ───────────────────────────────────────────────

class LineStyle:
    SOLID = "solid"     # -
    DASHED = "dashed"   # .
    BOLD = "bold"       # =
    DOTTED = "dotted"   # ~
    HIDDEN = "hidden"


class Decor:
    """Relationship end decorations."""
    NONE = "none"
    EXTENDS = "extends"                  # <|  |>  ^
    COMPOSITION = "composition"          # *
    AGGREGATION = "aggregation"          # o
    ARROW = "arrow"                      # <  >
    ARROW_TRIANGLE = "arrow_triangle"    # <<  >>
    NOT_NAVIGABLE = "not_navigable"      # x
    CROWFOOT = "crowfoot"                # }  {
    CIRCLE_CROWFOOT = "circle_crowfoot"  # }o  o{
    DOUBLE_LINE = "double_line"          # ||
    CIRCLE_LINE = "circle_line"          # |o  o|
    LINE_CROWFOOT = "line_crowfoot"      # }|  |{
    CIRCLE = "circle"                    # 0
    CIRCLE_FILL = "circle_fill"          # @
    CIRCLE_CONNECT = "circle_connect"    # 0)  (0
    PARENTHESIS = "parenthesis"          # )  (
    SQUARE = "square"                    # #
    PLUS = "plus"                        # +
    HALF_ARROW_UP = "half_arrow_up"      # \\
    HALF_ARROW_DOWN = "half_arrow_down"  # //


# Longest first; order matters for matching.
LEFT_DECORS: List[Tuple[str, str]] = [
    ("<|", Decor.EXTENDS),
    ("<<", Decor.ARROW_TRIANGLE),
    ("}o", Decor.CIRCLE_CROWFOOT),
    ("}|", Decor.LINE_CROWFOOT),
    ("}", Decor.CROWFOOT),
    ("|o", Decor.CIRCLE_LINE),
    ("||", Decor.DOUBLE_LINE),
    ("0)", Decor.CIRCLE_CONNECT),
    ("0", Decor.CIRCLE),
    ("@", Decor.CIRCLE_FILL),
    (")", Decor.PARENTHESIS),
    ("<", Decor.ARROW),
    ("*", Decor.COMPOSITION),
    ("o", Decor.AGGREGATION),
    ("x", Decor.NOT_NAVIGABLE),
    ("#", Decor.SQUARE),
    ("+", Decor.PLUS),
    ("^", Decor.EXTENDS),
]

RIGHT_DECORS: List[Tuple[str, str]] = [
    ("|>", Decor.EXTENDS),
    (">>", Decor.ARROW_TRIANGLE),
    ("o{", Decor.CIRCLE_CROWFOOT),
    ("|{", Decor.LINE_CROWFOOT),
    ("{", Decor.CROWFOOT),
    ("o|", Decor.CIRCLE_LINE),
    ("||", Decor.DOUBLE_LINE),
    ("(0", Decor.CIRCLE_CONNECT),
    ("0", Decor.CIRCLE),
    ("@", Decor.CIRCLE_FILL),
    ("(", Decor.PARENTHESIS),
    (">", Decor.ARROW),
    ("*", Decor.COMPOSITION),
    ("o", Decor.AGGREGATION),
    ("x", Decor.NOT_NAVIGABLE),
    ("#", Decor.SQUARE),
    ("+", Decor.PLUS),
    ("^", Decor.EXTENDS),
    ("//", Decor.HALF_ARROW_DOWN),
    ("\\\\", Decor.HALF_ARROW_UP),
]

LEFT_DECOR_MAP: Dict[str, str] = dict(LEFT_DECORS)
RIGHT_DECOR_MAP: Dict[str, str] = dict(RIGHT_DECORS)

# Regex alternations, longest-first, for embedding in link patterns.
LEFT_DECOR_RE = "|".join(re.escape(s) for s, _ in LEFT_DECORS)
RIGHT_DECOR_RE = "|".join(re.escape(s) for s, _ in RIGHT_DECORS)

_DECOR_ENDS: Dict[str, Tuple[str, int]] = {
    Decor.EXTENDS: ("block", 0),
    Decor.COMPOSITION: ("diamond", 1),
    Decor.AGGREGATION: ("diamond", 0),
    Decor.ARROW: ("open", 1),
    Decor.ARROW_TRIANGLE: ("block", 1),
    Decor.NOT_NAVIGABLE: ("cross", 1),
    Decor.CROWFOOT: ("ERmany", 0),
    Decor.CIRCLE_CROWFOOT: ("ERmandOne", 0),
    Decor.DOUBLE_LINE: ("ERmandOne", 0),
    Decor.CIRCLE_LINE: ("ERzeroToOne", 0),
    Decor.LINE_CROWFOOT: ("ERoneToMany", 0),
    Decor.CIRCLE: ("oval", 0),
    Decor.CIRCLE_FILL: ("oval", 1),
    Decor.CIRCLE_CONNECT: ("oval", 0),
    Decor.PARENTHESIS: ("halfCircle", 0),
    Decor.SQUARE: ("box", 1),
    Decor.PLUS: ("cross", 0),
    Decor.HALF_ARROW_UP: ("openThin", 0),
    Decor.HALF_ARROW_DOWN: ("openThin", 0),
}


def apply_decor(style: Dict[str, Any], decor: str, end: str) -> None:
    """Set ``<end>Arrow``/``<end>Fill`` on *style* for a decoration.

    Args:
        style: Style mapping to update in place.
        decor: One of the :class:`Decor` values.
        end: ``"start"`` or ``"end"``.
    """
    if decor in _DECOR_ENDS:
        arrow, fill = _DECOR_ENDS[decor]
        style[f"{end}Arrow"] = arrow
        style[f"{end}Fill"] = fill


def relation_style(
    left_decor: str,
    right_decor: str,
    line_style: str,
    color: Optional[str] = None,
) -> Dict[str, Any]:
    """Base edge style for a class/description relationship."""
    style: Dict[str, Any] = {
        "html": 1,
        "rounded": 0,
        "endArrow": "none",
        "endFill": 0,
        "startArrow": "none",
        "startFill": 0,
    }
    if line_style == LineStyle.DASHED:
        style["dashed"] = 1
    elif line_style == LineStyle.DOTTED:
        style["dashed"] = 1
        style["dashPattern"] = "1 2"
    elif line_style == LineStyle.BOLD:
        style["strokeWidth"] = 2
    elif line_style == LineStyle.HIDDEN:
        style["strokeColor"] = "none"
    apply_decor(style, right_decor, "end")
    apply_decor(style, left_decor, "start")
    if color:
        style["strokeColor"] = normalize_color(color)
    return style


def line_style_of(body: str) -> str:
    """Line style for an arrow body made of ``-``, ``.``, ``=`` or ``~``."""
    if "." in body:
        return LineStyle.DASHED
    if "=" in body:
        return LineStyle.BOLD
    if "~" in body:
        return LineStyle.DOTTED
    return LineStyle.SOLID


def parse_bracket_style(text: Optional[str]) -> Dict[str, Any]:
    """Parse a link modifier such as ``[#red,dashed,thickness=2]``.

    Returns:
        Dict with optional ``color`` and ``line_style`` keys; unknown tokens
        are ignored.
    """
    result: Dict[str, Any] = {}
    if not text:
        return result
    for token in re.split(r"[,;]", text.strip("[]")):
        token = token.strip()
        low = token.lower()
        if not token:
            continue
        if token.startswith("#"):
            result["color"] = token
        elif low == "dashed":
            result["line_style"] = LineStyle.DASHED
        elif low == "dotted":
            result["line_style"] = LineStyle.DOTTED
        elif low in ("bold", "plain") or low.startswith("thickness"):
            if low != "plain":
                result["line_style"] = LineStyle.BOLD
        elif low == "hidden":
            result["line_style"] = LineStyle.HIDDEN
    return result


DIRECTION_WORDS: Dict[str, str] = {
    "l": "left", "le": "left", "left": "left",
    "r": "right", "ri": "right", "right": "right",
    "u": "up", "up": "up",
    "d": "down", "do": "down", "down": "down",
}


def note_style(color: Optional[str] = None) -> Dict[str, Any]:
    """Folded-corner note style shared by the grid emitters."""
    return {
        "shape": "note",
        "whiteSpace": "wrap",
        "html": 1,
        "size": 14,
        "align": "left",
        "spacingLeft": 4,
        "fillColor": normalize_color(color) if color else "#FFF2CC",
        "strokeColor": "#D6B656",
        "fontSize": 12,
    }


NOTE_CONNECTOR_STYLE: Dict[str, Any] = {
    "html": 1,
    "dashed": 1,
    "dashPattern": "1 1",
    "endArrow": "none",
    "startArrow": "none",
}


EDGE_LABEL_STYLE: Dict[str, Any] = {
    "edgeLabel": None,
    "html": 1,
    "align": "center",
    "verticalAlign": "middle",
    "resizable": 0,
    "points": "[]",
}


def edge_label(cell_id: str, edge_id: str, text: str, position: float,
               style: Optional[Dict[str, Any]] = None) -> Cell:
    """End label riding on an edge.

    Args:
        cell_id: Id of the new label cell.
        edge_id: Id of the edge it belongs to.
        text: Label text.
        position: Relative offset along the edge, -1 (source) to 1 (target).
        style: Style mapping; defaults to :data:`EDGE_LABEL_STYLE`.
    """
    width = max(20, max(len(ln) for ln in text_lines(text)) * 7 + 8)
    return Cell(
        id=cell_id, value=html_label(text), style=build_style(style or EDGE_LABEL_STYLE),
        vertex=True, parent=edge_id,
        geometry=Geometry(x=position, y=0, width=width, height=16, relative=True),
    )


# ───────────────────────────────────────────────
# Layering
# ───────────────────────────────────────────────

def rank_layers(nodes: List[str], links: Iterable[Tuple[str, str]]) -> List[List[str]]:
    """Group *nodes* into layers by topological rank (Kahn's algorithm).

    Nodes with no incoming link form layer 0; each link pushes its target
    one layer past its source.  Duplicate links and the second direction
    of a two-way pair are ignored, so simple back-edges do not create
    cycles.  Nodes left over by a real cycle go to layer 0.

    Args:
        nodes: Node keys, in the order they should appear within a layer.
        links: ``(source, target)`` pairs; pairs with an unknown end or a
            self-loop are skipped.

    Returns:
        Non-empty layers in rank order.
    """
    if not nodes:
        return []
    node_set = set(nodes)
    adj: Dict[str, List[str]] = {n: [] for n in nodes}
    in_degree: Dict[str, int] = {n: 0 for n in nodes}
    seen_pairs = set()
    for src, dst in links:
        if src not in node_set or dst not in node_set or src == dst:
            continue
        pair = frozenset((src, dst))
        if pair in seen_pairs:
            continue
        seen_pairs.add(pair)
        adj[src].append(dst)
        in_degree[dst] += 1

    rank: Dict[str, int] = {}
    queue = deque(n for n in nodes if in_degree[n] == 0)
    if not queue:
        queue.append(nodes[0])
    for n in queue:
        rank[n] = 0

    visited = set()
    while queue:
        n = queue.popleft()
        if n in visited:
            continue
        visited.add(n)
        for nb in adj[n]:
            if nb in visited:
                continue
            rank[nb] = max(rank.get(nb, 0), rank[n] + 1)
            in_degree[nb] -= 1
            if in_degree[nb] <= 0:
                queue.append(nb)

    layers: List[List[str]] = [[] for _ in range(max(rank.values(), default=0) + 1)]
    for n in nodes:
        layers[rank.get(n, 0)].append(n)
    return [layer for layer in layers if layer]
