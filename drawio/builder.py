"""
drawio/builder.py

Primitive builders for draw.io (mxGraph) XML.

Every dialect emitter produces a flat list of :class:`Cell` records; this
module owns escaping, style serialisation, cell serialisation, the
source-carrying ``UserObject`` group and the ``<mxfile>`` document frame.
All functions are pure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple


Point = Tuple[float, float]


class MalformedCell(ValueError):
    """A cell was requested with an empty id (an emitter bug, not bad input)."""


# ═══════════════════════════════════════════════════════════
# Escaping
# ═══════════════════════════════════════════════════════════

_ESCAPES: List[Tuple[str, str]] = [
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
    ("\n", "&#xa;"),
    ("\r", "&#xd;"),
]


def xml_escape(text: Any) -> str:
    """Escape *text* for use inside a double-quoted XML attribute."""
    if text is None:
        return ""
    text = str(text)
    for raw, entity in _ESCAPES:
        text = text.replace(raw, entity)
    return text


def xml_unescape(text: str) -> str:
    """Reverse :func:`xml_escape`.

    ``&amp;`` is replaced last so that an escaped entity such as
    ``&amp;lt;`` comes back as the literal ``&lt;``.
    """
    for raw, entity in reversed(_ESCAPES[1:]):
        text = text.replace(entity, raw)
    text = text.replace("&#10;", "\n").replace("&#13;", "\r")
    return text.replace("&amp;", "&")


def build_style(style_map: Optional[Dict[str, Any]]) -> str:
    """Serialise a style mapping to a draw.io style string.

    Args:
        style_map: Ordered ``key -> value`` mapping.  A ``None`` value
            emits the bare key (e.g. ``text;``, ``ellipse;``).

    Returns:
        ``"k1=v1;k2=v2;"`` (always ``;``-terminated), or ``""`` when empty.
    """
    if not style_map:
        return ""
    parts = []
    for key, value in style_map.items():
        if value is None:
            parts.append(key)
        else:
            parts.append(f"{key}={_fmt(value)}")
    return ";".join(parts) + ";"


def merge_style(base: str, **overrides: Any) -> str:
    """Return *base* with *overrides* replacing or appending keys."""
    style = parse_style(base)
    for key, value in overrides.items():
        style[key] = value
    return build_style(style)


def parse_style(style: str) -> Dict[str, Any]:
    """Parse a draw.io style string back into an ordered mapping."""
    result: Dict[str, Any] = {}
    for part in style.split(";"):
        if not part:
            continue
        if "=" in part:
            key, value = part.split("=", 1)
            result[key] = value
        else:
            result[part] = None
    return result


def _fmt(value: Any) -> str:
    """Format a number without a spurious ``.0`` and with at most 2 decimals."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{round(value, 2):g}"
    return str(value)


# ═══════════════════════════════════════════════════════════
# Cell records
# ═══════════════════════════════════════════════════════════

@dataclass
class Geometry:
    """Geometry of a cell.

    Vertices use ``x``/``y``/``width``/``height``.  Edges are ``relative``;
    a freestanding edge (not attached to vertices) carries
    ``source_point``/``target_point``.  ``points`` are routing waypoints.
    """
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    relative: bool = False
    source_point: Optional[Point] = None
    target_point: Optional[Point] = None
    points: List[Point] = field(default_factory=list)


@dataclass
class Cell:
    """One ``<mxCell>`` record produced by an emitter.

    Attributes:
        id: Unique cell id within one conversion.
        value: Label text, stored raw and escaped once on serialisation.
        style: Serialised style string (see :func:`build_style`).
        vertex: True for shapes.
        edge: True for connectors.
        parent: Id of the containing cell (group id, container, or ``"1"``).
        source: Source vertex id for attached edges.
        target: Target vertex id for attached edges.
        geometry: Placement, or None.
    """
    id: str
    value: str = ""
    style: str = ""
    vertex: bool = False
    edge: bool = False
    parent: str = "1"
    source: Optional[str] = None
    target: Optional[str] = None
    geometry: Optional[Geometry] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise MalformedCell("Cell id is required")

    def to_xml(self) -> str:
        """Serialise to an ``<mxCell>`` element string."""
        attrs = [f'id="{xml_escape(self.id)}"']
        if self.value:
            attrs.append(f'value="{xml_escape(self.value)}"')
        if self.style:
            attrs.append(f'style="{xml_escape(self.style)}"')
        if self.vertex:
            attrs.append('vertex="1"')
        if self.edge:
            attrs.append('edge="1"')
        if self.parent:
            attrs.append(f'parent="{xml_escape(self.parent)}"')
        if self.source:
            attrs.append(f'source="{xml_escape(self.source)}"')
        if self.target:
            attrs.append(f'target="{xml_escape(self.target)}"')

        geo = self.geometry
        if geo is None:
            return f"<mxCell {' '.join(attrs)}/>"
        return f"<mxCell {' '.join(attrs)}>\n{_geometry_xml(geo, self.edge)}\n</mxCell>"


def _geometry_xml(geo: Geometry, is_edge: bool) -> str:
    if is_edge:
        inner = []
        if geo.source_point is not None:
            x, y = geo.source_point
            inner.append(f'    <mxPoint x="{_fmt(x)}" y="{_fmt(y)}" as="sourcePoint"/>')
        if geo.target_point is not None:
            x, y = geo.target_point
            inner.append(f'    <mxPoint x="{_fmt(x)}" y="{_fmt(y)}" as="targetPoint"/>')
        if geo.points:
            pts = "\n".join(
                f'      <mxPoint x="{_fmt(x)}" y="{_fmt(y)}"/>' for x, y in geo.points
            )
            inner.append(f'    <Array as="points">\n{pts}\n    </Array>')
        if not inner:
            return '  <mxGeometry relative="1" as="geometry"/>'
        body = "\n".join(inner)
        return f'  <mxGeometry relative="1" as="geometry">\n{body}\n  </mxGeometry>'

    attrs = [
        f'x="{_fmt(geo.x)}"',
        f'y="{_fmt(geo.y)}"',
        f'width="{_fmt(geo.width)}"',
        f'height="{_fmt(geo.height)}"',
    ]
    if geo.relative:
        attrs.append('relative="1"')
    return f"  <mxGeometry {' '.join(attrs)} as=\"geometry\"/>"


def vertex(
    cell_id: str,
    value: str,
    style: str,
    parent: str,
    x: float,
    y: float,
    width: float,
    height: float,
) -> Cell:
    """Build a vertex cell with absolute (parent-relative) geometry."""
    return Cell(
        id=cell_id, value=value, style=style, vertex=True, parent=parent,
        geometry=Geometry(x=x, y=y, width=width, height=height),
    )


def edge(
    cell_id: str,
    value: str,
    style: str,
    parent: str,
    source: str,
    target: str,
    points: Optional[Iterable[Point]] = None,
) -> Cell:
    """Build an edge attached to two vertices."""
    return Cell(
        id=cell_id, value=value, style=style, edge=True, parent=parent,
        source=source, target=target,
        geometry=Geometry(relative=True, points=list(points or [])),
    )


def free_edge(
    cell_id: str,
    value: str,
    style: str,
    parent: str,
    source_point: Point,
    target_point: Point,
    points: Optional[Iterable[Point]] = None,
) -> Cell:
    """Build a freestanding edge between two absolute points."""
    return Cell(
        id=cell_id, value=value, style=style, edge=True, parent=parent,
        geometry=Geometry(
            relative=True, source_point=source_point,
            target_point=target_point, points=list(points or []),
        ),
    )


# ═══════════════════════════════════════════════════════════
# Ids
# ═══════════════════════════════════════════════════════════

class IdGenerator:
    """Sequential ``<prefix>-<n>`` ids, one instance per conversion."""

    def __init__(self, prefix: str = "puml"):
        self.prefix = prefix
        self.counter = 0

    def __call__(self) -> str:
        self.counter += 1
        return f"{self.prefix}-{self.counter}"


# ═══════════════════════════════════════════════════════════
# Framing
# ═══════════════════════════════════════════════════════════

def serialize_cells(cells: Iterable[Cell]) -> str:
    """Serialise cells one after another, newline separated."""
    return "\n".join(c.to_xml() for c in cells)


def bounding_box(cells: Iterable[Cell], parent: str) -> Tuple[float, float]:
    """Extent (width, height) of the cells placed directly under *parent*.

    Vertices contribute their bottom-right corner; freestanding edges
    contribute their end points and waypoints.  The origin is (0, 0).
    """
    width = 0.0
    height = 0.0
    for cell in cells:
        geo = cell.geometry
        if geo is None or cell.parent != parent:
            continue
        if cell.vertex:
            width = max(width, geo.x + geo.width)
            height = max(height, geo.y + geo.height)
        else:
            for pt in [geo.source_point, geo.target_point, *geo.points]:
                if pt is not None:
                    width = max(width, pt[0])
                    height = max(height, pt[1])
    return max(width, 1.0), max(height, 1.0)


def build_user_object(
    group_id: str,
    plantuml: str,
    children: str,
    width: float = 100,
    height: float = 100,
) -> str:
    """Build the non-editable group that carries the PlantUML source.

    The ``UserObject`` wraps only the group's own ``mxCell``; children are
    emitted as siblings that reference *group_id* as parent.

    Raises:
        MalformedCell: If *group_id* is empty.
    """
    if not group_id:
        raise MalformedCell("UserObject id is required")
    return (
        f'<UserObject label="" plantUml="{xml_escape(plantuml)}" id="{xml_escape(group_id)}">\n'
        f'  <mxCell style="group;editable=0;connectable=0;" vertex="1" parent="1">\n'
        f'    <mxGeometry x="0" y="0" width="{_fmt(width)}" height="{_fmt(height)}" as="geometry"/>\n'
        f"  </mxCell>\n"
        f"</UserObject>\n"
        f"{children}"
    )


def build_document(cells: str, name: str = "PlantUML Import") -> str:
    """Wrap serialised cells in the ``<mxfile>`` document frame."""
    return (
        "<mxfile>\n"
        f'  <diagram name="{xml_escape(name)}">\n'
        "    <mxGraphModel>\n"
        "      <root>\n"
        '        <mxCell id="0"/>\n'
        '        <mxCell id="1" parent="0"/>\n'
        f"{cells}\n"
        "      </root>\n"
        "    </mxGraphModel>\n"
        "  </diagram>\n"
        "</mxfile>"
    )
