"""pyfemlib.core.topology
Element families, reference node layouts and local side/edge tables.

Every table below uses 0-based local node indices and the node ordering of
``reference_element``; the shape functions, the boundary maps and the mesh
connectivity all follow the same ordering.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Tuple

import numpy as np

from pyfemlib.errors import UnsupportedElement


class ElementFamily(enum.Enum):
    POINT = "Point"
    LINE = "Line"
    TRIANGLE = "Triangle"
    QUADRILATERAL = "Quadrilateral"
    TETRAHEDRON = "Tetrahedron"
    HEXAHEDRON = "Hexahedron"

    @property
    def nsd(self) -> int:
        """Dimension of the reference domain."""
        return _NSD[self]

    @property
    def is_simplex(self) -> bool:
        return self in (ElementFamily.LINE, ElementFamily.TRIANGLE,
                        ElementFamily.TETRAHEDRON)

    @classmethod
    def coerce(cls, value) -> "ElementFamily":
        """Accept a member, its value ('Triangle') or its name ('triangle')."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if value.lower() in (member.value.lower(), member.name.lower()):
                    return member
        raise UnsupportedElement(value)

    def __str__(self):
        return self.value


_NSD = {
    ElementFamily.POINT: 0,
    ElementFamily.LINE: 1,
    ElementFamily.TRIANGLE: 2,
    ElementFamily.QUADRILATERAL: 2,
    ElementFamily.TETRAHEDRON: 3,
    ElementFamily.HEXAHEDRON: 3,
}

SUPPORTED_ORDERS: Dict[ElementFamily, Tuple[int, ...]] = {
    ElementFamily.POINT: (0,),
    ElementFamily.LINE: (0, 1, 2),
    ElementFamily.TRIANGLE: (0, 1),
    ElementFamily.QUADRILATERAL: (0, 1),
    ElementFamily.TETRAHEDRON: (0, 1),
    ElementFamily.HEXAHEDRON: (0, 1),
}


def catalogue():
    """All supported (family, order) pairs, in a fixed order."""
    return [(fam, order) for fam, orders in SUPPORTED_ORDERS.items() for order in orders]


def check_supported(family, order: int) -> ElementFamily:
    fam = ElementFamily.coerce(family)
    if int(order) not in SUPPORTED_ORDERS[fam]:
        raise UnsupportedElement(fam, order)
    return fam


# ---------------------------------------------------------------------------
# Reference node layouts
# ---------------------------------------------------------------------------
_HEX_CORNERS = [(-1, -1, -1), (1, -1, -1), (1, 1, -1), (-1, 1, -1),
                (-1, -1, 1), (1, -1, 1), (1, 1, 1), (-1, 1, 1)]

# Corner pairs whose mid points are the quadratic nodes, in node order.
_TET_EDGES = ((0, 1), (1, 2), (2, 0), (0, 3), (1, 3), (2, 3))
_HEX_EDGES = ((0, 1), (1, 2), (2, 3), (3, 0), (4, 5), (5, 6), (6, 7), (7, 4),
              (0, 4), (1, 5), (2, 6), (3, 7))


def _with_midpoints(corners, pairs):
    pts = [tuple(float(c) for c in p) for p in corners]
    for a, b in pairs:
        pts.append(tuple(0.5 * (pts[a][k] + pts[b][k]) for k in range(3)))
    return pts


_NODES = {
    (ElementFamily.POINT, 0): [(0.0, 0.0, 0.0)],
    (ElementFamily.LINE, 0): [(-1.0, 0, 0), (1.0, 0, 0)],
    (ElementFamily.LINE, 1): [(-1.0, 0, 0), (1.0, 0, 0), (0.0, 0, 0)],
    (ElementFamily.LINE, 2): [(-1.0, 0, 0), (1.0, 0, 0), (-1.0 / 3.0, 0, 0), (1.0 / 3.0, 0, 0)],
    (ElementFamily.TRIANGLE, 0): [(0, 0, 0), (1, 0, 0), (0, 1, 0)],
    (ElementFamily.TRIANGLE, 1): _with_midpoints([(0, 0, 0), (1, 0, 0), (0, 1, 0)],
                                                 ((0, 1), (1, 2), (2, 0))),
    (ElementFamily.QUADRILATERAL, 0): [(-1, -1, 0), (1, -1, 0), (1, 1, 0), (-1, 1, 0)],
    (ElementFamily.QUADRILATERAL, 1): _with_midpoints([(-1, -1, 0), (1, -1, 0), (1, 1, 0), (-1, 1, 0)],
                                                      ((0, 1), (1, 2), (2, 3), (3, 0))),
    (ElementFamily.TETRAHEDRON, 0): [(0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1)],
    (ElementFamily.TETRAHEDRON, 1): _with_midpoints([(0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1)],
                                                    _TET_EDGES),
    (ElementFamily.HEXAHEDRON, 0): _HEX_CORNERS,
    (ElementFamily.HEXAHEDRON, 1): _with_midpoints(_HEX_CORNERS, _HEX_EDGES),
}


@dataclass(frozen=True)
class ReferenceElement:
    family: ElementFamily
    order: int
    nodes: np.ndarray = field(repr=False)   # (nne, 3), zero padded beyond nsd

    @property
    def nsd(self) -> int:
        return self.family.nsd

    @property
    def nne(self) -> int:
        return self.nodes.shape[0]


@lru_cache(maxsize=None)
def reference_element(family, order: int = 0) -> ReferenceElement:
    fam = check_supported(family, order)
    nodes = np.array(_NODES[(fam, int(order))], dtype=float)
    nodes.setflags(write=False)
    return ReferenceElement(fam, int(order), nodes)


def _coerce_key(family, order):
    fam = check_supported(family, order)
    return fam, int(order)


# ---------------------------------------------------------------------------
# Side (face) and edge tables
# ---------------------------------------------------------------------------
# Sides are listed with outward orientation: the corner cycle gives the
# outward normal by the right-hand rule; quadratic sides append their mid
# nodes in the same cycle.
_SIDES = {
    (ElementFamily.LINE, 0): ((0,), (1,)),
    (ElementFamily.LINE, 1): ((0,), (1,)),
    (ElementFamily.LINE, 2): ((0,), (1,)),
    (ElementFamily.TRIANGLE, 0): ((0, 1), (1, 2), (2, 0)),
    (ElementFamily.TRIANGLE, 1): ((0, 1, 3), (1, 2, 4), (2, 0, 5)),
    (ElementFamily.QUADRILATERAL, 0): ((0, 1), (1, 2), (2, 3), (3, 0)),
    (ElementFamily.QUADRILATERAL, 1): ((0, 1, 4), (1, 2, 5), (2, 3, 6), (3, 0, 7)),
    (ElementFamily.TETRAHEDRON, 0): ((0, 2, 1), (0, 1, 3), (1, 2, 3), (0, 3, 2)),
    (ElementFamily.TETRAHEDRON, 1): ((0, 2, 1, 6, 5, 4), (0, 1, 3, 4, 8, 7),
                                     (1, 2, 3, 5, 9, 8), (0, 3, 2, 7, 9, 6)),
    (ElementFamily.HEXAHEDRON, 0): ((0, 3, 2, 1), (4, 5, 6, 7), (0, 1, 5, 4),
                                    (7, 6, 2, 3), (1, 2, 6, 5), (4, 7, 3, 0)),
    (ElementFamily.HEXAHEDRON, 1): ((0, 3, 2, 1, 11, 10, 9, 8), (4, 5, 6, 7, 12, 13, 14, 15),
                                    (0, 1, 5, 4, 8, 17, 12, 16), (7, 6, 2, 3, 14, 18, 10, 19),
                                    (1, 2, 6, 5, 9, 18, 13, 17), (4, 7, 3, 0, 15, 19, 11, 16)),
}


def _split_edges(pairs, first_mid):
    out = []
    for k, (a, b) in enumerate(pairs):
        m = first_mid + k
        out.extend(((a, m), (m, b)))
    return tuple(out)


_EDGES = {
    (ElementFamily.LINE, 0): ((0, 1),),
    (ElementFamily.LINE, 1): ((0, 2), (2, 1)),
    (ElementFamily.LINE, 2): ((0, 2), (2, 3), (3, 1)),
    (ElementFamily.TRIANGLE, 0): ((0, 1), (1, 2), (2, 0)),
    (ElementFamily.TRIANGLE, 1): ((0, 1, 3), (1, 2, 4), (2, 0, 5)),
    (ElementFamily.QUADRILATERAL, 0): ((0, 1), (1, 2), (2, 3), (3, 0)),
    (ElementFamily.QUADRILATERAL, 1): ((0, 1, 4), (1, 2, 5), (2, 3, 6), (3, 0, 7)),
    (ElementFamily.TETRAHEDRON, 0): _TET_EDGES,
    (ElementFamily.TETRAHEDRON, 1): _split_edges(_TET_EDGES, 4),
    (ElementFamily.HEXAHEDRON, 0): _HEX_EDGES,
    (ElementFamily.HEXAHEDRON, 1): _split_edges(_HEX_EDGES, 8),
}


def faces_of(family, order: int = 0) -> Tuple[Tuple[int, ...], ...]:
    """Local node lists of every side of the element, outward oriented."""
    key = _coerce_key(family, order)
    if key not in _SIDES:
        raise UnsupportedElement(key[0], key[1], "element has no sides")
    return _SIDES[key]


def edges_of(family, order: int = 0) -> Tuple[Tuple[int, ...], ...]:
    """Local node lists of every edge of the element."""
    key = _coerce_key(family, order)
    if key not in _EDGES:
        raise UnsupportedElement(key[0], key[1], "element has no edges")
    return _EDGES[key]


def side_count(family) -> int:
    return len(faces_of(family, 0))


_BOUNDARY_FAMILY = {
    ElementFamily.LINE: ElementFamily.POINT,
    ElementFamily.TRIANGLE: ElementFamily.LINE,
    ElementFamily.QUADRILATERAL: ElementFamily.LINE,
    ElementFamily.TETRAHEDRON: ElementFamily.TRIANGLE,
    ElementFamily.HEXAHEDRON: ElementFamily.QUADRILATERAL,
}


def boundary_family(family, order: int = 0) -> Tuple[ElementFamily, int]:
    """(family, order) of the sides of a volume element.

    The order is kept, except for lines whose end points are always order 0.
    """
    fam, order = _coerce_key(family, order)
    if fam not in _BOUNDARY_FAMILY:
        raise UnsupportedElement(fam, order, "element has no boundary")
    bfam = _BOUNDARY_FAMILY[fam]
    return (bfam, 0) if bfam is ElementFamily.POINT else (bfam, order)


# nodes-per-element -> (family, order), keyed by coordinate dimension
_SHAPE_TABLE = {
    1: {2: (ElementFamily.LINE, 0), 3: (ElementFamily.LINE, 1), 4: (ElementFamily.LINE, 2)},
    2: {3: (ElementFamily.TRIANGLE, 0), 4: (ElementFamily.QUADRILATERAL, 0),
        6: (ElementFamily.TRIANGLE, 1), 8: (ElementFamily.QUADRILATERAL, 1)},
    3: {4: (ElementFamily.TETRAHEDRON, 0), 8: (ElementFamily.HEXAHEDRON, 0),
        10: (ElementFamily.TETRAHEDRON, 1), 20: (ElementFamily.HEXAHEDRON, 1)},
}


def family_from_shape(nsd: int, nne: int) -> Tuple[ElementFamily, int]:
    """Infer (family, order) from coordinate dimension and nodes per element."""
    try:
        return _SHAPE_TABLE[int(nsd)][int(nne)]
    except KeyError:
        raise UnsupportedElement(f"{nne}-node element in {nsd}-D") from None
