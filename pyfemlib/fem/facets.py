"""pyfemlib.fem.facets
Affine maps from a side's own reference element into the volume reference
element, one per (family, side).

Each map is ``xi_vol = origin + s * axis_s (+ t * axis_t)`` and sends the
boundary reference nodes onto the volume nodes of that side in the order
given by ``topology.faces_of``, so the side orientation (and therefore the
outward normal) is the one of the face tables.
"""
from typing import NamedTuple, Tuple

import numpy as np

from pyfemlib.core.topology import ElementFamily, check_supported, side_count
from pyfemlib.errors import UnsupportedElement

_F = ElementFamily


class SideMap(NamedTuple):
    origin: Tuple[float, float, float]
    axes: Tuple[Tuple[float, float, float], ...]   # one per boundary coordinate

    def apply(self, points) -> np.ndarray:
        pts = np.atleast_2d(np.asarray(points, dtype=float))
        out = np.tile(np.asarray(self.origin, dtype=float), (pts.shape[0], 1))
        for j, axis in enumerate(self.axes):
            out += np.outer(pts[:, j], axis)
        return out

    @property
    def jacobian(self) -> np.ndarray:
        """(3, k) constant d(xi_vol)/d(s, t)."""
        return np.array(self.axes, dtype=float).reshape(-1, 3).T


SIDE_MAPS = {
    _F.LINE: (
        SideMap((-1.0, 0.0, 0.0), ()),
        SideMap((1.0, 0.0, 0.0), ()),
    ),
    # line reference s in [-1, 1]
    _F.TRIANGLE: (
        SideMap((0.5, 0.0, 0.0), ((0.5, 0.0, 0.0),)),
        SideMap((0.5, 0.5, 0.0), ((-0.5, 0.5, 0.0),)),
        SideMap((0.0, 0.5, 0.0), ((0.0, -0.5, 0.0),)),
    ),
    _F.QUADRILATERAL: (
        SideMap((0.0, -1.0, 0.0), ((1.0, 0.0, 0.0),)),
        SideMap((1.0, 0.0, 0.0), ((0.0, 1.0, 0.0),)),
        SideMap((0.0, 1.0, 0.0), ((-1.0, 0.0, 0.0),)),
        SideMap((-1.0, 0.0, 0.0), ((0.0, -1.0, 0.0),)),
    ),
    # triangle reference (s, t) in the unit simplex
    _F.TETRAHEDRON: (
        SideMap((0.0, 0.0, 0.0), ((0.0, 1.0, 0.0), (1.0, 0.0, 0.0))),
        SideMap((0.0, 0.0, 0.0), ((1.0, 0.0, 0.0), (0.0, 0.0, 1.0))),
        SideMap((1.0, 0.0, 0.0), ((-1.0, 1.0, 0.0), (-1.0, 0.0, 1.0))),
        SideMap((0.0, 0.0, 0.0), ((0.0, 0.0, 1.0), (0.0, 1.0, 0.0))),
    ),
    # quadrilateral reference (s, t) in [-1, 1]^2
    _F.HEXAHEDRON: (
        SideMap((0.0, 0.0, -1.0), ((0.0, 1.0, 0.0), (1.0, 0.0, 0.0))),
        SideMap((0.0, 0.0, 1.0), ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0))),
        SideMap((0.0, -1.0, 0.0), ((1.0, 0.0, 0.0), (0.0, 0.0, 1.0))),
        SideMap((0.0, 1.0, 0.0), ((1.0, 0.0, 0.0), (0.0, 0.0, -1.0))),
        SideMap((1.0, 0.0, 0.0), ((0.0, 1.0, 0.0), (0.0, 0.0, 1.0))),
        SideMap((-1.0, 0.0, 0.0), ((0.0, 1.0, 0.0), (0.0, 0.0, -1.0))),
    ),
}


def side_map(family, side: int) -> SideMap:
    fam = check_supported(family, 0)
    if fam not in SIDE_MAPS:
        raise UnsupportedElement(fam, None, "element has no sides")
    n = side_count(fam)
    if not 0 <= int(side) < n:
        raise IndexError(f"side {side} out of range for {fam} ({n} sides)")
    return SIDE_MAPS[fam][int(side)]


def map_to_volume(family, side: int, points) -> np.ndarray:
    """Boundary reference points (n, k) -> volume reference points (n, 3)."""
    return side_map(family, side).apply(points)
