"""pyfemlib.utils.meshgen
Structured box meshes for quick tests.
"""
import itertools

import numpy as np

from pyfemlib.core.mesh import Mesh
from pyfemlib.core.topology import ElementFamily

__all__ = ["structured_box", "box_nodes"]

# Kuhn split of the unit cube: one tetrahedron per permutation p of the axes,
# along the path 0 -> e_p0 -> e_p0 + e_p1 -> (1,1,1).
_KUHN = list(itertools.permutations(range(3)))


def _is_odd(p) -> bool:
    return sum(1 for i in range(3) for j in range(i + 1, 3) if p[i] > p[j]) % 2 == 1


def _per_axis(value, dim, dtype):
    arr = np.broadcast_to(np.asarray(value, dtype=dtype), (dim,)) if np.ndim(value) == 0 \
        else np.asarray(value, dtype=dtype)[:dim]
    if arr.shape != (dim,):
        raise ValueError(f"expected {dim} values, got {value!r}")
    return arr


def box_nodes(xmin, xmax, nx, dim: int) -> np.ndarray:
    """Lattice points of the box, x running fastest, then y, then z."""
    lo, hi = _per_axis(xmin, dim, float), _per_axis(xmax, dim, float)
    n = _per_axis(nx, dim, int)
    axes = [np.linspace(lo[a], hi[a], n[a] + 1) for a in range(dim)]
    grids = np.meshgrid(*axes, indexing="ij")
    return np.column_stack([g.ravel(order="F") for g in grids])


class _Lattice:
    def __init__(self, n):
        self.n = [int(v) + 1 for v in n] + [1] * (3 - len(n))

    def __call__(self, i, j=0, k=0):
        return i + self.n[0] * (j + self.n[1] * k)


def _lines(n):
    return np.array([[i, i + 1] for i in range(n[0])], dtype=np.int64)


def _quads(n):
    nid = _Lattice(n)
    elems = []
    for j in range(n[1]):
        for i in range(n[0]):
            elems.append([nid(i, j), nid(i + 1, j), nid(i + 1, j + 1), nid(i, j + 1)])
    return np.array(elems, dtype=np.int64)


def _hexes(n):
    nid = _Lattice(n)
    elems = []
    for k in range(n[2]):
        for j in range(n[1]):
            for i in range(n[0]):
                bottom = [nid(i, j, k), nid(i + 1, j, k), nid(i + 1, j + 1, k), nid(i, j + 1, k)]
                top = [nid(i, j, k + 1), nid(i + 1, j, k + 1), nid(i + 1, j + 1, k + 1), nid(i, j + 1, k + 1)]
                elems.append(bottom + top)
    return np.array(elems, dtype=np.int64)


def _split_quads(quads):
    """Two counter-clockwise triangles per quad along the n1-n3 diagonal."""
    tris = []
    for n1, n2, n3, n4 in quads:
        tris.append([n1, n2, n3])
        tris.append([n1, n3, n4])
    return np.array(tris, dtype=np.int64)


def _split_hexes(n):
    """Six positively oriented Kuhn tetrahedra per cell (conforming)."""
    nid = _Lattice(n)
    tets = []
    for k in range(n[2]):
        for j in range(n[1]):
            for i in range(n[0]):
                for p in _KUHN:
                    corner = [0, 0, 0]
                    path = [tuple(corner)]
                    for axis in p:
                        corner[axis] += 1
                        path.append(tuple(corner))
                    ids = [nid(i + a, j + b, k + c) for a, b, c in path]
                    if _is_odd(p):
                        ids[1], ids[2] = ids[2], ids[1]
                    tets.append(ids)
    return np.array(tets, dtype=np.int64)


def structured_box(xmin, xmax, nx, dim: int, *, simplex: bool = False, order: int = 0) -> Mesh:
    """
    Box ``[xmin, xmax]`` split into ``nx`` cells per axis.

    Args:
        xmin, xmax, nx: scalars or one value per axis.
        dim: 1 (lines), 2 (quads) or 3 (hexes).
        simplex: split cells into triangles / tetrahedra (ignored in 1-D).
        order: 0 linear, 1 quadratic (mid-edge nodes appended).
    """
    if dim not in (1, 2, 3):
        raise ValueError(f"dim must be 1, 2 or 3, got {dim}")
    n = _per_axis(nx, dim, int)
    if np.any(n < 1):
        raise ValueError(f"nx must be >= 1, got {nx}")
    nodes = box_nodes(xmin, xmax, n, dim)
    if dim == 1:
        family, elems = ElementFamily.LINE, _lines(n)
    elif dim == 2:
        family, elems = ((ElementFamily.TRIANGLE, _split_quads(_quads(n))) if simplex
                         else (ElementFamily.QUADRILATERAL, _quads(n)))
    else:
        family, elems = ((ElementFamily.TETRAHEDRON, _split_hexes(n)) if simplex
                         else (ElementFamily.HEXAHEDRON, _hexes(n)))

    mesh = Mesh(nodes, elems, family, 0)
    if order == 1:
        mesh = mesh.elevated()
    elif order != 0:
        raise ValueError(f"order must be 0 or 1, got {order}")
    return mesh
