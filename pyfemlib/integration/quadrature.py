"""pyfemlib.integration.quadrature
Gauss-type rules on every reference element (any order q >= 0).

A requested order ``q`` uses ``q + 1`` points per direction and integrates
polynomials of total degree ``2q + 1`` exactly. Simplex rules are collapsed
(Duffy) products with Gauss-Jacobi points in the collapsed directions.
"""
# pyfemlib.integration.quadrature
from dataclasses import dataclass, field
from functools import lru_cache

import numpy as np
from numpy.polynomial.legendre import leggauss
from scipy.special import roots_jacobi

from pyfemlib.core.topology import ElementFamily

_F = ElementFamily

# q used when the caller asks for order < 0; enough for products of the
# family's own shape functions
DEFAULT_ORDER = {
    _F.POINT: 0,
    _F.LINE: 3,
    _F.TRIANGLE: 3,
    _F.QUADRILATERAL: 3,
    _F.TETRAHEDRON: 3,
    _F.HEXAHEDRON: 3,
}

_MEASURE = {
    _F.POINT: 1.0,
    _F.LINE: 2.0,
    _F.TRIANGLE: 0.5,
    _F.QUADRILATERAL: 4.0,
    _F.TETRAHEDRON: 1.0 / 6.0,
    _F.HEXAHEDRON: 8.0,
}


@dataclass(frozen=True)
class QuadraturePoints:
    family: ElementFamily
    order: int
    points: np.ndarray = field(repr=False)    # (n, 3), zero padded
    weights: np.ndarray = field(repr=False)   # (n,)

    @property
    def degree(self) -> int:
        """Total polynomial degree integrated exactly."""
        return 0 if self.family is _F.POINT else 2 * self.order + 1

    @property
    def n_points(self) -> int:
        return self.weights.shape[0]

    def __iter__(self):
        return iter(zip(self.points, self.weights))

    def __len__(self):
        return self.n_points


def reference_measure(family) -> float:
    """Length / area / volume of the reference element."""
    return _MEASURE[ElementFamily.coerce(family)]


# -------------------------------------------------------------------------
# 1-D building blocks
# -------------------------------------------------------------------------
def gauss_legendre(n: int):
    if n < 1:
        raise ValueError(n)
    return leggauss(n)  # (points, weights)


def _gl01(n: int):
    """Gauss-Legendre nodes and weights mapped to [0,1]."""
    xi, w = gauss_legendre(n)
    return 0.5 * (xi + 1.0), 0.5 * w


def _gj01(n: int, alpha: int):
    """Nodes/weights on [0,1] for the weight (1-u)^alpha."""
    x, w = roots_jacobi(n, alpha, 0)
    return 0.5 * (x + 1.0), w / 2.0 ** (alpha + 1)


def _pad(pts: np.ndarray) -> np.ndarray:
    out = np.zeros((pts.shape[0], 3))
    out[:, :pts.shape[1]] = pts
    return out


# -------------------------------------------------------------------------
# Per-family rules
# -------------------------------------------------------------------------
def _line(n):
    xi, w = gauss_legendre(n)
    return xi[:, None], w


def _quad(n):
    xi, wi = gauss_legendre(n)
    pts = np.array([[x, y] for x in xi for y in xi])
    wts = np.array([wx * wy for wx in wi for wy in wi])
    return pts, wts


def _hex(n):
    xi, wi = gauss_legendre(n)
    pts = np.array([[x, y, z] for x in xi for y in xi for z in xi])
    wts = np.array([wx * wy * wz for wx in wi for wy in wi for wz in wi])
    return pts, wts


def _tri(n):
    u, wu = _gj01(n, 1)
    v, wv = _gl01(n)
    pts, wts = [], []
    for i, ui in enumerate(u):
        for j, vj in enumerate(v):
            pts.append([ui, vj * (1.0 - ui)])
            wts.append(wu[i] * wv[j])
    return np.array(pts), np.array(wts)


def _tet(n):
    u, wu = _gj01(n, 2)
    v, wv = _gj01(n, 1)
    w, ww = _gl01(n)
    pts, wts = [], []
    for i, ui in enumerate(u):
        for j, vj in enumerate(v):
            for k, wk in enumerate(w):
                pts.append([ui, vj * (1.0 - ui), wk * (1.0 - ui) * (1.0 - vj)])
                wts.append(wu[i] * wv[j] * ww[k])
    return np.array(pts), np.array(wts)


_BUILDERS = {
    _F.LINE: _line,
    _F.TRIANGLE: _tri,
    _F.QUADRILATERAL: _quad,
    _F.TETRAHEDRON: _tet,
    _F.HEXAHEDRON: _hex,
}


@lru_cache(maxsize=None)
def _rule(family: ElementFamily, order: int) -> QuadraturePoints:
    if family is _F.POINT:
        pts, wts = np.zeros((1, 3)), np.ones(1)
    else:
        pts, wts = _BUILDERS[family](order + 1)
        pts = _pad(np.asarray(pts, dtype=float))
        wts = np.asarray(wts, dtype=float)
    pts.setflags(write=False)
    wts.setflags(write=False)
    return QuadraturePoints(family, order, pts, wts)


def rule(family, order: int = -1) -> QuadraturePoints:
    """
    Quadrature points of ``family``.

    Args:
        family: ElementFamily member or its name.
        order: requested order q; q < 0 picks ``DEFAULT_ORDER[family]``.

    Raises:
        UnsupportedElement: unknown family.
    """
    fam = ElementFamily.coerce(family)
    q = DEFAULT_ORDER[fam] if int(order) < 0 else int(order)
    if fam is _F.POINT:
        q = 0
    return _rule(fam, q)
