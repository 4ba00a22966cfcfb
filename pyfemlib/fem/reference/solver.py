"""pyfemlib.fem.reference.solver
Nodal basis derivation by a Vandermonde solve over a fixed monomial set.

For every (family, order) a monomial set with exactly ``nne`` members is
chosen; ``A[i, j] = m_j(node_i)`` and the basis coefficients are the columns
of ``A^{-1}``, i.e. ``N_i = sum_j C[j, i] m_j``.
"""
import logging

import numba as nb
import numpy as np

from pyfemlib.core.topology import ElementFamily, ReferenceElement, check_supported
from pyfemlib.errors import SingularInterpolationMatrix

logger = logging.getLogger(__name__)

_F = ElementFamily

# Exponents (a, b, c) of xi^a * eta^b * zeta^c
_MONOMIALS = {
    (_F.POINT, 0): [(0, 0, 0)],
    (_F.LINE, 0): [(0, 0, 0), (1, 0, 0)],
    (_F.LINE, 1): [(0, 0, 0), (1, 0, 0), (2, 0, 0)],
    (_F.LINE, 2): [(0, 0, 0), (1, 0, 0), (2, 0, 0), (3, 0, 0)],
    (_F.TRIANGLE, 0): [(0, 0, 0), (1, 0, 0), (0, 1, 0)],
    (_F.TRIANGLE, 1): [(0, 0, 0), (1, 0, 0), (0, 1, 0),
                       (2, 0, 0), (1, 1, 0), (0, 2, 0)],
    (_F.QUADRILATERAL, 0): [(0, 0, 0), (1, 0, 0), (0, 1, 0), (1, 1, 0)],
    # serendipity: no xi^2 eta^2 bubble
    (_F.QUADRILATERAL, 1): [(0, 0, 0), (1, 0, 0), (0, 1, 0), (1, 1, 0),
                            (2, 0, 0), (0, 2, 0), (2, 1, 0), (1, 2, 0)],
    (_F.TETRAHEDRON, 0): [(0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1)],
    (_F.TETRAHEDRON, 1): [(0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1),
                          (1, 1, 0), (0, 1, 1), (1, 0, 1),
                          (2, 0, 0), (0, 2, 0), (0, 0, 2)],
    (_F.HEXAHEDRON, 0): [(0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1),
                         (1, 1, 0), (0, 1, 1), (1, 0, 1), (1, 1, 1)],
    # 20-node serendipity: trilinear terms plus the quadratic edge terms
    (_F.HEXAHEDRON, 1): [(0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1),
                         (1, 1, 0), (0, 1, 1), (1, 0, 1), (1, 1, 1),
                         (2, 0, 0), (0, 2, 0), (0, 0, 2),
                         (2, 1, 0), (2, 0, 1), (2, 1, 1),
                         (1, 2, 0), (0, 2, 1), (1, 2, 1),
                         (1, 0, 2), (0, 1, 2), (1, 1, 2)],
}


def monomial_exponents(family, order: int = 0) -> np.ndarray:
    """(nne, 3) integer exponent table of the monomial set."""
    fam = check_supported(family, order)
    exps = np.array(_MONOMIALS[(fam, int(order))], dtype=np.int64)
    exps.setflags(write=False)
    return exps


def vandermonde(exponents: np.ndarray, points: np.ndarray) -> np.ndarray:
    """``V[i, j] = m_j(points[i])``."""
    pts = np.asarray(points, dtype=float)
    return np.prod(pts[:, None, :] ** exponents[None, :, :], axis=2)


def derive_coefficients(reference: ReferenceElement) -> np.ndarray:
    """Coefficient matrix ``C`` with ``N_i = sum_j C[j, i] m_j``.

    Raises:
        SingularInterpolationMatrix: the monomial set is not unisolvent for
            the node layout.
    """
    exps = monomial_exponents(reference.family, reference.order)
    A = vandermonde(exps, reference.nodes)
    n = A.shape[0]
    rank = np.linalg.matrix_rank(A)
    if rank < n:
        raise SingularInterpolationMatrix(reference.family, reference.order, rank, n)
    C = np.linalg.solve(A, np.eye(n))
    C[np.abs(C) < 1e-14] = 0.0
    logger.debug(f"Derived {n} shape functions for {reference.family} order {reference.order}.")
    return C


# ---------------------------------------------------------------------------
# Tabulation kernel
# ---------------------------------------------------------------------------
@nb.njit(cache=True)
def _ipow(x, e):
    r = 1.0
    for _ in range(e):
        r *= x
    return r


@nb.njit(cache=True)
def _tabulate_kernel(exponents, coeffs, points, N, dN):
    """
    Fill N[p, i] and dN[p, i, d] for every point p and basis function i.
    """
    n_pts = points.shape[0]
    m = exponents.shape[0]
    mono = np.empty(m)
    dmono = np.empty((m, 3))
    for p in range(n_pts):
        for j in range(m):
            v = 1.0
            for d in range(3):
                v *= _ipow(points[p, d], exponents[j, d])
            mono[j] = v
            for d in range(3):
                e = exponents[j, d]
                if e == 0:
                    dmono[j, d] = 0.0
                    continue
                g = e * _ipow(points[p, d], e - 1)
                for k in range(3):
                    if k != d:
                        g *= _ipow(points[p, k], exponents[j, k])
                dmono[j, d] = g
        for i in range(m):
            s = 0.0
            g0 = 0.0
            g1 = 0.0
            g2 = 0.0
            for j in range(m):
                c = coeffs[j, i]
                s += c * mono[j]
                g0 += c * dmono[j, 0]
                g1 += c * dmono[j, 1]
                g2 += c * dmono[j, 2]
            N[p, i] = s
            dN[p, i, 0] = g0
            dN[p, i, 1] = g1
            dN[p, i, 2] = g2


def tabulate(exponents: np.ndarray, coeffs: np.ndarray, points):
    """
    Evaluate a basis at many reference points.

    Args:
        exponents: (nne, 3) monomial exponents.
        coeffs: (nne, nne) coefficient matrix from ``derive_coefficients``.
        points: (npts, k) reference coordinates, k <= 3 (zero padded).

    Returns:
        tuple: (N, dN) with shapes (npts, nne) and (npts, nne, 3).
    """
    pts = np.atleast_2d(np.asarray(points, dtype=np.float64))
    if pts.shape[1] < 3:
        pts = np.hstack([pts, np.zeros((pts.shape[0], 3 - pts.shape[1]))])
    pts = np.ascontiguousarray(pts[:, :3])
    m = exponents.shape[0]
    N = np.empty((pts.shape[0], m))
    dN = np.empty((pts.shape[0], m, 3))
    _tabulate_kernel(np.ascontiguousarray(exponents, dtype=np.int64),
                     np.ascontiguousarray(coeffs, dtype=np.float64), pts, N, dN)
    return N, dN
