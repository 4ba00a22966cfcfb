"""pyfemlib.fem.transform
Reference -> physical mapping pieces shared by the volume and boundary
evaluators. Everything works on 3-column (zero padded) coordinates.
"""
import numpy as np

_I3 = np.eye(3)


def pad3(x) -> np.ndarray:
    """Zero-pad the trailing axis of ``x`` to length 3."""
    x = np.asarray(x, dtype=float)
    if x.shape[-1] == 3:
        return x
    out = np.zeros(x.shape[:-1] + (3,))
    out[..., :x.shape[-1]] = x
    return out


def x_mapping(N, X) -> np.ndarray:
    """Physical point ``sum_a N_a X_a``."""
    return np.asarray(N) @ np.asarray(X, dtype=float)


def jacobian_map(X_phys, X_ref, dN_dxi) -> np.ndarray:
    """
    ``J = I + (X_phys - X_ref)^T dN/dxi`` (all padded to 3 columns).

    Written as a perturbation of the identity so axes the element does not
    span keep a unit row/column and ``det`` stays meaningful.
    """
    D = pad3(X_phys) - pad3(X_ref)
    return _I3 + D.T @ dN_dxi


def tangents(X, dN_dxi, k: int) -> np.ndarray:
    """(k, 3) covariant basis vectors ``dx/ds_j`` for the first k reference axes."""
    return (pad3(X).T @ dN_dxi[:, :k]).T


def manifold_measure(T) -> float:
    """Length / area scale of k tangents (k = 0, 1, 2)."""
    k = T.shape[0]
    if k == 0:
        return 1.0
    if k == 1:
        return float(np.linalg.norm(T[0]))
    if k == 2:
        return float(np.linalg.norm(np.cross(T[0], T[1])))
    return float(np.linalg.det(T))


def physical_gradient(dN_dxi, J) -> np.ndarray:
    """``dN/dx = dN/dxi . J^-1`` (nne, 3)."""
    return dN_dxi @ np.linalg.inv(J)


def manifold_gradient(dN_dxi, T) -> np.ndarray:
    """Tangential gradient through the pseudo-inverse ``(T T^t)^-1 T``."""
    k = T.shape[0]
    if k == 0:
        return np.zeros((dN_dxi.shape[0], 3))
    G = T @ T.T
    return dN_dxi[:, :k] @ np.linalg.solve(G, T)


def edge_normal_2d(t) -> np.ndarray:
    """Right-hand rotation of an in-plane tangent: ``(t_y, -t_x, 0)``."""
    return np.array([t[1], -t[0], 0.0])


def surface_normal(T) -> np.ndarray:
    """Unit normal of a 2-D manifold spanned by two tangents."""
    n = np.cross(T[0], T[1])
    return n / np.linalg.norm(n)
