"""pyfemlib.fem.evaluator
Per-element isoparametric evaluation at quadrature points.

An evaluator is bound to one element (node coordinates, family, order and
quadrature order). ``evaluate_at(ip)`` returns an immutable
``PointEvaluation``; nothing about the current point is stored on the
evaluator, so one evaluator can be shared between loops.

A non-positive Jacobian does not raise. The returned evaluation carries an
``InvalidGeometry`` error, ``dN`` is None and ``detJxW`` is NaN, so an
accumulation that forgets to check ``ok`` turns into NaN instead of a
silently wrong number.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Iterator, NamedTuple, Optional, Tuple, Union

import numpy as np

from pyfemlib.core.topology import boundary_family, check_supported, faces_of
from pyfemlib.errors import InvalidGeometry
from pyfemlib.fem import transform
from pyfemlib.fem.facets import side_map
from pyfemlib.fem.reference import ShapeFunctionRegistry, default_registry
from pyfemlib.integration.quadrature import QuadraturePoints, rule

logger = logging.getLogger(__name__)


def scale_gradient_by_detj_default() -> bool:
    """Legacy ``1/detJ`` gradient scaling; on unless the env var says 0/false/no."""
    return os.getenv("PYFEMLIB_SCALE_GRADIENT_BY_DETJ", "1").lower() not in {"0", "false", "no"}


def _frozen(a) -> np.ndarray:
    a = np.array(a, dtype=float)
    a.setflags(write=False)
    return a


@dataclass(frozen=True)
class PointEvaluation:
    index: int
    xi: np.ndarray = field(repr=False)
    weight: float
    N: np.ndarray = field(repr=False)
    dN_dxi: np.ndarray = field(repr=False)   # (nne, 3) reference gradient
    dN: Optional[np.ndarray] = field(repr=False)  # (nne, d) physical gradient
    detJ: float
    detJxW: float
    x: np.ndarray = field(repr=False)        # physical point, (d,)
    error: Optional[InvalidGeometry] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_status(self) -> None:
        if self.error is not None:
            raise self.error

    def shape_tensor(self) -> np.ndarray:
        """
        Strain-displacement blocks ``ST[a, b]`` (d x d) for node a and
        displacement direction b: row b holds ``dN[a, :]``, the rest is zero.
        """
        self.raise_for_status()
        nne, d = self.dN.shape
        ST = np.zeros((nne, d, d, d))
        for b in range(d):
            ST[:, b, b, :] = self.dN
        return ST


@dataclass(frozen=True)
class BoundaryPointEvaluation(PointEvaluation):
    normal: Optional[np.ndarray] = field(default=None, repr=False)  # unit, (d,)
    side: Optional[int] = None
    xi_boundary: Optional[np.ndarray] = field(default=None, repr=False)


class IntegrationResult(NamedTuple):
    value: Union[float, np.ndarray]
    errors: Tuple[InvalidGeometry, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


class ElementEvaluator:
    """
    Isoparametric evaluator of one volume (or manifold) element.

    Args:
        nodes: (nne, d) physical coordinates, 1 <= d <= 3.
        element_id: id reported in errors and log records.
        family, order: element type; must be in the supported catalogue.
        quad_order: requested quadrature order, < 0 for the family default.
        registry: shape-function registry, ``default_registry()`` if None.
        scale_gradient_by_detj: legacy extra ``1/detJ`` on ``dN``; None reads
            ``PYFEMLIB_SCALE_GRADIENT_BY_DETJ`` (default on).
    """

    def __init__(self, nodes, element_id, family, order: int = 0, quad_order: int = -1, *,
                 registry: Optional[ShapeFunctionRegistry] = None,
                 scale_gradient_by_detj: Optional[bool] = None):
        self.family = check_supported(family, order)
        self.order = int(order)
        self.element_id = element_id
        self.registry = registry if registry is not None else default_registry()
        self.basis = self.registry.get(self.family, self.order)

        X = np.array(nodes, dtype=float)
        if X.ndim == 1:
            X = X[:, None]
        if X.shape[0] != self.basis.nne:
            raise ValueError(f"element {element_id}: {X.shape[0]} nodes given, "
                             f"{self.family} order {self.order} has {self.basis.nne}")
        if not max(1, self.family.nsd) <= X.shape[1] <= 3:
            raise ValueError(f"element {element_id}: {X.shape[1]}-D coordinates cannot "
                             f"carry a {self.family} element")
        X.setflags(write=False)
        self.nodes = X
        self._X3 = transform.pad3(X)
        self.nsd = X.shape[1]

        if scale_gradient_by_detj is None:
            scale_gradient_by_detj = scale_gradient_by_detj_default()
        self.scale_gradient_by_detj = bool(scale_gradient_by_detj)
        self.quadrature = self._make_rule(quad_order)

    @classmethod
    def bind(cls, *args, **kwargs):
        return cls(*args, **kwargs)

    def _make_rule(self, quad_order: int) -> QuadraturePoints:
        return rule(self.family, quad_order)

    @property
    def is_manifold(self) -> bool:
        """True when the element lives in a higher dimensional space."""
        return self.nsd > self.family.nsd

    @property
    def n_points(self) -> int:
        return self.quadrature.n_points

    def __repr__(self):
        return (f"<{type(self).__name__} element={self.element_id} {self.family} "
                f"order={self.order} nqp={self.n_points}>")

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _point(self, ip: int):
        if not 0 <= ip < self.n_points:
            raise IndexError(f"integration point {ip} out of range ({self.n_points} points)")
        return self.quadrature.points[ip], float(self.quadrature.weights[ip])

    def _volume_gradient(self, dN_dxi):
        """(dN (nne, d) or None, detJ) at one point."""
        k = self.family.nsd
        if self.is_manifold:
            T = transform.tangents(self._X3, dN_dxi, k)
            detJ = transform.manifold_measure(T)
            if detJ <= 0.0:
                return None, detJ
            G = transform.manifold_gradient(dN_dxi, T)
        else:
            J = transform.jacobian_map(self._X3, self.basis.reference.nodes, dN_dxi)
            detJ = float(np.linalg.det(J))
            if detJ <= 0.0:
                return None, detJ
            G = transform.physical_gradient(dN_dxi, J)
        if self.scale_gradient_by_detj:
            G = G / detJ
        return _frozen(G[:, :self.nsd]), detJ

    def _invalid(self, ip: int, detJ: float, side: Optional[int] = None) -> InvalidGeometry:
        err = InvalidGeometry(self.element_id, ip, detJ, side)
        logger.warning(f"{err}")
        return err

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def evaluate_at(self, ip: int) -> PointEvaluation:
        ip = int(ip)
        xi, w = self._point(ip)
        N, dN_dxi = self.basis.shape_and_grad(xi)
        dN, detJ = self._volume_gradient(dN_dxi)
        error = None if dN is not None else self._invalid(ip, detJ)
        return PointEvaluation(
            index=ip, xi=xi[:max(1, self.family.nsd)], weight=w, N=N, dN_dxi=dN_dxi, dN=dN,
            detJ=detJ, detJxW=detJ * w if error is None else float("nan"),
            x=_frozen(transform.x_mapping(N, self.nodes)), error=error,
        )

    def points(self) -> Iterator[PointEvaluation]:
        for ip in range(self.n_points):
            yield self.evaluate_at(ip)

    def integrate(self, field: Union[None, Callable, np.ndarray] = None) -> IntegrationResult:
        """
        ``sum f * detJxW`` over the valid points.

        ``field`` is None (measure of the element), a callable of the
        physical point, or an array of nodal values interpolated with N.
        Points with invalid geometry are skipped and reported in ``errors``.
        """
        total = 0.0
        errors = []
        for pe in self.points():
            if not pe.ok:
                errors.append(pe.error)
                continue
            if field is None:
                f = 1.0
            elif callable(field):
                f = field(pe.x)
            else:
                f = pe.N @ np.asarray(field, dtype=float)
            total = total + np.asarray(f, dtype=float) * pe.detJxW
        if isinstance(total, np.ndarray) and total.ndim == 0:
            total = float(total)
        return IntegrationResult(total, tuple(errors))


class BoundaryElementEvaluator(ElementEvaluator):
    """
    Evaluator of one side of a volume element.

    The quadrature rule and tangents come from the side's own family
    (``boundary_family``); shape functions and gradients are those of the
    volume element at the mapped point. ``detJ`` is the length / area scale
    of the side, the stored ``normal`` is the outward unit normal.
    """

    def __init__(self, nodes, element_id, family, side: int, order: int = 0, quad_order: int = -1, *,
                 registry: Optional[ShapeFunctionRegistry] = None,
                 scale_gradient_by_detj: Optional[bool] = None):
        self.side = int(side)
        self.side_map = side_map(family, self.side)
        self.boundary_family, self.boundary_order = boundary_family(family, order)
        super().__init__(nodes, element_id, family, order, quad_order,
                         registry=registry, scale_gradient_by_detj=scale_gradient_by_detj)
        self.side_nodes = faces_of(self.family, self.order)[self.side]
        self.boundary_basis = self.registry.get(self.boundary_family, self.boundary_order)
        self._X_side = self._X3[list(self.side_nodes)]

    def _make_rule(self, quad_order: int) -> QuadraturePoints:
        return rule(self.boundary_family, quad_order)

    def _side_normal(self, xi_b, dN_dxi):
        """(normal, detJ) of the side; normal is not yet normalised."""
        k = self.boundary_family.nsd
        if k == 0:
            t = transform.tangents(self._X3, dN_dxi, 1)[0]
            sign = -1.0 if self.side == 0 else 1.0
            return sign * t / np.linalg.norm(t), 1.0
        _, dNb = self.boundary_basis.shape_and_grad(xi_b)
        T = transform.tangents(self._X_side, dNb, k)
        if k == 2:
            n = np.cross(T[0], T[1])
        elif self.is_manifold:
            n = np.cross(T[0], transform.surface_normal(transform.tangents(self._X3, dN_dxi, 2)))
        else:
            n = transform.edge_normal_2d(T[0])
        return n, float(np.linalg.norm(n))

    def evaluate_at(self, ip: int) -> BoundaryPointEvaluation:
        ip = int(ip)
        xi_b, w = self._point(ip)
        k = self.boundary_family.nsd
        xi = self.side_map.apply(xi_b[:k])[0]
        N, dN_dxi = self.basis.shape_and_grad(xi)

        dN, detJ_vol = self._volume_gradient(dN_dxi)
        normal, detJ = None, detJ_vol
        if dN is None:
            error = self._invalid(ip, detJ_vol, self.side)
        else:
            n, detJ = self._side_normal(xi_b, dN_dxi)
            if detJ <= 0.0:
                error = self._invalid(ip, detJ, self.side)
                dN = None
            else:
                error = None
                normal = _frozen((n / np.linalg.norm(n))[:self.nsd])

        return BoundaryPointEvaluation(
            index=ip, xi=_frozen(xi[:self.family.nsd]), weight=w, N=N, dN_dxi=dN_dxi, dN=dN,
            detJ=detJ, detJxW=detJ * w if error is None else float("nan"),
            x=_frozen(transform.x_mapping(N, self.nodes)), error=error,
            normal=normal, side=self.side, xi_boundary=xi_b[:max(1, k)],
        )
