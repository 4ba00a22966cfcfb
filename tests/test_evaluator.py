import dataclasses
import logging

import numpy as np
import pytest
from numpy.testing import assert_allclose

from pyfemlib.core.topology import ElementFamily, edges_of
from pyfemlib.errors import InvalidGeometry
from pyfemlib.fem.evaluator import ElementEvaluator

F = ElementFamily


def with_midpoints(corners, family, order):
    """Physical nodes of a straight-sided element of the given order."""
    X = np.asarray(corners, dtype=float)
    if order == 0:
        return X
    if family is F.LINE:
        a, b = X[0], X[1]
        if order == 1:
            return np.vstack([X, 0.5 * (a + b)])
        return np.vstack([X, a + (b - a) / 3.0, a + 2.0 * (b - a) / 3.0])
    mids = [0.5 * (X[i] + X[j]) for i, j in edges_of(family, 0)]
    return np.vstack([X, mids])


SINGLE_ELEMENTS = [
    # family, corners, exact measure, element orders, quadrature orders
    (F.LINE, [[1.0], [4.0]], 3.0, (0, 1, 2), range(4)),
    (F.TRIANGLE, [[1.0, 1.0], [3.0, 1.0], [1.0, 3.0]], 2.0, (0, 1), range(4)),
    (F.QUADRILATERAL, [[0.0, 0.0], [1.0, 0.0], [2.0, 2.0], [1.0, 2.0]], 2.0, (0, 1), range(3)),
    (F.TETRAHEDRON, [[0.0, 0, 0], [2.0, 0, 0], [0.0, 2, 0], [0.0, 0, 2]], 8.0 / 6.0, (0, 1), range(3)),
    (F.HEXAHEDRON, [[0.0, 0, 0], [2.0, 0, 0], [2.0, 2, 0], [0.0, 2, 0],
                    [0.0, 0, 2], [2.0, 0, 2], [2.0, 2, 2], [0.0, 2, 2]], 8.0, (0, 1), range(3)),
]


def _cases():
    for family, corners, exact, orders, qorders in SINGLE_ELEMENTS:
        for order in orders:
            for qo in qorders:
                yield pytest.param(family, corners, exact, order, qo,
                                   id=f"{family}-p{order}-q{qo}")


@pytest.mark.parametrize("family,corners,exact,order,qo", list(_cases()))
def test_single_element_measure(family, corners, exact, order, qo):
    X = with_midpoints(corners, family, order)
    ev = ElementEvaluator(X, 7, family, order, qo)
    total = 0.0
    for ip in range(ev.n_points):
        pe = ev.evaluate_at(ip)
        assert pe.ok
        total += pe.detJxW
    assert np.isclose(total, exact, rtol=1e-12)
    assert np.isclose(ev.integrate().value, exact, rtol=1e-12)


def test_line_node_order():
    X = with_midpoints([[1.0], [4.0]], F.LINE, 2)
    assert_allclose(X.ravel(), [1.0, 4.0, 2.0, 3.0])
    X = with_midpoints([[1.0], [4.0]], F.LINE, 1)
    assert_allclose(X.ravel(), [1.0, 4.0, 2.5])


def test_bind_alias_and_centroid():
    X = [[1.0, 1.0], [3.0, 1.0], [1.0, 3.0]]
    ev = ElementEvaluator.bind(X, 0, "Triangle", 0, 2)
    first = sum(pe.x * pe.detJxW for pe in ev.points())
    assert_allclose(first / 2.0, [5.0 / 3.0, 5.0 / 3.0], rtol=1e-12)
    # nodal values of x interpolate exactly
    res = ev.integrate(np.array([1.0, 3.0, 1.0]))
    assert np.isclose(res.value, 2.0 * 5.0 / 3.0, rtol=1e-12)
    res = ev.integrate(lambda x: x[0] * x[1])
    assert res.ok and np.isclose(res.value, 2.0 * (5.0 / 3.0) ** 2 - 2.0 / 9.0, rtol=1e-12)


def test_inverted_element_reports_invalid_geometry(caplog):
    X = [[0.0, 0.0], [0.0, 1.0], [1.0, 0.0]]      # clockwise
    ev = ElementEvaluator(X, 42, "Triangle", 0, 1)
    with caplog.at_level(logging.WARNING, logger="pyfemlib.fem.evaluator"):
        pe = ev.evaluate_at(0)
    assert not pe.ok
    assert isinstance(pe.error, InvalidGeometry)
    assert pe.error.element_id == 42 and pe.error.index == 0
    assert pe.detJ < 0.0
    assert pe.dN is None and np.isnan(pe.detJxW)
    assert pe.N.shape == (3,)
    with pytest.raises(InvalidGeometry):
        pe.raise_for_status()
    assert "element 42" in caplog.text

    res = ev.integrate()
    assert not res.ok
    assert len(res.errors) == ev.n_points
    assert res.value == 0.0


def test_degenerate_element_is_invalid():
    X = [[0.0, 0.0], [1.0, 1.0], [2.0, 2.0]]      # collinear
    pe = ElementEvaluator(X, 0, "Triangle").evaluate_at(0)
    assert not pe.ok


LINEAR_FIELD = np.array([3.0, 2.0])


def _gradient(ev, values):
    return ev.evaluate_at(0).dN.T @ values


def test_gradient_exact_without_legacy_scaling():
    X = np.array([[1.0, 1.0], [3.0, 1.0], [1.0, 3.0]])
    u = X @ LINEAR_FIELD
    ev = ElementEvaluator(X, 0, "Triangle", scale_gradient_by_detj=False)
    assert_allclose(_gradient(ev, u), LINEAR_FIELD, rtol=1e-12)


def test_legacy_scaling_divides_by_detj():
    X = np.array([[1.0, 1.0], [3.0, 1.0], [1.0, 3.0]])
    u = X @ LINEAR_FIELD
    ev = ElementEvaluator(X, 0, "Triangle")
    assert ev.scale_gradient_by_detj
    pe = ev.evaluate_at(0)
    assert np.isclose(pe.detJ, 4.0)
    assert_allclose(pe.dN.T @ u, LINEAR_FIELD / 4.0, rtol=1e-12)


def test_legacy_scaling_from_environment(monkeypatch):
    monkeypatch.setenv("PYFEMLIB_SCALE_GRADIENT_BY_DETJ", "0")
    X = np.array([[1.0, 1.0], [3.0, 1.0], [1.0, 3.0]])
    ev = ElementEvaluator(X, 0, "Triangle")
    assert not ev.scale_gradient_by_detj
    assert_allclose(_gradient(ev, X @ LINEAR_FIELD), LINEAR_FIELD, rtol=1e-12)


@pytest.mark.parametrize("order", [0, 1])
def test_hexahedron_gradient(order):
    corners = [[0.0, 0, 0], [2.0, 0, 0], [2.0, 2, 0], [0.0, 2, 0],
               [0.0, 0, 2], [2.0, 0, 2], [2.0, 2, 2], [0.0, 2, 2]]
    X = with_midpoints(corners, F.HEXAHEDRON, order) * [1.0, 0.5, 3.0]
    g = np.array([1.0, 2.0, 3.0])
    ev = ElementEvaluator(X, 0, "Hexahedron", order, scale_gradient_by_detj=False)
    for pe in ev.points():
        assert_allclose(pe.dN.T @ (X @ g), g, rtol=1e-11)


def test_manifold_triangle_area():
    X = [[0.0, 0, 0], [2.0, 0, 0], [0.0, 2, 2]]
    ev = ElementEvaluator(X, 0, "Triangle")
    assert ev.is_manifold
    assert np.isclose(ev.integrate().value, 2.0 * np.sqrt(2.0), rtol=1e-12)


@pytest.mark.parametrize("X,length", [([[0.0, 0.0], [3.0, 4.0]], 5.0),
                                      ([[0.0, 0.0], [0.0, 2.0]], 2.0),
                                      ([[1.0, 1.0, 1.0], [2.0, 2.0, 2.0]], np.sqrt(3.0))])
def test_manifold_line_length(X, length):
    assert np.isclose(ElementEvaluator(X, 0, "Line").integrate().value, length, rtol=1e-12)


def test_manifold_tangential_gradient():
    X = np.array([[0.0, 0.0], [3.0, 4.0]])
    ev = ElementEvaluator(X, 0, "Line", scale_gradient_by_detj=False)
    pe = ev.evaluate_at(0)
    # u = distance along the line
    assert_allclose(pe.dN.T @ np.array([0.0, 5.0]), [0.6, 0.8], rtol=1e-12)


def test_point_element():
    ev = ElementEvaluator([[1.0, 2.0]], 0, "Point")
    pe = ev.evaluate_at(0)
    assert pe.detJ == 1.0 and pe.detJxW == 1.0
    assert_allclose(pe.x, [1.0, 2.0])


def test_shape_tensor():
    X = [[1.0, 1.0], [3.0, 1.0], [1.0, 3.0]]
    pe = ElementEvaluator(X, 0, "Triangle").evaluate_at(0)
    ST = pe.shape_tensor()
    assert ST.shape == (3, 2, 2, 2)
    for a in range(3):
        for b in range(2):
            assert_allclose(ST[a, b, b], pe.dN[a])
            assert np.all(ST[a, b, 1 - b] == 0.0)


def test_evaluation_is_immutable():
    pe = ElementEvaluator([[0.0], [1.0]], 0, "Line").evaluate_at(0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        pe.detJ = 2.0
    with pytest.raises(ValueError):
        pe.dN[0, 0] = 1.0


def test_bad_arguments():
    with pytest.raises(ValueError):
        ElementEvaluator([[0.0, 0.0], [1.0, 0.0]], 0, "Triangle")
    with pytest.raises(ValueError):
        ElementEvaluator([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0], [1.0, 1.0]], 0, "Tetrahedron")
    ev = ElementEvaluator([[0.0], [1.0]], 0, "Line", 0, 1)
    with pytest.raises(IndexError):
        ev.evaluate_at(ev.n_points)
