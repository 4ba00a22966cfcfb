import threading

import numpy as np
import pytest
import sympy as sp
from numpy.testing import assert_allclose

from pyfemlib.core.topology import ElementFamily, ReferenceElement, catalogue, reference_element
from pyfemlib.errors import SingularInterpolationMatrix, UnsupportedElement
from pyfemlib.fem.reference import ShapeFunctionRegistry, get_reference
from pyfemlib.fem.reference.solver import derive_coefficients, monomial_exponents

F = ElementFamily


def _random_points(family, n=7, seed=0):
    rng = np.random.default_rng(seed)
    pts = np.zeros((n, 3))
    k = family.nsd
    if family in (F.TRIANGLE, F.TETRAHEDRON):
        raw = rng.dirichlet(np.ones(k + 1), size=n)
        pts[:, :k] = raw[:, :k]
    else:
        pts[:, :k] = rng.uniform(-1.0, 1.0, size=(n, k))
    return pts


@pytest.mark.parametrize("family,order", catalogue())
def test_kronecker_delta(family, order):
    ref = get_reference(family, order)
    N, _ = ref.tabulate(ref.reference.nodes)
    assert_allclose(N, np.eye(ref.nne), atol=1e-12)


@pytest.mark.parametrize("family,order", catalogue())
def test_partition_of_unity(family, order):
    ref = get_reference(family, order)
    N, dN = ref.tabulate(_random_points(family))
    assert_allclose(N.sum(axis=1), 1.0, atol=1e-12)
    assert_allclose(dN.sum(axis=1), 0.0, atol=1e-12)


@pytest.mark.parametrize("family,order", catalogue())
def test_reproduces_reference_coordinates(family, order):
    """sum_a N_a xi_a == xi: the basis contains the linear functions."""
    ref = get_reference(family, order)
    pts = _random_points(family, seed=3)
    N, dN = ref.tabulate(pts)
    assert_allclose(N @ ref.reference.nodes, pts, atol=1e-12)
    k = family.nsd
    grad_xi = np.einsum("pai,aj->pji", dN, ref.reference.nodes)
    assert_allclose(grad_xi[:, :k, :k], np.broadcast_to(np.eye(k), grad_xi[:, :k, :k].shape),
                    atol=1e-12)


def test_serendipity_sizes():
    assert monomial_exponents(F.QUADRILATERAL, 1).shape == (8, 3)
    assert monomial_exponents(F.HEXAHEDRON, 1).shape == (20, 3)
    # no bubble terms
    quad = {tuple(e) for e in monomial_exponents(F.QUADRILATERAL, 1)}
    assert (2, 2, 0) not in quad
    hexa = {tuple(e) for e in monomial_exponents(F.HEXAHEDRON, 1)}
    assert (2, 2, 0) not in hexa and (1, 1, 1) in hexa


@pytest.mark.parametrize("family,order", [(F.LINE, 2), (F.TRIANGLE, 1), (F.QUADRILATERAL, 1)])
def test_matches_exact_rational_basis(family, order):
    ref = reference_element(family, order)
    exps = monomial_exponents(family, order)
    xi, eta, zeta = sp.symbols("xi eta zeta")
    monos = [xi ** int(a) * eta ** int(b) * zeta ** int(c) for a, b, c in exps]
    nodes = [[sp.nsimplify(v) for v in row] for row in ref.nodes.tolist()]
    A = sp.Matrix([[m.subs({xi: p[0], eta: p[1], zeta: p[2]}) for m in monos] for p in nodes])
    C = A.inv()
    basis = [sum(C[j, i] * monos[j] for j in range(len(monos))) for i in range(len(monos))]

    pt = (sp.Rational(1, 5), sp.Rational(1, 7), 0)
    exact = np.array([float(b.subs({xi: pt[0], eta: pt[1], zeta: pt[2]})) for b in basis])
    dexact = np.array([float(sp.diff(b, xi).subs({xi: pt[0], eta: pt[1], zeta: pt[2]})) for b in basis])

    sf = get_reference(family, order)
    assert_allclose(sf.shape([0.2, 1.0 / 7.0]), exact, atol=1e-13)
    assert_allclose(sf.grad([0.2, 1.0 / 7.0])[:, 0], dexact, atol=1e-13)


def test_quadratic_triangle_closed_form():
    sf = get_reference("Triangle", 1)
    r, s = 0.3, 0.2
    L0 = 1.0 - r - s
    expected = [L0 * (2 * L0 - 1), r * (2 * r - 1), s * (2 * s - 1), 4 * r * L0, 4 * r * s, 4 * s * L0]
    assert_allclose(sf.shape((r, s)), expected, atol=1e-13)


def test_point_lookups_are_read_only_and_cached():
    sf = get_reference("Hexahedron", 0)
    N = sf.shape([0.1, 0.2, 0.3])
    assert not N.flags.writeable
    assert sf.shape((0.1, 0.2, 0.3)) is N
    with pytest.raises(ValueError):
        N[0] = 1.0


def test_point_cache_is_bounded():
    sf = get_reference("Quadrilateral", 0)
    limit = type(sf)._at.cache_info().maxsize
    assert limit is not None
    pts = np.random.default_rng(3).uniform(-1.0, 1.0, size=(limit + 500, 2))
    for p in pts:
        sf.shape(p)
    assert type(sf)._at.cache_info().currsize <= limit
    xi, eta = pts[0]
    expected = 0.25 * np.array([(1 - xi) * (1 - eta), (1 + xi) * (1 - eta),
                                (1 + xi) * (1 + eta), (1 - xi) * (1 + eta)])
    assert_allclose(sf.shape(pts[0]), expected, atol=1e-13)


def test_singular_node_layout():
    nodes = np.array([[0.0, 0, 0], [0.0, 0, 0], [0.0, 1, 0]])
    with pytest.raises(SingularInterpolationMatrix) as info:
        derive_coefficients(ReferenceElement(F.TRIANGLE, 0, nodes))
    assert info.value.rank == 2


def test_unsupported_order():
    with pytest.raises(UnsupportedElement):
        get_reference("Tetrahedron", 2)


def test_lazy_registry_is_shared_between_threads():
    reg = ShapeFunctionRegistry(use_disk_cache=False)
    assert not reg.is_built
    found = []

    def worker():
        found.append(reg.get("Hexahedron", 1))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert reg.is_built
    assert len({id(sf) for sf in found}) == 1
    assert len(reg) == 12
    assert (F.LINE, 2) in reg and ("Line", 3) not in reg
