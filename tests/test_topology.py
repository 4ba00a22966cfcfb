import numpy as np
import pytest
from numpy.testing import assert_allclose

from pyfemlib.core.topology import (ElementFamily, SUPPORTED_ORDERS, boundary_family, catalogue,
                                    check_supported, edges_of, faces_of, family_from_shape,
                                    reference_element, side_count)
from pyfemlib.errors import UnsupportedElement

F = ElementFamily
VOLUME_FAMILIES = [F.LINE, F.TRIANGLE, F.QUADRILATERAL, F.TETRAHEDRON, F.HEXAHEDRON]


def test_catalogue_size():
    assert len(catalogue()) == 12
    assert (F.HEXAHEDRON, 1) in catalogue()
    assert SUPPORTED_ORDERS[F.LINE] == (0, 1, 2)


@pytest.mark.parametrize("name", ["Triangle", "triangle", "TRIANGLE", F.TRIANGLE])
def test_family_coerce(name):
    assert ElementFamily.coerce(name) is F.TRIANGLE


def test_unsupported_elements_raise():
    with pytest.raises(UnsupportedElement):
        check_supported("Triangle", 2)
    with pytest.raises(UnsupportedElement):
        check_supported("Prism", 0)
    # also a KeyError for lookup-style callers
    with pytest.raises(KeyError):
        reference_element(F.HEXAHEDRON, 2)


@pytest.mark.parametrize("family,order", catalogue())
def test_reference_nodes(family, order):
    ref = reference_element(family, order)
    assert ref.nodes.shape == (ref.nne, 3)
    assert not ref.nodes.flags.writeable
    assert ref.nsd == family.nsd
    # padding beyond the reference dimension
    assert np.all(ref.nodes[:, family.nsd:] == 0.0)


def test_node_counts():
    expected = {(F.POINT, 0): 1, (F.LINE, 0): 2, (F.LINE, 1): 3, (F.LINE, 2): 4,
                (F.TRIANGLE, 0): 3, (F.TRIANGLE, 1): 6, (F.QUADRILATERAL, 0): 4,
                (F.QUADRILATERAL, 1): 8, (F.TETRAHEDRON, 0): 4, (F.TETRAHEDRON, 1): 10,
                (F.HEXAHEDRON, 0): 8, (F.HEXAHEDRON, 1): 20}
    for key, nne in expected.items():
        assert reference_element(*key).nne == nne


@pytest.mark.parametrize("family", VOLUME_FAMILIES)
def test_faces_are_outward(family):
    ref = reference_element(family, 0)
    centroid = ref.nodes.mean(axis=0)
    for face in faces_of(family, 0):
        P = ref.nodes[list(face)]
        out = P.mean(axis=0) - centroid
        if family.nsd == 1:
            n = P[0] - centroid
        elif family.nsd == 2:
            t = P[1] - P[0]
            n = np.array([t[1], -t[0], 0.0])
        else:
            n = np.cross(P[1] - P[0], P[2] - P[0])
        assert np.dot(n, out) > 0.0, (family, face)


@pytest.mark.parametrize("family", VOLUME_FAMILIES[1:])
def test_quadratic_faces_append_mid_nodes(family):
    ref = reference_element(family, 1)
    for lin, quad in zip(faces_of(family, 0), faces_of(family, 1)):
        c = len(lin)
        assert tuple(quad[:c]) == tuple(lin)
        for j, mid in enumerate(quad[c:]):
            expected = 0.5 * (ref.nodes[lin[j]] + ref.nodes[lin[(j + 1) % c]])
            assert_allclose(ref.nodes[mid], expected)


def test_side_counts():
    assert [side_count(f) for f in VOLUME_FAMILIES] == [2, 3, 4, 4, 6]


def test_quadratic_edges_are_split():
    ref = reference_element(F.TETRAHEDRON, 1)
    pieces = edges_of(F.TETRAHEDRON, 1)
    assert len(pieces) == 12
    for (a, m), (m2, b) in zip(pieces[::2], pieces[1::2]):
        assert m == m2
        assert_allclose(ref.nodes[m], 0.5 * (ref.nodes[a] + ref.nodes[b]))
    assert len(edges_of(F.HEXAHEDRON, 0)) == 12


def test_boundary_family():
    assert boundary_family(F.LINE, 2) == (F.POINT, 0)
    assert boundary_family(F.TRIANGLE, 1) == (F.LINE, 1)
    assert boundary_family(F.QUADRILATERAL, 0) == (F.LINE, 0)
    assert boundary_family(F.TETRAHEDRON, 1) == (F.TRIANGLE, 1)
    assert boundary_family(F.HEXAHEDRON, 1) == (F.QUADRILATERAL, 1)
    with pytest.raises(UnsupportedElement):
        boundary_family(F.POINT, 0)


def test_family_from_shape():
    assert family_from_shape(1, 3) == (F.LINE, 1)
    assert family_from_shape(2, 8) == (F.QUADRILATERAL, 1)
    assert family_from_shape(3, 10) == (F.TETRAHEDRON, 1)
    with pytest.raises(UnsupportedElement):
        family_from_shape(2, 5)
