"""pyfemlib.core.boundary
Boundary facets of a homogeneous volume mesh, tagged from node sets or bounding-box sides.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from pyfemlib.core.topology import ElementFamily, boundary_family, check_supported, faces_of, reference_element
from pyfemlib.errors import InconsistentBoundaryTopology

logger = logging.getLogger(__name__)

UNTAGGED = -1


@dataclass
class BoundaryMesh:
    """
    Boundary facets in the orientation of their volume element.

    ``elements[i]`` are the global node ids of facet i (same order as
    ``faces_of``), owned by volume element ``volume_element[i]`` through its
    local side ``local_side[i]`` (0-based). Tags are filled by
    ``tag_by_bounding_box``.
    """
    family: ElementFamily                 # family of the facets
    order: int
    volume_family: ElementFamily
    elements: np.ndarray                  # (nf, fn)
    volume_element: np.ndarray            # (nf,)
    local_side: np.ndarray                # (nf,)
    tags: np.ndarray = None               # (nf,), UNTAGGED when no side matches
    node_tags: List[Tuple[int, ...]] = field(default_factory=list)
    marked_nodes: List[np.ndarray] = field(default_factory=list)
    diagnostics: List[InconsistentBoundaryTopology] = field(default_factory=list)

    def __post_init__(self):
        if self.tags is None:
            self.tags = np.full(self.n_elements, UNTAGGED, dtype=np.int64)

    @property
    def n_elements(self) -> int:
        return int(self.elements.shape[0])

    @property
    def nne(self) -> int:
        return int(self.elements.shape[1])

    def facets_with_tag(self, tag: int) -> np.ndarray:
        return np.flatnonzero(self.tags == int(tag))

    def __repr__(self):
        return (f"<BoundaryMesh {self.family} order={self.order} n_facets={self.n_elements} "
                f"diagnostics={len(self.diagnostics)}>")


def extract_boundary(elements, family, order: int = 0) -> BoundaryMesh:
    """
    Facets that belong to exactly one element.

    Every element contributes all of its sides; sides are grouped on their
    sorted node ids (``np.unique`` on rows, O(F log F)). A key seen once is
    a boundary facet; a key seen more than twice is recorded as an
    ``InconsistentBoundaryTopology`` diagnostic and extraction goes on.
    """
    fam = check_supported(family, order)
    bfam, border = boundary_family(fam, order)
    faces = faces_of(fam, order)
    E = np.asarray(elements, dtype=np.int64)
    if E.ndim != 2 or E.shape[1] != reference_element(fam, order).nne:
        raise ValueError(f"connectivity of shape {E.shape} does not fit {fam} order {order}")

    ne, ns, fn = E.shape[0], len(faces), len(faces[0])
    if ne == 0:
        empty = np.empty((0, fn), dtype=np.int64)
        return BoundaryMesh(bfam, border, fam, empty, np.empty(0, np.int64), np.empty(0, np.int64))

    # side-major: all side-0 rows, then all side-1 rows, ...
    rows = np.concatenate([E[:, list(f)] for f in faces], axis=0)
    owner = np.tile(np.arange(ne, dtype=np.int64), ns)
    side = np.repeat(np.arange(ns, dtype=np.int64), ne)

    keys = np.sort(rows, axis=1)
    _, first, inverse, counts = np.unique(keys, axis=0, return_index=True,
                                          return_inverse=True, return_counts=True)
    inverse = inverse.reshape(-1)

    diagnostics = []
    for g in np.flatnonzero(counts > 2):
        members = np.flatnonzero(inverse == g)
        diag = InconsistentBoundaryTopology(keys[first[g]], counts[g], owner[members])
        logger.warning(f"Inconsistent boundary topology: {diag}")
        diagnostics.append(diag)

    sel = first[counts == 1]
    logger.debug(f"{sel.size} boundary facets out of {counts.size} distinct sides.")
    return BoundaryMesh(
        family=bfam, order=border, volume_family=fam,
        elements=rows[sel], volume_element=owner[sel], local_side=side[sel],
        diagnostics=diagnostics,
    )


def tag_by_marked_nodes(boundary: BoundaryMesh, marked_nodes, n_nodes: int) -> BoundaryMesh:
    """
    Tag facets from caller-supplied node sets.

    ``marked_nodes[t - 1]`` lists the global ids of the nodes carrying tag t
    (tags 1..len(marked_nodes)). A facet takes tag t when all its nodes carry
    t; when several tags qualify the lowest wins, otherwise the facet keeps
    ``UNTAGGED``. Updates ``boundary`` in place.
    """
    marked = [np.unique(np.asarray(ids, dtype=np.int64).ravel()) for ids in marked_nodes]
    on = np.zeros((int(n_nodes), len(marked)), dtype=bool)
    for t, ids in enumerate(marked):
        if ids.size and (ids.min() < 0 or ids.max() >= n_nodes):
            raise ValueError(f"tag {t + 1} refers to nodes outside 0..{n_nodes - 1}")
        on[ids, t] = True

    boundary.marked_nodes = marked
    boundary.node_tags = [tuple(int(t) + 1 for t in np.flatnonzero(row)) for row in on]

    if boundary.n_elements == 0 or not marked:
        boundary.tags = np.full(boundary.n_elements, UNTAGGED, dtype=np.int64)
        return boundary
    all_on = on[boundary.elements].all(axis=1)          # (nf, n_tags)
    hit = all_on.any(axis=1)
    boundary.tags = np.where(hit, np.argmax(all_on, axis=1) + 1, UNTAGGED).astype(np.int64)

    ties = np.flatnonzero(all_on.sum(axis=1) > 1)
    if ties.size:
        logger.debug(f"{ties.size} facets carry several tags; kept the lowest tag.")
    return boundary


def tag_by_bounding_box(boundary: BoundaryMesh, nodes, tol: float = 0.0) -> BoundaryMesh:
    """
    Tag facets lying on a side of the node bounding box.

    Tags are 1..2*dim in the order min-X, max-X, min-Y, max-Y, min-Z, max-Z.
    A node is on a side when ``|x - extreme| <= tol``; facets are then tagged
    by ``tag_by_marked_nodes``.
    """
    X = np.asarray(nodes, dtype=float)
    if X.ndim == 1:
        X = X[:, None]
    lo, hi = X.min(axis=0), X.max(axis=0)
    marked = []
    for a in range(X.shape[1]):
        marked.append(np.flatnonzero(np.abs(X[:, a] - lo[a]) <= tol))
        marked.append(np.flatnonzero(np.abs(X[:, a] - hi[a]) <= tol))
    return tag_by_marked_nodes(boundary, marked, X.shape[0])
