import logging
from typing import Optional, Tuple

import numpy as np

from pyfemlib.core.boundary import BoundaryMesh, extract_boundary, tag_by_bounding_box, tag_by_marked_nodes
from pyfemlib.core.topology import (ElementFamily, check_supported, edges_of, family_from_shape,
                                    reference_element)

logger = logging.getLogger(__name__)


class Mesh:
    """
    Homogeneous finite element mesh: one family and order for all elements.

    Nodes are an (n_nodes, nsd) coordinate array, elements an
    (n_elements, nne) array of 0-based node ids ordered like
    ``reference_element(family, order).nodes``. The boundary is extracted on
    first access and thrown away whenever the connectivity changes.
    """

    def __init__(self, nodes: np.ndarray, elements: np.ndarray, family, order: int = 0):
        nodes = np.asarray(nodes, dtype=float)
        if nodes.ndim == 1:
            nodes = nodes[:, None]
        self.nodes = nodes
        self.family: ElementFamily = check_supported(family, order)
        self.order = int(order)
        self._elements: Optional[np.ndarray] = None
        self._boundary: Optional[BoundaryMesh] = None
        self.elements = elements

    # ------------------------------------------------------------------
    # connectivity
    # ------------------------------------------------------------------
    @property
    def elements(self) -> np.ndarray:
        return self._elements

    @elements.setter
    def elements(self, elements):
        E = np.asarray(elements, dtype=np.int64)
        if E.ndim == 1:
            E = E[None, :]
        nne = reference_element(self.family, self.order).nne
        if E.shape[1] != nne:
            raise ValueError(f"{self.family} order {self.order} has {nne} nodes per element, "
                             f"connectivity has {E.shape[1]}")
        if E.size and (E.min() < 0 or E.max() >= self.n_nodes):
            raise ValueError(f"connectivity refers to nodes outside 0..{self.n_nodes - 1}")
        self._elements = E
        self._boundary = None

    def set_connectivity(self, elements, family=None, order: Optional[int] = None) -> None:
        """Replace the elements (optionally with another family/order)."""
        if family is not None:
            new_order = self.order if order is None else int(order)
            self.family = check_supported(family, new_order)
            self.order = new_order
        elif order is not None:
            check_supported(self.family, order)
            self.order = int(order)
        self.elements = elements

    @property
    def boundary(self) -> BoundaryMesh:
        if self._boundary is None:
            self._boundary = extract_boundary(self._elements, self.family, self.order)
        return self._boundary

    def tag_boundary_by_bounding_box(self, tol: float = 0.0) -> BoundaryMesh:
        return tag_by_bounding_box(self.boundary, self.nodes, tol)

    def tag_boundary(self, marked_nodes) -> BoundaryMesh:
        """Tag boundary facets from node sets; ``marked_nodes[t - 1]`` carries tag t."""
        return tag_by_marked_nodes(self.boundary, marked_nodes, self.n_nodes)

    # ------------------------------------------------------------------
    # construction helpers
    # ------------------------------------------------------------------
    @classmethod
    def from_node_element(cls, nodes, elements, *, build_boundary: bool = True) -> "Mesh":
        """
        Build a mesh guessing family and order from the array shapes.

        Raises:
            UnsupportedElement: no supported element has that many nodes in
                that many dimensions.
        """
        nodes = np.asarray(nodes, dtype=float)
        if nodes.ndim == 1:
            nodes = nodes[:, None]
        elements = np.atleast_2d(np.asarray(elements, dtype=np.int64))
        family, order = family_from_shape(nodes.shape[1], elements.shape[1])
        mesh = cls(nodes, elements, family, order)
        if build_boundary:
            mesh.boundary
        logger.debug(f"Imported {mesh!r}")
        return mesh

    def increase_element_order(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Mid-edge nodes that turn the linear mesh into a quadratic one.

        Returns:
            tuple: ``(new_nodes, new_elements)``; ``new_nodes`` holds one
            midpoint per distinct edge and ``new_elements[e, k]`` is the index
            into ``new_nodes`` of local edge k of element e. Shift by
            ``n_nodes`` before appending (see ``elevated``).
        """
        if self.order != 0:
            raise ValueError(f"only linear meshes can be elevated, this one is order {self.order}")
        edges = edges_of(self.family, 0)
        ne, nk = self.n_elements, len(edges)
        # edge-major, like the side tables of the boundary extractor
        rows = np.concatenate([self._elements[:, list(e)] for e in edges], axis=0)
        keys = np.sort(rows, axis=1)
        _, first, inverse = np.unique(keys, axis=0, return_index=True, return_inverse=True)
        inverse = inverse.reshape(-1)
        new_nodes = self.nodes[rows[first]].mean(axis=1)
        new_elements = inverse.reshape(nk, ne).T.copy()
        return new_nodes, new_elements

    def elevated(self) -> "Mesh":
        """Quadratic copy of a linear mesh."""
        new_nodes, new_elements = self.increase_element_order()
        nodes = np.vstack([self.nodes, new_nodes])
        elements = np.hstack([self._elements, new_elements + self.n_nodes])
        return type(self)(nodes, elements, self.family, self.order + 1)

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    @property
    def n_nodes(self) -> int:
        return int(self.nodes.shape[0])

    @property
    def n_elements(self) -> int:
        return int(self._elements.shape[0])

    @property
    def nsd(self) -> int:
        return int(self.nodes.shape[1])

    @property
    def nne(self) -> int:
        return int(self._elements.shape[1])

    def element_nodes(self, eid: int) -> np.ndarray:
        """(nne, nsd) coordinates of element ``eid``."""
        return self.nodes[self._elements[eid]]

    def facet_nodes(self, fid: int) -> np.ndarray:
        """Coordinates of the volume element owning boundary facet ``fid``."""
        return self.element_nodes(self.boundary.volume_element[fid])

    def __repr__(self):
        return (f"<Mesh n_nodes={self.n_nodes}, "
                f"n_elems={self.n_elements}, "
                f"elem_type='{self.family}', "
                f"order={self.order}>")
