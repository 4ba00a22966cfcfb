# pyfemlib.fem.reference
"""
Shape-function sets and the process-wide registry that owns them.
"""
import logging
import threading
from functools import lru_cache
from typing import Dict, Optional, Tuple

import numpy as np

from pyfemlib.core.topology import (ElementFamily, ReferenceElement, catalogue,
                                    check_supported, reference_element)
from pyfemlib.fem.reference.cache import ShapeFunctionCache, disk_cache_enabled
from pyfemlib.fem.reference.solver import derive_coefficients, monomial_exponents, tabulate

logger = logging.getLogger(__name__)

__all__ = ["ShapeFunctionSet", "ShapeFunctionRegistry", "default_registry", "get_reference"]


class ShapeFunctionSet:
    """
    Nodal basis of one (family, order) pair. Immutable once built.

    ``shape(xi)`` returns (nne,), ``grad(xi)`` returns (nne, 3) with
    columns d/dxi, d/deta, d/dzeta (zero beyond the reference dimension).
    """

    def __init__(self, reference: ReferenceElement, coefficients: np.ndarray):
        self.reference = reference
        self.exponents = monomial_exponents(reference.family, reference.order)
        coeffs = np.array(coefficients, dtype=float)
        if coeffs.shape != (reference.nne, reference.nne):
            raise ValueError(f"coefficient table of shape {coeffs.shape} does not match "
                             f"{reference.nne} nodes of {reference.family} order {reference.order}")
        coeffs.setflags(write=False)
        self.coefficients = coeffs

    @property
    def family(self) -> ElementFamily:
        return self.reference.family

    @property
    def order(self) -> int:
        return self.reference.order

    @property
    def nne(self) -> int:
        return self.reference.nne

    @property
    def nsd(self) -> int:
        return self.reference.nsd

    def tabulate(self, points):
        """(N, dN) at many points: shapes (npts, nne) and (npts, nne, 3)."""
        return tabulate(self.exponents, self.coefficients, points)

    @lru_cache(maxsize=4096)
    def _at(self, xi: Tuple[float, float, float]):
        N, dN = self.tabulate(np.array([xi]))
        N, dN = N[0], dN[0]
        N.setflags(write=False)
        dN.setflags(write=False)
        return N, dN

    @staticmethod
    def _key(xi) -> Tuple[float, float, float]:
        p = np.zeros(3)
        x = np.ravel(np.asarray(xi, dtype=float))
        p[:x.size] = x
        return (float(p[0]), float(p[1]), float(p[2]))

    def shape(self, xi) -> np.ndarray:
        return self._at(self._key(xi))[0]

    def grad(self, xi) -> np.ndarray:
        return self._at(self._key(xi))[1]

    def shape_and_grad(self, xi):
        return self._at(self._key(xi))

    def __repr__(self):
        return f"<ShapeFunctionSet {self.family} order={self.order} nne={self.nne}>"


class ShapeFunctionRegistry:
    """
    Read-only (after population) table of ShapeFunctionSets.

    ``build()`` fills every catalogue entry, loading the coefficient tables
    from the disk cache when possible and deriving (then storing) them
    otherwise. ``get()`` triggers the same population lazily under a lock.
    """

    def __init__(self, cache: Optional[ShapeFunctionCache] = None, *, use_disk_cache: Optional[bool] = None):
        self._cache = cache if cache is not None else ShapeFunctionCache()
        self._use_disk = disk_cache_enabled() if use_disk_cache is None else bool(use_disk_cache)
        self._sets: Dict[Tuple[ElementFamily, int], ShapeFunctionSet] = {}
        self._lock = threading.Lock()
        self._built = False

    @property
    def is_built(self) -> bool:
        return self._built

    def build(self) -> "ShapeFunctionRegistry":
        if self._built:
            return self
        with self._lock:
            if not self._built:
                self._populate()
                self._built = True
        return self

    def _populate(self):
        refs = {key: reference_element(*key) for key in catalogue()}
        tables = None
        if self._use_disk:
            tables = self._cache.load({k: r.nne for k, r in refs.items()})
        if tables is None:
            tables = {k: derive_coefficients(r) for k, r in refs.items()}
            if self._use_disk:
                try:
                    self._cache.store(tables)
                except OSError as e:
                    logger.warning(f"Could not write shape-function cache: {e}")
        self._sets = {k: ShapeFunctionSet(refs[k], tables[k]) for k in refs}
        logger.info(f"Shape-function registry populated with {len(self._sets)} element types.")

    def get(self, family, order: int = 0) -> ShapeFunctionSet:
        fam = check_supported(family, order)
        if not self._built:
            self.build()
        return self._sets[(fam, int(order))]

    def __contains__(self, key) -> bool:
        fam, order = key
        try:
            self.get(fam, order)
        except KeyError:
            return False
        return True

    def __len__(self):
        return len(self.build()._sets)


_DEFAULT: Optional[ShapeFunctionRegistry] = None
_DEFAULT_LOCK = threading.Lock()


def default_registry() -> ShapeFunctionRegistry:
    """The shared process-wide registry (created and populated on first use)."""
    global _DEFAULT
    if _DEFAULT is None:
        with _DEFAULT_LOCK:
            if _DEFAULT is None:
                _DEFAULT = ShapeFunctionRegistry().build()
    return _DEFAULT


def get_reference(family, order: int = 0) -> ShapeFunctionSet:
    return default_registry().get(family, order)
