"""pyfemlib.errors
Error taxonomy shared by the element, quadrature and boundary modules.

``UnsupportedElement`` and ``SingularInterpolationMatrix`` are raised.
``InvalidGeometry`` and ``InconsistentBoundaryTopology`` are normally handed
back as values (stored on a point evaluation or on a boundary mesh) so that
quadrature loops never abort half way through an accumulation.
"""
from __future__ import annotations

from typing import Optional, Tuple


class FemLibError(Exception):
    """Base class of every pyfemlib error."""


class UnsupportedElement(FemLibError, KeyError):
    """Requested (family, order) pair is not in the supported catalogue."""

    def __init__(self, family, order=None, detail: str = ""):
        self.family = family
        self.order = order
        msg = f"unsupported element {family!s}"
        if order is not None:
            msg += f" (order {order})"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)

    def __str__(self):  # KeyError would repr() the message
        return self.args[0]


class SingularInterpolationMatrix(FemLibError, RuntimeError):
    """The monomial set cannot interpolate the node layout uniquely."""

    def __init__(self, family, order, rank: int, size: int):
        self.family = family
        self.order = order
        self.rank = rank
        self.size = size
        super().__init__(
            f"interpolation matrix of {family!s} order {order} is singular "
            f"(rank {rank} < {size})"
        )


class InvalidGeometry(FemLibError, ValueError):
    """Non-positive isoparametric Jacobian at an integration point."""

    def __init__(self, element_id, index: int, detJ: float, side: Optional[int] = None):
        self.element_id = element_id
        self.index = index
        self.detJ = float(detJ)
        self.side = side
        where = f"element {element_id}"
        if side is not None:
            where += f" side {side}"
        super().__init__(
            f"isoparametric J is {self.detJ:e} (<=0) on {where}, "
            f"integration point {index}"
        )


class InconsistentBoundaryTopology(FemLibError, RuntimeWarning):
    """A face key was found a number of times outside {1, 2}."""

    def __init__(self, face: Tuple[int, ...], count: int, elements: Tuple[int, ...] = ()):
        self.face = tuple(int(n) for n in face)
        self.count = int(count)
        self.elements = tuple(int(e) for e in elements)
        super().__init__(
            f"face {self.face} is shared by {self.count} elements {self.elements}"
        )
