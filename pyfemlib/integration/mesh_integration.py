"""pyfemlib.integration.mesh_integration
Element-by-element accumulation over a whole mesh or its tagged boundary.
"""
import logging
from typing import Callable, Optional

from pyfemlib.core.mesh import Mesh
from pyfemlib.fem.evaluator import BoundaryElementEvaluator, ElementEvaluator, IntegrationResult

logger = logging.getLogger(__name__)


def _accumulate(results):
    total, errors = 0.0, []
    for res in results:
        total = total + res.value
        errors.extend(res.errors)
    if errors:
        logger.warning(f"{len(errors)} integration points skipped because of invalid geometry.")
    return IntegrationResult(total, tuple(errors))


def integrate_volume(mesh: Mesh, field: Optional[Callable] = None, quad_order: int = -1,
                     **evaluator_kw) -> IntegrationResult:
    """``sum_e int_e f dx``; with ``field=None`` the mesh measure."""
    return _accumulate(
        ElementEvaluator(mesh.element_nodes(e), e, mesh.family, mesh.order, quad_order,
                         **evaluator_kw).integrate(field)
        for e in range(mesh.n_elements)
    )


def integrate_boundary(mesh: Mesh, tag: Optional[int] = None, field: Optional[Callable] = None,
                       quad_order: int = -1, **evaluator_kw) -> IntegrationResult:
    """
    ``sum_f int_f f ds`` over the boundary facets (only those carrying ``tag``
    when given; run ``mesh.tag_boundary_by_bounding_box`` first).
    """
    bnd = mesh.boundary
    facets = range(bnd.n_elements) if tag is None else bnd.facets_with_tag(tag)
    return _accumulate(
        BoundaryElementEvaluator(mesh.facet_nodes(f), int(bnd.volume_element[f]), mesh.family,
                                 int(bnd.local_side[f]), mesh.order, quad_order,
                                 **evaluator_kw).integrate(field)
        for f in facets
    )
