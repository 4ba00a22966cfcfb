from .topology import ElementFamily, reference_element, faces_of, edges_of, boundary_family
from .boundary import BoundaryMesh, extract_boundary, tag_by_bounding_box, tag_by_marked_nodes
from .mesh import Mesh
__all__=['ElementFamily','reference_element','faces_of','edges_of','boundary_family',
         'BoundaryMesh','extract_boundary','tag_by_bounding_box','tag_by_marked_nodes','Mesh']
