"""P1 finite elements for 2D elliptic problems.

Solves -div(A grad u) = f on unstructured triangular meshes with mixed
Dirichlet/Neumann boundary conditions selected by edge physical tags.

Main components:
- Mesh2d, read_mesh, rectangle_mesh: mesh model and acquisition
- element_stiffness, element_load: local P1 kernels
- Dirichlet, Neumann, boundary_spec: boundary specification
- assemble: global stiffness matrix and load vector with BCs applied
- solve, linear_solve: high-level solver
- calculate_norm: discrete L2 norm of nodal fields
"""

from .datastructures import Mesh2d, EDGE_VERTICES
from .mesh import (
    BOTTOM,
    RIGHT,
    TOP,
    LEFT,
    read_mesh,
    from_meshio,
    rectangle_mesh,
    single_triangle_mesh,
)
from .elements import element_basis, element_stiffness, element_load
from .boundary import (
    Dirichlet,
    Neumann,
    boundary_spec,
    dirbc_2d,
    dirichlet_nodes,
    neumann_load,
    get_boundary_nodes,
)
from .assembly import assemble, assemble_stiffness, assemble_load
from .solvers import solve, linear_solve
from .norms import calculate_norm, l2_error
from .errors import (
    FEMError,
    MeshParseError,
    DegenerateElementError,
    UnknownBoundaryTagError,
    InconsistentDirichletDataError,
    SingularMatrixError,
    NumericalInstabilityError,
)

__all__ = [
    # Mesh
    "Mesh2d",
    "EDGE_VERTICES",
    "BOTTOM",
    "RIGHT",
    "TOP",
    "LEFT",
    "read_mesh",
    "from_meshio",
    "rectangle_mesh",
    "single_triangle_mesh",
    # Element kernels
    "element_basis",
    "element_stiffness",
    "element_load",
    # Boundary conditions
    "Dirichlet",
    "Neumann",
    "boundary_spec",
    "dirbc_2d",
    "dirichlet_nodes",
    "neumann_load",
    "get_boundary_nodes",
    # Assembly
    "assemble",
    "assemble_stiffness",
    "assemble_load",
    # Solvers
    "solve",
    "linear_solve",
    # Norms
    "calculate_norm",
    "l2_error",
    # Errors
    "FEMError",
    "MeshParseError",
    "DegenerateElementError",
    "UnknownBoundaryTagError",
    "InconsistentDirichletDataError",
    "SingularMatrixError",
    "NumericalInstabilityError",
]
