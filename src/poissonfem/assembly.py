from __future__ import annotations

import logging
from typing import Callable

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import csr_matrix

from .boundary import (
    BoundarySpec,
    dirbc_2d,
    dirichlet_nodes,
    neumann_load,
    resolve_conditions,
)
from .datastructures import Mesh2d
from .elements import element_load, element_stiffness

log = logging.getLogger(__name__)


def _check_coefficient(A: float) -> float:
    A = float(A)
    if not np.isfinite(A) or A <= 0.0:
        raise ValueError(f"Ellipticity coefficient A must be positive and finite, got {A}")
    return A


def assemble_stiffness(mesh: Mesh2d, A: float = 1.0) -> csr_matrix:
    """
    Global stiffness matrix without boundary conditions.

    Element matrices are summed straight into the CSR pattern precomputed on
    the mesh, so duplicates accumulate in a fixed order.
    """
    x, y = mesh.vertex_coords
    Ke_all = element_stiffness(x, y, A)

    data = np.bincount(
        mesh._csr_data_map, weights=Ke_all.ravel(), minlength=mesh.nnz
    )
    return csr_matrix(
        (data, mesh._csr_indices.copy(), mesh._csr_indptr.copy()),
        shape=(mesh.nonodes, mesh.nonodes),
    )


def assemble_load(
    mesh: Mesh2d,
    f: Callable[[NDArray, NDArray], NDArray],
) -> NDArray[np.float64]:
    """Global load vector of the source term (centroid rule per element)."""
    x, y = mesh.vertex_coords
    fe_all = element_load(x, y, f)

    b = np.zeros(mesh.nonodes)
    np.add.at(b, mesh.EToV.ravel() - 1, fe_all.ravel())
    return b


def assemble(
    mesh: Mesh2d,
    A: float,
    f: Callable[[NDArray, NDArray], NDArray],
    boundary_spec: BoundarySpec,
    dirichlet_conflict: str = "warn",
) -> tuple[csr_matrix, NDArray[np.float64]]:
    """
    Assemble the linear system ``M u = b`` for ``-div(A grad u) = f``.

    Parameters
    ----------
    mesh : Mesh2d
        The triangulation; not modified.
    A : float
        Positive ellipticity coefficient.
    f : callable
        Source term, called with arrays ``(x, y)``.
    boundary_spec : mapping
        Physical edge tag -> Dirichlet(value) | Neumann(value).
    dirichlet_conflict : {"warn", "raise"}
        What to do when Dirichlet edges disagree at a shared node.

    Returns
    -------
    M : csr_matrix (nonodes, nonodes)
    b : ndarray (nonodes,)
    """
    A = _check_coefficient(A)
    # Fail on unknown tags before doing any element work
    resolve_conditions(mesh, boundary_spec)

    M = assemble_stiffness(mesh, A)
    b = assemble_load(mesh, f)
    b += neumann_load(mesh, boundary_spec)

    # Dirichlet last: it overrides Neumann data at shared nodes
    bnodes, values = dirichlet_nodes(mesh, boundary_spec, on_conflict=dirichlet_conflict)
    M, b = dirbc_2d(bnodes, values, M, b)

    log.debug(
        f"Assembled {mesh.noelms} elements, {mesh.noedges} boundary edges, "
        f"{len(bnodes)} Dirichlet nodes, nnz={M.nnz}"
    )
    return M, b
