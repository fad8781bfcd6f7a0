from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import spmatrix
from scipy.sparse.linalg import norm as sparse_norm
from scipy.sparse.linalg import splu

from .assembly import assemble
from .boundary import BoundarySpec
from .datastructures import Mesh2d
from .errors import NumericalInstabilityError, SingularMatrixError
from .mesh import read_mesh

log = logging.getLogger(__name__)

# Smallest admissible |U_ii| relative to the max-norm of its own row of M
PIVOT_RTOL = 1e-12
# Largest admissible relative residual ||Mu - b|| / (||M|| ||u|| + ||b||)
RESIDUAL_RTOL = 1e-8


def linear_solve(M: spmatrix, b: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Solve ``M u = b`` by sparse LU.

    Raises
    ------
    SingularMatrixError
        If the factorization breaks down or a pivot is negligible.
    NumericalInstabilityError
        If the solution is not finite or does not satisfy the system.
    """
    M_csc = M.tocsc()
    try:
        lu = splu(M_csc)
    except RuntimeError as exc:
        raise SingularMatrixError(f"Sparse LU failed: {exc}") from exc

    # Row k of U comes from row i of M with perm_r[i] == k
    pivots = np.abs(lu.U.diagonal())
    row_scale = np.empty_like(pivots)
    row_scale[lu.perm_r] = abs(M_csc).max(axis=1).toarray().ravel()
    ratio = pivots / np.where(row_scale > 0, row_scale, 1.0)
    if ratio.size and ratio.min() <= PIVOT_RTOL:
        k = int(np.argmin(ratio))
        raise SingularMatrixError(
            f"System is singular: pivot {pivots[k]:.3e} against row norm "
            f"{row_scale[k]:.3e}. Is any Dirichlet boundary prescribed?"
        )

    u = lu.solve(np.asarray(b, dtype=np.float64))
    if not np.all(np.isfinite(u)):
        raise NumericalInstabilityError("Linear solve produced non-finite values")

    residual = np.linalg.norm(M_csc @ u - b)
    scale = sparse_norm(M_csc) * np.linalg.norm(u) + np.linalg.norm(b)
    if scale > 0 and residual > RESIDUAL_RTOL * scale:
        raise NumericalInstabilityError(
            f"Relative residual {residual / scale:.3e} exceeds {RESIDUAL_RTOL:.0e}"
        )
    return u


def solve(
    mesh: Mesh2d | str | Path,
    A: float,
    f: Callable[[NDArray, NDArray], NDArray],
    boundary_spec: BoundarySpec,
    dirichlet_conflict: str = "warn",
) -> tuple[Mesh2d, NDArray[np.float64]]:
    """
    Solve ``-div(A grad u) = f`` with mixed boundary conditions.

    ``mesh`` is either a Mesh2d or the path of a mesh file. Returns the mesh
    together with the nodal solution; errors propagate unchanged.
    """
    if not isinstance(mesh, Mesh2d):
        mesh = read_mesh(mesh)

    start = time.perf_counter()
    M, b = assemble(mesh, A, f, boundary_spec, dirichlet_conflict=dirichlet_conflict)
    u = linear_solve(M, b)
    log.info(
        f"Solved P1 system with {mesh.nonodes} nodes in "
        f"{time.perf_counter() - start:.3f}s"
    )
    return mesh, u
