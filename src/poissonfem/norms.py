"""Discrete norms of nodal fields."""

from __future__ import annotations

from typing import Callable

import numpy as np
from numpy.typing import NDArray

from .datastructures import Mesh2d
from .elements import element_basis, evaluate


def calculate_norm(mesh: Mesh2d, u: NDArray[np.float64]) -> float:
    """
    L2-type norm with the nodal one-third-area rule.

    ||u||^2 = sum_e area_e / 3 * (u_i^2 + u_j^2 + u_k^2)
    """
    u = np.asarray(u, dtype=np.float64)
    if u.shape != (mesh.nonodes,):
        raise ValueError(f"Expected {mesh.nonodes} nodal values, got shape {u.shape}")

    x, y = mesh.vertex_coords
    _, area = element_basis(x, y)
    u_e = u[mesh.EToV - 1]
    return float(np.sqrt(np.sum(area / 3.0 * np.sum(u_e**2, axis=1))))


def l2_error(
    mesh: Mesh2d,
    u: NDArray[np.float64],
    u_exact: Callable[[NDArray, NDArray], NDArray],
) -> float:
    """Compute ||u_h - u|| using the nodal values of the exact solution."""
    return calculate_norm(mesh, u - evaluate(u_exact, mesh.VX, mesh.VY))
