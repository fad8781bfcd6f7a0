"""Manufactured problems with closed-form solutions on the unit square."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np

from .boundary import BoundaryCondition, Dirichlet, Neumann
from .mesh import BOTTOM, LEFT, RIGHT, TOP


@dataclass(frozen=True)
class Problem:
    """Source, boundary data and exact solution for a fixed coefficient A."""

    name: str
    A: float
    f: Callable
    u_exact: Callable
    boundary_spec: dict[int, BoundaryCondition]


def worked_example(A: float = 1.0) -> Problem:
    """
    u = cos(pi x / 2) sin(pi y) on [0, 1]^2.

    -div(A grad u) = 5 pi^2 / 4 * A * u. The solution vanishes on the
    bottom, right and top sides (Dirichlet); on the left side the outward
    flux -A du/dx is zero (Neumann).
    """

    def u_exact(x, y):
        return np.cos(np.pi * x / 2) * np.sin(np.pi * y)

    def f(x, y):
        return 1.25 * np.pi**2 * A * u_exact(x, y)

    def flux_left(x, y):
        return A * np.pi / 2 * np.sin(np.pi * x / 2) * np.sin(np.pi * y)

    return Problem(
        name="worked_example",
        A=A,
        f=f,
        u_exact=u_exact,
        boundary_spec={
            BOTTOM: Dirichlet(u_exact),
            RIGHT: Dirichlet(u_exact),
            TOP: Dirichlet(u_exact),
            LEFT: Neumann(flux_left),
        },
    )


def linear_example(A: float = 1.0) -> Problem:
    """
    u = 1 + 2x - y on [0, 1]^2, reproduced exactly by P1 elements.

    Dirichlet on the left side, constant Neumann fluxes elsewhere.
    """

    def u_exact(x, y):
        return 1.0 + 2.0 * x - y

    return Problem(
        name="linear_example",
        A=A,
        f=lambda x, y: np.zeros_like(x),
        u_exact=u_exact,
        boundary_spec={
            LEFT: Dirichlet(u_exact),
            RIGHT: Neumann(2.0 * A),
            TOP: Neumann(-1.0 * A),
            BOTTOM: Neumann(1.0 * A),
        },
    )


PROBLEMS = {
    "worked_example": worked_example,
    "linear_example": linear_example,
}
