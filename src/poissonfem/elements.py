"""
Element-level kernels for P1 triangles.

For vertices ``(x_i, y_i)``, i = 1..3, and cyclic ``(i, j, k)``:

    b_i = y_j - y_k,    c_i = x_k - x_j,    grad(phi_i) = (b_i, c_i) / (2 * delta)

so the local stiffness ``A * |delta| * grad(phi_i) . grad(phi_j)`` reduces to
``A * (b_i b_j + c_i c_j) / (4 |delta|)``, independent of vertex orientation.
"""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np
from numba import njit
from numpy.typing import NDArray

from .errors import DegenerateElementError

log = logging.getLogger(__name__)

# Area below this fraction of (longest edge)^2 counts as degenerate
DEGENERATE_TOL = 1e-12


def _as_batch(x, y) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    x = np.atleast_2d(np.asarray(x, dtype=np.float64))
    y = np.atleast_2d(np.asarray(y, dtype=np.float64))
    if x.shape != y.shape or x.shape[1] != 3:
        raise ValueError(
            f"Vertex coordinates must have shape (3,) or (n, 3), got {x.shape} and {y.shape}"
        )
    return x, y


def element_basis(
    x: NDArray[np.float64],
    y: NDArray[np.float64],
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """
    Basis coefficients and areas of one or more triangles.

    Parameters
    ----------
    x, y : ndarray (3,) or (n, 3)
        Vertex coordinates.

    Returns
    -------
    bc : ndarray (n, 3, 2)
        ``bc[e, i] = (b_i, c_i)``.
    area : ndarray (n,)
        Unsigned triangle areas.

    Raises
    ------
    DegenerateElementError
        For the first triangle whose area is not positive. The reported
        element number is 1-based.
    """
    x, y = _as_batch(x, y)
    x1, x2, x3 = x[:, 0], x[:, 1], x[:, 2]
    y1, y2, y3 = y[:, 0], y[:, 1], y[:, 2]

    bc = np.empty((len(x), 3, 2), dtype=np.float64)
    bc[:, 0, 0] = y2 - y3
    bc[:, 0, 1] = x3 - x2
    bc[:, 1, 0] = y3 - y1
    bc[:, 1, 1] = x1 - x3
    bc[:, 2, 0] = y1 - y2
    bc[:, 2, 1] = x2 - x1

    area = 0.5 * np.abs(bc[:, 0, 0] * bc[:, 1, 1] - bc[:, 1, 0] * bc[:, 0, 1])

    # Each (b_i, c_i) is an edge vector rotated by 90 degrees
    longest = np.max(bc[:, :, 0] ** 2 + bc[:, :, 1] ** 2, axis=1)
    degenerate = ~(area > DEGENERATE_TOL * longest)
    if np.any(degenerate):
        e = int(np.flatnonzero(degenerate)[0])
        raise DegenerateElementError(e + 1, float(area[e]))

    return bc, area


@njit
def _stiffness_core(bc, area, A):
    n_elem = bc.shape[0]
    Ke_all = np.empty((n_elem, 3, 3))
    for e in range(n_elem):
        scale = A / (4.0 * area[e])
        for i in range(3):
            for j in range(3):
                Ke_all[e, i, j] = scale * (
                    bc[e, i, 0] * bc[e, j, 0] + bc[e, i, 1] * bc[e, j, 1]
                )
    return Ke_all


def element_stiffness(
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    A: float = 1.0,
) -> NDArray[np.float64]:
    """
    Local stiffness matrices ``A * int grad(phi_i) . grad(phi_j)``.

    Returns an array of shape (3, 3) for a single triangle, (n, 3, 3) for a
    batch.
    """
    single = np.ndim(x) == 1
    bc, area = element_basis(x, y)
    Ke_all = _stiffness_core(bc, area, float(A))
    return Ke_all[0] if single else Ke_all


def element_load(
    x: NDArray[np.float64],
    y: NDArray[np.float64],
    f: Callable[[NDArray, NDArray], NDArray],
) -> NDArray[np.float64]:
    """
    Local load vectors by the one-point centroid rule.

    Every entry gets ``f(centroid) * area / 3``, with ``f`` evaluated at all
    centroids through ``evaluate``.
    """
    single = np.ndim(x) == 1
    x, y = _as_batch(x, y)
    _, area = element_basis(x, y)

    xc = x.mean(axis=1)
    yc = y.mean(axis=1)
    f_vals = evaluate(f, xc, yc)

    fe_all = np.repeat((f_vals * area / 3.0)[:, None], 3, axis=1)
    return fe_all[0] if single else fe_all


def evaluate(
    func: Callable[[NDArray, NDArray], NDArray] | float,
    x: NDArray[np.float64],
    y: NDArray[np.float64],
) -> NDArray[np.float64]:
    """
    Evaluate a data function at points, broadcasting constants.

    ``func`` is first called once with the coordinate arrays. Functions that
    only accept scalars (``math.sin``, ``if x > 0.5``) are then applied point
    by point with ``np.vectorize``.
    """
    if not callable(func):
        values = np.asarray(func, dtype=np.float64)
        return np.array(np.broadcast_to(values, np.shape(x)))

    try:
        values = np.asarray(func(x, y), dtype=np.float64)
    except (TypeError, ValueError):
        values = None
    if values is None or values.shape not in (np.shape(x), ()):
        log.debug(f"Evaluating {getattr(func, '__name__', func)!r} point by point")
        values = np.vectorize(func, otypes=[np.float64])(x, y)
    return np.array(np.broadcast_to(values, np.shape(x)))
