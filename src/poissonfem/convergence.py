from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
import pandas as pd

from .mesh import rectangle_mesh
from .norms import l2_error
from .problems import Problem
from .solvers import solve

log = logging.getLogger(__name__)


def convergence_study(
    problem: Problem,
    element_counts: Sequence[int] = (4, 8, 16, 32),
) -> pd.DataFrame:
    """
    Solve ``problem`` on uniformly refined unit-square meshes.

    Returns one row per mesh with columns ``n``, ``h``, ``nonodes``,
    ``max_error`` (nodal maximum error), ``l2_error`` and the observed
    rates between consecutive meshes (NaN on the first row).
    """
    rows = []
    for n in element_counts:
        mesh = rectangle_mesh(0.0, 0.0, 1.0, 1.0, n, n)
        _, u = solve(mesh, problem.A, problem.f, problem.boundary_spec)
        err = u - problem.u_exact(mesh.VX, mesh.VY)
        rows.append(
            {
                "n": n,
                "h": 1.0 / n,
                "nonodes": mesh.nonodes,
                "max_error": float(np.max(np.abs(err))),
                "l2_error": l2_error(mesh, u, problem.u_exact),
            }
        )
        log.info(
            f"n={n:4d}  h={1.0 / n:.4e}  max error={rows[-1]['max_error']:.4e}  "
            f"L2 error={rows[-1]['l2_error']:.4e}"
        )

    df = pd.DataFrame(rows)
    log_h = np.log(df["h"])
    df["max_rate"] = np.log(df["max_error"]).diff() / log_h.diff()
    df["l2_rate"] = np.log(df["l2_error"]).diff() / log_h.diff()
    return df
