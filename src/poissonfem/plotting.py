"""Plots and VTK export of nodal solutions."""

from __future__ import annotations

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from matplotlib.tri import Triangulation
from numpy.typing import NDArray

from .datastructures import Mesh2d

log = logging.getLogger(__name__)

FIGURES_DIR = Path("figures")
STYLE_PATH = Path(__file__).resolve().parent / "fem.mplstyle"


def setup_style():
    """Apply shared matplotlib style."""
    if STYLE_PATH.exists():
        plt.style.use(STYLE_PATH)
    plt.rcParams.setdefault("savefig.bbox", "tight")


def save_figure(fig, filename: str | Path) -> Path:
    """
    Save figure to the specified path.
    """
    filepath = Path(filename)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(filepath, bbox_inches="tight")
    log.info(f"Saved: {filepath}")
    return filepath


def triangulation(mesh: Mesh2d) -> Triangulation:
    return Triangulation(mesh.VX, mesh.VY, mesh.EToV - 1)


def plot_solution(mesh: Mesh2d, u: NDArray[np.float64], title: str = "FEM solution"):
    """Surface plot of the nodal field over the triangulation."""
    fig = plt.figure(figsize=(7, 5))
    ax = fig.add_subplot(111, projection="3d")
    surf = ax.plot_trisurf(
        triangulation(mesh), u, cmap="viridis", linewidth=0.2, antialiased=True
    )
    fig.colorbar(surf, ax=ax, shrink=0.6, label=r"$u$")
    ax.set_xlabel(r"$x$")
    ax.set_ylabel(r"$y$")
    ax.set_zlabel(r"$u(x,y)$")
    ax.set_title(title)
    return fig


def plot_mesh(mesh: Mesh2d, title: str = "Mesh"):
    """Triangulation with boundary edges coloured by physical tag."""
    fig, ax = plt.subplots(figsize=(6, 6))
    ax.triplot(triangulation(mesh), color="0.7", lw=0.5)

    tags = np.unique(mesh.edge_physical)
    colors = sns.color_palette("deep", len(tags))
    xi, yi, xj, yj = mesh.edge_coords
    for tag, color in zip(tags, colors):
        idx = np.flatnonzero(mesh.edge_physical == tag)
        for k, e in enumerate(idx):
            ax.plot(
                [xi[e], xj[e]],
                [yi[e], yj[e]],
                color=color,
                lw=2,
                label=f"tag {tag}" if k == 0 else None,
            )

    ax.set_aspect("equal")
    ax.set_xlabel(r"$x$")
    ax.set_ylabel(r"$y$")
    ax.set_title(title)
    if len(tags):
        ax.legend()
    return fig


def plot_convergence(df: pd.DataFrame, title: str = "Convergence of P1 FEM"):
    """Log-log plot of the errors of a convergence study against h."""
    colors = sns.color_palette("deep")
    fig, ax = plt.subplots(figsize=(6, 4))
    h = df["h"].to_numpy()

    ax.loglog(h, df["max_error"], "o-", color=colors[0], label=r"$\max_i |u_i - u(x_i)|$")
    ax.loglog(h, df["l2_error"], "s-", color=colors[1], label=r"$\|u_h - u\|$")
    ax.loglog(
        h,
        df["l2_error"].iloc[0] * (h / h[0]) ** 2,
        "--",
        color=colors[2],
        label=r"$O(h^2)$",
    )
    ax.set_xlabel(r"$h$")
    ax.set_ylabel("Error")
    ax.grid(True, which="both", alpha=0.3)
    ax.legend()
    ax.set_title(title)
    return fig


def to_pyvista(mesh: Mesh2d, u: NDArray[np.float64], name: str = "u"):
    """Unstructured VTK grid of the mesh with the solution as point data."""
    import pyvista as pv

    points = np.column_stack([mesh.VX, mesh.VY, np.zeros(mesh.nonodes)])
    cells = np.hstack(
        [np.full((mesh.noelms, 1), 3, dtype=np.int64), mesh.EToV - 1]
    ).ravel()
    celltypes = np.full(mesh.noelms, pv.CellType.TRIANGLE, dtype=np.uint8)

    grid = pv.UnstructuredGrid(cells, celltypes, points)
    grid.point_data[name] = np.asarray(u, dtype=np.float64)
    grid.cell_data["physical"] = mesh.elem_tags[:, 0]
    return grid


def save_vtk(mesh: Mesh2d, u: NDArray[np.float64], filename: str | Path) -> Path:
    """Write the solution to a ``.vtu`` file."""
    filepath = Path(filename)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    to_pyvista(mesh, u).save(str(filepath))
    log.info(f"Saved VTK: {filepath}")
    return filepath
