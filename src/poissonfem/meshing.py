"""Unstructured rectangle meshes generated with the Gmsh Python API."""

from __future__ import annotations

import logging
from pathlib import Path

log = logging.getLogger(__name__)


def generate_rectangle(
    x0: float,
    y0: float,
    L1: float,
    L2: float,
    mesh_size: float,
    filepath: str | Path,
) -> Path:
    """
    Triangulate ``[x0, x0+L1] x [y0, y0+L2]`` and write a Gmsh ``.msh`` file.

    Boundary curves get physical groups bottom=1, right=2, top=3, left=4 and
    the surface domain=1, matching ``poissonfem.mesh.rectangle_mesh``.

    Parameters
    ----------
    x0, y0 : float
        Bottom-left corner coordinates.
    L1, L2 : float
        Width and height of rectangle.
    mesh_size : float
        Target element size (smaller = finer mesh).
    filepath : str or Path
        Output file.

    Returns
    -------
    Path
        The written file.
    """
    import gmsh

    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    gmsh.initialize()
    try:
        gmsh.option.setNumber("General.Terminal", 0)
        gmsh.model.add("rectangle")

        p1 = gmsh.model.geo.addPoint(x0, y0, 0, mesh_size)
        p2 = gmsh.model.geo.addPoint(x0 + L1, y0, 0, mesh_size)
        p3 = gmsh.model.geo.addPoint(x0 + L1, y0 + L2, 0, mesh_size)
        p4 = gmsh.model.geo.addPoint(x0, y0 + L2, 0, mesh_size)

        l1 = gmsh.model.geo.addLine(p1, p2)  # bottom
        l2 = gmsh.model.geo.addLine(p2, p3)  # right
        l3 = gmsh.model.geo.addLine(p3, p4)  # top
        l4 = gmsh.model.geo.addLine(p4, p1)  # left

        loop = gmsh.model.geo.addCurveLoop([l1, l2, l3, l4])
        surface = gmsh.model.geo.addPlaneSurface([loop])

        gmsh.model.geo.synchronize()
        gmsh.model.addPhysicalGroup(1, [l1], tag=1, name="bottom")
        gmsh.model.addPhysicalGroup(1, [l2], tag=2, name="right")
        gmsh.model.addPhysicalGroup(1, [l3], tag=3, name="top")
        gmsh.model.addPhysicalGroup(1, [l4], tag=4, name="left")
        gmsh.model.addPhysicalGroup(2, [surface], tag=1, name="domain")

        gmsh.model.mesh.generate(2)
        gmsh.write(str(filepath))
    finally:
        gmsh.finalize()

    log.info(f"Saved mesh to {filepath}")
    return filepath


def generate_unit_square(mesh_size: float, filepath: str | Path) -> Path:
    """Triangulate the unit square [0,1]^2."""
    return generate_rectangle(0.0, 0.0, 1.0, 1.0, mesh_size, filepath)
