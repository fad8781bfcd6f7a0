"""Mesh acquisition: Gmsh files via meshio and simple generated meshes."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import meshio
import numpy as np
from numpy.typing import NDArray

from .datastructures import EDGE_VERTICES, Mesh2d
from .errors import MeshParseError

log = logging.getLogger(__name__)

# Physical tags of the generated rectangle (same numbering as meshing/generate_mesh.py)
BOTTOM, RIGHT, TOP, LEFT = 1, 2, 3, 4
DOMAIN = 1


def rectangle_mesh(
    x0: float,
    y0: float,
    L1: float,
    L2: float,
    noelms1: int,
    noelms2: int,
) -> Mesh2d:
    """
    Structured triangulation of ``[x0, x0+L1] x [y0, y0+L2]``.

    Each of the ``noelms1 x noelms2`` cells is split into two counter-clockwise
    triangles. Boundary edges run counter-clockwise around the rectangle and
    carry physical tags BOTTOM, RIGHT, TOP, LEFT; elements carry DOMAIN.
    Geometric tags are 0.
    """
    if noelms1 < 1 or noelms2 < 1:
        raise ValueError(
            f"Need at least one cell per direction, got {noelms1}x{noelms2}"
        )
    if L1 <= 0 or L2 <= 0:
        raise ValueError(f"Rectangle sides must be positive, got L1={L1}, L2={L2}")

    nonodes1 = noelms1 + 1
    nonodes2 = noelms2 + 1
    noelms = 2 * noelms1 * noelms2

    temp_x = np.linspace(x0, x0 + L1, nonodes1)
    temp_y = np.linspace(y0 + L2, y0, nonodes2)

    # Column-major numbering, top to bottom within a column
    XX, YY = np.meshgrid(temp_x, temp_y)
    VX = XX.flatten(order="F")
    VY = YY.flatten(order="F")

    col, row = np.meshgrid(np.arange(noelms1), np.arange(noelms2))
    col, row = col.flatten(order="F"), row.flatten(order="F")

    UL = row + col * nonodes2
    LL = UL + 1
    UR = UL + nonodes2
    LR = UR + 1

    EToV = np.empty((noelms, 3), dtype=np.int64)
    # Upper triangles: [UL, LR, UR]
    EToV[0::2, 0] = UL + 1
    EToV[0::2, 1] = LR + 1
    EToV[0::2, 2] = UR + 1
    # Lower triangles: [LL, LR, UL]
    EToV[1::2, 0] = LL + 1
    EToV[1::2, 1] = LR + 1
    EToV[1::2, 2] = UL + 1

    def node(c, r):
        return c * nonodes2 + r + 1

    cols = np.arange(noelms1)
    rows = np.arange(noelms2)
    bottom = np.column_stack([node(cols, noelms2), node(cols + 1, noelms2)])
    right = np.column_stack(
        [node(noelms1, noelms2 - rows), node(noelms1, noelms2 - rows - 1)]
    )
    top = np.column_stack(
        [node(noelms1 - cols, 0), node(noelms1 - cols - 1, 0)]
    )
    left = np.column_stack([node(0, rows), node(0, rows + 1)])

    edges = np.vstack([bottom, right, top, left])
    sides = np.repeat(
        [BOTTOM, RIGHT, TOP, LEFT], [noelms1, noelms2, noelms1, noelms2]
    )
    edge_tags = np.column_stack([sides, np.zeros_like(sides)])
    elem_tags = np.column_stack(
        [np.full(noelms, DOMAIN, dtype=np.int64), np.zeros(noelms, dtype=np.int64)]
    )

    return Mesh2d(
        VX=VX, VY=VY, EToV=EToV, edges=edges, elem_tags=elem_tags, edge_tags=edge_tags
    )


def single_triangle_mesh(
    vertices: Sequence[Sequence[float]],
    edge_tags: Sequence[int | None] = (1, 2, 3),
) -> Mesh2d:
    """
    Mesh of one triangle.

    Edge ``k`` joins vertices ``k`` and ``k+1`` (cyclically) and gets physical
    tag ``edge_tags[k]``; a ``None`` tag leaves that side out of the boundary.
    """
    coords = np.asarray(vertices, dtype=np.float64)
    if coords.shape != (3, 2):
        raise ValueError(f"Expected 3 vertices with 2 coordinates, got {coords.shape}")
    if len(edge_tags) != 3:
        raise ValueError(f"Expected 3 edge tags, got {len(edge_tags)}")

    kept = [k for k, tag in enumerate(edge_tags) if tag is not None]
    edges = EDGE_VERTICES[kept] + 1
    tags = np.array([edge_tags[k] for k in kept], dtype=np.int64)

    return Mesh2d(
        VX=coords[:, 0],
        VY=coords[:, 1],
        EToV=np.array([[1, 2, 3]]),
        edges=edges,
        elem_tags=np.array([[DOMAIN, 0]]),
        edge_tags=np.column_stack([tags, np.zeros_like(tags)]),
    )


def _collect_cells(
    mesh: meshio.Mesh, cell_type: str
) -> tuple[NDArray[np.int64], NDArray[np.int64] | None, NDArray[np.int64] | None]:
    """Concatenate all blocks of ``cell_type`` together with their gmsh tags."""
    blocks = []
    tags = {"gmsh:physical": [], "gmsh:geometrical": []}

    for k, block in enumerate(mesh.cells):
        if block.type != cell_type:
            continue
        blocks.append(np.asarray(block.data, dtype=np.int64))
        for key in tags:
            data = mesh.cell_data.get(key)
            tags[key].append(None if data is None else np.asarray(data[k]))

    if not blocks:
        return np.empty((0, 0), dtype=np.int64), None, None

    def merged(key):
        parts = tags[key]
        if any(part is None for part in parts):
            return None
        return np.concatenate(parts).astype(np.int64)

    return (
        np.concatenate(blocks),
        merged("gmsh:physical"),
        merged("gmsh:geometrical"),
    )


def from_meshio(mesh: meshio.Mesh) -> Mesh2d:
    """
    Build a Mesh2d from a meshio mesh carrying gmsh physical tags.

    Boundary edges come from the ``line`` cells. Nodes that no triangle uses
    (e.g. geometry points Gmsh keeps around) are dropped and the rest
    renumbered contiguously.
    """
    points = np.asarray(mesh.points, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] < 2:
        raise MeshParseError(f"Mesh points must be (N, 2) or (N, 3), got {points.shape}")

    triangles, elem_phys, elem_geom = _collect_cells(mesh, "triangle")
    if triangles.size == 0:
        raise MeshParseError("No triangle cells found in mesh")

    lines, edge_phys, edge_geom = _collect_cells(mesh, "line")
    if lines.size == 0:
        log.warning("Mesh has no line cells; no boundary conditions can be applied")
        lines = np.empty((0, 2), dtype=np.int64)
        edge_phys = np.empty(0, dtype=np.int64)
        edge_geom = np.empty(0, dtype=np.int64)
    elif edge_phys is None:
        raise MeshParseError(
            "Line cells carry no 'gmsh:physical' tags; "
            "define physical groups for the boundary curves"
        )

    if edge_geom is None:
        edge_geom = np.zeros(len(lines), dtype=np.int64)
    if elem_phys is None:
        elem_phys = np.zeros(len(triangles), dtype=np.int64)
    if elem_geom is None:
        elem_geom = np.zeros(len(triangles), dtype=np.int64)

    if triangles.min() < 0 or triangles.max() >= len(points):
        raise MeshParseError("Triangle connectivity references missing points")

    # Drop nodes not used by any triangle and renumber (0-based here)
    used = np.unique(triangles)
    renumber = np.full(len(points), -1, dtype=np.int64)
    renumber[used] = np.arange(len(used))
    if len(used) < len(points):
        log.warning(f"Dropping {len(points) - len(used)} nodes not used by any triangle")

    if lines.size and (lines.min() < 0 or lines.max() >= len(points)):
        raise MeshParseError("Line connectivity references missing points")
    edges = renumber[lines]
    if np.any(edges < 0):
        raise MeshParseError("Boundary line references a node outside the triangulation")

    try:
        return Mesh2d(
            VX=points[used, 0],
            VY=points[used, 1],
            EToV=renumber[triangles] + 1,
            edges=edges + 1,
            elem_tags=np.column_stack([elem_phys, elem_geom]),
            edge_tags=np.column_stack([edge_phys, edge_geom]),
        )
    except ValueError as exc:
        raise MeshParseError(f"Invalid mesh data: {exc}") from exc


def read_mesh(path: str | Path) -> Mesh2d:
    """
    Read a mesh file (Gmsh ``.msh`` or any format meshio understands).

    Raises
    ------
    MeshParseError
        If the file cannot be read or does not describe a valid P1 mesh.
    """
    path = Path(path)
    try:
        raw = meshio.read(path)
    except (meshio.ReadError, ValueError, IndexError, KeyError) as exc:
        raise MeshParseError(f"Cannot read mesh file {path}: {exc}") from exc

    mesh = from_meshio(raw)
    log.info(
        f"Loaded {path.name}: {mesh.nonodes} nodes, {mesh.noelms} elements, "
        f"{mesh.noedges} boundary edges"
    )
    return mesh
