from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

# Element configuration (P1 triangles)
N_LOCAL_NODES = 3

# Edge k (1,2,3) of a triangle connects these vertex positions in EToV
EDGE_VERTICES = np.array([[0, 1], [1, 2], [2, 0]])

# Column of the physical tag in elem_tags / edge_tags ([physical, geometric])
PHYSICAL = 0


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.array(array, copy=True)
    array.flags.writeable = False
    return array


@dataclass(frozen=True, eq=False)
class Mesh2d:
    """
    Immutable 2D triangular mesh for P1 finite elements.

    Node ``i`` (1-based) sits at ``(VX[i-1], VY[i-1])``. Element and edge
    connectivity use 1-based node numbers, as in the mesh files.

    Attributes
    ----------
    VX, VY : ndarray (nonodes,)
        Node coordinates.
    EToV : ndarray (noelms, 3)
        Element-to-vertex connectivity (1-based).
    edges : ndarray (noedges, 2)
        Boundary edges as ordered node pairs (1-based).
    elem_tags : ndarray (noelms, 2), optional
        ``[physical, geometric]`` tag per element, zeros if omitted.
    edge_tags : ndarray (noedges, 2), optional
        ``[physical, geometric]`` tag per edge, zeros if omitted.
    """

    VX: NDArray[np.float64]
    VY: NDArray[np.float64]
    EToV: NDArray[np.int64]
    edges: NDArray[np.int64]
    elem_tags: NDArray[np.int64] | None = None
    edge_tags: NDArray[np.int64] | None = None

    # CSR assembly pattern (pre-computed for direct CSR construction)
    _csr_indptr: NDArray[np.int64] = field(init=False, repr=False)
    _csr_indices: NDArray[np.int64] = field(init=False, repr=False)
    _csr_data_map: NDArray[np.int64] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        VX = np.asarray(self.VX, dtype=np.float64).ravel()
        VY = np.asarray(self.VY, dtype=np.float64).ravel()
        EToV = np.asarray(self.EToV, dtype=np.int64).reshape(-1, N_LOCAL_NODES)
        edges = np.asarray(self.edges, dtype=np.int64).reshape(-1, 2)

        elem_tags = self.elem_tags
        if elem_tags is None:
            elem_tags = np.zeros((len(EToV), 2), dtype=np.int64)
        elem_tags = np.asarray(elem_tags, dtype=np.int64).reshape(-1, 2)

        edge_tags = self.edge_tags
        if edge_tags is None:
            edge_tags = np.zeros((len(edges), 2), dtype=np.int64)
        edge_tags = np.asarray(edge_tags, dtype=np.int64).reshape(-1, 2)

        self._validate(VX, VY, EToV, edges, elem_tags, edge_tags)

        for name, value in (
            ("VX", VX),
            ("VY", VY),
            ("EToV", EToV),
            ("edges", edges),
            ("elem_tags", elem_tags),
            ("edge_tags", edge_tags),
        ):
            object.__setattr__(self, name, _frozen(value))

        self._compute_assembly_indices()

    @staticmethod
    def _validate(VX, VY, EToV, edges, elem_tags, edge_tags) -> None:
        if len(VX) != len(VY):
            raise ValueError(
                f"VX and VY must have equal length, got {len(VX)} and {len(VY)}"
            )
        if len(VX) == 0:
            raise ValueError("Mesh has no nodes")
        if len(EToV) == 0:
            raise ValueError("Mesh has no elements")
        if len(elem_tags) != len(EToV):
            raise ValueError(
                f"elem_tags length ({len(elem_tags)}) must match "
                f"number of elements ({len(EToV)})"
            )
        if len(edge_tags) != len(edges):
            raise ValueError(
                f"edge_tags length ({len(edge_tags)}) must match "
                f"number of edges ({len(edges)})"
            )
        if not (np.all(np.isfinite(VX)) and np.all(np.isfinite(VY))):
            raise ValueError("Node coordinates must be finite")

        nonodes = len(VX)
        for name, conn in (("EToV", EToV), ("edges", edges)):
            if conn.size and (conn.min() < 1 or conn.max() > nonodes):
                raise ValueError(
                    f"{name} references nodes outside 1..{nonodes} "
                    f"(min={conn.min()}, max={conn.max()})"
                )

        repeated = (
            (EToV[:, 0] == EToV[:, 1])
            | (EToV[:, 1] == EToV[:, 2])
            | (EToV[:, 2] == EToV[:, 0])
        )
        if np.any(repeated):
            n = int(np.flatnonzero(repeated)[0]) + 1
            raise ValueError(f"Element {n} has repeated vertices {EToV[n - 1]}")

        if np.any(edges[:, 0] == edges[:, 1]):
            n = int(np.flatnonzero(edges[:, 0] == edges[:, 1])[0]) + 1
            raise ValueError(f"Edge {n} connects node {edges[n - 1, 0]} to itself")

    def _compute_assembly_indices(self) -> None:
        """Compute the CSR sparsity pattern for direct assembly."""
        nodes = self.EToV - 1

        # For P1: 9 entries per element (3x3 local matrix), row-major
        n = N_LOCAL_NODES
        rows = np.repeat(nodes, n, axis=1).ravel()
        cols = np.tile(nodes, n).ravel()
        n_entries = len(rows)

        # Sort by (row, col) to group duplicates and build CSR structure
        sort_order = np.lexsort((cols, rows))
        sorted_rows = rows[sort_order]
        sorted_cols = cols[sort_order]

        # Find boundaries between unique (row, col) pairs
        row_diff = np.diff(sorted_rows, prepend=-1)
        col_diff = np.diff(sorted_cols, prepend=-1)
        is_new_pair = (row_diff != 0) | (col_diff != 0)

        unique_rows = sorted_rows[is_new_pair]
        unique_cols = sorted_cols[is_new_pair]

        # indptr: cumulative count of entries per row
        indptr = np.zeros(self.nonodes + 1, dtype=np.int64)
        np.add.at(indptr, unique_rows + 1, 1)
        np.cumsum(indptr, out=indptr)

        # Map each original entry to its position in CSR data array
        pair_indices = np.cumsum(is_new_pair) - 1
        data_map = np.empty(n_entries, dtype=np.int64)
        data_map[sort_order] = pair_indices

        object.__setattr__(self, "_csr_indptr", _frozen(indptr))
        object.__setattr__(self, "_csr_indices", _frozen(unique_cols))
        object.__setattr__(self, "_csr_data_map", _frozen(data_map))

    @property
    def nonodes(self) -> int:
        return len(self.VX)

    @property
    def noelms(self) -> int:
        return len(self.EToV)

    @property
    def noedges(self) -> int:
        return len(self.edges)

    @property
    def nnz(self) -> int:
        """Number of stored entries in the assembled stiffness matrix."""
        return len(self._csr_indices)

    @property
    def edge_physical(self) -> NDArray[np.int64]:
        return self.edge_tags[:, PHYSICAL]

    @property
    def elem_physical(self) -> NDArray[np.int64]:
        return self.elem_tags[:, PHYSICAL]

    @property
    def vertex_coords(
        self,
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Return element vertex coordinates ``(x, y)``, each (noelms, 3)."""
        nodes = self.EToV - 1
        return self.VX[nodes], self.VY[nodes]

    @property
    def edge_coords(
        self,
    ) -> tuple[
        NDArray[np.float64],
        NDArray[np.float64],
        NDArray[np.float64],
        NDArray[np.float64],
    ]:
        """Return ``(xi, yi, xj, yj)`` endpoint coordinates of every edge."""
        i = self.edges[:, 0] - 1
        j = self.edges[:, 1] - 1
        return self.VX[i], self.VY[i], self.VX[j], self.VY[j]
