from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Callable, Union

import numpy as np
from numpy.typing import NDArray
from scipy.sparse import csr_matrix, diags, spmatrix

from .datastructures import Mesh2d
from .elements import evaluate
from .errors import InconsistentDirichletDataError, UnknownBoundaryTagError

log = logging.getLogger(__name__)

ValueFunction = Union[Callable[[NDArray, NDArray], NDArray], float]

CONFLICT_POLICIES = ("warn", "raise")


@dataclass(frozen=True)
class Dirichlet:
    """Prescribed solution value u = value(x, y)."""

    value: ValueFunction


@dataclass(frozen=True)
class Neumann:
    """Prescribed outward normal flux A du/dn = value(x, y)."""

    value: ValueFunction


BoundaryCondition = Union[Dirichlet, Neumann]
BoundarySpec = Mapping[int, BoundaryCondition]

_KINDS = {"D": Dirichlet, "N": Neumann}


def boundary_spec(
    triples: Iterable[tuple[int, str, ValueFunction]],
) -> dict[int, BoundaryCondition]:
    """
    Build a boundary specification from ``(physical_tag, kind, value)`` triples.

    ``kind`` is ``'D'`` (Dirichlet) or ``'N'`` (Neumann). Each tag may appear
    only once.
    """
    spec: dict[int, BoundaryCondition] = {}
    for tag, kind, value in triples:
        if kind not in _KINDS:
            raise ValueError(
                f"Unknown boundary kind {kind!r} for tag {tag}; use 'D' or 'N'"
            )
        if int(tag) in spec:
            raise ValueError(f"Physical tag {tag} specified more than once")
        spec[int(tag)] = _KINDS[kind](value)
    return spec


def _lookup(spec: BoundarySpec, tag: int, edge: int) -> BoundaryCondition:
    try:
        condition = spec[tag]
    except KeyError:
        raise UnknownBoundaryTagError(tag, edge) from None
    if not isinstance(condition, (Dirichlet, Neumann)):
        raise TypeError(
            f"Boundary condition for tag {tag} must be Dirichlet or Neumann, "
            f"got {type(condition).__name__}"
        )
    return condition


def resolve_conditions(mesh: Mesh2d, spec: BoundarySpec) -> list[BoundaryCondition]:
    """Look up the boundary condition of every mesh edge, in edge order."""
    return [
        _lookup(spec, int(tag), n)
        for n, tag in enumerate(mesh.edge_physical, start=1)
    ]


def _edges_by_kind(
    mesh: Mesh2d, spec: BoundarySpec, kind: type
) -> list[tuple[NDArray[np.int64], BoundaryCondition]]:
    """Group edge indices (0-based) of one boundary kind by physical tag."""
    tags = mesh.edge_physical
    groups = []
    for tag in np.unique(tags):
        idx = np.flatnonzero(tags == tag)
        condition = _lookup(spec, int(tag), int(idx[0]) + 1)
        if isinstance(condition, kind):
            groups.append((idx, condition))
    log.debug(
        f"{sum(len(idx) for idx, _ in groups)} of {mesh.noedges} "
        f"edges are {kind.__name__}"
    )
    return groups


def get_boundary_nodes(mesh: Mesh2d, tag: int | None = None) -> NDArray[np.int64]:
    """Get boundary node indices (1-based), optionally for one physical tag."""
    edges = mesh.edges
    if tag is not None:
        edges = edges[mesh.edge_physical == tag]
    return np.unique(edges)


def neumann_load(mesh: Mesh2d, spec: BoundarySpec) -> NDArray[np.float64]:
    """
    Neumann contributions to the load vector.

    Each Neumann edge adds ``g(midpoint) * L / 2`` to both of its endpoints,
    where ``L`` is the edge length and ``g`` the prescribed flux.
    """
    b = np.zeros(mesh.nonodes)
    xi, yi, xj, yj = mesh.edge_coords

    for idx, condition in _edges_by_kind(mesh, spec, Neumann):
        edge_lengths = np.sqrt((xj[idx] - xi[idx]) ** 2 + (yj[idx] - yi[idx]) ** 2)
        q = evaluate(
            condition.value, (xi[idx] + xj[idx]) / 2, (yi[idx] + yj[idx]) / 2
        )
        q_contrib = q * edge_lengths / 2

        np.add.at(b, mesh.edges[idx, 0] - 1, q_contrib)
        np.add.at(b, mesh.edges[idx, 1] - 1, q_contrib)
    return b


def dirichlet_nodes(
    mesh: Mesh2d,
    spec: BoundarySpec,
    on_conflict: str = "warn",
) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
    """
    Constrained nodes (1-based, sorted) and their prescribed values.

    Values are evaluated at the nodes themselves. A node shared by several
    Dirichlet edges takes the value of the last such edge in mesh order;
    disagreeing values are reported according to ``on_conflict``.
    """
    if on_conflict not in CONFLICT_POLICIES:
        raise ValueError(
            f"on_conflict must be one of {CONFLICT_POLICIES}, got {on_conflict!r}"
        )

    groups = _edges_by_kind(mesh, spec, Dirichlet)
    if not groups:
        return np.empty(0, dtype=np.int64), np.empty(0)

    # One (edge, node, value) record per Dirichlet edge endpoint
    edge_ids, nodes, values = [], [], []
    for idx, condition in groups:
        ends = mesh.edges[idx]
        flat = ends.ravel()
        edge_ids.append(np.repeat(idx, 2))
        nodes.append(flat)
        values.append(evaluate(condition.value, mesh.VX[flat - 1], mesh.VY[flat - 1]))

    edge_ids = np.concatenate(edge_ids)
    nodes = np.concatenate(nodes)
    values = np.concatenate(values)

    # Apply in mesh edge order; stable so endpoints of one edge keep their order
    order = np.argsort(edge_ids, kind="stable")
    nodes, values = nodes[order], values[order]

    # Last occurrence of every node wins
    unique_nodes, last_rev = np.unique(nodes[::-1], return_index=True)
    last = len(nodes) - 1 - last_rev
    final_values = values[last]

    inverse = np.searchsorted(unique_nodes, nodes)
    disagree = ~np.isclose(values, final_values[inverse], rtol=1e-12, atol=1e-12)
    if np.any(disagree):
        conflicted = np.unique(nodes[disagree])
        msg = (
            f"Dirichlet edges prescribe different values at {len(conflicted)} "
            f"shared node(s), first node {conflicted[0]}"
        )
        if on_conflict == "raise":
            raise InconsistentDirichletDataError(msg)
        log.warning(f"{msg}; using the value of the last edge")

    return unique_nodes, final_values


def dirbc_2d(
    bnodes: NDArray[np.int64],
    f: NDArray[np.float64],
    A: spmatrix,
    b: NDArray[np.float64],
) -> tuple[csr_matrix, NDArray[np.float64]]:
    """
    Impose Dirichlet values by lifting and row/column elimination.

    Known values are moved to the right-hand side of the free rows; rows and
    columns of constrained nodes are zeroed with a unit diagonal and
    ``b[k] = f_k``. Returns new objects and leaves ``A`` and ``b`` untouched.
    """
    bnodes_0 = np.asarray(bnodes, dtype=np.int64) - 1
    n = A.shape[0]
    A_csr = csr_matrix(A, copy=True)
    b = np.array(b, dtype=np.float64)

    if len(bnodes_0) == 0:
        return A_csr, b

    # A[:, bnodes] @ f == A @ f_full where f_full is zero except at bnodes
    f_full = np.zeros(n)
    f_full[bnodes_0] = f
    b -= A_csr @ f_full
    b[bnodes_0] = f

    # Zero boundary rows/cols and put a unit diagonal on them
    scale = np.ones(n)
    scale[bnodes_0] = 0.0

    row_scale = np.repeat(scale, np.diff(A_csr.indptr))
    col_scale = scale[A_csr.indices]
    A_csr.data *= row_scale * col_scale

    A_new = csr_matrix(A_csr + diags(1.0 - scale))
    A_new.eliminate_zeros()
    return A_new, b
