"""Shared fixtures for the poissonfem test suite."""

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import meshio
import numpy as np
import pytest

from poissonfem import rectangle_mesh, single_triangle_mesh


@pytest.fixture
def reference_triangle():
    """Vertex coordinates of (0,0), (1,0), (0,1)."""
    return np.array([0.0, 1.0, 0.0]), np.array([0.0, 0.0, 1.0])


@pytest.fixture
def unit_square_4x4():
    return rectangle_mesh(0.0, 0.0, 1.0, 1.0, 4, 4)


@pytest.fixture
def isosceles_mesh():
    """One triangle symmetric about x = 0.5; only the bottom edge is tagged."""
    return single_triangle_mesh([[0.0, 0.0], [1.0, 0.0], [0.5, 1.0]], (1, None, None))


@pytest.fixture
def square_msh(tmp_path):
    """Two-triangle unit square written as a Gmsh 2.2 file.

    Lines carry physical tags bottom=1, right=2, top=3, left=4 and
    geometrical tags 11..14; triangles carry physical 7, geometrical 21.
    """
    points = np.array(
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]]
    )
    cells = [
        ("line", np.array([[0, 1], [1, 2], [2, 3], [3, 0]])),
        ("triangle", np.array([[0, 1, 2], [0, 2, 3]])),
    ]
    cell_data = {
        "gmsh:physical": [np.array([1, 2, 3, 4]), np.array([7, 7])],
        "gmsh:geometrical": [np.array([11, 12, 13, 14]), np.array([21, 21])],
    }
    path = tmp_path / "square.msh"
    meshio.write(
        path,
        meshio.Mesh(points, cells, cell_data=cell_data),
        file_format="gmsh22",
        binary=False,
    )
    return path


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")
