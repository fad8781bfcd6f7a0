"""Tests for the mesh model and mesh acquisition.

Run with: pytest tests/test_mesh.py -v
"""

import dataclasses
import logging

import meshio
import numpy as np
import pytest

from poissonfem import (
    BOTTOM,
    LEFT,
    RIGHT,
    TOP,
    Mesh2d,
    MeshParseError,
    from_meshio,
    element_basis,
    get_boundary_nodes,
    read_mesh,
    rectangle_mesh,
    single_triangle_mesh,
)


def signed_areas(mesh):
    x, y = mesh.vertex_coords
    return 0.5 * (
        (x[:, 1] - x[:, 0]) * (y[:, 2] - y[:, 0])
        - (x[:, 2] - x[:, 0]) * (y[:, 1] - y[:, 0])
    )


class TestMesh2d:
    """Construction, validation and immutability."""

    def test_counts(self):
        mesh = Mesh2d(
            VX=[0.0, 1.0, 0.0], VY=[0.0, 0.0, 1.0], EToV=[[1, 2, 3]], edges=[[1, 2]]
        )
        assert (mesh.nonodes, mesh.noelms, mesh.noedges) == (3, 1, 1)
        assert mesh.nnz == 9

    def test_default_tags(self):
        mesh = Mesh2d(VX=[0.0, 1.0, 0.0], VY=[0.0, 0.0, 1.0], EToV=[[1, 2, 3]], edges=[])
        assert mesh.elem_tags.shape == (1, 2)
        assert np.all(mesh.elem_tags == 0)
        assert mesh.edge_tags.shape == (0, 2)

    def test_zero_index_rejected(self):
        """Connectivity is 1-based."""
        with pytest.raises(ValueError, match="EToV"):
            Mesh2d(VX=[0.0, 1.0, 0.0], VY=[0.0, 0.0, 1.0], EToV=[[0, 1, 2]], edges=[])

    def test_edge_out_of_range(self):
        with pytest.raises(ValueError, match="edges"):
            Mesh2d(
                VX=[0.0, 1.0, 0.0], VY=[0.0, 0.0, 1.0], EToV=[[1, 2, 3]], edges=[[3, 4]]
            )

    def test_repeated_vertex(self):
        with pytest.raises(ValueError, match="repeated"):
            Mesh2d(VX=[0.0, 1.0, 0.0], VY=[0.0, 0.0, 1.0], EToV=[[1, 2, 2]], edges=[])

    def test_coordinate_length_mismatch(self):
        with pytest.raises(ValueError):
            Mesh2d(VX=[0.0, 1.0, 0.0], VY=[0.0, 0.0], EToV=[[1, 2, 3]], edges=[])

    def test_non_finite_coordinates(self):
        with pytest.raises(ValueError, match="finite"):
            Mesh2d(VX=[0.0, np.nan, 0.0], VY=[0.0, 0.0, 1.0], EToV=[[1, 2, 3]], edges=[])

    def test_tag_length_mismatch(self):
        with pytest.raises(ValueError, match="edge_tags"):
            Mesh2d(
                VX=[0.0, 1.0, 0.0],
                VY=[0.0, 0.0, 1.0],
                EToV=[[1, 2, 3]],
                edges=[[1, 2]],
                edge_tags=[[1, 0], [2, 0]],
            )

    def test_arrays_read_only(self, unit_square_4x4):
        with pytest.raises(ValueError):
            unit_square_4x4.VX[0] = 10.0
        with pytest.raises(ValueError):
            unit_square_4x4.EToV[0, 0] = 2

    def test_fields_frozen(self, unit_square_4x4):
        with pytest.raises(dataclasses.FrozenInstanceError):
            unit_square_4x4.VX = np.zeros(unit_square_4x4.nonodes)

    def test_input_not_aliased(self):
        VX = np.array([0.0, 1.0, 0.0])
        mesh = Mesh2d(VX=VX, VY=[0.0, 0.0, 1.0], EToV=[[1, 2, 3]], edges=[])
        VX[0] = 5.0
        assert mesh.VX[0] == 0.0


class TestRectangleMesh:
    """Structured rectangle triangulation."""

    def test_counts(self):
        mesh = rectangle_mesh(0.0, 0.0, 1.0, 1.0, 3, 2)
        assert mesh.nonodes == 12
        assert mesh.noelms == 12
        assert mesh.noedges == 10

    def test_counter_clockwise(self):
        mesh = rectangle_mesh(-1.0, 2.0, 3.0, 0.5, 5, 4)
        assert np.all(signed_areas(mesh) > 0)

    def test_total_area(self):
        mesh = rectangle_mesh(-1.0, 2.0, 3.0, 0.5, 5, 4)
        assert np.isclose(signed_areas(mesh).sum(), 1.5)

    def test_boundary_tags(self):
        mesh = rectangle_mesh(0.0, 0.0, 2.0, 1.0, 4, 3)
        xi, yi, xj, yj = mesh.edge_coords
        sides = mesh.edge_physical

        assert np.sum(sides == BOTTOM) == 4
        assert np.sum(sides == RIGHT) == 3
        assert np.sum(sides == TOP) == 4
        assert np.sum(sides == LEFT) == 3

        assert np.allclose(yi[sides == BOTTOM], 0.0)
        assert np.allclose(yj[sides == BOTTOM], 0.0)
        assert np.allclose(xi[sides == RIGHT], 2.0)
        assert np.allclose(yi[sides == TOP], 1.0)
        assert np.allclose(xj[sides == LEFT], 0.0)

    def test_geometric_tags_unset(self):
        """Generated meshes have no geometric entities behind them."""
        mesh = rectangle_mesh(0.0, 0.0, 1.0, 1.0, 3, 2)
        assert np.all(mesh.edge_tags[:, 1] == 0)
        assert np.all(mesh.elem_tags[:, 1] == 0)
        assert np.all(mesh.elem_physical == 1)

    def test_edges_counter_clockwise(self):
        """Boundary edges run with the domain on their left."""
        mesh = rectangle_mesh(0.0, 0.0, 1.0, 1.0, 2, 2)
        xi, yi, xj, yj = mesh.edge_coords
        bottom = mesh.edge_physical == BOTTOM
        right = mesh.edge_physical == RIGHT
        assert np.all(xj[bottom] > xi[bottom])
        assert np.all(yj[right] > yi[right])

    def test_boundary_nodes(self):
        mesh = rectangle_mesh(0.0, 0.0, 1.0, 1.0, 3, 2)
        nodes = get_boundary_nodes(mesh)
        assert len(nodes) == 10
        x, y = mesh.VX[nodes - 1], mesh.VY[nodes - 1]
        on_boundary = np.isclose(x, 0) | np.isclose(x, 1) | np.isclose(y, 0) | np.isclose(y, 1)
        assert np.all(on_boundary)

    def test_boundary_nodes_by_tag(self):
        mesh = rectangle_mesh(0.0, 0.0, 1.0, 1.0, 3, 2)
        left = get_boundary_nodes(mesh, LEFT)
        assert len(left) == 3
        assert np.allclose(mesh.VX[left - 1], 0.0)

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            rectangle_mesh(0.0, 0.0, 1.0, 1.0, 0, 2)
        with pytest.raises(ValueError):
            rectangle_mesh(0.0, 0.0, -1.0, 1.0, 2, 2)


class TestSingleTriangleMesh:
    def test_all_edges(self):
        mesh = single_triangle_mesh([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        assert np.array_equal(mesh.edges, [[1, 2], [2, 3], [3, 1]])
        assert np.array_equal(mesh.edge_physical, [1, 2, 3])

    def test_untagged_edge_omitted(self):
        mesh = single_triangle_mesh([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]], (5, None, 7))
        assert np.array_equal(mesh.edges, [[1, 2], [3, 1]])
        assert np.array_equal(mesh.edge_physical, [5, 7])


class TestFromMeshio:
    """Conversion of meshio meshes with gmsh tags."""

    points = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    triangles = np.array([[0, 1, 2], [0, 2, 3]])
    lines = np.array([[0, 1], [1, 2], [2, 3], [3, 0]])

    def test_tags_carried(self):
        raw = meshio.Mesh(
            self.points,
            [("line", self.lines), ("triangle", self.triangles)],
            cell_data={
                "gmsh:physical": [np.array([1, 2, 3, 4]), np.array([9, 9])],
                "gmsh:geometrical": [np.array([5, 6, 7, 8]), np.array([3, 3])],
            },
        )
        mesh = from_meshio(raw)
        assert np.array_equal(mesh.EToV, self.triangles + 1)
        assert np.array_equal(mesh.edges, self.lines + 1)
        assert np.array_equal(mesh.edge_tags, [[1, 5], [2, 6], [3, 7], [4, 8]])
        assert np.array_equal(mesh.elem_tags, [[9, 3], [9, 3]])

    def test_split_blocks_concatenated(self):
        raw = meshio.Mesh(
            self.points,
            [
                ("line", self.lines[:2]),
                ("triangle", self.triangles),
                ("line", self.lines[2:]),
            ],
            cell_data={"gmsh:physical": [np.array([1, 2]), np.array([1, 1]), np.array([3, 4])]},
        )
        mesh = from_meshio(raw)
        assert np.array_equal(mesh.edge_physical, [1, 2, 3, 4])
        assert np.all(mesh.edge_tags[:, 1] == 0)

    def test_no_triangles(self):
        raw = meshio.Mesh(
            self.points,
            [("line", self.lines)],
            cell_data={"gmsh:physical": [np.array([1, 2, 3, 4])]},
        )
        with pytest.raises(MeshParseError, match="triangle"):
            from_meshio(raw)

    def test_untagged_lines(self):
        raw = meshio.Mesh(self.points, [("line", self.lines), ("triangle", self.triangles)])
        with pytest.raises(MeshParseError, match="physical"):
            from_meshio(raw)

    def test_no_lines_warns(self, caplog):
        raw = meshio.Mesh(self.points, [("triangle", self.triangles)])
        with caplog.at_level(logging.WARNING):
            mesh = from_meshio(raw)
        assert mesh.noedges == 0
        assert "no line cells" in caplog.text

    def test_unused_nodes_dropped(self, caplog):
        points = np.vstack([[5.0, 5.0], self.points])
        raw = meshio.Mesh(
            points,
            [("line", self.lines + 1), ("triangle", self.triangles + 1)],
            cell_data={"gmsh:physical": [np.array([1, 2, 3, 4]), np.array([1, 1])]},
        )
        with caplog.at_level(logging.WARNING):
            mesh = from_meshio(raw)
        assert mesh.nonodes == 4
        assert np.allclose(mesh.VX, self.points[:, 0])
        assert np.array_equal(mesh.EToV, self.triangles + 1)
        assert "Dropping 1 nodes" in caplog.text

    def test_line_outside_triangulation(self):
        points = np.vstack([self.points, [[5.0, 5.0]]])
        lines = np.vstack([self.lines, [[3, 4]]])
        raw = meshio.Mesh(
            points,
            [("line", lines), ("triangle", self.triangles)],
            cell_data={"gmsh:physical": [np.array([1, 2, 3, 4, 5]), np.array([1, 1])]},
        )
        with pytest.raises(MeshParseError):
            from_meshio(raw)

    def test_invalid_connectivity(self):
        raw = meshio.Mesh(self.points, [("triangle", np.array([[0, 1, 1]]))])
        with pytest.raises(MeshParseError, match="Invalid mesh data"):
            from_meshio(raw)


class TestReadMesh:
    """Reading Gmsh files from disk."""

    def test_gmsh22_file(self, square_msh):
        mesh = read_mesh(square_msh)
        assert (mesh.nonodes, mesh.noelms, mesh.noedges) == (4, 2, 4)
        assert np.array_equal(mesh.edges, [[1, 2], [2, 3], [3, 4], [4, 1]])
        assert np.array_equal(mesh.edge_tags[:, 0], [1, 2, 3, 4])
        assert np.array_equal(mesh.edge_tags[:, 1], [11, 12, 13, 14])
        assert np.array_equal(mesh.elem_tags, [[7, 21], [7, 21]])

    def test_missing_file(self, tmp_path):
        with pytest.raises(MeshParseError):
            read_mesh(tmp_path / "does_not_exist.msh")

    def test_unknown_format(self, tmp_path):
        path = tmp_path / "mesh.unknownext"
        path.write_text("0 0 0\n")
        with pytest.raises(MeshParseError):
            read_mesh(path)

    def test_gmsh_generated(self, tmp_path):
        """Meshes produced by the Gmsh API keep their physical groups."""
        pytest.importorskip("gmsh")
        from poissonfem.meshing import generate_unit_square

        path = generate_unit_square(0.25, tmp_path / "unit_square.msh")
        mesh = read_mesh(path)

        assert mesh.noelms > 8
        assert set(np.unique(mesh.edge_physical)) == {BOTTOM, RIGHT, TOP, LEFT}
        assert np.all(mesh.elem_physical == 1)
        x, y = mesh.vertex_coords
        _, area = element_basis(x, y)
        assert np.isclose(area.sum(), 1.0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
