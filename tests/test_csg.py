"""Tests for CSG boolean operations and mesh conversion."""
import numpy as np
import pytest
import trimesh

from csg import CSGSolid


def _bounds(solid):
    lo, hi = solid.bounds()
    return [round(float(v), 6) for v in lo], [round(float(v), 6) for v in hi]


class TestBox:

    def test_unit_cube_measures(self, unit_cube):
        assert len(unit_cube.polygons) == 6
        assert unit_cube.volume() == pytest.approx(1.0)
        assert unit_cube.surface_area() == pytest.approx(6.0)
        assert _bounds(unit_cube) == ([0, 0, 0], [1, 1, 1])

    def test_faces_point_outward(self, unit_cube):
        for polygon in unit_cube.polygons:
            centre = np.mean([v.pos.to_array() for v in polygon.vertices], axis=0)
            outward = centre - np.array([0.5, 0.5, 0.5])
            assert np.dot(outward, polygon.plane.normal.to_array()) > 0

    def test_shared_tag(self):
        box = CSGSolid.box((0, 0, 0), (2, 2, 2), shared="body")
        assert {p.shared for p in box.polygons} == {"body"}

    def test_empty_solid(self):
        empty = CSGSolid()
        assert empty.is_empty
        assert empty.bounds() is None
        assert empty.volume() == 0.0


class TestBooleans:
    """Two unit cubes overlapping by half a unit along X."""

    def test_union_volume(self, unit_cube, shifted_cube):
        result = unit_cube.union(shifted_cube)
        assert result.volume() == pytest.approx(1.5, abs=1e-6)
        assert _bounds(result) == ([0, 0, 0], [1.5, 1, 1])

    def test_union_has_no_internal_faces(self, unit_cube, shifted_cube):
        result = unit_cube.union(shifted_cube)
        # Outer skin of a 1.5 x 1 x 1 box.
        assert result.surface_area() == pytest.approx(2 * (1.5 + 1.5 + 1.0), abs=1e-6)

    def test_intersect_is_half_box(self, unit_cube, shifted_cube):
        result = unit_cube.intersect(shifted_cube)
        assert result.volume() == pytest.approx(0.5, abs=1e-6)
        assert _bounds(result) == ([0.5, 0, 0], [1, 1, 1])

    def test_subtract_removes_overlap(self, unit_cube, shifted_cube):
        result = unit_cube.subtract(shifted_cube)
        assert result.volume() == pytest.approx(0.5, abs=1e-6)
        assert _bounds(result) == ([0, 0, 0], [0.5, 1, 1])

    def test_subtract_l_shape(self, unit_cube):
        corner = CSGSolid.box((1.0, 1.0, 0.5), (1.0, 1.0, 1.0))
        result = unit_cube.subtract(corner)
        assert result.volume() == pytest.approx(0.75, abs=1e-6)
        assert _bounds(result) == ([0, 0, 0], [1, 1, 1])

    def test_operands_not_mutated(self, unit_cube, shifted_cube):
        before = [[tuple(v.pos) for v in p.vertices] for p in unit_cube.polygons]
        unit_cube.subtract(shifted_cube)
        unit_cube.union(shifted_cube)
        unit_cube.intersect(shifted_cube)
        after = [[tuple(v.pos) for v in p.vertices] for p in unit_cube.polygons]
        assert after == before
        assert unit_cube.volume() == pytest.approx(1.0)
        assert shifted_cube.volume() == pytest.approx(1.0)

    def test_self_union_keeps_surface_area(self, unit_cube):
        result = unit_cube.union(unit_cube)
        assert result.surface_area() == pytest.approx(unit_cube.surface_area())
        assert result.volume() == pytest.approx(1.0)

    def test_subtract_then_union_stays_compact(self, unit_cube, shifted_cube):
        carved = unit_cube.subtract(shifted_cube)
        rebuilt = carved.union(shifted_cube)
        assert len(carved.polygons) <= 4 * len(unit_cube.polygons)
        assert len(rebuilt.polygons) <= 4 * len(unit_cube.polygons)
        assert rebuilt.volume() == pytest.approx(1.5, abs=1e-6)
        assert _bounds(rebuilt) == ([0, 0, 0], [1.5, 1, 1])

    def test_disjoint_subtract_is_identity(self, unit_cube):
        far = CSGSolid.box((10, 10, 10), (1, 1, 1))
        result = unit_cube.subtract(far)
        assert result.volume() == pytest.approx(1.0)
        assert len(result.polygons) == 6


class TestInverse:

    def test_inverse_negates_volume(self, unit_cube):
        assert unit_cube.inverse().volume() == pytest.approx(-1.0)

    def test_inverse_twice_restores(self, unit_cube):
        twice = unit_cube.inverse().inverse()
        for a, b in zip(unit_cube.polygons, twice.polygons):
            assert [tuple(v.pos) for v in a.vertices] == [tuple(v.pos) for v in b.vertices]
            assert a.plane.normal == b.plane.normal
            assert a.plane.w == b.plane.w

    def test_inverse_leaves_original(self, unit_cube):
        unit_cube.inverse()
        assert unit_cube.volume() == pytest.approx(1.0)


class TestEmptyOperands:

    @pytest.mark.parametrize("op", ["union", "subtract", "intersect"])
    def test_empty_other_is_no_op(self, unit_cube, op):
        result = getattr(unit_cube, op)(CSGSolid())
        assert len(result.polygons) == 6
        assert result.volume() == pytest.approx(1.0)

    def test_empty_union_empty(self):
        assert CSGSolid().union(CSGSolid()).is_empty


class TestTransform:

    def test_translate(self, unit_cube):
        matrix = np.eye(4)
        matrix[:3, 3] = (2, 3, 4)
        moved = unit_cube.transformed(matrix)
        assert _bounds(moved) == ([2, 3, 4], [3, 4, 5])

    def test_rotation_keeps_volume_and_normals(self):
        box = CSGSolid.box((0, 0, 0), (4, 2, 1))
        matrix = trimesh.transformations.rotation_matrix(np.pi / 2, [0, 0, 1])
        rotated = box.transformed(matrix)
        assert rotated.volume() == pytest.approx(8.0)
        lo, hi = rotated.bounds()
        assert np.allclose(hi - lo, [2, 4, 1])
        for polygon in rotated.polygons:
            for v in polygon.vertices:
                assert v.normal.length() == pytest.approx(1.0)


class TestMeshArrays:

    def test_round_trip(self, unit_cube):
        positions, normals = unit_cube.to_mesh_arrays()
        assert positions.dtype == np.float32
        assert positions.size == 12 * 9
        assert normals.size == positions.size
        rebuilt = CSGSolid.from_mesh_arrays(positions, normals)
        assert len(rebuilt.polygons) == 12
        assert rebuilt.volume() == pytest.approx(1.0, abs=1e-5)

    def test_default_normal_is_plus_z(self):
        solid = CSGSolid.from_mesh_arrays([0, 0, 0, 1, 0, 0, 0, 1, 0])
        assert tuple(solid.polygons[0].vertices[0].normal) == (0.0, 0.0, 1.0)

    def test_matrix_applied(self):
        matrix = np.eye(4)
        matrix[:3, 3] = (0, 0, 5)
        solid = CSGSolid.from_mesh_arrays([0, 0, 0, 1, 0, 0, 0, 1, 0], matrix=matrix, shared="m")
        assert all(v.pos.z == 5.0 for v in solid.polygons[0].vertices)
        assert solid.polygons[0].shared == "m"

    def test_degenerate_triangles_skipped(self):
        positions = [0, 0, 0, 1, 0, 0, 2, 0, 0,
                     0, 0, 0, 1, 0, 0, 0, 1, 0]
        solid = CSGSolid.from_mesh_arrays(positions)
        assert len(solid.polygons) == 1

    def test_bad_length_raises(self):
        with pytest.raises(ValueError):
            CSGSolid.from_mesh_arrays([0, 0, 0, 1, 0, 0])

    def test_normals_mismatch_raises(self):
        with pytest.raises(ValueError):
            CSGSolid.from_mesh_arrays([0, 0, 0, 1, 0, 0, 0, 1, 0], normals=[0, 0, 1])


class TestTrimesh:

    def test_from_trimesh(self, box_mesh):
        solid = CSGSolid.from_trimesh(box_mesh)
        assert len(solid.polygons) == 12
        assert solid.volume() == pytest.approx(1e6, rel=1e-6)

    def test_to_trimesh(self, unit_cube, shifted_cube):
        mesh = unit_cube.subtract(shifted_cube).to_trimesh()
        assert isinstance(mesh, trimesh.Trimesh)
        assert np.allclose(mesh.bounds, [[0, 0, 0], [0.5, 1, 1]])
        assert len(mesh.faces) * 3 == len(mesh.vertices)
