import math

import numpy as np
import pytest

from geometry.entities import (
    ShapeModel,
    TriangleMesh,
    Vertex,
    face_normals_of,
    face_rows_of,
    positions_of,
)
from geometry.shapes import convex_hull_mesh, cube, icosphere, octahedron, tetrahedron
from geometry.triangle_ops import (
    polyhedron_density,
    polyhedron_volume,
    triangle_centroids,
    triangle_unit_normals,
)
from runtime.topology import check_closed_manifold
from sample_meshes import (
    REGULAR_TETRA_FACES,
    REGULAR_TETRA_POSITIONS,
    TETRA_FACES,
    TETRA_POSITIONS,
    as_list_model,
)


def test_cube_volume():
    assert polyhedron_volume(cube().positions, cube().faces) == pytest.approx(8.0)


def test_tetraeder_volume():
    volume = polyhedron_volume(REGULAR_TETRA_POSITIONS, REGULAR_TETRA_FACES)
    assert volume == pytest.approx(0.1178511301977579)


def test_inward_winding_gives_negative_volume():
    flipped = TETRA_FACES[:, [0, 2, 1]]
    assert polyhedron_volume(TETRA_POSITIONS, flipped) == pytest.approx(-1.0 / 6.0)
    assert polyhedron_density(TETRA_POSITIONS, flipped, mass=2.0) == pytest.approx(12.0)


def test_density_for_unit_mass():
    assert polyhedron_density(cube().positions, cube().faces) == pytest.approx(1.0 / 8.0)


def test_triangle_mesh_normals_are_outward_unit_vectors():
    mesh = tetrahedron()
    expected = np.array(
        [
            [0.0, 0.0, -1.0],
            [0.0, -1.0, 0.0],
            [-1.0, 0.0, 0.0],
            [1.0, 1.0, 1.0] / np.sqrt(3.0),
        ]
    )
    assert np.allclose(mesh.normals, expected)
    for fid in range(mesh.face_count()):
        assert np.allclose(mesh.face_normal(fid), expected[fid])


def test_triangle_mesh_implements_shape_model():
    mesh = tetrahedron()
    assert isinstance(mesh, ShapeModel)
    assert isinstance(as_list_model(mesh), ShapeModel)
    assert mesh.vertex_count() == 4
    assert mesh.face_count() == 4
    assert len(mesh) == 4
    assert mesh.face_vertex_ids(3) == (1, 2, 3)
    assert all(isinstance(v, int) for v in mesh.face_vertex_ids(0))
    assert np.array_equal(mesh.vertex_position(2), [0.0, 1.0, 0.0])
    assert "vertices=4" in repr(mesh)


def test_triangle_mesh_copies_and_freezes_input():
    positions = np.array(TETRA_POSITIONS)
    mesh = TriangleMesh(positions, TETRA_FACES)
    positions[0] = [9.0, 9.0, 9.0]
    assert np.array_equal(mesh.positions[0], [0.0, 0.0, 0.0])
    with pytest.raises(ValueError):
        mesh.positions[0, 0] = 1.0


def test_supplied_normals_are_used():
    normals = -tetrahedron().normals
    mesh = TriangleMesh(TETRA_POSITIONS, TETRA_FACES, normals=normals)
    assert np.allclose(mesh.normals, normals)


@pytest.mark.parametrize(
    "positions, faces, normals",
    [
        (np.zeros((4, 2)), TETRA_FACES, None),
        (TETRA_POSITIONS, np.zeros((2, 4), dtype=int), None),
        (TETRA_POSITIONS, np.array([[0, 1, 4]]), None),
        (TETRA_POSITIONS, np.array([[0, -1, 2]]), None),
        (TETRA_POSITIONS, TETRA_FACES, np.zeros((3, 3))),
    ],
)
def test_triangle_mesh_rejects_malformed_arrays(positions, faces, normals):
    with pytest.raises(ValueError):
        TriangleMesh(positions, faces, normals=normals)


def test_degenerate_triangle_is_rejected():
    positions = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
    with pytest.raises(ValueError, match="Degenerate"):
        triangle_unit_normals(positions, np.array([[0, 1, 2]]))


def test_face_areas_and_vertex_areas():
    mesh = cube()
    assert mesh.compute_total_surface_area() == pytest.approx(24.0)
    assert np.allclose(mesh.face_areas(), 2.0)
    assert mesh.vertex_areas().sum() == pytest.approx(24.0)


def test_centroids_and_bounding_radius():
    mesh = tetrahedron()
    assert np.allclose(mesh.face_centroids()[3], [1.0 / 3.0] * 3)
    assert np.allclose(triangle_centroids(mesh.positions, mesh.faces), mesh.face_centroids())
    assert mesh.bounding_radius(np.zeros(3)) == pytest.approx(1.0)
    assert cube().bounding_radius() == pytest.approx(math.sqrt(3.0))


def test_vertex_distance():
    verts = list(tetrahedron().vertices())
    assert [v.index for v in verts] == [0, 1, 2, 3]
    assert isinstance(verts[0], Vertex)
    assert verts[1].compute_distance(verts[2]) == pytest.approx(math.sqrt(2.0))


def test_array_helpers_work_for_accessor_only_models():
    mesh = octahedron()
    model = as_list_model(mesh)
    assert np.allclose(positions_of(model), mesh.positions)
    assert np.array_equal(face_rows_of(model), mesh.faces)
    assert np.allclose(face_normals_of(model), mesh.normals)


@pytest.mark.parametrize("subdivisions", [0, 1, 2])
def test_icosphere_structure(subdivisions):
    mesh = icosphere(subdivisions)
    assert mesh.face_count() == 20 * 4**subdivisions
    assert np.allclose(np.linalg.norm(mesh.positions, axis=1), 1.0)
    assert check_closed_manifold(mesh)
    # Euler characteristic of a sphere
    assert mesh.vertex_count() - 3 * mesh.face_count() // 2 + mesh.face_count() == 2


def test_icosphere_volume_converges_to_ball():
    volumes = [icosphere(n).compute_total_volume() for n in range(4)]
    ball = 4.0 / 3.0 * math.pi
    assert all(v < ball for v in volumes)
    assert volumes == sorted(volumes)
    assert volumes[-1] == pytest.approx(ball, rel=2e-2)


def test_icosphere_rejects_negative_subdivisions():
    with pytest.raises(ValueError):
        icosphere(-1)


def test_convex_hull_mesh_of_cube_corners():
    rng = np.random.default_rng(5)
    corners = np.array(cube().positions)
    interior = rng.uniform(-0.5, 0.5, size=(10, 3))
    mesh = convex_hull_mesh(np.vstack([interior, corners]))

    assert mesh.vertex_count() == 8
    assert mesh.face_count() == 12
    assert mesh.compute_total_volume() == pytest.approx(8.0)
    assert check_closed_manifold(mesh)
    outward = np.einsum("ij,ij->i", mesh.normals, mesh.face_centroids())
    assert np.all(outward > 0.0)
