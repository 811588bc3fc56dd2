import numpy as np
import pytest

from core.exceptions import MeshTopologyError
from geometry.entities import TriangleMesh
from geometry.shapes import cube, icosphere, tetrahedron
from runtime.topology import build_topology, check_closed_manifold
from sample_meshes import as_list_model, closed_meshes, shuffled

MESHES = closed_meshes()


@pytest.mark.parametrize("name", sorted(MESHES))
def test_edge_count_is_three_halves_of_faces(name):
    mesh = MESHES[name]
    topo = build_topology(mesh)
    assert topo.num_faces == mesh.face_count()
    assert topo.num_edges == 3 * mesh.face_count() // 2


@pytest.mark.parametrize("name", sorted(MESHES))
def test_each_canonical_edge_appears_once(name):
    topo = build_topology(MESHES[name])
    keys = [tuple(k) for k in topo.edge_vertices.tolist()]
    assert len(set(keys)) == len(keys)
    assert all(a < b for a, b in keys)
    assert keys == sorted(keys)


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_topology_independent_of_face_order(seed):
    mesh = MESHES["icosphere"]
    reference = build_topology(mesh)
    permuted = build_topology(shuffled(mesh, seed))

    assert np.array_equal(reference.edge_vertices, permuted.edge_vertices)
    assert np.allclose(reference.edge_dyads, permuted.edge_dyads, atol=1e-12)
    assert np.allclose(reference.edge_lengths, permuted.edge_lengths)


def test_edge_dyad_combines_both_face_directions():
    # Edge (0, 1) of the corner tetrahedron: face [0, 2, 1] walks 1 -> 0 with
    # normal -z, face [0, 1, 3] walks 0 -> 1 with normal -y.
    topo = build_topology(tetrahedron())
    edge = topo.edge(topo.find_edge(1, 0))

    expected = np.array(
        [
            [0.0, 0.0, 0.0],
            [0.0, 0.0, 1.0],
            [0.0, 1.0, 0.0],
        ]
    )
    assert edge.key == (0, 1)
    assert np.allclose(edge.dyad, expected)
    assert edge.length == pytest.approx(1.0)


def test_edge_lengths_match_geometry():
    mesh = cube(half_edge=0.5)
    topo = build_topology(mesh)
    for edge in topo.edges():
        a = mesh.vertex_position(edge.tail_index)
        b = mesh.vertex_position(edge.head_index)
        assert edge.length == pytest.approx(np.linalg.norm(b - a))


def test_face_dyads_are_normal_outer_products():
    mesh = MESHES["octahedron"]
    topo = build_topology(mesh)
    for face in topo.faces():
        n = mesh.face_normal(face.index)
        assert face.vertex_ids == mesh.face_vertex_ids(face.index)
        assert np.allclose(face.dyad, np.outer(n, n))
        assert np.trace(face.dyad) == pytest.approx(1.0)


def test_edge_dyads_are_symmetric_for_closed_mesh():
    # n_A (x) e_A + n_B (x) e_B is symmetric when both faces share the edge.
    topo = build_topology(MESHES["dimpled"])
    assert np.allclose(topo.edge_dyads, np.transpose(topo.edge_dyads, (0, 2, 1)))


def test_topology_arrays_are_read_only():
    topo = build_topology(tetrahedron())
    with pytest.raises(ValueError):
        topo.edge_dyads[0, 0, 0] = 1.0
    with pytest.raises(ValueError):
        topo.face_vertices[0, 0] = 3
    with pytest.raises(AttributeError):
        topo.num_vertices = 7


def test_accessor_only_shape_model_builds_same_topology():
    mesh = MESHES["cube"]
    direct = build_topology(mesh)
    via_protocol = build_topology(as_list_model(mesh))

    assert np.array_equal(direct.edge_vertices, via_protocol.edge_vertices)
    assert np.allclose(direct.edge_dyads, via_protocol.edge_dyads)
    assert np.array_equal(direct.face_vertices, via_protocol.face_vertices)


def test_find_edge_missing_raises_key_error():
    topo = build_topology(cube())
    # 0 and 6 are opposite cube corners.
    with pytest.raises(KeyError):
        topo.find_edge(0, 6)


def test_find_edge_rejects_out_of_range_ids():
    topo = build_topology(icosphere(0))
    # 0 * 12 + 17 would otherwise land on the code of edge (1, 5)
    for p1, p2 in ((0, 17), (17, 0), (-1, 3), (12, 0)):
        with pytest.raises(KeyError):
            topo.find_edge(p1, p2)


def test_empty_mesh_gives_empty_topology():
    mesh = TriangleMesh(np.zeros((0, 3)), np.zeros((0, 3), dtype=int))
    topo = build_topology(mesh)
    assert topo.num_edges == 0
    assert topo.num_faces == 0


@pytest.mark.parametrize("name", sorted(MESHES))
def test_check_closed_manifold_accepts_sample_meshes(name):
    assert check_closed_manifold(MESHES[name])


def test_check_closed_manifold_rejects_open_mesh():
    mesh = tetrahedron()
    open_mesh = TriangleMesh(mesh.positions, mesh.faces[:3])
    with pytest.raises(MeshTopologyError) as excinfo:
        check_closed_manifold(open_mesh)
    assert "open" in str(excinfo.value)
    assert excinfo.value.edge is not None


def test_check_closed_manifold_rejects_flipped_face():
    mesh = tetrahedron()
    faces = np.array(mesh.faces)
    faces[3] = faces[3][[0, 2, 1]]
    with pytest.raises(MeshTopologyError) as excinfo:
        check_closed_manifold(TriangleMesh(mesh.positions, faces))
    assert "winding" in str(excinfo.value)
    assert len(excinfo.value.face_indices) == 2


def test_check_closed_manifold_rejects_non_manifold_edge():
    # Two tetrahedra glued along the single edge (0, 1).
    positions = np.array(
        [
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.0, 1.0, 0.0],
            [0.0, 0.0, 1.0],
            [0.0, -1.0, 0.0],
            [0.0, 0.0, -1.0],
        ]
    )
    faces = np.array(
        [
            [0, 2, 1], [0, 1, 3], [0, 3, 2], [1, 2, 3],
            [0, 4, 1], [0, 1, 5], [0, 5, 4], [1, 4, 5],
        ]
    )
    with pytest.raises(MeshTopologyError) as excinfo:
        check_closed_manifold(TriangleMesh(positions, faces))
    assert excinfo.value.edge == (0, 1)
