"""Edge/face dyad topology for the Werner polyhedral gravity model."""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np

from core.exceptions import MeshTopologyError
from geometry.entities import (
    Edge,
    Face,
    ShapeModel,
    face_normals_of,
    face_rows_of,
    positions_of,
)
from geometry.triangle_ops import _fast_cross

logger = logging.getLogger("werner_gravity")


def _readonly(array: np.ndarray) -> np.ndarray:
    array = np.array(array, order="C")
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class Topology:
    """Mesh-invariant per-edge and per-face dyads.

    Built once per shape model by :func:`build_topology` and shared by every
    field-point evaluation. All arrays are read-only.

    Attributes:
        num_vertices: number of vertices of the source mesh.
        edge_vertices: ``(E, 2)`` canonical endpoint pairs, ``tail < head``,
            sorted lexicographically.
        edge_dyads: ``(E, 3, 3)`` combined edge dyads ``E_e``.
        edge_lengths: ``(E,)`` edge lengths.
        face_vertices: ``(M, 3)`` face vertex ids in mesh winding order.
        face_normals: ``(M, 3)`` outward unit normals.
        face_dyads: ``(M, 3, 3)`` face dyads ``F_f = n n^T``.
    """

    num_vertices: int
    edge_vertices: np.ndarray
    edge_dyads: np.ndarray
    edge_lengths: np.ndarray
    face_vertices: np.ndarray
    face_normals: np.ndarray
    face_dyads: np.ndarray

    @property
    def num_edges(self) -> int:
        return int(self.edge_vertices.shape[0])

    @property
    def num_faces(self) -> int:
        return int(self.face_vertices.shape[0])

    def edge(self, index: int) -> Edge:
        tail, head = self.edge_vertices[index]
        return Edge(
            index=index,
            tail_index=int(tail),
            head_index=int(head),
            dyad=self.edge_dyads[index],
            length=float(self.edge_lengths[index]),
        )

    def face(self, index: int) -> Face:
        v0, v1, v2 = self.face_vertices[index]
        return Face(
            index=index,
            vertex_ids=(int(v0), int(v1), int(v2)),
            normal=self.face_normals[index],
            dyad=self.face_dyads[index],
        )

    def edges(self) -> Iterator[Edge]:
        for i in range(self.num_edges):
            yield self.edge(i)

    def faces(self) -> Iterator[Face]:
        for i in range(self.num_faces):
            yield self.face(i)

    def find_edge(self, p1: int, p2: int) -> int:
        """Return the index of the edge joining ``p1`` and ``p2`` (either order).

        Raises ``KeyError`` if the mesh has no such edge.
        """
        key = (min(p1, p2), max(p1, p2))
        # out-of-range ids would alias onto another edge's code
        if key[0] < 0 or key[1] >= self.num_vertices:
            raise KeyError(key)
        codes = self.edge_vertices[:, 0] * self.num_vertices + self.edge_vertices[:, 1]
        code = key[0] * self.num_vertices + key[1]
        idx = int(np.searchsorted(codes, code))
        if idx < self.num_edges and codes[idx] == code:
            return idx
        raise KeyError(key)


def _directed_edges(faces: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return tails/heads of ``(v0,v1), (v1,v2), (v2,v0)`` for every face, face-major."""
    tails = faces.reshape(-1)
    heads = np.roll(faces, -1, axis=1).reshape(-1)
    return tails, heads


def build_topology(mesh: ShapeModel) -> Topology:
    """Build the Werner edge and face dyads of a closed triangle mesh.

    For every face the three directed edges are taken in winding order. The
    edge unit vector points along that face's own direction; the in-plane
    edge normal is ``cross(unit_edge, face_normal)`` and the face's
    contribution ``outer(face_normal, edge_normal)`` is added to the edge
    stored under the undirected key ``(min, max)``. Adjacent faces traverse a
    shared edge in opposite directions, so the key is only used for lookup.

    The mesh is assumed to be closed, 2-manifold and consistently wound.
    Nothing is checked here; see :func:`check_closed_manifold`.
    """
    positions = positions_of(mesh)
    faces = face_rows_of(mesh)
    normals = face_normals_of(mesh)
    n_faces = len(faces)

    face_dyads = np.einsum("fi,fj->fij", normals, normals)

    if n_faces == 0:
        return Topology(
            num_vertices=len(positions),
            edge_vertices=_readonly(np.empty((0, 2), dtype=int)),
            edge_dyads=_readonly(np.empty((0, 3, 3))),
            edge_lengths=_readonly(np.empty(0)),
            face_vertices=_readonly(faces),
            face_normals=_readonly(normals),
            face_dyads=_readonly(face_dyads),
        )

    tails, heads = _directed_edges(faces)
    face_of_edge = np.repeat(np.arange(n_faces), 3)

    vectors = positions[heads] - positions[tails]
    lengths = np.linalg.norm(vectors, axis=1)
    unit = np.divide(
        vectors,
        lengths[:, None],
        out=np.zeros_like(vectors),
        where=lengths[:, None] > 0.0,
    )
    n = normals[face_of_edge]
    edge_normals = _fast_cross(unit, n)
    contributions = np.einsum("ei,ej->eij", n, edge_normals)

    keys = np.sort(np.stack([tails, heads], axis=1), axis=1)
    edge_vertices, inverse = np.unique(keys, axis=0, return_inverse=True)
    inverse = np.asarray(inverse).reshape(-1)

    edge_dyads = np.zeros((len(edge_vertices), 3, 3))
    np.add.at(edge_dyads, inverse, contributions)

    # Both adjacent faces write the same length; the later write wins.
    edge_lengths = np.zeros(len(edge_vertices))
    edge_lengths[inverse] = lengths

    logger.debug(
        "Built Werner topology: %d vertices, %d edges, %d faces.",
        len(positions),
        len(edge_vertices),
        n_faces,
    )

    return Topology(
        num_vertices=len(positions),
        edge_vertices=_readonly(edge_vertices.astype(int)),
        edge_dyads=_readonly(edge_dyads),
        edge_lengths=_readonly(edge_lengths),
        face_vertices=_readonly(faces),
        face_normals=_readonly(normals),
        face_dyads=_readonly(face_dyads),
    )


def check_closed_manifold(mesh: ShapeModel) -> bool:
    """Verify that ``mesh`` is a closed, consistently wound 2-manifold.

    Every directed edge must occur exactly once and its reverse exactly once.

    Raises:
        MeshTopologyError: on the first open, non-manifold or inconsistently
            wound edge found.
    """
    faces = face_rows_of(mesh)
    if len(faces) == 0:
        raise MeshTopologyError("Mesh has no faces.", mesh=mesh)

    degenerate = np.flatnonzero(
        (faces[:, 0] == faces[:, 1])
        | (faces[:, 1] == faces[:, 2])
        | (faces[:, 2] == faces[:, 0])
    )
    if degenerate.size:
        fid = int(degenerate[0])
        raise MeshTopologyError(
            f"Face {fid} repeats a vertex: {faces[fid].tolist()}.",
            face_indices=(fid,),
            mesh=mesh,
        )

    tails, heads = _directed_edges(faces)
    owners = {}
    directed = Counter()
    for i, (t, h) in enumerate(zip(tails.tolist(), heads.tolist())):
        directed[(t, h)] += 1
        owners.setdefault((min(t, h), max(t, h)), []).append(i // 3)

    for key, face_ids in owners.items():
        if len(face_ids) == 1:
            raise MeshTopologyError(
                f"Edge {key} belongs to a single face; mesh is open.",
                edge=key,
                face_indices=tuple(face_ids),
                mesh=mesh,
            )
        if len(face_ids) > 2:
            raise MeshTopologyError(
                f"Edge {key} is shared by {len(face_ids)} faces; mesh is non-manifold.",
                edge=key,
                face_indices=tuple(face_ids),
                mesh=mesh,
            )
        a, b = key
        if directed[(a, b)] != 1 or directed[(b, a)] != 1:
            raise MeshTopologyError(
                f"Faces {face_ids[0]} and {face_ids[1]} traverse edge {key} "
                "in the same direction; winding is inconsistent.",
                edge=key,
                face_indices=tuple(face_ids),
                mesh=mesh,
            )

    return True
