# entities.py

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional, Protocol, Tuple, runtime_checkable

import numpy as np

from geometry.triangle_ops import (
    barycentric_vertex_areas_from_triangles,
    polyhedron_volume,
    triangle_centroids,
    triangle_normals_and_areas,
    triangle_unit_normals,
)

logger = logging.getLogger("werner_gravity")


@runtime_checkable
class ShapeModel(Protocol):
    """Read-only view of a closed triangular shape model.

    Vertex and face ids are 0-based and contiguous. Face vertex triples are
    wound so that the right-hand rule gives the outward normal.
    """

    def vertex_count(self) -> int: ...

    def face_count(self) -> int: ...

    def vertex_position(self, vertex_id: int) -> np.ndarray: ...

    def face_vertex_ids(self, face_id: int) -> Tuple[int, int, int]: ...

    def face_normal(self, face_id: int) -> np.ndarray: ...


@dataclass(frozen=True)
class Vertex:
    index: int
    position: np.ndarray

    def compute_distance(self, other: "Vertex") -> float:
        """
        Compute the distance to another vertex.
        """
        return float(np.linalg.norm(self.position - other.position))


@dataclass(frozen=True)
class Edge:
    """Undirected mesh edge with its combined Werner edge dyad.

    ``tail_index < head_index`` always holds; the dyad already contains the
    contributions of both adjacent faces.
    """

    index: int
    tail_index: int
    head_index: int
    dyad: np.ndarray
    length: float

    @property
    def key(self) -> Tuple[int, int]:
        return (self.tail_index, self.head_index)


@dataclass(frozen=True)
class Face:
    index: int
    vertex_ids: Tuple[int, int, int]
    normal: np.ndarray
    dyad: np.ndarray


def _readonly(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass
class TriangleMesh:
    """Array-backed closed triangle mesh implementing :class:`ShapeModel`.

    ``positions`` is ``(N, 3)`` and ``faces`` is ``(M, 3)`` with outward
    winding. Unit normals are derived from the winding unless supplied.
    The stored arrays are private read-only copies.
    """

    positions: np.ndarray
    faces: np.ndarray
    normals: Optional[np.ndarray] = None

    _areas: Optional[np.ndarray] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        positions = np.array(self.positions, dtype=float)
        faces = np.array(self.faces, dtype=int)

        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ValueError(
                f"positions must have shape (N, 3); got {positions.shape}."
            )
        if faces.ndim != 2 or faces.shape[1] != 3:
            raise ValueError(
                f"faces must have shape (M, 3) (triangles only); got {faces.shape}."
            )
        if faces.size and (faces.min() < 0 or faces.max() >= len(positions)):
            raise ValueError(
                f"Face indices must lie in [0, {len(positions) - 1}]."
            )

        if self.normals is None:
            normals = triangle_unit_normals(positions, faces)
        else:
            normals = np.array(self.normals, dtype=float)
            if normals.shape != faces.shape:
                raise ValueError(
                    f"normals must have shape {faces.shape}; got {normals.shape}."
                )

        self.positions = _readonly(positions)
        self.faces = _readonly(faces)
        self.normals = _readonly(normals)
        logger.debug(
            "TriangleMesh created with %d vertices and %d faces.",
            len(positions),
            len(faces),
        )

    # ShapeModel interface
    def vertex_count(self) -> int:
        return int(self.positions.shape[0])

    def face_count(self) -> int:
        return int(self.faces.shape[0])

    def vertex_position(self, vertex_id: int) -> np.ndarray:
        return self.positions[vertex_id]

    def face_vertex_ids(self, face_id: int) -> Tuple[int, int, int]:
        v0, v1, v2 = self.faces[face_id]
        return int(v0), int(v1), int(v2)

    def face_normal(self, face_id: int) -> np.ndarray:
        return self.normals[face_id]

    def positions_view(self) -> np.ndarray:
        """Return the dense ``(N_vertices, 3)`` position array, ordered by id."""
        return self.positions

    def triangle_rows(self) -> np.ndarray:
        """Return the ``(N_faces, 3)`` vertex-id array."""
        return self.faces

    def vertices(self) -> Iterator[Vertex]:
        for i, pos in enumerate(self.positions):
            yield Vertex(i, pos)

    def face_areas(self) -> np.ndarray:
        if self._areas is None:
            _, areas = triangle_normals_and_areas(self.positions, self.faces)
            self._areas = _readonly(areas)
        return self._areas

    def face_centroids(self) -> np.ndarray:
        return triangle_centroids(self.positions, self.faces)

    def vertex_areas(self) -> np.ndarray:
        """Return one third of the adjacent face areas for every vertex."""
        return barycentric_vertex_areas_from_triangles(
            n_verts=self.vertex_count(), tri_rows=self.faces, areas=self.face_areas()
        )

    def compute_total_surface_area(self) -> float:
        return float(self.face_areas().sum())

    def compute_total_volume(self) -> float:
        return polyhedron_volume(self.positions, self.faces)

    def bounding_radius(self, center: Optional[np.ndarray] = None) -> float:
        """Largest vertex distance from ``center`` (default: vertex mean)."""
        if center is None:
            center = self.positions.mean(axis=0)
        return float(np.max(np.linalg.norm(self.positions - center, axis=1)))

    def __len__(self):
        return self.face_count()

    def __repr__(self):
        return (
            f"TriangleMesh(vertices={self.vertex_count()}, faces={self.face_count()})"
        )


def positions_of(mesh: ShapeModel) -> np.ndarray:
    """Return an ``(N, 3)`` position array for any :class:`ShapeModel`.

    Uses ``positions_view()`` when the mesh provides it; otherwise gathers
    positions one vertex at a time.
    """
    view = getattr(mesh, "positions_view", None)
    if view is not None:
        return np.asarray(view(), dtype=float)
    n = mesh.vertex_count()
    out = np.empty((n, 3), dtype=float)
    for i in range(n):
        out[i] = mesh.vertex_position(i)
    return out


def face_rows_of(mesh: ShapeModel) -> np.ndarray:
    """Return an ``(M, 3)`` vertex-id array for any :class:`ShapeModel`."""
    rows = getattr(mesh, "triangle_rows", None)
    if rows is not None:
        return np.asarray(rows(), dtype=int)
    return np.array(
        [mesh.face_vertex_ids(i) for i in range(mesh.face_count())], dtype=int
    ).reshape(-1, 3)


def face_normals_of(mesh: ShapeModel) -> np.ndarray:
    """Return an ``(M, 3)`` array of outward unit normals for any :class:`ShapeModel`."""
    normals = getattr(mesh, "normals", None)
    if isinstance(normals, np.ndarray) and normals.shape == (mesh.face_count(), 3):
        return normals
    return np.array(
        [mesh.face_normal(i) for i in range(mesh.face_count())], dtype=float
    ).reshape(-1, 3)
