"""Small closed triangle meshes built in memory.

These are reference bodies for evaluating and checking the gravity model;
shape model file formats are handled elsewhere.
"""

from __future__ import annotations

from typing import Dict, Tuple

import numpy as np
from scipy.spatial import ConvexHull

from geometry.entities import TriangleMesh
from geometry.triangle_ops import _fast_cross, triangle_centroids

_GOLDEN = (1.0 + np.sqrt(5.0)) / 2.0

_ICOSAHEDRON_VERTICES = np.array(
    [
        [-1.0, _GOLDEN, 0.0],
        [1.0, _GOLDEN, 0.0],
        [-1.0, -_GOLDEN, 0.0],
        [1.0, -_GOLDEN, 0.0],
        [0.0, -1.0, _GOLDEN],
        [0.0, 1.0, _GOLDEN],
        [0.0, -1.0, -_GOLDEN],
        [0.0, 1.0, -_GOLDEN],
        [_GOLDEN, 0.0, -1.0],
        [_GOLDEN, 0.0, 1.0],
        [-_GOLDEN, 0.0, -1.0],
        [-_GOLDEN, 0.0, 1.0],
    ]
)

_ICOSAHEDRON_FACES = np.array(
    [
        [0, 11, 5], [0, 5, 1], [0, 1, 7], [0, 7, 10], [0, 10, 11],
        [1, 5, 9], [5, 11, 4], [11, 10, 2], [10, 7, 6], [7, 1, 8],
        [3, 9, 4], [3, 4, 2], [3, 2, 6], [3, 6, 8], [3, 8, 9],
        [4, 9, 5], [2, 4, 11], [6, 2, 10], [8, 6, 7], [9, 8, 1],
    ]
)


def orient_outward(
    positions: np.ndarray, faces: np.ndarray, interior_point: np.ndarray | None = None
) -> np.ndarray:
    """Return ``faces`` with each row wound so its normal points away from
    ``interior_point`` (default: vertex mean).

    Only valid for bodies that are star-shaped about ``interior_point``.
    """
    positions = np.asarray(positions, dtype=float)
    faces = np.array(faces, dtype=int)
    if interior_point is None:
        interior_point = positions.mean(axis=0)
    v0 = positions[faces[:, 0]]
    normals = _fast_cross(positions[faces[:, 1]] - v0, positions[faces[:, 2]] - v0)
    outward = triangle_centroids(positions, faces) - interior_point
    flip = np.einsum("ij,ij->i", normals, outward) < 0.0
    faces[flip] = faces[flip][:, [0, 2, 1]]
    return faces


def tetrahedron() -> TriangleMesh:
    """Corner tetrahedron (0,0,0), (1,0,0), (0,1,0), (0,0,1); volume 1/6."""
    positions = np.array(
        [
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.0, 1.0, 0.0],
            [0.0, 0.0, 1.0],
        ]
    )
    faces = np.array([[0, 2, 1], [0, 1, 3], [0, 3, 2], [1, 2, 3]])
    return TriangleMesh(positions, faces)


def cube(half_edge: float = 1.0) -> TriangleMesh:
    """Axis-aligned cube centred on the origin, 12 triangles."""
    positions = half_edge * np.array(
        [
            [-1, -1, -1],
            [1, -1, -1],
            [1, 1, -1],
            [-1, 1, -1],
            [-1, -1, 1],
            [1, -1, 1],
            [1, 1, 1],
            [-1, 1, 1],
        ],
        dtype=float,
    )
    faces = np.array(
        [
            [1, 3, 2],
            [0, 3, 1],
            [0, 1, 5],
            [0, 5, 4],
            [0, 7, 3],
            [0, 4, 7],
            [1, 2, 6],
            [1, 6, 5],
            [2, 3, 6],
            [3, 7, 6],
            [4, 5, 6],
            [4, 6, 7],
        ]
    )
    return TriangleMesh(positions, faces)


def octahedron(radius: float = 1.0) -> TriangleMesh:
    positions = radius * np.array(
        [
            [1, 0, 0],
            [-1, 0, 0],
            [0, 1, 0],
            [0, -1, 0],
            [0, 0, 1],
            [0, 0, -1],
        ],
        dtype=float,
    )
    faces = np.array(
        [
            [0, 2, 4],
            [2, 1, 4],
            [1, 3, 4],
            [3, 0, 4],
            [2, 0, 5],
            [1, 2, 5],
            [3, 1, 5],
            [0, 3, 5],
        ]
    )
    return TriangleMesh(positions, orient_outward(positions, faces, np.zeros(3)))


def icosphere(subdivisions: int = 2, radius: float = 1.0) -> TriangleMesh:
    """Geodesic sphere from a repeatedly subdivided icosahedron."""
    if subdivisions < 0:
        raise ValueError("subdivisions must be non-negative.")

    verts = [v / np.linalg.norm(v) for v in _ICOSAHEDRON_VERTICES]
    faces = [tuple(f) for f in _ICOSAHEDRON_FACES]

    for _ in range(subdivisions):
        midpoints: Dict[Tuple[int, int], int] = {}

        def midpoint(a: int, b: int) -> int:
            key = (a, b) if a < b else (b, a)
            idx = midpoints.get(key)
            if idx is None:
                m = verts[a] + verts[b]
                verts.append(m / np.linalg.norm(m))
                idx = len(verts) - 1
                midpoints[key] = idx
            return idx

        refined = []
        for a, b, c in faces:
            ab = midpoint(a, b)
            bc = midpoint(b, c)
            ca = midpoint(c, a)
            refined.extend([(a, ab, ca), (b, bc, ab), (c, ca, bc), (ab, bc, ca)])
        faces = refined

    positions = radius * np.array(verts)
    faces = orient_outward(positions, np.array(faces), np.zeros(3))
    return TriangleMesh(positions, faces)


def convex_hull_mesh(points: np.ndarray) -> TriangleMesh:
    """Triangulated convex hull of a point cloud with outward winding.

    Points that are not hull vertices are dropped and the remaining vertices
    are renumbered contiguously.
    """
    points = np.asarray(points, dtype=float)
    hull = ConvexHull(points)
    used = np.unique(hull.simplices)
    remap = np.full(len(points), -1, dtype=int)
    remap[used] = np.arange(len(used))
    positions = points[used]
    faces = remap[hull.simplices]

    # hull.equations holds outward facet normals in the same row order
    v0 = positions[faces[:, 0]]
    normals = _fast_cross(positions[faces[:, 1]] - v0, positions[faces[:, 2]] - v0)
    flip = np.einsum("ij,ij->i", normals, hull.equations[:, :3]) < 0.0
    faces[flip] = faces[flip][:, [0, 2, 1]]
    return TriangleMesh(positions, faces)
