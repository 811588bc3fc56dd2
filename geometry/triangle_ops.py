"""Vectorized triangle geometry helpers used by ``geometry.entities``."""

from __future__ import annotations

import numpy as np


def _fast_cross(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Compute cross products for arrays of 3D vectors."""
    x = a[..., 1] * b[..., 2] - a[..., 2] * b[..., 1]
    y = a[..., 2] * b[..., 0] - a[..., 0] * b[..., 2]
    z = a[..., 0] * b[..., 1] - a[..., 1] * b[..., 0]
    out = np.empty(x.shape + (3,), dtype=x.dtype)
    out[..., 0] = x
    out[..., 1] = y
    out[..., 2] = z
    return out


def triangle_normals_and_areas(
    positions: np.ndarray, tri_rows: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Return unnormalized triangle normals and triangle areas."""
    v0 = positions[tri_rows[:, 0]]
    v1 = positions[tri_rows[:, 1]]
    v2 = positions[tri_rows[:, 2]]
    normals = _fast_cross(v1 - v0, v2 - v0)
    areas = 0.5 * np.linalg.norm(normals, axis=1)
    return normals, areas


def triangle_unit_normals(
    positions: np.ndarray, tri_rows: np.ndarray, eps: float = 1e-12
) -> np.ndarray:
    """Return outward unit normals following the right-hand rule of each row.

    Raises ``ValueError`` if any triangle is degenerate.
    """
    normals, _ = triangle_normals_and_areas(positions, tri_rows)
    lens = np.linalg.norm(normals, axis=1)
    bad = np.flatnonzero(lens < eps)
    if bad.size:
        raise ValueError(f"Degenerate triangle(s) with zero normal: {bad.tolist()}")
    return normals / lens[:, None]


def triangle_centroids(positions: np.ndarray, tri_rows: np.ndarray) -> np.ndarray:
    """Return the centroid of each triangle."""
    return (
        positions[tri_rows[:, 0]] + positions[tri_rows[:, 1]] + positions[tri_rows[:, 2]]
    ) / 3.0


def barycentric_vertex_areas_from_triangles(
    *,
    n_verts: int,
    tri_rows: np.ndarray,
    areas: np.ndarray,
) -> np.ndarray:
    """Accumulate one-third of each triangle area onto its three vertices."""
    vertex_areas = np.zeros(n_verts, dtype=float)
    if areas.size == 0:
        return vertex_areas
    area_thirds = areas / 3.0
    np.add.at(vertex_areas, tri_rows[:, 0], area_thirds)
    np.add.at(vertex_areas, tri_rows[:, 1], area_thirds)
    np.add.at(vertex_areas, tri_rows[:, 2], area_thirds)
    return vertex_areas


def polyhedron_volume(positions: np.ndarray, tri_rows: np.ndarray) -> float:
    """Return the enclosed volume of a closed triangulated surface.

    Sums the signed volumes of the tetrahedra spanned by the origin and each
    triangle, i.e. ``det([v0, v1, v2]) / 6``. The result is positive for
    outward winding and negative for inward winding.

    References:
        Schneider & Eberly, Geometric Tools for Computer Graphics, 2003,
        ch. 13.12.3 (Volume of Polyhedron).
    """
    positions = np.asarray(positions, dtype=float)
    tri_rows = np.asarray(tri_rows, dtype=int)
    if tri_rows.size == 0:
        return 0.0
    v0 = positions[tri_rows[:, 0]]
    v1 = positions[tri_rows[:, 1]]
    v2 = positions[tri_rows[:, 2]]
    dets = np.einsum("ij,ij->i", v0, _fast_cross(v1, v2))
    return float(dets.sum() / 6.0)


def polyhedron_density(
    positions: np.ndarray, tri_rows: np.ndarray, mass: float = 1.0
) -> float:
    """Return the uniform density giving the polyhedron the requested mass."""
    return mass / abs(polyhedron_volume(positions, tri_rows))
