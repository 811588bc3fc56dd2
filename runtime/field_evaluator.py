"""Polyhedral gravity kernel of Werner & Scheeres (1997).

Evaluates the dimensionless potential and acceleration of a uniform,
unit-density polyhedron at arbitrary field points, plus the solid-angle
containment test. Callers scale by ``G * density``; see
``runtime.gravity_field``.

    U(p) = 1/2 * ( sum_f r_f . F_f . r_f * w_f  -  sum_e r_e . E_e . r_e * L_e )
    g(p) =         sum_f F_f . r_f * w_f      -  sum_e E_e . r_e * L_e

with ``r = vertex - p``. Note that ``g`` carries no factor 1/2; it equals
``-grad U``.

Reference:
    R. A. Werner and D. J. Scheeres (1997), Exterior gravitation of a
    polyhedron derived and compared with harmonic and mascon gravitation
    representations of asteroid 4769 Castalia, CeMDA 65, 313-344.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from core.exceptions import InvalidFieldPointError
from geometry.entities import ShapeModel, positions_of
from geometry.triangle_ops import _fast_cross
from runtime.topology import Topology

logger = logging.getLogger("werner_gravity")

# |r1 + r2 - L| below this means the field point is on the edge's line.
EDGE_COLLINEAR_TOL = 1e-9
# |r1 . (r2 x r3)| below this means the field point is on the face's plane.
FACE_PLANE_TOL = 1e-9
# Solid angles sum to 4*pi inside and 0 outside.
CONTAINMENT_THRESHOLD = 2.0 * math.pi


class DisplacementCache:
    """Vertex displacements ``r_i = x_i - p`` and magnitudes for one field point.

    A cache may be allocated once and passed to repeated calls as scratch
    space; every call overwrites it completely. Never share one instance
    between threads.
    """

    __slots__ = ("r", "r_mag", "field_point")

    def __init__(self, num_vertices: int):
        self.r = np.empty((num_vertices, 3), dtype=float)
        self.r_mag = np.empty(num_vertices, dtype=float)
        self.field_point: Optional[np.ndarray] = None

    @property
    def num_vertices(self) -> int:
        return int(self.r_mag.shape[0])


@dataclass(frozen=True)
class FieldEvaluation:
    potential: float
    acceleration: Optional[np.ndarray] = None


def as_field_point(point) -> np.ndarray:
    """Coerce ``point`` to a finite ``(3,)`` float array."""
    try:
        p = np.asarray(point, dtype=float).reshape(-1)
    except (TypeError, ValueError) as exc:
        raise InvalidFieldPointError(point) from exc
    if p.shape != (3,) or not np.all(np.isfinite(p)):
        raise InvalidFieldPointError(point)
    return p


def compute_displacements(
    mesh: ShapeModel, field_point, scratch: Optional[DisplacementCache] = None
) -> DisplacementCache:
    """Fill (or allocate) the displacement cache for ``field_point``."""
    p = as_field_point(field_point)
    positions = positions_of(mesh)
    if scratch is None:
        scratch = DisplacementCache(len(positions))
    elif scratch.num_vertices != len(positions):
        raise ValueError(
            f"Scratch buffer holds {scratch.num_vertices} vertices; "
            f"mesh has {len(positions)}."
        )
    np.subtract(positions, p, out=scratch.r)
    np.sqrt(np.einsum("ij,ij->i", scratch.r, scratch.r), out=scratch.r_mag)
    scratch.field_point = p
    return scratch


def edge_log_terms(topology: Topology, cache: DisplacementCache) -> np.ndarray:
    """Per-edge ``L_e = ln((r1 + r2 + L) / (r1 + r2 - L))``.

    Edges whose line passes through the field point (``r1 + r2 == L`` within
    :data:`EDGE_COLLINEAR_TOL`) get ``L_e = 0``.
    """
    r_sum = (
        cache.r_mag[topology.edge_vertices[:, 0]]
        + cache.r_mag[topology.edge_vertices[:, 1]]
    )
    lengths = topology.edge_lengths
    denom = r_sum - lengths
    regular = np.abs(denom) >= EDGE_COLLINEAR_TOL

    le = np.zeros_like(r_sum)
    le[regular] = np.log((r_sum[regular] + lengths[regular]) / denom[regular])
    return le


def face_solid_angles(topology: Topology, cache: DisplacementCache) -> np.ndarray:
    """Per-face signed solid angle ``w_f`` seen from the field point.

    Uses ``w_f = 2 atan2(r1 . (r2 x r3), D)`` with
    ``D = |r1||r2||r3| + |r1| r2.r3 + |r2| r3.r1 + |r3| r1.r2``. A numerator
    within :data:`FACE_PLANE_TOL` of zero is replaced by ``-0.0`` so that
    points on a face's plane fall on a fixed side of the ``atan2`` branch cut.
    """
    fv = topology.face_vertices
    r1 = cache.r[fv[:, 0]]
    r2 = cache.r[fv[:, 1]]
    r3 = cache.r[fv[:, 2]]
    m1 = cache.r_mag[fv[:, 0]]
    m2 = cache.r_mag[fv[:, 1]]
    m3 = cache.r_mag[fv[:, 2]]

    numerator = np.einsum("ij,ij->i", r1, _fast_cross(r2, r3))
    denominator = (
        m1 * m2 * m3
        + m1 * np.einsum("ij,ij->i", r2, r3)
        + m2 * np.einsum("ij,ij->i", r3, r1)
        + m3 * np.einsum("ij,ij->i", r1, r2)
    )
    numerator = np.where(np.abs(numerator) < FACE_PLANE_TOL, -0.0, numerator)
    return 2.0 * np.arctan2(numerator, denominator)


def _accumulate(
    topology: Topology, cache: DisplacementCache, want_acceleration: bool
) -> FieldEvaluation:
    # Any point of an edge or face works as r; take the first vertex.
    le = edge_log_terms(topology, cache)
    r_e = cache.r[topology.edge_vertices[:, 0]]
    er = np.einsum("eij,ej->ei", topology.edge_dyads, r_e)
    r_er = np.einsum("ei,ei->e", r_e, er)

    wf = face_solid_angles(topology, cache)
    r_f = cache.r[topology.face_vertices[:, 0]]
    fr = np.einsum("fij,fj->fi", topology.face_dyads, r_f)
    r_fr = np.einsum("fi,fi->f", r_f, fr)

    potential = 0.5 * (np.dot(r_fr, wf) - np.dot(r_er, le))

    acceleration = None
    if want_acceleration:
        acceleration = fr.T @ wf - er.T @ le
    return FieldEvaluation(float(potential), acceleration)


def evaluate(
    topology: Topology,
    mesh: ShapeModel,
    field_point,
    want_acceleration: bool = False,
    *,
    scratch: Optional[DisplacementCache] = None,
) -> FieldEvaluation:
    """Evaluate the unit-density potential (and optionally acceleration).

    Args:
        topology: dyads built from ``mesh`` by ``build_topology``.
        mesh: the shape model supplying vertex positions.
        field_point: 3-vector in mesh coordinates.
        want_acceleration: also compute the acceleration vector.
        scratch: optional caller-owned :class:`DisplacementCache`.

    Returns:
        FieldEvaluation: ``potential`` (about ``-V/r`` far away) and
        ``acceleration`` (``None`` unless requested).
    """
    cache = compute_displacements(mesh, field_point, scratch)
    return _accumulate(topology, cache, want_acceleration)


def solid_angle_sum(
    topology: Topology,
    mesh: ShapeModel,
    field_point,
    *,
    scratch: Optional[DisplacementCache] = None,
) -> float:
    """Sum of face solid angles: ``4 pi`` inside the body, ``0`` outside."""
    cache = compute_displacements(mesh, field_point, scratch)
    return float(np.sum(face_solid_angles(topology, cache)))


def is_inside(
    topology: Topology,
    mesh: ShapeModel,
    field_point,
    *,
    scratch: Optional[DisplacementCache] = None,
) -> bool:
    """Return True if ``field_point`` lies inside the closed mesh.

    Points on the surface itself have no defined answer.
    """
    return solid_angle_sum(topology, mesh, field_point, scratch=scratch) >= CONTAINMENT_THRESHOLD


def _evaluate_chunk(
    topology: Topology,
    mesh: ShapeModel,
    points: np.ndarray,
    want_acceleration: bool,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    scratch = DisplacementCache(topology.num_vertices)
    potentials = np.empty(len(points))
    accelerations = np.empty((len(points), 3)) if want_acceleration else None
    for i, point in enumerate(points):
        result = evaluate(topology, mesh, point, want_acceleration, scratch=scratch)
        potentials[i] = result.potential
        if want_acceleration:
            accelerations[i] = result.acceleration
    return potentials, accelerations


def evaluate_points(
    topology: Topology,
    mesh: ShapeModel,
    points,
    want_acceleration: bool = False,
    *,
    max_workers: Optional[int] = None,
    chunksize: int = 64,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """Evaluate many field points against one topology.

    Each point is independent. With ``max_workers > 1`` chunks of points are
    dispatched to a thread pool; every chunk owns its scratch buffer.

    Returns:
        tuple of potentials ``(N,)`` and accelerations ``(N, 3)`` (or ``None``).
    """
    points = np.asarray(points, dtype=float)
    if points.ndim == 1:
        points = points.reshape(1, -1)
    if points.ndim != 2 or points.shape[1] != 3:
        raise InvalidFieldPointError(points, f"Expected an (N, 3) array; got {points.shape}.")

    if max_workers is not None:
        max_workers = int(max_workers)

    n = len(points)
    if n == 0:
        return np.empty(0), (np.empty((0, 3)) if want_acceleration else None)

    if max_workers is None or max_workers <= 1 or n <= chunksize:
        logger.debug("Evaluating %d field points serially.", n)
        return _evaluate_chunk(topology, mesh, points, want_acceleration)

    chunks = [points[i:i + chunksize] for i in range(0, n, chunksize)]
    logger.debug(
        "Evaluating %d field points in %d chunks on %d threads.",
        n,
        len(chunks),
        max_workers,
    )
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        results = list(
            pool.map(
                lambda chunk: _evaluate_chunk(topology, mesh, chunk, want_acceleration),
                chunks,
            )
        )

    potentials = np.concatenate([pot for pot, _ in results])
    accelerations = (
        np.concatenate([acc for _, acc in results]) if want_acceleration else None
    )
    return potentials, accelerations
