"""Physical gravity at the evaluation sites of a shape model.

Wraps the unit-density Werner kernel with the gravitational constant, the
body density, the centrifugal term of a spinning body, elevation above a
reference potential and the tidal contribution of an external point mass.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Tuple

import numpy as np

from core.exceptions import ParameterError
from geometry.entities import TriangleMesh
from parameters.gravity_parameters import LENGTH_UNITS, GravityParameters
from runtime.field_evaluator import as_field_point, evaluate_points
from runtime.topology import Topology, build_topology

logger = logging.getLogger("werner_gravity")


@dataclass
class GravityResult:
    """Potential and acceleration at one evaluation site.

    Results order by ``index`` only.
    """

    index: int
    xyz: np.ndarray = field(compare=False)
    potential: float = field(compare=False)
    acceleration: np.ndarray = field(compare=False)
    area: float = field(default=1.0, compare=False)
    elevation: float = field(default=0.0, compare=False)

    def __lt__(self, other: "GravityResult") -> bool:
        return self.index < other.index


def apply_physical_scaling(
    points: np.ndarray,
    potentials: np.ndarray,
    accelerations: np.ndarray,
    params: GravityParameters,
) -> Tuple[np.ndarray, np.ndarray]:
    """Convert kernel values to SI and add the centrifugal term.

    ``points`` and the kernel values are in mesh length units ``L`` (metres
    per unit, from ``params.length_unit``). The kernel potential scales as
    ``L^2`` and the acceleration as ``L``, so the factors are
    ``G * density * L^2`` and ``G * density * L``.

    For spin rate ``w`` about +z the potential gains ``-w^2 (x^2 + y^2) / 2``
    and the acceleration gains ``w^2 (x, y, 0)``, with ``x, y`` in metres.
    """
    length = params.length_scale
    scale = params.scale
    potentials = scale * length * length * np.asarray(potentials, dtype=float)
    accelerations = scale * length * np.asarray(accelerations, dtype=float)

    w = float(params.rotation_rate)
    if w != 0.0:
        xy = length * np.asarray(points, dtype=float)[:, :2]
        potentials = potentials - 0.5 * w * w * np.einsum("ij,ij->i", xy, xy)
        accelerations = accelerations.copy()
        accelerations[:, :2] += w * w * xy
    return potentials, accelerations


def _average_onto_vertices(
    mesh: TriangleMesh, values: np.ndarray, weights: np.ndarray
) -> np.ndarray:
    """Area-weighted average of per-face values over each vertex's faces."""
    values = np.asarray(values, dtype=float)
    faces = mesh.triangle_rows()
    trailing = values.shape[1:]
    total = np.zeros((mesh.vertex_count(),) + trailing)
    weight = np.zeros(mesh.vertex_count())
    weighted = values * weights.reshape((-1,) + (1,) * len(trailing))
    for k in range(3):
        np.add.at(total, faces[:, k], weighted)
        np.add.at(weight, faces[:, k], weights)
    safe = np.where(weight > 0.0, weight, 1.0)
    return total / safe.reshape((-1,) + (1,) * len(trailing))


def _center_range(mesh: TriangleMesh, params: GravityParameters) -> Tuple[int, int]:
    start = int(params.start_index)
    count = params.num_plates
    stop = mesh.face_count() if count is None else min(start + int(count), mesh.face_count())
    if start > mesh.face_count():
        raise ParameterError(
            f"start_index {start} exceeds the number of faces ({mesh.face_count()})."
        )
    return start, stop


def compute_gravity(
    mesh: TriangleMesh,
    params: Optional[GravityParameters] = None,
    *,
    topology: Optional[Topology] = None,
    points: Optional[Iterable] = None,
) -> List[GravityResult]:
    """Evaluate physical gravity at the sites selected by ``params.evaluation``.

    Args:
        mesh: closed, outward-wound triangle mesh.
        params: gravity parameters (defaults if omitted).
        topology: prebuilt topology of ``mesh``; built here if omitted.
        points: field points, required when ``params.evaluation == "points"``.

    Returns:
        list of :class:`GravityResult`, ordered by index.
    """
    params = (params or GravityParameters()).validate()
    if topology is None:
        topology = build_topology(mesh)

    site = params.evaluation
    if site == "centers":
        start, stop = _center_range(mesh, params)
        xyz = mesh.face_centroids()[start:stop]
        areas = mesh.face_areas()[start:stop]
        indices = np.arange(start, stop)
    elif site in ("vertices", "average_vertices"):
        indices = np.arange(mesh.vertex_count())
        areas = mesh.vertex_areas()
        if site == "vertices":
            xyz = mesh.positions_view()
        else:
            xyz = mesh.face_centroids()
    else:
        if points is None:
            raise ParameterError("evaluation 'points' requires field points.")
        xyz = np.array([as_field_point(p) for p in points], dtype=float).reshape(-1, 3)
        indices = np.arange(len(xyz))
        areas = np.ones(len(xyz))

    logger.info("Evaluating gravity at %d %s.", len(xyz), site.replace("_", " "))
    potentials, accelerations = evaluate_points(
        topology, mesh, xyz, want_acceleration=True, max_workers=params.max_workers
    )
    potentials, accelerations = apply_physical_scaling(
        xyz, potentials, accelerations, params
    )

    if site == "average_vertices":
        face_areas = mesh.face_areas()
        potentials = _average_onto_vertices(mesh, potentials, face_areas)
        accelerations = _average_onto_vertices(mesh, accelerations, face_areas)
        xyz = mesh.positions_view()

    results = [
        GravityResult(
            index=int(idx),
            xyz=np.array(xyz[i]),
            potential=float(potentials[i]),
            acceleration=np.array(accelerations[i]),
            area=float(areas[i]),
        )
        for i, idx in enumerate(indices)
    ]

    if params.ref_potential is not None:
        results = compute_elevations(results, params.ref_potential)
    return results


def compute_elevations(
    results: List[GravityResult], ref_potential: float
) -> List[GravityResult]:
    """Return copies of ``results`` with ``elevation = (U - U_ref) / |g|``."""
    updated = []
    for gr in results:
        g = float(np.linalg.norm(gr.acceleration))
        elevation = (gr.potential - ref_potential) / g if g > 0.0 else 0.0
        updated.append(replace(gr, elevation=elevation))
    return updated


def add_external_body(
    results: List[GravityResult],
    external_mass: float,
    external_xyz,
    grav_constant: float,
    *,
    length_unit: str = "m",
) -> List[GravityResult]:
    """Add the tidal potential and acceleration of an external point mass.

    The perturbation is taken relative to the body centre, i.e. the external
    body's potential and acceleration at the origin are subtracted.

    Args:
        results: self-gravity potential (J/kg) and acceleration (m/s^2), as
            returned by :func:`compute_gravity`.
        external_mass: mass of the perturbing body, kg.
        external_xyz: body-fixed position of the perturbing body.
        grav_constant: gravitational constant, m^3 / (kg s^2).
        length_unit: unit of ``external_xyz`` and of the result positions;
            use the ``length_unit`` the results were computed with.

    Returns:
        updated copies of ``results``.
    """
    if length_unit not in LENGTH_UNITS:
        raise ParameterError(f"Unknown length unit {length_unit!r}.")
    to_metres = LENGTH_UNITS[length_unit]
    external_xyz = as_field_point(external_xyz)
    total_area = sum(gr.area for gr in results)
    logger.info(
        "Adding contribution from external body. Mass %.3e kg, position "
        "%.3e %.3e %.3e %s, total area %.3e %s^2",
        external_mass,
        *external_xyz,
        length_unit,
        total_area,
        length_unit,
    )

    # potential and acceleration at the body centre (meters)
    radius = float(np.linalg.norm(external_xyz)) * to_metres
    if radius == 0.0:
        raise ParameterError("External body cannot sit at the body centre.")
    gm = grav_constant * external_mass
    g_center = gm / radius**2 * (external_xyz * to_metres / radius)
    p_center = -gm / radius

    updated = []
    for gr in results:
        body_to_point = (np.asarray(gr.xyz, dtype=float) - external_xyz) * to_metres
        dist = float(np.linalg.norm(body_to_point))
        potential = -gm / dist
        acceleration = (
            np.asarray(gr.acceleration, dtype=float)
            + potential / dist * (body_to_point / dist)
            - g_center
        )
        potential = potential - p_center + gr.potential
        updated.append(replace(gr, potential=potential, acceleration=acceleration))
    return updated
