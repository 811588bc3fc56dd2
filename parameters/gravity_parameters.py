# gravity_parameters.py

import json
import logging
import math

import yaml

from core.exceptions import ParameterError

logger = logging.getLogger("werner_gravity")

EVALUATION_SITES = ("centers", "vertices", "average_vertices", "points")

# Metres per mesh length unit.
LENGTH_UNITS = {"m": 1.0, "km": 1000.0}


class GravityParameters:
    def __init__(self, initial_params=None):
        """
        all parameters are defined with underscore, _, instead of spaces
        """
        self._params = {
            # Density of the body (kg/m^3 for SI results).
            "density": 1.0,
            # Gravitational constant multiplied into every result.
            "grav_constant": 6.67408e-11,
            # Spin rate about the body-fixed +z axis (rad/s). Adds the
            # centrifugal term to potential and acceleration.
            "rotation_rate": 0.0,
            # Unit of mesh coordinates, field points and external body
            # positions. Results are always SI (J/kg, m/s^2, m).
            "length_unit": "m",
            # Where to evaluate gravity:
            #   "centers"          – face centroids (area = face area).
            #   "vertices"         – mesh vertices.
            #   "average_vertices" – face-centroid results averaged onto vertices.
            #   "points"           – caller-supplied field points.
            "evaluation": "centers",
            # Reference potential for elevation; None disables elevation.
            "ref_potential": None,
            # Face range for "centers"; lets large models be split across runs.
            "start_index": 0,
            "num_plates": None,
            # Worker threads for batch evaluation (None/1 = serial).
            "max_workers": None,
        }
        if initial_params:
            self.update(initial_params)

    def __getattr__(self, name):
        """Attribute access for known parameter keys."""
        params = self.__dict__.get("_params")
        if params is not None and name in params:
            return params[name]
        raise AttributeError(
            f"{type(self).__name__!s} object has no attribute {name!r}"
        )

    def __setattr__(self, name, value):
        if name == "_params":
            object.__setattr__(self, name, value)
            return
        params = self.__dict__.get("_params")
        if params is not None and name in params:
            params[name] = value
            return
        object.__setattr__(self, name, value)

    def get(self, key, default=None):
        """Retrieve a parameter value, or return a default if not found."""
        return self._params.get(key, default)

    def set(self, key, value):
        """Set or update a parameter."""
        self._params[key] = value

    def update(self, params):
        """Update multiple parameters at once."""
        self._params.update(params)

    @property
    def scale(self) -> float:
        """``G * density``, the factor applied to the unit-density kernel."""
        return float(self.grav_constant) * float(self.density)

    @property
    def length_scale(self) -> float:
        """Metres per mesh length unit."""
        return LENGTH_UNITS[self.length_unit]

    def validate(self):
        """Coerce numeric fields and reject inconsistent values."""
        for key in ("density", "grav_constant", "rotation_rate"):
            val = self._params.get(key)
            try:
                self._params[key] = float(val)
            except (TypeError, ValueError) as exc:
                raise ParameterError(f"{key} must be numeric; got {val!r}") from exc
            if not math.isfinite(self._params[key]):
                raise ParameterError(f"{key} must be finite; got {val!r}")

        if self.density <= 0.0:
            raise ParameterError(f"density must be positive; got {self.density}")
        if self.grav_constant <= 0.0:
            raise ParameterError(
                f"grav_constant must be positive; got {self.grav_constant}"
            )

        if self.evaluation not in EVALUATION_SITES:
            raise ParameterError(
                f"Unknown evaluation site {self.evaluation!r}; "
                f"expected one of {', '.join(EVALUATION_SITES)}."
            )

        if self.length_unit not in LENGTH_UNITS:
            raise ParameterError(
                f"Unknown length unit {self.length_unit!r}; "
                f"expected one of {', '.join(LENGTH_UNITS)}."
            )

        if self.ref_potential is not None:
            try:
                self._params["ref_potential"] = float(self.ref_potential)
            except (TypeError, ValueError) as exc:
                raise ParameterError(
                    f"ref_potential must be numeric; got {self.ref_potential!r}"
                ) from exc

        if int(self.start_index) < 0:
            raise ParameterError(f"start_index must be >= 0; got {self.start_index}")
        self._params["start_index"] = int(self.start_index)
        if self.num_plates is not None:
            if int(self.num_plates) < 0:
                raise ParameterError(f"num_plates must be >= 0; got {self.num_plates}")
            self._params["num_plates"] = int(self.num_plates)

        if self.max_workers is not None:
            try:
                workers = int(self.max_workers)
            except (TypeError, ValueError) as exc:
                raise ParameterError(
                    f"max_workers must be an integer; got {self.max_workers!r}"
                ) from exc
            if workers < 1:
                raise ParameterError(f"max_workers must be >= 1; got {workers}")
            self._params["max_workers"] = workers
        return self

    def __contains__(self, key):
        return key in self._params

    def __repr__(self):
        return f"GravityParameters({self._params})"

    def to_dict(self):
        """Convert the parameters to a dictionary for serialization."""
        return dict(self._params)


def load_parameters(filename) -> GravityParameters:
    """Load gravity parameters from a YAML or JSON file.

    The file may either be a flat mapping of parameters or contain them under
    a ``gravity_parameters`` key. Unknown keys are dropped with a warning.
    """
    filename_str = str(filename)
    with open(filename_str, "r") as f:
        if filename_str.endswith((".yaml", ".yml")):
            data = yaml.safe_load(f)
        elif filename_str.endswith(".json"):
            data = json.load(f)
        else:
            logger.error(f"Unsupported file format for: {filename_str}")
            raise ValueError(f"Unsupported file format for: {filename_str}")

    data = data or {}
    if not isinstance(data, dict):
        raise ParameterError(f"{filename_str} must contain a mapping of parameters.")
    section = data.get("gravity_parameters", data)
    if not isinstance(section, dict):
        raise ParameterError(
            f"gravity_parameters in {filename_str} must be a mapping; got {section!r}."
        )

    params = GravityParameters()
    unknown = sorted(k for k in section if k not in params)
    if unknown:
        logger.warning("Ignoring unknown gravity parameters: %s", ", ".join(unknown))
    params.update({k: v for k, v in section.items() if k in params})
    return params.validate()
