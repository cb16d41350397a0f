import logging
import math
from typing import Any

import numpy as np

from .bt_types import ConstraintInput, ContinuousProblemProtocol, FloatArray
from .exceptions import ConfigurationError, DataIntegrityError
from .utils.constants import (
    FINITE_DIFFERENCE_SCHEMES,
    MESH_TOLERANCE,
    TRANSCRIPTION_SCHEMES,
)


logger = logging.getLogger(__name__)


# ============================================================================
# CORE VALIDATION PRIMITIVES
# ============================================================================


def validate_positive_integer(value: Any, name: str, min_value: int = 1) -> None:
    """Single source for positive integer validation."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be integer, got {type(value)}")
    if value < min_value:
        raise ConfigurationError(f"{name} must be >= {min_value}, got {value}")


def validate_string_not_empty(value: Any, name: str) -> None:
    """Single source for non-empty string validation."""
    if not isinstance(value, str):
        raise ConfigurationError(f"{name} must be string, got {type(value)}")
    if not value.strip():
        raise ConfigurationError(f"{name} cannot be empty")


def validate_choice(value: Any, choices: tuple[str, ...], name: str) -> None:
    if value not in choices:
        raise ConfigurationError(f"{name} must be one of {list(choices)}, got {value!r}")


def validate_array_numerical_integrity(
    array: FloatArray, name: str, context: str = "validation"
) -> None:
    """Single source for NaN/Inf validation."""
    if np.any(np.isnan(array)) or np.any(np.isinf(array)):
        raise DataIntegrityError(
            f"{name} contains NaN or Inf values", f"Numerical corruption in {context}"
        )


def validate_array_shape(
    array: FloatArray, expected_shape: tuple[int, ...], name: str, context: str = "validation"
) -> None:
    """Single source for shape validation."""
    if array.shape != expected_shape:
        raise DataIntegrityError(
            f"{name} has shape {array.shape}, expected {expected_shape}",
            f"Shape mismatch in {context}",
        )


# ============================================================================
# BOUNDS VALIDATION
# ============================================================================


def validate_constraint_input_format(constraint_input: Any, context: str) -> None:
    """Single source for bound specification validation."""
    if constraint_input is None:
        return

    if isinstance(constraint_input, int | float) and not isinstance(constraint_input, bool):
        if math.isnan(constraint_input) or math.isinf(constraint_input):
            raise ConfigurationError(
                f"Bound cannot be NaN/infinite: {constraint_input}", context
            )
    elif isinstance(constraint_input, tuple):
        if len(constraint_input) != 2:
            raise ConfigurationError(
                f"Bound tuple must have 2 elements, got {len(constraint_input)}", context
            )

        lower, upper = constraint_input
        for i, val in enumerate([lower, upper]):
            if val is not None:
                if isinstance(val, bool) or not isinstance(val, int | float):
                    raise ConfigurationError(
                        f"Bound {i} must be numeric/None, got {type(val)}", context
                    )
                if math.isnan(val):
                    raise ConfigurationError(f"Bound {i} cannot be NaN", context)

        if lower is not None and upper is not None and lower > upper:
            raise ConfigurationError(f"Lower bound ({lower}) > upper bound ({upper})", context)
    else:
        raise ConfigurationError(f"Invalid bound type: {type(constraint_input)}", context)


def normalize_bounds(constraint_input: ConstraintInput, context: str) -> tuple[float, float]:
    """Convert a bound specification to (lower, upper) with infinite open sides."""
    validate_constraint_input_format(constraint_input, context)
    if constraint_input is None:
        return (-math.inf, math.inf)
    if isinstance(constraint_input, tuple):
        lower, upper = constraint_input
        return (
            -math.inf if lower is None else float(lower),
            math.inf if upper is None else float(upper),
        )
    return (float(constraint_input), float(constraint_input))


def validate_bounds_pair(bounds: tuple[float, float], context: str) -> None:
    lower, upper = bounds
    if math.isnan(lower) or math.isnan(upper):
        raise ConfigurationError("Bounds cannot be NaN", context)
    if lower > upper:
        raise ConfigurationError(f"Lower bound ({lower}) > upper bound ({upper})", context)


# ============================================================================
# MESH AND SETTINGS VALIDATION
# ============================================================================


def validate_mesh(mesh: FloatArray) -> None:
    """Normalized mesh must start at 0, end at 1 and be strictly increasing."""
    if mesh.ndim != 1 or len(mesh) < 2:
        raise ConfigurationError(f"Mesh must contain at least 2 points, got {mesh.size}")
    if not np.all(np.isfinite(mesh)):
        raise ConfigurationError("Mesh points must be finite")
    if abs(mesh[0]) > MESH_TOLERANCE or abs(mesh[-1] - 1.0) > MESH_TOLERANCE:
        raise ConfigurationError(
            f"Mesh must start at 0 and end at 1, got [{mesh[0]}, {mesh[-1]}]"
        )
    if np.any(np.diff(mesh) <= MESH_TOLERANCE):
        raise ConfigurationError(
            f"Mesh points must be strictly increasing with spacing > {MESH_TOLERANCE}"
        )


def validate_solver_settings(settings: Any) -> None:
    """Single validation call for all solver properties."""
    if settings.mesh is None:
        validate_positive_integer(settings.num_mesh_intervals, "num_mesh_intervals")
    validate_mesh(settings.get_mesh())
    validate_choice(
        settings.transcription_scheme, TRANSCRIPTION_SCHEMES, "transcription_scheme"
    )
    validate_choice(
        settings.finite_difference_scheme, FINITE_DIFFERENCE_SCHEMES, "finite_difference_scheme"
    )
    validate_string_not_empty(settings.optim_solver, "optim_solver")
    if settings.optim_max_iterations != -1:
        validate_positive_integer(settings.optim_max_iterations, "optim_max_iterations")
    for name in ("optim_convergence_tolerance", "optim_constraint_tolerance"):
        value = getattr(settings, name)
        if value != -1 and not value > 0:
            raise ConfigurationError(f"{name} must be positive or -1, got {value}")


# ============================================================================
# PROBLEM VALIDATION
# ============================================================================


def _validate_variable_bounds(variables: list[Any], kind: str, problem_name: str) -> None:
    for info in variables:
        validate_bounds_pair(info.bounds, f"{problem_name}: {kind} '{info.name}' bounds")
        for label in ("initial_bounds", "final_bounds"):
            endpoint_bounds = getattr(info, label, None)
            if endpoint_bounds is not None:
                validate_bounds_pair(
                    endpoint_bounds, f"{problem_name}: {kind} '{info.name}' {label}"
                )


def validate_kinematic_structure(problem: ContinuousProblemProtocol) -> None:
    """The transcription only supports q' = u kinematics (e.g., no quaternions)."""
    if problem.uses_quaternions:
        raise ConfigurationError(
            "Problems using quaternions are not supported: the transcription requires "
            "coordinate derivatives to equal speed states",
            problem.name,
        )

    pairs = problem.get_kinematic_pairs()
    coordinates = [coordinate for coordinate, _ in pairs]
    speeds = [speed for _, speed in pairs]
    if len(set(coordinates)) != len(coordinates):
        raise ConfigurationError("A coordinate appears in more than one kinematic pair", problem.name)
    if len(set(speeds)) != len(speeds):
        raise ConfigurationError("A speed appears in more than one kinematic pair", problem.name)
    if set(coordinates) & set(speeds):
        raise ConfigurationError(
            "A state cannot be both a coordinate and a speed in kinematic pairs", problem.name
        )


def validate_problem_ready_for_solving(problem: Any) -> None:
    """Single comprehensive validation call before a problem is registered."""
    if problem.num_states == 0:
        raise ConfigurationError("Problem must declare at least one state", problem.name)

    _validate_variable_bounds(problem.states, "state", problem.name)
    _validate_variable_bounds(problem.controls, "control", problem.name)
    _validate_variable_bounds(problem.parameters, "parameter", problem.name)
    _validate_variable_bounds(problem.path_constraints, "path constraint", problem.name)

    if problem.final_time_bounds is None:
        raise ConfigurationError("Final time bounds must be set", problem.name)
    for label, bounds in (
        ("initial time", problem.initial_time_bounds),
        ("final time", problem.final_time_bounds),
    ):
        validate_bounds_pair(bounds, f"{problem.name}: {label} bounds")
        if math.isinf(bounds[0]) and math.isinf(bounds[1]):
            raise ConfigurationError(f"{label} bounds must have a finite side", problem.name)

    if problem.initial_time_bounds[0] > problem.final_time_bounds[1]:
        raise ConfigurationError(
            "Initial time lower bound exceeds final time upper bound", problem.name
        )

    validate_kinematic_structure(problem)
    logger.debug("Problem '%s' passed validation", problem.name)
