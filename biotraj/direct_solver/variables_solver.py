# biotraj/direct_solver/variables_solver.py
"""
Decision variable creation and bounding for the collocation NLP.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import casadi as ca

from ..problem.continuous_problem import ContinuousProblem, VariableInfo
from ..utils.constants import MINIMUM_TIME_INTERVAL
from .types_solver import DiscreteProblem, DiscreteVariables


logger = logging.getLogger(__name__)


@dataclass
class _BoundConstraint:
    """Unified bound constraint representation."""

    lower: float
    upper: float
    is_fixed: bool

    @classmethod
    def from_bounds(cls, bounds: tuple[float, float]) -> _BoundConstraint:
        lower, upper = bounds
        return cls(lower=lower, upper=upper, is_fixed=(lower == upper))

    @property
    def is_free(self) -> bool:
        return math.isinf(self.lower) and math.isinf(self.upper)


def _apply_bound_constraint(
    discrete: DiscreteProblem,
    variable: ca.MX,
    bounds: tuple[float, float],
    label: str,
    grid_index: int,
) -> None:
    """Constrain ``variable`` to ``bounds``; infinite sides are left open."""
    constraint = _BoundConstraint.from_bounds(bounds)
    if constraint.is_free:
        return

    size = variable.numel()
    opti = discrete.opti
    if constraint.is_fixed:
        discrete.add_constraint(variable == constraint.lower, label, grid_index, size)
    elif math.isinf(constraint.upper):
        discrete.add_constraint(variable >= constraint.lower, label, grid_index, size)
    elif math.isinf(constraint.lower):
        discrete.add_constraint(variable <= constraint.upper, label, grid_index, size)
    else:
        discrete.add_constraint(
            opti.bounded(constraint.lower, variable, constraint.upper), label, grid_index, size
        )


def create_variables(opti: ca.Opti, problem: ContinuousProblem, num_grid_points: int) -> DiscreteVariables:
    """Create time, state, control and parameter decision variables."""
    initial_time = opti.variable()
    final_time = opti.variable()
    states = opti.variable(problem.num_states, num_grid_points)
    controls = (
        opti.variable(problem.num_controls, num_grid_points)
        if problem.num_controls > 0
        else ca.MX(0, num_grid_points)
    )
    parameters = opti.variable(problem.num_parameters) if problem.num_parameters > 0 else None

    logger.debug(
        "Created decision variables: %d states, %d controls, %d parameters on %d grid points",
        problem.num_states,
        problem.num_controls,
        problem.num_parameters,
        num_grid_points,
    )
    return DiscreteVariables(
        initial_time=initial_time,
        final_time=final_time,
        states=states,
        controls=controls,
        parameters=parameters,
    )


def _apply_trajectory_bounds(
    discrete: DiscreteProblem, matrix: ca.MX, variables: list[VariableInfo], kind: str
) -> None:
    last = discrete.grid.num_grid_points - 1
    for i, info in enumerate(variables):
        _apply_bound_constraint(discrete, matrix[i, :], info.bounds, f"{kind}_bounds:{info.name}", -1)
        if info.initial_bounds is not None:
            _apply_bound_constraint(
                discrete, matrix[i, 0], info.initial_bounds, f"{kind}_initial:{info.name}", 0
            )
        if info.final_bounds is not None:
            _apply_bound_constraint(
                discrete, matrix[i, last], info.final_bounds, f"{kind}_final:{info.name}", last
            )


def apply_variable_bounds(discrete: DiscreteProblem, problem: ContinuousProblem) -> None:
    """Apply time, state, control and parameter bounds in a fixed order."""
    variables = discrete.variables
    initial_bounds = problem.initial_time_bounds
    final_bounds = problem.final_time_bounds
    assert final_bounds is not None

    _apply_bound_constraint(discrete, variables.initial_time, initial_bounds, "initial_time", 0)
    _apply_bound_constraint(discrete, variables.final_time, final_bounds, "final_time", -1)

    time_is_free = not (
        _BoundConstraint.from_bounds(initial_bounds).is_fixed
        and _BoundConstraint.from_bounds(final_bounds).is_fixed
    )
    if time_is_free:
        # Minimum duration keeps the grid times strictly increasing
        discrete.add_constraint(
            variables.final_time - variables.initial_time >= MINIMUM_TIME_INTERVAL,
            "minimum_duration",
            -1,
            1,
        )

    _apply_trajectory_bounds(discrete, variables.states, problem.states, "state")
    _apply_trajectory_bounds(discrete, variables.controls, problem.controls, "control")

    if variables.parameters is not None:
        for i, info in enumerate(problem.parameters):
            _apply_bound_constraint(
                discrete, variables.parameters[i], info.bounds, f"parameter_bounds:{info.name}", -1
            )
