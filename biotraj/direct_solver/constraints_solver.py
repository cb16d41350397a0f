# biotraj/direct_solver/constraints_solver.py
"""
Collocation defect, kinematic and path constraints for the trapezoidal and
Hermite-Simpson transcriptions.
"""

from __future__ import annotations

import logging

import casadi as ca
import numpy as np

from ..problem.continuous_problem import ContinuousProblem
from .grid_callbacks import (
    GridCallback,
    PointLayout,
    make_dynamics_point_function,
    make_path_point_function,
)
from .types_solver import DiscreteProblem


logger = logging.getLogger(__name__)


def assemble_grid_values(discrete: DiscreteProblem) -> ca.MX:
    """Stack [time; states; controls; parameters] with one column per grid point."""
    variables = discrete.variables
    num_points = discrete.grid.num_grid_points
    fractions = ca.DM(discrete.grid.fractions).T
    time_row = variables.initial_time + variables.duration * fractions

    rows = [time_row, variables.states, variables.controls]
    if variables.parameters is not None:
        rows.append(ca.repmat(variables.parameters, 1, num_points))
    return ca.vertcat(*rows)


def state_derivatives_with_kinematics(
    dynamics: ca.MX, states: ca.MX, kinematic_pairs: list[tuple[int, int]]
) -> ca.MX:
    """Replace each coordinate's derivative row with its paired speed state row."""
    speed_for_coordinate = dict(kinematic_pairs)
    rows = []
    for i in range(states.shape[0]):
        if i in speed_for_coordinate:
            rows.append(states[speed_for_coordinate[i], :])
        else:
            rows.append(dynamics[i, :])
    return ca.vertcat(*rows)


def build_state_derivatives(
    discrete: DiscreteProblem,
    problem: ContinuousProblem,
    layout: PointLayout,
    finite_difference_scheme: str,
) -> ca.MX:
    """State derivatives at every grid point through the dynamics callback."""
    dynamics_callback = GridCallback(
        "dynamics",
        make_dynamics_point_function(layout),
        num_inputs=layout.size,
        num_outputs=problem.num_states,
        num_points=discrete.grid.num_grid_points,
        evaluator=discrete.evaluator,
        finite_difference_scheme=finite_difference_scheme,
    )
    discrete.callbacks["dynamics"] = dynamics_callback

    assert discrete.grid_values is not None
    dynamics = dynamics_callback(discrete.grid_values)
    return state_derivatives_with_kinematics(
        dynamics, discrete.variables.states, problem.get_kinematic_pairs()
    )


def apply_trapezoidal_defects(discrete: DiscreteProblem, state_derivatives: ca.MX) -> None:
    states = discrete.variables.states
    duration = discrete.variables.duration
    num_states = states.shape[0]
    mesh = discrete.grid.mesh

    for k in range(discrete.grid.num_mesh_intervals):
        step = duration * (mesh[k + 1] - mesh[k])
        defect = (
            states[:, k + 1]
            - states[:, k]
            - step / 2.0 * (state_derivatives[:, k] + state_derivatives[:, k + 1])
        )
        discrete.add_constraint(defect == 0, "defect", k, num_states)


def apply_hermite_simpson_defects(
    discrete: DiscreteProblem, state_derivatives: ca.MX, interpolate_control_midpoints: bool
) -> None:
    states = discrete.variables.states
    controls = discrete.variables.controls
    duration = discrete.variables.duration
    num_states = states.shape[0]
    num_controls = controls.shape[0]
    mesh = discrete.grid.mesh

    for k in range(discrete.grid.num_mesh_intervals):
        start, mid, end = 2 * k, 2 * k + 1, 2 * k + 2
        step = duration * (mesh[k + 1] - mesh[k])
        f_start = state_derivatives[:, start]
        f_mid = state_derivatives[:, mid]
        f_end = state_derivatives[:, end]

        # Hermite interpolant evaluated at the interval midpoint
        interpolation_defect = (
            states[:, mid]
            - (states[:, start] + states[:, end]) / 2.0
            - step / 8.0 * (f_start - f_end)
        )
        discrete.add_constraint(interpolation_defect == 0, "midpoint_defect", mid, num_states)

        simpson_defect = (
            states[:, end] - states[:, start] - step / 6.0 * (f_start + 4.0 * f_mid + f_end)
        )
        discrete.add_constraint(simpson_defect == 0, "defect", k, num_states)

        if interpolate_control_midpoints and num_controls > 0:
            control_defect = controls[:, mid] - (controls[:, start] + controls[:, end]) / 2.0
            discrete.add_constraint(control_defect == 0, "control_midpoint", mid, num_controls)


def apply_path_constraints(
    discrete: DiscreteProblem,
    problem: ContinuousProblem,
    layout: PointLayout,
    finite_difference_scheme: str,
) -> None:
    """Path constraints at every mesh point, bounded row by row."""
    num_constraints = problem.num_path_constraints
    if num_constraints == 0:
        return

    mesh_indices = discrete.grid.mesh_indices
    path_callback = GridCallback(
        "path_constraints",
        make_path_point_function(layout, num_constraints),
        num_inputs=layout.size,
        num_outputs=num_constraints,
        num_points=len(mesh_indices),
        evaluator=discrete.evaluator,
        finite_difference_scheme=finite_difference_scheme,
    )
    discrete.callbacks["path_constraints"] = path_callback

    assert discrete.grid_values is not None
    if len(mesh_indices) == discrete.grid.num_grid_points:
        mesh_values = discrete.grid_values
    else:
        mesh_values = ca.horzcat(*[discrete.grid_values[:, index] for index in mesh_indices])
    path_values = path_callback(mesh_values)

    lower = np.array([info.bounds[0] for info in problem.path_constraints])
    upper = np.array([info.bounds[1] for info in problem.path_constraints])
    for j, grid_index in enumerate(mesh_indices):
        discrete.add_constraint(
            discrete.opti.bounded(ca.DM(lower), path_values[:, j], ca.DM(upper)),
            "path",
            grid_index,
            num_constraints,
        )
