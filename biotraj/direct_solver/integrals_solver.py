# biotraj/direct_solver/integrals_solver.py
"""
Objective assembly: endpoint cost plus quadrature of the integral cost.
"""

from __future__ import annotations

import logging

import casadi as ca

from ..problem.continuous_problem import ContinuousProblem
from .grid_callbacks import (
    GridCallback,
    PointLayout,
    make_endpoint_point_function,
    make_integrand_point_function,
)
from .types_solver import DiscreteProblem


logger = logging.getLogger(__name__)


def build_integral_cost(
    discrete: DiscreteProblem,
    layout: PointLayout,
    finite_difference_scheme: str,
) -> ca.MX:
    """Duration-scaled quadrature of the integrand over all grid points."""
    integrand_callback = GridCallback(
        "integral_cost",
        make_integrand_point_function(layout),
        num_inputs=layout.size,
        num_outputs=1,
        num_points=discrete.grid.num_grid_points,
        evaluator=discrete.evaluator,
        finite_difference_scheme=finite_difference_scheme,
    )
    discrete.callbacks["integral_cost"] = integrand_callback

    assert discrete.grid_values is not None
    integrand = integrand_callback(discrete.grid_values)
    weights = ca.DM(discrete.grid.quadrature_weights)
    return discrete.variables.duration * ca.mtimes(integrand, weights)


def build_endpoint_cost(
    discrete: DiscreteProblem,
    layout: PointLayout,
    finite_difference_scheme: str,
) -> ca.MX:
    variables = discrete.variables
    endpoint_callback = GridCallback(
        "endpoint_cost",
        make_endpoint_point_function(layout),
        num_inputs=layout.endpoint_size,
        num_outputs=1,
        num_points=1,
        evaluator=discrete.evaluator,
        finite_difference_scheme=finite_difference_scheme,
    )
    discrete.callbacks["endpoint_cost"] = endpoint_callback

    rows = [
        variables.initial_time,
        variables.states[:, 0],
        variables.final_time,
        variables.states[:, -1],
    ]
    if variables.parameters is not None:
        rows.append(variables.parameters)
    return endpoint_callback(ca.vertcat(*rows))


def build_objective(
    discrete: DiscreteProblem,
    problem: ContinuousProblem,
    layout: PointLayout,
    finite_difference_scheme: str,
) -> ca.MX:
    objective = ca.MX(0)
    if problem.has_endpoint_cost():
        objective = objective + build_endpoint_cost(discrete, layout, finite_difference_scheme)
    if problem.has_integral_cost():
        objective = objective + build_integral_cost(discrete, layout, finite_difference_scheme)
    if not (problem.has_endpoint_cost() or problem.has_integral_cost()):
        logger.debug("Problem '%s' has no cost terms; solving a feasibility problem", problem.name)
    return objective
