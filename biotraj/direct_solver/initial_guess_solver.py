# biotraj/direct_solver/initial_guess_solver.py
"""
Application of an initial guess iterate to the collocation NLP.
"""

from __future__ import annotations

import logging

import numpy as np

from ..input_validation import validate_array_shape
from ..iterate import Iterate
from ..problem.continuous_problem import ContinuousProblem
from .types_solver import DiscreteProblem


logger = logging.getLogger(__name__)


def resample_guess_to_grid(
    guess: Iterate, problem: ContinuousProblem, discrete: DiscreteProblem
) -> Iterate:
    """Match rows to the problem by name and interpolate onto the collocation grid.

    The guess keeps its own time span; its grid is the collocation grid mapped
    onto [guess.initial_time, guess.final_time].
    """
    ordered = guess.reorder(
        problem.get_state_names(), problem.get_control_names(), problem.get_parameter_names()
    )
    grid_times = discrete.grid.times(ordered.initial_time, ordered.final_time)
    if ordered.num_times == 1:
        # A single sample carries no time span; keep its time as the initial time
        grid_times = ordered.initial_time + discrete.grid.fractions
    if ordered.num_times != discrete.grid.num_grid_points:
        logger.debug(
            "Resampling guess from %d to %d time samples",
            ordered.num_times,
            discrete.grid.num_grid_points,
        )
    return ordered.resample(grid_times)


def apply_initial_guess(discrete: DiscreteProblem, guess_on_grid: Iterate) -> None:
    """Set initial values of every decision variable from an on-grid iterate."""
    num_points = discrete.grid.num_grid_points
    num_states = discrete.variables.states.shape[0]
    num_controls = discrete.variables.controls.shape[0]
    validate_array_shape(
        guess_on_grid.states, (num_states, num_points), "Guess states", "initial guess application"
    )
    validate_array_shape(
        guess_on_grid.controls,
        (num_controls, num_points),
        "Guess controls",
        "initial guess application",
    )

    opti = discrete.opti
    variables = discrete.variables
    initial_time = guess_on_grid.initial_time
    final_time = guess_on_grid.final_time

    opti.set_initial(variables.initial_time, initial_time)
    opti.set_initial(variables.final_time, final_time)
    opti.set_initial(variables.states, guess_on_grid.states)
    if guess_on_grid.controls.shape[0] > 0:
        opti.set_initial(variables.controls, guess_on_grid.controls)
    if variables.parameters is not None:
        opti.set_initial(variables.parameters, guess_on_grid.parameters)

    if not np.all(np.isfinite(guess_on_grid.states)):
        logger.warning("Initial guess contains non-finite state values")
    logger.debug("Applied initial guess over [%g, %g]", initial_time, final_time)
