# biotraj/direct_solver/core_solver.py
"""
Transcription of a continuous problem into a collocation NLP, the NLP solve and
conversion of the raw solver iterate into a :class:`~biotraj.solution.Solution`.
"""

from __future__ import annotations

import logging

import casadi as ca
import numpy as np

from ..exceptions import (
    BiotrajBaseError,
    DataIntegrityError,
    EvaluationError,
    SolutionExtractionError,
)
from ..input_validation import validate_array_numerical_integrity
from ..iterate import Iterate
from ..problem.continuous_problem import ContinuousProblem
from ..problem.guess_manager import bounds_guess_value
from ..settings import SolverSettings
from ..solution import Solution, SolutionStatus, status_from_return_status
from ..utils.snapshot_pool import ProblemRepresentationCache
from .constraints_solver import (
    apply_hermite_simpson_defects,
    apply_path_constraints,
    apply_trapezoidal_defects,
    assemble_grid_values,
    build_state_derivatives,
)
from .grid_callbacks import (
    GridEvaluator,
    PointLayout,
    make_dynamics_point_function,
    make_endpoint_point_function,
    make_integrand_point_function,
    make_path_point_function,
)
from .initial_guess_solver import apply_initial_guess, resample_guess_to_grid
from .integrals_solver import build_objective
from .types_solver import DiscreteProblem, create_transcription_grid
from .variables_solver import apply_variable_bounds, create_variables


logger = logging.getLogger(__name__)


def _bounds_guess_column(problem: ContinuousProblem) -> np.ndarray:
    assert problem.final_time_bounds is not None
    return np.array(
        [bounds_guess_value(problem.initial_time_bounds)]
        + [bounds_guess_value(info.bounds) for info in problem.states]
        + [bounds_guess_value(info.bounds) for info in problem.controls]
        + [bounds_guess_value(info.bounds) for info in problem.parameters],
        dtype=np.float64,
    )


def check_problem_functions(
    problem: ContinuousProblem, cache: ProblemRepresentationCache, layout: PointLayout
) -> None:
    """Evaluate every problem function once so size errors surface at construction."""
    column = _bounds_guess_column(problem)
    t, x, _, p = layout.split(column)
    endpoint_column = np.concatenate([[t], x, [t], x, p])

    try:
        with cache.checkout() as snapshot:
            make_dynamics_point_function(layout)(snapshot, column)
            if problem.num_path_constraints > 0:
                make_path_point_function(layout, problem.num_path_constraints)(snapshot, column)
            if problem.has_integral_cost():
                make_integrand_point_function(layout)(snapshot, column)
            if problem.has_endpoint_cost():
                make_endpoint_point_function(layout)(snapshot, endpoint_column)
    except BiotrajBaseError:
        raise
    except Exception as e:
        raise EvaluationError(
            f"Problem function raised while probing outputs: {e}", problem.name
        ) from e


def transcribe(
    problem: ContinuousProblem,
    settings: SolverSettings,
    cache: ProblemRepresentationCache,
    num_threads: int,
) -> DiscreteProblem:
    """Build the collocation NLP for ``problem`` on the grid described by ``settings``.

    Constraints are added in a fixed order (bounds, then defects interval by
    interval, then path constraints mesh point by mesh point), independent of
    ``num_threads``.
    """
    grid = create_transcription_grid(settings.get_mesh(), settings.transcription_scheme)
    layout = PointLayout(problem.num_states, problem.num_controls, problem.num_parameters)
    fd_scheme = settings.finite_difference_scheme

    logger.debug(
        "Transcribing '%s': scheme=%s, intervals=%d, grid points=%d, threads=%d",
        problem.name,
        grid.scheme,
        grid.num_mesh_intervals,
        grid.num_grid_points,
        num_threads,
    )

    check_problem_functions(problem, cache, layout)

    opti: ca.Opti = ca.Opti()
    evaluator = GridEvaluator(cache, num_threads)
    try:
        variables = create_variables(opti, problem, grid.num_grid_points)
        discrete = DiscreteProblem(opti=opti, grid=grid, variables=variables, evaluator=evaluator)

        apply_variable_bounds(discrete, problem)

        discrete.grid_values = assemble_grid_values(discrete)
        discrete.state_derivatives = build_state_derivatives(discrete, problem, layout, fd_scheme)
        if grid.scheme == "hermite-simpson":
            apply_hermite_simpson_defects(
                discrete, discrete.state_derivatives, settings.interpolate_control_midpoints
            )
        else:
            apply_trapezoidal_defects(discrete, discrete.state_derivatives)

        apply_path_constraints(discrete, problem, layout, fd_scheme)

        discrete.objective = build_objective(discrete, problem, layout, fd_scheme)
        opti.minimize(discrete.objective)
        opti.solver(settings.optim_solver, settings.build_nlp_options())

    except Exception as e:
        evaluator.shutdown()
        logger.error("Failed to transcribe problem '%s': %s", problem.name, e)
        if isinstance(e, BiotrajBaseError):
            raise
        raise DataIntegrityError(
            f"Failed to set up collocation problem: {e}", "biotraj problem construction error"
        ) from e

    logger.debug(
        "Collocation NLP has %d constraint rows in %d blocks",
        discrete.num_constraints,
        len(discrete.constraint_layout),
    )
    return discrete


def _value_matrix(
    source: ca.OptiAdvanced | ca.OptiSol, expression: ca.MX, shape: tuple[int, int]
) -> np.ndarray:
    if shape[0] == 0:
        return np.zeros(shape, dtype=np.float64)
    return np.asarray(source.value(expression), dtype=np.float64).reshape(shape)


def _time_value(
    source: ca.OptiAdvanced | ca.OptiSol, variable: ca.MX, bounds: tuple[float, float] | None
) -> float:
    # Fixed times are the declared values
    if bounds is not None and bounds[0] == bounds[1]:
        return float(bounds[0])
    return float(source.value(variable))


def extract_solution(
    source: ca.OptiAdvanced | ca.OptiSol,
    discrete: DiscreteProblem,
    problem: ContinuousProblem,
    stats: dict,
) -> Solution:
    """Convert the NLP iterate held by ``source`` into a :class:`Solution`."""
    variables = discrete.variables
    num_points = discrete.grid.num_grid_points
    status = status_from_return_status(stats.get("return_status"))

    try:
        initial_time = _time_value(source, variables.initial_time, problem.initial_time_bounds)
        final_time = _time_value(source, variables.final_time, problem.final_time_bounds)
        states = _value_matrix(source, variables.states, (problem.num_states, num_points))
        controls = _value_matrix(source, variables.controls, (problem.num_controls, num_points))
        parameters = (
            _value_matrix(source, variables.parameters, (problem.num_parameters, 1)).flatten()
            if variables.parameters is not None
            else np.zeros(0)
        )
        objective = float(source.value(discrete.objective))
    except Exception as e:
        raise SolutionExtractionError(
            f"Failed to read NLP variable values: {e}", "biotraj solution processing error"
        ) from e

    if status.is_success:
        validate_array_numerical_integrity(states, "Optimal states", "solution extraction")
        validate_array_numerical_integrity(controls, "Optimal controls", "solution extraction")

    try:
        return Solution(
            discrete.grid.times(initial_time, final_time),
            states,
            controls,
            parameters,
            problem.get_state_names(),
            problem.get_control_names(),
            problem.get_parameter_names(),
            status=status,
            objective=objective,
            message=str(stats.get("return_status", "")),
            num_iterations=int(stats.get("iter_count", 0)),
            solver_duration=float(stats.get("t_wall_total", float("nan"))),
            stats=stats,
        )
    except BiotrajBaseError as e:
        raise SolutionExtractionError(
            f"Failed to build solution trajectory: {e}", "biotraj solution processing error"
        ) from e


def solve_discrete_problem(
    discrete: DiscreteProblem, problem: ContinuousProblem, guess: Iterate
) -> Solution:
    """Seed the NLP with ``guess`` (resampled onto the grid) and run the NLP solver.

    Raises:
        EvaluationError: If a problem function raised during the solve
    """
    apply_initial_guess(discrete, resample_guess_to_grid(guess, problem, discrete))
    opti = discrete.opti

    try:
        source: ca.OptiAdvanced | ca.OptiSol = opti.solve()
        logger.debug("NLP solver completed successfully")
    except RuntimeError as e:
        if discrete.evaluator.error is not None:
            raise discrete.evaluator.error from e
        logger.warning("NLP solver did not converge: %s", e)
        source = opti.debug

    if discrete.evaluator.error is not None:
        raise discrete.evaluator.error

    stats = dict(opti.stats())
    solution = extract_solution(source, discrete, problem, stats)
    if solution.status is SolutionStatus.SUCCESS:
        logger.info(
            "Solve succeeded: objective=%.6g, iterations=%d",
            solution.objective,
            solution.num_iterations,
        )
    else:
        logger.warning("Solve finished with status %s (%s)", solution.status.name, solution.message)
    return solution
