# test_solver_integration.py
"""
End-to-end solves of small problems with known optima, plus the solver state
machine, failure reporting and copy semantics.
"""

import logging

import numpy as np
import pytest

from biotraj import (
    CollocationSolver,
    EvaluationError,
    GuessError,
    Iterate,
    ProblemNotReadyError,
    SolutionStatus,
    SolverSettings,
    SolverState,
)
from biotraj.solution import status_from_return_status

from conftest import SlidingMass


class SpeedLimitedMass(SlidingMass):
    SPEED_LIMIT = 0.7

    def __init__(self):
        super().__init__()
        self.add_path_constraint("speed_limit", bounds=(None, self.SPEED_LIMIT))

    def calc_path_constraints(self, time, states, controls, parameters):
        return np.array([states[1]])


def _check_boundary_conditions(solution):
    position = solution.get_state("position")
    speed = solution.get_state("speed")
    assert position[0] == pytest.approx(0.0, abs=1e-6)
    assert position[-1] == pytest.approx(SlidingMass.DISTANCE, abs=1e-6)
    assert speed[0] == pytest.approx(0.0, abs=1e-6)
    assert speed[-1] == pytest.approx(0.0, abs=1e-6)


class TestSlidingMass:
    """Minimum-effort point-to-point motion with optimal cost 1.5."""

    def test_trapezoidal(self, sliding_mass):
        solver = CollocationSolver(sliding_mass, SolverSettings(num_mesh_intervals=20, parallel=0))
        solution = solver.solve()

        assert solution.success
        assert solution.status is SolutionStatus.SUCCESS
        assert solution.objective == pytest.approx(SlidingMass.OPTIMAL_COST, rel=3e-2)
        assert solution.num_times == 21
        np.testing.assert_allclose(solution.time, np.linspace(0.0, 2.0, 21), atol=1e-12)
        # Fixed end times are reported exactly
        assert solution.time[0] == 0.0
        assert solution.time[-1] == 2.0
        _check_boundary_conditions(solution)
        assert solution.num_iterations > 0
        assert solver.state is SolverState.SOLVED

    def test_hermite_simpson(self, sliding_mass):
        settings = SolverSettings(
            num_mesh_intervals=10, transcription_scheme="hermite-simpson", parallel=0
        )
        solution = CollocationSolver(sliding_mass, settings).solve()

        assert solution.success
        assert solution.num_times == 21
        assert solution.objective == pytest.approx(SlidingMass.OPTIMAL_COST, rel=1e-4)
        # Optimal force decreases linearly from 1.5 to -1.5
        np.testing.assert_allclose(
            solution.get_control("force"), 1.5 * (1.0 - solution.time), atol=1e-2
        )
        _check_boundary_conditions(solution)

    @pytest.mark.parametrize("scheme", ["forward", "backward"])
    def test_one_sided_finite_differences(self, sliding_mass, scheme):
        settings = SolverSettings(num_mesh_intervals=10, finite_difference_scheme=scheme, parallel=0)
        solution = CollocationSolver(sliding_mass, settings).solve()
        assert solution.success
        assert solution.objective == pytest.approx(SlidingMass.OPTIMAL_COST, rel=5e-2)

    def test_parallel_matches_serial(self, sliding_mass):
        serial = CollocationSolver(sliding_mass, SolverSettings(num_mesh_intervals=10, parallel=0))
        threaded = CollocationSolver(sliding_mass, SolverSettings(num_mesh_intervals=10, parallel=2))

        serial_solution = serial.solve()
        threaded_solution = threaded.solve()

        assert threaded_solution.success
        assert threaded_solution.objective == pytest.approx(serial_solution.objective, rel=1e-8)
        np.testing.assert_allclose(threaded_solution.states, serial_solution.states, atol=1e-8)
        assert threaded.cache.max_size == 2

    def test_parallel_from_environment(self, sliding_mass, monkeypatch):
        monkeypatch.setenv("BIOTRAJ_PARALLEL", "3")
        solver = CollocationSolver(sliding_mass, SolverSettings(num_mesh_intervals=10))
        assert solver.solve().success
        assert solver.cache.max_size == 3

    def test_path_constraint_is_enforced(self):
        solver = CollocationSolver(SpeedLimitedMass(), SolverSettings(num_mesh_intervals=20, parallel=0))
        solution = solver.solve()

        assert solution.success
        assert np.all(solution.get_state("speed") <= SpeedLimitedMass.SPEED_LIMIT + 1e-6)
        assert solution.objective > SlidingMass.OPTIMAL_COST

    def test_free_final_time_and_parameter(self, pendulum):
        solution = CollocationSolver(pendulum, SolverSettings(num_mesh_intervals=8, parallel=0)).solve()

        assert solution.success
        # Minimizing the final time with no terminal constraint drives it to its lower bound
        assert solution.final_time == pytest.approx(0.5, abs=1e-4)
        assert solution.objective == pytest.approx(0.5, abs=1e-4)
        assert 0.5 - 1e-8 <= solution.get_parameter("mass") <= 1.5 + 1e-8


class TestGuesses:
    def test_guess_with_different_sample_count(self, sliding_mass_solver):
        time = np.linspace(0.0, 2.0, 5)
        guess = Iterate(
            time,
            states=np.vstack([time / 2.0, np.full(5, 0.5)]),
            controls=[np.zeros(5)],
            state_names=["position", "speed"],
            control_names=["force"],
        )
        sliding_mass_solver.set_guess(guess)

        solution = sliding_mass_solver.solve()
        assert solution.success
        assert solution.num_times == 11

    def test_solution_as_guess_file(self, sliding_mass, tmp_path):
        coarse = CollocationSolver(sliding_mass, SolverSettings(num_mesh_intervals=10, parallel=0))
        path = tmp_path / "coarse.guess"
        coarse.solve().write(path)

        fine = CollocationSolver(sliding_mass, SolverSettings(num_mesh_intervals=20, parallel=0))
        fine.set_guess_file(path)
        assert fine.state is SolverState.GUESS_CONFIGURED

        solution = fine.solve()
        assert solution.success
        assert solution.objective == pytest.approx(SlidingMass.OPTIMAL_COST, rel=3e-2)

    def test_guess_with_unknown_names_fails_the_solve(self, sliding_mass_solver):
        guess = Iterate([0.0, 2.0], states=[[0.0, 1.0]], state_names=["angle"])
        sliding_mass_solver.set_guess(guess)
        with pytest.raises(GuessError):
            sliding_mass_solver.solve()
        assert sliding_mass_solver.state is SolverState.FAILED

    def test_missing_guess_file_fails_before_solving(self, sliding_mass_solver):
        sliding_mass_solver.set_guess_file("missing.guess")
        with pytest.raises(GuessError):
            sliding_mass_solver.solve()
        assert sliding_mass_solver.last_discrete_problem is None


class TestFailures:
    """Evaluation errors are raised; non-convergence is reported through the status."""

    def test_evaluation_error_is_raised(self, failing_problem, serial_settings):
        solver = CollocationSolver(failing_problem, serial_settings)
        with pytest.raises(EvaluationError, match="could not realize"):
            solver.solve()

        assert solver.state is SolverState.FAILED
        assert solver.cache.statistics.discarded >= 1

    def test_evaluation_error_in_parallel(self, failing_problem):
        solver = CollocationSolver(failing_problem, SolverSettings(num_mesh_intervals=10, parallel=3))
        with pytest.raises(EvaluationError):
            solver.solve()
        assert solver.state is SolverState.FAILED

    def test_iteration_limit(self, sliding_mass, caplog):
        settings = SolverSettings(num_mesh_intervals=10, parallel=0, optim_max_iterations=2)
        solver = CollocationSolver(sliding_mass, settings)
        with caplog.at_level(logging.WARNING, logger="biotraj"):
            solution = solver.solve()

        assert solution.status is SolutionStatus.ITERATION_LIMIT
        assert not solution.success
        assert solution.message == "Maximum_Iterations_Exceeded"
        assert solution.num_times == 11
        assert solver.state is SolverState.FAILED
        assert "ITERATION_LIMIT" in caplog.text


class TestSolverState:
    def test_transitions(self, sliding_mass):
        solver = CollocationSolver(settings=SolverSettings(num_mesh_intervals=10, parallel=0))
        assert solver.state is SolverState.UNINITIALIZED

        solver.set_problem(sliding_mass)
        assert solver.state is SolverState.PROBLEM_REGISTERED

        solver.set_guess("bounds")
        assert solver.state is SolverState.GUESS_CONFIGURED

        solver.solve()
        assert solver.state is SolverState.SOLVED

        solver.clear_guess()
        assert solver.state is SolverState.PROBLEM_REGISTERED

    def test_solve_requires_problem(self):
        with pytest.raises(ProblemNotReadyError):
            CollocationSolver().solve()

    def test_reset_problem_rebuilds_the_cache(self, sliding_mass_solver):
        sliding_mass_solver.build_discrete_problem().close()
        assert sliding_mass_solver.cache is not None

        sliding_mass_solver.reset_problem(SlidingMass())
        assert sliding_mass_solver.cache is None

    def test_repeated_solves_reuse_snapshots(self, sliding_mass_solver):
        sliding_mass_solver.solve()
        sliding_mass_solver.solve()
        assert sliding_mass_solver.cache.statistics.constructed == 1


class TestSolverCopy:
    def test_copy_is_independent(self, sliding_mass_solver):
        sliding_mass_solver.set_guess("bounds")
        sliding_mass_solver.solve()

        duplicate = sliding_mass_solver.copy()
        assert duplicate.cache is None
        assert duplicate.last_discrete_problem is None
        assert duplicate.settings is not sliding_mass_solver.settings
        assert duplicate.resolve_guess().source is sliding_mass_solver.resolve_guess().source

        duplicate.settings.num_mesh_intervals = 5
        assert sliding_mass_solver.settings.num_mesh_intervals == 10
        assert duplicate.solve().num_times == 6


class TestStatusMapping:
    @pytest.mark.parametrize(
        "return_status, expected",
        [
            ("Solve_Succeeded", SolutionStatus.SUCCESS),
            ("Solved_To_Acceptable_Level", SolutionStatus.ACCEPTABLE),
            ("Infeasible_Problem_Detected", SolutionStatus.INFEASIBLE),
            ("Maximum_Iterations_Exceeded", SolutionStatus.ITERATION_LIMIT),
            ("Maximum_CpuTime_Exceeded", SolutionStatus.TIME_LIMIT),
            ("Restoration_Failed", SolutionStatus.NUMERICAL_ERROR),
            ("User_Requested_Stop", SolutionStatus.FAILED),
            (None, SolutionStatus.FAILED),
        ],
    )
    def test_return_status(self, return_status, expected):
        assert status_from_return_status(return_status) is expected

    def test_success_statuses(self):
        assert SolutionStatus.SUCCESS.is_success
        assert SolutionStatus.ACCEPTABLE.is_success
        assert not SolutionStatus.INFEASIBLE.is_success
