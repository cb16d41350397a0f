"""
Solve orchestration for direct collocation problems.
"""

from __future__ import annotations

import copy
import logging
from enum import Enum
from pathlib import Path
from typing import Any

from .bt_types import FloatArray
from .direct_solver import solve_discrete_problem, transcribe
from .direct_solver.types_solver import DiscreteProblem, create_transcription_grid
from .exceptions import ProblemNotReadyError
from .input_validation import validate_problem_ready_for_solving, validate_solver_settings
from .iterate import Iterate
from .problem.continuous_problem import ContinuousProblem
from .problem.guess_manager import GuessManager, GuessResolution, GuessSource, create_bounds_guess
from .settings import SolverSettings
from .solution import Solution
from .utils.parallel import resolve_num_threads
from .utils.snapshot_pool import ProblemRepresentationCache


logger = logging.getLogger(__name__)


class SolverState(Enum):
    UNINITIALIZED = "uninitialized"
    PROBLEM_REGISTERED = "problem_registered"
    GUESS_CONFIGURED = "guess_configured"
    SOLVING = "solving"
    SOLVED = "solved"
    FAILED = "failed"


class CollocationSolver:
    """Direct collocation solver for a :class:`ContinuousProblem`.

    Args:
        problem: Problem to register immediately (optional)
        settings: Solver properties; defaults to :class:`SolverSettings()`

    Examples:
        >>> solver = CollocationSolver(SlidingMass())
        >>> solver.settings.num_mesh_intervals = 20
        >>> solver.set_guess("bounds")
        >>> solution = solver.solve()
        >>> solution.success
        True
    """

    _RESET_ON_COPY = ("_cache", "_cache_num_threads", "_last_discrete_problem")

    def __init__(
        self,
        problem: ContinuousProblem | None = None,
        settings: SolverSettings | None = None,
    ) -> None:
        self.settings = SolverSettings() if settings is None else settings
        validate_solver_settings(self.settings)
        self._problem: ContinuousProblem | None = None
        self._guess_manager = GuessManager()
        self._cache: ProblemRepresentationCache | None = None
        self._cache_num_threads: int | None = None
        self._last_discrete_problem: DiscreteProblem | None = None
        self._state = SolverState.UNINITIALIZED
        if problem is not None:
            self.set_problem(problem)

    # ------------------------------------------------------------------
    # Problem registration
    # ------------------------------------------------------------------

    @property
    def state(self) -> SolverState:
        return self._state

    @property
    def problem(self) -> ContinuousProblem | None:
        return self._problem

    def set_problem(self, problem: ContinuousProblem) -> None:
        """Validate and register ``problem``; the snapshot cache is rebuilt on the next solve.

        Raises:
            ConfigurationError: If the problem is malformed or unsupported
        """
        validate_problem_ready_for_solving(problem)
        self._problem = problem
        self._guess_manager.set_problem(problem)
        self._reset_cache()
        self._state = (
            SolverState.GUESS_CONFIGURED
            if self._guess_manager.is_configured
            else SolverState.PROBLEM_REGISTERED
        )
        logger.debug("Registered problem %r", problem)

    reset_problem = set_problem

    def _require_problem(self) -> ContinuousProblem:
        if self._problem is None:
            raise ProblemNotReadyError(
                "No problem registered; call set_problem() first", "CollocationSolver"
            )
        return self._problem

    def _reset_cache(self) -> None:
        self._cache = None
        self._cache_num_threads = None

    def _get_cache(self, problem: ContinuousProblem, num_threads: int) -> ProblemRepresentationCache:
        if self._cache is None or self._cache_num_threads != num_threads:
            self._cache = ProblemRepresentationCache(problem.clone, max_size=max(1, num_threads))
            self._cache_num_threads = num_threads
        return self._cache

    @property
    def cache(self) -> ProblemRepresentationCache | None:
        return self._cache

    # ------------------------------------------------------------------
    # Guesses
    # ------------------------------------------------------------------

    def get_grid_fractions(self) -> FloatArray:
        """Normalized times of the collocation grid for the current settings."""
        validate_solver_settings(self.settings)
        return create_transcription_grid(
            self.settings.get_mesh(), self.settings.transcription_scheme
        ).fractions

    def create_guess(self, guess_type: str = "bounds", seed: int | None = None) -> Iterate:
        """Synthesize a guess on the solver grid.

        Args:
            guess_type: "bounds", "random" or "time-stepping"
            seed: Seed for "random" guesses

        Raises:
            ProblemNotReadyError: If no problem is registered
        """
        self._require_problem()
        return self._guess_manager.create_guess(guess_type, self.get_grid_fractions(), seed)

    def set_guess(self, guess: Iterate | str, seed: int | None = None) -> None:
        """Install an iterate, or a guess type to create, as the guess; clears any guess file."""
        fractions = self.get_grid_fractions() if isinstance(guess, str) else None
        if isinstance(guess, str):
            self._require_problem()
        self._guess_manager.set_guess(guess, fractions, seed)
        self._mark_guess_changed()

    def set_guess_file(self, path: str | Path) -> None:
        """Use the iterate stored at ``path`` as the guess; it is read on first use."""
        self._guess_manager.set_guess_file(path)
        self._mark_guess_changed()

    def get_guess_file(self) -> str:
        return self._guess_manager.guess_file

    def clear_guess(self) -> None:
        self._guess_manager.clear_guess()
        self._mark_guess_changed()

    def resolve_guess(self) -> GuessResolution:
        return self._guess_manager.resolve_guess()

    def get_guess(self) -> Iterate:
        """The configured guess, or the bounds guess on the solver grid.

        Raises:
            GuessError: If the guess file cannot be loaded
            NoGuessError: If nothing is configured and no problem is registered
        """
        fractions = self.get_grid_fractions() if self._problem is not None else None
        return self._guess_manager.get_guess(fractions)

    def _mark_guess_changed(self) -> None:
        if self._problem is None or self._state is SolverState.SOLVING:
            return
        self._state = (
            SolverState.GUESS_CONFIGURED
            if self._guess_manager.is_configured
            else SolverState.PROBLEM_REGISTERED
        )

    # ------------------------------------------------------------------
    # Solve
    # ------------------------------------------------------------------

    @property
    def last_discrete_problem(self) -> DiscreteProblem | None:
        """The NLP built by the most recent :meth:`solve` or :meth:`build_discrete_problem`."""
        return self._last_discrete_problem

    def build_discrete_problem(self) -> DiscreteProblem:
        """Transcribe the registered problem without solving it.

        The returned problem owns evaluation threads; call ``close()`` when done.
        """
        problem = self._require_problem()
        validate_solver_settings(self.settings)
        num_threads = resolve_num_threads(self.settings.parallel)
        discrete = transcribe(
            problem, self.settings, self._get_cache(problem, num_threads), num_threads
        )
        self._last_discrete_problem = discrete
        return discrete

    def solve(self) -> Solution:
        """Transcribe the problem, seed it with the active guess and run the NLP solver.

        Returns:
            Solution whose ``status`` reports convergence

        Raises:
            ProblemNotReadyError: If no problem is registered
            ConfigurationError: If the settings are invalid
            GuessError: If the configured guess cannot be loaded or does not match
            EvaluationError: If a problem function raised while solving
        """
        problem = self._require_problem()
        validate_solver_settings(self.settings)

        resolution = self._guess_manager.resolve_guess()
        if resolution.source is GuessSource.NONE:
            logger.debug("No guess configured; using the bounds guess")
            guess = create_bounds_guess(problem, self.get_grid_fractions())
        else:
            assert resolution.iterate is not None
            guess = resolution.iterate

        previous_state = self._state
        self._state = SolverState.SOLVING
        logger.info(
            "Solving '%s' with %s transcription (%s guess)",
            problem.name,
            self.settings.transcription_scheme,
            resolution.source.value,
        )
        try:
            discrete = self.build_discrete_problem()
            try:
                solution = solve_discrete_problem(discrete, problem, guess)
            finally:
                discrete.close()
        except Exception:
            self._state = SolverState.FAILED
            raise
        except BaseException:
            self._state = previous_state
            raise

        self._state = SolverState.SOLVED if solution.success else SolverState.FAILED
        return solution

    # ------------------------------------------------------------------
    # Copying
    # ------------------------------------------------------------------

    def copy(self) -> CollocationSolver:
        """Independent solver keeping the problem, settings, API guess and guess file.

        Cached guess file contents and problem snapshots are not carried over.
        """
        return copy.deepcopy(self)

    def __deepcopy__(self, memo: dict[int, Any]) -> CollocationSolver:
        duplicate = type(self).__new__(type(self))
        memo[id(self)] = duplicate
        for name, value in self.__dict__.items():
            if name in self._RESET_ON_COPY:
                setattr(duplicate, name, None)
            else:
                setattr(duplicate, name, copy.deepcopy(value, memo))
        return duplicate

    def __repr__(self) -> str:
        return f"CollocationSolver(problem={self._problem!r}, state={self._state.name})"
