"""
Initial guess construction, storage and lazy loading.

The active guess comes from exactly one source: an iterate installed through
the API, or a guess file that is read on first access and cached. When neither
is configured, callers fall back to a guess synthesized from the bounds.
"""

from __future__ import annotations

import copy
import logging
import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import numpy as np
from scipy.integrate import solve_ivp

from ..bt_types import FloatArray, ODESolverResult
from ..exceptions import ConfigurationError, GuessError, NoGuessError, ProblemNotReadyError
from ..input_validation import validate_choice
from ..iterate import Iterate
from ..utils.constants import (
    DEFAULT_NUM_MESH_INTERVALS,
    GUESS_TYPES,
    MINIMUM_TIME_INTERVAL,
    RANDOM_GUESS_HALF_OPEN_WIDTH,
    TIME_STEPPING_RTOL,
)
from .continuous_problem import Bounds, ContinuousProblem, VariableInfo


logger = logging.getLogger(__name__)


class GuessSource(Enum):
    API = "api"
    FILE = "file"
    NONE = "none"


@dataclass(frozen=True)
class GuessResolution:
    """Outcome of resolving the active guess.

    ``source`` is NONE when nothing is configured; callers decide whether to
    synthesize a default. A configured guess that cannot be materialized raises
    :class:`GuessError` instead of resolving to NONE.
    """

    source: GuessSource
    iterate: Iterate | None = None

    @property
    def is_configured(self) -> bool:
        return self.source is not GuessSource.NONE


# ============================================================================
# SYNTHESIZED GUESSES
# ============================================================================


def bounds_guess_value(bounds: Bounds) -> float:
    """Midpoint of two-sided bounds, the single finite bound, or zero."""
    lower, upper = bounds
    if math.isfinite(lower) and math.isfinite(upper):
        return 0.5 * (lower + upper)
    if math.isfinite(lower):
        return lower
    if math.isfinite(upper):
        return upper
    return 0.0


def random_guess_value(bounds: Bounds, rng: np.random.Generator) -> float:
    lower, upper = bounds
    if math.isfinite(lower) and math.isfinite(upper):
        return float(rng.uniform(lower, upper))
    if math.isfinite(lower):
        return float(rng.uniform(lower, lower + RANDOM_GUESS_HALF_OPEN_WIDTH))
    if math.isfinite(upper):
        return float(rng.uniform(upper - RANDOM_GUESS_HALF_OPEN_WIDTH, upper))
    return float(rng.uniform(-1.0, 1.0))


def _default_fractions() -> FloatArray:
    return np.linspace(0.0, 1.0, DEFAULT_NUM_MESH_INTERVALS + 1)


def _guess_times(initial_time: float, final_time: float, fractions: FloatArray) -> FloatArray:
    if final_time - initial_time < MINIMUM_TIME_INTERVAL:
        logger.debug(
            "Guess final time %g does not exceed initial time %g; using a unit duration",
            final_time,
            initial_time,
        )
        final_time = initial_time + 1.0
    return initial_time + (final_time - initial_time) * fractions


def _fill_trajectory(variables: list[VariableInfo], num_times: int, value_of: Any) -> FloatArray:
    values = np.zeros((len(variables), num_times), dtype=np.float64)
    for i, info in enumerate(variables):
        values[i, :] = [value_of(info.bounds) for _ in range(num_times)]
        if info.initial_bounds is not None:
            values[i, 0] = value_of(info.initial_bounds)
        if info.final_bounds is not None:
            values[i, -1] = value_of(info.final_bounds)
    return values


def _create_from_bounds(
    problem: ContinuousProblem, fractions: FloatArray, value_of: Any
) -> Iterate:
    assert problem.final_time_bounds is not None
    time = _guess_times(
        value_of(problem.initial_time_bounds), value_of(problem.final_time_bounds), fractions
    )
    return Iterate(
        time,
        _fill_trajectory(problem.states, time.size, value_of),
        _fill_trajectory(problem.controls, time.size, value_of),
        [value_of(info.bounds) for info in problem.parameters],
        problem.get_state_names(),
        problem.get_control_names(),
        problem.get_parameter_names(),
    )


def create_bounds_guess(problem: ContinuousProblem, fractions: FloatArray) -> Iterate:
    return _create_from_bounds(problem, fractions, bounds_guess_value)


def create_random_guess(
    problem: ContinuousProblem, fractions: FloatArray, seed: int | None = None
) -> Iterate:
    rng = np.random.default_rng(seed)
    return _create_from_bounds(problem, fractions, lambda bounds: random_guess_value(bounds, rng))


def create_time_stepping_guess(problem: ContinuousProblem, fractions: FloatArray) -> Iterate:
    """Forward-simulate the dynamics under the bounds-guess controls.

    Raises:
        GuessError: If the simulation fails
    """
    logger.warning(
        "Time-stepping guesses are not reliable for collocation problems; "
        "consider a bounds guess or a previous solution instead"
    )
    base = create_bounds_guess(problem, fractions)
    snapshot = problem.clone()
    speed_for_coordinate = dict(problem.get_kinematic_pairs())

    def controls_at(t: float) -> FloatArray:
        return np.array([np.interp(t, base.time, row) for row in base.controls])

    def state_derivative(t: float, x: FloatArray) -> FloatArray:
        derivative = np.asarray(
            snapshot.calc_dynamics(t, x, controls_at(t), base.parameters), dtype=np.float64
        ).flatten()
        for coordinate, speed in speed_for_coordinate.items():
            derivative[coordinate] = x[speed]
        return derivative

    try:
        result: ODESolverResult = solve_ivp(
            state_derivative,
            (base.time[0], base.time[-1]),
            base.states[:, 0],
            t_eval=base.time,
            rtol=TIME_STEPPING_RTOL,
        )
    except Exception as e:
        raise GuessError(f"Time-stepping simulation raised: {e}", problem.name) from e

    if not result.success:
        raise GuessError(f"Time-stepping simulation failed: {result.message}", problem.name)

    return Iterate(
        base.time,
        result.y,
        base.controls,
        base.parameters,
        base.state_names,
        base.control_names,
        base.parameter_names,
    )


def create_guess(
    problem: ContinuousProblem,
    guess_type: str = "bounds",
    fractions: FloatArray | None = None,
    seed: int | None = None,
) -> Iterate:
    validate_choice(guess_type, GUESS_TYPES, "guess type")
    fractions = _default_fractions() if fractions is None else np.asarray(fractions, dtype=np.float64)
    if guess_type == "random":
        return create_random_guess(problem, fractions, seed)
    if guess_type == "time-stepping":
        return create_time_stepping_guess(problem, fractions)
    return create_bounds_guess(problem, fractions)


# ============================================================================
# GUESS MANAGER
# ============================================================================


class GuessManager:
    """Holds the API guess, the guess file reference and the cached file contents.

    The API guess and the file path are authoritative user input and survive
    copying. The cached file contents are reset on copy and reloaded on demand.
    """

    _RESET_ON_COPY = ("_guess_from_file",)

    def __init__(self, problem: ContinuousProblem | None = None) -> None:
        self._problem = problem
        self._guess_from_api: Iterate | None = None
        self._guess_file: str = ""
        self._guess_from_file: Iterate | None = None

    @property
    def problem(self) -> ContinuousProblem | None:
        return self._problem

    def set_problem(self, problem: ContinuousProblem | None) -> None:
        self._problem = problem

    @property
    def guess_file(self) -> str:
        return self._guess_file

    @property
    def has_cached_file_guess(self) -> bool:
        return self._guess_from_file is not None

    def _require_problem(self) -> ContinuousProblem:
        if self._problem is None:
            raise ProblemNotReadyError(
                "A problem must be registered before a guess can be created", "Guess manager"
            )
        return self._problem

    def create_guess(
        self,
        guess_type: str = "bounds",
        fractions: FloatArray | None = None,
        seed: int | None = None,
    ) -> Iterate:
        """Synthesize a "bounds", "random" or "time-stepping" guess on ``fractions``.

        Raises:
            ProblemNotReadyError: If no problem is registered
            ConfigurationError: If ``guess_type`` is unknown
        """
        problem = self._require_problem()
        guess = create_guess(problem, guess_type, fractions, seed)
        logger.debug("Created %s guess with %d samples", guess_type, guess.num_times)
        return guess

    def set_guess(
        self,
        guess: Iterate | str,
        fractions: FloatArray | None = None,
        seed: int | None = None,
    ) -> None:
        """Install an API guess; a string is a guess type passed to :meth:`create_guess`."""
        if isinstance(guess, str):
            guess = self.create_guess(guess, fractions, seed)
        elif not isinstance(guess, Iterate):
            raise ConfigurationError(f"Guess must be an Iterate or guess type, got {type(guess)}")
        self._guess_from_api = guess.copy()
        self._guess_file = ""
        self._guess_from_file = None

    def set_guess_file(self, path: str | Path) -> None:
        """Record a guess file to load on first access; an empty path clears it."""
        self._guess_file = str(path) if path else ""
        self._guess_from_api = None
        self._guess_from_file = None
        logger.debug("Guess file set to %r", self._guess_file)

    def clear_guess(self) -> None:
        self._guess_from_api = None
        self._guess_file = ""
        self._guess_from_file = None

    @property
    def is_configured(self) -> bool:
        return self._guess_from_api is not None or bool(self._guess_file)

    def resolve_guess(self) -> GuessResolution:
        """Materialize the configured guess, loading and caching the guess file if needed.

        Raises:
            GuessError: If a guess file is configured but cannot be loaded
        """
        if self._guess_from_api is not None:
            return GuessResolution(GuessSource.API, self._guess_from_api)
        if self._guess_file:
            if self._guess_from_file is None:
                self._guess_from_file = Iterate.read(self._guess_file)
                logger.info("Loaded guess file '%s'", self._guess_file)
            return GuessResolution(GuessSource.FILE, self._guess_from_file)
        return GuessResolution(GuessSource.NONE)

    def get_guess(self, fractions: FloatArray | None = None) -> Iterate:
        """The active guess, or the bounds guess if nothing is configured.

        Raises:
            GuessError: If a configured guess file cannot be loaded
            NoGuessError: If nothing is configured and no problem is registered
        """
        resolution = self.resolve_guess()
        if resolution.iterate is not None:
            return resolution.iterate
        if self._problem is None:
            raise NoGuessError(
                "No guess is configured and no problem is registered to synthesize one",
                "Guess manager",
            )
        return create_bounds_guess(
            self._problem, _default_fractions() if fractions is None else fractions
        )

    def copy(self) -> GuessManager:
        return copy.deepcopy(self)

    def __deepcopy__(self, memo: dict[int, Any]) -> GuessManager:
        duplicate = type(self).__new__(type(self))
        memo[id(self)] = duplicate
        for name, value in self.__dict__.items():
            if name in self._RESET_ON_COPY:
                setattr(duplicate, name, None)
            else:
                setattr(duplicate, name, copy.deepcopy(value, memo))
        return duplicate
