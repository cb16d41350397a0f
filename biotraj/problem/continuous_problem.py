"""
Continuous optimal control problem definition.

Problems are defined by subclassing :class:`ContinuousProblem`, declaring
variables in ``__init__`` and overriding the numeric ``calc_*`` hooks. The hooks
receive plain numpy arrays for a single time point, so they can wrap any
simulation model, including ones that mutate internal scratch state while
evaluating: each worker thread evaluates its own snapshot made by :meth:`clone`.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass

import numpy as np

from ..bt_types import ConstraintInput, FloatArray
from ..exceptions import ConfigurationError
from ..input_validation import normalize_bounds, validate_string_not_empty


logger = logging.getLogger(__name__)

Bounds = tuple[float, float]


@dataclass
class VariableInfo:
    """Name and bounds of one scalar decision variable."""

    name: str
    bounds: Bounds
    initial_bounds: Bounds | None = None
    final_bounds: Bounds | None = None


class ContinuousProblem:
    """Base class for continuous-time optimal control problems.

    Subclasses must override :meth:`calc_dynamics` and may override
    :meth:`calc_path_constraints`, :meth:`calc_integral_cost` and
    :meth:`calc_endpoint_cost`.

    Example:
        >>> class SlidingMass(ContinuousProblem):
        ...     def __init__(self):
        ...         super().__init__("sliding mass")
        ...         self.set_time_bounds(0.0, 2.0)
        ...         self.add_state("position", bounds=(-5, 5), initial=0.0, final=1.0)
        ...         self.add_state("speed", bounds=(-50, 50), initial=0.0, final=0.0)
        ...         self.add_control("force", bounds=(-50, 50))
        ...         self.add_kinematic_pair("position", "speed")
        ...
        ...     def calc_dynamics(self, time, states, controls, parameters):
        ...         return np.array([states[1], controls[0]])
        ...
        ...     def calc_integral_cost(self, time, states, controls, parameters):
        ...         return controls[0] ** 2
    """

    def __init__(self, name: str = "Optimal Control Problem") -> None:
        validate_string_not_empty(name, "Problem name")
        self.name = name
        self.uses_quaternions = False
        self._states: list[VariableInfo] = []
        self._controls: list[VariableInfo] = []
        self._parameters: list[VariableInfo] = []
        self._path_constraints: list[VariableInfo] = []
        self._kinematic_pairs: list[tuple[str, str]] = []
        self._initial_time_bounds: Bounds = (0.0, 0.0)
        self._final_time_bounds: Bounds | None = None

    # ------------------------------------------------------------------
    # Declaration API
    # ------------------------------------------------------------------

    def set_time_bounds(self, initial: ConstraintInput, final: ConstraintInput) -> None:
        self._initial_time_bounds = normalize_bounds(initial, "initial time bounds")
        self._final_time_bounds = normalize_bounds(final, "final time bounds")

    def add_state(
        self,
        name: str,
        bounds: ConstraintInput = None,
        initial: ConstraintInput = None,
        final: ConstraintInput = None,
    ) -> None:
        self._states.append(self._make_variable(name, "state", bounds, initial, final))

    def add_control(
        self,
        name: str,
        bounds: ConstraintInput = None,
        initial: ConstraintInput = None,
        final: ConstraintInput = None,
    ) -> None:
        self._controls.append(self._make_variable(name, "control", bounds, initial, final))

    def add_parameter(self, name: str, bounds: ConstraintInput = None) -> None:
        self._parameters.append(self._make_variable(name, "parameter", bounds))

    def add_path_constraint(self, name: str, bounds: ConstraintInput = 0.0) -> None:
        """Declare one scalar path constraint, enforced at every mesh point."""
        self._path_constraints.append(self._make_variable(name, "path constraint", bounds))

    def add_kinematic_pair(self, coordinate: str, speed: str) -> None:
        """Declare that the derivative of state ``coordinate`` is state ``speed``."""
        self._kinematic_pairs.append((coordinate, speed))

    def _make_variable(
        self,
        name: str,
        kind: str,
        bounds: ConstraintInput,
        initial: ConstraintInput = None,
        final: ConstraintInput = None,
    ) -> VariableInfo:
        validate_string_not_empty(name, f"{kind} name")
        existing = self._names_for_kind(kind)
        if name in existing:
            raise ConfigurationError(f"Duplicate {kind} name '{name}'", self.name)
        return VariableInfo(
            name=name,
            bounds=normalize_bounds(bounds, f"{kind} '{name}' bounds"),
            initial_bounds=None
            if initial is None
            else normalize_bounds(initial, f"{kind} '{name}' initial bounds"),
            final_bounds=None
            if final is None
            else normalize_bounds(final, f"{kind} '{name}' final bounds"),
        )

    def _names_for_kind(self, kind: str) -> list[str]:
        variables = {
            "state": self._states,
            "control": self._controls,
            "parameter": self._parameters,
            "path constraint": self._path_constraints,
        }[kind]
        return [info.name for info in variables]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def num_states(self) -> int:
        return len(self._states)

    @property
    def num_controls(self) -> int:
        return len(self._controls)

    @property
    def num_parameters(self) -> int:
        return len(self._parameters)

    @property
    def num_path_constraints(self) -> int:
        return len(self._path_constraints)

    @property
    def states(self) -> list[VariableInfo]:
        return list(self._states)

    @property
    def controls(self) -> list[VariableInfo]:
        return list(self._controls)

    @property
    def parameters(self) -> list[VariableInfo]:
        return list(self._parameters)

    @property
    def path_constraints(self) -> list[VariableInfo]:
        return list(self._path_constraints)

    @property
    def initial_time_bounds(self) -> Bounds:
        return self._initial_time_bounds

    @property
    def final_time_bounds(self) -> Bounds | None:
        return self._final_time_bounds

    def get_state_names(self) -> list[str]:
        return [info.name for info in self._states]

    def get_control_names(self) -> list[str]:
        return [info.name for info in self._controls]

    def get_parameter_names(self) -> list[str]:
        return [info.name for info in self._parameters]

    def get_kinematic_pairs(self) -> list[tuple[int, int]]:
        """Coordinate/speed pairs as (coordinate index, speed index) into the states."""
        state_index = {name: i for i, name in enumerate(self.get_state_names())}
        pairs = []
        for coordinate, speed in self._kinematic_pairs:
            if coordinate not in state_index or speed not in state_index:
                raise ConfigurationError(
                    f"Kinematic pair ({coordinate}, {speed}) references an unknown state",
                    self.name,
                )
            pairs.append((state_index[coordinate], state_index[speed]))
        return pairs

    def has_integral_cost(self) -> bool:
        return type(self).calc_integral_cost is not ContinuousProblem.calc_integral_cost

    def has_endpoint_cost(self) -> bool:
        return type(self).calc_endpoint_cost is not ContinuousProblem.calc_endpoint_cost

    # ------------------------------------------------------------------
    # Numeric hooks
    # ------------------------------------------------------------------

    def calc_dynamics(
        self, time: float, states: FloatArray, controls: FloatArray, parameters: FloatArray
    ) -> FloatArray:
        """Time derivative of all states.

        Entries for kinematic coordinates are ignored; the transcription uses the
        paired speed state as the coordinate derivative.
        """
        raise NotImplementedError(f"{type(self).__name__} must implement calc_dynamics()")

    def calc_path_constraints(
        self, time: float, states: FloatArray, controls: FloatArray, parameters: FloatArray
    ) -> FloatArray:
        return np.zeros(0, dtype=np.float64)

    def calc_integral_cost(
        self, time: float, states: FloatArray, controls: FloatArray, parameters: FloatArray
    ) -> float:
        return 0.0

    def calc_endpoint_cost(
        self,
        initial_time: float,
        initial_states: FloatArray,
        final_time: float,
        final_states: FloatArray,
        parameters: FloatArray,
    ) -> float:
        return 0.0

    def clone(self) -> ContinuousProblem:
        """Independent copy used as a snapshot by evaluation workers."""
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, states={self.num_states}, "
            f"controls={self.num_controls}, parameters={self.num_parameters})"
        )
