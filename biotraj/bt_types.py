# biotraj/bt_types.py
"""
Core type definitions for the biotraj direct collocation framework.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol, TypeAlias

import numpy as np
from numpy.typing import NDArray


# --- NUMERICAL TYPES ---
FloatArray: TypeAlias = NDArray[np.float64]
NumericArrayLike: TypeAlias = (
    NDArray[np.floating[Any]]
    | NDArray[np.integer[Any]]
    | Sequence[float]
    | Sequence[int]
    | list[float]
    | list[int]
)

# --- USER API TYPES ---
ConstraintInput: TypeAlias = float | int | tuple[float | int | None, float | int | None] | None
"""
Type alias for bound specification.

Supported input types:
- float/int: Fixed value (lower == upper == value)
- tuple(lower, upper): Range with None for unbounded sides
- None: Unbounded
"""

PointFunction: TypeAlias = Callable[[Any, FloatArray], FloatArray]
"""Evaluates one grid point: (snapshot, stacked [t; x; u; p] column) -> output vector."""


# --- EXTERNAL INTERFACE PROTOCOLS ---
class ODESolverResult(Protocol):
    """Protocol for the result of ODE solvers like solve_ivp."""

    y: FloatArray
    t: FloatArray
    success: bool
    message: str


class ContinuousProblemProtocol(Protocol):
    """Protocol defining the interface the transcription engine needs from a problem."""

    name: str
    uses_quaternions: bool

    @property
    def num_states(self) -> int: ...

    @property
    def num_controls(self) -> int: ...

    @property
    def num_parameters(self) -> int: ...

    @property
    def num_path_constraints(self) -> int: ...

    def get_state_names(self) -> list[str]: ...

    def get_control_names(self) -> list[str]: ...

    def get_parameter_names(self) -> list[str]: ...

    def get_kinematic_pairs(self) -> list[tuple[int, int]]: ...

    def has_integral_cost(self) -> bool: ...

    def has_endpoint_cost(self) -> bool: ...

    def calc_dynamics(
        self, time: float, states: FloatArray, controls: FloatArray, parameters: FloatArray
    ) -> FloatArray: ...

    def calc_path_constraints(
        self, time: float, states: FloatArray, controls: FloatArray, parameters: FloatArray
    ) -> FloatArray: ...

    def calc_integral_cost(
        self, time: float, states: FloatArray, controls: FloatArray, parameters: FloatArray
    ) -> float: ...

    def calc_endpoint_cost(
        self,
        initial_time: float,
        initial_states: FloatArray,
        final_time: float,
        final_states: FloatArray,
        parameters: FloatArray,
    ) -> float: ...

    def clone(self) -> ContinuousProblemProtocol: ...
