"""
Solution interface for collocation solves.

A :class:`Solution` is an :class:`~biotraj.iterate.Iterate` on the solver grid
that also carries the NLP outcome. Non-convergence is never raised: it is
reported through :attr:`Solution.status`.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Any

from .bt_types import NumericArrayLike
from .iterate import Iterate


logger = logging.getLogger(__name__)


class SolutionStatus(Enum):
    SUCCESS = "success"
    ACCEPTABLE = "acceptable"
    INFEASIBLE = "infeasible"
    ITERATION_LIMIT = "iteration_limit"
    TIME_LIMIT = "time_limit"
    NUMERICAL_ERROR = "numerical_error"
    FAILED = "failed"

    @property
    def is_success(self) -> bool:
        return self in (SolutionStatus.SUCCESS, SolutionStatus.ACCEPTABLE)


_IPOPT_RETURN_STATUS: dict[str, SolutionStatus] = {
    "Solve_Succeeded": SolutionStatus.SUCCESS,
    "Solved_To_Acceptable_Level": SolutionStatus.ACCEPTABLE,
    "Infeasible_Problem_Detected": SolutionStatus.INFEASIBLE,
    "Maximum_Iterations_Exceeded": SolutionStatus.ITERATION_LIMIT,
    "Maximum_CpuTime_Exceeded": SolutionStatus.TIME_LIMIT,
    "Maximum_WallTime_Exceeded": SolutionStatus.TIME_LIMIT,
    "Restoration_Failed": SolutionStatus.NUMERICAL_ERROR,
    "Error_In_Step_Computation": SolutionStatus.NUMERICAL_ERROR,
    "Invalid_Number_Detected": SolutionStatus.NUMERICAL_ERROR,
    "Search_Direction_Becomes_Too_Small": SolutionStatus.NUMERICAL_ERROR,
    "Diverging_Iterates": SolutionStatus.NUMERICAL_ERROR,
}


def status_from_return_status(return_status: str | None) -> SolutionStatus:
    """Map an IPOPT ``return_status`` string to a :class:`SolutionStatus`."""
    if return_status is None:
        return SolutionStatus.FAILED
    return _IPOPT_RETURN_STATUS.get(return_status, SolutionStatus.FAILED)


class Solution(Iterate):
    """Trajectory returned by :meth:`CollocationSolver.solve`.

    Args:
        status: Outcome of the NLP solve
        objective: Final objective value (NaN if unavailable)
        message: Raw solver return status
        num_iterations: NLP iterations taken
        solver_duration: Wall time spent in the NLP solver, in seconds
        stats: Raw statistics dictionary reported by CasADi
    """

    def __init__(
        self,
        time: NumericArrayLike,
        states: NumericArrayLike | None = None,
        controls: NumericArrayLike | None = None,
        parameters: NumericArrayLike | None = None,
        state_names: Sequence[str] = (),
        control_names: Sequence[str] = (),
        parameter_names: Sequence[str] = (),
        status: SolutionStatus = SolutionStatus.FAILED,
        objective: float = float("nan"),
        message: str = "",
        num_iterations: int = 0,
        solver_duration: float = float("nan"),
        stats: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            time, states, controls, parameters, state_names, control_names, parameter_names
        )
        self.status = status
        self.objective = objective
        self.message = message
        self.num_iterations = num_iterations
        self.solver_duration = solver_duration
        self.stats: dict[str, Any] = dict(stats or {})

    @property
    def success(self) -> bool:
        return self.status.is_success

    def __repr__(self) -> str:
        return (
            f"Solution(status={self.status.name}, objective={self.objective:.6g}, "
            f"iterations={self.num_iterations}, num_times={self.num_times})"
        )
