"""
Solver configuration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from .bt_types import FloatArray, NumericArrayLike
from .utils.constants import DEFAULT_NUM_MESH_INTERVALS


logger = logging.getLogger(__name__)


@dataclass
class SolverSettings:
    """Properties of a :class:`~biotraj.solver.CollocationSolver`.

    Attributes:
        num_mesh_intervals: Number of uniform mesh intervals (ignored if ``mesh`` is set)
        mesh: Normalized mesh points, strictly increasing from 0 to 1
        transcription_scheme: "trapezoidal" or "hermite-simpson"
        finite_difference_scheme: "central", "forward" or "backward"
        parallel: None (use BIOTRAJ_PARALLEL or default), 0 (serial), 1 (all cores)
            or the number of threads
        optim_solver: Name of the CasADi NLP plugin
        optim_max_iterations: Iteration limit, -1 for the solver default
        optim_convergence_tolerance: Convergence tolerance, -1 for the solver default
        optim_constraint_tolerance: Constraint tolerance, -1 for the solver default
        optim_hessian_approximation: "limited-memory" (derivatives are finite differences)
        verbosity: 0 silent, 1 summary, 2 full solver output
        interpolate_control_midpoints: Constrain Hermite-Simpson midpoint controls to the
            mean of the interval end point controls
        nlp_options: Raw solver options merged after the options above
    """

    num_mesh_intervals: int = DEFAULT_NUM_MESH_INTERVALS
    mesh: NumericArrayLike | None = None
    transcription_scheme: str = "trapezoidal"
    finite_difference_scheme: str = "central"
    parallel: int | None = None
    optim_solver: str = "ipopt"
    optim_max_iterations: int = -1
    optim_convergence_tolerance: float = -1.0
    optim_constraint_tolerance: float = -1.0
    optim_hessian_approximation: str = "limited-memory"
    verbosity: int = 0
    interpolate_control_midpoints: bool = True
    nlp_options: dict[str, Any] = field(default_factory=dict)

    def get_mesh(self) -> FloatArray:
        """Normalized mesh points in [0, 1]."""
        if self.mesh is not None:
            return np.asarray(self.mesh, dtype=np.float64).flatten()
        return np.linspace(0.0, 1.0, self.num_mesh_intervals + 1)

    def build_nlp_options(self) -> dict[str, Any]:
        """Translate the settings into CasADi/IPOPT options."""
        options: dict[str, Any] = {"print_time": int(self.verbosity >= 2)}
        if self.optim_solver == "ipopt":
            options["ipopt.hessian_approximation"] = self.optim_hessian_approximation
            options["ipopt.print_level"] = 5 if self.verbosity >= 2 else 0
            options["ipopt.sb"] = "yes"
            if self.optim_max_iterations != -1:
                options["ipopt.max_iter"] = self.optim_max_iterations
            if self.optim_convergence_tolerance != -1:
                options["ipopt.tol"] = self.optim_convergence_tolerance
            if self.optim_constraint_tolerance != -1:
                options["ipopt.constr_viol_tol"] = self.optim_constraint_tolerance
        options.update(self.nlp_options)
        logger.debug("NLP solver options: %s", options)
        return options
