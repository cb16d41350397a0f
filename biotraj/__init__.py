# biotraj/__init__.py
"""
biotraj: direct collocation trajectory optimization for simulation models

This package transcribes continuous optimal control problems whose dynamics and
costs are evaluated numerically (e.g., musculoskeletal models) into a CasADi NLP
with trapezoidal or Hermite-Simpson collocation, and solves it with IPOPT.
Problem functions are evaluated per grid point, optionally on a thread pool.

Logging:
By default, biotraj produces no output. To enable logging::

    import logging
    logging.basicConfig()
    logging.getLogger('biotraj').setLevel(logging.INFO)  # Major operations
    logging.getLogger('biotraj').setLevel(logging.DEBUG)  # Detailed debugging
"""

import logging

from biotraj.exceptions import (
    BiotrajBaseError,
    ConfigurationError,
    DataIntegrityError,
    EvaluationError,
    GuessError,
    NoGuessError,
    ProblemNotReadyError,
    SolutionExtractionError,
)
from biotraj.iterate import Iterate
from biotraj.problem import ContinuousProblem, GuessResolution, GuessSource
from biotraj.settings import SolverSettings
from biotraj.solution import Solution, SolutionStatus
from biotraj.solver import CollocationSolver, SolverState


__all__ = [
    "BiotrajBaseError",
    "CollocationSolver",
    "ConfigurationError",
    "ContinuousProblem",
    "DataIntegrityError",
    "EvaluationError",
    "GuessError",
    "GuessResolution",
    "GuessSource",
    "Iterate",
    "NoGuessError",
    "ProblemNotReadyError",
    "Solution",
    "SolutionExtractionError",
    "SolutionStatus",
    "SolverSettings",
    "SolverState",
]

__version__ = "0.1.0"


# Silent by default, user controls everything
logging.getLogger(__name__).addHandler(logging.NullHandler())
