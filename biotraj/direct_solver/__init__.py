from .core_solver import extract_solution, solve_discrete_problem, transcribe
from .types_solver import ConstraintBlock, DiscreteProblem, TranscriptionGrid


__all__ = [
    "ConstraintBlock",
    "DiscreteProblem",
    "TranscriptionGrid",
    "extract_solution",
    "solve_discrete_problem",
    "transcribe",
]
