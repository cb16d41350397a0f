"""
Problem definition package for optimal control problems.
"""

from .continuous_problem import ContinuousProblem, VariableInfo
from .guess_manager import GuessManager, GuessResolution, GuessSource, create_guess


__all__ = [
    "ContinuousProblem",
    "GuessManager",
    "GuessResolution",
    "GuessSource",
    "VariableInfo",
    "create_guess",
]
