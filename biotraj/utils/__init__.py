# biotraj/utils/__init__.py
"""
Utility functions and classes for biotraj.
"""

from .parallel import resolve_num_threads
from .snapshot_pool import ProblemRepresentationCache


__all__ = [
    "ProblemRepresentationCache",
    "resolve_num_threads",
]
