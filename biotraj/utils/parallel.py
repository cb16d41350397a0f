"""
Resolution of the degree of parallelism for grid point evaluation.

An explicit per-solver setting takes precedence over the process-wide
environment variable, which lets users sharing a machine subdivide cores
across simultaneous solves without touching solver configurations.
"""

import logging
import os
from collections.abc import Mapping

from ..exceptions import ConfigurationError
from .constants import DEFAULT_PARALLEL, PARALLEL_ENVIRONMENT_VARIABLE


logger = logging.getLogger(__name__)


def validate_parallel(value: object, source: str) -> int:
    """Check a parallelism value: 0 (serial), 1 (all cores) or a thread count."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(
            f"Parallelism must be a non-negative integer, got {value!r}", source
        )
    if value < 0:
        raise ConfigurationError(f"Parallelism must be a non-negative integer, got {value}", source)
    return value


def get_environment_parallel(environ: Mapping[str, str] | None = None) -> int | None:
    """Read the process-wide parallelism default, or None if it is not set."""
    environ = os.environ if environ is None else environ
    raw_value = environ.get(PARALLEL_ENVIRONMENT_VARIABLE)
    if raw_value is None or not raw_value.strip():
        return None
    try:
        value = int(raw_value.strip())
    except ValueError as e:
        raise ConfigurationError(
            f"{PARALLEL_ENVIRONMENT_VARIABLE} must be an integer, got {raw_value!r}",
            "Environment configuration",
        ) from e
    return validate_parallel(value, f"{PARALLEL_ENVIRONMENT_VARIABLE} environment variable")


def resolve_parallel(explicit: int | None, environment: int | None) -> int:
    """Merge the explicit setting and environment default; explicit wins."""
    if explicit is not None:
        return validate_parallel(explicit, "parallel setting")
    if environment is not None:
        return environment
    return DEFAULT_PARALLEL


def parallel_to_num_threads(parallel: int, cpu_count: int | None = None) -> int:
    """Map a resolved parallelism value to a worker count.

    0 means serial evaluation (0 workers), 1 means all hardware threads and any
    larger value is used as the thread count directly.
    """
    validate_parallel(parallel, "parallel setting")
    if parallel == 0:
        return 0
    if parallel == 1:
        detected = os.cpu_count() if cpu_count is None else cpu_count
        return max(1, detected or 1)
    return parallel


def resolve_num_threads(explicit: int | None, environ: Mapping[str, str] | None = None) -> int:
    """Resolve the number of evaluation threads once, at solve time."""
    parallel = resolve_parallel(explicit, get_environment_parallel(environ))
    num_threads = parallel_to_num_threads(parallel)
    logger.debug("Resolved parallelism: setting=%s, threads=%d", explicit, num_threads)
    return num_threads
