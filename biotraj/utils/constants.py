from typing import TypeAlias


_Tolerance: TypeAlias = float
_Duration: TypeAlias = float
_Step: TypeAlias = float

MESH_TOLERANCE: _Tolerance = 1e-9
"""Minimum spacing required between normalized mesh points."""

MINIMUM_TIME_INTERVAL: _Duration = 1e-6
"""Minimum allowed duration when initial or final time is free."""

PARALLEL_ENVIRONMENT_VARIABLE: str = "BIOTRAJ_PARALLEL"
"""Process-wide default for the degree of parallelism when not set explicitly."""

DEFAULT_PARALLEL: int = 1
"""Parallelism used when neither the setting nor the environment provides one."""

DEFAULT_NUM_MESH_INTERVALS: int = 50
"""Default number of mesh intervals for uniform meshes."""

TRANSCRIPTION_SCHEMES: tuple[str, ...] = ("trapezoidal", "hermite-simpson")
"""Supported collocation transcription schemes."""

FINITE_DIFFERENCE_SCHEMES: tuple[str, ...] = ("central", "forward", "backward")
"""Supported finite difference schemes for problem derivatives."""

GUESS_TYPES: tuple[str, ...] = ("bounds", "random", "time-stepping")
"""Supported synthesized guess types."""

# Step sizes scale with max(1, |z|); central differences tolerate a larger step
CENTRAL_DIFFERENCE_STEP: _Step = 6.055454e-6
"""Relative step for central differences (cube root of machine epsilon)."""

ONE_SIDED_DIFFERENCE_STEP: _Step = 1.490116e-8
"""Relative step for forward/backward differences (square root of machine epsilon)."""

RANDOM_GUESS_HALF_OPEN_WIDTH: float = 1.0
"""Width of the sampling range next to a single finite bound for random guesses."""

TIME_STEPPING_RTOL: _Tolerance = 1e-6
"""Relative tolerance for the forward simulation used by time-stepping guesses."""

ITERATE_FILE_TIME_COLUMN: str = "time"
"""Column name holding time values in iterate files."""
