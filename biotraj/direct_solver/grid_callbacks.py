# biotraj/direct_solver/grid_callbacks.py
"""
CasADi callbacks that evaluate numeric problem functions across grid points.

Each callback takes one dense input matrix whose columns are grid points and
returns one dense output matrix with a column per grid point. Columns are
independent, so derivatives are block diagonal and are computed by finite
differences one grid point at a time. Grid points are evaluated serially or on
a thread pool; every point checks out its own problem snapshot.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, TypeVar

import casadi as ca
import numpy as np

from ..bt_types import FloatArray, PointFunction
from ..exceptions import DataIntegrityError, EvaluationError
from ..utils.constants import CENTRAL_DIFFERENCE_STEP, ONE_SIDED_DIFFERENCE_STEP
from ..utils.snapshot_pool import ProblemRepresentationCache


logger = logging.getLogger(__name__)
T = TypeVar("T")


# ============================================================================
# POINT LAYOUT AND POINT FUNCTIONS
# ============================================================================


@dataclass(frozen=True)
class PointLayout:
    """Row layout of a grid point column: [time; states; controls; parameters]."""

    num_states: int
    num_controls: int
    num_parameters: int

    @property
    def size(self) -> int:
        return 1 + self.num_states + self.num_controls + self.num_parameters

    def split(self, column: FloatArray) -> tuple[float, FloatArray, FloatArray, FloatArray]:
        x_end = 1 + self.num_states
        u_end = x_end + self.num_controls
        return (
            float(column[0]),
            column[1:x_end],
            column[x_end:u_end],
            column[u_end : u_end + self.num_parameters],
        )

    def split_endpoints(
        self, column: FloatArray
    ) -> tuple[float, FloatArray, float, FloatArray, FloatArray]:
        """Split an endpoint column [t0; x0; tf; xf; parameters]."""
        n_x = self.num_states
        return (
            float(column[0]),
            column[1 : 1 + n_x],
            float(column[1 + n_x]),
            column[2 + n_x : 2 + 2 * n_x],
            column[2 + 2 * n_x : 2 + 2 * n_x + self.num_parameters],
        )

    @property
    def endpoint_size(self) -> int:
        return 2 + 2 * self.num_states + self.num_parameters


def _as_output(value: Any, expected_size: int, function_name: str) -> FloatArray:
    output = np.asarray(value, dtype=np.float64).flatten()
    if output.size != expected_size:
        raise DataIntegrityError(
            f"{function_name} returned {output.size} values, expected {expected_size}"
        )
    return output


def make_dynamics_point_function(layout: PointLayout) -> PointFunction:
    def evaluate(snapshot: Any, column: FloatArray) -> FloatArray:
        t, x, u, p = layout.split(column)
        return _as_output(snapshot.calc_dynamics(t, x, u, p), layout.num_states, "calc_dynamics")

    return evaluate


def make_path_point_function(layout: PointLayout, num_path_constraints: int) -> PointFunction:
    def evaluate(snapshot: Any, column: FloatArray) -> FloatArray:
        t, x, u, p = layout.split(column)
        return _as_output(
            snapshot.calc_path_constraints(t, x, u, p),
            num_path_constraints,
            "calc_path_constraints",
        )

    return evaluate


def make_integrand_point_function(layout: PointLayout) -> PointFunction:
    def evaluate(snapshot: Any, column: FloatArray) -> FloatArray:
        t, x, u, p = layout.split(column)
        return _as_output(snapshot.calc_integral_cost(t, x, u, p), 1, "calc_integral_cost")

    return evaluate


def make_endpoint_point_function(layout: PointLayout) -> PointFunction:
    def evaluate(snapshot: Any, column: FloatArray) -> FloatArray:
        t0, x0, tf, xf, p = layout.split_endpoints(column)
        return _as_output(
            snapshot.calc_endpoint_cost(t0, x0, tf, xf, p), 1, "calc_endpoint_cost"
        )

    return evaluate


def finite_difference_jacobian(
    point_function: PointFunction,
    snapshot: Any,
    column: FloatArray,
    scheme: str = "central",
) -> FloatArray:
    """Dense Jacobian of one grid point's outputs with respect to its column."""
    column = np.array(column, dtype=np.float64)
    nominal = point_function(snapshot, column) if scheme != "central" else None
    relative_step = CENTRAL_DIFFERENCE_STEP if scheme == "central" else ONE_SIDED_DIFFERENCE_STEP

    jacobian_columns = []
    for i in range(column.size):
        original = column[i]
        step = relative_step * max(1.0, abs(original))

        if scheme == "backward":
            column[i] = original - step
            derivative = (nominal - point_function(snapshot, column)) / step
        elif scheme == "forward":
            column[i] = original + step
            derivative = (point_function(snapshot, column) - nominal) / step
        else:
            column[i] = original + step
            plus = point_function(snapshot, column)
            column[i] = original - step
            minus = point_function(snapshot, column)
            derivative = (plus - minus) / (2.0 * step)

        column[i] = original
        jacobian_columns.append(derivative)

    return np.column_stack(jacobian_columns)


# ============================================================================
# GRID EVALUATOR
# ============================================================================


class GridEvaluator:
    """Runs per-point work serially or on a fixed-size thread pool.

    Results are always returned in grid point order. The first failure is
    recorded in :attr:`error` so the orchestrator can re-raise it even if the
    NLP solver swallowed the exception raised inside a callback.
    """

    def __init__(self, cache: ProblemRepresentationCache, num_threads: int) -> None:
        self._cache = cache
        self.num_threads = num_threads
        self._executor: ThreadPoolExecutor | None = (
            ThreadPoolExecutor(max_workers=num_threads, thread_name_prefix="biotraj-grid")
            if num_threads > 0
            else None
        )
        self._error_lock = threading.Lock()
        self.error: EvaluationError | None = None

    @property
    def is_parallel(self) -> bool:
        return self._executor is not None

    def map_points(self, work: Callable[[Any, int], T], num_points: int) -> list[T]:
        def run(index: int) -> T:
            with self._cache.checkout() as snapshot:
                return work(snapshot, index)

        try:
            if self._executor is None:
                return [run(index) for index in range(num_points)]

            futures: list[Future[T]] = [
                self._executor.submit(run, index) for index in range(num_points)
            ]
            try:
                return [future.result() for future in futures]
            finally:
                for future in futures:
                    future.cancel()
        except Exception as e:
            self._record_error(e)
            raise

    def _record_error(self, error: Exception) -> None:
        if not isinstance(error, EvaluationError):
            wrapped = EvaluationError(
                f"Problem function raised during grid point evaluation: {error}",
                "Grid point evaluation",
            )
            wrapped.__cause__ = error
            error = wrapped
        with self._error_lock:
            if self.error is None:
                self.error = error
                logger.error("Grid point evaluation failed: %s", error)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


# ============================================================================
# CASADI CALLBACKS
# ============================================================================


def block_diagonal_sparsity(num_outputs: int, num_inputs: int, num_points: int) -> ca.Sparsity:
    """Sparsity of d vec(F) / d vec(Z) when column k of F depends only on column k of Z."""
    point = np.arange(num_points)[:, None, None]
    output = np.arange(num_outputs)[None, :, None]
    inp = np.arange(num_inputs)[None, None, :]
    shape = (num_points, num_outputs, num_inputs)
    rows = np.broadcast_to(point * num_outputs + output, shape).ravel()
    cols = np.broadcast_to(point * num_inputs + inp, shape).ravel()
    return ca.Sparsity.triplet(
        num_points * num_outputs, num_points * num_inputs, rows.tolist(), cols.tolist()
    )


class GridCallback(ca.Callback):
    """Evaluates ``point_function`` on every column of a (num_inputs x num_points) matrix."""

    def __init__(
        self,
        name: str,
        point_function: PointFunction,
        num_inputs: int,
        num_outputs: int,
        num_points: int,
        evaluator: GridEvaluator,
        finite_difference_scheme: str = "central",
        opts: dict[str, Any] | None = None,
    ) -> None:
        ca.Callback.__init__(self)
        self.point_function = point_function
        self.num_inputs = num_inputs
        self.num_outputs = num_outputs
        self.num_points = num_points
        self.evaluator = evaluator
        self.finite_difference_scheme = finite_difference_scheme
        self.jacobian_sparsity = block_diagonal_sparsity(num_outputs, num_inputs, num_points)
        self._jacobian_callback: GridJacobianCallback | None = None
        self.construct(name, opts or {})

    def get_n_in(self) -> int:
        return 1

    def get_n_out(self) -> int:
        return 1

    def get_sparsity_in(self, i: int) -> ca.Sparsity:
        return ca.Sparsity.dense(self.num_inputs, self.num_points)

    def get_sparsity_out(self, i: int) -> ca.Sparsity:
        return ca.Sparsity.dense(self.num_outputs, self.num_points)

    def evaluate(self, grid_values: FloatArray) -> FloatArray:
        """Numeric evaluation of all grid points, in grid order."""
        columns = self.evaluator.map_points(
            lambda snapshot, k: self.point_function(snapshot, grid_values[:, k]),
            self.num_points,
        )
        return np.column_stack(columns).reshape(self.num_outputs, self.num_points)

    def evaluate_jacobian(self, grid_values: FloatArray) -> FloatArray:
        """Nonzeros of the block-diagonal Jacobian in column-major order."""
        blocks = self.evaluator.map_points(
            lambda snapshot, k: finite_difference_jacobian(
                self.point_function, snapshot, grid_values[:, k], self.finite_difference_scheme
            ),
            self.num_points,
        )
        return np.concatenate([block.ravel(order="F") for block in blocks])

    def eval(self, arg: list[ca.DM]) -> list[ca.DM]:
        return [ca.DM(self.evaluate(_to_numpy(arg[0], self.num_inputs, self.num_points)))]

    def has_jacobian(self) -> bool:
        return True

    def get_jacobian(
        self, name: str, inames: list[str], onames: list[str], opts: dict[str, Any]
    ) -> ca.Callback:
        # CasADi does not own Python callbacks; keep a reference alive
        self._jacobian_callback = GridJacobianCallback(name, self)
        return self._jacobian_callback

    def has_jac_sparsity(self, oind: int, iind: int) -> bool:
        return True

    def get_jac_sparsity(self, oind: int, iind: int, symmetric: bool) -> ca.Sparsity:
        return self.jacobian_sparsity


class GridJacobianCallback(ca.Callback):
    """Finite-difference Jacobian of a :class:`GridCallback`.

    Inputs are the nominal grid matrix and the (unused) nominal outputs.
    """

    def __init__(self, name: str, parent: GridCallback, opts: dict[str, Any] | None = None) -> None:
        ca.Callback.__init__(self)
        self.parent = parent
        self.construct(name, opts or {})

    def get_n_in(self) -> int:
        return 2

    def get_n_out(self) -> int:
        return 1

    def get_sparsity_in(self, i: int) -> ca.Sparsity:
        if i == 0:
            return ca.Sparsity.dense(self.parent.num_inputs, self.parent.num_points)
        return ca.Sparsity(self.parent.num_outputs, self.parent.num_points)

    def get_sparsity_out(self, i: int) -> ca.Sparsity:
        return self.parent.jacobian_sparsity

    def eval(self, arg: list[ca.DM]) -> list[ca.DM]:
        grid_values = _to_numpy(arg[0], self.parent.num_inputs, self.parent.num_points)
        nonzeros = self.parent.evaluate_jacobian(grid_values)
        return [ca.DM(self.parent.jacobian_sparsity, nonzeros)]


def _to_numpy(value: ca.DM | FloatArray, num_rows: int, num_cols: int) -> FloatArray:
    array = value.full() if isinstance(value, ca.DM) else np.asarray(value, dtype=np.float64)
    return np.asarray(array, dtype=np.float64).reshape(num_rows, num_cols)
