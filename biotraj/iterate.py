"""
Time-sampled trajectories used as initial guesses and solutions.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import numpy as np
import pandas as pd

from .bt_types import FloatArray, NumericArrayLike
from .exceptions import GuessError
from .utils.constants import ITERATE_FILE_TIME_COLUMN


logger = logging.getLogger(__name__)

_STATE_PREFIX = "states/"
_CONTROL_PREFIX = "controls/"
_PARAMETER_PREFIX = "parameters/"


def _as_matrix(values: NumericArrayLike | None, num_rows: int, num_times: int, name: str) -> FloatArray:
    if values is None:
        if num_rows != 0:
            raise GuessError(f"{name} values missing for {num_rows} variable(s)")
        return np.zeros((0, num_times), dtype=np.float64)
    matrix = np.atleast_2d(np.asarray(values, dtype=np.float64))
    if matrix.size == 0:
        matrix = matrix.reshape(0, num_times)
    if matrix.shape != (num_rows, num_times):
        raise GuessError(
            f"{name} array has shape {matrix.shape}, expected ({num_rows}, {num_times})"
        )
    return matrix


class Iterate:
    """Named trajectory of (time, states, controls) samples plus constant parameters.

    Args:
        time: Strictly increasing time samples, shape (num_times,)
        states: State values, shape (num_states, num_times)
        controls: Control values, shape (num_controls, num_times)
        parameters: Parameter values, shape (num_parameters,)
        state_names: Names of the state rows
        control_names: Names of the control rows
        parameter_names: Names of the parameters

    Raises:
        GuessError: If the time samples are not strictly increasing or the array
            shapes do not agree with the names
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
    ) -> None:
        self.state_names: list[str] = list(state_names)
        self.control_names: list[str] = list(control_names)
        self.parameter_names: list[str] = list(parameter_names)

        self.time: FloatArray = np.asarray(time, dtype=np.float64).flatten()
        if self.time.size == 0:
            raise GuessError("Iterate must contain at least one time sample")
        if np.any(np.diff(self.time) <= 0.0):
            raise GuessError("Iterate time values must be strictly increasing")

        num_times = self.time.size
        self.states = _as_matrix(states, len(self.state_names), num_times, "States")
        self.controls = _as_matrix(controls, len(self.control_names), num_times, "Controls")

        if parameters is None:
            parameters = np.zeros(len(self.parameter_names), dtype=np.float64)
        self.parameters: FloatArray = np.asarray(parameters, dtype=np.float64).flatten()
        if self.parameters.size != len(self.parameter_names):
            raise GuessError(
                f"Got {self.parameters.size} parameter values for "
                f"{len(self.parameter_names)} parameter names"
            )

    @property
    def num_times(self) -> int:
        return int(self.time.size)

    @property
    def initial_time(self) -> float:
        return float(self.time[0])

    @property
    def final_time(self) -> float:
        return float(self.time[-1])

    def get_state(self, name: str) -> FloatArray:
        return self.states[self._index(self.state_names, name, "state")]

    def get_control(self, name: str) -> FloatArray:
        return self.controls[self._index(self.control_names, name, "control")]

    def get_parameter(self, name: str) -> float:
        return float(self.parameters[self._index(self.parameter_names, name, "parameter")])

    @staticmethod
    def _index(names: list[str], name: str, kind: str) -> int:
        try:
            return names.index(name)
        except ValueError as e:
            raise KeyError(f"Iterate has no {kind} named '{name}'") from e

    def resample(self, new_time: NumericArrayLike) -> Iterate:
        """Linearly interpolate onto ``new_time``; values are held constant beyond the ends."""
        new_time = np.asarray(new_time, dtype=np.float64).flatten()

        def interpolate(values: FloatArray) -> FloatArray:
            if self.num_times == 1 or values.shape[0] == 0:
                return np.repeat(values[:, :1], new_time.size, axis=1)
            return np.vstack([np.interp(new_time, self.time, row) for row in values])

        return Iterate(
            new_time,
            interpolate(self.states),
            interpolate(self.controls),
            self.parameters.copy(),
            self.state_names,
            self.control_names,
            self.parameter_names,
        )

    def resample_uniform(self, num_times: int) -> Iterate:
        """Resample onto ``num_times`` evenly spaced samples over the same time span."""
        if self.num_times == 1:
            # A single sample has no time span; spread the samples over a unit duration
            return self.resample(self.initial_time + np.linspace(0.0, 1.0, num_times))
        return self.resample(np.linspace(self.initial_time, self.final_time, num_times))

    def reorder(
        self,
        state_names: Sequence[str],
        control_names: Sequence[str],
        parameter_names: Sequence[str] = (),
    ) -> Iterate:
        """Rows rearranged to match the given variable names.

        Raises:
            GuessError: If the iterate is missing a variable or has an unexpected one
        """
        for kind, own, wanted in (
            ("states", self.state_names, state_names),
            ("controls", self.control_names, control_names),
            ("parameters", self.parameter_names, parameter_names),
        ):
            if set(own) != set(wanted):
                missing = sorted(set(wanted) - set(own))
                extra = sorted(set(own) - set(wanted))
                raise GuessError(
                    f"Iterate {kind} do not match the problem (missing: {missing}, "
                    f"unexpected: {extra})"
                )

        state_order = [self.state_names.index(name) for name in state_names]
        control_order = [self.control_names.index(name) for name in control_names]
        parameter_order = [self.parameter_names.index(name) for name in parameter_names]
        return Iterate(
            self.time.copy(),
            self.states[state_order, :],
            self.controls[control_order, :],
            self.parameters[parameter_order],
            state_names,
            control_names,
            parameter_names,
        )

    def copy(self) -> Iterate:
        return Iterate(
            self.time.copy(),
            self.states.copy(),
            self.controls.copy(),
            self.parameters.copy(),
            self.state_names,
            self.control_names,
            self.parameter_names,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dataframe(self) -> pd.DataFrame:
        data: dict[str, FloatArray] = {ITERATE_FILE_TIME_COLUMN: self.time}
        for i, name in enumerate(self.state_names):
            data[_STATE_PREFIX + name] = self.states[i]
        for i, name in enumerate(self.control_names):
            data[_CONTROL_PREFIX + name] = self.controls[i]
        for i, name in enumerate(self.parameter_names):
            data[_PARAMETER_PREFIX + name] = np.full(self.num_times, self.parameters[i])
        return pd.DataFrame(data)

    def write(self, path: str | Path) -> None:
        """Write the iterate as a CSV table."""
        self.to_dataframe().to_csv(path, index=False)
        logger.debug("Wrote iterate with %d samples to %s", self.num_times, path)

    @classmethod
    def from_dataframe(cls, frame: pd.DataFrame) -> Iterate:
        if ITERATE_FILE_TIME_COLUMN not in frame.columns:
            raise GuessError(f"Iterate table has no '{ITERATE_FILE_TIME_COLUMN}' column")

        state_columns, control_columns, parameter_columns = [], [], []
        for column in frame.columns:
            if column == ITERATE_FILE_TIME_COLUMN:
                continue
            if column.startswith(_STATE_PREFIX):
                state_columns.append(column)
            elif column.startswith(_CONTROL_PREFIX):
                control_columns.append(column)
            elif column.startswith(_PARAMETER_PREFIX):
                parameter_columns.append(column)
            else:
                raise GuessError(f"Unrecognized iterate column '{column}'")

        try:
            numeric = frame.astype(np.float64)
        except (TypeError, ValueError) as e:
            raise GuessError(f"Iterate table contains non-numeric values: {e}") from e
        if numeric.isna().to_numpy().any():
            raise GuessError("Iterate table contains missing values")

        parameters = (
            numeric[parameter_columns].iloc[0].to_numpy()
            if parameter_columns and len(numeric) > 0
            else np.zeros(len(parameter_columns))
        )
        return cls(
            numeric[ITERATE_FILE_TIME_COLUMN].to_numpy(),
            numeric[state_columns].to_numpy().T,
            numeric[control_columns].to_numpy().T,
            parameters,
            [column[len(_STATE_PREFIX) :] for column in state_columns],
            [column[len(_CONTROL_PREFIX) :] for column in control_columns],
            [column[len(_PARAMETER_PREFIX) :] for column in parameter_columns],
        )

    @classmethod
    def read(cls, path: str | Path) -> Iterate:
        """Load an iterate written by :meth:`write`.

        Raises:
            GuessError: If the file is missing, unreadable or malformed
        """
        try:
            frame = pd.read_csv(path)
        except FileNotFoundError as e:
            raise GuessError(f"Iterate file '{path}' does not exist") from e
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
            raise GuessError(f"Could not read iterate file '{path}': {e}") from e
        iterate = cls.from_dataframe(frame)
        logger.debug("Read iterate with %d samples from %s", iterate.num_times, path)
        return iterate

    def __repr__(self) -> str:
        return (
            f"Iterate(num_times={self.num_times}, states={self.state_names}, "
            f"controls={self.control_names}, parameters={self.parameter_names})"
        )
