# test_iterate.py
"""
Tests for time-sampled iterates: validation, resampling, reordering and CSV files.
"""

import numpy as np
import pandas as pd
import pytest

from biotraj import GuessError, Iterate


def _ramp_iterate(num_times=5):
    time = np.linspace(0.0, 2.0, num_times)
    return Iterate(
        time,
        states=np.vstack([time, 2.0 * time]),
        controls=[np.ones(num_times)],
        parameters=[0.7],
        state_names=["position", "speed"],
        control_names=["force"],
        parameter_names=["mass"],
    )


class TestIterateValidation:
    """Iterates enforce strictly increasing time and consistent shapes."""

    def test_non_increasing_time_is_rejected(self):
        with pytest.raises(GuessError):
            Iterate([0.0, 1.0, 1.0], states=[[0, 0, 0]], state_names=["x"])

    def test_empty_time_is_rejected(self):
        with pytest.raises(GuessError):
            Iterate([], state_names=[])

    def test_shape_mismatch_is_rejected(self):
        with pytest.raises(GuessError):
            Iterate([0.0, 1.0], states=[[0.0, 1.0, 2.0]], state_names=["x"])

    def test_missing_rows_are_rejected(self):
        with pytest.raises(GuessError):
            Iterate([0.0, 1.0], state_names=["x"])

    def test_repr_of_rejected_iterate(self):
        iterate = Iterate.__new__(Iterate)
        with pytest.raises(GuessError):
            iterate.__init__([1.0, 0.0], states=[[0.0, 0.0]], state_names=["x"])
        assert "x" in repr(iterate)

    def test_accessors(self):
        iterate = _ramp_iterate()
        np.testing.assert_allclose(iterate.get_state("speed"), 2.0 * iterate.time)
        assert iterate.get_parameter("mass") == pytest.approx(0.7)
        with pytest.raises(KeyError):
            iterate.get_control("torque")


class TestIterateResampling:
    """Any number of samples can be mapped onto any other time grid."""

    def test_resample_to_more_samples_interpolates_linearly(self):
        iterate = _ramp_iterate(num_times=3)
        new_time = np.linspace(0.0, 2.0, 21)
        resampled = iterate.resample(new_time)

        assert resampled.num_times == 21
        np.testing.assert_allclose(resampled.get_state("position"), new_time)
        np.testing.assert_allclose(resampled.get_state("speed"), 2.0 * new_time)
        np.testing.assert_allclose(resampled.parameters, [0.7])

    def test_resample_holds_end_values_outside_the_time_span(self):
        iterate = _ramp_iterate()
        resampled = iterate.resample([-1.0, 3.0])
        np.testing.assert_allclose(resampled.get_state("position"), [0.0, 2.0])

    def test_single_sample_is_repeated(self):
        iterate = Iterate([0.0], states=[[3.0]], state_names=["x"])
        resampled = iterate.resample_uniform(4)
        np.testing.assert_allclose(resampled.states, [[3.0, 3.0, 3.0, 3.0]])
        np.testing.assert_allclose(resampled.time, [0.0, 1.0 / 3.0, 2.0 / 3.0, 1.0])

    def test_uniform_resampling_keeps_the_time_span(self):
        resampled = _ramp_iterate().resample_uniform(9)
        np.testing.assert_allclose(resampled.time, np.linspace(0.0, 2.0, 9))
        np.testing.assert_allclose(resampled.get_state("position"), resampled.time)

    def test_reorder_matches_rows_by_name(self):
        iterate = _ramp_iterate()
        reordered = iterate.reorder(["speed", "position"], ["force"], ["mass"])
        np.testing.assert_allclose(reordered.states[0], iterate.get_state("speed"))
        assert reordered.state_names == ["speed", "position"]

    def test_reorder_rejects_mismatched_names(self):
        iterate = _ramp_iterate()
        with pytest.raises(GuessError, match="missing"):
            iterate.reorder(["position", "angle"], ["force"], ["mass"])


class TestIterateFiles:
    """Iterates are stored as CSV tables with prefixed column names."""

    def test_round_trip(self, tmp_path):
        iterate = _ramp_iterate(num_times=7)
        path = tmp_path / "sliding.guess"
        iterate.write(path)

        loaded = Iterate.read(path)
        np.testing.assert_allclose(loaded.time, iterate.time)
        np.testing.assert_allclose(loaded.states, iterate.states)
        np.testing.assert_allclose(loaded.controls, iterate.controls)
        np.testing.assert_allclose(loaded.parameters, iterate.parameters)
        assert loaded.state_names == iterate.state_names
        assert loaded.control_names == iterate.control_names
        assert loaded.parameter_names == iterate.parameter_names

    def test_column_layout(self):
        frame = _ramp_iterate().to_dataframe()
        assert list(frame.columns) == [
            "time",
            "states/position",
            "states/speed",
            "controls/force",
            "parameters/mass",
        ]

    def test_missing_file(self, tmp_path):
        with pytest.raises(GuessError, match="does not exist"):
            Iterate.read(tmp_path / "missing.guess")

    def test_unknown_column(self, tmp_path):
        path = tmp_path / "bad.guess"
        pd.DataFrame({"time": [0.0, 1.0], "velocity": [1.0, 2.0]}).to_csv(path, index=False)
        with pytest.raises(GuessError, match="Unrecognized"):
            Iterate.read(path)

    def test_missing_time_column(self, tmp_path):
        path = tmp_path / "no_time.guess"
        pd.DataFrame({"states/x": [0.0, 1.0]}).to_csv(path, index=False)
        with pytest.raises(GuessError):
            Iterate.read(path)

    def test_non_numeric_values(self, tmp_path):
        path = tmp_path / "text.guess"
        pd.DataFrame({"time": [0.0, 1.0], "states/x": ["a", "b"]}).to_csv(path, index=False)
        with pytest.raises(GuessError):
            Iterate.read(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.guess"
        path.write_text("")
        with pytest.raises(GuessError):
            Iterate.read(path)
