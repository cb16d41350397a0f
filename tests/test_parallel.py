# test_parallel.py
"""
Tests for resolving the degree of parallelism from the solver setting and the
BIOTRAJ_PARALLEL environment variable.
"""

import os

import pytest

from biotraj.exceptions import ConfigurationError
from biotraj.utils.parallel import (
    get_environment_parallel,
    parallel_to_num_threads,
    resolve_num_threads,
    resolve_parallel,
)


class TestParallelResolution:
    """Explicit setting > environment variable > default of 1."""

    @pytest.mark.parametrize(
        "explicit, environment, expected",
        [
            (None, None, 1),
            (None, 0, 0),
            (None, 3, 3),
            (0, 3, 0),
            (1, 0, 1),
            (4, None, 4),
            (2, 8, 2),
        ],
    )
    def test_resolution_table(self, explicit, environment, expected):
        assert resolve_parallel(explicit, environment) == expected

    @pytest.mark.parametrize("value", [-1, 1.5, "2", True])
    def test_invalid_explicit_values(self, value):
        with pytest.raises(ConfigurationError):
            resolve_parallel(value, None)

    def test_thread_count_mapping(self):
        assert parallel_to_num_threads(0, cpu_count=8) == 0
        assert parallel_to_num_threads(1, cpu_count=8) == 8
        assert parallel_to_num_threads(1, cpu_count=None) == max(1, os.cpu_count() or 1)
        assert parallel_to_num_threads(5, cpu_count=8) == 5


class TestEnvironmentVariable:
    """The environment supplies a process-wide default."""

    def test_unset_and_empty(self):
        assert get_environment_parallel({}) is None
        assert get_environment_parallel({"BIOTRAJ_PARALLEL": "  "}) is None

    def test_parsed_value(self):
        assert get_environment_parallel({"BIOTRAJ_PARALLEL": " 3 "}) == 3

    @pytest.mark.parametrize("raw", ["abc", "-2", "1.5"])
    def test_malformed_values(self, raw):
        with pytest.raises(ConfigurationError):
            get_environment_parallel({"BIOTRAJ_PARALLEL": raw})

    def test_resolve_num_threads_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("BIOTRAJ_PARALLEL", "3")
        assert resolve_num_threads(None) == 3
        assert resolve_num_threads(0) == 0

    def test_explicit_environment_mapping(self):
        assert resolve_num_threads(None, {"BIOTRAJ_PARALLEL": "0"}) == 0
        assert resolve_num_threads(6, {"BIOTRAJ_PARALLEL": "0"}) == 6
