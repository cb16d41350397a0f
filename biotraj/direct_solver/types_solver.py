# biotraj/direct_solver/types_solver.py
"""
Type definitions and data structure containers for the direct collocation solver.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import casadi as ca
import numpy as np

from ..bt_types import FloatArray
from .grid_callbacks import GridCallback, GridEvaluator


@dataclass
class TranscriptionGrid:
    """Normalized collocation grid.

    ``fractions`` holds every grid point in [0, 1]; ``mesh_indices`` are the grid
    indices of the mesh points (all of them for trapezoidal, every other one for
    Hermite-Simpson). ``quadrature_weights`` integrate over [0, 1] and are
    scaled by the phase duration.
    """

    scheme: str
    mesh: FloatArray
    fractions: FloatArray
    mesh_indices: list[int]
    quadrature_weights: FloatArray

    @property
    def num_grid_points(self) -> int:
        return int(self.fractions.size)

    @property
    def num_mesh_intervals(self) -> int:
        return int(self.mesh.size - 1)

    def times(self, initial_time: float, final_time: float) -> FloatArray:
        return initial_time + (final_time - initial_time) * self.fractions


@dataclass
class ConstraintBlock:
    """One group of NLP constraint rows, recorded in assembly order.

    ``grid_index`` is the grid point (or interval start) the block belongs to,
    -1 for blocks spanning the whole grid.
    """

    label: str
    grid_index: int
    size: int


@dataclass
class DiscreteVariables:
    initial_time: ca.MX
    final_time: ca.MX
    states: ca.MX
    controls: ca.MX
    parameters: ca.MX | None

    @property
    def duration(self) -> ca.MX:
        return self.final_time - self.initial_time


@dataclass
class DiscreteProblem:
    """Collocation NLP built for a single solve."""

    opti: ca.Opti
    grid: TranscriptionGrid
    variables: DiscreteVariables
    evaluator: GridEvaluator
    grid_values: ca.MX | None = None
    state_derivatives: ca.MX | None = None
    objective: ca.MX | None = None
    constraint_layout: list[ConstraintBlock] = field(default_factory=list)
    # CasADi does not keep Python callbacks alive
    callbacks: dict[str, GridCallback] = field(default_factory=dict)

    def add_constraint(self, constraint: ca.MX, label: str, grid_index: int, size: int) -> None:
        self.opti.subject_to(constraint)
        self.constraint_layout.append(ConstraintBlock(label, grid_index, size))

    @property
    def num_constraints(self) -> int:
        return sum(block.size for block in self.constraint_layout)

    def layout_signature(self) -> list[tuple[str, int, int]]:
        return [(block.label, block.grid_index, block.size) for block in self.constraint_layout]

    def close(self) -> None:
        self.evaluator.shutdown()


def normalized_quadrature_weights(mesh: FloatArray, scheme: str) -> FloatArray:
    """Trapezoidal or Simpson weights over the grid; they sum to one."""
    intervals = np.diff(mesh)
    if scheme == "hermite-simpson":
        weights = np.zeros(2 * intervals.size + 1)
        for k, width in enumerate(intervals):
            weights[2 * k] += width / 6.0
            weights[2 * k + 1] += 4.0 * width / 6.0
            weights[2 * k + 2] += width / 6.0
        return weights

    weights = np.zeros(mesh.size)
    weights[:-1] += intervals / 2.0
    weights[1:] += intervals / 2.0
    return weights


def create_transcription_grid(mesh: FloatArray, scheme: str) -> TranscriptionGrid:
    if scheme == "hermite-simpson":
        midpoints = 0.5 * (mesh[:-1] + mesh[1:])
        fractions = np.empty(2 * mesh.size - 1)
        fractions[0::2] = mesh
        fractions[1::2] = midpoints
        mesh_indices = list(range(0, fractions.size, 2))
    else:
        fractions = mesh.copy()
        mesh_indices = list(range(mesh.size))

    return TranscriptionGrid(
        scheme=scheme,
        mesh=mesh.copy(),
        fractions=fractions,
        mesh_indices=mesh_indices,
        quadrature_weights=normalized_quadrature_weights(mesh, scheme),
    )
