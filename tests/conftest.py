# conftest.py
"""
Example problems shared by the test modules.
"""

import math

import numpy as np
import pytest

from biotraj import CollocationSolver, ContinuousProblem, SolverSettings


class SlidingMass(ContinuousProblem):
    """Unit mass moved 1 m in 2 s from rest to rest, minimizing integral of force squared.

    Optimal cost is 12 * d**2 / T**3 = 1.5.
    """

    DISTANCE = 1.0
    DURATION = 2.0
    OPTIMAL_COST = 12.0 * DISTANCE**2 / DURATION**3

    def __init__(self):
        super().__init__("sliding mass")
        self.set_time_bounds(0.0, self.DURATION)
        self.add_state("position", bounds=(-5.0, 5.0), initial=0.0, final=self.DISTANCE)
        self.add_state("speed", bounds=(-50.0, 50.0), initial=0.0, final=0.0)
        self.add_control("force", bounds=(-50.0, 50.0))
        self.add_kinematic_pair("position", "speed")

    def calc_dynamics(self, time, states, controls, parameters):
        return np.array([states[1], controls[0]])

    def calc_integral_cost(self, time, states, controls, parameters):
        return controls[0] ** 2


class Pendulum(ContinuousProblem):
    """Torque-driven pendulum with a mass parameter; 2 states and 1 control."""

    GRAVITY = 9.81
    LENGTH = 1.0

    def __init__(self, torque_bounds=(-5.0, 5.0)):
        super().__init__("pendulum")
        self.set_time_bounds(0.0, (0.5, 3.0))
        self.add_state("angle", bounds=(-math.pi, math.pi), initial=0.0)
        self.add_state("angular_speed", bounds=(-20.0, 20.0), initial=0.0)
        self.add_control("torque", bounds=torque_bounds)
        self.add_parameter("mass", bounds=(0.5, 1.5))
        self.add_kinematic_pair("angle", "angular_speed")
        # Scratch storage mutated by every evaluation, like a model's realized state
        self.scratch = np.zeros(2)

    def calc_dynamics(self, time, states, controls, parameters):
        self.scratch[0] = math.sin(states[0])
        self.scratch[1] = controls[0] / parameters[0]
        return np.array(
            [states[1], -self.GRAVITY / self.LENGTH * self.scratch[0] + self.scratch[1]]
        )

    def calc_endpoint_cost(self, initial_time, initial_states, final_time, final_states, parameters):
        return final_time


class OneSidedBounds(ContinuousProblem):
    """Variables bounded on one side only, plus an unbounded control."""

    def __init__(self):
        super().__init__("one-sided bounds")
        self.set_time_bounds(0.0, 1.0)
        self.add_state("height", bounds=(2.0, None))
        self.add_state("depth", bounds=(None, -3.0))
        self.add_control("push", bounds=(0.5, None))
        self.add_control("free")

    def calc_dynamics(self, time, states, controls, parameters):
        return np.array([controls[0], controls[1]])


class FailingDynamics(SlidingMass):
    """Sliding mass whose dynamics raise for any time after the start."""

    def __init__(self):
        super().__init__()
        self.name = "failing dynamics"

    def calc_dynamics(self, time, states, controls, parameters):
        if time > 0.5:
            raise RuntimeError("model could not realize its state")
        return super().calc_dynamics(time, states, controls, parameters)


class WrongSizeDynamics(SlidingMass):
    def calc_dynamics(self, time, states, controls, parameters):
        return np.array([states[1]])


class QuaternionProblem(SlidingMass):
    def __init__(self):
        super().__init__()
        self.uses_quaternions = True


@pytest.fixture
def sliding_mass():
    return SlidingMass()


@pytest.fixture
def pendulum():
    return Pendulum()


@pytest.fixture
def one_sided():
    return OneSidedBounds()


@pytest.fixture
def failing_problem():
    return FailingDynamics()


@pytest.fixture
def serial_settings():
    return SolverSettings(num_mesh_intervals=10, parallel=0)


@pytest.fixture
def sliding_mass_solver(sliding_mass, serial_settings):
    return CollocationSolver(sliding_mass, serial_settings)


@pytest.fixture(autouse=True)
def _no_parallel_environment(monkeypatch):
    monkeypatch.delenv("BIOTRAJ_PARALLEL", raising=False)
