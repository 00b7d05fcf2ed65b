"""Shared fixtures for the engine test suite."""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from convolution import ConvolutionEngine1D, preset_1d, preset_2d
from descent import DescentEngine


@pytest.fixture
def cnn1d():
    return preset_1d()


@pytest.fixture
def cnn2d():
    return preset_2d()


@pytest.fixture
def seven_step_engine():
    """1D engine with exactly seven output cells."""
    return ConvolutionEngine1D([1, 0, 2, 3, 0, 1, 1, 2, 0], [1, 0, -1])


@pytest.fixture
def descent_factory():
    """Build a seeded descent engine; pass ``objective=`` to pick one."""

    def _make(objective="rugged", seed=1234, **kwargs):
        return DescentEngine(objective=objective,
                             rng=np.random.default_rng(seed), **kwargs)

    return _make


class FakeClock:
    """Millisecond clock driven by the test."""

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock(1000.0)
