"""
Shared fixtures for planner tests.
"""

import pytest
import numpy as np

from pomcp.pomdp.schema import POMDP
from pomcp.pomdp.problems import make_tiger_problem, Corridor, RockSample


@pytest.fixture
def tiger():
    return make_tiger_problem()


@pytest.fixture
def deterministic_tiger():
    """Tiger whose listen observation always reveals the true side."""
    return make_tiger_problem(listen_accuracy=1.0)


@pytest.fixture
def corridor():
    return Corridor(length=5, slip=0.1)


@pytest.fixture
def rocksample():
    return RockSample(size=4)


@pytest.fixture
def two_armed():
    """Single-state, two-action model: action 0 pays 1, action 1 pays 0."""
    return POMDP(
        S=["s"],
        A=["good", "bad"],
        O=["o"],
        T={"good": np.array([[1.0]]), "bad": np.array([[1.0]])},
        Z={"good": np.array([[1.0]]), "bad": np.array([[1.0]])},
        R={"good": np.array([[1.0]]), "bad": np.array([[0.0]])},
        gamma=0.9,
    )
