"""
Tests for rollout estimators.
"""

import pytest
import numpy as np

from pomcp.pomdp import PlannerConfig, rollout, adaptive_rollout, make_rollout
from pomcp.pomdp.schema import POMDP
from pomcp.pomdp.problems import Corridor


def _constant_reward_model(gamma: float = 1.0) -> POMDP:
    return POMDP(
        S=["s"],
        A=["a"],
        O=["o"],
        T={"a": np.array([[1.0]])},
        Z={"a": np.array([[1.0]])},
        R={"a": np.array([[1.0]])},
        gamma=gamma,
    )


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_adaptive_matches_fixed_when_never_triggered(tiger, seed):
    """With min_depth >= max_depth the adaptive rollout equals the fixed one."""
    fixed = rollout(tiger, 0, 20, np.random.default_rng(seed))
    adaptive = adaptive_rollout(tiger, 0, 20, np.random.default_rng(seed), min_depth=20, window_size=5)
    assert fixed == adaptive

    # Window longer than the rollout can never fill
    adaptive = adaptive_rollout(tiger, 0, 20, np.random.default_rng(seed), min_depth=0, window_size=21)
    assert fixed == adaptive


def test_adaptive_matches_fixed_on_variable_actions(corridor):
    """Equivalence also holds when the action set depends on the state."""
    for seed in range(5):
        fixed = rollout(corridor, 0, 15, np.random.default_rng(seed))
        adaptive = adaptive_rollout(corridor, 0, 15, np.random.default_rng(seed), min_depth=15)
        assert fixed == adaptive


def test_fixed_rollout_runs_to_max_depth():
    """Constant reward 1 with gamma 1 accumulates exactly max_depth."""
    model = _constant_reward_model()
    assert rollout(model, 0, 50, np.random.default_rng(0)) == pytest.approx(50.0)


def test_fixed_rollout_discounts():
    model = _constant_reward_model(gamma=0.5)
    value = rollout(model, 0, 3, np.random.default_rng(0))
    assert value == pytest.approx(1.0 + 0.5 + 0.25)


def test_adaptive_rollout_stops_on_flat_rewards():
    """A flat reward stream converges as soon as checks are allowed."""
    model = _constant_reward_model()
    value = adaptive_rollout(model, 0, 50, np.random.default_rng(0), min_depth=3, window_size=2, threshold=0.01)
    # Steps at depth 0..3 are taken; the check at depth 3 stops the rollout
    assert value == pytest.approx(4.0)


def test_adaptive_rollout_partial_window_is_not_converged():
    """A window that never fills disables early termination."""
    model = _constant_reward_model()
    value = adaptive_rollout(model, 0, 10, np.random.default_rng(0), min_depth=0, window_size=11)
    assert value == pytest.approx(10.0)


def test_rollout_stops_at_terminal_state():
    """Reaching the exit ends the rollout with only the exit reward."""
    model = Corridor(length=2, slip=0.0)
    assert rollout(model, 0, 100, np.random.default_rng(0)) == pytest.approx(10.0)
    assert adaptive_rollout(model, 0, 100, np.random.default_rng(0)) == pytest.approx(10.0)


def test_make_rollout_selects_estimator():
    """make_rollout honours the configured estimator and its parameters."""
    model = _constant_reward_model()
    fixed = make_rollout(PlannerConfig(rollout="fixed"), model)
    adaptive = make_rollout(
        PlannerConfig(rollout="adaptive", minDepth=3, windowSize=2, threshold=0.01), model
    )
    assert fixed(model, 0, 50, np.random.default_rng(0)) == pytest.approx(50.0)
    assert adaptive(model, 0, 50, np.random.default_rng(0)) == pytest.approx(4.0)
