"""
Tests for the POMCP planner.
"""

import pytest
import numpy as np
from pydantic import ValidationError

from pomcp.pomdp import (
    POMCP,
    Belief,
    ParticleBelief,
    PlannerConfig,
    BeliefDepletionError,
    PlanningError,
    GenerativeModel,
    action_space_for,
)
from pomcp.pomdp.problems import TIGER_LEFT, TIGER_RIGHT, LISTEN, Corridor


def test_config_rejects_bad_values():
    """Configuration errors surface before any simulation runs."""
    with pytest.raises(ValidationError):
        PlannerConfig(iterations=0)
    with pytest.raises(ValidationError):
        PlannerConfig(belief_size=0)
    with pytest.raises(ValidationError):
        PlannerConfig(threshold=-0.1)
    with pytest.raises(ValidationError):
        PlannerConfig(unknown_option=1)


def test_config_accepts_camel_case_options():
    cfg = PlannerConfig(
        beliefSize=50, iterations=10, explorationConstant=3.0, maxDepth=7,
        minDepth=2, windowSize=3, threshold=0.5,
    )
    assert cfg.belief_size == 50
    assert cfg.exploration_constant == 3.0
    assert cfg.horizon == 7
    assert cfg.min_depth == 2
    assert cfg.window_size == 3
    assert cfg.update_budget == 1000


def test_model_without_action_capability_is_rejected():
    class NoActions(GenerativeModel):
        def sample_sr(self, state, action, rng):
            return state, 0.0

        def sample_sor(self, state, action, rng):
            return state, 0, 0.0

        def is_terminal(self, state):
            return False

        def discount(self):
            return 1.0

    with pytest.raises(TypeError):
        action_space_for(NoActions())


def test_out_of_range_indices_are_contract_violations(tiger):
    rng = np.random.default_rng(0)
    with pytest.raises(IndexError):
        tiger.sample_sor(5, LISTEN, rng)
    with pytest.raises(IndexError):
        tiger.sample_sr(0, 3, rng)


def test_every_action_tried_before_any_is_favoured(two_armed):
    """With two simulations on a two-action model each action is tried once."""
    planner = POMCP(two_armed, PlannerConfig(iterations=2, belief_size=10), rng=np.random.default_rng(0))
    planner.sample_action(Belief([1.0]), 1)
    assert planner.last_search.root_visits == [1, 1]

    cfg = PlannerConfig(iterations=50, belief_size=10, exploration_constant=0.5)
    planner = POMCP(two_armed, cfg, rng=np.random.default_rng(0))
    assert planner.sample_action(Belief([1.0]), 1) == 0


def test_root_visits_sum_to_iterations(tiger):
    """Conservation: each simulation increments exactly one root action."""
    cfg = PlannerConfig(iterations=300, belief_size=200, exploration_constant=25.0)
    planner = POMCP(tiger, cfg, rng=np.random.default_rng(1))
    planner.sample_action(Belief.uniform(2), 10)
    assert sum(planner.last_search.root_visits) == 300
    assert planner.last_search.iterations == 300
    assert planner.tree.node(planner.tree.root).N == 300


def test_wall_clock_cap_stops_search(tiger):
    cfg = PlannerConfig(iterations=10_000_000, belief_size=100, time_limit=0.05)
    planner = POMCP(tiger, cfg, rng=np.random.default_rng(2))
    action = planner.sample_action(Belief.uniform(2), 10)
    stats = planner.last_search
    assert 0 < stats.iterations < 10_000_000
    assert sum(stats.root_visits) == stats.iterations
    assert action in (0, 1, 2)


def test_same_seed_reproduces_search(tiger):
    cfg = PlannerConfig(iterations=200, belief_size=100)
    visits = []
    for _ in range(2):
        planner = POMCP(tiger, cfg, rng=np.random.default_rng(42))
        planner.sample_action(Belief.uniform(2), 5)
        visits.append(planner.last_search.root_visits)
    assert visits[0] == visits[1]


def test_tiger_listens_first(tiger):
    """From a uniform prior the planner listens rather than gambling on a door."""
    cfg = PlannerConfig(iterations=1000, belief_size=1000, exploration_constant=200.0, horizon=10)
    listens = 0
    runs = 20
    for seed in range(runs):
        planner = POMCP(tiger, cfg, rng=np.random.default_rng(seed))
        if planner.sample_action(Belief.uniform(2), 10) == LISTEN:
            listens += 1
    assert listens / runs > 0.9, f"Listened first in only {listens}/{runs} runs"


def test_two_left_observations_concentrate_belief(tiger):
    cfg = PlannerConfig(iterations=300, belief_size=1000, exploration_constant=25.0)
    planner = POMCP(tiger, cfg, rng=np.random.default_rng(3))
    planner.sample_action(Belief.uniform(2), 10)
    planner.sample_action_after(LISTEN, TIGER_LEFT, 9)
    planner.sample_action_after(LISTEN, TIGER_LEFT, 8)
    belief = planner.belief
    assert len(belief) == 1000
    assert belief.probability(TIGER_LEFT) > 0.9


def test_certain_belief_stays_certain(deterministic_tiger):
    cfg = PlannerConfig(iterations=100, belief_size=100)
    planner = POMCP(deterministic_tiger, cfg, rng=np.random.default_rng(4))
    planner.sample_action(Belief.certain(2, TIGER_LEFT), 5)
    belief = planner.observe(LISTEN, TIGER_LEFT)
    assert belief.probability(TIGER_LEFT) == pytest.approx(1.0)


def test_inconsistent_observation_reinvigorates(deterministic_tiger):
    """An observation no particle explains is recovered from the prior, not passed through empty."""
    cfg = PlannerConfig(iterations=100, belief_size=100)
    planner = POMCP(deterministic_tiger, cfg, rng=np.random.default_rng(5), prior=Belief.uniform(2))
    planner.sample_action(Belief.certain(2, TIGER_LEFT), 5)
    action = planner.sample_action_after(LISTEN, TIGER_RIGHT, 4)
    belief = planner.belief
    assert len(belief) == 100
    assert belief.probability(TIGER_RIGHT) == pytest.approx(1.0)
    assert action in (0, 1, 2)


def test_unrecoverable_depletion_is_fatal(deterministic_tiger):
    cfg = PlannerConfig(iterations=50, belief_size=50)
    planner = POMCP(deterministic_tiger, cfg, rng=np.random.default_rng(6))
    planner.sample_action(Belief.certain(2, TIGER_LEFT), 5)
    with pytest.raises(BeliefDepletionError):
        planner.observe(LISTEN, TIGER_RIGHT)
    with pytest.raises(PlanningError):
        planner.sample_action_after(LISTEN, TIGER_LEFT, 3)


def test_reroot_reuses_search_subtree(tiger):
    cfg = PlannerConfig(iterations=500, belief_size=200, exploration_constant=25.0)
    planner = POMCP(tiger, cfg, rng=np.random.default_rng(7))
    planner.sample_action(Belief.uniform(2), 10)
    before = len(planner.tree)
    planner.observe(LISTEN, TIGER_LEFT)
    assert 1 <= len(planner.tree) < before
    assert planner.tree.node(0).parent is None


def test_steps_remaining_must_be_positive(tiger):
    planner = POMCP(tiger, PlannerConfig(iterations=10), rng=np.random.default_rng(8))
    with pytest.raises(ValueError):
        planner.sample_action(Belief.uniform(2), 0)


def test_particle_belief_accepted_directly(tiger):
    planner = POMCP(tiger, PlannerConfig(iterations=50, belief_size=10), rng=np.random.default_rng(9))
    planner.sample_action(ParticleBelief([TIGER_LEFT] * 30), 3)
    assert len(planner.belief) == 30


def test_variable_action_model_respects_legal_actions():
    """At the left wall only 'right' is legal, so it is the only action searched."""
    model = Corridor(length=5, slip=0.1)
    planner = POMCP(model, PlannerConfig(iterations=100, belief_size=50), rng=np.random.default_rng(10))
    assert planner.sample_action(Belief.certain(5, 0), 10) == Corridor.RIGHT
    assert planner.last_search.root_visits == [100]


def test_variable_action_model_walks_right():
    model = Corridor(length=5, slip=0.1)
    probs = np.array([0.0, 0.5, 0.5, 0.0, 0.0])
    planner = POMCP(model, PlannerConfig(iterations=400, belief_size=100, exploration_constant=5.0),
                    rng=np.random.default_rng(11))
    assert planner.sample_action(Belief(probs), 10) == Corridor.RIGHT


def test_adaptive_rollout_planner(rocksample):
    cfg = PlannerConfig(iterations=200, belief_size=100, exploration_constant=20.0, rollout="adaptive")
    planner = POMCP(rocksample, cfg, rng=np.random.default_rng(12))
    action = planner.sample_action(rocksample.initial_belief(), 20)
    assert 0 <= action < rocksample.action_count()
    assert sum(planner.last_search.root_visits) == 200


def test_parallel_workers_conserve_visits(tiger):
    """Threaded simulations neither lose updates nor duplicate nodes."""
    cfg = PlannerConfig(iterations=400, belief_size=200, exploration_constant=25.0, workers=4)
    planner = POMCP(tiger, cfg, rng=np.random.default_rng(13))
    planner.sample_action(Belief.uniform(2), 8)
    assert sum(planner.last_search.root_visits) == 400
    assert planner.tree.node(planner.tree.root).N == 400
    reachable = [node_id for node_id, _ in planner.tree.iter_nodes()]
    assert len(reachable) == len(set(reachable)) == len(planner.tree)


def test_out_of_range_observation_is_rejected(tiger):
    """A bad observation index fails fast and leaves the episode intact."""
    planner = POMCP(tiger, PlannerConfig(iterations=50, belief_size=50), rng=np.random.default_rng(14))
    planner.sample_action(Belief.uniform(2), 5)
    size = len(planner.tree)
    with pytest.raises(IndexError):
        planner.observe(LISTEN, 7)
    with pytest.raises(IndexError):
        planner.observe(LISTEN, -1)
    assert planner.tree is not None
    assert len(planner.tree) == size
    assert len(planner.belief) == 50


def test_prior_follows_each_new_episode(deterministic_tiger):
    """Without an explicit prior, reinvigoration draws from the current episode's start belief."""
    cfg = PlannerConfig(iterations=50, belief_size=50)
    planner = POMCP(deterministic_tiger, cfg, rng=np.random.default_rng(15))
    planner.sample_action(Belief.certain(2, TIGER_LEFT), 5)
    planner.sample_action(Belief.certain(2, TIGER_RIGHT), 5)
    with pytest.raises(BeliefDepletionError):
        planner.observe(LISTEN, TIGER_LEFT)


def test_explicit_prior_survives_new_episodes(deterministic_tiger):
    cfg = PlannerConfig(iterations=50, belief_size=50)
    planner = POMCP(deterministic_tiger, cfg, rng=np.random.default_rng(16), prior=Belief.uniform(2))
    planner.sample_action(Belief.certain(2, TIGER_LEFT), 5)
    planner.sample_action(Belief.certain(2, TIGER_RIGHT), 5)
    belief = planner.observe(LISTEN, TIGER_LEFT)
    assert belief.probability(TIGER_LEFT) == pytest.approx(1.0)


def test_root_visits_count_only_the_latest_search(tiger):
    """After re-rooting, reported root visits exclude those carried over from the previous search."""
    cfg = PlannerConfig(iterations=300, belief_size=200)
    planner = POMCP(tiger, cfg, rng=np.random.default_rng(17))
    planner.sample_action(Belief.uniform(2), 10)
    planner.sample_action_after(LISTEN, TIGER_LEFT, 9)
    stats = planner.last_search
    assert stats.iterations == 300
    assert sum(stats.root_visits) == 300
    assert planner.tree.node(planner.tree.root).N >= 300
