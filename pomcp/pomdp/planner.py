"""
POMCP: online Monte-Carlo tree search over a particle belief.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from pomcp.config import Config
from pomcp.pomdp.belief import (
    BeliefLike,
    ParticleBelief,
    as_particles,
    reinvigorate,
    update_particles,
)
from pomcp.pomdp.config import PlannerConfig
from pomcp.pomdp.errors import BeliefDepletionError, PlanningError
from pomcp.pomdp.generative import GenerativeModel, action_space_for
from pomcp.pomdp.rollout import make_rollout
from pomcp.pomdp.tree import SearchTree
from pomcp.utils.logging_utils import get_logger
from pomcp.utils.validation import validate_index

logger = get_logger(__name__)


@dataclass
class SearchStats:
    """
    Summary of the last search.

    ``root_visits`` counts only the simulations of this search, so it sums to
    ``iterations`` even on a re-rooted tree; ``root_values`` are the running
    means over every visit the root has seen.
    """
    iterations: int
    elapsed: float
    tree_size: int
    root_visits: List[int] = field(default_factory=list)
    root_values: List[float] = field(default_factory=list)


class _Budget:
    """Hands out simulation tickets until the iteration or wall-clock cap is hit."""

    def __init__(self, iterations: int, time_limit: Optional[float]):
        self.iterations = iterations
        self.deadline = time.perf_counter() + time_limit if time_limit else None
        self.issued = 0
        self._lock = threading.Lock()

    def claim(self) -> bool:
        with self._lock:
            if self.issued >= self.iterations:
                return False
            # The first simulation always runs so a recommendation exists
            if self.issued and self.deadline is not None and time.perf_counter() >= self.deadline:
                return False
            self.issued += 1
            return True


class POMCP:
    """
    Online planner for partially observable problems.

    Usage per episode: ``sample_action(belief, steps)`` for the first
    decision, then ``sample_action_after(action, observation, steps)`` after
    every real step.

    Args:
        model: Generative model to plan with (read-only during planning)
        config: Planner options
        rng: Random number generator threaded through every stochastic step
        prior: Belief used to redraw particles when the tracked belief is
            depleted (defaults to the start belief of each episode)
    """

    def __init__(
        self,
        model: GenerativeModel,
        config: Optional[PlannerConfig] = None,
        rng: Optional[np.random.Generator] = None,
        prior: Optional[BeliefLike] = None,
    ):
        self.model = model
        self.config = config or PlannerConfig()
        self.rng = rng if rng is not None else np.random.default_rng(Config.DEFAULT_RANDOM_SEED)
        self.actions = action_space_for(model)
        self._rollout = make_rollout(self.config, model)
        self._gamma = model.discount()
        self._fixed_prior = prior is not None
        self._prior = (
            as_particles(prior, self.config.belief_size, self.rng) if prior is not None else None
        )
        self.tree: Optional[SearchTree] = None
        self.last_search: Optional[SearchStats] = None

    @property
    def belief(self) -> ParticleBelief:
        """Particle belief at the current root."""
        if self.tree is None:
            raise PlanningError("No active episode; call sample_action(belief, ...) first")
        return ParticleBelief(self.tree.node(self.tree.root).particles)

    def sample_action(self, belief: BeliefLike, steps_remaining: int) -> int:
        """
        Start an episode from ``belief`` and recommend the first action.

        Exact beliefs are converted to ``belief_size`` particles.
        """
        horizon = self._horizon(steps_remaining)
        particles = as_particles(belief, self.config.belief_size, self.rng)
        if not self._fixed_prior:
            self._prior = particles
        self.tree = SearchTree(particles.particles.tolist())
        return self._search(horizon)

    def sample_action_after(self, action: int, observation: int, steps_remaining: int) -> int:
        """Advance with a real (action, observation) and recommend the next action."""
        horizon = self._horizon(steps_remaining)
        self.observe(action, observation)
        return self._search(horizon)

    def observe(self, action: int, observation: int) -> ParticleBelief:
        """
        Re-root the tree on the real (action, observation) and refresh the belief.

        Particles the search already collected under the new root are kept
        and topped up by rejection sampling from the old root belief. A
        depleted result is reinvigorated.

        Raises:
            IndexError: If ``observation`` is outside the model's observation range
            BeliefDepletionError: If no consistent particle can be produced;
                the episode is over and a new ``sample_action(belief, ...)`` is needed
        """
        old_belief = self.belief
        self._validate_observation(observation)
        target = self.config.belief_size

        reclaimed = self.tree.reroot(int(action), int(observation))
        root = self.tree.node(self.tree.root)
        accepted = update_particles(
            self.model, old_belief, action, observation, target, self.rng,
            max_attempts=self.config.update_budget,
            seed_particles=root.particles,
        )

        try:
            if len(accepted) < target:
                belief = reinvigorate(
                    self.model, accepted, action, observation, target, self.rng,
                    prior=self._prior,
                    max_attempts=self.config.update_budget,
                    rounds=self.config.reinvigoration_attempts,
                )
            else:
                belief = ParticleBelief(accepted)
        except BeliefDepletionError:
            self.tree = None
            raise

        root.particles = belief.particles.tolist()
        logger.debug(
            f"Re-rooted on a={action} o={observation}: reclaimed {reclaimed} nodes, "
            f"kept {len(self.tree)}, belief k={len(belief)}"
        )
        return belief

    def _validate_observation(self, observation: int) -> None:
        n_obs = self.model.n_observations
        if n_obs is not None:
            validate_index(observation, n_obs, "observation")
        elif int(observation) < 0:
            raise IndexError(f"observation {observation} must be non-negative")

    def _horizon(self, steps_remaining: int) -> int:
        if steps_remaining < 1:
            raise ValueError(f"steps_remaining must be positive, got {steps_remaining}")
        return min(int(steps_remaining), self.config.horizon)

    def _search(self, horizon: int) -> int:
        start = time.perf_counter()
        budget = _Budget(self.config.iterations, self.config.time_limit)
        particles = self.belief
        carried = self.tree.root_visits()

        if self.config.workers == 1:
            self._run_worker(budget, particles, horizon, self.rng)
        else:
            rngs = self.rng.spawn(self.config.workers)
            with ThreadPoolExecutor(max_workers=self.config.workers) as ex:
                futures = [
                    ex.submit(self._run_worker, budget, particles, horizon, r) for r in rngs
                ]
                for fut in futures:
                    fut.result()

        self.last_search = SearchStats(
            iterations=budget.issued,
            elapsed=time.perf_counter() - start,
            tree_size=len(self.tree),
            root_visits=self._visit_delta(carried).tolist(),
            root_values=self.tree.root_values().tolist(),
        )
        action = self.tree.best_action()
        logger.debug(
            f"Search: {budget.issued} simulations in {self.last_search.elapsed:.3f}s, "
            f"{len(self.tree)} nodes, visits={self.last_search.root_visits}, action={action}"
        )
        return action

    def _visit_delta(self, carried: np.ndarray) -> np.ndarray:
        """Root visits added by the current search (re-rooted trees carry earlier counts)."""
        visits = self.tree.root_visits()
        visits[: carried.size] -= carried
        return visits

    def _run_worker(
        self,
        budget: _Budget,
        particles: ParticleBelief,
        horizon: int,
        rng: np.random.Generator,
    ) -> None:
        root = self.tree.root
        while budget.claim():
            self._simulate(root, particles.sample(rng), 0, horizon, rng)

    def _simulate(self, node_id: int, state: int, depth: int, horizon: int, rng: np.random.Generator) -> float:
        """
        One simulation step from ``state`` at an observation node.

        Selects by UCB, steps the model, then either expands a new child and
        rolls out, or recurses into an existing child. Terminal next states
        contribute only their immediate reward.
        """
        n_actions = self.actions.count(state)
        self.tree.visit(node_id, n_actions)
        action = self.tree.select_action(node_id, n_actions, self.config.exploration_constant)

        next_state, observation, reward = self.model.sample_sor(state, action, rng)

        future = 0.0
        if not self.model.is_terminal(next_state) and depth + 1 < horizon:
            child_id, created = self.tree.child(node_id, action, observation, next_state)
            if created:
                future = self._rollout(self.model, next_state, horizon - depth - 1, rng)
            else:
                future = self._simulate(child_id, next_state, depth + 1, horizon, rng)

        value = reward + self._gamma * future
        self.tree.backpropagate(node_id, action, value)
        return value
