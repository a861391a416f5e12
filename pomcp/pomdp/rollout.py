"""
Rollout estimators used to value unexpanded search-tree leaves.
"""

from collections import deque
from functools import partial
from typing import Callable, Optional
import numpy as np

from pomcp.pomdp.config import PlannerConfig
from pomcp.pomdp.generative import GenerativeModel, action_space_for

RolloutFn = Callable[[GenerativeModel, int, int, np.random.Generator], float]


def rollout(
    model: GenerativeModel,
    state: int,
    max_depth: int,
    rng: np.random.Generator,
    actions=None,
) -> float:
    """
    Discounted return of a uniformly random policy from ``state``.

    Simulates until ``max_depth`` steps have been taken or a terminal state
    is reached.

    Args:
        model: Generative model
        state: Starting state
        max_depth: Maximum number of steps
        rng: Random number generator
        actions: Pre-resolved action space (resolved from the model if None)

    Returns:
        sum_t gamma^t * r_t
    """
    actions = actions or action_space_for(model)
    gamma = model.discount()
    total, weight = 0.0, 1.0

    for _ in range(max_depth):
        state, reward = model.sample_sr(state, actions.sample(state, rng), rng)
        total += weight * reward
        if model.is_terminal(state):
            break
        weight *= gamma

    return total


def adaptive_rollout(
    model: GenerativeModel,
    state: int,
    max_depth: int,
    rng: np.random.Generator,
    min_depth: int = 10,
    window_size: int = 5,
    threshold: float = 0.01,
    actions=None,
) -> float:
    """
    Random-policy rollout that stops once discounted rewards flatten out.

    Keeps the last ``window_size`` discounted rewards. From ``min_depth`` on,
    when the window is full and the latest reward is within ``threshold`` of
    the window mean, the remaining tail is dropped. This truncation is an
    approximation: it trades a biased tail for shorter rollouts.

    With ``min_depth >= max_depth`` (or a window longer than ``max_depth``)
    the check never fires and the result equals :func:`rollout` on the same
    random stream.
    """
    actions = actions or action_space_for(model)
    gamma = model.discount()
    total, weight = 0.0, 1.0

    window: deque = deque()
    window_sum = 0.0

    for depth in range(max_depth):
        state, reward = model.sample_sr(state, actions.sample(state, rng), rng)
        discounted = weight * reward
        total += discounted

        window.append(discounted)
        window_sum += discounted
        if len(window) > window_size:
            window_sum -= window.popleft()

        if model.is_terminal(state):
            break

        # A partially filled window counts as not converged
        if depth >= min_depth and len(window) == window_size:
            if abs(window[-1] - window_sum / window_size) < threshold:
                break

        weight *= gamma

    return total


def make_rollout(config: PlannerConfig, model: Optional[GenerativeModel] = None) -> RolloutFn:
    """
    Build the rollout estimator selected by ``config.rollout``.

    The returned callable has the signature ``(model, state, max_depth, rng)``.
    Passing ``model`` pre-resolves its action space once.
    """
    actions = action_space_for(model) if model is not None else None
    if config.rollout == "adaptive":
        return partial(
            adaptive_rollout,
            min_depth=config.min_depth,
            window_size=config.window_size,
            threshold=config.threshold,
            actions=actions,
        )
    return partial(rollout, actions=actions)
