"""
Episode simulation: the planner acting against a sampled environment.
"""

from typing import Any, Dict, Optional
import numpy as np
import pandas as pd

from pomcp.pomdp.belief import Belief
from pomcp.pomdp.config import PlannerConfig
from pomcp.pomdp.errors import BeliefDepletionError
from pomcp.pomdp.generative import GenerativeModel
from pomcp.pomdp.planner import POMCP
from pomcp.utils.logging_utils import get_logger

logger = get_logger(__name__)


def run_episode(
    model: GenerativeModel,
    start_belief: Belief,
    config: PlannerConfig,
    steps: int = 20,
    true_state: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
) -> Dict[str, Any]:
    """
    Run one episode of POMCP against the model acting as environment.

    Args:
        model: Generative model (also used as the environment)
        start_belief: Initial belief handed to the planner
        config: Planner options
        steps: Number of real steps
        true_state: Hidden starting state (if None, sample from belief)
        rng: Random number generator

    Returns:
        Dict with keys:
            - total_reward: Undiscounted cumulative reward
            - discounted_reward: Discounted cumulative reward
            - action_history: Actions taken
            - observation_history: Observations received
            - state_history: True states (including the start)
            - reward_history: Step rewards
            - simulations: Simulations run per decision
            - depleted: Whether the episode ended on belief depletion
    """
    if rng is None:
        rng = np.random.default_rng(42)

    env_rng, planner_rng = rng.spawn(2)
    planner = POMCP(model, config, rng=planner_rng)

    state = start_belief.sample(env_rng) if true_state is None else int(true_state)

    action_history = []
    observation_history = []
    state_history = [state]
    reward_history = []
    simulations = []
    total_reward = 0.0
    discounted_reward = 0.0
    weight = 1.0
    depleted = False

    action = planner.sample_action(start_belief, steps)
    for t in range(steps, 0, -1):
        simulations.append(planner.last_search.iterations)
        action_history.append(action)

        state, observation, reward = model.sample_sor(state, action, env_rng)
        observation_history.append(observation)
        state_history.append(state)
        reward_history.append(reward)
        total_reward += reward
        discounted_reward += weight * reward
        weight *= model.discount()

        if model.is_terminal(state) or t == 1:
            break

        try:
            action = planner.sample_action_after(action, observation, t - 1)
        except BeliefDepletionError as e:
            logger.error(f"Episode aborted: {e}")
            depleted = True
            break

    return {
        "total_reward": total_reward,
        "discounted_reward": discounted_reward,
        "action_history": action_history,
        "observation_history": observation_history,
        "state_history": state_history,
        "reward_history": reward_history,
        "simulations": simulations,
        "depleted": depleted,
    }


def run_episodes(
    model: GenerativeModel,
    start_belief: Belief,
    config: PlannerConfig,
    episodes: int,
    steps: int,
    seed: int,
) -> pd.DataFrame:
    """
    Run a batch of independently seeded episodes.

    Returns:
        DataFrame with one row per episode
    """
    rows = []
    for rng in np.random.default_rng(seed).spawn(episodes):
        rows.append(run_episode(model, start_belief, config, steps=steps, rng=rng))

    df = pd.DataFrame(rows)
    df.insert(0, "episode", range(len(df)))
    df["steps"] = df["action_history"].apply(len)
    df["mean_simulations"] = df["simulations"].apply(lambda s: float(np.mean(s)) if s else 0.0)
    logger.info(
        f"Ran {episodes} episodes: mean reward {df['total_reward'].mean():.3f}, "
        f"depleted {int(df['depleted'].sum())}"
    )
    return df
