"""
Online POMDP planning: particle beliefs and Monte-Carlo tree search.
"""

from pomcp.pomdp.generative import (
    GenerativeModel,
    FixedActionModel,
    VariableActionModel,
    action_space_for,
)
from pomcp.pomdp.schema import POMDP
from pomcp.pomdp.config import PlannerConfig, ExperimentConfig, load_planner_config, load_experiment
from pomcp.pomdp.errors import PlanningError, BeliefDepletionError
from pomcp.pomdp.belief import Belief, ParticleBelief, belief_update, update_particles, reinvigorate
from pomcp.pomdp.rollout import rollout, adaptive_rollout, make_rollout
from pomcp.pomdp.tree import SearchTree
from pomcp.pomdp.planner import POMCP
from pomcp.pomdp.simulate import run_episode, run_episodes
from pomcp.pomdp.viz import export_dot_tree

__all__ = [
    "GenerativeModel",
    "FixedActionModel",
    "VariableActionModel",
    "action_space_for",
    "POMDP",
    "PlannerConfig",
    "ExperimentConfig",
    "load_planner_config",
    "load_experiment",
    "PlanningError",
    "BeliefDepletionError",
    "Belief",
    "ParticleBelief",
    "belief_update",
    "update_particles",
    "reinvigorate",
    "rollout",
    "adaptive_rollout",
    "make_rollout",
    "SearchTree",
    "POMCP",
    "run_episode",
    "run_episodes",
    "export_dot_tree",
]
