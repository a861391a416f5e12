"""
Generative model interface for online planning.

A model is plannable if it can sample transitions, rewards and observations,
flag terminal states, and report its discount together with exactly one
action-space capability: a fixed action count, or a state-dependent one.

Observations are drawn conditioned on ``(action, next_state)``. Belief
updates reuse ``sample_sor`` for their rejection test, so every model
automatically agrees with the filter.
"""

from abc import ABC, abstractmethod
from typing import Optional, Tuple
import numpy as np


class GenerativeModel(ABC):
    """Sampling contract consumed by rollouts, belief updates and the planner."""

    @abstractmethod
    def sample_sr(self, state: int, action: int, rng: np.random.Generator) -> Tuple[int, float]:
        """Sample (next_state, reward)."""

    @abstractmethod
    def sample_sor(self, state: int, action: int, rng: np.random.Generator) -> Tuple[int, int, float]:
        """Sample (next_state, observation, reward)."""

    @abstractmethod
    def is_terminal(self, state: int) -> bool:
        """Terminal states are absorbing."""

    @abstractmethod
    def discount(self) -> float:
        """Discount factor in (0, 1]."""

    @property
    def n_observations(self) -> Optional[int]:
        """Number of observations, or None when the model does not enumerate them."""
        return None


class FixedActionModel(ABC):
    """Capability: every state allows actions ``0 .. action_count() - 1``."""

    @abstractmethod
    def action_count(self) -> int:
        ...


class VariableActionModel(ABC):
    """Capability: the legal actions in ``state`` are ``0 .. action_count_at(state) - 1``."""

    @abstractmethod
    def action_count_at(self, state: int) -> int:
        ...


class FixedActionSpace:
    """Action enumeration for fixed-action models."""

    def __init__(self, n_actions: int):
        if n_actions < 1:
            raise ValueError(f"Model must expose at least one action, got {n_actions}")
        self.n_actions = int(n_actions)

    def count(self, state: int) -> int:
        return self.n_actions

    def sample(self, state: int, rng: np.random.Generator) -> int:
        return int(rng.integers(self.n_actions))


class StateActionSpace:
    """Action enumeration for variable-action models; polls the model per state."""

    def __init__(self, model: VariableActionModel):
        self.model = model

    def count(self, state: int) -> int:
        return int(self.model.action_count_at(state))

    def sample(self, state: int, rng: np.random.Generator) -> int:
        return int(rng.integers(self.count(state)))


def action_space_for(model: GenerativeModel):
    """
    Resolve the action-enumeration strategy for a model, once.

    Raises:
        TypeError: If the model exposes neither capability, or both
    """
    fixed = isinstance(model, FixedActionModel)
    variable = isinstance(model, VariableActionModel)
    if fixed == variable:
        raise TypeError(
            f"{type(model).__name__} must implement exactly one of "
            "FixedActionModel or VariableActionModel"
        )
    if fixed:
        return FixedActionSpace(model.action_count())
    return StateActionSpace(model)


def can_perturb(model: GenerativeModel) -> bool:
    """
    Whether the model offers ``perturb(state, action, observation, rng)`` for
    particle reinvigoration. The hook returns a nearby state that could have
    produced ``observation`` after ``action``, or None if it found none.
    """
    return callable(getattr(model, "perturb", None))
