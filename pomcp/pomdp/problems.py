"""
Small problems for exercising the planner.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import numpy as np

from pomcp.pomdp.belief import Belief
from pomcp.pomdp.generative import FixedActionModel, GenerativeModel, VariableActionModel
from pomcp.pomdp.schema import POMDP
from pomcp.utils.validation import validate_index

# Tiger indices
TIGER_LEFT, TIGER_RIGHT = 0, 1
LISTEN, OPEN_LEFT, OPEN_RIGHT = 0, 1, 2


def make_tiger_problem(listen_accuracy: float = 0.85, gamma: float = 0.95) -> POMDP:
    """
    Two doors, one hides a tiger. Listening costs 1 and hears the tiger on
    the correct side with probability ``listen_accuracy``. Opening the
    treasure door pays 10, the tiger door costs 100; either resets the
    problem uniformly.
    """
    S = ["tiger-left", "tiger-right"]
    A = ["listen", "open-left", "open-right"]
    O = ["tiger-left", "tiger-right"]

    uniform_s = np.full((2, 2), 0.5)
    uniform_o = np.full((2, 2), 0.5)

    T = {
        "listen": np.eye(2),
        "open-left": uniform_s,
        "open-right": uniform_s,
    }
    Z = {
        "listen": np.array([
            [listen_accuracy, 1.0 - listen_accuracy],
            [1.0 - listen_accuracy, listen_accuracy],
        ]),
        "open-left": uniform_o,
        "open-right": uniform_o,
    }
    R = {
        "listen": np.full((2, 2), -1.0),
        # Rows index the state before the door opens
        "open-left": np.array([[-100.0, -100.0], [10.0, 10.0]]),
        "open-right": np.array([[10.0, 10.0], [-100.0, -100.0]]),
    }
    return POMDP(S=S, A=A, O=O, T=T, Z=Z, R=R, gamma=gamma)


class Corridor(GenerativeModel, VariableActionModel):
    """
    Walk right along a corridor to an absorbing exit.

    State is the position. Position 0 allows only ``right`` (action 0);
    elsewhere ``left`` (action 1) is also legal. Moves slip with probability
    ``slip``. Each step costs 1, reaching the exit pays ``exit_reward``.
    The observation reports whether the agent is against the left wall.
    """

    RIGHT, LEFT = 0, 1

    def __init__(self, length: int = 5, slip: float = 0.1, exit_reward: float = 10.0, gamma: float = 0.95):
        if length < 2:
            raise ValueError(f"Corridor length must be at least 2, got {length}")
        self.length = length
        self.slip = slip
        self.exit_reward = exit_reward
        self.gamma = gamma

    @property
    def n_states(self) -> int:
        return self.length

    @property
    def n_observations(self) -> int:
        return 2

    def discount(self) -> float:
        return self.gamma

    def action_count_at(self, state: int) -> int:
        return 1 if validate_index(state, self.length, "state") == 0 else 2

    def is_terminal(self, state: int) -> bool:
        return validate_index(state, self.length, "state") == self.length - 1

    def sample_sr(self, state: int, action: int, rng: np.random.Generator) -> Tuple[int, float]:
        validate_index(action, self.action_count_at(state), "action")
        if self.is_terminal(state):
            return state, 0.0
        step = 1 if action == self.RIGHT else -1
        if rng.random() < self.slip:
            step = 0
        next_state = min(max(state + step, 0), self.length - 1)
        reward = self.exit_reward if next_state == self.length - 1 else -1.0
        return next_state, reward

    def sample_sor(self, state: int, action: int, rng: np.random.Generator) -> Tuple[int, int, float]:
        next_state, reward = self.sample_sr(state, action, rng)
        return next_state, int(next_state == 0), reward

    def perturb(self, state: int, action: int, observation: int, rng: np.random.Generator) -> Optional[int]:
        """Jitter a particle by one cell, never onto the exit; None if the jitter contradicts the wall reading."""
        candidate = int(min(max(state + rng.integers(-1, 2), 0), self.length - 2))
        if int(candidate == 0) != observation:
            return None
        return candidate


class RockSample(GenerativeModel, FixedActionModel):
    """
    Rock sampling on a ``size`` x ``size`` grid.

    The state index packs the rover position and one good/bad flag per rock;
    one extra index is the absorbing exit state. Actions are north, south,
    east, west, sample, then one check per rock. Checks report good/bad with
    an accuracy that decays with distance; every other action observes
    ``none``. Leaving through the east edge pays 10; sampling a good rock
    pays 10 and spoils it; sampling anything else costs 10.
    """

    NORTH, SOUTH, EAST, WEST, SAMPLE = 0, 1, 2, 3, 4
    OBS_GOOD, OBS_BAD, OBS_NONE = 0, 1, 2

    def __init__(
        self,
        size: int = 4,
        rocks: Optional[Sequence[Tuple[int, int]]] = None,
        half_efficiency_distance: float = 20.0,
        gamma: float = 0.95,
    ):
        self.size = size
        self.rocks: List[Tuple[int, int]] = list(rocks) if rocks is not None else [(1, 0), (2, 2), (0, 3)]
        for x, y in self.rocks:
            validate_index(x, size, "rock x")
            validate_index(y, size, "rock y")
        self.half_efficiency_distance = half_efficiency_distance
        self.gamma = gamma
        self._cells = size * size
        self.exit_state = self._cells * (1 << len(self.rocks))

    @property
    def n_states(self) -> int:
        return self.exit_state + 1

    @property
    def n_observations(self) -> int:
        return 3

    def encode(self, x: int, y: int, rock_bits: int) -> int:
        return rock_bits * self._cells + y * self.size + x

    def decode(self, state: int) -> Tuple[int, int, int]:
        """(x, y, rock_bits) of a non-exit state."""
        validate_index(state, self.exit_state, "state")
        rock_bits, cell = divmod(state, self._cells)
        y, x = divmod(cell, self.size)
        return x, y, rock_bits

    def action_count(self) -> int:
        return 5 + len(self.rocks)

    def discount(self) -> float:
        return self.gamma

    def is_terminal(self, state: int) -> bool:
        return validate_index(state, self.n_states, "state") == self.exit_state

    def sample_sr(self, state: int, action: int, rng: np.random.Generator) -> Tuple[int, float]:
        validate_index(action, self.action_count(), "action")
        if self.is_terminal(state):
            return state, 0.0

        x, y, bits = self.decode(state)
        if action == self.NORTH:
            y = min(y + 1, self.size - 1)
        elif action == self.SOUTH:
            y = max(y - 1, 0)
        elif action == self.EAST:
            if x == self.size - 1:
                return self.exit_state, 10.0
            x += 1
        elif action == self.WEST:
            x = max(x - 1, 0)
        elif action == self.SAMPLE:
            rock = self._rock_at(x, y)
            if rock is None or not bits & (1 << rock):
                return state, -10.0
            return self.encode(x, y, bits & ~(1 << rock)), 10.0
        return self.encode(x, y, bits), 0.0

    def sample_sor(self, state: int, action: int, rng: np.random.Generator) -> Tuple[int, int, float]:
        next_state, reward = self.sample_sr(state, action, rng)
        if action <= self.SAMPLE or self.is_terminal(next_state):
            return next_state, self.OBS_NONE, reward

        rock = action - self.SAMPLE - 1
        x, y, bits = self.decode(next_state)
        good = bool(bits & (1 << rock))
        correct = rng.random() < self.check_accuracy(x, y, rock)
        observation = self.OBS_GOOD if good == correct else self.OBS_BAD
        return next_state, observation, reward

    def check_accuracy(self, x: int, y: int, rock: int) -> float:
        rx, ry = self.rocks[rock]
        distance = float(np.hypot(rx - x, ry - y))
        efficiency = 2.0 ** (-distance / self.half_efficiency_distance)
        return 0.5 * (1.0 + efficiency)

    def initial_belief(self, start: Optional[Tuple[int, int]] = None) -> Belief:
        """Known start cell (west edge, middle row by default), rocks uniformly good or bad."""
        x, y = start if start is not None else (0, self.size // 2)
        probs = np.zeros(self.n_states)
        n_configs = 1 << len(self.rocks)
        for bits in range(n_configs):
            probs[self.encode(x, y, bits)] = 1.0 / n_configs
        return Belief(probs)

    def _rock_at(self, x: int, y: int) -> Optional[int]:
        for i, pos in enumerate(self.rocks):
            if pos == (x, y):
                return i
        return None


def make_problem(name: str):
    """Problem factory used by configuration files."""
    if name == "tiger":
        return make_tiger_problem()
    if name == "rocksample":
        return RockSample()
    if name == "corridor":
        return Corridor()
    raise ValueError(f"Unknown problem: {name}")


def initial_belief(model) -> Belief:
    """Default starting belief for the built-in problems."""
    if isinstance(model, RockSample):
        return model.initial_belief()
    if isinstance(model, Corridor):
        probs = np.zeros(model.n_states)
        probs[: model.length - 1] = 1.0 / (model.length - 1)
        return Belief(probs)
    return Belief.uniform(model.n_states)
