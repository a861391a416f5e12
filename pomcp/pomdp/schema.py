"""
Tabular POMDP definitions.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Tuple
import numpy as np

from pomcp.pomdp.generative import GenerativeModel, FixedActionModel
from pomcp.utils.validation import validate_index, validate_stochastic


@dataclass
class POMDP(GenerativeModel, FixedActionModel):
    """
    Partially Observable Markov Decision Process given by dense tables.

    Attributes:
        S: List of state labels
        A: List of action labels
        O: List of observation labels
        T: Transition probabilities T[a][s, s'] = P(s' | s, a)
        Z: Observation probabilities Z[a][s', o] = P(o | s', a)
        R: Reward function R[a][s, s'] = reward for transition s -> s' under action a
        gamma: Discount factor
        terminal: Labels of absorbing states (no planning beyond them)
    """
    S: List[str]
    A: List[str]
    O: List[str]
    T: Dict[str, np.ndarray]  # T[a] is |S| x |S| matrix
    Z: Dict[str, np.ndarray]  # Z[a] is |S| x |O| matrix
    R: Dict[str, np.ndarray]  # R[a] is |S| x |S| matrix
    gamma: float = 0.95
    terminal: List[str] = field(default_factory=list)

    def __post_init__(self):
        """Validate POMDP structure and build sampling tables."""
        n_states = len(self.S)
        n_obs = len(self.O)

        if not 0.0 < self.gamma <= 1.0:
            raise ValueError(f"gamma must be in (0, 1], got {self.gamma}")

        for a in self.A:
            if a not in self.T:
                raise ValueError(f"Missing transition matrix for action {a}")
            if self.T[a].shape != (n_states, n_states):
                raise ValueError(
                    f"T[{a}] has shape {self.T[a].shape}, expected ({n_states}, {n_states})"
                )
            validate_stochastic(self.T[a], f"T[{a}]")

            if a not in self.Z:
                raise ValueError(f"Missing emission matrix for action {a}")
            if self.Z[a].shape != (n_states, n_obs):
                raise ValueError(
                    f"Z[{a}] has shape {self.Z[a].shape}, expected ({n_states}, {n_obs})"
                )
            validate_stochastic(self.Z[a], f"Z[{a}]")

            if a not in self.R:
                raise ValueError(f"Missing reward matrix for action {a}")
            if self.R[a].shape != (n_states, n_states):
                raise ValueError(
                    f"R[{a}] has shape {self.R[a].shape}, expected ({n_states}, {n_states})"
                )

        unknown = set(self.terminal) - set(self.S)
        if unknown:
            raise ValueError(f"Unknown terminal states: {sorted(unknown)}")

        # Stacked (A, S, S) / (A, S, O) views indexed by integers
        self._T = np.stack([np.asarray(self.T[a], dtype=np.float64) for a in self.A])
        self._Z = np.stack([np.asarray(self.Z[a], dtype=np.float64) for a in self.A])
        self._R = np.stack([np.asarray(self.R[a], dtype=np.float64) for a in self.A])
        # Rows renormalised so rng.choice accepts them as p
        self._T /= self._T.sum(axis=-1, keepdims=True)
        self._Z /= self._Z.sum(axis=-1, keepdims=True)
        self._terminal = np.zeros(n_states, dtype=bool)
        for s in self.terminal:
            self._terminal[self.S.index(s)] = True

    @property
    def n_states(self) -> int:
        return len(self.S)

    @property
    def n_observations(self) -> int:
        return len(self.O)

    def action_count(self) -> int:
        return len(self.A)

    def discount(self) -> float:
        return float(self.gamma)

    def is_terminal(self, state: int) -> bool:
        return bool(self._terminal[validate_index(state, self.n_states, "state")])

    def sample_sr(self, state: int, action: int, rng: np.random.Generator) -> Tuple[int, float]:
        s = validate_index(state, self.n_states, "state")
        a = validate_index(action, len(self.A), "action")
        s1 = int(rng.choice(self.n_states, p=self._T[a, s]))
        return s1, float(self._R[a, s, s1])

    def sample_sor(self, state: int, action: int, rng: np.random.Generator) -> Tuple[int, int, float]:
        s1, reward = self.sample_sr(state, action, rng)
        o = int(rng.choice(self.n_observations, p=self._Z[action, s1]))
        return s1, o, reward

    def transition_matrix(self, action: int) -> np.ndarray:
        """T[a] as an (S, S) array, by action index."""
        return self._T[validate_index(action, len(self.A), "action")]

    def observation_matrix(self, action: int) -> np.ndarray:
        """Z[a] as an (S, O) array, by action index."""
        return self._Z[validate_index(action, len(self.A), "action")]
