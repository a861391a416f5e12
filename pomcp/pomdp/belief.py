"""
Belief representations and belief updates.

Two forms are supported: an exact probability vector over states, and an
unweighted particle set. The particle form is what the online planner tracks;
the exact form serves small problems and seeds the particle form.
"""

from typing import Iterable, List, Optional, Sequence, Union
import numpy as np

from pomcp.pomdp.errors import BeliefDepletionError
from pomcp.pomdp.generative import GenerativeModel, can_perturb
from pomcp.pomdp.schema import POMDP
from pomcp.utils.logging_utils import get_logger
from pomcp.utils.validation import validate_index, validate_probability_vector

logger = get_logger(__name__)


class Belief:
    """Exact discrete belief: a normalised probability vector over states."""

    def __init__(self, probabilities: Sequence[float]):
        probs = validate_probability_vector(np.asarray(probabilities))
        self.probabilities = probs / probs.sum()

    @classmethod
    def uniform(cls, n_states: int) -> "Belief":
        return cls(np.full(n_states, 1.0 / n_states))

    @classmethod
    def certain(cls, n_states: int, state: int) -> "Belief":
        probs = np.zeros(n_states)
        probs[validate_index(state, n_states, "state")] = 1.0
        return cls(probs)

    @property
    def size(self) -> int:
        return int(self.probabilities.size)

    def sample(self, rng: np.random.Generator) -> int:
        """Draw a state from the categorical distribution."""
        return int(rng.choice(self.size, p=self.probabilities))

    def update(self, pomdp: POMDP, action: int, observation: int) -> "Belief":
        """Exact Bayes filter (tabular models only); see :func:`belief_update`."""
        return Belief(belief_update(pomdp, self.probabilities, action, observation))

    def __repr__(self) -> str:
        return f"Belief({np.array2string(self.probabilities, precision=3)})"


def belief_update(
    pomdp: POMDP,
    belief: np.ndarray,
    action: int,
    observation: int,
) -> np.ndarray:
    """
    Update belief state: b' ∝ Z[a][:,o] * (T[a].T @ b)

    Args:
        pomdp: Tabular POMDP model
        belief: Current belief vector (|S|,)
        action: Action index taken
        observation: Observation index received

    Returns:
        Updated belief vector (normalized)

    Raises:
        BeliefDepletionError: If the observation has zero probability under the belief
    """
    validate_index(observation, pomdp.n_observations, "observation")

    # First: predict next belief: T[a].T @ b
    predicted_belief = pomdp.transition_matrix(action).T @ belief

    # Second: weight with observation likelihood Z[a][:,o]
    new_belief = pomdp.observation_matrix(action)[:, observation] * predicted_belief

    norm = new_belief.sum()
    if norm < 1e-12:
        logger.error(f"Observation {observation} impossible after action {action}")
        raise BeliefDepletionError(action, observation, attempts=0)

    return new_belief / norm


class ParticleBelief:
    """Unweighted particle approximation of a belief (K >= 1 states)."""

    def __init__(self, particles: Iterable[int]):
        self.particles = np.asarray(list(particles), dtype=np.int64)
        if self.particles.ndim != 1 or self.particles.size == 0:
            raise ValueError("ParticleBelief needs at least one particle")
        if np.any(self.particles < 0):
            raise ValueError("Particles must be non-negative state indices")

    @classmethod
    def from_belief(cls, belief: Belief, k: int, rng: np.random.Generator) -> "ParticleBelief":
        """Draw ``k`` i.i.d. particles from an exact belief."""
        if k < 1:
            raise ValueError(f"Particle count must be positive, got {k}")
        return cls(rng.choice(belief.size, size=k, p=belief.probabilities))

    def __len__(self) -> int:
        return int(self.particles.size)

    def sample(self, rng: np.random.Generator) -> int:
        return int(self.particles[rng.integers(self.particles.size)])

    def distribution(self, n_states: int) -> np.ndarray:
        """Empirical state distribution of the particle set."""
        return np.bincount(self.particles, minlength=n_states)[:n_states] / self.particles.size

    def probability(self, state: int) -> float:
        return float(np.mean(self.particles == state))

    def __repr__(self) -> str:
        return f"ParticleBelief(k={len(self)})"


BeliefLike = Union[Belief, ParticleBelief]


def as_particles(belief: BeliefLike, k: int, rng: np.random.Generator) -> ParticleBelief:
    """Convert an exact belief to ``k`` particles; particle beliefs pass through."""
    if isinstance(belief, ParticleBelief):
        return belief
    if isinstance(belief, Belief):
        return ParticleBelief.from_belief(belief, k, rng)
    raise TypeError(f"Unsupported belief type: {type(belief).__name__}")


def update_particles(
    model: GenerativeModel,
    particles: ParticleBelief,
    action: int,
    observation: int,
    target: int,
    rng: np.random.Generator,
    max_attempts: int,
    seed_particles: Sequence[int] = (),
) -> List[int]:
    """
    Rejection-sampling particle filter step.

    Draws a particle, simulates ``action`` from it, and keeps the next state
    only if the simulated observation equals ``observation``. Stops once
    ``target`` particles are held or ``max_attempts`` draws were made.

    Args:
        model: Generative model
        particles: Belief before the step
        action: Real action taken
        observation: Real observation received
        target: Desired particle count
        rng: Random number generator
        max_attempts: Rejection-sampling budget
        seed_particles: Already-accepted states (e.g. collected by the search tree);
            a random subset of them is kept when there are more than ``target``

    Returns:
        Accepted next states (possibly fewer than ``target``, possibly empty)
    """
    seeds = list(seed_particles)
    if len(seeds) > target:
        keep = rng.choice(len(seeds), size=target, replace=False)
        accepted = [int(seeds[i]) for i in keep]
    else:
        accepted = seeds
    attempts = 0
    while len(accepted) < target and attempts < max_attempts:
        attempts += 1
        s1, o, _ = model.sample_sor(particles.sample(rng), action, rng)
        if o == observation:
            accepted.append(s1)

    logger.debug(
        f"Rejection update a={action} o={observation}: "
        f"{len(accepted)}/{target} particles after {attempts} attempts"
    )
    return accepted


def reinvigorate(
    model: GenerativeModel,
    accepted: List[int],
    action: int,
    observation: int,
    target: int,
    rng: np.random.Generator,
    prior: Optional[ParticleBelief] = None,
    max_attempts: int = 1000,
    rounds: int = 3,
    perturb_tries: int = 5,
) -> ParticleBelief:
    """
    Top a depleted particle set back up to ``target`` particles.

    With no accepted particles, rejection sampling is retried from ``prior``
    for up to ``rounds`` rounds. Survivors are then replicated, through the
    model's ``perturb`` hook when it has one, until ``target`` is reached.
    A perturbed particle must stay consistent with ``observation``; after
    ``perturb_tries`` refusals the survivor is copied unchanged.

    Raises:
        BeliefDepletionError: If no consistent particle could be produced
    """
    accepted = list(accepted)

    attempt = 0
    while not accepted and prior is not None and attempt < rounds:
        attempt += 1
        logger.warning(
            f"Belief depleted after a={action} o={observation}; "
            f"redrawing from prior (round {attempt}/{rounds})"
        )
        accepted = update_particles(model, prior, action, observation, target, rng, max_attempts)

    if not accepted:
        logger.error(f"Reinvigoration failed for a={action} o={observation}")
        raise BeliefDepletionError(action, observation, attempts=attempt)

    if len(accepted) < target:
        logger.warning(f"Reinvigorating belief: {len(accepted)} -> {target} particles")
        survivors = np.asarray(accepted, dtype=np.int64)
        picks = survivors[rng.integers(survivors.size, size=target - len(accepted))]
        if can_perturb(model):
            accepted.extend(
                _perturb_consistent(model, int(s), action, observation, rng, perturb_tries) for s in picks
            )
        else:
            accepted.extend(int(s) for s in picks)

    return ParticleBelief(accepted)


def _perturb_consistent(
    model: GenerativeModel,
    state: int,
    action: int,
    observation: int,
    rng: np.random.Generator,
    tries: int,
) -> int:
    """Perturbed copy of ``state`` that still explains ``observation``; the state itself if none is found."""
    for _ in range(tries):
        candidate = model.perturb(state, action, observation, rng)
        if candidate is not None:
            return int(candidate)
    return state
