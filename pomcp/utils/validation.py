"""
Precondition checks shared by models, beliefs and the planner.

Violations are programming errors in the caller: they raise immediately and
are never retried.
"""

from typing import Optional
import numpy as np
from pomcp.utils.logging_utils import get_logger

logger = get_logger(__name__)


def validate_index(value: int, upper: int, kind: str = "index") -> int:
    """
    Check that an integer index lies in [0, upper).

    Args:
        value: Index to check
        upper: Exclusive upper bound
        kind: Name used in the error message (state, action, observation)

    Returns:
        The index as a plain int

    Raises:
        IndexError: If the index is out of range
    """
    idx = int(value)
    if idx < 0 or idx >= upper:
        raise IndexError(f"{kind} {idx} out of range [0, {upper})")
    return idx


def validate_probability_vector(
    probs: np.ndarray,
    size: Optional[int] = None,
    atol: float = 1e-6,
) -> np.ndarray:
    """
    Validate a discrete probability vector.

    Args:
        probs: Candidate vector
        size: Expected length (optional)
        atol: Tolerance on the normalisation check

    Returns:
        The vector as a float64 array

    Raises:
        ValueError: If the vector is not 1-D, has negative entries or does not sum to 1
    """
    arr = np.asarray(probs, dtype=np.float64)
    if arr.ndim != 1 or arr.size == 0:
        raise ValueError(f"Probability vector must be 1-D and non-empty, got shape {arr.shape}")
    if size is not None and arr.size != size:
        raise ValueError(f"Probability vector has length {arr.size}, expected {size}")
    if np.any(arr < 0):
        raise ValueError("Probability vector contains negative entries")
    if not np.isclose(arr.sum(), 1.0, atol=atol):
        raise ValueError(f"Probability vector sums to {arr.sum():.6f}, expected 1")

    logger.debug(f"Probability vector validation passed: {arr.size} entries")
    return arr


def validate_stochastic(matrix: np.ndarray, name: str, atol: float = 1e-6) -> None:
    """
    Check that the last axis of a tensor holds probability distributions.

    Raises:
        ValueError: If any row is negative or does not sum to 1
    """
    if np.any(matrix < 0):
        raise ValueError(f"{name} contains negative probabilities")
    if not np.allclose(matrix.sum(axis=-1), 1.0, atol=atol):
        raise ValueError(f"{name} rows do not sum to 1")
