"""
Utility modules for the planning library.
"""

from .logging_utils import setup_logger, get_logger
from .validation import validate_index, validate_probability_vector, validate_stochastic

__all__ = [
    "setup_logger",
    "get_logger",
    "validate_index",
    "validate_probability_vector",
    "validate_stochastic",
]
