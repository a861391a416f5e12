"""POMCP online planning library."""
