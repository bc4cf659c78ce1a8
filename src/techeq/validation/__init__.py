"""Validation and sanity checks for techeq scenarios."""

from .sanity_checks import SanityChecker, ValidationWarning, validate_scenario_results

__all__ = [
    "SanityChecker",
    "ValidationWarning",
    "validate_scenario_results"
]
