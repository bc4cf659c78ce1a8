"""Scenario run loop and climate models."""

from .climate import ClimateModel, FunctionClimateModel, NullClimateModel
from .scenario import (
    Scenario,
    ScenarioNotCompletedError,
    ScenarioResult,
    ScenarioState,
    ScenarioStructureError,
)

__all__ = [
    "ClimateModel",
    "FunctionClimateModel",
    "NullClimateModel",
    "Scenario",
    "ScenarioNotCompletedError",
    "ScenarioResult",
    "ScenarioState",
    "ScenarioStructureError",
]
