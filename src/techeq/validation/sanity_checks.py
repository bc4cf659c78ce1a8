"""Sanity checks and validation for scenario inputs and run results."""

import math
from dataclasses import dataclass
from typing import List, Optional

from ..config.schema import Config
from ..simulation.scenario import ScenarioResult


@dataclass
class ValidationWarning:
    """A validation warning with severity and message."""
    severity: str  # "warning" or "error"
    category: str  # e.g., "input", "calibration", "convergence"
    message: str
    details: Optional[str] = None


class SanityChecker:
    """Run sanity checks on a scenario configuration and its results."""

    def __init__(self, config: Config):
        """Initialize with configuration."""
        self.config = config

    def check_config_inputs(self) -> List[ValidationWarning]:
        """
        Check configuration inputs for inconsistent or implausible values.

        Returns:
            List of validation warnings
        """
        warnings = []
        years = self.config.modeltime.years
        timesteps = {later - earlier for earlier, later in zip(years, years[1:])}

        if len(timesteps) > 1:
            warnings.append(ValidationWarning(
                severity="warning",
                category="input",
                message="Model timestep is not constant",
                details=f"Timesteps: {sorted(timesteps)}; harvest periods use the vintage's own timestep"
            ))

        for region in self.config.world.regions:
            supplied = {sector.name for sector in region.sectors}

            for sector in region.sectors:
                # Rotation must land on a model period
                if sector.rotation_period is not None:
                    for step in sorted(timesteps):
                        if sector.rotation_period % step != 0:
                            warnings.append(ValidationWarning(
                                severity="warning",
                                category="input",
                                message=f"{region.name}/{sector.name}: rotation period is not a multiple of the timestep",
                                details=f"Rotation {sector.rotation_period} yrs, timestep {step} yrs"
                            ))

                for year in sector.cal_prices:
                    if year not in years:
                        warnings.append(ValidationWarning(
                            severity="warning",
                            category="calibration",
                            message=f"{region.name}/{sector.name}: calibration price for {year} is not a model year",
                        ))

                for tech in sector.technologies:
                    for year in tech.calibration:
                        if year not in years:
                            warnings.append(ValidationWarning(
                                severity="warning",
                                category="calibration",
                                message=f"{region.name}/{tech.name}: calibration for {year} is not a model year",
                            ))

                    if tech.type == "forest" and tech.interest_rate == 0:
                        warnings.append(ValidationWarning(
                            severity="warning",
                            category="input",
                            message=f"{region.name}/{tech.name}: zero interest rate",
                            details="Discount factor falls back to 1 / rotation period"
                        ))

                    for good in tech.inputs:
                        if good not in supplied:
                            warnings.append(ValidationWarning(
                                severity="error",
                                category="input",
                                message=f"{region.name}/{tech.name}: input {good} has no supplying sector",
                            ))

            for demand in region.demands:
                if demand.good not in supplied:
                    warnings.append(ValidationWarning(
                        severity="error",
                        category="input",
                        message=f"{region.name}: demand for {demand.good} has no supplying sector",
                    ))

        return warnings

    def check_result(self, result: ScenarioResult) -> List[ValidationWarning]:
        """
        Check a run result for unsolved periods and invalid market values.

        Args:
            result: Scenario result

        Returns:
            List of validation warnings
        """
        warnings = []

        for solve in result.solver_history:
            if not solve.converged:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="convergence",
                    message=f"Period {solve.period} did not solve",
                    details=f"Unsolved markets: {', '.join(solve.unsolved_markets)}; "
                            f"worst relative excess {solve.max_relative_excess:.3g}"
                ))

        for record in result.market_history:
            for key in ('price', 'supply', 'demand'):
                value = record[key]
                if math.isnan(value) or math.isinf(value):
                    warnings.append(ValidationWarning(
                        severity="error",
                        category="nan",
                        message=f"Invalid {key} for {record['good']} in {record['region']}, period {record['period']}",
                        details=f"Value: {value}"
                    ))
            if record['price'] < 0:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="bounds",
                    message=f"Negative price for {record['good']} in {record['region']}, period {record['period']}",
                    details=f"Value: {record['price']:.6g}"
                ))

        return warnings


def validate_scenario_results(config: Config, result: ScenarioResult) -> List[ValidationWarning]:
    """
    Validate configuration and run results together.

    Args:
        config: Scenario configuration
        result: Scenario result

    Returns:
        List of all validation warnings
    """
    checker = SanityChecker(config)
    warnings = []
    warnings.extend(checker.check_config_inputs())
    warnings.extend(checker.check_result(result))
    return warnings
