"""Pydantic schema for scenario configuration validation."""

import hashlib
import json
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ModeltimeConfig(BaseModel):
    """Model period definition."""
    years: List[int] = Field(min_length=2, description="Model years, one per period")
    final_calibration_year: Optional[int] = Field(
        default=None,
        description="Last year with calibration data (defaults to the first model year)"
    )

    @field_validator("years")
    @classmethod
    def validate_increasing(cls, v):
        """Years must be strictly increasing."""
        for earlier, later in zip(v, v[1:]):
            if later <= earlier:
                raise ValueError(f"Model years must be strictly increasing, got {earlier} then {later}")
        return v

    @model_validator(mode="after")
    def validate_calibration_year(self):
        """Final calibration year must be a model year."""
        if self.final_calibration_year is not None and self.final_calibration_year not in self.years:
            raise ValueError(
                f"final_calibration_year {self.final_calibration_year} is not a model year"
            )
        return self


class SolverSettings(BaseModel):
    """Bisection / Newton-Raphson solver parameters."""
    tolerance: float = Field(default=1e-3, gt=0, description="Relative excess demand tolerance")
    absolute_tolerance: float = Field(default=1e-6, ge=0, description="Absolute excess demand tolerance")
    max_trials: int = Field(default=400, gt=0, description="Maximum World evaluations per period")
    bracket_factor: float = Field(default=2.0, gt=1, description="Price multiplier while bracketing")
    derivative_step: float = Field(default=1e-4, gt=0, description="Relative price perturbation for derivatives")
    min_derivative: float = Field(default=1e-10, gt=0, description="Smallest usable derivative magnitude")
    min_price: float = Field(default=1e-6, gt=0, description="Price below which markets bracket against zero")
    min_bracket_width: float = Field(
        default=1e-9, gt=0,
        description="Relative bracket width below which an unsolved market is bracketed again"
    )
    max_line_search: int = Field(default=3, ge=0, description="Damped Newton steps tried after a rejected step")


class GhgConfig(BaseModel):
    """Greenhouse gas emitted by a technology."""
    name: str
    emissions_coefficient: float = Field(ge=0, description="Emissions per unit of driver")
    driver: Literal["output", "input"] = Field(default="output", description="Quantity the coefficient applies to")


class CalibrationPoint(BaseModel):
    """Calibration data for one technology vintage."""
    model_config = ConfigDict(populate_by_name=True)

    production: float = Field(gt=0, description="Calibrated production")
    yield_: float = Field(gt=0, alias="yield", description="Calibrated yield per unit land")
    future_production: Optional[float] = Field(
        default=None, ge=0,
        description="Production expected at harvest of land planted this period (forests only)"
    )


class TechnologyConfig(BaseModel):
    """Technology definition, instantiated once per model period."""
    name: str
    type: Literal["generic", "food", "forest"] = Field(default="generic")
    land_type: Optional[str] = Field(default=None, description="Land type used by land-based technologies")
    variable_cost: float = Field(default=0.0, ge=0, description="Non-land variable cost per unit output")
    ag_prod_change: float = Field(default=0.0, description="Annual yield productivity change")
    interest_rate: float = Field(default=0.02, ge=0, description="Discount rate across the rotation")
    calibration: Dict[int, CalibrationPoint] = Field(default_factory=dict, description="Calibration by year")
    inputs: Dict[str, float] = Field(default_factory=dict, description="Input good -> coefficient per unit output")
    ghgs: List[GhgConfig] = Field(default_factory=list)
    # Supply curve parameters for generic technologies
    base_output: float = Field(default=0.0, ge=0, description="Output at the base price in the first period")
    base_price: float = Field(default=1.0, gt=0, description="Reference price of the supply curve")
    supply_elasticity: float = Field(default=1.0, ge=0, description="Price elasticity of supply")
    output_growth: float = Field(default=0.0, description="Annual growth of base output")

    @model_validator(mode="after")
    def validate_land_type(self):
        """Land-based technologies need a land type."""
        if self.type in ("food", "forest") and not self.land_type:
            raise ValueError(f"Technology '{self.name}' of type {self.type} requires land_type")
        return self


class SectorConfig(BaseModel):
    """Supply sector producing one good."""
    name: str
    type: Literal["supply", "food", "forest"] = Field(default="supply")
    initial_price: float = Field(default=1.0, gt=0, description="Starting trial price")
    cal_prices: Dict[int, float] = Field(default_factory=dict, description="Observed prices by calibration year")
    rotation_period: Optional[int] = Field(default=None, gt=0, description="Years from planting to harvest")
    technologies: List[TechnologyConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_rotation(self):
        """Forest sectors carry a rotation period."""
        if self.type == "forest" and self.rotation_period is None:
            raise ValueError(f"Forest sector '{self.name}' requires rotation_period")
        return self


class DemandConfig(BaseModel):
    """Price-responsive final demand for a good."""
    good: str
    base_quantity: float = Field(ge=0, description="Quantity demanded at the base price in the base year")
    base_year: Optional[int] = Field(default=None, description="Year of base_quantity (defaults to first model year)")
    base_price: float = Field(default=1.0, gt=0)
    price_elasticity: float = Field(default=-0.5, le=0, description="Own-price elasticity")
    growth_rate: float = Field(default=0.0, description="Annual growth of base quantity")


class LandAllocatorConfig(BaseModel):
    """Regional land pool."""
    total_land: float = Field(gt=0, description="Total land available to the region")
    logit_exponent: float = Field(default=2.0, gt=0, description="Land sharing exponent")
    observed_rates: Dict[str, float] = Field(
        default_factory=lambda: {"UnmanagedLand": 1.0},
        description="Observed rental rate by land type"
    )

    @field_validator("observed_rates")
    @classmethod
    def validate_rates(cls, v):
        """Observed rates must be positive."""
        for land_type, rate in v.items():
            if rate <= 0:
                raise ValueError(f"Observed rate for {land_type} must be positive, got {rate}")
        return v


class RegionConfig(BaseModel):
    """Region with sectors, demands and a land allocator."""
    name: str
    land_allocator: Optional[LandAllocatorConfig] = None
    sectors: List[SectorConfig] = Field(default_factory=list)
    demands: List[DemandConfig] = Field(default_factory=list)
    ghg_taxes: Dict[str, Dict[int, float]] = Field(
        default_factory=dict,
        description="Emissions price by gas and year; a year without an entry keeps the previous price"
    )

    @model_validator(mode="after")
    def validate_land(self):
        """Land-based sectors need a land allocator."""
        needs_land = any(
            tech.type in ("food", "forest")
            for sector in self.sectors
            for tech in sector.technologies
        )
        if needs_land and self.land_allocator is None:
            raise ValueError(f"Region '{self.name}' has land-based technologies but no land_allocator")
        return self

    @model_validator(mode="after")
    def validate_ghg_taxes(self):
        """Taxed gases get their own market, so they cannot share a name with a good."""
        goods = {sector.name for sector in self.sectors}
        for gas, taxes in self.ghg_taxes.items():
            if gas in goods:
                raise ValueError(f"Region '{self.name}': taxed gas {gas} has the name of a sector")
            for year, tax in taxes.items():
                if tax < 0:
                    raise ValueError(f"Region '{self.name}': negative {gas} tax {tax} in {year}")
        return self


class WorldConfig(BaseModel):
    """All regions."""
    regions: List[RegionConfig] = Field(min_length=1)


class RunConfiguration(BaseModel):
    """Flags and file names for the configuration lookup."""
    bools: Dict[str, bool] = Field(default_factory=dict)
    files: Dict[str, str] = Field(default_factory=dict)


class Config(BaseModel):
    """Complete configuration for one scenario."""
    name: str = Field(default="reference")
    summary: str = Field(default="")
    modeltime: ModeltimeConfig
    solver: SolverSettings = Field(default_factory=SolverSettings)
    configuration: RunConfiguration = Field(default_factory=RunConfiguration)
    world: WorldConfig

    @model_validator(mode="after")
    def validate_forest_cal_prices(self):
        """Calibrated forest vintages back-solve their variable cost from the observed price."""
        end_year = self.modeltime.years[-1]
        for region in self.world.regions:
            for sector in region.sectors:
                if sector.type != "forest":
                    continue
                for tech in sector.technologies:
                    missing = sorted(
                        year for year in tech.calibration
                        if year in self.modeltime.years and year != end_year and year not in sector.cal_prices
                    )
                    if missing:
                        raise ValueError(
                            f"{region.name}/{sector.name}: {tech.name} is calibrated in {missing} "
                            f"without cal_prices"
                        )
        return self

    def compute_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_dict = self.model_dump()
        config_str = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()
