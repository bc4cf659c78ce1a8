"""Shared technology state and the capability every technology variant implements."""

from typing import Dict, List, Optional, Protocol

from ..config.schema import GhgConfig, TechnologyConfig
from ..engine.context import CalcContext
from ..land.allocator import UNMANAGED_LAND, LandAllocator


class ProducibleTechnology(Protocol):
    """Per-vintage technology driven by its sector."""
    name: str
    year: int
    core: 'TechnologyCore'

    def complete_init(self, sector_info: Dict[str, float], land_allocator: Optional[LandAllocator],
                      context: CalcContext) -> None:
        ...

    def init_calc(self, context: CalcContext, period: int) -> None:
        ...

    def calc_share(self, context: CalcContext, period: int) -> None:
        ...

    def production(self, context: CalcContext, period: int) -> None:
        ...

    def debug_fields(self) -> Dict[str, float]:
        ...


class TechnologyCore:
    """Input, output and emissions bookkeeping shared by all technology variants."""

    def __init__(self, config: TechnologyConfig, year: int, region: str, sector: str):
        self.name = config.name
        self.year = year
        self.region = region
        self.sector = sector
        self.inputs: Dict[str, float] = dict(config.inputs)
        self.ghgs: List[GhgConfig] = list(config.ghgs)
        self.output = 0.0
        self.input = 0.0
        self.share = 0.0
        self.emissions: Dict[str, float] = {}

    def input_cost(self, context: CalcContext, period: int) -> float:
        """Cost of the non-land inputs per unit output."""
        return sum(
            coefficient * context.marketplace.get_price(good, self.region, period)
            for good, coefficient in self.inputs.items()
        )

    def ghg_cost(self, context: CalcContext, period: int) -> float:
        """Emissions cost per unit output for gases with a priced market in the region."""
        marketplace = context.marketplace
        return sum(
            ghg.emissions_coefficient * marketplace.get_price(ghg.name, self.region, period)
            for ghg in self.ghgs
            if ghg.driver == "output" and marketplace.has_market(ghg.name, self.region)
        )

    def profit_rate(self, context: CalcContext, good: str, variable_cost: float, period: int) -> float:
        """Price of ``good`` less variable, input and emissions costs, per unit output. Can be negative."""
        price = context.marketplace.get_price(good, self.region, period)
        return price - variable_cost - self.input_cost(context, period) - self.ghg_cost(context, period)

    def post_input_demands(self, context: CalcContext, period: int):
        """Add input demand for the current output to the input markets."""
        for good, coefficient in self.inputs.items():
            context.marketplace.add_to_demand(good, self.region, coefficient * self.output, period)

    def calc_emissions(self):
        """Emissions of each gas from the current output or input."""
        self.emissions = {
            ghg.name: ghg.emissions_coefficient * (self.output if ghg.driver == "output" else self.input)
            for ghg in self.ghgs
        }

    def debug_fields(self) -> Dict[str, float]:
        fields = {
            'year': self.year,
            'output': self.output,
            'input': self.input,
            'share': self.share,
        }
        for gas, value in self.emissions.items():
            fields[f'emissions-{gas}'] = value
        return fields


class LandProductionCore:
    """Land and yield access shared by the land-based technology variants.

    Holds a reference to the regional land allocator, which the region owns.
    One leaf per product is registered by the vintage of the first model year.
    """

    def __init__(self, config: TechnologyConfig, year: int):
        self.product = config.name
        self.land_type = config.land_type
        self.year = year
        self.ag_prod_change = config.ag_prod_change
        self.calibration = config.calibration.get(year)
        self.cal_observed_yield: Optional[float] = None
        self.allocator: Optional[LandAllocator] = None
        self.context: Optional[CalcContext] = None

    @property
    def period(self) -> int:
        """Model period of the vintage."""
        return self.context.modeltime.yr_to_per(self.year)

    def attach(self, land_allocator: Optional[LandAllocator], context: CalcContext, rotation_steps: int = 0):
        """
        Store the allocator and context and register the product's land usage.

        Raises:
            ValueError: If the region has no land allocator
        """
        if land_allocator is None:
            raise ValueError(f"Technology '{self.product}' needs a land allocator")
        self.allocator = land_allocator
        self.context = context
        if self.year == context.modeltime.start_year:
            land_allocator.add_land_usage(self.land_type, self.product, rotation_steps)

    def set_cal_values(self, land: float, cal_yield: float, index: int):
        """Push calibrated land and observed yield for an index period."""
        period = self.period
        self.allocator.set_cal_land_allocation(self.land_type, self.product, land, index, period)
        self.allocator.set_cal_observed_yield(self.land_type, self.product, cal_yield, index)
        if index == period:
            self.cal_observed_yield = cal_yield

    def apply_ag_prod_change(self, period: int):
        # Calibration years are observed, productivity change applies afterwards
        if self.year > self.context.modeltime.final_calibration_year:
            self.allocator.apply_ag_prod_change(self.land_type, self.product, self.ag_prod_change, period)

    def observed_rate(self, period: int) -> float:
        """Observed rental rate of unmanaged land."""
        return self.allocator.get_cal_ave_observed_rate(UNMANAGED_LAND, period)

    def set_intrinsic_rate(self, profit_rate: float, period: int):
        self.allocator.set_intrinsic_rate(self.land_type, self.product, profit_rate, period)

    def calc_yield(self, harvest_period: int, period: int):
        self.allocator.calc_yield(self.land_type, self.product, harvest_period, period)

    def land_allocation(self, period: int) -> float:
        return self.allocator.get_land_allocation(self.land_type, self.product, period)

    def supply(self, period: int) -> float:
        """Land allocated at an index period times its yield."""
        return self.land_allocation(period) * self.allocator.get_yield(self.land_type, self.product, period)
