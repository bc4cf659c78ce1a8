"""Price-responsive supply technology."""

from typing import Dict, Optional

from ..config.schema import TechnologyConfig
from ..engine.context import CalcContext
from ..land.allocator import LandAllocator
from .base import TechnologyCore


class GenericTechnology:
    """Supply curve ``base_output * growth * (price / base_price) ** elasticity``."""

    def __init__(self, config: TechnologyConfig, year: int, region: str, sector: str):
        self.name = config.name
        self.year = year
        self.core = TechnologyCore(config, year, region, sector)
        self.base_output = config.base_output
        self.base_price = config.base_price
        self.supply_elasticity = config.supply_elasticity
        self.output_growth = config.output_growth

    def complete_init(self, sector_info: Dict[str, float], land_allocator: Optional[LandAllocator],
                      context: CalcContext):
        pass

    def init_calc(self, context: CalcContext, period: int):
        pass

    def calc_share(self, context: CalcContext, period: int):
        self.core.share = 1.0

    def supply_at(self, price: float, years_elapsed: int) -> float:
        """Output at a price, ``years_elapsed`` after the first model year."""
        growth = (1.0 + self.output_growth) ** years_elapsed
        return self.base_output * growth * (max(price, 0.0) / self.base_price) ** self.supply_elasticity

    def production(self, context: CalcContext, period: int):
        core = self.core
        marketplace = context.marketplace
        price = marketplace.get_price(core.sector, core.region, period)
        net_price = price - core.ghg_cost(context, period)
        core.output = self.supply_at(net_price, self.year - context.modeltime.start_year)
        marketplace.add_to_supply(core.sector, core.region, core.output, period)
        core.post_input_demands(context, period)
        core.calc_emissions()

    def debug_fields(self) -> Dict[str, float]:
        return self.core.debug_fields()
