"""Land-based crop production technology."""

from typing import Dict, Optional

from ..config.schema import TechnologyConfig
from ..engine.context import CalcContext
from ..land.allocator import LandAllocator
from .base import LandProductionCore, TechnologyCore


class FoodProductionTechnology:
    """Profit-based producer whose output is land allocated times yield.

    The technology sets its profit rate into the land allocator; the amount
    of land it gets, and hence its output, is decided there.
    """

    def __init__(self, config: TechnologyConfig, year: int, region: str, sector: str):
        self.name = config.name
        self.year = year
        self.core = TechnologyCore(config, year, region, sector)
        self.land = LandProductionCore(config, year)
        self.variable_cost = config.variable_cost

    def complete_init(self, sector_info: Dict[str, float], land_allocator: Optional[LandAllocator],
                      context: CalcContext):
        """
        Attach the regional land allocator and push calibration data.

        Args:
            sector_info: Sector level values
            land_allocator: Regional land allocator (not owned)
            context: Calculation context
        """
        self.land.attach(land_allocator, context)
        self.set_cal_land_values()

    def set_cal_land_values(self):
        """Push calibrated land and observed yield for this vintage's period."""
        calibration = self.land.calibration
        if calibration is None:
            return
        self.land.set_cal_values(calibration.production / calibration.yield_, calibration.yield_,
                                 self.land.period)

    def init_calc(self, context: CalcContext, period: int):
        self.land.apply_ag_prod_change(period)
        self.set_cal_land_values()

    def calc_profit_rate(self, context: CalcContext, good: str, period: int) -> float:
        return self.core.profit_rate(context, good, self.variable_cost, period)

    def calc_share(self, context: CalcContext, period: int):
        profit_rate = max(self.calc_profit_rate(context, self.core.sector, period), 0.0)
        self.land.set_intrinsic_rate(profit_rate, period)
        # Output is decided by the land allocator, not by the share
        self.core.share = 1.0

    def production(self, context: CalcContext, period: int):
        core = self.core
        self.land.calc_yield(period, period)
        core.output = self.land.supply(period)
        context.marketplace.add_to_supply(core.sector, core.region, core.output, period)
        core.input = self.land.land_allocation(period)
        core.post_input_demands(context, period)
        core.calc_emissions()

    def debug_fields(self) -> Dict[str, float]:
        fields = self.core.debug_fields()
        fields['variable-cost'] = self.variable_cost
        if self.land.cal_observed_yield is not None:
            fields['cal-observed-yield'] = self.land.cal_observed_yield
        return fields
