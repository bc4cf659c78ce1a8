"""Forest production technology - plant now, harvest one rotation later.

Key Concepts:
- Land planted in period p is harvested in p + rotation_period // timestep
- Planting decisions respond to the price of the "Future" market of the good,
  discounted over the rotation
- Current output is the land planted one rotation ago times its yield, so
  current supply is inelastic and demand adjusts
- Calibration back-solves the variable cost from observed prices and yields
"""

import logging
import math
from typing import Dict, Optional

from ..config.schema import TechnologyConfig
from ..engine.context import CalcContext
from ..engine.modeltime import Modeltime
from ..land.allocator import LandAllocator
from .base import LandProductionCore, TechnologyCore

logger = logging.getLogger(__name__)

FUTURE_PREFIX = "Future"


def get_future_market(good: str) -> str:
    """Name of the market trading a good at harvest time."""
    return FUTURE_PREFIX + good


class ForestProductionTechnology:
    """Land-based producer with a multi-period rotation."""

    def __init__(self, config: TechnologyConfig, year: int, region: str, sector: str):
        self.name = config.name
        self.year = year
        self.core = TechnologyCore(config, year, region, sector)
        self.land = LandProductionCore(config, year)
        self.variable_cost = config.variable_cost
        self.interest_rate = config.interest_rate
        self.rotation_period: Optional[int] = None

    def _rotation_steps(self, modeltime: Modeltime) -> int:
        return self.rotation_period // modeltime.timestep(modeltime.yr_to_per(self.year))

    def rotation_steps(self) -> int:
        """Model periods between planting and harvest."""
        return self._rotation_steps(self.land.context.modeltime)

    def complete_init(self, sector_info: Dict[str, float], land_allocator: Optional[LandAllocator],
                      context: CalcContext):
        """
        Attach the land allocator, read the rotation period and push calibration data.

        Args:
            sector_info: Sector level values; must contain ``rotation_period``
            land_allocator: Regional land allocator (not owned)
            context: Calculation context

        Raises:
            KeyError: If the sector does not define a rotation period
        """
        if 'rotation_period' not in sector_info:
            raise KeyError(f"Sector '{self.core.sector}' does not define rotation_period")
        self.rotation_period = int(sector_info['rotation_period'])
        self.land.attach(land_allocator, context, self._rotation_steps(context.modeltime))
        self.set_cal_land_values()

    def set_cal_land_values(self):
        """
        Push calibrated land and yields for every period of the first rotation.

        Production is interpolated linearly from calibrated to future
        production, yield grows by the productivity change. Values depend
        only on the calibration inputs, so repeated calls push the same data.
        """
        land = self.land
        calibration = land.calibration
        if calibration is None:
            return
        period = land.period
        timestep = land.context.modeltime.timestep(period)
        n_steps = self.rotation_steps() if calibration.future_production is not None else 0

        for i in range(period, period + n_steps + 1):
            production = calibration.production
            if n_steps:
                production += (calibration.future_production - calibration.production) * (i - period) / n_steps
            cal_yield = calibration.yield_ * (1.0 + land.ag_prod_change) ** (timestep * (i - period))
            land.set_cal_values(production / cal_yield, cal_yield, i)

    def init_calc(self, context: CalcContext, period: int):
        """
        Per-period setup: productivity change, calibration and variable cost.

        Calibrated vintages back-solve the variable cost from ``calPrice`` and
        pass it to the next period as ``calVarCost``. Other vintages adopt the
        ``calVarCost`` left by the previous vintage and pass it on.
        """
        land = self.land
        land.apply_ag_prod_change(period)
        self.set_cal_land_values()

        region = self.core.region
        marketplace = context.marketplace
        is_end_year = self.year == context.modeltime.end_year

        if land.cal_observed_yield is not None and not is_end_year:
            cal_price = marketplace.get_market_info(self.core.sector, region, period, True).get_double(
                'calPrice', must_exist=True
            )
            profit_factor = land.observed_rate(period) / self.calc_discount_factor()
            cal_var_cost = cal_price - profit_factor / land.cal_observed_yield
            if cal_var_cost > 0:
                self.variable_cost = cal_var_cost
            else:
                logger.debug("Calibration price for %s in %s is too low by %.6g; keeping variable cost %.6g",
                             self.name, region, -cal_var_cost, self.variable_cost)
            marketplace.get_market_info(self.name, region, period + 1, True).set_double(
                'calVarCost', self.variable_cost
            )
            if land.calibration.future_production is not None:
                info = marketplace.get_market_info(get_future_market(self.core.sector), region, period, True)
                existing = max(info.get_double('calSupply'), 0.0)
                info.set_double('calSupply', existing + land.calibration.future_production)
        else:
            cal_var_cost = marketplace.get_market_info(self.name, region, period, True).get_double('calVarCost')
            if not is_end_year:
                marketplace.get_market_info(self.name, region, period + 1, True).set_double(
                    'calVarCost', cal_var_cost
                )
            if cal_var_cost > 0:
                self.variable_cost = cal_var_cost

    def calc_discount_factor(self) -> float:
        """
        Annuity factor converting a harvest-time value into a per-year rate.

        Returns:
            r / ((1 + r) ** R - 1), or 1 / R when r is zero
        """
        r = self.interest_rate
        if abs(r) < 1e-12:
            return 1.0 / self.rotation_period
        return r / math.expm1(self.rotation_period * math.log1p(r))

    def get_harvest_period(self, period: int) -> int:
        return period + self.rotation_steps()

    def calc_profit_rate(self, context: CalcContext, good: str, period: int) -> float:
        """Net present value of profit per unit output at the price of ``good``."""
        return self.core.profit_rate(context, good, self.variable_cost, period) * self.calc_discount_factor()

    def calc_share(self, context: CalcContext, period: int):
        future_market = get_future_market(self.core.sector)
        profit_rate = max(self.calc_profit_rate(context, future_market, period), 0.0)
        self.land.set_intrinsic_rate(profit_rate, period)
        self.core.share = 1.0

    def production(self, context: CalcContext, period: int):
        """
        Post future supply for land planted now and current supply for land planted earlier.

        Args:
            context: Calculation context
            period: Model period
        """
        core = self.core
        land = self.land
        marketplace = context.marketplace
        harvest_period = self.get_harvest_period(period)
        land.calc_yield(harvest_period, period)

        # Harvests past the final period have no market
        if harvest_period < context.modeltime.max_period:
            future_supply = land.supply(harvest_period)
            marketplace.add_to_supply(get_future_market(core.sector), core.region, future_supply, period)

        core.output = land.supply(period)
        marketplace.add_to_supply(core.sector, core.region, core.output, period)
        core.input = land.land_allocation(period)
        core.post_input_demands(context, period)
        core.calc_emissions()

    def debug_fields(self) -> Dict[str, float]:
        fields = self.core.debug_fields()
        fields['variable-cost'] = self.variable_cost
        if self.land.cal_observed_yield is not None:
            fields['cal-observed-yield'] = self.land.cal_observed_yield
        fields['rotation-period'] = self.rotation_period
        fields['interest-rate'] = self.interest_rate
        return fields
