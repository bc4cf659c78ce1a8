"""Price-responsive final demand."""

from typing import Optional

from ..config.schema import DemandConfig
from ..engine.context import CalcContext
from ..engine.modeltime import Modeltime
from ..technologies import get_future_market


class FinalDemand:
    """Constant-elasticity demand for one good.

    For a good harvested on a rotation the demand anticipated at harvest time
    is also posted to the good's Future market.
    """

    def __init__(self, config: DemandConfig, region: str, modeltime: Modeltime,
                 rotation_period: Optional[int] = None):
        self.good = config.good
        self.region = region
        self.base_quantity = config.base_quantity
        self.base_year = config.base_year if config.base_year is not None else modeltime.start_year
        self.base_price = config.base_price
        self.price_elasticity = config.price_elasticity
        self.growth_rate = config.growth_rate
        self.rotation_period = rotation_period
        self.modeltime = modeltime

    def demand_at(self, price: float, period: int) -> float:
        """
        Quantity demanded at a price in a period.

        Args:
            price: Market price
            period: Model period; may lie past the final period for anticipated demand

        Returns:
            base_quantity * (1 + growth) ** (year - base_year) * (price / base_price) ** elasticity
        """
        year = self._year(period)
        growth = (1.0 + self.growth_rate) ** (year - self.base_year)
        price = max(price, 1e-12)
        return self.base_quantity * growth * (price / self.base_price) ** self.price_elasticity

    def harvest_period(self, period: int) -> Optional[int]:
        if self.rotation_period is None:
            return None
        return period + self.rotation_period // self.modeltime.timestep(period)

    def calc(self, context: CalcContext, period: int):
        marketplace = context.marketplace
        price = marketplace.get_price(self.good, self.region, period)
        marketplace.add_to_demand(self.good, self.region, self.demand_at(price, period), period)

        harvest_period = self.harvest_period(period)
        if harvest_period is not None and harvest_period < self.modeltime.max_period:
            future_market = get_future_market(self.good)
            future_price = marketplace.get_price(future_market, self.region, period)
            marketplace.add_to_demand(
                future_market, self.region, self.demand_at(future_price, harvest_period), period
            )

    def _year(self, period: int) -> int:
        if period < self.modeltime.max_period:
            return self.modeltime.per_to_yr(period)
        last = self.modeltime.max_period - 1
        return self.modeltime.end_year + (period - last) * self.modeltime.timestep(last)
