"""Supply sector: one good, its markets and its technology vintages."""

import logging
from typing import Dict, List, Optional

from ..config.schema import SectorConfig
from ..engine.context import CalcContext
from ..engine.modeltime import Modeltime
from ..land.allocator import LandAllocator
from ..reporting.debug_xml import XMLDebugWriter
from ..technologies import ProducibleTechnology, create_technology, get_future_market

logger = logging.getLogger(__name__)


class Sector:
    """Producer of one good in one region.

    Every technology is instantiated once per model period; only the vintage
    of the current period is calculated.
    """

    def __init__(self, config: SectorConfig, region: str, modeltime: Modeltime):
        self.name = config.name
        self.kind = config.type
        self.region = region
        self.initial_price = config.initial_price
        self.cal_prices = dict(config.cal_prices)
        self.info: Dict[str, float] = {}
        if config.rotation_period is not None:
            self.info['rotation_period'] = config.rotation_period
        self.vintages: Dict[str, List[ProducibleTechnology]] = {
            tech.name: [
                create_technology(tech, year, region, config.name)
                for year in modeltime.years
            ]
            for tech in config.technologies
        }
        self.summary: Dict[int, Dict[str, float]] = {}

    @property
    def rotation_period(self) -> Optional[int]:
        value = self.info.get('rotation_period')
        return int(value) if value is not None else None

    def technologies(self, period: int) -> List[ProducibleTechnology]:
        """Vintages active in a period."""
        return [vintages[period] for vintages in self.vintages.values()]

    def input_goods(self) -> List[str]:
        goods = []
        for vintages in self.vintages.values():
            for good in vintages[0].core.inputs:
                if good not in goods:
                    goods.append(good)
        return goods

    def complete_init(self, land_allocator: Optional[LandAllocator], context: CalcContext):
        """Register markets and complete every technology vintage."""
        marketplace = context.marketplace
        marketplace.create_market(self.name, self.region, self.initial_price)
        if self.kind == "forest":
            marketplace.create_market(get_future_market(self.name), self.region, self.initial_price)
        for vintages in self.vintages.values():
            for tech in vintages:
                tech.complete_init(self.info, land_allocator, context)
        logger.debug("Sector %s in %s initialized with %d technologies",
                     self.name, self.region, len(self.vintages))

    def init_calc(self, context: CalcContext, period: int):
        year = context.modeltime.per_to_yr(period)
        if year in self.cal_prices:
            info = context.marketplace.get_market_info(self.name, self.region, period, True)
            info.set_double('calPrice', self.cal_prices[year])
        for tech in self.technologies(period):
            tech.init_calc(context, period)

    def calc_share(self, context: CalcContext, period: int):
        for tech in self.technologies(period):
            tech.calc_share(context, period)

    def production(self, context: CalcContext, period: int):
        for tech in self.technologies(period):
            tech.production(context, period)

    def emissions(self, period: int) -> Dict[str, float]:
        totals: Dict[str, float] = {}
        for tech in self.technologies(period):
            for gas, value in tech.core.emissions.items():
                totals[gas] = totals.get(gas, 0.0) + value
        return totals

    def update_summary(self, period: int):
        """Record output, land input and emissions of the period."""
        techs = self.technologies(period)
        summary = {
            'output': sum(tech.core.output for tech in techs),
            'input': sum(tech.core.input for tech in techs),
        }
        for gas, value in self.emissions(period).items():
            summary[f'emissions_{gas}'] = value
        self.summary[period] = summary

    def to_debug_xml(self, period: int, writer: XMLDebugWriter):
        writer.open_tag("sector", name=self.name, type=self.kind)
        for tech in self.technologies(period):
            writer.open_tag("technology", name=tech.name)
            writer.fields(tech.debug_fields())
            writer.close_tag("technology")
        writer.close_tag("sector")
