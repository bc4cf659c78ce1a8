"""Region: sectors, final demands and the regional land pool."""

from typing import Dict, List, Optional, Tuple

from ..config.schema import RegionConfig
from ..engine.context import CalcContext
from ..engine.modeltime import Modeltime
from ..land.allocator import LandAllocator
from ..reporting.debug_xml import XMLDebugWriter
from .demand import FinalDemand
from .sector import Sector


class Region:
    """One region of the world."""

    def __init__(self, config: RegionConfig, modeltime: Modeltime):
        self.name = config.name
        self.land_allocator: Optional[LandAllocator] = (
            LandAllocator(config.name, config.land_allocator, modeltime)
            if config.land_allocator is not None else None
        )
        self.sectors = [Sector(sector, config.name, modeltime) for sector in config.sectors]
        rotations = {sector.name: sector.rotation_period for sector in self.sectors if sector.kind == "forest"}
        self.demands = [
            FinalDemand(demand, config.name, modeltime, rotations.get(demand.good))
            for demand in config.demands
        ]
        self.ghg_taxes: Dict[str, Dict[int, float]] = {gas: dict(taxes) for gas, taxes in config.ghg_taxes.items()}
        self.emissions: Dict[int, Dict[str, float]] = {}
        self.land_summary: Dict[int, List[dict]] = {}

    def complete_init(self, context: CalcContext):
        # Taxed gases trade at a fixed price, the solver leaves them alone
        for gas in self.ghg_taxes:
            context.marketplace.create_market(gas, self.name, initial_price=0.0, solvable=False)
        for sector in self.sectors:
            sector.complete_init(self.land_allocator, context)

    def init_calc(self, context: CalcContext, period: int):
        year = context.modeltime.per_to_yr(period)
        for gas, taxes in self.ghg_taxes.items():
            if year in taxes:
                context.marketplace.set_price(gas, self.name, taxes[year], period)
        for sector in self.sectors:
            sector.init_calc(context, period)

    def calc(self, context: CalcContext, period: int):
        """Shares, then land, then production, then final demand."""
        for sector in self.sectors:
            sector.calc_share(context, period)
        if self.land_allocator is not None:
            self.land_allocator.calc_land_allocation(period)
        for sector in self.sectors:
            sector.production(context, period)
        for demand in self.demands:
            demand.calc(context, period)
        for gas in self.ghg_taxes:
            emitted = sum(sector.emissions(period).get(gas, 0.0) for sector in self.sectors)
            context.marketplace.add_to_demand(gas, self.name, emitted, period)

    def update_summary(self, period: int):
        for sector in self.sectors:
            sector.update_summary(period)
        if self.land_allocator is not None:
            self.land_summary[period] = self.land_allocator.to_records(period)

    def emiss_ind(self, period: int):
        """Total emissions of each gas in the period."""
        totals: Dict[str, float] = {}
        for sector in self.sectors:
            for gas, value in sector.emissions(period).items():
                totals[gas] = totals.get(gas, 0.0) + value
        self.emissions[period] = totals

    def dependencies(self) -> List[Tuple[str, str]]:
        """(sector, input good) pairs."""
        return [(sector.name, good) for sector in self.sectors for good in sector.input_goods()]

    def to_debug_xml(self, period: int, writer: XMLDebugWriter):
        writer.open_tag("region", name=self.name)
        for sector in self.sectors:
            sector.to_debug_xml(period, writer)
        for gas, value in self.emissions.get(period, {}).items():
            writer.element("emissions", value, gas=gas)
        writer.close_tag("region")
