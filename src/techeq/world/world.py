"""World - all regions, driven period by period by the scenario.

Key Concepts:
- complete_init registers markets and pushes calibration once per run
- init_calc runs once per period, calc once per solver trial
- update_summary and emiss_ind record the solved state of a period
"""

import logging
from typing import Dict, List

import pandas as pd

from ..config.schema import WorldConfig
from ..engine.context import CalcContext
from ..engine.marketplace import Marketplace
from ..engine.modeltime import Modeltime
from ..reporting.debug_xml import XMLDebugWriter
from .region import Region

logger = logging.getLogger(__name__)


class World:
    """Container of regions."""

    def __init__(self, config: WorldConfig, modeltime: Modeltime):
        self.modeltime = modeltime
        self.regions = [Region(region, modeltime) for region in config.regions]
        self.emissions_totals: Dict[str, Dict[int, float]] = {}

    def complete_init(self, context: CalcContext):
        for region in self.regions:
            region.complete_init(context)
        logger.info("World initialized with %d regions", len(self.regions))

    def init_calc(self, period: int, context: CalcContext):
        for region in self.regions:
            region.init_calc(context, period)

    def calc(self, period: int, context: CalcContext):
        for region in self.regions:
            region.calc(context, period)

    def update_summary(self, period: int):
        for region in self.regions:
            region.update_summary(period)

    def emiss_ind(self, period: int):
        for region in self.regions:
            region.emiss_ind(period)

    def calculate_emissions_totals(self) -> Dict[str, Dict[int, float]]:
        """
        Sum emissions over regions.

        Returns:
            Gas -> year -> total emissions
        """
        totals: Dict[str, Dict[int, float]] = {}
        for region in self.regions:
            for period, gases in sorted(region.emissions.items()):
                year = self.modeltime.per_to_yr(period)
                for gas, value in gases.items():
                    by_year = totals.setdefault(gas, {})
                    by_year[year] = by_year.get(year, 0.0) + value
        self.emissions_totals = totals
        return totals

    def get_emissions_quantity_curves(self, gas: str) -> Dict[str, pd.Series]:
        """
        Emissions of a gas by year in each region.

        Args:
            gas: Gas name

        Returns:
            Region name -> series of emissions indexed by year
        """
        curves = {}
        for region in self.regions:
            periods = sorted(region.emissions)
            curves[region.name] = pd.Series(
                [region.emissions[period].get(gas, 0.0) for period in periods],
                index=pd.Index([self.modeltime.per_to_yr(period) for period in periods], name='year'),
                name=gas,
            )
        return curves

    def get_emissions_price_curves(self, gas: str, marketplace: Marketplace) -> Dict[str, pd.Series]:
        """
        Price of a gas by year in each region that has a market for it.

        Args:
            gas: Gas name
            marketplace: Marketplace holding the solved prices

        Returns:
            Region name -> series of prices indexed by year
        """
        curves = {}
        for region in self.regions:
            if not marketplace.has_market(gas, region.name):
                continue
            curves[region.name] = pd.Series(
                [marketplace.get_price(gas, region.name, period) for period in range(self.modeltime.max_period)],
                index=pd.Index(list(self.modeltime.years), name='year'),
                name=gas,
            )
        return curves

    def summary_records(self) -> List[dict]:
        """Flat sector summaries of every recorded period."""
        records = []
        for region in self.regions:
            for sector in region.sectors:
                for period, values in sorted(sector.summary.items()):
                    records.append({
                        'region': region.name,
                        'sector': sector.name,
                        'period': period,
                        'year': self.modeltime.per_to_yr(period),
                        **values,
                    })
        return records

    def dependencies(self) -> List[dict]:
        return [
            {'region': region.name, 'sector': sector, 'depends_on': good}
            for region in self.regions
            for sector, good in region.dependencies()
        ]

    def to_debug_xml(self, period: int, writer: XMLDebugWriter):
        writer.open_tag("world", period=period, year=self.modeltime.per_to_yr(period))
        for region in self.regions:
            region.to_debug_xml(period, writer)
        writer.close_tag("world")

    def print_graphs(self, path: str, period: int):
        """
        Write the sector dependency graph of a period in Graphviz dot format.

        Raises:
            OSError: If the file cannot be written
        """
        with open(path, 'w') as f:
            f.write(f"digraph period_{period} {{\n")
            for region in self.regions:
                for sector in region.sectors:
                    f.write(f'\t"{region.name}:{sector.name}";\n')
                for sector, good in region.dependencies():
                    f.write(f'\t"{region.name}:{good}" -> "{region.name}:{sector}";\n')
            f.write("}\n")

    def print_sector_dependencies(self, path: str):
        """
        Write sector input dependencies as CSV.

        Raises:
            OSError: If the file cannot be written
        """
        df = pd.DataFrame(self.dependencies(), columns=['region', 'sector', 'depends_on'])
        df.to_csv(path, index=False)
