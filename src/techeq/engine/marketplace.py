"""Marketplace - owns every market cell and the market info attachments.

Key Concepts:
- One Market per (good, region) per period, kept in registration order
- Supply and demand are pure accumulators, zeroed by reset_period
- carry_forward copies the previous period's committed state into the current period
- Market info cells exist independently of markets and are created on request
"""

import logging
from typing import Dict, Iterator, List, Tuple

from .market import Market, MarketInfo, MarketNotFoundError

logger = logging.getLogger(__name__)


class MarketplaceError(RuntimeError):
    """Raised when the marketplace is used out of order."""


class Marketplace:
    """Collection of all markets for every period of a run."""

    def __init__(self, num_periods: int):
        """
        Initialize an empty marketplace.

        Args:
            num_periods: Number of model periods each market spans
        """
        if num_periods <= 0:
            raise ValueError("Marketplace needs at least one period")
        self.num_periods = num_periods
        self._markets: Dict[Tuple[str, str], List[Market]] = {}
        self._infos: Dict[Tuple[str, str, int], MarketInfo] = {}
        self._prices_initialized = False

    def create_market(
        self,
        good: str,
        region: str,
        initial_price: float = 1.0,
        solvable: bool = True
    ) -> bool:
        """
        Register a market for every period.

        Args:
            good: Good name
            region: Region name
            initial_price: Starting trial price
            solvable: Whether the solver clears this market

        Returns:
            True if the market was new, False if it already existed
        """
        key = (good, region)
        if key in self._markets:
            return False
        self._markets[key] = [
            Market(good=good, region=region, period=period,
                   initial_price=initial_price, solvable=solvable)
            for period in range(self.num_periods)
        ]
        logger.debug("Created market %s in %s", good, region)
        return True

    def has_market(self, good: str, region: str) -> bool:
        return (good, region) in self._markets

    def get_market(self, good: str, region: str, period: int) -> Market:
        """
        Look up a market cell.

        Raises:
            MarketNotFoundError: If no market exists for (good, region) or the
                period is outside the run
        """
        markets = self._markets.get((good, region))
        if markets is None:
            raise MarketNotFoundError(f"No market for {good} in {region}")
        if not 0 <= period < self.num_periods:
            raise MarketNotFoundError(f"No period {period} for {good} in {region}; the run has {self.num_periods}")
        return markets[period]

    def iter_markets(self, period: int) -> Iterator[Market]:
        """Markets of a period in registration order."""
        for markets in self._markets.values():
            yield markets[period]

    def get_solvable_markets(self, period: int) -> List[Market]:
        return [market for market in self.iter_markets(period) if market.solvable]

    # Period lifecycle
    # ------------------------------------------------------------------
    def init_prices(self):
        """
        Set every market's price to its initial price.

        Raises:
            MarketplaceError: If called more than once
        """
        if self._prices_initialized:
            raise MarketplaceError("Prices are initialized once per run")
        for markets in self._markets.values():
            for market in markets:
                market.price = market.initial_price
        self._prices_initialized = True

    def null_supplies(self, period: int):
        for market in self.iter_markets(period):
            market.null_supply()

    def null_demands(self, period: int):
        for market in self.iter_markets(period):
            market.null_demand()

    def reset_period(self, period: int):
        """Zero supply and demand of every market in the period."""
        self.null_supplies(period)
        self.null_demands(period)

    def carry_forward(self, period: int):
        """Copy the previous period's committed state into this period."""
        if period == 0:
            return
        for markets in self._markets.values():
            last = markets[period - 1]
            markets[period].store_last(last)
            markets[period].init_to_last(last)

    # Accumulation
    # ------------------------------------------------------------------
    def add_to_supply(self, good: str, region: str, amount: float, period: int):
        self.get_market(good, region, period).supply += amount

    def add_to_demand(self, good: str, region: str, amount: float, period: int):
        self.get_market(good, region, period).demand += amount

    def get_price(self, good: str, region: str, period: int) -> float:
        return self.get_market(good, region, period).price

    def set_price(self, good: str, region: str, price: float, period: int):
        self.get_market(good, region, period).price = price

    def get_supply(self, good: str, region: str, period: int) -> float:
        return self.get_market(good, region, period).supply

    def get_demand(self, good: str, region: str, period: int) -> float:
        return self.get_market(good, region, period).demand

    # Market info
    # ------------------------------------------------------------------
    def get_market_info(
        self,
        name: str,
        region: str,
        period: int,
        create_if_missing: bool
    ) -> MarketInfo:
        """
        Return the key-value attachment of a market cell.

        Args:
            name: Good or technology name the cell is keyed by
            region: Region name
            period: Model period
            create_if_missing: Create an empty cell if none exists

        Returns:
            Mutable market info

        Raises:
            MarketNotFoundError: If the cell is missing and not created
        """
        key = (name, region, period)
        info = self._infos.get(key)
        if info is None:
            if not create_if_missing:
                raise MarketNotFoundError(f"No market info for {name} in {region}, period {period}")
            info = MarketInfo()
            self._infos[key] = info
        return info

    def to_records(self, period: int) -> List[dict]:
        """Flat records of every market in a period, for reporting."""
        return [
            {
                'period': period,
                'good': market.good,
                'region': market.region,
                'price': market.price,
                'supply': market.supply,
                'demand': market.demand,
            }
            for market in self.iter_markets(period)
        ]
