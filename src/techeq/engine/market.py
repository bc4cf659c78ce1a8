"""Market cells and their key-value attachments."""

from dataclasses import dataclass, field
from typing import Dict, Optional


class MarketNotFoundError(KeyError):
    """Raised when a market or market info cell does not exist."""


@dataclass
class Market:
    """One clearable (good, region, period) cell.

    Supply and demand are accumulators filled by technologies and final
    demands during a calc pass. The ``stored_*`` fields hold the previous
    period's committed values after carry-forward. ``solved`` is set by the
    solver at the end of each solve.
    """
    good: str
    region: str
    period: int
    initial_price: float = 1.0
    solvable: bool = True
    solved: bool = False
    price: float = 0.0
    supply: float = 0.0
    demand: float = 0.0
    stored_price: float = 0.0
    stored_supply: float = 0.0
    stored_demand: float = 0.0

    @property
    def name(self) -> str:
        return f"{self.good}:{self.region}"

    @property
    def excess_demand(self) -> float:
        """Demand minus supply at the current price."""
        return self.demand - self.supply

    def null_supply(self):
        self.supply = 0.0

    def null_demand(self):
        self.demand = 0.0

    def store_last(self, last: 'Market'):
        """Copy the previous period's committed state into the stored fields."""
        self.stored_price = last.price
        self.stored_supply = last.supply
        self.stored_demand = last.demand

    def init_to_last(self, last: 'Market'):
        """Start this period from the previous period's solved price."""
        if last.price > 0:
            self.price = last.price


@dataclass
class MarketInfo:
    """Mutable key-value attachment for a market cell."""
    values: Dict[str, float] = field(default_factory=dict)

    def get_double(self, key: str, must_exist: bool = False, default: Optional[float] = 0.0) -> float:
        """
        Read a value.

        Args:
            key: Value name
            must_exist: Raise instead of returning ``default`` when missing
            default: Value returned for a missing key

        Returns:
            Stored value or default

        Raises:
            KeyError: If ``must_exist`` and the key is missing
        """
        if key in self.values:
            return self.values[key]
        if must_exist:
            raise KeyError(f"Market info value '{key}' is not set")
        return default

    def set_double(self, key: str, value: float):
        self.values[key] = float(value)
