"""Market equilibrium engine: model time, markets and the solver."""

from .context import CalcContext
from .market import Market, MarketInfo, MarketNotFoundError
from .marketplace import Marketplace, MarketplaceError
from .modeltime import Modeltime
from .solver import BisectionNRSolver, SolverResult

__all__ = [
    "BisectionNRSolver",
    "CalcContext",
    "Market",
    "MarketInfo",
    "MarketNotFoundError",
    "Marketplace",
    "MarketplaceError",
    "Modeltime",
    "SolverResult",
]
