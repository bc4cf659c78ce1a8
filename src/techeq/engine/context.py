"""Calculation context passed through the per-period world calls."""

from dataclasses import dataclass

from .marketplace import Marketplace
from .modeltime import Modeltime


@dataclass
class CalcContext:
    """Model time and marketplace of the running scenario."""
    modeltime: Modeltime
    marketplace: Marketplace
