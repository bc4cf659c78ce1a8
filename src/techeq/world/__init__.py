"""World structure: regions, sectors and final demands."""

from .demand import FinalDemand
from .region import Region
from .sector import Sector
from .world import World

__all__ = [
    "FinalDemand",
    "Region",
    "Sector",
    "World",
]
