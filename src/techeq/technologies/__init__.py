"""Technology variants and their factory."""

from ..config.schema import TechnologyConfig
from .base import LandProductionCore, ProducibleTechnology, TechnologyCore
from .food import FoodProductionTechnology
from .forest import FUTURE_PREFIX, ForestProductionTechnology, get_future_market
from .generic import GenericTechnology

TECHNOLOGY_TYPES = {
    "generic": GenericTechnology,
    "food": FoodProductionTechnology,
    "forest": ForestProductionTechnology,
}


def create_technology(config: TechnologyConfig, year: int, region: str, sector: str) -> ProducibleTechnology:
    """Instantiate the vintage of a technology for one model year."""
    return TECHNOLOGY_TYPES[config.type](config, year, region, sector)


__all__ = [
    "FUTURE_PREFIX",
    "FoodProductionTechnology",
    "ForestProductionTechnology",
    "GenericTechnology",
    "LandProductionCore",
    "ProducibleTechnology",
    "TechnologyCore",
    "create_technology",
    "get_future_market",
]
