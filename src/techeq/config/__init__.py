"""Scenario configuration: schema, YAML loader and run configuration lookup."""

from .configuration import Configuration
from .loader import config_from_dict, load_config
from .schema import Config

__all__ = [
    "Config",
    "Configuration",
    "config_from_dict",
    "load_config",
]
