"""Configuration management package for calendarbar"""

from .loader import ConfigLoader, get_config_loader, reset_config_loader

__all__ = [
    "ConfigLoader",
    "get_config_loader",
    "reset_config_loader",
]
