"""Configuration module for the ride ledger."""

from ride_ledger.config.logging import configure_logging
from ride_ledger.config.settings import FlatSettings, get_settings

__all__ = ["FlatSettings", "get_settings", "configure_logging"]
