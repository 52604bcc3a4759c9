"""
Auction House Configuration

Loads all sections of config.toml.
Environment variables override TOML values.
"""

from .loader import (
    AuctionHouseConfig,
    LedgerSectionConfig,
    MarketplaceSectionConfig,
    LoggingSectionConfig,
    load_config,
)

__all__ = [
    "AuctionHouseConfig",
    "LedgerSectionConfig",
    "MarketplaceSectionConfig",
    "LoggingSectionConfig",
    "load_config",
]
