"""
Auction House TOML Configuration Loader

Loads every section of config.toml with environment variable overrides.

Environment variable mapping:
    [ledger] lamports_per_byte_year → AUCTIONHOUSE_LAMPORTS_PER_BYTE_YEAR
    [ledger] genesis_timestamp      → AUCTIONHOUSE_GENESIS_TIMESTAMP
    [marketplace] max_creators      → AUCTIONHOUSE_MAX_CREATORS
    [logging] level                 → AUCTIONHOUSE_LOG_LEVEL
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

if sys.version_info >= (3, 11):
    import tomllib as tomli
else:
    import tomli

from ..constants import (
    ACCOUNT_STORAGE_OVERHEAD,
    DEFAULT_EXEMPTION_THRESHOLD,
    DEFAULT_LAMPORTS_PER_BYTE_YEAR,
    MAX_CREATOR_LIMIT,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ---------------------------------------------------------------------------
# Subsection dataclasses, one per [section] of config.example.toml
# ---------------------------------------------------------------------------


@dataclass
class LedgerSectionConfig:
    """[ledger] section."""
    lamports_per_byte_year: int = DEFAULT_LAMPORTS_PER_BYTE_YEAR
    exemption_threshold: int = DEFAULT_EXEMPTION_THRESHOLD
    account_storage_overhead: int = ACCOUNT_STORAGE_OVERHEAD
    genesis_timestamp: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LedgerSectionConfig":
        return cls(
            lamports_per_byte_year=data.get("lamports_per_byte_year", DEFAULT_LAMPORTS_PER_BYTE_YEAR),
            exemption_threshold=data.get("exemption_threshold", DEFAULT_EXEMPTION_THRESHOLD),
            account_storage_overhead=data.get("account_storage_overhead", ACCOUNT_STORAGE_OVERHEAD),
            genesis_timestamp=data.get("genesis_timestamp", 0),
        )

    def apply_env(self) -> None:
        """Override from environment variables."""
        if v := os.environ.get("AUCTIONHOUSE_LAMPORTS_PER_BYTE_YEAR"):
            self.lamports_per_byte_year = int(v)
        if v := os.environ.get("AUCTIONHOUSE_EXEMPTION_THRESHOLD"):
            self.exemption_threshold = int(v)
        if v := os.environ.get("AUCTIONHOUSE_GENESIS_TIMESTAMP"):
            self.genesis_timestamp = int(v)


@dataclass
class MarketplaceSectionConfig:
    """[marketplace] section."""
    max_creators: int = MAX_CREATOR_LIMIT
    program_label: str = "auctionhouse:marketplace"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MarketplaceSectionConfig":
        return cls(
            max_creators=data.get("max_creators", MAX_CREATOR_LIMIT),
            program_label=data.get("program_label", "auctionhouse:marketplace"),
        )

    def apply_env(self) -> None:
        if v := os.environ.get("AUCTIONHOUSE_MAX_CREATORS"):
            self.max_creators = int(v)


@dataclass
class LoggingSectionConfig:
    """[logging] section."""
    level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSectionConfig":
        return cls(level=str(data.get("level", "INFO")).upper())

    def apply_env(self) -> None:
        if v := os.environ.get("AUCTIONHOUSE_LOG_LEVEL"):
            self.level = v.upper()


# -----------------------------------------------------------------------

@dataclass
class AuctionHouseConfig:
    """
    Unified configuration.

    Loads every section of config.toml and applies environment variable
    overrides.  Consumed by ``Ledger.from_config`` and
    ``MarketplaceProgram.from_config``.
    """
    ledger: LedgerSectionConfig = field(default_factory=LedgerSectionConfig)
    marketplace: MarketplaceSectionConfig = field(default_factory=MarketplaceSectionConfig)
    logging: LoggingSectionConfig = field(default_factory=LoggingSectionConfig)

    # --- factories --------------------------------------------------------

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuctionHouseConfig":
        """Create AuctionHouseConfig from a parsed TOML dict."""
        return cls(
            ledger=LedgerSectionConfig.from_dict(data.get("ledger", {})),
            marketplace=MarketplaceSectionConfig.from_dict(data.get("marketplace", {})),
            logging=LoggingSectionConfig.from_dict(data.get("logging", {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> "AuctionHouseConfig":
        """
        Load configuration from a TOML file.

        A missing file is not an error: defaults are used, with environment
        overrides still applied.

        Args:
            config_path: Path to config.toml

        Returns:
            AuctionHouseConfig instance
        """
        path = Path(config_path)
        if not path.exists():
            logger.warning("Config file not found: %s, using defaults", config_path)
            cfg = cls()
            cfg.apply_env()
            return cfg

        with open(path, "rb") as f:
            raw = tomli.load(f)

        cfg = cls.from_dict(raw)
        cfg.apply_env()
        return cfg

    # --- env overrides ----------------------------------------------------

    def apply_env(self) -> None:
        """Apply environment variable overrides to all sections."""
        self.ledger.apply_env()
        self.marketplace.apply_env()
        self.logging.apply_env()

    # --- validation -------------------------------------------------------

    def validate(self) -> bool:
        """
        Validate all configuration sections.

        Returns:
            True if all valid

        Raises:
            ValueError: on invalid config
        """
        if self.ledger.lamports_per_byte_year < 0:
            raise ValueError("lamports_per_byte_year must be >= 0")
        if self.ledger.exemption_threshold < 0:
            raise ValueError("exemption_threshold must be >= 0")
        if self.ledger.account_storage_overhead < 0:
            raise ValueError("account_storage_overhead must be >= 0")
        if self.ledger.genesis_timestamp < 0:
            raise ValueError("genesis_timestamp must be >= 0")
        if not 1 <= self.marketplace.max_creators <= MAX_CREATOR_LIMIT:
            raise ValueError(f"max_creators must be between 1 and {MAX_CREATOR_LIMIT}")
        if not self.marketplace.program_label:
            raise ValueError("program_label must not be empty")
        if self.logging.level not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {self.logging.level}")
        return True

    # --- serialisation ----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for diagnostics)."""
        return {
            "ledger": {
                "lamports_per_byte_year": self.ledger.lamports_per_byte_year,
                "exemption_threshold": self.ledger.exemption_threshold,
                "account_storage_overhead": self.ledger.account_storage_overhead,
                "genesis_timestamp": self.ledger.genesis_timestamp,
            },
            "marketplace": {
                "max_creators": self.marketplace.max_creators,
                "program_label": self.marketplace.program_label,
            },
            "logging": {
                "level": self.logging.level,
            },
        }


# -----------------------------------------------------------------------
# Convenience function
# -----------------------------------------------------------------------

def load_config(path: Optional[str] = None) -> AuctionHouseConfig:
    """
    Load configuration.

    Resolution order:
        1. Explicit *path* argument
        2. AUCTIONHOUSE_CONFIG env var
        3. ./config.toml in current directory
        4. Defaults (with env overrides)
    """
    if path is None:
        path = os.environ.get("AUCTIONHOUSE_CONFIG", "config.toml")

    return AuctionHouseConfig.from_file(path)
