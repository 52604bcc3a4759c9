"""
Ledger sysvars: the rent schedule and the monotonic clock.
"""

from dataclasses import dataclass

from ..constants import (
    ACCOUNT_STORAGE_OVERHEAD,
    DEFAULT_EXEMPTION_THRESHOLD,
    DEFAULT_LAMPORTS_PER_BYTE_YEAR,
)


@dataclass(frozen=True)
class Rent:
    """
    Minimum-reserve schedule.

    An account whose balance is at least ``minimum_balance(space)`` stays
    live on the ledger indefinitely.
    """
    lamports_per_byte_year: int = DEFAULT_LAMPORTS_PER_BYTE_YEAR
    exemption_threshold: int = DEFAULT_EXEMPTION_THRESHOLD
    storage_overhead: int = ACCOUNT_STORAGE_OVERHEAD

    def minimum_balance(self, space: int) -> int:
        if space < 0:
            raise ValueError("space must be >= 0")
        return (self.storage_overhead + space) * self.lamports_per_byte_year * self.exemption_threshold

    def is_exempt(self, lamports: int, space: int) -> bool:
        return lamports >= self.minimum_balance(space)

    @classmethod
    def from_config(cls, ledger_config) -> "Rent":
        return cls(
            lamports_per_byte_year=ledger_config.lamports_per_byte_year,
            exemption_threshold=ledger_config.exemption_threshold,
            storage_overhead=ledger_config.account_storage_overhead,
        )


class Clock:
    """Ledger clock in unix seconds. Never moves backwards."""

    def __init__(self, unix_timestamp: int = 0):
        if unix_timestamp < 0:
            raise ValueError("unix_timestamp must be >= 0")
        self._unix_timestamp = unix_timestamp

    @property
    def unix_timestamp(self) -> int:
        return self._unix_timestamp

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Clock cannot move backwards")
        self._unix_timestamp += seconds
        return self._unix_timestamp

    def set(self, unix_timestamp: int) -> int:
        if unix_timestamp < self._unix_timestamp:
            raise ValueError(
                f"Clock cannot move backwards: {unix_timestamp} < {self._unix_timestamp}"
            )
        self._unix_timestamp = unix_timestamp
        return self._unix_timestamp

    def __repr__(self) -> str:
        return f"Clock(unix_timestamp={self._unix_timestamp})"
