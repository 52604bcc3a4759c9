"""
Currency Rails

A marketplace settles either in the ledger's native currency or in a
fungible token, selected by its treasury mint. The rail hides the
difference: lamport transfers between system accounts on one side,
token-program transfers between token accounts on the other.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..constants import NATIVE_MINT
from ..ledger.state import Ledger, Signer
from ..ledger.token import TokenProgram
from ..logger import get_logger
from .checks import assert_keys_equal, ensure_associated_account
from .states import MarketplaceConfig

logger = get_logger(__name__)


class CurrencyRail(ABC):
    """Currency operations of one marketplace."""

    def __init__(self, ledger: Ledger, token: TokenProgram, treasury_mint: str):
        self.ledger = ledger
        self.token = token
        self.treasury_mint = treasury_mint

    @property
    @abstractmethod
    def is_native(self) -> bool:
        ...

    @abstractmethod
    def balance(self, address: str) -> int:
        ...

    @abstractmethod
    def transfer(self, source: str, destination: str, amount: int, authority: Signer) -> None:
        """Move ``amount``; zero amounts are skipped."""

    @abstractmethod
    def ensure_holding_account(
        self,
        address: str,
        owner: str,
        payer: Signer,
        account_signer: Signer,
    ) -> bool:
        """
        Make sure a program-controlled holding account exists at ``address``.

        Returns:
            True if the account was created by this call
        """

    @abstractmethod
    def ensure_receipt_account(self, receipt: str, wallet: str, payer: Signer) -> str:
        """Validate (creating where the rail allows) the account paying out to ``wallet``."""


class NativeRail(CurrencyRail):
    """Native lamports. Holding accounts are plain system accounts."""

    @property
    def is_native(self) -> bool:
        return True

    def balance(self, address: str) -> int:
        return self.ledger.balance(address)

    def transfer(self, source: str, destination: str, amount: int, authority: Signer) -> None:
        if amount == 0:
            return
        self.ledger.transfer_lamports(source, destination, amount, authority)

    def ensure_holding_account(self, address, owner, payer, account_signer) -> bool:
        # A lamport account springs into existence on its first credit
        return False

    def ensure_receipt_account(self, receipt: str, wallet: str, payer: Signer) -> str:
        assert_keys_equal(receipt, wallet)
        return receipt


class TokenRail(CurrencyRail):
    """Fungible token. Holding accounts are token accounts for the treasury mint."""

    @property
    def is_native(self) -> bool:
        return False

    def balance(self, address: str) -> int:
        return self.token.balance(address)

    def transfer(self, source: str, destination: str, amount: int, authority: Signer) -> None:
        if amount == 0:
            return
        self.token.transfer(source, destination, amount, authority)

    def ensure_holding_account(self, address, owner, payer, account_signer) -> bool:
        existing = self.ledger.get(address)
        if existing is not None and not existing.is_empty:
            return False
        self.token.create_account(address, self.treasury_mint, owner, payer, account_signer)
        logger.debug("Holding account %s created for %s", address, owner)
        return True

    def ensure_receipt_account(self, receipt: str, wallet: str, payer: Signer) -> str:
        ensure_associated_account(self.token, receipt, wallet, self.treasury_mint, payer)
        return receipt


def is_native_mint(treasury_mint: Optional[str]) -> bool:
    return treasury_mint == NATIVE_MINT


def rail_for(config: MarketplaceConfig, ledger: Ledger, token: TokenProgram) -> CurrencyRail:
    """Pick the rail matching the marketplace's treasury mint."""
    if is_native_mint(config.treasury_mint):
        return NativeRail(ledger, token, config.treasury_mint)
    return TokenRail(ledger, token, config.treasury_mint)
