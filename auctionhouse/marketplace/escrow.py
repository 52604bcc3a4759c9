"""
Escrow Account Manager

One escrow per (marketplace, wallet) holds the funds backing a buyer's
offers. On the native rail it is a plain lamport account that signs for
itself; on the token rail it is a token account for the treasury mint
whose token owner is the marketplace.
"""

from typing import Optional

from ..constants import MAX_U64
from ..exceptions import InvalidAccountInputError, InvalidAmountError, NumericalOverflowError
from ..ledger.state import Ledger, ProgramSigner, WalletSigner
from ..ledger.token import TokenProgram
from ..logger import get_logger
from . import pda
from .checks import is_associated_account
from .rails import rail_for
from .states import MarketplaceConfig

logger = get_logger(__name__)


class EscrowAccountManager:
    """Derives, creates and funds escrow accounts of one marketplace program."""

    def __init__(self, program_id: str, ledger: Ledger, token: TokenProgram):
        self.program_id = program_id
        self.ledger = ledger
        self.token = token

    def escrow_address(self, marketplace: str, wallet: str) -> str:
        return pda.escrow_address(self.program_id, marketplace, wallet)

    def escrow_authority(self, config: MarketplaceConfig, wallet: str) -> ProgramSigner:
        """
        Authority debiting the escrow of ``wallet``: the escrow itself on the
        native rail, the marketplace on the token rail.
        """
        if rail_for(config, self.ledger, self.token).is_native:
            return pda.escrow_signer(self.program_id, config.address, wallet)
        return pda.marketplace_signer(self.program_id, config.creator, config.treasury_mint)

    def ensure_escrow(self, config: MarketplaceConfig, wallet: str, payer: Optional[str] = None) -> str:
        """
        Idempotently prepare the escrow of ``wallet``.

        Only the token rail allocates anything; rent is paid by ``payer``
        (the wallet by default).
        """
        address = self.escrow_address(config.address, wallet)
        rail = rail_for(config, self.ledger, self.token)
        created = rail.ensure_holding_account(
            address,
            owner=config.address,
            payer=WalletSigner(payer or wallet),
            account_signer=pda.escrow_signer(self.program_id, config.address, wallet),
        )
        if created:
            logger.info(f"Escrow {address} created for {wallet}")
        return address

    # ── Reserve-aware arithmetic ──────────────────────────────────────

    def _reserve(self, address: str) -> int:
        account = self.ledger.get(address)
        return self.ledger.minimum_balance(account.space if account else 0)

    def rent_checked_add(self, address: str, diff: int) -> int:
        """
        Lamports to add so that crediting ``diff`` keeps ``address`` at its
        minimum reserve.

        Returns the gap to the reserve when ``balance + diff`` falls short of
        it, otherwise ``diff``.
        """
        lamports = self.ledger.balance(address)
        if lamports + diff > MAX_U64:
            raise NumericalOverflowError(f"Escrow balance overflow at {address}")
        reserve = self._reserve(address)
        if lamports + diff < reserve:
            return reserve - (lamports + diff)
        return diff

    def rent_checked_sub(self, address: str, diff: int) -> int:
        """
        Lamports that can leave ``address`` when ``diff`` is requested
        without breaching its minimum reserve.
        """
        lamports = self.ledger.balance(address)
        if lamports < diff:
            raise NumericalOverflowError(f"Escrow {address} holds {lamports} lamports, needs {diff}")
        reserve = self._reserve(address)
        if lamports - diff < reserve:
            return max(lamports - reserve, 0)
        return diff

    def reserve_shortfall(self, address: str, price: int) -> int:
        """
        Top-up a buyer owes so that paying ``price`` out of the escrow leaves
        its reserve intact, capped at the reserve itself.
        """
        available = self.rent_checked_sub(address, price)
        if available == price:
            return 0
        return min(price - available, self._reserve(address))

    # ── Funding ───────────────────────────────────────────────────────

    def deposit(self, config: MarketplaceConfig, wallet: str, payment_account: str, amount: int) -> int:
        """
        Move ``amount`` from ``payment_account`` into the escrow of ``wallet``.

        Returns:
            The amount actually debited from the payment account (native
            deposits include any reserve top-up)
        """
        if amount < 0:
            raise InvalidAmountError(f"Deposit amount must be >= 0, got {amount}")
        if amount > MAX_U64:
            raise NumericalOverflowError(f"Deposit amount {amount} exceeds u64")

        escrow = self.ensure_escrow(config, wallet)
        rail = rail_for(config, self.ledger, self.token)

        if rail.is_native:
            if payment_account != wallet:
                raise InvalidAccountInputError("Native deposits must be paid from the wallet itself")
            debit = self.rent_checked_add(escrow, 0) + amount
            if debit > MAX_U64:
                raise NumericalOverflowError(f"Deposit of {debit} lamports exceeds u64")
        else:
            if not is_associated_account(self.token, payment_account, wallet, config.treasury_mint):
                raise InvalidAccountInputError(
                    f"{payment_account} is not the {config.treasury_mint} account of {wallet}"
                )
            debit = amount

        rail.transfer(payment_account, escrow, debit, WalletSigner(wallet))
        unit = "lamports" if rail.is_native else "units"
        logger.info(f"Deposit {wallet} → {escrow}: {debit} {unit}")
        return debit

    def balance(self, config: MarketplaceConfig, wallet: str) -> int:
        address = self.escrow_address(config.address, wallet)
        return rail_for(config, self.ledger, self.token).balance(address)
