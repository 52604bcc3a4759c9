"""
Marketplace administration: configuration records and treasury payouts.
"""

from dataclasses import replace
from typing import Optional

from ..constants import MAX_BASIS_POINTS, NATIVE_MINT
from ..exceptions import (
    AlreadyInUseError,
    InvalidAccountInputError,
    InvalidAmountError,
    InvalidOwnerError,
    UnauthorizedError,
    UninitializedError,
)
from ..ledger.state import Ledger, Signer, WalletSigner
from ..ledger.token import TokenProgram
from ..logger import get_logger
from . import pda
from .checks import assert_keys_equal, ensure_associated_account
from .rails import rail_for
from .states import MarketplaceConfig

logger = get_logger(__name__)


def _check_fee_schedule(fee_bps: int, discount_bps: int) -> None:
    if not 0 <= fee_bps <= MAX_BASIS_POINTS:
        raise InvalidAmountError(f"fee_bps must be 0-{MAX_BASIS_POINTS}, got {fee_bps}")
    if not 0 <= discount_bps <= fee_bps:
        raise InvalidAmountError(f"discount_bps {discount_bps} exceeds fee_bps {fee_bps}")


class MarketplaceAdmin:
    """Create, update and withdraw from marketplaces of one program."""

    def __init__(self, program_id: str, ledger: Ledger, token: TokenProgram):
        self.program_id = program_id
        self.ledger = ledger
        self.token = token

    def marketplace_address(self, creator: str, treasury_mint: str) -> str:
        return pda.marketplace_address(self.program_id, creator, treasury_mint)

    def load_config(self, marketplace: str) -> MarketplaceConfig:
        account = self.ledger.get(marketplace)
        if account is None:
            raise UninitializedError(f"No marketplace at {marketplace}")
        if account.owner != self.program_id:
            raise InvalidOwnerError(f"{marketplace} is not owned by the marketplace program")
        return MarketplaceConfig.unpack(account.data, address=marketplace)

    def _check_withdrawal_destination(
        self,
        config: MarketplaceConfig,
        destination: str,
        destination_owner: str,
        payer: Signer,
    ) -> None:
        """
        Native rail: the destination is the owner's wallet. Token rail: the
        owner's associated account, created here when missing.
        """
        if rail_for(config, self.ledger, self.token).is_native:
            assert_keys_equal(destination, destination_owner)
        else:
            ensure_associated_account(
                self.token, destination, destination_owner, config.treasury_mint, payer,
            )

    # =====================================================================
    #  Operations
    # =====================================================================

    def create_marketplace(
        self,
        payer: str,
        authority: str,
        treasury_mint: str,
        withdrawal_destination: str,
        withdrawal_destination_owner: str,
        fee_bps: int,
        discount_collection: str,
        discount_bps: int,
    ) -> MarketplaceConfig:
        """
        Initialize a marketplace for ``treasury_mint`` under ``authority``.

        The authority becomes the permanent creator seed of the marketplace
        address.
        """
        _check_fee_schedule(fee_bps, discount_bps)
        if treasury_mint != NATIVE_MINT and self.token.get_mint(treasury_mint) is None:
            raise InvalidAccountInputError(f"{treasury_mint} is not a mint")

        address = self.marketplace_address(authority, treasury_mint)
        if self.ledger.exists(address):
            raise AlreadyInUseError(f"Marketplace {address} already exists")

        treasury = pda.treasury_address(self.program_id, address)
        config = MarketplaceConfig(
            treasury=treasury,
            treasury_withdrawal_destination=withdrawal_destination,
            treasury_mint=treasury_mint,
            authority=authority,
            creator=authority,
            fee_bps=fee_bps,
            discount_collection=discount_collection,
            discount_bps=discount_bps,
            address=address,
        )
        payer_signer = WalletSigner(payer)

        with self.ledger.invoke(self.program_id):
            self.ledger.create_account(
                address,
                self.program_id,
                MarketplaceConfig.SPACE,
                payer_signer,
                pda.marketplace_signer(self.program_id, authority, treasury_mint),
                data=config.pack(),
            )
            rail_for(config, self.ledger, self.token).ensure_holding_account(
                treasury,
                owner=address,
                payer=payer_signer,
                account_signer=pda.treasury_signer(self.program_id, address),
            )
            self._check_withdrawal_destination(
                config, withdrawal_destination, withdrawal_destination_owner, payer_signer,
            )

        self.ledger.emit("create_marketplace", address, authority=authority, treasury_mint=treasury_mint)
        logger.info(
            f"Marketplace {address} created: mint={treasury_mint} fee={fee_bps} bps "
            f"discount={discount_bps} bps"
        )
        return config

    def update_marketplace(
        self,
        authority: str,
        marketplace: str,
        payer: Optional[str] = None,
        new_authority: Optional[str] = None,
        withdrawal_destination: Optional[str] = None,
        withdrawal_destination_owner: Optional[str] = None,
        fee_bps: Optional[int] = None,
        discount_collection: Optional[str] = None,
        discount_bps: Optional[int] = None,
    ) -> MarketplaceConfig:
        """
        Apply the given changes; ``None`` leaves a field untouched.

        The fee schedule is re-checked after every change is applied.
        """
        config = self.load_config(marketplace)
        if authority != config.authority:
            raise UnauthorizedError(f"{authority} is not the authority of {marketplace}")

        if (withdrawal_destination is None) != (withdrawal_destination_owner is None):
            raise InvalidAccountInputError(
                "withdrawal_destination and withdrawal_destination_owner go together"
            )

        updated = replace(
            config,
            authority=new_authority if new_authority is not None else config.authority,
            treasury_withdrawal_destination=(
                withdrawal_destination
                if withdrawal_destination is not None
                else config.treasury_withdrawal_destination
            ),
            fee_bps=fee_bps if fee_bps is not None else config.fee_bps,
            discount_collection=(
                discount_collection if discount_collection is not None else config.discount_collection
            ),
            discount_bps=discount_bps if discount_bps is not None else config.discount_bps,
        )
        _check_fee_schedule(updated.fee_bps, updated.discount_bps)

        with self.ledger.invoke(self.program_id):
            if withdrawal_destination is not None:
                self._check_withdrawal_destination(
                    updated, withdrawal_destination, withdrawal_destination_owner,
                    WalletSigner(payer or authority),
                )
            self.ledger.write_data(marketplace, updated.pack())

        self.ledger.emit("update_marketplace", marketplace, authority=updated.authority)
        logger.info(
            f"Marketplace {marketplace} updated: authority={updated.authority} "
            f"fee={updated.fee_bps} bps discount={updated.discount_bps} bps"
        )
        return updated

    def withdraw(self, authority: str, marketplace: str, amount: int) -> None:
        """Move ``amount`` from the treasury to the configured withdrawal destination."""
        config = self.load_config(marketplace)
        if authority != config.authority:
            raise UnauthorizedError(f"{authority} is not the authority of {marketplace}")
        if amount < 0:
            raise InvalidAmountError(f"Withdrawal amount must be >= 0, got {amount}")

        rail = rail_for(config, self.ledger, self.token)
        if rail.is_native:
            signer = pda.treasury_signer(self.program_id, marketplace)
        else:
            signer = pda.marketplace_signer(self.program_id, config.creator, config.treasury_mint)

        with self.ledger.invoke(self.program_id):
            rail.transfer(config.treasury, config.treasury_withdrawal_destination, amount, signer)

        unit = "lamports" if rail.is_native else "units"
        logger.info(
            f"Treasury withdrawal {config.treasury} → "
            f"{config.treasury_withdrawal_destination}: {amount} {unit}"
        )
