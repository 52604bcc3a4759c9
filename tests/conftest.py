"""
Shared fixtures: a fresh ledger, token program, metadata oracle and
marketplace program per test, plus helpers to mint assets.
"""

from typing import Optional, Sequence, Tuple

import pytest

from auctionhouse.constants import LAMPORTS_PER_SOL, NATIVE_MINT
from auctionhouse.crypto import address_from_label
from auctionhouse.ledger import Clock, Creator, Ledger, MetadataProgram, TokenProgram, WalletSigner
from auctionhouse.marketplace import MarketplaceProgram

GENESIS = 1_700_000_000

AUTHORITY = address_from_label("test:authority")
SELLER = address_from_label("test:seller")
BUYER = address_from_label("test:buyer")
CREATOR_A = address_from_label("test:creator-a")
CREATOR_B = address_from_label("test:creator-b")
COLLECTION_AUTHORITY = address_from_label("test:collection-authority")
CURRENCY_AUTHORITY = address_from_label("test:currency-authority")
OUTSIDER = address_from_label("test:outsider")

FEE_BPS = 250
DISCOUNT_BPS = 100


class World:
    """One self-contained ledger with the marketplace program deployed."""

    def __init__(self):
        self.ledger = Ledger(clock=Clock(GENESIS))
        self.token = TokenProgram(self.ledger)
        self.metadata = MetadataProgram(self.ledger, self.token)
        self.program = MarketplaceProgram(self.ledger, self.token, self.metadata)
        for wallet in (AUTHORITY, SELLER, BUYER, COLLECTION_AUTHORITY, CURRENCY_AUTHORITY, OUTSIDER):
            self.ledger.airdrop(wallet, 100 * LAMPORTS_PER_SOL)

        self.collection_mint = self.mint_asset(
            COLLECTION_AUTHORITY, "collection", royalty_bps=0, creators=[Creator(COLLECTION_AUTHORITY, 100)],
        )[0]

    # -- Assets -------------------------------------------------------------

    def mint_asset(
        self,
        owner: str,
        label: str,
        royalty_bps: int = 500,
        creators: Optional[Sequence[Creator]] = None,
        collection: Optional[str] = None,
    ) -> Tuple[str, str, str]:
        """
        Mint one unit of a new asset into ``owner``'s associated account.

        Returns:
            (mint, owner's associated account, metadata address)
        """
        mint = address_from_label(f"mint:{label}")
        signer = WalletSigner(owner)
        self.token.create_mint(mint, owner, signer)
        account = self.token.create_associated_account(owner, mint, signer)
        self.token.mint_to(mint, account, 1, signer)
        if creators is None:
            creators = [Creator(CREATOR_A, 70), Creator(CREATOR_B, 30)]
        metadata = self.metadata.create_metadata(
            mint, signer, signer,
            seller_fee_basis_points=royalty_bps,
            creators=creators,
            collection=collection,
            name=label,
        )
        return mint, account, metadata

    def mint_badge(self, owner: str, label: str = "badge", verified: bool = True) -> Tuple[str, str, str]:
        """Asset from the discount collection, held by ``owner``."""
        mint, account, metadata = self.mint_asset(
            owner, label, royalty_bps=0, creators=[Creator(owner, 100)], collection=self.collection_mint,
        )
        if verified:
            self.metadata.verify_collection(mint, self.collection_mint, WalletSigner(COLLECTION_AUTHORITY))
        return mint, account, metadata

    def create_currency(self, label: str = "usdc", holders: Sequence[Tuple[str, int]] = ()) -> str:
        mint = address_from_label(f"mint:{label}")
        signer = WalletSigner(CURRENCY_AUTHORITY)
        self.token.create_mint(mint, CURRENCY_AUTHORITY, signer, decimals=6)
        for holder, amount in holders:
            account = self.token.create_associated_account(holder, mint, WalletSigner(holder))
            self.token.mint_to(mint, account, amount, signer)
        return mint

    # -- Marketplaces ------------------------------------------------------

    def native_marketplace(self, fee_bps: int = FEE_BPS, discount_bps: int = DISCOUNT_BPS):
        return self.program.create_marketplace(
            payer=AUTHORITY,
            authority=AUTHORITY,
            treasury_mint=NATIVE_MINT,
            withdrawal_destination=AUTHORITY,
            withdrawal_destination_owner=AUTHORITY,
            fee_bps=fee_bps,
            discount_collection=self.collection_mint,
            discount_bps=discount_bps,
        )

    def token_marketplace(self, currency: str, fee_bps: int = FEE_BPS, discount_bps: int = DISCOUNT_BPS):
        return self.program.create_marketplace(
            payer=AUTHORITY,
            authority=AUTHORITY,
            treasury_mint=currency,
            withdrawal_destination=self.token.associated_address(AUTHORITY, currency),
            withdrawal_destination_owner=AUTHORITY,
            fee_bps=fee_bps,
            discount_collection=self.collection_mint,
            discount_bps=discount_bps,
        )

    def reserve(self, space: int) -> int:
        return self.ledger.minimum_balance(space)


@pytest.fixture
def world() -> World:
    return World()


@pytest.fixture
def market(world):
    return world.native_marketplace()
