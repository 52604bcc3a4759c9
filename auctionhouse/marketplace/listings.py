"""
Listing/Offer Ledger

State machine of the two order records:

    ABSENT ──list/buy──▶ ACTIVE ──unlist/cancel_buy/execute_sale──▶ CLOSED
                          │  ▲
                          └──┘ re-list / re-bid (price and expiry only)

A closed record is removed from the ledger and its reserve refunded to
the owner, so the next ``list``/``buy`` starts again from ABSENT. The
``close_listing``/``close_offer`` event records the CLOSED transition.
"""

from typing import Optional

from ..constants import MAX_U64
from ..exceptions import (
    InvalidAccountInputError,
    InvalidAmountError,
    InvalidExpiryError,
    InvalidOwnerError,
    InvalidStateError,
    UnauthorizedError,
    UninitializedError,
)
from ..ledger.state import Ledger, WalletSigner
from ..ledger.token import TokenProgram
from ..logger import get_logger
from . import pda
from .checks import assert_is_ata, assert_is_ata_held_by
from .states import Listing, MarketplaceConfig, Offer, RecordState

logger = get_logger(__name__)


def _resolve_expiry(expiry: Optional[int], now: int) -> int:
    """Stored expiry for a requested one: 0 when none is given."""
    if expiry is None:
        return 0
    if expiry < now or expiry > MAX_U64:
        raise InvalidExpiryError(f"Expiry {expiry} is before now ({now})")
    return expiry


def _check_price(price: int) -> None:
    if price < 0:
        raise InvalidAmountError(f"Negative price {price}")
    if price > MAX_U64:
        raise InvalidAmountError(f"Price {price} exceeds u64")


class ListingLedger:
    """Listing and Offer records of one marketplace program."""

    def __init__(self, program_id: str, ledger: Ledger, token: TokenProgram):
        self.program_id = program_id
        self.ledger = ledger
        self.token = token

    def listing_address(self, mint: str) -> str:
        return pda.listing_address(self.program_id, mint)

    def offer_address(self, mint: str, buyer: str) -> str:
        return pda.offer_address(self.program_id, mint, buyer)

    # =====================================================================
    #  Record access
    # =====================================================================

    def _load(self, address: str, record_cls):
        account = self.ledger.get(address)
        if account is None:
            return None
        if account.owner != self.program_id:
            raise InvalidOwnerError(f"{address} is not owned by the marketplace program")
        return record_cls.unpack(account.data)

    def get_listing(self, mint: str) -> Optional[Listing]:
        return self._load(self.listing_address(mint), Listing)

    def get_offer(self, mint: str, buyer: str) -> Optional[Offer]:
        return self._load(self.offer_address(mint, buyer), Offer)

    def listing_state(self, mint: str) -> RecordState:
        listing = self.get_listing(mint)
        return listing.state if listing else RecordState.ABSENT

    def offer_state(self, mint: str, buyer: str) -> RecordState:
        offer = self.get_offer(mint, buyer)
        return offer.state if offer else RecordState.ABSENT

    # =====================================================================
    #  Listings
    # =====================================================================

    def list(
        self,
        config: MarketplaceConfig,
        seller: str,
        mint: str,
        asset_account: str,
        price: int,
        expiry: Optional[int] = None,
    ) -> Listing:
        """
        Create or re-price the listing of ``mint``.

        A new listing hands custody of ``asset_account`` to the vault. An
        active one only takes the new price and expiry.
        """
        stored_expiry = _resolve_expiry(expiry, self.ledger.now)
        _check_price(price)
        if price == 0:
            raise InvalidAmountError("Listing price must be > 0")

        asset = self.token.get_token_account(asset_account)
        if asset is None or asset.mint != mint:
            raise InvalidAccountInputError(f"{asset_account} does not hold {mint}")
        if asset.amount == 0:
            raise InvalidAmountError(f"{asset_account} holds no {mint}")

        address = self.listing_address(mint)
        vault = pda.treasury_address(self.program_id, config.address)

        with self.ledger.invoke(self.program_id):
            listing = self.get_listing(mint)
            if listing is None:
                if asset.owner != seller:
                    raise InvalidOwnerError(f"{asset_account} is not owned by {seller}")
                assert_is_ata(self.token, asset_account, seller, mint)

                listing = Listing(RecordState.ACTIVE, seller, mint, price, stored_expiry)
                self.ledger.create_account(
                    address,
                    self.program_id,
                    Listing.SPACE,
                    WalletSigner(seller),
                    pda.listing_signer(self.program_id, mint),
                    data=listing.pack(),
                )
                self.token.set_owner(asset_account, vault, WalletSigner(seller))
                logger.info(f"Listed {mint} by {seller} at {price}")
            elif listing.state == RecordState.ACTIVE:
                if listing.owner != seller:
                    raise UnauthorizedError(f"{seller} does not own the listing of {mint}")
                listing.price = price
                listing.expiry = stored_expiry
                self.ledger.write_data(address, listing.pack())
                logger.info(f"Listing of {mint} updated: price={price} expiry={stored_expiry}")
            else:
                raise InvalidStateError(f"Listing of {mint} is {listing.state.name}")

        self.ledger.emit("list", address, seller=seller, mint=mint, price=price, expiry=stored_expiry)
        return listing

    def unlist(self, config: MarketplaceConfig, seller: str, mint: str, asset_account: str) -> int:
        """
        Return custody of the asset to ``seller`` and close the listing.

        Returns:
            Lamports refunded from the listing reserve
        """
        address = self.listing_address(mint)
        vault = pda.treasury_address(self.program_id, config.address)

        with self.ledger.invoke(self.program_id):
            listing = self.get_listing(mint)
            if listing is None or listing.state != RecordState.ACTIVE:
                raise UninitializedError(f"No active listing for {mint}")
            if listing.owner != seller:
                raise UnauthorizedError(f"{seller} does not own the listing of {mint}")
            if not listing.expiry_allows(self.ledger.now):
                raise InvalidExpiryError(f"Listing of {mint} cannot be cancelled before {listing.expiry}")

            assert_is_ata_held_by(self.token, asset_account, seller, mint, vault)
            self.token.set_owner(
                asset_account, seller, pda.treasury_signer(self.program_id, config.address),
            )
            refund = self.close_listing(mint, seller)

        logger.info(f"Unlisted {mint}, custody returned to {seller}")
        return refund

    def close_listing(self, mint: str, destination: str) -> int:
        address = self.listing_address(mint)
        with self.ledger.invoke(self.program_id):
            listing = self.get_listing(mint)
            if listing is None:
                raise UninitializedError(f"No listing for {mint}")
            refund = self.ledger.close_account(address, destination)

        self.ledger.emit("close_listing", address, mint=mint, state=RecordState.CLOSED.name, refund=refund)
        return refund

    # =====================================================================
    #  Offers
    # =====================================================================

    def buy(
        self,
        config: MarketplaceConfig,
        buyer: str,
        mint: str,
        price: int,
        expiry: Optional[int] = None,
    ) -> Offer:
        """Create or re-price the offer of ``buyer`` on ``mint``."""
        stored_expiry = _resolve_expiry(expiry, self.ledger.now)
        _check_price(price)
        address = self.offer_address(mint, buyer)

        with self.ledger.invoke(self.program_id):
            offer = self.get_offer(mint, buyer)
            if offer is None:
                offer = Offer(RecordState.ACTIVE, buyer, mint, price, stored_expiry)
                self.ledger.create_account(
                    address,
                    self.program_id,
                    Offer.SPACE,
                    WalletSigner(buyer),
                    pda.offer_signer(self.program_id, mint, buyer),
                    data=offer.pack(),
                )
                logger.info(f"Offer on {mint} by {buyer} at {price}")
            elif offer.state == RecordState.ACTIVE:
                offer.price = price
                offer.expiry = stored_expiry
                self.ledger.write_data(address, offer.pack())
                logger.info(f"Offer on {mint} by {buyer} updated: price={price} expiry={stored_expiry}")
            else:
                raise InvalidStateError(f"Offer on {mint} by {buyer} is {offer.state.name}")

        self.ledger.emit("buy", address, buyer=buyer, mint=mint, price=price, expiry=stored_expiry)
        return offer

    def cancel_buy(self, config: MarketplaceConfig, buyer: str, mint: str) -> int:
        """Close the offer of ``buyer`` on ``mint``; escrowed funds stay put."""
        with self.ledger.invoke(self.program_id):
            offer = self.get_offer(mint, buyer)
            if offer is None or offer.state != RecordState.ACTIVE:
                raise UninitializedError(f"No active offer on {mint} by {buyer}")
            if not offer.expiry_allows(self.ledger.now):
                raise InvalidExpiryError(f"Offer on {mint} cannot be cancelled before {offer.expiry}")
            refund = self.close_offer(mint, buyer, buyer)

        logger.info(f"Offer on {mint} by {buyer} cancelled")
        return refund

    def close_offer(self, mint: str, buyer: str, destination: str) -> int:
        address = self.offer_address(mint, buyer)
        with self.ledger.invoke(self.program_id):
            offer = self.get_offer(mint, buyer)
            if offer is None:
                raise UninitializedError(f"No offer on {mint} by {buyer}")
            refund = self.ledger.close_account(address, destination)

        self.ledger.emit(
            "close_offer", address, mint=mint, buyer=buyer, state=RecordState.CLOSED.name, refund=refund,
        )
        return refund
