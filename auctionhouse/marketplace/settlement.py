"""
Settlement Engine

Executes a matched Listing/Offer pair in one atomic step:

    1. validate both records, the asset custody and the metadata
    2. native rail: buyer tops up any escrow reserve shortfall
    3. pay creator royalties out of escrow (metadata order)
    4. pay the protocol fee (discounted when the buyer proves eligibility)
    5. pay the seller what is left
    6. move the asset from the vault to the buyer
    7. close both records, refunding their reserves

Every step runs inside one ledger transaction; any failure restores the
ledger to its state before the call.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..exceptions import (
    BuyerAccountHasDelegateError,
    InvalidAccountInputError,
    InvalidAmountError,
    InvalidExpiryError,
    InvalidOwnerError,
    InvalidPubkeyError,
    MetadataError,
    MissingCreatorError,
    SellerAccountHasDelegateError,
    UninitializedError,
)
from ..ledger.metadata import Metadata, MetadataProgram
from ..ledger.state import Ledger, WalletSigner
from ..ledger.token import TokenProgram
from ..logger import get_logger
from . import fees, pda
from .checks import assert_is_ata_held_by, assert_keys_equal, ensure_associated_account
from .discount import DiscountProof, DiscountVerifier
from .escrow import EscrowAccountManager
from .listings import ListingLedger
from .rails import rail_for
from .states import Listing, MarketplaceConfig, Offer, RecordState

logger = get_logger(__name__)


@dataclass(frozen=True)
class CreatorAccounts:
    """
    A creator and the account receiving its royalty.

    On the native rail the receipt is the creator address itself and may be
    omitted; on the token rail it defaults to the creator's associated
    account for the treasury mint.
    """
    creator: str
    receipt_account: Optional[str] = None


@dataclass
class SettlementResult:
    """Breakdown of one executed sale."""
    price: int
    royalty_payments: List[fees.RoyaltyPayment] = field(default_factory=list)
    royalty_total: int = 0
    dust: int = 0
    standard_fee: int = 0
    charged_fee: int = 0
    discounted: bool = False
    seller_net: int = 0
    shortfall_topup: int = 0
    listing_refund: int = 0
    offer_refund: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price": self.price,
            "royalty_payments": [
                {"creator": p.creator, "share": p.share, "amount": p.amount}
                for p in self.royalty_payments
            ],
            "royalty_total": self.royalty_total,
            "dust": self.dust,
            "standard_fee": self.standard_fee,
            "charged_fee": self.charged_fee,
            "discounted": self.discounted,
            "seller_net": self.seller_net,
            "shortfall_topup": self.shortfall_topup,
            "listing_refund": self.listing_refund,
            "offer_refund": self.offer_refund,
        }


class SettlementEngine:
    """Runs ``execute_sale`` for one marketplace program."""

    def __init__(
        self,
        program_id: str,
        ledger: Ledger,
        token: TokenProgram,
        metadata: MetadataProgram,
        listings: ListingLedger,
        escrow: EscrowAccountManager,
        verifier: DiscountVerifier,
        max_creators: int,
    ):
        self.program_id = program_id
        self.ledger = ledger
        self.token = token
        self.metadata = metadata
        self.listings = listings
        self.escrow = escrow
        self.verifier = verifier
        self.max_creators = max_creators

    # =====================================================================
    #  Validation
    # =====================================================================

    def _active_listing(self, seller: str, mint: str) -> Listing:
        listing = self.listings.get_listing(mint)
        if listing is None or listing.state != RecordState.ACTIVE:
            raise UninitializedError(f"No active listing for {mint}")
        if listing.owner != seller or listing.mint != mint:
            raise InvalidOwnerError(f"Listing of {mint} does not belong to {seller}")
        return listing

    def _active_offer(self, buyer: str, mint: str) -> Offer:
        offer = self.listings.get_offer(mint, buyer)
        if offer is None or offer.state != RecordState.ACTIVE:
            raise UninitializedError(f"No active offer on {mint} by {buyer}")
        if offer.buyer != buyer or offer.mint != mint:
            raise InvalidOwnerError(f"Offer on {mint} does not belong to {buyer}")
        return offer

    def _load_sale_metadata(self, mint: str, metadata_account: str) -> Metadata:
        assert_keys_equal(metadata_account, self.metadata.find_metadata_address(mint))
        account = self.ledger.get(metadata_account)
        if account is None or account.is_empty:
            raise InvalidAccountInputError(f"Metadata account of {mint} is empty")
        try:
            return self.metadata.load_metadata(metadata_account)
        except MetadataError as e:
            raise InvalidAccountInputError(str(e)) from e

    def _match_creators(self, record: Metadata, creators: Sequence[CreatorAccounts]) -> None:
        expected = record.creators or ()
        if len(creators) > self.max_creators or len(creators) > len(expected):
            raise InvalidAccountInputError(
                f"{len(creators)} creator accounts supplied, metadata lists {len(expected)}"
            )
        if len(creators) < len(expected):
            raise MissingCreatorError(
                f"{len(expected)} creators required, {len(creators)} supplied"
            )
        for supplied, creator in zip(creators, expected):
            assert_keys_equal(supplied.creator, creator.address)

    # =====================================================================
    #  Execution
    # =====================================================================

    def execute_sale(
        self,
        config: MarketplaceConfig,
        buyer: str,
        seller: str,
        mint: str,
        asset_account: str,
        metadata_account: str,
        seller_receipt: str,
        buyer_receipt: str,
        creators: Sequence[CreatorAccounts] = (),
        discount: Optional[DiscountProof] = None,
    ) -> SettlementResult:
        """
        Settle the listing of ``mint`` against the offer of ``buyer``.

        Args:
            config: Loaded marketplace configuration
            buyer: Offer owner; signs and pays any account creation
            seller: Listing owner
            mint: Asset mint
            asset_account: Seller's associated account, held by the vault
            metadata_account: Canonical metadata record of ``mint``
            seller_receipt: Account receiving the seller's proceeds
            buyer_receipt: Buyer's associated account for ``mint``
            creators: One entry per metadata creator, in metadata order
            discount: Optional proof of discount eligibility

        Returns:
            SettlementResult with the full payment breakdown
        """
        with self.ledger.transaction(), self.ledger.invoke(self.program_id):
            return self._execute(
                config, buyer, seller, mint, asset_account, metadata_account,
                seller_receipt, buyer_receipt, list(creators), discount,
            )

    def _execute(
        self,
        config: MarketplaceConfig,
        buyer: str,
        seller: str,
        mint: str,
        asset_account: str,
        metadata_account: str,
        seller_receipt: str,
        buyer_receipt: str,
        creators: List[CreatorAccounts],
        discount: Optional[DiscountProof],
    ) -> SettlementResult:
        now = self.ledger.now
        vault = pda.treasury_address(self.program_id, config.address)
        rail = rail_for(config, self.ledger, self.token)
        payer = WalletSigner(buyer)

        # ── 1. Validate ───────────────────────────────────────────────
        listing = self._active_listing(seller, mint)
        offer = self._active_offer(buyer, mint)
        if not listing.expiry_allows(now) or not offer.expiry_allows(now):
            raise InvalidExpiryError(f"Listing or offer on {mint} is not settleable at {now}")
        if listing.price != offer.price:
            raise InvalidAmountError(
                f"Listing price {listing.price} != offer price {offer.price}"
            )
        price = listing.price

        asset = assert_is_ata_held_by(self.token, asset_account, seller, mint, vault)
        if asset.amount == 0:
            raise InvalidAmountError(f"{asset_account} holds no {mint}")

        record = self._load_sale_metadata(mint, metadata_account)
        result = SettlementResult(price=price)

        escrow = self.escrow.escrow_address(config.address, buyer)
        escrow_authority = self.escrow.escrow_authority(config, buyer)

        # ── 2. Reserve shortfall ──────────────────────────────────────
        if rail.is_native:
            shortfall = self.escrow.reserve_shortfall(escrow, price)
            if shortfall:
                rail.transfer(buyer, escrow, shortfall, payer)
                logger.debug(f"Escrow reserve top-up from {buyer}: {shortfall} lamports")
            result.shortfall_topup = shortfall

        # ── 3. Royalties ──────────────────────────────────────────────
        self._match_creators(record, creators)
        shares = [(c.address, c.share) for c in (record.creators or ())]
        split = fees.royalties(price, record.seller_fee_basis_points, shares)

        for supplied, payment in zip(creators, split.payments):
            if rail.is_native:
                receipt = supplied.receipt_account or payment.creator
                assert_keys_equal(receipt, payment.creator)
            else:
                receipt = supplied.receipt_account or self.token.associated_address(
                    payment.creator, config.treasury_mint,
                )
                rail.ensure_receipt_account(receipt, payment.creator, payer)
            rail.transfer(escrow, receipt, payment.amount, escrow_authority)

        result.royalty_payments = list(split.payments)
        result.royalty_total = split.royalty_total
        result.dust = split.dust

        # ── 4. Protocol fee ───────────────────────────────────────────
        eligible = self.verifier.is_eligible(config, buyer, discount)
        quote = fees.protocol_fee(price, config.fee_bps, config.discount_bps, eligible)
        rail.transfer(escrow, config.treasury, quote.charged_fee, escrow_authority)
        result.standard_fee = quote.standard_fee
        result.charged_fee = quote.charged_fee
        result.discounted = quote.discounted

        # ── 5. Seller proceeds ────────────────────────────────────────
        net = fees.seller_net(split, quote)
        if rail.is_native:
            assert_keys_equal(seller_receipt, seller)
        else:
            receipt_state = ensure_associated_account(
                self.token, seller_receipt, seller, config.treasury_mint, payer,
            )
            if receipt_state.delegate is not None:
                raise SellerAccountHasDelegateError(f"{seller_receipt} has a delegate")
        rail.transfer(escrow, seller_receipt, net, escrow_authority)
        result.seller_net = net

        # ── 6. Asset delivery ─────────────────────────────────────────
        buyer_state = ensure_associated_account(self.token, buyer_receipt, buyer, mint, payer)
        if buyer_state.delegate is not None:
            raise BuyerAccountHasDelegateError(f"{buyer_receipt} has a delegate")
        self.token.transfer(
            asset_account, buyer_receipt, 1, pda.treasury_signer(self.program_id, config.address),
        )

        # ── 7. Close records ──────────────────────────────────────────
        result.listing_refund = self.listings.close_listing(mint, seller)
        result.offer_refund = self.listings.close_offer(mint, buyer, buyer)

        self.ledger.emit("execute_sale", self.listings.listing_address(mint), **result.to_dict())
        logger.info(
            f"Sale of {mint}: {seller} → {buyer} price={price} "
            f"royalties={result.royalty_total} fee={result.charged_fee} seller_net={net}"
        )
        return result
