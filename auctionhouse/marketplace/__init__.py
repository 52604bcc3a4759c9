"""
Auction House Marketplace Program

Escrowed listings and offers for unique assets, settled against native
lamports or a fungible token with a protocol fee and creator royalties.
"""

from .states import MarketplaceConfig, Listing, Offer, RecordState
from .rails import CurrencyRail, NativeRail, TokenRail, rail_for
from .escrow import EscrowAccountManager
from .fees import FeeQuote, RoyaltyPayment, RoyaltySplit, protocol_fee, royalties, seller_net
from .discount import CollectionDiscountVerifier, DiscountProof, DiscountVerifier
from .listings import ListingLedger
from .settlement import CreatorAccounts, SettlementEngine, SettlementResult
from .admin import MarketplaceAdmin
from .instructions import MarketplaceInstruction, MarketplaceOpType
from .program import ExecResult, MarketplaceProgram

__all__ = [
    # Records
    "MarketplaceConfig",
    "Listing",
    "Offer",
    "RecordState",
    # Rails and escrow
    "CurrencyRail",
    "NativeRail",
    "TokenRail",
    "rail_for",
    "EscrowAccountManager",
    # Fees
    "FeeQuote",
    "RoyaltyPayment",
    "RoyaltySplit",
    "protocol_fee",
    "royalties",
    "seller_net",
    # Discounts
    "CollectionDiscountVerifier",
    "DiscountProof",
    "DiscountVerifier",
    # Orders and settlement
    "ListingLedger",
    "CreatorAccounts",
    "SettlementEngine",
    "SettlementResult",
    "MarketplaceAdmin",
    # Program
    "MarketplaceInstruction",
    "MarketplaceOpType",
    "ExecResult",
    "MarketplaceProgram",
]
