"""
Auction House Exceptions

Custom exception classes for the marketplace program and the host ledger
model it runs on.
"""

from enum import IntEnum


class AuctionHouseException(Exception):
    """Base exception for auctionhouse."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  HOST LEDGER
# ══════════════════════════════════════════════════════════════════════

class LedgerError(AuctionHouseException):
    """Host ledger rejected an operation."""
    pass


class AccountNotFoundError(LedgerError):
    """No account exists at the requested address."""
    pass


class AccountInUseError(LedgerError):
    """Tried to allocate an address that already holds an account."""
    pass


class InsufficientFundsError(LedgerError):
    """Source balance is lower than the requested debit."""
    pass


class MissingSignatureError(LedgerError):
    """The supplied authority cannot sign for the account."""
    pass


class TokenError(LedgerError):
    """Token program rejected an instruction."""
    pass


class MetadataError(LedgerError):
    """Metadata program rejected an instruction."""
    pass


class ConfigurationError(AuctionHouseException):
    """Configuration error."""
    pass


# ══════════════════════════════════════════════════════════════════════
#  MARKETPLACE PROGRAM
# ══════════════════════════════════════════════════════════════════════

class ErrorCode(IntEnum):
    """Marketplace error codes.  Values are part of the program ABI."""
    UNAUTHORIZED = 6000
    ALREADY_IN_USE = 6001
    INVALID_AMOUNT = 6002
    INVALID_STATE = 6003
    INVALID_OWNER = 6004
    INVALID_EXPIRY = 6005
    MISSING_CREATOR = 6006
    NOT_ALLOWED = 6007
    NUMERICAL_OVERFLOW = 6008
    INVALID_ACCOUNT_INPUT = 6009
    INVALID_PUBKEY = 6010
    UNINITIALIZED = 6011
    BUYER_ACCOUNT_HAS_DELEGATE = 6012
    SELLER_ACCOUNT_HAS_DELEGATE = 6013
    INVALID_DISCOUNT_ACCOUNT = 6014


class MarketplaceError(AuctionHouseException):
    """Base class for every marketplace rejection.  Carries an ErrorCode."""

    code: ErrorCode = ErrorCode.INVALID_STATE
    default_message = "Invalid state"

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def __str__(self) -> str:
        return f"{self.code.name}({int(self.code)}): {self.message}"


class UnauthorizedError(MarketplaceError):
    code = ErrorCode.UNAUTHORIZED
    default_message = "You are not authorized to perform this action."


class AlreadyInUseError(MarketplaceError):
    code = ErrorCode.ALREADY_IN_USE
    default_message = "Account already in use"


class InvalidAmountError(MarketplaceError):
    code = ErrorCode.INVALID_AMOUNT
    default_message = "Invalid amount"


class InvalidStateError(MarketplaceError):
    code = ErrorCode.INVALID_STATE
    default_message = "Invalid state"


class InvalidOwnerError(MarketplaceError):
    code = ErrorCode.INVALID_OWNER
    default_message = "Invalid owner"


class InvalidExpiryError(MarketplaceError):
    code = ErrorCode.INVALID_EXPIRY
    default_message = "Invalid expiry"


class MissingCreatorError(MarketplaceError):
    code = ErrorCode.MISSING_CREATOR
    default_message = "Missing creator"


class NotAllowedError(MarketplaceError):
    code = ErrorCode.NOT_ALLOWED
    default_message = "Not allowed"


class NumericalOverflowError(MarketplaceError):
    code = ErrorCode.NUMERICAL_OVERFLOW
    default_message = "Math operation overflow"


class InvalidAccountInputError(MarketplaceError):
    code = ErrorCode.INVALID_ACCOUNT_INPUT
    default_message = "Invalid account input"


class InvalidPubkeyError(MarketplaceError):
    code = ErrorCode.INVALID_PUBKEY
    default_message = "Invalid pubkey"


class UninitializedError(MarketplaceError):
    code = ErrorCode.UNINITIALIZED
    default_message = "Uninitialized"


class BuyerAccountHasDelegateError(MarketplaceError):
    code = ErrorCode.BUYER_ACCOUNT_HAS_DELEGATE
    default_message = "Buyer receipt account cannot have a delegate set"


class SellerAccountHasDelegateError(MarketplaceError):
    code = ErrorCode.SELLER_ACCOUNT_HAS_DELEGATE
    default_message = "Seller receipt account cannot have a delegate set"


class InvalidDiscountAccountError(MarketplaceError):
    code = ErrorCode.INVALID_DISCOUNT_ACCOUNT
    default_message = "Invalid discount account"
