"""
Fee Calculator

Pure basis-point arithmetic for the protocol fee and creator royalties.
Products are bounded to u128 and results to u64, mirroring the widened
integer domain the amounts are persisted in; anything outside raises
NumericalOverflowError.

Worked example (price 1000, royalty 500 bps split 70/30, fee 250 bps,
discount 100 bps):

    royalties     35 + 15 = 50, dust 0, seller remainder 950
    standard fee  25  → seller net 925
    discount fee  10  → seller net 940
"""

from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple

from ..constants import BASIS_POINTS, MAX_BASIS_POINTS, MAX_SHARE_PERCENT, MAX_U64, MAX_U128
from ..exceptions import InvalidAmountError, NumericalOverflowError


def checked_mul_div(value: int, numerator: int, divisor: int) -> int:
    """``value * numerator // divisor`` with u128/u64 bound checks."""
    if value < 0 or numerator < 0 or divisor <= 0:
        raise NumericalOverflowError("Negative operand or zero divisor")
    product = value * numerator
    if product > MAX_U128:
        raise NumericalOverflowError(f"{value} * {numerator} exceeds u128")
    result = product // divisor
    if result > MAX_U64:
        raise NumericalOverflowError(f"{result} exceeds u64")
    return result


def _check_amount(price: int) -> None:
    if price < 0:
        raise InvalidAmountError(f"Negative price {price}")
    if price > MAX_U64:
        raise NumericalOverflowError(f"Price {price} exceeds u64")


@dataclass(frozen=True)
class FeeQuote:
    """Protocol fee for one sale."""
    standard_fee: int
    charged_fee: int
    discounted: bool

    @property
    def discount(self) -> int:
        return self.standard_fee - self.charged_fee


@dataclass(frozen=True)
class RoyaltyPayment:
    creator: str
    share: int
    amount: int


@dataclass(frozen=True)
class RoyaltySplit:
    """
    Royalty distribution of one sale.

    ``dust`` is what truncation left over after paying every creator; it is
    folded into ``seller_remainder``.
    """
    royalty_base: int
    payments: Tuple[RoyaltyPayment, ...]
    dust: int
    seller_remainder: int

    @property
    def royalty_total(self) -> int:
        return sum(p.amount for p in self.payments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "royalty_base": self.royalty_base,
            "payments": [
                {"creator": p.creator, "share": p.share, "amount": p.amount}
                for p in self.payments
            ],
            "dust": self.dust,
            "seller_remainder": self.seller_remainder,
        }


def protocol_fee(price: int, fee_bps: int, discount_bps: int, eligible: bool) -> FeeQuote:
    """
    Protocol fee on ``price``.

    The standard fee is always reported; the charged fee uses
    ``discount_bps`` when the buyer is eligible.
    """
    _check_amount(price)
    if not 0 <= fee_bps <= MAX_BASIS_POINTS:
        raise InvalidAmountError(f"fee_bps {fee_bps} out of range")
    if not 0 <= discount_bps <= fee_bps:
        raise InvalidAmountError(f"discount_bps {discount_bps} exceeds fee_bps {fee_bps}")

    standard = checked_mul_div(price, fee_bps, BASIS_POINTS)
    charged = checked_mul_div(price, discount_bps, BASIS_POINTS) if eligible else standard
    return FeeQuote(standard_fee=standard, charged_fee=charged, discounted=eligible)


def royalties(price: int, royalty_bps: int, shares: Sequence[Tuple[str, int]]) -> RoyaltySplit:
    """
    Split the royalty on ``price`` between creators.

    Args:
        price: Sale price
        royalty_bps: The asset's royalty rate
        shares: (creator, percent) pairs in metadata order; percents need
            not total 100

    Raises:
        NumericalOverflowError: if the payments exceed the royalty base
    """
    _check_amount(price)
    base = checked_mul_div(price, royalty_bps, BASIS_POINTS)
    if base > price:
        raise NumericalOverflowError(f"Royalty {base} exceeds price {price}")

    remaining = base
    payments = []
    for creator, share in shares:
        if not 0 <= share <= MAX_SHARE_PERCENT:
            raise InvalidAmountError(f"Creator share {share} out of range")
        amount = checked_mul_div(base, share, MAX_SHARE_PERCENT)
        remaining -= amount
        if remaining < 0:
            raise NumericalOverflowError("Creator shares exceed the royalty base")
        payments.append(RoyaltyPayment(creator=creator, share=share, amount=amount))

    return RoyaltySplit(
        royalty_base=base,
        payments=tuple(payments),
        dust=remaining,
        seller_remainder=price - base + remaining,
    )


def seller_net(split: RoyaltySplit, quote: FeeQuote) -> int:
    """What the seller receives: price minus royalties (plus dust) minus the charged fee."""
    net = split.seller_remainder - quote.charged_fee
    if net < 0:
        raise NumericalOverflowError("Fees exceed the seller's proceeds")
    return net
