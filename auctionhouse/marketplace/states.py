"""
Marketplace account records.

Every record is persisted in a fixed binary layout: an 8-byte type
discriminator followed by big-endian fixed-width fields. Addresses are
stored as their 20 raw bytes.
"""

import struct
from dataclasses import dataclass, field
from enum import IntEnum

from eth_utils import to_canonical_address, to_checksum_address

from ..crypto.hashing import discriminator
from ..exceptions import InvalidAccountInputError


class RecordState(IntEnum):
    """Lifecycle of a Listing or Offer. ABSENT means no account exists."""
    ABSENT = 0
    ACTIVE = 1
    CLOSED = 2


def _check_header(data: bytes, disc: bytes, space: int, name: str) -> None:
    if not isinstance(data, (bytes, bytearray)) or len(data) != space:
        raise InvalidAccountInputError(f"Malformed {name} record")
    if bytes(data[:8]) != disc:
        raise InvalidAccountInputError(f"Account is not a {name} record")


def _record_state(value: int) -> RecordState:
    try:
        return RecordState(value)
    except ValueError:
        raise InvalidAccountInputError(f"Unknown record state {value}") from None


@dataclass
class MarketplaceConfig:
    """Per-marketplace configuration. Invariant: discount_bps <= fee_bps <= 10000."""
    treasury: str
    treasury_withdrawal_destination: str
    treasury_mint: str
    authority: str
    creator: str
    fee_bps: int
    discount_collection: str
    discount_bps: int
    # Address the record was loaded from; not persisted
    address: str = field(default="", compare=False)

    DISCRIMINATOR = discriminator("MarketplaceConfig")
    _LAYOUT = struct.Struct(">20s20s20s20s20sH20sH")
    SPACE = 8 + _LAYOUT.size

    def pack(self) -> bytes:
        return self.DISCRIMINATOR + self._LAYOUT.pack(
            to_canonical_address(self.treasury),
            to_canonical_address(self.treasury_withdrawal_destination),
            to_canonical_address(self.treasury_mint),
            to_canonical_address(self.authority),
            to_canonical_address(self.creator),
            self.fee_bps,
            to_canonical_address(self.discount_collection),
            self.discount_bps,
        )

    @classmethod
    def unpack(cls, data: bytes, address: str = "") -> "MarketplaceConfig":
        _check_header(data, cls.DISCRIMINATOR, cls.SPACE, "MarketplaceConfig")
        (treasury, destination, mint, authority, creator,
         fee_bps, collection, discount_bps) = cls._LAYOUT.unpack(bytes(data[8:]))
        return cls(
            treasury=to_checksum_address(treasury),
            treasury_withdrawal_destination=to_checksum_address(destination),
            treasury_mint=to_checksum_address(mint),
            authority=to_checksum_address(authority),
            creator=to_checksum_address(creator),
            fee_bps=fee_bps,
            discount_collection=to_checksum_address(collection),
            discount_bps=discount_bps,
            address=address,
        )


@dataclass
class Listing:
    """A seller's ask for one asset. Keyed by mint."""
    state: RecordState
    owner: str
    mint: str
    price: int
    expiry: int = 0

    DISCRIMINATOR = discriminator("Listing")
    _LAYOUT = struct.Struct(">B20s20sQQ")
    SPACE = 8 + _LAYOUT.size

    def expiry_allows(self, now: int) -> bool:
        """Cancel/settle gate: no expiry set, or the expiry has passed."""
        return self.expiry == 0 or self.expiry < now

    def pack(self) -> bytes:
        return self.DISCRIMINATOR + self._LAYOUT.pack(
            int(self.state),
            to_canonical_address(self.owner),
            to_canonical_address(self.mint),
            self.price,
            self.expiry,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Listing":
        _check_header(data, cls.DISCRIMINATOR, cls.SPACE, "Listing")
        state, owner, mint, price, expiry = cls._LAYOUT.unpack(bytes(data[8:]))
        return cls(
            state=_record_state(state),
            owner=to_checksum_address(owner),
            mint=to_checksum_address(mint),
            price=price,
            expiry=expiry,
        )


@dataclass
class Offer:
    """A buyer's bid for one asset. Keyed by (mint, buyer)."""
    state: RecordState
    buyer: str
    mint: str
    price: int
    expiry: int = 0

    DISCRIMINATOR = discriminator("Offer")
    _LAYOUT = struct.Struct(">B20s20sQQ")
    SPACE = 8 + _LAYOUT.size

    def expiry_allows(self, now: int) -> bool:
        return self.expiry == 0 or self.expiry < now

    def pack(self) -> bytes:
        return self.DISCRIMINATOR + self._LAYOUT.pack(
            int(self.state),
            to_canonical_address(self.buyer),
            to_canonical_address(self.mint),
            self.price,
            self.expiry,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "Offer":
        _check_header(data, cls.DISCRIMINATOR, cls.SPACE, "Offer")
        state, buyer, mint, price, expiry = cls._LAYOUT.unpack(bytes(data[8:]))
        return cls(
            state=_record_state(state),
            buyer=to_checksum_address(buyer),
            mint=to_checksum_address(mint),
            price=price,
            expiry=expiry,
        )
