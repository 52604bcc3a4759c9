"""
Auction House Crypto Module

Hash functions and deterministic address derivation.
"""

from .hashing import (
    keccak256,
    blake2b_256,
    blake2b_hex,
    discriminator,
)
from .address import (
    derive_address,
    address_from_label,
    normalize_address,
    is_valid_address,
    seed_bytes,
)

__all__ = [
    # Hashing
    "keccak256",
    "blake2b_256",
    "blake2b_hex",
    "discriminator",
    # Addresses
    "derive_address",
    "address_from_label",
    "normalize_address",
    "is_valid_address",
    "seed_bytes",
]
