"""
Auction House Address Module

Addresses are EIP-55 checksummed 20-byte hex strings. Program-owned
accounts live at addresses derived from a program id and a list of seeds,
so the same inputs always name the same account.
"""

from typing import Union

from eth_utils import (
    is_address,
    to_canonical_address,
    to_checksum_address,
)

from ..constants import PDA_MARKER
from .hashing import keccak256


Seed = Union[bytes, str]

ADDRESS_LENGTH = 20


def seed_bytes(seed: Seed) -> bytes:
    """
    Encode one derivation seed.

    Addresses are encoded as their 20 raw bytes, byte strings are used as-is.
    """
    if isinstance(seed, (bytes, bytearray)):
        return bytes(seed)
    if isinstance(seed, str) and is_address(seed):
        return to_canonical_address(seed)
    raise ValueError(f"Unsupported derivation seed: {seed!r}")


def derive_address(program_id: str, *seeds: Seed) -> str:
    """
    Derive the deterministic address owned by ``program_id`` for ``seeds``.

    address = keccak256(seeds || program_id || "ProgramDerivedAddress")[-20:]

    Args:
        program_id: Owning program address
        *seeds: Byte strings or addresses

    Returns:
        Checksum address
    """
    preimage = b"".join(seed_bytes(s) for s in seeds)
    preimage += to_canonical_address(program_id) + PDA_MARKER
    return to_checksum_address(keccak256(preimage)[-ADDRESS_LENGTH:])


def address_from_label(label: str) -> str:
    """Deterministic address for a human-readable label (test wallets, mints)."""
    return to_checksum_address(keccak256(label.encode('utf-8'))[-ADDRESS_LENGTH:])


def normalize_address(address: str) -> str:
    """
    Normalize an address to checksum format.

    Raises:
        ValueError: If the input is not a 20-byte hex address
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def is_valid_address(address: str) -> bool:
    """Check if address is a 0x-prefixed 20-byte hex string."""
    if not isinstance(address, str) or not address.startswith('0x'):
        return False
    return is_address(address.lower())
