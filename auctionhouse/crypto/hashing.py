"""
Auction House Hashing Module

Provides hash functions used throughout the marketplace:
- keccak256: address derivation and record discriminators
- blake2b: instruction hashes
"""

import hashlib
from typing import Union

from eth_hash.auto import keccak as _eth_keccak


def _to_bytes(data: Union[bytes, str]) -> bytes:
    if isinstance(data, str):
        if data.startswith('0x') or data.startswith('0X'):
            return bytes.fromhex(data[2:])
        try:
            return bytes.fromhex(data)
        except ValueError:
            # Plain text string
            return data.encode('utf-8')
    return bytes(data)


def keccak256(data: Union[bytes, str]) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum standard).

    Args:
        data: Input bytes, hex string or plain text

    Returns:
        32-byte hash
    """
    return _eth_keccak(_to_bytes(data))


def blake2b_256(data: Union[bytes, str]) -> bytes:
    """
    Compute a 32-byte BLAKE2b digest.

    Used for instruction hashes, where no external compatibility is
    required.
    """
    return hashlib.blake2b(_to_bytes(data), digest_size=32).digest()


def blake2b_hex(data: Union[bytes, str]) -> str:
    return blake2b_256(data).hex()


def discriminator(name: str) -> bytes:
    """8-byte type tag prefixed to every persisted record of type ``name``."""
    return keccak256(f"account:{name}".encode('utf-8'))[:8]
