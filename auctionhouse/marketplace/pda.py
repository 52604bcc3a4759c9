"""
Derived addresses and keyless authorities of the marketplace program.

    marketplace  [PREFIX, creator, treasury_mint]
    treasury     [PREFIX, marketplace, TREASURY]
    escrow       [PREFIX, marketplace, wallet]
    listing      [PREFIX, mint, LISTING]
    offer        [PREFIX, mint, buyer, OFFER]

The treasury address doubles as the vault: listed assets are held in
token accounts whose token owner is the treasury.
"""

from ..constants import LISTING, OFFER, PREFIX, TREASURY
from ..crypto.address import derive_address
from ..ledger.state import ProgramSigner


def marketplace_address(program_id: str, creator: str, treasury_mint: str) -> str:
    return derive_address(program_id, PREFIX, creator, treasury_mint)


def treasury_address(program_id: str, marketplace: str) -> str:
    return derive_address(program_id, PREFIX, marketplace, TREASURY)


def escrow_address(program_id: str, marketplace: str, wallet: str) -> str:
    return derive_address(program_id, PREFIX, marketplace, wallet)


def listing_address(program_id: str, mint: str) -> str:
    return derive_address(program_id, PREFIX, mint, LISTING)


def offer_address(program_id: str, mint: str, buyer: str) -> str:
    return derive_address(program_id, PREFIX, mint, buyer, OFFER)


# Signers are only honoured while ``program_id`` executes

def marketplace_signer(program_id: str, creator: str, treasury_mint: str) -> ProgramSigner:
    return ProgramSigner(program_id, PREFIX, creator, treasury_mint)


def treasury_signer(program_id: str, marketplace: str) -> ProgramSigner:
    return ProgramSigner(program_id, PREFIX, marketplace, TREASURY)


def escrow_signer(program_id: str, marketplace: str, wallet: str) -> ProgramSigner:
    return ProgramSigner(program_id, PREFIX, marketplace, wallet)


def listing_signer(program_id: str, mint: str) -> ProgramSigner:
    return ProgramSigner(program_id, PREFIX, mint, LISTING)


def offer_signer(program_id: str, mint: str, buyer: str) -> ProgramSigner:
    return ProgramSigner(program_id, PREFIX, mint, buyer, OFFER)
