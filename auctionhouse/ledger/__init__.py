"""
Host ledger model: account store, sysvars, token program and metadata oracle.
"""

from .state import Account, Ledger, LedgerEvent, ProgramSigner, Signer, WalletSigner
from .sysvars import Clock, Rent
from .token import MintState, TokenAccountState, TokenProgram
from .metadata import Collection, Creator, Metadata, MetadataProgram

__all__ = [
    "Account",
    "Ledger",
    "LedgerEvent",
    "ProgramSigner",
    "Signer",
    "WalletSigner",
    "Clock",
    "Rent",
    "MintState",
    "TokenAccountState",
    "TokenProgram",
    "Collection",
    "Creator",
    "Metadata",
    "MetadataProgram",
]
