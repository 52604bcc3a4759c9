"""
Metadata Program

Asset metadata oracle. Each mint's metadata lives at a canonical derived
address and carries the royalty schedule (basis points plus creator
shares) and optional collection membership.
"""

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from ..constants import (
    MAX_BASIS_POINTS,
    MAX_CREATOR_LIMIT,
    MAX_SHARE_PERCENT,
    METADATA_ACCOUNT_SPACE,
    METADATA_PREFIX,
    METADATA_PROGRAM_ID,
)
from ..crypto.address import derive_address
from ..exceptions import MetadataError
from ..logger import get_logger
from .state import Ledger, ProgramSigner, Signer
from .token import TokenProgram

logger = get_logger(__name__)


@dataclass(frozen=True)
class Creator:
    address: str
    share: int
    verified: bool = False


@dataclass(frozen=True)
class Collection:
    key: str
    verified: bool = False


@dataclass(frozen=True)
class Metadata:
    """Metadata record of one mint."""
    mint: str
    update_authority: str
    name: str = ""
    symbol: str = ""
    seller_fee_basis_points: int = 0
    creators: Optional[Tuple[Creator, ...]] = None
    collection: Optional[Collection] = None


class MetadataProgram:
    """Metadata oracle bound to a host ``Ledger``."""

    program_id = METADATA_PROGRAM_ID

    def __init__(self, ledger: Ledger, token: TokenProgram):
        self.ledger = ledger
        self.token = token

    @staticmethod
    def find_metadata_address(mint: str) -> str:
        return derive_address(METADATA_PROGRAM_ID, METADATA_PREFIX, METADATA_PROGRAM_ID, mint)

    def create_metadata(
        self,
        mint: str,
        mint_authority: Signer,
        payer: Signer,
        seller_fee_basis_points: int = 0,
        creators: Optional[Sequence[Creator]] = None,
        collection: Optional[str] = None,
        name: str = "",
        symbol: str = "",
        update_authority: Optional[str] = None,
    ) -> str:
        """
        Create the metadata record of ``mint``.

        Creator shares must total 100. A collection starts unverified; see
        ``verify_collection``.

        Returns:
            The metadata address
        """
        mint_state = self.token.get_mint(mint)
        if mint_state is None:
            raise MetadataError(f"{mint} is not a mint")
        if mint_authority.address != mint_state.mint_authority:
            raise MetadataError(f"{mint_authority.address} is not the mint authority of {mint}")
        self.ledger.verify_signer(mint_authority, mint_authority.address)

        if not 0 <= seller_fee_basis_points <= MAX_BASIS_POINTS:
            raise MetadataError(f"seller_fee_basis_points must be 0-{MAX_BASIS_POINTS}")

        authority = update_authority or mint_authority.address
        creator_tuple = None
        if creators:
            if len(creators) > MAX_CREATOR_LIMIT:
                raise MetadataError(f"At most {MAX_CREATOR_LIMIT} creators allowed")
            if len({c.address for c in creators}) != len(creators):
                raise MetadataError("Duplicate creator address")
            if any(not 0 <= c.share <= MAX_SHARE_PERCENT for c in creators):
                raise MetadataError("Creator share must be 0-100")
            if sum(c.share for c in creators) != MAX_SHARE_PERCENT:
                raise MetadataError("Creator shares must total 100")
            creator_tuple = tuple(
                Creator(c.address, c.share, verified=c.address == authority)
                for c in creators
            )

        record = Metadata(
            mint=mint,
            update_authority=authority,
            name=name,
            symbol=symbol,
            seller_fee_basis_points=seller_fee_basis_points,
            creators=creator_tuple,
            collection=Collection(collection) if collection else None,
        )

        address = self.find_metadata_address(mint)
        signer = ProgramSigner(METADATA_PROGRAM_ID, METADATA_PREFIX, METADATA_PROGRAM_ID, mint)
        with self.ledger.invoke(self.program_id):
            self.ledger.create_account(
                address, METADATA_PROGRAM_ID, METADATA_ACCOUNT_SPACE, payer, signer, data=record,
            )
        logger.info(f"Metadata created for {mint}: royalty={seller_fee_basis_points} bps")
        return address

    def verify_collection(self, mint: str, collection_mint: str, collection_authority: Signer) -> None:
        """Mark ``mint`` as a verified member of ``collection_mint``."""
        record = self.load_metadata(self.find_metadata_address(mint))
        if record.collection is None or record.collection.key != collection_mint:
            raise MetadataError(f"{mint} does not claim collection {collection_mint}")

        parent = self.load_metadata(self.find_metadata_address(collection_mint))
        if collection_authority.address != parent.update_authority:
            raise MetadataError("Collection authority does not match")
        self.ledger.verify_signer(collection_authority, parent.update_authority)

        with self.ledger.invoke(self.program_id):
            self.ledger.write_data(
                self.find_metadata_address(mint),
                replace(record, collection=Collection(collection_mint, verified=True)),
            )
        logger.info(f"Collection {collection_mint} verified for {mint}")

    def load_metadata(self, address: str) -> Metadata:
        """
        Decode the metadata record at ``address``.

        Raises:
            AccountNotFoundError: nothing at ``address``
            MetadataError: the account is not a metadata record
        """
        account = self.ledger.require(address)
        if account.owner != METADATA_PROGRAM_ID or not isinstance(account.data, Metadata):
            raise MetadataError(f"{address} is not a metadata account")
        return account.data

    def get_metadata(self, mint: str) -> Optional[Metadata]:
        account = self.ledger.get(self.find_metadata_address(mint))
        if account is None or not isinstance(account.data, Metadata):
            return None
        return account.data
