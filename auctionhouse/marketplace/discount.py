"""
Fee discount eligibility.

A buyer earns the discounted protocol fee by proving they hold an asset
from the marketplace's discount collection. The proof names the asset
mint, the buyer's holding account and the asset's metadata record.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..exceptions import InvalidDiscountAccountError, MetadataError
from ..ledger.metadata import MetadataProgram
from ..ledger.token import TokenProgram
from ..logger import get_logger
from .checks import is_associated_account
from .states import MarketplaceConfig

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiscountProof:
    mint: str
    holding_account: str
    metadata_account: str


class DiscountVerifier(ABC):
    """Decides whether a buyer is charged the discounted fee."""

    @abstractmethod
    def is_eligible(
        self,
        config: MarketplaceConfig,
        buyer: str,
        proof: Optional[DiscountProof],
    ) -> bool:
        """
        Returns:
            False when no proof is supplied, True for a valid proof

        Raises:
            InvalidDiscountAccountError: a supplied proof does not hold up
        """


class CollectionDiscountVerifier(DiscountVerifier):
    """Eligibility through a verified member of ``config.discount_collection``."""

    def __init__(self, token: TokenProgram, metadata: MetadataProgram):
        self.token = token
        self.metadata = metadata

    def is_eligible(self, config, buyer, proof) -> bool:
        if proof is None:
            return False

        account = self.token.ledger.get(proof.metadata_account)
        if account is None or account.is_empty:
            raise InvalidDiscountAccountError("Discount metadata account is empty")

        if not is_associated_account(self.token, proof.holding_account, buyer, proof.mint):
            raise InvalidDiscountAccountError(
                f"{proof.holding_account} is not the {proof.mint} account of {buyer}"
            )
        if self.token.balance(proof.holding_account) < 1:
            raise InvalidDiscountAccountError("Discount asset is not held")

        if proof.metadata_account != self.metadata.find_metadata_address(proof.mint):
            raise InvalidDiscountAccountError("Discount metadata does not belong to the mint")
        try:
            record = self.metadata.load_metadata(proof.metadata_account)
        except MetadataError as e:
            raise InvalidDiscountAccountError(str(e)) from e

        collection = record.collection
        if collection is None or not collection.verified or collection.key != config.discount_collection:
            raise InvalidDiscountAccountError(
                f"{proof.mint} is not a verified member of {config.discount_collection}"
            )

        logger.debug(f"Discount granted to {buyer} via {proof.mint}")
        return True
