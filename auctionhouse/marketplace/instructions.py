"""
Marketplace Instruction Envelope

Serializable form of every marketplace operation, processed by
``MarketplaceProgram.process``.

Instruction Types:
  - CREATE_MARKETPLACE:  Initialize a marketplace and its treasury
  - UPDATE_MARKETPLACE:  Change authority, withdrawal destination or fees
  - WITHDRAW:            Pay the treasury out to the withdrawal destination
  - DEPOSIT:             Fund the signer's escrow
  - LIST / UNLIST:       Open or cancel a listing
  - BUY / CANCEL_BUY:    Open or cancel an offer
  - EXECUTE_SALE:        Settle a matched listing and offer

The signer is the wallet authorizing the instruction: the payer for
CREATE_MARKETPLACE, the authority for UPDATE_MARKETPLACE and WITHDRAW,
the seller for LIST/UNLIST and the buyer for everything else.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, Tuple

from ..crypto.address import is_valid_address, normalize_address
from ..crypto.hashing import blake2b_hex


class MarketplaceOpType(IntEnum):
    """All marketplace operation types. Values are part of the wire format."""
    CREATE_MARKETPLACE = 1
    UPDATE_MARKETPLACE = 2
    WITHDRAW = 3
    DEPOSIT = 4
    LIST = 5
    UNLIST = 6
    BUY = 7
    CANCEL_BUY = 8
    EXECUTE_SALE = 9


REQUIRED_PARAMS: Dict[MarketplaceOpType, Tuple[str, ...]] = {
    MarketplaceOpType.CREATE_MARKETPLACE: (
        "authority", "treasury_mint", "withdrawal_destination",
        "withdrawal_destination_owner", "fee_bps", "discount_collection", "discount_bps",
    ),
    MarketplaceOpType.UPDATE_MARKETPLACE: ("marketplace",),
    MarketplaceOpType.WITHDRAW: ("marketplace", "amount"),
    MarketplaceOpType.DEPOSIT: ("marketplace", "payment_account", "amount"),
    MarketplaceOpType.LIST: ("marketplace", "mint", "asset_account", "price"),
    MarketplaceOpType.UNLIST: ("marketplace", "mint", "asset_account"),
    MarketplaceOpType.BUY: ("marketplace", "mint", "price"),
    MarketplaceOpType.CANCEL_BUY: ("marketplace", "mint"),
    MarketplaceOpType.EXECUTE_SALE: (
        "marketplace", "seller", "mint", "asset_account", "metadata_account",
        "seller_receipt", "buyer_receipt",
    ),
}

# Params holding addresses, checksummed by ``normalized()``
ADDRESS_PARAMS = frozenset({
    "authority", "treasury_mint", "withdrawal_destination", "withdrawal_destination_owner",
    "discount_collection", "marketplace", "payer", "new_authority", "payment_account",
    "mint", "asset_account", "seller", "metadata_account", "seller_receipt", "buyer_receipt",
})
NESTED_ADDRESS_PARAMS: Dict[str, Tuple[str, ...]] = {
    "creators": ("creator", "receipt_account"),
    "discount": ("mint", "holding_account", "metadata_account"),
}


def _checksum_fields(entry: Dict[str, Any], keys: Tuple[str, ...]) -> Dict[str, Any]:
    out = dict(entry)
    for key in keys:
        if out.get(key) is not None:
            out[key] = normalize_address(out[key])
    return out


@dataclass
class MarketplaceInstruction:
    """
    Envelope for a single marketplace operation.

    Fields are hash-critical: changing any of them changes ``tx_hash()``.
    """
    op_type: MarketplaceOpType
    signer: str                             # wallet authorizing the instruction
    params: Dict[str, Any] = field(default_factory=dict)
    nonce: int = 0                          # distinguishes otherwise identical instructions

    # -- Hashing ------------------------------------------------------------

    def tx_hash(self) -> str:
        """Deterministic instruction hash."""
        return blake2b_hex(self._canonical_bytes())

    def _canonical_bytes(self) -> bytes:
        params_json = json.dumps(self.params, sort_keys=True, default=str).encode("utf-8")
        parts = [
            int(self.op_type).to_bytes(1, "big"),
            self.signer.encode("utf-8"),
            self.nonce.to_bytes(8, "big"),
            params_json,
        ]
        return b"".join(parts)

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op_type": int(self.op_type),
            "signer": self.signer,
            "nonce": self.nonce,
            "params": self.params,
            "tx_hash": self.tx_hash(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MarketplaceInstruction:
        return cls(
            op_type=MarketplaceOpType(data["op_type"]),
            signer=data["signer"],
            params=dict(data.get("params", {})),
            nonce=data.get("nonce", 0),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, default=str)

    @classmethod
    def from_json(cls, raw: str) -> MarketplaceInstruction:
        return cls.from_dict(json.loads(raw))

    # -- Validation ---------------------------------------------------------

    def validate_basic(self) -> bool:
        """
        Structural validation (no ledger access needed).

        Raises:
            ValueError: with specific reason
        """
        if not self.signer:
            raise ValueError("Missing signer address")
        if not is_valid_address(self.signer):
            raise ValueError(f"Invalid signer address: {self.signer}")
        if self.nonce < 0:
            raise ValueError("Nonce must be non-negative")
        if self.op_type not in set(MarketplaceOpType):
            raise ValueError(f"Unknown operation type: {self.op_type}")

        for key in REQUIRED_PARAMS[MarketplaceOpType(self.op_type)]:
            if key not in self.params:
                raise ValueError(f"{MarketplaceOpType(self.op_type).name} missing param: {key}")
        return True

    def normalized(self) -> MarketplaceInstruction:
        """
        Copy with the signer and every address param in checksum form.

        Raises:
            ValueError: a param that should hold an address does not
        """
        params = dict(self.params)
        for key in ADDRESS_PARAMS:
            if params.get(key) is not None:
                params[key] = normalize_address(params[key])

        if params.get("creators") is not None:
            if not isinstance(params["creators"], list):
                raise ValueError("creators must be a list")
            params["creators"] = [
                _checksum_fields(entry, NESTED_ADDRESS_PARAMS["creators"])
                for entry in params["creators"]
            ]
        if params.get("discount"):
            params["discount"] = _checksum_fields(params["discount"], NESTED_ADDRESS_PARAMS["discount"])

        return MarketplaceInstruction(
            op_type=MarketplaceOpType(self.op_type),
            signer=normalize_address(self.signer),
            params=params,
            nonce=self.nonce,
        )

    def __repr__(self) -> str:
        return (f"MarketplaceInstruction(op={self.op_type.name}, signer={self.signer[:12]}..., "
                f"nonce={self.nonce}, hash={self.tx_hash()[:12]}...)")
