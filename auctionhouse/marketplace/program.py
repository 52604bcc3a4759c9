"""
Marketplace Program

Single entry point binding the marketplace components to a host ledger.
Every operation is available as a method and as a serialized
``MarketplaceInstruction`` through ``process``. Either way the operation
runs inside one ledger transaction with the marketplace program on the
invocation stack, so a rejected instruction leaves no trace.

Usage:

    program = MarketplaceProgram(ledger, token, metadata)
    config = program.create_marketplace(payer, authority, NATIVE_MINT, ...)
    program.list(config.address, seller, mint, asset_account, price=1000)
    program.deposit(config.address, buyer, buyer, 1000)
    program.buy(config.address, buyer, mint, price=1000)
    program.execute_sale(config.address, buyer, seller, mint, ...)
"""

from typing import Any, Dict, List, Optional, Sequence

from ..constants import MARKETPLACE_PROGRAM_ID
from ..crypto.address import address_from_label
from ..exceptions import ConfigurationError, LedgerError, MarketplaceError
from ..ledger.metadata import MetadataProgram
from ..ledger.state import Ledger
from ..ledger.token import TokenProgram
from ..logger import LogManager, get_logger
from .admin import MarketplaceAdmin
from .discount import CollectionDiscountVerifier, DiscountProof, DiscountVerifier
from .escrow import EscrowAccountManager
from .instructions import MarketplaceInstruction, MarketplaceOpType
from .listings import ListingLedger
from .settlement import CreatorAccounts, SettlementEngine, SettlementResult
from .states import Listing, MarketplaceConfig, Offer

logger = get_logger(__name__)


class ExecResult:
    """Result of processing a single instruction."""

    __slots__ = ("success", "data", "error", "code", "logs")

    def __init__(
        self,
        success: bool = True,
        data: Optional[Dict[str, Any]] = None,
        error: str = "",
        code: str = "",
        logs: Optional[List[Dict[str, Any]]] = None,
    ):
        self.success = success
        self.data = data or {}
        self.error = error
        self.code = code
        self.logs = logs or []

    def __repr__(self) -> str:
        if self.success:
            return f"ExecResult(success=True, data={self.data})"
        return f"ExecResult(success=False, code={self.code}, error={self.error!r})"


class MarketplaceProgram:
    """Marketplace program bound to a host ledger."""

    def __init__(
        self,
        ledger: Ledger,
        token: Optional[TokenProgram] = None,
        metadata: Optional[MetadataProgram] = None,
        program_id: str = MARKETPLACE_PROGRAM_ID,
        max_creators: int = 5,
        verifier: Optional[DiscountVerifier] = None,
    ):
        self.ledger = ledger
        self.token = token or TokenProgram(ledger)
        self.metadata = metadata or MetadataProgram(ledger, self.token)
        self.program_id = program_id

        self.admin = MarketplaceAdmin(program_id, ledger, self.token)
        self.escrow = EscrowAccountManager(program_id, ledger, self.token)
        self.listings = ListingLedger(program_id, ledger, self.token)
        self.verifier = verifier or CollectionDiscountVerifier(self.token, self.metadata)
        self.settlement = SettlementEngine(
            program_id, ledger, self.token, self.metadata,
            self.listings, self.escrow, self.verifier, max_creators,
        )

        self._nonces: Dict[str, int] = {}
        self._processed = 0
        self._failed = 0
        self._sales = 0
        self._volume = 0

    @classmethod
    def from_config(cls, config, ledger: Optional[Ledger] = None) -> "MarketplaceProgram":
        """
        Build a program (and, if needed, its ledger) from an ``AuctionHouseConfig``.

        The configuration is validated and its log level applied to the
        package logger.

        Raises:
            ConfigurationError: the configuration does not validate
        """
        try:
            config.validate()
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        LogManager().set_level(config.logging.level)

        ledger = ledger or Ledger.from_config(config)
        return cls(
            ledger,
            program_id=address_from_label(config.marketplace.program_label),
            max_creators=config.marketplace.max_creators,
        )

    def _run(self, fn, *args, **kwargs):
        with self.ledger.transaction(), self.ledger.invoke(self.program_id):
            return fn(*args, **kwargs)

    # =====================================================================
    #  Queries
    # =====================================================================

    def get_config(self, marketplace: str) -> MarketplaceConfig:
        return self.admin.load_config(marketplace)

    def get_listing(self, mint: str) -> Optional[Listing]:
        return self.listings.get_listing(mint)

    def get_offer(self, mint: str, buyer: str) -> Optional[Offer]:
        return self.listings.get_offer(mint, buyer)

    def escrow_address(self, marketplace: str, wallet: str) -> str:
        return self.escrow.escrow_address(marketplace, wallet)

    def escrow_balance(self, marketplace: str, wallet: str) -> int:
        return self.escrow.balance(self.get_config(marketplace), wallet)

    # =====================================================================
    #  Administration
    # =====================================================================

    def create_marketplace(
        self,
        payer: str,
        authority: str,
        treasury_mint: str,
        withdrawal_destination: str,
        withdrawal_destination_owner: str,
        fee_bps: int,
        discount_collection: str,
        discount_bps: int,
    ) -> MarketplaceConfig:
        return self._run(
            self.admin.create_marketplace,
            payer, authority, treasury_mint, withdrawal_destination,
            withdrawal_destination_owner, fee_bps, discount_collection, discount_bps,
        )

    def update_marketplace(self, authority: str, marketplace: str, **changes) -> MarketplaceConfig:
        return self._run(self.admin.update_marketplace, authority, marketplace, **changes)

    def withdraw(self, authority: str, marketplace: str, amount: int) -> None:
        self._run(self.admin.withdraw, authority, marketplace, amount)

    # =====================================================================
    #  Trading
    # =====================================================================

    def deposit(self, marketplace: str, wallet: str, payment_account: str, amount: int) -> int:
        def _deposit():
            return self.escrow.deposit(self.get_config(marketplace), wallet, payment_account, amount)
        return self._run(_deposit)

    def list(
        self,
        marketplace: str,
        seller: str,
        mint: str,
        asset_account: str,
        price: int,
        expiry: Optional[int] = None,
    ) -> Listing:
        def _list():
            return self.listings.list(self.get_config(marketplace), seller, mint, asset_account, price, expiry)
        return self._run(_list)

    def unlist(self, marketplace: str, seller: str, mint: str, asset_account: str) -> int:
        def _unlist():
            return self.listings.unlist(self.get_config(marketplace), seller, mint, asset_account)
        return self._run(_unlist)

    def buy(
        self,
        marketplace: str,
        buyer: str,
        mint: str,
        price: int,
        expiry: Optional[int] = None,
    ) -> Offer:
        def _buy():
            return self.listings.buy(self.get_config(marketplace), buyer, mint, price, expiry)
        return self._run(_buy)

    def cancel_buy(self, marketplace: str, buyer: str, mint: str) -> int:
        def _cancel():
            return self.listings.cancel_buy(self.get_config(marketplace), buyer, mint)
        return self._run(_cancel)

    def execute_sale(
        self,
        marketplace: str,
        buyer: str,
        seller: str,
        mint: str,
        asset_account: str,
        metadata_account: str,
        seller_receipt: str,
        buyer_receipt: str,
        creators: Sequence[CreatorAccounts] = (),
        discount: Optional[DiscountProof] = None,
    ) -> SettlementResult:
        def _execute():
            return self.settlement.execute_sale(
                self.get_config(marketplace), buyer, seller, mint, asset_account,
                metadata_account, seller_receipt, buyer_receipt, creators, discount,
            )
        result = self._run(_execute)
        self._sales += 1
        self._volume += result.price
        return result

    # =====================================================================
    #  Instruction processing
    # =====================================================================

    def process(self, instr: MarketplaceInstruction) -> ExecResult:
        """
        Execute a serialized instruction.

        The signer and every address param are checksummed first, so nonces
        and ownership checks see one spelling per wallet. Marketplace and
        ledger rejections become a failed ``ExecResult`` carrying the error
        code name. Malformed params become INVALID_INSTRUCTION. The ledger
        is already rolled back by then.
        """
        try:
            instr.validate_basic()
            instr = instr.normalized()
        except (ValueError, TypeError) as e:
            self._failed += 1
            return ExecResult(success=False, error=str(e), code="INVALID_INSTRUCTION")

        expected_nonce = self._nonces.get(instr.signer, 0)
        if instr.nonce != expected_nonce:
            self._failed += 1
            return ExecResult(
                success=False,
                error=f"Invalid nonce: expected {expected_nonce}, got {instr.nonce}",
                code="INVALID_NONCE",
            )

        handlers = {
            MarketplaceOpType.CREATE_MARKETPLACE: self._op_create_marketplace,
            MarketplaceOpType.UPDATE_MARKETPLACE: self._op_update_marketplace,
            MarketplaceOpType.WITHDRAW: self._op_withdraw,
            MarketplaceOpType.DEPOSIT: self._op_deposit,
            MarketplaceOpType.LIST: self._op_list,
            MarketplaceOpType.UNLIST: self._op_unlist,
            MarketplaceOpType.BUY: self._op_buy,
            MarketplaceOpType.CANCEL_BUY: self._op_cancel_buy,
            MarketplaceOpType.EXECUTE_SALE: self._op_execute_sale,
        }
        handler = handlers[MarketplaceOpType(instr.op_type)]
        event_mark = len(self.ledger.events)

        try:
            data = handler(instr.signer, instr.params)
        except MarketplaceError as e:
            self._failed += 1
            logger.warning(f"{MarketplaceOpType(instr.op_type).name} rejected: {e}")
            return ExecResult(success=False, error=e.message, code=e.code.name)
        except LedgerError as e:
            self._failed += 1
            logger.warning(f"{MarketplaceOpType(instr.op_type).name} failed on the ledger: {e}")
            return ExecResult(success=False, error=str(e), code=type(e).__name__)
        except (ValueError, KeyError, TypeError) as e:
            self._failed += 1
            logger.error(f"{MarketplaceOpType(instr.op_type).name} has malformed params: {e!r}")
            return ExecResult(success=False, error=str(e), code="INVALID_INSTRUCTION")

        self._nonces[instr.signer] = instr.nonce + 1
        self._processed += 1
        logs = [
            {"kind": ev.kind, "address": ev.address, **ev.data}
            for ev in self.ledger.events[event_mark:]
        ]
        return ExecResult(success=True, data=data, logs=logs)

    # -- Operation handlers -------------------------------------------------

    def _op_create_marketplace(self, signer: str, p: Dict[str, Any]) -> Dict[str, Any]:
        config = self.create_marketplace(
            signer, p["authority"], p["treasury_mint"], p["withdrawal_destination"],
            p["withdrawal_destination_owner"], int(p["fee_bps"]),
            p["discount_collection"], int(p["discount_bps"]),
        )
        return {"marketplace": config.address, "treasury": config.treasury}

    def _op_update_marketplace(self, signer: str, p: Dict[str, Any]) -> Dict[str, Any]:
        optional = (
            "payer", "new_authority", "withdrawal_destination", "withdrawal_destination_owner",
            "fee_bps", "discount_collection", "discount_bps",
        )
        changes = {key: p[key] for key in optional if p.get(key) is not None}
        config = self.update_marketplace(signer, p["marketplace"], **changes)
        return {
            "marketplace": config.address,
            "authority": config.authority,
            "fee_bps": config.fee_bps,
            "discount_bps": config.discount_bps,
        }

    def _op_withdraw(self, signer: str, p: Dict[str, Any]) -> Dict[str, Any]:
        self.withdraw(signer, p["marketplace"], int(p["amount"]))
        return {"amount": int(p["amount"])}

    def _op_deposit(self, signer: str, p: Dict[str, Any]) -> Dict[str, Any]:
        debited = self.deposit(p["marketplace"], signer, p["payment_account"], int(p["amount"]))
        return {"escrow": self.escrow_address(p["marketplace"], signer), "debited": debited}

    def _op_list(self, signer: str, p: Dict[str, Any]) -> Dict[str, Any]:
        listing = self.list(
            p["marketplace"], signer, p["mint"], p["asset_account"], int(p["price"]), p.get("expiry"),
        )
        return {"listing": self.listings.listing_address(p["mint"]), "price": listing.price, "expiry": listing.expiry}

    def _op_unlist(self, signer: str, p: Dict[str, Any]) -> Dict[str, Any]:
        refund = self.unlist(p["marketplace"], signer, p["mint"], p["asset_account"])
        return {"refund": refund}

    def _op_buy(self, signer: str, p: Dict[str, Any]) -> Dict[str, Any]:
        offer = self.buy(p["marketplace"], signer, p["mint"], int(p["price"]), p.get("expiry"))
        return {"offer": self.listings.offer_address(p["mint"], signer), "price": offer.price, "expiry": offer.expiry}

    def _op_cancel_buy(self, signer: str, p: Dict[str, Any]) -> Dict[str, Any]:
        return {"refund": self.cancel_buy(p["marketplace"], signer, p["mint"])}

    def _op_execute_sale(self, signer: str, p: Dict[str, Any]) -> Dict[str, Any]:
        creators = [
            CreatorAccounts(c["creator"], c.get("receipt_account"))
            for c in p.get("creators", [])
        ]
        discount = None
        if p.get("discount"):
            d = p["discount"]
            discount = DiscountProof(d["mint"], d["holding_account"], d["metadata_account"])
        result = self.execute_sale(
            p["marketplace"], signer, p["seller"], p["mint"], p["asset_account"],
            p["metadata_account"], p["seller_receipt"], p["buyer_receipt"], creators, discount,
        )
        return result.to_dict()

    # =====================================================================
    #  Statistics
    # =====================================================================

    def get_stats(self) -> Dict[str, Any]:
        return {
            "program_id": self.program_id,
            "processed": self._processed,
            "failed": self._failed,
            "sales": self._sales,
            "volume": self._volume,
            "accounts": self.ledger.account_count,
        }
