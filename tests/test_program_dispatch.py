"""
Test suite for instruction processing

Covers:
  - Instruction envelope hashing, serialization and validation
  - A full trade driven through MarketplaceProgram.process
  - Nonce sequencing and error codes of rejected instructions
  - Program statistics
"""

import pytest

from auctionhouse.constants import LAMPORTS_PER_SOL, NATIVE_MINT
from auctionhouse.marketplace import MarketplaceInstruction, MarketplaceOpType, Offer

from conftest import AUTHORITY, BUYER, CREATOR_A, CREATOR_B, FEE_BPS, DISCOUNT_BPS, SELLER

PRICE = 1000


def _create_params(world, **overrides):
    params = {
        "authority": AUTHORITY,
        "treasury_mint": NATIVE_MINT,
        "withdrawal_destination": AUTHORITY,
        "withdrawal_destination_owner": AUTHORITY,
        "fee_bps": FEE_BPS,
        "discount_collection": world.collection_mint,
        "discount_bps": DISCOUNT_BPS,
    }
    params.update(overrides)
    return params


def _instr(op, signer, nonce=0, **params):
    return MarketplaceInstruction(op_type=op, signer=signer, params=params, nonce=nonce)


# ============================================================================
#  ENVELOPE
# ============================================================================

class TestInstructionEnvelope:

    def test_hash_deterministic(self):
        a = _instr(MarketplaceOpType.WITHDRAW, AUTHORITY, marketplace=AUTHORITY, amount=5)
        b = _instr(MarketplaceOpType.WITHDRAW, AUTHORITY, marketplace=AUTHORITY, amount=5)
        assert a.tx_hash() == b.tx_hash()
        assert len(a.tx_hash()) == 64

    def test_hash_covers_every_field(self):
        base = _instr(MarketplaceOpType.WITHDRAW, AUTHORITY, marketplace=AUTHORITY, amount=5)
        assert base.tx_hash() != _instr(
            MarketplaceOpType.WITHDRAW, AUTHORITY, nonce=1, marketplace=AUTHORITY, amount=5,
        ).tx_hash()
        assert base.tx_hash() != _instr(
            MarketplaceOpType.WITHDRAW, AUTHORITY, marketplace=AUTHORITY, amount=6,
        ).tx_hash()
        assert base.tx_hash() != _instr(
            MarketplaceOpType.WITHDRAW, SELLER, marketplace=AUTHORITY, amount=5,
        ).tx_hash()

    def test_json_round_trip(self):
        instr = _instr(MarketplaceOpType.BUY, BUYER, nonce=3, marketplace=AUTHORITY, mint=SELLER, price=PRICE)
        restored = MarketplaceInstruction.from_json(instr.to_json())
        assert restored.op_type is MarketplaceOpType.BUY
        assert restored.tx_hash() == instr.tx_hash()
        assert instr.to_dict()["tx_hash"] == instr.tx_hash()

    def test_validate_missing_param(self):
        instr = _instr(MarketplaceOpType.LIST, SELLER, marketplace=AUTHORITY, mint=SELLER)
        with pytest.raises(ValueError, match="asset_account"):
            instr.validate_basic()

    def test_validate_signer(self):
        with pytest.raises(ValueError):
            _instr(MarketplaceOpType.CANCEL_BUY, "", marketplace=AUTHORITY, mint=SELLER).validate_basic()
        with pytest.raises(ValueError):
            _instr(MarketplaceOpType.CANCEL_BUY, "0xnope", marketplace=AUTHORITY, mint=SELLER).validate_basic()

    def test_validate_negative_nonce(self):
        with pytest.raises(ValueError):
            _instr(MarketplaceOpType.CANCEL_BUY, BUYER, nonce=-1, marketplace=AUTHORITY, mint=SELLER).validate_basic()

    def test_repr(self):
        instr = _instr(MarketplaceOpType.CANCEL_BUY, BUYER, marketplace=AUTHORITY, mint=SELLER)
        assert "CANCEL_BUY" in repr(instr)


# ============================================================================
#  PROCESSING
# ============================================================================

class TestProcess:

    def test_full_trade(self, world):
        program = world.program
        created = program.process(_instr(MarketplaceOpType.CREATE_MARKETPLACE, AUTHORITY, **_create_params(world)))
        assert created.success, created
        marketplace = created.data["marketplace"]
        assert any(log["kind"] == "create_marketplace" for log in created.logs)

        mint, account, metadata = world.mint_asset(SELLER, "dispatch")
        listed = program.process(_instr(
            MarketplaceOpType.LIST, SELLER,
            marketplace=marketplace, mint=mint, asset_account=account, price=PRICE,
        ))
        assert listed.success, listed
        assert listed.data["price"] == PRICE

        deposited = program.process(_instr(
            MarketplaceOpType.DEPOSIT, BUYER,
            marketplace=marketplace, payment_account=BUYER, amount=PRICE,
        ))
        assert deposited.success, deposited
        assert deposited.data["debited"] == PRICE + world.reserve(0)

        bought = program.process(_instr(
            MarketplaceOpType.BUY, BUYER, nonce=1, marketplace=marketplace, mint=mint, price=PRICE,
        ))
        assert bought.success, bought

        sold = program.process(_instr(
            MarketplaceOpType.EXECUTE_SALE, BUYER, nonce=2,
            marketplace=marketplace,
            seller=SELLER,
            mint=mint,
            asset_account=account,
            metadata_account=metadata,
            seller_receipt=SELLER,
            buyer_receipt=world.token.associated_address(BUYER, mint),
            creators=[{"creator": CREATOR_A}, {"creator": CREATOR_B}],
        ))
        assert sold.success, sold
        assert sold.data["seller_net"] == 925
        assert [p["amount"] for p in sold.data["royalty_payments"]] == [35, 15]

        stats = program.get_stats()
        assert stats["processed"] == 5
        assert stats["failed"] == 0
        assert stats["sales"] == 1
        assert stats["volume"] == PRICE
        assert stats["accounts"] == world.ledger.account_count

    def test_update_and_withdraw(self, world):
        program = world.program
        marketplace = program.process(
            _instr(MarketplaceOpType.CREATE_MARKETPLACE, AUTHORITY, **_create_params(world))
        ).data["marketplace"]
        treasury = program.get_config(marketplace).treasury
        world.ledger.airdrop(treasury, 300)

        updated = program.process(_instr(
            MarketplaceOpType.UPDATE_MARKETPLACE, AUTHORITY, nonce=1, marketplace=marketplace, fee_bps=400,
        ))
        assert updated.success, updated
        assert updated.data["fee_bps"] == 400

        withdrawn = program.process(_instr(
            MarketplaceOpType.WITHDRAW, AUTHORITY, nonce=2, marketplace=marketplace, amount=300,
        ))
        assert withdrawn.success, withdrawn
        assert world.ledger.balance(treasury) == 0

    def test_invalid_instruction(self, world):
        result = world.program.process(_instr(MarketplaceOpType.WITHDRAW, AUTHORITY, marketplace=AUTHORITY))
        assert not result.success
        assert result.code == "INVALID_INSTRUCTION"
        assert world.program.get_stats()["failed"] == 1

    def test_wrong_nonce(self, world):
        result = world.program.process(
            _instr(MarketplaceOpType.CREATE_MARKETPLACE, AUTHORITY, nonce=1, **_create_params(world))
        )
        assert not result.success
        assert result.code == "INVALID_NONCE"

    def test_marketplace_error_code(self, world):
        root = world.ledger.state_root()
        result = world.program.process(
            _instr(MarketplaceOpType.CREATE_MARKETPLACE, AUTHORITY, **_create_params(world, fee_bps=10_001))
        )
        assert not result.success
        assert result.code == "INVALID_AMOUNT"
        assert world.ledger.state_root() == root

        retry = world.program.process(
            _instr(MarketplaceOpType.CREATE_MARKETPLACE, AUTHORITY, **_create_params(world))
        )
        assert retry.success, retry

    def test_replay_rejected(self, world):
        instr = _instr(MarketplaceOpType.CREATE_MARKETPLACE, AUTHORITY, **_create_params(world))
        assert world.program.process(instr).success
        replay = world.program.process(instr)
        assert replay.code == "INVALID_NONCE"

    def test_ledger_error_code(self, world):
        marketplace = world.native_marketplace().address
        root = world.ledger.state_root()
        result = world.program.process(_instr(
            MarketplaceOpType.DEPOSIT, BUYER,
            marketplace=marketplace, payment_account=BUYER, amount=1_000 * LAMPORTS_PER_SOL,
        ))
        assert not result.success
        assert result.code == "InsufficientFundsError"
        assert world.ledger.state_root() == root

    def test_cancel_refunds(self, world):
        marketplace = world.native_marketplace().address
        mint, _, _ = world.mint_asset(SELLER, "cancel")
        assert world.program.process(_instr(
            MarketplaceOpType.BUY, BUYER, marketplace=marketplace, mint=mint, price=PRICE,
        )).success
        cancelled = world.program.process(_instr(
            MarketplaceOpType.CANCEL_BUY, BUYER, nonce=1, marketplace=marketplace, mint=mint,
        ))
        assert cancelled.success, cancelled
        assert cancelled.data["refund"] == world.reserve(Offer.SPACE)


# ============================================================================
#  ADDRESS CASE
# ============================================================================

class TestAddressCase:

    def test_normalized_checksums_signer_and_params(self):
        instr = _instr(
            MarketplaceOpType.EXECUTE_SALE, BUYER.lower(),
            marketplace=AUTHORITY.lower(), seller=SELLER.lower(), mint=CREATOR_A.lower(),
            asset_account=CREATOR_B.lower(), metadata_account=CREATOR_B, seller_receipt=SELLER.lower(),
            buyer_receipt=BUYER.lower(),
            creators=[{"creator": CREATOR_A.lower(), "receipt_account": None}],
            discount={"mint": CREATOR_B.lower(), "holding_account": BUYER.lower(), "metadata_account": SELLER.lower()},
        )
        normalized = instr.normalized()
        assert normalized.signer == BUYER
        assert normalized.params["marketplace"] == AUTHORITY
        assert normalized.params["seller"] == SELLER
        assert normalized.params["creators"] == [{"creator": CREATOR_A, "receipt_account": None}]
        assert normalized.params["discount"]["holding_account"] == BUYER
        assert instr.signer == BUYER.lower()

    def test_lowercase_seller_can_list(self, world):
        marketplace = world.native_marketplace().address
        mint, account, _ = world.mint_asset(SELLER, "lower")
        listed = world.program.process(_instr(
            MarketplaceOpType.LIST, SELLER.lower(),
            marketplace=marketplace.lower(), mint=mint.lower(), asset_account=account.lower(), price=PRICE,
        ))
        assert listed.success, listed
        assert world.program.get_listing(mint).owner == SELLER

        unlisted = world.program.process(_instr(
            MarketplaceOpType.UNLIST, SELLER, nonce=1,
            marketplace=marketplace, mint=mint, asset_account=account,
        ))
        assert unlisted.success, unlisted

    def test_nonce_shared_across_spellings(self, world):
        marketplace = world.native_marketplace().address
        mint, _, _ = world.mint_asset(SELLER, "nonce-case")
        first = world.program.process(_instr(
            MarketplaceOpType.BUY, BUYER.lower(), marketplace=marketplace, mint=mint, price=PRICE,
        ))
        assert first.success, first

        replay = world.program.process(_instr(
            MarketplaceOpType.BUY, BUYER, marketplace=marketplace, mint=mint, price=PRICE,
        ))
        assert not replay.success
        assert replay.code == "INVALID_NONCE"

    def test_malformed_address_param(self, world):
        marketplace = world.native_marketplace().address
        result = world.program.process(_instr(
            MarketplaceOpType.BUY, BUYER, marketplace=marketplace, mint="nft-1", price=PRICE,
        ))
        assert not result.success
        assert result.code == "INVALID_INSTRUCTION"
        assert world.program.get_stats()["failed"] == 1


# ============================================================================
#  MALFORMED PARAMS
# ============================================================================

class TestMalformedParams:

    def test_non_integer_price(self, world):
        marketplace = world.native_marketplace().address
        mint, account, _ = world.mint_asset(SELLER, "bad-price")
        root = world.ledger.state_root()
        result = world.program.process(_instr(
            MarketplaceOpType.LIST, SELLER,
            marketplace=marketplace, mint=mint, asset_account=account, price="abc",
        ))
        assert not result.success
        assert result.code == "INVALID_INSTRUCTION"
        assert world.ledger.state_root() == root

        retry = world.program.process(_instr(
            MarketplaceOpType.LIST, SELLER,
            marketplace=marketplace, mint=mint, asset_account=account, price=PRICE,
        ))
        assert retry.success, retry

    def test_creator_entry_missing_key(self, world):
        marketplace = world.native_marketplace().address
        mint, account, metadata = world.mint_asset(SELLER, "bad-creator")
        result = world.program.process(_instr(
            MarketplaceOpType.EXECUTE_SALE, BUYER,
            marketplace=marketplace,
            seller=SELLER,
            mint=mint,
            asset_account=account,
            metadata_account=metadata,
            seller_receipt=SELLER,
            buyer_receipt=world.token.associated_address(BUYER, mint),
            creators=[{"receipt_account": None}],
        ))
        assert not result.success
        assert result.code == "INVALID_INSTRUCTION"

    def test_creators_not_a_list(self, world):
        marketplace = world.native_marketplace().address
        result = world.program.process(_instr(
            MarketplaceOpType.EXECUTE_SALE, BUYER,
            marketplace=marketplace, seller=SELLER, mint=CREATOR_A, asset_account=CREATOR_A,
            metadata_account=CREATOR_A, seller_receipt=SELLER, buyer_receipt=BUYER,
            creators="everyone",
        ))
        assert not result.success
        assert result.code == "INVALID_INSTRUCTION"
