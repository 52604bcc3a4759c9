"""
Test suite for marketplace administration

Covers:
  - Marketplace creation on both rails
  - Fee schedule bounds on create and update
  - Authority hand-over and withdrawal destination changes
  - Treasury withdrawals
"""

import pytest

from auctionhouse.constants import NATIVE_MINT
from auctionhouse.exceptions import (
    AlreadyInUseError,
    InvalidAccountInputError,
    InvalidAmountError,
    InvalidOwnerError,
    InvalidPubkeyError,
    UnauthorizedError,
    UninitializedError,
)
from auctionhouse.ledger import WalletSigner
from auctionhouse.marketplace import MarketplaceConfig, pda

from conftest import AUTHORITY, BUYER, CURRENCY_AUTHORITY, DISCOUNT_BPS, FEE_BPS, OUTSIDER


# ============================================================================
#  CREATE
# ============================================================================

class TestCreateMarketplace:

    def test_native_marketplace(self, world, market):
        pid = world.program.program_id
        assert market.address == pda.marketplace_address(pid, AUTHORITY, NATIVE_MINT)
        assert market.treasury == pda.treasury_address(pid, market.address)
        assert market.authority == AUTHORITY
        assert market.creator == AUTHORITY
        assert market.fee_bps == FEE_BPS
        assert market.discount_bps == DISCOUNT_BPS
        assert world.program.get_config(market.address) == market

    def test_payer_funds_config_reserve(self, world):
        before = world.ledger.balance(AUTHORITY)
        world.native_marketplace()
        assert world.ledger.balance(AUTHORITY) == before - world.reserve(MarketplaceConfig.SPACE)

    def test_token_marketplace_creates_treasury_and_destination(self, world):
        currency = world.create_currency()
        market = world.token_marketplace(currency)

        treasury = world.token.get_token_account(market.treasury)
        assert treasury.owner == market.address
        assert treasury.mint == currency
        destination = world.token.get_token_account(market.treasury_withdrawal_destination)
        assert destination.owner == AUTHORITY

    def test_duplicate_rejected(self, world, market):
        with pytest.raises(AlreadyInUseError):
            world.native_marketplace()

    def test_fee_above_max(self, world):
        with pytest.raises(InvalidAmountError):
            world.native_marketplace(fee_bps=10_001)

    def test_discount_above_fee(self, world):
        with pytest.raises(InvalidAmountError):
            world.native_marketplace(fee_bps=100, discount_bps=101)

    def test_treasury_mint_must_be_a_mint(self, world):
        with pytest.raises(InvalidAccountInputError):
            world.token_marketplace(OUTSIDER)

    def test_native_destination_must_be_owner(self, world):
        with pytest.raises(InvalidPubkeyError):
            world.program.create_marketplace(
                payer=AUTHORITY, authority=AUTHORITY, treasury_mint=NATIVE_MINT,
                withdrawal_destination=OUTSIDER, withdrawal_destination_owner=AUTHORITY,
                fee_bps=FEE_BPS, discount_collection=world.collection_mint, discount_bps=0,
            )
        assert not world.ledger.exists(world.program.admin.marketplace_address(AUTHORITY, NATIVE_MINT))

    def test_token_destination_must_be_associated(self, world):
        currency = world.create_currency()
        with pytest.raises(InvalidPubkeyError):
            world.program.create_marketplace(
                payer=AUTHORITY, authority=AUTHORITY, treasury_mint=currency,
                withdrawal_destination=AUTHORITY, withdrawal_destination_owner=AUTHORITY,
                fee_bps=FEE_BPS, discount_collection=world.collection_mint, discount_bps=0,
            )

    def test_load_unknown_marketplace(self, world):
        with pytest.raises(UninitializedError):
            world.program.get_config("0x" + "1" * 40)

    def test_load_foreign_account(self, world):
        with pytest.raises(InvalidOwnerError):
            world.program.get_config(BUYER)


# ============================================================================
#  UPDATE
# ============================================================================

class TestUpdateMarketplace:

    def test_update_fees(self, world, market):
        updated = world.program.update_marketplace(AUTHORITY, market.address, fee_bps=500, discount_bps=200)
        assert updated.fee_bps == 500
        assert updated.discount_bps == 200
        assert world.program.get_config(market.address).fee_bps == 500

    def test_non_authority_rejected(self, world, market):
        with pytest.raises(UnauthorizedError):
            world.program.update_marketplace(OUTSIDER, market.address, fee_bps=0)

    def test_fee_below_discount_rejected_after_apply(self, world, market):
        with pytest.raises(InvalidAmountError):
            world.program.update_marketplace(AUTHORITY, market.address, fee_bps=DISCOUNT_BPS - 1)
        assert world.program.get_config(market.address).fee_bps == FEE_BPS

    def test_lowering_both_together(self, world, market):
        updated = world.program.update_marketplace(AUTHORITY, market.address, fee_bps=50, discount_bps=50)
        assert (updated.fee_bps, updated.discount_bps) == (50, 50)

    def test_new_authority_takes_over(self, world, market):
        world.program.update_marketplace(AUTHORITY, market.address, new_authority=OUTSIDER)
        with pytest.raises(UnauthorizedError):
            world.program.update_marketplace(AUTHORITY, market.address, fee_bps=0, discount_bps=0)
        updated = world.program.update_marketplace(OUTSIDER, market.address, fee_bps=0, discount_bps=0)
        assert updated.authority == OUTSIDER
        assert updated.creator == AUTHORITY
        assert updated.address == market.address

    def test_change_native_destination(self, world, market):
        updated = world.program.update_marketplace(
            AUTHORITY, market.address,
            withdrawal_destination=OUTSIDER, withdrawal_destination_owner=OUTSIDER,
        )
        assert updated.treasury_withdrawal_destination == OUTSIDER

    def test_destination_needs_owner(self, world, market):
        with pytest.raises(InvalidAccountInputError):
            world.program.update_marketplace(AUTHORITY, market.address, withdrawal_destination=OUTSIDER)

    def test_change_token_destination_creates_account(self, world):
        currency = world.create_currency()
        market = world.token_marketplace(currency)
        destination = world.token.associated_address(OUTSIDER, currency)
        world.program.update_marketplace(
            AUTHORITY, market.address,
            withdrawal_destination=destination, withdrawal_destination_owner=OUTSIDER,
        )
        assert world.token.get_token_account(destination).owner == OUTSIDER


# ============================================================================
#  WITHDRAW
# ============================================================================

class TestWithdraw:

    def test_native_withdraw(self, world, market):
        world.ledger.airdrop(market.treasury, 500)
        before = world.ledger.balance(AUTHORITY)
        world.program.withdraw(AUTHORITY, market.address, 200)
        assert world.ledger.balance(market.treasury) == 300
        assert world.ledger.balance(AUTHORITY) == before + 200

    def test_token_withdraw(self, world):
        currency = world.create_currency()
        market = world.token_marketplace(currency)
        world.token.mint_to(currency, market.treasury, 500, WalletSigner(CURRENCY_AUTHORITY))

        world.program.withdraw(AUTHORITY, market.address, 200)
        assert world.token.balance(market.treasury) == 300
        assert world.token.balance(market.treasury_withdrawal_destination) == 200

    def test_withdraw_by_non_authority(self, world, market):
        world.ledger.airdrop(market.treasury, 500)
        with pytest.raises(UnauthorizedError):
            world.program.withdraw(OUTSIDER, market.address, 100)

    def test_withdraw_follows_new_destination(self, world, market):
        world.ledger.airdrop(market.treasury, 500)
        world.program.update_marketplace(
            AUTHORITY, market.address, new_authority=OUTSIDER,
            withdrawal_destination=OUTSIDER, withdrawal_destination_owner=OUTSIDER,
        )
        before = world.ledger.balance(OUTSIDER)
        world.program.withdraw(OUTSIDER, market.address, 500)
        assert world.ledger.balance(OUTSIDER) == before + 500
