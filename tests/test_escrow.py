"""
Test suite for escrow accounts

Covers:
  - Deterministic escrow derivation
  - Native deposits with reserve top-up
  - Token deposits into a marketplace-owned token account
  - Reserve-aware add/sub helpers
"""

import pytest

from auctionhouse.constants import MAX_U64
from auctionhouse.exceptions import (
    InvalidAccountInputError,
    InvalidAmountError,
    NumericalOverflowError,
)
from auctionhouse.marketplace import pda

from conftest import AUTHORITY, BUYER, OUTSIDER, SELLER


class TestEscrowDerivation:

    def test_escrow_address_is_stable(self, world, market):
        a = world.program.escrow_address(market.address, BUYER)
        b = pda.escrow_address(world.program.program_id, market.address, BUYER)
        assert a == b

    def test_escrow_differs_per_wallet(self, world, market):
        assert world.program.escrow_address(market.address, BUYER) != \
            world.program.escrow_address(market.address, SELLER)

    def test_escrow_differs_per_marketplace(self, world, market):
        other = world.create_currency("eurc")
        token_market = world.token_marketplace(other)
        assert world.program.escrow_address(market.address, BUYER) != \
            world.program.escrow_address(token_market.address, BUYER)


class TestNativeDeposit:

    def test_first_deposit_tops_up_reserve(self, world, market):
        reserve = world.reserve(0)
        before = world.ledger.balance(BUYER)
        debited = world.program.deposit(market.address, BUYER, BUYER, 1000)
        assert debited == reserve + 1000
        assert world.ledger.balance(BUYER) == before - reserve - 1000
        assert world.program.escrow_balance(market.address, BUYER) == reserve + 1000

    def test_second_deposit_adds_amount_only(self, world, market):
        world.program.deposit(market.address, BUYER, BUYER, 1000)
        debited = world.program.deposit(market.address, BUYER, BUYER, 500)
        assert debited == 500
        assert world.program.escrow_balance(market.address, BUYER) == world.reserve(0) + 1500

    def test_payment_account_must_be_wallet(self, world, market):
        with pytest.raises(InvalidAccountInputError):
            world.program.deposit(market.address, BUYER, OUTSIDER, 1000)

    def test_negative_amount(self, world, market):
        with pytest.raises(InvalidAmountError):
            world.program.deposit(market.address, BUYER, BUYER, -1)

    def test_amount_above_u64(self, world, market):
        with pytest.raises(NumericalOverflowError):
            world.program.deposit(market.address, BUYER, BUYER, MAX_U64 + 1)

    def test_reserve_plus_amount_overflow(self, world, market):
        with pytest.raises(NumericalOverflowError):
            world.program.deposit(market.address, BUYER, BUYER, MAX_U64)


class TestTokenDeposit:

    def _setup(self, world):
        currency = world.create_currency(holders=[(BUYER, 10_000), (OUTSIDER, 10_000)])
        return currency, world.token_marketplace(currency)

    def test_deposit_creates_escrow_token_account(self, world):
        currency, market = self._setup(world)
        payment = world.token.associated_address(BUYER, currency)
        world.program.deposit(market.address, BUYER, payment, 2_500)

        escrow = world.program.escrow_address(market.address, BUYER)
        state = world.token.get_token_account(escrow)
        assert state.owner == market.address
        assert state.mint == currency
        assert state.amount == 2_500
        assert world.token.balance(payment) == 7_500

    def test_repeat_deposit_reuses_escrow(self, world):
        currency, market = self._setup(world)
        payment = world.token.associated_address(BUYER, currency)
        world.program.deposit(market.address, BUYER, payment, 1_000)
        world.program.deposit(market.address, BUYER, payment, 1_000)
        assert world.program.escrow_balance(market.address, BUYER) == 2_000

    def test_foreign_payment_account_rejected(self, world):
        currency, market = self._setup(world)
        foreign = world.token.associated_address(OUTSIDER, currency)
        with pytest.raises(InvalidAccountInputError):
            world.program.deposit(market.address, BUYER, foreign, 1_000)

    def test_wallet_as_payment_account_rejected(self, world):
        _, market = self._setup(world)
        with pytest.raises(InvalidAccountInputError):
            world.program.deposit(market.address, BUYER, BUYER, 1_000)

    def test_failed_deposit_leaves_no_escrow(self, world):
        currency, market = self._setup(world)
        foreign = world.token.associated_address(OUTSIDER, currency)
        with pytest.raises(InvalidAccountInputError):
            world.program.deposit(market.address, BUYER, foreign, 1_000)
        assert not world.ledger.exists(world.program.escrow_address(market.address, BUYER))


class TestReserveHelpers:

    def test_rent_checked_add_below_reserve(self, world, market):
        escrow = world.program.escrow_address(market.address, BUYER)
        world.ledger.airdrop(escrow, 100)
        assert world.program.escrow.rent_checked_add(escrow, 0) == world.reserve(0) - 100

    def test_rent_checked_add_above_reserve(self, world, market):
        escrow = world.program.escrow_address(market.address, BUYER)
        world.ledger.airdrop(escrow, world.reserve(0))
        assert world.program.escrow.rent_checked_add(escrow, 42) == 42

    def test_rent_checked_sub_keeps_reserve(self, world, market):
        escrow = world.program.escrow_address(market.address, BUYER)
        world.ledger.airdrop(escrow, world.reserve(0) + 1000)
        assert world.program.escrow.rent_checked_sub(escrow, 1000) == 1000
        assert world.program.escrow.rent_checked_sub(escrow, 1500) == 1000

    def test_rent_checked_sub_insufficient(self, world, market):
        escrow = world.program.escrow_address(market.address, BUYER)
        world.ledger.airdrop(escrow, 10)
        with pytest.raises(NumericalOverflowError):
            world.program.escrow.rent_checked_sub(escrow, 11)

    def test_reserve_shortfall(self, world, market):
        escrow = world.program.escrow_address(market.address, BUYER)
        reserve = world.reserve(0)
        world.ledger.airdrop(escrow, 2 * reserve)
        assert world.program.escrow.reserve_shortfall(escrow, reserve) == 0
        assert world.program.escrow.reserve_shortfall(escrow, 2 * reserve) == reserve
