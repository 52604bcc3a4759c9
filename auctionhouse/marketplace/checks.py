"""
Account assertions shared by the marketplace instructions.

Each helper raises the marketplace error a cross-checked key mismatch
maps to, so callers can run them back to back and fail fast.
"""

from ..constants import TOKEN_PROGRAM_ID
from ..exceptions import InvalidOwnerError, InvalidPubkeyError, UninitializedError
from ..ledger.state import Signer
from ..ledger.token import TokenAccountState, TokenProgram


def assert_keys_equal(actual: str, expected: str) -> None:
    if actual != expected:
        raise InvalidPubkeyError(f"{actual} != {expected}")


def assert_token_account(token: TokenProgram, address: str) -> TokenAccountState:
    account = token.ledger.get(address)
    if account is None or account.owner != TOKEN_PROGRAM_ID:
        raise InvalidOwnerError(f"{address} is not owned by the token program")
    state = token.get_token_account(address)
    if state is None:
        raise UninitializedError(f"{address} is not initialized")
    return state


def assert_is_ata_held_by(
    token: TokenProgram,
    address: str,
    wallet: str,
    mint: str,
    holder: str,
) -> TokenAccountState:
    """
    ``address`` is the associated account of (wallet, mint) and its token
    owner is currently ``holder``.
    """
    state = assert_token_account(token, address)
    assert_keys_equal(state.owner, holder)
    assert_keys_equal(state.mint, mint)
    assert_keys_equal(token.associated_address(wallet, mint), address)
    return state


def assert_is_ata(token: TokenProgram, address: str, wallet: str, mint: str) -> TokenAccountState:
    return assert_is_ata_held_by(token, address, wallet, mint, wallet)


def is_associated_account(token: TokenProgram, address: str, wallet: str, mint: str) -> bool:
    state = token.get_token_account(address)
    return (
        state is not None
        and state.owner == wallet
        and state.mint == mint
        and token.associated_address(wallet, mint) == address
    )


def ensure_associated_account(
    token: TokenProgram,
    address: str,
    wallet: str,
    mint: str,
    payer: Signer,
) -> TokenAccountState:
    """
    Create the associated account at ``address`` when nothing lives there,
    then assert it belongs to (wallet, mint).
    """
    existing = token.ledger.get(address)
    if existing is None or existing.is_empty:
        assert_keys_equal(address, token.associated_address(wallet, mint))
        token.create_associated_account(wallet, mint, payer)
    return assert_is_ata(token, address, wallet, mint)
