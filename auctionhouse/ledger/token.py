"""
Token Program

Fungible and unique-asset token ledger living inside the host ledger:
  - Mints (supply, decimals, mint authority)
  - Token accounts (mint, owner, amount, optional delegate)
  - Associated accounts at a derived address per (wallet, mint)
  - transfer / approve / revoke / set_owner with owner-or-delegate checks

Every mutation runs with the token program on the invocation stack, so the
ledger's ownership rules apply to token accounts like any other account.
"""

from dataclasses import dataclass, replace
from typing import Optional

from ..constants import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    MAX_U64,
    MINT_ACCOUNT_SPACE,
    TOKEN_ACCOUNT_SPACE,
    TOKEN_PROGRAM_ID,
)
from ..crypto.address import derive_address
from ..exceptions import AccountInUseError, InsufficientFundsError, TokenError
from ..logger import get_logger
from .state import Ledger, ProgramSigner, Signer, WalletSigner

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ACCOUNT LAYOUTS
# ══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MintState:
    """A token mint. Unique assets are mints with decimals 0 and supply 1."""
    mint_authority: Optional[str]
    supply: int = 0
    decimals: int = 0


@dataclass(frozen=True)
class TokenAccountState:
    """
    Balance of one mint held on behalf of ``owner``.

    ``delegate`` may move up to ``delegated_amount`` units without the
    owner's signature.
    """
    mint: str
    owner: str
    amount: int = 0
    delegate: Optional[str] = None
    delegated_amount: int = 0


# ══════════════════════════════════════════════════════════════════════
#  PROGRAM
# ══════════════════════════════════════════════════════════════════════

class TokenProgram:
    """Token ledger bound to a host ``Ledger``."""

    program_id = TOKEN_PROGRAM_ID

    def __init__(self, ledger: Ledger):
        self.ledger = ledger

    # ── Read-only views ───────────────────────────────────────────────

    def get_mint(self, mint: str) -> Optional[MintState]:
        account = self.ledger.get(mint)
        if account is None or account.owner != TOKEN_PROGRAM_ID:
            return None
        return account.data if isinstance(account.data, MintState) else None

    def get_token_account(self, address: str) -> Optional[TokenAccountState]:
        account = self.ledger.get(address)
        if account is None or account.owner != TOKEN_PROGRAM_ID:
            return None
        return account.data if isinstance(account.data, TokenAccountState) else None

    def balance(self, address: str) -> int:
        state = self.get_token_account(address)
        return state.amount if state else 0

    @staticmethod
    def associated_address(wallet: str, mint: str) -> str:
        """Canonical token account of ``wallet`` for ``mint``."""
        return derive_address(ASSOCIATED_TOKEN_PROGRAM_ID, wallet, TOKEN_PROGRAM_ID, mint)

    def _require_mint(self, mint: str) -> MintState:
        state = self.get_mint(mint)
        if state is None:
            raise TokenError(f"{mint} is not a mint")
        return state

    def _require_token_account(self, address: str) -> TokenAccountState:
        state = self.get_token_account(address)
        if state is None:
            raise TokenError(f"{address} is not an initialized token account")
        return state

    # ── Mints ─────────────────────────────────────────────────────────

    def create_mint(
        self,
        mint: str,
        mint_authority: str,
        payer: Signer,
        decimals: int = 0,
        mint_signer: Optional[Signer] = None,
    ) -> MintState:
        """
        Allocate and initialize a mint at ``mint``.

        Args:
            mint: Address of the new mint (its key signs the allocation)
            mint_authority: Address allowed to mint new supply
            payer: Funds the minimum reserve
            decimals: Fractional digits
            mint_signer: Signer for ``mint``; defaults to the mint's own key
        """
        if not 0 <= decimals <= 18:
            raise TokenError(f"Decimals must be 0-18, got {decimals}")
        state = MintState(mint_authority=mint_authority, decimals=decimals)
        with self.ledger.invoke(self.program_id):
            self.ledger.create_account(
                mint, TOKEN_PROGRAM_ID, MINT_ACCOUNT_SPACE,
                payer, mint_signer or WalletSigner(mint), data=state,
            )
        logger.info(f"Mint created: {mint} (decimals={decimals})")
        return state

    def mint_to(self, mint: str, destination: str, amount: int, authority: Signer) -> None:
        if amount < 0:
            raise TokenError("Mint amount cannot be negative")
        mint_state = self._require_mint(mint)
        if mint_state.mint_authority is None or authority.address != mint_state.mint_authority:
            raise TokenError(f"{authority.address} is not the mint authority of {mint}")
        self.ledger.verify_signer(authority, mint_state.mint_authority)

        dest = self._require_token_account(destination)
        if dest.mint != mint:
            raise TokenError("Destination account holds a different mint")
        if mint_state.supply + amount > MAX_U64:
            raise TokenError("Mint supply overflow")

        with self.ledger.invoke(self.program_id):
            self.ledger.write_data(mint, replace(mint_state, supply=mint_state.supply + amount))
            self.ledger.write_data(destination, replace(dest, amount=dest.amount + amount))
        self.ledger.emit("mint_to", destination, mint=mint, amount=amount)
        logger.debug(f"Minted {amount} units of {mint} → {destination}")

    # ── Token accounts ────────────────────────────────────────────────

    def create_account(
        self,
        address: str,
        mint: str,
        owner: str,
        payer: Signer,
        account_signer: Signer,
    ) -> TokenAccountState:
        """Allocate a token account at ``address`` and initialize it for ``owner``."""
        self._require_mint(mint)
        with self.ledger.invoke(self.program_id):
            self.ledger.create_account(address, TOKEN_PROGRAM_ID, TOKEN_ACCOUNT_SPACE, payer, account_signer)
        return self.initialize_account(address, mint, owner)

    def initialize_account(self, address: str, mint: str, owner: str) -> TokenAccountState:
        """Initialize an allocated, still-empty token account."""
        account = self.ledger.require(address)
        if account.owner != TOKEN_PROGRAM_ID:
            raise TokenError(f"{address} is not owned by the token program")
        if account.data is not None:
            raise TokenError(f"{address} is already initialized")
        self._require_mint(mint)

        state = TokenAccountState(mint=mint, owner=owner)
        with self.ledger.invoke(self.program_id):
            self.ledger.write_data(address, state)
        logger.debug(f"Token account {address} initialized: mint={mint} owner={owner}")
        return state

    def create_associated_account(self, wallet: str, mint: str, payer: Signer) -> str:
        """
        Create the associated token account of ``wallet`` for ``mint``.

        Returns:
            The associated account address

        Raises:
            AccountInUseError: if it already exists
        """
        address = self.associated_address(wallet, mint)
        if self.get_token_account(address) is not None:
            raise AccountInUseError(f"Associated account {address} already exists")
        signer = ProgramSigner(ASSOCIATED_TOKEN_PROGRAM_ID, wallet, TOKEN_PROGRAM_ID, mint)
        with self.ledger.invoke(ASSOCIATED_TOKEN_PROGRAM_ID):
            self.create_account(address, mint, wallet, payer, signer)
        return address

    # ── Transfers and authorities ─────────────────────────────────────

    def _authorize(self, state: TokenAccountState, amount: int, authority: Signer) -> bool:
        """Returns True when the delegate authorized the debit."""
        if authority.address == state.owner:
            self.ledger.verify_signer(authority, state.owner)
            return False
        if state.delegate is not None and authority.address == state.delegate:
            if state.delegated_amount < amount:
                raise TokenError(
                    f"Delegate allowance {state.delegated_amount} < transfer amount {amount}"
                )
            self.ledger.verify_signer(authority, state.delegate)
            return True
        raise TokenError(f"{authority.address} is neither owner nor delegate")

    def transfer(self, source: str, destination: str, amount: int, authority: Signer) -> None:
        """
        Move ``amount`` units between two token accounts of the same mint.
        """
        if amount < 0:
            raise TokenError("Transfer amount cannot be negative")
        src = self._require_token_account(source)
        dst = self._require_token_account(destination)
        if src.mint != dst.mint:
            raise TokenError("Source and destination hold different mints")

        via_delegate = self._authorize(src, amount, authority)
        if src.amount < amount:
            raise InsufficientFundsError(
                f"{source} balance {src.amount} < transfer amount {amount}"
            )
        if source == destination:
            return
        if dst.amount + amount > MAX_U64:
            raise TokenError(f"Balance overflow for {destination}")

        src_new = replace(src, amount=src.amount - amount)
        if via_delegate:
            remaining = src.delegated_amount - amount
            src_new = replace(
                src_new,
                delegated_amount=remaining,
                delegate=src.delegate if remaining > 0 else None,
            )

        with self.ledger.invoke(self.program_id):
            self.ledger.write_data(source, src_new)
            self.ledger.write_data(destination, replace(dst, amount=dst.amount + amount))
        self.ledger.emit("token_transfer", source, destination=destination, amount=amount, mint=src.mint)
        logger.debug(f"Token transfer: {source} → {destination} {amount} units")

    def approve(self, source: str, delegate: str, amount: int, owner: Signer) -> None:
        if amount < 0:
            raise TokenError("Allowance cannot be negative")
        state = self._require_token_account(source)
        if owner.address != state.owner:
            raise TokenError(f"{owner.address} does not own {source}")
        self.ledger.verify_signer(owner, state.owner)
        with self.ledger.invoke(self.program_id):
            self.ledger.write_data(source, replace(state, delegate=delegate, delegated_amount=amount))
        logger.debug(f"Approve: {source} delegate={delegate} allowance={amount}")

    def revoke(self, source: str, owner: Signer) -> None:
        state = self._require_token_account(source)
        if owner.address != state.owner:
            raise TokenError(f"{owner.address} does not own {source}")
        self.ledger.verify_signer(owner, state.owner)
        with self.ledger.invoke(self.program_id):
            self.ledger.write_data(source, replace(state, delegate=None, delegated_amount=0))

    def set_owner(self, account: str, new_owner: str, authority: Signer) -> None:
        """
        Hand the account to ``new_owner``. Clears any delegate.
        """
        state = self._require_token_account(account)
        if authority.address != state.owner:
            raise TokenError(f"{authority.address} does not own {account}")
        self.ledger.verify_signer(authority, state.owner)
        with self.ledger.invoke(self.program_id):
            self.ledger.write_data(
                account,
                replace(state, owner=new_owner, delegate=None, delegated_amount=0),
            )
        self.ledger.emit("set_owner", account, owner=new_owner)
        logger.debug(f"Token account {account} owner → {new_owner}")
