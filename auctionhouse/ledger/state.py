"""
Host Ledger State

Keyed account store the marketplace program executes against. Every
account has an owning program; only the owning program may rewrite or
close it, and lamports leave a system-owned account only with the
signature of its address.

Signatures come in two forms:
  - WalletSigner: a key that signed the surrounding instruction
  - ProgramSigner: a keyless authority derived from a program id and seeds,
    honoured only while that program is executing (see ``Ledger.invoke``)

``Ledger.transaction()`` stages mutations against a deep-copy snapshot and
restores it if the block raises, so an instruction either commits whole or
leaves no trace. Transactions nest.
"""

from __future__ import annotations

import copy
import hashlib
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..constants import MAX_U64, SYSTEM_PROGRAM_ID
from ..crypto.address import Seed, derive_address
from ..exceptions import (
    AccountInUseError,
    AccountNotFoundError,
    InsufficientFundsError,
    LedgerError,
    MissingSignatureError,
)
from ..logger import get_logger
from .sysvars import Clock, Rent

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  ACCOUNTS AND SIGNERS
# ══════════════════════════════════════════════════════════════════════

@dataclass
class Account:
    """
    A single ledger account.

    Attributes:
        address: Account address
        owner: Program allowed to rewrite and close the account
        lamports: Native balance
        space: Allocated data size in bytes (drives the minimum reserve)
        data: Program-defined payload (None for plain lamport accounts)
    """
    address: str
    owner: str = SYSTEM_PROGRAM_ID
    lamports: int = 0
    space: int = 0
    data: Any = None

    @property
    def is_empty(self) -> bool:
        """Check if the account carries no data."""
        return self.space == 0 and self.data is None

    @property
    def is_system_owned(self) -> bool:
        return self.owner == SYSTEM_PROGRAM_ID


@dataclass
class LedgerEvent:
    """Entry of the ledger event log."""
    kind: str
    address: str
    data: Dict[str, Any] = field(default_factory=dict)


class Signer:
    """Something able to authorize a debit from ``address``."""
    address: str


@dataclass(frozen=True)
class WalletSigner(Signer):
    """A wallet key that signed the current instruction."""
    address: str


class ProgramSigner(Signer):
    """
    Keyless authority of a derived address.

    The address is recomputed from ``program_id`` and ``seeds``; the ledger
    accepts the signature only while ``program_id`` is on the invocation
    stack.
    """

    __slots__ = ("program_id", "seeds", "address")

    def __init__(self, program_id: str, *seeds: Seed):
        self.program_id = program_id
        self.seeds: Tuple[Seed, ...] = tuple(seeds)
        self.address = derive_address(program_id, *seeds)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProgramSigner):
            return NotImplemented
        return self.program_id == other.program_id and self.address == other.address

    def __hash__(self) -> int:
        return hash((self.program_id, self.address))

    def __repr__(self) -> str:
        return f"ProgramSigner(program_id={self.program_id}, address={self.address})"


# ══════════════════════════════════════════════════════════════════════
#  LEDGER
# ══════════════════════════════════════════════════════════════════════

class Ledger:
    """
    In-process account store with rent, clock and snapshot/rollback.

    Usage:

        ledger = Ledger()
        ledger.airdrop(wallet, 10 * LAMPORTS_PER_SOL)
        with ledger.transaction():
            ledger.transfer_lamports(wallet, other, 500, WalletSigner(wallet))
    """

    def __init__(self, rent: Optional[Rent] = None, clock: Optional[Clock] = None):
        self.rent = rent or Rent()
        self.clock = clock or Clock()
        self._accounts: Dict[str, Account] = {}
        self._snapshots: List[Tuple[Dict[str, Account], int]] = []
        self._invocation_stack: List[str] = []
        self.events: List[LedgerEvent] = []

    @classmethod
    def from_config(cls, config) -> "Ledger":
        """Build a ledger from an ``AuctionHouseConfig``."""
        return cls(
            rent=Rent.from_config(config.ledger),
            clock=Clock(config.ledger.genesis_timestamp),
        )

    # =====================================================================
    #  Queries
    # =====================================================================

    def get(self, address: str) -> Optional[Account]:
        return self._accounts.get(address)

    def require(self, address: str) -> Account:
        account = self._accounts.get(address)
        if account is None:
            raise AccountNotFoundError(f"No account at {address}")
        return account

    def exists(self, address: str) -> bool:
        return address in self._accounts

    def balance(self, address: str) -> int:
        account = self._accounts.get(address)
        return account.lamports if account else 0

    def minimum_balance(self, space: int) -> int:
        return self.rent.minimum_balance(space)

    @property
    def now(self) -> int:
        return self.clock.unix_timestamp

    @property
    def account_count(self) -> int:
        return len(self._accounts)

    # =====================================================================
    #  Program invocation and signatures
    # =====================================================================

    @contextmanager
    def invoke(self, program_id: str) -> Iterator["Ledger"]:
        """Mark ``program_id`` as executing for the duration of the block."""
        self._invocation_stack.append(program_id)
        try:
            yield self
        finally:
            self._invocation_stack.pop()

    @property
    def active_program(self) -> Optional[str]:
        return self._invocation_stack[-1] if self._invocation_stack else None

    def verify_signer(self, signer: Optional[Signer], address: str) -> None:
        """
        Check that ``signer`` may authorize debits from ``address``.

        Raises:
            MissingSignatureError: wrong key, or a program signer used
                outside its program's invocation
        """
        if signer is None or signer.address != address:
            raise MissingSignatureError(f"Missing signature for {address}")
        if isinstance(signer, ProgramSigner) and signer.program_id not in self._invocation_stack:
            raise MissingSignatureError(
                f"Program {signer.program_id} is not executing, cannot sign for {address}"
            )

    def _require_owner_executing(self, account: Account) -> None:
        if self.active_program != account.owner:
            raise LedgerError(
                f"Program {self.active_program} cannot modify {account.address} "
                f"owned by {account.owner}"
            )

    # =====================================================================
    #  System operations
    # =====================================================================

    def airdrop(self, address: str, lamports: int) -> Account:
        """Credit ``lamports`` out of thin air. Test and genesis helper."""
        if lamports < 0:
            raise ValueError("lamports must be >= 0")
        account = self._accounts.get(address)
        if account is None:
            account = Account(address=address)
            self._accounts[address] = account
        if account.lamports + lamports > MAX_U64:
            raise LedgerError(f"Balance overflow for {address}")
        account.lamports += lamports
        self.emit("airdrop", address, lamports=lamports)
        return account

    def transfer_lamports(
        self,
        source: str,
        destination: str,
        amount: int,
        authority: Signer,
    ) -> None:
        """
        System transfer of ``amount`` lamports.

        The source must be system-owned and ``authority`` must sign for it.
        A missing destination is created as a plain lamport account.
        """
        if amount < 0:
            raise ValueError("amount must be >= 0")
        self.verify_signer(authority, source)
        src = self.require(source)
        if not src.is_system_owned:
            raise LedgerError(f"Transfer source {source} must be system-owned")
        if src.lamports < amount:
            raise InsufficientFundsError(
                f"{source} holds {src.lamports} lamports, needs {amount}"
            )

        dst = self._accounts.get(destination)
        if dst is None:
            dst = Account(address=destination)
            self._accounts[destination] = dst
        if destination != source and dst.lamports + amount > MAX_U64:
            raise LedgerError(f"Balance overflow for {destination}")

        src.lamports -= amount
        dst.lamports += amount
        logger.debug("Transfer %s → %s: %d lamports", source, destination, amount)
        self.emit("transfer", source, destination=destination, amount=amount)

    def create_account(
        self,
        address: str,
        owner: str,
        space: int,
        payer: Signer,
        account_signer: Signer,
        data: Any = None,
    ) -> Account:
        """
        Allocate ``space`` bytes at ``address`` and assign it to ``owner``.

        The payer funds the minimum reserve. An address that only holds
        lamports is topped up and allocated in place; anything else there
        raises AccountInUseError.
        """
        self.verify_signer(account_signer, address)
        existing = self._accounts.get(address)
        if existing is not None and (not existing.is_system_owned or not existing.is_empty):
            raise AccountInUseError(f"Account {address} already in use")

        required = self.rent.minimum_balance(space)
        current = existing.lamports if existing else 0
        if required > current:
            self.transfer_lamports(payer.address, address, required - current, payer)

        account = self._accounts.get(address)
        if account is None:
            account = Account(address=address)
            self._accounts[address] = account
        account.owner = owner
        account.space = space
        account.data = data
        self.emit("create", address, owner=owner, space=space)
        return account

    def assign(self, address: str, owner: str, signer: Signer) -> None:
        """Reassign a system-owned account to ``owner``."""
        self.verify_signer(signer, address)
        account = self.require(address)
        if not account.is_system_owned:
            raise LedgerError(f"Only system-owned accounts can be assigned: {address}")
        account.owner = owner
        self.emit("assign", address, owner=owner)

    def write_data(self, address: str, data: Any) -> None:
        """Replace an account's payload. The owning program must be executing."""
        account = self.require(address)
        self._require_owner_executing(account)
        account.data = data

    def close_account(self, address: str, destination: str) -> int:
        """
        Drain and remove a program-owned account.

        Returns:
            Lamports moved to ``destination``
        """
        account = self.require(address)
        self._require_owner_executing(account)
        if address == destination:
            raise LedgerError("Cannot close an account into itself")
        dst = self._accounts.get(destination)
        if dst is None:
            dst = Account(address=destination)
            self._accounts[destination] = dst
        lamports = account.lamports
        if dst.lamports + lamports > MAX_U64:
            raise LedgerError(f"Balance overflow for {destination}")
        dst.lamports += lamports
        del self._accounts[address]
        self.emit("close", address, destination=destination, lamports=lamports)
        return lamports

    # =====================================================================
    #  Atomicity
    # =====================================================================

    @contextmanager
    def transaction(self) -> Iterator["Ledger"]:
        """
        Stage every mutation made inside the block.

        On exception the account store and event log are restored to the
        snapshot taken on entry, then the exception propagates.
        """
        self._snapshots.append((copy.deepcopy(self._accounts), len(self.events)))
        try:
            yield self
        except Exception:
            accounts, event_count = self._snapshots.pop()
            self._accounts = accounts
            del self.events[event_count:]
            logger.debug("Transaction rolled back (depth %d)", len(self._snapshots))
            raise
        else:
            self._snapshots.pop()

    @property
    def transaction_depth(self) -> int:
        return len(self._snapshots)

    # =====================================================================
    #  State root
    # =====================================================================

    def state_root(self) -> str:
        """
        Deterministic hash of every account.

        Returns:
            64-char hex string (blake2b-256)
        """
        hasher = hashlib.blake2b(digest_size=32)
        for address in sorted(self._accounts):
            acct = self._accounts[address]
            account_hash = hashlib.blake2b(
                f"{address}:{acct.owner}:{acct.lamports}:{acct.space}:{acct.data!r}".encode(),
                digest_size=16,
            ).digest()
            hasher.update(account_hash)
        return hasher.hexdigest()

    def emit(self, kind: str, address: str, **data: Any) -> None:
        self.events.append(LedgerEvent(kind=kind, address=address, data=data))
