"""
Issuance Engine - Types.

============================================================
PURPOSE
============================================================
Type definitions for bio-token issuance.

- CommitPhase: fixed commit sequence plus the FAILED terminal
- TransactionRecord: mint transaction attached to a commit run
- TransactionResult: what issue_token returns
- CommitRun / CommitSnapshot: mutable run and read-only view

============================================================
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from core.clock import now_utc, to_iso8601
from scoring_engine.types import Recording


# ============================================================
# ENUMS
# ============================================================

class CommitPhase(Enum):
    """
    Commit sequence.

    VALIDATION -> MINTING -> GEOREFERENCING -> COMPLETE
    Any non-terminal phase may end in FAILED.
    """

    VALIDATION = "VALIDATION"
    MINTING = "MINTING"
    GEOREFERENCING = "GEOREFERENCING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"

    def is_terminal(self) -> bool:
        return self in (CommitPhase.COMPLETE, CommitPhase.FAILED)


# Forward order of the non-failed phases
PHASE_ORDER: List[CommitPhase] = [
    CommitPhase.VALIDATION,
    CommitPhase.MINTING,
    CommitPhase.GEOREFERENCING,
    CommitPhase.COMPLETE,
]


class TransactionStatus(Enum):
    """Status of the mint transaction as seen by the commit run."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"


# ============================================================
# TRANSACTIONS
# ============================================================

@dataclass(frozen=True)
class TransactionResult:
    """A successful bio-token issuance."""

    transaction_id: str
    """Ledger transaction id."""

    asset_id: int
    """Created asset id."""

    token_amount: int
    """Number of bio-tokens issued."""

    account: str
    """Creator and initial holder."""

    asset_name: str
    """On-ledger asset name."""

    recording_id: str
    """Recording the value was computed from."""

    confirmed_round: Optional[int] = None
    """Ledger round of confirmation."""

    confirmed_at: Optional[datetime] = None
    """When confirmation was observed."""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "asset_id": self.asset_id,
            "token_amount": self.token_amount,
            "account": self.account,
            "asset_name": self.asset_name,
            "recording_id": self.recording_id,
            "confirmed_round": self.confirmed_round,
            "confirmed_at": to_iso8601(self.confirmed_at) if self.confirmed_at else None,
        }


@dataclass
class TransactionRecord:
    """Mint transaction attached to a commit run."""

    transaction_id: str
    asset_id: int
    status: TransactionStatus = TransactionStatus.PENDING
    confirmed_round: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "asset_id": self.asset_id,
            "status": self.status.value,
            "confirmed_round": self.confirmed_round,
        }


@dataclass(frozen=True)
class BioTokenHolding:
    """A bio-token asset held by an account."""

    asset_id: int
    amount: int
    name: str
    unit_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_id": self.asset_id,
            "amount": self.amount,
            "name": self.name,
            "unit_name": self.unit_name,
        }


# ============================================================
# COMMIT RUN
# ============================================================

@dataclass(frozen=True)
class CommitSnapshot:
    """Immutable view of a commit run."""

    run_id: str
    recording_id: str
    token_amount: int
    phase: CommitPhase
    transaction: Optional[Dict[str, Any]]
    failure_reason: Optional[str]
    mint_pending: bool
    abandoned: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "recording_id": self.recording_id,
            "token_amount": self.token_amount,
            "phase": self.phase.value,
            "transaction": self.transaction,
            "failure_reason": self.failure_reason,
            "mint_pending": self.mint_pending,
            "abandoned": self.abandoned,
        }


@dataclass
class CommitRun:
    """
    One issuance attempt for one recording.

    Phase and transaction updates are serialized by the run's lock;
    the lock is never held while the mint is in flight.
    """

    token_amount: int
    recording: Recording
    account: str

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    phase: CommitPhase = CommitPhase.VALIDATION
    transaction: Optional[TransactionRecord] = None
    failure_reason: Optional[str] = None
    failed_from: Optional[CommitPhase] = None
    abandoned: bool = False

    mint_result: Optional[TransactionResult] = None
    """Set when the mint succeeds, even after abandon."""

    mint_error: Optional[BaseException] = None
    """Set when the mint fails."""

    created_at: datetime = field(default_factory=now_utc)
    transitions: List[Any] = field(default_factory=list)

    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)
    _mint_task: Optional["asyncio.Task"] = field(default=None, repr=False, compare=False)

    @property
    def mint_pending(self) -> bool:
        """True while the mint has been launched and not yet resolved."""
        return self._mint_task is not None and not self._mint_task.done()

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal()

    def snapshot(self) -> CommitSnapshot:
        return CommitSnapshot(
            run_id=self.run_id,
            recording_id=self.recording.id,
            token_amount=self.token_amount,
            phase=self.phase,
            transaction=self.transaction.to_dict() if self.transaction else None,
            failure_reason=self.failure_reason,
            mint_pending=self.mint_pending,
            abandoned=self.abandoned,
        )
