"""
Issuance Engine - Commit Phase State Machine.

============================================================
PURPOSE
============================================================
Guards phase changes of a CommitRun.

STATE MACHINE:

    VALIDATION ──► MINTING ──► GEOREFERENCING ──► COMPLETE
        │             │               │
        └─────────────┴───────────────┴──────► FAILED

INVARIANTS:
- Phases only move forward, one step at a time
- COMPLETE and FAILED are terminal
- All transitions are logged and recorded on the run

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set

from core.clock import now_utc
from core.exceptions import EngineStateError

from .types import PHASE_ORDER, CommitPhase, CommitRun


logger = logging.getLogger(__name__)


# ============================================================
# STATE TRANSITION RULES
# ============================================================

VALID_TRANSITIONS: Dict[CommitPhase, Set[CommitPhase]] = {
    CommitPhase.VALIDATION: {
        CommitPhase.MINTING,
        CommitPhase.FAILED,
    },
    CommitPhase.MINTING: {
        CommitPhase.GEOREFERENCING,
        CommitPhase.FAILED,
    },
    CommitPhase.GEOREFERENCING: {
        CommitPhase.COMPLETE,
        CommitPhase.FAILED,
    },
    CommitPhase.COMPLETE: set(),
    CommitPhase.FAILED: set(),
}


# ============================================================
# PHASE TRANSITION EVENT
# ============================================================

@dataclass
class PhaseTransitionEvent:
    """Event representing a phase change of a commit run."""

    run_id: str
    from_phase: CommitPhase
    to_phase: CommitPhase
    timestamp: datetime = field(default_factory=now_utc)
    reason: str = ""


PhaseListener = Callable[[PhaseTransitionEvent], None]


# ============================================================
# STATE MACHINE
# ============================================================

class CommitStateMachine:
    """Applies guarded phase changes to one commit run."""

    def __init__(self, run: CommitRun, listeners: Optional[List[PhaseListener]] = None):
        self._run = run
        self._listeners = listeners or []

    @property
    def current_phase(self) -> CommitPhase:
        return self._run.phase

    def can_transition_to(self, target: CommitPhase) -> bool:
        return target in VALID_TRANSITIONS.get(self.current_phase, set())

    def next_phase(self) -> CommitPhase:
        """
        The single forward phase from the current one.

        Raises:
            EngineStateError: If the run is terminal
        """
        if self.current_phase.is_terminal():
            raise EngineStateError(
                f"Commit run {self._run.run_id} is already {self.current_phase.value}",
                run_id=self._run.run_id,
                current_state=self.current_phase.value,
            )
        return PHASE_ORDER[PHASE_ORDER.index(self.current_phase) + 1]

    def transition_to(self, target: CommitPhase, reason: str = "") -> PhaseTransitionEvent:
        """
        Move the run to a new phase.

        Raises:
            EngineStateError: If the transition is not allowed
        """
        if not self.can_transition_to(target):
            raise EngineStateError(
                f"Cannot move commit run {self._run.run_id} from "
                f"{self.current_phase.value} to {target.value}",
                run_id=self._run.run_id,
                current_state=self.current_phase.value,
            )

        event = PhaseTransitionEvent(
            run_id=self._run.run_id,
            from_phase=self.current_phase,
            to_phase=target,
            reason=reason,
        )

        if target == CommitPhase.FAILED:
            self._run.failed_from = self.current_phase
            self._run.failure_reason = reason

        self._run.phase = target
        self._run.transitions.append(event)

        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Commit listener error: {e}")

        if target == CommitPhase.FAILED:
            logger.warning(
                f"Commit {self._run.run_id}: "
                f"{event.from_phase.value} -> FAILED ({reason})"
            )
        else:
            logger.info(
                f"Commit {self._run.run_id}: "
                f"{event.from_phase.value} -> {event.to_phase.value}"
            )

        return event
