"""
Calculation Engine - Run State Machine.

============================================================
PURPOSE
============================================================
Guards status changes of a CalculationRun.

STATE MACHINE:

         IDLE
          │  start
          ▼
        RUNNING ◄──────────┐
          │                │ advance
          ├──► AWAITING_NEXT_FACTOR
          │
          ▼  5th factor
      COMPLETED

    reset: any state ──► IDLE

INVARIANTS:
- COMPLETED is left only through an explicit reset
- Each transition has a guard
- All transitions are logged

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set

from core.clock import now_utc
from core.exceptions import EngineStateError

from .types import CalculationRun, CalculationStatus


logger = logging.getLogger(__name__)


# ============================================================
# STATE TRANSITION RULES
# ============================================================

VALID_TRANSITIONS: Dict[CalculationStatus, Set[CalculationStatus]] = {
    CalculationStatus.IDLE: {
        CalculationStatus.RUNNING,
    },
    CalculationStatus.RUNNING: {
        CalculationStatus.AWAITING_NEXT_FACTOR,
        CalculationStatus.COMPLETED,
        CalculationStatus.IDLE,
    },
    CalculationStatus.AWAITING_NEXT_FACTOR: {
        CalculationStatus.RUNNING,
        CalculationStatus.IDLE,
    },
    CalculationStatus.COMPLETED: {
        CalculationStatus.IDLE,
    },
}


# ============================================================
# STATE TRANSITION EVENT
# ============================================================

@dataclass
class StateTransitionEvent:
    """Event representing a status change of a run."""

    run_id: str
    from_state: CalculationStatus
    to_state: CalculationStatus
    timestamp: datetime = field(default_factory=now_utc)
    reason: str = ""


# ============================================================
# STATE MACHINE
# ============================================================

class CalculationStateMachine:
    """Applies guarded status changes to one run."""

    def __init__(
        self,
        run: CalculationRun,
        listeners: Optional[List[Callable[[StateTransitionEvent], None]]] = None,
    ):
        self._run = run
        self._listeners = listeners or []

    @property
    def current_state(self) -> CalculationStatus:
        return self._run.status

    def can_transition_to(self, target: CalculationStatus) -> bool:
        if target == self.current_state:
            return True
        return target in VALID_TRANSITIONS.get(self.current_state, set())

    def transition_to(self, target: CalculationStatus, reason: str = "") -> StateTransitionEvent:
        """
        Move the run to a new status.

        Raises:
            EngineStateError: If the transition is not allowed
        """
        if not self.can_transition_to(target):
            raise EngineStateError(
                f"Cannot move run {self._run.run_id} from "
                f"{self.current_state.value} to {target.value}",
                run_id=self._run.run_id,
                current_state=self.current_state.value,
            )

        event = StateTransitionEvent(
            run_id=self._run.run_id,
            from_state=self.current_state,
            to_state=target,
            reason=reason,
        )

        if target == self.current_state:
            return event

        self._run.status = target
        self._run.transitions.append(event)

        for listener in self._listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Calculation listener error: {e}")

        logger.debug(
            f"Calculation {self._run.run_id}: "
            f"{event.from_state.value} -> {event.to_state.value} ({reason})"
        )

        return event
