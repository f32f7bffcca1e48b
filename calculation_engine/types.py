"""
Calculation Engine - Types.

============================================================
PURPOSE
============================================================
Run state for the staged bio-token calculation.

- CalculationStatus: lifecycle of one run
- CalculationRun: mutable run state, owned by whoever started it
- CalculationSnapshot: read-only copy handed to presentation layers

============================================================
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from core.clock import now_utc
from scoring_engine.types import Recording, ScoreFactor
from scoring_engine.score_model import SEED_VALUE


# ============================================================
# STATUS
# ============================================================

class CalculationStatus(Enum):
    """
    Calculation lifecycle.

    IDLE -> RUNNING -> (AWAITING_NEXT_FACTOR <-> RUNNING) -> COMPLETED
    """

    IDLE = "IDLE"
    """Not started, or explicitly reset."""

    RUNNING = "RUNNING"
    """A factor is being applied."""

    AWAITING_NEXT_FACTOR = "AWAITING_NEXT_FACTOR"
    """Between two factors, waiting for the scheduler."""

    COMPLETED = "COMPLETED"
    """All factors applied; final value available."""

    def is_active(self) -> bool:
        return self in (CalculationStatus.RUNNING, CalculationStatus.AWAITING_NEXT_FACTOR)


# ============================================================
# SNAPSHOT
# ============================================================

@dataclass(frozen=True)
class CalculationSnapshot:
    """Immutable view of a run after a step."""

    run_id: str
    recording_id: str
    status: CalculationStatus
    current_factor_id: Optional[str]
    completed_factor_ids: Tuple[str, ...]
    running_product: Optional[float]
    value_history: Tuple[int, ...]

    @property
    def current_value(self) -> int:
        """Latest rounded value shown to the user."""
        return self.value_history[-1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "recording_id": self.recording_id,
            "status": self.status.value,
            "current_factor_id": self.current_factor_id,
            "completed_factor_ids": list(self.completed_factor_ids),
            "running_product": self.running_product,
            "value_history": list(self.value_history),
        }


# ============================================================
# RUN
# ============================================================

@dataclass
class CalculationRun:
    """
    Mutable state of one staged calculation.

    Mutated only by StagedCalculationEngine. Runs share nothing, so
    several may proceed concurrently.
    """

    recording: Recording
    """Recording being scored."""

    factors: Tuple[ScoreFactor, ...]
    """Ordered factors, fixed at start."""

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    """Run identifier."""

    status: CalculationStatus = CalculationStatus.IDLE
    """Lifecycle status."""

    completed_factor_ids: List[str] = field(default_factory=list)
    """Factors applied so far, in order."""

    running_product: Optional[float] = None
    """Accumulated value; None before the first factor."""

    value_history: List[int] = field(default_factory=lambda: [SEED_VALUE])
    """Seed value followed by one rounded value per completed factor."""

    created_at: datetime = field(default_factory=now_utc)
    """When the run was created."""

    transitions: List[Any] = field(default_factory=list)
    """StateTransitionEvent history."""

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    @property
    def next_index(self) -> int:
        return len(self.completed_factor_ids)

    @property
    def is_completed(self) -> bool:
        return self.status == CalculationStatus.COMPLETED

    def pending_factor(self) -> Optional[ScoreFactor]:
        """Next factor to apply, or None when nothing is pending."""
        if not self.status.is_active() or self.next_index >= len(self.factors):
            return None
        return self.factors[self.next_index]

    def snapshot(self) -> CalculationSnapshot:
        with self._lock:
            pending = self.pending_factor()
            return CalculationSnapshot(
                run_id=self.run_id,
                recording_id=self.recording.id,
                status=self.status,
                current_factor_id=pending.id if pending else None,
                completed_factor_ids=tuple(self.completed_factor_ids),
                running_product=self.running_product,
                value_history=tuple(self.value_history),
            )
