"""
Calculation Engine - Staged Calculation Engine.

============================================================
PURPOSE
============================================================
Replays the five score factors of a recording one step at a time,
exposing the running value after each step.

DESIGN PRINCIPLES:
- The engine owns no clock; pacing belongs to the caller
- The final value does not depend on when advance() is called
- advance() calls on one run are serialized by the run's lock
- Runs are independent value objects; the engine keeps no run state

============================================================
"""

import logging
from typing import Callable, List, Optional

from core.exceptions import EngineStateError
from scoring_engine.score_model import apply_factor, compute_factors, finalize_value, round_half_up
from scoring_engine.types import Recording, ScoreFactor

from .state_machine import CalculationStateMachine, StateTransitionEvent
from .types import CalculationRun, CalculationStatus


logger = logging.getLogger(__name__)


class StagedCalculationEngine:
    """
    Step-by-step bio-token calculation.

    Usage:
        engine = StagedCalculationEngine()
        run = engine.start(recording)
        while engine.current_factor(run) is not None:
            engine.advance(run)
        tokens = engine.final_value(run)
    """

    def __init__(
        self,
        on_transition: Optional[Callable[[StateTransitionEvent], None]] = None,
    ):
        self._listeners: List[Callable[[StateTransitionEvent], None]] = []
        if on_transition is not None:
            self._listeners.append(on_transition)

    def add_listener(self, listener: Callable[[StateTransitionEvent], None]) -> None:
        """Add a status transition listener."""
        self._listeners.append(listener)

    def _machine(self, run: CalculationRun) -> CalculationStateMachine:
        return CalculationStateMachine(run, self._listeners)

    # --------------------------------------------------------
    # OPERATIONS
    # --------------------------------------------------------

    def start(self, recording: Recording) -> CalculationRun:
        """
        Begin a calculation for a recording.

        Raises:
            InvalidRecording: If the recording is malformed
        """
        factors = compute_factors(recording)
        run = CalculationRun(recording=recording, factors=factors)
        self._machine(run).transition_to(CalculationStatus.RUNNING, "Calculation started")

        logger.info(f"Calculation {run.run_id} started for recording {recording.id}")
        return run

    def advance(self, run: CalculationRun) -> CalculationRun:
        """
        Apply the next pending factor.

        Raises:
            EngineStateError: If the run is idle or already completed
        """
        with run._lock:
            if not run.status.is_active():
                raise EngineStateError(
                    f"Cannot advance run {run.run_id} in state {run.status.value}",
                    run_id=run.run_id,
                    current_state=run.status.value,
                )

            machine = self._machine(run)
            factor = run.factors[run.next_index]
            machine.transition_to(CalculationStatus.RUNNING, f"Applying {factor.id}")

            run.running_product = apply_factor(run.running_product, factor)
            run.completed_factor_ids.append(factor.id)
            run.value_history.append(round_half_up(run.running_product))

            if run.next_index == len(run.factors):
                machine.transition_to(CalculationStatus.COMPLETED, "All factors applied")
                logger.info(
                    f"Calculation {run.run_id} completed: "
                    f"{self.final_value(run)} tokens"
                )
            else:
                machine.transition_to(
                    CalculationStatus.AWAITING_NEXT_FACTOR,
                    f"{factor.id} applied",
                )

            logger.debug(
                f"Calculation {run.run_id}: {factor.id} x{factor.multiplier} "
                f"-> {run.running_product}"
            )

        return run

    def current_factor(self, run: CalculationRun) -> Optional[ScoreFactor]:
        """Next factor to be advanced, or None when there is none."""
        with run._lock:
            return run.pending_factor()

    def final_value(self, run: CalculationRun) -> int:
        """
        Token value of a completed run.

        Raises:
            EngineStateError: If the run is not completed
        """
        with run._lock:
            if run.status != CalculationStatus.COMPLETED:
                raise EngineStateError(
                    f"Run {run.run_id} has no final value in state {run.status.value}",
                    run_id=run.run_id,
                    current_state=run.status.value,
                )
            return finalize_value(run.running_product)

    def reset(self, run: CalculationRun) -> CalculationRun:
        """Discard progress and return the run to IDLE."""
        with run._lock:
            self._machine(run).transition_to(CalculationStatus.IDLE, "Run reset")
            run.completed_factor_ids.clear()
            run.running_product = None
            del run.value_history[1:]

        logger.info(f"Calculation {run.run_id} reset")
        return run

    def run_to_completion(self, run: CalculationRun) -> int:
        """Advance without pacing until completed; returns the final value."""
        while self.current_factor(run) is not None:
            self.advance(run)
        return self.final_value(run)
