"""
Calculation Engine - Reveal Scheduler.

============================================================
PURPOSE
============================================================
Drives a CalculationRun on a timer, the way a presentation layer
reveals one factor at a time.

TIMELINE (speed 1.0):
    t=800ms   duration revealed      t=1400ms  duration applied
    t=1600ms  metadata revealed      t=2200ms  metadata applied
    ...
    t=4000ms  quality revealed       t=4600ms  quality applied
    +1000ms hold, then the final value is returned

Listeners receive snapshots and are never awaited; a failing
listener is logged and ignored.

============================================================
"""

import logging
from typing import Callable, List, Optional

from core.clock import ClockFactory, ClockProtocol
from scoring_engine.types import ScoreFactor

from .config import PacingConfig
from .engine import StagedCalculationEngine
from .types import CalculationRun, CalculationSnapshot


logger = logging.getLogger(__name__)


RevealListener = Callable[[CalculationSnapshot, ScoreFactor], None]
UpdateListener = Callable[[CalculationSnapshot], None]


class RevealScheduler:
    """Single-writer task that paces advance() calls for one run at a time."""

    def __init__(
        self,
        engine: Optional[StagedCalculationEngine] = None,
        pacing: Optional[PacingConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._engine = engine or StagedCalculationEngine()
        self._pacing = pacing or PacingConfig()
        self._clock = clock or ClockFactory.get_clock()
        self._reveal_listeners: List[RevealListener] = []
        self._update_listeners: List[UpdateListener] = []

    @property
    def engine(self) -> StagedCalculationEngine:
        return self._engine

    def on_reveal(self, listener: RevealListener) -> None:
        """Called when a factor becomes current, before it is applied."""
        self._reveal_listeners.append(listener)

    def on_update(self, listener: UpdateListener) -> None:
        """Called after each applied factor."""
        self._update_listeners.append(listener)

    async def run(self, run: CalculationRun) -> int:
        """
        Pace the run to completion and return its final value.

        Cancelling the awaiting task abandons the run after its last
        completed step; no other run is affected.
        """
        started = self._clock.monotonic()

        while True:
            factor = self._engine.current_factor(run)
            if factor is None:
                break

            elapsed = self._clock.monotonic() - started
            await self._clock.sleep(self._pacing.seconds(factor.reveal_delay_ms) - elapsed)
            self._notify_reveal(run.snapshot(), factor)

            await self._clock.sleep(self._pacing.seconds(self._pacing.factor_processing_ms))
            self._engine.advance(run)
            self._notify_update(run.snapshot())

        await self._clock.sleep(self._pacing.seconds(self._pacing.completion_hold_ms))
        return self._engine.final_value(run)

    def _notify_reveal(self, snapshot: CalculationSnapshot, factor: ScoreFactor) -> None:
        for listener in self._reveal_listeners:
            try:
                listener(snapshot, factor)
            except Exception as e:
                logger.error(f"Reveal listener error: {e}")

    def _notify_update(self, snapshot: CalculationSnapshot) -> None:
        for listener in self._update_listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Update listener error: {e}")
