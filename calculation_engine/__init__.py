"""
Calculation Engine Package.

============================================================
PURPOSE
============================================================
Staged, steppable bio-token calculation.

MODULES
- types: CalculationStatus, CalculationRun, CalculationSnapshot
- state_machine: guarded run status transitions
- engine: start / advance / current_factor / final_value / reset
- config: presentation pacing
- scheduler: timer-driven replay of a run

============================================================
"""

from .types import CalculationStatus, CalculationRun, CalculationSnapshot
from .state_machine import VALID_TRANSITIONS, StateTransitionEvent, CalculationStateMachine
from .engine import StagedCalculationEngine
from .config import PacingConfig
from .scheduler import RevealScheduler

__all__ = [
    "CalculationStatus",
    "CalculationRun",
    "CalculationSnapshot",
    "VALID_TRANSITIONS",
    "StateTransitionEvent",
    "CalculationStateMachine",
    "StagedCalculationEngine",
    "PacingConfig",
    "RevealScheduler",
]
