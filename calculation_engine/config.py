"""
Calculation Engine - Pacing Configuration.

============================================================
PURPOSE
============================================================
Presentation pacing for the staged calculation and the commit
phases. Pacing never affects computed values.

============================================================
"""

from dataclasses import dataclass


@dataclass
class PacingConfig:
    """
    Delays used by the reveal and phase schedulers.

    Factor reveal offsets come from each ScoreFactor; the values below
    are the gaps around them.
    """

    factor_processing_ms: int = 600
    """Time a revealed factor is shown as processing before it is applied."""

    completion_hold_ms: int = 1000
    """Pause after the last factor before the value is handed on."""

    phase_interval_ms: int = 2000
    """Time spent in each commit phase."""

    speed: float = 1.0
    """Speed multiplier (2.0 = twice as fast)."""

    enabled: bool = True
    """When False all delays are zero."""

    def __post_init__(self) -> None:
        if self.speed <= 0:
            raise ValueError("speed must be positive")

    def seconds(self, milliseconds: float) -> float:
        """Scale a delay in ms to seconds of wall time."""
        if not self.enabled:
            return 0.0
        return max(0.0, milliseconds) / 1000.0 / self.speed

    @classmethod
    def instant(cls) -> "PacingConfig":
        """No delays at all; for tests and batch use."""
        return cls(enabled=False)
