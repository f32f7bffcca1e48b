"""
Scoring Engine Package.

This package turns a bioacoustic recording into a bio-token value.
It is pure: no clock, no I/O, no randomness.

Modules:
- types: Recording, ConservationStatus, ScoreFactor
- score_model: factor computation and value folding
- catalog: fixed sample recordings
"""

from .types import ConservationStatus, Recording, ScoreFactor
from .score_model import (
    FACTOR_ORDER,
    REVEAL_DELAYS_MS,
    MIN_TOKEN_VALUE,
    SEED_VALUE,
    apply_factor,
    compute_factors,
    compute_token_value,
    conservation_multiplier,
    finalize_value,
    round_half_up,
    running_products,
)
from .catalog import SAMPLE_RECORDINGS, get_recording, list_recordings

__all__ = [
    "ConservationStatus",
    "Recording",
    "ScoreFactor",
    "FACTOR_ORDER",
    "REVEAL_DELAYS_MS",
    "MIN_TOKEN_VALUE",
    "SEED_VALUE",
    "apply_factor",
    "compute_factors",
    "compute_token_value",
    "conservation_multiplier",
    "finalize_value",
    "round_half_up",
    "running_products",
    "SAMPLE_RECORDINGS",
    "get_recording",
    "list_recordings",
]
