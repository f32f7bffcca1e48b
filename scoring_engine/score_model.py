"""
Scoring Engine - Bio-Token Score Model.

============================================================
RESPONSIBILITY
============================================================
Maps a Recording to its ordered score factors and final token value.

- Pure functions: no state, no I/O, no randomness
- Exactly five factors in fixed order
- Final value is never below one token

============================================================
SCORE COMPONENTS
============================================================
1. duration:     base = floor(duration_seconds / 30)
2. metadata:     x1.8 if metadata complete
3. location:     x2.5 if biodiversity hotspot
4. conservation: x5.0 CR, x3.0 EN, x2.0 VU, x1.5 NT, x1.0 LC/unset
5. quality:      x quality_score (can shrink the total)

============================================================
"""

import math
from typing import Dict, List, Optional, Sequence, Tuple

from .types import ConservationStatus, Recording, ScoreFactor


# ============================================================
# CONSTANTS
# ============================================================

FACTOR_ORDER: Tuple[str, ...] = ("duration", "metadata", "location", "conservation", "quality")

SEGMENT_SECONDS = 30

METADATA_COMPLETE_MULTIPLIER = 1.8
RARE_LOCATION_MULTIPLIER = 2.5

CONSERVATION_MULTIPLIERS: Dict[ConservationStatus, float] = {
    ConservationStatus.CR: 5.0,
    ConservationStatus.EN: 3.0,
    ConservationStatus.VU: 2.0,
    ConservationStatus.NT: 1.5,
    ConservationStatus.LC: 1.0,
}

# Offsets from calculation start, in the order of FACTOR_ORDER
REVEAL_DELAYS_MS: Tuple[int, ...] = (800, 1600, 2400, 3200, 4000)

MIN_TOKEN_VALUE = 1
SEED_VALUE = 1


# ============================================================
# ROUNDING
# ============================================================

def round_half_up(value: float) -> int:
    """Round halves away from zero for positive values (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


# ============================================================
# FACTORS
# ============================================================

def conservation_multiplier(status: Optional[ConservationStatus]) -> float:
    """Multiplier for an IUCN category; unset counts as Least Concern."""
    if status is None:
        return 1.0
    return CONSERVATION_MULTIPLIERS[status]


def compute_factors(recording: Recording) -> Tuple[ScoreFactor, ...]:
    """
    Compute the five ordered score factors of a recording.

    Raises:
        InvalidRecording: If the recording attributes are out of range
    """
    recording.validate()

    status = recording.conservation_status
    status_label = status.value if status else "unassessed"

    return (
        ScoreFactor(
            id="duration",
            display_name="Audio Duration Analysis",
            description=(
                f"{recording.duration_seconds}s recording split into "
                f"{SEGMENT_SECONDS}s segments"
            ),
            multiplier=float(recording.duration_seconds // SEGMENT_SECONDS),
            reveal_delay_ms=REVEAL_DELAYS_MS[0],
        ),
        ScoreFactor(
            id="metadata",
            display_name="Metadata Completeness Score",
            description="Richness and scientific value of the attached metadata",
            multiplier=METADATA_COMPLETE_MULTIPLIER if recording.metadata_complete else 1.0,
            reveal_delay_ms=REVEAL_DELAYS_MS[1],
        ),
        ScoreFactor(
            id="location",
            display_name="Biodiversity Hotspot Detection",
            description=f"Site rarity for {recording.location or 'unknown location'}",
            multiplier=RARE_LOCATION_MULTIPLIER if recording.is_rare_location else 1.0,
            reveal_delay_ms=REVEAL_DELAYS_MS[2],
        ),
        ScoreFactor(
            id="conservation",
            display_name="Conservation Priority Matrix",
            description=f"IUCN Red List category: {status_label}",
            multiplier=conservation_multiplier(status),
            reveal_delay_ms=REVEAL_DELAYS_MS[3],
        ),
        ScoreFactor(
            id="quality",
            display_name="Spectral Quality Assessment",
            description=f"Signal clarity score {recording.quality_score:.2f}",
            multiplier=float(recording.quality_score),
            reveal_delay_ms=REVEAL_DELAYS_MS[4],
        ),
    )


# ============================================================
# ACCUMULATION
# ============================================================

def apply_factor(running_product: Optional[float], factor: ScoreFactor) -> float:
    """
    Fold one factor into the running product.

    The first factor sets the product to its absolute value; the seed
    is never multiplied in.
    """
    if running_product is None:
        return factor.multiplier
    return running_product * factor.multiplier


def running_products(factors: Sequence[ScoreFactor]) -> List[float]:
    """Running product after each factor."""
    products: List[float] = []
    product: Optional[float] = None
    for factor in factors:
        product = apply_factor(product, factor)
        products.append(product)
    return products


def finalize_value(running_product: Optional[float]) -> int:
    """Token value for a final running product, floored at one token."""
    if running_product is None:
        return MIN_TOKEN_VALUE
    return max(MIN_TOKEN_VALUE, round_half_up(running_product))


def compute_token_value(recording: Recording) -> int:
    """
    Final bio-token value of a recording.

    Identical to the final value of a staged calculation over the same
    recording.
    """
    products = running_products(compute_factors(recording))
    return finalize_value(products[-1])
