"""
Scoring Engine - Types.

============================================================
PURPOSE
============================================================
Input and output types of the bio-token score model.

- Recording: immutable description of one bioacoustic recording
- ConservationStatus: IUCN-style threat category
- ScoreFactor: one weighted line item of the score

============================================================
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from core.exceptions import InvalidRecording


# ============================================================
# CONSERVATION STATUS
# ============================================================

class ConservationStatus(Enum):
    """
    IUCN Red List category.

    Declared from most to least threatened.
    """

    CR = "CR"
    """Critically Endangered."""

    EN = "EN"
    """Endangered."""

    VU = "VU"
    """Vulnerable."""

    NT = "NT"
    """Near Threatened."""

    LC = "LC"
    """Least Concern."""

    @classmethod
    def parse(cls, value: Any) -> Optional["ConservationStatus"]:
        """
        Parse a status code, tolerating case and blanks.

        Returns None for missing values. Raises InvalidRecording for
        codes outside the five known categories.
        """
        if value is None or isinstance(value, cls):
            return value
        code = str(value).strip().upper()
        if not code:
            return None
        try:
            return cls(code)
        except ValueError:
            raise InvalidRecording(
                f"Unknown conservation status: {value!r}",
                field_name="conservation_status",
                value=value,
            )


# ============================================================
# RECORDING
# ============================================================

@dataclass(frozen=True)
class Recording:
    """A bioacoustic recording submitted for valuation."""

    id: str
    """Identifier, unique within a session."""

    duration_seconds: int
    """Recording length in seconds."""

    location: str
    """Free-text place descriptor."""

    quality_score: float
    """Spectral quality in [0.0, 1.0]."""

    metadata_complete: bool = False
    """Whether the scientific metadata is complete."""

    is_rare_location: bool = False
    """Whether the site is a biodiversity hotspot."""

    species: Optional[str] = None
    """Scientific name, if identified."""

    conservation_status: Optional[ConservationStatus] = None
    """IUCN category of the species, if known."""

    coordinates: Tuple[float, float] = (0.0, 0.0)
    """(latitude, longitude)."""

    def validate(self) -> None:
        """
        Check attribute ranges.

        Raises:
            InvalidRecording: On negative duration or out of range quality
        """
        if isinstance(self.duration_seconds, bool) or not isinstance(self.duration_seconds, int):
            raise InvalidRecording(
                "duration_seconds must be an integer",
                field_name="duration_seconds",
                value=self.duration_seconds,
            )
        if self.duration_seconds < 0:
            raise InvalidRecording(
                "duration_seconds must not be negative",
                field_name="duration_seconds",
                value=self.duration_seconds,
            )
        if isinstance(self.quality_score, bool) or not isinstance(self.quality_score, (int, float)):
            raise InvalidRecording(
                "quality_score must be a number",
                field_name="quality_score",
                value=self.quality_score,
            )
        # NaN fails both comparisons, so check it explicitly
        if math.isnan(self.quality_score) or not 0.0 <= self.quality_score <= 1.0:
            raise InvalidRecording(
                "quality_score must be within [0.0, 1.0]",
                field_name="quality_score",
                value=self.quality_score,
            )
        if self.conservation_status is not None and not isinstance(
            self.conservation_status, ConservationStatus
        ):
            raise InvalidRecording(
                "conservation_status must be a ConservationStatus",
                field_name="conservation_status",
                value=self.conservation_status,
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Recording":
        """
        Build a recording from a mapping of attributes.

        Accepts snake_case keys as well as the camelCase names used by
        front-end callers (durationSeconds, iucnStatus, ...).
        """
        def pick(*keys: str, default: Any = None) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            return default

        duration = pick("duration_seconds", "durationSeconds", "duration")
        quality = pick("quality_score", "qualityScore")
        if duration is None:
            raise InvalidRecording("duration_seconds is required", field_name="duration_seconds")
        if quality is None:
            raise InvalidRecording("quality_score is required", field_name="quality_score")

        coordinates = pick("coordinates", default=(0.0, 0.0))
        try:
            lat, lon = coordinates
            coordinates = (float(lat), float(lon))
        except (TypeError, ValueError):
            raise InvalidRecording(
                "coordinates must be a (latitude, longitude) pair",
                field_name="coordinates",
                value=coordinates,
            )

        recording = cls(
            id=str(pick("id", default="")),
            duration_seconds=duration,
            location=str(pick("location", default="")),
            quality_score=quality,
            metadata_complete=bool(pick("metadata_complete", "metadataComplete", default=False)),
            is_rare_location=bool(pick("is_rare_location", "isRareLocation", default=False)),
            species=pick("species"),
            conservation_status=ConservationStatus.parse(
                pick("conservation_status", "conservationStatus", "iucnStatus")
            ),
            coordinates=coordinates,
        )
        recording.validate()
        return recording

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "duration_seconds": self.duration_seconds,
            "location": self.location,
            "quality_score": self.quality_score,
            "metadata_complete": self.metadata_complete,
            "is_rare_location": self.is_rare_location,
            "species": self.species,
            "conservation_status": (
                self.conservation_status.value if self.conservation_status else None
            ),
            "coordinates": list(self.coordinates),
        }


# ============================================================
# SCORE FACTOR
# ============================================================

@dataclass(frozen=True)
class ScoreFactor:
    """
    One weighted term of the multiplicative score.

    For the first factor (duration) `multiplier` is the absolute base
    value, not a multiplier.
    """

    id: str
    display_name: str
    description: str
    multiplier: float
    reveal_delay_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "description": self.description,
            "multiplier": self.multiplier,
            "reveal_delay_ms": self.reveal_delay_ms,
        }
