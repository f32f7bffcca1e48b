"""
Scoring Engine - Sample Recording Catalog.

Fixed demo recordings from Colombian field sites, used by the CLI
and as realistic fixtures.
"""

from typing import Dict, List

from core.exceptions import InvalidRecording

from .types import ConservationStatus, Recording


SAMPLE_RECORDINGS: List[Recording] = [
    Recording(
        id="1",
        duration_seconds=180,
        location="Chocó Biogeográfico",
        species="Ara macao",
        conservation_status=ConservationStatus.VU,
        quality_score=0.92,
        metadata_complete=True,
        is_rare_location=True,
        coordinates=(5.6333, -77.4),
    ),
    Recording(
        id="2",
        duration_seconds=75,
        location="Sierra Nevada",
        species="Atlapetes flaviceps",
        conservation_status=ConservationStatus.CR,
        quality_score=0.78,
        metadata_complete=True,
        is_rare_location=True,
        coordinates=(10.8, -73.7),
    ),
    Recording(
        id="3",
        duration_seconds=45,
        location="Medellín Centro",
        quality_score=0.35,
        metadata_complete=False,
        is_rare_location=False,
        coordinates=(6.244, -75.581),
    ),
]

_BY_ID: Dict[str, Recording] = {recording.id: recording for recording in SAMPLE_RECORDINGS}


def get_recording(recording_id: str) -> Recording:
    """Look up a catalog recording by id."""
    try:
        return _BY_ID[recording_id]
    except KeyError:
        raise InvalidRecording(
            f"No catalog recording with id {recording_id!r}",
            field_name="id",
            value=recording_id,
        )


def list_recordings() -> List[Recording]:
    return list(SAMPLE_RECORDINGS)
