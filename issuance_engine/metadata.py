"""
Issuance Engine - Asset Metadata.

============================================================
PURPOSE
============================================================
Builds the on-ledger description of a bio-token:

- asset name   BioToken-<Species-Name>-<epoch ms>
- unit name    BIOTK, 0 decimals, supply = token amount
- note         flat arc69 JSON record of the recording

Manager and reserve are the creator; there is no freeze or
clawback address.

============================================================
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional

from core.clock import to_iso8601
from scoring_engine.types import Recording

from .adapters.base import AssetParams, CreateAssetRequest
from .config import AssetConfig


UNKNOWN_SPECIES = "Unknown"
NOT_ASSESSED = "Not Assessed"


def build_asset_name(recording: Recording, epoch_millis: int, config: AssetConfig) -> str:
    """
    Asset name for a recording.

    The species part is shortened when the name would exceed the
    ledger limit; prefix and timestamp are always kept.
    """
    species = (recording.species or UNKNOWN_SPECIES).strip().replace(" ", "-")
    suffix = str(epoch_millis)
    name = f"{config.name_prefix}-{species}-{suffix}"

    if len(name.encode("utf-8")) <= config.max_name_bytes:
        return name

    room = config.max_name_bytes - len(config.name_prefix.encode("utf-8")) - len(suffix) - 2
    encoded = species.encode("utf-8")[:max(room, 0)]
    species = encoded.decode("utf-8", errors="ignore").rstrip("-")

    if not species:
        return f"{config.name_prefix}-{suffix}"[:config.max_name_bytes]
    return f"{config.name_prefix}-{species}-{suffix}"


def build_metadata(
    recording: Recording,
    asset_name: str,
    created_at: datetime,
    config: AssetConfig,
) -> Dict[str, Any]:
    """Flat metadata record stored in the creation note."""
    species = recording.species or UNKNOWN_SPECIES
    status = recording.conservation_status

    return {
        "name": asset_name,
        "description": f"Bio-token representing {species} acoustic signature",
        "species": species,
        "conservation_status": status.value if status else NOT_ASSESSED,
        "location": recording.location,
        "duration_seconds": recording.duration_seconds,
        "quality_score": recording.quality_score,
        "created_at": to_iso8601(created_at),
        "standard": config.metadata_standard,
    }


def encode_note(metadata: Dict[str, Any]) -> bytes:
    return json.dumps(metadata, ensure_ascii=False).encode("utf-8")


def build_create_request(
    recording: Recording,
    token_amount: int,
    creator: str,
    created_at: datetime,
    config: Optional[AssetConfig] = None,
) -> CreateAssetRequest:
    """Complete creation request for one bio-token issuance."""
    config = config or AssetConfig()
    epoch_millis = int(created_at.timestamp() * 1000)
    name = build_asset_name(recording, epoch_millis, config)

    params = AssetParams(
        name=name,
        unit_name=config.unit_name,
        decimals=config.decimals,
        total_supply=token_amount,
        note=encode_note(build_metadata(recording, name, created_at, config)),
        url=config.url,
        manager=creator,
        reserve=creator,
    )
    return CreateAssetRequest(creator=creator, params=params)


def is_bio_token(name: str, unit_name: str, config: Optional[AssetConfig] = None) -> bool:
    """Whether a held asset is a bio-token."""
    config = config or AssetConfig()
    return unit_name == config.unit_name or config.name_prefix in (name or "")
