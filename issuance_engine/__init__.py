"""
Issuance Engine Package.

============================================================
PURPOSE
============================================================
Turns a computed bio-token value into a fungible asset on an
external ledger.

MODULES
- config: timeouts, node, asset parameters, ledger
- types: CommitPhase, CommitRun, TransactionResult
- state_machine: guarded commit phase transitions
- metadata: asset name, parameters and arc69 note
- models / repository: local issuance ledger (SQLAlchemy)
- valuation_service: estimate_value / issue_token
- commit_pipeline: CommitPipeline and PhaseScheduler
- adapters: Asset Issuance Service adapters

============================================================
"""

from .config import (
    TimeoutConfig,
    AlgodConfig,
    AssetConfig,
    LedgerConfig,
    IssuanceEngineConfig,
)
from .types import (
    CommitPhase,
    PHASE_ORDER,
    TransactionStatus,
    TransactionRecord,
    TransactionResult,
    BioTokenHolding,
    CommitRun,
    CommitSnapshot,
)
from .state_machine import VALID_TRANSITIONS, PhaseTransitionEvent, CommitStateMachine
from .metadata import build_asset_name, build_metadata, build_create_request, is_bio_token
from .models import Base, IssuedTokenModel, CommitEventModel
from .repository import (
    IssuanceRepository,
    create_ledger,
    create_ledger_engine,
    run_ledger_write,
)
from .valuation_service import ValuationService, as_recording
from .commit_pipeline import CommitPipeline, PhaseScheduler

__all__ = [
    # Config
    "TimeoutConfig",
    "AlgodConfig",
    "AssetConfig",
    "LedgerConfig",
    "IssuanceEngineConfig",
    # Types
    "CommitPhase",
    "PHASE_ORDER",
    "TransactionStatus",
    "TransactionRecord",
    "TransactionResult",
    "BioTokenHolding",
    "CommitRun",
    "CommitSnapshot",
    # State machine
    "VALID_TRANSITIONS",
    "PhaseTransitionEvent",
    "CommitStateMachine",
    # Metadata
    "build_asset_name",
    "build_metadata",
    "build_create_request",
    "is_bio_token",
    # Ledger
    "Base",
    "IssuedTokenModel",
    "CommitEventModel",
    "IssuanceRepository",
    "create_ledger",
    "create_ledger_engine",
    "run_ledger_write",
    # Services
    "ValuationService",
    "as_recording",
    "CommitPipeline",
    "PhaseScheduler",
]
