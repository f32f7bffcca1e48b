"""
Orchestrator - Tokenization Pipeline.

============================================================
RESPONSIBILITY
============================================================
End-to-end flow for one recording:

    Recording -> staged calculation (paced) -> final value
              -> commit sequence (paced) -> transaction result

- Wires engine, schedulers, valuation service and commit pipeline
- Owns the adapter lifecycle of what it creates
- Never raises for issuance failures; they are reported in the outcome

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from calculation_engine import (
    CalculationSnapshot,
    PacingConfig,
    RevealScheduler,
    StagedCalculationEngine,
)
from core.clock import ClockFactory, ClockProtocol
from issuance_engine import (
    CommitPhase,
    CommitPipeline,
    IssuanceEngineConfig,
    IssuanceRepository,
    PhaseScheduler,
    TransactionResult,
    ValuationService,
    create_ledger,
)
from issuance_engine.adapters import AssetIssuanceAdapter, create_adapter
from issuance_engine.valuation_service import RecordingInput, as_recording


logger = logging.getLogger(__name__)


# ============================================================
# OUTCOME
# ============================================================

@dataclass
class TokenizationOutcome:
    """Result of tokenizing one recording."""

    recording_id: str
    token_amount: int
    value_history: List[int]
    phase: CommitPhase
    transaction: Optional[TransactionResult] = None
    failure_reason: Optional[str] = None
    commit_run_id: Optional[str] = None
    phases: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.phase == CommitPhase.COMPLETE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recording_id": self.recording_id,
            "token_amount": self.token_amount,
            "value_history": list(self.value_history),
            "phase": self.phase.value,
            "success": self.success,
            "transaction": self.transaction.to_dict() if self.transaction else None,
            "failure_reason": self.failure_reason,
            "commit_run_id": self.commit_run_id,
            "phases": list(self.phases),
        }


# ============================================================
# TOKENIZATION PIPELINE
# ============================================================

class TokenizationPipeline:
    """Runs recordings through calculation and commit."""

    def __init__(
        self,
        service: ValuationService,
        config: Optional[IssuanceEngineConfig] = None,
        repository: Optional[IssuanceRepository] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._config = config or IssuanceEngineConfig()
        self._clock = clock or ClockFactory.get_clock()
        self._service = service
        self._engine = StagedCalculationEngine()
        self._commit = CommitPipeline(service, repository, self._config)

        self._reveal_listeners = []
        self._update_listeners = []
        self._phase_listeners = []

    @property
    def service(self) -> ValuationService:
        return self._service

    @property
    def commit_pipeline(self) -> CommitPipeline:
        return self._commit

    @property
    def pacing(self) -> PacingConfig:
        return self._config.pacing

    # --------------------------------------------------------
    # LISTENERS
    # --------------------------------------------------------

    def on_reveal(self, listener) -> None:
        """listener(snapshot, factor) when a factor is revealed."""
        self._reveal_listeners.append(listener)

    def on_update(self, listener) -> None:
        """listener(snapshot) after each applied factor."""
        self._update_listeners.append(listener)

    def on_phase(self, listener) -> None:
        """listener(commit_snapshot) after each commit phase."""
        self._phase_listeners.append(listener)

    # --------------------------------------------------------
    # STAGES
    # --------------------------------------------------------

    async def calculate(self, recording: RecordingInput) -> CalculationSnapshot:
        """Paced staged calculation; returns the completed snapshot."""
        recording = as_recording(recording)
        scheduler = RevealScheduler(self._engine, self.pacing, self._clock)
        for listener in self._reveal_listeners:
            scheduler.on_reveal(listener)
        for listener in self._update_listeners:
            scheduler.on_update(listener)

        run = self._engine.start(recording)
        value = await scheduler.run(run)
        logger.info(f"Recording {recording.id} valued at {value} bio-tokens")
        return run.snapshot()

    async def tokenize(
        self,
        recording: RecordingInput,
        account: str,
        timeout: Optional[float] = None,
    ) -> TokenizationOutcome:
        """
        Calculate and commit one recording.

        Raises:
            InvalidRecording: If the recording is malformed
        """
        recording = as_recording(recording)
        snapshot = await self.calculate(recording)
        token_amount = max(1, snapshot.current_value)

        run = self._commit.begin(token_amount, recording, account)
        phases: List[str] = []

        scheduler = PhaseScheduler(self._commit, self.pacing, self._clock)
        scheduler.on_phase(lambda s: phases.append(s.phase.value))
        for listener in self._phase_listeners:
            scheduler.on_phase(listener)

        await scheduler.run(run, timeout)

        outcome = TokenizationOutcome(
            recording_id=recording.id,
            token_amount=token_amount,
            value_history=list(snapshot.value_history),
            phase=run.phase,
            transaction=run.mint_result,
            failure_reason=run.failure_reason,
            commit_run_id=run.run_id,
            phases=phases,
        )

        if outcome.success:
            logger.info(
                f"Recording {recording.id} tokenized: asset "
                f"{outcome.transaction.asset_id if outcome.transaction else '?'}"
            )
        else:
            logger.warning(f"Recording {recording.id} not tokenized: {outcome.failure_reason}")

        return outcome

    async def close(self) -> None:
        await self._service.close()


# ============================================================
# FACTORY
# ============================================================

def create_pipeline(
    config: Optional[IssuanceEngineConfig] = None,
    adapter: Optional[AssetIssuanceAdapter] = None,
    repository: Optional[IssuanceRepository] = None,
    clock: Optional[ClockProtocol] = None,
    **adapter_kwargs,
) -> TokenizationPipeline:
    """
    Build a pipeline from configuration.

    The adapter is created from config.adapter when not given; the
    ledger is created from config.ledger when enabled.
    """
    config = config or IssuanceEngineConfig.from_env()
    adapter = adapter or create_adapter(config.adapter, config=config, **adapter_kwargs)

    if repository is None and config.ledger.enabled:
        repository = create_ledger(config.ledger)

    service = ValuationService(adapter, repository, config, clock)
    return TokenizationPipeline(service, config, repository, clock)


__all__ = [
    "TokenizationOutcome",
    "TokenizationPipeline",
    "create_pipeline",
]
