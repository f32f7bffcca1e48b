"""
Issuance Engine - Commit Pipeline.

============================================================
PURPOSE
============================================================
Moves a computed token value through the fixed commit sequence:

    VALIDATION -> MINTING -> GEOREFERENCING -> COMPLETE

PHASE ACTIONS:
- leaving VALIDATION   checks amount, estimate and account
- entering MINTING     launches the mint in the background
- leaving MINTING      waits (bounded) for the mint outcome
- entering COMPLETE    marks the transaction CONFIRMED

A failed check or mint moves the run to FAILED with a reason.
abandon() never cancels a mint already in flight.

============================================================
"""

import asyncio
import logging
from typing import Callable, List, Optional

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import EngineStateError, InvalidRecording, IssuanceError, LedgerError
from calculation_engine.config import PacingConfig

from .adapters.errors import CATEGORY_REASONS, ErrorCategory
from .config import IssuanceEngineConfig
from .repository import IssuanceRepository, run_ledger_write
from .state_machine import CommitStateMachine, PhaseListener, PhaseTransitionEvent
from .types import (
    CommitPhase,
    CommitRun,
    CommitSnapshot,
    TransactionRecord,
    TransactionResult,
    TransactionStatus,
)
from .valuation_service import RecordingInput, ValuationService, as_recording


logger = logging.getLogger(__name__)


# ============================================================
# COMMIT PIPELINE
# ============================================================

class CommitPipeline:
    """
    Steppable commit sequence over CommitRun objects.

    Timing is left to the caller (see PhaseScheduler).
    """

    def __init__(
        self,
        service: ValuationService,
        repository: Optional[IssuanceRepository] = None,
        config: Optional[IssuanceEngineConfig] = None,
    ):
        self._service = service
        self._repository = repository
        self._config = config or IssuanceEngineConfig()
        self._listeners: List[PhaseListener] = []

    def on_transition(self, listener: PhaseListener) -> None:
        self._listeners.append(listener)

    # --------------------------------------------------------
    # OPERATIONS
    # --------------------------------------------------------

    def begin(self, token_amount: int, recording: RecordingInput, account: str) -> CommitRun:
        """Create a run in VALIDATION with no transaction."""
        run = CommitRun(
            token_amount=token_amount,
            recording=as_recording(recording),
            account=account,
        )
        logger.info(
            f"Commit {run.run_id} started: {token_amount} tokens "
            f"for recording {run.recording.id}"
        )
        return run

    async def advance_phase(self, run: CommitRun, timeout: Optional[float] = None) -> CommitRun:
        """
        Move the run exactly one phase forward.

        Args:
            run: Commit run
            timeout: Bound on the wait for the mint when leaving MINTING

        Raises:
            EngineStateError: If the run is COMPLETE, FAILED or abandoned
        """
        async with run._lock:
            self._check_advanceable(run)
            phase = run.phase

            if phase == CommitPhase.VALIDATION:
                await self._persist(run, self._leave_validation(run))
                return run

            if phase == CommitPhase.GEOREFERENCING:
                await self._persist(run, self._complete(run))
                return run

        # MINTING: the lock is not held while waiting for the mint
        try:
            await self.wait_for_mint(run, timeout)
            failure = None
        except IssuanceError as e:
            failure = e.reason

        async with run._lock:
            if run.phase != CommitPhase.MINTING:
                raise EngineStateError(
                    f"Commit run {run.run_id} moved to {run.phase.value} while waiting for mint",
                    run_id=run.run_id,
                    current_state=run.phase.value,
                )
            machine = self._state_machine(run)
            if failure is not None:
                event = machine.transition_to(CommitPhase.FAILED, failure)
            else:
                event = machine.transition_to(machine.next_phase(), "mint submitted")
            await self._persist(run, event)

        return run

    async def wait_for_mint(
        self,
        run: CommitRun,
        timeout: Optional[float] = None,
    ) -> Optional[TransactionResult]:
        """
        Wait for the mint outcome without advancing the run.

        Raises:
            EngineStateError: If no mint was launched for the run
            IssuanceError: If the mint failed or did not finish in time
        """
        task = run._mint_task
        if task is None:
            raise EngineStateError(
                f"No mint launched for commit run {run.run_id}",
                run_id=run.run_id,
                current_state=run.phase.value,
            )

        timeout = timeout if timeout is not None else self._config.timeout.issuance_timeout_seconds

        try:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            raise IssuanceError(
                f"{CATEGORY_REASONS[ErrorCategory.TIMEOUT]}: "
                f"mint not confirmed within {timeout}s",
                category=ErrorCategory.TIMEOUT.value,
            )

        if run.mint_error is not None:
            raise run.mint_error
        return run.mint_result

    def abandon(self, run: CommitRun) -> CommitRun:
        """
        Stop driving the run.

        A mint already in flight keeps going; its result is still
        captured on the run and in the issuance ledger.
        """
        run.abandoned = True
        if run.mint_pending:
            logger.warning(f"Commit {run.run_id} abandoned with mint in flight")
        else:
            logger.info(f"Commit {run.run_id} abandoned in {run.phase.value}")
        return run

    # --------------------------------------------------------
    # PHASE ACTIONS
    # --------------------------------------------------------

    def _leave_validation(self, run: CommitRun) -> PhaseTransitionEvent:
        machine = self._state_machine(run)
        reason = self._validate(run)

        if reason:
            return machine.transition_to(CommitPhase.FAILED, reason)

        event = machine.transition_to(machine.next_phase(), "validation passed")
        run._mint_task = asyncio.ensure_future(self._mint(run))
        return event

    def _validate(self, run: CommitRun) -> Optional[str]:
        """Failure reason, or None when the run may mint."""
        if isinstance(run.token_amount, bool) or not isinstance(run.token_amount, int):
            return f"token amount must be an integer, got {run.token_amount!r}"

        if run.token_amount < 1:
            return f"token amount must be at least 1, got {run.token_amount}"

        if not run.account or not str(run.account).strip():
            return "account reference is required"

        if self._config.check_estimate:
            try:
                expected = self._service.estimate_value(run.recording)
            except InvalidRecording as e:
                return f"invalid recording: {e.message}"
            if expected != run.token_amount:
                return (
                    f"token amount {run.token_amount} does not match "
                    f"estimated value {expected}"
                )

        return None

    async def _mint(self, run: CommitRun) -> None:
        """Background mint; the outcome is captured on the run."""
        try:
            result = await self._service.start_issue(run.account, run.recording)
        except IssuanceError as e:
            run.mint_error = e
            logger.warning(f"Commit {run.run_id} mint failed: {e.reason}")
            return
        except Exception as e:
            run.mint_error = IssuanceError(
                f"{CATEGORY_REASONS[ErrorCategory.UNKNOWN]}: {type(e).__name__}: {e}",
                category=ErrorCategory.UNKNOWN.value,
                cause=e,
            )
            logger.error(f"Commit {run.run_id} mint raised {type(e).__name__}: {e}")
            return

        async with run._lock:
            run.mint_result = result
            run.transaction = TransactionRecord(
                transaction_id=result.transaction_id,
                asset_id=result.asset_id,
                status=TransactionStatus.PENDING,
                confirmed_round=result.confirmed_round,
            )

        if run.abandoned:
            logger.info(
                f"Abandoned commit {run.run_id} minted asset {result.asset_id} "
                f"(txn {result.transaction_id})"
            )

    def _complete(self, run: CommitRun) -> PhaseTransitionEvent:
        machine = self._state_machine(run)
        event = machine.transition_to(machine.next_phase(), "georeferenced")
        if run.transaction is not None:
            run.transaction.status = TransactionStatus.CONFIRMED
        return event

    # --------------------------------------------------------
    # INTERNAL
    # --------------------------------------------------------

    def _check_advanceable(self, run: CommitRun) -> None:
        if run.phase.is_terminal():
            raise EngineStateError(
                f"Commit run {run.run_id} is already {run.phase.value}",
                run_id=run.run_id,
                current_state=run.phase.value,
            )
        if run.abandoned:
            raise EngineStateError(
                f"Commit run {run.run_id} was abandoned",
                run_id=run.run_id,
                current_state=run.phase.value,
            )

    def _state_machine(self, run: CommitRun) -> CommitStateMachine:
        return CommitStateMachine(run, list(self._listeners))

    async def _persist(self, run: CommitRun, event: PhaseTransitionEvent) -> None:
        """Record a phase change in the ledger; a ledger failure never stops the run."""
        if self._repository is None or not self._config.ledger.enabled:
            return
        transaction_id = run.transaction.transaction_id if run.transaction else None
        try:
            await run_ledger_write(
                self._repository.save_commit_event,
                event, run.recording.id, transaction_id,
            )
        except LedgerError as e:
            logger.error(f"Commit {run.run_id} event {event.to_phase.value} not recorded: {e}")


# ============================================================
# PHASE SCHEDULER
# ============================================================

PhaseUpdateListener = Callable[[CommitSnapshot], None]


class PhaseScheduler:
    """Drives a commit run one phase per interval until it is terminal."""

    def __init__(
        self,
        pipeline: CommitPipeline,
        pacing: Optional[PacingConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        self._pipeline = pipeline
        self._pacing = pacing or PacingConfig()
        self._clock = clock or ClockFactory.get_clock()
        self._listeners: List[PhaseUpdateListener] = []

    def on_phase(self, listener: PhaseUpdateListener) -> None:
        """Called after every phase change."""
        self._listeners.append(listener)

    async def run(self, run: CommitRun, timeout: Optional[float] = None) -> CommitRun:
        """Advance until COMPLETE or FAILED."""
        self._notify(run.snapshot())

        while not run.is_terminal:
            await self._clock.sleep(self._pacing.seconds(self._pacing.phase_interval_ms))
            await self._pipeline.advance_phase(run, timeout)
            self._notify(run.snapshot())

        return run

    def _notify(self, snapshot: CommitSnapshot) -> None:
        for listener in self._listeners:
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Phase listener error: {e}")
