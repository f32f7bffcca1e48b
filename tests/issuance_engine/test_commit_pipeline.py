"""
Commit Pipeline Tests.

============================================================
PURPOSE
============================================================
Tests for CommitPipeline, its state machine and PhaseScheduler.

TEST CATEGORIES:
- Phase tests: forward order, terminal phases
- Validation tests: amount, account and estimate checks
- Mint tests: failures, timeouts, abandoned runs
- Scheduler tests: phase pacing and notifications

============================================================
"""

import asyncio
import threading
from unittest.mock import AsyncMock, patch

import pytest

from calculation_engine import PacingConfig
from core.clock import MockClock
from core.exceptions import EngineStateError, IssuanceError
from issuance_engine import (
    CommitPhase,
    CommitPipeline,
    CommitRun,
    CommitStateMachine,
    IssuanceEngineConfig,
    LedgerConfig,
    PHASE_ORDER,
    PhaseScheduler,
    TransactionStatus,
    ValuationService,
    create_ledger,
)
from issuance_engine.adapters import ErrorCategory, MockConfig, MockIssuanceAdapter
from scoring_engine import get_recording


@pytest.fixture
def adapter():
    return MockIssuanceAdapter(MockConfig.for_testing())


@pytest.fixture
def repository():
    return create_ledger(LedgerConfig(database_url="sqlite://"))


@pytest.fixture
def config():
    return IssuanceEngineConfig.for_testing()


@pytest.fixture
def pipeline(adapter, repository, config):
    service = ValuationService(adapter, repository, config, clock=MockClock())
    return CommitPipeline(service, repository, config)


async def drive(pipeline, run, timeout=None):
    phases = [run.phase]
    while not run.is_terminal:
        await pipeline.advance_phase(run, timeout)
        phases.append(run.phase)
    return phases


# ============================================================
# PHASE TESTS
# ============================================================

class TestPhases:
    """Tests for the forward phase order."""

    def test_begin_in_validation(self, pipeline):
        run = pipeline.begin(50, get_recording("1"), "ALICE")

        assert run.phase == CommitPhase.VALIDATION
        assert run.transaction is None
        assert run.failure_reason is None

    @pytest.mark.asyncio
    async def test_full_sequence(self, pipeline):
        run = pipeline.begin(50, get_recording("1"), "ALICE")

        phases = await drive(pipeline, run)

        assert phases == [
            CommitPhase.VALIDATION,
            CommitPhase.MINTING,
            CommitPhase.GEOREFERENCING,
            CommitPhase.COMPLETE,
        ]

    @pytest.mark.asyncio
    async def test_complete_confirms_transaction(self, pipeline):
        run = pipeline.begin(35, get_recording("2"), "ALICE")

        await drive(pipeline, run)

        assert run.transaction.status == TransactionStatus.CONFIRMED
        assert run.transaction.asset_id == run.mint_result.asset_id
        assert run.mint_result.token_amount == 35

    @pytest.mark.asyncio
    async def test_transaction_pending_while_georeferencing(self, pipeline):
        run = pipeline.begin(35, get_recording("2"), "ALICE")
        await pipeline.advance_phase(run)

        assert run.transaction is None

        await pipeline.advance_phase(run)

        assert run.phase == CommitPhase.GEOREFERENCING
        assert run.transaction.status == TransactionStatus.PENDING

    @pytest.mark.asyncio
    async def test_advance_after_complete_raises(self, pipeline):
        run = pipeline.begin(1, get_recording("3"), "ALICE")
        await drive(pipeline, run)

        with pytest.raises(EngineStateError):
            await pipeline.advance_phase(run)

        assert run.phase == CommitPhase.COMPLETE

    @pytest.mark.asyncio
    async def test_commit_events_persisted(self, pipeline, repository):
        run = pipeline.begin(50, get_recording("1"), "ALICE")
        await drive(pipeline, run)

        events = repository.get_commit_events(run.run_id)

        assert [e.to_phase for e in events] == ["MINTING", "GEOREFERENCING", "COMPLETE"]
        assert events[0].transaction_id is None
        assert events[-1].transaction_id == run.transaction.transaction_id

    def test_terminal_phases_have_no_exits(self):
        run = CommitRun(token_amount=1, recording=get_recording("3"), account="A")
        run.phase = CommitPhase.COMPLETE
        machine = CommitStateMachine(run)

        for phase in CommitPhase:
            assert not machine.can_transition_to(phase)
        with pytest.raises(EngineStateError):
            machine.next_phase()

    def test_phases_cannot_be_skipped(self):
        run = CommitRun(token_amount=1, recording=get_recording("3"), account="A")
        machine = CommitStateMachine(run)

        assert machine.next_phase() == CommitPhase.MINTING
        with pytest.raises(EngineStateError):
            machine.transition_to(CommitPhase.GEOREFERENCING)

    def test_next_phase_follows_phase_order(self):
        run = CommitRun(token_amount=1, recording=get_recording("3"), account="A")
        machine = CommitStateMachine(run)
        seen = [run.phase]

        while not run.phase.is_terminal():
            machine.transition_to(machine.next_phase())
            seen.append(run.phase)

        assert seen == PHASE_ORDER

    @pytest.mark.asyncio
    async def test_commit_events_written_on_ledger_thread(self, pipeline, repository):
        threads = []
        save = repository.save_commit_event

        def record(*args):
            threads.append(threading.current_thread().name)
            return save(*args)

        run = pipeline.begin(50, get_recording("1"), "ALICE")
        with patch.object(repository, "save_commit_event", side_effect=record):
            await drive(pipeline, run)

        assert len(threads) == 3
        assert all(name.startswith("ledger-writer") for name in threads)
        assert len(repository.get_commit_events(run.run_id)) == 3


# ============================================================
# VALIDATION TESTS
# ============================================================

class TestValidation:
    """Tests for the checks made when leaving VALIDATION."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount,fragment", [
        (0, "at least 1"),
        (-5, "at least 1"),
        (2.5, "must be an integer"),
        (True, "must be an integer"),
    ])
    async def test_bad_amount_fails(self, pipeline, adapter, amount, fragment):
        run = pipeline.begin(amount, get_recording("3"), "ALICE")

        await pipeline.advance_phase(run)

        assert run.phase == CommitPhase.FAILED
        assert fragment in run.failure_reason
        assert run.failed_from == CommitPhase.VALIDATION
        assert adapter.created_assets == []

    @pytest.mark.asyncio
    async def test_amount_must_match_estimate(self, pipeline):
        run = pipeline.begin(49, get_recording("1"), "ALICE")

        await pipeline.advance_phase(run)

        assert run.phase == CommitPhase.FAILED
        assert run.failure_reason == "token amount 49 does not match estimated value 50"

    @pytest.mark.asyncio
    async def test_empty_account_fails(self, pipeline):
        run = pipeline.begin(50, get_recording("1"), "")

        await pipeline.advance_phase(run)

        assert run.phase == CommitPhase.FAILED
        assert run.failure_reason == "account reference is required"

    @pytest.mark.asyncio
    async def test_estimate_check_can_be_disabled(self, adapter, config):
        config.check_estimate = False
        pipeline = CommitPipeline(ValuationService(adapter, config=config), config=config)
        run = pipeline.begin(7, get_recording("1"), "ALICE")

        await pipeline.advance_phase(run)

        assert run.phase == CommitPhase.MINTING
        await pipeline.wait_for_mint(run)


# ============================================================
# MINT TESTS
# ============================================================

class TestMinting:
    """Tests for the mint launched on entering MINTING."""

    @pytest.mark.asyncio
    async def test_network_failure_fails_run(self, pipeline, adapter):
        adapter.force_error(ErrorCategory.NETWORK)
        run = pipeline.begin(35, get_recording("2"), "ALICE")

        phases = await drive(pipeline, run)

        assert phases == [CommitPhase.VALIDATION, CommitPhase.MINTING, CommitPhase.FAILED]
        assert CommitPhase.GEOREFERENCING not in phases
        assert "network" in run.failure_reason
        assert run.failed_from == CommitPhase.MINTING
        assert run.transaction is None

    @pytest.mark.asyncio
    async def test_insufficient_funds_fails_run(self, pipeline, adapter):
        adapter.set_balance("POOR", 0)
        run = pipeline.begin(50, get_recording("1"), "POOR")

        await drive(pipeline, run)

        assert run.phase == CommitPhase.FAILED
        assert run.failure_reason.startswith("insufficient funds")

    @pytest.mark.asyncio
    async def test_wait_without_mint_raises(self, pipeline):
        run = pipeline.begin(50, get_recording("1"), "ALICE")

        with pytest.raises(EngineStateError):
            await pipeline.wait_for_mint(run)

    @pytest.mark.asyncio
    async def test_wait_for_mint_times_out(self, pipeline, adapter):
        adapter.hold_confirmations()
        run = pipeline.begin(50, get_recording("1"), "ALICE")
        await pipeline.advance_phase(run)

        with pytest.raises(IssuanceError) as exc:
            await pipeline.wait_for_mint(run, timeout=0.01)

        assert exc.value.category == "TIMEOUT"
        assert run.phase == CommitPhase.MINTING
        assert run.mint_pending

        adapter.release_confirmations()
        result = await pipeline.wait_for_mint(run, timeout=1.0)
        assert result.token_amount == 50

    @pytest.mark.asyncio
    async def test_mint_timeout_fails_run_but_keeps_result(self, pipeline, adapter, repository):
        adapter.hold_confirmations()
        run = pipeline.begin(50, get_recording("1"), "ALICE")
        await pipeline.advance_phase(run)

        await pipeline.advance_phase(run, timeout=0.01)

        assert run.phase == CommitPhase.FAILED
        assert "mint not confirmed" in run.failure_reason

        adapter.release_confirmations()
        result = await pipeline.wait_for_mint(run, timeout=1.0)

        assert run.mint_result == result
        assert run.transaction.transaction_id == result.transaction_id
        assert repository.get_issued_token(result.transaction_id) is not None

    @pytest.mark.asyncio
    async def test_slow_mint_outlasting_config_timeout_is_captured(self, pipeline, adapter, config):
        config.timeout.issuance_timeout_seconds = 0.05
        adapter.hold_confirmations()
        run = pipeline.begin(50, get_recording("1"), "ALICE")
        await pipeline.advance_phase(run)

        await asyncio.sleep(0.1)
        adapter.release_confirmations()
        await pipeline.advance_phase(run, timeout=1.0)

        assert run.phase == CommitPhase.GEOREFERENCING
        assert run.mint_error is None
        assert run.transaction.transaction_id == run.mint_result.transaction_id

    @pytest.mark.asyncio
    async def test_late_mint_captured_after_run_times_out(self, pipeline, adapter, config, repository):
        config.timeout.issuance_timeout_seconds = 0.05
        adapter.hold_confirmations()
        run = pipeline.begin(50, get_recording("1"), "ALICE")
        await pipeline.advance_phase(run)
        await asyncio.sleep(0.02)

        await pipeline.advance_phase(run)

        assert run.phase == CommitPhase.FAILED
        assert "mint not confirmed within 0.05s" in run.failure_reason

        adapter.release_confirmations()
        result = await pipeline.wait_for_mint(run, timeout=1.0)

        assert run.mint_result == result
        assert run.transaction.asset_id == result.asset_id
        assert repository.get_issued_token(result.transaction_id) is not None

    @pytest.mark.asyncio
    async def test_unexpected_adapter_exception_fails_run(self, pipeline, adapter):
        adapter.create_asset = AsyncMock(side_effect=KeyError("txId"))
        run = pipeline.begin(50, get_recording("1"), "ALICE")

        phases = await drive(pipeline, run)

        assert phases == [CommitPhase.VALIDATION, CommitPhase.MINTING, CommitPhase.FAILED]
        assert run.failure_reason == "issuance failed: KeyError: 'txId'"
        assert run.mint_error.category == "UNKNOWN"
        assert run.transaction is None

    @pytest.mark.asyncio
    async def test_mint_launch_error_fails_run(self, adapter, config):
        service = ValuationService(adapter, config=config, clock=MockClock())
        pipeline = CommitPipeline(service, config=config)
        run = pipeline.begin(50, get_recording("1"), "ALICE")

        with patch.object(service, "start_issue", side_effect=RuntimeError("event loop closed")):
            await drive(pipeline, run)

        assert run.phase == CommitPhase.FAILED
        assert run.failure_reason == "issuance failed: RuntimeError: event loop closed"

    @pytest.mark.asyncio
    async def test_abandon_does_not_cancel_mint(self, pipeline, adapter, repository):
        adapter.hold_confirmations()
        run = pipeline.begin(35, get_recording("2"), "ALICE")
        await pipeline.advance_phase(run)

        pipeline.abandon(run)

        with pytest.raises(EngineStateError):
            await pipeline.advance_phase(run)

        adapter.release_confirmations()
        result = await pipeline.wait_for_mint(run, timeout=1.0)

        assert run.abandoned
        assert run.phase == CommitPhase.MINTING
        assert run.mint_result == result
        assert len(adapter.created_assets) == 1
        assert repository.get_issued_token(result.transaction_id).token_amount == 35

    @pytest.mark.asyncio
    async def test_runs_do_not_interfere(self, pipeline, adapter):
        adapter.force_error(ErrorCategory.REJECTED)
        failing = pipeline.begin(50, get_recording("1"), "ALICE")
        await pipeline.advance_phase(failing)
        passing = pipeline.begin(35, get_recording("2"), "BOB")

        await drive(pipeline, failing)
        await drive(pipeline, passing)

        assert failing.phase == CommitPhase.FAILED
        assert passing.phase == CommitPhase.COMPLETE


# ============================================================
# SCHEDULER TESTS
# ============================================================

class TestPhaseScheduler:
    """Tests for PhaseScheduler."""

    @pytest.mark.asyncio
    async def test_one_interval_per_phase(self, pipeline):
        clock = MockClock()
        scheduler = PhaseScheduler(pipeline, PacingConfig(), clock)
        seen = []
        scheduler.on_phase(lambda snapshot: seen.append(snapshot.phase))
        run = pipeline.begin(50, get_recording("1"), "ALICE")

        await scheduler.run(run)

        assert seen == [
            CommitPhase.VALIDATION,
            CommitPhase.MINTING,
            CommitPhase.GEOREFERENCING,
            CommitPhase.COMPLETE,
        ]
        assert clock.sleeps == [2.0, 2.0, 2.0]

    @pytest.mark.asyncio
    async def test_failure_stops_scheduler(self, pipeline, adapter):
        adapter.force_error(ErrorCategory.NETWORK)
        scheduler = PhaseScheduler(pipeline, PacingConfig.instant(), MockClock())
        snapshots = []
        scheduler.on_phase(snapshots.append)
        run = pipeline.begin(35, get_recording("2"), "ALICE")

        await scheduler.run(run)

        assert [s.phase for s in snapshots] == [
            CommitPhase.VALIDATION,
            CommitPhase.MINTING,
            CommitPhase.FAILED,
        ]
        assert "network" in snapshots[-1].failure_reason

    @pytest.mark.asyncio
    async def test_failing_listener_is_ignored(self, pipeline):
        def broken(snapshot):
            raise RuntimeError("display gone")

        scheduler = PhaseScheduler(pipeline, PacingConfig.instant(), MockClock())
        scheduler.on_phase(broken)
        run = pipeline.begin(1, get_recording("3"), "ALICE")

        await scheduler.run(run)

        assert run.phase == CommitPhase.COMPLETE
