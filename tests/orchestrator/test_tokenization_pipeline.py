"""
Tokenization Pipeline Tests.

============================================================
PURPOSE
============================================================
End-to-end tests: recording -> staged calculation -> commit
sequence -> transaction result, on the mock issuance adapter.

============================================================
"""

import pytest

from calculation_engine import PacingConfig
from core.clock import MockClock
from core.exceptions import InvalidRecording
from issuance_engine import CommitPhase, IssuanceEngineConfig, create_ledger
from issuance_engine.adapters import ErrorCategory, MockConfig, MockIssuanceAdapter
from orchestrator import create_pipeline
from scoring_engine import get_recording


@pytest.fixture
def adapter():
    return MockIssuanceAdapter(MockConfig.for_testing())


@pytest.fixture
def clock():
    return MockClock()


@pytest.fixture
def pipeline(adapter, clock):
    return create_pipeline(IssuanceEngineConfig.for_testing(), adapter=adapter, clock=clock)


class TestTokenize:
    """Tests for TokenizationPipeline.tokenize."""

    @pytest.mark.asyncio
    async def test_successful_tokenization(self, pipeline, adapter):
        outcome = await pipeline.tokenize(get_recording("1"), "ALICE")

        assert outcome.success
        assert outcome.token_amount == 50
        assert outcome.value_history == [1, 6, 11, 27, 54, 50]
        assert outcome.phases == ["VALIDATION", "MINTING", "GEOREFERENCING", "COMPLETE"]
        assert outcome.transaction.asset_id == adapter.created_assets[0].asset_id
        assert outcome.failure_reason is None

    @pytest.mark.asyncio
    async def test_low_value_recording_still_mints_one(self, pipeline, adapter):
        outcome = await pipeline.tokenize(get_recording("3"), "ALICE")

        assert outcome.success
        assert outcome.token_amount == 1
        assert outcome.value_history[-1] == 0
        assert adapter.created_assets[0].total_supply == 1

    @pytest.mark.asyncio
    async def test_network_failure_reported(self, pipeline, adapter):
        adapter.force_error(ErrorCategory.NETWORK)

        outcome = await pipeline.tokenize(get_recording("2"), "ALICE")

        assert not outcome.success
        assert outcome.phase == CommitPhase.FAILED
        assert "network" in outcome.failure_reason
        assert outcome.transaction is None
        assert "GEOREFERENCING" not in outcome.phases
        assert outcome.to_dict()["success"] is False

    @pytest.mark.asyncio
    async def test_ledger_records_issuance(self, adapter, clock):
        config = IssuanceEngineConfig.for_testing()
        repository = create_ledger(config.ledger)
        pipeline = create_pipeline(config, adapter=adapter, repository=repository, clock=clock)

        outcome = await pipeline.tokenize(get_recording("2"), "ALICE")

        record = repository.get_issued_token(outcome.transaction.transaction_id)
        assert record.token_amount == 35
        assert [e.to_phase for e in repository.get_commit_events(outcome.commit_run_id)] == [
            "MINTING", "GEOREFERENCING", "COMPLETE",
        ]

    @pytest.mark.asyncio
    async def test_invalid_recording_raises(self, pipeline, adapter):
        with pytest.raises(InvalidRecording):
            await pipeline.tokenize({"duration": 60, "qualityScore": -1}, "ALICE")

        assert adapter.created_assets == []

    @pytest.mark.asyncio
    async def test_paced_timeline(self, adapter, clock):
        config = IssuanceEngineConfig.for_testing()
        config.pacing = PacingConfig()
        pipeline = create_pipeline(config, adapter=adapter, clock=clock)

        outcome = await pipeline.tokenize(get_recording("1"), "ALICE")

        assert outcome.success
        assert clock.monotonic() == pytest.approx(5.6 + 3 * 2.0)

    @pytest.mark.asyncio
    async def test_listeners(self, pipeline):
        reveals, updates, phases = [], [], []
        pipeline.on_reveal(lambda snapshot, factor: reveals.append(factor.id))
        pipeline.on_update(lambda snapshot: updates.append(snapshot.current_value))
        pipeline.on_phase(lambda snapshot: phases.append(snapshot.phase))

        await pipeline.tokenize(get_recording("2"), "ALICE")

        assert reveals == ["duration", "metadata", "location", "conservation", "quality"]
        assert updates == [2, 4, 9, 45, 35]
        assert phases[-1] == CommitPhase.COMPLETE

    @pytest.mark.asyncio
    async def test_close_disconnects_adapter(self, pipeline, adapter):
        await pipeline.tokenize(get_recording("1"), "ALICE")
        assert adapter.is_connected

        await pipeline.close()

        assert not adapter.is_connected


class TestCalculate:
    """Tests for TokenizationPipeline.calculate."""

    @pytest.mark.asyncio
    async def test_calculate_from_mapping(self, pipeline):
        snapshot = await pipeline.calculate({
            "id": "field-7",
            "duration": 75,
            "qualityScore": 0.78,
            "metadataComplete": True,
            "isRareLocation": True,
            "iucnStatus": "CR",
        })

        assert snapshot.recording_id == "field-7"
        assert snapshot.current_value == 35
        assert snapshot.current_factor_id is None
