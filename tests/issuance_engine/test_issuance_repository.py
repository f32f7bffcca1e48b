"""
Issuance Ledger Tests.

============================================================
PURPOSE
============================================================
Tests for IssuanceRepository on in-memory SQLite.

============================================================
"""

from datetime import datetime, timezone

import pytest

from core.exceptions import LedgerError
from issuance_engine import (
    CommitPhase,
    LedgerConfig,
    PhaseTransitionEvent,
    TransactionResult,
    create_ledger,
)
from scoring_engine import get_recording


@pytest.fixture
def repository():
    return create_ledger(LedgerConfig(database_url="sqlite://"))


def make_result(transaction_id="TXN1", account="ALICE", recording_id="1", asset_id=1000):
    return TransactionResult(
        transaction_id=transaction_id,
        asset_id=asset_id,
        token_amount=50,
        account=account,
        asset_name="BioToken-Ara-macao-1704067200000",
        recording_id=recording_id,
        confirmed_round=2,
        confirmed_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


class TestIssuedTokens:
    """Tests for issued token records."""

    def test_save_and_get(self, repository):
        repository.save_issued_token(make_result(), get_recording("1"), "mock", b'{"standard": "arc69"}')

        record = repository.get_issued_token("TXN1")

        assert record.asset_id == 1000
        assert record.conservation_status == "VU"
        assert record.latitude == pytest.approx(5.6333)
        assert record.metadata_note == '{"standard": "arc69"}'
        assert record.service_id == "mock"

    def test_unknown_transaction(self, repository):
        assert repository.get_issued_token("NOPE") is None

    def test_recording_without_status(self, repository):
        repository.save_issued_token(make_result(recording_id="3"), get_recording("3"), "mock")

        record = repository.get_issued_token("TXN1")
        assert record.species is None
        assert record.conservation_status is None
        assert record.metadata_note is None

    def test_duplicate_transaction_raises_ledger_error(self, repository):
        repository.save_issued_token(make_result(), get_recording("1"), "mock")

        with pytest.raises(LedgerError):
            repository.save_issued_token(make_result(asset_id=1001), get_recording("1"), "mock")

        assert len(repository.list_issued_tokens()) == 1

    def test_list_filters_and_order(self, repository):
        repository.save_issued_token(make_result("T1", "ALICE", "1"), get_recording("1"), "mock")
        repository.save_issued_token(make_result("T2", "BOB", "2"), get_recording("2"), "mock")
        repository.save_issued_token(make_result("T3", "ALICE", "2"), get_recording("2"), "mock")

        assert [r.transaction_id for r in repository.list_issued_tokens()] == ["T3", "T2", "T1"]
        assert [r.transaction_id for r in repository.list_issued_tokens(account="ALICE")] == ["T3", "T1"]
        assert [r.transaction_id for r in repository.list_issued_tokens(recording_id="2")] == ["T3", "T2"]
        assert len(repository.list_issued_tokens(limit=1)) == 1


class TestCommitEvents:
    """Tests for commit event records."""

    def test_events_in_order(self, repository):
        for source, target in [
            (CommitPhase.VALIDATION, CommitPhase.MINTING),
            (CommitPhase.MINTING, CommitPhase.FAILED),
        ]:
            event = PhaseTransitionEvent(
                run_id="run-1",
                from_phase=source,
                to_phase=target,
                reason="network unreachable" if target == CommitPhase.FAILED else "",
            )
            repository.save_commit_event(event, "2")

        events = repository.get_commit_events("run-1")

        assert [(e.from_phase, e.to_phase) for e in events] == [
            ("VALIDATION", "MINTING"),
            ("MINTING", "FAILED"),
        ]
        assert events[0].reason is None
        assert events[1].reason == "network unreachable"
        assert repository.get_commit_events("run-2") == []
