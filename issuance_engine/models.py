"""
Issuance Engine - ORM Models.

============================================================
PURPOSE
============================================================
SQLAlchemy ORM models for the local issuance ledger.

TABLES:
- issued_tokens: One row per confirmed bio-token asset
- commit_events: Commit phase transitions

AUDIT REQUIREMENTS:
- Every minted asset is recorded, even if its caller gave up
- Every phase change is recorded

============================================================
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from core.clock import now_utc


# ============================================================
# BASE
# ============================================================

class Base(DeclarativeBase):
    """Base class for ORM models."""
    pass


# ============================================================
# ISSUED TOKEN MODEL
# ============================================================

class IssuedTokenModel(Base):
    """
    Persisted bio-token issuance.

    Written right after the ledger confirms the asset.
    """

    __tablename__ = "issued_tokens"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identifiers
    transaction_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    asset_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    account: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Asset
    asset_name: Mapped[str] = mapped_column(String(64), nullable=False)
    token_amount: Mapped[int] = mapped_column(Integer, nullable=False)

    # Recording
    recording_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    species: Mapped[Optional[str]] = mapped_column(String(128))
    conservation_status: Mapped[Optional[str]] = mapped_column(String(8))
    location: Mapped[Optional[str]] = mapped_column(String(256))
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)

    # Ledger
    service_id: Mapped[str] = mapped_column(String(32), nullable=False)
    confirmed_round: Mapped[Optional[int]] = mapped_column(Integer)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    metadata_note: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)

    def __repr__(self) -> str:
        return (
            f"<IssuedToken {self.asset_id} {self.token_amount} "
            f"{self.account} txn={self.transaction_id}>"
        )


# ============================================================
# COMMIT EVENT MODEL
# ============================================================

class CommitEventModel(Base):
    """Persisted commit phase transition."""

    __tablename__ = "commit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    run_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    recording_id: Mapped[str] = mapped_column(String(64), nullable=False)
    from_phase: Mapped[str] = mapped_column(String(32), nullable=False)
    to_phase: Mapped[str] = mapped_column(String(32), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(64))

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_commit_events_run_time", "run_id", "occurred_at"),
    )
