"""
Issuance Engine - Repository.

============================================================
PURPOSE
============================================================
Database operations for the local issuance ledger.

RESPONSIBILITIES:
- Record issued tokens
- Record commit phase transitions
- Query issuance history

CRITICAL REQUIREMENTS:
- All writes are transactional
- Errors roll back and surface as LedgerError
- Writes from async code go through run_ledger_write, which
  runs them one at a time on a dedicated thread

============================================================
"""

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from typing import Any, Callable, Generator, List, Optional, TypeVar

from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.exceptions import LedgerError
from scoring_engine.types import Recording

from .config import LedgerConfig
from .models import Base, CommitEventModel, IssuedTokenModel
from .state_machine import PhaseTransitionEvent
from .types import TransactionResult


logger = logging.getLogger(__name__)


T = TypeVar("T")


# ============================================================
# WRITER THREAD
# ============================================================

# One thread for every ledger write, so the event loop never blocks on
# the database and a shared SQLite connection is never used concurrently
_ledger_writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ledger-writer")


async def run_ledger_write(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a synchronous repository call on the ledger writer thread."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(_ledger_writer, functools.partial(func, *args, **kwargs))


# ============================================================
# ENGINE
# ============================================================

def create_ledger_engine(config: LedgerConfig) -> Engine:
    """
    Create the SQLAlchemy engine for the ledger.

    In-memory SQLite shares one connection so every session sees the
    same tables.
    """
    url = config.database_url
    logger.info(f"Creating ledger engine for: {url.split('@')[-1]}")

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=config.echo, future=True, **kwargs)

    return create_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_recycle=1800,
        echo=config.echo,
        future=True,
    )


# ============================================================
# ISSUANCE REPOSITORY
# ============================================================

class IssuanceRepository:
    """
    Repository for issuance ledger persistence.

    Sessions are short-lived: one per operation.
    """

    def __init__(self, session_factory: sessionmaker):
        """
        Initialize repository.

        Args:
            session_factory: SQLAlchemy session factory
        """
        self._session_factory = session_factory

    @contextmanager
    def transaction_scope(self) -> Generator[Session, None, None]:
        """
        Commit on success, roll back on any error.

        Raises:
            LedgerError: If the transaction fails
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Ledger transaction failed, rolling back: {e}")
            session.rollback()
            raise LedgerError(f"Ledger transaction failed: {e}", cause=e) from e
        finally:
            session.close()

    def create_tables(self) -> None:
        session = self._session_factory()
        try:
            Base.metadata.create_all(session.get_bind())
        finally:
            session.close()

    # --------------------------------------------------------
    # ISSUED TOKENS
    # --------------------------------------------------------

    def save_issued_token(
        self,
        result: TransactionResult,
        recording: Recording,
        service_id: str,
        metadata_note: Optional[bytes] = None,
    ) -> IssuedTokenModel:
        """Record a confirmed issuance."""
        latitude, longitude = recording.coordinates
        model = IssuedTokenModel(
            transaction_id=result.transaction_id,
            asset_id=result.asset_id,
            account=result.account,
            asset_name=result.asset_name,
            token_amount=result.token_amount,
            recording_id=recording.id,
            species=recording.species,
            conservation_status=(
                recording.conservation_status.value if recording.conservation_status else None
            ),
            location=recording.location,
            latitude=latitude,
            longitude=longitude,
            service_id=service_id,
            confirmed_round=result.confirmed_round,
            confirmed_at=result.confirmed_at,
            metadata_note=metadata_note.decode("utf-8") if metadata_note else None,
        )

        with self.transaction_scope() as session:
            session.add(model)

        logger.info(
            f"Ledger: recorded asset {result.asset_id} "
            f"({result.token_amount} tokens) for {result.account}"
        )
        return model

    def get_issued_token(self, transaction_id: str) -> Optional[IssuedTokenModel]:
        with self.transaction_scope() as session:
            return session.scalars(
                select(IssuedTokenModel).where(IssuedTokenModel.transaction_id == transaction_id)
            ).first()

    def list_issued_tokens(
        self,
        account: Optional[str] = None,
        recording_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[IssuedTokenModel]:
        """Most recent issuances first."""
        query = select(IssuedTokenModel)
        if account:
            query = query.where(IssuedTokenModel.account == account)
        if recording_id:
            query = query.where(IssuedTokenModel.recording_id == recording_id)
        query = query.order_by(IssuedTokenModel.id.desc()).limit(limit)

        with self.transaction_scope() as session:
            return list(session.scalars(query))

    # --------------------------------------------------------
    # COMMIT EVENTS
    # --------------------------------------------------------

    def save_commit_event(
        self,
        event: PhaseTransitionEvent,
        recording_id: str,
        transaction_id: Optional[str] = None,
    ) -> CommitEventModel:
        model = CommitEventModel(
            run_id=event.run_id,
            recording_id=recording_id,
            from_phase=event.from_phase.value,
            to_phase=event.to_phase.value,
            reason=event.reason or None,
            transaction_id=transaction_id,
            occurred_at=event.timestamp,
        )
        with self.transaction_scope() as session:
            session.add(model)
        return model

    def get_commit_events(self, run_id: str) -> List[CommitEventModel]:
        with self.transaction_scope() as session:
            return list(session.scalars(
                select(CommitEventModel)
                .where(CommitEventModel.run_id == run_id)
                .order_by(CommitEventModel.id)
            ))


# ============================================================
# FACTORY
# ============================================================

def create_ledger(config: Optional[LedgerConfig] = None) -> IssuanceRepository:
    """Create a repository with its tables in place."""
    config = config or LedgerConfig()
    engine = create_ledger_engine(config)
    factory = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    repository = IssuanceRepository(factory)
    repository.create_tables()
    return repository
