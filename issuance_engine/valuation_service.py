"""
Issuance Engine - Valuation Service.

============================================================
PURPOSE
============================================================
The seam between pure bio-token valuation and the external
Asset Issuance Service.

OPERATIONS:
- estimate_value: pure, no I/O
- issue_token: value -> asset parameters -> create_asset -> ledger
- get_account_balance / list_bio_tokens: read-only queries

ERROR CONTRACT:
- Any adapter failure, including an unexpected exception,
  becomes IssuanceError with a specific reason
- issue_token is never retried here and is not idempotent

CANCELLATION:
- The mint runs in its own task (start_issue) and is shielded; a
  caller that times out or is cancelled does not stop a submitted
  mint, whose result is still recorded

============================================================
"""

import asyncio
import logging
from typing import Any, List, Mapping, Optional, Set, Union

from core.clock import ClockFactory, ClockProtocol
from core.exceptions import ExternalServiceError, IssuanceError, LedgerError
from scoring_engine.score_model import compute_token_value
from scoring_engine.types import Recording

from .adapters.base import AssetIssuanceAdapter
from .adapters.errors import CATEGORY_REASONS, ErrorCategory
from .config import IssuanceEngineConfig
from .metadata import build_create_request, is_bio_token
from .repository import IssuanceRepository, run_ledger_write
from .types import BioTokenHolding, TransactionResult


logger = logging.getLogger(__name__)


RecordingInput = Union[Recording, Mapping[str, Any]]


def as_recording(recording: RecordingInput) -> Recording:
    """Accept a Recording or a mapping of recording attributes."""
    if isinstance(recording, Recording):
        return recording
    return Recording.from_dict(recording)


# ============================================================
# VALUATION SERVICE
# ============================================================

class ValuationService:
    """
    Valuation and issuance of bio-tokens.

    One instance may serve many concurrent issue_token calls; the
    adapter connection is shared.
    """

    def __init__(
        self,
        adapter: AssetIssuanceAdapter,
        repository: Optional[IssuanceRepository] = None,
        config: Optional[IssuanceEngineConfig] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Initialize valuation service.

        Args:
            adapter: Asset Issuance Service adapter
            repository: Issuance ledger; issuances are not persisted without one
            config: Engine configuration
            clock: Clock used for asset names and metadata timestamps
        """
        self._adapter = adapter
        self._repository = repository
        self._config = config or IssuanceEngineConfig()
        self._clock = clock or ClockFactory.get_clock()

        self._connect_lock = asyncio.Lock()
        self._inflight: Set[asyncio.Task] = set()

        self.issued: List[TransactionResult] = []
        """Every confirmed issuance made through this instance."""

    @property
    def adapter(self) -> AssetIssuanceAdapter:
        return self._adapter

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    # --------------------------------------------------------
    # VALUATION
    # --------------------------------------------------------

    def estimate_value(self, recording: RecordingInput) -> int:
        """
        Token value of a recording.

        Raises:
            InvalidRecording: If the recording is malformed
        """
        return compute_token_value(as_recording(recording))

    # --------------------------------------------------------
    # ISSUANCE
    # --------------------------------------------------------

    async def issue_token(
        self,
        account: str,
        recording: RecordingInput,
        timeout: Optional[float] = None,
    ) -> TransactionResult:
        """
        Compute the value of a recording and issue it as an asset.

        Args:
            account: Creator and holder account
            recording: Recording or its attributes
            timeout: Bound on the call in seconds; config default if None

        Raises:
            ValueError: If the account is empty
            InvalidRecording: If the recording is malformed
            IssuanceError: If the mint failed or did not finish in time
        """
        timeout = timeout if timeout is not None else self._config.timeout.issuance_timeout_seconds
        task = self.start_issue(account, recording)

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Issuance for {account} not confirmed within {timeout}s; mint left running"
            )
            raise IssuanceError(
                f"{CATEGORY_REASONS[ErrorCategory.TIMEOUT]}: "
                f"no confirmation within {timeout}s, the asset may still be created",
                category=ErrorCategory.TIMEOUT.value,
            )

    def start_issue(self, account: str, recording: RecordingInput) -> "asyncio.Task[TransactionResult]":
        """
        Launch a mint in the background and return its task.

        The task is not bounded by any timeout. It resolves to the
        TransactionResult or fails with IssuanceError.

        Raises:
            ValueError: If the account is empty
            InvalidRecording: If the recording is malformed
        """
        if not account or not str(account).strip():
            raise ValueError("account reference is required")

        recording = as_recording(recording)
        token_amount = self.estimate_value(recording)

        task = asyncio.ensure_future(self._mint(account, recording, token_amount))
        self._inflight.add(task)
        task.add_done_callback(self._on_mint_done)
        return task

    async def drain(self) -> None:
        """Wait for every mint still in flight."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _mint(self, account: str, recording: Recording, token_amount: int) -> TransactionResult:
        created_at = self._clock.now()
        request = build_create_request(
            recording, token_amount, account, created_at, self._config.asset
        )

        logger.info(
            f"Issuing {token_amount} bio-tokens for recording {recording.id} "
            f"to {account} as {request.params.name}"
        )

        try:
            await self._ensure_connected()
            response = await self._adapter.create_asset(request)
        except ExternalServiceError as e:
            raise self._issuance_error(e) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Issuance timed out: {e}")
            raise IssuanceError(
                CATEGORY_REASONS[ErrorCategory.TIMEOUT],
                category=ErrorCategory.TIMEOUT.value,
                cause=e,
            ) from e
        except OSError as e:
            logger.error(f"Issuance network failure: {e}")
            raise IssuanceError(
                f"{CATEGORY_REASONS[ErrorCategory.NETWORK]}: {e}",
                category=ErrorCategory.NETWORK.value,
                cause=e,
            ) from e
        except Exception as e:
            logger.exception(f"Unexpected issuance failure: {type(e).__name__}: {e}")
            raise IssuanceError(
                f"{CATEGORY_REASONS[ErrorCategory.UNKNOWN]}: {type(e).__name__}: {e}",
                category=ErrorCategory.UNKNOWN.value,
                cause=e,
            ) from e

        result = TransactionResult(
            transaction_id=response.transaction_id,
            asset_id=response.asset_id,
            token_amount=token_amount,
            account=account,
            asset_name=request.params.name,
            recording_id=recording.id,
            confirmed_round=response.confirmed_round,
            confirmed_at=response.confirmed_at,
        )
        self.issued.append(result)
        await self._record(result, recording, request.params.note)

        logger.info(
            f"Issued asset {result.asset_id} ({token_amount} tokens) "
            f"txn={result.transaction_id} round={result.confirmed_round}"
        )
        return result

    async def _record(self, result: TransactionResult, recording: Recording, note: bytes) -> None:
        """Persist a confirmed issuance. A ledger failure must not turn a mint into a retry."""
        if self._repository is None or not self._config.ledger.enabled:
            return
        try:
            await run_ledger_write(
                self._repository.save_issued_token,
                result, recording, self._adapter.service_id, note,
            )
        except LedgerError as e:
            logger.error(
                f"Asset {result.asset_id} (txn {result.transaction_id}) minted "
                f"but not recorded: {e}"
            )

    def _on_mint_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Mint task finished with {type(error).__name__}")

    def _issuance_error(self, error: ExternalServiceError) -> IssuanceError:
        service_error = error.error
        logger.error(f"Issuance service failure: {service_error}")
        return IssuanceError(
            service_error.reason,
            category=service_error.category.value,
            transaction_id=service_error.transaction_id,
            cause=error,
        )

    # --------------------------------------------------------
    # ACCOUNT QUERIES
    # --------------------------------------------------------

    async def get_account_balance(self, account: str) -> int:
        """
        Native balance of an account.

        Raises:
            IssuanceError: If the service query fails
        """
        try:
            await self._ensure_connected()
            return await self._adapter.get_account_balance(account)
        except ExternalServiceError as e:
            raise self._issuance_error(e) from e

    async def list_bio_tokens(self, account: str) -> List[BioTokenHolding]:
        """
        Bio-token assets held by an account.

        Raises:
            IssuanceError: If the service query fails
        """
        try:
            await self._ensure_connected()
            holdings = await self._adapter.get_account_assets(account)
        except ExternalServiceError as e:
            raise self._issuance_error(e) from e

        return [
            BioTokenHolding(
                asset_id=h.asset_id,
                amount=h.amount,
                name=h.name,
                unit_name=h.unit_name,
            )
            for h in holdings
            if is_bio_token(h.name, h.unit_name, self._config.asset)
        ]

    # --------------------------------------------------------
    # LIFECYCLE
    # --------------------------------------------------------

    async def _ensure_connected(self) -> None:
        async with self._connect_lock:
            if not self._adapter.is_connected:
                await self._adapter.connect()

    async def close(self) -> None:
        """Wait for in-flight mints, then disconnect the adapter."""
        await self.drain()
        if self._adapter.is_connected:
            await self._adapter.disconnect()
