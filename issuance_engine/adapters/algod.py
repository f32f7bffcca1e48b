"""
Issuance Adapter - Algod REST Adapter.

============================================================
PURPOSE
============================================================
Production adapter for an Algorand node (algod v2 REST API).

FLOW (create_asset):
1. GET  /v2/transactions/params          suggested fee and rounds
2. build an unsigned asset config (acfg) transaction
3. sign it with the caller-supplied signer
4. POST /v2/transactions                 raw signed bytes
5. poll /v2/transactions/pending/{txid}  for up to N rounds

SAFETY FEATURES:
- API token masked in logs
- Error mapping to the unified taxonomy
- Bounded confirmation wait
- Submitted transaction id kept on post-submission errors

Signing keys never reach this module; the signer owns them.

============================================================
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp

from core.clock import now_utc
from core.exceptions import ExternalServiceError

from ..config import AlgodConfig, TimeoutConfig
from .base import (
    AssetHolding,
    AssetIssuanceAdapter,
    CreateAssetRequest,
    CreateAssetResponse,
)
from .errors import (
    ErrorCategory,
    RetryEligibility,
    ServiceError,
    create_malformed_response_error,
    create_network_error,
    create_rejection_error,
    create_signing_error,
    create_timeout_error,
    map_algod_error,
)
from .logging_utils import AdapterLogger


logger = logging.getLogger(__name__)


# Signs an unsigned transaction dict and returns the msgpack-encoded
# signed transaction.
TransactionSigner = Callable[[Dict[str, Any]], Awaitable[bytes]]


# ============================================================
# ALGOD ADAPTER
# ============================================================

class AlgodIssuanceAdapter(AssetIssuanceAdapter):
    """
    Algod issuance adapter.

    Implements the AssetIssuanceAdapter interface for the algod v2 API.
    """

    def __init__(
        self,
        config: Optional[AlgodConfig] = None,
        timeout_config: Optional[TimeoutConfig] = None,
        signer: Optional[TransactionSigner] = None,
    ):
        """
        Initialize algod adapter.

        Args:
            config: Node configuration
            timeout_config: Timeout configuration
            signer: Transaction signer; create_asset fails without one
        """
        self._config = config or AlgodConfig()
        self._timeout_config = timeout_config or TimeoutConfig()
        self._signer = signer

        self._base_url = self._config.url.rstrip("/")
        self._token = self._config.resolve_token()

        self._session: Optional[aiohttp.ClientSession] = None
        self._connected = False
        self._log = AdapterLogger(self.service_id)

    @property
    def service_id(self) -> str:
        return "algod"

    @property
    def is_connected(self) -> bool:
        return self._connected and self._session is not None

    @property
    def signer(self) -> Optional[TransactionSigner]:
        return self._signer

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        """Connect to algod."""
        if self._session is not None:
            await self.disconnect()

        timeout = aiohttp.ClientTimeout(
            connect=self._timeout_config.connection_timeout_seconds,
            total=self._timeout_config.read_timeout_seconds,
        )
        self._session = aiohttp.ClientSession(timeout=timeout)

        try:
            await self._request("GET", "/health", operation="connect", expect_json=False)
        except ExternalServiceError:
            await self.disconnect()
            raise

        self._connected = True
        logger.info(f"Connected to algod at {self._base_url}")

    async def disconnect(self) -> None:
        """Disconnect from algod."""
        self._connected = False
        if self._session:
            await self._session.close()
            self._session = None
        logger.info("Disconnected from algod")

    # --------------------------------------------------------
    # ISSUANCE
    # --------------------------------------------------------

    async def create_asset(self, request: CreateAssetRequest) -> CreateAssetResponse:
        """Create an asset and wait for confirmation."""
        if self._signer is None:
            raise ExternalServiceError(ServiceError(
                category=ErrorCategory.AUTHENTICATION,
                code="NO_SIGNER",
                message="no transaction signer configured",
                retry_eligible=RetryEligibility.NO_RETRY,
                service_id=self.service_id,
                operation="create_asset",
            ))

        params = await self._request(
            "GET", "/v2/transactions/params", operation="suggested_params"
        )
        try:
            txn = self.build_asset_config_txn(request, params)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ExternalServiceError(create_malformed_response_error(
                f"unusable suggested params: {type(e).__name__}: {e}",
                self.service_id,
                "suggested_params",
            )) from e

        try:
            signed = await self._signer(txn)
        except ExternalServiceError:
            raise
        except Exception as e:
            raise ExternalServiceError(create_signing_error(
                f"{type(e).__name__}: {e}", self.service_id
            )) from e

        submitted = await self._request(
            "POST",
            "/v2/transactions",
            operation="submit",
            data=signed,
            headers={"Content-Type": "application/x-binary"},
        )
        transaction_id = submitted.get("txId") if isinstance(submitted, dict) else None
        if not transaction_id:
            raise ExternalServiceError(create_malformed_response_error(
                "submit reply has no txId", self.service_id, "submit"
            ))
        logger.info(f"Asset config transaction submitted: {transaction_id}")

        try:
            pending = await self.wait_for_confirmation(transaction_id)
            asset_id = int(pending["asset-index"])
            confirmed_round = int(pending["confirmed-round"])
        except ExternalServiceError as e:
            if getattr(e.error, "transaction_id", None) is None:
                e.error.transaction_id = transaction_id
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ExternalServiceError(create_malformed_response_error(
                f"unusable confirmation reply: {type(e).__name__}: {e}",
                self.service_id,
                "confirm",
                transaction_id,
            )) from e

        return CreateAssetResponse(
            transaction_id=transaction_id,
            asset_id=asset_id,
            confirmed_round=confirmed_round,
            confirmed_at=now_utc(),
            raw_response=pending,
        )

    def build_asset_config_txn(
        self,
        request: CreateAssetRequest,
        suggested: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Unsigned asset creation transaction in algod field names."""
        params = request.params
        first_round = int(suggested["last-round"])
        fee = max(int(suggested.get("fee", 0)), int(suggested.get("min-fee", 1000)))

        apar: Dict[str, Any] = {
            "t": params.total_supply,
            "dc": params.decimals,
            "an": params.name,
            "un": params.unit_name,
            "m": params.manager or request.creator,
            "r": params.reserve or request.creator,
        }
        if params.url:
            apar["au"] = params.url

        txn: Dict[str, Any] = {
            "type": "acfg",
            "snd": request.creator,
            "fee": fee,
            "fv": first_round,
            "lv": first_round + self._config.validity_rounds,
            "gh": suggested["genesis-hash"],
            "gen": suggested.get("genesis-id", ""),
            "apar": apar,
        }
        if params.note:
            txn["note"] = params.note

        return txn

    async def wait_for_confirmation(self, transaction_id: str) -> Dict[str, Any]:
        """
        Poll a pending transaction until it confirms.

        Raises:
            ExternalServiceError: TIMEOUT after the round budget,
                REJECTED when the pool drops the transaction
        """
        status = await self._request("GET", "/v2/status", operation="status")
        current_round = int(status["last-round"])

        for _ in range(self._config.confirmation_rounds):
            pending = await self._request(
                "GET",
                f"/v2/transactions/pending/{transaction_id}",
                operation="pending",
            )

            if int(pending.get("confirmed-round") or 0) > 0:
                return pending

            pool_error = pending.get("pool-error")
            if pool_error:
                raise ExternalServiceError(create_rejection_error(
                    pool_error, self.service_id, "confirm", transaction_id
                ))

            await self._request(
                "GET",
                f"/v2/status/wait-for-block-after/{current_round}",
                operation="wait_block",
            )
            current_round += 1

        raise ExternalServiceError(create_timeout_error(
            f"transaction not confirmed after {self._config.confirmation_rounds} rounds",
            self.service_id,
            "confirm",
            transaction_id,
        ))

    # --------------------------------------------------------
    # ACCOUNT QUERIES
    # --------------------------------------------------------

    async def get_account_balance(self, account: str) -> int:
        data = await self._request("GET", f"/v2/accounts/{account}", operation="account")
        return int(data.get("amount", 0))

    async def get_account_assets(self, account: str) -> List[AssetHolding]:
        data = await self._request("GET", f"/v2/accounts/{account}", operation="account")

        holdings = []
        for entry in data.get("assets", []):
            asset_id = int(entry["asset-id"])
            try:
                asset = await self._request("GET", f"/v2/assets/{asset_id}", operation="asset")
            except ExternalServiceError as e:
                if e.error.category != ErrorCategory.NOT_FOUND:
                    raise
                logger.warning(f"Asset {asset_id} held by {account} no longer exists")
                continue

            params = asset.get("params", {})
            holdings.append(AssetHolding(
                asset_id=asset_id,
                amount=int(entry.get("amount", 0)),
                name=params.get("name", ""),
                unit_name=params.get("unit-name", ""),
                creator=params.get("creator"),
            ))

        return holdings

    # --------------------------------------------------------
    # INTERNAL
    # --------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        data: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        expect_json: bool = True,
    ) -> Any:
        """Make API request."""
        if not self._session:
            raise ExternalServiceError(
                create_network_error("Not connected", self.service_id, operation)
            )

        url = f"{self._base_url}{path}"
        request_headers = {"X-Algo-API-Token": self._token}
        request_headers.update(headers or {})

        request_id = self._log.log_request(operation, method, path, request_headers, data)
        started = time.monotonic()

        try:
            async with self._session.request(
                method, url, data=data, headers=request_headers
            ) as response:
                latency_ms = (time.monotonic() - started) * 1000

                if response.status != 200:
                    message = await self._error_message(response)
                    self._log.log_response(
                        operation, request_id, response.status, latency_ms, message
                    )
                    raise ExternalServiceError(
                        map_algod_error(response.status, message, operation)
                    )

                self._log.log_response(operation, request_id, response.status, latency_ms)

                if not expect_json:
                    return await response.text()
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise ExternalServiceError(create_malformed_response_error(
                        f"invalid JSON body: {e}", self.service_id, operation
                    ))

        except aiohttp.ClientError as e:
            raise ExternalServiceError(
                create_network_error(f"Network error: {e}", self.service_id, operation)
            )
        except asyncio.TimeoutError:
            raise ExternalServiceError(
                create_timeout_error("Request timeout", self.service_id, operation)
            )

    @staticmethod
    async def _error_message(response: aiohttp.ClientResponse) -> str:
        text = await response.text()
        try:
            body = await response.json(content_type=None)
        except ValueError:
            return text or response.reason or "Unknown error"
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return text or "Unknown error"
