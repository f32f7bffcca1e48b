"""
Issuance Adapter - Mock Ledger.

============================================================
PURPOSE
============================================================
In-memory Asset Issuance Service for tests and offline demos.

FEATURES:
- Configurable latency
- Configurable error injection (random or forced)
- Account balances with fee and minimum balance rules
- Full state tracking of created assets

============================================================
"""

import asyncio
import base64
import hashlib
import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core.clock import now_utc
from core.exceptions import ExternalServiceError

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
    create_insufficient_funds_error,
    create_network_error,
    create_rejection_error,
    create_timeout_error,
)


logger = logging.getLogger(__name__)


# ============================================================
# MOCK CONFIGURATION
# ============================================================

@dataclass
class MockConfig:
    """Configuration for mock adapter."""

    # Latency simulation
    min_latency_ms: float = 50.0
    """Minimum simulated latency."""

    max_latency_ms: float = 250.0
    """Maximum simulated latency."""

    # Ledger rules (microalgos)
    initial_balance: int = 10_000_000
    """Balance of any account not explicitly funded."""

    account_min_balance: int = 100_000
    """Minimum balance of a bare account."""

    asset_min_balance: int = 100_000
    """Extra minimum balance per created asset."""

    fee: int = 1_000
    """Flat transaction fee."""

    # Error injection
    network_error_probability: float = 0.0
    """Probability of network error."""

    timeout_probability: float = 0.0
    """Probability of timeout."""

    rejection_probability: float = 0.0
    """Probability of transaction rejection."""

    seed: Optional[int] = None
    """Seed for latency and error draws."""

    first_asset_id: int = 1000
    """Id given to the first created asset."""

    @classmethod
    def for_testing(cls) -> "MockConfig":
        """No latency, deterministic draws."""
        return cls(min_latency_ms=0.0, max_latency_ms=0.0, seed=0)


# ============================================================
# MOCK ASSET
# ============================================================

@dataclass
class MockAsset:
    """Mock created asset."""

    asset_id: int
    transaction_id: str
    creator: str
    name: str
    unit_name: str
    decimals: int
    total_supply: int
    note: bytes
    url: str
    confirmed_round: int
    holders: Dict[str, int] = field(default_factory=dict)


# ============================================================
# MOCK ISSUANCE ADAPTER
# ============================================================

class MockIssuanceAdapter(AssetIssuanceAdapter):
    """
    Mock issuance adapter for testing.

    Simulates ledger behavior including:
    - Asset creation and confirmation rounds
    - Fee and minimum balance accounting
    - Error injection
    """

    def __init__(self, config: Optional[MockConfig] = None):
        """
        Initialize mock adapter.

        Args:
            config: Mock configuration
        """
        self._config = config or MockConfig()
        self._connected = False
        self._random = random.Random(self._config.seed)

        # State
        self._balances: Dict[str, int] = {}
        self._created_count: Dict[str, int] = {}
        self._assets: Dict[int, MockAsset] = {}
        self._next_asset_id = self._config.first_asset_id
        self._round = 1
        self._txn_counter = 0

        # Error injection hooks
        self._force_next_error: Optional[ErrorCategory] = None
        self._hold: Optional[asyncio.Event] = None

    @property
    def service_id(self) -> str:
        return "mock"

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def created_assets(self) -> List[MockAsset]:
        return list(self._assets.values())

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    async def connect(self) -> None:
        """Connect to mock ledger."""
        await self._simulate_latency()
        self._connected = True
        logger.info("MockIssuanceAdapter connected")

    async def disconnect(self) -> None:
        """Disconnect from mock ledger."""
        self._connected = False
        logger.info("MockIssuanceAdapter disconnected")

    # --------------------------------------------------------
    # ISSUANCE
    # --------------------------------------------------------

    async def create_asset(self, request: CreateAssetRequest) -> CreateAssetResponse:
        await self._simulate_latency()

        if self._hold is not None:
            await self._hold.wait()

        # Check for injected errors
        if self._force_next_error:
            category = self._force_next_error
            self._force_next_error = None
            raise ExternalServiceError(self._injected_error(category))

        if self._random.random() < self._config.network_error_probability:
            raise ExternalServiceError(
                create_network_error("Simulated network error", "mock", "create_asset")
            )

        if self._random.random() < self._config.timeout_probability:
            raise ExternalServiceError(
                create_timeout_error("Simulated timeout", "mock", "create_asset")
            )

        if self._random.random() < self._config.rejection_probability:
            raise ExternalServiceError(
                create_rejection_error("Simulated rejection", "mock", "create_asset")
            )

        creator = request.creator
        balance = self._balance(creator)
        created = self._created_count.get(creator, 0)
        required = (
            self._config.account_min_balance
            + self._config.asset_min_balance * (created + 1)
            + self._config.fee
        )

        if balance < required:
            raise ExternalServiceError(
                create_insufficient_funds_error(
                    f"overspend: account {creator} balance {balance} below min {required}",
                    "mock",
                    "create_asset",
                )
            )

        self._round += 1
        self._txn_counter += 1
        transaction_id = self._transaction_id(request)
        asset_id = self._next_asset_id
        self._next_asset_id += 1

        params = request.params
        asset = MockAsset(
            asset_id=asset_id,
            transaction_id=transaction_id,
            creator=creator,
            name=params.name,
            unit_name=params.unit_name,
            decimals=params.decimals,
            total_supply=params.total_supply,
            note=params.note,
            url=params.url,
            confirmed_round=self._round,
            holders={creator: params.total_supply},
        )
        self._assets[asset_id] = asset
        self._balances[creator] = balance - self._config.fee
        self._created_count[creator] = created + 1

        logger.info(
            f"Mock asset created: {asset_id} ({params.name}) "
            f"supply={params.total_supply} txn={transaction_id}"
        )

        return CreateAssetResponse(
            transaction_id=transaction_id,
            asset_id=asset_id,
            confirmed_round=self._round,
            confirmed_at=now_utc(),
            raw_response={"txId": transaction_id, "asset-index": asset_id},
        )

    # --------------------------------------------------------
    # ACCOUNT QUERIES
    # --------------------------------------------------------

    async def get_account_balance(self, account: str) -> int:
        await self._simulate_latency()
        return self._balance(account)

    async def get_account_assets(self, account: str) -> List[AssetHolding]:
        await self._simulate_latency()
        return [
            AssetHolding(
                asset_id=asset.asset_id,
                amount=asset.holders[account],
                name=asset.name,
                unit_name=asset.unit_name,
                creator=asset.creator,
            )
            for asset in self._assets.values()
            if account in asset.holders
        ]

    # --------------------------------------------------------
    # TEST HELPERS
    # --------------------------------------------------------

    def set_balance(self, account: str, amount: int) -> None:
        """Set an account's native balance."""
        self._balances[account] = amount

    def force_error(self, category: ErrorCategory) -> None:
        """Make the next create_asset fail with the given category."""
        self._force_next_error = category

    def hold_confirmations(self) -> None:
        """Block create_asset until release_confirmations is called."""
        self._hold = asyncio.Event()

    def release_confirmations(self) -> None:
        if self._hold is not None:
            self._hold.set()
            self._hold = None

    def reset(self) -> None:
        """Reset to initial state."""
        self._balances.clear()
        self._created_count.clear()
        self._assets.clear()
        self._next_asset_id = self._config.first_asset_id
        self._round = 1
        self._txn_counter = 0
        self._force_next_error = None
        self.release_confirmations()

    # --------------------------------------------------------
    # INTERNAL
    # --------------------------------------------------------

    async def _simulate_latency(self) -> None:
        low = self._config.min_latency_ms
        high = self._config.max_latency_ms
        if high <= 0:
            return
        await asyncio.sleep(self._random.uniform(low, high) / 1000.0)

    def _balance(self, account: str) -> int:
        return self._balances.setdefault(account, self._config.initial_balance)

    def _transaction_id(self, request: CreateAssetRequest) -> str:
        seed = f"{request.creator}|{request.params.name}|{self._txn_counter}|{self._round}"
        digest = hashlib.sha256(seed.encode("utf-8")).digest()
        return base64.b32encode(digest).decode("ascii").rstrip("=")

    def _injected_error(self, category: ErrorCategory) -> ServiceError:
        if category == ErrorCategory.NETWORK:
            return create_network_error("Injected network error", "mock", "create_asset")
        if category == ErrorCategory.TIMEOUT:
            return create_timeout_error("Injected timeout", "mock", "create_asset")
        if category == ErrorCategory.INSUFFICIENT_FUNDS:
            return create_insufficient_funds_error(
                "Injected insufficient funds", "mock", "create_asset"
            )
        if category == ErrorCategory.REJECTED:
            return create_rejection_error("Injected rejection", "mock", "create_asset")

        return ServiceError(
            category=category,
            code=f"INJECTED_{category.value}",
            message=f"Injected {category.value.lower()} error",
            retry_eligible=RetryEligibility.NO_RETRY,
            service_id="mock",
            operation="create_asset",
        )
