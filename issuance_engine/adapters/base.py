"""
Issuance Adapter - Base.

============================================================
PURPOSE
============================================================
Abstract interface for Asset Issuance Service adapters.

DESIGN PRINCIPLES:
- Ledger-agnostic interface
- Clean separation from valuation logic
- Fully testable with the mock adapter
- Every failure surfaces as ExternalServiceError

============================================================
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


logger = logging.getLogger(__name__)


# ============================================================
# ADAPTER REQUEST/RESPONSE TYPES
# ============================================================

@dataclass
class AssetParams:
    """Parameters of a fungible asset to create."""

    name: str
    """Asset name."""

    unit_name: str
    """Ticker-like unit name."""

    decimals: int
    """Decimal places of one unit."""

    total_supply: int
    """Number of base units created."""

    note: bytes = b""
    """Immutable note stored with the creation transaction."""

    url: str = ""
    """Metadata URL."""

    manager: Optional[str] = None
    """Manager address; defaults to the creator."""

    reserve: Optional[str] = None
    """Reserve address; defaults to the creator."""


@dataclass
class CreateAssetRequest:
    """Request to create an asset under a creator account."""

    creator: str
    """Creator account address."""

    params: AssetParams
    """Asset parameters."""


@dataclass
class CreateAssetResponse:
    """Confirmed asset creation."""

    transaction_id: str
    """Ledger transaction id."""

    asset_id: int
    """Assigned asset id."""

    confirmed_round: Optional[int] = None
    """Round in which the transaction was confirmed."""

    confirmed_at: Optional[datetime] = None
    """When confirmation was observed."""

    raw_response: Dict[str, Any] = field(default_factory=dict)
    """Raw service response."""


@dataclass
class AssetHolding:
    """An asset held by an account."""

    asset_id: int
    amount: int
    name: str = ""
    unit_name: str = ""
    creator: Optional[str] = None


# ============================================================
# ABSTRACT ISSUANCE ADAPTER
# ============================================================

class AssetIssuanceAdapter(ABC):
    """
    Abstract Asset Issuance Service adapter.

    Implementations are shared across concurrent issue_token calls and
    are responsible for their own connection safety.
    """

    @property
    @abstractmethod
    def service_id(self) -> str:
        """Service identifier."""
        pass

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the adapter is connected."""
        pass

    # --------------------------------------------------------
    # CONNECTION
    # --------------------------------------------------------

    @abstractmethod
    async def connect(self) -> None:
        """Open connections to the service."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connections to the service."""
        pass

    # --------------------------------------------------------
    # ISSUANCE
    # --------------------------------------------------------

    @abstractmethod
    async def create_asset(self, request: CreateAssetRequest) -> CreateAssetResponse:
        """
        Create a fungible asset and wait for its confirmation.

        Raises:
            ExternalServiceError: On any service failure
        """
        pass

    # --------------------------------------------------------
    # ACCOUNT QUERIES
    # --------------------------------------------------------

    @abstractmethod
    async def get_account_balance(self, account: str) -> int:
        """
        Native balance of an account, in base units.

        Raises:
            ExternalServiceError: On any service failure
        """
        pass

    @abstractmethod
    async def get_account_assets(self, account: str) -> List[AssetHolding]:
        """
        Assets held by an account, with their names.

        Raises:
            ExternalServiceError: On any service failure
        """
        pass

    # --------------------------------------------------------
    # CONTEXT MANAGER
    # --------------------------------------------------------

    async def __aenter__(self) -> "AssetIssuanceAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()
