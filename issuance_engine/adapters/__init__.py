"""
Issuance Engine - Adapters Package.

============================================================
PURPOSE
============================================================
Asset Issuance Service adapter implementations.

AVAILABLE ADAPTERS:
- AlgodIssuanceAdapter: Algorand node (algod v2 REST)
- MockIssuanceAdapter: For testing and offline demos
- MnemonicSigner: Signs algod asset creation transactions

UTILITIES:
- AdapterFactory: Factory for creating adapters
- AdapterLogger: Secure logging

ERROR HANDLING:
- ServiceError: Unified error representation
- ErrorCategory: Standardized error categories
- map_algod_error: algod error mapping

============================================================
"""

from .base import (
    AssetIssuanceAdapter,
    AssetParams,
    AssetHolding,
    CreateAssetRequest,
    CreateAssetResponse,
)
from .algod import AlgodIssuanceAdapter, TransactionSigner
from .signer import MnemonicSigner
from .mock import MockIssuanceAdapter, MockConfig, MockAsset
from .factory import (
    AdapterFactory,
    IssuanceServiceId,
    create_adapter,
)
from .errors import (
    ErrorCategory,
    RetryEligibility,
    ServiceError,
    CATEGORY_REASONS,
    map_algod_error,
    create_network_error,
    create_timeout_error,
    create_insufficient_funds_error,
    create_rejection_error,
    create_malformed_response_error,
    create_signing_error,
)
from .logging_utils import AdapterLogger, mask_headers, mask_url, mask_value

__all__ = [
    # Base
    "AssetIssuanceAdapter",
    "AssetParams",
    "AssetHolding",
    "CreateAssetRequest",
    "CreateAssetResponse",
    # Adapters
    "AlgodIssuanceAdapter",
    "TransactionSigner",
    "MnemonicSigner",
    "MockIssuanceAdapter",
    "MockConfig",
    "MockAsset",
    # Factory
    "AdapterFactory",
    "IssuanceServiceId",
    "create_adapter",
    # Errors
    "ErrorCategory",
    "RetryEligibility",
    "ServiceError",
    "CATEGORY_REASONS",
    "map_algod_error",
    "create_network_error",
    "create_timeout_error",
    "create_insufficient_funds_error",
    "create_rejection_error",
    "create_malformed_response_error",
    "create_signing_error",
    # Logging
    "AdapterLogger",
    "mask_headers",
    "mask_url",
    "mask_value",
]
