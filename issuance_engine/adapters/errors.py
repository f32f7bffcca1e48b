"""
Issuance Adapter - Error Handling and Mapping.

============================================================
PURPOSE
============================================================
Standardized error handling for asset issuance adapters with:
- Unified error taxonomy across ledger backends
- algod error mapping (HTTP status + message)
- Retry eligibility classification
- User-facing failure reasons

============================================================
ERROR CATEGORIES
============================================================
1. NETWORK            - Connection issues
2. TIMEOUT            - No answer or no confirmation in time
3. RATE_LIMIT         - Too many requests
4. AUTHENTICATION     - Invalid API token
5. INSUFFICIENT_FUNDS - Creator cannot pay fee / minimum balance
6. REJECTED           - Transaction refused by the ledger
7. NOT_FOUND          - Unknown account or asset
8. SERVICE_ERROR      - Ledger node internal errors
9. UNKNOWN            - Unclassified errors

============================================================
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


logger = logging.getLogger(__name__)


# ============================================================
# ERROR TAXONOMY
# ============================================================

class ErrorCategory(Enum):
    """Standardized error categories."""

    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    RATE_LIMIT = "RATE_LIMIT"
    AUTHENTICATION = "AUTHENTICATION"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    REJECTED = "REJECTED"
    NOT_FOUND = "NOT_FOUND"
    SERVICE_ERROR = "SERVICE_ERROR"
    UNKNOWN = "UNKNOWN"


class RetryEligibility(Enum):
    """Whether a fresh attempt may succeed."""

    RETRY = "RETRY"           # Safe to try again
    NO_RETRY = "NO_RETRY"     # Will fail again
    BACKOFF = "BACKOFF"       # Try again later


# User-facing reason per category
CATEGORY_REASONS: Dict[ErrorCategory, str] = {
    ErrorCategory.NETWORK: "network unreachable",
    ErrorCategory.TIMEOUT: "request timed out",
    ErrorCategory.RATE_LIMIT: "rate limited by issuance service",
    ErrorCategory.AUTHENTICATION: "authentication failed",
    ErrorCategory.INSUFFICIENT_FUNDS: "insufficient funds",
    ErrorCategory.REJECTED: "transaction rejected",
    ErrorCategory.NOT_FOUND: "account or asset not found",
    ErrorCategory.SERVICE_ERROR: "issuance service error",
    ErrorCategory.UNKNOWN: "issuance failed",
}


# ============================================================
# SERVICE ERROR
# ============================================================

@dataclass
class ServiceError:
    """
    Standardized issuance service error.

    Provides unified error representation across ledger backends.
    """

    # Core fields
    category: ErrorCategory
    code: str               # Normalized error code
    message: str            # Message reported by the service

    # Retry info
    retry_eligible: RetryEligibility

    # Original error info
    http_status: Optional[int] = None

    # Context
    service_id: Optional[str] = None
    operation: Optional[str] = None
    transaction_id: Optional[str] = None    # Set when the transaction was already submitted

    @property
    def reason(self) -> str:
        """Specific, user-facing failure reason."""
        base = CATEGORY_REASONS[self.category]
        if self.message and self.message.lower() != base:
            return f"{base}: {self.message}"
        return base

    def is_retryable(self) -> bool:
        """Check if error is retryable."""
        return self.retry_eligible in (RetryEligibility.RETRY, RetryEligibility.BACKOFF)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "category": self.category.value,
            "code": self.code,
            "message": self.message,
            "reason": self.reason,
            "retry_eligible": self.retry_eligible.value,
            "http_status": self.http_status,
            "service_id": self.service_id,
            "operation": self.operation,
            "transaction_id": self.transaction_id,
        }

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.code}: {self.message}"


# ============================================================
# ALGOD ERROR MAPPING
# ============================================================

# Substrings of algod error messages, checked in order
ALGOD_MESSAGE_PATTERNS = [
    ("overspend", ErrorCategory.INSUFFICIENT_FUNDS, RetryEligibility.NO_RETRY),
    ("below min", ErrorCategory.INSUFFICIENT_FUNDS, RetryEligibility.NO_RETRY),
    ("insufficient", ErrorCategory.INSUFFICIENT_FUNDS, RetryEligibility.NO_RETRY),
    ("txn dead", ErrorCategory.REJECTED, RetryEligibility.RETRY),
    ("already in ledger", ErrorCategory.REJECTED, RetryEligibility.NO_RETRY),
    ("signature", ErrorCategory.REJECTED, RetryEligibility.NO_RETRY),
    ("no accounts found", ErrorCategory.NOT_FOUND, RetryEligibility.NO_RETRY),
    ("asset does not exist", ErrorCategory.NOT_FOUND, RetryEligibility.NO_RETRY),
]


def map_algod_error(
    http_status: int,
    message: str,
    operation: Optional[str] = None,
) -> ServiceError:
    """
    Map an algod REST error to the unified format.

    Args:
        http_status: HTTP status code
        message: "message" field of the algod error body
        operation: Adapter operation that failed
    """
    lowered = (message or "").lower()

    for pattern, category, retry in ALGOD_MESSAGE_PATTERNS:
        if pattern in lowered:
            return ServiceError(
                category=category,
                code=f"ALGOD_{category.value}",
                message=message,
                retry_eligible=retry,
                http_status=http_status,
                service_id="algod",
                operation=operation,
            )

    if http_status in (401, 403):
        category, retry = ErrorCategory.AUTHENTICATION, RetryEligibility.NO_RETRY
    elif http_status == 404:
        category, retry = ErrorCategory.NOT_FOUND, RetryEligibility.NO_RETRY
    elif http_status == 429:
        category, retry = ErrorCategory.RATE_LIMIT, RetryEligibility.BACKOFF
    elif http_status == 400:
        category, retry = ErrorCategory.REJECTED, RetryEligibility.NO_RETRY
    elif http_status >= 500:
        category, retry = ErrorCategory.SERVICE_ERROR, RetryEligibility.RETRY
    else:
        category, retry = ErrorCategory.UNKNOWN, RetryEligibility.NO_RETRY

    return ServiceError(
        category=category,
        code=f"ALGOD_HTTP_{http_status}",
        message=message,
        retry_eligible=retry,
        http_status=http_status,
        service_id="algod",
        operation=operation,
    )


# ============================================================
# ERROR FACTORIES
# ============================================================

def create_network_error(
    message: str,
    service_id: Optional[str] = None,
    operation: Optional[str] = None,
) -> ServiceError:
    """Create a network error."""
    return ServiceError(
        category=ErrorCategory.NETWORK,
        code="NETWORK_ERROR",
        message=message,
        retry_eligible=RetryEligibility.RETRY,
        service_id=service_id,
        operation=operation,
    )


def create_timeout_error(
    message: str,
    service_id: Optional[str] = None,
    operation: Optional[str] = None,
    transaction_id: Optional[str] = None,
) -> ServiceError:
    """
    Create a timeout error.

    A timeout after submission carries the transaction id: the asset
    may still be created, so the caller must check before retrying.
    """
    return ServiceError(
        category=ErrorCategory.TIMEOUT,
        code="TIMEOUT",
        message=message,
        retry_eligible=(
            RetryEligibility.NO_RETRY if transaction_id else RetryEligibility.RETRY
        ),
        service_id=service_id,
        operation=operation,
        transaction_id=transaction_id,
    )


def create_insufficient_funds_error(
    message: str,
    service_id: Optional[str] = None,
    operation: Optional[str] = None,
) -> ServiceError:
    """Create an insufficient funds error."""
    return ServiceError(
        category=ErrorCategory.INSUFFICIENT_FUNDS,
        code="INSUFFICIENT_FUNDS",
        message=message,
        retry_eligible=RetryEligibility.NO_RETRY,
        service_id=service_id,
        operation=operation,
    )


def create_rejection_error(
    message: str,
    service_id: Optional[str] = None,
    operation: Optional[str] = None,
    transaction_id: Optional[str] = None,
) -> ServiceError:
    """Create a transaction rejection error."""
    return ServiceError(
        category=ErrorCategory.REJECTED,
        code="REJECTED",
        message=message,
        retry_eligible=RetryEligibility.NO_RETRY,
        service_id=service_id,
        operation=operation,
        transaction_id=transaction_id,
    )


def create_malformed_response_error(
    message: str,
    service_id: Optional[str] = None,
    operation: Optional[str] = None,
    transaction_id: Optional[str] = None,
) -> ServiceError:
    """
    Create an error for a reply the adapter could not interpret.

    After submission the transaction id is kept; the asset may exist.
    """
    return ServiceError(
        category=ErrorCategory.SERVICE_ERROR,
        code="MALFORMED_RESPONSE",
        message=message,
        retry_eligible=RetryEligibility.NO_RETRY,
        service_id=service_id,
        operation=operation,
        transaction_id=transaction_id,
    )


def create_signing_error(
    message: str,
    service_id: Optional[str] = None,
) -> ServiceError:
    """Create an error for a transaction the signer refused or failed to sign."""
    return ServiceError(
        category=ErrorCategory.AUTHENTICATION,
        code="SIGNING_FAILED",
        message=message,
        retry_eligible=RetryEligibility.NO_RETRY,
        service_id=service_id,
        operation="sign",
    )
