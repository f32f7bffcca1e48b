"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the bio-tokenization system.

- Provides clear exception hierarchy
- Enables specific error handling
- Carries context for debugging and user-facing reasons

============================================================
EXCEPTION HIERARCHY
============================================================
BioTokenException (base)
├── InvalidRecording
├── EngineStateError
├── IssuanceError
└── ExternalServiceError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for alerting."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, may impact operations."""

    CRITICAL = "critical"
    """Critical issue, requires immediate action."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    TRANSIENT = "transient"
    """Temporary error, a fresh attempt may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires a different input or a code fix."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class BioTokenException(Exception):
    """
    Base exception for all bio-tokenization errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - classification: for retry decisions made by the caller
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_retryable(self) -> bool:
        """Check if a fresh attempt may succeed."""
        return self.classification == ErrorClassification.TRANSIENT

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        return f"{line} | {ctx_str}" if ctx_str else line


# ============================================================
# INPUT ERRORS
# ============================================================

class InvalidRecording(BioTokenException):
    """Recording attributes are malformed. Raised before any scoring."""

    default_severity = Severity.LOW

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if field_name:
            context["field"] = field_name
        if value is not None:
            context["value"] = str(value)[:100]

        super().__init__(message, context=context, **kwargs)
        self.field_name = field_name


# ============================================================
# STATE ERRORS
# ============================================================

class EngineStateError(BioTokenException):
    """
    An operation was invoked out of sequence.

    Programming error: advancing a completed run, reading the final value
    of an unfinished run, or advancing a commit past its last phase.
    """

    default_severity = Severity.HIGH

    def __init__(
        self,
        message: str,
        run_id: Optional[str] = None,
        current_state: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if run_id:
            context["run_id"] = run_id
        if current_state:
            context["current_state"] = current_state

        super().__init__(message, context=context, **kwargs)
        self.run_id = run_id
        self.current_state = current_state


# ============================================================
# ISSUANCE ERRORS
# ============================================================

class ExternalServiceError(BioTokenException):
    """
    The Asset Issuance Service failed.

    Wraps a categorized adapter error. Never escapes the valuation
    service: it is always converted to IssuanceError there.
    """

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT

    def __init__(self, error: Any, **kwargs):
        self.error = error
        if "classification" not in kwargs and hasattr(error, "is_retryable"):
            kwargs["classification"] = (
                ErrorClassification.TRANSIENT
                if error.is_retryable()
                else ErrorClassification.NON_RECOVERABLE
            )
        super().__init__(str(error), **kwargs)


class IssuanceError(BioTokenException):
    """
    Minting a bio-token failed.

    Carries a user-facing reason ("insufficient funds", "network
    unreachable", ...). Retry only by calling issue_token again from
    scratch; resuming a commit run could double-mint.
    """

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        reason: str,
        category: Optional[str] = None,
        transaction_id: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if category:
            context["category"] = category
        if transaction_id:
            context["transaction_id"] = transaction_id

        super().__init__(reason, context=context, **kwargs)
        self.reason = reason
        self.category = category
        self.transaction_id = transaction_id


# ============================================================
# PERSISTENCE ERRORS
# ============================================================

class LedgerError(BioTokenException):
    """Reading or writing the local issuance ledger failed."""

    default_severity = Severity.CRITICAL
    default_classification = ErrorClassification.NON_RECOVERABLE
