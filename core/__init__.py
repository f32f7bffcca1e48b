"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Unified time abstraction
- exceptions: Custom exception hierarchy
"""

from .clock import ClockProtocol, SystemClock, MockClock, ClockFactory, now_utc, to_iso8601
from .exceptions import (
    Severity,
    ErrorClassification,
    BioTokenException,
    InvalidRecording,
    EngineStateError,
    IssuanceError,
    ExternalServiceError,
    LedgerError,
)

__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ClockFactory",
    "now_utc",
    "to_iso8601",
    "Severity",
    "ErrorClassification",
    "BioTokenException",
    "InvalidRecording",
    "EngineStateError",
    "IssuanceError",
    "ExternalServiceError",
    "LedgerError",
]
