"""
Issuance Adapter - Secure Logging Utilities.

============================================================
PURPOSE
============================================================
Secure logging for issuance adapter operations with:
- Credential masking (algod API token)
- Request/response sanitization
- Structured logging format

============================================================
SECURITY REQUIREMENTS
============================================================
1. NEVER log the raw API token
2. Mask sensitive headers (X-Algo-API-Token, X-API-Key, ...)
3. Log signed transaction bodies as a hash only

============================================================
"""

import hashlib
import json
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from core.clock import to_iso8601, now_utc


logger = logging.getLogger(__name__)


# ============================================================
# SENSITIVE DATA PATTERNS
# ============================================================

# Header names that should be masked
SENSITIVE_HEADERS = {
    "x-algo-api-token",
    "x-indexer-api-token",
    "x-api-key",
    "authorization",
}

# Query parameter names that should be masked
SENSITIVE_PARAMS = {
    "token",
    "api_key",
    "apikey",
    "mnemonic",
    "private_key",
}


# ============================================================
# MASKING FUNCTIONS
# ============================================================

def mask_value(value: str, show_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only first few chars.

    Args:
        value: Value to mask
        show_chars: Number of chars to show at start
    """
    if not value or len(value) <= show_chars:
        return "***"
    return f"{value[:show_chars]}...***"


def mask_headers(headers: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Mask sensitive headers."""
    if not headers:
        return {}

    return {
        key: mask_value(str(value)) if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def mask_url(url: str) -> str:
    """Mask sensitive query parameters in a URL."""
    if not url:
        return url

    for param in SENSITIVE_PARAMS:
        pattern = re.compile(f"({param}=)([^&]+)", re.IGNORECASE)
        url = pattern.sub(lambda m: f"{m.group(1)}***", url)

    return url


def hash_body(body: Any) -> Optional[str]:
    """Short hash of a request body instead of the body itself."""
    if not body:
        return None

    if isinstance(body, (bytes, bytearray)):
        raw = bytes(body)
    elif isinstance(body, (dict, list)):
        raw = json.dumps(body, sort_keys=True).encode("utf-8")
    else:
        raw = str(body).encode("utf-8")

    return hashlib.sha256(raw).hexdigest()[:16]


# ============================================================
# LOG ENTRY STRUCTURES
# ============================================================

@dataclass
class RequestLogEntry:
    """Structured log entry for requests."""

    timestamp: str
    service_id: str
    operation: str
    method: str
    endpoint: str
    request_id: str

    headers: Optional[Dict[str, str]] = None
    body_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass
class ResponseLogEntry:
    """Structured log entry for responses."""

    timestamp: str
    service_id: str
    operation: str
    request_id: str
    status_code: int
    latency_ms: float
    success: bool

    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


# ============================================================
# ADAPTER LOGGER
# ============================================================

class AdapterLogger:
    """
    Secure logger for issuance adapter operations.

    Provides structured logging with automatic credential masking.
    """

    def __init__(self, service_id: str, logger_name: Optional[str] = None):
        self._service_id = service_id
        self._logger = logging.getLogger(logger_name or f"issuance_adapter.{service_id}")
        self._request_counter = 0

    def _generate_request_id(self) -> str:
        self._request_counter += 1
        return f"{self._service_id}-{self._request_counter}"

    def log_request(
        self,
        operation: str,
        method: str,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> str:
        """Log an outgoing request. Returns the request id."""
        request_id = self._generate_request_id()
        entry = RequestLogEntry(
            timestamp=to_iso8601(now_utc()),
            service_id=self._service_id,
            operation=operation,
            method=method,
            endpoint=mask_url(endpoint),
            request_id=request_id,
            headers=mask_headers(headers) or None,
            body_hash=hash_body(body),
        )
        self._logger.debug(f"Request: {entry.to_json()}")
        return request_id

    def log_response(
        self,
        operation: str,
        request_id: str,
        status_code: int,
        latency_ms: float,
        error_message: Optional[str] = None,
    ) -> None:
        """Log a response; failures at WARNING."""
        success = 200 <= status_code < 300
        entry = ResponseLogEntry(
            timestamp=to_iso8601(now_utc()),
            service_id=self._service_id,
            operation=operation,
            request_id=request_id,
            status_code=status_code,
            latency_ms=round(latency_ms, 2),
            success=success,
            error_message=error_message,
        )
        if success:
            self._logger.debug(f"Response: {entry.to_json()}")
        else:
            self._logger.warning(f"Response: {entry.to_json()}")
