"""
Issuance Engine - Configuration.

============================================================
PURPOSE
============================================================
Configuration for bio-token issuance.

- TimeoutConfig: bounds on the external mint
- AlgodConfig: algod node connection
- AssetConfig: parameters of issued assets
- LedgerConfig: local record of issued tokens
- IssuanceEngineConfig: master configuration

Environment variables (a .env file is honoured):
    ALGOD_URL, ALGOD_TOKEN, ALGOD_SIGNER_MNEMONIC, ISSUANCE_ADAPTER,
    ISSUANCE_TIMEOUT_SECONDS, BIOTOKEN_DATABASE_URL

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from calculation_engine.config import PacingConfig


# ============================================================
# TIMEOUT CONFIGURATION
# ============================================================

@dataclass
class TimeoutConfig:
    """
    Timeout configuration.
    """

    issuance_timeout_seconds: float = 30.0
    """Default bound on one issue_token call, including confirmation."""

    connection_timeout_seconds: float = 5.0
    """Connection timeout for the issuance service."""

    read_timeout_seconds: float = 10.0
    """Read timeout for one HTTP request."""


# ============================================================
# ALGOD CONFIGURATION
# ============================================================

@dataclass
class AlgodConfig:
    """
    Algod node configuration.
    """

    url: str = "http://localhost:4001"
    """Base URL of the algod REST API."""

    token: Optional[str] = None
    """API token; read from token_env when not set."""

    token_env: str = "ALGOD_TOKEN"
    """Environment variable holding the API token."""

    mnemonic: Optional[str] = field(default=None, repr=False)
    """Signing account mnemonic; read from mnemonic_env when not set."""

    mnemonic_env: str = "ALGOD_SIGNER_MNEMONIC"
    """Environment variable holding the signing account mnemonic."""

    confirmation_rounds: int = 10
    """Rounds to wait for a submitted transaction to confirm."""

    validity_rounds: int = 1000
    """Validity window of a built transaction, in rounds."""

    def resolve_token(self) -> str:
        if self.token is not None:
            return self.token
        return os.environ.get(self.token_env, "")

    def resolve_mnemonic(self) -> str:
        if self.mnemonic is not None:
            return self.mnemonic
        return os.environ.get(self.mnemonic_env, "")


# ============================================================
# ASSET CONFIGURATION
# ============================================================

@dataclass
class AssetConfig:
    """
    Parameters shared by every issued bio-token asset.
    """

    name_prefix: str = "BioToken"
    """Leading part of the asset name."""

    unit_name: str = "BIOTK"
    """Unit name of every bio-token."""

    decimals: int = 0
    """Bio-tokens are whole units."""

    url: str = "https://biotokenization.org/token/metadata"
    """Metadata URL stored on the asset."""

    metadata_standard: str = "arc69"
    """Standard tag written into the metadata note."""

    max_name_bytes: int = 32
    """Longest asset name the ledger accepts."""


# ============================================================
# LEDGER CONFIGURATION
# ============================================================

@dataclass
class LedgerConfig:
    """
    Local record of issued tokens and commit events.
    """

    database_url: str = "sqlite:///biotoken_ledger.db"
    """SQLAlchemy database URL."""

    enabled: bool = True
    """Whether issuances are recorded."""

    echo: bool = False
    """Log SQL statements."""


# ============================================================
# MASTER CONFIGURATION
# ============================================================

@dataclass
class IssuanceEngineConfig:
    """
    Master configuration for bio-token issuance.
    """

    # Sub-configs
    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    """Timeout configuration."""

    pacing: PacingConfig = field(default_factory=PacingConfig)
    """Presentation pacing."""

    algod: AlgodConfig = field(default_factory=AlgodConfig)
    """Algod node configuration."""

    asset: AssetConfig = field(default_factory=AssetConfig)
    """Asset parameters."""

    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    """Issued token ledger."""

    # Global settings
    adapter: str = "mock"
    """Issuance adapter to use ("mock" or "algod")."""

    check_estimate: bool = True
    """Whether validation compares the token amount with a fresh estimate."""

    @classmethod
    def for_testing(cls) -> "IssuanceEngineConfig":
        """Get configuration for testing."""
        return cls(
            timeout=TimeoutConfig(issuance_timeout_seconds=5.0),
            pacing=PacingConfig.instant(),
            ledger=LedgerConfig(database_url="sqlite://"),
            adapter="mock",
        )

    @classmethod
    def from_env(cls) -> "IssuanceEngineConfig":
        """Build configuration from the environment (and .env)."""
        load_dotenv()

        config = cls()
        config.algod.url = os.getenv("ALGOD_URL", config.algod.url)
        config.algod.token = os.getenv("ALGOD_TOKEN", config.algod.token)
        config.algod.mnemonic = os.getenv("ALGOD_SIGNER_MNEMONIC", config.algod.mnemonic)
        config.adapter = os.getenv("ISSUANCE_ADAPTER", config.adapter).lower()
        config.ledger.database_url = os.getenv(
            "BIOTOKEN_DATABASE_URL", config.ledger.database_url
        )

        timeout = os.getenv("ISSUANCE_TIMEOUT_SECONDS")
        if timeout:
            config.timeout.issuance_timeout_seconds = float(timeout)

        return config
