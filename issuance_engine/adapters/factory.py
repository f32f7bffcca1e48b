"""
Issuance Adapter Factory.

============================================================
PURPOSE
============================================================
Factory pattern for creating issuance adapter instances.

FEATURES:
- Centralized adapter creation
- Configuration injection
- Adapter registry for extension

============================================================
USAGE
============================================================
```python
adapter = AdapterFactory.create("mock")

# signs with ALGOD_SIGNER_MNEMONIC
adapter = AdapterFactory.create("algod", config=IssuanceEngineConfig.from_env())
```

============================================================
"""

import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from ..config import IssuanceEngineConfig
from .base import AssetIssuanceAdapter


logger = logging.getLogger(__name__)


# ============================================================
# SERVICE IDENTIFIERS
# ============================================================

class IssuanceServiceId(Enum):
    """Supported issuance services."""

    ALGOD = "algod"
    MOCK = "mock"


AdapterCreator = Callable[..., AssetIssuanceAdapter]


# ============================================================
# ADAPTER FACTORY
# ============================================================

class AdapterFactory:
    """
    Factory for creating issuance adapters.

    Provides centralized adapter creation with configuration
    injection and extension support.
    """

    # Custom creation functions
    _creators: Dict[str, AdapterCreator] = {}

    @classmethod
    def register(cls, service_id: str, creator: AdapterCreator) -> None:
        """
        Register a creator function.

        The creator is called as creator(config, **kwargs).
        """
        cls._creators[service_id.lower()] = creator

    @classmethod
    def unregister(cls, service_id: str) -> None:
        cls._creators.pop(service_id.lower(), None)

    @classmethod
    def create(
        cls,
        service_id: str,
        config: Optional[IssuanceEngineConfig] = None,
        **kwargs,
    ) -> AssetIssuanceAdapter:
        """
        Create an issuance adapter.

        Args:
            service_id: "mock", "algod" or a registered id
            config: Engine configuration
            **kwargs: Passed to the adapter (mock_config, signer); algod
                falls back to a MnemonicSigner from the configured mnemonic

        Raises:
            ValueError: If the service is not supported
        """
        service_id = service_id.lower()
        config = config or IssuanceEngineConfig()

        if service_id in cls._creators:
            return cls._creators[service_id](config, **kwargs)

        if service_id == IssuanceServiceId.MOCK.value:
            from .mock import MockIssuanceAdapter
            return MockIssuanceAdapter(kwargs.get("mock_config"))

        if service_id == IssuanceServiceId.ALGOD.value:
            from .algod import AlgodIssuanceAdapter
            from .signer import MnemonicSigner

            signer = kwargs.get("signer") or MnemonicSigner.from_config(config.algod)
            return AlgodIssuanceAdapter(
                config=config.algod,
                timeout_config=config.timeout,
                signer=signer,
            )

        raise ValueError(f"Unsupported issuance service: {service_id}")

    @classmethod
    def list_supported(cls) -> List[str]:
        """List supported services."""
        builtin = [s.value for s in IssuanceServiceId]
        return sorted(set(builtin + list(cls._creators.keys())))


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================

def create_adapter(
    service_id: str,
    config: Optional[IssuanceEngineConfig] = None,
    **kwargs,
) -> AssetIssuanceAdapter:
    """
    Create issuance adapter.

    Convenience wrapper for AdapterFactory.create().
    """
    return AdapterFactory.create(service_id, config=config, **kwargs)

