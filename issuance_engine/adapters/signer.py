"""
Issuance Adapter - Transaction Signer.

============================================================
PURPOSE
============================================================
Signs the asset creation transactions built by the algod adapter.

MnemonicSigner holds one account key, restored from its 25-word
mnemonic, and only signs transactions sent from that account.

The mnemonic is read from the environment (ALGOD_SIGNER_MNEMONIC)
and is never logged.

============================================================
"""

import base64
import logging
from typing import Any, Dict, Optional

from algosdk import account, encoding, mnemonic, transaction

from ..config import AlgodConfig


logger = logging.getLogger(__name__)


# ============================================================
# MNEMONIC SIGNER
# ============================================================

class MnemonicSigner:
    """
    Signer for a single account restored from its mnemonic.

    Usable as the algod adapter's TransactionSigner: awaiting
    signer(txn) returns the msgpack-encoded signed transaction.
    """

    def __init__(self, passphrase: str):
        """
        Initialize signer.

        Raises:
            ValueError: If the mnemonic is not a valid account mnemonic
        """
        try:
            self._private_key = mnemonic.to_private_key(passphrase.strip())
        except Exception as e:
            raise ValueError(f"invalid signer mnemonic: {type(e).__name__}") from e
        self._address = account.address_from_private_key(self._private_key)
        logger.info(f"Transaction signer ready for {self._address}")

    @classmethod
    def from_config(cls, config: AlgodConfig) -> Optional["MnemonicSigner"]:
        """Signer for the configured mnemonic, or None when none is set."""
        passphrase = config.resolve_mnemonic()
        if not passphrase:
            return None
        return cls(passphrase)

    @property
    def address(self) -> str:
        return self._address

    async def __call__(self, txn: Dict[str, Any]) -> bytes:
        """
        Sign an asset creation transaction.

        Args:
            txn: Unsigned transaction in algod field names

        Raises:
            ValueError: If the transaction is not an asset creation
                or is sent from another account
        """
        if txn.get("type") != "acfg":
            raise ValueError(f"cannot sign transaction of type {txn.get('type')!r}")
        if txn["snd"] != self._address:
            raise ValueError(
                f"signer holds {self._address}, transaction is sent from {txn['snd']}"
            )

        apar = txn["apar"]
        params = transaction.SuggestedParams(
            fee=txn["fee"],
            first=txn["fv"],
            last=txn["lv"],
            gh=txn["gh"],
            gen=txn.get("gen") or None,
            flat_fee=True,
        )
        unsigned = transaction.AssetCreateTxn(
            sender=txn["snd"],
            sp=params,
            total=apar["t"],
            decimals=apar["dc"],
            default_frozen=False,
            manager=apar.get("m"),
            reserve=apar.get("r"),
            unit_name=apar["un"],
            asset_name=apar["an"],
            url=apar.get("au", ""),
            note=txn.get("note"),
        )

        signed = unsigned.sign(self._private_key)
        logger.debug(f"Signed asset creation {unsigned.get_txid()} for {self._address}")
        return base64.b64decode(encoding.msgpack_encode(signed))
