"""Local wallet signer.

Uses an in-memory private key through eth_account. Suitable for:
- Development/testing
- Scripted deposits from a dedicated hot wallet

An optional confirm callback stands in for the wallet prompt: returning
False from it is treated exactly like a user declining in their wallet.
"""

import logging
from typing import Callable, Optional

from eth_account import Account
from eth_account.messages import encode_defunct, encode_typed_data
from web3 import Web3

from crossdeposit.wallet.base import (
    ChainRpc,
    SignatureResult,
    SignerRejectedError,
    SigningError,
    WalletSigner,
)

logger = logging.getLogger(__name__)

# ERC20 transfers need more than the 21000 of a plain transfer
DEFAULT_GAS_LIMIT = 100000

ConfirmCallback = Callable[[str, dict], bool]


class LocalWalletSigner(WalletSigner):
    """Wallet signer backed by a local private key."""

    def __init__(
        self,
        private_key: str,
        rpcs: Optional[dict[int, ChainRpc]] = None,
        confirm: Optional[ConfirmCallback] = None,
    ):
        """Initialize signer.

        Args:
            private_key: Hex private key
            rpcs: Chain RPC clients keyed by chain id, needed to send transactions
            confirm: Called with (action, details) before every signature
        """
        self._account = Account.from_key(private_key)
        self._rpcs: dict[int, ChainRpc] = dict(rpcs or {})
        self._confirm = confirm

    @property
    def address(self) -> str:
        return self._account.address

    def _check_approval(self, action: str, details: dict) -> None:
        if self._confirm is not None and not self._confirm(action, details):
            logger.info(f"User rejected {action}")
            raise SignerRejectedError(f"User rejected the {action} request")

    @staticmethod
    def _to_result(signed) -> SignatureResult:
        return SignatureResult(
            signature="0x" + bytes(signed.signature).hex(),
            v=signed.v,
            r="0x" + format(signed.r, "064x"),
            s="0x" + format(signed.s, "064x"),
        )

    async def sign_message(self, message: str) -> SignatureResult:
        """Sign a text message with EIP-191 prefixing."""
        self._check_approval("sign_message", {"message": message})
        try:
            signed = self._account.sign_message(encode_defunct(text=message))
        except Exception as e:
            raise SigningError(f"Message signing failed: {e}") from e
        return self._to_result(signed)

    async def sign_typed_data(self, typed_data: dict) -> SignatureResult:
        """Sign EIP-712 typed data."""
        self._check_approval("sign_typed_data", typed_data)
        try:
            signable = encode_typed_data(full_message=typed_data)
            signed = self._account.sign_message(signable)
        except Exception as e:
            raise SigningError(f"Typed data signing failed: {e}") from e
        return self._to_result(signed)

    async def send_transaction(
        self,
        chain_id: int,
        to: str,
        data: str = "0x",
        value: int = 0,
    ) -> str:
        """Build, sign and broadcast a legacy transaction."""
        rpc = self._rpcs.get(chain_id)
        if rpc is None:
            raise SigningError(f"No RPC configured for chain {chain_id}")

        self._check_approval(
            "send_transaction",
            {"chain_id": chain_id, "to": to, "data": data, "value": value},
        )

        nonce = await rpc.get_nonce(self.address)
        gas_price = await rpc.get_gas_price()

        tx = {
            "chainId": chain_id,
            "nonce": nonce,
            "to": Web3.to_checksum_address(to),
            "value": value,
            "data": data,
            "gasPrice": gas_price,
        }

        gas = await rpc.estimate_gas({**tx, "from": self.address})
        tx["gas"] = gas or DEFAULT_GAS_LIMIT

        try:
            signed_tx = self._account.sign_transaction(tx)
        except Exception as e:
            raise SigningError(f"Transaction signing failed: {e}") from e
        tx_hash = await rpc.send_raw_transaction(signed_tx.raw_transaction)

        logger.info(f"Broadcast tx {tx_hash} on chain {chain_id} (nonce {nonce})")
        return tx_hash
