"""web3.py backed chain RPC client."""

import logging
from typing import Optional

from web3 import AsyncWeb3, Web3
from web3.exceptions import TimeExhausted

from crossdeposit.chains import ChainDescriptor
from crossdeposit.models import TxReceipt
from crossdeposit.wallet.base import (
    ERC20_ABI,
    ChainRpc,
    ReceiptTimeoutError,
    RpcError,
    TransactionRevertedError,
)

logger = logging.getLogger(__name__)


class Web3ChainRpc(ChainRpc):
    """Chain access through an AsyncWeb3 HTTP provider.

    Provider and node errors surface as RpcError.
    """

    def __init__(self, chain: ChainDescriptor, request_timeout: float = 30.0):
        self.chain = chain
        self.request_timeout = request_timeout
        self._web3: Optional[AsyncWeb3] = None

    @property
    def web3(self) -> AsyncWeb3:
        """Lazy load web3 instance."""
        if self._web3 is None:
            self._web3 = AsyncWeb3(
                AsyncWeb3.AsyncHTTPProvider(
                    self.chain.rpc_endpoint,
                    request_kwargs={"timeout": self.request_timeout},
                )
            )
        return self._web3

    def _rpc_error(self, action: str, error: Exception) -> RpcError:
        logger.warning(f"{action} failed on {self.chain.display_name}: {error}")
        return RpcError(f"{action} failed on {self.chain.display_name}: {error}")

    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> TxReceipt:
        """Wait for a transaction receipt, bounded by timeout seconds."""
        try:
            receipt = await self.web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=timeout, poll_latency=2
            )
        except TimeExhausted as e:
            raise ReceiptTimeoutError(
                f"Transaction {tx_hash} not confirmed after {timeout}s"
            ) from e
        except Exception as e:
            raise self._rpc_error("Receipt lookup", e) from e

        result = TxReceipt(
            tx_hash=Web3.to_hex(receipt["transactionHash"]),
            block_number=int(receipt["blockNumber"]),
            status=int(receipt["status"]),
        )

        if not result.succeeded:
            raise TransactionRevertedError(
                f"Transaction {tx_hash} reverted in block {result.block_number}"
            )

        logger.debug(f"Receipt for {tx_hash} on {self.chain.display_name}: block {result.block_number}")
        return result

    async def read_balance(self, token: str, owner: str) -> int:
        contract = self.web3.eth.contract(
            address=Web3.to_checksum_address(token),
            abi=ERC20_ABI,
        )
        try:
            return int(await contract.functions.balanceOf(Web3.to_checksum_address(owner)).call())
        except Exception as e:
            raise self._rpc_error("Balance read", e) from e

    async def get_nonce(self, address: str) -> int:
        try:
            return await self.web3.eth.get_transaction_count(
                Web3.to_checksum_address(address), "pending"
            )
        except Exception as e:
            raise self._rpc_error("Nonce lookup", e) from e

    async def get_gas_price(self) -> int:
        try:
            return await self.web3.eth.gas_price
        except Exception as e:
            raise self._rpc_error("Gas price lookup", e) from e

    async def estimate_gas(self, tx: dict) -> Optional[int]:
        try:
            return await self.web3.eth.estimate_gas(tx)
        except Exception as e:
            logger.warning(f"Gas estimation failed on {self.chain.display_name}: {e}")
            return None

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        try:
            tx_hash = await self.web3.eth.send_raw_transaction(raw_tx)
        except Exception as e:
            raise self._rpc_error("Broadcast", e) from e
        return Web3.to_hex(tx_hash)
