"""Base interfaces for the wallet and chain collaborators.

The workflow never touches key material directly. It asks a WalletSigner to
sign or send, and a ChainRpc to read chain state and wait for receipts.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from crossdeposit.models import TxReceipt

logger = logging.getLogger(__name__)

# ERC-20 function selectors
ERC20_TRANSFER_SELECTOR = "0xa9059cbb"  # transfer(address,uint256)

ERC20_ABI = [
    {
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]


def encode_erc20_transfer(to: str, amount: int) -> str:
    """Encode transfer(address,uint256) calldata."""
    to_padded = to.lower().replace("0x", "").zfill(64)
    amount_hex = hex(amount)[2:].zfill(64)
    return f"{ERC20_TRANSFER_SELECTOR}{to_padded}{amount_hex}"


@dataclass
class SignatureResult:
    """Result of a signing operation.

    Attributes:
        signature: 65-byte signature as 0x hex (r + s + v)
        v: Recovery parameter
        r: R component (0x hex, 32 bytes)
        s: S component (0x hex, 32 bytes)
    """
    signature: str
    v: int
    r: str
    s: str


class SigningError(Exception):
    """Exception raised when signing fails."""
    pass


class SignerRejectedError(SigningError):
    """The wallet holder declined the request."""
    pass


class RpcError(Exception):
    """Exception raised when a chain RPC call fails."""
    pass


class ReceiptTimeoutError(RpcError):
    """Transaction receipt did not arrive within the wait timeout."""
    pass


class TransactionRevertedError(RpcError):
    """Transaction was mined but reverted."""
    pass


class WalletSigner(ABC):
    """Abstract wallet holding the owner's key.

    Implementations may prompt a human, so every call can take arbitrarily
    long and may raise SignerRejectedError.
    """

    @property
    @abstractmethod
    def address(self) -> str:
        """Owner address."""
        pass

    @abstractmethod
    async def sign_message(self, message: str) -> SignatureResult:
        """Sign a text message (EIP-191 personal_sign)."""
        pass

    @abstractmethod
    async def sign_typed_data(self, typed_data: dict) -> SignatureResult:
        """Sign EIP-712 typed data.

        Args:
            typed_data: Full message dict with types, primaryType, domain, message
        """
        pass

    @abstractmethod
    async def send_transaction(
        self,
        chain_id: int,
        to: str,
        data: str = "0x",
        value: int = 0,
    ) -> str:
        """Sign and broadcast a transaction.

        Returns:
            Transaction hash as 0x hex
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(address={self.address})"


class ChainRpc(ABC):
    """Abstract read/broadcast access to one EVM chain."""

    @abstractmethod
    async def wait_for_receipt(self, tx_hash: str, timeout: float) -> TxReceipt:
        """Wait for a transaction to be mined.

        Raises:
            ReceiptTimeoutError: If no receipt within timeout
            TransactionRevertedError: If the transaction reverted
        """
        pass

    @abstractmethod
    async def read_balance(self, token: str, owner: str) -> int:
        """ERC-20 balance in token units."""
        pass

    @abstractmethod
    async def get_nonce(self, address: str) -> int:
        pass

    @abstractmethod
    async def get_gas_price(self) -> int:
        pass

    @abstractmethod
    async def estimate_gas(self, tx: dict) -> Optional[int]:
        pass

    @abstractmethod
    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        pass
