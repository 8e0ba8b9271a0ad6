"""Wallet signer and chain RPC collaborators.

- WalletSigner: signs messages, typed data and transactions for the owner
- ChainRpc: reads balances and waits for transaction receipts
"""

from crossdeposit.wallet.base import (
    ChainRpc,
    ReceiptTimeoutError,
    RpcError,
    SignatureResult,
    SignerRejectedError,
    SigningError,
    TransactionRevertedError,
    WalletSigner,
)
from crossdeposit.wallet.factory import build_chain_rpcs, get_wallet_signer
from crossdeposit.wallet.local import LocalWalletSigner

__all__ = [
    "ChainRpc",
    "ReceiptTimeoutError",
    "RpcError",
    "SignatureResult",
    "SignerRejectedError",
    "SigningError",
    "TransactionRevertedError",
    "WalletSigner",
    "LocalWalletSigner",
    "build_chain_rpcs",
    "get_wallet_signer",
]
